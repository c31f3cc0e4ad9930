# ========================
# src/merger/accumulation.py
# ========================

"""
Merge Accumulation Module

Streams each input file through the parser and the schema reconciler and
appends the projected rows into a single growing dataset.
"""

import logging
from typing import Any, Callable, Dict, Generator, Iterator, List, Optional

from .errors import ParseError
from .ingestion import DEFAULT_CHUNK_SIZE, ChunkedCSVParser
from .models import FileStat, InputFile, MergeStats, SchemaDegradation
from .reconciliation import SchemaReconciler

logger = logging.getLogger(__name__)


class MergedDataset:
    """
    Append-only sequence of rows keyed by the canonical schema.

    Once frozen the dataset is a read-only view; further appends raise.
    """

    def __init__(self):
        self._rows: List[Dict[str, Any]] = []
        self._frozen = False

    def extend(self, rows: List[Dict[str, Any]]) -> None:
        if self._frozen:
            raise RuntimeError("MergedDataset is frozen")
        self._rows.extend(rows)

    def freeze(self) -> "MergedDataset":
        self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    def head(self, limit: int) -> List[Dict[str, Any]]:
        return self._rows[:limit]

    def __len__(self) -> int:
        return len(self._rows)

    def __iter__(self) -> Iterator[Dict[str, Any]]:
        return iter(self._rows)

    def __getitem__(self, index):
        return self._rows[index]


class MergeAccumulator:
    """
    Accumulates rows from a sequence of files into one MergedDataset.
    Files must be ingested in the order the caller supplied them.
    """

    def __init__(self,
                 chunk_size: int = DEFAULT_CHUNK_SIZE,
                 encoding: str = "utf-8-sig",
                 delimiter: str = ","):
        """
        Initialize the accumulator.

        Args:
            chunk_size (int): Bytes read per chunk by the parser
            encoding (str): Text encoding of input files
            delimiter (str): Field delimiter of input files
        """
        self.chunk_size = chunk_size
        self.encoding = encoding
        self.delimiter = delimiter

        self.reconciler = SchemaReconciler()
        self.dataset = MergedDataset()
        self.file_stats: List[FileStat] = []
        self.warnings: List[SchemaDegradation] = []
        self.total_size = 0
        logger.debug(f"MergeAccumulator initialized with chunk_size={chunk_size}")

    @property
    def schema(self) -> Optional[List[str]]:
        return self.reconciler.schema

    def iter_ingest_file(self,
                         input_file: InputFile,
                         progress_callback: Optional[Callable[[int], None]] = None
                         ) -> Generator[int, None, FileStat]:
        """
        Ingest one file, yielding after every row batch.

        Args:
            input_file (InputFile): File to read
            progress_callback (callable): Receives the row count of each batch

        Yields:
            int: Number of rows appended by the batch

        Returns:
            FileStat: Summary of the ingested file

        Raises:
            ParseError: If the file is malformed or has no header row
        """
        logger.info(f"Ingesting file {input_file.position + 1}: {input_file.name} ({input_file.size:,} bytes)")
        parser = ChunkedCSVParser(
            input_file.name,
            chunk_size=self.chunk_size,
            encoding=self.encoding,
            delimiter=self.delimiter,
            progress_callback=progress_callback,
        )

        with input_file.open() as stream:
            batches = parser.iter_batches(stream)
            try:
                header_checked = False
                for batch in batches:
                    if not header_checked:
                        self._accept_header(input_file, parser.header)
                        header_checked = True

                    self.dataset.extend([self.reconciler.project(row) for row in batch])
                    yield len(batch)

                if not header_checked:
                    self._accept_header(input_file, parser.header)
            finally:
                batches.close()

        file_stat = FileStat.for_file(input_file, parser.row_count)
        self.file_stats.append(file_stat)
        self.total_size += input_file.size
        logger.info(f"Finished '{input_file.name}': {parser.row_count:,} rows in {parser.chunks_read} chunks")
        return file_stat

    def ingest_file(self,
                    input_file: InputFile,
                    progress_callback: Optional[Callable[[int], None]] = None) -> FileStat:
        """Ingest one file synchronously and return its FileStat."""
        steps = self.iter_ingest_file(input_file, progress_callback)
        while True:
            try:
                next(steps)
            except StopIteration as stop:
                return stop.value

    def finalize(self, file_stats: Optional[List[FileStat]] = None) -> MergeStats:
        """
        Compute aggregate statistics once all files are ingested.

        Args:
            file_stats (list): Per-file records, defaults to those collected here

        Returns:
            MergeStats: Totals across all files
        """
        file_stats = list(self.file_stats if file_stats is None else file_stats)
        schema = self.schema or []
        stats = MergeStats(
            total_files=len(file_stats),
            total_rows=sum(stat.rows for stat in file_stats),
            total_columns=len(schema),
            total_size=self.total_size,
            file_breakdown=file_stats,
        )
        logger.info(
            f"Merge totals: {stats.total_files} files, {stats.total_rows:,} rows, "
            f"{stats.total_columns} columns, {stats.total_size_mb} MB"
        )
        return stats

    def handoff(self) -> MergedDataset:
        """Freeze the dataset and hand it to downstream readers."""
        return self.dataset.freeze()

    def _accept_header(self, input_file: InputFile, header: Optional[List[str]]) -> None:
        if not header:
            logger.error(f"No header row could be extracted from '{input_file.name}'")
            raise ParseError(input_file.name, "no header row found")

        if self.reconciler.is_established:
            degradation = self.reconciler.describe_degradation(input_file.name, header)
            if degradation:
                self.warnings.append(degradation)
        else:
            self.reconciler.establish(header)
