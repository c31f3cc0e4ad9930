# ========================
# src/merger/ingestion.py
# ========================

"""
Data Ingestion Module

Handles memory-efficient reading of delimited files using chunked processing.
Raw bytes are read a fixed number at a time, so no input file is ever held in
memory as a whole.
"""

import codecs
import csv
import logging
import re
from typing import Any, BinaryIO, Callable, Dict, Iterator, List, Optional, Tuple

from .errors import ParseError
from .values import EMPTY, classify_cell

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 1024 * 1024  # 1 MiB

_LINE_END = re.compile(r"\r\n|\r|\n")


class ChunkedCSVParser:
    """
    Parses one delimited byte stream into batches of typed rows.

    The header is taken from the first record. One batch is yielded for each
    chunk of raw bytes consumed, which gives callers a suspension point
    between chunks.
    """

    def __init__(self,
                 file_name: str,
                 chunk_size: int = DEFAULT_CHUNK_SIZE,
                 encoding: str = "utf-8-sig",
                 delimiter: str = ",",
                 progress_callback: Optional[Callable[[int], None]] = None):
        """
        Initialize the parser.

        Args:
            file_name (str): Name used in log messages and errors
            chunk_size (int): Number of bytes to read per chunk
            encoding (str): Text encoding of the stream
            delimiter (str): Field delimiter
            progress_callback (callable): Called with the row count of each batch
        """
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")

        self.file_name = file_name
        self.chunk_size = chunk_size
        self.encoding = encoding
        self.delimiter = delimiter
        self.progress_callback = progress_callback

        self.header: Optional[List[str]] = None
        self.row_count = 0
        self.chunks_read = 0
        self.bytes_read = 0
        logger.debug(f"Initialized ChunkedCSVParser for file: {file_name}")

    def iter_batches(self, stream: BinaryIO) -> Iterator[List[Dict[str, Any]]]:
        """
        A generator that yields a list of row dictionaries per chunk read.

        Args:
            stream: Binary stream positioned at the start of the file

        Yields:
            list[dict]: Rows keyed by the file's header

        Raises:
            ParseError: If the stream is not valid delimited text
        """
        self.header = None
        self.row_count = 0
        self.chunks_read = 0
        self.bytes_read = 0

        try:
            reader = csv.reader(
                self._iter_lines(stream),
                delimiter=self.delimiter,
                strict=True,
            )

            first = next(reader, None)
            while first is not None and not first:
                first = next(reader, None)
            if first is None:
                logger.info(f"'{self.file_name}' contains no header row")
                return

            self.header = self._dedupe_header(first)
            logger.info(f"CSV header for '{self.file_name}': {self.header}")

            batch = []
            seen_chunks = self.chunks_read
            for record in reader:
                if record:
                    batch.append(self._to_row(record))

                if self.chunks_read != seen_chunks:
                    seen_chunks = self.chunks_read
                    if batch:
                        yield self._emit(batch)
                        batch = []

            if batch:
                yield self._emit(batch)

            logger.info(f"Total rows parsed from '{self.file_name}': {self.row_count}")

        except UnicodeDecodeError as e:
            logger.error(f"Cannot decode '{self.file_name}' as {self.encoding}: {e}")
            raise ParseError(self.file_name, f"invalid {self.encoding} text ({e.reason})") from e
        except csv.Error as e:
            logger.error(f"Malformed delimited text in '{self.file_name}': {e}")
            raise ParseError(self.file_name, str(e)) from e

    def parse(self, stream: BinaryIO) -> Tuple[Optional[List[str]], List[Dict[str, Any]]]:
        """Parse the whole stream and return ``(header, rows)``."""
        rows = []
        for batch in self.iter_batches(stream):
            rows.extend(batch)
        return self.header, rows

    def _emit(self, batch: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        self.row_count += len(batch)
        logger.debug(f"Yielding batch with {len(batch)} rows from '{self.file_name}'")
        if self.progress_callback:
            self.progress_callback(len(batch))
        return batch

    def _iter_lines(self, stream: BinaryIO) -> Iterator[str]:
        """Decode the stream chunk by chunk and yield complete lines."""
        decoder = codecs.getincrementaldecoder(self.encoding)(errors="strict")
        pending = ""

        while True:
            raw = stream.read(self.chunk_size)
            final = not raw
            if raw:
                self.chunks_read += 1
                self.bytes_read += len(raw)

            text = pending + decoder.decode(raw, final=final)
            start = 0
            for match in _LINE_END.finditer(text):
                # A trailing "\r" may be the first half of a "\r\n" split across chunks
                if not final and match.group() == "\r" and match.end() == len(text):
                    break
                yield text[start:match.end()]
                start = match.end()
            pending = text[start:]

            if final:
                if pending:
                    yield pending
                return

    def _to_row(self, record: List[str]) -> Dict[str, Any]:
        # Short records are padded with the empty placeholder, extra cells dropped
        row = {}
        for index, column in enumerate(self.header):
            raw = record[index] if index < len(record) else EMPTY
            row[column] = classify_cell(raw)
        return row

    @staticmethod
    def _dedupe_header(fields: List[str]) -> List[str]:
        header = []
        seen = set()
        for name in fields:
            candidate = name
            suffix = 0
            while candidate in seen:
                suffix += 1
                candidate = f"{name}_{suffix}"
            seen.add(candidate)
            header.append(candidate)
        return header
