# ========================
# src/merger/export.py
# ========================

"""
Data Export Module

Serializes the merged dataset back to delimited text and writes the
downloadable artifacts of a merge.
"""

import csv
import io
import json
import logging
import time
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, Optional, Sequence

from .values import to_text

logger = logging.getLogger(__name__)


class CSVExporter:
    """
    Writes merged datasets as CSV using the canonical schema as header row.
    """

    def __init__(self,
                 output_dir: str = "data/merged",
                 delimiter: str = ",",
                 encoding: str = "utf-8"):
        """
        Initialize the exporter.

        Args:
            output_dir (str): Directory to save exported files
            delimiter (str): Field delimiter of the output
            encoding (str): Encoding of the output bytes
        """
        self.output_dir = Path(output_dir)
        self.delimiter = delimiter
        self.encoding = encoding
        logger.debug(f"CSVExporter initialized with output directory: {self.output_dir}")

    def serialize(self, dataset: Iterable[Dict[str, Any]], schema: Sequence[str]) -> bytes:
        """
        Encode the whole dataset as delimited text.

        Args:
            dataset: Rows keyed by ``schema``
            schema (Sequence[str]): Canonical column names

        Returns:
            bytes: Encoded CSV including the header row
        """
        return b"".join(self.iter_serialized(dataset, schema))

    def iter_serialized(self,
                        dataset: Iterable[Dict[str, Any]],
                        schema: Sequence[str],
                        batch_rows: int = 10000) -> Iterator[bytes]:
        """
        Encode the dataset incrementally, ``batch_rows`` rows per yielded chunk.
        """
        buffer = io.StringIO()
        writer = csv.writer(buffer, delimiter=self.delimiter, lineterminator="\r\n")
        writer.writerow(list(schema))

        pending = 0
        for row in dataset:
            writer.writerow([to_text(row.get(column)) for column in schema])
            pending += 1
            if pending >= batch_rows:
                yield self._drain(buffer)
                pending = 0

        tail = self._drain(buffer)
        if tail:
            yield tail

    def save(self,
             dataset: Iterable[Dict[str, Any]],
             schema: Sequence[str],
             file_name: Optional[str] = None) -> Path:
        """
        Write the merged dataset to the output directory.

        Returns:
            Path: Location of the written file
        """
        self.output_dir.mkdir(parents=True, exist_ok=True)
        file_path = self.output_dir / (file_name or self.export_filename())

        try:
            with open(file_path, 'wb') as f:
                for chunk in self.iter_serialized(dataset, schema):
                    f.write(chunk)
        except OSError as e:
            logger.error(f"Error writing CSV file {file_path}: {e}")
            raise

        logger.info(f"Merged data saved to {file_path}")
        return file_path

    def save_summary(self, result, file_name: Optional[str] = None) -> Path:
        """Save the statistics and visualization of a merge result as JSON."""
        self.output_dir.mkdir(parents=True, exist_ok=True)
        file_path = self.output_dir / (file_name or "merge_summary.json")

        with open(file_path, 'w', encoding='utf-8') as f:
            json.dump(result.to_dict(), f, indent=2, ensure_ascii=False)

        logger.info(f"Summary saved to {file_path}")
        return file_path

    @staticmethod
    def export_filename(timestamp: Optional[float] = None) -> str:
        """Name of an export artifact, e.g. ``merged_data_1700000000000.csv``."""
        if timestamp is None:
            timestamp = time.time()
        return f"merged_data_{int(timestamp * 1000)}.csv"

    def _drain(self, buffer: io.StringIO) -> bytes:
        data = buffer.getvalue().encode(self.encoding)
        buffer.seek(0)
        buffer.truncate(0)
        return data
