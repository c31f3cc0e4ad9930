# ========================
# src/merger/models.py
# ========================

"""
Merge Data Model

Plain data objects exchanged between the merge engine and its callers.
Every object exposes ``to_dict()`` returning JSON-ready values.
"""

import io
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, BinaryIO, Callable, Dict, List, Optional, Union

from .values import to_json_value

BYTES_PER_MB = 1024 * 1024


class MergeState(Enum):
    """Lifecycle of a single merge operation."""
    IDLE = "idle"
    INGESTING = "ingesting"
    AGGREGATING = "aggregating"
    SUMMARIZING = "summarizing"
    READY = "ready"
    FAILED = "failed"


@dataclass(frozen=True)
class InputFile:
    """
    A named byte source supplied by the caller.

    ``opener`` returns a fresh binary stream each time it is called; the
    engine opens it exactly once during the merge and closes it afterwards.
    """

    name: str
    size: int
    position: int
    opener: Callable[[], BinaryIO] = field(repr=False, compare=False)

    def open(self) -> BinaryIO:
        return self.opener()

    @property
    def extension(self) -> str:
        return Path(self.name).suffix.lower()

    @classmethod
    def from_path(cls, path, position: int = 0) -> "InputFile":
        path = Path(path)
        return cls(
            name=path.name,
            size=path.stat().st_size,
            position=position,
            opener=lambda: open(path, "rb"),
        )

    @classmethod
    def from_bytes(cls, name: str, data: bytes, position: int = 0) -> "InputFile":
        return cls(
            name=name,
            size=len(data),
            position=position,
            opener=lambda: io.BytesIO(data),
        )


@dataclass(frozen=True)
class FileStat:
    """Per-file ingestion record."""

    name: str
    size_mb: float
    rows: int

    @classmethod
    def for_file(cls, input_file: InputFile, rows: int) -> "FileStat":
        return cls(
            name=input_file.name,
            size_mb=round(input_file.size / BYTES_PER_MB, 2),
            rows=rows,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {'name': self.name, 'size_mb': self.size_mb, 'rows': self.rows}


@dataclass(frozen=True)
class MergeStats:
    """Aggregate statistics for a completed merge."""

    total_files: int
    total_rows: int
    total_columns: int
    total_size: int
    file_breakdown: List[FileStat] = field(default_factory=list)

    @property
    def total_size_mb(self) -> float:
        return round(self.total_size / BYTES_PER_MB, 1)

    @classmethod
    def empty(cls) -> "MergeStats":
        return cls(total_files=0, total_rows=0, total_columns=0, total_size=0)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'total_files': self.total_files,
            'total_rows': self.total_rows,
            'total_columns': self.total_columns,
            'total_size': self.total_size,
            'total_size_mb': self.total_size_mb,
            'file_breakdown': [stat.to_dict() for stat in self.file_breakdown],
        }


@dataclass(frozen=True)
class ColumnSummary:
    """Value statistics for one column over the sampled rows."""

    column: str
    total_values: int
    numeric_count: int
    avg_value: Union[float, str]
    null_count: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            'column': self.column,
            'total_values': self.total_values,
            'numeric_count': self.numeric_count,
            'avg_value': self.avg_value,
            'null_count': self.null_count,
        }


@dataclass(frozen=True)
class GrowthPoint:
    index: int
    rows: int

    def to_dict(self) -> Dict[str, int]:
        return {'index': self.index, 'rows': self.rows}


@dataclass(frozen=True)
class VisualizationSummary:
    """Bounded analytical summary handed to the presentation layer."""

    column_stats: List[ColumnSummary] = field(default_factory=list)
    file_progression: List[GrowthPoint] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'column_stats': [summary.to_dict() for summary in self.column_stats],
            'file_progression': [point.to_dict() for point in self.file_progression],
        }


@dataclass(frozen=True)
class SchemaDegradation:
    """Columns lost or blanked when a file is projected onto the canonical schema."""

    file_name: str
    dropped_columns: List[str] = field(default_factory=list)
    missing_columns: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'file_name': self.file_name,
            'dropped_columns': list(self.dropped_columns),
            'missing_columns': list(self.missing_columns),
        }


@dataclass
class MergeResult:
    """Everything produced by one completed merge."""

    schema: List[str]
    dataset: Any
    stats: MergeStats
    visualization: Optional[VisualizationSummary]
    warnings: List[SchemaDegradation] = field(default_factory=list)

    def preview(self, limit: int = 10) -> List[Dict[str, Any]]:
        return [
            {column: to_json_value(value) for column, value in row.items()}
            for row in self.dataset.head(limit)
        ]

    def to_dict(self, preview_rows: int = 10) -> Dict[str, Any]:
        return {
            'schema': list(self.schema),
            'row_count': len(self.dataset),
            'preview': self.preview(preview_rows),
            'stats': self.stats.to_dict(),
            'visualization': self.visualization.to_dict() if self.visualization else None,
            'warnings': [warning.to_dict() for warning in self.warnings],
        }
