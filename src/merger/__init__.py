# ========================
# src/merger/__init__.py
# ========================

"""
CSV Merge Package

This package contains the core components of the streaming merge engine:
- ingestion: Chunked reading of delimited byte streams
- reconciliation: Canonical schema and row projection
- accumulation: Append-only merged dataset
- statistics: Sampled column statistics and growth curve
- export: CSV serialization of the merged dataset
- orchestrator: Merge state machine and coordination
"""

from .values import CellKind, classify_cell, is_numeric
from .errors import MergeError, InputRejected, ParseError, MergeCancelled, MergeInProgressError
from .models import (
    InputFile,
    FileStat,
    MergeStats,
    ColumnSummary,
    GrowthPoint,
    VisualizationSummary,
    SchemaDegradation,
    MergeResult,
    MergeState,
)
from .progress import ProgressTracker
from .ingestion import ChunkedCSVParser
from .reconciliation import SchemaReconciler, project_row
from .accumulation import MergedDataset, MergeAccumulator
from .statistics import StatisticsEngine
from .export import CSVExporter
from .orchestrator import CSVMerger, validate_input_files

__all__ = [
    'CellKind',
    'classify_cell',
    'is_numeric',
    'MergeError',
    'InputRejected',
    'ParseError',
    'MergeCancelled',
    'MergeInProgressError',
    'InputFile',
    'FileStat',
    'MergeStats',
    'ColumnSummary',
    'GrowthPoint',
    'VisualizationSummary',
    'SchemaDegradation',
    'MergeResult',
    'MergeState',
    'ProgressTracker',
    'ChunkedCSVParser',
    'SchemaReconciler',
    'project_row',
    'MergedDataset',
    'MergeAccumulator',
    'StatisticsEngine',
    'CSVExporter',
    'CSVMerger',
    'validate_input_files',
]

__version__ = "1.0.0"
