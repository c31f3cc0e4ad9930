# ========================
# src/merger/statistics.py
# ========================

"""
Statistics & Sampling Module

Derives the column analysis and the row growth curve from a merged dataset.
Column statistics are computed over a bounded prefix sample so their cost
does not depend on the size of the merge.
"""

import logging
import math
from decimal import Decimal
from typing import Any, List, Sequence

from .models import ColumnSummary, GrowthPoint, VisualizationSummary
from .values import is_empty, is_numeric

logger = logging.getLogger(__name__)

DEFAULT_SAMPLE_ROWS = 1000
DEFAULT_COLUMN_LIMIT = 10
DEFAULT_GROWTH_POINTS = 20


class StatisticsEngine:
    """
    Computes the visualization summary of a merged dataset.
    The computation is pure: the same dataset always yields the same summary.
    """

    def __init__(self,
                 sample_rows: int = DEFAULT_SAMPLE_ROWS,
                 column_limit: int = DEFAULT_COLUMN_LIMIT,
                 growth_points: int = DEFAULT_GROWTH_POINTS):
        """
        Initialize the statistics engine.

        Args:
            sample_rows (int): Number of leading rows used for column statistics
            column_limit (int): Maximum number of columns summarized
            growth_points (int): Approximate number of points on the growth curve
        """
        if sample_rows <= 0 or column_limit <= 0 or growth_points <= 0:
            raise ValueError("sample_rows, column_limit and growth_points must be positive")

        self.sample_rows = sample_rows
        self.column_limit = column_limit
        self.growth_points = growth_points
        logger.debug(
            f"StatisticsEngine initialized with sample_rows={sample_rows}, "
            f"column_limit={column_limit}, growth_points={growth_points}"
        )

    def summarize(self, dataset: Sequence, schema: Sequence[str]) -> VisualizationSummary:
        """
        Build the visualization summary.

        Args:
            dataset: Merged rows supporting ``len`` and slicing/``head``
            schema (Sequence[str]): Canonical column names

        Returns:
            VisualizationSummary: Column statistics and growth curve
        """
        sample = self._sample(dataset)
        columns = list(schema)[:self.column_limit]

        column_stats = [self.summarize_column(column, sample) for column in columns]
        growth = self.growth_curve(len(dataset))

        logger.info(
            f"Summarized {len(columns)} columns over {len(sample):,} sampled rows; "
            f"growth curve has {len(growth)} points"
        )
        return VisualizationSummary(column_stats=column_stats, file_progression=growth)

    def summarize_column(self, column: str, sample: List[dict]) -> ColumnSummary:
        """Count values, numeric values and blanks of one column in the sample."""
        total_values = 0
        numeric_count = 0
        numeric_total = Decimal(0)

        for row in sample:
            value = row.get(column)
            if is_empty(value):
                continue
            total_values += 1
            if is_numeric(value):
                numeric_count += 1
                numeric_total += Decimal(value)

        # Columns without numeric values report 0 rather than an undefined mean
        avg_value = self._mean(numeric_total, numeric_count) if numeric_count else 0.0

        return ColumnSummary(
            column=column,
            total_values=total_values,
            numeric_count=numeric_count,
            avg_value=avg_value,
            null_count=len(sample) - total_values,
        )

    @staticmethod
    def _mean(total: Decimal, count: int):
        mean = total / count
        number = float(mean)
        # Means beyond float range keep their decimal text
        return round(number, 2) if math.isfinite(number) else str(mean)

    def growth_curve(self, total_rows: int) -> List[GrowthPoint]:
        """
        Sample row positions across the whole dataset.

        The cumulative row count at a position equals the position itself
        because merged rows are contiguous.
        """
        if total_rows <= 0:
            return []

        step = math.ceil(total_rows / self.growth_points)
        return [GrowthPoint(index=index, rows=index) for index in range(0, total_rows, step)]

    def _sample(self, dataset: Any) -> List[dict]:
        if hasattr(dataset, 'head'):
            return list(dataset.head(self.sample_rows))
        return list(dataset[:self.sample_rows])
