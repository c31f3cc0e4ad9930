# ========================
# src/merger/reconciliation.py
# ========================

"""
Schema Reconciliation Module

Fixes the canonical column set from the first file of a merge and maps every
incoming row onto it. Later files are coerced to the canonical schema:
columns they add are dropped and columns they lack are left empty.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .models import SchemaDegradation
from .values import EMPTY

logger = logging.getLogger(__name__)


def project_row(row: Mapping[str, Any], schema: Sequence[str]) -> Dict[str, Any]:
    """
    Map a raw row onto the canonical schema.

    Args:
        row (Mapping): Row keyed by any header
        schema (Sequence[str]): Canonical column names

    Returns:
        dict: Row keyed exactly by ``schema``, in schema order
    """
    projected = {}
    for column in schema:
        value = row.get(column, EMPTY)
        projected[column] = EMPTY if value is None else value
    return projected


class SchemaReconciler:
    """
    Holds the canonical schema of one merge operation.
    """

    def __init__(self):
        self._schema: Optional[List[str]] = None

    @property
    def schema(self) -> Optional[List[str]]:
        return list(self._schema) if self._schema is not None else None

    @property
    def is_established(self) -> bool:
        return self._schema is not None

    def establish(self, header: Sequence[str]) -> List[str]:
        """
        Fix the canonical schema from ``header``. Only the first call has an
        effect; later calls return the existing schema.
        """
        if self._schema is None:
            self._schema = list(header)
            logger.info(f"Canonical schema established with {len(self._schema)} columns: {self._schema}")
        return list(self._schema)

    def project(self, row: Mapping[str, Any]) -> Dict[str, Any]:
        if self._schema is None:
            raise RuntimeError("Canonical schema has not been established")
        return project_row(row, self._schema)

    def describe_degradation(self, file_name: str, header: Sequence[str]) -> Optional[SchemaDegradation]:
        """
        Report how ``header`` diverges from the canonical schema.

        Returns:
            SchemaDegradation or None when the header holds every canonical
            column and nothing else (order may differ).
        """
        if self._schema is None:
            return None

        canonical = set(self._schema)
        incoming = set(header)
        dropped = [column for column in header if column not in canonical]
        missing = [column for column in self._schema if column not in incoming]
        if not dropped and not missing:
            return None

        if dropped:
            logger.warning(f"'{file_name}': dropping columns not in canonical schema: {dropped}")
        if missing:
            logger.warning(f"'{file_name}': canonical columns missing, filled with empty values: {missing}")
        return SchemaDegradation(file_name=file_name, dropped_columns=dropped, missing_columns=missing)

    def reset(self) -> None:
        self._schema = None
