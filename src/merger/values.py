# ========================
# src/merger/values.py
# ========================

"""
Cell Value Classification

Every cell read from an input file is classified exactly once here. A cell is
one of three kinds:

- EMPTY: the empty placeholder ("")
- NUMBER: text that converts losslessly to a decimal number
- TEXT: anything else

Numbers are stored as ``int`` for plain integer literals and as
``decimal.Decimal`` for other decimal literals, so that re-serializing a cell
reproduces the exact text it was read from.
"""

import math
import re
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Union

EMPTY = ""

CellValue = Union[str, int, Decimal]

_INTEGER_PATTERN = re.compile(r"-?(0|[1-9][0-9]*)")


class CellKind(Enum):
    """Tag for a classified cell."""
    EMPTY = "empty"
    NUMBER = "number"
    TEXT = "text"


def classify_cell(raw: Any) -> CellValue:
    """
    Convert a raw cell into its typed value.

    Args:
        raw: Raw cell content as read by the CSV reader (``None`` for a
            missing cell)

    Returns:
        The empty placeholder, an ``int``/``Decimal`` for lossless numeric
        text, or the original string.
    """
    if raw is None or raw == EMPTY:
        return EMPTY
    if not isinstance(raw, str):
        return raw

    if _INTEGER_PATTERN.fullmatch(raw):
        try:
            number = int(raw)
        except ValueError:
            # Longer than the interpreter's int/str conversion limit
            return Decimal(raw)
        if str(number) == raw:
            return number

    try:
        number = Decimal(raw)
    except InvalidOperation:
        return raw

    # Decimal accepts whitespace, underscores and exponents; only keep
    # literals that format back to the same text
    if number.is_finite() and str(number) == raw:
        return number
    return raw


def kind_of(value: Any) -> CellKind:
    """Return the tag of an already classified value."""
    if value is None or value == EMPTY:
        return CellKind.EMPTY
    if isinstance(value, bool):
        return CellKind.TEXT
    if isinstance(value, (int, Decimal)):
        return CellKind.NUMBER
    if isinstance(value, float):
        return CellKind.NUMBER if math.isfinite(value) else CellKind.TEXT
    return CellKind.TEXT


def is_empty(value: Any) -> bool:
    return kind_of(value) is CellKind.EMPTY


def is_numeric(value: Any) -> bool:
    return kind_of(value) is CellKind.NUMBER


def to_text(value: Any) -> str:
    """Render a value the way it appears in delimited text."""
    if is_empty(value):
        return EMPTY
    return str(value)


def to_json_value(value: Any) -> Union[str, int, float]:
    """Render a value for JSON transport (decimals become floats)."""
    if isinstance(value, Decimal):
        number = float(value)
        # Out-of-range decimals keep their text
        return number if math.isfinite(number) else str(value)
    if value is None:
        return EMPTY
    return value
