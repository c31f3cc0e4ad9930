# ========================
# src/merger/errors.py
# ========================

"""
Merge Errors

Exception hierarchy raised by the merge engine.
"""

from typing import List, Optional


class MergeError(Exception):
    """Base class for all merge engine errors."""


class InputRejected(MergeError):
    """
    Raised before ingestion when the supplied files are unusable
    (unrecognized extensions, or nothing left after filtering).
    """

    def __init__(self, message: str, rejected_files: Optional[List[str]] = None):
        super().__init__(message)
        self.rejected_files = rejected_files or []


class ParseError(MergeError):
    """A file's content could not be decoded as delimited text."""

    def __init__(self, file_name: str, message: str):
        super().__init__(f"Error parsing '{file_name}': {message}")
        self.file_name = file_name
        self.message = message


class MergeCancelled(MergeError):
    """The merge operation was cancelled and rolled back."""


class MergeInProgressError(MergeError):
    """A merge was started while another one is still running."""
