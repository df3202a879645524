"""
Error taxonomy for semantic_rows.

Backend errors (BackendUnavailable, DispatchFailure) are recovered locally by
the backend selector. Data errors (DimensionMismatch, InvalidClusterCount)
always reach the caller.
"""

from typing import Optional


class SemanticRowsError(Exception):
    """Base class for all semantic_rows errors."""


class DimensionMismatch(SemanticRowsError, ValueError):
    """Vectors of unequal length were compared."""

    def __init__(self, expected: int, actual: int, index: Optional[int] = None):
        self.expected = expected
        self.actual = actual
        self.index = index
        where = f" at row {index}" if index is not None else ""
        super().__init__(f"Vector dimension mismatch{where}: {actual} != {expected}")


class InvalidClusterCount(SemanticRowsError, ValueError):
    """Requested cluster count is not a positive integer."""

    def __init__(self, k):
        self.k = k
        super().__init__(f"Cluster count must be >= 1, got {k}")


class BackendUnavailable(SemanticRowsError):
    """Parallel compute probe failed or the worker pool could not be created."""


class DispatchFailure(SemanticRowsError):
    """A parallel dispatch started but failed before its results were read back."""


class OperationCancelled(SemanticRowsError):
    """A clustering run was cancelled between iterations."""


class ConfigurationError(SemanticRowsError, ValueError):
    """An environment setting has an invalid value."""


class UnsupportedFileType(SemanticRowsError, ValueError):
    """A table file is neither CSV nor XLSX."""


class SheetNotFound(SemanticRowsError, ValueError):
    """The requested worksheet does not exist in the workbook."""
