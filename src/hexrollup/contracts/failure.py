"""Centralized failure taxonomy for the hex rollup pipeline.

Every error a stage can raise lives here, so callers can branch on the
exception type instead of parsing messages.

Key distinction:
- InvalidCoordinate: one bad point, dropped, batch continues
- InvalidResolution / InvalidCellId: caller bug, fatal for the call
- StorageFailure: batch rolled back, safe to retry the whole batch
- ContractViolation: a stage broke its promise, pipeline stops
"""

from enum import Enum


class FailurePolicy(str, Enum):
    """What a stage does when a single input item is invalid.

    FAIL_FAST: Raise immediately, abort the batch
    SKIP_POINT (default for aggregation): Log a warning, drop the item,
    continue with the rest of the batch
    """
    FAIL_FAST = "fail_fast"
    SKIP_POINT = "skip_point"


class ContractViolation(RuntimeError):
    """Raised when a pipeline contract is violated.

    This indicates a bug in pipeline logic, not bad input. It means a stage
    did not produce the invariants it promised (for example a cell id at the
    wrong resolution reaching the store).
    """
    pass


class InvalidCoordinate(ValueError):
    """Latitude or longitude is non-finite or outside its valid range."""

    def __init__(self, latitude, longitude, reason: str = "out of range"):
        self.latitude = latitude
        self.longitude = longitude
        super().__init__(f"Invalid coordinate ({latitude}, {longitude}): {reason}")


class InvalidResolution(ValueError):
    """Resolution is outside 0..15, or not coarser where a parent is required."""
    pass


class InvalidCellId(ValueError):
    """Token is not a valid H3 cell identifier."""
    pass


class StorageFailure(RuntimeError):
    """Storage read, write, or transaction failure.

    The batch that raised this was rolled back in full and may be
    retried as is.
    """

    def __init__(self, message: str, table: str = None):
        self.table = table
        super().__init__(message)
