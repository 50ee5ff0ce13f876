"""Pipeline contracts and failure taxonomy.

This package enforces semantic guarantees between pipeline stages.
Contracts fail immediately and loudly when a stage does not produce its
promised invariants.

Key principle:
- Pydantic validates config correctness
- Contracts validate pipeline correctness
- Per-point errors (InvalidCoordinate) are handled inside the aggregator
"""

from hexrollup.contracts.failure import (
    ContractViolation,
    FailurePolicy,
    InvalidCellId,
    InvalidCoordinate,
    InvalidResolution,
    StorageFailure,
)
from hexrollup.contracts.base import require
from hexrollup.contracts.cells import (
    assert_aggregates_valid,
    assert_monotonic_merge,
    assert_rollup_conserved,
)

__all__ = [
    "ContractViolation",
    "FailurePolicy",
    "InvalidCellId",
    "InvalidCoordinate",
    "InvalidResolution",
    "StorageFailure",
    "require",
    "assert_aggregates_valid",
    "assert_monotonic_merge",
    "assert_rollup_conserved",
]
