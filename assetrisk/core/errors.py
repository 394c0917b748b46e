"""Exception hierarchy for risk scoring and criteria lifecycle operations."""
from typing import Any, List, Optional


class AssetRiskError(Exception):
    """Base class for all assetrisk errors."""


class ValidationError(AssetRiskError, ValueError):
    """Raised when an input is malformed or out of range."""


class CriterionNotFoundError(ValidationError):
    """Raised when a criterion id is not present in the current snapshot."""

    def __init__(self, criterion_id: int):
        self.criterion_id = criterion_id
        super().__init__(f"Criterion not found: {criterion_id}")


class InvalidTransitionError(ValidationError):
    """Raised when a lifecycle action is not allowed from the current state."""

    def __init__(self, message: str, current_status: Optional[str] = None):
        self.current_status = current_status
        super().__init__(message)


class InvariantViolation(AssetRiskError):
    """Raised before any write when a mutation would break a configuration rule.

    Attributes:
        rule: Machine-readable rule name (e.g. ``min_one_active_criterion``)
        active_count: Criteria currently in the scoring model
        total_count: Criteria known to the store, deleted ones included
    """

    def __init__(self, rule: str, message: str, active_count: int = 0, total_count: int = 0):
        self.rule = rule
        self.active_count = active_count
        self.total_count = total_count
        super().__init__(
            f"{message} (rule: {rule}, active criteria: {active_count}, "
            f"total criteria: {total_count})"
        )


class ConcurrencyConflict(AssetRiskError):
    """Raised when a criteria snapshot is committed against a stale generation."""

    def __init__(self, expected_generation: int, actual_generation: int):
        self.expected_generation = expected_generation
        self.actual_generation = actual_generation
        super().__init__(
            f"Criteria configuration changed concurrently: expected generation "
            f"{expected_generation}, found {actual_generation}. Retry with fresh state."
        )


class AuditWriteError(AssetRiskError):
    """Raised when the audit sink rejects an entry. Fatal to the whole transition."""


class PartialBatchFailure(AssetRiskError):
    """Raised on request when one or more assets failed batch recalculation."""

    def __init__(self, failures: List[Any]):
        self.failures = failures
        asset_ids = ", ".join(str(f.asset_id) for f in failures)
        super().__init__(
            f"Recalculation failed for {len(failures)} asset(s): {asset_ids}"
        )
