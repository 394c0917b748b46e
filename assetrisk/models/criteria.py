"""Prioritization criteria, configuration snapshots and audit records."""
from datetime import datetime
from enum import Enum
from typing import Annotated, Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field

from assetrisk.core.errors import PartialBatchFailure

class CriterionStatus(str, Enum):
    """Lifecycle status of a criterion."""

    ACTIVE = "active"
    DISABLED = "disabled"
    DELETED = "deleted"

class LifecycleAction(str, Enum):
    """Administrative actions on a criterion."""

    REMOVE = "remove"
    DISABLE = "disable"
    DELETE = "delete"
    ENABLE = "enable"

class RemovalScope(str, Enum):
    """How far a removal reaches.

    PORTFOLIO drops the criterion from the scoring model but keeps its status,
    GLOBAL disables it.
    """

    PORTFOLIO = "portfolio"
    GLOBAL = "global"

class AuditAction(str, Enum):
    """Actions recorded in the criteria audit log."""

    DEACTIVATED = "deactivated"
    REACTIVATED = "reactivated"
    DELETED = "deleted"


class PrioritizationCriterion(BaseModel):
    """A named, weighted dimension of the composite priority score."""

    id: int
    name: str
    weight: float = Field(default=0.0, le=100)
    is_active: bool = True
    status: CriterionStatus = CriterionStatus.ACTIVE
    description: Optional[str] = None
    deleted_by: Optional[str] = None
    deleted_at: Optional[datetime] = None

    model_config = ConfigDict(frozen=True)

    @property
    def in_model(self) -> bool:
        """True when the criterion takes part in scoring and normalization."""
        return self.is_active and self.status == CriterionStatus.ACTIVE


class CriteriaSnapshot(BaseModel):
    """Versioned, immutable view of every criterion.

    ``generation`` increases by one on every committed change, so writers can
    detect that the configuration moved under them.
    """

    generation: int = 0
    criteria: Tuple[PrioritizationCriterion, ...] = ()

    model_config = ConfigDict(frozen=True)

    def get(self, criterion_id: int) -> Optional[PrioritizationCriterion]:
        """Return the criterion with this id, or None."""
        for criterion in self.criteria:
            if criterion.id == criterion_id:
                return criterion
        return None

    def active(self) -> List[PrioritizationCriterion]:
        """Criteria currently in the scoring model."""
        return [c for c in self.criteria if c.in_model]

    def weights(self) -> Dict[int, float]:
        """Weight per criterion id for criteria in the model."""
        return {c.id: c.weight for c in self.active()}


class CriterionState(BaseModel):
    """Point-in-time state captured on both sides of an audit entry."""

    status: CriterionStatus
    is_active: bool
    weight: float

    model_config = ConfigDict(frozen=True)

    @classmethod
    def of(cls, criterion: PrioritizationCriterion) -> "CriterionState":
        """Capture the state of a criterion."""
        return cls(status=criterion.status, is_active=criterion.is_active, weight=criterion.weight)


class DeactivationDetails(BaseModel):
    """Payload for removal and disable actions."""

    kind: Literal["deactivated"] = "deactivated"
    scope: RemovalScope
    previous_weight: float

    model_config = ConfigDict(frozen=True)


class ReactivationDetails(BaseModel):
    """Payload for enable actions."""

    kind: Literal["reactivated"] = "reactivated"
    restored_weight: float

    model_config = ConfigDict(frozen=True)


class DeletionDetails(BaseModel):
    """Payload for delete actions."""

    kind: Literal["deleted"] = "deleted"
    criterion_name: str
    confirmation_received: bool = True

    model_config = ConfigDict(frozen=True)


AuditDetails = Annotated[
    Union[DeactivationDetails, ReactivationDetails, DeletionDetails],
    Field(discriminator="kind"),
]


class CriteriaAuditLogEntry(BaseModel):
    """Append-only compliance record of one criterion transition."""

    criterion_id: int
    action: AuditAction
    old_state: CriterionState
    new_state: CriterionState
    actor: str
    timestamp: datetime
    reason: str
    impacted_asset_count: int = 0
    generation: int
    details: AuditDetails

    model_config = ConfigDict(frozen=True)


class CriteriaAuditStats(BaseModel):
    """Counts over the whole criteria audit log."""

    total_changes: int = 0
    counts: Dict[AuditAction, int] = Field(
        default_factory=lambda: {action: 0 for action in AuditAction}
    )
    recent_changes: int = 0


class RecalculationFailure(BaseModel):
    """One asset whose composite score could not be recomputed."""

    asset_id: int
    error: str


class BatchRecalculationResult(BaseModel):
    """Outcome of a best-effort batch recalculation."""

    snapshot_generation: int
    recalculated: Dict[int, float] = {}
    failures: List[RecalculationFailure] = []
    skipped: List[int] = []

    @property
    def succeeded(self) -> bool:
        """True when no asset failed."""
        return not self.failures

    def raise_for_failures(self) -> None:
        """Raise PartialBatchFailure if any asset failed."""
        if self.failures:
            raise PartialBatchFailure(self.failures)


class CriteriaManagementResult(BaseModel):
    """Outcome of a successful criteria lifecycle transition."""

    success: bool = True
    message: str
    criterion_id: int
    impacted_assets: int = 0
    normalized_weights: Dict[int, float] = {}
    generation: int
    recalculation: Optional[BatchRecalculationResult] = None
