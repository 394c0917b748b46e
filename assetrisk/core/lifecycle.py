"""Prioritization criteria lifecycle: removal, disabling, deletion and re-enabling.

Every transition is one unit of work:

1. precondition checks (transition table, last-active-criterion rule)
2. staleness check against the snapshot generation
3. audit entry append (failure aborts everything)
4. snapshot commit with normalized weights
5. score removal (delete only)
6. recalculation of affected composite scores

Nothing is written when steps 1-3 fail.
"""
import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable, Dict, FrozenSet, List, Optional, Tuple

from assetrisk.config.settings import EngineConfig
from assetrisk.core.composite import CompositeScoreRecalculator
from assetrisk.core.errors import (
    AssetRiskError,
    AuditWriteError,
    ConcurrencyConflict,
    CriterionNotFoundError,
    InvalidTransitionError,
    InvariantViolation,
    ValidationError,
)
from assetrisk.core.normalize import check_weights_balanced, normalize_weights
from assetrisk.core.recalculate import recalculate_assets
from assetrisk.models.criteria import (
    AuditAction,
    CriteriaAuditLogEntry,
    CriteriaManagementResult,
    CriteriaSnapshot,
    CriterionState,
    CriterionStatus,
    DeactivationDetails,
    DeletionDetails,
    LifecycleAction,
    PrioritizationCriterion,
    ReactivationDetails,
    RemovalScope,
)
from assetrisk.store.base import AuditLogSink, CriteriaStore, ScoreStore

logger = logging.getLogger(__name__)

DELETE_CONFIRMATION = "DELETE"

# (current status, action) -> new status. Anything missing is rejected.
TRANSITIONS: Dict[Tuple[CriterionStatus, LifecycleAction], CriterionStatus] = {
    (CriterionStatus.ACTIVE, LifecycleAction.REMOVE): CriterionStatus.ACTIVE,
    (CriterionStatus.ACTIVE, LifecycleAction.DISABLE): CriterionStatus.DISABLED,
    (CriterionStatus.ACTIVE, LifecycleAction.DELETE): CriterionStatus.DELETED,
    (CriterionStatus.DISABLED, LifecycleAction.DELETE): CriterionStatus.DELETED,
    (CriterionStatus.DISABLED, LifecycleAction.ENABLE): CriterionStatus.ACTIVE,
}

AUDIT_ACTIONS: Dict[LifecycleAction, AuditAction] = {
    LifecycleAction.REMOVE: AuditAction.DEACTIVATED,
    LifecycleAction.DISABLE: AuditAction.DEACTIVATED,
    LifecycleAction.DELETE: AuditAction.DELETED,
    LifecycleAction.ENABLE: AuditAction.REACTIVATED,
}

DEFAULT_REASONS: Dict[LifecycleAction, str] = {
    LifecycleAction.REMOVE: "Removed from scoring model",
    LifecycleAction.DISABLE: "Criterion disabled",
    LifecycleAction.DELETE: "Criterion permanently deleted",
    LifecycleAction.ENABLE: "Criterion re-enabled",
}

# Actions that take a criterion out of the scoring model.
DEACTIVATING: FrozenSet[LifecycleAction] = frozenset({
    LifecycleAction.REMOVE, LifecycleAction.DISABLE, LifecycleAction.DELETE
})

# Actions followed by a whole-portfolio recalculation instead of a scoped one.
FULL_RECALCULATION: FrozenSet[LifecycleAction] = frozenset({
    LifecycleAction.DELETE, LifecycleAction.ENABLE
})


def resolve_transition(
    criterion: PrioritizationCriterion,
    action: LifecycleAction
) -> Tuple[CriterionStatus, bool]:
    """Look up the (status, is_active) a criterion moves to.

    Raises:
        InvalidTransitionError: If the action is not allowed from the current state
    """
    key = (criterion.status, action)
    if key not in TRANSITIONS:
        raise InvalidTransitionError(
            f"Cannot {action.value} criterion {criterion.id}. "
            f"Current status: {criterion.status.value}",
            current_status=criterion.status.value,
        )
    if action == LifecycleAction.REMOVE and not criterion.is_active:
        raise InvalidTransitionError(
            f"Criterion {criterion.id} is already removed from the scoring model.",
            current_status=criterion.status.value,
        )
    new_status = TRANSITIONS[key]
    return new_status, action == LifecycleAction.ENABLE


def check_min_active(snapshot: CriteriaSnapshot, criterion: PrioritizationCriterion) -> None:
    """Reject taking the last criterion out of the scoring model.

    Raises:
        InvariantViolation: If ``criterion`` is the only one left in the model
    """
    active_count = len(snapshot.active())
    if criterion.in_model and active_count <= 1:
        raise InvariantViolation(
            "min_one_active_criterion",
            "Cannot remove the last remaining active criterion. "
            "At least one criterion must remain active.",
            active_count=active_count,
            total_count=len(snapshot.criteria),
        )


class CriteriaLifecycleManager:
    """Owns mutations of the criteria configuration.

    Mutations are serialized per manager; the store's generation check catches
    writers outside this process.
    """

    def __init__(
        self,
        criteria_store: CriteriaStore,
        score_store: ScoreStore,
        audit_sink: AuditLogSink,
        recalculator: CompositeScoreRecalculator,
        config: Optional[EngineConfig] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.criteria_store = criteria_store
        self.score_store = score_store
        self.audit_sink = audit_sink
        self.recalculator = recalculator
        self.config = config or EngineConfig()
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._lock = asyncio.Lock()
        self._cancel_event = asyncio.Event()

    async def remove_criterion(
        self,
        criterion_id: int,
        scope: RemovalScope = RemovalScope.PORTFOLIO,
        actor: str = "system",
        reason: Optional[str] = None
    ) -> CriteriaManagementResult:
        """Take a criterion out of the scoring model.

        PORTFOLIO scope keeps the status ``active`` and clears ``is_active``;
        GLOBAL scope disables the criterion.
        """
        action = LifecycleAction.REMOVE if scope == RemovalScope.PORTFOLIO else LifecycleAction.DISABLE
        return await self._transition(
            criterion_id, action, actor,
            reason or DEFAULT_REASONS[LifecycleAction.REMOVE], scope
        )

    async def disable_criterion(
        self,
        criterion_id: int,
        actor: str = "system",
        reason: Optional[str] = None
    ) -> CriteriaManagementResult:
        """Disable a criterion, keeping it visible for audit."""
        return await self._transition(
            criterion_id, LifecycleAction.DISABLE, actor,
            reason or DEFAULT_REASONS[LifecycleAction.DISABLE], RemovalScope.GLOBAL
        )

    async def delete_criterion(
        self,
        criterion_id: int,
        actor: str,
        confirmation_token: str,
        reason: Optional[str] = None
    ) -> CriteriaManagementResult:
        """Mark a criterion deleted and drop every score recorded under it.

        Raises:
            ValidationError: If ``confirmation_token`` is not exactly ``DELETE``
        """
        if confirmation_token != DELETE_CONFIRMATION:
            logger.warning("Delete of criterion %s rejected: bad confirmation", criterion_id)
            raise ValidationError(
                f'Deletion requires typing "{DELETE_CONFIRMATION}" to confirm.'
            )
        return await self._transition(
            criterion_id, LifecycleAction.DELETE, actor,
            reason or DEFAULT_REASONS[LifecycleAction.DELETE], RemovalScope.GLOBAL
        )

    async def enable_criterion(
        self,
        criterion_id: int,
        actor: str = "system",
        reason: Optional[str] = None
    ) -> CriteriaManagementResult:
        """Re-enable a disabled criterion."""
        return await self._transition(
            criterion_id, LifecycleAction.ENABLE, actor,
            reason or DEFAULT_REASONS[LifecycleAction.ENABLE], RemovalScope.GLOBAL
        )

    async def normalize(self) -> CriteriaSnapshot:
        """Normalize weights outside any transition.

        Commits only when a weight actually changes, so a second call in a row
        leaves the generation untouched.
        """
        async with self._lock:
            snapshot = self.criteria_store.get_snapshot()
            criteria = normalize_weights(
                snapshot.criteria, self.config.weight_precision, self.config.weight_epsilon
            )
            if list(criteria) == list(snapshot.criteria):
                return snapshot
            return self.criteria_store.commit(snapshot.generation, criteria)

    def cancel_pending_recalculation(self) -> None:
        """Stop scheduling new per-asset recalculations of the running transition."""
        self._cancel_event.set()

    async def _transition(
        self,
        criterion_id: int,
        action: LifecycleAction,
        actor: str,
        reason: str,
        scope: RemovalScope
    ) -> CriteriaManagementResult:
        async with self._lock:
            self._cancel_event.clear()
            try:
                snapshot, criteria, entry, impacted = self._prepare(
                    criterion_id, action, actor, reason, scope
                )
            except AssetRiskError as e:
                logger.warning("Criterion %s %s rejected: %s", criterion_id, action.value, e)
                raise

            self._write_audit(entry)
            committed = self.criteria_store.commit(snapshot.generation, criteria)

            if action == LifecycleAction.DELETE:
                removed = self.score_store.delete_scores_for(criterion_id)
                logger.info("Removed %d score(s) under criterion %d", removed, criterion_id)

            targets: List[int] = list(impacted)
            if action in FULL_RECALCULATION:
                targets.extend(self.score_store.all_scored_assets())

            recalculation = await recalculate_assets(
                targets,
                self.recalculator,
                committed,
                max_concurrency=self.config.recalc_concurrency,
                cancel_event=self._cancel_event,
            )

        logger.info(
            "Criterion %d %s by %s (generation %d, %d asset(s) impacted)",
            criterion_id, action.value, actor, committed.generation, len(impacted)
        )
        return CriteriaManagementResult(
            message=self._message(action, entry, len(impacted)),
            criterion_id=criterion_id,
            impacted_assets=len(impacted),
            normalized_weights=committed.weights(),
            generation=committed.generation,
            recalculation=recalculation,
        )

    def _prepare(
        self,
        criterion_id: int,
        action: LifecycleAction,
        actor: str,
        reason: str,
        scope: RemovalScope
    ) -> Tuple[CriteriaSnapshot, List[PrioritizationCriterion], CriteriaAuditLogEntry, List[int]]:
        """Compute the full change set without writing anything."""
        snapshot = self.criteria_store.get_snapshot()
        criterion = snapshot.get(criterion_id)
        if criterion is None:
            raise CriterionNotFoundError(criterion_id)

        new_status, new_is_active = resolve_transition(criterion, action)
        if action in DEACTIVATING:
            check_min_active(snapshot, criterion)

        now = self._clock()
        updates = {"status": new_status, "is_active": new_is_active}
        if action == LifecycleAction.DELETE:
            updates.update(deleted_by=actor, deleted_at=now)
        updated = criterion.model_copy(update=updates)

        criteria = normalize_weights(
            [updated if c.id == criterion_id else c for c in snapshot.criteria],
            self.config.weight_precision,
            self.config.weight_epsilon,
        )
        check_weights_balanced(criteria, self.config.weight_epsilon)

        impacted = self.score_store.assets_scored_under(criterion_id)
        if impacted and action in DEACTIVATING:
            logger.warning(
                "Criterion %d has scores for %d asset(s). Historical rankings may change.",
                criterion_id, len(impacted)
            )

        current_generation = self.criteria_store.get_snapshot().generation
        if current_generation != snapshot.generation:
            raise ConcurrencyConflict(snapshot.generation, current_generation)

        new_state = next(c for c in criteria if c.id == criterion_id)
        entry = CriteriaAuditLogEntry(
            criterion_id=criterion_id,
            action=AUDIT_ACTIONS[action],
            old_state=CriterionState.of(criterion),
            new_state=CriterionState.of(new_state),
            actor=actor,
            timestamp=now,
            reason=reason,
            impacted_asset_count=len(impacted),
            generation=snapshot.generation + 1,
            details=self._details(action, criterion, scope),
        )
        return snapshot, criteria, entry, impacted

    @staticmethod
    def _details(
        action: LifecycleAction,
        criterion: PrioritizationCriterion,
        scope: RemovalScope
    ):
        if action == LifecycleAction.DELETE:
            return DeletionDetails(criterion_name=criterion.name)
        if action == LifecycleAction.ENABLE:
            return ReactivationDetails(restored_weight=criterion.weight)
        return DeactivationDetails(scope=scope, previous_weight=criterion.weight)

    def _write_audit(self, entry: CriteriaAuditLogEntry) -> None:
        try:
            self.audit_sink.append(entry)
        except Exception as e:
            logger.error(
                "Audit write failed for criterion %d, aborting %s: %s",
                entry.criterion_id, entry.action.value, e
            )
            raise AuditWriteError(
                f"Could not record audit entry for criterion {entry.criterion_id}; "
                f"no changes were applied."
            ) from e

    @staticmethod
    def _message(action: LifecycleAction, entry: CriteriaAuditLogEntry, impacted: int) -> str:
        if action == LifecycleAction.REMOVE:
            return f"Criterion removed from scoring model. {impacted} assets affected."
        if action == LifecycleAction.DISABLE:
            return f"Criterion disabled. {impacted} assets affected."
        if action == LifecycleAction.DELETE:
            return (
                f'Criterion "{entry.details.criterion_name}" permanently deleted. '
                f"{impacted} assets affected."
            )
        return "Criterion enabled successfully."
