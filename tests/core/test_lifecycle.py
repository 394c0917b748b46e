"""Tests for the criteria lifecycle manager."""
import asyncio
import logging
from unittest.mock import MagicMock

import pytest

from assetrisk.config.settings import EngineConfig
from assetrisk.core.errors import (
    AuditWriteError,
    ConcurrencyConflict,
    CriterionNotFoundError,
    InvalidTransitionError,
    InvariantViolation,
    PartialBatchFailure,
    ValidationError,
)
from assetrisk.core.lifecycle import CriteriaLifecycleManager, resolve_transition
from assetrisk.models.criteria import (
    AuditAction,
    CriteriaSnapshot,
    CriterionStatus,
    DeactivationDetails,
    DeletionDetails,
    LifecycleAction,
    ReactivationDetails,
    RemovalScope,
)
from assetrisk.store.base import AuditLogSink, CriteriaStore


@pytest.fixture
def scenario_store(store_factory):
    """Two active criteria, one disabled, one removed, four scored assets."""
    return store_factory(
        weights={1: 70.0, 2: 30.0},
        scores={
            201: {1: 5, 2: 4},
            202: {1: 3},
            203: {2: 5},
            204: {3: 4},
        },
        inactive={
            3: (20.0, CriterionStatus.DISABLED, False),
            4: (10.0, CriterionStatus.ACTIVE, False),
        },
    )


@pytest.mark.asyncio
async def test_disable_rescales_and_recalculates_impacted(
    scenario_store, manager_factory, recalculator_factory, fixed_time
):
    """Test disabling a criterion end to end."""
    recalculator = recalculator_factory(scenario_store)
    manager = manager_factory(scenario_store, recalculator=recalculator)

    result = await manager.disable_criterion(1, actor="admin")

    assert result.success
    assert result.message == "Criterion disabled. 2 assets affected."
    assert result.impacted_assets == 2
    assert result.generation == 1
    assert result.normalized_weights == {2: 100.0}
    assert recalculator.calls == [(201, 1), (202, 1)]
    assert scenario_store.composites == {201: (4.0, 1), 202: (0.0, 1)}

    criterion = scenario_store.get_snapshot().get(1)
    assert criterion.status == CriterionStatus.DISABLED
    assert not criterion.is_active
    assert criterion.weight == 70.0

    entry = scenario_store.audit_log[0]
    assert entry.action == AuditAction.DEACTIVATED
    assert entry.actor == "admin"
    assert entry.timestamp == fixed_time
    assert entry.generation == 1
    assert entry.impacted_asset_count == 2
    assert entry.old_state.status == CriterionStatus.ACTIVE
    assert entry.new_state.status == CriterionStatus.DISABLED
    assert entry.details == DeactivationDetails(scope=RemovalScope.GLOBAL, previous_weight=70.0)


@pytest.mark.asyncio
async def test_remove_keeps_status(store_factory, manager_factory):
    """Test portfolio removal only clears is_active."""
    store = store_factory(weights={1: 60.0, 2: 40.0}, scores={7: {2: 3}})
    manager = manager_factory(store)

    result = await manager.remove_criterion(2, actor="admin", reason="Not relevant")

    criterion = store.get_snapshot().get(2)
    assert criterion.status == CriterionStatus.ACTIVE
    assert not criterion.is_active
    assert result.message == "Criterion removed from scoring model. 1 assets affected."
    assert result.normalized_weights == {1: 100.0}
    assert store.audit_log[0].reason == "Not relevant"
    assert store.audit_log[0].details.scope == RemovalScope.PORTFOLIO


@pytest.mark.asyncio
async def test_global_remove_disables(store_factory, manager_factory):
    """Test global removal behaves as disable."""
    store = store_factory()
    manager = manager_factory(store)

    await manager.remove_criterion(2, scope=RemovalScope.GLOBAL, actor="admin")

    assert store.get_snapshot().get(2).status == CriterionStatus.DISABLED
    assert store.audit_log[0].details.scope == RemovalScope.GLOBAL


@pytest.mark.asyncio
async def test_remove_twice_rejected(scenario_store, manager_factory):
    """Test removing an already removed criterion is rejected."""
    manager = manager_factory(scenario_store)

    with pytest.raises(InvalidTransitionError, match="already removed"):
        await manager.remove_criterion(4, actor="admin")

    assert scenario_store.get_snapshot().generation == 0


@pytest.mark.asyncio
async def test_delete_drops_scores_and_recalculates_all(
    scenario_store, manager_factory, recalculator_factory, fixed_time
):
    """Test deleting a disabled criterion."""
    recalculator = recalculator_factory(scenario_store)
    manager = manager_factory(scenario_store, recalculator=recalculator)

    result = await manager.delete_criterion(3, actor="admin", confirmation_token="DELETE")

    criterion = scenario_store.get_snapshot().get(3)
    assert criterion.status == CriterionStatus.DELETED
    assert criterion.deleted_by == "admin"
    assert criterion.deleted_at == fixed_time
    assert result.message == 'Criterion "Criterion 3" permanently deleted. 1 assets affected.'
    assert scenario_store.assets_scored_under(3) == []
    assert [asset_id for asset_id, _ in recalculator.calls] == [201, 202, 203, 204]

    entry = scenario_store.audit_log[0]
    assert entry.action == AuditAction.DELETED
    assert entry.details == DeletionDetails(criterion_name="Criterion 3")


@pytest.mark.asyncio
@pytest.mark.parametrize("token", ["delete", "", "DELETE "])
async def test_delete_requires_exact_confirmation(scenario_store, manager_factory, token):
    """Test deletion without the exact token changes nothing."""
    manager = manager_factory(scenario_store)

    with pytest.raises(ValidationError, match='typing "DELETE"'):
        await manager.delete_criterion(1, actor="admin", confirmation_token=token)

    assert scenario_store.get_snapshot().generation == 0
    assert scenario_store.audit_log == []
    assert scenario_store.assets_scored_under(1) == [201, 202]


@pytest.mark.asyncio
async def test_enable_restores_weight(scenario_store, manager_factory, recalculator_factory):
    """Test re-enabling brings the stored weight back into the model."""
    recalculator = recalculator_factory(scenario_store)
    manager = manager_factory(scenario_store, recalculator=recalculator)

    await manager.disable_criterion(1, actor="admin")
    result = await manager.enable_criterion(1, actor="admin")

    assert result.message == "Criterion enabled successfully."
    assert result.generation == 2
    assert result.normalized_weights[1] == pytest.approx(41.176471)
    assert result.normalized_weights[2] == pytest.approx(58.823529)
    assert sum(result.normalized_weights.values()) == pytest.approx(100.0, abs=1e-4)
    assert sorted(result.recalculation.recalculated) == [201, 202, 203, 204]

    entry = scenario_store.audit_log[-1]
    assert entry.action == AuditAction.REACTIVATED
    assert entry.details == ReactivationDetails(restored_weight=70.0)


@pytest.mark.asyncio
@pytest.mark.parametrize("criterion_id", [1, 4])
async def test_enable_from_active_rejected(scenario_store, manager_factory, criterion_id):
    """Test only disabled criteria can be enabled."""
    manager = manager_factory(scenario_store)

    with pytest.raises(InvalidTransitionError, match="Current status: active"):
        await manager.enable_criterion(criterion_id, actor="admin")


@pytest.mark.asyncio
async def test_deleted_is_terminal(scenario_store, manager_factory):
    """Test a deleted criterion cannot be enabled or deleted again."""
    manager = manager_factory(scenario_store)
    await manager.delete_criterion(3, actor="admin", confirmation_token="DELETE")

    with pytest.raises(InvalidTransitionError):
        await manager.enable_criterion(3, actor="admin")
    with pytest.raises(InvalidTransitionError):
        await manager.delete_criterion(3, actor="admin", confirmation_token="DELETE")


@pytest.mark.asyncio
async def test_unknown_criterion(scenario_store, manager_factory):
    """Test an unknown id is reported as not found."""
    manager = manager_factory(scenario_store)

    with pytest.raises(CriterionNotFoundError):
        await manager.disable_criterion(99, actor="admin")


@pytest.mark.asyncio
@pytest.mark.parametrize("action", ["remove", "disable", "delete"])
async def test_last_active_criterion_protected(store_factory, manager_factory, action):
    """Test the last criterion in the model can never be taken out."""
    store = store_factory(weights={1: 60.0, 2: 40.0}, scores={5: {1: 2}})
    manager = manager_factory(store)
    await manager.remove_criterion(2, actor="admin")
    before = store.to_dict()

    with pytest.raises(InvariantViolation) as exc_info:
        if action == "remove":
            await manager.remove_criterion(1, actor="admin")
        elif action == "disable":
            await manager.disable_criterion(1, actor="admin")
        else:
            await manager.delete_criterion(1, actor="admin", confirmation_token="DELETE")

    assert exc_info.value.rule == "min_one_active_criterion"
    assert exc_info.value.active_count == 1
    assert exc_info.value.total_count == 2
    assert store.to_dict() == before


@pytest.mark.asyncio
async def test_audit_written_before_scores_removed(scenario_store, manager_factory):
    """Test the audit entry is appended before anything else is written."""
    seen = []
    sink = MagicMock(spec=AuditLogSink)
    sink.append.side_effect = lambda entry: seen.append(
        (scenario_store.get_snapshot().generation, scenario_store.assets_scored_under(3))
    )
    manager = manager_factory(scenario_store, audit_sink=sink)

    await manager.delete_criterion(3, actor="admin", confirmation_token="DELETE")

    assert seen == [(0, [204])]
    sink.append.assert_called_once()


@pytest.mark.asyncio
async def test_audit_failure_aborts(scenario_store, manager_factory, recalculator_factory):
    """Test a failing audit sink leaves every store untouched."""
    sink = MagicMock(spec=AuditLogSink)
    sink.append.side_effect = OSError("disk full")
    recalculator = recalculator_factory(scenario_store)
    manager = manager_factory(scenario_store, recalculator=recalculator, audit_sink=sink)
    before = scenario_store.to_dict()

    with pytest.raises(AuditWriteError) as exc_info:
        await manager.delete_criterion(3, actor="admin", confirmation_token="DELETE")

    assert isinstance(exc_info.value.__cause__, OSError)
    assert scenario_store.to_dict() == before
    assert recalculator.calls == []


@pytest.mark.asyncio
async def test_stale_snapshot_conflict(scenario_store, recalculator_factory):
    """Test a concurrent writer between read and write is detected."""
    snapshot = scenario_store.get_snapshot()
    criteria_store = MagicMock(spec=CriteriaStore)
    criteria_store.get_snapshot.side_effect = [
        snapshot,
        CriteriaSnapshot(generation=1, criteria=snapshot.criteria),
    ]
    manager = CriteriaLifecycleManager(
        criteria_store=criteria_store,
        score_store=scenario_store,
        audit_sink=scenario_store,
        recalculator=recalculator_factory(scenario_store),
    )

    with pytest.raises(ConcurrencyConflict) as exc_info:
        await manager.disable_criterion(1, actor="admin")

    assert exc_info.value.expected_generation == 0
    assert exc_info.value.actual_generation == 1
    criteria_store.commit.assert_not_called()
    assert scenario_store.audit_log == []


@pytest.mark.asyncio
async def test_concurrent_transitions_are_serialized(store_factory, manager_factory):
    """Test racing removals never leave the model empty."""
    store = store_factory(weights={1: 50.0, 2: 30.0, 3: 20.0})
    manager = manager_factory(store)

    results = await asyncio.gather(
        manager.disable_criterion(1, actor="a"),
        manager.disable_criterion(2, actor="b"),
        manager.disable_criterion(3, actor="c"),
        return_exceptions=True,
    )

    failures = [r for r in results if isinstance(r, Exception)]
    assert len(failures) == 1
    assert isinstance(failures[0], InvariantViolation)
    snapshot = store.get_snapshot()
    assert snapshot.generation == 2
    assert len(snapshot.active()) == 1
    assert snapshot.active()[0].weight == 100.0
    assert [e.generation for e in store.audit_log] == [1, 2]


@pytest.mark.asyncio
async def test_partial_recalculation_failure(scenario_store, manager_factory, recalculator_factory):
    """Test one failing asset does not roll back the transition."""
    recalculator = recalculator_factory(scenario_store, fail_on={202})
    manager = manager_factory(scenario_store, recalculator=recalculator)

    result = await manager.disable_criterion(1, actor="admin")

    assert result.success
    assert not result.recalculation.succeeded
    assert [f.asset_id for f in result.recalculation.failures] == [202]
    assert list(result.recalculation.recalculated) == [201]
    assert scenario_store.get_snapshot().get(1).status == CriterionStatus.DISABLED
    with pytest.raises(PartialBatchFailure, match="202"):
        result.recalculation.raise_for_failures()


@pytest.mark.asyncio
async def test_normalize_is_idempotent(store_factory, manager_factory):
    """Test normalize commits once and then leaves the generation alone."""
    store = store_factory(weights={1: 30.0, 2: 30.0})
    manager = manager_factory(store)

    first = await manager.normalize()
    second = await manager.normalize()

    assert first.weights() == {1: 50.0, 2: 50.0}
    assert first.generation == 1
    assert second.generation == 1


@pytest.mark.asyncio
async def test_normalize_uneven_weights_commits_once(store_factory, manager_factory):
    """Test weights that do not divide evenly settle after one normalize."""
    store = store_factory(weights={1: 33.1, 2: 41.7, 3: 12.9})
    manager = manager_factory(store)

    first = await manager.normalize()
    second = await manager.normalize()

    assert second.generation == first.generation == 1
    assert second.weights() == first.weights()
    assert sum(first.weights().values()) == pytest.approx(100.0, abs=1e-9)


@pytest.mark.asyncio
async def test_disable_at_two_decimal_precision(store_factory, manager_factory):
    """Test rescaled weights at two decimals still pass the balance check."""
    store = store_factory(weights={1: 40.0, 2: 30.0, 3: 20.0, 4: 10.0})
    manager = manager_factory(store, config=EngineConfig(weight_precision=2))

    result = await manager.disable_criterion(4, actor="admin")

    assert result.normalized_weights == {1: 44.45, 2: 33.33, 3: 22.22}
    assert store.get_snapshot().generation == 1


@pytest.mark.asyncio
async def test_disable_with_scored_assets_warns(scenario_store, manager_factory, caplog):
    """Test deactivating a criterion with scored assets logs a ranking warning."""
    manager = manager_factory(scenario_store)

    with caplog.at_level(logging.WARNING, logger="assetrisk.core.lifecycle"):
        await manager.disable_criterion(1, actor="admin")

    assert "Criterion 1 has scores for 2 asset(s). Historical rankings may change." in caplog.text


@pytest.mark.asyncio
async def test_enable_does_not_warn(scenario_store, manager_factory, caplog):
    """Test reactivation does not log the ranking warning."""
    manager = manager_factory(scenario_store)

    with caplog.at_level(logging.WARNING, logger="assetrisk.core.lifecycle"):
        await manager.enable_criterion(3, actor="admin")

    assert "Historical rankings may change" not in caplog.text


@pytest.mark.asyncio
async def test_config_limits_concurrency(scenario_store, manager_factory):
    """Test the configured concurrency and precision are applied."""
    manager = manager_factory(
        scenario_store, config=EngineConfig(recalc_concurrency=1, weight_precision=2)
    )

    await manager.disable_criterion(1, actor="admin")
    result = await manager.enable_criterion(1, actor="admin")

    assert result.normalized_weights == {1: 41.18, 2: 58.82}


def test_resolve_transition_table(criterion_factory):
    """Test the allowed transitions."""
    active = criterion_factory(1)
    disabled = criterion_factory(2, status=CriterionStatus.DISABLED, is_active=False)

    assert resolve_transition(active, LifecycleAction.REMOVE) == (CriterionStatus.ACTIVE, False)
    assert resolve_transition(active, LifecycleAction.DISABLE) == (CriterionStatus.DISABLED, False)
    assert resolve_transition(disabled, LifecycleAction.ENABLE) == (CriterionStatus.ACTIVE, True)
    assert resolve_transition(disabled, LifecycleAction.DELETE) == (CriterionStatus.DELETED, False)
    with pytest.raises(InvalidTransitionError):
        resolve_transition(disabled, LifecycleAction.DISABLE)
