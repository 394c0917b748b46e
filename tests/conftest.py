"""Common test fixtures."""
# pylint: disable=redefined-outer-name
from datetime import datetime, timezone

import pytest

from assetrisk.core.composite import CompositeScoreRecalculator, WeightedCompositeRecalculator
from assetrisk.core.lifecycle import CriteriaLifecycleManager
from assetrisk.models.criteria import CriterionStatus, PrioritizationCriterion
from assetrisk.models.risk import AssessmentStatus, RiskAssessment
from assetrisk.core.risk import classify_risk
from assetrisk.store.memory import InMemoryStore

FIXED_TIME = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

@pytest.fixture
def criterion_factory():
    """Factory to create PrioritizationCriterion instances for testing."""
    def _make_criterion(
        criterion_id=1,
        name=None,
        weight=50.0,
        is_active=True,
        status=CriterionStatus.ACTIVE
    ):
        return PrioritizationCriterion(
            id=criterion_id,
            name=name or f"Criterion {criterion_id}",
            weight=weight,
            is_active=is_active,
            status=status
        )
    return _make_criterion

@pytest.fixture
def store_factory(criterion_factory):
    """Factory to create an InMemoryStore from (id, weight) pairs and scores."""
    def _make_store(weights=None, scores=None, inactive=None):
        weights = weights if weights is not None else {1: 60.0, 2: 40.0}
        criteria = [criterion_factory(cid, weight=w) for cid, w in weights.items()]
        for cid, (weight, status, is_active) in (inactive or {}).items():
            criteria.append(criterion_factory(cid, weight=weight, status=status, is_active=is_active))
        return InMemoryStore(criteria=criteria, scores=scores or {})
    return _make_store

class RecordingRecalculator(CompositeScoreRecalculator):
    """Counts recalculations per asset and optionally fails some."""

    def __init__(self, store, fail_on=None):
        self.inner = WeightedCompositeRecalculator(store)
        self.calls = []
        self.fail_on = set(fail_on or [])

    async def recalculate(self, asset_id, snapshot):
        self.calls.append((asset_id, snapshot.generation))
        if asset_id in self.fail_on:
            raise RuntimeError(f"bad inputs for asset {asset_id}")
        return await self.inner.recalculate(asset_id, snapshot)

@pytest.fixture
def recalculator_factory():
    """Factory to create a RecordingRecalculator bound to a store."""
    def _make_recalculator(store, fail_on=None):
        return RecordingRecalculator(store, fail_on=fail_on)
    return _make_recalculator

@pytest.fixture
def manager_factory():
    """Factory to create a CriteriaLifecycleManager wired to one store."""
    def _make_manager(store, recalculator=None, audit_sink=None, config=None):
        recalculator = recalculator or RecordingRecalculator(store)
        return CriteriaLifecycleManager(
            criteria_store=store,
            score_store=store,
            audit_sink=audit_sink or store,
            recalculator=recalculator,
            config=config,
            clock=lambda: FIXED_TIME
        )
    return _make_manager

@pytest.fixture
def assessment_factory():
    """Factory to create RiskAssessment instances for testing."""
    def _make_assessment(pof=3.0, cof=3.0, status=AssessmentStatus.APPROVED, asset_id=1):
        score = classify_risk(pof, cof)
        return RiskAssessment(
            asset_id=asset_id,
            pof=score.pof,
            cof=score.cof,
            risk_score=score.risk_score,
            risk_level=score.risk_level,
            justification="test",
            status=status
        )
    return _make_assessment

@pytest.fixture
def fixed_time():
    """Clock value injected into lifecycle managers built by manager_factory."""
    return FIXED_TIME
