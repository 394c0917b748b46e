"""Tests for portfolio aggregation."""
from assetrisk.core.portfolio import aggregate_assessments, aggregate_portfolio
from assetrisk.core.risk import classify_risk
from assetrisk.models.risk import AssessmentStatus, RiskLevel


def test_empty_portfolio():
    """Test that no scores give all-zero metrics."""
    metrics = aggregate_portfolio([])

    assert metrics.total_assessments == 0
    assert metrics.average_risk_score == 0.0
    assert metrics.highest_risk_score == 0.0
    assert all(count == 0 for count in metrics.counts.values())
    assert set(metrics.counts) == set(RiskLevel)


def test_mixed_portfolio():
    """Test counts, distribution, average and maximum."""
    metrics = aggregate_portfolio([
        classify_risk(1, 1),
        classify_risk(5, 5),
        classify_risk(3, 3),
    ])

    assert metrics.total_assessments == 3
    assert metrics.average_risk_score == 11.67
    assert metrics.highest_risk_score == 25
    assert metrics.counts[RiskLevel.VERY_LOW] == 1
    assert metrics.counts[RiskLevel.MEDIUM] == 1
    assert metrics.counts[RiskLevel.CRITICAL] == 1
    assert metrics.counts[RiskLevel.HIGH] == 0
    assert metrics.distribution[RiskLevel.CRITICAL] == 33.33
    assert metrics.distribution[RiskLevel.LOW] == 0.0


def test_accepts_generator():
    """Test the aggregator consumes a one-shot iterable."""
    metrics = aggregate_portfolio(classify_risk(p, 2) for p in range(1, 6))

    assert metrics.total_assessments == 5
    assert metrics.highest_risk_score == 10


def test_only_approved_by_default(assessment_factory):
    """Test that drafts and archived assessments are skipped by default."""
    assessments = [
        assessment_factory(5, 5, AssessmentStatus.DRAFT),
        assessment_factory(2, 2, AssessmentStatus.APPROVED),
        assessment_factory(4, 4, AssessmentStatus.ARCHIVED),
    ]

    metrics = aggregate_assessments(assessments)

    assert metrics.total_assessments == 1
    assert metrics.highest_risk_score == 4


def test_all_statuses(assessment_factory):
    """Test passing no status filter aggregates everything."""
    assessments = [
        assessment_factory(5, 5, AssessmentStatus.DRAFT),
        assessment_factory(2, 2, AssessmentStatus.APPROVED),
    ]

    metrics = aggregate_assessments(assessments, status=None)

    assert metrics.total_assessments == 2
    assert metrics.highest_risk_score == 25
