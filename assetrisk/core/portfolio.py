"""Portfolio-wide aggregation of risk scores."""
import logging
from typing import Iterable, Optional

from assetrisk.models.risk import (
    AssessmentStatus,
    PortfolioMetrics,
    RiskAssessment,
    RiskLevel,
    RiskScore,
)

logger = logging.getLogger(__name__)


def aggregate_portfolio(scores: Iterable[RiskScore]) -> PortfolioMetrics:
    """Reduce risk scores to counts, distribution, average and maximum.

    Single pass. Empty input yields all-zero metrics rather than an error.
    """
    counts = {level: 0 for level in RiskLevel}
    total = 0
    score_sum = 0.0
    highest = 0.0

    for score in scores:
        counts[score.risk_level] += 1
        total += 1
        score_sum += score.risk_score
        highest = max(highest, score.risk_score)

    if total == 0:
        return PortfolioMetrics()

    distribution = {
        level: round(count / total * 100, 2) for level, count in counts.items()
    }
    return PortfolioMetrics(
        total_assessments=total,
        average_risk_score=round(score_sum / total, 2),
        highest_risk_score=highest,
        counts=counts,
        distribution=distribution,
    )


def aggregate_assessments(
    assessments: Iterable[RiskAssessment],
    status: Optional[AssessmentStatus] = AssessmentStatus.APPROVED
) -> PortfolioMetrics:
    """Aggregate stored assessments, keeping only those in ``status``.

    Pass ``status=None`` to include every assessment.
    """
    selected = [a for a in assessments if status is None or a.status == status]
    logger.debug("Aggregating %d assessment(s) with status %s", len(selected), status)
    return aggregate_portfolio(a.to_risk_score() for a in selected)
