"""Component risk assessment and review status transitions."""
import logging
from datetime import datetime, timezone
from typing import Dict, FrozenSet, Mapping, Optional, Tuple

from assetrisk.core.cof import compute_cof
from assetrisk.core.errors import InvalidTransitionError
from assetrisk.core.pof import compute_pof
from assetrisk.core.risk import classify_risk
from assetrisk.models.factors import CofInputs, PofInputs
from assetrisk.models.risk import AssessmentStatus, RiskAssessment
from assetrisk.store.base import FactorInputSource

logger = logging.getLogger(__name__)

# Nothing leaves ARCHIVED.
ASSESSMENT_TRANSITIONS: Dict[AssessmentStatus, FrozenSet[AssessmentStatus]] = {
    AssessmentStatus.DRAFT: frozenset({AssessmentStatus.APPROVED, AssessmentStatus.ARCHIVED}),
    AssessmentStatus.APPROVED: frozenset({AssessmentStatus.ARCHIVED}),
    AssessmentStatus.ARCHIVED: frozenset(),
}


def assess_component(
    pof_inputs: PofInputs,
    cof_inputs: CofInputs,
    asset_id: Optional[int] = None,
    assessed_by: Optional[str] = None,
    curves: Optional[Mapping[str, Tuple[float, float]]] = None
) -> RiskAssessment:
    """Run PoF, CoF and the risk matrix for one component.

    Args:
        pof_inputs: Reliability inputs
        cof_inputs: Consequence inputs
        asset_id: Optional id of the assessed asset
        assessed_by: Optional actor recorded on the assessment
        curves: Optional Weibull curve overrides

    Returns:
        A new RiskAssessment in DRAFT status
    """
    pof_result = compute_pof(pof_inputs, curves)
    cof_result = compute_cof(cof_inputs)
    score = classify_risk(pof_result.pof, cof_result.cof)

    justification = (
        f"PoF {score.pof:.2f} x CoF {score.cof:.2f} = {score.risk_score:.2f} "
        f"({score.risk_level.value})"
    )
    logger.debug("Asset %s assessed: %s", asset_id, justification)

    return RiskAssessment(
        asset_id=asset_id,
        pof=score.pof,
        cof=score.cof,
        risk_score=score.risk_score,
        risk_level=score.risk_level,
        criticality_level=cof_result.criticality_level,
        remaining_life_percent=pof_result.remaining_life_percent,
        justification=justification,
        pof_justification=pof_result.justification,
        cof_justification=cof_result.justification,
        status=AssessmentStatus.DRAFT,
        assessed_by=assessed_by,
        created_at=datetime.now(timezone.utc),
    )


def assess_asset(
    asset_id: int,
    source: FactorInputSource,
    assessed_by: Optional[str] = None,
    curves: Optional[Mapping[str, Tuple[float, float]]] = None
) -> RiskAssessment:
    """Read an asset's factor inputs from ``source`` and assess it."""
    pof_inputs, cof_inputs = source.get_factor_inputs(asset_id)
    return assess_component(
        pof_inputs, cof_inputs, asset_id=asset_id, assessed_by=assessed_by, curves=curves
    )


def transition_assessment(
    assessment: RiskAssessment,
    target: AssessmentStatus,
    actor: str
) -> RiskAssessment:
    """Move an assessment along draft -> approved -> archived.

    Returns a new record; the original is left untouched.

    Raises:
        InvalidTransitionError: If the move is not allowed from the current status
    """
    allowed = ASSESSMENT_TRANSITIONS[assessment.status]
    if target not in allowed:
        raise InvalidTransitionError(
            f"Cannot move assessment from {assessment.status.value} to {target.value}.",
            current_status=assessment.status.value,
        )
    logger.info(
        "Assessment for asset %s moved %s -> %s by %s",
        assessment.asset_id, assessment.status.value, target.value, actor
    )
    return assessment.model_copy(update={"status": target, "status_changed_by": actor})
