"""Consequence of Failure (CoF) across safety, operational, financial,
environmental and reputational dimensions."""
import logging
from typing import List, Optional

from assetrisk.models.factors import (
    CofInputs,
    FinancialConsequence,
    OperationalConsequence,
)
from assetrisk.models.risk import CofResult, ConsequenceDimensions, CriticalityLevel

logger = logging.getLogger(__name__)

# Fixed, never renormalized: an undeclared dimension means negligible impact.
DIMENSION_WEIGHTS = {
    "safety": 0.40,
    "operational": 0.20,
    "financial": 0.20,
    "environmental": 0.10,
    "reputational": 0.10,
}

CASCADE_PER_SYSTEM = 0.3
CASCADE_CAP = 1.0

JUSTIFICATION_THRESHOLD = 3.0


def _clamp(value: float, low: float = 1.0, high: float = 5.0) -> float:
    return min(high, max(low, value))


def _pass_through(impact: Optional[float]) -> float:
    if impact is None:
        return 1.0
    return _clamp(impact)


def operational_consequence(record: OperationalConsequence) -> float:
    """Declared impact, raised by downtime and by cascading system dependencies."""
    consequence = record.impact or 1.0

    downtime = record.downtime_days
    if downtime is not None:
        if downtime == 0:
            consequence = min(consequence, 1.0)
        elif downtime <= 1:
            consequence = max(consequence, 2.0)
        elif downtime <= 7:
            consequence = max(consequence, 3.0)
        elif downtime <= 30:
            consequence = max(consequence, 4.0)
        else:
            consequence = max(consequence, 5.0)

    if record.affected_systems:
        cascade = min(CASCADE_CAP, len(record.affected_systems) * CASCADE_PER_SYSTEM)
        consequence += cascade

    return _clamp(consequence)


def financial_consequence(record: FinancialConsequence) -> float:
    """Declared impact, raised to the floor implied by the total dollar exposure."""
    consequence = record.impact or 1.0
    total = record.total_cost

    if total > 0:
        if total < 10_000:
            floor = 1.0
        elif total < 50_000:
            floor = 2.0
        elif total < 250_000:
            floor = 3.0
        elif total < 1_000_000:
            floor = 4.0
        else:
            floor = 5.0
        consequence = max(consequence, floor)

    return _clamp(consequence)


def get_cof_label(cof: float) -> str:
    """Human-readable CoF label."""
    if cof < 2.0:
        return "Negligible"
    if cof < 3.0:
        return "Minor"
    if cof < 4.0:
        return "Moderate"
    if cof < 4.5:
        return "Major"
    return "Catastrophic"


def criticality_for(safety: float, cof: float) -> CriticalityLevel:
    """Criticality where a high safety dimension can never be masked by a low blend."""
    if safety >= 4.5 or cof >= 4.5:
        return CriticalityLevel.CRITICAL
    if safety >= 3.5 or cof >= 3.5:
        return CriticalityLevel.HIGH
    if cof >= 2.5:
        return CriticalityLevel.MEDIUM
    return CriticalityLevel.LOW


def compute_cof(inputs: CofInputs) -> CofResult:
    """Compute the consequence of failure on a 1-5 scale.

    Args:
        inputs: Consequence sub-records for one component

    Returns:
        CofResult with blended score, dimension scores, criticality and justification
    """
    dimensions = ConsequenceDimensions(
        safety=_pass_through(inputs.safety.impact),
        operational=operational_consequence(inputs.operational),
        financial=financial_consequence(inputs.financial),
        environmental=_pass_through(inputs.environmental.impact),
        reputational=_pass_through(inputs.reputational.impact),
    )

    blended = sum(
        getattr(dimensions, name) * weight for name, weight in DIMENSION_WEIGHTS.items()
    )
    cof = round(blended, 2)
    criticality = criticality_for(dimensions.safety, cof)
    logger.debug("CoF %.2f (%s)", cof, criticality.value)

    return CofResult(
        cof=cof,
        dimensions=dimensions,
        justification=_justify(inputs, dimensions, cof),
        criticality_level=criticality,
    )


def _justify(inputs: CofInputs, dimensions: ConsequenceDimensions, cof: float) -> str:
    parts: List[str] = [f"Overall CoF: {get_cof_label(cof)} ({cof:.2f})"]

    if dimensions.safety >= JUSTIFICATION_THRESHOLD:
        parts.append(f"Safety: {get_cof_label(dimensions.safety)}")
        if inputs.safety.notes:
            parts.append(inputs.safety.notes)

    if dimensions.operational >= JUSTIFICATION_THRESHOLD:
        text = f"Operational: {get_cof_label(dimensions.operational)}"
        if inputs.operational.downtime_days:
            text += f" ({inputs.operational.downtime_days:g} days downtime)"
        if inputs.operational.affected_systems:
            text += f" (affects {len(inputs.operational.affected_systems)} systems)"
        parts.append(text)

    if dimensions.financial >= JUSTIFICATION_THRESHOLD:
        text = f"Financial: {get_cof_label(dimensions.financial)}"
        total = inputs.financial.total_cost
        if total > 0:
            text += f" (${total / 1000:.0f}K total impact)"
        parts.append(text)

    if dimensions.environmental >= JUSTIFICATION_THRESHOLD:
        parts.append(f"Environmental: {get_cof_label(dimensions.environmental)}")
        if inputs.environmental.notes:
            parts.append(inputs.environmental.notes)

    if dimensions.reputational >= JUSTIFICATION_THRESHOLD:
        parts.append(f"Reputational: {get_cof_label(dimensions.reputational)}")
        if inputs.reputational.notes:
            parts.append(inputs.reputational.notes)

    return ". ".join(parts)
