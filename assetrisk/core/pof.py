"""Probability of Failure (PoF) from age, condition, maintenance, environment and utilization."""
import logging
import math
from typing import Dict, List, Mapping, Optional, Tuple

from assetrisk.models.factors import (
    DefectSeverity,
    MaintenanceFrequency,
    OperatingEnvironment,
    PofInputs,
)
from assetrisk.models.risk import ContributingFactors, PofResult

logger = logging.getLogger(__name__)

# Weibull (beta, eta) per equipment type.
# beta > 1: wear-out, beta = 1: random failures, beta < 1: infant mortality.
EQUIPMENT_FAILURE_CURVES: Dict[str, Tuple[float, float]] = {
    "boiler": (2.5, 25.0),
    "hvac": (2.0, 20.0),
    "chiller": (2.2, 22.0),
    "ice plant": (2.3, 20.0),
    "electrical": (1.8, 30.0),
    "plumbing": (1.5, 35.0),
    "roof": (2.5, 25.0),
    "elevator": (2.0, 25.0),
    "fire protection": (1.2, 30.0),
    "default": (2.0, 25.0),
}

FACTOR_WEIGHTS = {
    "age": 0.30,
    "condition": 0.30,
    "maintenance": 0.20,
    "environment": 0.10,
    "utilization": 0.10,
}

DEFAULT_POF = 3.0

SEVERITY_ADJUSTMENT = {
    DefectSeverity.NONE: -0.5,
    DefectSeverity.MINOR: 0.0,
    DefectSeverity.MODERATE: 0.5,
    DefectSeverity.MAJOR: 1.0,
    DefectSeverity.CRITICAL: 1.5,
}

MAINTENANCE_FACTORS = {
    MaintenanceFrequency.PREDICTIVE: 1.0,
    MaintenanceFrequency.PREVENTIVE: 1.5,
    MaintenanceFrequency.SCHEDULED: 2.5,
    MaintenanceFrequency.REACTIVE: 4.0,
    MaintenanceFrequency.NONE: 5.0,
}

DEFERRED_MAINTENANCE_PENALTY = 0.3

ENVIRONMENT_FACTORS = {
    OperatingEnvironment.CONTROLLED: 1.0,
    OperatingEnvironment.NORMAL: 2.0,
    OperatingEnvironment.HARSH: 3.5,
    OperatingEnvironment.EXTREME: 5.0,
}


def _clamp(value: float, low: float = 1.0, high: float = 5.0) -> float:
    return min(high, max(low, value))


def _fmt(value: float) -> str:
    """Locale-independent shortest form of a number (12 not 12.0)."""
    return f"{value:g}"


def resolve_curve(
    equipment_type: Optional[str],
    curves: Optional[Mapping[str, Tuple[float, float]]] = None
) -> Tuple[float, float]:
    """Look up (beta, eta) for an equipment type, falling back to ``default``."""
    table = dict(EQUIPMENT_FAILURE_CURVES)
    if curves:
        table.update({k.lower(): v for k, v in curves.items()})
    key = (equipment_type or "default").strip().lower()
    if key not in table:
        logger.debug("No failure curve for '%s', using default", equipment_type)
        key = "default"
    return table[key]


def weibull_failure_probability(age: float, beta: float, eta: float) -> float:
    """Cumulative failure probability F(t) = 1 - exp(-(t/eta)^beta)."""
    if age <= 0:
        return 0.0
    try:
        return 1.0 - math.exp(-((age / eta) ** beta))
    except OverflowError:
        return 1.0


def age_factor(
    age: float,
    expected_useful_life: float,
    equipment_type: Optional[str] = None,
    curves: Optional[Mapping[str, Tuple[float, float]]] = None
) -> Tuple[float, float]:
    """Map age onto the 1-5 scale through the equipment's Weibull curve.

    Returns:
        Tuple of (factor, remaining_life_percent)
    """
    beta, eta = resolve_curve(equipment_type, curves)
    remaining = max(0.0, (expected_useful_life - age) / expected_useful_life * 100)
    probability = weibull_failure_probability(age, beta, eta)

    if probability < 0.10:
        factor = 1.0
    elif probability < 0.30:
        factor = 2.0
    elif probability < 0.60:
        factor = 3.0
    elif probability < 0.85:
        factor = 4.0
    else:
        factor = 5.0
    return factor, remaining


def condition_factor(
    condition_index: Optional[float],
    defect_severity: Optional[DefectSeverity]
) -> float:
    """Condition index (higher is better) shifted by defect severity."""
    factor = 3.0
    if condition_index is not None:
        if condition_index >= 90:
            factor = 1.0
        elif condition_index >= 75:
            factor = 1.5
        elif condition_index >= 60:
            factor = 2.5
        elif condition_index >= 40:
            factor = 3.5
        elif condition_index >= 20:
            factor = 4.5
        else:
            factor = 5.0

    if defect_severity is not None:
        factor += SEVERITY_ADJUSTMENT[defect_severity]
    return _clamp(factor)


def maintenance_factor(
    maintenance_frequency: Optional[MaintenanceFrequency],
    deferred_maintenance_years: Optional[float]
) -> float:
    """Maintenance regime plus a penalty per year of deferred work."""
    factor = 3.0
    if maintenance_frequency is not None:
        factor = MAINTENANCE_FACTORS[maintenance_frequency]
    if deferred_maintenance_years:
        factor += deferred_maintenance_years * DEFERRED_MAINTENANCE_PENALTY
    return _clamp(factor)


def environment_factor(operating_environment: Optional[OperatingEnvironment]) -> float:
    if operating_environment is None:
        return 2.0
    return ENVIRONMENT_FACTORS[operating_environment]


def utilization_factor(utilization_rate: Optional[float]) -> float:
    if utilization_rate is None:
        return 2.0
    if utilization_rate <= 40:
        return 1.0
    if utilization_rate <= 70:
        return 2.0
    if utilization_rate <= 90:
        return 3.0
    if utilization_rate <= 100:
        return 4.0
    return 5.0


def get_pof_level(pof: float) -> str:
    """Human-readable PoF label."""
    if pof < 2.0:
        return "Very Low"
    if pof < 3.0:
        return "Low"
    if pof < 4.0:
        return "Medium"
    if pof < 4.5:
        return "High"
    return "Very High"


def compute_pof(
    inputs: PofInputs,
    curves: Optional[Mapping[str, Tuple[float, float]]] = None
) -> PofResult:
    """Compute the probability of failure on a 1-5 scale.

    Only sub-factors backed by at least one input take part in the weighted
    average, and the weights are renormalized over those present. With no
    evidence at all the result is exactly 3.0.

    Args:
        inputs: Raw reliability inputs for one component
        curves: Optional Weibull (beta, eta) overrides keyed by equipment type

    Returns:
        PofResult with score, sub-factors, remaining life and justification
    """
    factors = ContributingFactors()
    remaining_life = 100.0

    if inputs.age is not None and inputs.expected_useful_life is not None:
        factors.age_factor, remaining_life = age_factor(
            inputs.age, inputs.expected_useful_life, inputs.equipment_type, curves
        )

    if inputs.condition_index is not None or inputs.defect_severity is not None:
        factors.condition_factor = condition_factor(
            inputs.condition_index, inputs.defect_severity
        )

    if (inputs.maintenance_frequency is not None
            or inputs.deferred_maintenance_years is not None):
        factors.maintenance_factor = maintenance_factor(
            inputs.maintenance_frequency, inputs.deferred_maintenance_years
        )

    if inputs.operating_environment is not None:
        factors.environment_factor = environment_factor(inputs.operating_environment)

    if inputs.utilization_rate is not None:
        factors.utilization_factor = utilization_factor(inputs.utilization_rate)

    present = [
        (factors.age_factor, FACTOR_WEIGHTS["age"]),
        (factors.condition_factor, FACTOR_WEIGHTS["condition"]),
        (factors.maintenance_factor, FACTOR_WEIGHTS["maintenance"]),
        (factors.environment_factor, FACTOR_WEIGHTS["environment"]),
        (factors.utilization_factor, FACTOR_WEIGHTS["utilization"]),
    ]
    present = [(value, weight) for value, weight in present if value is not None]

    if present:
        total_weight = sum(weight for _, weight in present)
        pof = sum(value * weight for value, weight in present) / total_weight
    else:
        pof = DEFAULT_POF

    pof = _clamp(round(pof, 2))
    logger.debug("PoF %.2f from %d factor(s)", pof, len(present))

    return PofResult(
        pof=pof,
        contributing_factors=factors,
        remaining_life_percent=round(remaining_life, 2),
        justification=_justify(inputs, factors, pof),
    )


def _justify(inputs: PofInputs, factors: ContributingFactors, pof: float) -> str:
    parts: List[str] = [f"Overall PoF: {get_pof_level(pof)} ({pof:.2f})"]

    if factors.age_factor is not None:
        life_used = inputs.age / inputs.expected_useful_life * 100
        parts.append(
            f"Age: {_fmt(inputs.age)}/{_fmt(inputs.expected_useful_life)} years "
            f"({life_used:.0f}% of expected life)"
        )

    if factors.condition_factor is not None:
        if inputs.condition_index is not None:
            parts.append(f"Condition Index: {_fmt(inputs.condition_index)}/100")
        if inputs.defect_severity is not None:
            parts.append(f"Defect Severity: {inputs.defect_severity.value}")

    if factors.maintenance_factor is not None:
        if inputs.maintenance_frequency is not None:
            parts.append(f"Maintenance: {inputs.maintenance_frequency.value}")
        if inputs.deferred_maintenance_years:
            parts.append(
                f"Deferred Maintenance: {_fmt(inputs.deferred_maintenance_years)} years"
            )

    if factors.environment_factor is not None:
        parts.append(f"Environment: {inputs.operating_environment.value}")

    if factors.utilization_factor is not None:
        parts.append(f"Utilization: {_fmt(inputs.utilization_rate)}%")

    return ". ".join(parts)
