"""Risk matrix classification of PoF x CoF."""
import math
from typing import List, NamedTuple

from assetrisk.core.errors import ValidationError
from assetrisk.models.risk import RiskLevel, RiskScore

class RiskBand(NamedTuple):
    """Upper-inclusive score band of the risk matrix."""

    upper: float
    level: RiskLevel
    color: str
    priority: int

# Contiguous, monotonic, covering [1, 25]. Priority 1 is the most urgent.
RISK_BANDS = (
    RiskBand(3, RiskLevel.VERY_LOW, "#22c55e", 5),
    RiskBand(6, RiskLevel.LOW, "#84cc16", 4),
    RiskBand(12, RiskLevel.MEDIUM, "#eab308", 3),
    RiskBand(19, RiskLevel.HIGH, "#f97316", 2),
    RiskBand(25, RiskLevel.CRITICAL, "#ef4444", 1),
)

SCALE_MIN = 1.0
SCALE_MAX = 5.0


def _clamp_scale(value: float, name: str) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"{name} must be a number, got {value!r}") from e
    if not math.isfinite(number):
        raise ValidationError(f"{name} must be finite, got {value!r}")
    return min(SCALE_MAX, max(SCALE_MIN, number))


def band_for(risk_score: float) -> RiskBand:
    """Return the band containing a score already within [1, 25]."""
    for band in RISK_BANDS:
        if risk_score <= band.upper:
            return band
    return RISK_BANDS[-1]


def classify_risk(pof: float, cof: float) -> RiskScore:
    """Classify a PoF/CoF pair into the risk matrix.

    Inputs are clamped to [1, 5] first, so the function is total over any
    finite pair.

    Raises:
        ValidationError: If either input is not a finite number
    """
    pof = _clamp_scale(pof, "pof")
    cof = _clamp_scale(cof, "cof")
    risk_score = pof * cof
    band = band_for(risk_score)
    return RiskScore(
        pof=pof,
        cof=cof,
        risk_score=risk_score,
        risk_level=band.level,
        color=band.color,
        priority=band.priority,
    )


def get_risk_matrix() -> List[List[RiskScore]]:
    """The 5x5 matrix; row 0 is pof=5 and column 0 is cof=5."""
    return [
        [classify_risk(pof, cof) for cof in range(5, 0, -1)]
        for pof in range(5, 0, -1)
    ]
