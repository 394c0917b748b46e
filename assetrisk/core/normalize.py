"""Weight normalization for criteria in the scoring model."""
import logging
import math
from typing import Dict, List, Sequence

from assetrisk.core.errors import InvariantViolation
from assetrisk.models.criteria import PrioritizationCriterion

logger = logging.getLogger(__name__)

TARGET_TOTAL = 100.0
DEFAULT_PRECISION = 6
DEFAULT_EPSILON = 1e-4


def normalize_weights(
    criteria: Sequence[PrioritizationCriterion],
    precision: int = DEFAULT_PRECISION,
    epsilon: float = DEFAULT_EPSILON
) -> List[PrioritizationCriterion]:
    """Rescale weights of criteria in the model so they sum to 100.

    Negative weights count as 0. If every weight is 0 the total is split
    equally. Criteria outside the model keep their stored weight so it can be
    restored when they are re-enabled. Rounded weights still add up to exactly
    100 at ``precision``, and a set already within ``epsilon`` of 100 is left
    alone, so running this twice changes nothing the second time.

    Args:
        criteria: Every criterion, in any state
        precision: Decimal places weights are stored with
        epsilon: Tolerance under which a balanced set is not rescaled

    Returns:
        New list of criteria in the same order
    """
    in_model = [c for c in criteria if c.in_model]
    if not in_model:
        return list(criteria)

    clamped = {c.id: max(0.0, c.weight) for c in in_model}
    total = sum(clamped.values())
    has_negative = any(c.weight < 0 for c in in_model)

    if not has_negative and abs(total - TARGET_TOTAL) <= epsilon:
        return list(criteria)

    if total == 0:
        shares = {cid: TARGET_TOTAL / len(in_model) for cid in clamped}
        logger.debug("All weights zero, splitting equally across %d criteria", len(in_model))
    else:
        shares = {cid: weight * TARGET_TOTAL / total for cid, weight in clamped.items()}
    new_weights = _apportion(shares, precision)

    return [
        c.model_copy(update={"weight": new_weights[c.id]}) if c.id in new_weights else c
        for c in criteria
    ]


def _apportion(shares: Dict[int, float], precision: int) -> Dict[int, float]:
    """Round shares of 100 so they sum to exactly 100 at ``precision``.

    Largest remainder method; ties go to the criterion listed first.
    """
    scale = 10 ** precision
    raw = {cid: share * scale for cid, share in shares.items()}
    units = {cid: math.floor(value) for cid, value in raw.items()}
    remainder = max(0, round(TARGET_TOTAL * scale) - sum(units.values()))
    by_fraction = sorted(raw, key=lambda cid: raw[cid] - units[cid], reverse=True)
    for cid in by_fraction[:remainder]:
        units[cid] += 1
    return {cid: round(units[cid] / scale, precision) for cid in units}


def check_weights_balanced(
    criteria: Sequence[PrioritizationCriterion],
    epsilon: float = DEFAULT_EPSILON
) -> None:
    """Verify weights in the model sum to 100.

    Raises:
        InvariantViolation: If the sum is off by more than ``epsilon``
    """
    in_model = [c for c in criteria if c.in_model]
    if not in_model:
        return
    total = sum(c.weight for c in in_model)
    if abs(total - TARGET_TOTAL) > epsilon:
        raise InvariantViolation(
            "weights_sum_to_100",
            f"Active criteria weights sum to {total:.6f} instead of {TARGET_TOTAL:g}",
            active_count=len(in_model),
            total_count=len(criteria),
        )
