"""Best-effort batch recalculation of composite scores."""
import asyncio
import logging
from typing import Iterable, List, Optional

from assetrisk.core.composite import CompositeScoreRecalculator
from assetrisk.models.criteria import (
    BatchRecalculationResult,
    CriteriaSnapshot,
    RecalculationFailure,
)

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 8


async def recalculate_assets(
    asset_ids: Iterable[int],
    recalculator: CompositeScoreRecalculator,
    snapshot: CriteriaSnapshot,
    max_concurrency: int = DEFAULT_CONCURRENCY,
    cancel_event: Optional[asyncio.Event] = None
) -> BatchRecalculationResult:
    """Recompute composite scores for many assets against one snapshot.

    Each asset runs at most once, at most ``max_concurrency`` at a time. A
    failing asset is recorded and logged but never aborts the others or rolls
    them back. Once ``cancel_event`` is set no new asset is started; the ones
    already running finish.

    Args:
        asset_ids: Assets to recompute (duplicates are ignored)
        recalculator: Callback doing the per-asset work
        snapshot: Configuration every asset is scored against
        max_concurrency: Upper bound on simultaneous recalculations
        cancel_event: Optional event that stops scheduling new work

    Returns:
        BatchRecalculationResult with successes, failures and skipped assets
    """
    ordered: List[int] = sorted(set(asset_ids))
    result = BatchRecalculationResult(snapshot_generation=snapshot.generation)
    if not ordered:
        return result

    semaphore = asyncio.Semaphore(max(1, max_concurrency))

    async def _run_one(asset_id: int) -> None:
        async with semaphore:
            if cancel_event is not None and cancel_event.is_set():
                result.skipped.append(asset_id)
                return
            try:
                result.recalculated[asset_id] = await recalculator.recalculate(
                    asset_id, snapshot
                )
            except Exception as e:  # pylint: disable=broad-except
                logger.warning("Recalculation failed for asset %d: %s", asset_id, e)
                result.failures.append(RecalculationFailure(asset_id=asset_id, error=str(e)))

    await asyncio.gather(*(_run_one(asset_id) for asset_id in ordered))

    result.recalculated = dict(sorted(result.recalculated.items()))
    result.skipped.sort()
    result.failures.sort(key=lambda f: f.asset_id)
    logger.info(
        "Recalculated %d asset(s) at generation %d: %d failed, %d skipped",
        len(result.recalculated), snapshot.generation,
        len(result.failures), len(result.skipped)
    )
    return result
