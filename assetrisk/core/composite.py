"""Composite priority score recalculation."""
import logging
from abc import ABC, abstractmethod

from assetrisk.models.criteria import CriteriaSnapshot
from assetrisk.store.base import ScoreStore

logger = logging.getLogger(__name__)


class CompositeScoreRecalculator(ABC):
    """Callback that recomputes one asset's composite score.

    The lifecycle manager decides when this runs; implementations own how the
    composite is derived and stored.
    """

    @abstractmethod
    async def recalculate(self, asset_id: int, snapshot: CriteriaSnapshot) -> float:
        """Recompute and persist the composite score of ``asset_id``.

        Args:
            asset_id: Asset to recompute
            snapshot: Criteria configuration to score against

        Returns:
            The new composite score
        """


class WeightedCompositeRecalculator(CompositeScoreRecalculator):
    """Composite = sum(weight x score) / 100 over criteria in the model.

    A criterion the asset was never scored under contributes 0.
    """

    def __init__(self, score_store: ScoreStore):
        self.score_store = score_store

    def compute(self, asset_id: int, snapshot: CriteriaSnapshot) -> float:
        """Composite score without persisting it."""
        scores = self.score_store.get_scores(asset_id)
        weighted = sum(
            criterion.weight * scores.get(criterion.id, 0.0)
            for criterion in sorted(snapshot.active(), key=lambda c: c.id)
        )
        return weighted / 100

    async def recalculate(self, asset_id: int, snapshot: CriteriaSnapshot) -> float:
        composite = self.compute(asset_id, snapshot)
        self.score_store.save_composite(asset_id, composite, snapshot.generation)
        logger.debug(
            "Asset %d composite %.4f (generation %d)", asset_id, composite, snapshot.generation
        )
        return composite
