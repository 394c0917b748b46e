"""Abstract storage ports consumed by the scoring and lifecycle core."""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple

from assetrisk.models.criteria import (
    CriteriaAuditLogEntry,
    CriteriaAuditStats,
    CriteriaSnapshot,
    PrioritizationCriterion,
)
from assetrisk.models.factors import CofInputs, PofInputs


class FactorInputSource(ABC):
    """Key-value read access to per-asset factor inputs."""

    @abstractmethod
    def get_factor_inputs(self, asset_id: int) -> Tuple[PofInputs, CofInputs]:
        """Fetch the reliability and consequence inputs for one asset.

        Args:
            asset_id: Asset identifier

        Returns:
            Tuple of (PofInputs, CofInputs)

        Raises:
            KeyError: If the asset has no recorded inputs
        """


class CriteriaStore(ABC):
    """Versioned store of prioritization criteria.

    Implementations must make ``commit`` a compare-and-swap on the snapshot
    generation so that two writers can never both apply a rescale computed
    from the same pre-mutation state.
    """

    @abstractmethod
    def get_snapshot(self) -> CriteriaSnapshot:
        """Return the current configuration snapshot."""

    @abstractmethod
    def commit(
        self,
        expected_generation: int,
        criteria: Sequence[PrioritizationCriterion]
    ) -> CriteriaSnapshot:
        """Replace all criteria if the store is still at ``expected_generation``.

        Args:
            expected_generation: Generation the caller read before computing changes
            criteria: Complete new set of criteria

        Returns:
            The committed snapshot with generation ``expected_generation + 1``

        Raises:
            ConcurrencyConflict: If another writer committed in between
        """


class ScoreStore(ABC):
    """Per-asset, per-criterion scores and the composite scores derived from them."""

    @abstractmethod
    def assets_scored_under(self, criterion_id: int) -> List[int]:
        """Distinct asset ids holding a score under ``criterion_id``."""

    @abstractmethod
    def all_scored_assets(self) -> List[int]:
        """Distinct asset ids holding at least one criterion score."""

    @abstractmethod
    def get_scores(self, asset_id: int) -> Dict[int, float]:
        """Criterion id -> score for one asset. Empty dict if none."""

    @abstractmethod
    def delete_scores_for(self, criterion_id: int) -> int:
        """Remove every score recorded under ``criterion_id``.

        Returns:
            Number of score rows removed
        """

    @abstractmethod
    def save_composite(self, asset_id: int, composite: float, generation: int) -> None:
        """Persist a composite score computed from snapshot ``generation``."""


class AuditLogSink(ABC):
    """Append-only destination for criteria audit entries."""

    @abstractmethod
    def append(self, entry: CriteriaAuditLogEntry) -> None:
        """Write one entry. Entries are never mutated or removed afterwards.

        Raises:
            Exception: Any failure; callers treat it as fatal to the transition
        """


class AuditLogReader(ABC):
    """Read access to the criteria audit trail, newest entries first."""

    @abstractmethod
    def history_for(self, criterion_id: int) -> List[CriteriaAuditLogEntry]:
        """Every entry recorded for one criterion, newest first."""

    @abstractmethod
    def recent(self, limit: int = 100) -> List[CriteriaAuditLogEntry]:
        """The ``limit`` most recent entries across all criteria."""

    @abstractmethod
    def stats(self, since: Optional[datetime] = None) -> CriteriaAuditStats:
        """Totals and per-action counts over the whole log.

        Args:
            since: Entries at or after this time count as recent changes.
                ``None`` leaves ``recent_changes`` at 0.
        """
