"""In-memory implementation of every storage port."""
import logging
import threading
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

from assetrisk.core.errors import ConcurrencyConflict
from assetrisk.models.criteria import (
    CriteriaAuditLogEntry,
    CriteriaAuditStats,
    CriteriaSnapshot,
    PrioritizationCriterion,
)
from assetrisk.models.factors import CofInputs, PofInputs
from assetrisk.store.base import (
    AuditLogReader,
    AuditLogSink,
    CriteriaStore,
    FactorInputSource,
    ScoreStore,
)

logger = logging.getLogger(__name__)


class InMemoryStore(FactorInputSource, CriteriaStore, ScoreStore, AuditLogSink, AuditLogReader):
    """Process-local store backing the CLI and tests.

    All access goes through one lock, so ``commit`` is a true compare-and-swap
    even when several threads share the instance.
    """

    def __init__(
        self,
        criteria: Optional[Sequence[PrioritizationCriterion]] = None,
        scores: Optional[Dict[int, Dict[int, float]]] = None,
        factor_inputs: Optional[Dict[int, Tuple[PofInputs, CofInputs]]] = None,
        generation: int = 0
    ):
        self._lock = threading.Lock()
        self._snapshot = CriteriaSnapshot(generation=generation, criteria=tuple(criteria or ()))
        self._scores: Dict[int, Dict[int, float]] = {
            asset_id: dict(by_criterion) for asset_id, by_criterion in (scores or {}).items()
        }
        self._factor_inputs = dict(factor_inputs or {})
        self.composites: Dict[int, Tuple[float, int]] = {}
        self.audit_log: List[CriteriaAuditLogEntry] = []

    # FactorInputSource

    def get_factor_inputs(self, asset_id: int) -> Tuple[PofInputs, CofInputs]:
        with self._lock:
            if asset_id not in self._factor_inputs:
                raise KeyError(f"No factor inputs recorded for asset {asset_id}")
            return self._factor_inputs[asset_id]

    def set_factor_inputs(self, asset_id: int, pof: PofInputs, cof: CofInputs) -> None:
        with self._lock:
            self._factor_inputs[asset_id] = (pof, cof)

    # CriteriaStore

    def get_snapshot(self) -> CriteriaSnapshot:
        with self._lock:
            return self._snapshot

    def commit(
        self,
        expected_generation: int,
        criteria: Sequence[PrioritizationCriterion]
    ) -> CriteriaSnapshot:
        with self._lock:
            if self._snapshot.generation != expected_generation:
                raise ConcurrencyConflict(expected_generation, self._snapshot.generation)
            self._snapshot = CriteriaSnapshot(
                generation=expected_generation + 1, criteria=tuple(criteria)
            )
            logger.debug("Committed criteria generation %d", self._snapshot.generation)
            return self._snapshot

    # ScoreStore

    def set_score(self, asset_id: int, criterion_id: int, score: float) -> None:
        with self._lock:
            self._scores.setdefault(asset_id, {})[criterion_id] = score

    def assets_scored_under(self, criterion_id: int) -> List[int]:
        with self._lock:
            return sorted(a for a, s in self._scores.items() if criterion_id in s)

    def all_scored_assets(self) -> List[int]:
        with self._lock:
            return sorted(a for a, s in self._scores.items() if s)

    def get_scores(self, asset_id: int) -> Dict[int, float]:
        with self._lock:
            return dict(self._scores.get(asset_id, {}))

    def delete_scores_for(self, criterion_id: int) -> int:
        removed = 0
        with self._lock:
            for by_criterion in self._scores.values():
                if by_criterion.pop(criterion_id, None) is not None:
                    removed += 1
        return removed

    def save_composite(self, asset_id: int, composite: float, generation: int) -> None:
        with self._lock:
            self.composites[asset_id] = (composite, generation)

    # AuditLogSink

    def append(self, entry: CriteriaAuditLogEntry) -> None:
        with self._lock:
            self.audit_log.append(entry)

    # AuditLogReader

    def _newest_first(self) -> List[CriteriaAuditLogEntry]:
        # Stable sort over the reversed log keeps later appends first on equal timestamps.
        return sorted(reversed(self.audit_log), key=lambda e: e.timestamp, reverse=True)

    def history_for(self, criterion_id: int) -> List[CriteriaAuditLogEntry]:
        with self._lock:
            return [e for e in self._newest_first() if e.criterion_id == criterion_id]

    def recent(self, limit: int = 100) -> List[CriteriaAuditLogEntry]:
        with self._lock:
            return self._newest_first()[:max(0, limit)]

    def stats(self, since: Optional[datetime] = None) -> CriteriaAuditStats:
        with self._lock:
            result = CriteriaAuditStats(total_changes=len(self.audit_log))
            for entry in self.audit_log:
                result.counts[entry.action] += 1
                if since is not None and entry.timestamp >= since:
                    result.recent_changes += 1
            return result

    # Serialization

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InMemoryStore":
        """Build a store from the JSON-compatible state produced by ``to_dict``."""
        criteria = [PrioritizationCriterion(**c) for c in data.get("criteria", [])]
        scores = {
            int(asset_id): {int(cid): float(v) for cid, v in by_criterion.items()}
            for asset_id, by_criterion in data.get("scores", {}).items()
        }
        factor_inputs = {
            int(asset_id): (
                PofInputs(**record.get("pof", {})),
                CofInputs(**record.get("cof", {})),
            )
            for asset_id, record in data.get("factor_inputs", {}).items()
        }
        store = cls(
            criteria=criteria,
            scores=scores,
            factor_inputs=factor_inputs,
            generation=int(data.get("generation", 0)),
        )
        store.composites = {
            int(asset_id): (float(record["value"]), int(record["generation"]))
            for asset_id, record in data.get("composites", {}).items()
        }
        store.audit_log = [
            CriteriaAuditLogEntry(**entry) for entry in data.get("audit_log", [])
        ]
        return store

    def to_dict(self) -> Dict[str, Any]:
        """JSON-compatible dump of the whole store."""
        with self._lock:
            return {
                "generation": self._snapshot.generation,
                "criteria": [c.model_dump(mode="json") for c in self._snapshot.criteria],
                "scores": {
                    str(asset_id): {str(cid): v for cid, v in by_criterion.items()}
                    for asset_id, by_criterion in self._scores.items()
                },
                "factor_inputs": {
                    str(asset_id): {
                        "pof": pof.model_dump(mode="json", exclude_none=True),
                        "cof": cof.model_dump(mode="json", exclude_none=True),
                    }
                    for asset_id, (pof, cof) in self._factor_inputs.items()
                },
                "composites": {
                    str(asset_id): {"value": value, "generation": generation}
                    for asset_id, (value, generation) in self.composites.items()
                },
                "audit_log": [e.model_dump(mode="json") for e in self.audit_log],
            }
