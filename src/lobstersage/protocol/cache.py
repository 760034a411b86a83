"""
lobstersage/protocol/cache.py

Local reputation cache.

Holds per-address activity that has not been (or will never be) committed to
the ledger, so a reputation estimate is available when ledger submission is
skipped, unavailable or unauthorized. Nothing here is persisted: the ledger is
the store, this is only a cache.
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Dict, List, Optional

from .scoring import (
    AccuracyInput,
    ReputationBreakdown,
    calculate_score,
    clamp_usd,
)
from .streak import ActivityAction, ActivityRecord, add_activity, compute_streak, utc_today

logger = logging.getLogger("lobstersage.protocol.cache")


# ============================================================================
# RECORDS
# ============================================================================

@dataclass(frozen=True)
class PredictionResult:
    """Outcome of a resolved prediction."""
    predicted: bool
    actual: bool
    confidence: float = 0.0     # 0-100
    stake_amount_usd: float = 0.0

    @property
    def correct(self) -> bool:
        return self.predicted == self.actual

    def to_dict(self) -> dict:
        return {
            'predicted': self.predicted,
            'actual': self.actual,
            'confidence': self.confidence,
            'stake_amount_usd': self.stake_amount_usd,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PredictionResult":
        return cls(
            predicted=bool(data['predicted']),
            actual=bool(data['actual']),
            confidence=data.get('confidence', 0.0),
            stake_amount_usd=data.get('stake_amount_usd', 0.0),
        )


@dataclass(frozen=True)
class VolumeRecord:
    """A single traded amount."""
    timestamp: float
    amount_usd: float
    prediction_id: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            'timestamp': self.timestamp,
            'amount_usd': self.amount_usd,
            'prediction_id': self.prediction_id,
        }


@dataclass
class LocalStats:
    """Aggregates used to compute a local breakdown."""
    correct: int = 0
    total: int = 0
    volume_usd: float = 0.0
    consecutive_days: int = 0
    yield_usd: float = 0.0


@dataclass
class _AddressCache:
    predictions: List[PredictionResult] = field(default_factory=list)
    volumes: List[VolumeRecord] = field(default_factory=list)
    activities: List[ActivityRecord] = field(default_factory=list)
    yield_usd: float = 0.0


# ============================================================================
# CACHE
# ============================================================================

class LocalLedgerCache:
    """
    Per-address append-only cache of reputation inputs.

    Every record_* method appends and returns the updated local breakdown.
    Callers that share one cache between concurrent tasks must serialize
    access per address (ReputationOrchestrator does this).
    """

    def __init__(self, clock: Optional[Callable[[], float]] = None):
        """
        Initialize the cache.

        Args:
            clock: Unix-time source, defaults to time.time
        """
        self._clock = clock or time.time
        self._entries: Dict[str, _AddressCache] = {}

    def _entry(self, address: str) -> _AddressCache:
        if address not in self._entries:
            self._entries[address] = _AddressCache()
        return self._entries[address]

    def _today(self) -> date:
        return utc_today(self._clock())

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def record_prediction(self, address: str, result: PredictionResult) -> ReputationBreakdown:
        self._entry(address).predictions.append(result)
        return self.calculate_breakdown(address)

    def record_volume(
        self,
        address: str,
        amount_usd: float,
        prediction_id: Optional[str] = None,
    ) -> ReputationBreakdown:
        self._entry(address).volumes.append(VolumeRecord(
            timestamp=self._clock(),
            amount_usd=clamp_usd(amount_usd),
            prediction_id=prediction_id,
        ))
        return self.calculate_breakdown(address)

    def record_activity(
        self,
        address: str,
        action: ActivityAction = ActivityAction.PREDICTION,
    ) -> ReputationBreakdown:
        added = add_activity(self._entry(address).activities, action, now=self._clock())
        if not added:
            logger.debug(f"Activity for {address[:10]}... already recorded today")
        return self.calculate_breakdown(address)

    def record_yield(self, address: str, profit_usd: float) -> ReputationBreakdown:
        entry = self._entry(address)
        entry.yield_usd += clamp_usd(profit_usd)
        return self.calculate_breakdown(address)

    def record_burn(self, address: str) -> ReputationBreakdown:
        """A burn only counts as activity for the day."""
        return self.record_activity(address, ActivityAction.BURN)

    def clear(self, address: str) -> None:
        """Drop every cached collection and the yield total for an address."""
        self._entries.pop(address, None)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_stats(self, address: str) -> LocalStats:
        entry = self._entries.get(address)
        if entry is None:
            return LocalStats()
        return LocalStats(
            correct=sum(1 for p in entry.predictions if p.correct),
            total=len(entry.predictions),
            volume_usd=sum(v.amount_usd for v in entry.volumes),
            consecutive_days=compute_streak(entry.activities, today=self._today()),
            yield_usd=entry.yield_usd,
        )

    def calculate_breakdown(self, address: str) -> ReputationBreakdown:
        stats = self.get_stats(address)
        return calculate_score(
            AccuracyInput(correct=stats.correct, total=stats.total),
            stats.volume_usd,
            stats.consecutive_days,
            stats.yield_usd,
        )

    def get_predictions(self, address: str) -> List[PredictionResult]:
        entry = self._entries.get(address)
        return list(entry.predictions) if entry else []

    def get_volumes(self, address: str) -> List[VolumeRecord]:
        entry = self._entries.get(address)
        return list(entry.volumes) if entry else []

    def get_activities(self, address: str) -> List[ActivityRecord]:
        entry = self._entries.get(address)
        return list(entry.activities) if entry else []

    def get_yield(self, address: str) -> float:
        entry = self._entries.get(address)
        return entry.yield_usd if entry else 0.0

    def addresses(self) -> List[str]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, address: str) -> bool:
        return address in self._entries
