"""
lobstersage/protocol/reputation.py

Reputation orchestration: local cache plus write-through to the ledger.

Every update is applied to the local cache first. It is then written through
to the ledger when submission is enabled, a ledger connection exists and the
recorder is authorized; otherwise the caller gets a breakdown computed from
the cache. Once a ledger write lands, the ledger is authoritative and the
breakdown returned is read back from it.

Updates for the same address are serialized behind a per-address trio.Lock
held across the cache append, the ledger write and the read-back. Different
addresses proceed concurrently. No timeout is imposed here; wrap calls in
trio.fail_after() if a hung ledger write must not block the caller.

Usage:
    from lobstersage.protocol.reputation import ReputationOrchestrator

    orchestrator = ReputationOrchestrator(ledger)
    await orchestrator.initialize()

    result = await orchestrator.update_volume("0xabc...", 250.0)
    if result.breakdown is not None:
        print(result.breakdown.total_score, result.status)
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Optional, Tuple, Union, TYPE_CHECKING

import trio

from ..blockchain.ledger import (
    LedgerError,
    LedgerNotInitializedError,
    LedgerReputation,
    ReputationLedger,
    TierConstantsMismatchError,
    fixed_to_usd,
    usd_to_fixed,
)
from ..config import ReputationConfig
from .cache import LocalLedgerCache, PredictionResult, VolumeRecord
from .rank import LeaderboardEntry, RankService
from .scoring import (
    AccuracyInput,
    ReputationBreakdown,
    VOLUME_TIERS_USD,
    YIELD_TIERS_USD,
    calculate_accuracy_percentage,
    clamp_usd,
    round_half_up,
)
from .streak import ActivityAction, ActivityRecord
from .tiers import Tier, get_tier

if TYPE_CHECKING:
    from ..metrics import ReputationMetrics

logger = logging.getLogger("lobstersage.protocol.reputation")


# ============================================================================
# UPDATE RESULTS
# ============================================================================

class UpdateStatus(Enum):
    """How an update was resolved."""
    OK = "ok"                            # Written to ledger, breakdown read back
    LOCAL_ONLY = "local_only"            # Caller disabled submission
    NOT_INITIALIZED = "not_initialized"  # No ledger connection
    UNAUTHORIZED = "unauthorized"        # Recorder may not write
    LEDGER_ERROR = "ledger_error"        # Ledger write or read-back failed


@dataclass
class UpdateResult:
    """
    Outcome of an update call.

    breakdown is None only for LEDGER_ERROR. For the local statuses it is
    the estimate computed from the local cache.
    """
    status: UpdateStatus
    breakdown: Optional[ReputationBreakdown] = None
    reason: str = ""

    @property
    def ok(self) -> bool:
        return self.status == UpdateStatus.OK

    @property
    def is_local(self) -> bool:
        return self.status in (
            UpdateStatus.LOCAL_ONLY,
            UpdateStatus.NOT_INITIALIZED,
            UpdateStatus.UNAUTHORIZED,
        )

    def to_dict(self) -> dict:
        return {
            'status': self.status.value,
            'breakdown': self.breakdown.to_dict() if self.breakdown else None,
            'reason': self.reason,
        }


# ============================================================================
# HELPERS
# ============================================================================

MIN_CONFIDENCE = 0
MAX_CONFIDENCE = 100


def clamp_confidence(confidence: float) -> int:
    """Round and clamp a confidence value to 0-100."""
    try:
        value = round_half_up(float(confidence))
    except (TypeError, ValueError, OverflowError):
        return MIN_CONFIDENCE
    return min(MAX_CONFIDENCE, max(MIN_CONFIDENCE, value))


def breakdown_from_ledger(record: LedgerReputation) -> ReputationBreakdown:
    """Convert the ledger's raw struct into a breakdown (USD as floats)."""
    return ReputationBreakdown(
        total_score=record.total_score,
        accuracy_points=record.accuracy_points,
        volume_points=record.volume_points,
        consistency_points=record.consistency_points,
        yield_points=record.yield_points,
        accuracy_percentage=calculate_accuracy_percentage(AccuracyInput(
            correct=record.predictions_correct,
            total=record.predictions_made,
        )),
        predictions_made=record.predictions_made,
        predictions_correct=record.predictions_correct,
        consecutive_days=record.consecutive_days,
        total_volume_usd=fixed_to_usd(record.total_volume),
        total_yield_usd=fixed_to_usd(record.total_yield_profit),
    )


TierChangeCallback = Callable[[str, Tier, Tier], None]

SOURCE_LOCAL = "local"
SOURCE_LEDGER = "ledger"


# ============================================================================
# ORCHESTRATOR
# ============================================================================

class ReputationOrchestrator:
    """
    Composes the local cache, scoring, streaks, tiers and ranking.

    Construct one per process (or per test) and inject the ledger; there is
    no module-level instance. reset() tears the instance back down to its
    unconnected state.
    """

    def __init__(
        self,
        ledger: Optional[ReputationLedger] = None,
        config: Optional[ReputationConfig] = None,
        cache: Optional[LocalLedgerCache] = None,
        metrics: Optional["ReputationMetrics"] = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            ledger: Ledger to write through to (None = local only)
            config: Engine configuration
            cache: Local cache, a fresh one by default
            metrics: Optional metrics collector
        """
        self.config = config or ReputationConfig()
        self._ledger = ledger
        self._cache = cache or LocalLedgerCache()
        self._metrics = metrics
        if metrics is not None and metrics.cache is None:
            metrics.cache = self._cache
        self._rank = RankService(metrics=metrics)

        self._connected = False
        self._authorized = False
        self._locks: Dict[str, trio.Lock] = {}
        self._last_tiers: Dict[Tuple[str, str], Tier] = {}
        self._on_tier_change_callbacks: List[TierChangeCallback] = []

    @classmethod
    def from_config(
        cls,
        config: ReputationConfig,
        metrics: Optional["ReputationMetrics"] = None,
    ) -> "ReputationOrchestrator":
        """Build an orchestrator with a contract ledger when one is configured."""
        ledger = None
        if config.is_contract_configured():
            from ..blockchain.contract import ContractLedger
            ledger = ContractLedger.from_config(config)
        else:
            logger.info("No reputation contract configured, running local-only")
        return cls(ledger=ledger, config=config, metrics=metrics)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        """
        Establish the ledger connection.

        Checks whether the recorder is authorized and, unless disabled,
        that the ledger's tier constants match the engine's.

        Raises:
            LedgerNotInitializedError: No ledger was provided
            LedgerError: The ledger could not be reached
            TierConstantsMismatchError: Ledger tier breakpoints differ
        """
        if self._ledger is None:
            raise LedgerNotInitializedError("No ledger configured")

        recorder = self._ledger.recorder_address
        self._authorized = bool(recorder) and await self._ledger.is_authorized_recorder(recorder)

        if self.config.verify_tier_constants:
            await self.verify_tier_constants()

        self._connected = True
        self._rank.ledger = self._ledger
        logger.info(
            f"Reputation ledger connected (recorder={recorder or 'none'}, "
            f"authorized={self._authorized})"
        )

    async def verify_tier_constants(self) -> None:
        """Compare the ledger's volume/yield tiers with the engine's."""
        if self._ledger is None:
            raise LedgerNotInitializedError()

        expected_volume = [usd_to_fixed(t) for t in VOLUME_TIERS_USD]
        expected_yield = [usd_to_fixed(t) for t in YIELD_TIERS_USD]
        volume_tiers = await self._ledger.get_volume_tiers()
        yield_tiers = await self._ledger.get_yield_tiers()

        mismatches = []
        if list(volume_tiers) != expected_volume:
            mismatches.append(
                f"volume tiers {[fixed_to_usd(t) for t in volume_tiers]} != {list(VOLUME_TIERS_USD)}"
            )
        if list(yield_tiers) != expected_yield:
            mismatches.append(
                f"yield tiers {[fixed_to_usd(t) for t in yield_tiers]} != {list(YIELD_TIERS_USD)}"
            )
        if mismatches:
            raise TierConstantsMismatchError("; ".join(mismatches))

    def reset(self) -> None:
        """Disconnect and drop all cached state, idle locks and callbacks."""
        self._connected = False
        self._authorized = False
        self._rank.ledger = None
        self._cache = LocalLedgerCache()
        if self._metrics is not None:
            self._metrics.cache = self._cache
        # Locks still held by in-flight updates stay so later updates queue behind them
        self._locks = {key: lock for key, lock in self._locks.items() if lock.locked()}
        self._last_tiers.clear()
        self._on_tier_change_callbacks.clear()

    @property
    def is_connected(self) -> bool:
        return self._connected and self._ledger is not None

    def is_recorder(self) -> bool:
        """Whether this instance may write to the ledger."""
        return self._authorized

    @property
    def cache(self) -> LocalLedgerCache:
        return self._cache

    # ------------------------------------------------------------------
    # Update plumbing
    # ------------------------------------------------------------------

    @staticmethod
    def _key(address: str) -> str:
        return address.lower()

    def _lock_for(self, address: str) -> trio.Lock:
        key = self._key(address)
        if key not in self._locks:
            self._locks[key] = trio.Lock()
        return self._locks[key]

    def _require_ledger(self) -> ReputationLedger:
        if not self.is_connected:
            raise LedgerNotInitializedError()
        return self._ledger

    def _local_status(self, submit_to_ledger: Optional[bool]) -> Optional[UpdateResult]:
        submit = self.config.submit_to_ledger if submit_to_ledger is None else submit_to_ledger
        if not submit:
            return UpdateResult(UpdateStatus.LOCAL_ONLY, reason="ledger submission disabled")
        if not self.is_connected:
            return UpdateResult(UpdateStatus.NOT_INITIALIZED, reason="no ledger connection")
        if not self._authorized:
            return UpdateResult(UpdateStatus.UNAUTHORIZED, reason="recorder not authorized")
        return None

    async def _update(
        self,
        address: str,
        kind: str,
        apply_local: Callable[[str], ReputationBreakdown],
        write: Callable[[ReputationLedger], Awaitable[None]],
        submit_to_ledger: Optional[bool],
    ) -> UpdateResult:
        async with self._lock_for(address):
            local_breakdown = apply_local(self._key(address))

            result = self._local_status(submit_to_ledger)
            if result is not None:
                logger.debug(f"{kind} for {address[:10]}... kept local: {result.reason}")
                if self._metrics:
                    self._metrics.record_fallback(result.status.value)
                result.breakdown = local_breakdown
                self._check_tier_change(address, local_breakdown, SOURCE_LOCAL)
                return result

            started = time.monotonic()
            try:
                await write(self._ledger)
            except LedgerError as e:
                logger.error(f"Failed to record {kind} on ledger for {address[:10]}...: {e}")
                if self._metrics:
                    self._metrics.record_write_failure(kind)
                return UpdateResult(UpdateStatus.LEDGER_ERROR, reason=str(e))

            if self._metrics:
                self._metrics.record_write(kind, time.monotonic() - started)

            try:
                record = await self._ledger.get_reputation(address)
            except LedgerError as e:
                logger.error(f"Recorded {kind} for {address[:10]}... but read-back failed: {e}")
                if self._metrics:
                    self._metrics.record_read_failure("get reputation")
                return UpdateResult(UpdateStatus.LEDGER_ERROR, reason=f"read-back failed: {e}")

            breakdown = breakdown_from_ledger(record)
            self._check_tier_change(address, breakdown, SOURCE_LEDGER)
            return UpdateResult(UpdateStatus.OK, breakdown)

    def _check_tier_change(self, address: str, breakdown: ReputationBreakdown, source: str) -> None:
        # Local estimates and ledger read-backs are compared only with their own kind
        key = (self._key(address), source)
        new_tier = breakdown.tier
        old_tier = self._last_tiers.get(key)
        self._last_tiers[key] = new_tier
        if old_tier is None or old_tier == new_tier:
            return

        logger.info(f"Tier change: {address[:10]}... {old_tier.value} -> {new_tier.value}")
        for callback in self._on_tier_change_callbacks:
            try:
                callback(address, old_tier, new_tier)
            except Exception as e:
                logger.warning(f"Tier change callback error: {e}")

    def on_tier_change(self, callback: TierChangeCallback) -> None:
        """Register callback for tier changes: callback(address, old_tier, new_tier)."""
        self._on_tier_change_callbacks.append(callback)

    # ------------------------------------------------------------------
    # Updates
    # ------------------------------------------------------------------

    async def update_accuracy(
        self,
        address: str,
        result: PredictionResult,
        submit_to_ledger: Optional[bool] = None,
    ) -> UpdateResult:
        """Record a resolved prediction."""
        confidence = clamp_confidence(result.confidence)

        async def write(ledger: ReputationLedger) -> None:
            # accuracy_score 0: the ledger computes its own accuracy
            await ledger.record_prediction(address, result.correct, confidence, 0)

        return await self._update(
            address,
            "prediction",
            lambda key: self._cache.record_prediction(key, result),
            write,
            submit_to_ledger,
        )

    async def update_volume(
        self,
        address: str,
        amount_usd: float,
        submit_to_ledger: Optional[bool] = None,
        prediction_id: Optional[str] = None,
    ) -> UpdateResult:
        """Record traded volume in USD."""
        amount = clamp_usd(amount_usd)

        async def write(ledger: ReputationLedger) -> None:
            await ledger.record_volume(address, usd_to_fixed(amount))

        return await self._update(
            address,
            "volume",
            lambda key: self._cache.record_volume(key, amount, prediction_id),
            write,
            submit_to_ledger,
        )

    async def update_consistency(
        self,
        address: str,
        action: Union[ActivityAction, str] = ActivityAction.PREDICTION,
        submit_to_ledger: Optional[bool] = None,
    ) -> UpdateResult:
        """Record daily activity (idempotent per UTC day in the cache)."""
        action = ActivityAction(action)

        async def write(ledger: ReputationLedger) -> None:
            await ledger.record_activity(address)

        return await self._update(
            address,
            "activity",
            lambda key: self._cache.record_activity(key, action),
            write,
            submit_to_ledger,
        )

    async def update_yield(
        self,
        address: str,
        profit_usd: float,
        submit_to_ledger: Optional[bool] = None,
    ) -> UpdateResult:
        """Record realized yield/profit in USD."""
        profit = clamp_usd(profit_usd)

        async def write(ledger: ReputationLedger) -> None:
            await ledger.record_yield(address, usd_to_fixed(profit))

        return await self._update(
            address,
            "yield",
            lambda key: self._cache.record_yield(key, profit),
            write,
            submit_to_ledger,
        )

    async def record_burn(
        self,
        address: str,
        submit_to_ledger: Optional[bool] = None,
    ) -> UpdateResult:
        """Record a stake burn (failed prophecy cleanup)."""

        async def write(ledger: ReputationLedger) -> None:
            await ledger.record_burn(address)

        return await self._update(
            address,
            "burn",
            self._cache.record_burn,
            write,
            submit_to_ledger,
        )

    # ------------------------------------------------------------------
    # Ledger queries
    # ------------------------------------------------------------------

    async def get_reputation(self, address: str) -> ReputationBreakdown:
        """
        Full breakdown from the ledger.

        A failed ledger read degrades to an all-zero breakdown
        ("no reputation yet").
        """
        ledger = self._require_ledger()
        try:
            record = await ledger.get_reputation(address)
        except LedgerError as e:
            logger.warning(f"Failed to get reputation for {address[:10]}...: {e}")
            if self._metrics:
                self._metrics.record_read_failure("get reputation")
            return ReputationBreakdown.empty()
        return breakdown_from_ledger(record)

    async def get_score(self, address: str) -> int:
        """Total score from the ledger (0 on read failure)."""
        ledger = self._require_ledger()
        try:
            return await ledger.get_score(address)
        except LedgerError as e:
            logger.warning(f"Failed to get score for {address[:10]}...: {e}")
            if self._metrics:
                self._metrics.record_read_failure("get score")
            return 0

    async def get_accuracy(self, address: str) -> float:
        """Ledger accuracy as a percentage (0 on read failure)."""
        ledger = self._require_ledger()
        try:
            basis_points = await ledger.get_accuracy(address)
        except LedgerError as e:
            logger.warning(f"Failed to get accuracy for {address[:10]}...: {e}")
            if self._metrics:
                self._metrics.record_read_failure("get accuracy")
            return 0.0
        return basis_points / 100

    async def get_rank(self, address: str) -> int:
        """Percentile rank (0-100)."""
        self._require_ledger()
        return await self._rank.get_rank(address)

    async def get_leaderboard_position(self, address: str) -> int:
        """1-based leaderboard position (0 if unranked)."""
        self._require_ledger()
        return await self._rank.get_leaderboard_position(address)

    async def get_leaderboard(self, count: Optional[int] = None) -> List[LeaderboardEntry]:
        """Top entries, best first."""
        self._require_ledger()
        return await self._rank.get_leaderboard(
            self.config.leaderboard_size if count is None else count
        )

    async def is_top_percent(self, address: str, percent: int) -> bool:
        self._require_ledger()
        return await self._rank.is_top_percent(address, percent)

    async def get_total_users(self) -> int:
        self._require_ledger()
        return await self._rank.get_total_users()

    # ------------------------------------------------------------------
    # Local queries
    # ------------------------------------------------------------------

    @staticmethod
    def get_tier(score: float) -> Tier:
        return get_tier(score)

    def get_local_breakdown(self, address: str) -> ReputationBreakdown:
        """Breakdown computed from the local cache only."""
        return self._cache.calculate_breakdown(self._key(address))

    def get_cached_predictions(self, address: str) -> List[PredictionResult]:
        return self._cache.get_predictions(self._key(address))

    def get_cached_volumes(self, address: str) -> List[VolumeRecord]:
        return self._cache.get_volumes(self._key(address))

    def get_cached_activities(self, address: str) -> List[ActivityRecord]:
        return self._cache.get_activities(self._key(address))

    def clear_cache(self, address: str) -> None:
        """Drop all cached data for an address."""
        key = self._key(address)
        self._cache.clear(key)
        for source in (SOURCE_LOCAL, SOURCE_LEDGER):
            self._last_tiers.pop((key, source), None)
        lock = self._locks.get(key)
        if lock is not None and not lock.locked():
            del self._locks[key]
