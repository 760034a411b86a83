"""
lobstersage/protocol/rank.py

Percentile rank and leaderboard queries.

Comparative ranking always comes from the ledger: only the ledger sees the
full population, so nothing here is recomputed from local data.

Percentile mapping:
    rank 0 (unranked)        -> 0
    total_users 0            -> 100
    otherwise                -> round((total - rank + 1) / total * 100), clamped
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, TYPE_CHECKING

from ..blockchain.ledger import (
    LedgerError,
    LedgerNotInitializedError,
    ReputationLedger,
    is_placeholder_address,
)
from .scoring import round_half_up

if TYPE_CHECKING:
    from ..metrics import ReputationMetrics

logger = logging.getLogger("lobstersage.protocol.rank")

DEFAULT_LEADERBOARD_SIZE = 100


@dataclass
class LeaderboardEntry:
    """A ranked address on the leaderboard."""
    address: str
    score: int
    rank: int  # 1-based

    def to_dict(self) -> Dict[str, Any]:
        return {
            'address': self.address,
            'score': self.score,
            'rank': self.rank,
        }


def percentile_from_rank(rank: int, total_users: int) -> int:
    """
    Convert a 1-based rank into a 0-100 percentile (100 = best).

    Args:
        rank: 1-based rank, 0 when unranked
        total_users: Size of the ranked population

    Returns:
        Percentile in [0, 100]
    """
    if rank <= 0:
        return 0
    if total_users <= 0:
        return 100
    percentile = round_half_up((total_users - rank + 1) / total_users * 100)
    return min(100, max(0, percentile))


class RankService:
    """
    Rank queries against the reputation ledger.

    Every query raises LedgerNotInitializedError when no ledger is attached,
    so callers never mistake a missing connection for an unranked address.
    Ledger call failures are logged and mapped to a neutral default.
    """

    def __init__(
        self,
        ledger: Optional[ReputationLedger] = None,
        metrics: Optional["ReputationMetrics"] = None,
    ):
        self.ledger = ledger
        self._metrics = metrics

    def _require_ledger(self) -> ReputationLedger:
        if self.ledger is None:
            raise LedgerNotInitializedError()
        return self.ledger

    def _read_failed(self, operation: str, error: LedgerError) -> None:
        logger.warning(f"Failed to {operation}: {error}")
        if self._metrics:
            self._metrics.record_read_failure(operation)

    async def get_rank(self, address: str) -> int:
        """Percentile rank for an address (0-100, 100 = top)."""
        ledger = self._require_ledger()
        try:
            rank = await ledger.get_rank(address)
            if rank == 0:
                return 0
            total = await ledger.total_users()
        except LedgerError as e:
            self._read_failed("get rank", e)
            return 0
        return percentile_from_rank(rank, total)

    async def get_leaderboard_position(self, address: str) -> int:
        """Raw 1-based leaderboard position (0 if unranked)."""
        ledger = self._require_ledger()
        try:
            rank = await ledger.get_rank(address)
        except LedgerError as e:
            self._read_failed("get leaderboard position", e)
            return 0
        return max(0, int(rank))

    async def get_leaderboard(self, count: int = DEFAULT_LEADERBOARD_SIZE) -> List[LeaderboardEntry]:
        """Top `count` entries, best first, without placeholder slots."""
        ledger = self._require_ledger()
        if count <= 0:
            return []
        try:
            addresses, scores = await ledger.get_leaderboard(count)
        except LedgerError as e:
            self._read_failed("get leaderboard", e)
            return []

        entries = [
            LeaderboardEntry(address=addr, score=int(score), rank=idx + 1)
            for idx, (addr, score) in enumerate(zip(addresses, scores))
        ]
        return [e for e in entries if not is_placeholder_address(e.address)][:count]

    async def is_top_percent(self, address: str, percent: int) -> bool:
        """Whether the ledger places an address in the top `percent`."""
        ledger = self._require_ledger()
        try:
            return await ledger.is_top_percent(address, percent)
        except LedgerError as e:
            self._read_failed("check top percent", e)
            return False

    async def get_total_users(self) -> int:
        """Number of addresses with reputation on the ledger."""
        ledger = self._require_ledger()
        try:
            return await ledger.total_users()
        except LedgerError as e:
            self._read_failed("get total users", e)
            return 0
