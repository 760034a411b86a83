"""
lobstersage/blockchain/ledger.py

Ledger-agnostic interface to the authoritative reputation store.

Architecture:
    ReputationLedger (abstract)
    └── ContractLedger (Reputation.sol via web3)

The ledger owns the durable reputation state and the full ranked population.
USD amounts cross this boundary as 18-decimal fixed-point integers; use
usd_to_fixed() / fixed_to_usd() at the edge and floats everywhere else.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal, ROUND_DOWN
from typing import List, Optional, Tuple

logger = logging.getLogger("lobstersage.blockchain.ledger")

USD_DECIMALS = 18
USD_SCALE = Decimal(10) ** USD_DECIMALS

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


# ============================================================================
# ERRORS
# ============================================================================

class ReputationError(Exception):
    """Base class for reputation engine errors."""
    pass


class LedgerError(ReputationError):
    """A ledger read or write failed (network error, revert, timeout)."""
    pass


class LedgerNotInitializedError(ReputationError):
    """A ledger call was made before a connection was established."""

    def __init__(self, message: str = "Ledger not initialized"):
        super().__init__(message)


class TierConstantsMismatchError(ReputationError):
    """The ledger's tier breakpoints differ from the engine's."""
    pass


# ============================================================================
# FIXED-POINT CONVERSION
# ============================================================================

def usd_to_fixed(amount_usd: float) -> int:
    """Convert a USD float to an 18-decimal fixed-point integer."""
    value = Decimal(str(amount_usd)) * USD_SCALE
    return int(value.to_integral_value(rounding=ROUND_DOWN))


def fixed_to_usd(amount_fixed: int) -> float:
    """Convert an 18-decimal fixed-point integer to a USD float."""
    return float(Decimal(int(amount_fixed)) / USD_SCALE)


def is_placeholder_address(address: Optional[str]) -> bool:
    """True for the empty/zero address slots a leaderboard pads with."""
    if not address:
        return True
    return address.lower() == ZERO_ADDRESS


# ============================================================================
# RAW LEDGER RECORD
# ============================================================================

@dataclass
class LedgerReputation:
    """Reputation struct as stored on the ledger (amounts fixed-point)."""
    total_score: int = 0
    accuracy_points: int = 0
    volume_points: int = 0
    consistency_points: int = 0
    yield_points: int = 0
    predictions_made: int = 0
    predictions_correct: int = 0
    predictions_wrong: int = 0
    total_volume: int = 0
    total_yield_profit: int = 0
    last_active_day: int = 0
    consecutive_days: int = 0
    burns: int = 0

    @classmethod
    def from_tuple(cls, values: Tuple[int, ...]) -> "LedgerReputation":
        """Build from the contract's positional tuple return."""
        return cls(*[int(v) for v in values])


# ============================================================================
# LEDGER INTERFACE
# ============================================================================

class ReputationLedger(ABC):
    """
    Abstract reputation ledger.

    Reads never require authorization. Writes require the connection's
    recorder to be authorized and return only once the write is confirmed.
    Implementations raise LedgerError for any failed call.
    """

    @property
    @abstractmethod
    def recorder_address(self) -> Optional[str]:
        """Address writes are sent from, None for a read-only connection."""
        pass

    # Reads

    @abstractmethod
    async def get_reputation(self, address: str) -> LedgerReputation:
        pass

    @abstractmethod
    async def get_score(self, address: str) -> int:
        pass

    @abstractmethod
    async def get_rank(self, address: str) -> int:
        """1-based rank, 0 if unranked."""
        pass

    @abstractmethod
    async def get_leaderboard(self, count: int) -> Tuple[List[str], List[int]]:
        """(addresses, scores) ordered best-first, possibly zero-padded."""
        pass

    @abstractmethod
    async def get_accuracy(self, address: str) -> int:
        """Accuracy in basis points (7000 = 70%)."""
        pass

    @abstractmethod
    async def is_top_percent(self, address: str, percent: int) -> bool:
        pass

    @abstractmethod
    async def total_users(self) -> int:
        pass

    @abstractmethod
    async def is_authorized_recorder(self, address: str) -> bool:
        pass

    @abstractmethod
    async def get_volume_tiers(self) -> List[int]:
        """volumeTier1..5, fixed-point."""
        pass

    @abstractmethod
    async def get_yield_tiers(self) -> List[int]:
        """yieldTier1..5, fixed-point."""
        pass

    # Writes

    @abstractmethod
    async def record_prediction(
        self,
        address: str,
        success: bool,
        confidence: int,
        accuracy_score: int = 0,
    ) -> None:
        pass

    @abstractmethod
    async def record_volume(self, address: str, amount_fixed: int) -> None:
        pass

    @abstractmethod
    async def record_activity(self, address: str) -> None:
        pass

    @abstractmethod
    async def record_yield(self, address: str, profit_fixed: int) -> None:
        pass

    @abstractmethod
    async def record_burn(self, address: str) -> None:
        pass
