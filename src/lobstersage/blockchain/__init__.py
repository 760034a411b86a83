"""
lobstersage/blockchain/

Ledger integration for the reputation engine.

Currently supports the Reputation.sol contract on Base (via web3).
Designed so other ledgers can implement ReputationLedger.
"""

from .ledger import (
    ReputationLedger,
    LedgerReputation,
    ReputationError,
    LedgerError,
    LedgerNotInitializedError,
    TierConstantsMismatchError,
    usd_to_fixed,
    fixed_to_usd,
    is_placeholder_address,
    ZERO_ADDRESS,
    USD_DECIMALS,
)
from .contract import ContractLedger
from .abi import REPUTATION_ABI

__all__ = [
    # Interface
    "ReputationLedger",
    "LedgerReputation",
    # Errors
    "ReputationError",
    "LedgerError",
    "LedgerNotInitializedError",
    "TierConstantsMismatchError",
    # Fixed point
    "usd_to_fixed",
    "fixed_to_usd",
    "is_placeholder_address",
    "ZERO_ADDRESS",
    "USD_DECIMALS",
    # Contract (web3)
    "ContractLedger",
    "REPUTATION_ABI",
]
