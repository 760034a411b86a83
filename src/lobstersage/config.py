"""
lobstersage/config.py

Configuration constants and data classes for lobstersage.
"""

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from .blockchain.ledger import ZERO_ADDRESS


# Supported networks
NETWORK_BASE_SEPOLIA = "base-sepolia"
NETWORK_BASE_MAINNET = "base-mainnet"

DEFAULT_RPC_URLS = {
    NETWORK_BASE_SEPOLIA: "https://sepolia.base.org",
    NETWORK_BASE_MAINNET: "https://mainnet.base.org",
}

CHAIN_IDS = {
    NETWORK_BASE_SEPOLIA: 84532,
    NETWORK_BASE_MAINNET: 8453,
}

DEFAULT_RECEIPT_TIMEOUT = 120.0     # seconds
DEFAULT_LEADERBOARD_SIZE = 100

_TRUE_VALUES = ("1", "true", "yes", "on")


def _env_bool(value: Optional[str], default: bool) -> bool:
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in _TRUE_VALUES


@dataclass
class ReputationConfig:
    """
    Configuration for the reputation engine.

    Usage:
        config = ReputationConfig.from_env()
        ledger = ContractLedger.from_config(config)
    """

    # Network
    network: str = NETWORK_BASE_SEPOLIA
    rpc_url: str = ""

    # Ledger contract
    contract_address: str = ZERO_ADDRESS
    recorder_address: Optional[str] = None

    # Behaviour
    submit_to_ledger: bool = True
    verify_tier_constants: bool = True
    receipt_timeout: float = DEFAULT_RECEIPT_TIMEOUT
    leaderboard_size: int = DEFAULT_LEADERBOARD_SIZE

    def __post_init__(self):
        if self.network not in DEFAULT_RPC_URLS:
            raise ValueError(f"Unknown network: {self.network}")
        if not self.rpc_url:
            self.rpc_url = DEFAULT_RPC_URLS[self.network]

    @property
    def chain_id(self) -> int:
        return CHAIN_IDS[self.network]

    def is_contract_configured(self) -> bool:
        """A zero contract address means no ledger has been deployed yet."""
        return bool(self.contract_address) and self.contract_address.lower() != ZERO_ADDRESS

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ReputationConfig":
        """Build configuration from environment variables."""
        env = os.environ if environ is None else environ
        return cls(
            network=env.get("NETWORK_ID") or NETWORK_BASE_SEPOLIA,
            rpc_url=env.get("REPUTATION_RPC_URL", ""),
            contract_address=env.get("REPUTATION_CONTRACT") or ZERO_ADDRESS,
            recorder_address=env.get("REPUTATION_RECORDER") or None,
            submit_to_ledger=_env_bool(env.get("REPUTATION_SUBMIT"), True),
            verify_tier_constants=_env_bool(env.get("REPUTATION_VERIFY_TIERS"), True),
            receipt_timeout=float(env.get("REPUTATION_RECEIPT_TIMEOUT", DEFAULT_RECEIPT_TIMEOUT)),
            leaderboard_size=int(env.get("REPUTATION_LEADERBOARD_SIZE", DEFAULT_LEADERBOARD_SIZE)),
        )
