"""
lobstersage/blockchain/contract.py

ReputationLedger backed by the Reputation.sol contract.

web3's HTTP provider is blocking, so every call runs in a worker thread via
trio.to_thread.run_sync and the event loop stays responsive. Writes are sent
with transact() from the configured recorder account (signing is the node's
or the wallet layer's job, not this module's) and then wait for the receipt.

Usage:
    ledger = ContractLedger(
        contract_address="0x...",
        rpc_url="https://sepolia.base.org",
        recorder_address="0x...",
    )
    score = await ledger.get_score("0x...")
"""

import logging
from typing import Any, Callable, List, Optional, Tuple, TYPE_CHECKING

import trio
from web3 import Web3

from .abi import REPUTATION_ABI, VOLUME_TIER_FUNCTIONS, YIELD_TIER_FUNCTIONS
from .ledger import LedgerError, LedgerReputation, ReputationLedger

if TYPE_CHECKING:
    from ..config import ReputationConfig

logger = logging.getLogger("lobstersage.blockchain.contract")

DEFAULT_RECEIPT_TIMEOUT = 120.0  # seconds
DEFAULT_REQUEST_TIMEOUT = 30.0   # seconds


class ContractLedger(ReputationLedger):
    """Reputation ledger reached over JSON-RPC."""

    def __init__(
        self,
        contract_address: str,
        rpc_url: Optional[str] = None,
        recorder_address: Optional[str] = None,
        web3: Optional[Web3] = None,
        receipt_timeout: float = DEFAULT_RECEIPT_TIMEOUT,
    ):
        """
        Initialize the contract connection.

        Args:
            contract_address: Deployed Reputation contract address
            rpc_url: JSON-RPC endpoint (ignored when web3 is given)
            recorder_address: Account used for writes, None for read-only
            web3: Preconfigured Web3 instance
            receipt_timeout: Seconds to wait for a write to be mined
        """
        if web3 is None:
            if not rpc_url:
                raise ValueError("rpc_url or web3 is required")
            web3 = Web3(Web3.HTTPProvider(
                rpc_url,
                request_kwargs={"timeout": DEFAULT_REQUEST_TIMEOUT},
            ))

        self._w3 = web3
        self._contract = web3.eth.contract(
            address=Web3.to_checksum_address(contract_address),
            abi=REPUTATION_ABI,
        )
        self._recorder = (
            Web3.to_checksum_address(recorder_address) if recorder_address else None
        )
        self.receipt_timeout = receipt_timeout

    @classmethod
    def from_config(cls, config: "ReputationConfig") -> "ContractLedger":
        return cls(
            contract_address=config.contract_address,
            rpc_url=config.rpc_url,
            recorder_address=config.recorder_address,
            receipt_timeout=config.receipt_timeout,
        )

    @property
    def recorder_address(self) -> Optional[str]:
        return self._recorder

    @property
    def contract_address(self) -> str:
        return self._contract.address

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    async def _run(self, func: Callable[[], Any], description: str) -> Any:
        try:
            return await trio.to_thread.run_sync(func)
        except LedgerError:
            raise
        except Exception as e:
            raise LedgerError(f"{description} failed: {e}") from e

    async def _call(self, name: str, *args: Any) -> Any:
        fn = getattr(self._contract.functions, name)
        return await self._run(lambda: fn(*args).call(), name)

    async def _transact(self, name: str, *args: Any) -> None:
        if self._recorder is None:
            raise LedgerError(f"{name} requires a recorder account")

        fn = getattr(self._contract.functions, name)

        def send_and_wait() -> None:
            tx_hash = fn(*args).transact({"from": self._recorder})
            receipt = self._w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=self.receipt_timeout
            )
            if receipt["status"] != 1:
                raise LedgerError(f"{name} reverted (tx {Web3.to_hex(tx_hash)})")
            logger.debug(f"{name} confirmed in block {receipt['blockNumber']}")

        await self._run(send_and_wait, name)

    @staticmethod
    def _checksum(address: str) -> str:
        try:
            return Web3.to_checksum_address(address)
        except (TypeError, ValueError) as e:
            raise LedgerError(f"Invalid address {address!r}: {e}") from e

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_reputation(self, address: str) -> LedgerReputation:
        raw = await self._call("getReputation", self._checksum(address))
        return LedgerReputation.from_tuple(tuple(raw))

    async def get_score(self, address: str) -> int:
        return int(await self._call("getScore", self._checksum(address)))

    async def get_rank(self, address: str) -> int:
        return int(await self._call("getRank", self._checksum(address)))

    async def get_leaderboard(self, count: int) -> Tuple[List[str], List[int]]:
        addresses, scores = await self._call("getLeaderboard", int(count))
        return list(addresses), [int(s) for s in scores]

    async def get_accuracy(self, address: str) -> int:
        return int(await self._call("getAccuracy", self._checksum(address)))

    async def is_top_percent(self, address: str, percent: int) -> bool:
        return bool(await self._call("isTopPercent", self._checksum(address), int(percent)))

    async def total_users(self) -> int:
        return int(await self._call("totalUsers"))

    async def is_authorized_recorder(self, address: str) -> bool:
        return bool(await self._call("authorizedRecorders", self._checksum(address)))

    async def get_volume_tiers(self) -> List[int]:
        return [int(await self._call(name)) for name in VOLUME_TIER_FUNCTIONS]

    async def get_yield_tiers(self) -> List[int]:
        return [int(await self._call(name)) for name in YIELD_TIER_FUNCTIONS]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def record_prediction(
        self,
        address: str,
        success: bool,
        confidence: int,
        accuracy_score: int = 0,
    ) -> None:
        await self._transact(
            "recordPrediction",
            self._checksum(address),
            bool(success),
            int(confidence),
            int(accuracy_score),
        )

    async def record_volume(self, address: str, amount_fixed: int) -> None:
        await self._transact("recordVolume", self._checksum(address), int(amount_fixed))

    async def record_activity(self, address: str) -> None:
        await self._transact("recordActivity", self._checksum(address))

    async def record_yield(self, address: str, profit_fixed: int) -> None:
        await self._transact("recordYield", self._checksum(address), int(profit_fixed))

    async def record_burn(self, address: str) -> None:
        await self._transact("recordBurn", self._checksum(address))
