"""
lobstersage/tests/test_contract_ledger.py

Tests for the web3-backed ContractLedger and fixed-point helpers.
The Web3 instance is mocked; no RPC endpoint is contacted.
"""

import pytest
import trio
from unittest.mock import MagicMock

from web3 import Web3

from lobstersage.blockchain.abi import REPUTATION_ABI, VOLUME_TIER_FUNCTIONS
from lobstersage.blockchain.contract import ContractLedger
from lobstersage.blockchain.ledger import (
    LedgerError,
    LedgerReputation,
    ZERO_ADDRESS,
    fixed_to_usd,
    is_placeholder_address,
    usd_to_fixed,
)
from lobstersage.config import ReputationConfig


CONTRACT = "0x5555555555555555555555555555555555555555"
RECORDER = "0x1111111111111111111111111111111111111111"
USER = "0xabcdef1234567890abcdef1234567890abcdef12"
USER_CHECKSUM = Web3.to_checksum_address(USER)
TX_HASH = b"\x12" * 32


@pytest.fixture
def mock_web3():
    w3 = MagicMock()
    w3.eth.wait_for_transaction_receipt.return_value = {"status": 1, "blockNumber": 42}
    return w3


@pytest.fixture
def contract(mock_web3):
    return mock_web3.eth.contract.return_value


@pytest.fixture
def ledger(mock_web3):
    return ContractLedger(CONTRACT, recorder_address=RECORDER, web3=mock_web3, receipt_timeout=5)


# ============================================================================
# FIXED POINT
# ============================================================================

class TestFixedPoint:
    """Tests for USD <-> 18-decimal conversion."""

    def test_usd_to_fixed(self):
        assert usd_to_fixed(5000) == 5000 * 10 ** 18
        assert usd_to_fixed(0.1) == 10 ** 17
        assert usd_to_fixed(0) == 0

    def test_fixed_to_usd(self):
        assert fixed_to_usd(5000 * 10 ** 18) == 5000.0
        assert fixed_to_usd(25 * 10 ** 16) == 0.25

    def test_placeholder_address(self):
        assert is_placeholder_address(ZERO_ADDRESS)
        assert is_placeholder_address("")
        assert is_placeholder_address(None)
        assert not is_placeholder_address(USER)

    def test_ledger_reputation_from_tuple(self):
        record = LedgerReputation.from_tuple(tuple(range(13)))
        assert record.total_score == 0
        assert record.burns == 12


# ============================================================================
# CONSTRUCTION
# ============================================================================

class TestConstruction:
    """Tests for building a ContractLedger."""

    def test_contract_bound_with_abi(self, ledger, mock_web3):
        mock_web3.eth.contract.assert_called_once_with(
            address=Web3.to_checksum_address(CONTRACT),
            abi=REPUTATION_ABI,
        )
        assert ledger.recorder_address == Web3.to_checksum_address(RECORDER)

    def test_requires_rpc_or_web3(self):
        with pytest.raises(ValueError):
            ContractLedger(CONTRACT)

    def test_read_only_without_recorder(self, mock_web3):
        ledger = ContractLedger(CONTRACT, web3=mock_web3)
        assert ledger.recorder_address is None

    def test_from_config(self):
        config = ReputationConfig(contract_address=CONTRACT, recorder_address=RECORDER)
        ledger = ContractLedger.from_config(config)
        assert ledger.recorder_address == Web3.to_checksum_address(RECORDER)
        assert ledger.receipt_timeout == config.receipt_timeout


# ============================================================================
# READS
# ============================================================================

class TestReads:
    """View calls run in a worker thread and are converted to Python types."""

    @pytest.mark.timeout(30)
    def test_get_score(self, ledger, contract):
        async def run_test():
            contract.functions.getScore.return_value.call.return_value = 7000
            assert await ledger.get_score(USER) == 7000
            contract.functions.getScore.assert_called_once_with(USER_CHECKSUM)

        trio.run(run_test)

    @pytest.mark.timeout(30)
    def test_get_reputation(self, ledger, contract):
        async def run_test():
            raw = [5000, 2000, 1250, 1000, 750, 10, 7, 3, 5000 * 10 ** 18, 500 * 10 ** 18, 20103, 15, 1]
            contract.functions.getReputation.return_value.call.return_value = raw
            record = await ledger.get_reputation(USER)
            assert record.total_score == 5000
            assert record.total_volume == 5000 * 10 ** 18
            assert record.consecutive_days == 15

        trio.run(run_test)

    @pytest.mark.timeout(30)
    def test_get_leaderboard(self, ledger, contract):
        async def run_test():
            contract.functions.getLeaderboard.return_value.call.return_value = (
                [USER_CHECKSUM, ZERO_ADDRESS],
                [9000, 0],
            )
            addresses, scores = await ledger.get_leaderboard(2)
            assert addresses == [USER_CHECKSUM, ZERO_ADDRESS]
            assert scores == [9000, 0]
            contract.functions.getLeaderboard.assert_called_once_with(2)

        trio.run(run_test)

    @pytest.mark.timeout(30)
    def test_rank_accuracy_and_users(self, ledger, contract):
        async def run_test():
            contract.functions.getRank.return_value.call.return_value = 3
            contract.functions.getAccuracy.return_value.call.return_value = 7000
            contract.functions.totalUsers.return_value.call.return_value = 12
            contract.functions.isTopPercent.return_value.call.return_value = True
            contract.functions.authorizedRecorders.return_value.call.return_value = True

            assert await ledger.get_rank(USER) == 3
            assert await ledger.get_accuracy(USER) == 7000
            assert await ledger.total_users() == 12
            assert await ledger.is_top_percent(USER, 10) is True
            assert await ledger.is_authorized_recorder(RECORDER) is True
            contract.functions.isTopPercent.assert_called_once_with(USER_CHECKSUM, 10)

        trio.run(run_test)

    @pytest.mark.timeout(30)
    def test_volume_tiers(self, ledger, contract):
        async def run_test():
            for i, name in enumerate(VOLUME_TIER_FUNCTIONS):
                getattr(contract.functions, name).return_value.call.return_value = (i + 1) * 10 ** 18
            assert await ledger.get_volume_tiers() == [(i + 1) * 10 ** 18 for i in range(5)]

        trio.run(run_test)

    @pytest.mark.timeout(30)
    def test_call_error_wrapped(self, ledger, contract):
        async def run_test():
            contract.functions.getScore.return_value.call.side_effect = ConnectionError("refused")
            with pytest.raises(LedgerError, match="getScore"):
                await ledger.get_score(USER)

        trio.run(run_test)

    @pytest.mark.timeout(30)
    def test_invalid_address(self, ledger):
        async def run_test():
            with pytest.raises(LedgerError, match="Invalid address"):
                await ledger.get_score("not-an-address")

        trio.run(run_test)


# ============================================================================
# WRITES
# ============================================================================

class TestWrites:
    """Transactions are sent from the recorder and wait for a receipt."""

    @pytest.mark.timeout(30)
    def test_record_prediction(self, ledger, contract, mock_web3):
        async def run_test():
            contract.functions.recordPrediction.return_value.transact.return_value = TX_HASH
            await ledger.record_prediction(USER, True, 80, 0)

            contract.functions.recordPrediction.assert_called_once_with(USER_CHECKSUM, True, 80, 0)
            contract.functions.recordPrediction.return_value.transact.assert_called_once_with(
                {"from": Web3.to_checksum_address(RECORDER)}
            )
            mock_web3.eth.wait_for_transaction_receipt.assert_called_once_with(TX_HASH, timeout=5)

        trio.run(run_test)

    @pytest.mark.timeout(30)
    def test_record_volume(self, ledger, contract):
        async def run_test():
            await ledger.record_volume(USER, usd_to_fixed(250))
            contract.functions.recordVolume.assert_called_once_with(USER_CHECKSUM, 250 * 10 ** 18)

        trio.run(run_test)

    @pytest.mark.timeout(30)
    def test_reverted_transaction(self, ledger, contract, mock_web3):
        async def run_test():
            contract.functions.recordBurn.return_value.transact.return_value = TX_HASH
            mock_web3.eth.wait_for_transaction_receipt.return_value = {"status": 0, "blockNumber": 42}
            with pytest.raises(LedgerError, match="reverted"):
                await ledger.record_burn(USER)

        trio.run(run_test)

    @pytest.mark.timeout(30)
    def test_receipt_timeout_wrapped(self, ledger, mock_web3):
        async def run_test():
            mock_web3.eth.wait_for_transaction_receipt.side_effect = TimeoutError("not mined")
            with pytest.raises(LedgerError, match="recordActivity"):
                await ledger.record_activity(USER)

        trio.run(run_test)

    @pytest.mark.timeout(30)
    def test_write_without_recorder(self, mock_web3, contract):
        async def run_test():
            ledger = ContractLedger(CONTRACT, web3=mock_web3)
            with pytest.raises(LedgerError, match="recorder"):
                await ledger.record_yield(USER, usd_to_fixed(10))
            contract.functions.recordYield.assert_not_called()

        trio.run(run_test)
