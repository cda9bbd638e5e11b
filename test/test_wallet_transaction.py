#!/usr/bin/env python3
"""Unit tests for wallet transaction submission."""

import asyncio
import logging
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from wallet_txn.chains import ARBITRUM, ETHEREUM
from wallet_txn.config import TenderlyConfig
from wallet_txn.errors import InsufficientFundsError, SimulationFailedError, WalletTxnError
from wallet_txn.models import TransactionWaiterResult, TxnEventName, TxnSentEventData
from wallet_txn.wallet_transaction import (
    apply_fallback_profile,
    build_txn_data,
    make_wallet_txn_result_waiter,
    send_wallet_transaction,
)

MODULE = "wallet_txn.wallet_transaction"
SENDER = "0x742d35Cc6634C0532925a3b844Bc9e7595f0bEb7"
TO = "0x85BfE05492aFC3D04Ff3B2ca6771ACF6f853d90d"
CALL_DATA = "0xabcdef"
TX_HASH = "0x" + "ab" * 32


@pytest.fixture
def mock_response():
    """Create a mock broadcast response."""
    mock = MagicMock()
    mock.hash = TX_HASH
    mock.wait = AsyncMock(return_value={"blockNumber": 1234, "status": 1})
    return mock


@pytest.fixture
def mock_signer(mock_response):
    """Create a mock WalletSigner instance."""
    mock = MagicMock()
    mock.address = SENDER
    mock.provider = MagicMock()
    mock.send_transaction = AsyncMock(return_value=mock_response)
    return mock


@pytest.fixture(autouse=True)
def no_tenderly():
    """Disable simulation unless a test enables it."""
    with patch(f"{MODULE}.get_tenderly_config", return_value=None) as mock:
        yield mock


@pytest.fixture
def gas_mocks():
    """Patch the gas estimator, gas price oracle and provider lookup."""
    with patch(f"{MODULE}.estimate_gas_limit", new_callable=AsyncMock) as estimate, \
         patch(f"{MODULE}.get_gas_price", new_callable=AsyncMock) as gas_price, \
         patch(f"{MODULE}.get_provider", return_value=MagicMock()) as provider:
        estimate.return_value = 50_000
        gas_price.return_value = {"gasPrice": 2_000_000_000}
        yield estimate, gas_price, provider


def sent_tx(mock_signer) -> dict:
    return mock_signer.send_transaction.call_args[0][0]


class TestGasResolution:
    """Test suite for gas limit and gas price resolution."""

    @pytest.mark.asyncio
    async def test_explicit_gas_values_used_verbatim(self, mock_signer, gas_mocks):
        """Explicit gas limit and price skip estimation and the fallback profile."""
        estimate, gas_price, _ = gas_mocks

        await send_wallet_transaction(
            chain_id=ARBITRUM,
            signer=mock_signer,
            to=TO,
            call_data=CALL_DATA,
            gas_limit=21_000,
            gas_price_data={"gasPrice": 5},
        )

        estimate.assert_not_called()
        gas_price.assert_not_called()
        tx = sent_tx(mock_signer)
        assert tx["gasLimit"] == 21_000
        assert tx["gas"] == 21_000
        assert tx["gasPrice"] == 5

    @pytest.mark.asyncio
    async def test_estimated_values_are_used(self, mock_signer, gas_mocks):
        """Estimated gas limit and fetched gas price end up in the request."""
        estimate, gas_price, _ = gas_mocks

        await send_wallet_transaction(
            chain_id=ETHEREUM,
            signer=mock_signer,
            to=TO,
            call_data=CALL_DATA,
            value=10,
        )

        estimate.assert_awaited_once_with(
            mock_signer.provider,
            {"to": TO, "from": SENDER, "data": CALL_DATA, "value": 10},
        )
        gas_price.assert_awaited_once()
        assert gas_price.call_args[0][1] == ETHEREUM

        tx = sent_tx(mock_signer)
        assert tx["gas"] == 50_000
        assert tx["gasPrice"] == 2_000_000_000
        assert tx["value"] == 10

    @pytest.mark.asyncio
    async def test_fallback_chain_double_failure(self, mock_signer, gas_mocks):
        """The fallback chain gets its profile when estimation and pricing fail."""
        estimate, gas_price, _ = gas_mocks
        estimate.side_effect = Exception("estimate failed")
        gas_price.side_effect = Exception("rpc down")

        await send_wallet_transaction(
            chain_id=ARBITRUM,
            signer=mock_signer,
            to=TO,
            call_data=CALL_DATA,
        )

        assert sent_tx(mock_signer) == {
            "to": TO,
            "data": CALL_DATA,
            "from": SENDER,
            "gasLimit": 1_000_000,
            "gas": 1_000_000,
            "gasPrice": 1_000_000_000,
            "baseGas": 100_000,
        }

    @pytest.mark.asyncio
    async def test_other_chain_double_failure_omits_gas_fields(self, mock_signer, gas_mocks):
        """Chains without a profile leave gas fields out of the request."""
        estimate, gas_price, _ = gas_mocks
        estimate.side_effect = Exception("estimate failed")
        gas_price.side_effect = Exception("rpc down")
        events = []

        await send_wallet_transaction(
            chain_id=ETHEREUM,
            signer=mock_signer,
            to=TO,
            call_data=CALL_DATA,
            callback=events.append,
        )

        tx = sent_tx(mock_signer)
        for key in ("gas", "gasLimit", "gasPrice", "maxFeePerGas", "baseGas"):
            assert key not in tx
        # Sending is reported even though no gas value could be resolved
        assert [e.event for e in events] == [TxnEventName.SENDING, TxnEventName.SENT]

    @pytest.mark.asyncio
    async def test_gas_fetches_run_alongside_pre_submission_check(self, mock_signer, gas_mocks):
        """Estimation and the pre-submission check overlap instead of running one after the other."""
        estimate, _, _ = gas_mocks
        estimate_started = asyncio.Event()
        check_started = asyncio.Event()

        async def slow_estimate(*args):
            estimate_started.set()
            await asyncio.wait_for(check_started.wait(), timeout=1)
            return 60_000

        async def check():
            check_started.set()
            await asyncio.wait_for(estimate_started.wait(), timeout=1)

        estimate.side_effect = slow_estimate

        await send_wallet_transaction(
            chain_id=ETHEREUM,
            signer=mock_signer,
            to=TO,
            call_data=CALL_DATA,
            run_simulation=check,
        )

        assert sent_tx(mock_signer)["gas"] == 60_000

    @pytest.mark.asyncio
    async def test_explicit_gas_limit_with_oracle_price(self, mock_signer, gas_mocks):
        """Chain 1 with an explicit gas limit takes fees from the oracle only."""
        estimate, gas_price, _ = gas_mocks
        gas_price.return_value = {"maxFeePerGas": 30, "maxPriorityFeePerGas": 2}

        await send_wallet_transaction(
            chain_id=ETHEREUM,
            signer=mock_signer,
            to=TO,
            call_data=CALL_DATA,
            gas_limit=21_000,
        )

        estimate.assert_not_called()
        tx = sent_tx(mock_signer)
        assert tx["gasLimit"] == 21_000
        assert tx["maxFeePerGas"] == 30
        assert tx["maxPriorityFeePerGas"] == 2
        assert "gasPrice" not in tx
        assert "baseGas" not in tx

    @pytest.mark.asyncio
    async def test_nonce_is_passed_through(self, mock_signer, gas_mocks):
        """An explicit nonce is forwarded as a plain integer."""
        await send_wallet_transaction(
            chain_id=ETHEREUM,
            signer=mock_signer,
            to=TO,
            call_data=CALL_DATA,
            nonce=7,
        )

        nonce = sent_tx(mock_signer)["nonce"]
        assert nonce == 7
        assert type(nonce) is int


class TestLifecycleEvents:
    """Test suite for callback notifications."""

    @pytest.mark.asyncio
    async def test_event_order_with_pre_submission_check(self, mock_signer, gas_mocks):
        """Simulated, Sending and Sent are observed once each, in order."""
        events = []
        run_simulation = AsyncMock()

        result = await send_wallet_transaction(
            chain_id=ETHEREUM,
            signer=mock_signer,
            to=TO,
            call_data=CALL_DATA,
            run_simulation=run_simulation,
            callback=events.append,
        )

        run_simulation.assert_awaited_once()
        assert [e.event for e in events] == [
            TxnEventName.SIMULATED,
            TxnEventName.SENDING,
            TxnEventName.SENT,
        ]
        assert events[2].data == TxnSentEventData(type="wallet", transaction_hash=TX_HASH)
        assert result.transaction_hash == TX_HASH

    @pytest.mark.asyncio
    async def test_no_simulated_event_without_check(self, mock_signer, gas_mocks):
        """Without a pre-submission check only Sending and Sent are emitted."""
        events = []

        await send_wallet_transaction(
            chain_id=ETHEREUM,
            signer=mock_signer,
            to=TO,
            call_data=CALL_DATA,
            callback=events.append,
        )

        assert [e.event for e in events] == [TxnEventName.SENDING, TxnEventName.SENT]

    @pytest.mark.asyncio
    async def test_failing_pre_submission_check_aborts(self, mock_signer, gas_mocks):
        """A failing check is reported once and stops the send."""
        events = []
        check_error = RuntimeError("sanity check failed")

        with pytest.raises(RuntimeError) as exc_info:
            await send_wallet_transaction(
                chain_id=ETHEREUM,
                signer=mock_signer,
                to=TO,
                call_data=CALL_DATA,
                run_simulation=AsyncMock(side_effect=check_error),
                callback=events.append,
            )

        assert exc_info.value is check_error
        assert [e.event for e in events] == [TxnEventName.ERROR]
        assert events[0].data is check_error
        mock_signer.send_transaction.assert_not_called()

    @pytest.mark.asyncio
    async def test_failing_check_cancels_gas_fetches(self, mock_signer, gas_mocks):
        """Gas lookups still in flight are cancelled when the check fails."""
        estimate, _, _ = gas_mocks
        estimate_started = asyncio.Event()
        estimate_log = []

        async def hanging_estimate(*args):
            estimate_started.set()
            try:
                await asyncio.Event().wait()
            except asyncio.CancelledError:
                estimate_log.append("cancelled")
                raise
            estimate_log.append("finished")

        async def failing_check():
            await estimate_started.wait()
            raise RuntimeError("sanity check failed")

        estimate.side_effect = hanging_estimate

        with pytest.raises(RuntimeError, match="sanity check failed"):
            await send_wallet_transaction(
                chain_id=ETHEREUM,
                signer=mock_signer,
                to=TO,
                call_data=CALL_DATA,
                run_simulation=failing_check,
            )

        pending = [
            task for task in asyncio.all_tasks()
            if task is not asyncio.current_task() and not task.done()
        ]
        assert pending == []
        assert estimate_log == ["cancelled"]

    @pytest.mark.asyncio
    async def test_broadcast_failure_is_tagged_and_reported(self, mock_signer, gas_mocks):
        """A signer rejection is tagged "sending" and reported exactly once."""
        events = []
        send_error = ValueError("execution reverted")
        mock_signer.send_transaction.side_effect = send_error

        with patch(f"{MODULE}.additional_txn_error_validation", new_callable=AsyncMock) as validate:
            with pytest.raises(WalletTxnError) as exc_info:
                await send_wallet_transaction(
                    chain_id=ETHEREUM,
                    signer=mock_signer,
                    to=TO,
                    call_data=CALL_DATA,
                    callback=events.append,
                )

        validate.assert_awaited_once()
        assert validate.call_args[0][0] is send_error
        assert validate.call_args[0][1] == ETHEREUM
        assert exc_info.value.error_context == "sending"
        assert exc_info.value.__cause__ is send_error
        assert [e.event for e in events] == [TxnEventName.SENDING, TxnEventName.ERROR]
        assert events[1].data is exc_info.value

    @pytest.mark.asyncio
    async def test_validator_error_replaces_original(self, mock_signer, gas_mocks):
        """A more specific diagnosis from the validator is what the caller sees."""
        events = []
        mock_signer.send_transaction.side_effect = ValueError("insufficient funds for gas * price + value")
        specific = InsufficientFundsError("not enough", required=100, available=1)

        with patch(f"{MODULE}.additional_txn_error_validation", new_callable=AsyncMock, side_effect=specific):
            with pytest.raises(InsufficientFundsError) as exc_info:
                await send_wallet_transaction(
                    chain_id=ETHEREUM,
                    signer=mock_signer,
                    to=TO,
                    call_data=CALL_DATA,
                    callback=events.append,
                )

        assert exc_info.value is specific
        assert exc_info.value.error_context == "sending"
        assert [e.event for e in events] == [TxnEventName.SENDING, TxnEventName.ERROR]
        assert events[1].data is specific

    @pytest.mark.asyncio
    async def test_raising_callback_does_not_change_outcome(self, mock_signer, gas_mocks):
        """A callback that raises is ignored."""
        callback = MagicMock(side_effect=RuntimeError("observer bug"))

        result = await send_wallet_transaction(
            chain_id=ETHEREUM,
            signer=mock_signer,
            to=TO,
            call_data=CALL_DATA,
            callback=callback,
        )

        assert result.transaction_hash == TX_HASH
        assert callback.call_count == 2

    @pytest.mark.asyncio
    async def test_async_callback_is_scheduled(self, mock_signer, gas_mocks):
        """Coroutine callbacks run in the background."""
        events = []

        async def callback(event):
            events.append(event.event)

        await send_wallet_transaction(
            chain_id=ETHEREUM,
            signer=mock_signer,
            to=TO,
            call_data=CALL_DATA,
            callback=callback,
        )
        await asyncio.sleep(0)

        assert events == [TxnEventName.SENDING, TxnEventName.SENT]

    @pytest.mark.asyncio
    async def test_failing_async_callback_is_logged(self, mock_signer, gas_mocks, caplog):
        """Coroutine callbacks that raise are logged and do not change the result."""

        async def callback(event):
            raise RuntimeError(f"observer bug on {event.event.value}")

        with caplog.at_level(logging.ERROR, logger=MODULE):
            result = await send_wallet_transaction(
                chain_id=ETHEREUM,
                signer=mock_signer,
                to=TO,
                call_data=CALL_DATA,
                callback=callback,
            )
            await asyncio.sleep(0.01)

        assert result.transaction_hash == TX_HASH
        messages = [r.getMessage() for r in caplog.records if r.name == MODULE]
        assert "Transaction callback failed: observer bug on sending" in messages
        assert "Transaction callback failed: observer bug on sent" in messages


class TestSimulationBranch:
    """Test suite for the Tenderly simulation path."""

    @pytest.fixture
    def tenderly_config(self, no_tenderly):
        config = TenderlyConfig(account_slug="acme", project_slug="project", access_key="key")
        no_tenderly.return_value = config
        return config

    @pytest.mark.asyncio
    async def test_simulation_replaces_broadcast(self, mock_signer, gas_mocks, tenderly_config):
        """Simulated submissions have no hash and report success."""
        estimate, gas_price, _ = gas_mocks
        callback = MagicMock()

        with patch(f"{MODULE}.simulate_call_data_with_tenderly", new_callable=AsyncMock) as simulate:
            result = await send_wallet_transaction(
                chain_id=ETHEREUM,
                signer=mock_signer,
                to=TO,
                call_data=CALL_DATA,
                value=1,
                gas_limit=21_000,
                msg="swap",
                callback=callback,
            )

        simulate.assert_awaited_once_with(
            chain_id=ETHEREUM,
            tenderly_config=tenderly_config,
            provider=mock_signer.provider,
            to=TO,
            data=CALL_DATA,
            from_address=SENDER,
            value=1,
            gas_limit=21_000,
            gas_price_data=None,
            block_number=None,
            comment="swap",
        )
        assert result.transaction_hash is None
        assert await result.wait() == TransactionWaiterResult(
            transaction_hash=None, block_number=None, status="success"
        )
        mock_signer.send_transaction.assert_not_called()
        estimate.assert_not_called()
        gas_price.assert_not_called()
        callback.assert_not_called()

    @pytest.mark.asyncio
    async def test_simulation_failure_propagates_raw(self, mock_signer, gas_mocks, tenderly_config):
        """Simulation failures are neither tagged nor reported to the callback."""
        callback = MagicMock()
        failure = SimulationFailedError("Simulation failed: execution reverted")

        with patch(f"{MODULE}.simulate_call_data_with_tenderly", new_callable=AsyncMock, side_effect=failure):
            with pytest.raises(SimulationFailedError) as exc_info:
                await send_wallet_transaction(
                    chain_id=ETHEREUM,
                    signer=mock_signer,
                    to=TO,
                    call_data=CALL_DATA,
                    callback=callback,
                )

        assert exc_info.value is failure
        assert exc_info.value.error_context is None
        callback.assert_not_called()
        mock_signer.send_transaction.assert_not_called()


class TestResultWaiter:
    """Test suite for the finalization waiter."""

    @pytest.mark.asyncio
    async def test_wait_reports_success(self, mock_signer, gas_mocks):
        result = await send_wallet_transaction(
            chain_id=ETHEREUM,
            signer=mock_signer,
            to=TO,
            call_data=CALL_DATA,
        )

        first = await result.wait()
        second = await result.wait()

        assert first == TransactionWaiterResult(transaction_hash=TX_HASH, block_number=1234, status="success")
        assert first == second

    @pytest.mark.asyncio
    async def test_wait_reports_failed_status(self, mock_response):
        mock_response.wait.return_value = {"blockNumber": 99, "status": 0}

        outcome = await make_wallet_txn_result_waiter(TX_HASH, mock_response)()

        assert outcome.status == "failed"
        assert outcome.block_number == 99

    @pytest.mark.asyncio
    async def test_wait_without_receipt_is_failed(self, mock_response):
        mock_response.wait.return_value = None

        outcome = await make_wallet_txn_result_waiter(TX_HASH, mock_response)()

        assert outcome == TransactionWaiterResult(transaction_hash=TX_HASH, block_number=None, status="failed")


class TestRequestAssembly:
    """Test suite for the fallback profile and request building helpers."""

    def test_fallback_profile_keeps_resolved_values(self):
        assert apply_fallback_profile(ARBITRUM, 42, {"gasPrice": 3}) == (42, {"gasPrice": 3})

    def test_no_profile_keeps_missing_values(self):
        assert apply_fallback_profile(ETHEREUM, None, None) == (None, None)

    def test_base_gas_only_on_fallback_chain(self):
        common = dict(
            to=TO,
            call_data=CALL_DATA,
            from_address=SENDER,
            value=None,
            nonce=None,
            gas_limit=None,
            gas_price_data=None,
        )

        assert build_txn_data(chain_id=ARBITRUM, **common)["baseGas"] == 100_000
        assert "baseGas" not in build_txn_data(chain_id=ETHEREUM, **common)
