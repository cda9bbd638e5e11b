#!/usr/bin/env python3
"""Wallet transaction submission.

This module sends a single transaction through a wallet signer. It resolves
gas parameters (with a per-chain fallback profile), diverts into a Tenderly
simulation when one is configured, and reports lifecycle events to an
optional callback.
"""

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from web3 import AsyncWeb3

from .chains import get_fallback_profile
from .config import get_tenderly_config
from .errors import WalletTxnError, additional_txn_error_validation, extend_error
from .events import TxnEventBuilder
from .models import (
    GasPriceData,
    TransactionWaiterResult,
    TxnCallback,
    TxnEvent,
    WalletTxnResult,
)
from .utils.gas import estimate_gas_limit, get_gas_price
from .utils.rpc import get_provider
from .utils.simulation import simulate_call_data_with_tenderly
from .wallets import TransactionResponse, WalletSigner

logger = logging.getLogger(__name__)

# Strong references to callback coroutines scheduled in the background
_background_tasks: set[asyncio.Task[Any]] = set()


def _notify(callback: TxnCallback | None, event: TxnEvent) -> None:
    """Deliver an event to the callback without letting it affect the submission."""
    if callback is None:
        return

    try:
        result = callback(event)
    except Exception as e:
        logger.error(f"Transaction callback failed on {event}: {e}", exc_info=True)
        return

    if inspect.isawaitable(result):
        task = asyncio.ensure_future(result)
        _background_tasks.add(task)
        task.add_done_callback(_on_callback_done)


def _on_callback_done(task: asyncio.Future[Any]) -> None:
    """Release a finished background callback and log its failure, if any."""
    _background_tasks.discard(task)

    if task.cancelled():
        return

    if (error := task.exception()) is not None:
        logger.error(f"Transaction callback failed: {error}", exc_info=error)


async def _join_resolution(*aws: Awaitable[Any]) -> list[Any]:
    """
    Run awaitables concurrently and return their results in order.

    If any of them fails, the others are cancelled and awaited before the
    failure propagates, so nothing keeps running after the call.
    """
    tasks = [asyncio.ensure_future(aw) for aw in aws]

    try:
        return await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


async def resolve_gas_limit(
    provider: AsyncWeb3 | None,
    gas_limit: int | None,
    tx: dict[str, Any],
) -> int | None:
    """Return the explicit gas limit, or an estimate, or None if estimation fails."""
    if gas_limit:
        return gas_limit

    if provider is None:
        return None

    try:
        return await estimate_gas_limit(provider, tx)
    except Exception as e:
        logger.debug(f"Gas limit estimation unavailable: {e}")
        return None


async def resolve_gas_price_data(chain_id: int, gas_price_data: GasPriceData | None) -> GasPriceData | None:
    """Return the explicit gas price data, or the oracle's, or None if the lookup fails."""
    if gas_price_data:
        return gas_price_data

    try:
        return await get_gas_price(get_provider(chain_id), chain_id)
    except Exception as e:
        logger.debug(f"Gas price unavailable for chain {chain_id}: {e}")
        return None


def apply_fallback_profile(
    chain_id: int,
    gas_limit: int | None,
    gas_price_data: GasPriceData | None,
) -> tuple[int | None, GasPriceData | None]:
    """Fill unresolved gas values from the chain's fallback profile, if it has one."""
    if (profile := get_fallback_profile(chain_id)) is None:
        return gas_limit, gas_price_data

    if gas_limit is None:
        gas_limit = profile.gas_limit
    if gas_price_data is None:
        gas_price_data = {"gasPrice": profile.gas_price}

    return gas_limit, gas_price_data


def build_txn_data(
    *,
    chain_id: int,
    to: str,
    call_data: str,
    from_address: str,
    value: int | None,
    nonce: int | None,
    gas_limit: int | None,
    gas_price_data: GasPriceData | None,
) -> dict[str, Any]:
    """
    Assemble the broadcast request.

    The gas limit is set under both ``gasLimit`` and ``gas``. Values that
    are not known are left out entirely.
    """
    txn_data: dict[str, Any] = {
        "to": to,
        "data": call_data,
        "from": from_address,
    }

    if value is not None:
        txn_data["value"] = value
    if nonce is not None:
        txn_data["nonce"] = int(nonce)
    if gas_limit is not None:
        txn_data["gasLimit"] = gas_limit
        txn_data["gas"] = gas_limit
    if (profile := get_fallback_profile(chain_id)) is not None:
        txn_data["baseGas"] = profile.base_gas

    txn_data.update(gas_price_data or {})
    return txn_data


def make_wallet_txn_result_waiter(
    transaction_hash: str,
    txn: TransactionResponse,
) -> Callable[[], Awaitable[TransactionWaiterResult]]:
    """Build the ``wait`` function of a submission result."""

    async def wait() -> TransactionWaiterResult:
        receipt = await txn.wait()
        return TransactionWaiterResult(
            transaction_hash=transaction_hash,
            block_number=receipt.get("blockNumber") if receipt else None,
            status="success" if receipt and receipt.get("status") == 1 else "failed",
        )

    return wait


async def _simulated_wait() -> TransactionWaiterResult:
    """Report a simulated submission as finished successfully."""
    return TransactionWaiterResult(transaction_hash=None, block_number=None, status="success")


async def send_wallet_transaction(
    *,
    chain_id: int,
    signer: WalletSigner,
    to: str,
    call_data: str,
    value: int | None = None,
    gas_limit: int | None = None,
    gas_price_data: GasPriceData | None = None,
    nonce: int | None = None,
    msg: str | None = None,
    run_simulation: Callable[[], Awaitable[None]] | None = None,
    callback: TxnCallback | None = None,
) -> WalletTxnResult:
    """
    Send a transaction through a wallet signer.

    If a Tenderly simulation is configured the call data is only simulated:
    the result has no transaction hash and ``wait()`` reports success.
    Otherwise gas limit and gas price are resolved concurrently with the
    optional ``run_simulation`` check, the transaction is broadcast, and
    ``callback`` observes Simulated (if the check ran), Sending and Sent.
    Failures from the check onward are reported with a single Error event
    and re-raised.

    Args:
        chain_id: Chain to submit to
        signer: Signer that broadcasts the transaction
        to: Destination address
        call_data: Hex encoded call data
        value: Wei to send along
        gas_limit: Explicit gas limit, skips estimation
        gas_price_data: Explicit fee fields, skip the gas price lookup
        nonce: Explicit nonce
        msg: Human-readable memo, attached to simulations
        run_simulation: Pre-submission check; its failure aborts the send
        callback: Lifecycle observer

    Returns:
        Transaction hash and a ``wait`` function for the final status

    Raises:
        WalletTxnError: If the signer rejects the transaction (tagged "sending")
        SimulationFailedError: If the configured simulation reverts
    """
    from_address = signer.address
    event_builder = TxnEventBuilder({})

    if tenderly_config := get_tenderly_config():
        await simulate_call_data_with_tenderly(
            chain_id=chain_id,
            tenderly_config=tenderly_config,
            provider=signer.provider,
            to=to,
            data=call_data,
            from_address=from_address,
            value=value,
            gas_limit=gas_limit,
            gas_price_data=gas_price_data,
            block_number=None,
            comment=msg,
        )
        return WalletTxnResult(transaction_hash=None, wait=_simulated_wait)

    try:
        async def run_pre_submission_check() -> None:
            if run_simulation is None:
                return
            await run_simulation()
            _notify(callback, event_builder.simulated())

        gas_limit_result, gas_price_data_result, _ = await _join_resolution(
            resolve_gas_limit(
                signer.provider,
                gas_limit,
                {"to": to, "from": from_address, "data": call_data, "value": value},
            ),
            resolve_gas_price_data(chain_id, gas_price_data),
            run_pre_submission_check(),
        )

        final_gas_limit, final_gas_price_data = apply_fallback_profile(
            chain_id, gas_limit_result, gas_price_data_result
        )

        _notify(callback, event_builder.sending())

        txn_data = build_txn_data(
            chain_id=chain_id,
            to=to,
            call_data=call_data,
            from_address=from_address,
            value=value,
            nonce=nonce,
            gas_limit=final_gas_limit,
            gas_price_data=final_gas_price_data,
        )

        try:
            res = await signer.send_transaction(txn_data)
        except Exception as send_error:
            error: BaseException = send_error
            try:
                await additional_txn_error_validation(send_error, chain_id, signer.provider, txn_data)
            except WalletTxnError as specific_error:
                error = specific_error

            raise extend_error(error, error_context="sending")

        _notify(callback, event_builder.sent(type="wallet", transaction_hash=res.hash))

        return WalletTxnResult(
            transaction_hash=res.hash,
            wait=make_wallet_txn_result_waiter(res.hash, res),
        )
    except Exception as e:
        logger.error(f"Wallet transaction to {to} on chain {chain_id} failed: {e}")
        _notify(callback, event_builder.error(e))
        raise
