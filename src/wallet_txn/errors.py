"""
Exception definitions and error helpers for wallet transactions.

Exception Hierarchy:
    WalletTxnError
    ├── SimulationFailedError
    ├── InsufficientFundsError
    └── NonceTooLowError

``extend_error`` tags an error with the stage it happened in, and
``additional_txn_error_validation`` turns common broadcast failures into
more specific exceptions.
"""

import logging
from typing import Any

from web3 import AsyncWeb3
from web3.types import TxParams

logger = logging.getLogger(__name__)


class WalletTxnError(Exception):
    """
    Root exception for wallet transaction failures.

    Attributes:
        error_context: Stage the error was raised in (e.g. "sending"), if tagged
    """

    def __init__(self, message: str, error_context: str | None = None) -> None:
        super().__init__(message)
        self.error_context = error_context


class SimulationFailedError(WalletTxnError):
    """
    Raised when a dry-run of the call data reverts on the simulation backend.
    """

    def __init__(self, message: str, simulation_url: str | None = None) -> None:
        super().__init__(message)
        self.simulation_url = simulation_url


class InsufficientFundsError(WalletTxnError):
    """
    Raised when the sender cannot cover value plus maximum gas cost.

    Attributes:
        required: Wei needed for value and gas
        available: Wei held by the sender
    """

    def __init__(self, message: str, required: int, available: int) -> None:
        super().__init__(message)
        self.required = required
        self.available = available


class NonceTooLowError(WalletTxnError):
    """
    Raised when the node rejects a nonce that has already been used.
    """
    pass


def extend_error(error: BaseException, *, error_context: str) -> WalletTxnError:
    """
    Tag an error with the context it occurred in.

    Package errors are tagged in place. Any other exception is wrapped in a
    WalletTxnError whose ``__cause__`` is the original.

    Args:
        error: The error to decorate
        error_context: Name of the stage that failed

    Returns:
        The decorated error, ready to be raised
    """
    if isinstance(error, WalletTxnError):
        if error.error_context is None:
            error.error_context = error_context
        return error

    wrapped = WalletTxnError(f"{error_context}: {error}", error_context=error_context)
    wrapped.__cause__ = error
    return wrapped


def _max_txn_cost(tx: TxParams | dict[str, Any]) -> int:
    gas = int(tx.get("gas") or 0)
    price = int(tx.get("maxFeePerGas") or tx.get("gasPrice") or 0)
    return gas * price + int(tx.get("value") or 0)


async def additional_txn_error_validation(
    error: BaseException,
    chain_id: int,
    provider: AsyncWeb3 | None,
    tx: TxParams | dict[str, Any],
) -> None:
    """
    Diagnose a failed broadcast and raise a more specific error if possible.

    Returns without raising when the failure is not recognized or the
    diagnosis itself cannot be completed.

    Args:
        error: The error raised by the signer
        chain_id: Chain the transaction was sent to
        provider: Provider of the signer, used to read the sender balance
        tx: The broadcast request that failed

    Raises:
        InsufficientFundsError: If the sender balance does not cover the cost
        NonceTooLowError: If the node rejected the nonce
    """
    message = str(error).lower()

    if "insufficient funds" in message:
        if provider is None or not tx.get("from"):
            return

        try:
            balance = int(await provider.eth.get_balance(tx["from"]))
        except Exception as balance_error:
            logger.warning(f"Could not read balance of {tx['from']} on chain {chain_id}: {balance_error}")
            return

        required = _max_txn_cost(tx)
        raise InsufficientFundsError(
            f"Insufficient funds on chain {chain_id}: "
            f"required {required} wei, available {balance} wei",
            required=required,
            available=balance,
        ) from error

    if "nonce too low" in message:
        raise NonceTooLowError(
            f"Nonce {tx.get('nonce', 'auto')} is too low for {tx.get('from')} on chain {chain_id}"
        ) from error
