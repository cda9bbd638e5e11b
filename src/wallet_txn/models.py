#!/usr/bin/env python3
"""Data models for wallet transaction submission.

This module provides immutable data classes for lifecycle events, gas price
data and the results handed back to callers of ``send_wallet_transaction``.
"""

from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal, TypedDict

TxnStatus = Literal["success", "failed"]


class GasPriceData(TypedDict, total=False):
    """Fee-market fields merged verbatim into the broadcast request.

    Either a flat ``gasPrice`` or the EIP-1559 pair
    ``maxFeePerGas``/``maxPriorityFeePerGas``.
    """

    gasPrice: int
    maxFeePerGas: int
    maxPriorityFeePerGas: int


class TxnEventName(str, Enum):
    SIMULATED = "simulated"
    SENDING = "sending"
    SENT = "sent"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class TxnSentEventData:
    """Payload of a Sent event.

    Attributes:
        type: Submission channel, "wallet" for signer broadcasts
        transaction_hash: Hash returned by the broadcast
    """

    type: str
    transaction_hash: str


@dataclass(frozen=True, slots=True)
class TxnEvent:
    """A single lifecycle notification delivered to a transaction callback.

    Attributes:
        event: Which transition this event reports
        data: Sent payload, the raised exception for errors, otherwise None
        ctx: Execution context captured by the event builder
    """

    event: TxnEventName
    data: Any = None
    ctx: Mapping[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        """Human-readable string representation."""
        return f"TxnEvent({self.event.value})"


TxnCallback = Callable[[TxnEvent], Awaitable[None] | None]


@dataclass(frozen=True, slots=True)
class TransactionWaiterResult:
    """Outcome of a transaction once it reached a terminal on-chain state.

    Attributes:
        transaction_hash: Hash of the transaction (None for simulations)
        block_number: Block the transaction was included in, if known
        status: "success" when the receipt status is 1, otherwise "failed"
    """

    transaction_hash: str | None
    block_number: int | None
    status: TxnStatus

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "transaction_hash": self.transaction_hash,
            "block_number": self.block_number,
            "status": self.status
        }


@dataclass(frozen=True, slots=True)
class WalletTxnResult:
    """Result of a wallet submission.

    Attributes:
        transaction_hash: Broadcast hash, None only when the call was simulated
        wait: Zero-argument coroutine function resolving to the final outcome
    """

    transaction_hash: str | None
    wait: Callable[[], Awaitable[TransactionWaiterResult]]
