"""Lifecycle event construction for transaction callbacks."""

from collections.abc import Mapping
from types import MappingProxyType
from typing import Any

from .models import TxnEvent, TxnEventName, TxnSentEventData


class TxnEventBuilder:
    """Builds lifecycle events for a single submission.

    The context passed at construction is embedded into every event.
    """

    def __init__(self, ctx: Mapping[str, Any] | None = None) -> None:
        self.ctx: Mapping[str, Any] = MappingProxyType(dict(ctx or {}))

    def _build(self, event: TxnEventName, data: Any = None) -> TxnEvent:
        return TxnEvent(event=event, data=data, ctx=self.ctx)

    def simulated(self) -> TxnEvent:
        return self._build(TxnEventName.SIMULATED)

    def sending(self) -> TxnEvent:
        return self._build(TxnEventName.SENDING)

    def sent(self, type: str, transaction_hash: str) -> TxnEvent:
        return self._build(
            TxnEventName.SENT,
            TxnSentEventData(type=type, transaction_hash=transaction_hash),
        )

    def error(self, error: BaseException) -> TxnEvent:
        return self._build(TxnEventName.ERROR, error)
