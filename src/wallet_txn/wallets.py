#!/usr/bin/env python3
"""Wallet signer for broadcasting transactions.

This module wraps a local eth_account key and an AsyncWeb3 provider behind a
small signer interface: an address, a provider handle, and a
``send_transaction`` coroutine returning a response that can be waited on.
"""

import logging
from typing import Any

from eth_account import Account
from eth_account.signers.local import LocalAccount
from hexbytes import HexBytes
from web3 import AsyncWeb3
from web3.middleware import SignAndSendRawMiddlewareBuilder
from web3.types import TxParams, TxReceipt

logger = logging.getLogger(__name__)

# Keys accepted by the signing middleware; anything else is dropped
SIGNABLE_FIELDS: frozenset[str] = frozenset({
    "from",
    "to",
    "data",
    "value",
    "nonce",
    "gas",
    "gasPrice",
    "maxFeePerGas",
    "maxPriorityFeePerGas",
    "chainId",
    "type",
    "accessList",
})


class TransactionResponse:
    """A broadcast transaction that can be waited on until it is mined."""

    def __init__(self, hash: str, provider: AsyncWeb3, receipt_timeout: float = 120) -> None:
        """
        Initialize the response.

        Args:
            hash: Transaction hash with 0x prefix
            provider: Provider used to poll for the receipt
            receipt_timeout: Seconds to wait for the receipt
        """
        self.hash: str = hash
        self.provider: AsyncWeb3 = provider
        self.receipt_timeout: float = receipt_timeout
        self._receipt: TxReceipt | None = None

    async def wait(self) -> TxReceipt | None:
        """
        Wait for the transaction receipt.

        The receipt is cached after the first successful wait.

        Raises:
            web3.exceptions.TimeExhausted: If no receipt arrives in time
        """
        if self._receipt is None:
            logger.debug(f"Waiting for receipt of {self.hash}")
            self._receipt = await self.provider.eth.wait_for_transaction_receipt(
                HexBytes(self.hash), timeout=self.receipt_timeout
            )
        return self._receipt


class WalletSigner:
    """Signs and broadcasts transactions for a single local account."""

    def __init__(self, provider: AsyncWeb3, account: LocalAccount, receipt_timeout: float = 120) -> None:
        """
        Initialize the signer and attach the signing middleware to the provider.

        Args:
            provider: AsyncWeb3 instance for the target chain
            account: Local account holding the private key
            receipt_timeout: Seconds responses wait for receipts
        """
        self.provider: AsyncWeb3 = provider
        self.account: LocalAccount = account
        self.receipt_timeout: float = receipt_timeout

        self.provider.middleware_onion.add(SignAndSendRawMiddlewareBuilder.build(account))
        self.provider.eth.default_account = account.address

    @classmethod
    def from_private_key(cls, rpc_url: str, private_key: str, receipt_timeout: float = 120) -> "WalletSigner":
        """
        Create a signer connected to an HTTP RPC endpoint.

        Raises:
            ValueError: If the private key is missing
        """
        if not private_key:
            raise ValueError("Private key is required for signing transactions")

        provider = AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(rpc_url))
        return cls(provider, Account.from_key(private_key), receipt_timeout)

    @property
    def address(self) -> str:
        return self.account.address

    def to_tx_params(self, tx: dict[str, Any]) -> TxParams:
        """
        Normalize a broadcast request into signable transaction parameters.

        ``gasLimit`` is folded into ``gas`` and keys the signer does not
        understand are dropped. Missing gas, fees and nonce are left for
        web3 to fill in.
        """
        params: dict[str, Any] = {k: v for k, v in tx.items() if v is not None}

        if "gasLimit" in params:
            params.setdefault("gas", params["gasLimit"])

        if dropped := sorted(set(params) - SIGNABLE_FIELDS):
            logger.debug(f"Dropping non-signable transaction fields: {', '.join(dropped)}")

        signable: dict[str, Any] = {k: v for k, v in params.items() if k in SIGNABLE_FIELDS}
        signable.setdefault("from", self.address)

        for key in ("from", "to"):
            if key in signable:
                signable[key] = AsyncWeb3.to_checksum_address(signable[key])

        return signable  # type: ignore[return-value]

    async def send_transaction(self, tx: dict[str, Any]) -> TransactionResponse:
        """
        Sign and broadcast a transaction.

        Args:
            tx: Broadcast request

        Returns:
            Response carrying the transaction hash

        Raises:
            Exception: Whatever the provider raises when the node rejects the transaction
        """
        params = self.to_tx_params(tx)
        tx_hash: HexBytes = await self.provider.eth.send_transaction(params)
        hash_hex = AsyncWeb3.to_hex(tx_hash)

        logger.info(f"✓ Transaction submitted successfully: {hash_hex}")
        return TransactionResponse(hash_hex, self.provider, self.receipt_timeout)
