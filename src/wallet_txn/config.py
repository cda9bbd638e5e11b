#!/usr/bin/env python3
"""Configuration management for wallet transactions.

This module provides type-safe configuration dataclasses with validation
for the transaction sender and the optional Tenderly simulation backend.
Configuration is loaded from environment variables with sensible defaults
where appropriate.
"""

import logging
import os
from dataclasses import dataclass
from urllib.parse import urlparse

from .chains import get_rpc_url

# Get logger for this module
logger = logging.getLogger(__name__)

TRUTHY_VALUES: frozenset[str] = frozenset({"1", "true", "yes", "on"})


@dataclass(frozen=True, slots=True)
class TenderlyConfig:
    """Configuration for the Tenderly simulation backend.

    When present, every submission is simulated instead of broadcast.

    Attributes:
        account_slug: Tenderly account (or organization) slug
        project_slug: Tenderly project slug
        access_key: API access key sent as X-Access-Key
        request_timeout: HTTP request timeout in seconds
    """

    account_slug: str
    project_slug: str
    access_key: str
    request_timeout: int = 30

    def __post_init__(self) -> None:
        """Validate Tenderly configuration."""
        if not self.account_slug:
            raise ValueError("Tenderly account slug is required (TENDERLY_ACCOUNT_SLUG)")

        if not self.project_slug:
            raise ValueError("Tenderly project slug is required (TENDERLY_PROJECT_SLUG)")

        if not self.access_key:
            raise ValueError("Tenderly access key is required (TENDERLY_ACCESS_KEY)")

        if self.request_timeout <= 0:
            raise ValueError(f"Request timeout must be positive, got {self.request_timeout}")
        if self.request_timeout > 120:
            raise ValueError(f"Request timeout too long (max 120s), got {self.request_timeout}")

    @classmethod
    def from_env(cls) -> "TenderlyConfig":
        """Load Tenderly configuration from environment variables.

        Returns:
            TenderlyConfig instance with loaded values

        Raises:
            ValueError: If required environment variables are missing or invalid
        """
        return cls(
            account_slug=os.environ.get("TENDERLY_ACCOUNT_SLUG", ""),
            project_slug=os.environ.get("TENDERLY_PROJECT_SLUG", ""),
            access_key=os.environ.get("TENDERLY_ACCESS_KEY", ""),
            request_timeout=int(os.environ.get("TENDERLY_REQUEST_TIMEOUT", "30")),
        )


def get_tenderly_config() -> TenderlyConfig | None:
    """Return the process-wide Tenderly configuration, if simulation is enabled.

    Simulation is enabled by setting TENDERLY_ENABLED to a truthy value.

    Raises:
        ValueError: If simulation is enabled but the configuration is invalid
    """
    if os.environ.get("TENDERLY_ENABLED", "").strip().lower() not in TRUTHY_VALUES:
        return None

    return TenderlyConfig.from_env()


@dataclass(frozen=True, slots=True)
class SenderConfig:
    """Configuration for sending a transaction from a local key.

    Attributes:
        chain_id: Chain the transaction is submitted to
        rpc_url: HTTP(S) or WS(S) RPC endpoint for the chain
        private_key: Hex private key of the sending account
        receipt_timeout: Seconds to wait for a transaction receipt
    """

    chain_id: int
    rpc_url: str
    private_key: str
    receipt_timeout: int = 120

    def __post_init__(self) -> None:
        """Validate sender configuration."""
        if self.chain_id <= 0:
            raise ValueError(f"Chain ID must be positive, got {self.chain_id}")

        if not self.rpc_url:
            raise ValueError("RPC URL is required (RPC_URL)")

        parsed = urlparse(self.rpc_url)
        if parsed.scheme not in ('http', 'https', 'ws', 'wss'):
            raise ValueError(
                f"Invalid RPC URL scheme: {parsed.scheme}. "
                "Expected http, https, ws, or wss"
            )

        if not self.private_key:
            raise ValueError("Private key is required (PRIVATE_KEY)")

        # Should be 64 hex chars, optionally with 0x prefix
        key = self.private_key.removeprefix('0x')

        if len(key) != 64:
            raise ValueError(
                f"Invalid private key length. Expected 64 hex characters, got {len(key)}"
            )

        try:
            int(key, 16)
        except ValueError:
            raise ValueError(
                "Invalid private key format. Must be hexadecimal"
            ) from None

        if self.receipt_timeout <= 0:
            raise ValueError(f"Receipt timeout must be positive, got {self.receipt_timeout}")

    @classmethod
    def from_env(cls) -> "SenderConfig":
        """Load sender configuration from environment variables.

        RPC_URL falls back to the chain's default endpoint.

        Returns:
            SenderConfig instance with loaded values

        Raises:
            ValueError: If required environment variables are missing or invalid
        """
        chain_id_raw = os.environ.get("CHAIN_ID", "")
        if not chain_id_raw:
            raise ValueError("CHAIN_ID environment variable is required")

        chain_id = int(chain_id_raw)
        rpc_url = os.environ.get("RPC_URL") or get_rpc_url(chain_id)

        return cls(
            chain_id=chain_id,
            rpc_url=rpc_url,
            private_key=os.environ.get("PRIVATE_KEY", ""),
            receipt_timeout=int(os.environ.get("RECEIPT_TIMEOUT", "120")),
        )

    def log_config(self) -> None:
        """Log the configuration in a readable format for debugging."""
        logger.info("=" * 60)
        logger.info("Wallet Transaction Sender Configuration")
        logger.info("=" * 60)
        logger.info(f"  Chain ID: {self.chain_id}")
        logger.info(f"  RPC URL: {self.rpc_url}")
        logger.info(f"  Receipt Timeout: {self.receipt_timeout} seconds")
        logger.info("  Private Key: [CONFIGURED]")

        if tenderly := get_tenderly_config():
            logger.info("Simulation (Tenderly):")
            logger.info(f"  Account: {tenderly.account_slug}")
            logger.info(f"  Project: {tenderly.project_slug}")

        logger.info("=" * 60)
