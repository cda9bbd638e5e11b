#!/usr/bin/env python3
"""Entry point for sending a single wallet transaction.

Loads the sender configuration from the environment, submits one
transaction and waits for it to be mined (or simulated when Tenderly
is enabled).
"""

import argparse
import asyncio
import logging
import os
import sys

# Configure logging before any other imports create loggers
def setup_logging(level: str = "INFO") -> None:
    """Configure logging for the application.

    Args:
        level: Logging level as string (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    log_level: int = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

# Get logger for this module
logger = logging.getLogger(__name__)

from wallet_txn.config import SenderConfig
from wallet_txn.errors import WalletTxnError
from wallet_txn.models import TxnEvent
from wallet_txn.wallet_transaction import send_wallet_transaction
from wallet_txn.wallets import WalletSigner


def log_event(event: TxnEvent) -> None:
    """Log lifecycle events as they arrive."""
    if event.data is not None:
        logger.info(f"Transaction event: {event.event.value} ({event.data})")
    else:
        logger.info(f"Transaction event: {event.event.value}")


async def main() -> None:
    """Send one transaction described by command line arguments.

    Raises:
        SystemExit: On configuration or submission errors
    """
    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        description="Send a single transaction from a local wallet",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""Environment Variables:
  CHAIN_ID               - Target chain ID (required)
  PRIVATE_KEY            - Private key of the sender (required)
  RPC_URL                - RPC endpoint (default: built-in endpoint for CHAIN_ID)
  RECEIPT_TIMEOUT        - Seconds to wait for the receipt (default: 120)
  TENDERLY_ENABLED       - Simulate on Tenderly instead of broadcasting
  TENDERLY_ACCOUNT_SLUG  - Tenderly account slug
  TENDERLY_PROJECT_SLUG  - Tenderly project slug
  TENDERLY_ACCESS_KEY    - Tenderly API access key
  LOG_LEVEL              - Logging level (can be overridden with --log-level)
        """
    )
    parser.add_argument("--to", required=True, help="Destination address")
    parser.add_argument("--data", default="0x", help="Hex encoded call data (default: 0x)")
    parser.add_argument("--value", type=int, default=None, help="Value in wei")
    parser.add_argument("--gas-limit", type=int, default=None, help="Explicit gas limit")
    parser.add_argument("--nonce", type=int, default=None, help="Explicit nonce")
    parser.add_argument("--msg", default=None, help="Memo attached to simulations")
    parser.add_argument(
        "--no-wait",
        action="store_true",
        default=False,
        help="Return after broadcasting without waiting for the receipt"
    )
    parser.add_argument(
        "--log-level",
        default=os.environ.get("LOG_LEVEL", "INFO"),
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Set the logging level (default: INFO)"
    )
    args: argparse.Namespace = parser.parse_args()

    setup_logging(args.log_level)
    logger.info("Loading configuration from environment...")

    try:
        config: SenderConfig = SenderConfig.from_env()
        config.log_config()

        signer: WalletSigner = WalletSigner.from_private_key(
            config.rpc_url,
            config.private_key,
            receipt_timeout=config.receipt_timeout
        )
        logger.info(f"Sending from {signer.address} on chain {config.chain_id}")

        result = await send_wallet_transaction(
            chain_id=config.chain_id,
            signer=signer,
            to=args.to,
            call_data=args.data,
            value=args.value,
            gas_limit=args.gas_limit,
            nonce=args.nonce,
            msg=args.msg,
            callback=log_event
        )

        if args.no_wait:
            logger.info(f"Transaction hash: {result.transaction_hash}")
            return

        outcome = await result.wait()
        if outcome.status == "success":
            logger.info(f"✓ Transaction confirmed: {outcome.to_dict()}")
        else:
            logger.error(f"✗ Transaction failed: {outcome.to_dict()}")
            sys.exit(1)

    except ValueError as e:
        logger.error(f"Configuration Error: {e}")
        logger.error("Please check your environment variables:")
        logger.error("  - CHAIN_ID: Target chain ID")
        logger.error("  - PRIVATE_KEY: Private key of the sender")
        logger.error("  - RPC_URL: RPC endpoint (optional for known chains)")
        sys.exit(1)

    except WalletTxnError as e:
        logger.error(f"Transaction Error ({e.error_context or 'unknown stage'}): {e}")
        sys.exit(1)

    except Exception as e:
        logger.error(f"Fatal Error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
