import logging

from web3 import AsyncWeb3

from ..chains import get_rpc_url

logger = logging.getLogger(__name__)

_providers: dict[int, AsyncWeb3] = {}


def get_provider(chain_id: int) -> AsyncWeb3:
    """Return a shared read-only AsyncWeb3 instance for the chain.

    Args:
        chain_id: Numeric chain identifier

    Returns:
        AsyncWeb3 connected to the chain's RPC endpoint

    Raises:
        ValueError: If no RPC URL is known for the chain
    """
    if (provider := _providers.get(chain_id)) is not None:
        return provider

    rpc_url = get_rpc_url(chain_id)
    logger.debug(f"Creating provider for chain {chain_id} at {rpc_url}")
    provider = AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(rpc_url))
    _providers[chain_id] = provider
    return provider


def clear_providers() -> None:
    """Drop all cached providers."""
    _providers.clear()
