#!/usr/bin/env python3
"""Chain constants for wallet transactions.

This module holds chain identifiers, default RPC endpoints and the per-chain
gas fallback profiles used when dynamic gas resolution is unavailable.
"""

import os
from dataclasses import dataclass

ETHEREUM = 1
ARBITRUM = 42161
AVALANCHE = 43114
ARBITRUM_SEPOLIA = 421614
AVALANCHE_FUJI = 43113


@dataclass(frozen=True, slots=True)
class GasFallbackProfile:
    """Fixed gas parameters substituted when estimation is unavailable.

    Attributes:
        gas_limit: Gas limit used when estimation fails or is skipped
        gas_price: Legacy gas price in wei used when the price oracle fails
        base_gas: Extra fee field attached to every broadcast on the chain
    """

    gas_limit: int
    gas_price: int
    base_gas: int


DEFAULT_GAS_PROFILES: dict[int, GasFallbackProfile] = {
    ARBITRUM: GasFallbackProfile(
        gas_limit=1_000_000,
        gas_price=1_000_000_000,  # 1 gwei
        base_gas=100_000,
    ),
}

RPC_URLS: dict[int, str] = {
    ETHEREUM: "https://ethereum.publicnode.com",
    ARBITRUM: "https://arb1.arbitrum.io/rpc",
    AVALANCHE: "https://api.avax.network/ext/bc/C/rpc",
    ARBITRUM_SEPOLIA: "https://sepolia-rollup.arbitrum.io/rpc",
    AVALANCHE_FUJI: "https://api.avax-test.network/ext/bc/C/rpc",
}

# Chains priced with a flat gasPrice instead of base/priority fees
LEGACY_GAS_PRICE_CHAINS: frozenset[int] = frozenset({ARBITRUM, ARBITRUM_SEPOLIA})

# Premium in wei added on top of the node's suggestion
GAS_PRICE_PREMIUM: dict[int, int] = {
    ARBITRUM: 0,
    AVALANCHE: 6_000_000_000,
    AVALANCHE_FUJI: 6_000_000_000,
}

MAX_PRIORITY_FEE_PER_GAS: dict[int, int] = {
    ETHEREUM: 1_500_000_000,
    AVALANCHE: 1_500_000_000,
    AVALANCHE_FUJI: 1_500_000_000,
}


def get_fallback_profile(chain_id: int) -> GasFallbackProfile | None:
    """Return the gas fallback profile for a chain, if it defines one."""
    return DEFAULT_GAS_PROFILES.get(chain_id)


def get_rpc_url(chain_id: int) -> str:
    """Resolve the RPC endpoint for a chain.

    An ``RPC_URL_<chain_id>`` environment variable overrides the built-in
    default.

    Args:
        chain_id: Numeric chain identifier

    Returns:
        RPC URL for the chain

    Raises:
        ValueError: If the chain is unknown and no override is set
    """
    if override := os.environ.get(f"RPC_URL_{chain_id}"):
        return override

    try:
        return RPC_URLS[chain_id]
    except KeyError:
        raise ValueError(
            f"No RPC URL configured for chain {chain_id}. "
            f"Set RPC_URL_{chain_id} in the environment"
        ) from None


def is_eip1559_chain(chain_id: int) -> bool:
    return chain_id not in LEGACY_GAS_PRICE_CHAINS
