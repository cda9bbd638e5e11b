"""
Gas limit estimation and gas price lookup.

Both helpers raise on RPC failure; callers that can proceed without a value
are expected to handle that themselves.
"""

import logging
from typing import Any

from web3 import AsyncWeb3
from web3.types import TxParams

from ..chains import GAS_PRICE_PREMIUM, MAX_PRIORITY_FEE_PER_GAS, is_eip1559_chain
from ..models import GasPriceData

logger = logging.getLogger(__name__)

# Headroom added to eth_estimateGas, in percent
GAS_LIMIT_BUFFER_PERCENT = 10


def apply_gas_limit_buffer(gas_limit: int) -> int:
    return gas_limit * (100 + GAS_LIMIT_BUFFER_PERCENT) // 100


async def estimate_gas_limit(provider: AsyncWeb3, tx: dict[str, Any]) -> int:
    """
    Estimate the gas limit for a call and add a safety buffer.

    Args:
        provider: Provider used for eth_estimateGas
        tx: Mapping with to, from, data and optionally value

    Returns:
        Buffered gas limit

    Raises:
        Exception: Whatever the provider raises when estimation fails
    """
    params: TxParams = {k: v for k, v in tx.items() if v is not None}  # type: ignore[assignment]

    estimated = await provider.eth.estimate_gas(params)
    gas_limit = apply_gas_limit_buffer(int(estimated))
    logger.debug(f"Estimated gas {estimated}, using limit {gas_limit}")
    return gas_limit


async def get_gas_price(provider: AsyncWeb3, chain_id: int) -> GasPriceData:
    """
    Fetch fee-market parameters for the next transaction on a chain.

    EIP-1559 chains get ``maxFeePerGas`` (twice the latest base fee plus the
    priority fee) and ``maxPriorityFeePerGas``. Other chains, and EIP-1559
    chains whose latest block has no base fee, get a flat ``gasPrice``.
    The chain's premium is added in both cases.

    Args:
        provider: Provider for the chain
        chain_id: Numeric chain identifier

    Returns:
        Gas price data ready to merge into a transaction request
    """
    premium = GAS_PRICE_PREMIUM.get(chain_id, 0)

    if is_eip1559_chain(chain_id):
        block = await provider.eth.get_block("latest")

        if (base_fee := block.get("baseFeePerGas")) is not None:
            priority_fee = MAX_PRIORITY_FEE_PER_GAS.get(chain_id)
            if priority_fee is None:
                priority_fee = int(await provider.eth.max_priority_fee)
            priority_fee += premium

            return {
                "maxFeePerGas": int(base_fee) * 2 + priority_fee,
                "maxPriorityFeePerGas": priority_fee,
            }

        logger.debug(f"No base fee in latest block on chain {chain_id}, using legacy gas price")

    gas_price = int(await provider.eth.gas_price)
    return {"gasPrice": gas_price + premium}
