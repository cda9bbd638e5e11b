import json
import logging
from typing import Any

import httpx
from web3 import AsyncWeb3

from ..config import TenderlyConfig
from ..errors import SimulationFailedError
from ..models import GasPriceData

logger = logging.getLogger(__name__)


class TenderlyUtility:
    """Utility for running transaction simulations on Tenderly.

    Provides dry-run execution of call data against current chain state
    through the Tenderly simulate API.
    """

    API_BASE_URL: str = "https://api.tenderly.co/api/v1"
    DASHBOARD_URL: str = "https://dashboard.tenderly.co"

    def __init__(self, config: TenderlyConfig) -> None:
        """Initialize Tenderly utility.

        Args:
            config: Tenderly account, project and credentials
        """
        self.config: TenderlyConfig = config

    @property
    def project_path(self) -> str:
        return f"/account/{self.config.account_slug}/project/{self.config.project_slug}"

    def simulation_url(self, simulation_id: str) -> str:
        return (
            f"{self.DASHBOARD_URL}/{self.config.account_slug}/"
            f"{self.config.project_slug}/simulator/{simulation_id}"
        )

    async def _api_post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        """Post request to the Tenderly API.

        Args:
            path: API endpoint path below the project
            payload: JSON payload to send

        Returns:
            JSON response from Tenderly

        Raises:
            httpx.HTTPStatusError: If the request fails
        """
        full_url: str = self.API_BASE_URL + self.project_path + path
        headers: dict[str, str] = {"X-Access-Key": self.config.access_key}

        async with httpx.AsyncClient() as client:
            logger.debug(f"Posting to {full_url}: {json.dumps(payload)}")
            response: httpx.Response = await client.post(
                full_url,
                json=payload,
                headers=headers,
                timeout=float(self.config.request_timeout),
            )
            response.raise_for_status()
            return response.json()

    async def simulate_tx(self, payload: dict[str, Any]) -> str | None:
        """
        Run a simulation and check that the simulated transaction succeeded.

        Args:
            payload: Tenderly simulation request body

        Returns:
            Dashboard URL of the saved simulation, if Tenderly returned an id

        Raises:
            SimulationFailedError: If the simulated transaction reverted
            httpx.HTTPStatusError: If the API rejects the request
        """
        response: dict[str, Any] = await self._api_post("/simulate", payload)

        simulation_id = (response.get("simulation") or {}).get("id")
        url = self.simulation_url(simulation_id) if simulation_id else None

        match response.get("transaction"):
            case {"status": True}:
                logger.info(f"✓ Simulation succeeded: {url or 'unsaved'}")
                return url
            case {"status": False, **rest}:
                reason = rest.get("error_message") or "execution reverted"
                logger.error(f"✗ Simulation failed: {reason} ({url or 'unsaved'})")
                raise SimulationFailedError(f"Simulation failed: {reason}", simulation_url=url)
            case _:
                logger.warning(f"Unknown Tenderly response format: {response}")
                raise SimulationFailedError("Simulation returned no transaction result", simulation_url=url)


def _gas_price_for_simulation(gas_price_data: GasPriceData | None) -> int | None:
    if not gas_price_data:
        return None
    return gas_price_data.get("gasPrice") or gas_price_data.get("maxFeePerGas")


async def simulate_call_data_with_tenderly(
    *,
    chain_id: int,
    tenderly_config: TenderlyConfig,
    provider: AsyncWeb3 | None,
    to: str,
    data: str,
    from_address: str,
    value: int | None = None,
    gas_limit: int | None = None,
    gas_price_data: GasPriceData | None = None,
    block_number: int | None = None,
    comment: str | None = None,
) -> str | None:
    """
    Simulate call data on Tenderly instead of broadcasting it.

    When no block number is given the simulation is pinned to the provider's
    latest block.

    Returns:
        Dashboard URL of the saved simulation, if any

    Raises:
        SimulationFailedError: If the call reverts in simulation
        httpx.HTTPStatusError: If the Tenderly API rejects the request
    """
    if block_number is None and provider is not None:
        block_number = int(await provider.eth.block_number)

    payload: dict[str, Any] = {
        "network_id": str(chain_id),
        "from": from_address,
        "to": to,
        "input": data,
        "value": int(value or 0),
        "save": True,
        "save_if_fails": True,
        "simulation_type": "full",
    }

    if gas_limit is not None:
        payload["gas"] = int(gas_limit)
    if (gas_price := _gas_price_for_simulation(gas_price_data)) is not None:
        payload["gas_price"] = str(gas_price)
    if block_number is not None:
        payload["block_number"] = block_number
    if comment:
        payload["description"] = comment

    logger.info(f"Simulating transaction to {to} on chain {chain_id} with Tenderly")
    return await TenderlyUtility(tenderly_config).simulate_tx(payload)
