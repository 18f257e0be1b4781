"""Approximate geolocation of the host based on its public IP."""

import json

import httpx
from pydantic import BaseModel, Field

from relay_agent.config import LocationToolConfig, get_config
from relay_agent.logging import get_logger
from relay_agent.tools.registry import Tool

log = get_logger(__name__)

_LOCATION_FIELDS = {
    "ip": "ip",
    "city": "city",
    "region": "region",
    "country": "country_name",
    "latitude": "latitude",
    "longitude": "longitude",
    "timezone": "timezone",
    "utc_offset": "utc_offset",
    "org": "org",
}


class CurrentLocationArgs(BaseModel):
    """No required parameters."""

    reasoning: str | None = Field(
        default=None,
        description="Why the AI wants this location info or how it will be used.",
    )


class CurrentLocationTool(Tool):
    """Look up where the machine running the agent is."""

    name = "current_location"
    description = (
        "Provides approximate geospatial information, including city, region, "
        "country, and coordinates, based on the server's IP address."
    )
    Args = CurrentLocationArgs

    def __init__(self, client: httpx.AsyncClient | None = None, config: LocationToolConfig | None = None):
        self.config = config
        self.client = client or httpx.AsyncClient(
            follow_redirects=True,
            headers={"User-Agent": "Relay Agent/0.1.0 (Location Tool)"},
        )

    async def invoke(self, tool_args: CurrentLocationArgs, user_message: str) -> str:
        location_cfg = self.config or get_config().tools.location
        try:
            response = await self.client.get(location_cfg.base_url, timeout=location_cfg.timeout)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise RuntimeError(f"Unable to retrieve geospatial information. Error: {e}") from e

        if not isinstance(data, dict):
            raise RuntimeError("Unable to retrieve geospatial information. Error: unexpected response")

        result = {key: data.get(source) for key, source in _LOCATION_FIELDS.items()}
        log.info("Location resolved", city=result["city"], country=result["country"])
        return json.dumps(result, indent=2)

    async def close(self) -> None:
        """Close HTTP client."""
        await self.client.aclose()
