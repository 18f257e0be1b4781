"""Current weather tool powered by the Tomorrow.io realtime API."""

import json
import os
from typing import Any

import httpx
from pydantic import BaseModel, Field

from relay_agent.config import WeatherToolConfig, get_config
from relay_agent.logging import get_logger
from relay_agent.tools.registry import Tool

log = get_logger(__name__)


class CurrentWeatherArgs(BaseModel):
    """Input parameters for retrieving weather data."""

    city: str = Field(min_length=1, description="The name of the city to fetch current weather data for.")
    reasoning: str | None = Field(
        default=None,
        description=(
            "(Optional) request to explain the reasoning behind the output. "
            'Example: "Explain the factors that led to this conclusion."'
        ),
    )
    reflection: str | None = Field(
        default=None,
        description=(
            "(Optional) request to evaluate your process and output. "
            'Example: "Check for missing or inconsistent data."'
        ),
    )


class CurrentWeatherTool(Tool):
    """Fetch realtime weather for a city."""

    name = "current_weather"
    description = (
        "Fetches current weather information for a given city and returns "
        "detailed weather data in JSON format."
    )
    Args = CurrentWeatherArgs

    def __init__(self, client: httpx.AsyncClient | None = None, config: WeatherToolConfig | None = None):
        self.config = config
        self.client = client or httpx.AsyncClient(
            follow_redirects=True,
            headers={"User-Agent": "Relay Agent/0.1.0 (Weather Tool)"},
        )

    async def invoke(self, tool_args: CurrentWeatherArgs, user_message: str) -> str:
        city = tool_args.city.strip()
        weather_cfg = self.config or get_config().tools.weather
        api_key = (
            weather_cfg.api_key.strip()
            or str(os.environ.get("TOMORROW_WEATHER_API_KEY", "")).strip()
        )
        if not api_key:
            raise RuntimeError(
                "API key for Tomorrow.io is missing. Set tools.weather.api_key in config "
                "or TOMORROW_WEATHER_API_KEY environment variable."
            )

        try:
            response = await self.client.get(
                weather_cfg.base_url,
                params={"location": city, "apikey": api_key},
                headers={"accept": "application/json"},
                timeout=weather_cfg.timeout,
            )
            response.raise_for_status()
            data: Any = response.json()
        except httpx.HTTPStatusError as e:
            log.error("Weather request failed", city=city, status=e.response.status_code)
            raise RuntimeError(f"Failed to fetch weather data: {e.response.status_code}") from e
        except httpx.HTTPError as e:
            log.error("Weather request failed", city=city, error=str(e))
            raise RuntimeError(f"Unable to fetch weather data: {e}") from e

        log.info("Weather data fetched", city=city)
        return json.dumps(data, indent=2)

    async def close(self) -> None:
        """Close HTTP client."""
        await self.client.aclose()
