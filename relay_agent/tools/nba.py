"""NBA statistics tools backed by the balldontlie API.

balldontlie allows 30 requests per 90 seconds on the free tier, so every
request from every NBA tool goes through one shared RateLimitedExecutor.
"""

import json
import os
from typing import Any

import httpx
from pydantic import BaseModel, Field

from relay_agent.config import NBAToolConfig, get_config
from relay_agent.logging import get_logger
from relay_agent.rate_limit import RateLimitedExecutor
from relay_agent.tools.registry import Tool

log = get_logger(__name__)


def _clean_params(params: dict[str, Any]) -> dict[str, Any]:
    """Drop unset filters and use the bracketed names balldontlie expects for lists."""
    cleaned: dict[str, Any] = {}
    for key, value in params.items():
        if value is None or value == []:
            continue
        cleaned[f"{key}[]" if isinstance(value, list) else key] = value
    return cleaned


class BallDontLieClient:
    """Thin async client for the balldontlie NBA endpoints."""

    def __init__(
        self,
        executor: RateLimitedExecutor,
        api_key: str = "",
        config: NBAToolConfig | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        cfg = config or get_config().tools.nba
        self.executor = executor
        self.api_key = api_key or cfg.api_key or str(os.environ.get("BALLDONTLIE_API_KEY", "")).strip()
        self.base_url = cfg.base_url.rstrip("/")
        self.timeout = cfg.timeout
        self.client = client or httpx.AsyncClient(
            follow_redirects=True,
            headers={"User-Agent": "Relay Agent/0.1.0 (NBA Tool)"},
        )

    async def _request(self, path: str, params: dict[str, Any]) -> Any:
        response = await self.client.get(
            f"{self.base_url}{path}",
            params=params,
            headers={"Authorization": self.api_key, "Accept": "application/json"},
            timeout=self.timeout,
        )
        response.raise_for_status()
        return response.json()

    async def get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """GET an endpoint through the shared rate limiter."""
        if not self.api_key:
            raise RuntimeError(
                "Missing balldontlie API key. Set tools.nba.api_key in config "
                "or BALLDONTLIE_API_KEY environment variable."
            )
        cleaned = _clean_params(params or {})
        log.debug("balldontlie request", path=path, params=cleaned)
        return await self.executor.execute(lambda: self._request(path, cleaned))

    async def get_teams(self, division: str | None = None, conference: str | None = None) -> Any:
        return await self.get("/teams", {"division": division, "conference": conference})

    async def get_team(self, team_id: int) -> Any:
        return await self.get(f"/teams/{team_id}")

    async def get_players(
        self,
        search: str | None = None,
        first_name: str | None = None,
        last_name: str | None = None,
        team_ids: list[int] | None = None,
        player_ids: list[int] | None = None,
        cursor: int | None = None,
        per_page: int | None = None,
    ) -> Any:
        return await self.get(
            "/players",
            {
                "search": search,
                "first_name": first_name,
                "last_name": last_name,
                "team_ids": team_ids,
                "player_ids": player_ids,
                "cursor": cursor,
                "per_page": per_page,
            },
        )

    async def get_player(self, player_id: int) -> Any:
        return await self.get(f"/players/{player_id}")

    async def get_games(
        self,
        cursor: int | None = None,
        per_page: int | None = None,
        dates: list[str] | None = None,
        seasons: list[int] | None = None,
        team_ids: list[int] | None = None,
        postseason: bool | None = None,
        start_date: str | None = None,
        end_date: str | None = None,
    ) -> Any:
        return await self.get(
            "/games",
            {
                "cursor": cursor,
                "per_page": per_page,
                "dates": dates,
                "seasons": seasons,
                "team_ids": team_ids,
                "postseason": postseason,
                "start_date": start_date,
                "end_date": end_date,
            },
        )

    async def get_game(self, game_id: int) -> Any:
        return await self.get(f"/games/{game_id}")

    async def close(self) -> None:
        """Close HTTP client."""
        await self.client.aclose()


class NBATeamsArgs(BaseModel):
    """Filters for NBA team lookups."""

    team_id: int | None = Field(default=None, ge=1, description="Return only this team.")
    division: str | None = Field(default=None, description='Division name. Example: "Pacific".')
    conference: str | None = Field(default=None, description='Conference: "East" or "West".')


class NBAPlayersArgs(BaseModel):
    """Filters for NBA player lookups."""

    player_id: int | None = Field(default=None, ge=1, description="Return only this player.")
    search: str | None = Field(default=None, description='Matches first or last name. Example: "curry".')
    first_name: str | None = None
    last_name: str | None = None
    team_ids: list[int] = Field(default_factory=list, description="Restrict to these team ids.")
    cursor: int | None = Field(default=None, description="Pagination cursor from a previous response.")
    per_page: int = Field(default=25, ge=1, le=100)


class NBAGamesArgs(BaseModel):
    """Filters for NBA game lookups."""

    game_id: int | None = Field(default=None, ge=1, description="Return only this game.")
    dates: list[str] = Field(default_factory=list, description='Game dates as YYYY-MM-DD. Example: ["2024-01-05"].')
    seasons: list[int] = Field(default_factory=list, description="Season start years. Example: [2023].")
    team_ids: list[int] = Field(default_factory=list, description="Restrict to games of these team ids.")
    postseason: bool | None = None
    start_date: str | None = Field(default=None, description="Earliest game date, YYYY-MM-DD.")
    end_date: str | None = Field(default=None, description="Latest game date, YYYY-MM-DD.")
    cursor: int | None = None
    per_page: int = Field(default=25, ge=1, le=100)


class _BallDontLieTool(Tool):
    def __init__(self, api: BallDontLieClient):
        self.api = api


class NBATeamsTool(_BallDontLieTool):
    """List NBA teams or fetch one team."""

    name = "nba_teams"
    description = "Looks up NBA teams, optionally filtered by division or conference, and returns JSON."
    Args = NBATeamsArgs

    async def invoke(self, tool_args: NBATeamsArgs, user_message: str) -> str:
        if tool_args.team_id is not None:
            data = await self.api.get_team(tool_args.team_id)
        else:
            data = await self.api.get_teams(division=tool_args.division, conference=tool_args.conference)
        return json.dumps(data, indent=2)


class NBAPlayersTool(_BallDontLieTool):
    """Search NBA players or fetch one player."""

    name = "nba_players"
    description = "Searches NBA players by name or team, or fetches one player by id, and returns JSON."
    Args = NBAPlayersArgs

    async def invoke(self, tool_args: NBAPlayersArgs, user_message: str) -> str:
        if tool_args.player_id is not None:
            data = await self.api.get_player(tool_args.player_id)
        else:
            data = await self.api.get_players(
                search=tool_args.search,
                first_name=tool_args.first_name,
                last_name=tool_args.last_name,
                team_ids=tool_args.team_ids,
                cursor=tool_args.cursor,
                per_page=tool_args.per_page,
            )
        return json.dumps(data, indent=2)


class NBAGamesTool(_BallDontLieTool):
    """Find NBA games and scores."""

    name = "nba_games"
    description = (
        "Finds NBA games and final scores by date, season or team, or fetches one game by id, "
        "and returns JSON."
    )
    Args = NBAGamesArgs

    async def invoke(self, tool_args: NBAGamesArgs, user_message: str) -> str:
        if tool_args.game_id is not None:
            data = await self.api.get_game(tool_args.game_id)
        else:
            data = await self.api.get_games(
                cursor=tool_args.cursor,
                per_page=tool_args.per_page,
                dates=tool_args.dates,
                seasons=tool_args.seasons,
                team_ids=tool_args.team_ids,
                postseason=tool_args.postseason,
                start_date=tool_args.start_date,
                end_date=tool_args.end_date,
            )
        return json.dumps(data, indent=2)
