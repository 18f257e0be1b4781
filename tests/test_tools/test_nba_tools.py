import asyncio
import json

import httpx
import pytest

from relay_agent.config import NBAToolConfig
from relay_agent.exceptions import RateLimitExceededError
from relay_agent.rate_limit import RateLimitedExecutor
from relay_agent.tools.nba import (
    BallDontLieClient,
    NBAGamesArgs,
    NBAGamesTool,
    NBAPlayersArgs,
    NBAPlayersTool,
    NBATeamsArgs,
    NBATeamsTool,
)


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, delay: float) -> None:
        self.sleeps.append(delay)
        self.now += delay
        await asyncio.sleep(0)


class _FakeClient:
    def __init__(self, *responses: tuple[int, object]):
        self.responses = list(responses)
        self.calls: list[dict] = []

    async def get(self, url: str, **kwargs):
        self.calls.append({"url": url, **kwargs})
        status, payload = self.responses.pop(0)
        return httpx.Response(status, json=payload, request=httpx.Request("GET", url))


def _api(client: _FakeClient, clock: FakeClock | None = None, api_key: str = "bdl-key") -> BallDontLieClient:
    clock = clock or FakeClock()
    executor = RateLimitedExecutor(clock=clock, sleep=clock.sleep, name="balldontlie")
    return BallDontLieClient(executor, api_key=api_key, config=NBAToolConfig(), client=client)


@pytest.mark.asyncio
async def test_teams_tool_passes_filters_and_auth_header():
    client = _FakeClient((200, {"data": [{"id": 14, "full_name": "Los Angeles Lakers"}]}))
    tool = NBATeamsTool(_api(client))

    result = await tool.invoke(NBATeamsArgs(division="Pacific"), "pacific teams?")

    assert json.loads(result)["data"][0]["full_name"] == "Los Angeles Lakers"
    call = client.calls[0]
    assert call["url"] == "https://api.balldontlie.io/v1/teams"
    assert call["params"] == {"division": "Pacific"}
    assert call["headers"]["Authorization"] == "bdl-key"


@pytest.mark.asyncio
async def test_single_team_lookup_uses_id_path():
    client = _FakeClient((200, {"data": {"id": 10}}))
    tool = NBATeamsTool(_api(client))

    await tool.invoke(NBATeamsArgs(team_id=10), "")

    assert client.calls[0]["url"] == "https://api.balldontlie.io/v1/teams/10"
    assert client.calls[0]["params"] == {}


@pytest.mark.asyncio
async def test_players_tool_uses_bracketed_list_params():
    client = _FakeClient((200, {"data": [], "meta": {"next_cursor": None}}))
    tool = NBAPlayersTool(_api(client))

    await tool.invoke(NBAPlayersArgs(search="curry", team_ids=[10, 14], per_page=5), "")

    assert client.calls[0]["params"] == {"search": "curry", "team_ids[]": [10, 14], "per_page": 5}


@pytest.mark.asyncio
async def test_games_tool_filters_by_date_and_season():
    client = _FakeClient((200, {"data": [{"id": 1, "home_team_score": 110}]}))
    tool = NBAGamesTool(_api(client))

    await tool.invoke(NBAGamesArgs(dates=["2024-01-05"], seasons=[2023], postseason=False), "")

    assert client.calls[0]["url"] == "https://api.balldontlie.io/v1/games"
    assert client.calls[0]["params"] == {
        "per_page": 25,
        "dates[]": ["2024-01-05"],
        "seasons[]": [2023],
        "postseason": False,
    }


@pytest.mark.asyncio
async def test_rate_limited_response_is_retried_after_cooldown():
    clock = FakeClock()
    client = _FakeClient((429, {"error": "Too many requests"}), (200, {"data": {"id": 7}}))
    tool = NBAGamesTool(_api(client, clock))

    result = await tool.invoke(NBAGamesArgs(game_id=7), "")

    assert json.loads(result) == {"data": {"id": 7}}
    assert len(client.calls) == 2
    assert 30.0 in clock.sleeps


@pytest.mark.asyncio
async def test_persistent_rate_limiting_gives_up():
    clock = FakeClock()
    client = _FakeClient(*[(429, {"error": "Too many requests"})] * 4)
    tool = NBAPlayersTool(_api(client, clock))

    with pytest.raises(RateLimitExceededError):
        await tool.invoke(NBAPlayersArgs(player_id=115), "")

    assert len(client.calls) == 4


@pytest.mark.asyncio
async def test_server_errors_are_not_retried():
    client = _FakeClient((500, {"error": "boom"}))
    tool = NBATeamsTool(_api(client))

    with pytest.raises(httpx.HTTPStatusError):
        await tool.invoke(NBATeamsArgs(), "")

    assert len(client.calls) == 1


@pytest.mark.asyncio
async def test_missing_api_key_fails_before_request(monkeypatch):
    monkeypatch.delenv("BALLDONTLIE_API_KEY", raising=False)
    client = _FakeClient()
    tool = NBATeamsTool(_api(client, api_key=""))

    with pytest.raises(RuntimeError, match="Missing balldontlie API key"):
        await tool.invoke(NBATeamsArgs(), "")

    assert client.calls == []
