"""Tools package for Relay Agent."""

from relay_agent.config import Config, get_config
from relay_agent.exceptions import ConfigurationError
from relay_agent.rate_limit import RateLimitedExecutor
from relay_agent.tools.dispatcher import DispatchResult, ToolDispatcher
from relay_agent.tools.location import CurrentLocationTool
from relay_agent.tools.nba import BallDontLieClient, NBAGamesTool, NBAPlayersTool, NBATeamsTool
from relay_agent.tools.registry import Capability, FunctionCapability, RegisteredTool, Tool, ToolRegistry
from relay_agent.tools.weather import CurrentWeatherTool
from relay_agent.tools.web_search import WebSearchTool


def build_default_registry(config: Config | None = None) -> ToolRegistry:
    """Register the bundled tools named in ``tools.enabled``.

    All NBA tools share one balldontlie client and therefore one rate limiter.
    """
    cfg = config or get_config()
    enabled = list(dict.fromkeys(cfg.tools.enabled))
    registry = ToolRegistry()

    nba_client: BallDontLieClient | None = None

    def nba() -> BallDontLieClient:
        nonlocal nba_client
        if nba_client is None:
            executor = RateLimitedExecutor.from_config(cfg.rate_limits.balldontlie, name="balldontlie")
            nba_client = BallDontLieClient(executor, config=cfg.tools.nba)
        return nba_client

    factories = {
        WebSearchTool.name: lambda: WebSearchTool(config=cfg.tools.web_search),
        CurrentWeatherTool.name: lambda: CurrentWeatherTool(config=cfg.tools.weather),
        CurrentLocationTool.name: lambda: CurrentLocationTool(config=cfg.tools.location),
        NBATeamsTool.name: lambda: NBATeamsTool(nba()),
        NBAPlayersTool.name: lambda: NBAPlayersTool(nba()),
        NBAGamesTool.name: lambda: NBAGamesTool(nba()),
    }
    for name in enabled:
        factory = factories.get(name)
        if factory is None:
            raise ConfigurationError(f"Unknown tool in tools.enabled: {name}")
        registry.register_tool(factory())
    return registry


__all__ = [
    "BallDontLieClient",
    "Capability",
    "CurrentLocationTool",
    "CurrentWeatherTool",
    "DispatchResult",
    "FunctionCapability",
    "NBAGamesTool",
    "NBAPlayersTool",
    "NBATeamsTool",
    "RegisteredTool",
    "Tool",
    "ToolDispatcher",
    "ToolRegistry",
    "WebSearchTool",
    "build_default_registry",
]
