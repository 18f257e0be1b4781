"""Configuration management for Relay Agent."""

from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Paths
DEFAULT_CONFIG_PATH = Path("~/.relay-agent/config.yaml").expanduser()
LOCAL_CONFIG_FILENAME = "config.yaml"

DEFAULT_SYSTEM_PROMPT = (
    "You are a helpful AI assistant. Answer the user's questions directly. "
    "When a question needs live data, call exactly one of the available tools, "
    "wait for its result, and then continue. Never make up tool results. "
    "Today's date is {date}."
)


class ModelConfig(BaseModel):
    """Model configuration."""

    provider: Literal["ollama", "openai"] = "ollama"
    model: str = "llama3.1:70b"
    temperature: float = 0.1
    api_key: str = ""
    base_url: str = ""
    parallel_tool_calls: bool = False
    timeout: float = 120.0


class AgentConfig(BaseModel):
    """Orchestration loop configuration."""

    # None runs until the model returns a final answer.
    max_turns: int | None = Field(default=None, ge=1)
    system_prompt: str = DEFAULT_SYSTEM_PROMPT


class RateLimitConfig(BaseModel):
    """Budget for one quota-constrained upstream API."""

    limit: int = Field(default=20, ge=1)
    interval: float = Field(default=90.0, gt=0)
    max_retries: int = Field(default=3, ge=0)
    cooldown: float = Field(default=30.0, ge=0)
    spacing: float = Field(default=3.5, ge=0)


class RateLimitsConfig(BaseModel):
    """Rate limit budgets by upstream API."""

    # balldontlie states 30 requests / 90s; stay well below it.
    balldontlie: RateLimitConfig = Field(default_factory=RateLimitConfig)


class WebSearchToolConfig(BaseModel):
    """Web search tool configuration."""

    api_key: str = ""
    base_url: str = "https://api.search.brave.com/res/v1/web/search"
    timeout: float = 20.0
    safesearch: Literal["off", "moderate", "strict"] = "moderate"
    # Pages fetched for the top results.
    fetch_timeout: float = 30.0
    max_chars_per_page: int = Field(default=4000, ge=1)


class WeatherToolConfig(BaseModel):
    """Weather tool configuration."""

    api_key: str = ""
    base_url: str = "https://api.tomorrow.io/v4/weather/realtime"
    timeout: float = 20.0


class LocationToolConfig(BaseModel):
    """Location tool configuration."""

    base_url: str = "https://ipapi.co/json/"
    timeout: float = 20.0


class NBAToolConfig(BaseModel):
    """NBA statistics tool configuration."""

    api_key: str = ""
    base_url: str = "https://api.balldontlie.io/v1"
    timeout: float = 30.0


class ToolsConfig(BaseModel):
    """Tools configuration."""

    enabled: list[str] = [
        "web_search",
        "current_weather",
        "current_location",
        "nba_teams",
        "nba_players",
        "nba_games",
    ]
    web_search: WebSearchToolConfig = Field(default_factory=WebSearchToolConfig)
    weather: WeatherToolConfig = Field(default_factory=WeatherToolConfig)
    location: LocationToolConfig = Field(default_factory=LocationToolConfig)
    nba: NBAToolConfig = Field(default_factory=NBAToolConfig)


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "WARNING"
    format: Literal["console", "json"] = "console"


class Config(BaseSettings):
    """Main configuration for Relay Agent."""

    model: ModelConfig = Field(default_factory=ModelConfig)
    agent: AgentConfig = Field(default_factory=AgentConfig)
    rate_limits: RateLimitsConfig = Field(default_factory=RateLimitsConfig)
    tools: ToolsConfig = Field(default_factory=ToolsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = SettingsConfigDict(
        env_prefix="RELAY_",
        env_file=".env",
        env_nested_delimiter="__",
        extra="ignore",
    )

    @classmethod
    def resolve_default_config_path(cls) -> Path:
        """Resolve default config path with local-first precedence."""
        local_path = Path.cwd() / LOCAL_CONFIG_FILENAME
        if local_path.exists():
            return local_path
        return DEFAULT_CONFIG_PATH

    @classmethod
    def from_yaml(cls, path: Path | str | None = None) -> "Config":
        """Load configuration from YAML file."""
        config_path = Path(path).expanduser() if path else cls.resolve_default_config_path()

        if not config_path.exists():
            return cls()

        with open(config_path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        return cls(**data)

    @classmethod
    def load(cls) -> "Config":
        """Load configuration; environment variables fill what YAML leaves unset."""
        return cls.from_yaml()


# Global config instance
_config: Config | None = None


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = Config.load()
    return _config


def set_config(config: Config) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config
