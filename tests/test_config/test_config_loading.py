from pathlib import Path

import pytest
from pydantic import ValidationError

import relay_agent.config as config_module
from relay_agent.config import Config


def test_defaults_match_local_ollama_setup(monkeypatch, tmp_path: Path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(config_module, "DEFAULT_CONFIG_PATH", tmp_path / "missing.yaml")

    cfg = Config.load()

    assert cfg.model.provider == "ollama"
    assert cfg.model.model == "llama3.1:70b"
    assert cfg.model.temperature == 0.1
    assert cfg.model.parallel_tool_calls is False
    assert cfg.agent.max_turns is None
    assert "{date}" in cfg.agent.system_prompt
    limits = cfg.rate_limits.balldontlie
    assert (limits.limit, limits.interval, limits.max_retries) == (20, 90.0, 3)
    assert (limits.cooldown, limits.spacing) == (30.0, 3.5)
    assert cfg.tools.enabled[:3] == ["web_search", "current_weather", "current_location"]


def test_load_prefers_local_config_yaml(monkeypatch, tmp_path: Path):
    monkeypatch.chdir(tmp_path)

    home_cfg = tmp_path / "home_config.yaml"
    home_cfg.write_text("model:\n  model: llama3.2\n", encoding="utf-8")
    monkeypatch.setattr(config_module, "DEFAULT_CONFIG_PATH", home_cfg)

    local_cfg = tmp_path / "config.yaml"
    local_cfg.write_text(
        (
            "model:\n"
            "  provider: openai\n"
            "  model: gpt-4o-mini\n"
            "rate_limits:\n"
            "  balldontlie:\n"
            "    limit: 5\n"
        ),
        encoding="utf-8",
    )

    cfg = Config.load()

    assert cfg.model.provider == "openai"
    assert cfg.model.model == "gpt-4o-mini"
    assert cfg.rate_limits.balldontlie.limit == 5
    assert cfg.rate_limits.balldontlie.interval == 90.0


def test_load_falls_back_to_default_path_when_no_local(monkeypatch, tmp_path: Path):
    monkeypatch.chdir(tmp_path)

    home_cfg = tmp_path / "home_config.yaml"
    home_cfg.write_text("agent:\n  max_turns: 8\n", encoding="utf-8")
    monkeypatch.setattr(config_module, "DEFAULT_CONFIG_PATH", home_cfg)

    cfg = Config.load()

    assert cfg.agent.max_turns == 8


def test_environment_overrides_nested_settings(monkeypatch, tmp_path: Path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(config_module, "DEFAULT_CONFIG_PATH", tmp_path / "missing.yaml")
    monkeypatch.setenv("RELAY_MODEL__MODEL", "qwen2.5:14b")
    monkeypatch.setenv("RELAY_TOOLS__WEATHER__API_KEY", "env-weather-key")

    cfg = Config.load()

    assert cfg.model.model == "qwen2.5:14b"
    assert cfg.tools.weather.api_key == "env-weather-key"


def test_invalid_turn_budget_is_rejected(monkeypatch, tmp_path: Path):
    monkeypatch.chdir(tmp_path)
    local_cfg = tmp_path / "config.yaml"
    local_cfg.write_text("agent:\n  max_turns: 0\n", encoding="utf-8")

    with pytest.raises(ValidationError):
        Config.load()
