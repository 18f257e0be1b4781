"""Relay Agent - a console AI agent that runs tools on the model's behalf."""

__version__ = "0.1.0"

from relay_agent.agent import Agent, AgentState, TurnResult
from relay_agent.config import Config
from relay_agent.memory import ConversationMemory
from relay_agent.rate_limit import RateLimitedExecutor

__all__ = [
    "Agent",
    "AgentState",
    "Config",
    "ConversationMemory",
    "RateLimitedExecutor",
    "TurnResult",
    "__version__",
]
