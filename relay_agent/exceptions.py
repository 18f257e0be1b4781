"""Custom exceptions for Relay Agent."""


class RelayAgentError(Exception):
    """Base exception for Relay Agent."""

    pass


class ConfigurationError(RelayAgentError):
    """Configuration-related errors."""

    pass


class DuplicateToolError(ConfigurationError):
    """A tool name was registered twice."""

    def __init__(self, tool_name: str):
        super().__init__(f"Tool already registered: {tool_name}")
        self.tool_name = tool_name


class LLMError(RelayAgentError):
    """LLM provider call failed (network, auth, malformed response)."""

    pass


class LLMAPIError(LLMError):
    """LLM API errors (rate limit, auth, etc.)."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ToolError(RelayAgentError):
    """Tool execution errors."""

    pass


class ToolNotFoundError(ToolError):
    """Tool not found in registry."""

    def __init__(self, tool_name: str):
        super().__init__(f"Tool not found: {tool_name}")
        self.tool_name = tool_name


class InvalidToolArgumentsError(ToolError):
    """Tool arguments failed schema validation."""

    def __init__(self, tool_name: str, detail: str):
        super().__init__(f"Invalid arguments for tool '{tool_name}': {detail}")
        self.tool_name = tool_name
        self.detail = detail


class ToolExecutionError(ToolError):
    """Tool execution failed."""

    def __init__(self, tool_name: str, message: str):
        super().__init__(f"Error running tool {tool_name}: {message}")
        self.tool_name = tool_name
        self.reason = message


class RateLimitError(RelayAgentError):
    """An upstream API rejected a request with "too many requests"."""

    status_code = 429


class RateLimitExceededError(RelayAgentError):
    """Rate-limit retries were exhausted."""

    def __init__(self, attempts: int):
        super().__init__(f"Rate limit still exceeded after {attempts} attempts")
        self.attempts = attempts


class ConversationError(RelayAgentError):
    """Conversation memory errors."""

    pass


class ConversationOrderError(ConversationError):
    """An append would break message ordering or tool-call correlation."""

    pass


class TurnBudgetExceededError(RelayAgentError):
    """The model kept requesting tools past the turn budget."""

    def __init__(self, max_turns: int):
        super().__init__(f"No final answer after {max_turns} model calls")
        self.max_turns = max_turns
