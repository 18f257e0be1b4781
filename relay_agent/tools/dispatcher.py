"""Bridge model-issued tool calls to registered capabilities."""

import json

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from relay_agent.exceptions import InvalidToolArgumentsError, ToolExecutionError
from relay_agent.llm import ToolCall
from relay_agent.logging import get_logger
from relay_agent.tools.registry import ToolRegistry

log = get_logger(__name__)


class DispatchResult(BaseModel):
    """Outcome of one tool call, ready to become a ``tool`` message."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    tool_call_id: str
    tool_name: str
    success: bool = True
    content: str = ""
    error: str | None = None
    exception: ToolExecutionError | None = Field(default=None, exclude=True, repr=False)

    @model_validator(mode="after")
    def _normalize_failure_error(self) -> "DispatchResult":
        """Ensure failed results always provide an error message."""
        if not self.success and not (self.error or "").strip():
            fallback = (self.content or "").strip()
            self.error = fallback or "Tool execution failed"
        return self

    def as_message_content(self) -> str:
        """Text stored in the conversation for this result."""
        return self.content if self.success else f"Error: {self.error}"


def _format_validation_error(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(loc) for loc in item.get("loc", ())) or "arguments"
        parts.append(f"{location}: {item.get('msg', 'invalid value')}")
    return "; ".join(parts)


class ToolDispatcher:
    """Resolve, validate and invoke tool calls against a registry."""

    def __init__(self, registry: ToolRegistry):
        self.registry = registry

    def parse_arguments(self, request: ToolCall, args_model: type[BaseModel]) -> BaseModel:
        """Decode the raw argument text and validate it against the tool schema."""
        raw = (request.arguments or "").strip() or "{}"
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as e:
            raise InvalidToolArgumentsError(request.name, f"arguments are not valid JSON ({e.msg})") from e
        if not isinstance(payload, dict):
            raise InvalidToolArgumentsError(request.name, "arguments must be a JSON object")
        try:
            return args_model.model_validate(payload)
        except ValidationError as e:
            raise InvalidToolArgumentsError(request.name, _format_validation_error(e)) from e

    async def dispatch(self, request: ToolCall, user_message: str) -> DispatchResult:
        """Run one tool call.

        Args:
            request: Tool call taken from an assistant message
            user_message: User text that started the turn

        Returns:
            DispatchResult; capability failures come back with ``success=False``

        Raises:
            ToolNotFoundError: no tool registered under ``request.name``
            InvalidToolArgumentsError: arguments are malformed or violate the schema
        """
        entry = self.registry.get(request.name)
        tool_args = self.parse_arguments(request, entry.definition.parameters)

        log.info("Running tool", tool=request.name, call_id=request.id)
        try:
            output = await entry.capability.invoke(tool_args=tool_args, user_message=user_message)
        except Exception as e:
            error = ToolExecutionError(request.name, str(e) or type(e).__name__)
            error.__cause__ = e
            log.error("Tool execution failed", tool=request.name, call_id=request.id, error=str(e))
            return DispatchResult(
                tool_call_id=request.id,
                tool_name=request.name,
                success=False,
                error=error.reason,
                exception=error,
            )

        content = output if isinstance(output, str) else json.dumps(output, indent=2, default=str)
        log.info("Tool executed", tool=request.name, call_id=request.id, chars=len(content))
        return DispatchResult(tool_call_id=request.id, tool_name=request.name, content=content)
