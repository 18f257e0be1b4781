import pytest
from pydantic import BaseModel, Field

from relay_agent.exceptions import (
    InvalidToolArgumentsError,
    RateLimitExceededError,
    ToolExecutionError,
    ToolNotFoundError,
)
from relay_agent.llm import ToolCall, ToolDefinition
from relay_agent.tools.dispatcher import DispatchResult, ToolDispatcher
from relay_agent.tools.registry import ToolRegistry


class SearchArgs(BaseModel):
    query: str
    num_of_results: int = Field(ge=1)
    reasoning: str | None = None


class NoArgs(BaseModel):
    reasoning: str | None = None


class RecordingHandler:
    def __init__(self, result: str = "42", error: Exception | None = None):
        self.result = result
        self.error = error
        self.calls: list[dict] = []

    async def invoke(self, tool_args, user_message: str) -> str:
        self.calls.append({"tool_args": tool_args, "user_message": user_message})
        if self.error is not None:
            raise self.error
        return self.result


def _dispatcher(handler: RecordingHandler, parameters: type[BaseModel] = SearchArgs) -> ToolDispatcher:
    registry = ToolRegistry()
    registry.register(ToolDefinition(name="search", description="Search", parameters=parameters), handler)
    return ToolDispatcher(registry)


@pytest.mark.asyncio
async def test_dispatch_validates_arguments_and_invokes_handler() -> None:
    handler = RecordingHandler(result="top result")
    dispatcher = _dispatcher(handler)
    request = ToolCall(id="call_1", name="search", arguments='{"query": "nba", "num_of_results": 3}')

    result = await dispatcher.dispatch(request, user_message="who won?")

    assert result == DispatchResult(tool_call_id="call_1", tool_name="search", content="top result")
    assert result.as_message_content() == "top result"
    call = handler.calls[0]
    assert call["tool_args"] == SearchArgs(query="nba", num_of_results=3)
    assert call["user_message"] == "who won?"


@pytest.mark.asyncio
async def test_unregistered_tool_raises_without_invoking_any_handler() -> None:
    handler = RecordingHandler()
    dispatcher = _dispatcher(handler)

    with pytest.raises(ToolNotFoundError):
        await dispatcher.dispatch(ToolCall(id="call_1", name="unknown", arguments="{}"), "hi")

    assert handler.calls == []


@pytest.mark.asyncio
async def test_schema_violation_raises_without_invoking_handler() -> None:
    handler = RecordingHandler()
    dispatcher = _dispatcher(handler)
    request = ToolCall(id="call_1", name="search", arguments='{"query": "nba", "num_of_results": "lots"}')

    with pytest.raises(InvalidToolArgumentsError) as exc_info:
        await dispatcher.dispatch(request, "hi")

    assert "num_of_results" in exc_info.value.detail
    assert handler.calls == []


@pytest.mark.asyncio
async def test_missing_required_field_is_invalid() -> None:
    handler = RecordingHandler()
    dispatcher = _dispatcher(handler)

    with pytest.raises(InvalidToolArgumentsError):
        await dispatcher.dispatch(ToolCall(id="c", name="search", arguments='{"query": "nba"}'), "hi")

    assert handler.calls == []


@pytest.mark.asyncio
@pytest.mark.parametrize("raw", ["{not json", "[1, 2]"])
async def test_malformed_argument_payload_is_invalid(raw: str) -> None:
    handler = RecordingHandler()
    dispatcher = _dispatcher(handler)

    with pytest.raises(InvalidToolArgumentsError):
        await dispatcher.dispatch(ToolCall(id="c", name="search", arguments=raw), "hi")

    assert handler.calls == []


@pytest.mark.asyncio
async def test_empty_arguments_mean_empty_object() -> None:
    handler = RecordingHandler(result="here")
    dispatcher = _dispatcher(handler, parameters=NoArgs)

    result = await dispatcher.dispatch(ToolCall(id="c", name="search", arguments=""), "where am I?")

    assert result.success is True
    assert handler.calls[0]["tool_args"] == NoArgs()


@pytest.mark.asyncio
async def test_capability_failure_becomes_error_result() -> None:
    boom = RuntimeError("upstream exploded")
    handler = RecordingHandler(error=boom)
    dispatcher = _dispatcher(handler)
    request = ToolCall(id="call_9", name="search", arguments='{"query": "q", "num_of_results": 1}')

    result = await dispatcher.dispatch(request, "hi")

    assert result.success is False
    assert result.tool_call_id == "call_9"
    assert result.error == "upstream exploded"
    assert result.as_message_content() == "Error: upstream exploded"
    assert isinstance(result.exception, ToolExecutionError)
    assert result.exception.__cause__ is boom
    assert len(handler.calls) == 1


@pytest.mark.asyncio
async def test_exhausted_rate_limit_surfaces_as_tool_error() -> None:
    handler = RecordingHandler(error=RateLimitExceededError(4))
    dispatcher = _dispatcher(handler)
    request = ToolCall(id="c", name="search", arguments='{"query": "q", "num_of_results": 1}')

    result = await dispatcher.dispatch(request, "hi")

    assert result.success is False
    assert "after 4 attempts" in (result.error or "")


def test_dispatch_result_populates_error_from_content_on_failure() -> None:
    result = DispatchResult(tool_call_id="c", tool_name="t", success=False, content="exit code 1")

    assert result.error == "exit code 1"
