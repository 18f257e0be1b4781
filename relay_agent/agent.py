"""Tool-calling agent loop."""

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from relay_agent.exceptions import LLMError, TurnBudgetExceededError
from relay_agent.llm import LLMProvider, Message, ToolCall
from relay_agent.logging import get_logger
from relay_agent.memory import ConversationMemory
from relay_agent.tools.dispatcher import ToolDispatcher
from relay_agent.tools.registry import ToolRegistry

log = get_logger(__name__)


class AgentState(str, Enum):
    """Where a turn currently is."""

    AWAITING_MODEL = "awaiting_model"
    EXECUTING_TOOL = "executing_tool"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class TurnResult:
    """Final state of a turn and the full conversation after it."""

    state: AgentState
    messages: tuple[Message, ...]
    iterations: int

    @property
    def answer(self) -> str:
        """Content of the final assistant message."""
        for msg in reversed(self.messages):
            if msg.role == "assistant" and msg.content:
                return msg.content
        return ""


class Agent:
    """Drive one user turn through model calls and tool calls.

    The turn alternates between asking the provider for the next message and
    running the single tool it asks for, until the provider answers with
    content. Every message goes through ``memory`` in causal order.
    """

    def __init__(
        self,
        provider: LLMProvider,
        registry: ToolRegistry,
        memory: ConversationMemory | None = None,
        max_turns: int | None = None,
        status_callback: Callable[[str], None] | None = None,
    ):
        if max_turns is not None and max_turns < 1:
            raise ValueError("max_turns must be at least 1 or None")
        self.provider = provider
        self.registry = registry
        self.dispatcher = ToolDispatcher(registry)
        self.memory = memory if memory is not None else ConversationMemory()
        self.max_turns = max_turns
        self.status_callback = status_callback
        self.state = AgentState.DONE

    def _set_status(self, status: str) -> None:
        if self.status_callback:
            self.status_callback(status)

    async def _await_model(self) -> ToolCall | None:
        """Ask the provider for the next message; return the tool call to run, if any."""
        messages = await self.memory.read_all()
        try:
            response = await self.provider.complete(messages, self.registry.get_definitions())
        except LLMError:
            raise
        except Exception as e:
            raise LLMError(f"LLM call failed: {e}") from e

        if response.role != "assistant":
            raise LLMError(f"LLM returned a '{response.role}' message")

        if response.content:
            if response.tool_calls:
                # An answer ends the turn; unanswered tool calls must not reach the log.
                log.warning("Ignoring tool calls sent alongside content", count=len(response.tool_calls))
                response = Message.assistant(response.content)
            await self.memory.append([response])
            return None

        if not response.tool_calls:
            raise LLMError("LLM returned neither content nor tool calls")

        await self.memory.append([response])
        if len(response.tool_calls) > 1:
            log.warning(
                "Model requested several tools; only the first is run",
                requested=[tc.name for tc in response.tool_calls],
            )
        return response.tool_calls[0]

    async def _execute_tool(self, tool_call: ToolCall, user_message: str) -> None:
        self._set_status(f"Running tool: {tool_call.name}")
        result = await self.dispatcher.dispatch(tool_call, user_message)
        await self.memory.save_tool_response(tool_call.id, result.as_message_content())
        self._set_status(f"Tool {tool_call.name} finished running...")

    async def run(self, user_message: str) -> TurnResult:
        """Run a full turn for one user message.

        Returns:
            TurnResult in state DONE with the whole conversation

        Raises:
            ToolNotFoundError, InvalidToolArgumentsError: the model asked for
                something the registry cannot serve
            LLMError: the provider call failed or returned nothing usable
            TurnBudgetExceededError: ``max_turns`` model calls without an answer
        """
        await self.memory.append([Message.user(user_message)])
        self.state = AgentState.AWAITING_MODEL
        self._set_status("Thinking...")
        iterations = 0
        pending: ToolCall | None = None

        try:
            while self.state not in (AgentState.DONE, AgentState.FAILED):
                if self.state is AgentState.AWAITING_MODEL:
                    if self.max_turns is not None and iterations >= self.max_turns:
                        raise TurnBudgetExceededError(self.max_turns)
                    iterations += 1
                    log.debug("Calling model", iteration=iterations)
                    pending = await self._await_model()
                    self.state = AgentState.DONE if pending is None else AgentState.EXECUTING_TOOL
                elif self.state is AgentState.EXECUTING_TOOL:
                    assert pending is not None
                    await self._execute_tool(pending, user_message)
                    pending = None
                    self.state = AgentState.AWAITING_MODEL
                    self._set_status("Thinking...")
        except Exception as e:
            self.state = AgentState.FAILED
            log.error("Turn failed", error=str(e), iterations=iterations)
            raise

        log.info("Turn complete", iterations=iterations)
        return TurnResult(
            state=self.state,
            messages=await self.memory.read_all(),
            iterations=iterations,
        )
