"""Tool registry and base tool class."""

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, ClassVar, Protocol, runtime_checkable

from pydantic import BaseModel

from relay_agent.exceptions import ConfigurationError, DuplicateToolError, ToolNotFoundError
from relay_agent.llm import ToolDefinition
from relay_agent.logging import get_logger

log = get_logger(__name__)


@runtime_checkable
class Capability(Protocol):
    """Anything the dispatcher can invoke on the model's behalf."""

    async def invoke(self, tool_args: Any, user_message: str) -> str:
        ...


class FunctionCapability:
    """Adapt a plain ``async def fn(*, tool_args, user_message)`` to a Capability."""

    def __init__(self, fn: Callable[..., Awaitable[str]]):
        self._fn = fn

    async def invoke(self, tool_args: Any, user_message: str) -> str:
        return await self._fn(tool_args=tool_args, user_message=user_message)

    def __repr__(self) -> str:
        return f"FunctionCapability({getattr(self._fn, '__name__', self._fn)!r})"


class Tool(ABC):
    """Base class for bundled tools.

    Subclasses set ``name``, ``description`` and ``Args`` (a pydantic model for
    the arguments) and implement ``invoke``.
    """

    name: ClassVar[str] = ""
    description: ClassVar[str] = ""
    Args: ClassVar[type[BaseModel]]

    @abstractmethod
    async def invoke(self, tool_args: Any, user_message: str) -> str:
        """Run the tool.

        Args:
            tool_args: Validated ``Args`` instance
            user_message: The user text that started the current turn

        Returns:
            Textual (usually JSON) result shown to the model
        """
        pass

    def get_definition(self) -> ToolDefinition:
        """Get the tool definition for the LLM."""
        return ToolDefinition(name=self.name, description=self.description, parameters=self.Args)


@dataclass(frozen=True)
class RegisteredTool:
    """A definition paired with the capability that serves it."""

    definition: ToolDefinition
    capability: Capability

    @property
    def name(self) -> str:
        return self.definition.name


class ToolRegistry:
    """Registry for managing available tools.

    Filled once at startup; lookups afterwards are read-only.
    """

    def __init__(self) -> None:
        self._tools: dict[str, RegisteredTool] = {}

    def register(
        self,
        definition: ToolDefinition,
        handler: Capability | Callable[..., Awaitable[str]],
    ) -> None:
        """Register a tool.

        Args:
            definition: Name, description and argument model
            handler: Capability, or an async function taking ``tool_args`` and ``user_message``

        Raises:
            ConfigurationError: empty or padded name, or unusable handler
            DuplicateToolError: the name is already registered
        """
        name = (definition.name or "").strip()
        if not name:
            raise ConfigurationError("Tool must have a name")
        if name != definition.name:
            raise ConfigurationError(f"Tool name has surrounding whitespace: {definition.name!r}")
        if name in self._tools:
            raise DuplicateToolError(name)

        if isinstance(handler, Capability):
            capability = handler
        elif callable(handler):
            capability = FunctionCapability(handler)
        else:
            raise ConfigurationError(f"Tool '{name}' handler is not callable")

        log.debug("Registering tool", tool=name)
        self._tools[name] = RegisteredTool(definition=definition, capability=capability)

    def register_tool(self, tool: Tool) -> None:
        """Register a Tool instance as both definition and capability."""
        self.register(tool.get_definition(), tool)

    def has_tool(self, name: str) -> bool:
        """Return whether a tool name is currently registered."""
        return name in self._tools

    def get(self, name: str) -> RegisteredTool:
        """Get a registered tool by name.

        Raises:
            ToolNotFoundError if not found
        """
        try:
            return self._tools[name]
        except KeyError:
            raise ToolNotFoundError(name) from None

    def resolve(self, name: str) -> Capability:
        """Get the capability registered under a name."""
        return self.get(name).capability

    def list_tools(self) -> list[str]:
        """List registered tool names in registration order."""
        return list(self._tools)

    def get_definitions(self) -> list[ToolDefinition]:
        """Get all tool definitions for the LLM."""
        return [entry.definition for entry in self._tools.values()]

    def __len__(self) -> int:
        return len(self._tools)
