"""OpenAI-compatible chat provider - direct HTTP calls to /chat/completions."""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date
from typing import Any, Literal

import httpx
from pydantic import BaseModel

from relay_agent.exceptions import LLMAPIError, LLMError
from relay_agent.logging import get_logger

log = get_logger(__name__)


OLLAMA_OPENAI_BASE_URL = "http://localhost:11434/v1"
OPENAI_BASE_URL = "https://api.openai.com/v1"

Role = Literal["user", "assistant", "tool"]


@dataclass(frozen=True)
class ToolCall:
    """A tool call requested by the LLM.

    ``arguments`` is the raw JSON text from the provider; it is only parsed
    and validated by the dispatcher.
    """

    id: str
    name: str
    arguments: str = ""


@dataclass(frozen=True)
class Message:
    """A message in the conversation."""

    role: Role
    content: str | None = None
    tool_call_id: str | None = None
    tool_calls: tuple[ToolCall, ...] = ()

    @classmethod
    def user(cls, content: str) -> "Message":
        return cls(role="user", content=content)

    @classmethod
    def assistant(cls, content: str | None, tool_calls: tuple[ToolCall, ...] = ()) -> "Message":
        return cls(role="assistant", content=content, tool_calls=tuple(tool_calls))

    @classmethod
    def tool(cls, tool_call_id: str, content: str) -> "Message":
        return cls(role="tool", content=content, tool_call_id=tool_call_id)


@dataclass(frozen=True)
class ToolDefinition:
    """Definition of a tool for the LLM."""

    name: str
    description: str
    parameters: type[BaseModel]

    def parameter_schema(self) -> dict[str, Any]:
        """JSON Schema of the tool arguments."""
        return self.parameters.model_json_schema()


class LLMProvider(ABC):
    """Abstract base class for LLM providers."""

    @abstractmethod
    async def complete(
        self,
        messages: list[Message] | tuple[Message, ...],
        tools: list[ToolDefinition] | None = None,
    ) -> Message:
        """Return the next assistant message for the conversation."""
        pass


class OpenAICompatibleProvider(LLMProvider):
    """Chat-completions provider for OpenAI and Ollama's /v1 endpoint."""

    def __init__(
        self,
        model: str = "llama3.1:70b",
        base_url: str = OLLAMA_OPENAI_BASE_URL,
        temperature: float = 0.1,
        api_key: str | None = None,
        parallel_tool_calls: bool = False,
        system_prompt: str = "",
        timeout: float = 120.0,
    ):
        """Initialize the provider.

        Args:
            model: Model name (e.g. 'gpt-4o-mini', 'llama3.1:70b')
            base_url: API base URL, up to and including ``/v1``
            temperature: Sampling temperature
            api_key: Bearer token; local Ollama does not need one
            parallel_tool_calls: Let the model request several tools at once
            system_prompt: Prepended to every request; ``{date}`` is filled in
            timeout: HTTP timeout in seconds
        """
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.temperature = temperature
        self.api_key = api_key
        self.parallel_tool_calls = parallel_tool_calls
        self.system_prompt = system_prompt

        self.client = httpx.AsyncClient(
            timeout=timeout,
            follow_redirects=True,
        )

    def _convert_messages(self, messages: list[Message] | tuple[Message, ...]) -> list[dict[str, Any]]:
        """Convert messages to chat-completions format.

        Tool calls without a ``tool`` reply (left by a failed turn, or extra
        calls that were never run) are not sent; the API rejects them.
        """
        result: list[dict[str, Any]] = []
        if self.system_prompt:
            prompt = self.system_prompt.replace("{date}", date.today().isoformat())
            result.append({"role": "system", "content": prompt})

        answered = {msg.tool_call_id for msg in messages if msg.role == "tool"}
        for msg in messages:
            if msg.role == "tool":
                result.append({
                    "role": "tool",
                    "tool_call_id": msg.tool_call_id,
                    "content": msg.content or "",
                })
            elif msg.role == "assistant" and msg.tool_calls:
                calls = [tc for tc in msg.tool_calls if tc.id in answered]
                if len(calls) < len(msg.tool_calls):
                    log.debug(
                        "Dropping unanswered tool calls",
                        dropped=[tc.id for tc in msg.tool_calls if tc.id not in answered],
                    )
                if calls:
                    result.append({
                        "role": "assistant",
                        "content": msg.content,
                        "tool_calls": [
                            {
                                "id": tc.id,
                                "type": "function",
                                "function": {"name": tc.name, "arguments": tc.arguments or "{}"},
                            }
                            for tc in calls
                        ],
                    })
                elif msg.content:
                    result.append({"role": "assistant", "content": msg.content})
            else:
                result.append({"role": msg.role, "content": msg.content or ""})
        return result

    @staticmethod
    def _convert_tools(tools: list[ToolDefinition]) -> list[dict[str, Any]]:
        """Convert tools to function-calling format."""
        return [
            {
                "type": "function",
                "function": {
                    "name": tool.name,
                    "description": tool.description,
                    "parameters": tool.parameter_schema(),
                },
            }
            for tool in tools
        ]

    @staticmethod
    def _parse_message(data: dict[str, Any]) -> Message:
        """Extract the assistant message from a chat-completions payload."""
        choices = data.get("choices") or []
        if not choices:
            raise LLMError("LLM response has no choices")
        raw = choices[0].get("message") or {}

        tool_calls: list[ToolCall] = []
        for idx, tc in enumerate(raw.get("tool_calls") or []):
            function = tc.get("function") or {}
            arguments = function.get("arguments", "")
            # Ollama sometimes returns already-decoded arguments.
            if not isinstance(arguments, str):
                arguments = json.dumps(arguments)
            tool_calls.append(ToolCall(
                id=str(tc.get("id") or f"call_{idx}"),
                name=str(function.get("name", "")),
                arguments=arguments,
            ))

        content = raw.get("content")
        return Message.assistant(content=content or None, tool_calls=tuple(tool_calls))

    async def complete(
        self,
        messages: list[Message] | tuple[Message, ...],
        tools: list[ToolDefinition] | None = None,
    ) -> Message:
        """Generate a completion."""
        url = f"{self.base_url}/chat/completions"

        body: dict[str, Any] = {
            "model": self.model,
            "temperature": self.temperature,
            "messages": self._convert_messages(messages),
        }
        if tools:
            body["tools"] = self._convert_tools(tools)
            body["tool_choice"] = "auto"
            body["parallel_tool_calls"] = self.parallel_tool_calls

        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        try:
            log.debug("Calling LLM", model=self.model, url=url, msg_count=len(body["messages"]))
            response = await self.client.post(url, json=body, headers=headers)
            log.debug("LLM response status", status=response.status_code)

            if not response.is_success:
                raise LLMAPIError(
                    f"LLM API error {response.status_code}: {response.text}",
                    status_code=response.status_code,
                )

            return self._parse_message(response.json())

        except LLMError:
            raise
        except httpx.HTTPError as e:
            raise LLMAPIError(f"LLM HTTP error: {e}") from e
        except json.JSONDecodeError as e:
            raise LLMError(f"LLM response decode error: {e}") from e
        except Exception as e:
            raise LLMError(f"LLM call failed: {e}") from e

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()


def create_provider(
    provider: str = "ollama",
    model: str = "llama3.1:70b",
    api_key: str | None = None,
    base_url: str | None = None,
    temperature: float = 0.1,
    parallel_tool_calls: bool = False,
    system_prompt: str = "",
    timeout: float = 120.0,
) -> LLMProvider:
    """Create an LLM provider.

    Args:
        provider: Provider name (ollama, openai)
        model: Model name
        api_key: Optional API key
        base_url: Optional base URL
        temperature: Default temperature
        parallel_tool_calls: Allow several tool calls per response
        system_prompt: System prompt prepended to each request
        timeout: HTTP timeout in seconds

    Returns:
        Configured LLMProvider instance
    """
    if provider == "ollama":
        default_base = OLLAMA_OPENAI_BASE_URL
    elif provider == "openai":
        default_base = OPENAI_BASE_URL
    else:
        raise ValueError(f"Provider '{provider}' not supported. Use 'ollama' or 'openai'.")

    return OpenAICompatibleProvider(
        model=model,
        base_url=base_url or default_base,
        temperature=temperature,
        api_key=api_key,
        parallel_tool_calls=parallel_tool_calls,
        system_prompt=system_prompt,
        timeout=timeout,
    )
