"""Append-only conversation memory for a single agent process."""

import asyncio
from collections.abc import Iterable

from relay_agent.exceptions import ConversationOrderError
from relay_agent.llm import Message
from relay_agent.logging import get_logger

log = get_logger(__name__)

_STORED_ROLES = {"user", "assistant", "tool"}


class ConversationMemory:
    """Ordered log of conversation messages.

    Messages are frozen once appended and nothing is ever removed. Appends are
    serialized so the elements of two concurrent batches never interleave, and
    every ``tool`` message must answer a tool call already in the log.
    """

    def __init__(self) -> None:
        self._messages: list[Message] = []
        self._requested_call_ids: set[str] = set()
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._messages)

    def _validate_batch(self, batch: list[Message]) -> set[str]:
        """Check a batch against the log and return the call ids it introduces."""
        known = set(self._requested_call_ids)
        introduced: set[str] = set()
        for msg in batch:
            if not isinstance(msg, Message):
                raise ConversationOrderError(f"Not a Message: {type(msg)!r}")
            if msg.role not in _STORED_ROLES:
                raise ConversationOrderError(f"Unsupported message role: {msg.role}")
            if msg.role == "tool":
                if not msg.tool_call_id:
                    raise ConversationOrderError("Tool message is missing tool_call_id")
                if msg.tool_call_id not in known:
                    raise ConversationOrderError(
                        f"Tool message answers unknown tool call: {msg.tool_call_id}"
                    )
            elif msg.tool_call_id:
                raise ConversationOrderError(f"Only tool messages carry tool_call_id (got {msg.role})")
            if msg.tool_calls:
                if msg.role != "assistant":
                    raise ConversationOrderError(f"Only assistant messages carry tool calls (got {msg.role})")
                ids = {tc.id for tc in msg.tool_calls}
                known |= ids
                introduced |= ids
        return introduced

    async def append(self, messages: Iterable[Message]) -> None:
        """Append messages in order; the whole batch is rejected if any is invalid."""
        batch = list(messages)
        if not batch:
            return
        async with self._lock:
            introduced = self._validate_batch(batch)
            self._messages.extend(batch)
            self._requested_call_ids |= introduced
            log.debug("Messages appended", count=len(batch), total=len(self._messages))

    async def read_all(self) -> tuple[Message, ...]:
        """Snapshot of every message in insertion order."""
        async with self._lock:
            return tuple(self._messages)

    async def save_tool_response(self, tool_call_id: str, content: str) -> None:
        """Append the result of a tool call."""
        await self.append([Message.tool(tool_call_id=tool_call_id, content=content)])
