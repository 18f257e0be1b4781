import asyncio
import dataclasses

import pytest

from relay_agent.exceptions import ConversationOrderError
from relay_agent.llm import Message, ToolCall
from relay_agent.memory import ConversationMemory


def _assert_tool_messages_follow_requests(messages: tuple[Message, ...]) -> None:
    requested: set[str] = set()
    for msg in messages:
        if msg.role == "tool":
            assert msg.tool_call_id in requested
        requested |= {tc.id for tc in msg.tool_calls}


@pytest.mark.asyncio
async def test_read_all_returns_messages_in_append_order() -> None:
    memory = ConversationMemory()
    first = Message.user("hi")
    second = Message.assistant("hello")
    third = Message.user("hi")

    await memory.append([first])
    await memory.append([second, third])

    assert await memory.read_all() == (first, second, third)
    assert len(memory) == 3


@pytest.mark.asyncio
async def test_read_all_is_a_snapshot() -> None:
    memory = ConversationMemory()
    await memory.append([Message.user("one")])

    snapshot = await memory.read_all()
    await memory.append([Message.assistant("two")])

    assert len(snapshot) == 1
    assert len(await memory.read_all()) == 2


@pytest.mark.asyncio
async def test_messages_cannot_be_mutated_after_append() -> None:
    memory = ConversationMemory()
    msg = Message.user("original")
    await memory.append([msg])

    with pytest.raises(dataclasses.FrozenInstanceError):
        msg.content = "changed"  # type: ignore[misc]

    stored = (await memory.read_all())[0]
    assert stored.content == "original"


@pytest.mark.asyncio
async def test_tool_message_without_request_is_rejected() -> None:
    memory = ConversationMemory()
    await memory.append([Message.user("weather?")])

    with pytest.raises(ConversationOrderError):
        await memory.save_tool_response("call_missing", "{}")

    assert len(memory) == 1


@pytest.mark.asyncio
async def test_invalid_batch_is_rejected_as_a_whole() -> None:
    memory = ConversationMemory()

    with pytest.raises(ConversationOrderError):
        await memory.append([Message.user("hi"), Message.tool("call_1", "orphan")])

    assert len(memory) == 0


@pytest.mark.asyncio
async def test_tool_result_after_request_in_same_batch_is_accepted() -> None:
    memory = ConversationMemory()
    request = Message.assistant(None, (ToolCall(id="call_1", name="x", arguments="{}"),))

    await memory.append([Message.user("go"), request, Message.tool("call_1", "42")])

    messages = await memory.read_all()
    assert [m.role for m in messages] == ["user", "assistant", "tool"]
    _assert_tool_messages_follow_requests(messages)


@pytest.mark.asyncio
async def test_tool_result_before_request_in_same_batch_is_rejected() -> None:
    memory = ConversationMemory()
    request = Message.assistant(None, (ToolCall(id="call_1", name="x"),))

    with pytest.raises(ConversationOrderError):
        await memory.append([Message.tool("call_1", "42"), request])


@pytest.mark.asyncio
async def test_tool_calls_only_allowed_on_assistant_messages() -> None:
    memory = ConversationMemory()
    bad = Message(role="user", content="hi", tool_calls=(ToolCall(id="c", name="x"),))

    with pytest.raises(ConversationOrderError):
        await memory.append([bad])


@pytest.mark.asyncio
async def test_concurrent_appends_do_not_interleave() -> None:
    memory = ConversationMemory()
    batch_a = [Message.user(f"a{i}") for i in range(50)]
    batch_b = [Message.user(f"b{i}") for i in range(50)]

    await asyncio.gather(memory.append(batch_a), memory.append(batch_b))

    contents = [m.content for m in await memory.read_all()]
    assert contents in (
        [m.content for m in batch_a + batch_b],
        [m.content for m in batch_b + batch_a],
    )
