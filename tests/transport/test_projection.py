import pytest

from tests.helpers import CollectingTransport, FakeModel
from threadline.core.config import AgentConfig, Config
from threadline.session.message import Message
from threadline.session.orchestrator import ChatOrchestrator, TurnStatus
from threadline.session.stream_events import (
    Finish,
    TextDelta,
    ToolCall,
    ToolInputDelta,
    ToolInputStart,
)
from threadline.session.tool_tracker import ToolCallStatus
from threadline.transport.projection import ClientProjection
from threadline.transport.wire import (
    ChatError,
    ChatResponseChunk,
    ChatStopped,
    ChatStreamEnd,
    ChatStreamStart,
    ChatToolResult,
    ChunkMetadata,
    dump_wire,
    load_wire,
)


def _replay(transport: CollectingTransport, history=()) -> ClientProjection:
    projection = ClientProjection(history)
    for message in transport.sent:
        projection.receive(dump_wire(message))
    return projection


def _lookup(args, ctx):
    return {"city": args["city"], "temp": 21}


def _broken(args, ctx):
    raise RuntimeError("disk full")


@pytest.mark.anyio
async def test_projection_converges_with_orchestrator() -> None:
    model = FakeModel(
        [
            TextDelta("Checking"),
            ToolInputStart("c1", "lookup"),
            ToolInputDelta("c1", '{"city": '),
            ToolInputDelta("c1", '"Oslo"}'),
            ToolCall("c1", "lookup", {"city": "Oslo"}),
            ToolInputStart("c2", "broken"),
            ToolCall("c2", "broken", {}),
            Finish("tool_calls"),
        ],
        [TextDelta("It is "), TextDelta("21"), Finish("stop")],
    )
    transport = CollectingTransport()
    orchestrator = ChatOrchestrator(
        model,
        {"lookup": _lookup, "broken": _broken},
        transport=transport,
    )
    history = [Message.user("earlier", timestamp=1), Message.assistant("reply")]

    result = await orchestrator.send(history, "weather?")
    projection = _replay(transport, history)

    assert result.status == TurnStatus.COMPLETED
    assert projection.messages == result.messages
    assert not projection.is_loading
    tracker = projection.tracker()
    assert tracker.status("c1") == ToolCallStatus.RESULTED
    assert tracker.status("c2") == ToolCallStatus.ERRORED
    assert transport.commands()[0] == "chatStreamStart"
    assert transport.commands()[-1] == "chatStreamEnd"


@pytest.mark.anyio
async def test_projection_converges_on_auth_error() -> None:
    model = FakeModel([TextDelta("par"), RuntimeError("401 Unauthorized: invalid api key")])
    transport = CollectingTransport()
    orchestrator = ChatOrchestrator(model, transport=transport, config=Config(agent=AgentConfig()))

    result = await orchestrator.send([], "hi")
    projection = _replay(transport)

    assert result.status == TurnStatus.ERROR
    assert projection.messages == result.messages
    assert projection.last_error == "401 Unauthorized: invalid api key"
    assert [a.command for a in result.messages[-1].metadata.actions] == [
        "threadline.configureApiKey",
        "threadline.openSettings",
    ]


def test_duplicate_delivery_is_ignored() -> None:
    projection = ClientProjection()
    chunk = ChatResponseChunk(message_type="assistant", content="hi", seq=1)

    assert projection.receive(chunk) is True
    assert projection.receive(chunk) is False
    assert projection.receive(ChatResponseChunk(message_type="assistant", content="!", seq=1)) is False
    assert projection.messages[-1].content == "hi"


def test_second_result_for_same_call_is_a_no_op() -> None:
    projection = ClientProjection()
    projection.receive(ChatResponseChunk(
        message_type="tool-call",
        metadata=ChunkMetadata(tool_id="c1", tool_name="echo", tool_input={"a": 1}, is_final=True),
    ))

    first = projection.receive(ChatToolResult(tool_call_id="c1", tool_name="echo", content="one"))
    second = projection.receive(ChatToolResult(tool_call_id="c1", tool_name="echo", content="two"))

    assert first is True
    assert second is False
    assert [m.role for m in projection.messages] == ["assistant", "tool"]
    assert Message.tool_results(projection.messages[1])[0].output.value == "one"


def test_tool_result_chunk_is_accepted() -> None:
    projection = ClientProjection()
    projection.receive(ChatResponseChunk(
        message_type="tool-call",
        metadata=ChunkMetadata(tool_id="c1", tool_name="echo", tool_input={}, is_final=True),
    ))

    changed = projection.receive(ChatResponseChunk(
        message_type="tool-result",
        content="failed",
        metadata=ChunkMetadata(tool_id="c1", tool_name="echo", is_error=True),
    ))

    assert changed is True
    part = Message.tool_results(projection.messages[-1])[0]
    assert part.is_error is True
    assert part.output.type == "error-text"


def test_loading_and_stopped_flags() -> None:
    projection = ClientProjection([Message.user("old", timestamp=1)])
    history = [Message.user("hi", timestamp=2)]

    assert projection.receive(ChatStreamStart(history=history, seq=1)) is True
    assert projection.is_loading
    assert list(projection.messages) == history

    projection.receive(ChatStopped(reason="Cancelled by user", seq=2))
    assert not projection.is_loading
    assert projection.stopped

    projection.receive(ChatStreamStart(seq=3))
    assert projection.is_loading
    assert not projection.stopped
    projection.receive(ChatError(error="boom", seq=4))
    assert not projection.is_loading
    assert projection.last_error == "boom"
    assert projection.messages[-1].metadata.is_error

    projection.receive(ChatStreamEnd(seq=5))
    assert not projection.is_loading


@pytest.mark.anyio
async def test_projection_follows_a_restarted_sender() -> None:
    projection = ClientProjection()
    first = CollectingTransport()
    turn_one = await ChatOrchestrator(
        FakeModel([TextDelta("one"), Finish("stop")]), transport=first
    ).send([], "first")
    for message in first.sent:
        projection.receive(dump_wire(message))

    second = CollectingTransport()
    turn_two = await ChatOrchestrator(
        FakeModel([TextDelta("two"), Finish("stop")]), transport=second
    ).send(turn_one.messages, "second")
    for message in second.sent:
        projection.receive(dump_wire(message))

    assert first.sent[0].seq == second.sent[0].seq == 1
    assert first.sent[0].epoch != second.sent[0].epoch
    assert projection.messages == turn_two.messages
    assert len(projection.messages) == 4

    late = first.sent[1].model_copy(update={"seq": 99})
    assert projection.receive(late) is False
    assert projection.messages == turn_two.messages


def test_result_without_tool_name_takes_call_name() -> None:
    projection = ClientProjection()
    projection.receive(ChatResponseChunk(
        message_type="tool-call",
        metadata=ChunkMetadata(tool_id="c1", tool_name="echo", tool_input={}, is_final=True),
    ))

    projection.receive(load_wire({"command": "chatToolResult", "toolCallId": "c1", "content": "hi", "isError": False}))

    part = Message.tool_results(projection.messages[-1])[0]
    assert part.tool_name == "echo"
    assert part.output.value == "hi"
