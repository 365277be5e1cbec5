"""The single fold from generation events to conversation snapshots.

``apply(state, event)`` is pure: it never mutates ``state`` and returns the
very same ``messages`` tuple when the event changed nothing, which is how
callers decide whether to publish a snapshot. Both the server-side reducer
and the client projection drive this function; neither has its own merge
rules.

Tool calls are located through ``FoldState.calls``, an index from tool call
id to ``(message index, part index)``. Messages are only ever appended or
replaced at the same position, and parts only appended or replaced at the
same position, so the index stays valid for the whole request.
"""

import json
from dataclasses import dataclass, field, replace
from typing import Dict, FrozenSet, Iterable, Mapping, Optional, Sequence, Tuple

from ..util.error import human_readable_error
from .message import (
    ChatMessage,
    Message,
    MessageMetadata,
    TextPart,
    ToolCallPart,
    ToolCallState,
    ToolResultPart,
)
from .stream_events import (
    Abort,
    Error,
    Finish,
    StreamEvent,
    TextDelta,
    ToolCall,
    ToolError,
    ToolInputDelta,
    ToolInputStart,
    ToolInputUpdate,
    ToolResult,
)
from .tool_output import as_error_output, classify_tool_output

CallIndex = Tuple[int, int]


@dataclass(frozen=True)
class FoldState:
    messages: Tuple[ChatMessage, ...] = ()
    calls: Mapping[str, CallIndex] = field(default_factory=dict)
    resulted: FrozenSet[str] = frozenset()
    buffers: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def from_history(cls, history: Sequence[ChatMessage]) -> "FoldState":
        """Index the calls and results already present in ``history``."""
        calls: Dict[str, CallIndex] = {}
        resulted = set()
        for i, message in enumerate(history):
            if isinstance(message.content, str):
                continue
            for j, part in enumerate(message.content):
                if isinstance(part, ToolCallPart) and message.role == "assistant":
                    calls[part.tool_call_id] = (i, j)
                elif isinstance(part, ToolResultPart):
                    resulted.add(part.tool_call_id)
        return cls(messages=tuple(history), calls=calls, resulted=frozenset(resulted))

    def call(self, tool_call_id: str) -> Optional[ToolCallPart]:
        index = self.calls.get(tool_call_id)
        if index is None:
            return None
        return self.messages[index[0]].content[index[1]]


def _set_message(messages: Tuple[ChatMessage, ...], index: int, message: ChatMessage) -> Tuple[ChatMessage, ...]:
    return messages[:index] + (message,) + messages[index + 1:]


def _replace_call(state: FoldState, tool_call_id: str, part: ToolCallPart) -> Tuple[ChatMessage, ...]:
    i, j = state.calls[tool_call_id]
    message = state.messages[i]
    content = message.content[:j] + (part,) + message.content[j + 1:]
    return _set_message(state.messages, i, message.model_copy(update={"content": content}))


def _mergeable_assistant(state: FoldState) -> Optional[ChatMessage]:
    if not state.messages:
        return None
    last = state.messages[-1]
    if last.role != "assistant" or Message.is_error(last):
        return None
    return last


def _text_delta(state: FoldState, event: TextDelta) -> FoldState:
    if not event.text:
        return state
    last = _mergeable_assistant(state)
    if last is not None and isinstance(last.content, str):
        updated = last.model_copy(update={"content": last.content + event.text})
        return replace(state, messages=_set_message(state.messages, len(state.messages) - 1, updated))
    message = ChatMessage(role="assistant", content=event.text)
    return replace(state, messages=state.messages + (message,))


def _tool_input_start(state: FoldState, event: ToolInputStart) -> FoldState:
    if event.tool_call_id in state.calls:
        return state
    part = ToolCallPart(
        tool_call_id=event.tool_call_id,
        tool_name=event.tool_name,
        input={},
        state=ToolCallState.PARTIAL_CALL,
    )
    last = _mergeable_assistant(state)
    if last is not None:
        parts = Message.parts(last) + (part,)
        index = len(state.messages) - 1
        messages = _set_message(state.messages, index, last.model_copy(update={"content": parts}))
    else:
        parts = (part,)
        index = len(state.messages)
        messages = state.messages + (ChatMessage(role="assistant", content=parts),)
    calls = {**state.calls, event.tool_call_id: (index, len(parts) - 1)}
    return replace(state, messages=messages, calls=calls)


def _update_input(state: FoldState, tool_call_id: str, value, buffers: Mapping[str, str]) -> FoldState:
    current = state.call(tool_call_id)
    if not isinstance(value, dict) or value == current.input:
        return replace(state, buffers=buffers)
    part = current.model_copy(update={"input": value})
    return replace(state, messages=_replace_call(state, tool_call_id, part), buffers=buffers)


def _tool_input_delta(state: FoldState, event: ToolInputDelta) -> FoldState:
    current = state.call(event.tool_call_id)
    if current is None or current.state == ToolCallState.CALL:
        return state
    raw = state.buffers.get(event.tool_call_id, "") + event.delta
    buffers = {**state.buffers, event.tool_call_id: raw}
    try:
        parsed = json.loads(raw)
    except ValueError:
        # still streaming
        return replace(state, buffers=buffers)
    return _update_input(state, event.tool_call_id, parsed, buffers)


def _tool_input_update(state: FoldState, event: ToolInputUpdate) -> FoldState:
    current = state.call(event.tool_call_id)
    if current is None or current.state == ToolCallState.CALL:
        return state
    return _update_input(state, event.tool_call_id, event.input, state.buffers)


def _tool_call(state: FoldState, event: ToolCall) -> FoldState:
    part = ToolCallPart(
        tool_call_id=event.tool_call_id,
        tool_name=event.tool_name,
        input=dict(event.input or {}),
        state=ToolCallState.CALL,
    )
    buffers = {k: v for k, v in state.buffers.items() if k != event.tool_call_id}
    if event.tool_call_id in state.calls:
        if state.call(event.tool_call_id) == part:
            return state
        return replace(state, messages=_replace_call(state, event.tool_call_id, part), buffers=buffers)

    index = len(state.messages)
    message = ChatMessage(role="assistant", content=(part,))
    calls = {**state.calls, event.tool_call_id: (index, 0)}
    return replace(state, messages=state.messages + (message,), calls=calls, buffers=buffers)


def _tool_result(state: FoldState, event, is_error: bool) -> FoldState:
    if event.tool_call_id in state.resulted:
        return state
    output = classify_tool_output(event.output)
    if is_error:
        output = as_error_output(output)
    part = ToolResultPart(
        tool_call_id=event.tool_call_id,
        tool_name=event.tool_name,
        output=output,
        is_error=is_error,
    )
    message = ChatMessage(role="tool", content=(part,))
    return replace(
        state,
        messages=state.messages + (message,),
        resulted=state.resulted | {event.tool_call_id},
    )


def _error(state: FoldState, event: Error) -> FoldState:
    metadata = MessageMetadata(
        is_error=True,
        session_id=event.session_id,
        timestamp=event.timestamp,
        actions=tuple(event.actions) or None,
    )
    message = ChatMessage(role="assistant", content=human_readable_error(event.error), metadata=metadata)
    return replace(state, messages=state.messages + (message,))


def apply(state: FoldState, event: StreamEvent) -> FoldState:
    """Fold one event into ``state``."""
    if isinstance(event, TextDelta):
        return _text_delta(state, event)
    if isinstance(event, ToolInputStart):
        return _tool_input_start(state, event)
    if isinstance(event, ToolInputDelta):
        return _tool_input_delta(state, event)
    if isinstance(event, ToolInputUpdate):
        return _tool_input_update(state, event)
    if isinstance(event, ToolCall):
        return _tool_call(state, event)
    if isinstance(event, ToolResult):
        return _tool_result(state, event, is_error=False)
    if isinstance(event, ToolError):
        return _tool_result(state, event, is_error=True)
    if isinstance(event, Error):
        return _error(state, event)
    if isinstance(event, (Finish, Abort)):
        return state
    raise TypeError(f"Unhandled stream event: {event!r}")


def fold(events: Iterable[StreamEvent], history: Sequence[ChatMessage] = ()) -> Tuple[ChatMessage, ...]:
    """Fold a complete event sequence onto ``history`` and return the messages."""
    state = FoldState.from_history(history)
    for event in events:
        state = apply(state, event)
    return state.messages
