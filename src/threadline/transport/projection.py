"""Client-side reconstruction of the conversation from wire messages.

Wire messages are translated back into stream events and folded with the
same ``apply`` the orchestrator uses. Delivery is at-least-once: within one
sender ``epoch``, messages whose ``seq`` is not newer than the last applied
one are ignored. A new epoch restarts the numbering and retires the previous
one. A second result for an already-resulted call is a no-op inside the fold.
"""

from typing import Any, Dict, Optional, Sequence, Set, Tuple, Union

from ..session.fold import FoldState, apply
from ..session.message import ChatMessage
from ..session.stream_events import (
    Error,
    StreamEvent,
    TextDelta,
    ToolCall,
    ToolError,
    ToolInputStart,
    ToolInputUpdate,
    ToolResult,
)
from ..session.tool_tracker import ToolCallTracker
from ..util.log import Log
from .wire import (
    ChatError,
    ChatResponseChunk,
    ChatStopped,
    ChatStreamEnd,
    ChatStreamStart,
    ChatToolResult,
    ChatToolUpdate,
    WireModel,
    load_wire,
)

log = Log.create({"service": "transport.projection"})


def _result_event(
    tool_call_id: str,
    tool_name: str,
    output: Any,
    is_error: bool,
    state: Optional[FoldState],
) -> StreamEvent:
    if not tool_name and state is not None:
        call = state.call(tool_call_id)
        if call is not None:
            tool_name = call.tool_name
    if is_error:
        return ToolError(tool_call_id, tool_name, output)
    return ToolResult(tool_call_id, tool_name, output)


def to_event(message: WireModel, state: Optional[FoldState] = None) -> Optional[StreamEvent]:
    """Map a content-bearing wire message to the event it was encoded from.

    A result without a tool name takes the name of its call in ``state``.
    """
    if isinstance(message, ChatResponseChunk):
        meta = message.metadata
        if message.message_type == "assistant":
            return TextDelta(message.content)
        if meta is None or not meta.tool_id:
            return None
        if message.message_type == "tool-call":
            if meta.is_final is False:
                return ToolInputStart(meta.tool_id, meta.tool_name or "")
            return ToolCall(meta.tool_id, meta.tool_name or "", dict(meta.tool_input or {}))
        output = meta.tool_output if meta.tool_output is not None else message.content
        return _result_event(meta.tool_id, meta.tool_name or "", output, bool(meta.is_error), state)
    if isinstance(message, ChatToolUpdate):
        return ToolInputUpdate(message.tool_call_id, dict(message.input))
    if isinstance(message, ChatToolResult):
        output = message.output if message.output is not None else message.content
        return _result_event(message.tool_call_id, message.tool_name, output, message.is_error, state)
    if isinstance(message, ChatError):
        return Error(
            error=message.error,
            timestamp=message.timestamp,
            session_id=message.session_id,
            actions=tuple(message.actions or ()),
        )
    return None


class ClientProjection:
    """The receiving side's view of one conversation."""

    def __init__(self, history: Sequence[ChatMessage] = ()) -> None:
        self._state = FoldState.from_history(history)
        self._epoch: Optional[str] = None
        self._retired: Set[str] = set()
        self._last_seq: Optional[int] = None
        self.is_loading = False
        self.stopped = False
        self.last_error: Optional[str] = None

    @property
    def messages(self) -> Tuple[ChatMessage, ...]:
        return self._state.messages

    def tracker(self) -> ToolCallTracker:
        return ToolCallTracker(self._state.messages)

    def receive(self, raw: Union[WireModel, str, bytes, Dict[str, Any]]) -> bool:
        """Apply one wire message. Returns True if the messages changed."""
        message = raw if isinstance(raw, WireModel) else load_wire(raw)

        if message.epoch is not None and message.epoch != self._epoch:
            if message.epoch in self._retired:
                log.debug("message from retired epoch", {"epoch": message.epoch, "seq": message.seq})
                return False
            if self._epoch is not None:
                self._retired.add(self._epoch)
            self._epoch = message.epoch
            self._last_seq = None

        if message.seq is not None:
            if self._last_seq is not None and message.seq <= self._last_seq:
                log.debug("duplicate delivery", {"seq": message.seq, "last": self._last_seq})
                return False
            self._last_seq = message.seq

        if isinstance(message, ChatStreamStart):
            self.is_loading = True
            self.stopped = False
            self.last_error = None
            if message.history is not None:
                before = self._state.messages
                self._state = FoldState.from_history(message.history)
                return self._state.messages != before
            return False
        if isinstance(message, ChatStreamEnd):
            self.is_loading = False
            return False
        if isinstance(message, ChatStopped):
            self.is_loading = False
            self.stopped = True
            return False

        event = to_event(message, self._state)
        if event is None:
            return False
        if isinstance(event, Error):
            self.is_loading = False
            self.last_error = message.error

        before = self._state
        self._state = apply(self._state, event)
        return self._state.messages is not before.messages
