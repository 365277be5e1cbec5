"""Encode applied stream events as wire messages.

The mapping is one event to at most one message, and only events that
changed the conversation are sent, so a client folding the decoded events
reaches the same messages the orchestrator holds.
"""

from typing import List, Optional, Sequence

from ..core.id import Identifier
from ..session.fold import FoldState
from ..session.message import ChatMessage, Message
from ..session.stream_events import (
    Error,
    StreamEvent,
    TextDelta,
    ToolCall,
    ToolError,
    ToolInputDelta,
    ToolInputStart,
    ToolInputUpdate,
    ToolResult,
)
from ..session.tool_output import output_text
from .wire import (
    ChatError,
    ChatResponseChunk,
    ChatStopped,
    ChatStreamEnd,
    ChatStreamStart,
    ChatToolResult,
    ChatToolUpdate,
    ChunkMetadata,
    WireModel,
)


class StreamEncoder:
    """Stateful encoder that numbers outgoing messages.

    Numbering restarts with every encoder, so each one stamps its messages
    with its own ``epoch``.
    """

    def __init__(self, epoch: Optional[str] = None) -> None:
        self.epoch = epoch or Identifier.ascending("stream")
        self._seq = 0

    def _number(self, message: WireModel) -> WireModel:
        self._seq += 1
        return message.model_copy(update={"seq": self._seq, "epoch": self.epoch})

    def start(self, history: Sequence[ChatMessage]) -> WireModel:
        return self._number(ChatStreamStart(history=list(history)))

    def end(self, reason: Optional[str] = None) -> WireModel:
        return self._number(ChatStreamEnd(reason=reason))

    def stopped(self, reason: Optional[str] = None) -> WireModel:
        return self._number(ChatStopped(reason=reason))

    def encode(self, event: StreamEvent, state: FoldState, changed: bool) -> List[WireModel]:
        if not changed:
            return []
        message = self._message(event, state)
        return [self._number(message)] if message is not None else []

    @staticmethod
    def _message(event: StreamEvent, state: FoldState) -> Optional[WireModel]:
        if isinstance(event, TextDelta):
            return ChatResponseChunk(message_type="assistant", content=event.text)
        if isinstance(event, ToolInputStart):
            return ChatResponseChunk(
                message_type="tool-call",
                metadata=ChunkMetadata(
                    tool_id=event.tool_call_id,
                    tool_name=event.tool_name,
                    tool_input={},
                    is_final=False,
                ),
            )
        if isinstance(event, (ToolInputDelta, ToolInputUpdate)):
            part = state.call(event.tool_call_id)
            return ChatToolUpdate(tool_call_id=event.tool_call_id, input=part.input)
        if isinstance(event, ToolCall):
            part = state.call(event.tool_call_id)
            return ChatResponseChunk(
                message_type="tool-call",
                metadata=ChunkMetadata(
                    tool_id=part.tool_call_id,
                    tool_name=part.tool_name,
                    tool_input=part.input,
                    is_final=True,
                ),
            )
        if isinstance(event, (ToolResult, ToolError)):
            part = Message.tool_results(state.messages[-1])[0]
            return ChatToolResult(
                tool_call_id=part.tool_call_id,
                tool_name=part.tool_name,
                content=output_text(part.output),
                output=part.output,
                is_error=bool(part.is_error),
            )
        if isinstance(event, Error):
            last = state.messages[-1]
            metadata = last.metadata
            return ChatError(
                error=Message.text(last),
                actions=list(metadata.actions) if metadata and metadata.actions else None,
                timestamp=metadata.timestamp if metadata else None,
                session_id=metadata.session_id if metadata else None,
            )
        return None
