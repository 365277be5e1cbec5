"""Lifecycle of each tool call, derived from the conversation itself.

There is no separate mutable tracking state: given a history, a call is
``STARTED`` while its placeholder has no input, ``STREAMING`` once a partial
input has been parsed, ``FINALIZED`` when the model completed it, and
``RESULTED`` or ``ERRORED`` once a later tool message carries its result.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from .message import ChatMessage, ToolCallPart, ToolCallState, ToolResultPart


class ToolCallStatus(str, Enum):
    STARTED = "started"
    STREAMING = "streaming"
    FINALIZED = "finalized"
    RESULTED = "resulted"
    ERRORED = "errored"


SETTLED = (ToolCallStatus.RESULTED, ToolCallStatus.ERRORED)


@dataclass(frozen=True)
class TrackedCall:
    tool_call_id: str
    tool_name: str
    status: ToolCallStatus
    input: Dict[str, Any]
    output: Optional[Any] = None
    message_index: int = -1


def _call_status(part: ToolCallPart) -> ToolCallStatus:
    if part.state == ToolCallState.CALL:
        return ToolCallStatus.FINALIZED
    if part.input:
        return ToolCallStatus.STREAMING
    return ToolCallStatus.STARTED


class ToolCallTracker:
    """A read-only view of tool call states over one history."""

    def __init__(self, messages: Sequence[ChatMessage]):
        self._calls: Dict[str, TrackedCall] = {}
        for index, message in enumerate(messages):
            if isinstance(message.content, str):
                continue
            for part in message.content:
                if isinstance(part, ToolCallPart) and message.role == "assistant":
                    self._calls[part.tool_call_id] = TrackedCall(
                        tool_call_id=part.tool_call_id,
                        tool_name=part.tool_name,
                        status=_call_status(part),
                        input=part.input,
                        message_index=index,
                    )
                elif isinstance(part, ToolResultPart):
                    self._settle(part, index)

    def _settle(self, part: ToolResultPart, index: int) -> None:
        call = self._calls.get(part.tool_call_id)
        # a result only counts when it follows its call, and only the first one does
        if call is None or call.status in SETTLED or index <= call.message_index:
            return
        status = ToolCallStatus.ERRORED if part.is_error else ToolCallStatus.RESULTED
        self._calls[part.tool_call_id] = TrackedCall(
            tool_call_id=call.tool_call_id,
            tool_name=call.tool_name,
            status=status,
            input=call.input,
            output=part.output,
            message_index=call.message_index,
        )

    def get(self, tool_call_id: str) -> Optional[TrackedCall]:
        return self._calls.get(tool_call_id)

    def status(self, tool_call_id: str) -> Optional[ToolCallStatus]:
        call = self._calls.get(tool_call_id)
        return call.status if call else None

    def calls(self) -> List[TrackedCall]:
        """All calls in the order they appear."""
        return list(self._calls.values())

    def pending(self) -> List[str]:
        """Ids of calls that have no result yet."""
        return [c.tool_call_id for c in self._calls.values() if c.status not in SETTLED]

    def in_state(self, status: ToolCallStatus) -> List[str]:
        return [c.tool_call_id for c in self._calls.values() if c.status == status]
