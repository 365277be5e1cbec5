"""Discrete messages carried from the orchestrator to a client.

Every message is a Pydantic model discriminated by ``command`` and
serialized with camelCase keys. ``epoch`` identifies the encoder that sent
the message and ``seq`` increases by one per message within that epoch.
"""

from typing import Annotated, Any, Dict, List, Literal, Optional, Protocol, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from ..session.message import ChatMessage, MessageAction
from ..session.tool_output import ToolOutput


class WireModel(BaseModel):
    seq: Optional[int] = None
    epoch: Optional[str] = None

    model_config = ConfigDict(frozen=True, populate_by_name=True)


class ChatStreamStart(WireModel):
    """A request started; ``history`` is the base the request folds onto."""
    command: Literal["chatStreamStart"] = "chatStreamStart"
    history: Optional[List[ChatMessage]] = None


class ChunkMetadata(BaseModel):
    tool_id: Optional[str] = None
    tool_name: Optional[str] = None
    tool_input: Optional[Dict[str, Any]] = None
    tool_output: Optional[ToolOutput] = None
    is_final: Optional[bool] = None
    is_error: Optional[bool] = None

    model_config = ConfigDict(frozen=True)


class ChatResponseChunk(WireModel):
    command: Literal["chatResponseChunk"] = "chatResponseChunk"
    message_type: Literal["assistant", "tool-call", "tool-result"] = Field(alias="messageType")
    content: str = ""
    metadata: Optional[ChunkMetadata] = None


class ChatToolUpdate(WireModel):
    """A streaming tool call's input parsed to a new value."""
    command: Literal["chatToolUpdate"] = "chatToolUpdate"
    tool_call_id: str = Field(alias="toolCallId")
    input: Dict[str, Any] = Field(default_factory=dict)


class ChatToolResult(WireModel):
    command: Literal["chatToolResult"] = "chatToolResult"
    tool_call_id: str = Field(alias="toolCallId")
    tool_name: str = Field("", alias="toolName")
    content: str = ""
    output: Optional[ToolOutput] = None
    is_error: bool = Field(False, alias="isError")


class ChatStreamEnd(WireModel):
    command: Literal["chatStreamEnd"] = "chatStreamEnd"
    reason: Optional[str] = None


class ChatError(WireModel):
    command: Literal["chatError"] = "chatError"
    error: str
    actions: Optional[List[MessageAction]] = None
    timestamp: Optional[int] = None
    session_id: Optional[str] = Field(None, alias="sessionId")


class ChatStopped(WireModel):
    command: Literal["chatStopped"] = "chatStopped"
    reason: Optional[str] = None


WireMessage = Annotated[
    Union[
        ChatStreamStart,
        ChatResponseChunk,
        ChatToolUpdate,
        ChatToolResult,
        ChatStreamEnd,
        ChatError,
        ChatStopped,
    ],
    Field(discriminator="command"),
]

_adapter: TypeAdapter = TypeAdapter(WireMessage)


def dump_wire(message: WireModel) -> str:
    return message.model_dump_json(by_alias=True, exclude_none=True)


def load_wire(data: Union[str, bytes, Dict[str, Any]]):
    """Parse a wire message from JSON text or an already-decoded dict."""
    if isinstance(data, (str, bytes)):
        return _adapter.validate_json(data)
    return _adapter.validate_python(data)


class Transport(Protocol):
    """Ordered, at-least-once channel to a client. ``send`` may be async."""

    def send(self, message: WireModel) -> Any: ...
