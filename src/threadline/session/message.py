"""Message types for conversations.

A conversation is an ordered tuple of ``ChatMessage`` values. Content is
either a plain string or a tuple of typed parts. All models are frozen: the
fold replaces a message or part instead of mutating it, so every snapshot
handed out stays valid.
"""

import time
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field

from .tool_output import ToolOutput


class TextPart(BaseModel):
    """Text content part."""
    type: Literal["text"] = "text"
    text: str

    model_config = ConfigDict(frozen=True)


class ToolCallState(str, Enum):
    """Whether a call's input is still streaming or has been finalized."""
    PARTIAL_CALL = "partial-call"
    CALL = "call"


class ToolCallPart(BaseModel):
    """A tool invocation requested by the model."""
    type: Literal["tool-call"] = "tool-call"
    tool_call_id: str = Field(alias="toolCallId")
    tool_name: str = Field(alias="toolName")
    input: Dict[str, Any] = Field(default_factory=dict)
    state: ToolCallState = ToolCallState.CALL

    model_config = ConfigDict(frozen=True, populate_by_name=True)


class ToolResultPart(BaseModel):
    """The output of one tool invocation, correlated by id."""
    type: Literal["tool-result"] = "tool-result"
    tool_call_id: str = Field(alias="toolCallId")
    tool_name: str = Field(alias="toolName")
    output: ToolOutput
    is_error: Optional[bool] = Field(None, alias="isError")

    model_config = ConfigDict(frozen=True, populate_by_name=True)


MessagePart = Annotated[
    Union[TextPart, ToolCallPart, ToolResultPart],
    Field(discriminator="type"),
]


class MessageRole(str, Enum):
    """Role of a message sender."""
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"
    SYSTEM = "system"


class MessageAction(BaseModel):
    """A remediation the UI can offer next to a message."""
    text: str
    command: str
    args: Optional[List[str]] = None

    model_config = ConfigDict(frozen=True)


class MessageMetadata(BaseModel):
    """Optional per-message bag; unknown keys are preserved."""
    timestamp: Optional[int] = None
    session_id: Optional[str] = Field(None, alias="sessionId")
    is_error: Optional[bool] = Field(None, alias="isError")
    is_loading: Optional[bool] = Field(None, alias="isLoading")
    progress: Optional[str] = None
    cost: Optional[float] = None
    duration_ms: Optional[int] = Field(None, alias="durationMs")
    actions: Optional[Tuple[MessageAction, ...]] = None

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="allow")


class ChatMessage(BaseModel):
    """One entry of the conversation."""
    role: Literal["user", "assistant", "tool", "system"]
    content: Union[str, Tuple[MessagePart, ...]]
    metadata: Optional[MessageMetadata] = None

    model_config = ConfigDict(frozen=True)


def now_ms() -> int:
    return int(time.time() * 1000)


class Message:
    """Helpers for building and inspecting messages."""

    @staticmethod
    def user(text: str, *, timestamp: Optional[int] = None) -> ChatMessage:
        return ChatMessage(
            role="user",
            content=text,
            metadata=MessageMetadata(timestamp=timestamp if timestamp is not None else now_ms()),
        )

    @staticmethod
    def system(text: str) -> ChatMessage:
        return ChatMessage(role="system", content=text)

    @staticmethod
    def assistant(content: Union[str, Tuple[Any, ...]]) -> ChatMessage:
        return ChatMessage(role="assistant", content=content)

    @staticmethod
    def parts(message: ChatMessage) -> Tuple[Any, ...]:
        """Content as a tuple of parts; string content becomes one text part."""
        if isinstance(message.content, str):
            return (TextPart(text=message.content),) if message.content else ()
        return message.content

    @staticmethod
    def text(message: ChatMessage) -> str:
        """Concatenated text of all text parts."""
        if isinstance(message.content, str):
            return message.content
        return "".join(p.text for p in message.content if isinstance(p, TextPart))

    @staticmethod
    def tool_calls(message: ChatMessage) -> List[ToolCallPart]:
        if isinstance(message.content, str):
            return []
        return [p for p in message.content if isinstance(p, ToolCallPart)]

    @staticmethod
    def tool_results(message: ChatMessage) -> List[ToolResultPart]:
        if isinstance(message.content, str):
            return []
        return [p for p in message.content if isinstance(p, ToolResultPart)]

    @staticmethod
    def is_error(message: ChatMessage) -> bool:
        return bool(message.metadata and message.metadata.is_error)
