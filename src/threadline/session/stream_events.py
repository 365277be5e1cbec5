"""Generation events folded into the conversation.

Each event kind is its own frozen dataclass and ``StreamEvent`` is their
union. Model adapters produce the first group; the orchestrator adds tool
results; ``ToolInputUpdate`` carries an already-parsed input and is what the
client projection receives in place of raw argument fragments.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple, Union

from .message import MessageAction


@dataclass(frozen=True)
class TextDelta:
    text: str


@dataclass(frozen=True)
class ToolInputStart:
    tool_call_id: str
    tool_name: str


@dataclass(frozen=True)
class ToolInputDelta:
    tool_call_id: str
    delta: str


@dataclass(frozen=True)
class ToolInputUpdate:
    tool_call_id: str
    input: Dict[str, Any]


@dataclass(frozen=True)
class ToolCall:
    tool_call_id: str
    tool_name: str
    input: Dict[str, Any]


@dataclass(frozen=True)
class ToolResult:
    tool_call_id: str
    tool_name: str
    output: Any


@dataclass(frozen=True)
class ToolError:
    tool_call_id: str
    tool_name: str
    output: Any


@dataclass(frozen=True)
class Error:
    """Stream-terminal failure.

    ``timestamp`` and ``session_id`` are stamped by the reducer before the
    event is folded so that folding stays deterministic.
    """
    error: Any
    timestamp: Optional[int] = None
    session_id: Optional[str] = None
    actions: Tuple[MessageAction, ...] = ()


@dataclass(frozen=True)
class Finish:
    reason: Optional[str] = None


@dataclass(frozen=True)
class Abort:
    pass


StreamEvent = Union[
    TextDelta,
    ToolInputStart,
    ToolInputDelta,
    ToolInputUpdate,
    ToolCall,
    ToolResult,
    ToolError,
    Error,
    Finish,
    Abort,
]

TERMINAL_EVENTS = (Error, Finish, Abort)
