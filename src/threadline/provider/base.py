"""The contract between the orchestrator and a language model."""

from typing import Any, AsyncIterator, Dict, Optional, Protocol, Sequence

from pydantic import BaseModel, Field

from ..session.cancellation import CancellationToken
from ..session.message import ChatMessage
from ..session.stream_events import StreamEvent


class ToolDefinition(BaseModel):
    """A tool as advertised to the model."""
    name: str
    description: str = ""
    parameters: Dict[str, Any] = Field(default_factory=lambda: {"type": "object", "properties": {}})


class ModelClient(Protocol):
    """Anything that turns a conversation into an ordered event stream.

    Implementations emit text deltas, tool input start/delta events, a
    ``ToolCall`` per completed call and a final ``Finish``. They never run
    tools and never emit tool results.
    """

    def stream(
        self,
        system_prompt: Optional[str],
        messages: Sequence[ChatMessage],
        tools: Sequence[ToolDefinition],
        signal: CancellationToken,
    ) -> AsyncIterator[StreamEvent]: ...
