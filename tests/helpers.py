"""Shared test helpers."""

from __future__ import annotations

from typing import Any, AsyncIterator, Iterable, List, Optional, Sequence

from threadline.session.cancellation import CancellationToken
from threadline.session.message import ChatMessage
from threadline.session.stream_events import StreamEvent


async def stream_of(events: Iterable[Any]) -> AsyncIterator[StreamEvent]:
    """Yield events in order; an exception instance in the list is raised."""
    for event in events:
        if isinstance(event, BaseException):
            raise event
        yield event


class FakeModel:
    """Model client that replays one scripted stream per call."""

    def __init__(self, *scripts: Sequence[Any]) -> None:
        self.scripts: List[Sequence[Any]] = list(scripts)
        self.calls: List[dict] = []
        self.closed = 0

    async def stream(
        self,
        system_prompt: Optional[str],
        messages: Sequence[ChatMessage],
        tools: Sequence[Any],
        signal: CancellationToken,
    ) -> AsyncIterator[StreamEvent]:
        self.calls.append({
            "system_prompt": system_prompt,
            "messages": tuple(messages),
            "tools": list(tools),
        })
        script = self.scripts.pop(0) if self.scripts else []
        try:
            for event in script:
                if callable(event) and not isinstance(event, type):
                    event = event(signal)
                    if event is None:
                        continue
                if isinstance(event, BaseException):
                    raise event
                yield event
        finally:
            self.closed += 1


class CollectingTransport:
    def __init__(self) -> None:
        self.sent: List[Any] = []

    async def send(self, message: Any) -> None:
        self.sent.append(message)

    def commands(self) -> List[str]:
        return [m.command for m in self.sent]


def cancel_now(signal: CancellationToken) -> None:
    """Script step for ``FakeModel`` that trips the request's token."""
    signal.cancel()
    return None
