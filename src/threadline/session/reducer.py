"""Drive one model stream through the fold.

The reducer owns the conversation for the duration of a stream. It pulls
events one at a time on the calling task, checks the cancellation token
before each, folds the event and reports a snapshot whenever the messages
changed. Nothing is batched: snapshot *n* is snapshot *n-1* plus event *n*.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, AsyncIterable, Awaitable, Callable, Optional, Sequence, Tuple, Union

from ..util.callback import call_callback
from ..util.error import human_readable_error
from ..util.log import Log
from .cancellation import CancellationToken, OperationCancelledError
from .fold import FoldState, apply
from .message import ChatMessage, now_ms
from .stream_events import Abort, Error, Finish, StreamEvent

log = Log.create({"service": "session.reducer"})

SnapshotCallback = Callable[[Tuple[ChatMessage, ...]], Union[None, Awaitable[None]]]
EventCallback = Callable[[StreamEvent, FoldState, bool], Union[None, Awaitable[None]]]


class ReduceStatus(str, Enum):
    FINISHED = "finished"
    ERROR = "error"
    ABORTED = "aborted"


@dataclass(frozen=True)
class ReduceOutcome:
    """How a stream ended and the history it left behind."""
    state: FoldState
    status: ReduceStatus
    error: Optional[str] = None
    finish_reason: Optional[str] = None

    @property
    def messages(self) -> Tuple[ChatMessage, ...]:
        return self.state.messages


class StreamReducer:
    """Fold an ordered event stream into a conversation."""

    def __init__(self, session_id: str, *, clock: Callable[[], int] = now_ms) -> None:
        self.session_id = session_id
        self.clock = clock

    def _stamp(self, event: StreamEvent) -> StreamEvent:
        if isinstance(event, Error):
            return replace(
                event,
                timestamp=event.timestamp if event.timestamp is not None else self.clock(),
                session_id=event.session_id or self.session_id,
            )
        return event

    async def reduce(
        self,
        history: Union[Sequence[ChatMessage], FoldState],
        events: AsyncIterable[StreamEvent],
        *,
        token: Optional[CancellationToken] = None,
        on_snapshot: Optional[SnapshotCallback] = None,
        on_event: Optional[EventCallback] = None,
    ) -> ReduceOutcome:
        """Consume ``events`` until a terminal event, exhaustion or cancellation.

        An exception raised by the stream itself is folded as an ``Error``
        event. ``on_event`` sees every applied event with the resulting state
        and whether the messages changed; ``on_snapshot`` sees only changes.
        """
        state = history if isinstance(history, FoldState) else FoldState.from_history(history)
        iterator = events.__aiter__()
        status = ReduceStatus.FINISHED
        error: Optional[str] = None
        reason: Optional[str] = None

        try:
            while True:
                if token is not None:
                    token.raise_if_cancelled()
                try:
                    event = await iterator.__anext__()
                except StopAsyncIteration:
                    break
                except OperationCancelledError:
                    raise
                except Exception as e:
                    log.error("stream failed", {"session": self.session_id, "error": e})
                    event = Error(error=e)

                if token is not None:
                    token.raise_if_cancelled()
                if isinstance(event, Abort):
                    raise OperationCancelledError("Stream aborted")

                event = self._stamp(event)
                updated = apply(state, event)
                changed = updated.messages is not state.messages
                state = updated

                if on_event is not None:
                    await call_callback(on_event, event, state, changed)
                if changed and on_snapshot is not None:
                    await call_callback(on_snapshot, state.messages)

                if isinstance(event, Error):
                    status = ReduceStatus.ERROR
                    error = human_readable_error(event.error)
                    break
                if isinstance(event, Finish):
                    reason = event.reason
                    break
        except OperationCancelledError as e:
            log.info("stream aborted", {"session": self.session_id, "reason": e.reason})
            status = ReduceStatus.ABORTED
        finally:
            await _close(iterator)

        return ReduceOutcome(state=state, status=status, error=error, finish_reason=reason)


async def _close(iterator: Any) -> None:
    aclose = getattr(iterator, "aclose", None)
    if aclose is not None:
        await aclose()
