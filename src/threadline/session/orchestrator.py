"""One conversation's request loop.

``ChatOrchestrator.send`` appends the user's input, repairs the history,
then drives model streams through the reducer. Every finalized tool call is
executed before the next model event is read, and its result is folded into
the same snapshot sequence. When a stream ends after tools ran, the model is
called again with the results, up to ``agent.max_steps`` streams per turn.

Collaborators are injected: the model client, the tool mapping, the bus and
the optional transport. Only one request may be in flight at a time.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, AsyncIterator, Iterable, Mapping, Optional, Sequence, Set, Tuple

from ..core.bus import Bus
from ..core.config import Config
from ..core.id import Identifier
from ..provider.base import ModelClient, ToolDefinition
from ..transport.encoder import StreamEncoder
from ..transport.wire import Transport, WireModel
from ..util.callback import call_callback
from ..util.error import human_readable_error, is_auth_error
from ..util.log import Log
from .cancellation import CancellationToken, OperationCancelledError
from .events import (
    HistoryRepaired,
    HistoryRepairedProperties,
    SessionSnapshot,
    SessionSnapshotProperties,
    SessionStatus,
    SessionStatusProperties,
)
from .fold import FoldState
from .history_store import sanitize_history
from .message import ChatMessage, Message, MessageAction
from .reducer import ReduceOutcome, ReduceStatus, SnapshotCallback, StreamReducer
from .repair import RepairResult, repair_with_report
from .stream_events import Error, StreamEvent, ToolCall
from .tool_executor import Tool, ToolExecutor

log = Log.create({"service": "session.orchestrator"})


class RequestInFlightError(Exception):
    """A second request was started while one is still running."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Session {session_id} already has an active request")


class TurnStatus(str, Enum):
    COMPLETED = "completed"
    ERROR = "error"
    ABORTED = "aborted"


_STATUS = {
    ReduceStatus.FINISHED: TurnStatus.COMPLETED,
    ReduceStatus.ERROR: TurnStatus.ERROR,
    ReduceStatus.ABORTED: TurnStatus.ABORTED,
}


@dataclass(frozen=True)
class TurnResult:
    """The settled conversation and how the turn ended."""
    messages: Tuple[ChatMessage, ...]
    status: TurnStatus
    session_id: str
    error: Optional[str] = None
    actions: Tuple[MessageAction, ...] = ()
    steps: int = 0
    dropped_calls: int = 0
    dropped_messages: int = 0

    @property
    def repaired(self) -> bool:
        return bool(self.dropped_calls or self.dropped_messages)


async def _close(iterator: Any) -> None:
    aclose = getattr(iterator, "aclose", None)
    if aclose is not None:
        await aclose()


class ChatOrchestrator:
    """Runs turns of one conversation against a model and a set of tools."""

    def __init__(
        self,
        model: ModelClient,
        tools: Optional[Mapping[str, Tool]] = None,
        *,
        tool_definitions: Sequence[ToolDefinition] = (),
        working_directory: str = ".",
        config: Optional[Config] = None,
        bus: Optional[Bus] = None,
        transport: Optional[Transport] = None,
        session_id: Optional[str] = None,
    ) -> None:
        self.model = model
        self.tool_definitions = list(tool_definitions)
        self.config = config or Config()
        self.bus = bus or Bus()
        self.transport = transport
        self.session_id = session_id or Identifier.ascending("session")
        self.executor = ToolExecutor(
            tools or {},
            working_directory=working_directory,
            session_id=self.session_id,
        )
        self._token: Optional[CancellationToken] = None
        self._encoder = StreamEncoder()

    @property
    def busy(self) -> bool:
        return self._token is not None

    def stop(self, reason: str = "Cancelled by user") -> bool:
        """Cancel the active request. Returns False when nothing is running."""
        if self._token is None:
            return False
        log.info("stop requested", {"session": self.session_id, "reason": reason})
        return self._token.cancel(reason)

    def restore(self, stored: Iterable[Any]) -> Tuple[ChatMessage, ...]:
        """Sanitize a persisted history, keeping the last ``agent.history_limit`` entries."""
        return sanitize_history(stored, self.config.agent.history_limit)

    async def send(
        self,
        history: Sequence[ChatMessage],
        user_input: Optional[str] = None,
        on_snapshot: Optional[SnapshotCallback] = None,
    ) -> TurnResult:
        """Run one turn and return the history to persist."""
        if self._token is not None:
            raise RequestInFlightError(self.session_id)
        token = CancellationToken()
        self._token = token
        try:
            return await self._run(tuple(history), user_input, token, on_snapshot)
        finally:
            self._token = None

    async def _run(
        self,
        history: Tuple[ChatMessage, ...],
        user_input: Optional[str],
        token: CancellationToken,
        on_snapshot: Optional[SnapshotCallback],
    ) -> TurnResult:
        if user_input is not None:
            history = history + (Message.user(user_input),)

        report = await self._repair(history)
        dropped_calls = report.dropped_calls
        dropped_messages = report.dropped_messages
        state = FoldState.from_history(report.messages)

        timer = log.time("request", {"session": self.session_id, "messages": len(state.messages)})
        await self._status("busy")
        await self._send(self._encoder.start(state.messages))

        async def snapshot(messages: Tuple[ChatMessage, ...]) -> None:
            if on_snapshot is not None:
                await call_callback(on_snapshot, messages)
            await self.bus.publish(
                SessionSnapshot,
                SessionSnapshotProperties(session_id=self.session_id, message_count=len(messages)),
            )

        async def forward(event: StreamEvent, folded: FoldState, changed: bool) -> None:
            for message in self._encoder.encode(event, folded, changed):
                await self._send(message)

        if on_snapshot is not None:
            await call_callback(on_snapshot, state.messages)

        reducer = StreamReducer(self.session_id)
        max_steps = self.config.agent.max_steps
        step = 0
        outcome: Optional[ReduceOutcome] = None

        while True:
            step += 1
            executed: Set[str] = set()
            events = self.model.stream(
                self.config.agent.system_prompt,
                state.messages,
                self.tool_definitions,
                token,
            )
            outcome = await reducer.reduce(
                state,
                self._with_tools(events, token, executed),
                token=token,
                on_snapshot=snapshot,
                on_event=forward,
            )
            state = outcome.state
            log.info("step finished", {
                "session": self.session_id,
                "step": step,
                "status": outcome.status.value,
                "tools": len(executed),
            })

            if outcome.status != ReduceStatus.FINISHED or not executed:
                break
            if step >= max_steps:
                log.warn("step limit reached", {"session": self.session_id, "steps": step})
                break

            report = await self._repair(state.messages)
            dropped_calls += report.dropped_calls
            dropped_messages += report.dropped_messages
            if report.changed:
                state = FoldState.from_history(report.messages)
                await self._send(self._encoder.start(state.messages))

        status = _STATUS[outcome.status]
        actions: Tuple[MessageAction, ...] = ()
        if status == TurnStatus.ERROR:
            last = state.messages[-1] if state.messages else None
            if last is not None and last.metadata and last.metadata.actions:
                actions = tuple(last.metadata.actions)
        elif status == TurnStatus.ABORTED:
            await self._send(self._encoder.stopped(token.reason))
        else:
            await self._send(self._encoder.end(outcome.finish_reason))

        timer.stop(status=status.value, steps=step)
        await self._status(status.value, outcome.error)
        return TurnResult(
            messages=state.messages,
            status=status,
            session_id=self.session_id,
            error=outcome.error,
            actions=actions,
            steps=step,
            dropped_calls=dropped_calls,
            dropped_messages=dropped_messages,
        )

    async def _with_tools(
        self,
        events: AsyncIterator[StreamEvent],
        token: CancellationToken,
        executed: Set[str],
    ) -> AsyncIterator[StreamEvent]:
        """Pass model events through, running each finalized call in place.

        The model stream is not read again until the tool's result has been
        yielded. A failure of the model stream ends it with an ``Error``.
        """
        iterator = events.__aiter__()
        try:
            while True:
                try:
                    event = await iterator.__anext__()
                except StopAsyncIteration:
                    return
                except OperationCancelledError:
                    raise
                except Exception as e:
                    log.error("model stream failed", {"session": self.session_id, "error": e})
                    yield self._classify(Error(error=e))
                    return

                if isinstance(event, Error):
                    event = self._classify(event)
                yield event

                if isinstance(event, ToolCall) and event.tool_call_id not in executed:
                    executed.add(event.tool_call_id)
                    yield await self.executor.execute(event, token)
        finally:
            await _close(iterator)

    def _classify(self, event: Error) -> Error:
        text = human_readable_error(event.error)
        if event.actions or not is_auth_error(text, self.config.auth.patterns):
            return event
        log.warn("authentication error", {"session": self.session_id, "error": text})
        actions = tuple(
            MessageAction(text=a.text, command=a.command, args=a.args)
            for a in self.config.auth.actions
        )
        return replace(event, actions=actions)

    async def _repair(self, history: Sequence[ChatMessage]) -> RepairResult:
        report = repair_with_report(history)
        if report.regrouped_messages:
            log.debug("regrouped tool results", {
                "session": self.session_id,
                "messages": report.regrouped_messages,
            })
        if report.dropped:
            log.warn("repaired history", {
                "session": self.session_id,
                "dropped_calls": report.dropped_calls,
                "dropped_results": report.dropped_results,
                "dropped_messages": report.dropped_messages,
            })
            await self.bus.publish(
                HistoryRepaired,
                HistoryRepairedProperties(
                    session_id=self.session_id,
                    dropped_calls=report.dropped_calls,
                    dropped_results=report.dropped_results,
                    dropped_messages=report.dropped_messages,
                ),
            )
        return report

    async def _status(self, status: str, error: Optional[str] = None) -> None:
        await self.bus.publish(
            SessionStatus,
            SessionStatusProperties(session_id=self.session_id, status=status, error=error),
        )

    async def _send(self, message: WireModel) -> None:
        if self.transport is None:
            return
        try:
            await call_callback(self.transport.send, message)
        except Exception as e:
            log.error("transport send failed", {"session": self.session_id, "command": message.command, "error": e})
