"""Persistence contract for conversation histories.

The orchestrator never persists anything itself; its caller loads a history
before a request and saves the returned snapshot afterwards.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Iterable, List, Protocol, Sequence, Tuple

from pydantic import ValidationError

from ..util.log import Log
from .message import ChatMessage, now_ms

log = Log.create({"service": "session.history_store"})

KNOWN_ROLES = ("user", "assistant", "tool", "system")

HistoryListener = Callable[[Tuple[ChatMessage, ...]], None]


class HistoryStore(Protocol):
    def load(self) -> Tuple[ChatMessage, ...]: ...

    def save(self, history: Sequence[ChatMessage]) -> None: ...

    def clear(self) -> None: ...


def sanitize_history(raw: Iterable[Any], limit: int = 100) -> Tuple[ChatMessage, ...]:
    """Turn loosely-typed stored entries into messages.

    Keeps the last ``limit`` entries. Entries without a role or that fail
    validation are dropped; unknown roles become ``assistant``; missing
    content becomes ``""``; every message gets a timestamp.
    """
    entries = list(raw)[-limit:] if limit > 0 else []
    result: List[ChatMessage] = []
    for entry in entries:
        if isinstance(entry, ChatMessage):
            data: Dict[str, Any] = entry.model_dump(by_alias=True)
        elif isinstance(entry, dict):
            data = dict(entry)
        else:
            continue
        role = data.get("role")
        if not role:
            continue
        if role not in KNOWN_ROLES:
            data["role"] = "assistant"
        if data.get("content") is None:
            data["content"] = ""
        metadata = dict(data.get("metadata") or {})
        if metadata.get("timestamp") is None:
            metadata["timestamp"] = now_ms()
        data["metadata"] = metadata
        try:
            result.append(ChatMessage.model_validate(data))
        except ValidationError as e:
            log.warn("dropping invalid history entry", {"role": role, "error": str(e)})
    return tuple(result)


class MemoryHistoryStore:
    """In-memory store with change listeners."""

    def __init__(self, history: Sequence[ChatMessage] = ()) -> None:
        self._history: Tuple[ChatMessage, ...] = tuple(history)
        self._listeners: List[HistoryListener] = []

    def load(self) -> Tuple[ChatMessage, ...]:
        return self._history

    def save(self, history: Sequence[ChatMessage]) -> None:
        if history is self._history:
            return
        self._history = tuple(history)
        self._notify()

    def clear(self) -> None:
        if not self._history:
            return
        self._history = ()
        self._notify()

    def subscribe(self, listener: HistoryListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self._history)
            except Exception as e:
                log.error("history listener failed", {"error": e})
