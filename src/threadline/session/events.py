"""Session event definitions and property models.

Published on the injected ``Bus`` by the orchestrator so that UIs and logs
can follow a request without reading the conversation itself.
"""

from typing import Optional

from pydantic import BaseModel

from ..core.bus import BusEvent


class SessionStatusProperties(BaseModel):
    """Properties for session.status event."""
    session_id: str
    status: str
    error: Optional[str] = None


class SessionSnapshotProperties(BaseModel):
    """Properties for session.snapshot event."""
    session_id: str
    message_count: int


class HistoryRepairedProperties(BaseModel):
    """Properties for session.history.repaired event."""
    session_id: str
    dropped_calls: int
    dropped_results: int
    dropped_messages: int


SessionStatus = BusEvent.define("session.status", SessionStatusProperties)

SessionSnapshot = BusEvent.define("session.snapshot", SessionSnapshotProperties)

HistoryRepaired = BusEvent.define("session.history.repaired", HistoryRepairedProperties)
