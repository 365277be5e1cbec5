"""Cooperative cancellation shared by one request and its tool calls."""

import asyncio
from dataclasses import dataclass
from typing import Optional


class OperationCancelledError(Exception):
    """Raised when work observes a tripped cancellation token.

    This is a distinct terminal condition, not a failure: callers report it
    as "stopped" rather than as an error.
    """

    def __init__(self, reason: Optional[str] = None):
        self.reason = reason
        super().__init__(reason or "Operation cancelled")


class CancellationToken:
    """One-shot cancellation signal.

    Tripping is idempotent. Work checks ``cancelled`` or calls
    ``raise_if_cancelled()`` at its suspension points; long-running work can
    ``await token.wait()`` alongside its own I/O.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason: Optional[str] = None

    def cancel(self, reason: str = "Cancelled by user") -> bool:
        """Trip the token. Returns False if it was already tripped."""
        if self._event.is_set():
            return False
        self._reason = reason
        self._event.set()
        return True

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise OperationCancelledError(self._reason)

    async def wait(self) -> None:
        await self._event.wait()


@dataclass(frozen=True)
class ExecutionContext:
    """What a tool sees of the request that invoked it."""
    working_directory: str
    session_id: str
    signal: CancellationToken
    tool_call_id: Optional[str] = None
