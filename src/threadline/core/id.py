"""Sortable prefixed identifiers.

IDs look like ``ses_018f2c3a9b0e0001Kq3ZxY7pLm``: a type prefix, twelve hex
characters of millisecond timestamp, four hex characters of per-millisecond
counter, then a random base62 suffix. Tool call ids are never generated
here; they come from the model.
"""

import secrets
import time
from typing import Literal

PREFIX_MAP = {
    "session": "ses",
    "message": "msg",
    "request": "req",
    "stream": "stm",
}

IDPrefix = Literal["session", "message", "request", "stream"]

LENGTH = 26
BASE62 = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz"

_last_timestamp = 0
_counter = 0


def _random_base62(length: int) -> str:
    return "".join(secrets.choice(BASE62) for _ in range(length))


def _create(prefix: IDPrefix, timestamp: int | None = None) -> str:
    global _last_timestamp, _counter

    current = timestamp if timestamp is not None else int(time.time() * 1000)
    if current != _last_timestamp:
        _last_timestamp = current
        _counter = 0
    _counter = (_counter + 1) & 0xFFFF

    head = f"{current & 0xFFFFFFFFFFFF:012x}{_counter:04x}"
    return f"{PREFIX_MAP[prefix]}_{head}{_random_base62(LENGTH - len(head))}"


def ascending(prefix: IDPrefix, given: str | None = None) -> str:
    """Generate a new ascending ID, or validate ``given`` against the prefix."""
    if given is not None:
        if not given.startswith(PREFIX_MAP[prefix]):
            raise ValueError(f"ID {given} does not start with {PREFIX_MAP[prefix]}")
        return given
    return _create(prefix)


def timestamp(id_str: str) -> int:
    """Extract the millisecond timestamp embedded in an ascending ID."""
    parts = id_str.split("_")
    if len(parts) != 2:
        raise ValueError(f"Invalid ID format: {id_str}")
    return int(parts[1][:12], 16)


class Identifier:
    """Namespace class for ID generation functions."""

    ascending = staticmethod(ascending)
    timestamp = staticmethod(timestamp)
