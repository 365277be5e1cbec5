"""Error formatting utilities.

Turns arbitrary error values coming off a model stream into a single line a
user can read, and recognises credential failures by their text.
"""

import json
from typing import Any, Iterable, Optional

UNKNOWN_ERROR = "Unknown error occurred"

AUTH_ERROR_PATTERNS = (
    "api key",
    "authentication",
    "unauthorized",
    "invalid_api_key",
    "permission_denied",
    "api_key_invalid",
    "unauthenticated",
)


def _field(error: Any, name: str) -> Any:
    if isinstance(error, dict):
        return error.get(name)
    return getattr(error, name, None)


def human_readable_error(error: Any) -> str:
    """Format any error value into a user-facing message.

    ``None`` gives a generic message, strings pass through, exceptions give
    their message, and objects carrying ``message`` (and optionally ``type``)
    strings are rendered as ``"{type}: {message}"``. Anything else is JSON
    encoded, falling back to its type name.
    """
    if error is None:
        return UNKNOWN_ERROR
    if isinstance(error, str):
        return error
    if isinstance(error, BaseException):
        return str(error) or error.__class__.__name__

    message = _field(error, "message")
    if isinstance(message, str):
        kind = _field(error, "type")
        if isinstance(kind, str):
            return f"{kind}: {message}"
        return message

    try:
        return json.dumps(error)
    except (TypeError, ValueError):
        return f"<{type(error).__name__}>"


def is_auth_error(text: str, patterns: Optional[Iterable[str]] = None) -> bool:
    """Check whether an error message looks like a credential problem."""
    lowered = text.lower()
    return any(pattern.lower() in lowered for pattern in (patterns or AUTH_ERROR_PATTERNS))
