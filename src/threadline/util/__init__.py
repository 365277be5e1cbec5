"""Utility modules."""

from .log import Log
from .error import human_readable_error, is_auth_error

__all__ = ["Log", "human_readable_error", "is_auth_error"]
