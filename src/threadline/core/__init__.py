"""Core infrastructure modules."""

from .global_paths import GlobalPath
from .id import Identifier
from .bus import Bus, BusEvent

__all__ = ["GlobalPath", "Identifier", "Bus", "BusEvent"]

# Log is exported separately from util to avoid circular imports
# To use: from threadline.util.log import Log
