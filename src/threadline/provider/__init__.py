"""Model collaborators: the streaming protocol and SDK-backed implementations."""

from .base import ModelClient, ToolDefinition
from .transform import ProviderTransform

__all__ = ["ModelClient", "ProviderTransform", "ToolDefinition"]
