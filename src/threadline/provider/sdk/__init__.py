"""SDK-backed model clients."""

from .anthropic import AnthropicChatModel
from .openai import OpenAIChatModel

__all__ = ["AnthropicChatModel", "OpenAIChatModel"]
