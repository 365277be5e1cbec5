"""threadline - a streaming tool-call agent orchestrator.

Folds model generation events into a replayable conversation, runs the
tools the model asks for, keeps tool calls paired with their results, and
mirrors the conversation to clients over a small wire protocol.
"""

__version__ = "0.1.0"


# Lazy imports to avoid circular dependencies
def __getattr__(name: str):
    """Lazy import module components."""
    if name in ("GlobalPath", "Identifier", "Bus", "BusEvent"):
        from . import core
        return getattr(core, name)
    if name == "Log":
        from .util.log import Log
        return Log
    if name in ("ChatOrchestrator", "ChatMessage", "Message", "CancellationToken", "repair"):
        from . import session
        return getattr(session, name)
    if name in ("ModelClient", "ToolDefinition"):
        from . import provider
        return getattr(provider, name)
    if name in ("ClientProjection", "StreamEncoder"):
        from . import transport
        return getattr(transport, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "__version__",
    "GlobalPath",
    "Identifier",
    "Bus",
    "BusEvent",
    "Log",
    "ChatOrchestrator",
    "ChatMessage",
    "Message",
    "CancellationToken",
    "repair",
    "ModelClient",
    "ToolDefinition",
    "ClientProjection",
    "StreamEncoder",
]
