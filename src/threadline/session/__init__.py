"""Conversation model, stream folding and the request orchestrator.

Exports are resolved lazily to avoid import cycles with ``provider`` and
``transport``.
"""

from __future__ import annotations

from importlib import import_module
from typing import Dict, Tuple

_EXPORTS: Dict[str, Tuple[str, str]] = {
    "ChatMessage": (".message", "ChatMessage"),
    "Message": (".message", "Message"),
    "MessageAction": (".message", "MessageAction"),
    "MessageMetadata": (".message", "MessageMetadata"),
    "TextPart": (".message", "TextPart"),
    "ToolCallPart": (".message", "ToolCallPart"),
    "ToolResultPart": (".message", "ToolResultPart"),
    "classify_tool_output": (".tool_output", "classify_tool_output"),
    "FoldState": (".fold", "FoldState"),
    "apply": (".fold", "apply"),
    "fold": (".fold", "fold"),
    "StreamReducer": (".reducer", "StreamReducer"),
    "ReduceOutcome": (".reducer", "ReduceOutcome"),
    "ReduceStatus": (".reducer", "ReduceStatus"),
    "ToolCallTracker": (".tool_tracker", "ToolCallTracker"),
    "ToolCallStatus": (".tool_tracker", "ToolCallStatus"),
    "repair": (".repair", "repair"),
    "repair_with_report": (".repair", "repair_with_report"),
    "CancellationToken": (".cancellation", "CancellationToken"),
    "ExecutionContext": (".cancellation", "ExecutionContext"),
    "OperationCancelledError": (".cancellation", "OperationCancelledError"),
    "ToolExecutor": (".tool_executor", "ToolExecutor"),
    "ChatOrchestrator": (".orchestrator", "ChatOrchestrator"),
    "RequestInFlightError": (".orchestrator", "RequestInFlightError"),
    "TurnResult": (".orchestrator", "TurnResult"),
    "TurnStatus": (".orchestrator", "TurnStatus"),
    "MemoryHistoryStore": (".history_store", "MemoryHistoryStore"),
    "sanitize_history": (".history_store", "sanitize_history"),
}


def __getattr__(name: str):
    target = _EXPORTS.get(name)
    if not target:
        raise AttributeError(name)

    module_name, attr_name = target
    module = import_module(module_name, __name__)
    value = getattr(module, attr_name)
    globals()[name] = value
    return value


__all__ = list(_EXPORTS.keys())
