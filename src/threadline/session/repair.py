"""Restore the call/result pairing a model API requires before resubmission.

Walking the history in order:

* an assistant message with tool calls is kept only if the tool messages
  directly after it cover every one of its call ids. Those tool messages are
  coalesced into one, in call order, without duplicates or foreign ids.
  Otherwise its calls are stripped, its text kept, and the message dropped
  if nothing remains;
* a tool message not consumed by the rule above is dropped;
* user and system messages, and assistant messages without calls, pass
  through unchanged.

Dropped data and regrouped tool messages are counted in the returned
``RepairResult`` so the caller can report them.
"""

from dataclasses import dataclass
from typing import Dict, List, Sequence, Tuple

from .message import ChatMessage, Message, ToolCallPart, ToolResultPart


@dataclass(frozen=True)
class RepairResult:
    messages: Tuple[ChatMessage, ...]
    dropped_calls: int = 0
    dropped_results: int = 0
    dropped_messages: int = 0
    regrouped_messages: int = 0

    @property
    def dropped(self) -> bool:
        return bool(self.dropped_calls or self.dropped_results or self.dropped_messages)

    @property
    def changed(self) -> bool:
        return self.dropped or self.regrouped_messages > 0


def _pair(calls: List[ToolCallPart], run: Sequence[ChatMessage]) -> Tuple[List[ToolResultPart], int]:
    """Pick the first result for each call, in call order.

    Returns the chosen results and how many results were left over.
    """
    first: Dict[str, ToolResultPart] = {}
    total = 0
    for message in run:
        for part in Message.tool_results(message):
            total += 1
            first.setdefault(part.tool_call_id, part)
    chosen = [first[c.tool_call_id] for c in calls if c.tool_call_id in first]
    return chosen, total - len(chosen)


def repair_with_report(history: Sequence[ChatMessage]) -> RepairResult:
    """Repair ``history`` and report what was dropped or regrouped."""
    out: List[ChatMessage] = []
    dropped_calls = dropped_results = dropped_messages = regrouped_messages = 0
    i = 0
    n = len(history)

    while i < n:
        message = history[i]

        if message.role == "tool":
            dropped_messages += 1
            dropped_results += len(Message.tool_results(message))
            i += 1
            continue

        calls = Message.tool_calls(message) if message.role == "assistant" else []
        if not calls:
            out.append(message)
            i += 1
            continue

        j = i + 1
        while j < n and history[j].role == "tool":
            j += 1
        run = history[i + 1:j]
        chosen, extra = _pair(calls, run)

        if run and len(chosen) == len(calls):
            out.append(message)
            if len(run) == 1 and extra == 0 and list(run[0].content) == chosen:
                out.append(run[0])
            else:
                out.append(ChatMessage(role="tool", content=tuple(chosen), metadata=run[0].metadata))
                dropped_results += extra
                regrouped_messages += len(run)
            i = j
            continue

        dropped_calls += len(calls)
        remaining = tuple(p for p in Message.parts(message) if not isinstance(p, ToolCallPart))
        if remaining:
            out.append(message.model_copy(update={"content": remaining}))
        else:
            dropped_messages += 1
        i += 1

    return RepairResult(
        messages=tuple(out),
        dropped_calls=dropped_calls,
        dropped_results=dropped_results,
        dropped_messages=dropped_messages,
        regrouped_messages=regrouped_messages,
    )


def repair(history: Sequence[ChatMessage]) -> Tuple[ChatMessage, ...]:
    """Pure repair pass; see the module docstring for the rules."""
    return repair_with_report(history).messages
