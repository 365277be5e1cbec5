"""Tool execution for the orchestrator.

The orchestrator does not interpret tool semantics: it looks the tool up by
name, runs it with an ``ExecutionContext`` and records what came back as a
``ToolResult`` or ``ToolError`` event. Failures never end the request; the
model sees them as ordinary results.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Dict, Mapping, Union

from ..util.callback import call_callback
from ..util.log import Log
from .cancellation import ExecutionContext, OperationCancelledError
from .stream_events import ToolCall, ToolError, ToolResult
from .tool_output import ErrorTextOutput, classify_tool_output, is_error_output

log = Log.create({"service": "session.tool_executor"})

Tool = Callable[[Dict[str, Any], ExecutionContext], Union[Any, Awaitable[Any]]]


class UnknownToolError(Exception):
    """The model asked for a tool that is not registered."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Unknown tool: {name}")


class ToolExecutor:
    """Run tools from a name-to-callable mapping."""

    def __init__(
        self,
        tools: Mapping[str, Tool],
        *,
        working_directory: str,
        session_id: str,
    ) -> None:
        self.tools = dict(tools)
        self.working_directory = working_directory
        self.session_id = session_id

    def context(self, signal, tool_call_id: str | None = None) -> ExecutionContext:
        return ExecutionContext(
            working_directory=self.working_directory,
            session_id=self.session_id,
            signal=signal,
            tool_call_id=tool_call_id,
        )

    async def execute(self, call: ToolCall, signal) -> Union[ToolResult, ToolError]:
        """Execute one finalized call.

        ``OperationCancelledError`` propagates so the request can stop; every
        other failure is captured as a ``ToolError``.
        """
        signal.raise_if_cancelled()
        try:
            tool = self.tools.get(call.tool_name)
            if tool is None:
                raise UnknownToolError(call.tool_name)
            value = await call_callback(tool, dict(call.input or {}), self.context(signal, call.tool_call_id))
        except OperationCancelledError:
            log.info("tool cancelled", {"tool": call.tool_name, "call": call.tool_call_id})
            raise
        except UnknownToolError as e:
            log.warn("unknown tool", {"tool": call.tool_name, "call": call.tool_call_id})
            return ToolError(call.tool_call_id, call.tool_name, ErrorTextOutput(value=str(e)))
        except Exception as e:
            log.error("tool execution error", {"tool": call.tool_name, "call": call.tool_call_id, "error": e})
            return ToolError(call.tool_call_id, call.tool_name, ErrorTextOutput(value=str(e) or e.__class__.__name__))

        output = classify_tool_output(value)
        if is_error_output(output):
            return ToolError(call.tool_call_id, call.tool_name, output)
        return ToolResult(call.tool_call_id, call.tool_name, output)
