import asyncio

import pytest

from threadline.session.cancellation import CancellationToken, OperationCancelledError
from threadline.session.stream_events import ToolCall, ToolError, ToolResult
from threadline.session.tool_executor import ToolExecutor
from threadline.session.tool_output import ErrorTextOutput, JsonOutput, TextOutput


def _executor(tools) -> ToolExecutor:
    return ToolExecutor(tools, working_directory="/work", session_id="ses_exec")


@pytest.mark.anyio
async def test_sync_and_async_tools_are_supported() -> None:
    def echo(args, ctx):
        return args["text"]

    async def count(args, ctx):
        await asyncio.sleep(0)
        return {"n": len(args["items"])}

    executor = _executor({"echo": echo, "count": count})
    token = CancellationToken()

    first = await executor.execute(ToolCall("1", "echo", {"text": "hi"}), token)
    second = await executor.execute(ToolCall("2", "count", {"items": [1, 2]}), token)

    assert first == ToolResult("1", "echo", TextOutput(value="hi"))
    assert second == ToolResult("2", "count", JsonOutput(value={"n": 2}))


@pytest.mark.anyio
async def test_tool_receives_execution_context() -> None:
    seen = []

    def probe(args, ctx):
        seen.append(ctx)
        return "ok"

    token = CancellationToken()
    await _executor({"probe": probe}).execute(ToolCall("7", "probe", {}), token)

    assert seen[0].working_directory == "/work"
    assert seen[0].session_id == "ses_exec"
    assert seen[0].signal is token
    assert seen[0].tool_call_id == "7"


@pytest.mark.anyio
async def test_unknown_tool_becomes_tool_error() -> None:
    result = await _executor({}).execute(ToolCall("1", "nope", {}), CancellationToken())

    assert result == ToolError("1", "nope", ErrorTextOutput(value="Unknown tool: nope"))


@pytest.mark.anyio
async def test_exceptions_become_tool_errors() -> None:
    def broken(args, ctx):
        raise FileNotFoundError("no such file: a.txt")

    result = await _executor({"read": broken}).execute(ToolCall("1", "read", {}), CancellationToken())

    assert isinstance(result, ToolError)
    assert result.output == ErrorTextOutput(value="no such file: a.txt")


@pytest.mark.anyio
async def test_error_outputs_are_reported_as_tool_errors() -> None:
    def refuses(args, ctx):
        return {"type": "error-text", "value": "denied"}

    result = await _executor({"t": refuses}).execute(ToolCall("1", "t", {}), CancellationToken())

    assert result == ToolError("1", "t", ErrorTextOutput(value="denied"))


@pytest.mark.anyio
async def test_cancellation_propagates() -> None:
    async def long_running(args, ctx):
        ctx.signal.cancel()
        ctx.signal.raise_if_cancelled()

    with pytest.raises(OperationCancelledError):
        await _executor({"sh": long_running}).execute(ToolCall("1", "sh", {}), CancellationToken())


@pytest.mark.anyio
async def test_already_cancelled_token_skips_execution() -> None:
    calls = []
    token = CancellationToken()
    token.cancel()

    with pytest.raises(OperationCancelledError):
        await _executor({"t": lambda a, c: calls.append(a)}).execute(ToolCall("1", "t", {}), token)
    assert calls == []
