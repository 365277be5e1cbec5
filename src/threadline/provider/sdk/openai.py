"""OpenAI chat-completions stream adapted to generation events."""

import json
from typing import Any, AsyncIterator, Dict, Optional, Sequence

from openai import AsyncOpenAI

from ...session.cancellation import CancellationToken
from ...session.message import ChatMessage
from ...session.stream_events import (
    Abort,
    Finish,
    StreamEvent,
    TextDelta,
    ToolCall,
    ToolInputDelta,
    ToolInputStart,
)
from ...util.callback import call_callback
from ...util.log import Log
from ..base import ToolDefinition
from ..transform import ProviderTransform

log = Log.create({"service": "sdk.openai"})

RESERVED_OPTIONS = {"model", "messages", "stream", "stream_options", "tools"}


def _parse_arguments(call_id: str, raw: str) -> Dict[str, Any]:
    if not raw:
        return {}
    try:
        value = json.loads(raw)
    except json.JSONDecodeError:
        log.warn("unparsable tool arguments", {"call": call_id, "length": len(raw)})
        return {}
    return value if isinstance(value, dict) else {}


class OpenAIChatModel:
    """Streams chat completions from an OpenAI-compatible endpoint."""

    def __init__(
        self,
        model: str,
        *,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        options: Optional[Dict[str, Any]] = None,
    ):
        self.model = model
        self.options = dict(options or {})
        self.client = AsyncOpenAI(api_key=api_key, base_url=base_url)

    def _params(
        self,
        system_prompt: Optional[str],
        messages: Sequence[ChatMessage],
        tools: Sequence[ToolDefinition],
    ) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            "model": self.model,
            "messages": ProviderTransform.openai_messages(messages, system_prompt),
            "stream": True,
            "stream_options": {"include_usage": True},
        }
        converted = ProviderTransform.openai_tools(tools)
        if converted:
            params["tools"] = converted
        for key, value in self.options.items():
            if key not in RESERVED_OPTIONS:
                params[key] = value
        return params

    async def stream(
        self,
        system_prompt: Optional[str],
        messages: Sequence[ChatMessage],
        tools: Sequence[ToolDefinition],
        signal: CancellationToken,
    ) -> AsyncIterator[StreamEvent]:
        params = self._params(system_prompt, messages, tools)
        log.info("streaming", {"model": self.model, "message_count": len(params["messages"])})

        # OpenAI sends tool calls incrementally, keyed by index
        in_progress: Dict[int, Dict[str, Any]] = {}
        finish_reason: Optional[str] = None

        stream = await self.client.chat.completions.create(**params)
        try:
            async for chunk in stream:
                if signal.cancelled:
                    yield Abort()
                    return

                if not chunk.choices:
                    if chunk.usage:
                        log.info("usage", {
                            "input_tokens": chunk.usage.prompt_tokens,
                            "output_tokens": chunk.usage.completion_tokens,
                        })
                    continue

                choice = chunk.choices[0]
                delta = choice.delta

                if delta.content:
                    yield TextDelta(delta.content)

                for tc in delta.tool_calls or []:
                    current = in_progress.setdefault(
                        tc.index, {"id": "", "name": "", "arguments": "", "started": False}
                    )
                    if tc.id:
                        current["id"] = tc.id
                    if tc.function and tc.function.name:
                        current["name"] = tc.function.name
                    fragment = tc.function.arguments if tc.function and tc.function.arguments else ""
                    current["arguments"] += fragment

                    if not current["started"]:
                        if not (current["id"] and current["name"]):
                            continue
                        current["started"] = True
                        yield ToolInputStart(current["id"], current["name"])
                        # fragments that arrived before the id are sent together
                        fragment = current["arguments"]
                    if fragment:
                        yield ToolInputDelta(current["id"], fragment)

                if choice.finish_reason:
                    finish_reason = choice.finish_reason
                    for event in self._complete(in_progress):
                        yield event
        finally:
            close = getattr(stream, "close", None)
            if close is not None:
                await call_callback(close)

        for event in self._complete(in_progress):
            yield event
        yield Finish(finish_reason)

    @staticmethod
    def _complete(in_progress: Dict[int, Dict[str, Any]]):
        for index in sorted(in_progress):
            data = in_progress[index]
            if not data["id"]:
                continue
            yield ToolCall(data["id"], data["name"], _parse_arguments(data["id"], data["arguments"]))
        in_progress.clear()
