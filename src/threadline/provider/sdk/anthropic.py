"""Anthropic messages stream adapted to generation events."""

import json
from typing import Any, AsyncIterator, Dict, Optional, Sequence

from anthropic import AsyncAnthropic

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
from ...util.log import Log
from ..base import ToolDefinition
from ..transform import ProviderTransform

log = Log.create({"service": "sdk.anthropic"})

RESERVED_OPTIONS = {"model", "messages", "max_tokens", "system", "tools"}


class AnthropicChatModel:
    """Streams messages from the Anthropic API."""

    def __init__(
        self,
        model: str,
        *,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        max_tokens: int = ProviderTransform.OUTPUT_TOKEN_MAX,
        options: Optional[Dict[str, Any]] = None,
    ):
        self.model = model
        self.max_tokens = max_tokens
        self.options = dict(options or {})
        self.client = AsyncAnthropic(api_key=api_key, base_url=base_url)

    def _params(
        self,
        system_prompt: Optional[str],
        messages: Sequence[ChatMessage],
        tools: Sequence[ToolDefinition],
    ) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            "model": self.model,
            "messages": ProviderTransform.anthropic_messages(messages),
            "max_tokens": self.max_tokens,
        }
        if system_prompt:
            params["system"] = system_prompt
        converted = ProviderTransform.anthropic_tools(tools)
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

        tools_by_index: Dict[int, Dict[str, Any]] = {}
        stop_reason: Optional[str] = None

        async with self.client.messages.stream(**params) as stream:
            async for event in stream:
                if signal.cancelled:
                    yield Abort()
                    return

                kind = getattr(event, "type", None)
                index = int(getattr(event, "index", 0) or 0)

                if kind == "content_block_start":
                    block = event.content_block
                    if getattr(block, "type", None) == "tool_use":
                        initial = getattr(block, "input", None)
                        tools_by_index[index] = {
                            "id": block.id,
                            "name": block.name,
                            "input_json": json.dumps(initial) if initial else "",
                        }
                        yield ToolInputStart(block.id, block.name)

                elif kind == "content_block_delta":
                    delta = event.delta
                    delta_type = getattr(delta, "type", None)
                    if delta_type == "text_delta" and delta.text:
                        yield TextDelta(delta.text)
                    elif delta_type == "input_json_delta" and index in tools_by_index:
                        partial = getattr(delta, "partial_json", "") or ""
                        if partial:
                            tools_by_index[index]["input_json"] += partial
                            yield ToolInputDelta(tools_by_index[index]["id"], partial)

                elif kind == "content_block_stop":
                    state = tools_by_index.pop(index, None)
                    if state is not None:
                        yield self._tool_call(state)

                elif kind == "message_delta":
                    stop_reason = getattr(event.delta, "stop_reason", None) or stop_reason
                    usage = getattr(event, "usage", None)
                    if usage is not None:
                        log.info("usage", {"output_tokens": getattr(usage, "output_tokens", None)})

                elif kind == "message_stop":
                    for pending in list(tools_by_index.values()):
                        yield self._tool_call(pending)
                    tools_by_index.clear()

        yield Finish(stop_reason)

    @staticmethod
    def _tool_call(state: Dict[str, Any]) -> ToolCall:
        raw = state.get("input_json") or ""
        try:
            value = json.loads(raw) if raw else {}
        except json.JSONDecodeError:
            log.warn("unparsable tool input", {"call": state["id"], "length": len(raw)})
            value = {}
        return ToolCall(state["id"], state["name"], value if isinstance(value, dict) else {})
