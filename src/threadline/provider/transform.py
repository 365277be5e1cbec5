"""Conversions from the message model to provider request formats."""

import json
from typing import Any, Dict, List, Optional, Sequence

from ..session.message import ChatMessage, Message, TextPart, ToolCallPart, ToolResultPart
from ..session.tool_output import is_error_output, output_text
from .base import ToolDefinition


class ProviderTransform:
    """Build OpenAI and Anthropic payloads from ``ChatMessage`` histories."""

    OUTPUT_TOKEN_MAX = 32_000

    @staticmethod
    def openai_tools(tools: Sequence[ToolDefinition]) -> Optional[List[Dict[str, Any]]]:
        if not tools:
            return None
        return [
            {
                "type": "function",
                "function": {
                    "name": tool.name,
                    "description": tool.description,
                    "parameters": tool.parameters,
                },
            }
            for tool in tools
        ]

    @staticmethod
    def anthropic_tools(tools: Sequence[ToolDefinition]) -> Optional[List[Dict[str, Any]]]:
        if not tools:
            return None
        return [
            {
                "name": tool.name,
                "description": tool.description,
                "input_schema": tool.parameters,
            }
            for tool in tools
        ]

    @staticmethod
    def openai_messages(
        messages: Sequence[ChatMessage],
        system_prompt: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """Convert to chat-completions messages.

        Each tool result becomes its own ``tool`` message, even when results
        are grouped in one message here.
        """
        out: List[Dict[str, Any]] = []
        if system_prompt:
            out.append({"role": "system", "content": system_prompt})

        for message in messages:
            if message.role in ("user", "system"):
                out.append({"role": message.role, "content": Message.text(message)})
                continue

            if message.role == "tool":
                for part in Message.tool_results(message):
                    out.append({
                        "role": "tool",
                        "tool_call_id": part.tool_call_id,
                        "content": output_text(part.output),
                    })
                continue

            text = Message.text(message)
            calls = Message.tool_calls(message)
            entry: Dict[str, Any] = {"role": "assistant", "content": text or None}
            if calls:
                entry["tool_calls"] = [
                    {
                        "id": call.tool_call_id,
                        "type": "function",
                        "function": {
                            "name": call.tool_name,
                            "arguments": json.dumps(call.input, ensure_ascii=False),
                        },
                    }
                    for call in calls
                ]
            elif not text:
                continue
            out.append(entry)

        return out

    @staticmethod
    def anthropic_messages(messages: Sequence[ChatMessage]) -> List[Dict[str, Any]]:
        """Convert to Anthropic messages.

        System messages are dropped (the system prompt is sent separately),
        tool results become ``tool_result`` blocks on a user turn, and
        consecutive turns of the same role are merged because the API
        requires alternation.
        """
        out: List[Dict[str, Any]] = []

        def push(role: str, blocks: List[Dict[str, Any]]) -> None:
            if not blocks:
                # Anthropic rejects empty content.
                return
            if out and out[-1]["role"] == role:
                out[-1]["content"].extend(blocks)
            else:
                out.append({"role": role, "content": blocks})

        for message in messages:
            if message.role == "system":
                continue

            blocks: List[Dict[str, Any]] = []
            for part in Message.parts(message):
                if isinstance(part, TextPart):
                    if part.text:
                        blocks.append({"type": "text", "text": part.text})
                elif isinstance(part, ToolCallPart):
                    blocks.append({
                        "type": "tool_use",
                        "id": part.tool_call_id,
                        "name": part.tool_name,
                        "input": part.input,
                    })
                elif isinstance(part, ToolResultPart):
                    blocks.append({
                        "type": "tool_result",
                        "tool_use_id": part.tool_call_id,
                        "content": output_text(part.output),
                        "is_error": bool(part.is_error or is_error_output(part.output)),
                    })

            push("assistant" if message.role == "assistant" else "user", blocks)

        return out
