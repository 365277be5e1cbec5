import json

from threadline.provider.base import ToolDefinition
from threadline.provider.transform import ProviderTransform
from threadline.session.message import ChatMessage, Message, TextPart, ToolCallPart, ToolResultPart
from threadline.session.tool_output import ErrorTextOutput, JsonOutput


def _history():
    return [
        Message.system("ignored by anthropic"),
        Message.user("look up two things", timestamp=1),
        Message.assistant((
            TextPart(text="On it"),
            ToolCallPart(tool_call_id="c1", tool_name="lookup", input={"q": "a"}),
            ToolCallPart(tool_call_id="c2", tool_name="lookup", input={"q": "b"}),
        )),
        ChatMessage(role="tool", content=(
            ToolResultPart(tool_call_id="c1", tool_name="lookup", output=JsonOutput(value={"n": 1})),
            ToolResultPart(tool_call_id="c2", tool_name="lookup", output=ErrorTextOutput(value="missing"), is_error=True),
        )),
        Message.assistant(""),
        Message.assistant("Done"),
    ]


def test_openai_messages_split_tool_results() -> None:
    out = ProviderTransform.openai_messages(_history(), "be brief")

    assert [m["role"] for m in out] == ["system", "system", "user", "assistant", "tool", "tool", "assistant"]
    assert out[0]["content"] == "be brief"
    assert out[3]["content"] == "On it"
    assert json.loads(out[3]["tool_calls"][1]["function"]["arguments"]) == {"q": "b"}
    assert out[4] == {"role": "tool", "tool_call_id": "c1", "content": '{"n": 1}'}
    assert out[5]["content"] == "missing"
    assert out[6] == {"role": "assistant", "content": "Done"}


def test_anthropic_messages_merge_roles_and_mark_errors() -> None:
    out = ProviderTransform.anthropic_messages(_history())

    assert [m["role"] for m in out] == ["user", "assistant", "user", "assistant"]
    assert out[1]["content"][1] == {"type": "tool_use", "id": "c1", "name": "lookup", "input": {"q": "a"}}
    results = out[2]["content"]
    assert [r["tool_use_id"] for r in results] == ["c1", "c2"]
    assert results[0]["is_error"] is False
    assert results[1]["is_error"] is True
    assert out[3]["content"] == [{"type": "text", "text": "Done"}]


def test_anthropic_merges_consecutive_user_turns() -> None:
    out = ProviderTransform.anthropic_messages([
        Message.user("one", timestamp=1),
        Message.user("two", timestamp=2),
    ])

    assert out == [{"role": "user", "content": [{"type": "text", "text": "one"}, {"type": "text", "text": "two"}]}]


def test_tool_definitions() -> None:
    tools = [ToolDefinition(name="echo", description="Echo")]

    assert ProviderTransform.openai_tools([]) is None
    assert ProviderTransform.openai_tools(tools)[0]["function"]["parameters"] == {"type": "object", "properties": {}}
    assert ProviderTransform.anthropic_tools(tools)[0]["input_schema"]["type"] == "object"
