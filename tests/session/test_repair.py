from threadline.session.message import (
    ChatMessage,
    Message,
    TextPart,
    ToolCallPart,
    ToolResultPart,
)
from threadline.session.repair import repair, repair_with_report
from threadline.session.tool_output import TextOutput


def _call(id_: str, name: str = "read") -> ToolCallPart:
    return ToolCallPart(tool_call_id=id_, tool_name=name, input={"id": id_})


def _result(id_: str, name: str = "read") -> ToolResultPart:
    return ToolResultPart(tool_call_id=id_, tool_name=name, output=TextOutput(value=f"out {id_}"), is_error=False)


def _assistant(*parts) -> ChatMessage:
    return ChatMessage(role="assistant", content=tuple(parts))


def _tool(*parts) -> ChatMessage:
    return ChatMessage(role="tool", content=tuple(parts))


def test_valid_history_is_unchanged() -> None:
    history = (
        Message.system("be brief"),
        Message.user("read a", timestamp=1),
        _assistant(TextPart(text="reading"), _call("a")),
        _tool(_result("a")),
        ChatMessage(role="assistant", content="done"),
    )

    report = repair_with_report(history)

    assert report.messages == history
    assert not report.changed
    assert report.regrouped_messages == 0


def test_repair_is_idempotent() -> None:
    history = (
        Message.user("go", timestamp=1),
        _assistant(TextPart(text="t"), _call("a"), _call("b")),
        _tool(_result("a")),
        _tool(_result("x")),
        _assistant(_call("c")),
        _tool(_result("c")),
        _tool(_result("c")),
        _assistant(_call("d")),
    )

    once = repair(history)

    assert repair(once) == once


def test_partial_coverage_drops_all_calls_and_orphaned_result() -> None:
    history = (
        Message.user("go", timestamp=1),
        _assistant(TextPart(text="working on it"), _call("A"), _call("B")),
        _tool(_result("A")),
    )

    report = repair_with_report(history)

    assert report.messages == (
        history[0],
        ChatMessage(role="assistant", content=(TextPart(text="working on it"),)),
    )
    assert report.dropped_calls == 2
    assert report.dropped_messages == 1


def test_call_only_message_is_dropped_when_unanswered() -> None:
    history = (Message.user("go", timestamp=1), _assistant(_call("a")), Message.user("again", timestamp=2))

    report = repair_with_report(history)

    assert report.messages == (history[0], history[2])
    assert report.dropped_calls == 1
    assert report.dropped_messages == 1


def test_orphan_tool_message_is_dropped() -> None:
    history = (Message.user("go", timestamp=1), _tool(_result("z")))

    assert repair(history) == (history[0],)


def test_string_content_assistant_passes_through() -> None:
    history = (ChatMessage(role="assistant", content="plain"),)

    assert repair(history) == history


def test_consecutive_results_are_grouped_in_call_order() -> None:
    history = (
        _assistant(_call("a"), _call("b")),
        _tool(_result("b")),
        _tool(_result("a")),
    )

    report = repair_with_report(history)

    assert report.messages == (history[0], _tool(_result("a"), _result("b")))
    assert report.changed
    assert not report.dropped
    assert report.regrouped_messages == 2
    assert repair(report.messages) == report.messages


def test_foreign_and_duplicate_results_are_removed_from_group() -> None:
    history = (
        _assistant(_call("a")),
        _tool(_result("a"), _result("q")),
        _tool(_result("a")),
    )

    report = repair_with_report(history)

    assert report.messages == (history[0], _tool(_result("a")))
    assert report.dropped_results == 2


def test_next_message_is_reevaluated_after_a_failed_pair() -> None:
    history = (
        _assistant(_call("a")),
        _assistant(_call("b")),
        _tool(_result("b")),
    )

    assert repair(history) == (history[1], history[2])
