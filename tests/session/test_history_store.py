from threadline.session.history_store import MemoryHistoryStore, sanitize_history
from threadline.session.message import ChatMessage, Message


def test_sanitize_keeps_last_entries_and_fixes_roles() -> None:
    raw = [{"role": "user", "content": f"m{i}", "metadata": {"timestamp": i}} for i in range(5)]
    raw.append({"role": "narrator", "content": None})
    raw.append({"content": "no role"})
    raw.append("garbage")

    history = sanitize_history(raw, limit=5)

    assert [m.content for m in history] == ["m3", "m4", ""]
    assert history[-1].role == "assistant"
    assert history[0].metadata.timestamp == 3
    assert history[-1].metadata.timestamp is not None


def test_sanitize_drops_invalid_entries() -> None:
    raw = [
        {"role": "assistant", "content": [{"type": "tool-call", "toolName": "missing id"}]},
        {"role": "user", "content": "ok"},
    ]

    assert [m.content for m in sanitize_history(raw)] == ["ok"]


def test_sanitize_accepts_messages() -> None:
    message = ChatMessage(role="assistant", content="hi")

    history = sanitize_history([message])

    assert history[0].content == "hi"
    assert history[0].metadata.timestamp is not None


def test_memory_store_notifies_on_change_only() -> None:
    store = MemoryHistoryStore()
    seen = []
    unsubscribe = store.subscribe(lambda history: seen.append(len(history)))

    history = (Message.user("a", timestamp=1),)
    store.save(history)
    store.save(store.load())
    store.clear()
    store.clear()
    unsubscribe()
    store.save(history)

    assert seen == [1, 0]
    assert store.load() == history


def test_listener_failure_does_not_break_save() -> None:
    store = MemoryHistoryStore()
    seen = []

    def broken(history):
        raise RuntimeError("listener bug")

    store.subscribe(broken)
    store.subscribe(lambda history: seen.append(history))
    store.save((Message.user("a", timestamp=1),))

    assert len(seen) == 1
