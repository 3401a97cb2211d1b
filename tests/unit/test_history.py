# tests/unit/test_history.py

from __future__ import annotations
import datetime as dt
import json
import sys
from pathlib import Path

import pytest

# Make "src" importable
sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from llmchat.core.errors import HistoryError
from llmchat.core.models import Message
from llmchat.storage.history import Conversation, HistoryStore, format_duration, render_export


def _conv(conv_id: str, *pairs, provider="groq", model="llama-70b") -> Conversation:
    start = dt.datetime(2024, 5, 1, 12, 0, 0, tzinfo=dt.timezone.utc)
    msgs = []
    for user, assistant in pairs:
        msgs += [Message.user(user), Message.assistant(assistant)]
    return Conversation(
        provider=provider, model=model, messages=msgs, id=conv_id,
        start_time=start, end_time=start + dt.timedelta(seconds=75),
    )


def test_missing_file_is_empty(tmp_path: Path):
    store = HistoryStore(tmp_path / "history.json")
    assert store.load() == []
    assert store.get_all() == []


def test_add_save_load_roundtrip(tmp_path: Path):
    path = tmp_path / "nested" / "history.json"
    store = HistoryStore(path)
    store.add_conversation(_conv("conv_1", ("Hello", "Hi there")))

    raw = json.loads(path.read_text(encoding="utf-8"))
    assert isinstance(raw, list) and raw[0]["id"] == "conv_1"
    assert raw[0]["messages"][0] == {**raw[0]["messages"][0], "role": "user", "content": "Hello"}

    again = HistoryStore(path)
    loaded = again.load()
    assert [m.content for m in loaded[0].messages] == ["Hello", "Hi there"]
    assert loaded[0].end_time is not None
    assert not list(path.parent.glob(".history-*"))


def test_add_fills_id_and_end_time(tmp_path: Path):
    store = HistoryStore(tmp_path / "h.json")
    conv = store.add_conversation(Conversation(provider="ollama", model="m", messages=[Message.user("x")]))
    assert conv.id.startswith("conv_")
    assert conv.end_time is not None


def test_max_conversations_keeps_newest(tmp_path: Path):
    store = HistoryStore(tmp_path / "h.json", max_conversations=2)
    for i in range(3):
        store.add_conversation(_conv(f"c{i}", ("q", "a")))
    assert [c.id for c in store.get_all()] == ["c1", "c2"]


def test_recent_search_and_stats(tmp_path: Path):
    store = HistoryStore(tmp_path / "h.json")
    store.add_conversation(_conv("a", ("Tell me about Python", "Python is a language")))
    store.add_conversation(_conv("b", ("Rust?", "Rust is fast"), provider="ollama", model="llama3"))
    store.add_conversation(_conv("c", ("more python", "sure")))

    assert [c.id for c in store.get_recent(2)] == ["b", "c"]
    assert [c.id for c in store.get_recent(0)] == ["a", "b", "c"]
    assert [c.id for c in store.search("PYTHON")] == ["a", "c"]
    assert store.search("nothing here") == []

    stats = store.stats()
    assert stats["total_conversations"] == 3
    assert stats["total_messages"] == 6
    assert stats["providers"] == {"groq": 2, "ollama": 1}
    assert stats["models"] == {"llama-70b": 2, "llama3": 1}
    assert "oldest" in stats and "newest" in stats


def test_clear(tmp_path: Path):
    store = HistoryStore(tmp_path / "h.json")
    store.add_conversation(_conv("a", ("q", "a")))
    store.clear()
    assert HistoryStore(tmp_path / "h.json").load() == []


def test_corrupt_file_raises(tmp_path: Path):
    path = tmp_path / "h.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(HistoryError):
        HistoryStore(path).load()


@pytest.mark.parametrize("fmt", ["txt", "markdown"])
def test_export_keeps_every_message_in_order(tmp_path: Path, fmt: str):
    store = HistoryStore(tmp_path / "h.json")
    conv = _conv("conv_9", ("first question", "first answer"), ("second question", "second answer"))
    store.add_conversation(conv)

    out = store.export("conv_9", fmt, tmp_path)
    text = out.read_text(encoding="utf-8")

    contents = [m.content for m in conv.messages]
    positions = [text.index(c) for c in contents]
    assert positions == sorted(positions)
    assert out.name == f"conversation_conv_9{'.md' if fmt == 'markdown' else '.txt'}"


def test_export_formats_headers():
    conv = _conv("x", ("q", "a"))
    md = render_export(conv, "markdown")
    assert md.startswith("# Conversation with groq")
    assert "**Model:** llama-70b" in md and "**Duration:** 1m15s" in md
    assert "## User" in md and "## Assistant" in md

    txt = render_export(conv, "txt")
    assert txt.startswith("Conversation with groq (llama-70b)")
    assert "=" * 60 in txt
    assert "You:" in txt and "Assistant:" in txt

    data = json.loads(render_export(conv, "json"))
    assert data["id"] == "x" and len(data["messages"]) == 2


def test_export_unknown_id_or_format(tmp_path: Path):
    store = HistoryStore(tmp_path / "h.json")
    store.add_conversation(_conv("a", ("q", "a")))
    with pytest.raises(HistoryError):
        store.export("missing", "txt", tmp_path)
    with pytest.raises(HistoryError):
        store.export("a", "pdf", tmp_path)


def test_format_duration():
    assert format_duration(5) == "5s"
    assert format_duration(65) == "1m5s"
    assert format_duration(3725) == "1h2m5s"
