# tests/unit/test_interactive.py

from __future__ import annotations
import io
import json
import sys
from pathlib import Path
from typing import List

import pytest
from rich.console import Console

# Make "src" importable
sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from llmchat.config import AppConfig
from llmchat.core.chat_session import ChatSession
from llmchat.core.errors import TransportError
from llmchat.core.interactive import InteractiveSession
from llmchat.core.models import StreamChunk
from llmchat.core.ports import ProviderMetadata
from llmchat.core.stream import start_stream
from llmchat.providers.registry import ProviderRegistry
from llmchat.storage.history import HistoryStore
from llmchat.ui.display import Display


class EchoProvider:
    """Replies with "echo: <last user message>"."""

    def __init__(self, name: str = "echo", available: bool = True) -> None:
        self.name = name
        self.available = available
        self.model = f"{name}-small"
        self.prompts: List[str] = []
        self.fail_with = None

    def models(self): return [f"{self.name}-small", f"{self.name}-large"]
    def default_model(self): return self.model
    def initialize(self, config):
        if config.model:
            self.model = config.model
    def is_available(self): return self.available
    def check_availability(self): return self.available
    def send_message(self, ctx, request): raise NotImplementedError

    def stream_message(self, ctx, request):
        text = request.last_user_content()
        self.prompts.append(text)
        error = self.fail_with

        def produce(ch):
            if error is not None:
                ch.send(StreamChunk.text("half"))
                ch.send(StreamChunk.failed(error))
                return
            ch.send(StreamChunk.text("echo: "))
            ch.send(StreamChunk.text(text))
            ch.send(StreamChunk.finished())

        return start_stream(ctx, produce, provider=self.name)


def _meta(name: str) -> ProviderMetadata:
    return ProviderMetadata(
        name=name, display_name=name.title(), description="test backend", requires_api=True,
        default_url="", env_var_key=f"{name.upper()}_API_KEY", env_var_model=f"{name.upper()}_MODEL",
    )


def _reader(lines: List[object]):
    pending = list(lines)

    def read(_prompt: str) -> str:
        if not pending:
            raise EOFError
        item = pending.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item

    return read


def _make(tmp_path: Path, lines: List[object], *providers: EchoProvider, **cfg_kw):
    providers = providers or (EchoProvider(),)
    registry = ProviderRegistry()
    for p in providers:
        registry.register(p, _meta(p.name))
    out = io.StringIO()
    display = Display(Console(file=out, width=120, force_terminal=False, color_system=None))
    cfg = AppConfig(history_path=tmp_path / "history.json", **cfg_kw)
    repl = InteractiveSession(
        ChatSession(providers[0]),
        registry,
        cfg,
        display=display,
        history=HistoryStore(cfg.history_path),
        read_line=_reader(lines),
        version="1.2.3",
        export_dir=tmp_path,
    )
    return repl, out


def test_multiline_input_is_sent_as_one_prompt(tmp_path: Path):
    provider = EchoProvider()
    repl, out = _make(tmp_path, ["line one", "line two", "", "", "/exit"], provider)
    repl.run()

    assert provider.prompts == ["line one\nline two"]
    assert "echo: line one" in out.getvalue()


def test_conversation_saved_on_exit(tmp_path: Path):
    repl, out = _make(tmp_path, ["hello", "", "", "/quit"])
    repl.run()

    saved = json.loads((tmp_path / "history.json").read_text(encoding="utf-8"))
    assert len(saved) == 1
    assert [m["content"] for m in saved[0]["messages"]] == ["hello", "echo: hello"]
    assert saved[0]["provider"] == "echo"
    assert "Goodbye!" in out.getvalue()


def test_nothing_saved_without_messages(tmp_path: Path):
    repl, out = _make(tmp_path, [])
    repl.run()

    assert not (tmp_path / "history.json").exists()
    assert "Goodbye!" in out.getvalue()


def test_corrupt_history_is_left_untouched(tmp_path: Path):
    path = tmp_path / "history.json"
    path.write_text("{broken", encoding="utf-8")
    repl, out = _make(tmp_path, ["hi", "", "", "/exit"])
    repl.run()

    assert path.read_text(encoding="utf-8") == "{broken"
    assert "history saving disabled" in out.getvalue()


def test_failed_turn_reports_error_and_records_nothing(tmp_path: Path):
    provider = EchoProvider()
    provider.fail_with = TransportError("server went away", provider="echo")
    repl, out = _make(tmp_path, ["hi", "", "", "/exit"], provider)
    repl.run()

    assert "server went away" in out.getvalue()
    assert repl.session.messages == []


def test_unknown_command_keeps_session_alive(tmp_path: Path):
    provider = EchoProvider()
    repl, out = _make(tmp_path, ["/bogus", "/help extra", "after", "", "", "/exit"], provider)
    repl.run()

    text = out.getvalue()
    assert "Unknown command: /bogus" in text
    assert "Unknown command: /help extra" in text
    assert provider.prompts == ["after"]


def test_use_switches_provider_and_keeps_history(tmp_path: Path):
    first, second = EchoProvider("alpha"), EchoProvider("beta")
    repl, out = _make(tmp_path, ["one", "", "", "/use beta", "two", "", "", "/exit"], first, second)
    repl.run()

    assert repl.session.provider is second
    assert first.prompts == ["one"] and second.prompts == ["two"]
    assert len(repl.session.messages) == 4
    assert "Switched to provider: beta" in out.getvalue()


def test_use_unavailable_provider_is_refused(tmp_path: Path):
    first, second = EchoProvider("alpha"), EchoProvider("beta", available=False)
    repl, out = _make(tmp_path, ["/use beta", "/use nope", "/exit"], first, second)
    repl.run()

    text = out.getvalue()
    assert repl.session.provider is first
    assert "BETA_API_KEY" in text
    assert "Unknown provider: nope" in text


def test_switch_model_by_number(tmp_path: Path):
    provider = EchoProvider()
    repl, out = _make(tmp_path, ["/switch", "2", "/exit"], provider)
    repl.run()

    assert repl.session.model == "echo-large"
    assert "Switched to model: echo-large" in out.getvalue()


def test_reset_and_export(tmp_path: Path):
    repl, out = _make(tmp_path, ["hi", "", "", "/export", "txt", "/reset", "/exit"])
    repl.run()

    exported = list(tmp_path.glob("conversation_*.txt"))
    assert len(exported) == 1
    assert "echo: hi" in exported[0].read_text(encoding="utf-8")
    assert "Conversation reset" in out.getvalue()
    assert repl.session.messages == []


def test_saved_and_search_list_previous_sessions(tmp_path: Path):
    first, out = _make(tmp_path, ["tell me about python", "", "", "/exit"])
    first.run()

    second, out = _make(tmp_path, ["/saved", "/search", "PYTHON", "/stats", "/exit"])
    second.run()

    text = out.getvalue()
    assert "Preview: tell me about python" in text
    assert "Found 1 conversation(s)" in text
    assert "Total Conversations: 1" in text


def test_assessment_shown_before_sending(tmp_path: Path):
    provider = EchoProvider()
    repl, out = _make(tmp_path, ["fix it", "", "", "/exit"], provider, enable_assessment=True)
    repl.run()

    assert "PROMPT ASSESSMENT" in out.getvalue()
    assert provider.prompts == ["fix it"]


def test_ctrl_c_at_command_prompt_cancels_only_that_command(tmp_path: Path):
    provider = EchoProvider()
    repl, out = _make(tmp_path, ["Hello", "", "", "/switch", KeyboardInterrupt(), "again", "", "", "/exit"], provider)
    repl.run()

    assert "Cancelled" in out.getvalue()
    assert repl.session.model == "echo-small"
    assert provider.prompts == ["Hello", "again"]
    saved = json.loads((tmp_path / "history.json").read_text(encoding="utf-8"))
    assert len(saved[0]["messages"]) == 4


def test_conversation_saved_when_run_is_aborted(tmp_path: Path, monkeypatch):
    repl, out = _make(tmp_path, ["Hello", "", "", "/stats"])

    def boom():
        raise RuntimeError("terminal went away")

    monkeypatch.setitem(repl._commands, "/stats", boom)
    with pytest.raises(RuntimeError):
        repl.run()

    saved = json.loads((tmp_path / "history.json").read_text(encoding="utf-8"))
    assert [m["content"] for m in saved[0]["messages"]] == ["Hello", "echo: Hello"]
