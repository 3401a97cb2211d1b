# tests/unit/test_shell.py

from __future__ import annotations
import io
import json
import sys
from pathlib import Path
from typing import List

import pytest

# Make "src" importable
sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from llmchat.config import AppConfig
from llmchat.core.errors import ConfigError, TransportError
from llmchat.core.models import StreamChunk
from llmchat.core.shell import ShellMode, build_shell_prompt, format_output, read_stdin
from llmchat.core.stream import start_stream


class CannedProvider:
    name = "canned"

    def __init__(self, parts: List[str], error: Exception = None) -> None:
        self.parts = parts
        self.error = error
        self.prompts: List[str] = []

    def models(self): return ["canned-1"]
    def default_model(self): return "canned-1"
    def initialize(self, config): pass
    def is_available(self): return True
    def check_availability(self): return True
    def send_message(self, ctx, request): raise NotImplementedError

    def stream_message(self, ctx, request):
        self.prompts.append(request.last_user_content())

        def produce(ch):
            for p in self.parts:
                ch.send(StreamChunk.text(p))
            ch.send(StreamChunk.failed(self.error) if self.error else StreamChunk.finished())

        return start_stream(ctx, produce, provider=self.name)


def test_build_shell_prompt_fences_stdin():
    assert build_shell_prompt("summarize", "foo\n") == "summarize\n\n```\nfoo\n```"
    assert build_shell_prompt("summarize", "") == "summarize"
    assert build_shell_prompt("summarize", "\n\n") == "summarize"


def test_format_output():
    assert json.loads(format_output('say "hi"', "json")) == {"response": 'say "hi"'}
    assert format_output("body", "markdown") == "# Response\n\nbody"
    assert format_output("body", "raw") == "body"


def test_read_stdin_ignores_terminal():
    class Tty(io.StringIO):
        def isatty(self):
            return True

    assert read_stdin(Tty("typed")) == ""
    assert read_stdin(io.StringIO("piped")) == "piped"


def test_text_output_streams_reply_and_sends_piped_content():
    provider = CannedProvider(["Sum", "mary"])
    out = io.StringIO()

    content = ShellMode(provider, AppConfig(), out=out).execute("summarize", "foo")

    assert provider.prompts == ["summarize\n\n```\nfoo\n```"]
    assert content == "Summary"
    assert out.getvalue() == "Summary\n"


def test_json_output_is_one_document():
    provider = CannedProvider(["a ", "b"])
    out = io.StringIO()

    ShellMode(provider, AppConfig(output_format="json"), out=out).execute("q")

    assert json.loads(out.getvalue()) == {"response": "a b"}


def test_stdin_only_is_accepted():
    provider = CannedProvider(["ok"])
    ShellMode(provider, AppConfig(), out=io.StringIO()).execute("", "just data")
    assert "just data" in provider.prompts[0]


def test_empty_input_is_rejected():
    provider = CannedProvider(["never"])
    with pytest.raises(ConfigError):
        ShellMode(provider, AppConfig(), out=io.StringIO()).execute("  ", "")
    assert provider.prompts == []


def test_stream_error_propagates_after_partial_output():
    provider = CannedProvider(["part"], error=TransportError("reset", provider="canned"))
    out = io.StringIO()

    with pytest.raises(TransportError):
        ShellMode(provider, AppConfig(), out=out).execute("q")

    assert out.getvalue() == "part\n"
