# tests/unit/test_ollama.py

from __future__ import annotations
import json
import sys
import threading
from pathlib import Path
from typing import Any, Dict, List

import httpx
import pytest

# Make "src" importable
sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from llmchat.core.errors import ProviderConnectionError, TransportError
from llmchat.core.models import ChatRequest, Message
from llmchat.core.ports import ProviderConfig
from llmchat.core.stream import CancelContext
from llmchat.providers.ollama import DEFAULT_MODEL, OllamaProvider


class FakeOllama:
    """In-process stand-in for the Ollama HTTP API."""

    def __init__(self, tags: List[str] = ("llama3:8b", "mistral:7b"), lines: List[Dict[str, Any]] = ()) -> None:
        self.tags = list(tags)
        self.lines = list(lines)
        self.requests: List[Dict[str, Any]] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.url.path == "/api/tags":
            return httpx.Response(200, json={"models": [{"name": t} for t in self.tags]})
        if request.url.path == "/api/chat":
            body = json.loads(request.content)
            self.requests.append(body)
            if body["stream"]:
                text = "\n".join(json.dumps(line) for line in self.lines) + "\n"
                return httpx.Response(200, content=text.encode())
            return httpx.Response(200, json={
                "message": {"role": "assistant", "content": "pong"},
                "done": True,
                "prompt_eval_count": 3,
                "eval_count": 4,
            })
        return httpx.Response(404)


def _unreachable(request: httpx.Request) -> httpx.Response:
    raise httpx.ConnectError("connection refused", request=request)


def _provider(handler, **kw) -> OllamaProvider:
    return OllamaProvider(base_url="http://ollama.test", transport=httpx.MockTransport(handler), **kw)


def _request(**kw) -> ChatRequest:
    return ChatRequest.build([Message.user("ping")], **kw)


def test_unreachable_server(monkeypatch):
    monkeypatch.delenv("OLLAMA_MODEL", raising=False)
    p = _provider(_unreachable)
    assert p.is_available() is False
    assert p.models() == [DEFAULT_MODEL]
    with pytest.raises(ProviderConnectionError):
        p.initialize(ProviderConfig(model="llama3:8b"))
    with pytest.raises(ProviderConnectionError):
        p.stream_message(CancelContext(), _request())


def test_models_come_from_server():
    p = _provider(FakeOllama())
    assert p.is_available() is True
    assert p.models() == ["llama3:8b", "mistral:7b"]


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("OLLAMA_MODEL", "phi3:mini")
    p = _provider(FakeOllama())
    assert p.default_model() == "phi3:mini"


def test_send_message(monkeypatch):
    server = FakeOllama()
    p = _provider(server, model="llama3:8b")
    resp = p.send_message(CancelContext(), _request())

    assert resp.content == "pong"
    assert resp.tokens_used == 7
    assert resp.model_name == "llama3:8b"
    assert server.requests[-1]["stream"] is False
    assert server.requests[-1]["messages"] == [{"role": "user", "content": "ping"}]


def test_options_only_sent_when_positive():
    server = FakeOllama()
    p = _provider(server)
    p.send_message(CancelContext(), _request(temperature=0.0, max_tokens=10))
    assert server.requests[-1]["options"] == {"num_predict": 10}

    p.send_message(CancelContext(), _request(temperature=0.3, max_tokens=10))
    assert server.requests[-1]["options"] == {"temperature": 0.3, "num_predict": 10}


def test_stream_ndjson_until_done():
    server = FakeOllama(lines=[
        {"message": {"content": "Hel"}, "done": False},
        {"message": {"content": "lo"}, "done": False},
        {"message": {"content": ""}, "done": True},
    ])
    p = _provider(server)

    chunks = list(p.stream_message(CancelContext(), _request()))

    assert [c.content for c in chunks if not c.done] == ["Hel", "lo"]
    assert chunks[-1].done and chunks[-1].error is None
    assert sum(c.done for c in chunks) == 1
    assert server.requests[-1]["stream"] is True


def test_stream_without_done_flag_is_an_error():
    server = FakeOllama(lines=[{"message": {"content": "Hel"}, "done": False}])
    p = _provider(server)

    chunks = list(p.stream_message(CancelContext(), _request()))

    assert chunks[0].content == "Hel"
    assert chunks[-1].done and isinstance(chunks[-1].error, TransportError)


def test_stream_error_line():
    server = FakeOllama(lines=[{"error": "model not found"}])
    p = _provider(server)

    chunks = list(p.stream_message(CancelContext(), _request()))

    assert len(chunks) == 1
    assert "model not found" in str(chunks[0].error)


def test_initialize_rebinds_model():
    p = _provider(FakeOllama())
    p.initialize(ProviderConfig(model="mistral:7b"))
    assert p.default_model() == "mistral:7b"
    assert p.is_available() is True


class StalledBody(httpx.SyncByteStream):
    """Streams the first line, then hangs until the response is closed."""

    def __init__(self, first: bytes) -> None:
        self.first = first
        self.closed = threading.Event()

    def __iter__(self):
        yield self.first
        self.closed.wait(5)

    def close(self) -> None:
        self.closed.set()


def test_cancel_mid_stream_closes_response():
    body = StalledBody(b'{"message": {"content": "Hel"}, "done": false}\n')

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/api/tags":
            return httpx.Response(200, json={"models": [{"name": "llama3:8b"}]})
        return httpx.Response(200, stream=body)

    p = _provider(handler)
    ctx = CancelContext()
    channel = p.stream_message(ctx, _request())
    it = iter(channel)

    assert next(it).content == "Hel"
    ctx.cancel()

    assert body.closed.wait(2)
    rest = list(it)
    assert all(c.error is None and not c.done for c in rest)
    assert channel.closed
