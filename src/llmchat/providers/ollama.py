# src/llmchat/providers/ollama.py
from __future__ import annotations
import json
import logging
import time
from typing import Any, Dict, List, Optional

import httpx

from llmchat.config import get_env
from llmchat.core.errors import EmptyResponseError, ProviderConnectionError, TransportError
from llmchat.core.models import ChatRequest, ChatResponse, StreamChunk
from llmchat.core.ports import ProviderConfig, ProviderMetadata
from llmchat.core.stream import CancelContext, ChunkChannel, start_stream

logger = logging.getLogger(__name__)

DEFAULT_URL = "http://localhost:11434"
DEFAULT_MODEL = "llama3:8b-instruct-q4_K_M"
PROBE_TIMEOUT = 2.0
LIST_TIMEOUT = 5.0


class OllamaProvider:
    """
    Local Ollama server over its HTTP API.

    /api/chat streams one JSON object per line; each carries a partial
    assistant message and the last one has "done": true.
    """

    name = "ollama"
    metadata = ProviderMetadata(
        name="ollama",
        display_name="Ollama",
        description="Local Ollama instance for running LLMs",
        requires_api=False,
        default_url=DEFAULT_URL,
        env_var_key="OLLAMA_URL",
        env_var_model="OLLAMA_MODEL",
        icon="🦙",
    )

    def __init__(
        self,
        *,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        timeout: float = 60.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = (base_url or get_env("OLLAMA_URL", DEFAULT_URL)).rstrip("/")
        self._model = model or get_env("OLLAMA_MODEL", DEFAULT_MODEL)
        self.timeout = timeout
        self._transport = transport
        self.client = self._make_client()
        self._available = False
        self.check_availability()

    def _make_client(self) -> httpx.Client:
        return httpx.Client(base_url=self.base_url, timeout=self.timeout, transport=self._transport)

    def _list_models(self, timeout: float) -> List[str]:
        resp = self.client.get("/api/tags", timeout=timeout)
        resp.raise_for_status()
        return [m.get("name", "") for m in resp.json().get("models", []) if m.get("name")]

    def check_availability(self) -> bool:
        try:
            self._list_models(PROBE_TIMEOUT)
            self._available = True
        except (httpx.HTTPError, ValueError) as e:
            logger.debug("ollama probe at %s failed: %s", self.base_url, e)
            self._available = False
        return self._available

    def models(self) -> List[str]:
        try:
            return self._list_models(LIST_TIMEOUT)
        except (httpx.HTTPError, ValueError):
            return [self._model]

    def default_model(self) -> str:
        return self._model

    @property
    def model(self) -> str:
        return self._model

    def initialize(self, config: ProviderConfig) -> None:
        if config.model:
            self._model = config.model
        if config.timeout:
            self.timeout = config.timeout
        if config.base_url and config.base_url.rstrip("/") != self.base_url:
            self.base_url = config.base_url.rstrip("/")
        self.client.close()
        self.client = self._make_client()

        if not self.check_availability():
            raise ProviderConnectionError(f"ollama is not available at {self.base_url}")
        logger.info("ollama initialised with model %s at %s", self._model, self.base_url)

    def is_available(self) -> bool:
        return self._available

    def _payload(self, request: ChatRequest, *, stream: bool) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": self._model,
            "messages": request.wire_messages(),
            "stream": stream,
        }
        # Only strictly positive values are sent; the server default may differ from zero
        options: Dict[str, Any] = {}
        if request.temperature > 0:
            options["temperature"] = request.temperature
        if request.max_tokens > 0:
            options["num_predict"] = request.max_tokens
        if options:
            payload["options"] = options
        return payload

    def _require_available(self) -> None:
        if not self._available:
            raise ProviderConnectionError(f"ollama is not available at {self.base_url}")

    def send_message(self, ctx: CancelContext, request: ChatRequest) -> ChatResponse:
        self._require_available()
        start = time.monotonic()
        try:
            resp = self.client.post("/api/chat", json=self._payload(request, stream=False))
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPStatusError as e:
            raise TransportError(
                f"ollama chat error: {e}", provider=self.name, status=e.response.status_code
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise TransportError(f"ollama chat error: {e}", provider=self.name) from e

        message = data.get("message")
        if not isinstance(message, dict):
            raise EmptyResponseError("no response from ollama")
        tokens = None
        if "eval_count" in data:
            tokens = int(data.get("prompt_eval_count", 0)) + int(data["eval_count"])
        return ChatResponse(
            content=message.get("content", ""),
            finish_reason=data.get("done_reason") or "stop",
            tokens_used=tokens,
            response_time=time.monotonic() - start,
            provider_name=self.name,
            model_name=self._model,
        )

    def stream_message(self, ctx: CancelContext, request: ChatRequest) -> ChunkChannel:
        self._require_available()
        payload = self._payload(request, stream=True)
        client = self.client

        def produce(channel: ChunkChannel) -> None:
            try:
                with client.stream("POST", "/api/chat", json=payload) as resp:
                    ctx.on_cancel(resp.close)
                    if resp.status_code >= 400:
                        resp.read()
                        channel.send(StreamChunk.failed(TransportError(
                            f"ollama streaming error: HTTP {resp.status_code}: {resp.text}",
                            provider=self.name,
                            status=resp.status_code,
                        )))
                        return
                    for line in resp.iter_lines():
                        if ctx.cancelled:
                            return
                        if not line.strip():
                            continue
                        data = json.loads(line)
                        if data.get("error"):
                            channel.send(StreamChunk.failed(TransportError(
                                f"ollama streaming error: {data['error']}", provider=self.name
                            )))
                            return
                        content = (data.get("message") or {}).get("content", "")
                        if content and not channel.send(StreamChunk.text(content)):
                            return
                        if data.get("done"):
                            channel.send(StreamChunk.finished())
                            return
            except (httpx.HTTPError, ValueError) as e:
                if not ctx.cancelled:
                    channel.send(StreamChunk.failed(
                        TransportError(f"ollama streaming error: {e}", provider=self.name)
                    ))

        logger.debug("ollama stream started (model=%s, %d messages)", self._model, len(request.messages))
        return start_stream(ctx, produce, provider=self.name)
