# src/llmchat/providers/gemini.py
from __future__ import annotations
import json
import logging
import time
from typing import Any, Dict, List, Optional

import httpx

from llmchat.config import get_env
from llmchat.core.errors import ConfigError, EmptyResponseError, TransportError
from llmchat.core.models import ChatRequest, ChatResponse, Role, StreamChunk
from llmchat.core.ports import ProviderConfig, ProviderMetadata
from llmchat.core.stream import CancelContext, ChunkChannel, start_stream
from llmchat.secrets.sources import SecretsResolver

logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT = "https://generativelanguage.googleapis.com"
MODEL_ALIASES = {
    "flash": "gemini-2.0-flash-exp",
    "flash-lite": "gemini-2.0-flash-lite",
    "pro": "gemini-2.5-pro-exp-03-25",
}
DEFAULT_ALIAS = "flash-lite"


def _contents(request: ChatRequest) -> List[Dict[str, Any]]:
    # Gemini only knows "user" and "model" turns
    return [
        {"role": "model" if m.role is Role.ASSISTANT else "user", "parts": [{"text": m.content}]}
        for m in request.messages
    ]


def _parts_text(data: Dict[str, Any]) -> List[str]:
    candidates = data.get("candidates") or []
    if not candidates:
        return []
    parts = (candidates[0].get("content") or {}).get("parts") or []
    return [p.get("text", "") for p in parts if isinstance(p, dict)]


def _error_message(data: Dict[str, Any]) -> str:
    err = data.get("error")
    if isinstance(err, dict):
        return err.get("message") or json.dumps(err)
    return str(err)


class GeminiProvider:
    """
    Google Gemini over the generativelanguage REST API.

    streamGenerateContent?alt=sse sends one "data: {...}" event per partial
    candidate; the stream is complete when the response body ends.
    """

    name = "gemini"
    metadata = ProviderMetadata(
        name="gemini",
        display_name="Google Gemini",
        description="Google's multimodal AI model",
        requires_api=True,
        default_url=DEFAULT_ENDPOINT,
        env_var_key="GEMINI_API_KEY",
        env_var_model="GEMINI_MODEL",
        icon="✨",
    )

    def __init__(
        self,
        secrets: Optional[SecretsResolver] = None,
        *,
        model: Optional[str] = None,
        timeout: float = 60.0,
        endpoint: Optional[str] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        secrets = secrets or SecretsResolver("env")
        self._api_key = secrets.secret(self.name, default_key="GEMINI_API_KEY")
        alias = model or get_env("GEMINI_MODEL", DEFAULT_ALIAS)
        # Unknown aliases fall back to the default; explicit ids go through initialize()
        self._model = MODEL_ALIASES.get(alias) or MODEL_ALIASES[DEFAULT_ALIAS]
        self._available = bool(self._api_key)
        self.endpoint = (endpoint or DEFAULT_ENDPOINT).rstrip("/")
        self.timeout = timeout
        self.client = httpx.Client(
            base_url=self.endpoint,
            timeout=timeout,
            transport=transport,
            headers={"x-goog-api-key": self._api_key or ""},
        )

    def models(self) -> List[str]:
        return list(MODEL_ALIASES)

    def default_model(self) -> str:
        return self._model

    @property
    def model(self) -> str:
        return self._model

    def initialize(self, config: ProviderConfig) -> None:
        if config.model:
            self._model = MODEL_ALIASES.get(config.model, config.model)
        if config.timeout:
            self.timeout = config.timeout
        logger.info("gemini initialised with model %s", self._model)

    def is_available(self) -> bool:
        return self._available

    def check_availability(self) -> bool:
        return self._available

    def _payload(self, request: ChatRequest) -> Dict[str, Any]:
        if not self._available:
            raise ConfigError("gemini is not configured: set GEMINI_API_KEY")
        return {
            "contents": _contents(request),
            "generationConfig": {
                "temperature": float(request.temperature),
                "maxOutputTokens": int(request.max_tokens),
            },
        }

    def _path(self, method: str) -> str:
        return f"/v1beta/models/{self._model}:{method}"

    def send_message(self, ctx: CancelContext, request: ChatRequest) -> ChatResponse:
        payload = self._payload(request)
        start = time.monotonic()
        try:
            resp = self.client.post(self._path("generateContent"), json=payload, timeout=self.timeout)
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPStatusError as e:
            raise TransportError(
                f"gemini API error (HTTP {e.response.status_code}): {e.response.text}",
                provider=self.name,
                status=e.response.status_code,
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise TransportError(f"gemini API error: {e}", provider=self.name) from e

        parts = _parts_text(data)
        if not parts:
            raise EmptyResponseError("no response from gemini")
        usage = data.get("usageMetadata") or {}
        return ChatResponse(
            content="".join(parts),
            finish_reason=(data["candidates"][0].get("finishReason") or "stop").lower(),
            tokens_used=usage.get("totalTokenCount"),
            response_time=time.monotonic() - start,
            provider_name=self.name,
            model_name=self._model,
        )

    def stream_message(self, ctx: CancelContext, request: ChatRequest) -> ChunkChannel:
        payload = self._payload(request)
        path = self._path("streamGenerateContent")
        client = self.client
        timeout = self.timeout

        def produce(channel: ChunkChannel) -> None:
            try:
                with client.stream("POST", path, params={"alt": "sse"}, json=payload, timeout=timeout) as resp:
                    ctx.on_cancel(resp.close)
                    if resp.status_code >= 400:
                        resp.read()
                        channel.send(StreamChunk.failed(TransportError(
                            f"gemini streaming error: HTTP {resp.status_code}: {resp.text}",
                            provider=self.name,
                            status=resp.status_code,
                        )))
                        return
                    for line in resp.iter_lines():
                        if ctx.cancelled:
                            return
                        line = line.strip()
                        if not line.startswith("data:"):
                            continue
                        data = json.loads(line[len("data:"):])
                        if data.get("error"):
                            channel.send(StreamChunk.failed(TransportError(
                                f"gemini streaming error: {_error_message(data)}", provider=self.name
                            )))
                            return
                        for text in _parts_text(data):
                            if text and not channel.send(StreamChunk.text(text)):
                                return
            except (httpx.HTTPError, ValueError) as e:
                if not ctx.cancelled:
                    channel.send(StreamChunk.failed(
                        TransportError(f"gemini streaming error: {e}", provider=self.name)
                    ))
                return
            if not ctx.cancelled:
                channel.send(StreamChunk.finished())

        logger.debug("gemini stream started (model=%s, %d messages)", self._model, len(request.messages))
        return start_stream(ctx, produce, provider=self.name)
