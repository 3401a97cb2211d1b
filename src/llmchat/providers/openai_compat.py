# src/llmchat/providers/openai_compat.py
from __future__ import annotations
import logging
import time
from typing import Any, ClassVar, Dict, List, Optional

from openai import OpenAI

from llmchat.config import get_env
from llmchat.core.errors import ConfigError, EmptyResponseError, TransportError
from llmchat.core.models import ChatRequest, ChatResponse, StreamChunk
from llmchat.core.ports import ProviderConfig, ProviderMetadata
from llmchat.core.stream import CancelContext, ChunkChannel, start_stream
from llmchat.secrets.sources import SecretsResolver

logger = logging.getLogger(__name__)


def _transport_error(provider: str, exc: Exception, what: str = "API") -> TransportError:
    """
    Convert OpenAI/client exceptions into a neutral TransportError.
    Avoid hard dependency on specific SDK exception classes by inspecting attributes.
    """
    status = getattr(exc, "status_code", None) or getattr(exc, "http_status", None)
    try:
        status = int(status) if status is not None else None
    except (TypeError, ValueError):
        status = None
    prefix = f"{provider} {what} error"
    if status is not None:
        prefix += f" (HTTP {status})"
    return TransportError(f"{prefix}: {exc}", provider=provider, status=status)


class OpenAICompatibleProvider:
    """
    Hosted backend speaking the OpenAI chat-completions protocol.

    Subclasses only fill in the class attributes: base URL, alias table,
    credential/model env vars and metadata. Streaming translates the SDK's
    server-sent delta frames into StreamChunk; exhaustion of the SDK iterator
    is the end-of-stream signal.
    """

    name: ClassVar[str] = ""
    base_url: ClassVar[str] = ""
    model_aliases: ClassVar[Dict[str, str]] = {}
    env_var_key: ClassVar[str] = ""
    env_var_model: ClassVar[str] = ""
    default_alias: ClassVar[str] = ""
    metadata: ClassVar[ProviderMetadata]

    def __init__(
        self,
        secrets: Optional[SecretsResolver] = None,
        *,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        secrets = secrets or SecretsResolver("env")
        api_key = secrets.secret(self.name, default_key=self.env_var_key)
        self._model = self.resolve_model(model or get_env(self.env_var_model, self.default_alias))
        self._available = bool(api_key)
        self.timeout = timeout
        self.client: Optional[OpenAI] = None
        if self._available:
            self.client = OpenAI(api_key=api_key, base_url=self.base_url)
        logger.debug("%s provider constructed (available=%s, model=%s)", self.name, self._available, self._model)

    @classmethod
    def resolve_model(cls, model: str) -> str:
        """Alias -> vendor id; anything unknown passes through unchanged."""
        return cls.model_aliases.get(model, model)

    def models(self) -> List[str]:
        return list(self.model_aliases)

    def default_model(self) -> str:
        return self._model

    @property
    def model(self) -> str:
        return self._model

    def initialize(self, config: ProviderConfig) -> None:
        if config.model:
            self._model = self.resolve_model(config.model)
        if config.timeout:
            self.timeout = config.timeout
        logger.info("%s initialised with model %s", self.name, self._model)

    def is_available(self) -> bool:
        return self._available

    def check_availability(self) -> bool:
        return self._available

    def _require_client(self) -> OpenAI:
        if self.client is None:
            raise ConfigError(f"{self.name} is not configured: set {self.env_var_key}")
        return self.client

    def _build_args(self, request: ChatRequest, *, stream: bool) -> Dict[str, Any]:
        args: Dict[str, Any] = {
            "model": self._model,
            "messages": request.wire_messages(),
            "temperature": float(request.temperature),
            "max_tokens": int(request.max_tokens),
            "stream": stream,
        }
        if self.timeout is not None:
            args["timeout"] = self.timeout
        return args

    def send_message(self, ctx: CancelContext, request: ChatRequest) -> ChatResponse:
        client = self._require_client()
        start = time.monotonic()
        try:
            resp = client.chat.completions.create(**self._build_args(request, stream=False))
        except Exception as e:
            raise _transport_error(self.name, e) from e

        choices = getattr(resp, "choices", None) or []
        if not choices:
            raise EmptyResponseError(f"no response from {self.name}")
        choice = choices[0]
        usage = getattr(resp, "usage", None)
        return ChatResponse(
            content=choice.message.content or "",
            finish_reason=str(getattr(choice, "finish_reason", "") or ""),
            tokens_used=getattr(usage, "total_tokens", None),
            response_time=time.monotonic() - start,
            provider_name=self.name,
            model_name=self._model,
        )

    def stream_message(self, ctx: CancelContext, request: ChatRequest) -> ChunkChannel:
        client = self._require_client()
        args = self._build_args(request, stream=True)

        def produce(channel: ChunkChannel) -> None:
            try:
                stream = client.chat.completions.create(**args)
            except Exception as e:
                channel.send(StreamChunk.failed(_transport_error(self.name, e, "stream")))
                return

            close = getattr(stream, "close", None)
            if callable(close):
                ctx.on_cancel(close)
            try:
                for chunk in stream:
                    if ctx.cancelled:
                        return
                    try:
                        piece = chunk.choices[0].delta.content
                    except (AttributeError, IndexError, TypeError):
                        continue
                    if piece and not channel.send(StreamChunk.text(piece)):
                        return
            except Exception as e:
                if not ctx.cancelled:
                    channel.send(StreamChunk.failed(_transport_error(self.name, e, "stream")))
                return
            finally:
                if callable(close):
                    close()
            if ctx.cancelled:
                return
            # SDK iterator exhausted: the one place end-of-stream becomes done
            channel.send(StreamChunk.finished())

        logger.debug("%s stream started (model=%s, %d messages)", self.name, self._model, len(request.messages))
        return start_stream(ctx, produce, provider=self.name)
