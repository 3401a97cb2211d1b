from __future__ import annotations
import datetime as dt
import logging
import time
from dataclasses import dataclass
from typing import Callable, List, Optional

from .errors import StreamCancelled, TransportError
from .models import DEFAULT_MAX_TOKENS, DEFAULT_TEMPERATURE, ChatRequest, Message
from .ports import Provider, ProviderConfig
from .stream import CancelContext

logger = logging.getLogger(__name__)

Sink = Callable[[str], None]


@dataclass(frozen=True)
class TurnResult:
    content: str
    elapsed: float  # seconds
    tokens: int  # rough: whitespace-separated words

    @property
    def tokens_per_second(self) -> float:
        return self.tokens / self.elapsed if self.elapsed > 0 else 0.0


class ChatSession:
    """
    The conversation with one provider: the recorded message log plus the
    parameters every request is built with.

    Only completed turns are recorded. A turn that fails or is interrupted
    leaves the log exactly as it was.
    """

    def __init__(
        self,
        provider: Provider,
        *,
        temperature: float = DEFAULT_TEMPERATURE,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        timeout: float = 60.0,
        system_prompt: Optional[str] = None,
    ):
        self.provider = provider
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout
        self.system_prompt = system_prompt
        self.messages: List[Message] = []
        self.started_at = dt.datetime.now(dt.timezone.utc)
        self.id = f"conv_{int(time.time())}"

    @property
    def model(self) -> str:
        return self.provider.default_model()

    def build_request(self, text: str) -> ChatRequest:
        history: List[Message] = []
        if self.system_prompt:
            history.append(Message.system(self.system_prompt))
        history.extend(self.messages)
        history.append(Message.user(text))
        return ChatRequest.build(
            history, temperature=self.temperature, max_tokens=self.max_tokens, stream=True
        )

    def run_turn(self, text: str, sink: Sink, ctx: Optional[CancelContext] = None) -> TurnResult:
        """
        Stream one reply into sink and record the exchange once the stream
        completes. Raises the terminal chunk's error (after the partial text
        reached sink), StreamCancelled when ctx was cancelled elsewhere, and
        re-raises KeyboardInterrupt (or anything sink raised) after
        cancelling the stream.
        """
        ctx = ctx or CancelContext()
        request = self.build_request(text)
        user = request.messages[-1]
        start = time.monotonic()

        channel = self.provider.stream_message(ctx, request)
        parts: List[str] = []
        completed = False
        try:
            for chunk in channel:
                if chunk.content:
                    sink(chunk.content)
                    parts.append(chunk.content)
                if chunk.done:
                    if chunk.error is not None:
                        raise chunk.error
                    completed = True
        except KeyboardInterrupt:
            ctx.cancel()
            logger.info("turn interrupted after %d chunks", len(parts))
            raise
        except BaseException:
            # A consumer that stops early must not leave the producer blocked
            ctx.cancel()
            raise

        if not completed:
            if ctx.cancelled:
                raise StreamCancelled("stream cancelled")
            raise TransportError(
                f"{self.provider.name} stream closed without completing", provider=self.provider.name
            )

        content = "".join(parts)
        self.messages.append(user)
        self.messages.append(Message.assistant(content))
        elapsed = time.monotonic() - start
        logger.debug("turn finished in %.2fs (%d chars)", elapsed, len(content))
        return TurnResult(content=content, elapsed=elapsed, tokens=len(content.split()))

    def provider_config(self, model: str) -> ProviderConfig:
        return ProviderConfig(
            model=model,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            timeout=self.timeout,
        )

    def switch_model(self, model: str) -> None:
        """Re-initialise the current provider; the message log is kept."""
        self.provider.initialize(self.provider_config(model))

    def switch_provider(self, provider: Provider, model: str = "") -> None:
        """Move the conversation to another provider; the message log is kept."""
        provider.initialize(self.provider_config(model))
        self.provider = provider

    def reset(self) -> None:
        self.messages.clear()
        self.started_at = dt.datetime.now(dt.timezone.utc)
        self.id = f"conv_{int(time.time())}"
