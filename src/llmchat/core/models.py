# src/llmchat/core/models.py
from __future__ import annotations
import datetime as dt
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .errors import ConfigError

DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 4000


def _now() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class Role(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class Message:
    role: Role
    content: str
    timestamp: dt.datetime = field(default_factory=_now)

    @classmethod
    def system(cls, content: str) -> "Message":
        return cls(Role.SYSTEM, content)

    @classmethod
    def user(cls, content: str) -> "Message":
        return cls(Role.USER, content)

    @classmethod
    def assistant(cls, content: str) -> "Message":
        return cls(Role.ASSISTANT, content)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "role": self.role.value,
            "content": self.content,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Message":
        ts = data.get("timestamp")
        return cls(
            role=Role(data["role"]),
            content=data.get("content", ""),
            timestamp=dt.datetime.fromisoformat(ts) if ts else _now(),
        )

    def as_wire(self) -> Dict[str, str]:
        """OpenAI-style {'role', 'content'} dict."""
        return {"role": self.role.value, "content": self.content}


@dataclass(frozen=True)
class ChatRequest:
    """
    One self-contained request: the full ordered message history plus sampling
    parameters. Built fresh for every turn.
    """
    messages: Tuple[Message, ...]
    temperature: float = DEFAULT_TEMPERATURE
    max_tokens: int = DEFAULT_MAX_TOKENS
    stream: bool = True
    metadata: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # Accept any sequence but store an immutable tuple
        object.__setattr__(self, "messages", tuple(self.messages))
        if not self.messages:
            raise ConfigError("ChatRequest needs at least one message")
        if not 0.0 <= float(self.temperature) <= 2.0:
            raise ConfigError(f"temperature must be between 0 and 2 (got {self.temperature})")
        if int(self.max_tokens) < 1:
            raise ConfigError(f"max_tokens must be positive (got {self.max_tokens})")

    @classmethod
    def build(
        cls,
        messages: Sequence[Message],
        *,
        temperature: float = DEFAULT_TEMPERATURE,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        stream: bool = True,
    ) -> "ChatRequest":
        return cls(tuple(messages), temperature=temperature, max_tokens=max_tokens, stream=stream)

    def wire_messages(self) -> List[Dict[str, str]]:
        return [m.as_wire() for m in self.messages]

    def last_user_content(self) -> str:
        for m in reversed(self.messages):
            if m.role is Role.USER:
                return m.content
        return ""


@dataclass(frozen=True)
class ChatResponse:
    content: str
    finish_reason: str
    response_time: float  # seconds
    provider_name: str
    model_name: str
    tokens_used: Optional[int] = None


@dataclass(frozen=True)
class StreamChunk:
    """
    One piece of a streamed reply. A stream ends with exactly one chunk whose
    done flag is set; that chunk may carry the error that ended it.
    """
    content: str = ""
    done: bool = False
    error: Optional[BaseException] = None

    @classmethod
    def text(cls, content: str) -> "StreamChunk":
        return cls(content=content)

    @classmethod
    def finished(cls) -> "StreamChunk":
        return cls(done=True)

    @classmethod
    def failed(cls, error: BaseException) -> "StreamChunk":
        return cls(done=True, error=error)
