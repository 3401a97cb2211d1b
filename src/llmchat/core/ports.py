from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

from .models import ChatRequest, ChatResponse, DEFAULT_MAX_TOKENS, DEFAULT_TEMPERATURE
from .stream import CancelContext, ChunkChannel


@dataclass
class ProviderConfig:
    """Runtime parameters bound by Provider.initialize()."""
    model: str = ""
    temperature: float = DEFAULT_TEMPERATURE
    max_tokens: int = DEFAULT_MAX_TOKENS
    timeout: float = 60.0  # seconds
    base_url: Optional[str] = None
    api_key: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ProviderMetadata:
    name: str
    display_name: str
    description: str
    requires_api: bool
    default_url: str
    env_var_key: str
    env_var_model: str
    icon: str = ""


@runtime_checkable
class Provider(Protocol):
    """
    Interface the core uses to talk to any LLM backend.
    """

    @property
    def name(self) -> str:
        """Stable identifier, used as the registry key."""
        ...

    def models(self) -> List[str]:
        """
        Selectable model identifiers. Hosted backends return their alias table;
        the local backend asks the server and falls back to its configured model.
        """
        ...

    def default_model(self) -> str:
        ...

    def initialize(self, config: ProviderConfig) -> None:
        """
        Bind model, temperature and token budget. May raise ConfigError or
        ProviderConnectionError.
        """
        ...

    def is_available(self) -> bool:
        """Cached: credential present (hosted) or last probe succeeded (local)."""
        ...

    def check_availability(self) -> bool:
        """Re-derive the availability flag and return it."""
        ...

    def send_message(self, ctx: CancelContext, request: ChatRequest) -> ChatResponse:
        """
        Single blocking round trip. Raises TransportError or EmptyResponseError.
        """
        ...

    def stream_message(self, ctx: CancelContext, request: ChatRequest) -> ChunkChannel:
        """
        Returns immediately with a live channel fed from a background thread.
        Transport failures arrive as the terminal chunk's error.
        """
        ...
