from __future__ import annotations
import logging
import threading
from dataclasses import dataclass
from typing import Dict, List, Optional

from llmchat.core.errors import DuplicateProviderError, ProviderNotFoundError
from llmchat.core.ports import Provider, ProviderMetadata

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProviderInfo:
    provider: Provider
    metadata: ProviderMetadata
    available: bool


class ProviderRegistry:
    """
    Catalogue of constructed providers and their metadata.

    Built explicitly at startup and handed to whoever needs it. Registration
    happens once; lookups may come from any thread.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._providers: Dict[str, Provider] = {}
        self._metadata: Dict[str, ProviderMetadata] = {}

    def register(self, provider: Provider, metadata: ProviderMetadata) -> None:
        name = provider.name
        with self._lock:
            if name in self._providers:
                raise DuplicateProviderError(f"provider {name} already registered")
            self._providers[name] = provider
            self._metadata[name] = metadata
        logger.debug("registered provider %s (available=%s)", name, provider.is_available())

    def get(self, name: str) -> Provider:
        with self._lock:
            try:
                return self._providers[name]
            except KeyError:
                raise ProviderNotFoundError(f"provider {name} not found") from None

    def get_metadata(self, name: str) -> ProviderMetadata:
        with self._lock:
            try:
                return self._metadata[name]
            except KeyError:
                raise ProviderNotFoundError(f"metadata for provider {name} not found") from None

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._providers

    def list(self) -> List[str]:
        with self._lock:
            return sorted(self._providers)

    def list_available(self) -> List[str]:
        with self._lock:
            items = list(self._providers.items())
        return sorted(name for name, p in items if p.is_available())

    def snapshot(self) -> Dict[str, ProviderInfo]:
        """Provider, metadata and live availability per name, in name order."""
        with self._lock:
            items = sorted(self._providers.items())
            metadata = dict(self._metadata)
        return {
            name: ProviderInfo(provider=p, metadata=metadata[name], available=p.is_available())
            for name, p in items
        }

    def refresh(self, name: Optional[str] = None) -> Dict[str, bool]:
        """
        Re-derive availability on demand (the local backend re-probes its
        server). Nothing refreshes it in the background.
        """
        targets = [name] if name is not None else self.list()
        result: Dict[str, bool] = {}
        for n in targets:
            result[n] = self.get(n).check_availability()
        logger.debug("availability refreshed: %s", result)
        return result
