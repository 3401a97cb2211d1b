# src/llmchat/secrets/sources.py

from __future__ import annotations
import getpass
import logging
import os
from typing import Dict, Iterable, List, Optional, Protocol, Union

import keyring as _keyring
from keyring.errors import KeyringError

from llmchat.core.errors import ConfigError

logger = logging.getLogger(__name__)

Methods = Union[str, Iterable[str]]


class SecretSource(Protocol):
    def get(self, service: str) -> Optional[str]: ...


def _clean(value: Optional[str]) -> Optional[str]:
    value = (value or "").strip()
    return value or None


class EnvSource:
    """
    Process environment. service is normally the env var itself
    (GROQ_API_KEY); a bare provider name ("groq") is tried as GROQ_API_KEY.
    """

    def get(self, service: str) -> Optional[str]:
        names = [service]
        if not service.isupper():
            names.append(f"{service.upper()}_API_KEY")
        for name in names:
            value = _clean(os.getenv(name))
            if value:
                return value
        return None


class SystemKeyringSource:
    """
    OS keyring entry stored under service (the env var name by default),
    e.g. `keyring set GROQ_API_KEY $USER`.
    """

    def get(self, service: str) -> Optional[str]:
        try:
            cred = _keyring.get_credential(service, None)
            if cred is not None and _clean(cred.password):
                return _clean(cred.password)
            return _clean(_keyring.get_password(service, getpass.getuser()))
        except KeyringError as e:
            logger.debug("keyring lookup for %s failed: %s", service, e)
            return None


_SOURCES = {"env": EnvSource, "keyring": SystemKeyringSource}


def build_secret_sources(method: Methods) -> List[SecretSource]:
    """One source per method, in the given order, duplicates dropped."""
    names = [method] if isinstance(method, str) else list(method)
    sources: List[SecretSource] = []
    seen = set()
    for m in names:
        key = str(m).strip().lower()
        if key not in _SOURCES:
            raise ConfigError(f"Unknown secrets method '{m}'. Allowed: {sorted(_SOURCES)}")
        if key not in seen:
            seen.add(key)
            sources.append(_SOURCES[key]())
    return sources


class SecretsResolver:
    """
    Looks up a provider's credential through the configured sources, first
    hit wins. mapping renames the lookup key per provider, e.g.
    {"groq": {"api_key": "WORK_GROQ_KEY"}}; without an entry the provider's
    own env var name is used.
    """

    def __init__(self, method: Methods = "env", mapping: Optional[Dict[str, Dict[str, str]]] = None):
        self._sources = build_secret_sources(method)
        self._map = mapping or {}

    def secret(self, provider: str, default_key: str, name: str = "api_key") -> Optional[str]:
        service = self._map.get(provider, {}).get(name, default_key)
        for src in self._sources:
            value = src.get(service)
            if value:
                return value
        logger.debug("no %s found for %s (looked up %s)", name, provider, service)
        return None
