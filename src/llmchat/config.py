# src/llmchat/config.py

from __future__ import annotations
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Optional

from .core.errors import ConfigError
from .core.models import DEFAULT_MAX_TOKENS, DEFAULT_TEMPERATURE

OUTPUT_FORMATS = ("text", "json", "markdown", "raw")
APP_DIR = Path.home() / ".llm-chat"


def get_env(key: str, fallback: str = "") -> str:
    value = os.getenv(key)
    return value if value else fallback


def get_env_int(key: str, fallback: int) -> int:
    value = os.getenv(key)
    if value:
        try:
            return int(value)
        except ValueError:
            pass
    return fallback


def get_env_float(key: str, fallback: float) -> float:
    value = os.getenv(key)
    if value:
        try:
            return float(value)
        except ValueError:
            pass
    return fallback


def get_env_bool(key: str, fallback: bool) -> bool:
    value = os.getenv(key)
    if value:
        lowered = value.strip().lower()
        if lowered in ("1", "t", "true", "yes", "on"):
            return True
        if lowered in ("0", "f", "false", "no", "off"):
            return False
    return fallback


@dataclass
class AppConfig:
    provider: str = "ollama"
    model: Optional[str] = None
    verbose: bool = False
    temperature: float = DEFAULT_TEMPERATURE
    max_tokens: int = DEFAULT_MAX_TOKENS
    timeout: float = 60.0
    output_format: str = "text"

    history_enabled: bool = True
    history_path: Path = field(default_factory=lambda: APP_DIR / "history.json")
    max_history: int = 100

    enable_assessment: bool = False
    auto_improve: bool = False

    system_prompt: Optional[str] = None

    secrets_method: Any = "env"
    secrets_mapping: Dict[str, Dict[str, str]] = field(default_factory=dict)
    provider_settings: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    def validate(self) -> "AppConfig":
        if not 0 <= self.temperature <= 2:
            raise ConfigError("temperature must be between 0 and 2")
        if self.max_tokens < 1:
            raise ConfigError("max tokens must be positive")
        if self.timeout <= 0:
            raise ConfigError("timeout must be positive")
        if self.output_format not in OUTPUT_FORMATS:
            raise ConfigError("output format must be text, json, markdown, or raw")
        return self

    def with_overrides(self, **overrides: Any) -> "AppConfig":
        """Copy with every non-None override applied (CLI flags win over file config)."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})

    def settings_for(self, provider: str) -> Dict[str, Any]:
        return dict(self.provider_settings.get(provider) or {})
