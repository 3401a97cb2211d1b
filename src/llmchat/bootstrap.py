from __future__ import annotations
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv

from .config import AppConfig
from .config_loader import load_config
from .core.errors import ConfigError, ProviderConnectionError
from .core.ports import Provider, ProviderConfig
from .providers.gemini import GeminiProvider
from .providers.groq import GroqProvider
from .providers.ollama import OllamaProvider
from .providers.registry import ProviderRegistry
from .providers.samba import SambaProvider
from .providers.together import TogetherProvider
from .secrets.sources import SecretsResolver

logger = logging.getLogger(__name__)

HOSTED_PROVIDERS = (GroqProvider, SambaProvider, TogetherProvider)


@dataclass
class Selection:
    provider: Provider
    notes: List[str] = field(default_factory=list)

    @property
    def fell_back(self) -> bool:
        return bool(self.notes)


def build_registry(cfg: AppConfig, secrets: SecretsResolver) -> ProviderRegistry:
    """Construct every known provider once and register it with its metadata."""
    registry = ProviderRegistry()

    ollama = cfg.settings_for("ollama")
    registry.register(
        OllamaProvider(base_url=ollama.get("base_url"), model=ollama.get("model"), timeout=cfg.timeout),
        OllamaProvider.metadata,
    )
    for cls in HOSTED_PROVIDERS:
        settings = cfg.settings_for(cls.name)
        registry.register(cls(secrets, model=settings.get("model"), timeout=cfg.timeout), cls.metadata)
    gemini = cfg.settings_for("gemini")
    registry.register(
        GeminiProvider(secrets, model=gemini.get("model"), timeout=cfg.timeout, endpoint=gemini.get("base_url")),
        GeminiProvider.metadata,
    )
    return registry


def provider_config(cfg: AppConfig, name: str, *, explicit_model: bool = True) -> ProviderConfig:
    settings = cfg.settings_for(name)
    model = (cfg.model if explicit_model else None) or settings.get("model") or ""
    return ProviderConfig(
        model=model,
        temperature=cfg.temperature,
        max_tokens=cfg.max_tokens,
        timeout=cfg.timeout,
        base_url=settings.get("base_url"),
        extra={k: v for k, v in settings.items() if k not in ("model", "base_url")},
    )


def _try_initialize(provider: Provider, config: ProviderConfig) -> Optional[str]:
    try:
        provider.initialize(config)
    except (ConfigError, ProviderConnectionError) as e:
        logger.warning("could not initialise %s: %s", provider.name, e)
        return str(e)
    return None


def select_provider(registry: ProviderRegistry, cfg: AppConfig) -> Selection:
    """
    Initialise the requested provider, or fall back to the first available one
    (in name order), collecting a note for every provider that was skipped.
    Raises ConfigError when nothing usable remains.
    """
    notes: List[str] = []
    requested = cfg.provider

    if requested not in registry:
        notes.append(f"Unknown provider '{requested}'")
    elif not registry.get(requested).is_available():
        meta = registry.get_metadata(requested)
        notes.append(f"{meta.display_name} is not available (check {meta.env_var_key})")
    else:
        provider = registry.get(requested)
        err = _try_initialize(provider, provider_config(cfg, requested))
        if err is None:
            return Selection(provider)
        notes.append(f"{requested}: {err}")

    for name in registry.list_available():
        if name == requested:
            continue
        provider = registry.get(name)
        # An explicit --model belongs to the provider it was given for
        err = _try_initialize(provider, provider_config(cfg, name, explicit_model=False))
        if err is None:
            notes.append(f"Using {name} instead")
            return Selection(provider, notes)
        notes.append(f"{name}: {err}")

    raise ConfigError("no providers available; " + "; ".join(notes))


def build_app(config_path: Optional[Path] = None, **overrides: Any) -> Dict[str, Any]:
    """
    Composition root: .env, YAML config plus CLI overrides, secrets resolver
    and the provider registry.
    """
    load_dotenv()
    cfg = load_config(config_path).with_overrides(**overrides).validate()
    secrets = SecretsResolver(method=cfg.secrets_method, mapping=cfg.secrets_mapping)
    registry = build_registry(cfg, secrets)
    return {"cfg": cfg, "secrets": secrets, "registry": registry}

