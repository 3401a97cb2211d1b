# src/llmchat/config_loader.py

from __future__ import annotations
from pathlib import Path
from typing import Any, Dict, Optional
import yaml

from .config import APP_DIR, AppConfig, OUTPUT_FORMATS
from .core.errors import ConfigError

DEFAULT_CONFIG_PATH = APP_DIR / "config.yaml"

# dotted key -> expected type; every key is optional, present keys are type-checked
_TYPED_KEYS = {
    "provider": str,
    "model": str,
    "verbose": bool,
    "temperature": float,
    "max_tokens": int,
    "timeout": float,
    "output_format": str,
    "system_prompt": str,
    "history.enabled": bool,
    "history.path": str,
    "history.max": int,
    "assessment.enabled": bool,
    "assessment.auto_improve": bool,
    "secrets.method": (str, list),
    "secrets.mapping": dict,
    "providers": dict,
}


def _lookup(d: Dict[str, Any], dotted: str) -> Any:
    cur: Any = d
    for k in dotted.split("."):
        if not isinstance(cur, dict) or k not in cur:
            return None
        cur = cur[k]
    return cur


def _check(dotted: str, value: Any, typ: Any) -> Any:
    if typ is bool and not isinstance(value, bool):
        raise ConfigError(f"'{dotted}' must be a boolean")
    if typ is str and not isinstance(value, str):
        raise ConfigError(f"'{dotted}' must be a string")
    if typ is int and (isinstance(value, bool) or not isinstance(value, int)):
        raise ConfigError(f"'{dotted}' must be an integer")
    if typ is float:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ConfigError(f"'{dotted}' must be a number")
        return float(value)
    if isinstance(typ, tuple) and not isinstance(value, typ):
        raise ConfigError(f"'{dotted}' has the wrong type")
    if typ is dict and not isinstance(value, dict):
        raise ConfigError(f"'{dotted}' must be a mapping")
    return value


def load_config(path: Optional[Path] = None) -> AppConfig:
    """
    Load the YAML config file into an AppConfig. With no path, the default
    ~/.llm-chat/config.yaml is used when it exists; otherwise defaults apply.
    """
    if path is None:
        if not DEFAULT_CONFIG_PATH.exists():
            return AppConfig()
        path = DEFAULT_CONFIG_PATH
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")
    raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    if raw is None:
        return AppConfig()
    if not isinstance(raw, dict):
        raise ConfigError(f"Config is not a YAML mapping: {path}")

    values: Dict[str, Any] = {}
    for dotted, typ in _TYPED_KEYS.items():
        val = _lookup(raw, dotted)
        if val is not None:
            values[dotted] = _check(dotted, val, typ)

    cfg = AppConfig()
    if "provider" in values:
        cfg.provider = values["provider"].lower()
    if "model" in values:
        cfg.model = values["model"]
    if "verbose" in values:
        cfg.verbose = values["verbose"]
    if "temperature" in values:
        cfg.temperature = values["temperature"]
    if "max_tokens" in values:
        cfg.max_tokens = values["max_tokens"]
    if "timeout" in values:
        cfg.timeout = values["timeout"]
    if "output_format" in values:
        fmt = values["output_format"].lower()
        if fmt not in OUTPUT_FORMATS:
            raise ConfigError(f"Unknown output_format '{fmt}' (expected one of {', '.join(OUTPUT_FORMATS)}).")
        cfg.output_format = fmt
    if "system_prompt" in values:
        cfg.system_prompt = values["system_prompt"]
    if "history.enabled" in values:
        cfg.history_enabled = values["history.enabled"]
    if "history.path" in values:
        # Relative history paths resolve against the config file's directory
        p = Path(values["history.path"]).expanduser()
        cfg.history_path = p if p.is_absolute() else (path.parent / p).resolve()
    if "history.max" in values:
        cfg.max_history = values["history.max"]
    if "assessment.enabled" in values:
        cfg.enable_assessment = values["assessment.enabled"]
    if "assessment.auto_improve" in values:
        cfg.auto_improve = values["assessment.auto_improve"]
    if "secrets.method" in values:
        cfg.secrets_method = values["secrets.method"]
    if "secrets.mapping" in values:
        cfg.secrets_mapping = values["secrets.mapping"]
    if "providers" in values:
        cfg.provider_settings = {str(k).lower(): (v or {}) for k, v in values["providers"].items()}

    return cfg.validate()
