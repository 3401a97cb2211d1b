# tests/unit/test_config_loader.py

from __future__ import annotations
import sys
from pathlib import Path
import pytest
from textwrap import dedent

# Make "src" importable
sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

import llmchat.config_loader as loader
from llmchat.config import AppConfig
from llmchat.config_loader import load_config
from llmchat.core.errors import ConfigError


def write_yaml(p: Path, text: str) -> Path:
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(dedent(text).lstrip("\n").rstrip() + "\n", encoding="utf-8")
    return p


def test_load_config_ok(tmp_path: Path):
    cfg_path = write_yaml(
        tmp_path / "conf" / "config.yaml",
        """
        provider: GROQ
        temperature: 1
        max_tokens: 512
        output_format: JSON
        history: { enabled: true, path: data/history.json, max: 5 }
        assessment: { enabled: true }
        providers:
          Ollama: { base_url: "http://gpu-box:11434", model: "llama3:8b" }
        secrets: { method: [keyring, env], mapping: { groq: { api_key: MY_GROQ } } }
        """,
    )
    cfg = load_config(cfg_path)
    assert cfg.provider == "groq"                      # normalised
    assert cfg.temperature == 1.0 and isinstance(cfg.temperature, float)
    assert cfg.max_tokens == 512
    assert cfg.output_format == "json"
    assert cfg.history_path == (tmp_path / "conf" / "data" / "history.json").resolve()
    assert cfg.max_history == 5
    assert cfg.enable_assessment is True and cfg.auto_improve is False
    assert cfg.settings_for("ollama") == {"base_url": "http://gpu-box:11434", "model": "llama3:8b"}
    assert cfg.secrets_method == ["keyring", "env"]
    assert cfg.secrets_mapping == {"groq": {"api_key": "MY_GROQ"}}


def test_empty_file_means_defaults(tmp_path: Path):
    cfg_path = tmp_path / "config.yaml"
    cfg_path.write_text("", encoding="utf-8")
    assert load_config(cfg_path) == AppConfig()


def test_no_path_and_no_default_file(monkeypatch, tmp_path: Path):
    monkeypatch.setattr(loader, "DEFAULT_CONFIG_PATH", tmp_path / "absent.yaml", raising=True)
    assert load_config() == AppConfig()


def test_missing_explicit_file(tmp_path: Path):
    with pytest.raises(ConfigError):
        load_config(tmp_path / "nope.yaml")


@pytest.mark.parametrize("body", [
    "verbose: \"yes\"",
    "max_tokens: 1.5",
    "history: { max: true }",
    "providers: [ollama]",
    "output_format: html",
    "temperature: 3",
    "- just\n- a list",
])
def test_load_config_type_errors(tmp_path: Path, body: str):
    cfg_path = write_yaml(tmp_path / "config.yaml", body)
    with pytest.raises(ConfigError):
        load_config(cfg_path)


def test_overrides_skip_none():
    cfg = AppConfig(provider="groq", temperature=0.2)
    out = cfg.with_overrides(provider=None, temperature=0.9, verbose=True)
    assert out.provider == "groq"
    assert out.temperature == 0.9 and out.verbose is True
    assert cfg.temperature == 0.2
