# src/llmchat/providers/samba.py
from __future__ import annotations

from llmchat.core.ports import ProviderMetadata
from .openai_compat import OpenAICompatibleProvider


class SambaProvider(OpenAICompatibleProvider):
    name = "samba"
    base_url = "https://api.sambanova.ai/v1"
    model_aliases = {
        "llama-70b": "Meta-Llama-3.3-70B-Instruct",
        "llama-8b": "Meta-Llama-3.1-8B-Instruct",
        "qwen-72b": "Qwen2.5-72B-Instruct",
    }
    env_var_key = "SAMBA_API_KEY"
    env_var_model = "SAMBA_MODEL"
    default_alias = "llama-70b"
    metadata = ProviderMetadata(
        name="samba",
        display_name="SambaNova",
        description="High-performance AI inference",
        requires_api=True,
        default_url="https://api.sambanova.ai",
        env_var_key="SAMBA_API_KEY",
        env_var_model="SAMBA_MODEL",
        icon="🔥",
    )
