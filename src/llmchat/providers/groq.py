# src/llmchat/providers/groq.py
from __future__ import annotations

from llmchat.core.ports import ProviderMetadata
from .openai_compat import OpenAICompatibleProvider


class GroqProvider(OpenAICompatibleProvider):
    name = "groq"
    base_url = "https://api.groq.com/openai/v1"
    model_aliases = {
        "llama-70b": "llama-3.3-70b-versatile",
        "llama-8b": "llama-3.1-8b-instant",
        "mixtral": "mixtral-8x7b-32768",
        "gemma-7b": "gemma2-9b-it",
    }
    env_var_key = "GROQ_API_KEY"
    env_var_model = "GROQ_MODEL"
    default_alias = "llama-70b"
    metadata = ProviderMetadata(
        name="groq",
        display_name="Groq",
        description="Ultra-fast LLM inference",
        requires_api=True,
        default_url="https://api.groq.com",
        env_var_key="GROQ_API_KEY",
        env_var_model="GROQ_MODEL",
        icon="⚡",
    )
