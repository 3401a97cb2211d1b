# src/llmchat/providers/together.py
from __future__ import annotations

from llmchat.core.ports import ProviderMetadata
from .openai_compat import OpenAICompatibleProvider


class TogetherProvider(OpenAICompatibleProvider):
    name = "together"
    base_url = "https://api.together.xyz/v1"
    model_aliases = {
        "llama-70b": "meta-llama/Llama-3.3-70B-Instruct-Turbo",
        "llama-70b-free": "meta-llama/Llama-3.3-70B-Instruct-Turbo-Free",
        "deepseek": "deepseek-ai/DeepSeek-R1-Distill-Llama-70B",
        "qwen-72b": "Qwen/Qwen2.5-72B-Instruct-Turbo",
    }
    env_var_key = "TOGETHER_API_KEY"
    env_var_model = "TOGETHER_MODEL"
    default_alias = "llama-70b-free"
    metadata = ProviderMetadata(
        name="together",
        display_name="Together AI",
        description="Fast inference with open-source models",
        requires_api=True,
        default_url="https://api.together.xyz",
        env_var_key="TOGETHER_API_KEY",
        env_var_model="TOGETHER_MODEL",
        icon="🤝",
    )
