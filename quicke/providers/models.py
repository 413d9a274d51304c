"""Model registry — UI model ids mapped to a provider and its upstream model name."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ProviderName(str, Enum):
    """Supported model providers."""

    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GOOGLE = "google"
    DEEPSEEK = "deepseek"
    OPENROUTER = "openrouter"


@dataclass(frozen=True)
class ModelSpec:
    """How to reach one UI-selectable model."""

    provider: ProviderName
    upstream_id: str  # Model name sent to the provider API
    display_name: str = ""


def _spec(provider: ProviderName, upstream_id: str, display_name: str = "") -> ModelSpec:
    return ModelSpec(provider=provider, upstream_id=upstream_id, display_name=display_name or upstream_id)


MODEL_REGISTRY: dict[str, ModelSpec] = {
    # OpenAI
    "gpt-4o": _spec(ProviderName.OPENAI, "gpt-4o-2024-08-06", "GPT-4o"),
    "gpt-4o-mini": _spec(ProviderName.OPENAI, "gpt-4o-mini-2024-07-18", "GPT-4o mini"),
    "o1": _spec(ProviderName.OPENAI, "o1-2024-12-17", "o1"),
    "o1-mini": _spec(ProviderName.OPENAI, "o1-mini-2024-09-12", "o1 mini"),
    "o3-mini": _spec(ProviderName.OPENAI, "o3-mini-2025-01-31", "o3 mini"),
    # Anthropic
    "claude-3-7": _spec(ProviderName.ANTHROPIC, "claude-3-7-sonnet-20250219", "Claude 3.7 Sonnet"),
    "claude-3-5": _spec(ProviderName.ANTHROPIC, "claude-3-5-sonnet-20241022", "Claude 3.5 Sonnet"),
    # Google
    "gemini-flash": _spec(ProviderName.GOOGLE, "gemini-2.0-flash", "Gemini 2.0 Flash"),
    "gemini-flash-2.5": _spec(ProviderName.GOOGLE, "gemini-2.5-flash", "Gemini 2.5 Flash"),
    "gemini-lite": _spec(ProviderName.GOOGLE, "gemini-2.0-flash-lite", "Gemini 2.0 Flash Lite"),
    "gemini-2.5-pro": _spec(ProviderName.GOOGLE, "gemini-2.5-pro", "Gemini 2.5 Pro"),
    # DeepSeek
    "deepseek-chat": _spec(ProviderName.DEEPSEEK, "deepseek-chat", "DeepSeek Chat"),
    "deepseek-reasoner": _spec(ProviderName.DEEPSEEK, "deepseek-reasoner", "DeepSeek Reasoner"),
    # OpenRouter
    "gpt-4o-mini-or": _spec(ProviderName.OPENROUTER, "openai/gpt-4o-mini", "GPT-4o mini (OpenRouter)"),
    "mistral-small-31": _spec(ProviderName.OPENROUTER, "mistralai/mistral-small-3.1-24b-instruct:free", "Mistral Small 3.1"),
    "mistral-nemo": _spec(ProviderName.OPENROUTER, "mistralai/mistral-nemo:free", "Mistral Nemo"),
    "deepseek-v3-0324": _spec(ProviderName.OPENROUTER, "deepseek/deepseek-chat-v3-0324:free", "DeepSeek V3 0324"),
    "llama-3.1-8b": _spec(ProviderName.OPENROUTER, "meta-llama/llama-3.1-8b-instruct:free", "Llama 3.1 8B"),
    "qwen3-235b": _spec(ProviderName.OPENROUTER, "qwen/qwen3-235b-a22b:free", "Qwen3 235B A22B"),
}


def resolve_model(model_id: str) -> ModelSpec | None:
    """Look up a model id.

    Unregistered ids containing a "/" are treated as raw OpenRouter model names.
    """
    spec = MODEL_REGISTRY.get(model_id)
    if spec is not None:
        return spec
    if "/" in model_id:
        return _spec(ProviderName.OPENROUTER, model_id)
    return None
