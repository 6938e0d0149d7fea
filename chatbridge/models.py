"""Chat model factory for the AI handlers.

Credentials and tier model names come from ``chatbridge.config``.
"""
from __future__ import annotations

from langchain_core.language_models import BaseChatModel

from chatbridge.config import (
    ANTHROPIC_API_KEY,
    DEFAULT_MODEL,
    HIGH_TIER_MODEL,
    LLM_PROVIDER,
    OPENAI_API_BASE,
    OPENAI_API_KEY,
)


def resolve_model_name(model_name: str = "", tier: str = "default") -> str:
    if model_name:
        return model_name
    if tier == "high":
        return HIGH_TIER_MODEL or DEFAULT_MODEL
    return DEFAULT_MODEL


def detect_provider(model_name: str) -> str:
    """LLM_PROVIDER if set, else guessed from the model name, else from credentials."""
    if LLM_PROVIDER:
        return LLM_PROVIDER
    if model_name.startswith("claude-"):
        return "anthropic"
    if model_name.startswith(("gpt-", "o1", "o3", "o4")):
        return "openai"
    return "anthropic" if ANTHROPIC_API_KEY and not OPENAI_API_KEY else "openai"


def _make_openai(name: str) -> BaseChatModel:
    from langchain_openai import ChatOpenAI

    return ChatOpenAI(model=name, api_key=OPENAI_API_KEY or None, base_url=OPENAI_API_BASE or None)


def _make_anthropic(name: str) -> BaseChatModel:
    from langchain_anthropic import ChatAnthropic

    return ChatAnthropic(model=name, api_key=ANTHROPIC_API_KEY or None, max_tokens=4096)


def _make_local(name: str) -> BaseChatModel:
    # any OpenAI-compatible server (llama.cpp, vLLM, Ollama)
    from langchain_openai import ChatOpenAI

    return ChatOpenAI(
        model=name,
        api_key=OPENAI_API_KEY or "not-needed",
        base_url=OPENAI_API_BASE or "http://localhost:8000/v1",
    )


_PROVIDERS = {
    "openai": _make_openai,
    "anthropic": _make_anthropic,
    "local": _make_local,
}


def make_model(model_name: str = "", tier: str = "default") -> BaseChatModel:
    """Create a chat model: ``tier="default"`` for ``!gpt``, ``"high"`` for ``!lang``.

    Raises:
        ValueError: If the provider is not one of openai, anthropic, local.
    """
    name = resolve_model_name(model_name, tier)
    provider = detect_provider(name)
    factory = _PROVIDERS.get(provider)
    if factory is None:
        raise ValueError(f"Unknown LLM provider '{provider}'. Supported: {', '.join(_PROVIDERS)}")
    return factory(name)
