"""Tests for the model factory."""
from __future__ import annotations

import pytest

from chatbridge import models


@pytest.fixture
def env(monkeypatch):
    monkeypatch.setattr(models, "LLM_PROVIDER", "")
    monkeypatch.setattr(models, "OPENAI_API_KEY", "sk-test")
    monkeypatch.setattr(models, "OPENAI_API_BASE", "")
    monkeypatch.setattr(models, "ANTHROPIC_API_KEY", "sk-ant-test")
    monkeypatch.setattr(models, "DEFAULT_MODEL", "gpt-4o-mini")
    monkeypatch.setattr(models, "HIGH_TIER_MODEL", "claude-sonnet-4-5-20250929")
    return monkeypatch


class TestDetectProvider:
    def test_explicit_provider_wins(self, env):
        env.setattr(models, "LLM_PROVIDER", "local")
        assert models.detect_provider("gpt-4o") == "local"

    def test_name_heuristics(self, env):
        assert models.detect_provider("gpt-4o") == "openai"
        assert models.detect_provider("claude-sonnet-4-5") == "anthropic"

    def test_credentials_fallback(self, env):
        env.setattr(models, "OPENAI_API_KEY", "")
        assert models.detect_provider("llama3") == "anthropic"


def test_resolve_tiers(env):
    assert models.resolve_model_name(tier="default") == "gpt-4o-mini"
    assert models.resolve_model_name(tier="high") == "claude-sonnet-4-5-20250929"
    assert models.resolve_model_name("explicit") == "explicit"


def test_make_model_openai(env):
    from langchain_openai import ChatOpenAI

    assert isinstance(models.make_model(), ChatOpenAI)


def test_make_model_anthropic_high_tier(env):
    from langchain_anthropic import ChatAnthropic

    assert isinstance(models.make_model(tier="high"), ChatAnthropic)


def test_unknown_provider(env):
    env.setattr(models, "LLM_PROVIDER", "nope")
    with pytest.raises(ValueError):
        models.make_model("x")
