"""Command classification — message body → one tagged command variant.

``classify()`` is pure: given the body, whether the event carries media,
whether it is self-noted, and the config in effect, it returns exactly one
variant. The dispatcher maps variants to handlers exhaustively.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from chatbridge.core.config import BotConfig


@dataclass(frozen=True)
class Transcribe:
    """Media attached; the transcription branch decides what to do with it."""


@dataclass(frozen=True)
class Reset:
    """Clear the conversation context."""


@dataclass(frozen=True)
class Configure:
    args: str


@dataclass(frozen=True)
class Converse:
    prompt: str


@dataclass(frozen=True)
class AltConverse:
    prompt: str


@dataclass(frozen=True)
class GenerateImage:
    prompt: str


@dataclass(frozen=True)
class NamedImageCommand:
    """Image generation through the named-command registry (``sd generate``)."""

    prompt: str
    target: str = "sd"
    action: str = "generate"


@dataclass(frozen=True)
class NoCommand:
    """Nothing matched and no fallback applies."""


Command = Union[
    Transcribe,
    Reset,
    Configure,
    Converse,
    AltConverse,
    GenerateImage,
    NamedImageCommand,
    NoCommand,
]


def starts_with_ignore_case(text: str, prefix: str) -> bool:
    """Case-insensitive prefix test. An empty prefix never matches."""
    if not prefix:
        return False
    return text[: len(prefix)].lower() == prefix.lower()


def _remainder(text: str, prefix: str) -> str:
    return text[len(prefix):].strip()


def classify(
    body: str,
    config: BotConfig,
    *,
    has_media: bool = False,
    self_noted: bool = False,
) -> Command:
    """Classify one message. First matching rule wins."""
    if has_media:
        return Transcribe()

    text = body or ""

    if starts_with_ignore_case(text, config.reset_prefix):
        return Reset()
    if starts_with_ignore_case(text, config.ai_config_prefix):
        return Configure(_remainder(text, config.ai_config_prefix))
    if starts_with_ignore_case(text, config.gpt_prefix):
        return Converse(_remainder(text, config.gpt_prefix))
    if starts_with_ignore_case(text, config.langchain_prefix):
        return AltConverse(_remainder(text, config.langchain_prefix))
    if starts_with_ignore_case(text, config.dalle_prefix):
        return GenerateImage(_remainder(text, config.dalle_prefix))
    if starts_with_ignore_case(text, config.stable_diffusion_prefix):
        return NamedImageCommand(_remainder(text, config.stable_diffusion_prefix))

    if not config.prefix_enabled or (config.prefix_skipped_for_me and self_noted):
        return Converse(text)

    return NoCommand()
