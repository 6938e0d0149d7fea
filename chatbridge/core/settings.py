"""AiSettings — runtime-mutable settings consulted at dispatch time.

Seeded from BotConfig; ``!config <target> <key> <value>`` changes them while
the bot runs. Every key has a parser that validates and converts the raw
string, so a bad value is rejected before it reaches the dispatcher.
"""
from __future__ import annotations

import logging
from typing import Any, Callable

from chatbridge.core.config import VALID_TRANSCRIPTION_MODES, BotConfig

logger = logging.getLogger(__name__)


def _parse_bool(raw: str) -> bool:
    value = raw.strip().lower()
    if value in ("true", "1", "yes", "on"):
        return True
    if value in ("false", "0", "no", "off"):
        return False
    raise ValueError(f"expected true/false, got {raw!r}")


def _parse_list(raw: str) -> list[str]:
    return [p.strip() for p in raw.split(",") if p.strip()]


def _parse_choice(choices: set[str]) -> Callable[[str], str]:
    def _parse(raw: str) -> str:
        value = raw.strip().lower()
        if value not in choices:
            raise ValueError(f"expected one of {', '.join(sorted(choices))}, got {raw!r}")
        return value
    return _parse


def _parse_positive_int(raw: str) -> int:
    value = int(raw.strip())
    if value <= 0:
        raise ValueError(f"expected a positive integer, got {raw!r}")
    return value


# target → key → parser
_PARSERS: dict[str, dict[str, Callable[[str], Any]]] = {
    "general": {
        "whitelist": _parse_list,
    },
    "transcription": {
        "enabled": _parse_bool,
        "mode": _parse_choice(VALID_TRANSCRIPTION_MODES),
    },
    "dalle": {
        "size": _parse_choice({"256x256", "512x512", "1024x1024", "1792x1024", "1024x1792"}),
    },
    "sd": {
        "steps": _parse_positive_int,
    },
}


class AiSettings:
    """Two-level key/value settings (``target`` → ``key`` → value)."""

    def __init__(self, config: BotConfig, *, dalle_size: str = "1024x1024", sd_steps: int = 20) -> None:
        self._values: dict[str, dict[str, Any]] = {
            "general": {"whitelist": list(config.whitelist)},
            "transcription": {
                "enabled": config.transcription_enabled,
                "mode": config.transcription_mode,
            },
            "dalle": {"size": dalle_size},
            "sd": {"steps": sd_steps},
        }

    def get(self, target: str, key: str) -> Any:
        try:
            return self._values[target][key]
        except KeyError:
            raise KeyError(f"Unknown setting {target}.{key}") from None

    def set(self, target: str, key: str, raw: str) -> Any:
        """Parse *raw* and store it. Raises KeyError/ValueError on bad input."""
        parser = _PARSERS.get(target, {}).get(key)
        if parser is None:
            raise KeyError(f"Unknown setting {target}.{key}")
        value = parser(raw)
        self._values[target][key] = value
        logger.info("Setting %s.%s changed to %r", target, key, value)
        return value

    def describe(self) -> list[tuple[str, str, Any]]:
        """``(target, key, current value)`` for every known setting."""
        return [
            (target, key, self._values[target][key])
            for target, keys in _PARSERS.items()
            for key in keys
        ]

    def whitelist(self) -> list[str]:
        return list(self._values["general"]["whitelist"])
