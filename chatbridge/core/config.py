"""BotConfig — pipeline configuration dataclass.

Pure data: no env vars, no dotenv, no side effects at import time. The CLI
layer (chatbridge.config) reads the environment and builds a BotConfig from
it. Tests and embedders construct BotConfig directly.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

VALID_TRANSCRIPTION_MODES = {"local", "openai", "whisper-api", "speech-api"}

DEFAULT_WELCOME_MESSAGE = (
    "Hola beautiful, como estas? 🙂\n\n"
    "If you want to apply now for the job, you can go to https://appplyx.com"
)


class BotConfigError(ValueError):
    """Raised when BotConfig validation fails."""


@dataclass
class BotConfig:
    """Switches consumed by the filter, dispatcher and schedulers."""

    # --- Policy ---
    groupchats_enabled: bool = False
    whitelisted_enabled: bool = False
    whitelist: list[str] = field(default_factory=list)

    # --- Prefixes (empty string disables the command) ---
    prefix_enabled: bool = True
    prefix_skipped_for_me: bool = True
    reset_prefix: str = "!reset"
    ai_config_prefix: str = "!config"
    gpt_prefix: str = "!gpt"
    langchain_prefix: str = "!lang"
    dalle_prefix: str = "!dalle"
    stable_diffusion_prefix: str = "!sd"

    # --- Transcription ---
    transcription_enabled: bool = False
    transcription_mode: str = "local"
    self_chat_id: str = ""

    # --- Welcome / jitter ---
    welcome_message: str = DEFAULT_WELCOME_MESSAGE
    jitter_min_ms: int = 1000
    jitter_max_ms: int = 10000
    self_notes_dispatch: bool = False  # also dispatch notes the bot sends to itself

    # --- Storage / backfill ---
    db_path: Path = Path("chatbridge.db")
    scan_lock_path: Path = Path("scan.lock")
    backfill_limit: int = 100

    # --- Lifecycle ---
    shutdown_drain_seconds: float = 0.0  # 0 = abandon pending timers on shutdown

    # --- Conversation ---
    pre_prompt: str = ""
    max_history: int = 20

    def validate(self) -> None:
        """Validate configuration. Raises BotConfigError listing every problem."""
        errors: list[str] = []

        if self.transcription_mode not in VALID_TRANSCRIPTION_MODES:
            errors.append(
                f"transcription_mode '{self.transcription_mode}' not recognized. "
                f"Valid: {', '.join(sorted(VALID_TRANSCRIPTION_MODES))}"
            )
        if self.jitter_min_ms < 0:
            errors.append("jitter_min_ms must be >= 0")
        if self.jitter_max_ms < self.jitter_min_ms:
            errors.append("jitter_max_ms must be >= jitter_min_ms")
        if self.backfill_limit <= 0:
            errors.append("backfill_limit must be positive")
        if self.shutdown_drain_seconds < 0:
            errors.append("shutdown_drain_seconds must be >= 0")
        if self.max_history < 0:
            errors.append("max_history must be >= 0")

        if errors:
            raise BotConfigError(
                f"BotConfig validation failed ({len(errors)} error(s)):\n"
                + "\n".join(f"  - {e}" for e in errors)
            )
