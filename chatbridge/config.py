"""Configuration — loads .env, resolves workspace, builds BotConfig."""
from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

from chatbridge.core.config import DEFAULT_WELCOME_MESSAGE, BotConfig


def _default_workspace() -> Path:
    """Return the default workspace root.

    ``CHATBRIDGE_HOME`` overrides; otherwise the user's home directory
    (state lives at ``~/.chatbridge``).
    """
    env = os.getenv("CHATBRIDGE_HOME")
    if env:
        return Path(env).expanduser().resolve()
    return Path.home()


def _find_workspace() -> Path:
    """Walk up from cwd to find a directory containing .chatbridge/ or .env."""
    p = Path.cwd()
    while p != p.parent:
        if (p / ".chatbridge").is_dir() or (p / ".env").is_file():
            return p
        p = p.parent
    return _default_workspace()


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ("true", "1", "yes", "on")


def _env_list(name: str) -> list[str]:
    return [p.strip() for p in os.getenv(name, "").split(",") if p.strip()]


WORKSPACE = _find_workspace()

# --- Internal storage (.chatbridge/) ---
STATE_DIR = WORKSPACE / ".chatbridge"

# .env: prefer STATE_DIR/.env, then WORKSPACE/.env.  load_dotenv won't
# override vars already set by the first call.
load_dotenv(STATE_DIR / ".env")
load_dotenv(WORKSPACE / ".env")

DB_PATH = Path(os.getenv("DB_PATH", str(STATE_DIR / "chatbridge.db")))
SCAN_LOCK_FILE = Path(os.getenv("SCAN_LOCK_FILE", str(STATE_DIR / "scan.lock")))
BACKFILL_LIMIT = int(os.getenv("BACKFILL_LIMIT", "100"))

# --- Policy ---
GROUPCHATS_ENABLED = _env_bool("GROUPCHATS_ENABLED", False)
WHITELISTED_ENABLED = _env_bool("WHITELISTED_ENABLED", False)
WHITELISTED_PHONE_NUMBERS = _env_list("WHITELISTED_PHONE_NUMBERS")

# --- Prefixes ---
PREFIX_ENABLED = _env_bool("PREFIX_ENABLED", True)
PREFIX_SKIPPED_FOR_ME = _env_bool("PREFIX_SKIPPED_FOR_ME", True)
RESET_PREFIX = os.getenv("RESET_PREFIX", "!reset")
AI_CONFIG_PREFIX = os.getenv("AI_CONFIG_PREFIX", "!config")
GPT_PREFIX = os.getenv("GPT_PREFIX", "!gpt")
LANGCHAIN_PREFIX = os.getenv("LANGCHAIN_PREFIX", "!lang")
DALLE_PREFIX = os.getenv("DALLE_PREFIX", "!dalle")
STABLE_DIFFUSION_PREFIX = os.getenv("STABLE_DIFFUSION_PREFIX", "!sd")

# --- Transcription ---
TRANSCRIPTION_ENABLED = _env_bool("TRANSCRIPTION_ENABLED", False)
TRANSCRIPTION_MODE = os.getenv("TRANSCRIPTION_MODE", "local").strip().lower()
TRANSCRIPTION_LANGUAGE = os.getenv("TRANSCRIPTION_LANGUAGE", "")
WHISPER_LOCAL_COMMAND = os.getenv("WHISPER_LOCAL_COMMAND", "whisper")
WHISPER_LOCAL_MODEL = os.getenv("WHISPER_LOCAL_MODEL", "base")
WHISPER_API_URL = os.getenv("WHISPER_API_URL", "https://transcribe.whisperapi.com")
WHISPER_API_KEY = os.getenv("WHISPER_API_KEY", "")
SPEECH_API_URL = os.getenv("SPEECH_API_URL", "")
OPENAI_TRANSCRIPTION_MODEL = os.getenv("OPENAI_TRANSCRIPTION_MODEL", "whisper-1")
SELF_CHAT_ID = os.getenv("SELF_CHAT_ID", "")

# --- Welcome / jitter ---
WELCOME_MESSAGE = os.getenv("WELCOME_MESSAGE", DEFAULT_WELCOME_MESSAGE)
JITTER_MIN_MS = int(os.getenv("JITTER_MIN_MS", "1000"))
JITTER_MAX_MS = int(os.getenv("JITTER_MAX_MS", "10000"))
SELF_NOTES_DISPATCH = _env_bool("SELF_NOTES_DISPATCH", False)
SHUTDOWN_DRAIN_SECONDS = float(os.getenv("SHUTDOWN_DRAIN_SECONDS", "0"))

# --- Auth ---
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
OPENAI_API_BASE = os.getenv("OPENAI_API_BASE", "")
ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY", "")

# --- Provider override (optional) ---
# Auto-detected from model name if not set. Values: openai, anthropic, local
LLM_PROVIDER = os.getenv("LLM_PROVIDER", "")

# --- Model tiers ---
# DEFAULT = !gpt conversations and the no-prefix fallback
# HIGH    = !lang one-shot assistant
DEFAULT_MODEL = os.getenv("DEFAULT_MODEL", os.getenv("OPENAI_GPT_MODEL", "gpt-4o-mini"))
HIGH_TIER_MODEL = os.getenv("HIGH_TIER_MODEL", DEFAULT_MODEL)
PRE_PROMPT = os.getenv("PRE_PROMPT", "")
MAX_HISTORY = int(os.getenv("MAX_HISTORY", "20"))

# --- Images ---
DALLE_MODEL = os.getenv("DALLE_MODEL", "dall-e-3")
DALLE_SIZE = os.getenv("DALLE_SIZE", "1024x1024")
STABLE_DIFFUSION_URL = os.getenv("STABLE_DIFFUSION_URL", "http://127.0.0.1:7860")
STABLE_DIFFUSION_STEPS = int(os.getenv("STABLE_DIFFUSION_STEPS", "20"))

# --- Logging ---
LOG_LEVEL = os.getenv("CHATBRIDGE_LOG_LEVEL", "INFO").upper()


def load_bot_config() -> BotConfig:
    """Build a BotConfig from the environment-derived module constants."""
    return BotConfig(
        groupchats_enabled=GROUPCHATS_ENABLED,
        whitelisted_enabled=WHITELISTED_ENABLED,
        whitelist=list(WHITELISTED_PHONE_NUMBERS),
        prefix_enabled=PREFIX_ENABLED,
        prefix_skipped_for_me=PREFIX_SKIPPED_FOR_ME,
        reset_prefix=RESET_PREFIX,
        ai_config_prefix=AI_CONFIG_PREFIX,
        gpt_prefix=GPT_PREFIX,
        langchain_prefix=LANGCHAIN_PREFIX,
        dalle_prefix=DALLE_PREFIX,
        stable_diffusion_prefix=STABLE_DIFFUSION_PREFIX,
        transcription_enabled=TRANSCRIPTION_ENABLED,
        transcription_mode=TRANSCRIPTION_MODE,
        self_chat_id=SELF_CHAT_ID,
        welcome_message=WELCOME_MESSAGE,
        jitter_min_ms=JITTER_MIN_MS,
        jitter_max_ms=JITTER_MAX_MS,
        self_notes_dispatch=SELF_NOTES_DISPATCH,
        db_path=DB_PATH,
        scan_lock_path=SCAN_LOCK_FILE,
        backfill_limit=BACKFILL_LIMIT,
        shutdown_drain_seconds=SHUTDOWN_DRAIN_SECONDS,
        pre_prompt=PRE_PROMPT,
        max_history=MAX_HISTORY,
    )
