"""Voice transcription — four interchangeable backends.

Modes:
  - ``local``: the ``whisper`` CLI run as a subprocess
  - ``openai``: OpenAI audio transcription API
  - ``whisper-api``: hosted Whisper HTTP API (multipart upload)
  - ``speech-api``: self-hosted speech endpoint (multipart upload)

Every backend returns a ``Transcription``. ``text is None`` means the audio
could not be understood; ``text == ""`` means it was silent.
"""
from __future__ import annotations

import asyncio
import io
import json
import logging
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable

import httpx

from chatbridge.config import (
    OPENAI_API_KEY,
    OPENAI_TRANSCRIPTION_MODEL,
    SPEECH_API_URL,
    TRANSCRIPTION_LANGUAGE,
    WHISPER_API_KEY,
    WHISPER_API_URL,
    WHISPER_LOCAL_COMMAND,
    WHISPER_LOCAL_MODEL,
)

logger = logging.getLogger(__name__)

_HTTP_TIMEOUT = 120.0


@dataclass(frozen=True)
class Transcription:
    text: str | None
    language: str | None = None


class UnsupportedTranscriptionMode(ValueError):
    """Raised when no backend is registered for the requested mode."""


async def transcribe_local(audio: bytes) -> Transcription:
    """Run the whisper CLI on a temp file and read its JSON output."""
    with tempfile.TemporaryDirectory(prefix="chatbridge-") as tmp:
        audio_path = Path(tmp) / "audio.ogg"
        audio_path.write_bytes(audio)
        args = [
            WHISPER_LOCAL_COMMAND, str(audio_path),
            "--model", WHISPER_LOCAL_MODEL,
            "--output_format", "json",
            "--output_dir", tmp,
        ]
        if TRANSCRIPTION_LANGUAGE:
            args += ["--language", TRANSCRIPTION_LANGUAGE]

        proc = await asyncio.create_subprocess_exec(
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        _, stderr = await proc.communicate()
        if proc.returncode != 0:
            logger.warning("whisper exited with %s: %s", proc.returncode, stderr.decode(errors="replace")[:500])
            return Transcription(text=None)

        out_path = Path(tmp) / "audio.json"
        if not out_path.is_file():
            return Transcription(text=None)
        data = json.loads(out_path.read_text(encoding="utf-8"))
        return Transcription(text=(data.get("text") or "").strip(), language=data.get("language"))


async def transcribe_openai(audio: bytes) -> Transcription:
    from openai import AsyncOpenAI

    client = AsyncOpenAI(api_key=OPENAI_API_KEY or None)
    buf = io.BytesIO(audio)
    buf.name = "audio.ogg"
    kwargs: dict = {"model": OPENAI_TRANSCRIPTION_MODEL, "file": buf}
    if TRANSCRIPTION_LANGUAGE:
        kwargs["language"] = TRANSCRIPTION_LANGUAGE
    result = await client.audio.transcriptions.create(**kwargs)
    return Transcription(text=(result.text or "").strip(), language=TRANSCRIPTION_LANGUAGE or None)


async def _post_multipart(url: str, audio: bytes, headers: dict[str, str], data: dict[str, str]) -> dict:
    async with httpx.AsyncClient(timeout=_HTTP_TIMEOUT) as client:
        resp = await client.post(
            url,
            headers=headers,
            data=data,
            files={"file": ("audio.ogg", audio, "audio/ogg")},
        )
        resp.raise_for_status()
        return resp.json()


async def transcribe_whisper_api(audio: bytes) -> Transcription:
    data = {"fileType": "ogg", "diarization": "false", "task": "transcribe"}
    if TRANSCRIPTION_LANGUAGE:
        data["language"] = TRANSCRIPTION_LANGUAGE
    payload = await _post_multipart(
        WHISPER_API_URL,
        audio,
        headers={"Authorization": f"Bearer {WHISPER_API_KEY}"},
        data=data,
    )
    return Transcription(text=payload.get("text"), language=payload.get("language"))


async def transcribe_speech_api(audio: bytes) -> Transcription:
    if not SPEECH_API_URL:
        logger.warning("No SPEECH_API_URL — cannot transcribe")
        return Transcription(text=None)
    payload = await _post_multipart(f"{SPEECH_API_URL.rstrip('/')}/transcribe", audio, headers={}, data={})
    return Transcription(text=payload.get("text"), language=payload.get("language"))


_BACKENDS: dict[str, Callable[[bytes], Awaitable[Transcription]]] = {
    "local": transcribe_local,
    "openai": transcribe_openai,
    "whisper-api": transcribe_whisper_api,
    "speech-api": transcribe_speech_api,
}


async def transcribe(mode: str, audio: bytes) -> Transcription:
    """Transcribe *audio* with the backend registered for *mode*.

    Raises:
        UnsupportedTranscriptionMode: If *mode* names no backend.
    """
    backend = _BACKENDS.get((mode or "").strip().lower())
    if backend is None:
        raise UnsupportedTranscriptionMode(
            f"Unsupported transcription mode '{mode}'. Supported: {', '.join(_BACKENDS)}"
        )
    return await backend(audio)
