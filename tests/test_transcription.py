"""Tests for transcription backend selection."""
from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from chatbridge import transcription
from chatbridge.transcription import Transcription, UnsupportedTranscriptionMode, transcribe


def test_unknown_mode_raises():
    with pytest.raises(UnsupportedTranscriptionMode):
        asyncio.run(transcribe("carrier-pigeon", b""))


def test_mode_selects_backend(monkeypatch):
    backend = AsyncMock(return_value=Transcription(text="hola", language="es"))
    monkeypatch.setitem(transcription._BACKENDS, "openai", backend)
    result = asyncio.run(transcribe(" OpenAI ", b"OggS"))
    backend.assert_awaited_once_with(b"OggS")
    assert result.text == "hola"


def test_whisper_api_parses_payload(monkeypatch):
    post = AsyncMock(return_value={"text": "hello", "language": "en"})
    monkeypatch.setattr(transcription, "_post_multipart", post)
    result = asyncio.run(transcription.transcribe_whisper_api(b"OggS"))
    assert result == Transcription(text="hello", language="en")
    assert post.await_args.kwargs["data"]["task"] == "transcribe"


def test_speech_api_without_url(monkeypatch):
    monkeypatch.setattr(transcription, "SPEECH_API_URL", "")
    assert asyncio.run(transcription.transcribe_speech_api(b"")).text is None
