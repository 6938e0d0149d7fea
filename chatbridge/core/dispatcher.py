"""Command dispatcher — filter, classify, and run at most one handler.

Handler failures are not caught here: they propagate to the task that
scheduled the dispatch, which logs them. The only replies produced by the
dispatcher itself are the two transcription-quality notices.
"""
from __future__ import annotations

import asyncio
import base64
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Awaitable, Callable, assert_never

from chatbridge.core.commands import (
    AltConverse,
    Configure,
    Converse,
    GenerateImage,
    NamedImageCommand,
    NoCommand,
    Reset,
    Transcribe,
    classify,
)
from chatbridge.core.config import BotConfig
from chatbridge.core.policy import MessageFilter
from chatbridge.core.records import Message, chat_id_for, from_epoch
from chatbridge.core.settings import AiSettings
from chatbridge.core.store import MessageStore
from chatbridge.core.transport import ChatClient, ChatEvent
from chatbridge.transcription import Transcription, UnsupportedTranscriptionMode

logger = logging.getLogger(__name__)

NOT_UNDERSTOOD_REPLY = "I couldn't understand what you said."
SILENT_REPLY = "It looks like your voice message was silent. Please try again!"


@dataclass
class CommandHandlers:
    """The capability handlers the dispatcher can invoke."""

    reset: Callable[[ChatEvent], Awaitable[None]]
    configure: Callable[[ChatEvent, str], Awaitable[None]]
    converse: Callable[[ChatEvent, str], Awaitable[None]]
    alt_converse: Callable[[ChatEvent, str], Awaitable[None]]
    generate_image: Callable[[ChatEvent, str], Awaitable[None]]
    execute_command: Callable[[str, str, ChatEvent, str], Awaitable[None]]


def format_self_summary(sender_name: str, number: str, when: datetime, text: str) -> str:
    """Who said what, when — sent to the operator's own chat."""
    local = when.astimezone()
    formatted_time = local.strftime("%I:%M %p")
    formatted_date = f"{local:%A, %B} {local.day}, {local.year}"
    return f"Here is what {sender_name} ({number}) said at {formatted_time} on {formatted_date}: \n\n{text}"


class Dispatcher:
    """Routes one accepted event to exactly one handler (or none)."""

    def __init__(
        self,
        config: BotConfig,
        message_filter: MessageFilter,
        handlers: CommandHandlers,
        settings: AiSettings,
        store: MessageStore,
        client: ChatClient,
        transcriber: Callable[[str, bytes], Awaitable[Transcription]],
    ) -> None:
        self._config = config
        self._filter = message_filter
        self._handlers = handlers
        self._settings = settings
        self._store = store
        self._client = client
        self._transcriber = transcriber

    async def handle(self, event: ChatEvent) -> None:
        decision = await self._filter.check(event)
        if not decision.accepted:
            return

        command = classify(
            event.body,
            self._config,
            has_media=event.has_media,
            self_noted=decision.self_noted,
        )
        logger.debug("Classified message from %s as %s", event.from_, type(command).__name__)

        if isinstance(command, Transcribe):
            await self._transcribe(event)
        elif isinstance(command, Reset):
            await self._handlers.reset(event)
        elif isinstance(command, Configure):
            await self._handlers.configure(event, command.args)
        elif isinstance(command, Converse):
            await self._handlers.converse(event, command.prompt)
        elif isinstance(command, AltConverse):
            await self._handlers.alt_converse(event, command.prompt)
        elif isinstance(command, GenerateImage):
            await self._handlers.generate_image(event, command.prompt)
        elif isinstance(command, NamedImageCommand):
            await self._handlers.execute_command(command.target, command.action, event, command.prompt)
        elif isinstance(command, NoCommand):
            return
        else:
            assert_never(command)

    # --- Transcription branch ---

    async def _transcribe(self, event: ChatEvent) -> None:
        media = await event.download_media()
        if media is None or not media.is_audio:
            return

        if not self._settings.get("transcription", "enabled"):
            logger.info("[Transcription] Received voice message but voice transcription is disabled.")
            return

        audio = base64.b64decode(media.data)
        mode = self._settings.get("transcription", "mode")
        logger.info('[Transcription] Transcribing audio with "%s" mode...', mode)

        try:
            result = await self._transcriber(mode, audio)
        except UnsupportedTranscriptionMode:
            logger.error("[Transcription] Unsupported transcription mode: %s", mode)
            return

        if result.text is None:
            await event.reply(NOT_UNDERSTOOD_REPLY)
            return
        if not result.text:
            await event.reply(SILENT_REPLY)
            return

        logger.info(
            "[Transcription] Transcription response: %s (language: %s)", result.text, result.language
        )
        await self._fan_out(event, result.text)

    async def _fan_out(self, event: ChatEvent, text: str) -> None:
        """Self-notify, converse and persist concurrently; log each failure."""
        when = from_epoch(event.timestamp) if event.timestamp is not None else datetime.now(timezone.utc)
        effects = {
            "self-notify": self._notify_self(event, text, when),
            "converse": self._handlers.converse(event, text),
            "persist": self._store.append_messages([
                Message(
                    chat_id=chat_id_for(event.from_),
                    phone=event.from_,
                    body=text,
                    from_me=event.from_me,
                    timestamp=when,
                )
            ]),
        }
        results = await asyncio.gather(*effects.values(), return_exceptions=True)
        for name, outcome in zip(effects, results):
            if isinstance(outcome, BaseException):
                logger.error("[Transcription] %s failed for %s", name, event.from_, exc_info=outcome)

    async def _notify_self(self, event: ChatEvent, text: str, when: datetime) -> None:
        if not self._config.self_chat_id:
            logger.debug("[Transcription] No SELF_CHAT_ID configured, skipping self summary")
            return
        sender = await event.get_contact()
        sender_name = sender.pushname or sender.number
        summary = format_self_summary(sender_name, sender.number, when, text)
        await self._client.send_message(self._config.self_chat_id, summary)
