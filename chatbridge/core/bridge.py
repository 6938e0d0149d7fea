"""ChatBridge — wires client events through persistence, welcome and dispatch.

Lifecycle:
  start()            open the store, register handlers, initialize the client
  ready event        mark readiness, run the one-time history backfill
  message_create     register and greet new contacts, persist, schedule dispatch
  shutdown()         stop accepting, drain/abandon timers, release client and store
"""
from __future__ import annotations

import logging
import random
from datetime import datetime, timezone
from typing import Awaitable, Callable

from chatbridge.core.backfill import BackfillScanner
from chatbridge.core.config import BotConfig
from chatbridge.core.dispatcher import CommandHandlers, Dispatcher
from chatbridge.core.policy import MessageFilter, ReadinessState, is_self_noted
from chatbridge.core.records import Message, chat_id_for, from_epoch
from chatbridge.core.scheduler import Jitter, TaskRegistry, WelcomeScheduler, is_qualifying_inbound
from chatbridge.core.settings import AiSettings
from chatbridge.core.store import MessageStore
from chatbridge.core.transport import EVENT_MESSAGE_CREATE, EVENT_READY, ChatClient, ChatEvent
from chatbridge.transcription import Transcription, transcribe

logger = logging.getLogger(__name__)


class ChatBridge:
    """The running bot: one client, one store, one task registry."""

    def __init__(
        self,
        config: BotConfig,
        client: ChatClient,
        handlers: CommandHandlers,
        *,
        store: MessageStore | None = None,
        settings: AiSettings | None = None,
        transcriber: Callable[[str, bytes], Awaitable[Transcription]] = transcribe,
        rng: random.Random | None = None,
    ) -> None:
        config.validate()
        self.config = config
        self.client = client
        self.store = store or MessageStore(config.db_path)
        self.settings = settings or AiSettings(config)
        self.readiness = ReadinessState()
        self.registry = TaskRegistry()
        self.jitter = Jitter(config.jitter_min_ms, config.jitter_max_ms, rng)

        self.filter = MessageFilter(config, self.readiness, whitelist=self.settings.whitelist)
        self.dispatcher = Dispatcher(
            config,
            self.filter,
            handlers,
            self.settings,
            self.store,
            client,
            transcriber,
        )
        self.welcome = WelcomeScheduler(config, self.store, client, self.registry, self.jitter)
        self.backfill = BackfillScanner(client, self.store, config.scan_lock_path, config.backfill_limit)

        self._accepting = False
        self._stopped = False

    def attach(self) -> None:
        self.client.on(EVENT_READY, self.on_ready)
        self.client.on(EVENT_MESSAGE_CREATE, self.on_message_create)

    async def start(self) -> None:
        await self.store.open()
        self._accepting = True
        self.attach()
        await self.client.initialize()

    async def on_ready(self, *args) -> None:
        ready_at = self.readiness.mark_ready()
        logger.info("Client is ready (since %s)", ready_at.isoformat())
        await self.store.open()
        await self.backfill.run()

    async def on_message_create(self, event: ChatEvent) -> None:
        if not self._accepting:
            logger.debug("Not accepting events, ignoring message from %s", event.from_)
            return

        logger.info("[%s] %s", event.from_, event.body)
        qualifying = is_qualifying_inbound(event)
        if qualifying:
            # registers the contact before the message insert can create it
            await self.welcome.maybe_welcome(event)

        if not event.has_media:
            when = from_epoch(event.timestamp) if event.timestamp is not None else datetime.now(timezone.utc)
            await self.store.append_messages([
                Message(
                    chat_id=chat_id_for(event.from_),
                    phone=event.from_,
                    body=event.body or "",
                    from_me=event.from_me,
                    timestamp=when,
                )
            ])

        if not qualifying and not (self.config.self_notes_dispatch and is_self_noted(event)):
            return

        delay = self.jitter.draw()
        self.registry.spawn_later(delay, lambda: self.dispatcher.handle(event), name=f"dispatch:{event.from_}")

    async def shutdown(self) -> None:
        """Idempotent. Pending timers are drained for ``shutdown_drain_seconds`` then cancelled."""
        if self._stopped:
            return
        self._stopped = True
        self._accepting = False
        logger.info("Shutting down...")

        await self.registry.shutdown(self.config.shutdown_drain_seconds)
        try:
            await self.client.destroy()
        except Exception:
            logger.exception("Error while destroying chat client")
        await self.store.close()
        logger.info("Shutdown complete")
