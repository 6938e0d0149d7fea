"""End-to-end pipeline tests with a fake client and a real store."""
from __future__ import annotations

import asyncio
import time
from dataclasses import replace
from unittest.mock import AsyncMock, MagicMock

from chatbridge.core.bridge import ChatBridge
from chatbridge.core.config import BotConfig
from chatbridge.core.dispatcher import CommandHandlers
from chatbridge.core.transport import EVENT_MESSAGE_CREATE, EVENT_READY

from conftest import FakeClient, FakeEvent


def _handlers() -> CommandHandlers:
    return CommandHandlers(
        reset=AsyncMock(),
        configure=AsyncMock(),
        converse=AsyncMock(),
        alt_converse=AsyncMock(),
        generate_image=AsyncMock(),
        execute_command=AsyncMock(),
    )


def _live_ts() -> int:
    return int(time.time()) + 5


class TestChatBridge:
    def test_start_registers_handlers(self, config: BotConfig):
        client = FakeClient()

        async def scenario():
            bridge = ChatBridge(config, client, _handlers())
            await bridge.start()
            await bridge.shutdown()

        asyncio.run(scenario())
        assert set(client.handlers) == {EVENT_READY, EVENT_MESSAGE_CREATE}
        assert client.initialized and client.destroyed

    def test_first_message_persists_welcomes_and_dispatches(self, config: BotConfig):
        client = FakeClient()
        handlers = _handlers()

        async def scenario():
            bridge = ChatBridge(config, client, handlers)
            await bridge.start()
            await bridge.on_ready()
            event = FakeEvent(from_="84123@c.us", body="!gpt hello", timestamp=_live_ts())
            await bridge.on_message_create(event)
            await asyncio.sleep(0.05)
            stats = await bridge.store.stats()
            await bridge.shutdown()
            return event, stats

        event, stats = asyncio.run(scenario())
        assert stats == {"chats": 1, "contacts": 1, "messages": 1}
        assert client.sent == [("84123@c.us", config.welcome_message)]
        handlers.converse.assert_awaited_once_with(event, "hello")

    def test_known_contact_is_not_welcomed_again(self, config: BotConfig):
        client = FakeClient()

        async def scenario():
            bridge = ChatBridge(config, client, _handlers())
            await bridge.start()
            await bridge.on_ready()
            for body in ("one", "two"):
                await bridge.on_message_create(FakeEvent(body=body, timestamp=_live_ts()))
                await asyncio.sleep(0.02)
            await bridge.shutdown()

        asyncio.run(scenario())
        assert len(client.sent) == 1

    def test_media_message_not_persisted_on_arrival(self, config: BotConfig):
        async def scenario():
            bridge = ChatBridge(config, FakeClient(), _handlers())
            await bridge.start()
            await bridge.on_ready()
            await bridge.on_message_create(FakeEvent(has_media=True, timestamp=_live_ts()))
            count = (await bridge.store.stats())["messages"]
            await bridge.shutdown()
            return count

        assert asyncio.run(scenario()) == 0

    def test_self_note_persisted_but_not_dispatched(self, config: BotConfig):
        handlers = _handlers()
        client = FakeClient()

        async def scenario():
            bridge = ChatBridge(config, client, handlers)
            await bridge.start()
            await bridge.on_ready()
            note = FakeEvent(from_="84999@c.us", to="84999@c.us", from_me=True, body="note", timestamp=_live_ts())
            await bridge.on_message_create(note)
            await asyncio.sleep(0.02)
            count = (await bridge.store.stats())["messages"]
            await bridge.shutdown()
            return count

        assert asyncio.run(scenario()) == 1
        handlers.converse.assert_not_awaited()
        assert client.sent == []

    def test_self_note_dispatched_when_enabled(self, config: BotConfig):
        handlers = _handlers()
        cfg = replace(config, self_notes_dispatch=True)

        async def scenario():
            bridge = ChatBridge(cfg, FakeClient(), handlers)
            await bridge.start()
            await bridge.on_ready()
            note = FakeEvent(from_="84999@c.us", to="84999@c.us", from_me=True, body="remind me", timestamp=_live_ts())
            await bridge.on_message_create(note)
            await asyncio.sleep(0.02)
            await bridge.shutdown()
            return note

        note = asyncio.run(scenario())
        handlers.converse.assert_awaited_once_with(note, "remind me")

    def test_events_after_shutdown_are_ignored(self, config: BotConfig):
        client = FakeClient()

        async def scenario():
            bridge = ChatBridge(config, client, _handlers())
            await bridge.start()
            await bridge.on_ready()
            await bridge.shutdown()
            await bridge.on_message_create(FakeEvent(body="late", timestamp=_live_ts()))
            await bridge.shutdown()

        asyncio.run(scenario())
        assert client.sent == []

    def test_shutdown_abandons_pending_dispatch(self, config: BotConfig):
        handlers = _handlers()
        cfg = replace(config, jitter_min_ms=60_000, jitter_max_ms=60_000)
        client = FakeClient()

        async def scenario():
            bridge = ChatBridge(cfg, client, handlers)
            await bridge.start()
            await bridge.on_ready()
            await bridge.on_message_create(FakeEvent(body="!gpt hi", timestamp=_live_ts()))
            pending = bridge.registry.pending
            await bridge.shutdown()
            return pending

        assert asyncio.run(scenario()) == 2  # welcome + dispatch
        handlers.converse.assert_not_awaited()
        assert client.sent == []

    def test_ready_runs_backfill_once(self, config: BotConfig):
        async def scenario():
            bridge = ChatBridge(config, FakeClient(), _handlers())
            await bridge.start()
            await bridge.on_ready()
            await bridge.shutdown()

        asyncio.run(scenario())
        assert config.scan_lock_path.exists()

    def test_concurrent_first_messages_welcome_once(self, config: BotConfig):
        client = FakeClient()

        async def scenario():
            bridge = ChatBridge(config, client, _handlers())
            await bridge.start()
            await bridge.on_ready()
            await asyncio.gather(
                bridge.on_message_create(FakeEvent(from_="84555@c.us", body="one", timestamp=_live_ts())),
                bridge.on_message_create(FakeEvent(from_="84555@c.us", body="two", timestamp=_live_ts())),
            )
            await asyncio.sleep(0.05)
            stats = await bridge.store.stats()
            await bridge.shutdown()
            return stats

        stats = asyncio.run(scenario())
        assert client.sent == [("84555@c.us", config.welcome_message)]
        assert stats == {"chats": 1, "contacts": 1, "messages": 2}

    def test_welcome_and_dispatch_draw_separate_delays(self, config: BotConfig):
        cfg = replace(config, jitter_min_ms=1000, jitter_max_ms=10_000)
        rng = MagicMock()
        rng.randrange.side_effect = [1500, 7200]

        async def scenario():
            bridge = ChatBridge(cfg, FakeClient(), _handlers(), rng=rng)
            await bridge.start()
            await bridge.on_ready()
            bridge.registry.spawn_later = MagicMock()
            await bridge.on_message_create(FakeEvent(from_="84777@c.us", body="hi", timestamp=_live_ts()))
            calls = bridge.registry.spawn_later.call_args_list
            await bridge.shutdown()
            return calls

        calls = asyncio.run(scenario())
        assert [c.args[0] for c in calls] == [1.5, 7.2]
        assert [c.kwargs["name"] for c in calls] == ["welcome:84777@c.us", "dispatch:84777@c.us"]
        assert rng.randrange.call_count == 2
        for c in rng.randrange.call_args_list:
            assert c.args == (1000, 10_000)
        assert all(1.0 <= c.args[0] < 10.0 for c in calls)
