"""Tests for the capability handlers."""
from __future__ import annotations

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
from langchain_core.language_models.fake_chat_models import FakeListChatModel

from chatbridge.core.config import BotConfig
from chatbridge.core.settings import AiSettings
from chatbridge.handlers.ai_config import AiConfigHandler, CommandRegistry
from chatbridge.handlers.assistant import AssistantHandler
from chatbridge.handlers.gpt import RESET_REPLY, ConversationStore, GptHandler
from chatbridge.handlers.images import NO_IMAGE_REPLY, DalleHandler, StableDiffusionHandler

from conftest import FakeEvent


class TestConversationStore:
    def test_history_is_trimmed(self):
        store = ConversationStore(max_history=2)
        store.append("a", "m1", "m2", "m3")
        assert store.history("a") == ["m2", "m3"]

    def test_clear(self):
        store = ConversationStore()
        store.append("a", "m1")
        assert store.clear("a") is True
        assert store.clear("a") is False
        assert store.history("a") == []


class TestGptHandler:
    def test_reply_and_history(self):
        model = FakeListChatModel(responses=["Hi there!", "Still here."])
        conversations = ConversationStore()
        handler = GptHandler(lambda: model, conversations, pre_prompt="Be brief.")
        event = FakeEvent(body="!gpt hello")

        async def scenario():
            await handler.handle_message(event, "hello")
            await handler.handle_message(event, "again")

        asyncio.run(scenario())
        assert event.replies == ["Hi there!", "Still here."]
        assert len(conversations.history(event.from_)) == 4

    def test_reset_clears_history(self):
        conversations = ConversationStore()
        conversations.append("84123@c.us", "m1")
        handler = GptHandler(MagicMock(), conversations)
        event = FakeEvent(from_="84123@c.us")
        asyncio.run(handler.handle_reset(event))
        assert conversations.history("84123@c.us") == []
        assert event.replies == [RESET_REPLY]


class TestAssistantHandler:
    def test_chain_reply(self):
        handler = AssistantHandler(lambda: FakeListChatModel(responses=["4"]))
        event = FakeEvent(body="!lang 2+2")
        asyncio.run(handler.handle_message(event, "2+2"))
        assert event.replies == ["4"]


class TestDalleHandler:
    def _client(self, data):
        client = MagicMock()
        client.images.generate = AsyncMock(return_value=SimpleNamespace(data=data))
        return client

    def test_replies_with_image(self):
        client = self._client([SimpleNamespace(b64_json="aW1n")])
        settings = AiSettings(BotConfig(), dalle_size="512x512")
        event = FakeEvent()
        asyncio.run(DalleHandler(settings, client_factory=lambda: client).handle_message(event, "a cat"))

        client.images.generate.assert_awaited_once()
        assert client.images.generate.await_args.kwargs["size"] == "512x512"
        (media, caption), = event.media_replies
        assert media.data == "aW1n" and media.mimetype == "image/png"
        assert caption == "a cat"

    def test_no_image(self):
        event = FakeEvent()
        handler = DalleHandler(AiSettings(BotConfig()), client_factory=lambda: self._client([]))
        asyncio.run(handler.handle_message(event, "a cat"))
        assert event.replies == [NO_IMAGE_REPLY]


class TestStableDiffusionHandler:
    def test_posts_txt2img(self):
        seen: dict = {}

        def respond(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["body"] = request.read()
            return httpx.Response(200, json={"images": ["c2Q="]})

        settings = AiSettings(BotConfig(), sd_steps=12)
        handler = StableDiffusionHandler(settings, "http://sd.local/", transport=httpx.MockTransport(respond))
        event = FakeEvent()
        asyncio.run(handler.generate(event, "a dog"))

        assert seen["url"] == "http://sd.local/sdapi/v1/txt2img"
        assert b'"steps":12' in seen["body"].replace(b" ", b"")
        assert event.media_replies[0][0].data == "c2Q="


class TestAiConfigHandler:
    def test_help(self):
        event = FakeEvent()
        asyncio.run(AiConfigHandler(AiSettings(BotConfig())).handle_message(event, "help"))
        assert "transcription mode" in event.replies[0]

    def test_set_value(self):
        settings = AiSettings(BotConfig())
        event = FakeEvent()
        asyncio.run(AiConfigHandler(settings).handle_message(event, "transcription mode openai"))
        assert settings.get("transcription", "mode") == "openai"
        assert event.replies[0].startswith("Successfully set")

    def test_bad_value_reports_error(self):
        settings = AiSettings(BotConfig())
        event = FakeEvent()
        asyncio.run(AiConfigHandler(settings).handle_message(event, "transcription mode fax"))
        assert settings.get("transcription", "mode") == "local"
        assert event.replies[0].startswith("Invalid value")

    def test_unknown_setting(self):
        event = FakeEvent()
        asyncio.run(AiConfigHandler(AiSettings(BotConfig())).handle_message(event, "foo bar baz"))
        assert event.replies[0].startswith("Unknown setting")


class TestCommandRegistry:
    def test_execute_registered(self):
        registry = CommandRegistry()
        fn = AsyncMock()
        registry.register("sd", "generate", fn)
        event = FakeEvent()
        asyncio.run(registry.execute("sd", "generate", event, "a fox"))
        fn.assert_awaited_once_with(event, "a fox")

    def test_unknown_is_ignored(self):
        asyncio.run(CommandRegistry().execute("sd", "upscale", FakeEvent(), ""))
