"""Shared fakes for the chat-platform client surface."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Awaitable, Callable

import pytest

from chatbridge.core.config import BotConfig
from chatbridge.core.store import MessageStore
from chatbridge.core.transport import Media


@dataclass
class FakeContact:
    number: str
    pushname: str | None = None


@dataclass
class FakeHistoricalMessage:
    body: str
    from_me: bool
    timestamp: int


@dataclass
class FakeChat:
    user: str
    name: str | None = None
    is_group: bool = False
    history: list[FakeHistoricalMessage] = field(default_factory=list)
    error: Exception | None = None

    async def fetch_messages(self, limit: int) -> list[FakeHistoricalMessage]:
        if self.error is not None:
            raise self.error
        return self.history[-limit:]


@dataclass
class FakeEvent:
    from_: str = "84123@c.us"
    to: str = "84999@c.us"
    body: str = ""
    from_me: bool = False
    timestamp: int | None = None
    has_media: bool = False
    has_quoted_msg: bool = False
    chat: FakeChat | None = None
    contact: FakeContact | None = None
    media: Media | None = None
    replies: list[str] = field(default_factory=list)
    media_replies: list[tuple[Media, str]] = field(default_factory=list)

    async def get_chat(self) -> FakeChat:
        return self.chat or FakeChat(user=self.from_.split("@")[0])

    async def get_contact(self) -> FakeContact:
        return self.contact or FakeContact(number=self.from_.split("@")[0])

    async def download_media(self) -> Media | None:
        return self.media

    async def reply(self, text: str) -> None:
        self.replies.append(text)

    async def reply_media(self, media: Media, caption: str = "") -> None:
        self.media_replies.append((media, caption))


class FakeClient:
    """Records handlers and outgoing messages."""

    def __init__(self, chats: list[FakeChat] | None = None) -> None:
        self.chats = chats or []
        self.handlers: dict[str, Callable[..., Awaitable[Any]]] = {}
        self.sent: list[tuple[str, str]] = []
        self.initialized = False
        self.destroyed = False

    def on(self, event: str, handler: Callable[..., Awaitable[Any]]) -> None:
        self.handlers[event] = handler

    async def initialize(self) -> None:
        self.initialized = True

    async def destroy(self) -> None:
        self.destroyed = True

    async def get_chats(self) -> list[FakeChat]:
        return self.chats

    async def send_message(self, address: str, body: str) -> None:
        self.sent.append((address, body))


@pytest.fixture
def config(tmp_path: Path) -> BotConfig:
    return BotConfig(
        db_path=tmp_path / "bot.db",
        scan_lock_path=tmp_path / "scan.lock",
        jitter_min_ms=0,
        jitter_max_ms=0,
    )


@pytest.fixture
def store(tmp_path: Path) -> MessageStore:
    """Unopened store; each test opens and closes it inside its own loop."""
    return MessageStore(tmp_path / "bot.db")
