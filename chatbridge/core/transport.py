"""Chat-platform client protocol — the surface the pipeline consumes.

The client itself (connection, pairing, media download) lives outside this
package. Any object satisfying these protocols can drive the pipeline;
``chatbridge run --client module:factory`` loads one at startup.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Protocol, Sequence, runtime_checkable

EVENT_READY = "ready"
EVENT_MESSAGE_CREATE = "message_create"

STATUS_BROADCAST = "status@broadcast"


@dataclass(frozen=True)
class Media:
    """Downloaded attachment: MIME type plus base64 payload."""

    mimetype: str
    data: str
    filename: str | None = None

    @property
    def is_audio(self) -> bool:
        return self.mimetype.startswith("audio/")


class ContactInfo(Protocol):
    pushname: str | None
    number: str


class HistoricalMessage(Protocol):
    body: str
    from_me: bool
    timestamp: int  # epoch seconds


@runtime_checkable
class ChatHandle(Protocol):
    """A conversation as enumerated by the client."""

    user: str  # address without the ``@c.us`` suffix
    name: str | None
    is_group: bool

    async def fetch_messages(self, limit: int) -> Sequence[HistoricalMessage]:
        """Return up to *limit* most-recent messages."""
        ...


@runtime_checkable
class ChatEvent(Protocol):
    """A live message-create notification."""

    from_: str
    to: str
    body: str
    from_me: bool
    timestamp: int | None  # epoch seconds
    has_media: bool
    has_quoted_msg: bool

    async def get_chat(self) -> ChatHandle:
        ...

    async def get_contact(self) -> ContactInfo:
        ...

    async def download_media(self) -> Media | None:
        ...

    async def reply(self, text: str) -> None:
        """Reply in the originating chat, quoting this message."""
        ...

    async def reply_media(self, media: Media, caption: str = "") -> None:
        ...


@runtime_checkable
class ChatClient(Protocol):
    """Event-emitting chat-platform client."""

    def on(self, event: str, handler: Callable[..., Awaitable[Any]]) -> None:
        """Register an async handler for ``ready`` or ``message_create``."""
        ...

    async def initialize(self) -> None:
        ...

    async def destroy(self) -> None:
        ...

    async def get_chats(self) -> Sequence[ChatHandle]:
        ...

    async def send_message(self, address: str, body: str) -> None:
        ...
