"""Persisted record types — contacts, chats, messages."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone

CONTACT_SUFFIX = "@c.us"


def chat_id_for(address: str) -> str:
    """Derive a chat_id from a contact address (``84123@c.us`` → ``84123``)."""
    return address.replace(CONTACT_SUFFIX, "")


def from_epoch(seconds: float) -> datetime:
    """Convert platform epoch seconds to an aware UTC datetime."""
    return datetime.fromtimestamp(seconds, tz=timezone.utc)


@dataclass(frozen=True)
class Contact:
    phone: str
    has_messaged: bool = False


@dataclass(frozen=True)
class Chat:
    chat_id: str
    title: str | None = None
    created_at: datetime | None = None


@dataclass
class Message:
    """One chat-platform message as stored.

    ``title`` is not a message column; it only seeds the Chat row the first
    time the chat is created.
    """

    chat_id: str
    phone: str
    body: str
    from_me: bool
    timestamp: datetime
    title: str | None = field(default=None, compare=False)


def timestamp_iso(value: datetime) -> str:
    """Normalize a timestamp to a UTC ISO-8601 string (naive values are UTC)."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()
