"""MessageStore — durable, idempotent storage for contacts, chats and messages.

SQLite via aiosqlite. One shared connection serves every in-flight handler;
each public operation takes the store lock for exactly one unit of work and
releases it on every exit path. Upserts are "insert if absent", so concurrent
events for the same contact or chat never race into duplicate rows.

Message idempotency key: ``(chat_id, phone, message, timestamp)``. A
re-delivered message is ignored rather than stored twice.
"""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from pathlib import Path
from typing import Sequence

import aiosqlite

from chatbridge.core.records import Chat, Contact, Message, timestamp_iso

logger = logging.getLogger(__name__)

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS chats (
      id INTEGER PRIMARY KEY AUTOINCREMENT,
      chat_id TEXT UNIQUE NOT NULL,
      title TEXT NULL,
      created_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS contacts (
      id INTEGER PRIMARY KEY AUTOINCREMENT,
      phone TEXT UNIQUE NOT NULL,
      has_messaged INTEGER NOT NULL DEFAULT 0
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS messages (
      id INTEGER PRIMARY KEY AUTOINCREMENT,
      chat_id TEXT NOT NULL REFERENCES chats(chat_id),
      phone TEXT NOT NULL REFERENCES contacts(phone),
      message TEXT NOT NULL,
      from_me INTEGER NOT NULL,
      timestamp TEXT NOT NULL,
      UNIQUE (chat_id, phone, message, timestamp)
    )
    """,
)

# ON CONFLICT covers uniqueness only; NOT NULL violations still raise.
_INSERT_CHAT = "INSERT INTO chats (chat_id, title) VALUES (?, ?) ON CONFLICT(chat_id) DO NOTHING"
_INSERT_CONTACT = "INSERT INTO contacts (phone, has_messaged) VALUES (?, 1) ON CONFLICT(phone) DO NOTHING"
_INSERT_MESSAGE = (
    "INSERT INTO messages (chat_id, phone, message, from_me, timestamp) "
    "VALUES (?, ?, ?, ?, ?) "
    "ON CONFLICT(chat_id, phone, message, timestamp) DO NOTHING"
)


class StoreClosedError(RuntimeError):
    """Raised when an operation is attempted on a closed MessageStore."""


class MessageStore:
    """Async persistence store. Call ``open()`` before use, ``close()`` after."""

    def __init__(self, db_path: Path | str) -> None:
        self._path = str(db_path)
        self._conn: aiosqlite.Connection | None = None
        self._lock = asyncio.Lock()
        self._closed = False

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    async def open(self) -> None:
        """Connect and create the schema if missing. Safe to call twice."""
        if self._conn is not None:
            return
        if self._closed:
            raise StoreClosedError("MessageStore has been closed")
        if self._path != ":memory:":
            Path(self._path).parent.mkdir(parents=True, exist_ok=True)
        # isolation_level=None: transactions are issued explicitly below
        self._conn = await aiosqlite.connect(self._path, isolation_level=None)
        await self._conn.execute("PRAGMA foreign_keys = ON")
        for stmt in _SCHEMA:
            await self._conn.execute(stmt)
        logger.info("Database initialized with 3 tables (chats, contacts, messages) at %s", self._path)

    def _require_conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise StoreClosedError("MessageStore is not open")
        return self._conn

    # --- Chats ---

    async def upsert_chat(self, chat_id: str, title: str | None = None) -> None:
        """Create the chat if absent. Existing chats keep their first title."""
        async with self._lock:
            conn = self._require_conn()
            await conn.execute(_INSERT_CHAT, (chat_id, title))

    async def get_chat(self, chat_id: str) -> Chat | None:
        async with self._lock:
            conn = self._require_conn()
            async with conn.execute(
                "SELECT chat_id, title, created_at FROM chats WHERE chat_id = ?", (chat_id,)
            ) as cur:
                row = await cur.fetchone()
        if row is None:
            return None
        return Chat(chat_id=row[0], title=row[1], created_at=datetime.fromisoformat(row[2].replace("Z", "+00:00")))

    # --- Contacts ---

    async def contact_exists(self, phone: str) -> bool:
        async with self._lock:
            conn = self._require_conn()
            async with conn.execute("SELECT 1 FROM contacts WHERE phone = ? LIMIT 1", (phone,)) as cur:
                row = await cur.fetchone()
        return row is not None

    async def upsert_contact(self, phone: str) -> bool:
        """Create the contact with ``has_messaged = true`` if absent.

        Returns True only for the call that inserted the row, so concurrent
        callers for the same phone get exactly one True.
        """
        async with self._lock:
            conn = self._require_conn()
            cur = await conn.execute(_INSERT_CONTACT, (phone,))
            inserted = cur.rowcount == 1
            await cur.close()
        return inserted

    async def mark_contacted(self, phone: str) -> None:
        """Set ``has_messaged = true``. Never flips it back."""
        async with self._lock:
            conn = self._require_conn()
            await conn.execute("UPDATE contacts SET has_messaged = 1 WHERE phone = ?", (phone,))

    async def get_contact(self, phone: str) -> Contact | None:
        async with self._lock:
            conn = self._require_conn()
            async with conn.execute(
                "SELECT phone, has_messaged FROM contacts WHERE phone = ?", (phone,)
            ) as cur:
                row = await cur.fetchone()
        if row is None:
            return None
        return Contact(phone=row[0], has_messaged=bool(row[1]))

    # --- Messages ---

    async def append_messages(self, batch: Sequence[Message]) -> None:
        """Persist *batch* as a single all-or-nothing transaction.

        Each message's chat and contact are created inside the same
        transaction before the message row. Any failure rolls back the
        whole batch; the error is logged and the batch is discarded. The
        caller is never raised to.
        """
        if not batch:
            return

        async with self._lock:
            conn = self._conn
            if conn is None:
                logger.error("Discarding %d message(s): store is closed", len(batch))
                return

            committed = False
            try:
                await conn.execute("BEGIN")
                for msg in batch:
                    await conn.execute(_INSERT_CHAT, (msg.chat_id, msg.title))
                    await conn.execute(_INSERT_CONTACT, (msg.phone,))
                    await conn.execute(
                        _INSERT_MESSAGE,
                        (msg.chat_id, msg.phone, msg.body, int(msg.from_me), timestamp_iso(msg.timestamp)),
                    )
                await conn.execute("COMMIT")
                committed = True
            except Exception:
                logger.exception("Error while saving chat history; discarding %d message(s)", len(batch))
            finally:
                # reached on cancellation too; the shared connection never stays mid-transaction
                if not committed:
                    await self._rollback(conn)

        if committed:
            logger.info("Saved %d messages into the database.", len(batch))

    @staticmethod
    async def _rollback(conn: aiosqlite.Connection) -> None:
        try:
            await conn.execute("ROLLBACK")
        except Exception:
            logger.debug("Rollback failed", exc_info=True)

    async def stats(self) -> dict[str, int]:
        """Row counts per table (for ``chatbridge stats``)."""
        out: dict[str, int] = {}
        async with self._lock:
            conn = self._require_conn()
            for table in ("chats", "contacts", "messages"):
                async with conn.execute(f"SELECT COUNT(*) FROM {table}") as cur:
                    row = await cur.fetchone()
                out[table] = int(row[0]) if row else 0
        return out

    # --- Lifecycle ---

    async def close(self) -> None:
        """Release the connection. Idempotent."""
        async with self._lock:
            conn, self._conn = self._conn, None
            self._closed = True
        if conn is not None:
            await conn.close()
            logger.info("Closed the database connection.")
