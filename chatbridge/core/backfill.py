"""One-time import of existing conversation history, gated by a marker file."""
from __future__ import annotations

import logging
from pathlib import Path

from chatbridge.core.records import CONTACT_SUFFIX, Message, from_epoch
from chatbridge.core.store import MessageStore
from chatbridge.core.transport import ChatClient

logger = logging.getLogger(__name__)

BACKFILL_WINDOW = 100


class BackfillScanner:
    """Imports up to *limit* recent messages per chat, once.

    The marker file's existence (not its content) records completion. A
    failed scan leaves no marker, so the next startup retries from scratch.
    """

    def __init__(
        self,
        client: ChatClient,
        store: MessageStore,
        marker_path: Path,
        limit: int = BACKFILL_WINDOW,
    ) -> None:
        self._client = client
        self._store = store
        self._marker = Path(marker_path)
        self._limit = limit

    @property
    def completed(self) -> bool:
        return self._marker.exists()

    async def run(self) -> bool:
        """Scan if not yet completed. Returns True if a scan ran to the end."""
        if self.completed:
            logger.info("Chat history scan already completed, skipping.")
            return False

        logger.info("Scanning chat history...")
        try:
            batch = await self._collect()
        except Exception:
            logger.exception("Error while scanning chat history; will retry on next startup")
            return False

        if batch:
            await self._store.append_messages(batch)
        else:
            logger.info("No chat history to import.")
        self._write_marker()
        return True

    async def _collect(self) -> list[Message]:
        batch: list[Message] = []
        chats = await self._client.get_chats()
        for chat in chats:
            history = await chat.fetch_messages(limit=self._limit)
            for msg in history:
                if not msg.body:
                    continue
                batch.append(Message(
                    chat_id=chat.user,
                    phone=f"{chat.user}{CONTACT_SUFFIX}",
                    body=msg.body,
                    from_me=bool(msg.from_me),
                    timestamp=from_epoch(msg.timestamp),
                    title=chat.name or None,
                ))
        logger.info("Collected %d messages from %d chats", len(batch), len(chats))
        return batch

    def _write_marker(self) -> None:
        self._marker.parent.mkdir(parents=True, exist_ok=True)
        self._marker.write_text("done", encoding="utf-8")
