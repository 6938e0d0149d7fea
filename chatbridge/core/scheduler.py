"""Delayed work — task registry, jitter and first-contact welcome.

Every delayed action (jittered dispatch, welcome greeting) runs as an
asyncio task registered with ``TaskRegistry``. Shutdown either drains the
pending tasks for a bounded time or cancels them explicitly; nothing is
left as an ungoverned timer.
"""
from __future__ import annotations

import asyncio
import logging
import random
from typing import Any, Awaitable, Callable, Coroutine

from chatbridge.core.config import BotConfig
from chatbridge.core.store import MessageStore
from chatbridge.core.transport import STATUS_BROADCAST, ChatClient, ChatEvent

logger = logging.getLogger(__name__)


class TaskRegistry:
    """Tracks in-flight tasks so shutdown can drain or abandon them."""

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task] = set()
        self._closed = False

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def spawn(self, coro: Coroutine[Any, Any, Any], *, name: str = "") -> asyncio.Task | None:
        """Run *coro* as a tracked task. Returns None once shut down."""
        if self._closed:
            coro.close()
            logger.debug("Task registry closed, dropping %s", name or "task")
            return None
        task = asyncio.create_task(coro, name=name or None)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def spawn_later(
        self,
        delay: float,
        fn: Callable[[], Awaitable[Any]],
        *,
        name: str = "",
    ) -> asyncio.Task | None:
        """Run ``fn()`` after *delay* seconds as a tracked task."""

        async def _delayed() -> None:
            await asyncio.sleep(delay)
            await fn()

        return self.spawn(_delayed(), name=name)

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Scheduled task %s failed", task.get_name(), exc_info=exc)

    async def shutdown(self, drain_seconds: float = 0.0) -> None:
        """Stop accepting work; wait up to *drain_seconds*, then cancel the rest."""
        self._closed = True
        if not self._tasks:
            return
        if drain_seconds > 0:
            _, still_pending = await asyncio.wait(list(self._tasks), timeout=drain_seconds)
        else:
            still_pending = set(self._tasks)
        if still_pending:
            logger.info("Abandoning %d pending scheduled task(s)", len(still_pending))
        for task in still_pending:
            task.cancel()
        if still_pending:
            await asyncio.gather(*still_pending, return_exceptions=True)


class Jitter:
    """Uniform random delay in ``[min_ms, max_ms)`` milliseconds."""

    def __init__(self, min_ms: int, max_ms: int, rng: random.Random | None = None) -> None:
        self._min_ms = min_ms
        self._max_ms = max_ms
        self._rng = rng or random.Random()

    def draw(self) -> float:
        """One independent draw, in seconds."""
        if self._max_ms <= self._min_ms:
            return self._min_ms / 1000
        return self._rng.randrange(self._min_ms, self._max_ms) / 1000


def is_qualifying_inbound(event: ChatEvent) -> bool:
    """Inbound events that may trigger welcome and dispatch."""
    return not (event.from_ == STATUS_BROADCAST or event.has_quoted_msg or event.from_me)


class WelcomeScheduler:
    """Greets first-time contacts after a jittered delay."""

    def __init__(
        self,
        config: BotConfig,
        store: MessageStore,
        client: ChatClient,
        registry: TaskRegistry,
        jitter: Jitter,
    ) -> None:
        self._config = config
        self._store = store
        self._client = client
        self._registry = registry
        self._jitter = jitter

    async def maybe_welcome(self, event: ChatEvent) -> bool:
        """Register the sender; greet after its own delay if it was new.

        Registration is the store's atomic insert-if-absent, so concurrent
        first messages from one contact schedule a single greeting.
        """
        address = event.from_
        if not await self._store.upsert_contact(address):
            return False
        logger.info("Brand new account: %s, sending the first welcome message...", address)
        delay = self._jitter.draw()
        self._registry.spawn_later(delay, lambda: self._send_welcome(address), name=f"welcome:{address}")
        return True

    async def _send_welcome(self, address: str) -> None:
        await self._client.send_message(address, self._config.welcome_message)
        await self._store.mark_contacted(address)
