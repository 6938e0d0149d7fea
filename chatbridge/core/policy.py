"""Staleness and policy filter — decides whether a live event is dispatched."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Iterable

from chatbridge.core.config import BotConfig
from chatbridge.core.records import CONTACT_SUFFIX, from_epoch
from chatbridge.core.transport import ChatEvent

logger = logging.getLogger(__name__)


class ReadinessState:
    """Whether the bot is ready, and since when.

    Starts "not ready". ``mark_ready()`` is called once when the client
    reports ready; every event timestamped before that moment is a replay
    of pre-startup history.
    """

    def __init__(self) -> None:
        self._ready_since: datetime | None = None

    @property
    def ready_since(self) -> datetime | None:
        return self._ready_since

    @property
    def is_ready(self) -> bool:
        return self._ready_since is not None

    def mark_ready(self, at: datetime | None = None) -> datetime:
        self._ready_since = at or datetime.now(timezone.utc)
        return self._ready_since


def is_self_noted(event: ChatEvent) -> bool:
    """A note the bot sent to itself: from_me, unquoted, sender == recipient."""
    return bool(event.from_me) and not event.has_quoted_msg and event.from_ == event.to


def _normalize(address: str) -> str:
    return address.replace(CONTACT_SUFFIX, "").lstrip("+").strip()


@dataclass(frozen=True)
class FilterDecision:
    """Result of a filter check."""

    accepted: bool
    reason: str
    self_noted: bool = False


class MessageFilter:
    """Readiness gate, group policy and allow-list policy, first match wins.

    Args:
        config: Static switches (group policy, allow-list toggle).
        readiness: Shared readiness state, written once at startup.
        whitelist: Callable returning the allow-list in effect right now.
            Defaults to ``config.whitelist``.
    """

    def __init__(
        self,
        config: BotConfig,
        readiness: ReadinessState,
        whitelist: Callable[[], Iterable[str]] | None = None,
    ) -> None:
        self._config = config
        self._readiness = readiness
        self._whitelist = whitelist or (lambda: config.whitelist)

    async def check(self, event: ChatEvent) -> FilterDecision:
        body = event.body or ""

        ready_since = self._readiness.ready_since
        if ready_since is None:
            logger.info("Ignoring message because bot is not ready yet: %s", body[:80])
            return FilterDecision(False, "not_ready")
        if event.timestamp is not None and from_epoch(event.timestamp) < ready_since:
            logger.info("Ignoring old message: %s", body[:80])
            return FilterDecision(False, "stale")

        if not self._config.groupchats_enabled:
            chat = await event.get_chat()
            if chat.is_group:
                logger.debug("Ignoring group message from %s", event.from_)
                return FilterDecision(False, "group")

        self_noted = is_self_noted(event)

        if self._config.whitelisted_enabled and not self_noted:
            allowed = {_normalize(a) for a in self._whitelist() if a and a.strip()}
            if allowed and _normalize(event.from_) not in allowed:
                logger.info("Ignoring message from %s because it is not whitelisted.", event.from_)
                return FilterDecision(False, "not_whitelisted", self_noted=False)

        return FilterDecision(True, "accepted", self_noted=self_noted)
