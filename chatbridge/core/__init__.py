"""chatbridge core — the message pipeline, independent of any chat platform.

Public API::

    from chatbridge.core import BotConfig, ChatBridge, CommandHandlers

    bridge = ChatBridge(BotConfig(db_path=Path("bot.db")), client, handlers)
    await bridge.start()
    ...
    await bridge.shutdown()
"""
from __future__ import annotations

from chatbridge.core.backfill import BackfillScanner
from chatbridge.core.bridge import ChatBridge
from chatbridge.core.commands import Command, classify
from chatbridge.core.config import BotConfig, BotConfigError
from chatbridge.core.dispatcher import CommandHandlers, Dispatcher
from chatbridge.core.policy import FilterDecision, MessageFilter, ReadinessState
from chatbridge.core.records import Chat, Contact, Message
from chatbridge.core.scheduler import Jitter, TaskRegistry, WelcomeScheduler
from chatbridge.core.settings import AiSettings
from chatbridge.core.store import MessageStore, StoreClosedError

__all__ = [
    "AiSettings",
    "BackfillScanner",
    "BotConfig",
    "BotConfigError",
    "Chat",
    "ChatBridge",
    "Command",
    "CommandHandlers",
    "Contact",
    "Dispatcher",
    "FilterDecision",
    "Jitter",
    "Message",
    "MessageFilter",
    "MessageStore",
    "ReadinessState",
    "StoreClosedError",
    "TaskRegistry",
    "WelcomeScheduler",
    "classify",
]
