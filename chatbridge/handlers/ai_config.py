"""``!config`` handler and the named-command registry (``!sd`` → ``sd generate``)."""
from __future__ import annotations

import logging
from typing import Awaitable, Callable

from chatbridge.core.settings import AiSettings
from chatbridge.core.transport import ChatEvent

logger = logging.getLogger(__name__)

CommandFn = Callable[[ChatEvent, str], Awaitable[None]]


def format_settings_help(settings: AiSettings, prefix: str = "!config") -> str:
    lines = [f"Usage: {prefix} <target> <key> <value>", "", "Available settings:"]
    for target, key, value in settings.describe():
        shown = ", ".join(value) if isinstance(value, list) else value
        lines.append(f"  {target} {key} = {shown}")
    return "\n".join(lines)


class AiConfigHandler:
    def __init__(self, settings: AiSettings, prefix: str = "!config") -> None:
        self._settings = settings
        self._prefix = prefix

    async def handle_message(self, event: ChatEvent, args: str) -> None:
        parts = args.split(None, 2)
        if not parts or parts[0].lower() == "help":
            await event.reply(format_settings_help(self._settings, self._prefix))
            return

        if len(parts) < 3:
            await event.reply(f"Invalid command, expected: {self._prefix} <target> <key> <value>")
            return

        target, key, raw = parts[0].lower(), parts[1].lower(), parts[2]
        try:
            value = self._settings.set(target, key, raw)
        except KeyError:
            await event.reply(f"Unknown setting: {target} {key}. Try {self._prefix} help")
            return
        except ValueError as exc:
            await event.reply(f"Invalid value for {target} {key}: {exc}")
            return

        logger.info("[Config] %s set %s.%s", event.from_, target, key)
        await event.reply(f"Successfully set {target}.{key} to {value}")


class CommandRegistry:
    """Named ``(target, action)`` commands invoked by the dispatcher."""

    def __init__(self) -> None:
        self._commands: dict[tuple[str, str], CommandFn] = {}

    def register(self, target: str, action: str, fn: CommandFn) -> None:
        self._commands[(target, action)] = fn

    async def execute(self, target: str, action: str, event: ChatEvent, prompt: str) -> None:
        fn = self._commands.get((target, action))
        if fn is None:
            logger.warning("No command registered for %s %s", target, action)
            return
        await fn(event, prompt)
