"""CLI entry point — Click group for running and maintaining the bot."""
from __future__ import annotations

import asyncio
import importlib
import logging
import signal
from pathlib import Path
from typing import Callable

import click

from chatbridge.core.transport import ChatClient

logger = logging.getLogger(__name__)


def load_client_factory(spec: str) -> Callable[[], ChatClient]:
    """Resolve ``package.module:factory`` to a callable returning a ChatClient."""
    module_name, sep, attr = spec.partition(":")
    if not sep or not module_name or not attr:
        raise click.BadParameter(f"expected 'module:factory', got {spec!r}", param_hint="--client")
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise click.BadParameter(f"cannot import {module_name!r}: {e}", param_hint="--client") from e
    factory = getattr(module, attr, None)
    if not callable(factory):
        raise click.BadParameter(f"{spec!r} is not callable", param_hint="--client")
    return factory


def _setup_logging(verbose: bool, debug: bool) -> None:
    from chatbridge.config import LOG_LEVEL

    level = logging.DEBUG if debug else logging.INFO if verbose else getattr(logging, LOG_LEVEL, logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(name)s: %(message)s",
    )


@click.group()
def main() -> None:
    """chatbridge — chat-platform automation bot."""


@main.command()
@click.option("--client", "client_spec", required=True, help="Client factory as module:callable")
@click.option("--verbose", is_flag=True, help="Verbose output")
@click.option("--debug", is_flag=True, help="Debug output")
def run(client_spec: str, verbose: bool, debug: bool) -> None:
    """Connect the client and run the bot until interrupted."""
    _setup_logging(verbose, debug)
    factory = load_client_factory(client_spec)
    asyncio.run(_run(factory, client_spec))


async def _run(factory: Callable[[], ChatClient], client_name: str) -> None:
    from chatbridge import ui
    from chatbridge.config import DALLE_SIZE, STABLE_DIFFUSION_STEPS, load_bot_config
    from chatbridge.core import AiSettings, BotConfigError, ChatBridge
    from chatbridge.handlers import build_handlers

    try:
        config = load_bot_config()
        config.validate()
    except BotConfigError as e:
        ui.print_error(str(e))
        raise SystemExit(1) from e

    settings = AiSettings(config, dalle_size=DALLE_SIZE, sd_steps=STABLE_DIFFUSION_STEPS)
    bridge = ChatBridge(config, factory(), build_handlers(config, settings), settings=settings)

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except (NotImplementedError, RuntimeError):
            pass  # not supported on this platform

    ui.print_welcome(config, client_name=client_name)
    try:
        await bridge.start()
        ui.print_status("Client initialized, waiting for messages")
        await stop.wait()
        ui.print_info("Caught interrupt signal")
    finally:
        await bridge.shutdown()
        ui.print_info("Goodbye!")


@main.command(name="init-db")
@click.option("--db", "db_path", type=click.Path(path_type=Path), default=None, help="Database path override")
def init_db(db_path: Path | None) -> None:
    """Create the database schema."""
    from chatbridge import ui
    from chatbridge.config import DB_PATH
    from chatbridge.core import MessageStore

    path = db_path or DB_PATH

    async def _init() -> None:
        store = MessageStore(path)
        await store.open()
        await store.close()

    asyncio.run(_init())
    ui.print_status(f"Database ready at {path}")


@main.command()
@click.option("--db", "db_path", type=click.Path(path_type=Path), default=None, help="Database path override")
def stats(db_path: Path | None) -> None:
    """Show row counts for chats, contacts and messages."""
    from chatbridge import ui
    from chatbridge.config import DB_PATH
    from chatbridge.core import MessageStore

    path = db_path or DB_PATH
    if not Path(path).exists():
        ui.print_error(f"No database at {path}. Run `chatbridge init-db` first.")
        raise SystemExit(1)

    async def _stats() -> dict[str, int]:
        store = MessageStore(path)
        await store.open()
        try:
            return await store.stats()
        finally:
            await store.close()

    ui.print_stats(asyncio.run(_stats()), str(path))


@main.command()
@click.option("--client", "client_spec", required=True, help="Client factory as module:callable")
@click.option("--force", is_flag=True, help="Remove the scan marker and scan again")
@click.option("--debug", is_flag=True, help="Debug output")
def backfill(client_spec: str, force: bool, debug: bool) -> None:
    """Import existing chat history once, without running the bot."""
    _setup_logging(False, debug)
    factory = load_client_factory(client_spec)
    asyncio.run(_backfill(factory, force))


async def _backfill(factory: Callable[[], ChatClient], force: bool) -> None:
    from chatbridge import ui
    from chatbridge.config import load_bot_config
    from chatbridge.core import BackfillScanner, MessageStore

    config = load_bot_config()
    if force and config.scan_lock_path.exists():
        config.scan_lock_path.unlink()
        ui.print_info(f"Removed {config.scan_lock_path}")

    client = factory()
    store = MessageStore(config.db_path)
    await store.open()
    try:
        await client.initialize()
        scanner = BackfillScanner(client, store, config.scan_lock_path, config.backfill_limit)
        if await scanner.run():
            ui.print_status("History scan completed")
        elif scanner.completed:
            ui.print_info("History already scanned (use --force to rescan)")
        else:
            ui.print_error("History scan failed; see log for details")
    finally:
        await client.destroy()
        await store.close()
