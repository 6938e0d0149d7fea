"""Rich console UI — startup banner, status lines, store stats table."""
from __future__ import annotations

from rich import box
from rich.columns import Columns
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from chatbridge.core.config import BotConfig

console = Console()


def _get_version() -> str:
    try:
        from importlib.metadata import version
        return version("chatbridge")
    except Exception:
        return "0.1.x"


def _flag(enabled: bool) -> str:
    return "on" if enabled else "off"


# ── Welcome banner ────────────────────────────────────────────────────

def print_welcome(config: BotConfig, *, client_name: str = "") -> None:
    """Two-column startup screen: runtime switches + chat commands."""
    left = Text()
    left.append("chatbridge ", style="bold cyan")
    left.append(f"v{_get_version()}\n\n", style="bold white")

    rows = [
        ("Client", client_name or "-"),
        ("Database", str(config.db_path)),
        ("Groups", _flag(config.groupchats_enabled)),
        ("Whitelist", _flag(config.whitelisted_enabled)),
        ("Prefixes", _flag(config.prefix_enabled)),
        ("Voice", f"{_flag(config.transcription_enabled)} ({config.transcription_mode})"),
        ("Jitter", f"{config.jitter_min_ms}-{config.jitter_max_ms} ms"),
    ]
    for label, value in rows:
        left.append("● ", style="bold green")
        left.append(f"{label + ':':<11}", style="bold white")
        left.append(f"{value}\n", style="cyan")

    right = Text()
    right.append("\n")
    cmds = [
        (config.gpt_prefix, "Chat with the model"),
        (config.langchain_prefix, "Ask the assistant"),
        (config.dalle_prefix, "Generate an image"),
        (config.stable_diffusion_prefix, "Stable Diffusion image"),
        (config.reset_prefix, "Reset conversation"),
        (config.ai_config_prefix, "Change settings"),
    ]
    for cmd, desc in cmds:
        if not cmd:
            continue
        right.append(f"{cmd:<10}", style="bold yellow")
        right.append(f"{desc}\n", style="dim")

    console.print()
    console.print(Panel(
        Columns([left, right], padding=(0, 4), expand=False),
        box=box.DOUBLE,
        border_style="cyan",
        padding=(1, 2),
    ))
    console.print()


# ── Status / info / error ────────────────────────────────────────────

def print_status(text: str, style: str = "green") -> None:
    console.print(f"  [{style}]●[/{style}] {text}")


def print_info(text: str) -> None:
    console.print(f"  [dim]{text}[/dim]")


def print_error(text: str) -> None:
    console.print(f"  [bold red]✗ {text}[/bold red]")


def print_stats(counts: dict[str, int], db_path: str = "") -> None:
    table = Table(
        title=f"Store {db_path}".strip(),
        border_style="green",
        box=box.SIMPLE,
        header_style="bold green",
        padding=(0, 1),
    )
    table.add_column("Table", style="bold yellow", no_wrap=True)
    table.add_column("Rows", justify="right")
    for name, count in counts.items():
        table.add_row(name, str(count))
    console.print(table)
    console.print()
