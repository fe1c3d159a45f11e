from __future__ import annotations

import platform
import sys

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from magderep import __version__

console = Console(stderr=True)


def print_startup_intro(command_name: str) -> None:
    banner = Panel(
        f"[bold cyan]magderep {__version__}[/bold cyan]\n"
        "[white]Quality-aware ANI dereplication of genomes[/white]",
        title="[bold]CLI Start[/bold]",
        border_style="cyan",
        expand=False,
    )
    console.print(banner)

    stats = Table(
        title="[bold]Session Summary[/bold]",
        box=box.SIMPLE_HEAVY,
        show_header=False,
        expand=False,
    )
    stats.add_column("Key", style="bold cyan")
    stats.add_column("Value", style="white")
    stats.add_row("Command", command_name)
    stats.add_row("Python", sys.version.split()[0])
    stats.add_row("Platform", f"{platform.system()} {platform.release()}")
    console.print(stats)
