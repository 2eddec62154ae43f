"""Output utilities for CLI commands with clear intent.

Human-facing messages go to stderr through ``user_output``; data meant for
other programs (JSON, exports) goes to stdout through ``machine_output``.
"""

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from shipyard.core.backups import Backup


def user_output(message: str = "", nl: bool = True) -> None:
    """Write a message for the human operator to stderr."""
    click.echo(message, err=True, nl=nl)


def machine_output(message: str = "", nl: bool = True) -> None:
    """Write machine-readable data to stdout."""
    click.echo(message, nl=nl)


def stderr_console() -> Console:
    return Console(stderr=True, highlight=False)


def status_panel(title: str, lines: list[Text], success: bool) -> Panel:
    """Summary box with a green or red border depending on outcome."""
    content = Text("\n").join(lines)
    return Panel(content, title=title, border_style="green" if success else "red", padding=(1, 2))


def backups_table(title: str, backups: list[Backup]) -> Table:
    """Backups newest first, one row each."""
    table = Table(title=title, header_style="bold")
    table.add_column("Backup ID", style="cyan", no_wrap=True)
    table.add_column("Subject")
    table.add_column("Created (UTC)")
    table.add_column("Description")
    for backup in backups:
        table.add_row(
            backup.id,
            backup.subject,
            backup.created_at.strftime("%Y-%m-%d %H:%M:%S"),
            backup.description,
        )
    return table
