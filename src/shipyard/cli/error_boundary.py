"""Error boundary handling for CLI commands.

Shipyard errors are expected outcomes (bad input, missing entries, failed
toolchain steps), so they are shown as a clean message plus the backup a
human can restore from, never as a stack trace.
"""

import functools
from collections.abc import Callable
from typing import Any, TypeVar

import click

from shipyard.cli.output import user_output
from shipyard.core.errors import ShipyardError

T = TypeVar("T", bound=Callable[..., Any])

_RESTORE_COMMANDS = {
    "registry": "shipyard registry restore",
    "config": "shipyard config restore",
}


def restore_hint(backup_id: str) -> str:
    """Command that restores ``backup_id``, based on which store created it."""
    owner = backup_id.split("_", 1)[0]
    command = _RESTORE_COMMANDS.get(owner, "shipyard registry restore")
    return f"{command} {backup_id}"


def report_error(error: ShipyardError) -> None:
    user_output(click.style("Error: ", fg="red") + error.message)
    backup_id = error.last_good_backup_id
    if backup_id is not None:
        label = click.style("Last good backup: ", fg="yellow")
        user_output(label + click.style(backup_id, fg="cyan"))
        user_output("Restore with: " + click.style(restore_hint(backup_id), bold=True))


def cli_error_boundary(func: T) -> T:
    """Decorator that turns ShipyardError into a styled message and exit code 1.

    All other exceptions bubble up normally with full stack traces.

    Example:
        @click.command()
        @cli_error_boundary
        def my_command():
            ...
    """

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except ShipyardError as e:
            report_error(e)
            raise SystemExit(1) from None

    return wrapper  # type: ignore[return-value]
