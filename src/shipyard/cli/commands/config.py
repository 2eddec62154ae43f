"""Per-environment configuration commands."""

import sys

import click

from shipyard.cli.ensure import Ensure
from shipyard.cli.error_boundary import cli_error_boundary
from shipyard.cli.json_output import emit_json, json_error_boundary
from shipyard.cli.output import backups_table, machine_output, stderr_console, user_output
from shipyard.core.config_store.store import DEFAULT_RETENTION_DAYS
from shipyard.core.context import ShipyardContext
from shipyard.core.errors import IrreversibleOperationBlocked
from shipyard.core.project import normalize_environment

_ENVIRONMENT = click.argument("environment")


@click.group("config")
def config_group() -> None:
    """Generate, validate and back up environment configuration."""
    pass


@config_group.command("generate")
@_ENVIRONMENT
@click.pass_obj
@cli_error_boundary
def generate_config(ctx: ShipyardContext, environment: str) -> None:
    """Write a fresh ENVIRONMENT configuration with secure defaults.

    An existing document is backed up before it is replaced.
    """
    env = normalize_environment(environment)
    result = ctx.config_store.generate(env)
    if result.backup is not None:
        backup_id = click.style(result.backup.id, fg="cyan")
        user_output(f"Previous configuration backed up as {backup_id}")
    user_output(click.style(f"✓ Generated {result.path}", fg="green"))
    if env == "prod":
        user_output(
            "Secrets in production reference environment variables (env:NAME); "
            "set them on the deploy host before deploying."
        )


@config_group.command("validate")
@_ENVIRONMENT
@click.option("--format", "format", type=click.Choice(["text", "json"]), default="text")
@click.pass_obj
@cli_error_boundary
@json_error_boundary
def validate_config(ctx: ShipyardContext, environment: str, format: str) -> None:
    """Check ENVIRONMENT's configuration for missing keys, bad values and unsafe settings."""
    result = ctx.config_store.validate(environment)

    if format == "json":
        emit_json({"ok": result.ok, "errors": result.errors, "warnings": result.warnings})
    else:
        for error in result.errors:
            user_output(click.style("✗ ", fg="red") + error)
        for warning in result.warnings:
            user_output(click.style("⚠ ", fg="yellow") + warning)
        if result.ok:
            user_output(click.style("✓ Configuration is valid", fg="green"))

    if not result.ok:
        raise SystemExit(1)


@config_group.command("backup")
@_ENVIRONMENT
@click.option(
    "-m", "--message", default="manual backup", help="Description stored with the backup."
)
@click.pass_obj
@cli_error_boundary
def backup_config(ctx: ShipyardContext, environment: str, message: str) -> None:
    """Snapshot ENVIRONMENT's configuration."""
    backup = ctx.config_store.backup(environment, message)
    machine_output(backup.id)


@config_group.command("restore")
@click.argument("backup_id")
@click.pass_obj
@cli_error_boundary
def restore_config(ctx: ShipyardContext, backup_id: str) -> None:
    """Replace a configuration with BACKUP_ID (current state is backed up first)."""
    result = ctx.config_store.restore(backup_id)
    user_output(
        click.style(f"✓ Restored {result.environment} configuration from {backup_id}", fg="green")
    )
    user_output(f"  Pre-restore backup: {click.style(result.pre_restore_backup.id, fg='cyan')}")


@config_group.command("list-backups")
@click.argument("environment", required=False)
@click.pass_obj
@cli_error_boundary
def list_config_backups(ctx: ShipyardContext, environment: str | None) -> None:
    """List configuration backups, newest first."""
    backups = ctx.config_store.list_backups(environment)
    if not backups:
        user_output("No configuration backups")
        return
    stderr_console().print(backups_table("Configuration backups", backups))


@config_group.command("consistency-check")
@_ENVIRONMENT
@click.pass_obj
@cli_error_boundary
def consistency_check(ctx: ShipyardContext, environment: str) -> None:
    """Cross-check values that frontend and backend must agree on."""
    issues = ctx.config_store.consistency_check(environment)
    if not issues:
        user_output(click.style("✓ No consistency issues", fg="green"))
        return
    for issue in issues:
        user_output(click.style("⚠ ", fg="yellow") + issue)


@config_group.command("security-scan")
@_ENVIRONMENT
@click.option("--format", "format", type=click.Choice(["text", "json"]), default="text")
@click.pass_obj
@cli_error_boundary
@json_error_boundary
def security_scan(ctx: ShipyardContext, environment: str, format: str) -> None:
    """Look for weak credentials and unsafe file permissions.

    Exits 1 if any high-severity issue is found.
    """
    issues = ctx.config_store.security_scan(environment)

    if format == "json":
        emit_json({"issues": issues})
    elif not issues:
        user_output(click.style("✓ No security issues found", fg="green"))
    else:
        for issue in issues:
            color = "red" if issue.severity == "high" else "yellow"
            where = f" [{issue.key}]" if issue.key else ""
            user_output(click.style(f"{issue.severity.upper()}{where} ", fg=color) + issue.message)

    if any(issue.severity == "high" for issue in issues):
        raise SystemExit(1)


@config_group.command("cleanup")
@click.option(
    "--retention-days",
    type=int,
    default=DEFAULT_RETENTION_DAYS,
    show_default=True,
    help="Keep backups newer than this many days.",
)
@click.option("--dry-run", is_flag=True, help="List what would be deleted without deleting.")
@click.option("-f", "--force", is_flag=True, help="Delete without asking for confirmation.")
@click.pass_obj
@cli_error_boundary
def cleanup_backups(ctx: ShipyardContext, retention_days: int, dry_run: bool, force: bool) -> None:
    """Delete configuration backups older than the retention window.

    This cannot be undone and is not itself backed up.
    """
    Ensure.invariant(retention_days >= 0, "--retention-days must not be negative")
    if not dry_run and not force:
        if not sys.stdin.isatty():
            raise IrreversibleOperationBlocked(
                "Backup cleanup deletes files permanently; pass --force to run it non-interactively"
            )
        if not click.confirm(
            f"Permanently delete configuration backups older than {retention_days} days?"
        ):
            user_output("Cleanup cancelled")
            raise SystemExit(1)

    removed = ctx.config_store.cleanup(retention_days, dry_run=dry_run)
    verb = "Would delete" if dry_run else "Deleted"
    for backup_id in removed:
        user_output(f"  {verb} {backup_id}")
    user_output(f"{verb} {len(removed)} backup(s)")


@config_group.command("get")
@_ENVIRONMENT
@click.argument("key")
@click.pass_obj
@cli_error_boundary
def get_value(ctx: ShipyardContext, environment: str, key: str) -> None:
    """Print the value of dotted KEY in ENVIRONMENT's configuration."""
    machine_output(str(ctx.config_store.get(environment, key)))


@config_group.command("set")
@_ENVIRONMENT
@click.argument("key")
@click.argument("value")
@click.pass_obj
@cli_error_boundary
def set_value(ctx: ShipyardContext, environment: str, key: str, value: str) -> None:
    """Set dotted KEY to VALUE in ENVIRONMENT's configuration (backs up first)."""
    backup = ctx.config_store.set(environment, key, value)
    user_output(click.style(f"✓ Set {key}", fg="green"))
    user_output(f"  Backup: {click.style(backup.id, fg='cyan')}")
