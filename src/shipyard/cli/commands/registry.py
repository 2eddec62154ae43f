"""Artifact registry commands."""

from pathlib import Path

import click

from shipyard.cli.ensure import Ensure
from shipyard.cli.error_boundary import cli_error_boundary
from shipyard.cli.json_output import emit_json, json_error_boundary
from shipyard.cli.output import backups_table, machine_output, stderr_console, user_output
from shipyard.core.context import ShipyardContext
from shipyard.core.project import NETWORKS
from shipyard.core.registry.export import EXPORT_FORMATS
from shipyard.core.registry.registry import MutationResult
from shipyard.core.registry.types import RegistryDocument

_NETWORK = click.argument("network", type=click.Choice(NETWORKS))


@click.group("registry")
def registry_group() -> None:
    """Inspect and modify deployed artifact identifiers per network."""
    pass


@registry_group.command("list")
@_NETWORK
@click.option("--format", "format", type=click.Choice(["text", "json"]), default="text")
@click.pass_obj
@cli_error_boundary
@json_error_boundary
def list_entries(ctx: ShipyardContext, network: str, format: str) -> None:
    """List every registered artifact on NETWORK."""
    entries = ctx.registry.list_entries(network)
    if format == "json":
        emit_json({"network": network, "contracts": entries})
        return
    if not entries:
        user_output(f"No artifacts registered on {network}")
        return
    width = max(len(name) for name in entries)
    for name, identifier in entries.items():
        user_output(f"{click.style(name.ljust(width), fg='cyan')}  {identifier}")


@registry_group.command("get")
@_NETWORK
@click.argument("name")
@click.pass_obj
@cli_error_boundary
def get_entry(ctx: ShipyardContext, network: str, name: str) -> None:
    """Print the identifier registered as NAME on NETWORK."""
    machine_output(ctx.registry.get(network, name))


@registry_group.command("set")
@_NETWORK
@click.argument("name")
@click.argument("identifier")
@click.pass_obj
@cli_error_boundary
def set_entry(ctx: ShipyardContext, network: str, name: str, identifier: str) -> None:
    """Register IDENTIFIER as NAME on NETWORK (backs up the registry first)."""
    result = ctx.registry.set(network, name, identifier)
    _report_mutation(f"Registered {name} on {network}", result)


@registry_group.command("remove")
@_NETWORK
@click.argument("name")
@click.pass_obj
@cli_error_boundary
def remove_entry(ctx: ShipyardContext, network: str, name: str) -> None:
    """Remove NAME from NETWORK (backs up the registry first)."""
    result = ctx.registry.remove(network, name)
    _report_mutation(f"Removed {name} from {network}", result)


@registry_group.command("validate")
@_NETWORK
@click.pass_obj
@cli_error_boundary
def validate_registry(ctx: ShipyardContext, network: str) -> None:
    """Check every identifier on NETWORK against the network's grammar."""
    validation = ctx.registry.validate(network)
    if validation.valid:
        user_output(click.style(f"✓ Registry for {network} is valid", fg="green"))
        return
    for error in validation.errors:
        user_output(click.style("✗ ", fg="red") + error)
    raise SystemExit(1)


@registry_group.command("merge")
@_NETWORK
@click.argument("source", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_obj
@cli_error_boundary
def merge_registry(ctx: ShipyardContext, network: str, source: Path) -> None:
    """Merge the registry document in SOURCE into NETWORK; SOURCE wins collisions."""
    other = RegistryDocument.parse(source.read_text(encoding="utf-8"), str(source))
    Ensure.truthy(other.contracts, f"{source} has no contract entries to merge")
    result = ctx.registry.merge(network, other)
    _report_mutation(f"Merged {len(other.contracts)} entries into {network}", result)


@registry_group.command("restore")
@click.argument("backup_id")
@click.pass_obj
@cli_error_boundary
def restore_registry(ctx: ShipyardContext, backup_id: str) -> None:
    """Replace a network's registry with BACKUP_ID (current state is backed up first)."""
    result = ctx.registry.restore(backup_id)
    _report_mutation(f"Restored {result.document.network} registry from {backup_id}", result)


@registry_group.command("export")
@_NETWORK
@click.option(
    "-f",
    "--format",
    "export_format",
    type=click.Choice(EXPORT_FORMATS),
    default="document",
    show_default=True,
    help="document (JSON), key-value (shell exports) or structured (YAML).",
)
@click.pass_obj
@cli_error_boundary
def export_registry(ctx: ShipyardContext, network: str, export_format: str) -> None:
    """Write NETWORK's registry to stdout in another format."""
    machine_output(ctx.registry.export(network, export_format), nl=False)  # type: ignore[arg-type]


@registry_group.command("backups")
@click.argument("network", type=click.Choice(NETWORKS), required=False)
@click.pass_obj
@cli_error_boundary
def list_registry_backups(ctx: ShipyardContext, network: str | None) -> None:
    """List registry backups, newest first."""
    backups = ctx.registry.list_backups(network)
    if not backups:
        user_output("No registry backups")
        return
    stderr_console().print(backups_table("Registry backups", backups))


def _report_mutation(summary: str, result: MutationResult) -> None:
    user_output(click.style(f"✓ {summary}", fg="green"))
    user_output(f"  Backup: {click.style(result.backup.id, fg='cyan')}")
