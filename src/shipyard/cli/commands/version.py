"""Component version commands."""

import click

from shipyard.cli.error_boundary import cli_error_boundary
from shipyard.cli.json_output import emit_json, json_error_boundary
from shipyard.cli.output import user_output
from shipyard.core.context import ShipyardContext
from shipyard.core.versions.manager import CompatibilityReport
from shipyard.core.versions.semver import INCREMENT_KINDS

_FORMAT_OPTION = click.option(
    "--format",
    "format",
    type=click.Choice(["text", "json"]),
    default="text",
    help="Output format.",
)


@click.group("version")
def version_group() -> None:
    """Show, bump and synchronize component versions."""
    pass


@version_group.command("show")
@click.argument("component", required=False)
@_FORMAT_OPTION
@click.pass_obj
@cli_error_boundary
@json_error_boundary
def show_version(ctx: ShipyardContext, component: str | None, format: str) -> None:
    """Show the recorded version of one component or all of them."""
    if component is not None:
        versions = {component: ctx.versions.get_version(component)}
    else:
        versions = ctx.versions.all_versions()

    if format == "json":
        emit_json({"versions": {name: str(version) for name, version in versions.items()}})
        return

    if not versions:
        user_output("No versions recorded yet. Run 'shipyard version sync <version>'.")
        return
    width = max(len(name) for name in versions)
    for name, version in versions.items():
        user_output(f"{click.style(name.ljust(width), fg='cyan')}  {version}")


@version_group.command("bump")
@click.argument("component")
@click.argument("kind", type=click.Choice(INCREMENT_KINDS))
@click.option("-d", "--description", help="Changelog description for this bump.")
@_FORMAT_OPTION
@click.pass_obj
@cli_error_boundary
@json_error_boundary
def bump_version(
    ctx: ShipyardContext, component: str, kind: str, description: str | None, format: str
) -> None:
    """Increment COMPONENT by KIND (major, minor or patch)."""
    result = ctx.versions.bump(component, kind, description)  # type: ignore[arg-type]

    if format == "json":
        emit_json(
            {
                "component": result.component,
                "previous": str(result.previous),
                "version": str(result.version),
                "compatible": result.compatibility.compatible,
            }
        )
        return

    user_output(
        f"✓ Bumped {click.style(component, fg='cyan')} "
        f"from {result.previous} to {click.style(str(result.version), fg='green')}"
    )
    if not result.compatibility.compatible:
        user_output(click.style("⚠ Components are no longer compatible:", fg="yellow"))
        _print_lines(result.compatibility)
        user_output("Run 'shipyard version sync <version>' to realign them.")


@version_group.command("sync")
@click.argument("target_version")
@_FORMAT_OPTION
@click.pass_obj
@cli_error_boundary
@json_error_boundary
def sync_versions(ctx: ShipyardContext, target_version: str, format: str) -> None:
    """Force every component to TARGET_VERSION."""
    result = ctx.versions.sync(target_version)

    if format == "json":
        emit_json(
            {
                "target": str(result.target),
                "changed": {
                    name: {"previous": None if previous is None else str(previous)}
                    for name, (previous, _) in result.changed.items()
                },
                "downgraded": result.downgraded,
            }
        )
        return

    if not result.changed:
        user_output(f"All components already at {result.target}")
        return
    for name, (previous, target) in result.changed.items():
        user_output(f"  {name}: {previous or '(none)'} → {target}")
    for name in result.downgraded:
        user_output(click.style(f"⚠ {name} was downgraded", fg="yellow"))
    user_output(click.style(f"✓ Synchronized all components to {result.target}", fg="green"))


@version_group.command("check")
@_FORMAT_OPTION
@click.pass_obj
@cli_error_boundary
@json_error_boundary
def check_versions(ctx: ShipyardContext, format: str) -> None:
    """Check that all components share the same major.minor version."""
    report = ctx.versions.check_compatibility()

    if format == "json":
        emit_json(
            {
                "compatible": report.compatible,
                "per_component": {
                    name: f"{major}.{minor}"
                    for name, (major, minor) in report.per_component.items()
                },
            }
        )
    elif report.compatible:
        user_output(click.style("✓ All components are compatible", fg="green"))
        _print_lines(report)
    else:
        user_output(click.style("✗ Components are not compatible", fg="red"))
        _print_lines(report)

    if not report.compatible:
        raise SystemExit(1)


@version_group.command("validate")
@click.pass_obj
@cli_error_boundary
def validate_manifests(ctx: ShipyardContext) -> None:
    """Check that package manifests agree with recorded versions."""
    issues = ctx.versions.validate_manifests()
    if not issues:
        user_output(click.style("✓ Manifests match recorded versions", fg="green"))
        return
    for issue in issues:
        user_output(click.style(f"✗ {issue.component}: ", fg="red") + issue.message)
    raise SystemExit(1)


def _print_lines(report: CompatibilityReport) -> None:
    for name, version in report.versions.items():
        user_output(f"  {name}: {version}")
