"""Release validation command."""

import click
from rich.table import Table

from shipyard.cli.error_boundary import cli_error_boundary
from shipyard.cli.json_output import emit_json, json_error_boundary
from shipyard.cli.output import stderr_console, user_output
from shipyard.core.context import ShipyardContext
from shipyard.core.release.checks import CATEGORIES
from shipyard.core.release.validator import ReleaseReport, ReleaseValidator

_STATUS_STYLES = {"pass": "green", "warn": "yellow", "fail": "red"}


@click.command("validate-release")
@click.argument("version", required=False)
@click.option("-e", "--environment", help="Apply this environment's blocking policy.")
@click.option(
    "--only",
    multiple=True,
    type=click.Choice(CATEGORIES),
    help="Run only this category (repeatable).",
)
@click.option("--format", "format", type=click.Choice(["text", "json"]), default="text")
@click.pass_obj
@cli_error_boundary
@json_error_boundary
def validate_release_cmd(
    ctx: ShipyardContext,
    version: str | None,
    environment: str | None,
    only: tuple[str, ...],
    format: str,
) -> None:
    """Run release checks for VERSION and exit 1 if a blocking category fails."""
    if format == "json":
        ctx = ctx.with_machine_output()
    report = ReleaseValidator(ctx).validate(version, environment, only or None)

    if format == "json":
        emit_json(_as_json(report))
    else:
        _print_report(report)

    if not report.passed:
        raise SystemExit(1)


def _as_json(report: ReleaseReport) -> dict[str, object]:
    return {
        "version": report.version,
        "environment": report.environment,
        "passed": report.passed,
        "generated_at": report.generated_at,
        "report_path": report.report_path,
        "categories": report.categories,
    }


def _print_report(report: ReleaseReport) -> None:
    table = Table(title=f"Release validation: {report.version or 'unversioned'}")
    table.add_column("Category", style="bold")
    table.add_column("Status")
    table.add_column("Blocking")
    table.add_column("Findings", overflow="fold")
    for result in report.categories:
        status = f"[{_STATUS_STYLES[result.status]}]{result.status}[/]"
        if result.downgraded:
            status += " (downgraded)"
        findings = "\n".join(result.failures + result.warnings)
        table.add_row(result.category, status, "yes" if result.blocking else "no", findings)
    stderr_console().print(table)

    if report.passed:
        user_output(click.style("✓ Release may proceed", fg="green"))
    else:
        user_output(click.style("✗ Release is blocked", fg="red"))
    if report.report_path is not None:
        user_output(f"Report: {report.report_path}")
