"""Deployment commands."""

import logging
import signal
import sys
import threading
from types import FrameType

import click
from rich.text import Text

from shipyard.cli.error_boundary import cli_error_boundary
from shipyard.cli.json_output import emit_json, json_error_boundary
from shipyard.cli.output import status_panel, stderr_console, user_output
from shipyard.core.context import ShipyardContext
from shipyard.core.deploy.orchestrator import DeploymentOrchestrator, DeploymentPlan
from shipyard.core.deploy.report import DeploymentReport
from shipyard.core.errors import ReleaseBlocked
from shipyard.core.project import PRODUCTION_ENVIRONMENTS
from shipyard.core.release.validator import ReleaseValidator

logger = logging.getLogger(__name__)

_STATUS_STYLES = {
    "validated": "green",
    "deployed": "green",
    "failed": "red",
}


@click.command("deploy")
@click.argument("environment")
@click.argument("component", required=False)
@click.option("--dry-run", is_flag=True, help="Print deploy commands instead of running them.")
@click.option(
    "-f",
    "--force",
    is_flag=True,
    help="Approve a production deploy without the interactive confirmation.",
)
@click.option(
    "--validate-release/--no-validate-release",
    default=None,
    help="Run release validation first (default: on for production).",
)
@click.option("--format", "format", type=click.Choice(["text", "json"]), default="text")
@click.pass_obj
@cli_error_boundary
@json_error_boundary
def deploy_cmd(
    ctx: ShipyardContext,
    environment: str,
    component: str | None,
    dry_run: bool,
    force: bool,
    validate_release: bool | None,
    format: str,
) -> None:
    """Build, test and deploy COMPONENT (or everything) to ENVIRONMENT.

    Units are deployed in dependency order. Production deploys require an
    interactive confirmation or --force.
    """
    if dry_run:
        ctx = ctx.with_dry_run()
    if format == "json":
        ctx = ctx.with_machine_output()

    orchestrator = DeploymentOrchestrator(ctx)
    plan = orchestrator.plan(environment, component)
    production = plan.environment in PRODUCTION_ENVIRONMENTS

    if format == "text":
        _print_plan(plan)

    approved = not production or force or ctx.dry_run or _confirm_production(plan)

    if validate_release is None:
        validate_release = production and ctx.project.release.validate_before_production_deploy
    # An unapproved run is refused by the orchestrator before anything executes.
    if validate_release and approved:
        release = ReleaseValidator(ctx).validate(environment=plan.environment)
        if not release.passed:
            failed = ", ".join(result.category for result in release.blocking_failures)
            raise ReleaseBlocked(
                f"Release validation failed ({failed}); see {release.report_path}",
                last_good_backup_id=ctx.registry.backups.latest_id(plan.network),
            )

    cancel = threading.Event()

    def request_cancel(signum: int, frame: FrameType | None) -> None:
        ctx.feedback.warning("Cancellation requested; stopping after the current step...")
        cancel.set()

    previous_handler = signal.signal(signal.SIGINT, request_cancel)
    try:
        report = orchestrator.run(plan, production_approved=approved, cancel=cancel)
    finally:
        signal.signal(signal.SIGINT, previous_handler)

    if format == "json":
        emit_json(report.model_dump(mode="json"))
    else:
        _print_summary(report)

    if report.status != "succeeded":
        raise SystemExit(1)


@click.command("deploy-plan")
@click.argument("environment")
@click.argument("component", required=False)
@click.option("--format", "format", type=click.Choice(["text", "json"]), default="text")
@click.pass_obj
@cli_error_boundary
@json_error_boundary
def deploy_plan_cmd(
    ctx: ShipyardContext, environment: str, component: str | None, format: str
) -> None:
    """Show the order COMPONENT (or everything) would deploy in, without deploying."""
    plan = DeploymentOrchestrator(ctx).plan(environment, component)
    if format == "json":
        emit_json(
            {
                "environment": plan.environment,
                "network": plan.network,
                "order": plan.order,
                "already_deployed": plan.already_deployed,
            }
        )
        return
    _print_plan(plan)
    if plan.already_deployed:
        user_output(f"Already deployed: {', '.join(sorted(plan.already_deployed))}")


def _confirm_production(plan: DeploymentPlan) -> bool:
    if not sys.stdin.isatty():
        logger.debug("Non-interactive session; production deploy needs --force")
        return False
    return click.confirm(
        click.style(f"Deploy {len(plan.order)} unit(s) to {plan.environment}?", fg="yellow")
        + " This cannot be undone.",
        default=False,
    )


def _print_plan(plan: DeploymentPlan) -> None:
    user_output(
        f"Deployment plan for {click.style(plan.environment, fg='cyan', bold=True)} "
        f"(network {plan.network}):"
    )
    for index, name in enumerate(plan.order, start=1):
        user_output(f"  {index}. {name}")


def _print_summary(report: DeploymentReport) -> None:
    lines: list[Text] = []
    for unit in report.units:
        line = Text()
        line.append(f"{unit.name}: ", style="bold")
        line.append(unit.status, style=_STATUS_STYLES.get(unit.status, "yellow"))
        if unit.identifier:
            line.append(f"  {unit.identifier}", style="dim")
        if unit.error:
            line.append(f"  ({unit.error.splitlines()[0]})", style="red")
        lines.append(line)
    for warning in report.warnings:
        lines.append(Text(f"⚠ {warning}", style="yellow"))
    for key, url in sorted(report.urls.items()):
        lines.append(Text(f"{key}: {url}", style="cyan"))

    title = f"{report.run_id}: {report.status}"
    if report.dry_run:
        title += " (dry run)"
    stderr_console().print(status_panel(title, lines, report.status == "succeeded"))
    if report.last_good_backup_id is not None and report.status != "succeeded":
        backup_id = click.style(report.last_good_backup_id, fg="cyan")
        user_output(f"Last good registry backup: {backup_id}")
