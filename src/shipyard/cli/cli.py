import logging
import os

import click

from shipyard.cli.commands.config import config_group
from shipyard.cli.commands.deploy import deploy_cmd, deploy_plan_cmd
from shipyard.cli.commands.registry import registry_group
from shipyard.cli.commands.validate_release import validate_release_cmd
from shipyard.cli.commands.version import version_group
from shipyard.cli.error_boundary import report_error
from shipyard.cli.output import user_output
from shipyard.core.context import create_context
from shipyard.core.errors import ShipyardError

CONTEXT_SETTINGS = dict(help_option_names=["-h", "--help"])  # terse help flags


@click.group(context_settings=CONTEXT_SETTINGS)
@click.version_option(package_name="shipyard")
@click.option("--debug", is_flag=True, help="Log debug traces to stderr.")
@click.pass_context
def cli(ctx: click.Context, debug: bool) -> None:
    """Coordinate versions, artifacts, configuration and deployments of a release."""
    if debug or os.getenv("SHIPYARD_DEBUG"):
        logging.basicConfig(level=logging.DEBUG, format="[DEBUG %(name)s:%(lineno)d] %(message)s")

    # Only create context if not already provided (e.g., by tests)
    if ctx.obj is None:
        try:
            ctx.obj = create_context(dry_run=False)
        except ShipyardError as e:
            report_error(e)
            raise SystemExit(1) from None


cli.add_command(config_group)
cli.add_command(deploy_cmd)
cli.add_command(deploy_plan_cmd)
cli.add_command(registry_group)
cli.add_command(validate_release_cmd)
cli.add_command(version_group)


def main() -> None:
    """CLI entry point used by the `shipyard` console script.

    Interrupts exit with 130 and usage errors with 2.
    """
    try:
        cli.main(standalone_mode=False)
    except click.exceptions.Abort:
        user_output(click.style("Interrupted", fg="yellow"))
        raise SystemExit(130) from None
    except click.ClickException as e:
        e.show()
        raise SystemExit(e.exit_code) from None
