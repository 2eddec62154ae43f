"""No-op wrapper for toolchain operations.

Build, test and check steps still run through the wrapped toolchain so a
dry run exercises everything that has no external side effects. Deploy is
replaced by a printed plan and a placeholder identifier.
"""

from collections.abc import Sequence
from pathlib import Path

from shipyard.cli.output import user_output
from shipyard.core.project import ToolchainNetwork, UnitConfig
from shipyard.core.toolchain.abc import Toolchain
from shipyard.core.toolchain.types import BuildResult, CommandResult, DeployResult, TestResult

DRY_RUN_IDENTIFIER = "dry-run"


class DryRunToolchain(Toolchain):
    """Wrapper that prints deploy steps instead of executing them.

    This wrapper intercepts deploy calls and prints what would happen.
    All other steps are delegated to the wrapped implementation.
    """

    def __init__(self, wrapped: Toolchain) -> None:
        """Create a dry-run wrapper around a Toolchain implementation.

        Args:
            wrapped: The Toolchain implementation to wrap
        """
        self._wrapped = wrapped

    def build(self, name: str, unit: UnitConfig, environment: str) -> BuildResult:
        return self._wrapped.build(name, unit, environment)

    def test(self, name: str, unit: UnitConfig, environment: str) -> TestResult:
        return self._wrapped.test(name, unit, environment)

    def deploy(
        self,
        name: str,
        unit: UnitConfig,
        artifact: Path,
        network: ToolchainNetwork,
        account: str,
    ) -> DeployResult:
        user_output(f"[DRY RUN] Would deploy {name} from {artifact} to {network.name} as {account}")
        return DeployResult(unit=name, identifier=DRY_RUN_IDENTIFIER, exit_code=0)

    def run_check(self, command: Sequence[str]) -> CommandResult:
        return self._wrapped.run_check(command)
