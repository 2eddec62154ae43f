"""Toolchain implementation that runs the commands declared in shipyard.toml."""

import logging
from collections.abc import Sequence
from pathlib import Path

from shipyard.core.errors import ToolchainFailure
from shipyard.core.project import ToolchainNetwork, UnitConfig
from shipyard.core.subprocess_utils import run_subprocess_with_context
from shipyard.core.toolchain.abc import Toolchain
from shipyard.core.toolchain.types import BuildResult, CommandResult, DeployResult, TestResult

logger = logging.getLogger(__name__)


class RealToolchain(Toolchain):
    """Runs unit commands as subprocesses from the project root.

    Every step is bounded by ``timeout`` seconds; a step that overruns raises
    ``TimeoutExceeded``.
    """

    def __init__(self, root: Path, timeout: float) -> None:
        self.root = root
        self.timeout = timeout

    def build(self, name: str, unit: UnitConfig, environment: str) -> BuildResult:
        exit_code, _, output = self._run(unit.build, f"build {name} for {environment}", name)
        return BuildResult(
            unit=name, artifact_path=self.root / unit.artifact, exit_code=exit_code, output=output
        )

    def test(self, name: str, unit: UnitConfig, environment: str) -> TestResult:
        exit_code, _, output = self._run(unit.test, f"test {name}", name)
        return TestResult(unit=name, exit_code=exit_code, report=output)

    def deploy(
        self,
        name: str,
        unit: UnitConfig,
        artifact: Path,
        network: ToolchainNetwork,
        account: str,
    ) -> DeployResult:
        placeholders = {
            "artifact": str(artifact),
            "network": network.name,
            "rpc_url": network.rpc_url,
            "account": account,
        }
        command = [part.format(**placeholders) for part in unit.deploy]
        exit_code, stdout, output = self._run(command, f"deploy {name} to {network.name}", name)
        # Progress goes to stderr; only stdout carries the identifier.
        return DeployResult(
            unit=name, identifier=_last_line(stdout), exit_code=exit_code, output=output
        )

    def run_check(self, command: Sequence[str]) -> CommandResult:
        exit_code, _, output = self._run(command, f"run {' '.join(command)}", "check")
        return CommandResult(command=tuple(command), exit_code=exit_code, output=output)

    def _run(self, command: Sequence[str], operation: str, name: str) -> tuple[int, str, str]:
        """Run ``command`` and return its exit code, stdout and combined output."""
        if not command:
            logger.debug("No command configured to %s; treating as success", operation)
            return 0, "", ""
        logger.debug("Running %s: %s", operation, " ".join(command))
        result = run_subprocess_with_context(
            command, operation, cwd=self.root, timeout=self.timeout, check=False
        )
        output = "\n".join(part.strip() for part in (result.stdout, result.stderr) if part.strip())
        if result.returncode != 0:
            logger.debug("%s exited with %d", name, result.returncode)
        return result.returncode, result.stdout, output


def _last_line(output: str) -> str | None:
    lines = [line.strip() for line in output.splitlines() if line.strip()]
    if not lines:
        return None
    return lines[-1]


def require_success(step: str, name: str, exit_code: int, output: str) -> None:
    """Map a non-zero exit code to ``ToolchainFailure``."""
    if exit_code != 0:
        message = f"{step} of {name} failed with exit code {exit_code}"
        if output:
            message += f"\n{output}"
        raise ToolchainFailure(message, exit_code=exit_code, output=output)
