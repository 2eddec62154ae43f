"""Toolchain abstraction: the opaque build, test and deploy steps of each unit."""

from abc import ABC, abstractmethod
from collections.abc import Sequence
from pathlib import Path

from shipyard.core.project import ToolchainNetwork, UnitConfig
from shipyard.core.toolchain.types import BuildResult, CommandResult, DeployResult, TestResult


class Toolchain(ABC):
    """External collaborator that builds, tests and deploys units.

    Implementations report exit codes in their results. They raise only when
    a step could not run to completion at all (``ToolchainFailure``) or ran out
    of time (``TimeoutExceeded``).
    """

    @abstractmethod
    def build(self, name: str, unit: UnitConfig, environment: str) -> BuildResult:
        """Build ``unit`` for ``environment`` and report where the artifact is."""
        ...

    @abstractmethod
    def test(self, name: str, unit: UnitConfig, environment: str) -> TestResult:
        """Run the unit's test suite."""
        ...

    @abstractmethod
    def deploy(
        self,
        name: str,
        unit: UnitConfig,
        artifact: Path,
        network: ToolchainNetwork,
        account: str,
    ) -> DeployResult:
        """Deploy ``artifact`` to ``network`` as ``account``; report the identifier."""
        ...

    @abstractmethod
    def run_check(self, command: Sequence[str]) -> CommandResult:
        """Run an auxiliary check command (linters, formatters) in the project root."""
        ...
