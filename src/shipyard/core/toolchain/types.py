"""Results reported by toolchain steps."""

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class BuildResult:
    unit: str
    artifact_path: Path
    exit_code: int
    output: str = ""


@dataclass(frozen=True)
class TestResult:
    __test__ = False

    unit: str
    exit_code: int
    report: str = ""


@dataclass(frozen=True)
class DeployResult:
    unit: str
    identifier: str | None
    exit_code: int
    output: str = ""


@dataclass(frozen=True)
class CommandResult:
    command: tuple[str, ...]
    exit_code: int
    output: str = ""
