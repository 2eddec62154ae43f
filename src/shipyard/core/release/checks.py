"""Individual release checks, one per category.

Each check returns its raw outcome; whether a failure blocks the release is
decided by the validator's policy, not here.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

from shipyard.core.context import ShipyardContext
from shipyard.core.deploy.ordering import validate_graph
from shipyard.core.errors import NotFound, ShipyardError
from shipyard.core.project import ENVIRONMENTS, NETWORKS
from shipyard.core.versions.changelog import has_entry_for
from shipyard.core.versions.manager import CompatibilityReport
from shipyard.core.versions.semver import SemVer

logger = logging.getLogger(__name__)

CheckStatus = Literal["pass", "warn", "fail"]
Category = Literal["code_quality", "tests", "security", "performance", "deployment_readiness"]
CATEGORIES: tuple[Category, ...] = (
    "code_quality",
    "tests",
    "security",
    "performance",
    "deployment_readiness",
)


@dataclass
class CheckOutcome:
    failures: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)

    @property
    def status(self) -> CheckStatus:
        if self.failures:
            return "fail"
        if self.warnings:
            return "warn"
        return "pass"


@dataclass(frozen=True)
class CheckRequest:
    version: str | None
    environment: str | None


Check = Callable[[ShipyardContext, CheckRequest], CheckOutcome]


def check_code_quality(ctx: ShipyardContext, request: CheckRequest) -> CheckOutcome:
    outcome = CheckOutcome()
    commands = ctx.project.release.code_quality_commands
    if not commands:
        outcome.warnings.append("No code-quality commands configured in [release]")
        return outcome
    for command in commands:
        label = " ".join(command)
        try:
            result = ctx.toolchain.run_check(command)
        except ShipyardError as e:
            outcome.failures.append(f"{label}: {e.message.splitlines()[0]}")
            continue
        if result.exit_code != 0:
            outcome.failures.append(f"{label} exited with {result.exit_code}")
        else:
            outcome.notes.append(f"{label} passed")
    return outcome


def check_tests(ctx: ShipyardContext, request: CheckRequest) -> CheckOutcome:
    outcome = CheckOutcome()
    environment = request.environment or "dev"
    for name, unit in ctx.project.units.items():
        try:
            result = ctx.toolchain.test(name, unit, environment)
        except ShipyardError as e:
            outcome.failures.append(f"{name}: {e.message.splitlines()[0]}")
            continue
        if result.exit_code != 0:
            outcome.failures.append(f"{name}: tests exited with {result.exit_code}")
        else:
            outcome.notes.append(f"{name}: tests passed")
    return outcome


def check_security(ctx: ShipyardContext, request: CheckRequest) -> CheckOutcome:
    outcome = CheckOutcome()
    environments = [request.environment] if request.environment else list(ENVIRONMENTS)
    scanned = 0
    for env in environments:
        try:
            issues = ctx.config_store.security_scan(env)
        except NotFound:
            logger.debug("No %s configuration to scan", env)
            continue
        except ShipyardError as e:
            scanned += 1
            reason = e.message.splitlines()[0]
            outcome.failures.append(f"{env}: cannot scan configuration: {reason}")
            continue
        scanned += 1
        for issue in issues:
            where = f"{env}.{issue.key}" if issue.key else env
            message = f"{where}: {issue.message}"
            if issue.severity == "high":
                outcome.failures.append(message)
            else:
                outcome.warnings.append(message)
    if scanned == 0:
        outcome.warnings.append("No configuration documents to scan")
    return outcome


def check_performance(ctx: ShipyardContext, request: CheckRequest) -> CheckOutcome:
    outcome = CheckOutcome()
    budget = ctx.project.release.max_artifact_bytes
    for name, unit in ctx.project.units.items():
        path = ctx.root / unit.artifact
        if not path.exists():
            outcome.warnings.append(f"{name}: artifact not built yet ({unit.artifact})")
            continue
        size = _artifact_size(path)
        outcome.notes.append(f"{name}: {size} bytes")
        if budget is not None and size > budget:
            outcome.failures.append(f"{name}: artifact is {size} bytes, budget is {budget}")
    return outcome


def check_deployment_readiness(ctx: ShipyardContext, request: CheckRequest) -> CheckOutcome:
    outcome = CheckOutcome()

    compatibility: CompatibilityReport | None = None
    try:
        compatibility = ctx.versions.check_compatibility()
    except ShipyardError as e:
        outcome.failures.append(e.message)
    if compatibility is not None and not compatibility.compatible:
        lines = ", ".join(
            f"{component}={major}.{minor}"
            for component, (major, minor) in compatibility.per_component.items()
        )
        outcome.failures.append(f"Component versions are not compatible: {lines}")

    if request.version is not None and compatibility is not None:
        try:
            expected = SemVer.parse(request.version)
        except ShipyardError as e:
            outcome.failures.append(e.message)
        else:
            for component, version in compatibility.versions.items():
                if version.line != expected.line:
                    outcome.failures.append(
                        f"{component} is at {version}, outside the {expected.major}."
                        f"{expected.minor} release line"
                    )
            if not has_entry_for(ctx.paths.changelog, str(expected)):
                outcome.warnings.append(f"CHANGELOG.md has no entry for {expected}")

    try:
        manifest_issues = ctx.versions.validate_manifests()
    except ShipyardError as e:
        outcome.failures.append(e.message)
    else:
        outcome.failures.extend(f"{issue.component}: {issue.message}" for issue in manifest_issues)

    config_environments = [request.environment] if request.environment else ["staging", "prod"]
    for env in config_environments:
        try:
            validation = ctx.config_store.validate(env)
        except NotFound:
            # The target environment must have a configuration; the others are advisory.
            findings = outcome.failures if request.environment else outcome.warnings
            findings.append(f"No {env} configuration")
            continue
        outcome.failures.extend(f"config {env}: {error}" for error in validation.errors)

    for network in NETWORKS:
        errors = ctx.registry.validate(network).errors
        outcome.failures.extend(f"registry {network}: {error}" for error in errors)

    try:
        validate_graph(ctx.project.units)
    except ShipyardError as e:
        outcome.failures.append(e.message)

    return outcome


CHECKS: dict[Category, Check] = {
    "code_quality": check_code_quality,
    "tests": check_tests,
    "security": check_security,
    "performance": check_performance,
    "deployment_readiness": check_deployment_readiness,
}


def _artifact_size(path: Path) -> int:
    if path.is_file():
        return path.stat().st_size
    return sum(child.stat().st_size for child in path.rglob("*") if child.is_file())
