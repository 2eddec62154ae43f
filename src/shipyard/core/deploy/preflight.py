"""Pre-flight checks run after build/test and before any deploy call.

If any check reports an error, no deploy step is issued, which guarantees
the run has had no external side effects.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path

from shipyard.core.context import ShipyardContext
from shipyard.core.errors import NotFound, ShipyardError

logger = logging.getLogger(__name__)

LOCAL_HOSTS = frozenset({"localhost", "127.0.0.1", "::1"})
DEFAULT_DEPLOY_PORT = 22
REACHABILITY_TIMEOUT_SECONDS = 5.0


@dataclass
class PreflightResult:
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return not self.errors


def artifact_problem(path: Path) -> str | None:
    """Why ``path`` is not a usable build artifact, or None if it is."""
    if not path.exists():
        return f"artifact not found: {path}"
    if path.is_dir():
        if not any(path.iterdir()):
            return f"artifact directory is empty: {path}"
        return None
    if path.stat().st_size == 0:
        return f"artifact is empty: {path}"
    return None


def run_preflight(
    ctx: ShipyardContext,
    *,
    environment: str,
    artifacts: dict[str, Path],
    deployment_host: str,
) -> PreflightResult:
    """Check artifacts, target reachability, configuration and version compatibility."""
    result = PreflightResult()

    for name, path in artifacts.items():
        problem = artifact_problem(path)
        if problem is not None:
            result.errors.append(f"{name}: {problem}")

    if environment != "dev" and deployment_host not in LOCAL_HOSTS:
        raw_port = ctx.environ.get("DEPLOY_PORT", str(DEFAULT_DEPLOY_PORT))
        if not raw_port.isdigit():
            result.errors.append(f"DEPLOY_PORT must be a port number, got '{raw_port}'")
        else:
            port = int(raw_port)
            logger.debug("Checking reachability of %s:%d", deployment_host, port)
            if not ctx.probe.is_reachable(deployment_host, port, REACHABILITY_TIMEOUT_SECONDS):
                result.errors.append(f"Deploy target {deployment_host}:{port} is not reachable")

    try:
        validation = ctx.config_store.validate(environment)
    except NotFound as e:
        result.errors.append(e.message)
    else:
        result.errors.extend(f"config: {error}" for error in validation.errors)
        result.warnings.extend(f"config: {warning}" for warning in validation.warnings)

    try:
        compatibility = ctx.versions.check_compatibility()
    except ShipyardError as e:
        result.errors.append(f"versions: {e.message}")
    else:
        if not compatibility.compatible:
            lines = ", ".join(
                f"{component}={major}.{minor}"
                for component, (major, minor) in compatibility.per_component.items()
            )
            message = f"versions: components are not compatible ({lines})"
            if environment == "dev":
                result.warnings.append(message)
            else:
                result.errors.append(message)

    return result
