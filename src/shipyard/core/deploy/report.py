"""Persisted deployment reports and the deployment history they form."""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, ValidationError

from shipyard.core.atomic import atomic_write_text

logger = logging.getLogger(__name__)

UnitStatus = Literal["pending", "built", "tested", "deployed", "validated", "failed"]
RunStatus = Literal["succeeded", "failed", "cancelled"]


class StatusChange(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: UnitStatus
    at: datetime
    detail: str | None = None


class HealthCheck(BaseModel):
    model_config = ConfigDict(frozen=True)

    unit: str
    url: str
    healthy: bool
    status_code: int | None
    detail: str


class UnitReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    component: str
    required: bool
    status: UnitStatus
    history: list[StatusChange]
    identifier: str | None = None
    error: str | None = None


class DeploymentReport(BaseModel):
    """Immutable record of a finished deployment run.

    Attributes:
        run_id: Unique id, also the report file name
        environment: Target environment (dev, staging, prod)
        network: Registry network the environment deploys to
        component_filter: Component or unit requested on the command line, if any
        status: succeeded only if every required unit reached validated
        units: Per-unit outcome in deployment order
        warnings: Non-fatal findings (health checks, optional unit failures)
        health: Post-deploy probe results
        urls: Frontend and backend URLs the run targeted
        last_good_backup_id: Newest registry backup before this run touched it
    """

    model_config = ConfigDict(frozen=True)

    run_id: str
    environment: str
    network: str
    component_filter: str | None
    started_at: datetime
    completed_at: datetime
    deployed_by: str
    deployment_host: str
    dry_run: bool
    status: RunStatus
    units: list[UnitReport]
    warnings: list[str]
    health: list[HealthCheck]
    urls: dict[str, str]
    last_good_backup_id: str | None = None

    def unit(self, name: str) -> UnitReport:
        for unit in self.units:
            if unit.name == name:
                return unit
        raise KeyError(name)


def write_report(deployments_dir: Path, report: DeploymentReport) -> Path:
    path = deployments_dir / f"{report.run_id}.json"
    atomic_write_text(path, report.model_dump_json(indent=2) + "\n")
    logger.debug("Wrote deployment report %s", path)
    return path


def load_reports(deployments_dir: Path) -> list[DeploymentReport]:
    """All readable reports, oldest first. Unreadable files are skipped."""
    if not deployments_dir.exists():
        return []
    reports: list[DeploymentReport] = []
    for path in deployments_dir.glob("*.json"):
        try:
            reports.append(DeploymentReport.model_validate(json.loads(path.read_text("utf-8"))))
        except (json.JSONDecodeError, ValidationError) as e:
            logger.warning("Skipping unreadable deployment report %s: %s", path, e)
    return sorted(reports, key=lambda report: report.started_at)


def deployed_units(deployments_dir: Path, environment: str) -> set[str]:
    """Units whose most recent real (non-dry-run) deployment in ``environment`` succeeded."""
    latest: dict[str, UnitStatus] = {}
    for report in load_reports(deployments_dir):
        if report.dry_run or report.environment != environment:
            continue
        for unit in report.units:
            if unit.status != "pending":
                latest[unit.name] = unit.status
    return {name for name, status in latest.items() if status in ("deployed", "validated")}
