"""Per-unit state machine for a deployment run."""

from dataclasses import dataclass, field
from datetime import datetime

from shipyard.core.deploy.report import (
    DeploymentReport,
    HealthCheck,
    RunStatus,
    StatusChange,
    UnitReport,
    UnitStatus,
)

ALLOWED_TRANSITIONS: dict[UnitStatus, frozenset[UnitStatus]] = {
    "pending": frozenset({"built", "failed"}),
    "built": frozenset({"tested", "failed"}),
    "tested": frozenset({"deployed", "failed"}),
    "deployed": frozenset({"validated", "failed"}),
    "validated": frozenset(),
    "failed": frozenset(),
}

TERMINAL_STATUSES: frozenset[UnitStatus] = frozenset({"validated", "failed"})


class IllegalTransition(Exception):
    """A unit was moved along an edge the state machine does not have."""


@dataclass
class _UnitState:
    name: str
    component: str
    required: bool
    status: UnitStatus = "pending"
    history: list[StatusChange] = field(default_factory=list)
    identifier: str | None = None
    error: str | None = None


class DeploymentRun:
    """Mutable bookkeeping for one run; becomes an immutable report on ``finish``.

    Units move ``pending → built → tested → deployed → validated``; any
    non-terminal unit may move to ``failed``. Once every unit is terminal the
    run can be finished, after which no further transitions are accepted.
    """

    def __init__(
        self,
        *,
        run_id: str,
        environment: str,
        network: str,
        units: list[tuple[str, str, bool]],
        started_at: datetime,
        dry_run: bool,
    ) -> None:
        self.run_id = run_id
        self.environment = environment
        self.network = network
        self.started_at = started_at
        self.dry_run = dry_run
        self.warnings: list[str] = []
        self.health: list[HealthCheck] = []
        self.cancelled = False
        self._report: DeploymentReport | None = None
        self._units: dict[str, _UnitState] = {}
        for name, component, required in units:
            state = _UnitState(name=name, component=component, required=required)
            state.history.append(StatusChange(status="pending", at=started_at))
            self._units[name] = state

    @property
    def unit_names(self) -> list[str]:
        return list(self._units)

    @property
    def finished(self) -> bool:
        return self._report is not None

    def status_of(self, name: str) -> UnitStatus:
        return self._units[name].status

    def required(self, name: str) -> bool:
        return self._units[name].required

    def transition(
        self, name: str, status: UnitStatus, at: datetime, detail: str | None = None
    ) -> None:
        """Move ``name`` to ``status``.

        Raises:
            IllegalTransition: If the run is finished or the edge is not allowed
        """
        if self._report is not None:
            raise IllegalTransition(f"Run {self.run_id} is finished; {name} cannot change")
        state = self._units[name]
        if status not in ALLOWED_TRANSITIONS[state.status]:
            raise IllegalTransition(f"{name}: cannot move from {state.status} to {status}")
        state.status = status
        state.history.append(StatusChange(status=status, at=at, detail=detail))

    def record_identifier(self, name: str, identifier: str) -> None:
        self._units[name].identifier = identifier

    def fail(self, name: str, at: datetime, reason: str) -> None:
        """Mark ``name`` failed unless it is already terminal."""
        state = self._units[name]
        if state.status in TERMINAL_STATUSES:
            return
        state.error = reason
        self.transition(name, "failed", at, reason)
        if not state.required:
            self.warnings.append(f"Optional unit {name} failed: {reason.splitlines()[0]}")

    def fail_remaining(self, at: datetime, reason: str) -> None:
        for name, state in self._units.items():
            if state.status not in TERMINAL_STATUSES:
                self.fail(name, at, reason)

    def active(self, status: UnitStatus) -> list[str]:
        return [name for name, state in self._units.items() if state.status == status]

    def overall_status(self) -> RunStatus:
        if self.cancelled:
            return "cancelled"
        required_failed = any(
            state.required and state.status == "failed" for state in self._units.values()
        )
        return "failed" if required_failed else "succeeded"

    def finish(
        self,
        *,
        completed_at: datetime,
        component_filter: str | None,
        deployed_by: str,
        deployment_host: str,
        urls: dict[str, str],
        last_good_backup_id: str | None,
    ) -> DeploymentReport:
        """Freeze the run into a report.

        Raises:
            IllegalTransition: If any unit is still non-terminal
        """
        if self._report is not None:
            return self._report
        open_units = [
            name for name, state in self._units.items() if state.status not in TERMINAL_STATUSES
        ]
        if open_units:
            raise IllegalTransition(f"Cannot finish run with non-terminal units: {open_units}")

        self._report = DeploymentReport(
            run_id=self.run_id,
            environment=self.environment,
            network=self.network,
            component_filter=component_filter,
            started_at=self.started_at,
            completed_at=completed_at,
            deployed_by=deployed_by,
            deployment_host=deployment_host,
            dry_run=self.dry_run,
            status=self.overall_status(),
            units=[
                UnitReport(
                    name=state.name,
                    component=state.component,
                    required=state.required,
                    status=state.status,
                    history=list(state.history),
                    identifier=state.identifier,
                    error=state.error,
                )
                for state in self._units.values()
            ],
            warnings=list(self.warnings),
            health=list(self.health),
            urls=dict(urls),
            last_good_backup_id=last_good_backup_id,
        )
        return self._report
