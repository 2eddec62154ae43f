"""Dependency-ordered deployment of units to an environment.

A run goes through fixed stages:

1. Plan: select units, compute a dependency-respecting order and refuse
   (``DependencyOrderViolation``) before anything runs if a dependency is
   neither part of the run nor already deployed.
2. Build and test every unit concurrently on a bounded worker pool.
3. Pre-flight: artifacts, target reachability, configuration, versions.
4. Deploy units one at a time in dependency order; contracts are recorded in
   the artifact registry as they land.
5. Validate: health-probe each deployed unit. Failures are warnings.
6. Report: the run is frozen and written to ``.shipyard/deployments/``.

Cancellation is honoured only between stages and between deploy calls, never
in the middle of one.
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path

from shipyard.core.context import ShipyardContext
from shipyard.core.deploy.health import health_url, probe_unit, resolve_urls
from shipyard.core.deploy.ordering import plan_order, select_units
from shipyard.core.deploy.preflight import run_preflight
from shipyard.core.deploy.report import DeploymentReport, deployed_units, write_report
from shipyard.core.deploy.run import DeploymentRun
from shipyard.core.errors import IrreversibleOperationBlocked, ShipyardError
from shipyard.core.project import (
    PRODUCTION_ENVIRONMENTS,
    TOOLCHAIN_NETWORKS,
    network_for,
    normalize_environment,
)
from shipyard.core.toolchain.real import require_success
from shipyard.core.toolchain.types import BuildResult, TestResult

logger = logging.getLogger(__name__)

CANCELLED_REASON = "cancelled before this stage started"


@dataclass(frozen=True)
class DeploymentPlan:
    """What a run will do, computed without side effects."""

    environment: str
    network: str
    component_filter: str | None
    order: list[str]
    already_deployed: frozenset[str]


@dataclass(frozen=True)
class _StageOutcome:
    name: str
    build: BuildResult | None
    test: TestResult | None
    error: str | None


class DeploymentOrchestrator:
    """Drives build → test → pre-flight → deploy → validate → report."""

    def __init__(self, ctx: ShipyardContext) -> None:
        self.ctx = ctx

    def plan(self, environment: str, component: str | None = None) -> DeploymentPlan:
        """Compute the deployment order for ``component`` (or everything).

        Raises:
            NotFound: If ``component`` names neither a component nor a unit
            DependencyOrderViolation: If dependencies are missing or misordered
            InvalidConfig: If the unit graph or configured order is malformed
        """
        env = normalize_environment(environment)
        network = network_for(env)
        units = self.ctx.project.units
        selected = select_units(units, component)
        already_deployed = self._already_deployed(env, network)
        order = plan_order(units, selected, self.ctx.project.release.deploy_order, already_deployed)
        logger.debug("Deployment order for %s: %s", env, order)
        return DeploymentPlan(
            environment=env,
            network=network,
            component_filter=component,
            order=order,
            already_deployed=frozenset(already_deployed),
        )

    def run(
        self,
        plan: DeploymentPlan,
        *,
        production_approved: bool,
        cancel: threading.Event | None = None,
    ) -> DeploymentReport:
        """Execute ``plan`` and return the finished, persisted report.

        Raises:
            IrreversibleOperationBlocked: For production without explicit approval
            LockUnavailable: If another process is mutating the project
        """
        if plan.environment in PRODUCTION_ENVIRONMENTS and not production_approved:
            raise IrreversibleOperationBlocked(
                f"Deploying to {plan.environment} is irreversible; "
                "confirm interactively or pass --force",
                last_good_backup_id=self.ctx.registry.backups.latest_id(plan.network),
            )
        if cancel is None:
            cancel = threading.Event()

        with self.ctx.lock.hold(f"deploy {plan.environment}"):
            last_good_backup_id = self.ctx.registry.backups.latest_id(plan.network)
            run = self._new_run(plan)
            urls = resolve_urls(self.ctx, plan.environment)
            deployment_host = self.ctx.environ.get("DEPLOY_HOST", "localhost")

            artifacts = self._build_and_test(run, plan)
            if not self._cancelled(run, cancel):
                self._preflight(run, plan, artifacts, deployment_host)
            self._deploy(run, plan, artifacts, cancel)
            if not self._cancelled(run, cancel):
                self._validate(run, plan, urls)
            run.fail_remaining(self.ctx.time.now(), CANCELLED_REASON)

            report = run.finish(
                completed_at=self.ctx.time.now(),
                component_filter=plan.component_filter,
                deployed_by=self.ctx.environ.get("USER", "unknown"),
                deployment_host=deployment_host,
                urls=urls,
                last_good_backup_id=last_good_backup_id,
            )
            write_report(self.ctx.paths.deployments_dir, report)

        self._announce(report)
        return report

    def _new_run(self, plan: DeploymentPlan) -> DeploymentRun:
        started_at = self.ctx.time.now()
        units = self.ctx.project.units
        return DeploymentRun(
            run_id=f"deploy_{plan.environment}_{started_at.strftime('%Y%m%d_%H%M%S_%f')}",
            environment=plan.environment,
            network=plan.network,
            units=[(name, units[name].component, units[name].required) for name in plan.order],
            started_at=started_at,
            dry_run=self.ctx.dry_run,
        )

    def _already_deployed(self, environment: str, network: str) -> set[str]:
        registered = set(self.ctx.registry.list_entries(network))
        history = deployed_units(self.ctx.paths.deployments_dir, environment)
        return registered | history

    def _cancelled(self, run: DeploymentRun, cancel: threading.Event) -> bool:
        if cancel.is_set() and not run.cancelled:
            logger.warning("Deployment %s cancelled", run.run_id)
            run.cancelled = True
            run.fail_remaining(self.ctx.time.now(), CANCELLED_REASON)
        return run.cancelled

    def _build_and_test(self, run: DeploymentRun, plan: DeploymentPlan) -> dict[str, Path]:
        """Build and test all units concurrently; return artifacts of tested units."""
        release = self.ctx.project.release
        self.ctx.feedback.info(
            f"Building and testing {len(plan.order)} unit(s) for {plan.environment}..."
        )
        futures: dict[str, Future[_StageOutcome]] = {}
        with ThreadPoolExecutor(max_workers=release.max_workers) as executor:
            for name in plan.order:
                futures[name] = executor.submit(self._build_and_test_one, name, plan.environment)

        artifacts: dict[str, Path] = {}
        # Apply transitions in plan order so histories are deterministic
        for name in plan.order:
            outcome = futures[name].result()
            now = self.ctx.time.now()
            if outcome.build is not None and outcome.build.exit_code == 0:
                run.transition(name, "built", now, str(outcome.build.artifact_path))
            if outcome.error is not None or outcome.build is None:
                error = outcome.error or "build produced no result"
                run.fail(name, now, error)
                self.ctx.feedback.error(f"✗ {name}: {error.splitlines()[0]}")
                continue
            run.transition(name, "tested", now)
            artifacts[name] = outcome.build.artifact_path
        return artifacts

    def _build_and_test_one(self, name: str, environment: str) -> _StageOutcome:
        unit = self.ctx.project.units[name]
        build: BuildResult | None = None
        try:
            build = self.ctx.toolchain.build(name, unit, environment)
            require_success("Build", name, build.exit_code, build.output)
            test = self.ctx.toolchain.test(name, unit, environment)
            require_success("Tests", name, test.exit_code, test.report)
        except ShipyardError as e:
            return _StageOutcome(name=name, build=build, test=None, error=e.message)
        return _StageOutcome(name=name, build=build, test=test, error=None)

    def _preflight(
        self,
        run: DeploymentRun,
        plan: DeploymentPlan,
        artifacts: dict[str, Path],
        deployment_host: str,
    ) -> None:
        ready = {name: path for name, path in artifacts.items() if run.status_of(name) == "tested"}
        result = run_preflight(
            self.ctx,
            environment=plan.environment,
            artifacts=ready,
            deployment_host=deployment_host,
        )
        run.warnings.extend(result.warnings)
        for warning in result.warnings:
            self.ctx.feedback.warning(f"⚠ {warning}")
        if result.passed:
            return
        reason = "pre-flight failed: " + "; ".join(result.errors)
        for error in result.errors:
            self.ctx.feedback.error(f"✗ {error}")
        run.fail_remaining(self.ctx.time.now(), reason)

    def _deploy(
        self,
        run: DeploymentRun,
        plan: DeploymentPlan,
        artifacts: dict[str, Path],
        cancel: threading.Event,
    ) -> None:
        units = self.ctx.project.units
        network = TOOLCHAIN_NETWORKS[plan.network]
        account = self._deploy_account(plan.environment)

        for name in plan.order:
            if self._cancelled(run, cancel):
                return
            if run.status_of(name) != "tested":
                continue
            unit = units[name]
            failed_deps = [
                dep
                for dep in unit.depends_on
                if dep in run.unit_names and run.status_of(dep) == "failed"
            ]
            if failed_deps:
                run.fail(name, self.ctx.time.now(), f"dependency failed: {', '.join(failed_deps)}")
                continue

            self.ctx.feedback.info(f"Deploying {name} to {network.name}...")
            try:
                result = self.ctx.toolchain.deploy(name, unit, artifacts[name], network, account)
                require_success("Deploy", name, result.exit_code, result.output)
                if not result.identifier:
                    raise ShipyardError(f"Deploy of {name} reported no identifier")
            except ShipyardError as e:
                run.fail(name, self.ctx.time.now(), e.message)
                self.ctx.feedback.error(f"✗ {name}: {e.message.splitlines()[0]}")
                continue

            # Recorded before registration so a rejected identifier still reaches the report.
            run.record_identifier(name, result.identifier)
            if unit.component == "contracts" and not self.ctx.dry_run:
                try:
                    self.ctx.registry.set(plan.network, name, result.identifier)
                except ShipyardError as e:
                    reason = f"Deployed as {result.identifier!r} but not registered: {e.message}"
                    run.fail(name, self.ctx.time.now(), reason)
                    self.ctx.feedback.error(f"✗ {name}: {reason.splitlines()[0]}")
                    continue
            run.transition(name, "deployed", self.ctx.time.now(), result.identifier)

    def _validate(self, run: DeploymentRun, plan: DeploymentPlan, urls: dict[str, str]) -> None:
        units = self.ctx.project.units
        for name in run.active("deployed"):
            url = health_url(units[name], urls)
            if url is not None and not self.ctx.dry_run:
                check = probe_unit(self.ctx, name, url)
                run.health.append(check)
                if not check.healthy:
                    warning = f"Health check failed for {name} at {url}: {check.detail}"
                    run.warnings.append(warning)
                    self.ctx.feedback.warning(f"⚠ {warning}")
            run.transition(name, "validated", self.ctx.time.now())

    def _deploy_account(self, environment: str) -> str:
        explicit = self.ctx.environ.get("SHIPYARD_DEPLOY_ACCOUNT")
        if explicit:
            return explicit
        try:
            configured = self.ctx.config_store.get(environment, "network.source_account")
        except ShipyardError as e:
            logger.debug("Using default deploy account: %s", e.message)
            return "default"
        return str(configured)

    def _announce(self, report: DeploymentReport) -> None:
        if report.status == "succeeded":
            self.ctx.feedback.success(f"✓ Deployment {report.run_id} succeeded")
        else:
            self.ctx.feedback.error(f"Deployment {report.run_id} {report.status}")
