"""Application context with dependency injection."""

import os
from collections.abc import Mapping
from dataclasses import dataclass, replace
from pathlib import Path
from types import MappingProxyType

from shipyard.core.backups import BackupStore
from shipyard.core.config_store.defaults import SecretFactory, generate_secret
from shipyard.core.config_store.store import ConfigStore
from shipyard.core.lock import WriteLock
from shipyard.core.probe.abc import Probe
from shipyard.core.probe.real import RealProbe
from shipyard.core.project import (
    ProjectConfig,
    ProjectPaths,
    discover_project_root,
    load_project_config,
)
from shipyard.core.registry.registry import ArtifactRegistry
from shipyard.core.time.abc import Time
from shipyard.core.time.real import RealTime
from shipyard.core.toolchain.abc import Toolchain
from shipyard.core.toolchain.dry_run import DryRunToolchain
from shipyard.core.toolchain.real import RealToolchain
from shipyard.core.user_feedback import InteractiveFeedback, SuppressedFeedback, UserFeedback
from shipyard.core.versions.manager import VersionManager


@dataclass(frozen=True)
class ShipyardContext:
    """Immutable context holding all dependencies for shipyard operations.

    Created once at the CLI entry point and threaded through every command.
    Environment variables are captured here as a read-only snapshot; nothing
    else in shipyard reads ``os.environ``.
    """

    project: ProjectConfig
    paths: ProjectPaths
    cwd: Path
    time: Time
    toolchain: Toolchain
    probe: Probe
    feedback: UserFeedback
    lock: WriteLock
    versions: VersionManager
    registry: ArtifactRegistry
    config_store: ConfigStore
    environ: Mapping[str, str]
    dry_run: bool

    @property
    def root(self) -> Path:
        return self.paths.root

    def with_dry_run(self) -> "ShipyardContext":
        """Same context with deploy side effects replaced by printed plans."""
        if self.dry_run:
            return self
        return replace(self, toolchain=DryRunToolchain(self.toolchain), dry_run=True)

    def with_machine_output(self) -> "ShipyardContext":
        """Same context with progress messages suppressed (for JSON output)."""
        return replace(self, feedback=SuppressedFeedback())

    @staticmethod
    def for_test(
        root: Path,
        project: ProjectConfig | None = None,
        time: Time | None = None,
        toolchain: Toolchain | None = None,
        probe: Probe | None = None,
        feedback: UserFeedback | None = None,
        environ: Mapping[str, str] | None = None,
        new_secret: SecretFactory | None = None,
        dry_run: bool = False,
    ) -> "ShipyardContext":
        """Create test context rooted at ``root`` with fakes for every integration.

        Args:
            root: Project root (usually pytest's tmp_path or an isolated filesystem)
            project: Project configuration. If None, uses built-in defaults.
            time: Optional Time implementation. If None, creates FakeTime.
            toolchain: Optional Toolchain. If None, creates FakeToolchain.
            probe: Optional Probe. If None, creates FakeProbe (everything healthy).
            feedback: Optional UserFeedback. If None, creates FakeUserFeedback.
            environ: Environment variables visible to the context. Defaults to empty.
            new_secret: Secret generator for config generation. Defaults to a counter.
            dry_run: Whether to wrap the toolchain in DryRunToolchain.

        Example:
            >>> toolchain = FakeToolchain(tmp_path, failing_builds={"frontend"})
            >>> ctx = ShipyardContext.for_test(tmp_path, toolchain=toolchain)
            >>> result = runner.invoke(cli, ["deploy", "dev"], obj=ctx)
        """
        from tests.fakes.probe import FakeProbe
        from tests.fakes.time import FakeTime
        from tests.fakes.toolchain import FakeToolchain
        from tests.fakes.user_feedback import FakeUserFeedback, counting_secret_factory

        if time is None:
            time = FakeTime()
        if toolchain is None:
            toolchain = FakeToolchain(root)
        if probe is None:
            probe = FakeProbe()
        if feedback is None:
            feedback = FakeUserFeedback()
        if new_secret is None:
            new_secret = counting_secret_factory()

        ctx = build_context(
            root=root,
            cwd=root,
            project=project or ProjectConfig(),
            time=time,
            toolchain=toolchain,
            probe=probe,
            feedback=feedback,
            environ=environ or {},
            new_secret=new_secret,
        )
        if dry_run:
            return ctx.with_dry_run()
        return ctx


def build_context(
    *,
    root: Path,
    cwd: Path,
    project: ProjectConfig,
    time: Time,
    toolchain: Toolchain,
    probe: Probe,
    feedback: UserFeedback,
    environ: Mapping[str, str],
    new_secret: SecretFactory = generate_secret,
) -> ShipyardContext:
    """Wire the subsystems of one project around shared integrations."""
    paths = ProjectPaths(root=root)
    frozen_environ = MappingProxyType(dict(environ))
    lock = WriteLock(paths.lock_file)
    versions = VersionManager(
        root=root,
        versions_file=paths.versions_file,
        changelog=paths.changelog,
        components=project.components,
        lock=lock,
        time=time,
    )
    registry = ArtifactRegistry(
        registry_dir=paths.registry_dir,
        backups=BackupStore(paths.backups_dir / "registry", "registry", time),
        lock=lock,
        time=time,
    )
    config_store = ConfigStore(
        config_dir=paths.config_dir,
        root=root,
        backups=BackupStore(paths.backups_dir / "config", "config", time),
        lock=lock,
        time=time,
        environ=frozen_environ,
        new_secret=new_secret,
    )
    return ShipyardContext(
        project=project,
        paths=paths,
        cwd=cwd,
        time=time,
        toolchain=toolchain,
        probe=probe,
        feedback=feedback,
        lock=lock,
        versions=versions,
        registry=registry,
        config_store=config_store,
        environ=frozen_environ,
        dry_run=False,
    )


def create_context(*, dry_run: bool) -> ShipyardContext:
    """Create production context with real implementations.

    Called at CLI entry point to create the context for the entire
    command execution.

    Args:
        dry_run: If True, wrap the toolchain with its DryRun variant

    Returns:
        ShipyardContext with real implementations, wrapped in dry-run
        wrappers if dry_run=True
    """
    cwd = Path.cwd()
    root = discover_project_root(cwd)
    project = load_project_config(root)
    ctx = build_context(
        root=root,
        cwd=cwd,
        project=project,
        time=RealTime(),
        toolchain=RealToolchain(root, timeout=project.release.stage_timeout_seconds),
        probe=RealProbe(),
        feedback=InteractiveFeedback(),
        environ=os.environ,
    )
    if dry_run:
        return ctx.with_dry_run()
    return ctx
