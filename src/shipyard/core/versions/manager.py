"""Per-component semantic versions and cross-component compatibility."""

import logging
import tomllib
from dataclasses import dataclass
from pathlib import Path

import tomlkit

from shipyard.core.atomic import atomic_write_text
from shipyard.core.errors import InvalidConfig, InvalidVersion, NotFound
from shipyard.core.lock import WriteLock
from shipyard.core.project import ComponentConfig
from shipyard.core.time.abc import Time
from shipyard.core.versions.changelog import ChangelogEntry, append_entries
from shipyard.core.versions.manifests import read_manifest_version, render_manifest_version
from shipyard.core.versions.semver import INCREMENT_KINDS, IncrementKind, SemVer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompatibilityReport:
    """Result of comparing (major, minor) across all recorded components."""

    compatible: bool
    per_component: dict[str, tuple[int, int]]
    versions: dict[str, SemVer]


@dataclass(frozen=True)
class BumpResult:
    component: str
    previous: SemVer
    version: SemVer
    compatibility: CompatibilityReport


@dataclass(frozen=True)
class SyncResult:
    target: SemVer
    changed: dict[str, tuple[SemVer | None, SemVer]]
    downgraded: list[str]


@dataclass(frozen=True)
class ManifestIssue:
    component: str
    message: str


def check_versions(versions: dict[str, SemVer]) -> CompatibilityReport:
    """Compatible iff every component shares the same (major, minor)."""
    per_component = {component: version.line for component, version in versions.items()}
    compatible = len(set(per_component.values())) <= 1
    return CompatibilityReport(
        compatible=compatible, per_component=per_component, versions=dict(versions)
    )


class VersionManager:
    """Tracks one semantic version per component in ``versions.toml``.

    Mutations (bump, sync) validate every input before touching disk, then
    write the versions file, the affected manifests and the changelog.
    """

    def __init__(
        self,
        *,
        root: Path,
        versions_file: Path,
        changelog: Path,
        components: dict[str, ComponentConfig],
        lock: WriteLock,
        time: Time,
    ) -> None:
        self.root = root
        self.versions_file = versions_file
        self.changelog = changelog
        self.components = components
        self.lock = lock
        self.time = time

    def get_version(self, component: str) -> SemVer:
        """Current recorded version of ``component``.

        Falls back to the manifest version for a component that has never been
        recorded in ``versions.toml``.

        Raises:
            NotFound: If the component is unknown or has no version anywhere
            InvalidVersion: If the recorded version is malformed
        """
        self._ensure_known(component)
        recorded = self._load_recorded()
        if component in recorded:
            return SemVer.parse(recorded[component])

        manifest_version = self._manifest_version(component)
        if manifest_version is None:
            raise NotFound(
                f"No version recorded for component '{component}'. "
                "Run 'shipyard version sync <version>' to initialize it."
            )
        return SemVer.parse(manifest_version)

    def all_versions(self) -> dict[str, SemVer]:
        """Versions of every component that has one, in declaration order."""
        versions: dict[str, SemVer] = {}
        for component in self.components:
            try:
                versions[component] = self.get_version(component)
            except NotFound:
                logger.debug("Component %s has no version yet", component)
        return versions

    def bump(
        self, component: str, kind: IncrementKind, description: str | None = None
    ) -> BumpResult:
        """Increment ``component`` by ``kind`` and record a changelog entry.

        Divergent (major, minor) afterwards is reported as a warning in the
        returned compatibility report, never as an error.
        """
        if kind not in INCREMENT_KINDS:
            raise InvalidVersion(
                f"Unknown increment kind '{kind}' (expected major, minor or patch)"
            )

        with self.lock.hold(f"version bump {component} {kind}"):
            previous = self.get_version(component)
            new_version = previous.bump(kind)

            versions = self.all_versions()
            versions[component] = new_version
            compatibility = check_versions(versions)
            manifests = self._render_manifests([component], new_version)

            self._write_recorded({name: str(version) for name, version in versions.items()})
            self._write_manifests(manifests)
            append_entries(
                self.changelog,
                [
                    ChangelogEntry(
                        component=component,
                        version=str(new_version),
                        previous_version=str(previous),
                        change_type=kind.capitalize(),
                        description=description
                        or f"{kind.capitalize()} version bump of {component}.",
                        timestamp=self.time.now(),
                        compatible=compatibility.compatible,
                    )
                ],
            )

        logger.debug("Bumped %s from %s to %s", component, previous, new_version)
        if not compatibility.compatible:
            logger.warning(
                "Components are no longer compatible after bumping %s to %s: %s",
                component,
                new_version,
                _describe_lines(compatibility),
            )
        return BumpResult(
            component=component, previous=previous, version=new_version, compatibility=compatibility
        )

    def sync(self, target_version: str) -> SyncResult:
        """Force every component to ``target_version``.

        Non-monotonic jumps are allowed so an emergency rollback can realign
        components onto an older release line; each downgrade is logged.
        """
        target = SemVer.parse(target_version)

        with self.lock.hold(f"version sync {target}"):
            current = self._previous_versions()
            changed: dict[str, tuple[SemVer | None, SemVer]] = {}
            downgraded: list[str] = []
            for component in self.components:
                previous = current.get(component)
                if previous == target:
                    continue
                changed[component] = (previous, target)
                if previous is not None and target < previous:
                    downgraded.append(component)
                    logger.warning("Sync downgrades %s from %s to %s", component, previous, target)

            manifests = self._render_manifests(list(changed), target)

            self._write_recorded({component: str(target) for component in self.components})
            self._write_manifests(manifests)
            timestamp = self.time.now()
            append_entries(
                self.changelog,
                [
                    ChangelogEntry(
                        component=component,
                        version=str(target),
                        previous_version=None if previous is None else str(previous),
                        change_type="Sync",
                        description=f"Synchronized {component} to {target}.",
                        timestamp=timestamp,
                        compatible=True,
                    )
                    for component, (previous, _) in changed.items()
                ],
            )

        return SyncResult(target=target, changed=changed, downgraded=downgraded)

    def check_compatibility(self) -> CompatibilityReport:
        """Compare (major, minor) of every recorded component. Never mutates."""
        return check_versions(self.all_versions())

    def validate_manifests(self) -> list[ManifestIssue]:
        """Report missing manifests and manifest versions that disagree with the record."""
        issues: list[ManifestIssue] = []
        recorded = self._load_recorded()
        for component, config in self.components.items():
            path = config.manifest_path(self.root)
            if path is None:
                continue
            if not path.exists():
                issues.append(ManifestIssue(component, f"Manifest not found: {path}"))
                continue
            try:
                manifest_version = read_manifest_version(path)
            except InvalidConfig as e:
                issues.append(ManifestIssue(component, e.message))
                continue
            expected = recorded.get(component)
            if expected is not None and manifest_version != expected:
                issues.append(
                    ManifestIssue(
                        component,
                        f"{path.name} declares {manifest_version}, "
                        f"versions.toml records {expected}",
                    )
                )
        return issues

    def _ensure_known(self, component: str) -> None:
        if component not in self.components:
            known = ", ".join(self.components)
            raise NotFound(f"Unknown component '{component}' (known: {known})")

    def _manifest_version(self, component: str) -> str | None:
        path = self.components[component].manifest_path(self.root)
        if path is None or not path.exists():
            return None
        return read_manifest_version(path)

    def _previous_versions(self) -> dict[str, SemVer | None]:
        previous: dict[str, SemVer | None] = {}
        for component in self.components:
            try:
                previous[component] = self.get_version(component)
            except (NotFound, InvalidVersion) as e:
                logger.debug("Treating %s as unversioned: %s", component, e.message)
                previous[component] = None
        return previous

    def _render_manifests(self, components: list[str], version: SemVer) -> dict[Path, str]:
        """Updated text of each affected manifest, computed before anything is written."""
        rendered: dict[Path, str] = {}
        for component in components:
            path = self.components[component].manifest_path(self.root)
            if path is None or not path.exists():
                logger.debug("No manifest to update for %s", component)
                continue
            rendered[path] = render_manifest_version(path, str(version))
        return rendered

    def _write_manifests(self, rendered: dict[Path, str]) -> None:
        for path, text in rendered.items():
            atomic_write_text(path, text)
            logger.debug("Updated %s", path)

    def _load_recorded(self) -> dict[str, str]:
        if not self.versions_file.exists():
            return {}
        try:
            with self.versions_file.open("rb") as f:
                data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise InvalidConfig(f"Cannot parse {self.versions_file}: {e}") from e
        return {str(name): str(value) for name, value in data.get("components", {}).items()}

    def _write_recorded(self, versions: dict[str, str]) -> None:
        if self.versions_file.exists():
            doc = tomlkit.parse(self.versions_file.read_text(encoding="utf-8"))
        else:
            doc = tomlkit.document()
            doc.add(tomlkit.comment("Managed by shipyard; edit with 'shipyard version'"))
        if "components" not in doc:
            doc["components"] = tomlkit.table()
        table = doc["components"]
        for component, version in versions.items():
            table[component] = version
        atomic_write_text(self.versions_file, tomlkit.dumps(doc))


def _describe_lines(report: CompatibilityReport) -> str:
    return ", ".join(
        f"{component}={major}.{minor}" for component, (major, minor) in report.per_component.items()
    )
