"""Tests for VersionManager: bumps, sync, compatibility and manifests."""

import itertools
import json
import tomllib
from pathlib import Path

import pytest

from shipyard.core.context import ShipyardContext
from shipyard.core.errors import InvalidConfig, InvalidVersion, NotFound
from shipyard.core.versions.manager import check_versions
from shipyard.core.versions.semver import SemVer
from tests.test_utils.project import write_manifests


def _recorded(root: Path) -> dict[str, str]:
    with (root / "versions.toml").open("rb") as f:
        return tomllib.load(f)["components"]


def test_get_version_falls_back_to_manifest(tmp_path: Path) -> None:
    """A component never recorded in versions.toml reports its manifest version."""
    write_manifests(tmp_path, frontend="2.4.1")
    ctx = ShipyardContext.for_test(tmp_path)

    assert ctx.versions.get_version("frontend") == SemVer(2, 4, 1)


def test_get_version_unknown_component(tmp_path: Path) -> None:
    """Unknown components raise NotFound."""
    ctx = ShipyardContext.for_test(tmp_path)

    with pytest.raises(NotFound, match="Unknown component 'mobile'"):
        ctx.versions.get_version("mobile")


def test_get_version_without_any_record(tmp_path: Path) -> None:
    """A known component with no record and no manifest raises NotFound."""
    ctx = ShipyardContext.for_test(tmp_path)

    with pytest.raises(NotFound, match="No version recorded"):
        ctx.versions.get_version("backend")


def test_patch_bump_twice_adds_two(tmp_path: Path) -> None:
    """Two patch bumps increase patch by exactly two and keep major.minor."""
    write_manifests(tmp_path, backend="1.2.1")
    ctx = ShipyardContext.for_test(tmp_path)

    ctx.versions.bump("backend", "patch")
    result = ctx.versions.bump("backend", "patch")

    assert result.previous == SemVer(1, 2, 2)
    assert result.version == SemVer(1, 2, 3)
    assert _recorded(tmp_path)["backend"] == "1.2.3"


def test_major_bump_resets_minor_and_patch(tmp_path: Path) -> None:
    """A major bump resets minor and patch to zero."""
    write_manifests(tmp_path, contracts="3.7.9")
    ctx = ShipyardContext.for_test(tmp_path)

    result = ctx.versions.bump("contracts", "major")

    assert result.version == SemVer(4, 0, 0)


def test_minor_bump_resets_patch(tmp_path: Path) -> None:
    """A minor bump resets patch to zero."""
    write_manifests(tmp_path, frontend="1.2.7")
    ctx = ShipyardContext.for_test(tmp_path)

    assert ctx.versions.bump("frontend", "minor").version == SemVer(1, 3, 0)


def test_bump_rewrites_manifests(tmp_path: Path) -> None:
    """Bumping rewrites package.json and Cargo.toml version fields in place."""
    write_manifests(tmp_path)
    ctx = ShipyardContext.for_test(tmp_path)

    ctx.versions.bump("frontend", "patch")
    ctx.versions.bump("backend", "minor")

    package = json.loads((tmp_path / "frontend" / "package.json").read_text(encoding="utf-8"))
    assert package["version"] == "1.2.1"
    assert package["name"] == "frontend"
    cargo = (tmp_path / "backend" / "Cargo.toml").read_text(encoding="utf-8")
    assert 'version = "1.3.0"' in cargo
    assert cargo.startswith("# backend crate\n")


def test_bump_appends_changelog_entry(tmp_path: Path) -> None:
    """Each bump appends an entry with the previous version and change type."""
    write_manifests(tmp_path)
    ctx = ShipyardContext.for_test(tmp_path)

    ctx.versions.bump("contracts", "major", "New reserve model.")

    changelog = (tmp_path / "CHANGELOG.md").read_text(encoding="utf-8")
    assert changelog.startswith("# Changelog")
    assert "## [contracts v2.0.0]" in changelog
    assert "### Major" in changelog
    assert "New reserve model." in changelog
    assert "**Previous version:** 1.2.0" in changelog
    assert "**Breaking changes:** Yes" in changelog


def test_bump_reports_incompatibility_without_failing(tmp_path: Path) -> None:
    """Diverging major.minor after a bump is reported, not raised."""
    write_manifests(tmp_path)
    ctx = ShipyardContext.for_test(tmp_path)

    result = ctx.versions.bump("backend", "minor")

    assert result.compatibility.compatible is False
    assert result.compatibility.per_component["backend"] == (1, 3)
    assert "INCOMPATIBLE" in (tmp_path / "CHANGELOG.md").read_text(encoding="utf-8")


def test_bump_with_malformed_recorded_version_writes_nothing(tmp_path: Path) -> None:
    """A malformed recorded version fails with InvalidVersion and no writes."""
    (tmp_path / "versions.toml").write_text(
        '[components]\nfrontend = "1.two.0"\n', encoding="utf-8"
    )
    ctx = ShipyardContext.for_test(tmp_path)

    with pytest.raises(InvalidVersion):
        ctx.versions.bump("frontend", "patch")

    assert (tmp_path / "versions.toml").read_text(encoding="utf-8") == (
        '[components]\nfrontend = "1.two.0"\n'
    )
    assert not (tmp_path / "CHANGELOG.md").exists()


RECORDED = '[components]\nfrontend = "1.2.0"\nbackend = "1.2.0"\ncontracts = "1.2.0"\n'


def test_bump_with_unparseable_package_json_writes_nothing(tmp_path: Path) -> None:
    """A broken manifest is found before versions.toml is rewritten."""
    write_manifests(tmp_path)
    (tmp_path / "versions.toml").write_text(RECORDED, encoding="utf-8")
    (tmp_path / "frontend" / "package.json").write_text('{"name": "frontend",', encoding="utf-8")
    ctx = ShipyardContext.for_test(tmp_path)

    with pytest.raises(InvalidConfig, match="Cannot parse"):
        ctx.versions.bump("frontend", "patch")

    assert (tmp_path / "versions.toml").read_text(encoding="utf-8") == RECORDED
    assert not (tmp_path / "CHANGELOG.md").exists()


def test_bump_with_cargo_manifest_lacking_package_writes_nothing(tmp_path: Path) -> None:
    """A Cargo.toml with no [package] table leaves versions.toml untouched."""
    write_manifests(tmp_path)
    (tmp_path / "versions.toml").write_text(RECORDED, encoding="utf-8")
    (tmp_path / "backend" / "Cargo.toml").write_text(
        '[workspace]\nmembers = ["api"]\n', encoding="utf-8"
    )
    ctx = ShipyardContext.for_test(tmp_path)

    with pytest.raises(InvalidConfig, match=r"no \[package\] table"):
        ctx.versions.bump("backend", "minor")

    assert (tmp_path / "versions.toml").read_text(encoding="utf-8") == RECORDED
    assert not (tmp_path / "CHANGELOG.md").exists()


def test_sync_repairs_malformed_recorded_version(tmp_path: Path) -> None:
    """A hand-edited entry that is not semver is overwritten like any drift."""
    write_manifests(tmp_path)
    (tmp_path / "versions.toml").write_text(
        '[components]\nfrontend = "1.2"\nbackend = "1.2.0"\ncontracts = "1.2.0"\n',
        encoding="utf-8",
    )
    ctx = ShipyardContext.for_test(tmp_path)

    result = ctx.versions.sync("1.2.0")

    assert result.changed == {"frontend": (None, SemVer(1, 2, 0))}
    assert _recorded(tmp_path) == {
        "frontend": "1.2.0",
        "backend": "1.2.0",
        "contracts": "1.2.0",
    }
    assert ctx.versions.check_compatibility().compatible is True


def test_sync_rejects_malformed_target(tmp_path: Path) -> None:
    """sync validates the target before touching anything."""
    write_manifests(tmp_path)
    ctx = ShipyardContext.for_test(tmp_path)

    with pytest.raises(InvalidVersion):
        ctx.versions.sync("1.2")

    assert not (tmp_path / "versions.toml").exists()


def test_drifted_versions_realigned_by_sync(tmp_path: Path) -> None:
    """frontend=1.2.0, backend=1.2.1, contracts=1.1.0 is incompatible until synced."""
    write_manifests(tmp_path, frontend="1.2.0", backend="1.2.1", contracts="1.1.0")
    ctx = ShipyardContext.for_test(tmp_path)

    before = ctx.versions.check_compatibility()
    assert before.compatible is False
    assert before.per_component == {
        "frontend": (1, 2),
        "backend": (1, 2),
        "contracts": (1, 1),
    }

    result = ctx.versions.sync("1.2.0")

    after = ctx.versions.check_compatibility()
    assert after.compatible is True
    assert {name: str(version) for name, version in after.versions.items()} == {
        "frontend": "1.2.0",
        "backend": "1.2.0",
        "contracts": "1.2.0",
    }
    assert result.downgraded == ["backend"]
    assert set(result.changed) == {"backend", "contracts"}


def test_sync_allows_downgrade_and_reports_it(tmp_path: Path) -> None:
    """Syncing below the current versions succeeds and lists every downgrade."""
    write_manifests(tmp_path, frontend="2.0.0", backend="2.0.0", contracts="2.0.0")
    ctx = ShipyardContext.for_test(tmp_path)

    result = ctx.versions.sync("1.5.0")

    assert result.downgraded == ["frontend", "backend", "contracts"]
    assert _recorded(tmp_path) == {
        "frontend": "1.5.0",
        "backend": "1.5.0",
        "contracts": "1.5.0",
    }


def test_sync_writes_one_changelog_entry_per_changed_component(tmp_path: Path) -> None:
    """Components already at the target get no changelog entry."""
    write_manifests(tmp_path, frontend="1.3.0", backend="1.2.0", contracts="1.2.0")
    ctx = ShipyardContext.for_test(tmp_path)

    ctx.versions.sync("1.3.0")

    changelog = (tmp_path / "CHANGELOG.md").read_text(encoding="utf-8")
    assert changelog.count("### Sync") == 2
    assert "[frontend v1.3.0]" not in changelog


def test_check_compatibility_does_not_write(tmp_path: Path) -> None:
    """check_compatibility is a pure read."""
    write_manifests(tmp_path)
    ctx = ShipyardContext.for_test(tmp_path)

    ctx.versions.check_compatibility()

    assert not (tmp_path / "versions.toml").exists()
    assert not (tmp_path / "CHANGELOG.md").exists()


def test_compatibility_is_order_independent() -> None:
    """Compatibility depends only on the set of major.minor lines, not on order."""
    versions = {
        "frontend": SemVer(1, 2, 0),
        "backend": SemVer(1, 2, 9),
        "contracts": SemVer(1, 3, 0),
    }
    for permutation in itertools.permutations(versions.items()):
        assert check_versions(dict(permutation)).compatible is False

    aligned = {name: SemVer(1, 2, index) for index, name in enumerate(versions)}
    for permutation in itertools.permutations(aligned.items()):
        assert check_versions(dict(permutation)).compatible is True


def test_validate_manifests_reports_drift_and_missing(tmp_path: Path) -> None:
    """Manifests that disagree with versions.toml or are missing are reported."""
    write_manifests(tmp_path)
    ctx = ShipyardContext.for_test(tmp_path)
    ctx.versions.sync("1.2.0")
    (tmp_path / "frontend" / "package.json").write_text(
        json.dumps({"name": "frontend", "version": "1.9.0"}), encoding="utf-8"
    )
    (tmp_path / "soroban" / "Cargo.toml").unlink()

    issues = {issue.component: issue.message for issue in ctx.versions.validate_manifests()}

    assert "1.9.0" in issues["frontend"]
    assert "Manifest not found" in issues["contracts"]
    assert "backend" not in issues


def test_semver_parse_accepts_leading_v() -> None:
    """A leading v is tolerated; anything else non-numeric is rejected."""
    assert SemVer.parse("v1.2.3") == SemVer(1, 2, 3)
    for bad in ("1.2", "1.2.3.4", "01.2.3", "1.2.x", ""):
        with pytest.raises(InvalidVersion):
            SemVer.parse(bad)
