"""Tests for project discovery and shipyard.toml loading."""

from pathlib import Path

import pytest

from shipyard.core.errors import InvalidConfig
from shipyard.core.project import (
    ReleaseConfig,
    discover_project_root,
    load_project_config,
    network_for,
    normalize_environment,
)


def test_environment_aliases() -> None:
    """Aliases map to canonical names, case-insensitively."""
    assert normalize_environment("Production") == "prod"
    assert normalize_environment("development") == "dev"
    assert normalize_environment("stage") == "staging"
    assert network_for("staging") == "test"


def test_unknown_environment() -> None:
    """Unknown names list the valid environments."""
    with pytest.raises(InvalidConfig, match="expected one of: dev, staging, prod"):
        normalize_environment("qa")


def test_discover_walks_up_to_project_file(tmp_path: Path) -> None:
    """The nearest ancestor with shipyard.toml is the project root."""
    (tmp_path / "shipyard.toml").write_text("", encoding="utf-8")
    nested = tmp_path / "frontend" / "src"
    nested.mkdir(parents=True)

    assert discover_project_root(nested) == tmp_path.resolve()


def test_discover_falls_back_to_start(tmp_path: Path) -> None:
    """Without a project file the starting directory is used."""
    assert discover_project_root(tmp_path) == tmp_path.resolve()


def test_missing_project_file_uses_defaults(tmp_path: Path) -> None:
    """Defaults declare three components and the contract graph."""
    project = load_project_config(tmp_path)

    assert list(project.components) == ["frontend", "backend", "contracts"]
    assert project.units["istsi_token"].depends_on == ["kyc_registry", "reserve_manager"]
    assert project.units["integration_router"].required is False
    assert project.release.max_workers == 4


def test_release_section_is_loaded(tmp_path: Path) -> None:
    """[release] settings override the defaults they name."""
    (tmp_path / "shipyard.toml").write_text(
        "[release]\n"
        "max_workers = 2\n"
        'code_quality_commands = [["ruff", "check", "."]]\n'
        "[release.blocking_by_environment]\n"
        'prod = ["code_quality", "tests", "deployment_readiness"]\n',
        encoding="utf-8",
    )

    release = load_project_config(tmp_path).release

    assert release.max_workers == 2
    assert release.code_quality_commands == [["ruff", "check", "."]]
    assert release.blocking_for("prod") == {"code_quality", "tests", "deployment_readiness"}
    assert release.blocking_for("staging") == {"code_quality", "deployment_readiness"}


def test_unparseable_project_file(tmp_path: Path) -> None:
    """TOML syntax errors become InvalidConfig."""
    (tmp_path / "shipyard.toml").write_text("[release\n", encoding="utf-8")

    with pytest.raises(InvalidConfig, match="Cannot parse"):
        load_project_config(tmp_path)


def test_unknown_keys_are_rejected(tmp_path: Path) -> None:
    """Typos in shipyard.toml are reported rather than ignored."""
    (tmp_path / "shipyard.toml").write_text("[release]\nmax_worker = 2\n", encoding="utf-8")

    with pytest.raises(InvalidConfig, match="Invalid"):
        load_project_config(tmp_path)


def test_blocking_defaults() -> None:
    """Without overrides only code quality and readiness block."""
    assert ReleaseConfig().blocking_for(None) == {"code_quality", "deployment_readiness"}


def _write_unit(root: Path, deploy: str) -> None:
    (root / "shipyard.toml").write_text(
        "[units.token]\n"
        'component = "contracts"\n'
        'artifact = "token.wasm"\n'
        f"deploy = {deploy}\n",
        encoding="utf-8",
    )


def test_unknown_deploy_placeholder_is_rejected_at_load(tmp_path: Path) -> None:
    """A raw JSON argument reads as a placeholder and fails when the file loads."""
    _write_unit(tmp_path, """["stellar", "contract", "invoke", '{"fee": 100}']""")

    with pytest.raises(InvalidConfig, match="unknown placeholder"):
        load_project_config(tmp_path)


def test_unbalanced_brace_in_deploy_argument_is_rejected(tmp_path: Path) -> None:
    """A lone closing brace cannot be formatted and is reported at load."""
    _write_unit(tmp_path, """["deploy.sh", "{artifact}}"]""")

    with pytest.raises(InvalidConfig, match="malformed deploy argument"):
        load_project_config(tmp_path)


def test_escaped_braces_and_known_placeholders_load(tmp_path: Path) -> None:
    """Doubled braces and the four supported placeholders are accepted."""
    _write_unit(
        tmp_path,
        """["deploy.sh", "{artifact}", "{network}", "{rpc_url}", "{account}", '{{"fee": 100}}']""",
    )

    unit = load_project_config(tmp_path).units["token"]

    assert unit.deploy[-1] == '{{"fee": 100}}'


def test_unknown_health_url_placeholder_is_rejected(tmp_path: Path) -> None:
    """health_url may only name the frontend and backend URLs."""
    (tmp_path / "shipyard.toml").write_text(
        "[units.api]\n"
        'component = "backend"\n'
        'artifact = "api"\n'
        'health_url = "{api_url}/health"\n',
        encoding="utf-8",
    )

    with pytest.raises(InvalidConfig, match="unknown placeholder"):
        load_project_config(tmp_path)
