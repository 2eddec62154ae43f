"""Tests for the validate-release command."""

import json
from pathlib import Path

from click.testing import CliRunner

from shipyard.cli.cli import cli
from shipyard.core.context import ShipyardContext
from shipyard.core.project import ProjectConfig, ReleaseConfig
from tests.fakes.toolchain import FakeToolchain
from tests.test_utils.project import prepare_prod_config, prod_environ, write_manifests


def _ready_context(tmp_path: Path, toolchain: FakeToolchain | None = None) -> ShipyardContext:
    write_manifests(tmp_path)
    ctx = ShipyardContext.for_test(
        tmp_path,
        project=ProjectConfig(release=ReleaseConfig(code_quality_commands=[["ruff", "check"]])),
        toolchain=toolchain or FakeToolchain(tmp_path),
        environ=prod_environ(),
    )
    ctx.config_store.generate("dev")
    ctx.config_store.generate("staging")
    prepare_prod_config(ctx)
    return ctx


def test_release_may_proceed(tmp_path: Path) -> None:
    """A clean project passes and names the written report."""
    ctx = _ready_context(tmp_path)

    result = CliRunner().invoke(cli, ["validate-release", "1.2.0"], obj=ctx)

    assert result.exit_code == 0, result.output
    assert "✓ Release may proceed" in result.output
    assert "RELEASE_VALIDATION_REPORT_v1.2.0.md" in result.output


def test_blocking_failure_exits_1(tmp_path: Path) -> None:
    """A failed lint command blocks the release."""
    toolchain = FakeToolchain(tmp_path, check_exit_codes={"ruff check": 1})
    ctx = _ready_context(tmp_path, toolchain=toolchain)

    result = CliRunner().invoke(cli, ["validate-release", "--only", "code_quality"], obj=ctx)

    assert result.exit_code == 1
    assert "✗ Release is blocked" in result.output


def test_json_output(tmp_path: Path) -> None:
    """JSON output carries each category's findings."""
    toolchain = FakeToolchain(tmp_path, failing_tests={"frontend"})
    ctx = _ready_context(tmp_path, toolchain=toolchain)

    result = CliRunner().invoke(
        cli,
        ["validate-release", "1.2.0", "--only", "tests", "-e", "staging", "--format", "json"],
        obj=ctx,
    )

    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["passed"] is True
    assert payload["environment"] == "staging"
    assert payload["report_path"].endswith("RELEASE_VALIDATION_REPORT_v1.2.0.md")
    [tests] = payload["categories"]
    assert tests["category"] == "tests"
    assert tests["status"] == "warn"
    assert tests["downgraded"] is True
    assert tests["failures"] == ["frontend: tests exited with 1"]


def test_unknown_category_is_a_usage_error(tmp_path: Path) -> None:
    """--only is restricted to the known categories."""
    ctx = ShipyardContext.for_test(tmp_path)

    result = CliRunner().invoke(cli, ["validate-release", "--only", "style"], obj=ctx)

    assert result.exit_code == 2
