"""Tests for the registry command group."""

import json
from pathlib import Path

from click.testing import CliRunner

from shipyard.cli.cli import cli
from shipyard.core.context import ShipyardContext
from tests.test_utils.project import ADDRESS_1, ADDRESS_2, ADDRESS_3


def test_set_get_list(tmp_path: Path) -> None:
    """set registers an identifier that get and list then show."""
    ctx = ShipyardContext.for_test(tmp_path)
    runner = CliRunner()

    set_result = runner.invoke(cli, ["registry", "set", "test", "token", ADDRESS_1], obj=ctx)
    get_result = runner.invoke(cli, ["registry", "get", "test", "token"], obj=ctx)
    list_result = runner.invoke(cli, ["registry", "list", "test", "--format", "json"], obj=ctx)

    assert set_result.exit_code == 0, set_result.output
    assert "✓ Registered token on test" in set_result.output
    assert "Backup: registry_test_" in set_result.output
    assert get_result.stdout == f"{ADDRESS_1}\n"
    assert json.loads(list_result.stdout) == {"network": "test", "contracts": {"token": ADDRESS_1}}


def test_invalid_identifier_shows_last_good_backup(tmp_path: Path) -> None:
    """A rejected set names the backup to restore from."""
    ctx = ShipyardContext.for_test(tmp_path)
    first = ctx.registry.set("test", "token", ADDRESS_1)

    result = CliRunner().invoke(cli, ["registry", "set", "test", "token", "ADDR2"], obj=ctx)

    assert result.exit_code == 1
    assert "Error: Invalid identifier for 'token' on network 'test'" in result.output
    assert f"Last good backup: {first.backup.id}" in result.output
    assert f"Restore with: shipyard registry restore {first.backup.id}" in result.output
    assert ctx.registry.get("test", "token") == ADDRESS_1


def test_unknown_network_is_a_usage_error(tmp_path: Path) -> None:
    """Networks are a closed set checked by the command line parser."""
    ctx = ShipyardContext.for_test(tmp_path)

    result = CliRunner().invoke(cli, ["registry", "list", "staging"], obj=ctx)

    assert result.exit_code == 2


def test_restore_scenario(tmp_path: Path) -> None:
    """set, set, restore the newest backup: the first identifier is back."""
    ctx = ShipyardContext.for_test(tmp_path)
    runner = CliRunner()
    runner.invoke(cli, ["registry", "set", "test", "token", ADDRESS_1], obj=ctx)
    runner.invoke(cli, ["registry", "set", "test", "token", ADDRESS_2], obj=ctx)
    newest = ctx.registry.list_backups("test")[0].id

    result = runner.invoke(cli, ["registry", "restore", newest], obj=ctx)

    assert result.exit_code == 0, result.output
    assert f"✓ Restored test registry from {newest}" in result.output
    assert ctx.registry.get("test", "token") == ADDRESS_1


def test_remove_missing_entry(tmp_path: Path) -> None:
    """Removing an unknown name exits 1 without a backup."""
    ctx = ShipyardContext.for_test(tmp_path)

    result = CliRunner().invoke(cli, ["registry", "remove", "main", "token"], obj=ctx)

    assert result.exit_code == 1
    assert "No registry entry 'token' on network 'main'" in result.output
    assert ctx.registry.list_backups() == []


def test_merge_from_file(tmp_path: Path) -> None:
    """merge reads a registry document and merges it in."""
    ctx = ShipyardContext.for_test(tmp_path)
    ctx.registry.set("test", "token", ADDRESS_1)
    source = tmp_path / "incoming.json"
    source.write_text(
        json.dumps({"network": "test", "contracts": {"router": ADDRESS_3}}), encoding="utf-8"
    )

    result = CliRunner().invoke(cli, ["registry", "merge", "test", str(source)], obj=ctx)

    assert result.exit_code == 0, result.output
    assert "✓ Merged 1 entries into test" in result.output
    assert ctx.registry.list_entries("test") == {"router": ADDRESS_3, "token": ADDRESS_1}


def test_export_key_value(tmp_path: Path) -> None:
    """export writes shell assignments to stdout."""
    ctx = ShipyardContext.for_test(tmp_path)
    ctx.registry.set("main", "istsi_token", ADDRESS_2)

    result = CliRunner().invoke(cli, ["registry", "export", "main", "-f", "key-value"], obj=ctx)

    assert result.exit_code == 0, result.output
    assert result.stdout == f"export ISTSI_TOKEN_CONTRACT={ADDRESS_2}\n"


def test_validate(tmp_path: Path) -> None:
    """validate exits 1 for hand-edited invalid entries."""
    ctx = ShipyardContext.for_test(tmp_path)
    ctx.registry.set("test", "token", ADDRESS_1)
    path = ctx.registry.document_path("test")
    data = json.loads(path.read_text(encoding="utf-8"))
    data["contracts"]["router"] = "bogus"
    path.write_text(json.dumps(data), encoding="utf-8")

    result = CliRunner().invoke(cli, ["registry", "validate", "test"], obj=ctx)

    assert result.exit_code == 1
    assert "router" in result.output


def test_backups_listing(tmp_path: Path) -> None:
    """backups prints a table of registry backups."""
    ctx = ShipyardContext.for_test(tmp_path)
    runner = CliRunner()

    empty = runner.invoke(cli, ["registry", "backups"], obj=ctx)
    ctx.registry.set("dev", "token", ADDRESS_1)
    listed = runner.invoke(cli, ["registry", "backups", "dev"], obj=ctx)

    assert "No registry backups" in empty.output
    assert listed.exit_code == 0, listed.output
    assert "Registry backups" in listed.output


def test_merge_of_empty_document_is_refused(tmp_path: Path) -> None:
    """A merge source without entries is rejected before any backup."""
    ctx = ShipyardContext.for_test(tmp_path)
    source = tmp_path / "empty.json"
    source.write_text(json.dumps({"network": "test"}), encoding="utf-8")

    result = CliRunner().invoke(cli, ["registry", "merge", "test", str(source)], obj=ctx)

    assert result.exit_code == 1
    assert "has no contract entries to merge" in result.output
    assert ctx.registry.list_backups() == []
