"""Tests for atomic document writes."""

import json
import stat
from pathlib import Path

import pytest

from shipyard.core.atomic import atomic_write_json, atomic_write_text, dump_json


def test_atomic_write_creates_parents_and_replaces(tmp_path: Path) -> None:
    """Parent directories are created and existing content is replaced."""
    path = tmp_path / "nested" / "dir" / "doc.json"

    atomic_write_text(path, "first\n")
    atomic_write_text(path, "second\n")

    assert path.read_text(encoding="utf-8") == "second\n"
    assert [p.name for p in path.parent.iterdir()] == ["doc.json"]


def test_atomic_write_applies_mode(tmp_path: Path) -> None:
    """The requested mode is in place once the document is visible."""
    path = tmp_path / "secret.toml"

    atomic_write_text(path, "key = 1\n", mode=0o600)

    assert stat.S_IMODE(path.stat().st_mode) == 0o600


def test_failed_write_leaves_original_and_no_temp_files(tmp_path: Path) -> None:
    """If serialization fails the original document is untouched."""
    path = tmp_path / "doc.json"
    atomic_write_json(path, {"a": 1})

    with pytest.raises(TypeError):
        atomic_write_json(path, {"a": object()})

    assert json.loads(path.read_text(encoding="utf-8")) == {"a": 1}
    assert [p.name for p in tmp_path.iterdir()] == ["doc.json"]


def test_dump_json_is_canonical() -> None:
    """Keys are sorted, output is indented and newline-terminated."""
    assert dump_json({"b": 1, "a": [1, 2]}) == '{\n  "a": [\n    1,\n    2\n  ],\n  "b": 1\n}\n'
