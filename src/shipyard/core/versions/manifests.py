"""Read and rewrite the version field of component package manifests."""

import json
import tomllib
from pathlib import Path
from typing import Any

import tomlkit

from shipyard.core.errors import InvalidConfig


def _load_package_json(path: Path, text: str) -> dict[str, Any]:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise InvalidConfig(f"Cannot parse {path}: {e}") from e
    if not isinstance(data, dict):
        raise InvalidConfig(f"{path} must contain a JSON object")
    return data


def _load_cargo_toml(path: Path, text: str) -> dict[str, Any]:
    try:
        return tomllib.loads(text)
    except tomllib.TOMLDecodeError as e:
        raise InvalidConfig(f"Cannot parse {path}: {e}") from e


def read_manifest_version(path: Path) -> str | None:
    """Return the version declared in a ``package.json`` or ``Cargo.toml``.

    Returns None when the manifest declares no version.

    Raises:
        InvalidConfig: If the manifest cannot be parsed
    """
    text = path.read_text(encoding="utf-8")
    if path.name == "package.json":
        version = _load_package_json(path, text).get("version")
        return None if version is None else str(version)

    package = _load_cargo_toml(path, text).get("package")
    if not isinstance(package, dict) or "version" not in package:
        return None
    return str(package["version"])


def render_manifest_version(path: Path, version: str) -> str:
    """Return the manifest text with only its version field changed.

    Nothing is written, so callers can check every manifest before touching disk.

    Raises:
        InvalidConfig: If the manifest cannot be parsed or has no place for a version
    """
    text = path.read_text(encoding="utf-8")
    if path.name == "package.json":
        data = _load_package_json(path, text)
        data["version"] = version
        # npm keeps insertion order and 2-space indent
        return json.dumps(data, indent=2) + "\n"

    package = _load_cargo_toml(path, text).get("package")
    if not isinstance(package, dict):
        raise InvalidConfig(f"{path} has no [package] table to record a version in")
    doc = tomlkit.parse(text)
    doc["package"]["version"] = version
    return tomlkit.dumps(doc)
