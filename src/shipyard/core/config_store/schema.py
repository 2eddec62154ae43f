"""Declared shape of an environment configuration document.

A configuration document is a nested TOML table. Every key it may contain is
declared here as a ``FieldSpec`` with a value kind and the environments in
which it is required; anything else is reported as an unknown key.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Literal
from urllib.parse import urlparse

from shipyard.core.errors import InvalidConfig
from shipyard.core.project import ENVIRONMENTS

FieldKind = Literal[
    "string",
    "environment",
    "log_level",
    "port",
    "positive_int",
    "bool",
    "url",
    "ws_url",
    "secret",
    "dsn",
    "path",
    "network_name",
]

ALL = frozenset(ENVIRONMENTS)
PROD_ONLY = frozenset({"prod"})
NONE: frozenset[str] = frozenset()

LOG_LEVELS = ("trace", "debug", "info", "warn", "error")
NETWORK_NAMES = ("standalone", "testnet", "mainnet")
DSN_SCHEMES = ("postgres", "postgresql", "mysql", "sqlite")
SECRET_REFERENCE_PREFIX = "env:"


@dataclass(frozen=True)
class FieldSpec:
    key: str
    kind: FieldKind
    required_in: frozenset[str]
    description: str


FIELDS: tuple[FieldSpec, ...] = (
    FieldSpec("app.environment", "environment", ALL, "Environment this document configures"),
    FieldSpec("app.log_level", "log_level", ALL, "Backend log level"),
    FieldSpec("server.host", "string", ALL, "Backend bind address"),
    FieldSpec("server.port", "port", ALL, "Backend listen port"),
    FieldSpec("database.url", "dsn", ALL, "Database connection string"),
    FieldSpec("database.max_connections", "positive_int", ALL, "Connection pool size"),
    FieldSpec("database.auto_migrate", "bool", ALL, "Run migrations on startup"),
    FieldSpec("auth.jwt_secret", "secret", ALL, "Token signing secret"),
    FieldSpec("auth.jwt_expiration_seconds", "positive_int", ALL, "Token lifetime"),
    FieldSpec("tls.cert_file", "path", PROD_ONLY, "TLS certificate path"),
    FieldSpec("tls.key_file", "path", PROD_ONLY, "TLS private key path"),
    FieldSpec("frontend.url", "url", ALL, "Public URL of the frontend"),
    FieldSpec("frontend.api_url", "url", ALL, "Backend API URL the frontend calls"),
    FieldSpec("frontend.ws_url", "ws_url", NONE, "Websocket URL the frontend connects to"),
    FieldSpec("frontend.enable_request_signing", "bool", NONE, "Sign API requests"),
    FieldSpec("frontend.enable_debug_mode", "bool", NONE, "Expose frontend debug tools"),
    FieldSpec("network.name", "network_name", ALL, "On-chain network name"),
    FieldSpec("network.rpc_url", "url", ALL, "On-chain RPC endpoint"),
    FieldSpec("network.source_secret", "secret", PROD_ONLY, "Deployer signing secret"),
    FieldSpec("network.source_account", "string", NONE, "Deployer account alias"),
)

FIELDS_BY_KEY: dict[str, FieldSpec] = {spec.key: spec for spec in FIELDS}
URL_KINDS = frozenset({"url", "ws_url"})
SECRET_KINDS = frozenset({"secret", "dsn"})


def field_for(key: str) -> FieldSpec:
    spec = FIELDS_BY_KEY.get(key)
    if spec is None:
        raise InvalidConfig(f"Unknown configuration key '{key}'")
    return spec


def get_path(values: Mapping[str, Any], key: str) -> Any:
    """Look up a dotted key in nested tables; None if any segment is missing."""
    current: Any = values
    for part in key.split("."):
        if not isinstance(current, Mapping) or part not in current:
            return None
        current = current[part]
    return current


def flatten(values: Mapping[str, Any], prefix: str = "") -> dict[str, Any]:
    """Flatten nested tables into dotted keys."""
    flat: dict[str, Any] = {}
    for name, value in values.items():
        key = f"{prefix}{name}"
        if isinstance(value, Mapping):
            flat.update(flatten(value, f"{key}."))
        else:
            flat[key] = value
    return flat


def is_secret_reference(value: Any) -> bool:
    return isinstance(value, str) and value.startswith(SECRET_REFERENCE_PREFIX)


def reference_name(value: str) -> str:
    return value[len(SECRET_REFERENCE_PREFIX) :]


def shape_error(spec: FieldSpec, value: Any) -> str | None:
    """Describe why ``value`` has the wrong shape for ``spec``, or None."""
    kind = spec.kind
    key = spec.key
    if kind in ("port", "positive_int"):
        if isinstance(value, bool) or not isinstance(value, int):
            return f"{key} must be an integer, got {value!r}"
        if kind == "port" and not 1 <= value <= 65535:
            return f"{key} must be between 1 and 65535, got {value}"
        if kind == "positive_int" and value <= 0:
            return f"{key} must be positive, got {value}"
        return None
    if kind == "bool":
        if not isinstance(value, bool):
            return f"{key} must be true or false, got {value!r}"
        return None

    if not isinstance(value, str) or not value.strip():
        return f"{key} must be a non-empty string"
    if kind == "environment" and value not in ENVIRONMENTS:
        return f"{key} must be one of {', '.join(ENVIRONMENTS)}, got '{value}'"
    if kind == "log_level" and value not in LOG_LEVELS:
        return f"{key} must be one of {', '.join(LOG_LEVELS)}, got '{value}'"
    if kind == "network_name" and value not in NETWORK_NAMES:
        return f"{key} must be one of {', '.join(NETWORK_NAMES)}, got '{value}'"
    if kind in URL_KINDS:
        schemes = ("http", "https") if kind == "url" else ("ws", "wss")
        parsed = urlparse(value)
        if parsed.scheme not in schemes or not parsed.netloc:
            return f"{key} must be a {'/'.join(schemes)} URL, got '{value}'"
        try:
            parsed.port
        except ValueError:
            return f"{key} has an invalid port: '{value}'"
    if kind == "dsn" and not is_secret_reference(value):
        if urlparse(value).scheme not in DSN_SCHEMES:
            return f"{key} must be a {'/'.join(DSN_SCHEMES)} connection string"
    if kind == "secret" and is_secret_reference(value) and not reference_name(value):
        return f"{key} references an empty environment variable name"
    return None


def coerce(spec: FieldSpec, raw: str) -> Any:
    """Convert a command-line string into the value type ``spec`` expects.

    Raises:
        InvalidConfig: If ``raw`` cannot be converted
    """
    if spec.kind in ("port", "positive_int"):
        try:
            return int(raw)
        except ValueError:
            raise InvalidConfig(f"{spec.key} must be an integer, got '{raw}'") from None
    if spec.kind == "bool":
        lowered = raw.strip().lower()
        if lowered in ("true", "yes", "1", "on"):
            return True
        if lowered in ("false", "no", "0", "off"):
            return False
        raise InvalidConfig(f"{spec.key} must be true or false, got '{raw}'")
    return raw
