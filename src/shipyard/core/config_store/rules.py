"""Validation, security and consistency rules for configuration documents.

All functions here are pure: they take the parsed document plus the facts
they need about its surroundings (file mode, project root, environment
variables) and return findings without touching anything.
"""

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal
from urllib.parse import parse_qs, urlparse

from shipyard.core.config_store.defaults import DEFAULT_DEVELOPMENT_SECRET
from shipyard.core.config_store.schema import (
    FIELDS,
    FIELDS_BY_KEY,
    SECRET_KINDS,
    URL_KINDS,
    FieldSpec,
    flatten,
    get_path,
    is_secret_reference,
    reference_name,
    shape_error,
)
from shipyard.core.project import TOOLCHAIN_NETWORKS, network_for

WEAK_SECRET_PATTERNS = (
    "password",
    "admin",
    "secret",
    "123456",
    "changeme",
    DEFAULT_DEVELOPMENT_SECRET,
)

REQUIRED_FILE_MODE = 0o600

Severity = Literal["high", "medium", "low"]


@dataclass(frozen=True)
class ValidationResult:
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


@dataclass(frozen=True)
class SecurityIssue:
    severity: Severity
    key: str | None
    message: str


@dataclass(frozen=True)
class DocumentFacts:
    """Everything rules need to know about a document besides its values."""

    environment: str
    values: Mapping[str, Any]
    file_mode: int | None
    root: Path
    environ: Mapping[str, str]


def weak_pattern_in(value: str) -> str | None:
    lowered = value.lower()
    for pattern in WEAK_SECRET_PATTERNS:
        if pattern in lowered:
            return pattern
    return None


def _secret_candidates(spec: FieldSpec, value: str, environ: Mapping[str, str]) -> list[str]:
    """The concrete secret material to inspect for ``value``."""
    if is_secret_reference(value):
        resolved = environ.get(reference_name(value))
        return [] if resolved is None else _secret_candidates(spec, resolved, environ)
    if spec.kind == "dsn":
        password = urlparse(value).password
        return [] if password is None else [password]
    return [value]


def _insecure_url(spec: FieldSpec, value: str) -> bool:
    scheme = urlparse(value).scheme
    return scheme == ("http" if spec.kind == "url" else "ws")


def _dsn_requires_tls(value: str) -> bool:
    query = parse_qs(urlparse(value).query)
    return query.get("sslmode") == ["require"] or query.get("ssl") == ["true"]


def validate_document(facts: DocumentFacts) -> ValidationResult:
    """Check presence, shape and environment-specific security rules."""
    env = facts.environment
    errors: list[str] = []
    warnings: list[str] = []

    for key in sorted(flatten(facts.values)):
        if key not in FIELDS_BY_KEY:
            warnings.append(f"Unknown key: {key}")

    present: dict[str, Any] = {}
    for spec in FIELDS:
        value = get_path(facts.values, spec.key)
        if value is None:
            if env in spec.required_in:
                errors.append(f"Missing required key: {spec.key}")
            continue
        error = shape_error(spec, value)
        if error is not None:
            errors.append(error)
            continue
        present[spec.key] = value

    declared = present.get("app.environment")
    if declared is not None and declared != env:
        errors.append(f"app.environment is '{declared}' but this is the '{env}' document")

    for key, value in present.items():
        spec = FIELDS_BY_KEY[key]
        if spec.kind in URL_KINDS and _insecure_url(spec, value):
            secure_scheme = "https" if spec.kind == "url" else "wss"
            message = f"{key} must use {secure_scheme} in {env}: {value}"
            if env == "prod":
                errors.append(message)
            elif env == "staging":
                warnings.append(message)

        if spec.kind in SECRET_KINDS:
            _check_secret(env, spec, value, facts.environ, errors, warnings)

    if env == "prod":
        for key in ("tls.cert_file", "tls.key_file"):
            if key in present:
                path = _resolve(facts.root, present[key])
                if not path.is_file() or not os.access(path, os.R_OK):
                    errors.append(f"{key} does not point to a readable file: {path}")
        dsn = _resolved_value(present.get("database.url"), facts.environ)
        if dsn is not None and not _dsn_requires_tls(dsn):
            warnings.append("database.url should require TLS (sslmode=require or ssl=true)")
        if present.get("frontend.enable_debug_mode") is True:
            errors.append("frontend.enable_debug_mode must be false in prod")

    if facts.file_mode is not None and facts.file_mode != REQUIRED_FILE_MODE:
        message = (
            f"Configuration file permissions are {facts.file_mode:o}, "
            f"expected {REQUIRED_FILE_MODE:o} (owner read/write only)"
        )
        if env == "prod":
            errors.append(message)
        else:
            warnings.append(message)

    return ValidationResult(errors=errors, warnings=warnings)


def _check_secret(
    env: str,
    spec: FieldSpec,
    value: str,
    environ: Mapping[str, str],
    errors: list[str],
    warnings: list[str],
) -> None:
    if is_secret_reference(value):
        if reference_name(value) not in environ:
            warnings.append(
                f"{spec.key} references ${reference_name(value)}, which is not set here"
            )
    elif env == "prod" and spec.kind == "secret":
        errors.append(f"{spec.key} is stored in plaintext; use an env:NAME reference in prod")

    for candidate in _secret_candidates(spec, value, environ):
        if candidate == DEFAULT_DEVELOPMENT_SECRET and env == "dev":
            warnings.append(f"{spec.key} uses the default development secret")
            continue
        pattern = weak_pattern_in(candidate)
        if pattern is None:
            continue
        message = f"{spec.key} contains a weak or default credential ('{pattern}')"
        if env == "dev":
            warnings.append(message)
        else:
            errors.append(message)


def security_scan(facts: DocumentFacts) -> list[SecurityIssue]:
    """Pattern-match for weak credentials and check permissions and transport."""
    issues: list[SecurityIssue] = []
    env = facts.environment
    for key, value in sorted(flatten(facts.values).items()):
        spec = FIELDS_BY_KEY.get(key)
        if spec is None or not isinstance(value, str):
            continue
        if spec.kind in SECRET_KINDS:
            for candidate in _secret_candidates(spec, value, facts.environ):
                pattern = weak_pattern_in(candidate)
                if pattern is not None:
                    issues.append(
                        SecurityIssue("high", key, f"Weak or default credential ('{pattern}')")
                    )
            if env == "prod" and spec.kind == "secret" and not is_secret_reference(value):
                issues.append(SecurityIssue("high", key, "Secret stored in plaintext"))
        if env == "prod" and spec.kind in URL_KINDS and _insecure_url(spec, value):
            issues.append(SecurityIssue("high", key, f"Unencrypted transport in prod: {value}"))

    if facts.file_mode is not None and facts.file_mode != REQUIRED_FILE_MODE:
        issues.append(
            SecurityIssue(
                "medium",
                None,
                f"File permissions are {facts.file_mode:o}, expected {REQUIRED_FILE_MODE:o}",
            )
        )

    if env == "prod":
        dsn = _resolved_value(get_path(facts.values, "database.url"), facts.environ)
        if dsn is not None and not _dsn_requires_tls(dsn):
            issues.append(
                SecurityIssue("medium", "database.url", "Database connection does not require TLS")
            )
    return issues


def consistency_check(facts: DocumentFacts) -> list[str]:
    """Cross-check values that different components must agree on."""
    issues: list[str] = []
    values = facts.values
    port = get_path(values, "server.port")

    for key in ("frontend.api_url", "frontend.ws_url"):
        url = get_path(values, key)
        if not isinstance(url, str) or not isinstance(port, int):
            continue
        try:
            advertised = urlparse(url).port
        except ValueError:
            issues.append(f"{key} has an invalid port: {url}")
            continue
        if advertised is not None and advertised != port:
            issues.append(f"server.port is {port} but {key} expects port {advertised}")

    expected_network = TOOLCHAIN_NETWORKS[network_for(facts.environment)].name
    network_name = get_path(values, "network.name")
    if network_name is not None and network_name != expected_network:
        issues.append(
            f"network.name is '{network_name}' but {facts.environment} deploys to "
            f"'{expected_network}'"
        )

    declared = get_path(values, "app.environment")
    if declared is not None and declared != facts.environment:
        issues.append(f"app.environment is '{declared}', expected '{facts.environment}'")
    return issues


def _resolve(root: Path, value: str) -> Path:
    path = Path(value)
    return path if path.is_absolute() else root / path


def _resolved_value(value: Any, environ: Mapping[str, str]) -> str | None:
    if not isinstance(value, str):
        return None
    if is_secret_reference(value):
        return environ.get(reference_name(value))
    return value
