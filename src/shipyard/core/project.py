"""Project discovery, environment vocabulary and ``shipyard.toml`` loading."""

import string
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from shipyard.core.errors import InvalidConfig

PROJECT_FILE = "shipyard.toml"

COMPONENTS = ("frontend", "backend", "contracts")
ENVIRONMENTS = ("dev", "staging", "prod")
NETWORKS = ("dev", "test", "main")
PRODUCTION_ENVIRONMENTS = frozenset({"prod"})
DEPLOY_PLACEHOLDERS = frozenset({"artifact", "network", "rpc_url", "account"})
HEALTH_URL_PLACEHOLDERS = frozenset({"frontend_url", "backend_url"})

ENVIRONMENT_ALIASES = {
    "development": "dev",
    "dev": "dev",
    "staging": "staging",
    "stage": "staging",
    "production": "prod",
    "prod": "prod",
}

NETWORK_FOR_ENVIRONMENT = {"dev": "dev", "staging": "test", "prod": "main"}


@dataclass(frozen=True)
class ToolchainNetwork:
    """How the on-chain toolchain addresses a network."""

    name: str
    rpc_url: str


TOOLCHAIN_NETWORKS = {
    "dev": ToolchainNetwork(name="standalone", rpc_url="http://localhost:8000"),
    "test": ToolchainNetwork(name="testnet", rpc_url="https://soroban-testnet.stellar.org"),
    "main": ToolchainNetwork(name="mainnet", rpc_url="https://soroban-mainnet.stellar.org"),
}


def normalize_environment(name: str) -> str:
    """Map an environment name or alias to its canonical form.

    Raises:
        InvalidConfig: If the name is not a known environment
    """
    canonical = ENVIRONMENT_ALIASES.get(name.lower())
    if canonical is None:
        valid = ", ".join(ENVIRONMENTS)
        raise InvalidConfig(f"Unknown environment '{name}' (expected one of: {valid})")
    return canonical


def network_for(environment: str) -> str:
    return NETWORK_FOR_ENVIRONMENT[normalize_environment(environment)]


class ComponentConfig(BaseModel):
    """A versioned component and where its package manifest lives."""

    model_config = ConfigDict(extra="forbid")

    path: str
    manifest: Literal["npm", "cargo", "none"] = "none"

    def manifest_path(self, root: Path) -> Path | None:
        if self.manifest == "npm":
            return root / self.path / "package.json"
        if self.manifest == "cargo":
            return root / self.path / "Cargo.toml"
        return None


def _check_template(template: str, allowed: frozenset[str], what: str) -> None:
    try:
        parsed = list(string.Formatter().parse(template))
    except ValueError as e:
        raise ValueError(f"malformed {what} {template!r}: {e}") from e
    unknown = sorted({name for _, name, _, _ in parsed if name is not None} - allowed)
    if unknown:
        expected = ", ".join(sorted(allowed))
        raise ValueError(
            f"unknown placeholder {{{unknown[0]}}} in {what} {template!r}"
            f" (expected one of: {expected}; write {{{{ and }}}} for literal braces)"
        )


class UnitConfig(BaseModel):
    """A deployable unit: one contract, the backend service or the frontend bundle."""

    model_config = ConfigDict(extra="forbid")

    component: Literal["frontend", "backend", "contracts"]
    depends_on: list[str] = Field(default_factory=list)
    required: bool = True
    build: list[str] = Field(default_factory=list)
    test: list[str] = Field(default_factory=list)
    deploy: list[str] = Field(default_factory=list)
    artifact: str
    health_url: str | None = None

    @field_validator("deploy")
    @classmethod
    def validate_deploy(cls, v: list[str]) -> list[str]:
        """Reject deploy arguments with placeholders the toolchain cannot fill in."""
        for part in v:
            _check_template(part, DEPLOY_PLACEHOLDERS, "deploy argument")
        return v

    @field_validator("health_url")
    @classmethod
    def validate_health_url(cls, v: str | None) -> str | None:
        if v is not None:
            _check_template(v, HEALTH_URL_PLACEHOLDERS, "health_url")
        return v


class ReleaseConfig(BaseModel):
    """Release policy: ordering, timeouts and which validation failures block."""

    model_config = ConfigDict(extra="forbid")

    deploy_order: list[str] | None = None
    stage_timeout_seconds: float = Field(default=600.0, gt=0)
    max_workers: int = Field(default=4, ge=1)
    blocking_categories: list[str] = Field(
        default_factory=lambda: ["code_quality", "deployment_readiness"]
    )
    blocking_by_environment: dict[str, list[str]] = Field(default_factory=dict)
    code_quality_commands: list[list[str]] = Field(default_factory=list)
    max_artifact_bytes: int | None = Field(default=None, gt=0)
    validate_before_production_deploy: bool = True

    def blocking_for(self, environment: str | None) -> frozenset[str]:
        if environment is not None:
            override = self.blocking_by_environment.get(environment)
            if override is not None:
                return frozenset(override)
        return frozenset(self.blocking_categories)


def _contract_unit(name: str, depends_on: list[str], required: bool = True) -> UnitConfig:
    return UnitConfig(
        component="contracts",
        depends_on=depends_on,
        required=required,
        build=["stellar", "contract", "build", "--package", name],
        test=["cargo", "test", "--package", name],
        deploy=[
            "stellar",
            "contract",
            "deploy",
            "--wasm",
            "{artifact}",
            "--network",
            "{network}",
            "--source",
            "{account}",
        ],
        artifact=f"soroban/target/wasm32-unknown-unknown/release/{name}.wasm",
    )


def default_components() -> dict[str, ComponentConfig]:
    return {
        "frontend": ComponentConfig(path="frontend", manifest="npm"),
        "backend": ComponentConfig(path="backend", manifest="cargo"),
        "contracts": ComponentConfig(path="soroban", manifest="cargo"),
    }


def default_units() -> dict[str, UnitConfig]:
    contracts = ["kyc_registry", "reserve_manager", "fungible_token", "istsi_token"]
    return {
        "kyc_registry": _contract_unit("kyc_registry", []),
        "reserve_manager": _contract_unit("reserve_manager", ["kyc_registry"]),
        "fungible_token": _contract_unit("fungible_token", []),
        "istsi_token": _contract_unit("istsi_token", ["kyc_registry", "reserve_manager"]),
        "integration_router": _contract_unit("integration_router", contracts, required=False),
        "backend": UnitConfig(
            component="backend",
            depends_on=contracts,
            build=["cargo", "build", "--release"],
            test=["cargo", "test"],
            deploy=["./scripts/deploy-backend.sh", "{artifact}", "{network}"],
            artifact="backend/target/release/backend",
            health_url="{backend_url}/health",
        ),
        "frontend": UnitConfig(
            component="frontend",
            depends_on=["backend"],
            build=["npm", "run", "build"],
            test=["npm", "test"],
            deploy=["./scripts/deploy-frontend.sh", "{artifact}", "{network}"],
            artifact="frontend/dist",
            health_url="{frontend_url}",
        ),
    }


class ProjectConfig(BaseModel):
    """Contents of ``shipyard.toml``."""

    model_config = ConfigDict(extra="forbid")

    components: dict[str, ComponentConfig] = Field(default_factory=default_components)
    units: dict[str, UnitConfig] = Field(default_factory=default_units)
    release: ReleaseConfig = Field(default_factory=ReleaseConfig)


@dataclass(frozen=True)
class ProjectPaths:
    """Well-known locations inside a shipyard project."""

    root: Path

    @property
    def versions_file(self) -> Path:
        return self.root / "versions.toml"

    @property
    def changelog(self) -> Path:
        return self.root / "CHANGELOG.md"

    @property
    def config_dir(self) -> Path:
        return self.root / "config"

    @property
    def registry_dir(self) -> Path:
        return self.root / "registry"

    @property
    def state_dir(self) -> Path:
        return self.root / ".shipyard"

    @property
    def backups_dir(self) -> Path:
        return self.state_dir / "backups"

    @property
    def deployments_dir(self) -> Path:
        return self.state_dir / "deployments"

    @property
    def reports_dir(self) -> Path:
        return self.state_dir / "reports"

    @property
    def lock_file(self) -> Path:
        return self.state_dir / "shipyard.lock"


def discover_project_root(start: Path) -> Path:
    """Walk up from ``start`` to the nearest directory holding ``shipyard.toml``.

    Falls back to ``start`` itself when no project file is found.
    """
    current = start.resolve()
    for candidate in (current, *current.parents):
        if (candidate / PROJECT_FILE).exists():
            return candidate
    return current


def load_project_config(root: Path) -> ProjectConfig:
    """Load ``shipyard.toml`` from ``root``, or built-in defaults when absent.

    Raises:
        InvalidConfig: If the file cannot be parsed or fails validation
    """
    path = root / PROJECT_FILE
    if not path.exists():
        return ProjectConfig()

    try:
        with path.open("rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise InvalidConfig(f"Cannot parse {path}: {e}") from e

    try:
        return ProjectConfig.model_validate(data)
    except ValidationError as e:
        raise InvalidConfig(f"Invalid {path}:\n{e}") from e
