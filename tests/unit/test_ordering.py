"""Tests for deploy unit ordering."""

import pytest

from shipyard.core.deploy.ordering import (
    order_violations,
    plan_order,
    select_units,
    topological_order,
    validate_graph,
)
from shipyard.core.errors import DependencyOrderViolation, InvalidConfig, NotFound
from shipyard.core.project import UnitConfig, default_units

CONTRACTS = ["kyc_registry", "reserve_manager", "fungible_token", "istsi_token"]


def _unit(*depends_on: str) -> UnitConfig:
    return UnitConfig(component="backend", depends_on=list(depends_on), artifact="out")


def test_default_units_order_dependencies_first() -> None:
    """Every unit comes after its dependencies; ties keep declaration order."""
    units = default_units()

    order = topological_order(units, units.keys())

    assert order == [
        "kyc_registry",
        "fungible_token",
        "reserve_manager",
        "istsi_token",
        "integration_router",
        "backend",
        "frontend",
    ]
    assert order_violations(units, order) == []


def test_order_is_independent_of_selection_order() -> None:
    """Shuffling the selection does not change the computed order."""
    units = default_units()

    forward = topological_order(units, list(units))
    backward = topological_order(units, list(reversed(units)))

    assert forward == backward


def test_cycle_is_rejected() -> None:
    """Circular dependencies raise DependencyOrderViolation naming the units."""
    units = {"api": _unit("worker"), "worker": _unit("api"), "cli": _unit()}

    with pytest.raises(DependencyOrderViolation, match="api, worker"):
        validate_graph(units)


def test_undeclared_dependency_is_rejected() -> None:
    """Depending on a unit that does not exist is a configuration error."""
    with pytest.raises(InvalidConfig, match="undeclared units: cache"):
        validate_graph({"api": _unit("cache")})


def test_select_units() -> None:
    """Targets may be a component, a single unit or nothing at all."""
    units = default_units()

    assert select_units(units, None) == list(units)
    assert select_units(units, "contracts") == [*CONTRACTS, "integration_router"]
    assert select_units(units, "backend") == ["backend"]
    assert select_units(units, "istsi_token") == ["istsi_token"]
    with pytest.raises(NotFound):
        select_units(units, "mobile")


def test_dependent_without_dependencies_is_refused() -> None:
    """Deploying backend alone, with no contracts deployed, is refused."""
    units = default_units()

    with pytest.raises(DependencyOrderViolation) as exc_info:
        plan_order(units, ["backend"], None, already_deployed=set())

    for contract in CONTRACTS:
        assert f"backend requires {contract}" in exc_info.value.message


def test_dependent_with_deployed_dependencies_is_allowed() -> None:
    """Dependencies that are already deployed satisfy the ordering."""
    units = default_units()

    order = plan_order(units, ["backend"], None, already_deployed=set(CONTRACTS))

    assert order == ["backend"]


def test_configured_order_must_respect_dependencies() -> None:
    """A deploy_order placing frontend before backend is refused."""
    units = default_units()
    declared = [*CONTRACTS, "integration_router", "frontend", "backend"]

    with pytest.raises(DependencyOrderViolation, match="frontend is ordered before"):
        plan_order(units, list(units), declared, already_deployed=set())


def test_configured_order_is_used_when_valid() -> None:
    """A valid deploy_order is followed exactly, filtered to the selection."""
    units = default_units()
    declared = [
        "fungible_token",
        "kyc_registry",
        "reserve_manager",
        "istsi_token",
        "integration_router",
        "backend",
        "frontend",
    ]

    order = plan_order(units, CONTRACTS, declared, already_deployed=set())

    assert order == ["fungible_token", "kyc_registry", "reserve_manager", "istsi_token"]


def test_configured_order_must_cover_selection() -> None:
    """Units missing from deploy_order are a configuration error."""
    units = default_units()

    with pytest.raises(InvalidConfig, match="omits units: istsi_token"):
        plan_order(
            units,
            ["kyc_registry", "istsi_token"],
            ["kyc_registry", "reserve_manager"],
            already_deployed={"reserve_manager"},
        )
