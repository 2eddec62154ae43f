"""Dependency ordering of deploy units."""

import logging
from collections.abc import Iterable, Mapping

from shipyard.core.errors import DependencyOrderViolation, InvalidConfig, NotFound
from shipyard.core.project import COMPONENTS, UnitConfig

logger = logging.getLogger(__name__)


def validate_graph(units: Mapping[str, UnitConfig]) -> None:
    """Reject unknown dependencies and cycles.

    Raises:
        InvalidConfig: If a unit depends on a unit that is not declared
        DependencyOrderViolation: If the dependency graph has a cycle
    """
    for name, unit in units.items():
        unknown = [dep for dep in unit.depends_on if dep not in units]
        if unknown:
            raise InvalidConfig(f"Unit '{name}' depends on undeclared units: {', '.join(unknown)}")
    topological_order(units, units.keys())


def topological_order(units: Mapping[str, UnitConfig], selected: Iterable[str]) -> list[str]:
    """Order ``selected`` so every unit follows its selected dependencies.

    Ties are broken by declaration order in ``units`` so the result is stable.

    Raises:
        DependencyOrderViolation: If the selected units contain a cycle
    """
    chosen = set(selected)
    declared = [name for name in units if name in chosen]
    remaining = {
        name: {dep for dep in units[name].depends_on if dep in chosen} for name in declared
    }
    order: list[str] = []
    while remaining:
        ready = [name for name in declared if name in remaining and not remaining[name]]
        if not ready:
            cycle = ", ".join(sorted(remaining))
            raise DependencyOrderViolation(f"Circular dependency detected among: {cycle}")
        for name in ready:
            order.append(name)
            del remaining[name]
        for deps in remaining.values():
            deps.difference_update(ready)
    return order


def order_violations(units: Mapping[str, UnitConfig], order: list[str]) -> list[str]:
    """Describe every unit in ``order`` that precedes one of its dependencies."""
    position = {name: index for index, name in enumerate(order)}
    violations: list[str] = []
    for name in order:
        for dep in units[name].depends_on:
            if dep in position and position[dep] > position[name]:
                violations.append(f"{name} is ordered before its dependency {dep}")
    return violations


def select_units(units: Mapping[str, UnitConfig], target: str | None) -> list[str]:
    """Units addressed by a component name, a unit name, or everything.

    Raises:
        NotFound: If ``target`` names neither a component nor a unit
    """
    if target is None:
        return list(units)
    if target in COMPONENTS:
        return [name for name, unit in units.items() if unit.component == target]
    if target in units:
        return [target]
    raise NotFound(f"Unknown component or unit '{target}'")


def plan_order(
    units: Mapping[str, UnitConfig],
    selected: list[str],
    declared_order: list[str] | None,
    already_deployed: set[str],
) -> list[str]:
    """Deployment order for ``selected``, checked against dependencies.

    Every dependency of a selected unit must either be selected too (and
    ordered before it) or already be deployed in the target environment.

    Raises:
        DependencyOrderViolation: If the order or a missing dependency would
            deploy a unit before something it depends on
        InvalidConfig: If ``declared_order`` names unknown units or omits selected ones
    """
    validate_graph(units)

    missing = sorted(
        {
            f"{name} requires {dep}, which is neither selected nor deployed"
            for name in selected
            for dep in units[name].depends_on
            if dep not in selected and dep not in already_deployed
        }
    )
    if missing:
        raise DependencyOrderViolation(
            "Refusing to deploy before dependencies are in place:\n  " + "\n  ".join(missing)
        )

    if declared_order is None:
        return topological_order(units, selected)

    unknown = [name for name in declared_order if name not in units]
    if unknown:
        raise InvalidConfig(f"deploy_order names undeclared units: {', '.join(unknown)}")
    omitted = [name for name in selected if name not in declared_order]
    if omitted:
        raise InvalidConfig(f"deploy_order omits units: {', '.join(omitted)}")
    order = [name for name in declared_order if name in selected]
    violations = order_violations(units, order)
    if violations:
        raise DependencyOrderViolation(
            "Configured deploy_order violates dependencies:\n  " + "\n  ".join(violations)
        )
    logger.debug("Using configured deploy order: %s", order)
    return order
