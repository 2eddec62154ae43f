"""Aggregate release checks into a single gating judgment."""

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from shipyard.core.atomic import atomic_write_text
from shipyard.core.context import ShipyardContext
from shipyard.core.errors import InvalidConfig
from shipyard.core.project import normalize_environment
from shipyard.core.release.checks import (
    CATEGORIES,
    CHECKS,
    Category,
    CheckRequest,
    CheckStatus,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CategoryResult:
    """Outcome of one category after the blocking policy is applied.

    Attributes:
        category: Check category name
        status: Final status; a failure in a non-blocking category is reported as warn
        blocking: Whether a failure in this category blocks the release
        downgraded: True if the raw outcome was fail but the category is non-blocking
        failures: Findings that made the raw outcome fail
        warnings: Non-fatal findings
        notes: Informational lines (passed commands, artifact sizes)
    """

    category: Category
    status: CheckStatus
    blocking: bool
    downgraded: bool
    failures: list[str]
    warnings: list[str]
    notes: list[str]


@dataclass(frozen=True)
class ReleaseReport:
    version: str | None
    environment: str | None
    generated_at: datetime
    categories: list[CategoryResult]
    report_path: Path | None

    @property
    def passed(self) -> bool:
        return all(result.status != "fail" for result in self.categories)

    @property
    def blocking_failures(self) -> list[CategoryResult]:
        return [result for result in self.categories if result.status == "fail"]


class ReleaseValidator:
    """Runs release checks and decides whether a release may proceed.

    Which categories block is configured in ``[release]``; by default only
    code quality and deployment readiness do. A failing non-blocking category
    is downgraded to a warning but keeps its findings in the report.
    """

    def __init__(self, ctx: ShipyardContext) -> None:
        self.ctx = ctx

    def validate(
        self,
        version: str | None = None,
        environment: str | None = None,
        only: Iterable[str] | None = None,
        write_report: bool = True,
    ) -> ReleaseReport:
        """Run the selected categories (all by default) and build the report.

        Raises:
            InvalidConfig: If ``only`` names an unknown category or the
                environment is unknown
        """
        env = normalize_environment(environment) if environment is not None else None
        categories = self._select(only)
        blocking = self.ctx.project.release.blocking_for(env)
        request = CheckRequest(version=version, environment=env)

        results = [self._run_category(category, request, blocking) for category in categories]
        report = ReleaseReport(
            version=version,
            environment=env,
            generated_at=self.ctx.time.now(),
            categories=results,
            report_path=None,
        )
        if not write_report:
            return report

        path = self.ctx.paths.reports_dir / report_file_name(version)
        atomic_write_text(path, render_markdown(report))
        logger.debug("Wrote release validation report to %s", path)
        return ReleaseReport(
            version=report.version,
            environment=report.environment,
            generated_at=report.generated_at,
            categories=report.categories,
            report_path=path,
        )

    def _select(self, only: Iterable[str] | None) -> list[Category]:
        if only is None:
            return list(CATEGORIES)
        requested = list(only)
        if not requested:
            return list(CATEGORIES)
        unknown = [name for name in requested if name not in CATEGORIES]
        if unknown:
            raise InvalidConfig(
                f"Unknown release check categories: {', '.join(unknown)} "
                f"(expected one of: {', '.join(CATEGORIES)})"
            )
        return [category for category in CATEGORIES if category in requested]

    def _run_category(
        self, category: Category, request: CheckRequest, blocking: frozenset[str]
    ) -> CategoryResult:
        self.ctx.feedback.info(f"Running {category.replace('_', ' ')} checks...")
        outcome = CHECKS[category](self.ctx, request)
        is_blocking = category in blocking
        status = outcome.status
        downgraded = status == "fail" and not is_blocking
        if downgraded:
            logger.warning("%s failures do not block this release", category)
            status = "warn"
        return CategoryResult(
            category=category,
            status=status,
            blocking=is_blocking,
            downgraded=downgraded,
            failures=list(outcome.failures),
            warnings=list(outcome.warnings),
            notes=list(outcome.notes),
        )


def report_file_name(version: str | None) -> str:
    suffix = version.removeprefix("v") if version else "unversioned"
    return f"RELEASE_VALIDATION_REPORT_v{suffix}.md"


_STATUS_LABELS = {"pass": "PASS", "warn": "WARN", "fail": "FAIL"}


def render_markdown(report: ReleaseReport) -> str:
    lines = [
        f"# Release Validation Report: {report.version or 'unversioned'}",
        "",
        f"**Generated:** {report.generated_at.strftime('%Y-%m-%d %H:%M:%S %Z')}",
        f"**Environment:** {report.environment or 'all'}",
        f"**Result:** {'PASSED' if report.passed else 'BLOCKED'}",
        "",
        "| Category | Status | Blocking |",
        "| --- | --- | --- |",
    ]
    for result in report.categories:
        status = _STATUS_LABELS[result.status]
        if result.downgraded:
            status += " (downgraded)"
        lines.append(f"| {result.category} | {status} | {'yes' if result.blocking else 'no'} |")

    for result in report.categories:
        lines.extend(["", f"## {result.category}", ""])
        if not (result.failures or result.warnings or result.notes):
            lines.append("No findings.")
        lines.extend(f"- FAIL: {finding}" for finding in result.failures)
        lines.extend(f"- WARN: {finding}" for finding in result.warnings)
        lines.extend(f"- {note}" for note in result.notes)
    return "\n".join(lines) + "\n"
