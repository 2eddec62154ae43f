"""Changelog entries appended on every version change."""

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from shipyard.core.atomic import atomic_write_text

CHANGELOG_HEADER = "# Changelog\n\nAll notable version changes to this project are recorded here.\n"


@dataclass(frozen=True)
class ChangelogEntry:
    component: str
    version: str
    previous_version: str | None
    change_type: str
    description: str
    timestamp: datetime
    compatible: bool

    def render(self) -> str:
        stamp = self.timestamp.strftime("%Y-%m-%d %H:%M:%S")
        lines = [
            f"## [{self.component} v{self.version}] - {stamp}",
            "",
            f"### {self.change_type}",
            "",
            self.description,
            "",
        ]
        if self.previous_version is not None:
            lines.append(f"**Previous version:** {self.previous_version}")
        compatibility = "compatible" if self.compatible else "INCOMPATIBLE (major.minor diverges)"
        lines.append(f"**Compatibility:** {compatibility}")
        if self.change_type == "Major":
            lines.append("**Breaking changes:** Yes")
        return "\n".join(lines) + "\n"


def append_entries(path: Path, entries: list[ChangelogEntry]) -> None:
    """Append rendered entries to the changelog, creating it if needed."""
    if not entries:
        return
    if path.exists():
        existing = path.read_text(encoding="utf-8")
    else:
        existing = CHANGELOG_HEADER
    if not existing.endswith("\n"):
        existing += "\n"
    rendered = "\n".join(entry.render() for entry in entries)
    atomic_write_text(path, existing + "\n" + rendered)


def has_entry_for(path: Path, version: str) -> bool:
    """Whether any changelog heading records ``version``."""
    if not path.exists():
        return False
    needle = f" v{version}]"
    return any(
        line.startswith("## [") and needle in line
        for line in path.read_text(encoding="utf-8").splitlines()
    )
