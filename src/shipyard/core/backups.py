"""Immutable, timestamp-keyed backups of versioned documents.

Each subsystem that mutates documents owns one ``BackupStore`` namespace
(``.shipyard/backups/<owner>/``). A backup is a single JSON record holding the
exact text of the document as it was before a mutation. Records are written
durably and never modified afterwards; the only way a backup disappears is an
explicit retention cleanup.
"""

import json
import logging
import re
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from shipyard.core.atomic import atomic_write_json
from shipyard.core.errors import NotFound
from shipyard.core.time.abc import Time

logger = logging.getLogger(__name__)

_BACKUP_ID_RE = re.compile(r"^[a-z]+_[a-z0-9_]+_\d{8}_\d{6}_\d{4,}$")


@dataclass(frozen=True)
class Backup:
    """A snapshot of one document taken immediately before a mutation.

    Attributes:
        id: Timestamp-derived unique id, e.g. ``registry_test_20261017_120000_0003``
        owner: Namespace of the subsystem that created it ("registry", "config")
        source_document_type: Kind of document captured ("registry", "config")
        subject: Network or environment the document belongs to
        sequence: Monotonic counter within the owner namespace
        created_at: When the backup was taken (UTC)
        description: Operation that triggered the backup
        contents: Exact document text, or None if the document did not exist
    """

    id: str
    owner: str
    source_document_type: str
    subject: str
    sequence: int
    created_at: datetime
    description: str
    contents: str | None

    def to_record(self) -> dict[str, object]:
        return {
            "id": self.id,
            "owner": self.owner,
            "source_document_type": self.source_document_type,
            "subject": self.subject,
            "sequence": self.sequence,
            "created_at": self.created_at.isoformat(),
            "description": self.description,
            "contents": self.contents,
        }

    @staticmethod
    def from_record(record: dict[str, object]) -> "Backup":
        return Backup(
            id=str(record["id"]),
            owner=str(record["owner"]),
            source_document_type=str(record["source_document_type"]),
            subject=str(record["subject"]),
            sequence=int(str(record["sequence"])),
            created_at=datetime.fromisoformat(str(record["created_at"])),
            description=str(record.get("description", "")),
            contents=None if record.get("contents") is None else str(record["contents"]),
        )


class BackupStore:
    """Filesystem-backed backup namespace for a single owner."""

    def __init__(self, backup_dir: Path, owner: str, time: Time) -> None:
        self.backup_dir = backup_dir
        self.owner = owner
        self.time = time

    def create(
        self,
        *,
        subject: str,
        source_document_type: str,
        contents: str | None,
        description: str,
    ) -> Backup:
        """Durably record a new backup and return it.

        The record is fsynced before this returns, so callers may apply their
        mutation immediately afterwards.
        """
        created_at = self.time.now()
        sequence = self._next_sequence()
        backup_id = (
            f"{self.owner}_{subject}_{created_at.strftime('%Y%m%d_%H%M%S')}_{sequence:04d}"
        )
        backup = Backup(
            id=backup_id,
            owner=self.owner,
            source_document_type=source_document_type,
            subject=subject,
            sequence=sequence,
            created_at=created_at,
            description=description,
            contents=contents,
        )
        atomic_write_json(self._path_for(backup_id), backup.to_record())
        logger.debug("Created backup %s (%s)", backup_id, description)
        return backup

    def get(self, backup_id: str) -> Backup:
        """Load a backup by id.

        Raises:
            NotFound: If the id is malformed or no such backup exists
        """
        if not _BACKUP_ID_RE.match(backup_id):
            raise NotFound(f"Backup not found: {backup_id}")
        path = self._path_for(backup_id)
        if not path.exists():
            raise NotFound(f"Backup not found: {backup_id}")
        return self._load(path)

    def list_backups(self, subject: str | None = None) -> list[Backup]:
        """List backups newest first, optionally restricted to one subject."""
        if not self.backup_dir.exists():
            return []
        backups = [self._load(path) for path in self.backup_dir.glob("*.json")]
        if subject is not None:
            backups = [backup for backup in backups if backup.subject == subject]
        return sorted(backups, key=lambda backup: backup.sequence, reverse=True)

    def latest(self, subject: str) -> Backup | None:
        """Most recent backup for ``subject``, or None."""
        backups = self.list_backups(subject)
        if not backups:
            return None
        return backups[0]

    def latest_id(self, subject: str) -> str | None:
        backup = self.latest(subject)
        if backup is None:
            return None
        return backup.id

    def delete_older_than(self, cutoff: datetime, dry_run: bool = False) -> list[str]:
        """Delete backups created strictly before ``cutoff``.

        Deletion is irreversible and is not itself backed up.

        Returns:
            Ids of the removed (or, in dry-run mode, removable) backups, oldest first
        """
        oldest_first = reversed(self.list_backups())
        expired = [backup for backup in oldest_first if backup.created_at < cutoff]
        if not dry_run:
            for backup in expired:
                self._path_for(backup.id).unlink(missing_ok=True)
                logger.debug("Deleted expired backup %s", backup.id)
        return [backup.id for backup in expired]

    def _next_sequence(self) -> int:
        existing = self.list_backups()
        if not existing:
            return 1
        return existing[0].sequence + 1

    def _path_for(self, backup_id: str) -> Path:
        return self.backup_dir / f"{backup_id}.json"

    def _load(self, path: Path) -> Backup:
        return Backup.from_record(json.loads(path.read_text(encoding="utf-8")))
