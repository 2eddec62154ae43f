"""Tests for BackupStore."""

from datetime import timedelta
from pathlib import Path

import pytest

from shipyard.core.backups import BackupStore
from shipyard.core.errors import NotFound
from tests.fakes.time import FakeTime


def _store(tmp_path: Path, time: FakeTime | None = None) -> BackupStore:
    return BackupStore(tmp_path / "backups", "registry", time or FakeTime())


def test_ids_are_timestamped_and_sequenced(tmp_path: Path) -> None:
    """Ids carry owner, subject, UTC timestamp and a monotonic sequence."""
    store = _store(tmp_path)

    first = store.create(
        subject="test", source_document_type="registry", contents="{}", description="set a"
    )
    second = store.create(
        subject="main", source_document_type="registry", contents="{}", description="set b"
    )

    assert first.id == "registry_test_20261017_120000_0001"
    assert second.id == "registry_main_20261017_120001_0002"


def test_list_is_newest_first_and_filterable(tmp_path: Path) -> None:
    """list_backups orders by sequence descending and filters by subject."""
    store = _store(tmp_path)
    ids = [
        store.create(
            subject=subject, source_document_type="registry", contents=None, description=""
        ).id
        for subject in ("test", "main", "test")
    ]

    assert [backup.id for backup in store.list_backups()] == list(reversed(ids))
    assert [backup.id for backup in store.list_backups("test")] == [ids[2], ids[0]]
    assert store.latest_id("main") == ids[1]
    assert store.latest_id("dev") is None


def test_get_round_trips_contents(tmp_path: Path) -> None:
    """A stored backup is read back exactly, including a missing document."""
    store = _store(tmp_path)
    created = store.create(
        subject="test",
        source_document_type="registry",
        contents='{"contracts": {}}\n',
        description="set token",
    )
    empty = store.create(
        subject="test", source_document_type="registry", contents=None, description="first"
    )

    assert store.get(created.id) == created
    assert store.get(empty.id).contents is None


def test_get_rejects_path_like_ids(tmp_path: Path) -> None:
    """Ids that do not match the backup id shape never touch the filesystem."""
    store = _store(tmp_path)

    for bad in ("../secrets", "registry_test", "registry_test_20261017_120000_1/../x"):
        with pytest.raises(NotFound):
            store.get(bad)


def test_delete_older_than(tmp_path: Path) -> None:
    """Expired backups are deleted oldest first; dry run deletes nothing."""
    time = FakeTime()
    store = _store(tmp_path, time)
    old = store.create(subject="dev", source_document_type="config", contents="a", description="")
    time.advance(timedelta(days=10))
    new = store.create(subject="dev", source_document_type="config", contents="b", description="")
    cutoff = time.now() - timedelta(days=5)

    assert store.delete_older_than(cutoff, dry_run=True) == [old.id]
    assert len(store.list_backups()) == 2

    assert store.delete_older_than(cutoff) == [old.id]
    assert [backup.id for backup in store.list_backups()] == [new.id]


def test_sequence_continues_after_cleanup(tmp_path: Path) -> None:
    """Sequence numbers are never reused while newer backups remain."""
    time = FakeTime()
    store = _store(tmp_path, time)
    store.create(subject="dev", source_document_type="config", contents="a", description="")
    second = store.create(
        subject="dev", source_document_type="config", contents="b", description=""
    )
    store.delete_older_than(second.created_at)

    third = store.create(subject="dev", source_document_type="config", contents="c", description="")

    assert third.sequence == 3
