"""Tests for the single-writer lock."""

from pathlib import Path

import pytest

from shipyard.core.context import ShipyardContext
from shipyard.core.errors import LockUnavailable
from shipyard.core.lock import WriteLock
from tests.test_utils.project import ADDRESS_1


def test_second_holder_fails_immediately(tmp_path: Path) -> None:
    """A second lock on the same file raises LockUnavailable naming the holder."""
    path = tmp_path / ".shipyard" / "shipyard.lock"
    first = WriteLock(path)
    second = WriteLock(path)

    with first.hold("deploy staging"):
        with pytest.raises(LockUnavailable, match="deploy staging"):
            with second.hold("registry set"):
                pass

    with second.hold("registry set"):
        assert second.held


def test_lock_is_reentrant_within_one_instance(tmp_path: Path) -> None:
    """Nested holds on the same instance do not deadlock and release at the end."""
    lock = WriteLock(tmp_path / "shipyard.lock")

    with lock.hold("outer"):
        with lock.hold("inner"):
            assert lock.held
        assert lock.held

    assert not lock.held


def test_lock_is_released_on_error(tmp_path: Path) -> None:
    """An exception inside the block releases the lock."""
    lock = WriteLock(tmp_path / "shipyard.lock")

    with pytest.raises(RuntimeError):
        with lock.hold("failing"):
            raise RuntimeError("boom")

    assert not lock.held
    with WriteLock(tmp_path / "shipyard.lock").hold("after"):
        pass


def test_registry_mutation_blocked_by_other_writer(tmp_path: Path) -> None:
    """A registry write while another process holds the lock mutates nothing."""
    ctx = ShipyardContext.for_test(tmp_path)
    other = WriteLock(ctx.paths.lock_file)

    with other.hold("config generate prod"):
        with pytest.raises(LockUnavailable):
            ctx.registry.set("test", "token", ADDRESS_1)

    assert ctx.registry.list_entries("test") == {}
    assert ctx.registry.list_backups() == []
