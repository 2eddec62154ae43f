"""Durable, atomic document writes.

Readers never observe a half-written document: content goes to a temporary
file in the destination directory, is flushed and fsynced, then renamed over
the destination. The directory entry is fsynced afterwards so the rename
itself survives a crash.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


def atomic_write_text(path: Path, content: str, mode: int | None = None) -> None:
    """Atomically replace ``path`` with ``content``.

    Args:
        path: Destination file path (parent directories are created)
        content: Text to write (UTF-8)
        mode: Optional permission bits applied before the rename
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(content)
            handle.flush()
            os.fsync(handle.fileno())
        if mode is not None:
            os.chmod(tmp_path, mode)
        os.replace(tmp_path, path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise
    _fsync_directory(path.parent)


def atomic_write_json(path: Path, data: Any, mode: int | None = None) -> None:
    """Atomically write ``data`` as key-ordered JSON with a trailing newline."""
    atomic_write_text(path, dump_json(data), mode=mode)


def dump_json(data: Any) -> str:
    """Serialize to the canonical on-disk JSON form used for all documents."""
    return json.dumps(data, indent=2, sort_keys=True) + "\n"


def _fsync_directory(directory: Path) -> None:
    # Directory fds are not supported everywhere (e.g. some network filesystems)
    try:
        dir_fd = os.open(directory, os.O_RDONLY)
    except OSError:
        logger.debug("Cannot open %s to fsync it", directory)
        return
    try:
        os.fsync(dir_fd)
    except OSError:
        logger.debug("Directory fsync not supported for %s", directory)
    finally:
        os.close(dir_fd)
