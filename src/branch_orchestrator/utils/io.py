"""Small IO helpers for the on-disk coordination records.

Session locks, file declarations and the rollover plan are plain JSON files
shared by several agent processes. Writers go through atomic_write_text()
so a reader never observes a half-written record; readers take a shared
lock via shared_file_lock() while parsing.
"""
from __future__ import annotations

import json
import logging
import os
import sys
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any, TextIO

logger = logging.getLogger(__name__)


def _acquire_shared(handle: TextIO) -> bool:
    if sys.platform == "win32":
        import msvcrt

        msvcrt.locking(handle.fileno(), msvcrt.LK_NBLCK, 1)
    else:
        import fcntl

        fcntl.flock(handle, fcntl.LOCK_SH)
    return True


def _release(handle: TextIO) -> None:
    if sys.platform == "win32":
        import msvcrt

        msvcrt.locking(handle.fileno(), msvcrt.LK_UNLCK, 1)
    else:
        import fcntl

        fcntl.flock(handle, fcntl.LOCK_UN)


@contextmanager
def shared_file_lock(file_handle: TextIO) -> Iterator[None]:
    """Hold a shared (read) lock on an open record while parsing it.

    Uses flock on Unix and a one-byte msvcrt lock on Windows. When the
    platform refuses the lock the record is read unlocked.
    """
    try:
        locked = _acquire_shared(file_handle)
    except OSError:
        logger.debug(f"Could not lock {file_handle.name}, reading unlocked")
        locked = False

    try:
        yield
    finally:
        if locked:
            _release(file_handle)


def atomic_write_text(path: str | Path, data: str, perms: int = 0o644) -> None:
    """Atomically write text content to path.

    The data goes to a temporary file in the destination directory, is
    fsynced, and then replaces the destination with os.replace(). The
    temporary file is removed if the replace fails.
    """
    dest = Path(path)
    dest.parent.mkdir(parents=True, exist_ok=True)

    tmp_name: str | None = None
    try:
        with tempfile.NamedTemporaryFile(
            "w",
            dir=str(dest.parent),
            prefix=f".{dest.name}.",
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        ) as tmp:
            tmp_name = tmp.name
            tmp.write(data)
            tmp.flush()
            os.fsync(tmp.fileno())

        os.replace(tmp_name, dest)
        tmp_name = None

        try:
            os.chmod(dest, perms)
        except PermissionError:
            logger.warning(f"Could not set permissions {oct(perms)} on {dest}")
    finally:
        if tmp_name is not None:
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass


def atomic_write_json(path: str | Path, payload: Any) -> None:
    """Serialize payload as indented JSON and write it atomically."""
    atomic_write_text(path, json.dumps(payload, indent=2, default=str) + "\n")


def read_json(path: str | Path) -> Any:
    """Read a JSON record under a shared lock.

    Raises:
        FileNotFoundError: If the record does not exist.
        json.JSONDecodeError: If the record is not valid JSON.
    """
    with open(path, "r", encoding="utf-8") as f:
        with shared_file_lock(f):
            return json.load(f)
