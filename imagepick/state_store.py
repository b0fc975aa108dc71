from __future__ import annotations

import errno
import fcntl
import json
import logging
import os
import time
from pathlib import Path
from typing import Any, IO

from imagepick.errors import CacheError

logger = logging.getLogger(__name__)


def load_json_file(path: Path) -> dict[str, Any]:
    return json.loads(path.read_text(encoding="utf-8"))


def atomic_write_json(path: Path, data: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(f".{path.name}.tmp.{os.getpid()}")
    payload = json.dumps(data, ensure_ascii=True, indent=2, sort_keys=True) + "\n"
    try:
        with open(tmp, "w", encoding="utf-8") as f:
            f.write(payload)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, path)
    except BaseException:
        try:
            tmp.unlink()
        except FileNotFoundError:
            pass
        raise


def touch(path: Path, *, now: float | None = None) -> None:
    """Set the mtime of *path* (which must exist) to *now*."""
    ts = time.time() if now is None else float(now)
    try:
        os.utime(path, (ts, ts))
    except OSError as e:
        raise CacheError(f"cannot update timestamp on {path}: {e}", path=str(path)) from e


def file_age_seconds(path: Path, *, now: float | None = None) -> float | None:
    try:
        mtime = path.stat().st_mtime
    except FileNotFoundError:
        return None
    return (time.time() if now is None else float(now)) - mtime


def _flock(fileobj: IO[Any], operation: int) -> None:
    while True:
        try:
            fcntl.flock(fileobj.fileno(), operation)
            return
        except OSError as exc:
            if exc.errno != errno.EINTR:
                raise


class FileLock:
    """Blocking exclusive advisory lock on a file (``flock(LOCK_EX)``).

    A second process opening the same path waits in ``acquire()`` until the
    first one calls ``release()`` or exits. The lock file itself is never
    removed, so every process locks the same inode.
    """

    def __init__(self, lock_path: Path) -> None:
        self.lock_path = Path(lock_path)
        self._fh: IO[bytes] | None = None

    @property
    def acquired(self) -> bool:
        return self._fh is not None

    def acquire(self) -> None:
        if self._fh is not None:
            return
        try:
            self.lock_path.parent.mkdir(parents=True, exist_ok=True)
            fh = open(self.lock_path, "ab")
        except OSError as e:
            raise CacheError(f"cannot open lock file {self.lock_path}: {e}", path=str(self.lock_path)) from e

        logger.debug("locking %s", self.lock_path)
        try:
            _flock(fh, fcntl.LOCK_EX)
        except OSError as e:
            fh.close()
            raise CacheError(f"cannot lock {self.lock_path}: {e}", path=str(self.lock_path)) from e
        self._fh = fh
        logger.debug("locked %s", self.lock_path)

    def release(self) -> None:
        fh = self._fh
        if fh is None:
            return
        self._fh = None
        try:
            _flock(fh, fcntl.LOCK_UN)
        finally:
            fh.close()
        logger.debug("unlocked %s", self.lock_path)

    def __enter__(self) -> "FileLock":
        self.acquire()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()
