"""Persisted list of the image files found under one directory.

Scanning a large photo library takes a while, so the result of the last
scan is kept in a JSON record and reused for ``ttl_seconds``. Each
directory gets its own record and lock file under ``<state_dir>/filelists``,
named by the MD5 of its absolute path, so runs against different
directories never wait on each other. The record still names its
directory, and a record naming any other directory is a miss.

The whole load/scan/store span runs under one exclusive lock, so two
invocations against the same library queue up instead of both scanning,
and the second one reuses what the first wrote.
"""

from __future__ import annotations

import json
import logging
import os
import time
from pathlib import Path
from typing import Any

import jsonschema

from imagepick._util import md5_hex
from imagepick.errors import CacheError
from imagepick.state_store import FileLock, atomic_write_json, load_json_file

logger = logging.getLogger(__name__)

FILE_LIST_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["directory", "files", "written_at"],
    "properties": {
        "directory": {"type": "string", "minLength": 1},
        "files": {"type": "array", "items": {"type": "string", "minLength": 1}},
        "written_at": {"type": "number"},
    },
}


def file_list_path_for(file_lists_dir: Path, directory: str) -> Path:
    return Path(file_lists_dir) / f"{md5_hex(os.path.abspath(directory))}.json"


class FileListCache:
    def __init__(self, path: Path, *, ttl_seconds: int) -> None:
        self.path = Path(path)
        self.ttl_seconds = int(ttl_seconds)
        self._lock = FileLock(self.path.with_name(self.path.name + ".lock"))
        self._loaded = False

    def __enter__(self) -> "FileListCache":
        self._lock.acquire()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self._lock.release()

    def _require_lock(self) -> None:
        if not self._lock.acquired:
            raise CacheError(f"{self.path} used without holding its lock", path=str(self.path))

    def _read_record(self) -> dict[str, Any] | None:
        try:
            record = load_json_file(self.path)
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            raise CacheError(f"cannot read {self.path}: {e}", path=str(self.path)) from e
        except json.JSONDecodeError as e:
            logger.info("%s: unreadable cache (%s), ignoring", self.path, e)
            return None
        try:
            jsonschema.validate(instance=record, schema=FILE_LIST_SCHEMA)
        except jsonschema.ValidationError as e:
            logger.info("%s: malformed cache (%s), ignoring", self.path, e.message)
            return None
        return record

    def load(self, directory: str, *, now: float | None = None) -> list[str] | None:
        """Cached absolute paths for *directory*, or None on any miss."""
        self._require_lock()
        directory = os.path.abspath(directory)
        record = self._read_record()
        if record is None:
            logger.info("%s: no file list cache", directory)
            return None

        if record["directory"] != directory:
            logger.info("%s: file list cache is for %s", directory, record["directory"])
            return None

        age = (time.time() if now is None else float(now)) - float(record["written_at"])
        if age >= self.ttl_seconds:
            logger.info("%s: file list cache expired (%.0fs old)", directory, age)
            return None

        files = [os.path.join(directory, rel) for rel in record["files"]]
        logger.info("%s: %d files from cache (%.0fs old)", directory, len(files), age)
        self._loaded = True
        return files

    def store(self, directory: str, files: list[str], *, now: float | None = None) -> None:
        """Write the file list, unless this run's list came from the cache."""
        self._require_lock()
        if self._loaded:
            return
        directory = os.path.abspath(directory)
        record = {
            "directory": directory,
            "files": [os.path.relpath(f, directory) for f in files],
            "written_at": int(time.time() if now is None else now),
        }
        try:
            atomic_write_json(self.path, record)
        except OSError as e:
            raise CacheError(f"cannot write {self.path}: {e}", path=str(self.path)) from e
        self._loaded = True
        logger.info("%s: cached %d files in %s", directory, len(files), self.path)

    def invalidate(self) -> None:
        """Drop the record so the next run rescans."""
        self._require_lock()
        try:
            self.path.unlink()
        except FileNotFoundError:
            return
        except OSError as e:
            raise CacheError(f"cannot remove {self.path}: {e}", path=str(self.path)) from e
        logger.info("%s: file list cache invalidated", self.path)
