"""Recursive enumeration of candidate image files under a directory.

The walk avoids stat() wherever the name alone settles the question:
files with an image extension are taken as files, files with a known
non-directory extension are skipped, and only the remaining names are
stat-ed to find subdirectories.
"""

from __future__ import annotations

import logging
import os
import shutil
import stat
import subprocess
from dataclasses import dataclass, field

from imagepick._util import NONDIR_EXTENSIONS, extension_of, has_good_extension

logger = logging.getLogger(__name__)


@dataclass
class ScanContext:
    """Traversal state for one enumeration."""

    files: list[str] = field(default_factory=list)
    seen: set[tuple[int, int]] = field(default_factory=set)
    dirs_scanned: int = 0
    stat_calls: int = 0
    skipped: int = 0


def _mark_seen(ctx: ScanContext, st: os.stat_result, path: str) -> bool:
    """Record a directory's (device, inode); False if already visited."""
    key = (st.st_dev, st.st_ino)
    if key in ctx.seen:
        logger.debug("%s: already seen (symlink loop?), skipping", path)
        ctx.skipped += 1
        return False
    ctx.seen.add(key)
    return True


def _scan(dirpath: str, ctx: ScanContext) -> None:
    try:
        names = sorted(os.listdir(dirpath))
    except OSError as e:
        logger.info("%s: cannot read directory: %s", dirpath, e)
        ctx.skipped += 1
        return
    ctx.dirs_scanned += 1

    for name in names:
        if name.startswith("."):
            continue
        path = os.path.join(dirpath, name)

        if has_good_extension(name):
            ctx.files.append(path)
            continue
        if extension_of(name) in NONDIR_EXTENSIONS:
            continue

        ctx.stat_calls += 1
        try:
            st = os.stat(path)
        except OSError as e:
            # Dangling symlinks land here too.
            logger.info("%s: %s", path, e.strerror or e)
            ctx.skipped += 1
            continue

        if stat.S_ISDIR(st.st_mode) and _mark_seen(ctx, st, path):
            _scan(path, ctx)


def scan_directory(root: str, *, context: ScanContext | None = None) -> ScanContext:
    """Enumerate image files under *root*; returns the traversal context.

    Passing an existing *context* continues into it, so several roots can
    share one seen-inode set.
    """
    ctx = context if context is not None else ScanContext()
    root = os.path.abspath(root)
    try:
        st = os.stat(root)
    except OSError as e:
        logger.info("%s: %s", root, e.strerror or e)
        return ctx
    if _mark_seen(ctx, st, root):
        _scan(root, ctx)
    logger.info(
        "%s: %d images in %d directories (%d stat calls, %d skipped)",
        root, len(ctx.files), ctx.dirs_scanned, ctx.stat_calls, ctx.skipped,
    )
    return ctx


def find_all_files(root: str) -> list[str]:
    return scan_directory(root).files


def spotlight_files(root: str, *, timeout_seconds: float = 30.0) -> list[str] | None:
    """Ask the macOS Spotlight index for the images under *root*.

    Returns None when mdfind is unavailable or fails, in which case the
    caller should walk the directory itself.
    """
    mdfind = shutil.which("mdfind")
    if mdfind is None:
        logger.debug("mdfind not found, not using Spotlight")
        return None

    root = os.path.abspath(root)
    cmd = [mdfind, "-onlyin", root, "kMDItemContentTypeTree == 'public.image'"]
    try:
        proc = subprocess.run(cmd, text=True, capture_output=True, timeout=timeout_seconds)
    except subprocess.TimeoutExpired:
        logger.info("mdfind timed out after %.0fs", timeout_seconds)
        return None
    except OSError as e:
        logger.info("mdfind failed: %s", e)
        return None
    if proc.returncode != 0:
        logger.info("mdfind exited %d: %s", proc.returncode, (proc.stderr or "").strip()[:200])
        return None

    files: list[str] = []
    for line in proc.stdout.splitlines():
        path = line.strip()
        if not path or not has_good_extension(path):
            continue
        rel = os.path.relpath(path, root)
        if rel.startswith(os.pardir) or any(part.startswith(".") for part in rel.split(os.sep)):
            continue
        files.append(path)
    logger.info("%s: %d images from Spotlight", root, len(files))
    return files
