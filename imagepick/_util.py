"""Shared utilities for the imagepick package.

Centralises the extension tables and small helpers used by the directory
scanner, the feed parser and the feed mirror.
"""

import hashlib
import os
from urllib.parse import urlsplit


# ---------------------------------------------------------------------------
# Extension tables -- drive the stat-avoidance in file_scan and the
# download filter in feed_mirror.
# ---------------------------------------------------------------------------

GOOD_EXTENSIONS: frozenset[str] = frozenset({
    "jpg", "jpeg", "pjpeg", "pjpg",
    "png",
    "gif",
    "tif", "tiff",
    "xbm", "xpm",
})

# Files with these extensions are never directories, so they can be skipped
# without a stat() call.
NONDIR_EXTENSIONS: frozenset[str] = frozenset({
    "ai", "bmp", "bz2", "cr2", "crw", "db", "dmg", "eps", "gz", "hqx",
    "htm", "html", "icns", "ilbm", "mov", "nef", "pbm", "pdf", "pl",
    "ppm", "ps", "psd", "sea", "sh", "shtml", "tar", "tgz", "thb", "txt",
    "xcf", "xmp", "z", "zip",
})


def extension_of(name: str) -> str:
    """Lower-cased extension of *name* without the dot, or ''."""
    base = os.path.basename(name)
    stem, ext = os.path.splitext(base)
    if not stem or not ext:
        return ""
    return ext[1:].lower()


def has_good_extension(name: str) -> bool:
    return extension_of(name) in GOOD_EXTENSIONS


def extension_from_url(url: str) -> str:
    """Extension of the path component of *url* (query/fragment ignored)."""
    try:
        path = urlsplit(url).path or ""
    except ValueError:
        return ""
    return extension_of(path)


# ---------------------------------------------------------------------------
# Stable, filesystem-safe names
# ---------------------------------------------------------------------------

def md5_hex(text: str) -> str:
    return hashlib.md5(text.encode("utf-8")).hexdigest()
