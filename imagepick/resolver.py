"""Turn a command-line target into one selected image path."""

from __future__ import annotations

import logging
import os
import re

import requests

from imagepick.config import Settings
from imagepick.errors import UsageError
from imagepick.feed_mirror import FeedMirror
from imagepick.file_list_cache import FileListCache, file_list_path_for
from imagepick.file_scan import find_all_files, spotlight_files
from imagepick.selector import select_image

logger = logging.getLogger(__name__)

_URL_RE = re.compile(r"^(?:https?|feed)://", re.IGNORECASE)


def is_url(target: str) -> bool:
    return bool(_URL_RE.match(target))


def normalize_feed_url(url: str) -> str:
    """feed://host/path is an alias for http://host/path."""
    if url[:7].lower() == "feed://":
        return "http://" + url[7:]
    return url


def _list_directory(directory: str, settings: Settings) -> list[str]:
    if settings.use_spotlight:
        files = spotlight_files(directory, timeout_seconds=settings.spotlight_timeout_seconds)
        if files:
            return files
        logger.info("%s: Spotlight gave nothing, scanning", directory)
    return find_all_files(directory)


def pick_from_directory(directory: str, settings: Settings) -> str:
    directory = os.path.abspath(directory)
    if not settings.use_cache:
        files = _list_directory(directory, settings)
        return select_image(
            files,
            min_width=settings.min_width,
            min_height=settings.min_height,
            max_attempts=settings.max_attempts,
        )

    cache_path = file_list_path_for(settings.file_lists_dir, directory)
    with FileListCache(cache_path, ttl_seconds=settings.cache_ttl_seconds) as cache:
        files = cache.load(directory)
        if files is None:
            files = _list_directory(directory, settings)
            if files:
                cache.store(directory, files)
        return select_image(
            files,
            min_width=settings.min_width,
            min_height=settings.min_height,
            max_attempts=settings.max_attempts,
            on_exhausted=cache.invalidate,
        )


def pick_from_feed(url: str, settings: Settings, *, session: requests.Session | None = None) -> str:
    mirror = FeedMirror(settings, session=session)
    feed_dir = mirror.sync(normalize_feed_url(url), use_cache=settings.use_cache)
    files = find_all_files(str(feed_dir))
    return select_image(
        files,
        min_width=settings.min_width,
        min_height=settings.min_height,
        max_attempts=settings.max_attempts,
    )


def pick_image(target: str, settings: Settings, *, session: requests.Session | None = None) -> str:
    target = (target or "").strip()
    if not target:
        raise UsageError("no directory or URL given")
    if is_url(target):
        return pick_from_feed(target, settings, session=session)

    path = os.path.expanduser(target)
    if not os.path.exists(path):
        raise UsageError(f"{target}: no such file or directory")
    if not os.path.isdir(path):
        raise UsageError(f"{target}: not a directory")
    return pick_from_directory(path, settings)
