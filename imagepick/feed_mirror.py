"""Local mirror of the images referenced by an RSS/Atom feed.

Each feed URL gets its own directory under ``<state_dir>/feeds``, named by
the MD5 of the URL. Images are stored as ``<md5(item id)>.<ext>`` next to
a ``.timestamp`` marker whose mtime records the last successful poll. The
marker doubles as the lock file: every invocation touching a feed holds
an exclusive lock on it for the whole check/poll/prune span.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from functools import partial
from pathlib import Path

import requests

from imagepick._util import GOOD_EXTENSIONS, extension_from_url, md5_hex
from imagepick.config import Settings
from imagepick.errors import CacheError, FeedError, NoImagesError
from imagepick.feed_parser import FeedItem, fetch_feed, parse_feed
from imagepick.image_fetch import download_image, large_variant_url, make_session
from imagepick.state_store import FileLock, file_age_seconds, touch

logger = logging.getLogger(__name__)

MARKER_NAME = ".timestamp"


@dataclass
class PollStats:
    items: int = 0
    downloaded: int = 0
    reused: int = 0
    rejected: int = 0
    failed: int = 0
    pruned: int = 0
    refreshed: set[str] = field(default_factory=set)


def feed_dir_for(feeds_dir: Path, url: str) -> Path:
    return Path(feeds_dir) / md5_hex(url)


def _image_files(feed_dir: Path) -> list[Path]:
    try:
        return sorted(p for p in feed_dir.iterdir() if not p.name.startswith(".") and p.is_file())
    except FileNotFoundError:
        return []


class FeedMirror:
    def __init__(self, settings: Settings, *, session: requests.Session | None = None) -> None:
        self.settings = settings
        self.session = session or make_session(settings.user_agent)

    def sync(self, url: str, *, use_cache: bool = True) -> Path:
        """Bring the feed's directory up to date; returns the directory.

        Raises NoImagesError when, after polling, the directory holds no
        images at all.
        """
        feed_dir = feed_dir_for(self.settings.feeds_dir, url)
        marker = feed_dir / MARKER_NAME
        try:
            feed_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise CacheError(f"cannot create {feed_dir}: {e}", path=str(feed_dir)) from e

        with FileLock(marker):
            # Taking the lock creates the marker, so its age is only read from here on.
            existing = _image_files(feed_dir)
            age = file_age_seconds(marker)

            if not use_cache:
                reason = "caching disabled"
            elif not existing:
                reason = "no cached images"
            elif age is None:
                reason = "no poll marker"
            elif age > self.settings.feed_ttl_seconds:
                reason = f"{age:.0f}s old"
            else:
                reason = None

            if reason is None:
                logger.info("%s: %d cached images in %s (%.0fs old)", url, len(existing), feed_dir, age)
                return feed_dir

            logger.info("%s: polling (%s)", url, reason)
            stats = self._poll(url, feed_dir)
            self._prune(url, feed_dir, existing, stats)

            survivors = len(_image_files(feed_dir)) + (1 if marker.exists() else 0)
            if survivors <= 1:
                raise NoImagesError(f"{url}: no images in feed")

            touch(marker)
            logger.info(
                "%s: %d items, %d downloaded, %d reused, %d rejected, %d failed, %d pruned",
                url, stats.items, stats.downloaded, stats.reused, stats.rejected, stats.failed, stats.pruned,
            )
        return feed_dir

    def _poll(self, url: str, feed_dir: Path) -> PollStats:
        stats = PollStats()
        fetch = partial(
            fetch_feed,
            self.session,
            timeout_seconds=self.settings.http_timeout_seconds,
        )
        try:
            items = parse_feed(fetch(url), base_url=url, fetch=fetch)
        except FeedError as e:
            logger.warning("%s", e)
            return stats

        stats.items = len(items)
        for item in items:
            self._mirror_item(item, feed_dir, stats)
        return stats

    def _mirror_item(self, item: FeedItem, feed_dir: Path, stats: PollStats) -> None:
        ext = extension_from_url(item.url)
        if not ext or ext not in GOOD_EXTENSIONS:
            logger.info("%s: not a known image type, skipping", item.url)
            stats.rejected += 1
            return

        name = f"{md5_hex(item.id)}.{ext}"
        dest = feed_dir / name
        if dest.exists():
            # Presence implies freshness; ids do not get new images.
            stats.reused += 1
            stats.refreshed.add(name)
            return

        image_url = large_variant_url(item.url)
        result = download_image(
            self.session,
            image_url,
            dest_path=dest,
            timeout_seconds=self.settings.http_timeout_seconds,
        )
        if not result.ok:
            logger.info("%s: download failed: %s", image_url, result.error)
            stats.failed += 1
            return
        if result.final_url and result.final_url != image_url:
            logger.info("%s: redirected to %s", image_url, result.final_url)
        logger.debug("%s: %d bytes (%s) -> %s", image_url, result.bytes_written, result.content_type or "no type", result.path)
        stats.downloaded += 1
        stats.refreshed.add(name)

    def _prune(self, url: str, feed_dir: Path, existing: list[Path], stats: PollStats) -> None:
        if not stats.refreshed:
            if existing:
                logger.warning("%s: feed yielded no images, keeping %d cached", url, len(existing))
            return
        for path in existing:
            if path.name in stats.refreshed:
                continue
            try:
                os.unlink(path)
            except FileNotFoundError:
                continue
            except OSError as e:
                logger.info("%s: cannot remove: %s", path, e)
                continue
            logger.debug("%s: no longer in feed, removed", path)
            stats.pruned += 1
