from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlsplit, urlunsplit

import requests

from imagepick.config import DEFAULT_USER_AGENT

# Flickr names its renditions photo_<size>.jpg; "_b" is the 1024px one.
_FLICKR_HOST_RE = re.compile(r"(?:^|\.)(?:static)?flickr\.com$", re.IGNORECASE)
_FLICKR_SIZE_RE = re.compile(r"_[a-z](\.[a-z\d]+)$", re.IGNORECASE)
_FLICKR_EXT_RE = re.compile(r"(\.[a-z\d]+)$", re.IGNORECASE)


def make_session(user_agent: str = DEFAULT_USER_AGENT) -> requests.Session:
    """HTTP session with a fixed client identity.

    Proxy settings come from the environment (http_proxy, https_proxy,
    no_proxy), which requests honours by default.
    """
    session = requests.Session()
    session.headers.update({"User-Agent": user_agent})
    return session


def large_variant_url(url: str) -> str:
    """Rewrite a Flickr thumbnail URL to its large rendition."""
    try:
        parts = urlsplit(url)
    except ValueError:
        return url
    host = parts.hostname or ""
    if not _FLICKR_HOST_RE.search(host):
        return url
    path = _FLICKR_SIZE_RE.sub(r"\1", parts.path)
    path = _FLICKR_EXT_RE.sub(r"_b\1", path)
    return urlunsplit(parts._replace(path=path))


@dataclass(frozen=True)
class DownloadResult:
    ok: bool
    path: str | None
    final_url: str | None
    content_type: str | None
    bytes_written: int
    error: str | None


def download_image(
    session: requests.Session,
    image_url: str,
    *,
    dest_path: Path,
    timeout_seconds: float = 10.0,
    max_bytes: int = 20_000_000,
) -> DownloadResult:
    """Fetch *image_url* into *dest_path*.

    The body is streamed into a temp file beside *dest_path* and renamed
    into place only when complete, so a file at *dest_path* is always a
    whole download.
    """
    image_url = str(image_url or "").strip()
    if not image_url.startswith(("http://", "https://")):
        return DownloadResult(ok=False, path=None, final_url=None, content_type=None, bytes_written=0, error="invalid_url")

    dest_path = Path(dest_path)
    tmp = dest_path.with_name(f".{dest_path.name}.tmp.{os.getpid()}")
    written = 0
    final_url: str | None = None
    ctype: str | None = None
    try:
        with session.get(
            image_url,
            headers={"Accept": "image/*,*/*;q=0.8"},
            timeout=timeout_seconds,
            allow_redirects=True,
            stream=True,
        ) as resp:
            final_url = str(getattr(resp, "url", image_url) or image_url)
            if resp.status_code < 200 or resp.status_code >= 400:
                return DownloadResult(ok=False, path=None, final_url=final_url, content_type=None, bytes_written=0, error=f"http_status:{resp.status_code}")
            ctype = str(resp.headers.get("content-type") or "").lower() or None

            with open(tmp, "wb") as f:
                for chunk in resp.iter_content(chunk_size=64_000):
                    if not chunk:
                        continue
                    written += len(chunk)
                    if written > int(max_bytes):
                        return DownloadResult(ok=False, path=None, final_url=final_url, content_type=ctype, bytes_written=written, error="too_large")
                    f.write(chunk)
        if written == 0:
            return DownloadResult(ok=False, path=None, final_url=final_url, content_type=ctype, bytes_written=0, error="empty")
        os.replace(tmp, dest_path)
    except (requests.RequestException, OSError) as e:
        return DownloadResult(ok=False, path=None, final_url=final_url, content_type=ctype, bytes_written=written, error=str(e))
    finally:
        try:
            tmp.unlink()
        except FileNotFoundError:
            pass

    return DownloadResult(ok=True, path=str(dest_path), final_url=final_url, content_type=ctype, bytes_written=written, error=None)
