from __future__ import annotations

import html
import logging
import re
from dataclasses import dataclass
from typing import Callable
from urllib.parse import urljoin

import requests
from lxml import etree
from lxml import html as lxml_html

from imagepick._util import has_good_extension
from imagepick.errors import FeedError

logger = logging.getLogger(__name__)

MRSS_NAMESPACE = "http://search.yahoo.com/mrss/"

_FEED_TYPES = frozenset({"application/rss+xml", "application/atom+xml"})

_ENTRY_TAGS = frozenset({"item", "entry"})

_MAX_DISCOVERY_DEPTH = 3

_XML_HEAD_RE = re.compile(
    r"^\s*(?:(?:<!--.*?-->|<!doctype\s+(?:rss|feed|rdf:rdf)\b[^>]*>)\s*)*<(?:\?xml|rss|feed|rdf:rdf)\b",
    re.IGNORECASE | re.DOTALL,
)
_HTML_HEAD_RE = re.compile(r"<(?:!doctype\s+html|html|head|body)\b", re.IGNORECASE)


@dataclass(frozen=True)
class FeedItem:
    url: str    # image URL
    id: str     # unique id; the image URL when the entry has none


FetchFn = Callable[[str], bytes]


def fetch_feed(
    session: requests.Session,
    url: str,
    *,
    timeout_seconds: float = 10.0,
    max_bytes: int = 10_000_000,
) -> bytes:
    """GET a feed (or the HTML page that advertises one)."""
    buf = bytearray()
    try:
        with session.get(url, timeout=timeout_seconds, allow_redirects=True, stream=True) as resp:
            resp.raise_for_status()
            for chunk in resp.iter_content(chunk_size=64_000):
                if not chunk:
                    continue
                buf.extend(chunk)
                if len(buf) > max_bytes:
                    raise FeedError(f"{url}: feed larger than {max_bytes} bytes")
    except requests.RequestException as e:
        raise FeedError(f"{url}: {e}") from e
    logger.info("%s: fetched %d bytes", url, len(buf))
    return bytes(buf)


def _decode_head(body: bytes, limit: int = 4096) -> str:
    return body[:limit].decode("utf-8", errors="ignore").lstrip("\ufeff")


def looks_like_xml(body: bytes) -> bool:
    return bool(_XML_HEAD_RE.match(_decode_head(body)))


def looks_like_html(body: bytes) -> bool:
    return bool(_HTML_HEAD_RE.search(_decode_head(body)))


def _names(el: etree._Element) -> tuple[str, str]:
    """(prefix, local name), both lower-cased; ('', '') for comments/PIs."""
    tag = el.tag
    if not isinstance(tag, str):
        return "", ""
    if tag.startswith("{"):
        ns, _, local = tag[1:].partition("}")
        prefix = el.prefix or ("media" if ns == MRSS_NAMESPACE else "")
        return prefix.lower(), local.lower()
    # An undeclared prefix survives recovery as part of the tag.
    prefix, _, local = tag.rpartition(":")
    return prefix.lower(), local.lower()


def _local(el: etree._Element) -> str:
    return _names(el)[1]


def _attrs(el: etree._Element) -> dict[str, str]:
    out: dict[str, str] = {}
    for k, v in el.attrib.items():
        key = str(k).rpartition("}")[2].lower()
        out.setdefault(key, str(v).strip())
    return out


def _text(el: etree._Element) -> str:
    return "".join(el.itertext()).strip()


def _inner_markup(el: etree._Element) -> str:
    """Text plus serialized children: descriptions may hold escaped HTML,
    CDATA, or raw markup that recovery turned into elements."""
    parts = [el.text or ""]
    for child in el:
        parts.append(etree.tostring(child, encoding="unicode", with_tail=True))
    return "".join(parts)


def _entry_elements(entry: etree._Element):
    """Descendants of *entry* in document order, not crossing into nested entries."""
    for child in entry:
        local = _local(child)
        if not local or local in _ENTRY_TAGS:
            continue
        yield child
        yield from _entry_elements(child)


# ---------------------------------------------------------------------------
# Image URL strategies, tried in this order.
# ---------------------------------------------------------------------------

def _from_link_enclosure(elements: list[etree._Element]) -> str | None:
    for el in elements:
        if _local(el) != "link":
            continue
        a = _attrs(el)
        if a.get("rel", "").lower() != "enclosure" or not a.get("href"):
            continue
        ctype = a.get("type")
        if ctype is None or ctype.lower().startswith("image/"):
            return a["href"]
    return None


def _from_media_content(elements: list[etree._Element]) -> str | None:
    for el in elements:
        prefix, local = _names(el)
        if prefix == "media" and local == "content":
            url = _attrs(el).get("url")
            if url:
                return url
    return None


def _from_enclosure(elements: list[etree._Element]) -> str | None:
    for el in elements:
        if _local(el) != "enclosure":
            continue
        a = _attrs(el)
        if a.get("url") and a.get("type", "").lower().startswith("image/"):
            return a["url"]
    return None


def _from_url_text(elements: list[etree._Element]) -> str | None:
    for el in elements:
        if _local(el) != "url":
            continue
        url = _text(el)
        if url and has_good_extension(url.split("?", 1)[0].split("#", 1)[0]):
            return url
    return None


def _from_description_img(elements: list[etree._Element]) -> str | None:
    for el in elements:
        if _local(el) != "description":
            continue
        markup = html.unescape(_inner_markup(el)).strip()
        if "<" not in markup:
            continue
        try:
            doc = lxml_html.fromstring(f"<div>{markup}</div>")
        except (etree.ParserError, ValueError):
            continue
        for img in doc.iter("img"):
            src = (img.get("src") or "").strip()
            if src:
                return src
    return None


_IMAGE_STRATEGIES = (
    _from_link_enclosure,
    _from_media_content,
    _from_enclosure,
    _from_url_text,
    _from_description_img,
)


def _entry_id(elements: list[etree._Element]) -> str | None:
    for name in ("id", "guid", "link"):
        for el in elements:
            if _local(el) == name:
                value = _text(el)
                if value:
                    return value
    return None


def _parse_entry(entry: etree._Element) -> FeedItem | None:
    elements = list(_entry_elements(entry))
    url = None
    for strategy in _IMAGE_STRATEGIES:
        url = strategy(elements)
        if url:
            break
    if not url:
        return None
    url = url.strip()
    return FeedItem(url=url, id=_entry_id(elements) or url)


def parse_feed_xml(body: bytes) -> list[FeedItem]:
    """Extract (image url, id) pairs from an RSS or Atom document.

    Markup errors are tolerated; entries without an image are dropped.
    """
    parser = etree.XMLParser(recover=True, resolve_entities=False, no_network=True)
    try:
        root = etree.fromstring(body.lstrip(b"\xef\xbb\xbf \t\r\n"), parser=parser)
    except etree.XMLSyntaxError:
        root = None
    if root is None:
        return []

    items: list[FeedItem] = []
    seen: dict[str, str] = {}
    entries = [el for el in root.iter() if _local(el) in _ENTRY_TAGS]
    for entry in entries:
        item = _parse_entry(entry)
        if item is None:
            continue
        first_url = seen.get(item.id)
        if first_url is not None:
            if first_url != item.url:
                logger.warning("duplicate id %s: keeping %s, ignoring %s", item.id, first_url, item.url)
            continue
        seen[item.id] = item.url
        items.append(item)

    logger.info("feed: %d entries, %d with images", len(entries), len(items))
    return items


def discover_feed_url(body: bytes, *, base_url: str) -> str | None:
    """The first RSS/Atom <link rel="alternate"> in an HTML page."""
    try:
        doc = lxml_html.document_fromstring(body)
    except (etree.ParserError, ValueError):
        return None
    for link in doc.iter("link"):
        rel = (link.get("rel") or "").lower().split()
        ctype = (link.get("type") or "").strip().lower()
        href = (link.get("href") or "").strip()
        if "alternate" in rel and ctype in _FEED_TYPES and href:
            return urljoin(base_url, href)
    return None


def parse_feed(
    body: bytes,
    *,
    base_url: str,
    fetch: FetchFn | None = None,
    _depth: int = 0,
) -> list[FeedItem]:
    """Parse a feed body, following HTML autodiscovery when needed.

    *fetch* retrieves a discovered feed URL; without it an HTML page is an
    error. Raises FeedError when no feed can be found.
    """
    if looks_like_xml(body):
        return parse_feed_xml(body)

    if not looks_like_html(body):
        raise FeedError(f"{base_url}: not an RSS/Atom feed or HTML page")

    feed_url = discover_feed_url(body, base_url=base_url)
    if not feed_url:
        raise FeedError(f"{base_url}: HTML page without an RSS/Atom link")
    if fetch is None or _depth >= _MAX_DISCOVERY_DEPTH:
        raise FeedError(f"{base_url}: cannot follow feed link {feed_url}")

    logger.info("%s: following feed link %s", base_url, feed_url)
    return parse_feed(fetch(feed_url), base_url=feed_url, fetch=fetch, _depth=_depth + 1)
