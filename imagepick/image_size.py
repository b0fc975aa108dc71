"""Header-level dimension sniffing for GIF, JPEG and PNG.

Only enough of each format is understood to find the pixel width and
height. Anything unrecognised yields ``None``; callers decide what an
unknown size means.
"""

from __future__ import annotations

import logging
import struct
from pathlib import Path

logger = logging.getLogger(__name__)

# Real-world headers (including JPEG EXIF/ICC segments before the SOF) fit
# comfortably in this prefix.
HEADER_BYTES = 50 * 1024

_GIF_SIGNATURES = (b"GIF87a", b"GIF89a")
_PNG_SIGNATURE = b"\x89PNG\r"

# SOF0..SOF15, minus DHT (C4) and DAC (CC) which share the range.
_SOF_MARKERS = frozenset(range(0xC0, 0xD0)) - {0xC4, 0xCC}
_SOS_MARKER = 0xDA
_EOI_MARKER = 0xD9
# Markers that stand alone, with no length field.
_STANDALONE_MARKERS = frozenset(range(0xD0, 0xD8)) | {0x01, 0xD8}


def gif_size(data: bytes) -> tuple[int, int] | None:
    if len(data) < 10 or data[:6] not in _GIF_SIGNATURES:
        return None
    width, height = struct.unpack("<HH", data[6:10])
    return width, height


def jpeg_size(data: bytes) -> tuple[int, int] | None:
    """Walk the marker segments up to the first Start-Of-Frame."""
    if len(data) < 4 or data[:2] != b"\xff\xd8":
        return None

    n = len(data)
    pos = 2
    while pos < n:
        if data[pos] != 0xFF:
            logger.debug("jpeg: expected marker at offset %d, got 0x%02x", pos, data[pos])
            return None
        # Any number of 0xFF fill bytes may precede the marker code.
        while pos < n and data[pos] == 0xFF:
            pos += 1
        if pos >= n:
            return None
        marker = data[pos]
        pos += 1

        if marker in (_SOS_MARKER, _EOI_MARKER):
            # Image data follows; no frame header was seen.
            return None
        if marker in _STANDALONE_MARKERS:
            continue
        if pos + 2 > n:
            return None
        (length,) = struct.unpack(">H", data[pos:pos + 2])

        if marker in _SOF_MARKERS:
            # length(2) precision(1) height(2) width(2)
            if pos + 7 > n:
                return None
            height, width = struct.unpack(">HH", data[pos + 3:pos + 7])
            return width, height

        if length < 2:
            return None
        pos += length

    return None


def png_size(data: bytes) -> tuple[int, int] | None:
    if len(data) < 24 or data[:5] != _PNG_SIGNATURE or data[12:16] != b"IHDR":
        return None
    width, height = struct.unpack(">II", data[16:24])
    return width, height


def image_size(data: bytes) -> tuple[int, int] | None:
    """Return ``(width, height)`` for a GIF, JPEG or PNG prefix, else None."""
    data = bytes(data[:HEADER_BYTES])
    for sniff in (gif_size, jpeg_size, png_size):
        size = sniff(data)
        if size is not None:
            return size
    return None


def image_file_size(path: str | Path) -> tuple[int, int] | None:
    """Sniff the dimensions of the image stored at *path*.

    Raises OSError when the file cannot be read.
    """
    with open(path, "rb") as f:
        head = f.read(HEADER_BYTES)
    size = image_size(head)
    if size is None:
        logger.debug("%s: unrecognised image header", path)
    return size
