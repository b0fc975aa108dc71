from __future__ import annotations

import struct
import tempfile
from pathlib import Path

import pytest

from imagepick.image_size import gif_size, image_file_size, image_size, jpeg_size, png_size
from imagepick.tests._images import gif_bytes, jpeg_bytes, png_bytes


def test_gif89a_little_endian_dimensions() -> None:
    data = b"GIF89a" + struct.pack("<HH", 200, 100)
    assert image_size(data) == (200, 100)


def test_gif87a() -> None:
    assert gif_size(gif_bytes(1, 65535).replace(b"GIF89a", b"GIF87a")) == (1, 65535)


def test_short_buffer_is_unknown() -> None:
    assert image_size(b"GIF89a\x01") is None
    assert image_size(b"") is None


def test_png_ihdr() -> None:
    assert png_size(png_bytes(300, 200)) == (300, 200)
    assert image_size(png_bytes(4000, 3000)) == (4000, 3000)


def test_png_without_ihdr_is_unknown() -> None:
    data = bytearray(png_bytes(10, 10))
    data[12:16] = b"IDAT"
    assert image_size(bytes(data)) is None


def test_jpeg_sof0_after_app0() -> None:
    assert jpeg_size(jpeg_bytes(640, 480)) == (640, 480)


def test_jpeg_skips_fill_bytes_before_marker() -> None:
    data = jpeg_bytes(32, 16)
    # Insert extra 0xFF padding before the SOF marker.
    idx = data.index(b"\xff\xc0")
    padded = data[:idx] + b"\xff\xff\xff" + data[idx:]
    assert image_size(padded) == (32, 16)


def test_jpeg_without_sof_before_end_is_unknown() -> None:
    app0 = b"\xff\xe0" + struct.pack(">H", 16) + b"JFIF\x00" + b"\x00" * 9
    assert image_size(b"\xff\xd8" + app0) is None


def test_jpeg_stops_at_start_of_scan() -> None:
    data = b"\xff\xd8\xff\xda\x00\x08" + b"\x00" * 6 + b"\xff\xc0" + struct.pack(">HBHH", 11, 8, 10, 10)
    assert image_size(data) is None


def test_jpeg_dht_is_not_a_frame() -> None:
    dht = b"\xff\xc4" + struct.pack(">H", 6) + b"\x00" * 4
    data = b"\xff\xd8" + dht + jpeg_bytes(50, 60)[2:]
    assert image_size(data) == (50, 60)


@pytest.mark.parametrize("data", [b"not an image at all", b"\x00" * 100, b"BM" + b"\x00" * 60])
def test_unrecognised_is_unknown(data: bytes) -> None:
    assert image_size(data) is None


def test_image_file_size_reads_from_disk() -> None:
    with tempfile.TemporaryDirectory() as td:
        p = Path(td) / "a.gif"
        p.write_bytes(gif_bytes(20, 30))
        assert image_file_size(p) == (20, 30)


def test_image_file_size_missing_file_raises() -> None:
    with tempfile.TemporaryDirectory() as td:
        with pytest.raises(OSError):
            image_file_size(Path(td) / "missing.png")
