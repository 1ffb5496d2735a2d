"""Shared fixtures: in-memory image blobs built without touching disk."""

from __future__ import annotations

import io
import struct
import zipfile
import zlib
from pathlib import Path

import pytest
from PIL import Image


def make_png(*, width: int = 100, height: int = 100) -> bytes:
    """Create a minimal valid PNG for testing."""

    def _chunk(chunk_type: bytes, data: bytes) -> bytes:
        c = chunk_type + data
        crc = struct.pack(">I", zlib.crc32(c) & 0xFFFFFFFF)
        return struct.pack(">I", len(data)) + c + crc

    signature = b"\x89PNG\r\n\x1a\n"
    ihdr_data = struct.pack(">IIBBBBB", width, height, 8, 2, 0, 0, 0)
    ihdr = _chunk(b"IHDR", ihdr_data)

    raw_data = b""
    for _ in range(height):
        raw_data += b"\x00" + b"\xff\x00\x00" * width
    idat = _chunk(b"IDAT", zlib.compress(raw_data))
    iend = _chunk(b"IEND", b"")

    return signature + ihdr + idat + iend


def make_image(fmt: str, *, width: int = 40, height: int = 30) -> bytes:
    """Encode a solid-color image in *fmt* (a Pillow format name)."""
    img = Image.new("RGB", (width, height), color=(0, 128, 255))
    if fmt == "GIF":
        img = img.convert("P")
    buffer = io.BytesIO()
    img.save(buffer, format=fmt)
    return buffer.getvalue()


def truncated_png(*, width: int = 100, height: int = 100) -> bytes:
    """A PNG whose header is intact but whose pixel data is cut short."""
    data = make_png(width=width, height=height)
    # keep signature + IHDR chunk (8 + 25 bytes) and a sliver of IDAT
    return data[:45]


def _single_member_zip(path: Path, member: str, data: bytes) -> bytearray:
    with zipfile.ZipFile(path, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        archive.writestr(member, data)
    return bytearray(path.read_bytes())


def corrupt_deflate_zip(path: Path, member: str = "01.png") -> Path:
    """A zip whose only member has garbage in place of its deflate stream."""
    raw = _single_member_zip(path, member, make_png())
    name_len, extra_len = struct.unpack_from("<HH", raw, 26)
    start = 30 + name_len + extra_len
    compressed_size = struct.unpack_from("<I", raw, 18)[0]
    # 0xFF sets the reserved deflate block type
    raw[start:start + compressed_size] = b"\xff" * compressed_size
    path.write_bytes(bytes(raw))
    return path


def encrypted_flag_zip(path: Path, member: str = "01.png") -> Path:
    """A zip whose only member claims to be encrypted."""
    raw = _single_member_zip(path, member, make_png())
    raw[6] |= 0x01
    central = raw.rfind(b"PK\x01\x02")
    raw[central + 8] |= 0x01
    path.write_bytes(bytes(raw))
    return path


@pytest.fixture
def png_factory():
    return make_png
