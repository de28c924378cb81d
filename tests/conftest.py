import struct
import zlib

import pytest

from rasterframe_core.protocol import IHDR_FMT, PNG_SIGNATURE


def _chunk(kind: bytes, payload: bytes = b"", crc: int | None = None) -> bytes:
    if crc is None:
        crc = zlib.crc32(kind + payload) & 0xFFFFFFFF
    return struct.pack(">I", len(payload)) + kind + payload + struct.pack(">I", crc)


def _ihdr(width=4, height=2, bit_depth=8, color=2, compression=0, filter_method=0, interlace=0) -> bytes:
    return _chunk(b"IHDR", struct.pack(IHDR_FMT, width, height, bit_depth, color, compression, filter_method, interlace))


def _png(*chunks: bytes) -> bytes:
    return PNG_SIGNATURE + b"".join(chunks)


@pytest.fixture
def chunk():
    return _chunk


@pytest.fixture
def ihdr():
    return _ihdr


@pytest.fixture
def png():
    return _png


@pytest.fixture
def rgb_stream():
    """(raw scanlines, zlib stream) for a 4x2 RGB8 image with filter type 0."""
    raw = b"".join(b"\x00" + bytes(range(y * 12, y * 12 + 12)) for y in range(2))
    return raw, zlib.compress(raw)


@pytest.fixture
def split_png(rgb_stream):
    """A 4x2 RGB PNG with its zlib stream cut into three IDAT chunks."""
    _, stream = rgb_stream
    third = -(-len(stream) // 3)
    idats = [_chunk(b"IDAT", stream[i:i + third]) for i in range(0, len(stream), third)]
    return _png(_ihdr(), _chunk(b"tEXt", b"Title\x00x"), *idats, _chunk(b"IEND"))
