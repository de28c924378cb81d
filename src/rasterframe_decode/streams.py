from __future__ import annotations

import zlib
from pathlib import Path
from typing import BinaryIO, Iterable

from rasterframe_core.decoder import Signature
from rasterframe_core.errors import CorruptStream, InvalidChunk
from rasterframe_core.protocol import (
    ALL_NETPBM,
    COMMENT,
    DEFAULT_BLOCK_SIZE,
    PNG_SIGNATURE,
    PNG_SIGNATURE_LEN,
    WHITESPACE,
    ChunkKind,
)
from rasterframe_core.regions import Region, read_regions
from rasterframe_decode.netpbm import NetpbmHeader
from rasterframe_decode.png import ChunkRecord, ImageHeader, PngDecoder


def data_regions(records: Iterable[ChunkRecord]) -> list[Region]:
    """IDAT payload regions in file order.

    Consecutive IDAT chunks are contiguous slices of one zlib stream.
    """
    return [r.region for r in records if r.kind is ChunkKind.IDAT]


def read_data_stream(handle: BinaryIO, records: Iterable[ChunkRecord]) -> bytes:
    """Concatenate the IDAT payloads, byte for byte."""
    return read_regions(handle, data_regions(records))


def inflate_data_stream(
    handle: BinaryIO,
    records: Iterable[ChunkRecord],
    block_size: int = DEFAULT_BLOCK_SIZE,
) -> bytes:
    """Feed the IDAT regions block by block into zlib and return the inflated bytes."""
    inflater = zlib.decompressobj()
    out = bytearray()
    try:
        for region in data_regions(records):
            for block in region.iter_blocks(handle, block_size):
                out += inflater.decompress(block)
        out += inflater.flush()
    except zlib.error as e:
        raise CorruptStream(f"Compressed data stream is corrupt: {e}") from e

    if not inflater.eof:
        raise CorruptStream("Compressed data stream ended before its final block")
    return bytes(out)


def decode_png(handle: BinaryIO, **options) -> tuple[Signature, list[ChunkRecord], ImageHeader]:
    """Run a PngDecoder to the end and return its decoded IHDR.

    Re-raises the decoder's stored error, so a partial sequence never
    passes for a complete one.
    """
    decoder = PngDecoder(handle, **options)
    elements = list(decoder)
    if decoder.error is not None:
        raise decoder.error

    signature, records = elements[0], elements[1:]
    if not records or records[0].kind is not ChunkKind.IHDR:
        raise InvalidChunk("First chunk is not IHDR", offset=records[0].offset if records else None)
    return signature, records, decoder.image_header


def describe_element(element) -> dict:
    """JSON-ready summary of one decoder element."""
    if isinstance(element, Signature):
        return {"element": "signature", "value": element.value.hex()}
    if isinstance(element, ChunkRecord):
        return {
            "element": "chunk",
            "index": element.index,
            "kind": element.kind.name,
            "offset": element.offset,
            "length": element.length,
            "crc": element.crc.hex(),
        }
    if isinstance(element, Region):
        return {"element": "data", "offset": element.offset, "length": element.length}
    if isinstance(element, NetpbmHeader):
        return {
            "element": "header",
            "width": element.width,
            "height": element.height,
            "maxval": element.maxval,
            "depth": element.depth,
            "tupltype": element.tupltype.decode("ascii"),
        }
    raise TypeError(f"Not a decoder element: {element!r}")


def sniff_format(path: Path) -> str | None:
    """'png', 'netpbm' or None, judged from at most the first 8 bytes."""
    with open(path, "rb") as f:
        head = f.read(PNG_SIGNATURE_LEN)
    if head == PNG_SIGNATURE:
        return "png"
    if len(head) >= 3 and head[:2] in ALL_NETPBM and (head[2] in WHITESPACE or head[2] == COMMENT):
        return "netpbm"
    return None
