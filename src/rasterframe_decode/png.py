"""PNG chunk framing decoder.

Frames [Length | Type | Payload | CRC] records straight from the handle and
yields a Signature followed by ChunkRecord descriptors up to and including
IEND. Payloads are never buffered; when CRC verification is on they are
streamed through zlib.crc32 in fixed-size blocks.
"""
from __future__ import annotations

import enum
import io
import struct
import zlib
from dataclasses import dataclass
from typing import BinaryIO
from warnings import warn

from rasterframe_core.decoder import PullDecoder, Signature
from rasterframe_core.errors import CrcMismatch, DecoderStateError, InvalidChunk, InvalidSignature
from rasterframe_core.protocol import (
    BIT_DEPTHS,
    CHUNK_CRC_LEN,
    CHUNK_LENGTH_FMT,
    CHUNK_LENGTH_LEN,
    CHUNK_TYPE_LEN,
    COLOR_BIT_DEPTHS,
    COMPRESSION_DEFLATE,
    DEFAULT_BLOCK_SIZE,
    FILTER_ADAPTIVE,
    IHDR_FMT,
    IHDR_LEN,
    INTERLACE_ADAM7,
    INTERLACE_NONE,
    MAX_CHUNK_LENGTH,
    MAX_IMAGE_DIMENSION,
    PNG_SIGNATURE,
    PNG_SIGNATURE_LEN,
    UNKNOWN_CHUNK_POLICIES,
    UNKNOWN_CHUNKS_FATAL,
    UNKNOWN_CHUNKS_SKIP,
    ChunkKind,
    ColorType,
    is_ancillary_code,
)
from rasterframe_core.regions import Region


class State(enum.Enum):
    PENDING = "pending"
    SIGNATURE = "signature"
    CHUNK = "chunk"
    TRAILER = "trailer"


TRANSITIONS = {
    State.PENDING: frozenset({State.SIGNATURE}),
    State.SIGNATURE: frozenset({State.CHUNK, State.TRAILER}),
    State.CHUNK: frozenset({State.CHUNK, State.TRAILER}),
}

_KINDS = {kind.value: kind for kind in ChunkKind}


@dataclass(frozen=True)
class ChunkRecord:
    """Describes, but does not contain, one chunk's payload."""

    index: int
    length: int
    kind: ChunkKind
    crc: bytes
    offset: int

    @property
    def region(self) -> Region:
        return Region(self.offset, self.length)

    @property
    def crc_value(self) -> int:
        return int.from_bytes(self.crc, "big")

    @property
    def next_offset(self) -> int:
        return self.offset + self.length + CHUNK_CRC_LEN


@dataclass(frozen=True)
class ImageHeader:
    width: int
    height: int
    bit_depth: int
    color_type: ColorType
    compression_method: int
    filter_method: int
    interlace_method: int

    @property
    def samples(self) -> int:
        return self.color_type.samples

    @property
    def scanline_size(self) -> int:
        """Bytes per non-interlaced scanline, including the filter-type byte."""
        return 1 + (self.width * self.samples * self.bit_depth + 7) // 8


def chunk_crc(kind_code: bytes, blocks, crc: int = 0) -> int:
    """CRC-32 over the type code followed by the payload blocks."""
    crc = zlib.crc32(kind_code, crc)
    for block in blocks:
        crc = zlib.crc32(block, crc)
    return crc & 0xFFFFFFFF


class PngDecoder(PullDecoder):
    """Pull decoder for the PNG chunk container.

    Usage:
        with open("image.png", "rb") as f:
            decoder = PngDecoder(f)
            for element in decoder:
                ...
            if decoder.error is not None:
                ...

    ``verify_crc`` checks every chunk CRC eagerly; when off, the stored CRC
    is only recorded and can be checked later with ``verify_record_crc``.
    ``unknown_chunks`` is "fatal" (any unrecognised type code fails) or
    "skip" (unrecognised ancillary chunks are stepped over).

    IHDR is decoded and range-checked as it is framed; the result is kept
    on ``image_header``.
    """

    TRANSITIONS = TRANSITIONS
    TERMINAL = frozenset({State.TRAILER})

    def __init__(
        self,
        handle: BinaryIO,
        *,
        verify_crc: bool = True,
        unknown_chunks: str = UNKNOWN_CHUNKS_FATAL,
        block_size: int = DEFAULT_BLOCK_SIZE,
    ):
        if unknown_chunks not in UNKNOWN_CHUNK_POLICIES:
            raise ValueError(f"unknown_chunks must be one of {UNKNOWN_CHUNK_POLICIES}, got {unknown_chunks!r}")
        super().__init__(State.PENDING)
        self.handle = handle
        self.verify_crc = verify_crc
        self.unknown_chunks = unknown_chunks
        self.block_size = block_size
        self.chunk_index = 0
        self.image_header: ImageHeader | None = None
        self.skipped: list[tuple[bytes, int, int]] = []  # (code, offset, length)
        self._size: int | None = None

    def read_signature(self) -> Signature:
        self._require(State.PENDING)
        self.handle.seek(0)

        signature = self.handle.read(PNG_SIGNATURE_LEN)
        if len(signature) < PNG_SIGNATURE_LEN:
            raise InvalidSignature(f"Truncated signature ({len(signature)} bytes)", offset=0)
        if signature != PNG_SIGNATURE:
            raise InvalidSignature(f"Signature mismatch {signature!r}", offset=0)

        self.chunk_index = 0
        self._advance(State.SIGNATURE)
        return Signature(signature)

    def read_chunk(self) -> ChunkRecord:
        self._require(State.SIGNATURE, State.CHUNK)

        while True:
            start = self.handle.tell()
            length = self._read_length(start)
            code = self._read_exact(CHUNK_TYPE_LEN, "chunk type", start)
            offset = start + CHUNK_LENGTH_LEN + CHUNK_TYPE_LEN

            kind = _KINDS.get(code)
            if kind is not None:
                break
            self._handle_unknown(code, offset, length)

        crc, crc_sum = self._read_payload_and_crc(code, offset, length)
        if self.verify_crc and crc_sum != int.from_bytes(crc, "big"):
            raise CrcMismatch(
                kind,
                offset=offset,
                recover=length + CHUNK_CRC_LEN,
                crc_val=int.from_bytes(crc, "big"),
                crc_sum=crc_sum,
            )

        record = ChunkRecord(self.chunk_index, length, kind, crc, offset)
        if kind is ChunkKind.IHDR:
            self.image_header = parse_image_header(self.handle, record)
            self.handle.seek(record.next_offset)
        return self._emit(record)

    def resync(self, error: CrcMismatch) -> None:
        """Step past the chunk that failed its CRC and resume iteration.

        The corrupt chunk keeps its index, so later records are numbered as
        if it had been yielded.
        """
        if not isinstance(error, CrcMismatch):
            raise DecoderStateError(f"Cannot resync after {type(error).__name__}")
        if self.error is not None and error is not self.error:
            raise DecoderStateError("Decoder failed with a different error; resync refused")
        self._require(State.SIGNATURE, State.CHUNK)
        self.handle.seek(error.next_offset)
        self.error = None
        self.chunk_index += 1
        self._advance(State.TRAILER if error.kind is ChunkKind.IEND else State.CHUNK)

    def verify_record_crc(self, record: ChunkRecord) -> None:
        """Deferred CRC check for a record produced with ``verify_crc=False``."""
        crc_sum = chunk_crc(record.kind.value, record.region.iter_blocks(self.handle, self.block_size))
        if crc_sum != record.crc_value:
            raise CrcMismatch(
                record.kind,
                offset=record.offset,
                recover=record.next_offset - record.offset,
                crc_val=record.crc_value,
                crc_sum=crc_sum,
            )

    def _step(self):
        if self.state is State.PENDING:
            return self.read_signature()
        return self.read_chunk()

    # -- framing helpers --

    def _emit(self, record: ChunkRecord) -> ChunkRecord:
        self.chunk_index += 1
        self._advance(State.TRAILER if record.kind is ChunkKind.IEND else State.CHUNK)
        return record

    def _handle_unknown(self, code: bytes, offset: int, length: int) -> None:
        if not code.isalpha():
            raise InvalidChunk(f"Malformed chunk type {code!r}", offset=offset - CHUNK_TYPE_LEN)
        if self.unknown_chunks != UNKNOWN_CHUNKS_SKIP or not is_ancillary_code(code):
            raise InvalidChunk(f"Unknown chunk type {code!r}", offset=offset - CHUNK_TYPE_LEN)

        self._check_bounds(offset, length)
        self.handle.seek(offset + length + CHUNK_CRC_LEN)
        self.skipped.append((code, offset, length))
        warn(f"Skipped unknown ancillary chunk {code.decode('ascii')} at offset {offset} ({length} bytes)")

    def _read_payload_and_crc(self, code: bytes, offset: int, length: int) -> tuple[bytes, int]:
        self._check_bounds(offset, length)

        crc_sum = 0
        if self.verify_crc:
            crc_sum = chunk_crc(code, Region(offset, length).iter_blocks(self.handle, self.block_size))
        else:
            self.handle.seek(offset + length)

        crc = self._read_exact(CHUNK_CRC_LEN, "CRC", offset + length)
        return crc, crc_sum

    def _read_length(self, start: int) -> int:
        raw = self._read_exact(CHUNK_LENGTH_LEN, "chunk length", start)
        (length,) = struct.unpack(CHUNK_LENGTH_FMT, raw)
        if length > MAX_CHUNK_LENGTH:
            raise InvalidChunk(f"Chunk length {length} exceeds {MAX_CHUNK_LENGTH}", offset=start)
        return length

    def _read_exact(self, n: int, what: str, offset: int) -> bytes:
        data = self.handle.read(n)
        if len(data) != n:
            raise InvalidChunk(f"Truncated {what} at offset {offset}", offset=offset)
        return data

    def _check_bounds(self, offset: int, length: int) -> None:
        if self._size is None:
            pos = self.handle.tell()
            self._size = self.handle.seek(0, io.SEEK_END)
            self.handle.seek(pos)
        if offset + length + CHUNK_CRC_LEN > self._size:
            raise InvalidChunk(
                f"Chunk at offset {offset} declares {length} bytes but the source ends at {self._size}",
                offset=offset,
            )


def parse_image_header(handle: BinaryIO, record: ChunkRecord) -> ImageHeader:
    """Decode and range-check the fixed 13-byte IHDR payload."""
    if record.kind is not ChunkKind.IHDR:
        raise InvalidChunk(f"Expected IHDR, got {record.kind.name}", offset=record.offset)
    if record.length != IHDR_LEN:
        raise InvalidChunk(f"IHDR length {record.length} != {IHDR_LEN}", offset=record.offset)

    raw = record.region.read(handle)
    width, height, bit_depth, color, compression, filter_method, interlace = struct.unpack(IHDR_FMT, raw)

    if not 1 <= width <= MAX_IMAGE_DIMENSION or not 1 <= height <= MAX_IMAGE_DIMENSION:
        raise InvalidChunk(f"IHDR dimensions {width}x{height} out of range", offset=record.offset)
    if bit_depth not in BIT_DEPTHS:
        raise InvalidChunk(f"IHDR bit depth {bit_depth} invalid", offset=record.offset)
    try:
        color_type = ColorType(color)
    except ValueError:
        raise InvalidChunk(f"IHDR colour type {color} invalid", offset=record.offset) from None
    if bit_depth not in COLOR_BIT_DEPTHS[color_type]:
        raise InvalidChunk(
            f"IHDR bit depth {bit_depth} not allowed for colour type {color_type.name}",
            offset=record.offset,
        )
    if compression != COMPRESSION_DEFLATE:
        raise InvalidChunk(f"IHDR compression method {compression} unsupported", offset=record.offset)
    if filter_method != FILTER_ADAPTIVE:
        raise InvalidChunk(f"IHDR filter method {filter_method} unsupported", offset=record.offset)
    if interlace not in (INTERLACE_NONE, INTERLACE_ADAM7):
        raise InvalidChunk(f"IHDR interlace method {interlace} unsupported", offset=record.offset)

    return ImageHeader(
        width=width,
        height=height,
        bit_depth=bit_depth,
        color_type=color_type,
        compression_method=compression,
        filter_method=filter_method,
        interlace_method=interlace,
    )
