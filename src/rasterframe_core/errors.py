"""Typed failures raised by the framing decoders.

Every format failure is a ``FramingError`` carrying a stable ``code``.
I/O failures are left as ``OSError`` and always propagate.
"""
from __future__ import annotations


class FramingError(ValueError):
    code = "E_OTHER"

    def __init__(self, message: str, offset: int | None = None):
        super().__init__(message)
        self.offset = offset


class InvalidSignature(FramingError):
    code = "E_SIGNATURE"


class InvalidHeader(FramingError):
    code = "E_HEADER"


class InvalidChunk(FramingError):
    code = "E_CHUNK"


class InvalidImageData(FramingError):
    code = "E_IMAGE_DATA"


class CorruptStream(FramingError):
    code = "E_STREAM"


class CrcMismatch(FramingError):
    """Stored and computed CRC-32 disagree.

    ``recover`` is the number of bytes from ``offset`` (the payload start)
    to the next record boundary, so a consumer can resync instead of aborting.
    """

    code = "E_CRC"

    def __init__(self, kind, offset: int, recover: int, crc_val: int, crc_sum: int):
        super().__init__(
            f"CRC mismatch in {kind.name} chunk at offset {offset}: "
            f"stored {crc_val:08x}, computed {crc_sum:08x}",
            offset=offset,
        )
        self.kind = kind
        self.recover = recover
        self.crc_val = crc_val
        self.crc_sum = crc_sum

    @property
    def next_offset(self) -> int:
        return self.offset + self.recover


class DecoderStateError(RuntimeError):
    """An operation was called from a state that does not permit it."""
