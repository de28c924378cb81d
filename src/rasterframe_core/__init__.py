"""rasterframe core - shared constants, errors, tokenizer and regions."""
from .errors import (
    FramingError,
    InvalidSignature,
    InvalidHeader,
    InvalidChunk,
    InvalidImageData,
    CorruptStream,
    CrcMismatch,
    DecoderStateError,
)
from .regions import Region, read_regions
from .tokens import Lookahead, TokenReader

__all__ = [
    "FramingError",
    "InvalidSignature",
    "InvalidHeader",
    "InvalidChunk",
    "InvalidImageData",
    "CorruptStream",
    "CrcMismatch",
    "DecoderStateError",
    "Region",
    "read_regions",
    "Lookahead",
    "TokenReader",
]
