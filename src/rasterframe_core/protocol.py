"""rasterframe container constants.

Single source of truth for on-disk magic values and record layouts.
Keep this file stable. Decoders, verifier and sample tools must remain synchronized.
"""
from __future__ import annotations

import enum

# Netpbm magic numbers (2 ASCII bytes, first token of the file)
PBM_ASCII_MAGIC = b"P1"
PGM_ASCII_MAGIC = b"P2"
PPM_ASCII_MAGIC = b"P3"
PBM_BINARY_MAGIC = b"P4"
PGM_BINARY_MAGIC = b"P5"
PPM_BINARY_MAGIC = b"P6"
PAM_MAGIC = b"P7"

ALL_NETPBM = frozenset({
    PBM_ASCII_MAGIC,
    PGM_ASCII_MAGIC,
    PPM_ASCII_MAGIC,
    PBM_BINARY_MAGIC,
    PGM_BINARY_MAGIC,
    PPM_BINARY_MAGIC,
    PAM_MAGIC,
})

# Plain variants store samples as decimal text; raster size is not implied by the header.
PLAIN_NETPBM = frozenset({PBM_ASCII_MAGIC, PGM_ASCII_MAGIC, PPM_ASCII_MAGIC})
BITMAP_NETPBM = frozenset({PBM_ASCII_MAGIC, PBM_BINARY_MAGIC})

# Channels per pixel for the positional variants
NETPBM_CHANNELS = {
    PBM_ASCII_MAGIC: 1,
    PGM_ASCII_MAGIC: 1,
    PPM_ASCII_MAGIC: 3,
    PBM_BINARY_MAGIC: 1,
    PGM_BINARY_MAGIC: 1,
    PPM_BINARY_MAGIC: 3,
}

# Tuple type implied by each positional variant
NETPBM_TUPLTYPE = {
    PBM_ASCII_MAGIC: b"BLACKANDWHITE",
    PGM_ASCII_MAGIC: b"GRAYSCALE",
    PPM_ASCII_MAGIC: b"RGB",
    PBM_BINARY_MAGIC: b"BLACKANDWHITE",
    PGM_BINARY_MAGIC: b"GRAYSCALE",
    PPM_BINARY_MAGIC: b"RGB",
}

# PAM tuple types -> channels per tuple
PAM_TUPLE_TYPES = {
    b"BLACKANDWHITE": 1,
    b"GRAYSCALE": 1,
    b"RGB": 3,
    b"BLACKANDWHITE_ALPHA": 2,
    b"GRAYSCALE_ALPHA": 2,
    b"RGB_ALPHA": 4,
}

# PAM header vocabulary
PAM_KEY_WIDTH = b"WIDTH"
PAM_KEY_HEIGHT = b"HEIGHT"
PAM_KEY_DEPTH = b"DEPTH"
PAM_KEY_MAXVAL = b"MAXVAL"
PAM_KEY_TUPLTYPE = b"TUPLTYPE"
PAM_KEY_ENDHDR = b"ENDHDR"

# Token delimiters: TAB LF VT FF CR SPACE
WHITESPACE = frozenset(b"\t\n\x0b\x0c\r ")
LF = 0x0A
CR = 0x0D
COMMENT = 0x23  # '#'

# Sample ranges
MAX_NARROW_MAXVAL = 255
MAX_WIDE_MAXVAL = 65535
MAX_DIMENSION = 2**64 - 1

# PNG file signature
PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"
PNG_SIGNATURE_LEN = 8

# Chunk framing: [Length(4) | Type(4) | Payload(Length) | CRC(4)]
CHUNK_LENGTH_FMT = ">I"
CHUNK_LENGTH_LEN = 4
CHUNK_TYPE_LEN = 4
CHUNK_CRC_LEN = 4
MAX_CHUNK_LENGTH = 2**31 - 1

# IHDR payload: [Width(4) | Height(4) | BitDepth(1) | Color(1) | Compression(1) | Filter(1) | Interlace(1)]
IHDR_FMT = ">IIBBBBB"
IHDR_LEN = 13
MAX_IMAGE_DIMENSION = 2**31 - 1

# Unknown chunk policies
UNKNOWN_CHUNKS_FATAL = "fatal"
UNKNOWN_CHUNKS_SKIP = "skip"
UNKNOWN_CHUNK_POLICIES = (UNKNOWN_CHUNKS_FATAL, UNKNOWN_CHUNKS_SKIP)

# Bit 5 of the first type byte (lowercase) marks a chunk as ancillary
ANCILLARY_BIT = 0x20


def is_ancillary_code(code: bytes) -> bool:
    return bool(code[0] & ANCILLARY_BIT)


# Block size used for CRC computation and region streaming
DEFAULT_BLOCK_SIZE = 64 * 1024  # 64 KiB


class ChunkKind(enum.Enum):
    """Closed vocabulary of recognised PNG chunk types."""

    # Critical
    IHDR = b"IHDR"
    PLTE = b"PLTE"
    IDAT = b"IDAT"
    IEND = b"IEND"

    # Ancillary: transparency and colour space
    tRNS = b"tRNS"
    cHRM = b"cHRM"
    gAMA = b"gAMA"
    iCCP = b"iCCP"
    sBIT = b"sBIT"
    sRGB = b"sRGB"

    # Ancillary: text
    iTXt = b"iTXt"
    tEXt = b"tEXt"
    zTXt = b"zTXt"

    # Ancillary: miscellaneous
    bKGD = b"bKGD"
    hIST = b"hIST"
    pHYs = b"pHYs"
    sPLT = b"sPLT"

    # Ancillary: time
    tIME = b"tIME"

    @property
    def is_critical(self) -> bool:
        return not self.is_ancillary

    @property
    def is_ancillary(self) -> bool:
        return is_ancillary_code(self.value)


class ColorType(enum.IntEnum):
    GREYSCALE = 0
    TRUECOLOUR = 2
    INDEXED = 3
    GREYSCALE_ALPHA = 4
    TRUECOLOUR_ALPHA = 6

    @property
    def samples(self) -> int:
        return COLOR_SAMPLES[self]


COLOR_SAMPLES = {
    ColorType.GREYSCALE: 1,
    ColorType.TRUECOLOUR: 3,
    ColorType.INDEXED: 1,
    ColorType.GREYSCALE_ALPHA: 2,
    ColorType.TRUECOLOUR_ALPHA: 4,
}

# Bit depths permitted per colour type
COLOR_BIT_DEPTHS = {
    ColorType.GREYSCALE: frozenset({1, 2, 4, 8, 16}),
    ColorType.TRUECOLOUR: frozenset({8, 16}),
    ColorType.INDEXED: frozenset({1, 2, 4, 8}),
    ColorType.GREYSCALE_ALPHA: frozenset({8, 16}),
    ColorType.TRUECOLOUR_ALPHA: frozenset({8, 16}),
}

BIT_DEPTHS = frozenset({1, 2, 4, 8, 16})

COMPRESSION_DEFLATE = 0
FILTER_ADAPTIVE = 0
INTERLACE_NONE = 0
INTERLACE_ADAM7 = 1
