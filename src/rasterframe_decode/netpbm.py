"""Netpbm (PBM/PGM/PPM/PAM) header decoder.

One decoder serves both header grammars:

* positional (P1..P6): width, height and, except for bitmaps, maxval;
* keyed (P7): WIDTH/HEIGHT/DEPTH/MAXVAL/TUPLTYPE pairs closed by ENDHDR.

The decoder yields Signature, NetpbmHeader and a Region for the raster.
The raster itself is never read.
"""
from __future__ import annotations

import enum
import io
from dataclasses import dataclass
from typing import BinaryIO

from rasterframe_core.decoder import PullDecoder, Signature
from rasterframe_core.errors import InvalidHeader, InvalidImageData, InvalidSignature
from rasterframe_core.protocol import (
    ALL_NETPBM,
    BITMAP_NETPBM,
    COMMENT,
    MAX_DIMENSION,
    MAX_NARROW_MAXVAL,
    MAX_WIDE_MAXVAL,
    NETPBM_CHANNELS,
    NETPBM_TUPLTYPE,
    PAM_KEY_DEPTH,
    PAM_KEY_ENDHDR,
    PAM_KEY_HEIGHT,
    PAM_KEY_MAXVAL,
    PAM_KEY_TUPLTYPE,
    PAM_KEY_WIDTH,
    PAM_MAGIC,
    PAM_TUPLE_TYPES,
    PBM_BINARY_MAGIC,
    PLAIN_NETPBM,
)
from rasterframe_core.regions import Region
from rasterframe_core.tokens import TokenReader


class State(enum.Enum):
    PENDING = "pending"
    SIGNATURE = "signature"
    HEADER = "header"
    DATA = "data"


TRANSITIONS = {
    State.PENDING: frozenset({State.SIGNATURE}),
    State.SIGNATURE: frozenset({State.HEADER}),
    State.HEADER: frozenset({State.DATA}),
}


class Grammar(enum.Enum):
    POSITIONAL = "positional"
    KEYED = "keyed"


@dataclass(frozen=True)
class NetpbmHeader:
    width: int
    height: int
    maxval: int
    depth: int
    tupltype: bytes

    @property
    def channels(self) -> int:
        return self.depth

    @property
    def bytes_per_sample(self) -> int:
        return 2 if self.maxval > MAX_NARROW_MAXVAL else 1


class NetpbmDecoder(PullDecoder):
    """Pull decoder for the Netpbm family.

    Usage:
        with open("image.ppm", "rb") as f:
            for element in NetpbmDecoder(f):
                ...

    ``signatures`` restricts which magic numbers are accepted.
    ``allow_wide_samples`` lets positional headers use maxval up to 65535.
    """

    TRANSITIONS = TRANSITIONS
    TERMINAL = frozenset({State.DATA})

    def __init__(
        self,
        handle: BinaryIO,
        *,
        signatures: frozenset[bytes] = ALL_NETPBM,
        allow_wide_samples: bool = False,
    ):
        super().__init__(State.PENDING)
        self.handle = handle
        self.tokens = TokenReader(handle)
        self.signatures = frozenset(signatures)
        self.max_maxval = MAX_WIDE_MAXVAL if allow_wide_samples else MAX_NARROW_MAXVAL
        self.magic: bytes | None = None
        self.header: NetpbmHeader | None = None
        self.payload_size = 0

    @property
    def grammar(self) -> Grammar | None:
        if self.magic is None:
            return None
        return Grammar.KEYED if self.magic == PAM_MAGIC else Grammar.POSITIONAL

    def read_signature(self) -> Signature:
        self._require(State.PENDING)
        self.tokens.seek(0)

        token = next(self.tokens, None)
        # A comment may follow the magic number without separating whitespace.
        if token is None or len(token) < 2 or (len(token) > 2 and token[2] != COMMENT):
            raise InvalidSignature("Missing or malformed 2-byte signature", offset=0)
        magic = token[:2]
        if magic not in self.signatures:
            raise InvalidSignature(f"Unsupported signature {magic!r}", offset=0)
        if len(token) > 2:
            self._skip_comment()

        self.magic = magic
        self._advance(State.SIGNATURE)
        return Signature(magic)

    def read_header(self) -> NetpbmHeader:
        self._require(State.SIGNATURE)

        if self.grammar is Grammar.KEYED:
            header = self._read_keyed_header()
        else:
            header = self._read_positional_header()

        self.payload_size = self._payload_size(header)
        self.header = header
        self._advance(State.HEADER)
        return header

    def read_data(self) -> Region:
        self._require(State.HEADER)
        if self.payload_size <= 0:
            raise InvalidImageData("Header declares an empty raster", offset=self.tokens.tell())

        region = Region(self.tokens.tell(), self.payload_size)
        self._advance(State.DATA)
        return region

    def _step(self):
        if self.state is State.PENDING:
            return self.read_signature()
        if self.state is State.SIGNATURE:
            return self.read_header()
        return self.read_data()

    # -- header grammars --

    def _read_positional_header(self) -> NetpbmHeader:
        width = self._read_uint(b"width", MAX_DIMENSION)
        height = self._read_uint(b"height", MAX_DIMENSION)

        if self.magic in BITMAP_NETPBM:
            maxval = 1
        else:
            maxval = self._read_uint(b"maxval", self.max_maxval)
            if maxval < 1:
                raise InvalidHeader("maxval must be at least 1", offset=self.tokens.tell())

        return NetpbmHeader(
            width=width,
            height=height,
            maxval=maxval,
            depth=NETPBM_CHANNELS[self.magic],
            tupltype=NETPBM_TUPLTYPE[self.magic],
        )

    def _read_keyed_header(self) -> NetpbmHeader:
        fields: dict[bytes, object] = {}
        parsers = {
            PAM_KEY_WIDTH: lambda: self._read_uint(PAM_KEY_WIDTH, MAX_DIMENSION),
            PAM_KEY_HEIGHT: lambda: self._read_uint(PAM_KEY_HEIGHT, MAX_DIMENSION),
            PAM_KEY_DEPTH: lambda: self._read_uint(PAM_KEY_DEPTH, max(PAM_TUPLE_TYPES.values())),
            PAM_KEY_MAXVAL: lambda: self._read_uint(PAM_KEY_MAXVAL, MAX_WIDE_MAXVAL),
            PAM_KEY_TUPLTYPE: self._read_tupltype,
        }

        while True:
            key = self._next_value()
            if key == PAM_KEY_ENDHDR:
                break
            if key not in parsers:
                raise InvalidHeader(f"Unknown header key {key!r}", offset=self.tokens.tell())
            if key in fields:
                raise InvalidHeader(f"Duplicate header key {key!r}", offset=self.tokens.tell())
            fields[key] = parsers[key]()

        missing = [k.decode("ascii") for k in parsers if k not in fields]
        if missing:
            raise InvalidHeader(f"Missing header keys at ENDHDR: {', '.join(missing)}", offset=self.tokens.tell())

        maxval = fields[PAM_KEY_MAXVAL]
        if maxval < 1:
            raise InvalidHeader("MAXVAL must be at least 1", offset=self.tokens.tell())

        tupltype = fields[PAM_KEY_TUPLTYPE]
        depth = fields[PAM_KEY_DEPTH]
        if depth != PAM_TUPLE_TYPES[tupltype]:
            raise InvalidHeader(
                f"DEPTH {depth} does not match TUPLTYPE {tupltype.decode('ascii')}",
                offset=self.tokens.tell(),
            )

        return NetpbmHeader(
            width=fields[PAM_KEY_WIDTH],
            height=fields[PAM_KEY_HEIGHT],
            maxval=maxval,
            depth=depth,
            tupltype=tupltype,
        )

    # -- value helpers --

    def _next_value(self) -> bytes:
        """Next non-comment token. A '#' token comments out the rest of its line."""
        for token in self.tokens:
            if token[0] == COMMENT:
                self._skip_comment()
                continue
            return token
        raise InvalidHeader("Header ended before all fields were read", offset=self.tokens.tell())

    def _skip_comment(self) -> None:
        # The comment token may itself have ended the line.
        if not self.tokens.at_line_end:
            self.tokens.skip_line()

    def _read_uint(self, field: bytes, limit: int) -> int:
        token = self._next_value()
        if not token.isdigit():
            raise InvalidHeader(
                f"{field.decode('ascii')} is not an unsigned integer: {token!r}",
                offset=self.tokens.tell(),
            )
        value = int(token)
        if value > limit:
            raise InvalidHeader(
                f"{field.decode('ascii')} {value} exceeds limit {limit}",
                offset=self.tokens.tell(),
            )
        return value

    def _read_tupltype(self) -> bytes:
        token = self._next_value()
        if token not in PAM_TUPLE_TYPES:
            raise InvalidHeader(f"Unknown TUPLTYPE {token!r}", offset=self.tokens.tell())
        return token

    def _payload_size(self, header: NetpbmHeader) -> int:
        if self.magic in PLAIN_NETPBM:
            return self._remaining()
        if self.magic == PBM_BINARY_MAGIC:
            return ((header.width + 7) // 8) * header.height
        return header.width * header.height * header.channels * header.bytes_per_sample

    def _remaining(self) -> int:
        pos = self.tokens.tell()
        end = self.handle.seek(0, io.SEEK_END)
        self.tokens.seek(pos)
        return end - pos
