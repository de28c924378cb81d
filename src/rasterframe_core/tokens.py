"""Whitespace token reader for the Netpbm text headers.

Tokens are maximal runs of non-whitespace bytes. LF CR and CR LF pairs are
consumed as a single terminator using one byte of lookahead; any other
lookahead byte is pushed back so it starts the next token.
"""
from __future__ import annotations

import io
from typing import BinaryIO, Iterator

from rasterframe_core.protocol import CR, LF, WHITESPACE

_PAIRED = {LF: CR, CR: LF}


class Lookahead:
    """One-byte pushback buffer over a seekable binary handle."""

    def __init__(self, handle: BinaryIO):
        self.handle = handle
        self._pending: int | None = None

    def read_byte(self) -> int | None:
        """Next byte as an int, or None at end of stream."""
        if self._pending is not None:
            b, self._pending = self._pending, None
            return b
        data = self.handle.read(1)
        if not data:
            return None
        return data[0]

    def unread(self, byte: int) -> None:
        if self._pending is not None:
            raise RuntimeError("Lookahead buffer already holds a byte")
        self._pending = byte

    def tell(self) -> int:
        pos = self.handle.tell()
        return pos - 1 if self._pending is not None else pos

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        if whence == io.SEEK_CUR:
            offset = self.tell() + offset
            whence = io.SEEK_SET
        self._pending = None
        return self.handle.seek(offset, whence)


class TokenReader:
    """Lazy, non-restartable sequence of whitespace-delimited tokens.

    ``last_delimiter`` holds the byte that ended the most recent token
    (None when it ended at end of stream). Reseek with ``seek`` to restart.
    """

    def __init__(self, handle: BinaryIO):
        self.source = Lookahead(handle)
        self.last_delimiter: int | None = None

    def __iter__(self) -> Iterator[bytes]:
        return self

    def __next__(self) -> bytes:
        token = bytearray()
        while True:
            b = self.source.read_byte()
            if b is None:
                self.last_delimiter = None
                if token:
                    return bytes(token)
                raise StopIteration

            if b not in WHITESPACE:
                token.append(b)
                continue

            self._consume_pair(b)
            if token:
                self.last_delimiter = b
                return bytes(token)
            # Leading whitespace: keep scanning for the next token.

    def skip_line(self) -> None:
        """Discard bytes up to and including the next line terminator.

        Whitespace inside the line is not collapsed, so the terminator is
        never overrun into the following line.
        """
        while True:
            b = self.source.read_byte()
            if b is None:
                self.last_delimiter = None
                return
            if b in _PAIRED:
                self._consume_pair(b)
                self.last_delimiter = b
                return

    def _consume_pair(self, delimiter: int) -> None:
        partner = _PAIRED.get(delimiter)
        if partner is None:
            return
        nxt = self.source.read_byte()
        if nxt is not None and nxt != partner:
            self.source.unread(nxt)

    def tell(self) -> int:
        return self.source.tell()

    def seek(self, offset: int) -> int:
        self.last_delimiter = None
        return self.source.seek(offset)

    @property
    def at_line_end(self) -> bool:
        """True when the last token was ended by a line terminator or EOF."""
        return self.last_delimiter is None or self.last_delimiter in _PAIRED
