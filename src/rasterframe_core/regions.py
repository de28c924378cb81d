"""Lazy offset/length views onto a source handle."""
from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import BinaryIO, Iterable, Iterator

from rasterframe_core.errors import InvalidImageData
from rasterframe_core.protocol import DEFAULT_BLOCK_SIZE


@dataclass(frozen=True)
class Region:
    """An unread byte range in the source. Resolved on demand, never buffered."""

    offset: int
    length: int

    @property
    def end(self) -> int:
        return self.offset + self.length

    def iter_blocks(self, handle: BinaryIO, block_size: int = DEFAULT_BLOCK_SIZE) -> Iterator[bytes]:
        """Yield the region's bytes in blocks of at most ``block_size``.

        Raises InvalidImageData when the source ends before the region does.
        """
        handle.seek(self.offset)
        remaining = self.length
        while remaining > 0:
            block = handle.read(min(block_size, remaining))
            if not block:
                raise InvalidImageData(
                    f"Source ended {remaining} bytes short of region end {self.end}",
                    offset=self.end - remaining,
                )
            remaining -= len(block)
            yield block

    def read(self, handle: BinaryIO) -> bytes:
        return b"".join(self.iter_blocks(handle))

    def content_hash(self, handle: BinaryIO) -> str:
        h = hashlib.sha256()
        for block in self.iter_blocks(handle):
            h.update(block)
        return h.hexdigest()


def read_regions(handle: BinaryIO, regions: Iterable[Region]) -> bytes:
    """Concatenate regions in the order given."""
    out = bytearray()
    for region in regions:
        for block in region.iter_blocks(handle):
            out += block
    return bytes(out)
