"""Pull-iterator base shared by the Netpbm and PNG decoders."""
from __future__ import annotations

import enum
from dataclasses import dataclass

from rasterframe_core.errors import DecoderStateError, FramingError


@dataclass(frozen=True)
class Signature:
    value: bytes


class PullDecoder:
    """Stateful iterator over a closed state enum.

    Subclasses define ``TRANSITIONS`` (state -> allowed next states),
    ``TERMINAL`` and ``_step``. Each ``next()`` runs one step; the first
    ``FramingError`` is kept on ``error`` and ends the sequence. ``OSError``
    propagates untouched.
    """

    TRANSITIONS: dict[enum.Enum, frozenset] = {}
    TERMINAL: frozenset = frozenset()

    def __init__(self, initial: enum.Enum):
        self.state = initial
        self.error: FramingError | None = None

    def _require(self, *states: enum.Enum) -> None:
        if self.state not in states:
            allowed = ", ".join(s.name for s in states)
            raise DecoderStateError(f"Operation requires state {allowed}, decoder is {self.state.name}")

    def _advance(self, new_state: enum.Enum) -> None:
        if new_state not in self.TRANSITIONS.get(self.state, frozenset()):
            raise DecoderStateError(f"Illegal transition {self.state.name} -> {new_state.name}")
        self.state = new_state

    @property
    def finished(self) -> bool:
        return self.error is not None or self.state in self.TERMINAL

    def _step(self):
        raise NotImplementedError

    def __iter__(self):
        return self

    def __next__(self):
        if self.finished:
            raise StopIteration
        try:
            return self._step()
        except FramingError as e:
            self.error = e
            raise StopIteration from None
