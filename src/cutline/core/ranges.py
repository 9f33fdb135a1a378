"""Half-open offset spans over a single plain-text buffer."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any


@dataclass(slots=True, frozen=True)
class TextRange:
    """A ``[start, end)`` span of character offsets.

    Unlike a caret selection, a ``TextRange`` is always strictly increasing:
    callers are expected to validate raw bounds with :meth:`checked` first,
    which rejects (rather than repairs) empty, reversed or out-of-bounds
    input.
    """

    start: int
    end: int

    def __post_init__(self) -> None:
        start = self._coerce_index(self.start, "start")
        end = self._coerce_index(self.end, "end")
        if end <= start:
            raise ValueError(f"TextRange requires start < end (got {start}, {end})")
        object.__setattr__(self, "start", start)
        object.__setattr__(self, "end", end)

    @staticmethod
    def _coerce_index(value: Any, label: str) -> int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"TextRange {label} must be an integer")
        if value < 0:
            raise ValueError(f"TextRange {label} must be non-negative")
        return value

    @property
    def length(self) -> int:
        """Return the number of characters covered by the span."""

        return self.end - self.start

    def contains(self, offset: int) -> bool:
        """Return ``True`` when ``offset`` lies inside the half-open span."""

        return self.start <= offset < self.end

    def fits(self, text_length: int) -> bool:
        """Return ``True`` when the span lies within ``[0, text_length]``."""

        return self.end <= text_length

    def to_tuple(self) -> tuple[int, int]:
        return (self.start, self.end)

    def to_dict(self) -> dict[str, int]:
        return {"start": self.start, "end": self.end}

    @classmethod
    def checked(cls, start: Any, end: Any, *, text_length: int | None = None) -> TextRange | None:
        """Return a range for ``start``/``end`` or ``None`` when they are unusable.

        Rejects non-integers, negative bounds, ``start >= end`` and, when
        ``text_length`` is given, spans reaching past the end of the text.
        """

        try:
            candidate = cls(start, end)
        except ValueError:
            return None
        if text_length is not None and not candidate.fits(text_length):
            return None
        return candidate

    @classmethod
    def from_value(cls, value: Any) -> TextRange:
        """Coerce a mapping, pair or span-like object into a :class:`TextRange`."""

        if isinstance(value, TextRange):
            return value
        if isinstance(value, Mapping):
            if "start" not in value or "end" not in value:
                raise ValueError("TextRange mappings require start and end keys")
            return cls(value["start"], value["end"])
        if isinstance(value, Sequence) and not isinstance(value, (str, bytes)):
            seq = list(value)
            if len(seq) != 2:
                raise ValueError("TextRange sequences must have exactly two entries")
            return cls(seq[0], seq[1])
        start = getattr(value, "start", None)
        end = getattr(value, "end", None)
        if start is not None and end is not None:
            return cls(start, end)
        raise TypeError("Unsupported TextRange input")


__all__ = ["TextRange"]
