"""Offset-based formatting metadata and the operations that mutate it.

Formatting is pure metadata: every range refers to offsets of the document
text but never carries a copy of it. Lists are kept in insertion order and
are allowed to overlap; readers resolve overlaps themselves (see
:mod:`cutline.editor.segments`).
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Literal

from .ranges import TextRange

LOGGER = logging.getLogger(__name__)

DEFAULT_EMPHASIS_FONT = "Times New Roman"
DEFAULT_EMPHASIS_SIZE = 12
DEFAULT_MINIMIZE_SIZE = 6
EMPHASIS_STYLE = "bold-underline"


class RangeKind(str, Enum):
    """The three independent formatting lists."""

    EMPHASIS = "emphasis"
    HIGHLIGHT = "highlight"
    MINIMIZE = "minimize"


class HighlightColor(str, Enum):
    """Pastel highlight colours offered by the colour picker."""

    BLUE = "pastel-blue"
    PINK = "pastel-pink"
    GREEN = "pastel-green"
    YELLOW = "pastel-yellow"

    @property
    def css_class(self) -> str:
        return f"highlight-{self.value}"


@dataclass(slots=True, frozen=True)
class EmphasisRange:
    """Bold + underlined span rendered in the emphasis font."""

    start: int
    end: int
    font: str = DEFAULT_EMPHASIS_FONT
    size: float = DEFAULT_EMPHASIS_SIZE
    style: Literal["bold-underline"] = EMPHASIS_STYLE

    @property
    def span(self) -> TextRange:
        return TextRange(self.start, self.end)

    def to_payload(self) -> dict[str, Any]:
        return {
            "start": self.start,
            "end": self.end,
            "style": self.style,
            "font": self.font,
            "size": self.size,
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> EmphasisRange:
        span = TextRange.from_value(payload)
        font = payload.get("font") or DEFAULT_EMPHASIS_FONT
        return cls(span.start, span.end, font=str(font), size=_coerce_size(payload.get("size"), DEFAULT_EMPHASIS_SIZE))


@dataclass(slots=True, frozen=True)
class HighlightRange:
    """Background highlight in one of the :class:`HighlightColor` values."""

    start: int
    end: int
    color: HighlightColor

    @property
    def span(self) -> TextRange:
        return TextRange(self.start, self.end)

    def to_payload(self) -> dict[str, Any]:
        return {"start": self.start, "end": self.end, "color": self.color.value}

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> HighlightRange:
        span = TextRange.from_value(payload)
        return cls(span.start, span.end, color=HighlightColor(payload.get("color")))


@dataclass(slots=True, frozen=True)
class MinimizedRange:
    """De-emphasized span rendered at a reduced font size."""

    start: int
    end: int
    size: float = DEFAULT_MINIMIZE_SIZE

    @property
    def span(self) -> TextRange:
        return TextRange(self.start, self.end)

    def to_payload(self) -> dict[str, Any]:
        return {"start": self.start, "end": self.end, "size": self.size}

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> MinimizedRange:
        span = TextRange.from_value(payload)
        return cls(span.start, span.end, size=_coerce_size(payload.get("size"), DEFAULT_MINIMIZE_SIZE))


FormattingRange = EmphasisRange | HighlightRange | MinimizedRange


@dataclass(slots=True, frozen=True)
class FormattingData:
    """Aggregate of the three formatting lists.

    Always carries all three lists; "no formatting" is three empty tuples,
    never ``None``.
    """

    emphasis: tuple[EmphasisRange, ...] = field(default_factory=tuple)
    highlights: tuple[HighlightRange, ...] = field(default_factory=tuple)
    minimized: tuple[MinimizedRange, ...] = field(default_factory=tuple)

    @classmethod
    def empty(cls) -> FormattingData:
        return cls()

    @property
    def is_empty(self) -> bool:
        return not (self.emphasis or self.highlights or self.minimized)

    def ranges(self) -> Iterable[FormattingRange]:
        """Yield every range across the three lists."""

        yield from self.emphasis
        yield from self.highlights
        yield from self.minimized

    def with_minimized(self, minimized: Iterable[MinimizedRange]) -> FormattingData:
        return replace(self, minimized=tuple(minimized))

    def to_payload(self) -> dict[str, list[dict[str, Any]]]:
        """Return the JSON shape stored alongside the document text."""

        return {
            "emphasis": [item.to_payload() for item in self.emphasis],
            "highlights": [item.to_payload() for item in self.highlights],
            "minimized": [item.to_payload() for item in self.minimized],
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any] | None) -> FormattingData:
        """Build formatting from a stored payload, skipping malformed entries."""

        if not payload:
            return cls()
        return cls(
            emphasis=_parse_entries(payload.get("emphasis"), EmphasisRange.from_payload, "emphasis"),
            highlights=_parse_entries(payload.get("highlights"), HighlightRange.from_payload, "highlights"),
            minimized=_parse_entries(payload.get("minimized"), MinimizedRange.from_payload, "minimized"),
        )


def clear() -> FormattingData:
    """Return the canonical empty formatting aggregate."""

    return FormattingData.empty()


def apply_range(
    formatting: FormattingData,
    kind: RangeKind | str,
    start: Any,
    end: Any,
    payload: Mapping[str, Any] | None = None,
    *,
    text_length: int,
) -> FormattingData:
    """Append a new range of ``kind`` to ``formatting``.

    Invalid requests (empty or reversed spans, bounds outside
    ``[0, text_length]``, unknown kinds or unusable payloads) return
    ``formatting`` unchanged. Existing ranges are never merged or replaced.
    """

    span = TextRange.checked(start, end, text_length=text_length)
    if span is None:
        LOGGER.debug("Rejected %s range [%r, %r) for text length %d", kind, start, end, text_length)
        return formatting
    try:
        resolved = RangeKind(kind)
    except ValueError:
        LOGGER.debug("Rejected range with unknown kind %r", kind)
        return formatting
    details = dict(payload or {})
    try:
        if resolved is RangeKind.EMPHASIS:
            item = EmphasisRange(
                span.start,
                span.end,
                font=str(details.get("font") or DEFAULT_EMPHASIS_FONT),
                size=_coerce_size(details.get("size"), DEFAULT_EMPHASIS_SIZE),
            )
            return replace(formatting, emphasis=formatting.emphasis + (item,))
        if resolved is RangeKind.HIGHLIGHT:
            highlight = HighlightRange(span.start, span.end, color=HighlightColor(details.get("color")))
            return replace(formatting, highlights=formatting.highlights + (highlight,))
        minimized = MinimizedRange(
            span.start,
            span.end,
            size=_coerce_size(details.get("size"), DEFAULT_MINIMIZE_SIZE),
        )
        return replace(formatting, minimized=formatting.minimized + (minimized,))
    except ValueError:
        LOGGER.debug("Rejected %s range with payload %r", resolved.value, payload)
        return formatting


def _coerce_size(value: Any, default: float) -> float:
    if value is None:
        return default
    if isinstance(value, bool):
        raise ValueError("size must be numeric")
    try:
        size = float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError("size must be numeric") from exc
    if size <= 0:
        raise ValueError("size must be positive")
    return int(size) if size.is_integer() else size


def _parse_entries(raw: Any, factory: Any, label: str) -> tuple[Any, ...]:
    if not isinstance(raw, Iterable) or isinstance(raw, (str, bytes, Mapping)):
        return ()
    parsed: list[Any] = []
    for entry in raw:
        if not isinstance(entry, Mapping):
            LOGGER.debug("Skipping non-mapping %s entry: %r", label, entry)
            continue
        try:
            parsed.append(factory(entry))
        except (TypeError, ValueError):
            LOGGER.debug("Skipping malformed %s entry: %r", label, entry)
    return tuple(parsed)


__all__ = [
    "DEFAULT_EMPHASIS_FONT",
    "DEFAULT_EMPHASIS_SIZE",
    "DEFAULT_MINIMIZE_SIZE",
    "EmphasisRange",
    "FormattingData",
    "FormattingRange",
    "HighlightColor",
    "HighlightRange",
    "MinimizedRange",
    "RangeKind",
    "apply_range",
    "clear",
]
