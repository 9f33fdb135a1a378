"""Sweep-line segmentation of formatted text into renderable segments.

Every range boundary becomes a breakpoint; each slice between consecutive
breakpoints is styled by probing its midpoint against each formatting list.
Within a list the first range (in insertion order) containing the probe
wins, so later overlapping ranges of the same kind are shadowed. Styles of
different kinds stack on the same segment.
"""

from __future__ import annotations

import html
from dataclasses import dataclass
from typing import Iterable, Sequence, TypeVar

from ..core.formatting import EmphasisRange, FormattingData, HighlightRange, MinimizedRange

_R = TypeVar("_R", EmphasisRange, HighlightRange, MinimizedRange)


@dataclass(slots=True, frozen=True)
class SegmentStyle:
    """Resolved combination of formatting for one segment."""

    emphasis: EmphasisRange | None = None
    highlight: HighlightRange | None = None
    minimized: MinimizedRange | None = None

    @property
    def is_plain(self) -> bool:
        return self.emphasis is None and self.highlight is None and self.minimized is None

    def css(self) -> str:
        """Return the inline CSS declarations for this style."""

        declarations = ""
        if self.emphasis is not None:
            declarations += (
                f"font-family: '{self.emphasis.font}'; font-size: {self.emphasis.size}pt; "
                "font-weight: bold; text-decoration: underline;"
            )
        if self.minimized is not None:
            if declarations:
                declarations += " "
            declarations += f"font-size: {self.minimized.size}pt;"
        return declarations

    def css_classes(self) -> tuple[str, ...]:
        if self.highlight is None:
            return ()
        return (self.highlight.color.css_class,)


PLAIN = SegmentStyle()


@dataclass(slots=True, frozen=True)
class Segment:
    """A maximal slice of text sharing one resolved style."""

    text: str
    start: int
    end: int
    style: SegmentStyle = PLAIN


def segment_text(text: str, formatting: FormattingData | None) -> list[Segment]:
    """Split ``text`` into ordered segments covering it with no gaps or overlaps."""

    if not text:
        return []
    formatting = formatting or FormattingData.empty()
    length = len(text)
    if formatting.is_empty:
        return [Segment(text=text, start=0, end=length)]

    points = _breakpoints(formatting, length)
    segments: list[Segment] = []
    for left, right in zip(points, points[1:]):
        if left == right:
            continue
        chunk = text[left:right]
        if not chunk:
            continue
        mid = (left + right) // 2
        style = SegmentStyle(
            emphasis=_first_covering(formatting.emphasis, mid),
            highlight=_first_covering(formatting.highlights, mid),
            minimized=_first_covering(formatting.minimized, mid),
        )
        segments.append(Segment(text=chunk, start=left, end=right, style=style))
    return segments


def render_html(segments: Iterable[Segment]) -> str:
    """Render segments as ``<span>`` markup; plain segments stay bare text."""

    parts: list[str] = []
    for segment in segments:
        body = html.escape(segment.text, quote=False)
        if segment.style.is_plain:
            parts.append(body)
            continue
        attributes = []
        css = segment.style.css()
        if css:
            attributes.append(f'style="{html.escape(css)}"')
        classes = segment.style.css_classes()
        if classes:
            attributes.append(f'class="{" ".join(classes)}"')
        parts.append(f"<span {' '.join(attributes)}>{body}</span>")
    return "".join(parts)


def _breakpoints(formatting: FormattingData, length: int) -> list[int]:
    points = {0, length}
    for item in formatting.ranges():
        # Stale ranges from an older, longer text are clamped so output still tiles the text.
        points.add(max(0, min(item.start, length)))
        points.add(max(0, min(item.end, length)))
    return sorted(points)


def _first_covering(ranges: Sequence[_R], offset: int) -> _R | None:
    for item in ranges:
        if item.start <= offset < item.end:
            return item
    return None


__all__ = ["PLAIN", "Segment", "SegmentStyle", "render_html", "segment_text"]
