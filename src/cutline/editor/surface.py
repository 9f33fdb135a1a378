"""Headless host editor surfaces.

``SegmentTreeSurface`` behaves like a rich (contentEditable-style) host: it
keeps one text node per rendered segment and a node-anchored selection,
which makes it the reference host for caret preservation. ``PlainTextSurface``
behaves like a text area: a flat string with a linear caret and no
per-character geometry.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from typing import Iterable, Iterator, Sequence

from .cursor_mapper import CaretOffsets, NodePoint, NodeSelection, restore_offset
from .overlay import Rect
from .segments import PLAIN, Segment, SegmentStyle

_NODE_IDS = itertools.count(1)


@dataclass(slots=True, eq=False)
class TextNode:
    """A rendered run of text; identity matters, not content."""

    text: str
    style: SegmentStyle = PLAIN
    node_id: int = field(default_factory=lambda: next(_NODE_IDS))

    def __repr__(self) -> str:
        return f"TextNode(id={self.node_id}, text={self.text!r})"


class SegmentTreeSurface:
    """In-memory rich host whose text nodes are rebuilt on every render."""

    def __init__(
        self,
        text: str = "",
        *,
        rect: Rect | None = None,
        focused: bool = True,
    ) -> None:
        self._nodes: list[TextNode] = [TextNode(text)] if text else []
        self._selection: NodeSelection | None = None
        self._rect = rect or Rect(0.0, 0.0, 600.0, 400.0)
        self._selection_rect: Rect | None = None
        self.focused = focused
        self.render_count = 0

    # ------------------------------------------------------------------
    # Text-node tree
    # ------------------------------------------------------------------
    def iter_text_nodes(self) -> Iterator[tuple[str, TextNode]]:
        for node in self._nodes:
            yield node.text, node

    @property
    def nodes(self) -> tuple[TextNode, ...]:
        return tuple(self._nodes)

    def text(self) -> str:
        return "".join(node.text for node in self._nodes)

    def render(self, segments: Sequence[Segment]) -> None:
        """Replace every text node with one node per segment.

        The old nodes are discarded, so any selection anchored to them is
        dropped; callers that care about the caret wrap this in
        :func:`~cutline.editor.cursor_mapper.preserve_caret`.
        """

        self._nodes = [TextNode(segment.text, segment.style) for segment in segments]
        self._selection = None
        self.render_count += 1

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------
    def selection(self) -> NodeSelection | None:
        return self._selection

    def set_selection(self, selection: NodeSelection | None) -> None:
        self._selection = selection

    def select_offsets(self, start: int, end: int | None = None) -> NodeSelection | None:
        """Place the selection at linear offsets (as a user's click would)."""

        position = CaretOffsets(start, start if end is None else end)
        self._selection = restore_offset(position, self)
        return self._selection

    # ------------------------------------------------------------------
    # Geometry
    # ------------------------------------------------------------------
    def bounding_rect(self) -> Rect:
        return self._rect

    def selection_rect(self) -> Rect | None:
        if self._selection is None:
            return None
        return self._selection_rect

    def set_selection_rect(self, rect: Rect | None) -> None:
        self._selection_rect = rect


class PlainTextSurface:
    """In-memory text-area host with a single text run and a linear caret."""

    def __init__(
        self,
        text: str = "",
        *,
        rect: Rect | None = None,
        line_height: float | None = None,
        font_size: float = 14.0,
        focused: bool = True,
    ) -> None:
        self._text = text
        self._caret = CaretOffsets(len(text), len(text))
        self._rect = rect or Rect(0.0, 0.0, 600.0, 400.0)
        self._line_height = line_height
        self._font_size = font_size
        self.focused = focused
        self.render_count = 0

    def text(self) -> str:
        return self._text

    def set_text(self, text: str, *, caret: int | None = None) -> None:
        self._text = text
        position = len(text) if caret is None else caret
        self._caret = CaretOffsets(position, position)

    def render(self, segments: Sequence[Segment]) -> None:
        """Show the concatenated segment text; a text area cannot style runs."""

        self._text = "".join(segment.text for segment in segments)
        length = len(self._text)
        self._caret = CaretOffsets(min(self._caret.start, length), min(self._caret.end, length))
        self.render_count += 1

    def iter_text_nodes(self) -> Iterable[tuple[str, PlainTextSurface]]:
        if self._text:
            yield self._text, self

    def selection(self) -> NodeSelection | None:
        if not self._text:
            return None
        return NodeSelection(NodePoint(self, self._caret.start), NodePoint(self, self._caret.end))

    def set_selection(self, selection: NodeSelection | None) -> None:
        if selection is None:
            return
        self._caret = CaretOffsets(selection.start.offset, selection.end.offset)

    def select_offsets(self, start: int, end: int | None = None) -> CaretOffsets:
        length = len(self._text)
        stop = start if end is None else end
        self._caret = CaretOffsets(min(start, length), min(stop, length))
        return self._caret

    def caret(self) -> CaretOffsets:
        return self._caret

    def bounding_rect(self) -> Rect:
        return self._rect

    def line_height(self) -> float | None:
        return self._line_height

    def font_size(self) -> float:
        return self._font_size


__all__ = ["PlainTextSurface", "SegmentTreeSurface", "TextNode"]
