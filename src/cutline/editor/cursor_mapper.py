"""Conversion between linear text offsets and positions in a text-node tree.

Hosts render formatted text as a sequence of text nodes (one per segment in
the headless surface, one per fragment in Qt). Formatting ranges speak in
linear offsets, so the caret has to be translated to offsets before a
re-render and back to node positions afterwards. Both directions only need
the host to enumerate its text nodes in document order.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Protocol, TypeVar

LOGGER = logging.getLogger(__name__)

_T = TypeVar("_T")


class TextNodeSource(Protocol):
    """Anything that can enumerate ``(text, node_handle)`` pairs in document order."""

    def iter_text_nodes(self) -> Iterable[tuple[str, Any]]:
        ...


class SelectionHost(TextNodeSource, Protocol):
    """Text-node source that also exposes a live selection."""

    def selection(self) -> NodeSelection | None:
        ...

    def set_selection(self, selection: NodeSelection | None) -> None:
        ...


@dataclass(slots=True, frozen=True)
class NodePoint:
    """A position inside one text node."""

    node: Any
    offset: int


@dataclass(slots=True, frozen=True)
class NodeSelection:
    """Selection anchored to text nodes; collapsed when start equals end."""

    start: NodePoint
    end: NodePoint

    @classmethod
    def caret(cls, point: NodePoint) -> NodeSelection:
        return cls(point, point)

    @property
    def collapsed(self) -> bool:
        return self.start == self.end


@dataclass(slots=True, frozen=True)
class CaretOffsets:
    """Selection expressed as linear offsets into the document text."""

    start: int
    end: int

    def __post_init__(self) -> None:
        start = max(0, int(self.start))
        end = max(0, int(self.end))
        if end < start:
            start, end = end, start
        object.__setattr__(self, "start", start)
        object.__setattr__(self, "end", end)

    @property
    def collapsed(self) -> bool:
        return self.start == self.end


def capture_offset(selection: NodeSelection | None, root: TextNodeSource) -> CaretOffsets | None:
    """Return the linear offsets of ``selection`` or ``None`` if it lies outside ``root``."""

    if selection is None:
        return None
    start: int | None = None
    end: int | None = None
    cursor = 0
    try:
        for text, node in root.iter_text_nodes():
            length = len(text)
            if start is None and _same_node(node, selection.start.node):
                start = cursor + _clamp(selection.start.offset, length)
            if end is None and _same_node(node, selection.end.node):
                end = cursor + _clamp(selection.end.offset, length)
            if start is not None and end is not None:
                break
            cursor += length
    except Exception:  # pragma: no cover - host iteration failure
        LOGGER.debug("Unable to walk text nodes while capturing caret", exc_info=True)
        return None
    if start is None or end is None:
        LOGGER.debug("Selection is not inside the editor root; nothing captured")
        return None
    return CaretOffsets(start, end)


def restore_offset(position: CaretOffsets, root: TextNodeSource) -> NodeSelection | None:
    """Map ``position`` back onto the text nodes of ``root``.

    A boundary between two nodes resolves to the end of the earlier node.
    Positions past the end of the content collapse to the end of the last
    node; an empty tree yields ``None``.
    """

    try:
        nodes = list(root.iter_text_nodes())
    except Exception:  # pragma: no cover - host iteration failure
        LOGGER.debug("Unable to walk text nodes while restoring caret", exc_info=True)
        return None
    if not nodes:
        return None

    start_point: NodePoint | None = None
    end_point: NodePoint | None = None
    cursor = 0
    for text, node in nodes:
        upper = cursor + len(text)
        if start_point is None and cursor <= position.start <= upper:
            start_point = NodePoint(node, position.start - cursor)
        if cursor <= position.end <= upper:
            end_point = NodePoint(node, position.end - cursor)
            break
        cursor = upper

    last_text, last_node = nodes[-1]
    tail = NodePoint(last_node, len(last_text))
    if start_point is None or end_point is None:
        LOGGER.debug(
            "Caret offsets (%d, %d) exceed content length %d; collapsing to end",
            position.start,
            position.end,
            cursor,
        )
    return NodeSelection(start_point or tail, end_point or tail)


def preserve_caret(host: SelectionHost, rerender: Callable[[], _T]) -> _T:
    """Run ``rerender`` while keeping the host's caret at the same text offsets."""

    saved = capture_offset(host.selection(), host)
    result = rerender()
    if saved is not None:
        restored = restore_offset(saved, host)
        if restored is not None:
            host.set_selection(restored)
    return result


def offset_to_point(offset: int, root: TextNodeSource) -> NodePoint | None:
    """Return the node position for a single linear ``offset``."""

    selection = restore_offset(CaretOffsets(offset, offset), root)
    return None if selection is None else selection.start


def _same_node(left: Any, right: Any) -> bool:
    return left is right or left == right


def _clamp(offset: int, length: int) -> int:
    return max(0, min(int(offset), length))


__all__ = [
    "CaretOffsets",
    "NodePoint",
    "NodeSelection",
    "SelectionHost",
    "TextNodeSource",
    "capture_offset",
    "offset_to_point",
    "preserve_caret",
    "restore_offset",
]
