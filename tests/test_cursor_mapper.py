"""Tests for mapping caret offsets to text nodes and back."""

from __future__ import annotations

from typing import Iterator

from cutline.core.formatting import EmphasisRange, FormattingData
from cutline.editor.cursor_mapper import (
    CaretOffsets,
    NodePoint,
    NodeSelection,
    capture_offset,
    offset_to_point,
    preserve_caret,
    restore_offset,
)
from cutline.editor.segments import Segment, segment_text
from cutline.editor.surface import SegmentTreeSurface, TextNode


class _Nodes:
    """Minimal text-node source over fixed node objects."""

    def __init__(self, *texts: str) -> None:
        self.nodes = [TextNode(text) for text in texts]

    def iter_text_nodes(self) -> Iterator[tuple[str, TextNode]]:
        for node in self.nodes:
            yield node.text, node


# =============================================================================
# CaretOffsets
# =============================================================================


def test_caret_offsets_normalize_reversed_and_negative_bounds() -> None:
    assert CaretOffsets(7, 3) == CaretOffsets(3, 7)
    assert CaretOffsets(-4, 2) == CaretOffsets(0, 2)
    assert CaretOffsets(5, 5).collapsed


# =============================================================================
# capture_offset
# =============================================================================


class TestCaptureOffset:
    def test_accumulates_lengths_of_preceding_nodes(self) -> None:
        root = _Nodes("Hello ", "brave ", "world")
        selection = NodeSelection(NodePoint(root.nodes[1], 2), NodePoint(root.nodes[2], 3))

        assert capture_offset(selection, root) == CaretOffsets(8, 15)

    def test_missing_selection_returns_none(self) -> None:
        assert capture_offset(None, _Nodes("abc")) is None

    def test_selection_outside_root_returns_none(self) -> None:
        root = _Nodes("abc")
        stranger = TextNode("abc")
        selection = NodeSelection.caret(NodePoint(stranger, 1))

        assert capture_offset(selection, root) is None

    def test_local_offsets_are_clamped_to_node_length(self) -> None:
        root = _Nodes("ab", "cd")
        selection = NodeSelection.caret(NodePoint(root.nodes[0], 9))

        assert capture_offset(selection, root) == CaretOffsets(2, 2)


# =============================================================================
# restore_offset
# =============================================================================


class TestRestoreOffset:
    def test_maps_offsets_into_nodes(self) -> None:
        root = _Nodes("Hello ", "brave ", "world")

        selection = restore_offset(CaretOffsets(8, 15), root)

        assert selection is not None
        assert selection.start == NodePoint(root.nodes[1], 2)
        assert selection.end == NodePoint(root.nodes[2], 3)

    def test_boundary_prefers_the_earlier_node(self) -> None:
        root = _Nodes("abc", "def")

        selection = restore_offset(CaretOffsets(3, 3), root)

        assert selection is not None
        assert selection.start.node is root.nodes[0]
        assert selection.start.offset == 3
        assert selection.end.node is root.nodes[0]

    def test_position_past_content_collapses_to_end_of_last_node(self) -> None:
        root = _Nodes("abc", "de")

        selection = restore_offset(CaretOffsets(10, 12), root)

        assert selection == NodeSelection(NodePoint(root.nodes[1], 2), NodePoint(root.nodes[1], 2))

    def test_empty_tree_returns_none(self) -> None:
        assert restore_offset(CaretOffsets(0, 0), _Nodes()) is None

    def test_offset_to_point(self) -> None:
        root = _Nodes("ab", "cd")

        assert offset_to_point(3, root) == NodePoint(root.nodes[1], 1)


# =============================================================================
# preserve_caret
# =============================================================================


class TestPreserveCaret:
    def test_caret_survives_a_rerender_that_splits_nodes(self) -> None:
        text = "The quick brown fox"
        surface = SegmentTreeSurface(text)
        surface.select_offsets(10, 15)
        formatting = FormattingData(emphasis=(EmphasisRange(4, 12),))
        old_nodes = surface.nodes

        preserve_caret(surface, lambda: surface.render(segment_text(text, formatting)))

        assert surface.nodes != old_nodes
        assert len(surface.nodes) == 3
        assert capture_offset(surface.selection(), surface) == CaretOffsets(10, 15)

    def test_rerender_without_selection_leaves_none(self) -> None:
        surface = SegmentTreeSurface("abc")

        result = preserve_caret(surface, lambda: surface.render([Segment("abc", 0, 3)]) or "rendered")

        assert result == "rendered"
        assert surface.selection() is None
