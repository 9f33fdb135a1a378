"""Tests for offset ranges and the formatting aggregate."""

from __future__ import annotations

import pytest

from cutline.core.formatting import (
    DEFAULT_EMPHASIS_FONT,
    DEFAULT_MINIMIZE_SIZE,
    EmphasisRange,
    FormattingData,
    HighlightColor,
    HighlightRange,
    MinimizedRange,
    RangeKind,
    apply_range,
    clear,
)
from cutline.core.ranges import TextRange


# =============================================================================
# TextRange
# =============================================================================


class TestTextRange:
    def test_valid_span_exposes_bounds(self) -> None:
        span = TextRange(2, 7)

        assert span.to_tuple() == (2, 7)
        assert span.length == 5
        assert not hasattr(span, "__iter__")
        assert span.to_dict() == {"start": 2, "end": 7}

    @pytest.mark.parametrize("start,end", [(5, 5), (6, 2), (-1, 3), (1.5, 3), (True, 3)])
    def test_constructor_rejects_unusable_bounds(self, start, end) -> None:
        with pytest.raises(ValueError):
            TextRange(start, end)

    def test_contains_is_half_open(self) -> None:
        span = TextRange(1, 3)

        assert span.contains(1)
        assert span.contains(2)
        assert not span.contains(3)

    def test_checked_rejects_spans_past_text_end(self) -> None:
        assert TextRange.checked(0, 5, text_length=5) == TextRange(0, 5)
        assert TextRange.checked(0, 6, text_length=5) is None
        assert TextRange.checked(3, 3) is None
        assert TextRange.checked("0", 2) is None

    def test_from_value_accepts_mappings_pairs_and_objects(self) -> None:
        class _Span:
            start = 4
            end = 9

        assert TextRange.from_value({"start": 1, "end": 2}) == TextRange(1, 2)
        assert TextRange.from_value([3, 4]) == TextRange(3, 4)
        assert TextRange.from_value(_Span()) == TextRange(4, 9)
        with pytest.raises(ValueError):
            TextRange.from_value({"start": 1})


# =============================================================================
# apply_range / clear
# =============================================================================


class TestApplyRange:
    def test_appends_emphasis_with_defaults(self) -> None:
        result = apply_range(clear(), RangeKind.EMPHASIS, 0, 4, text_length=10)

        assert result.emphasis == (EmphasisRange(0, 4),)
        assert result.emphasis[0].font == DEFAULT_EMPHASIS_FONT
        assert result.emphasis[0].style == "bold-underline"
        assert result.highlights == ()
        assert result.minimized == ()

    def test_accepts_kind_strings_and_payload(self) -> None:
        result = apply_range(clear(), "highlight", 2, 5, {"color": "pastel-pink"}, text_length=10)

        assert result.highlights == (HighlightRange(2, 5, HighlightColor.PINK),)

    def test_never_merges_overlapping_ranges(self) -> None:
        first = apply_range(clear(), "emphasis", 0, 5, text_length=10)
        second = apply_range(first, "emphasis", 3, 8, text_length=10)

        assert [item.span.to_tuple() for item in second.emphasis] == [(0, 5), (3, 8)]

    @pytest.mark.parametrize(
        "start,end",
        [(4, 4), (5, 2), (-1, 3), (0, 11), ("a", 3), (None, 2)],
    )
    def test_invalid_span_returns_input_unchanged(self, start, end) -> None:
        original = apply_range(clear(), "minimize", 0, 2, text_length=10)

        result = apply_range(original, "emphasis", start, end, text_length=10)

        assert result is original

    def test_unknown_kind_and_bad_colour_are_ignored(self) -> None:
        original = clear()

        assert apply_range(original, "strike", 0, 2, text_length=5) is original
        assert apply_range(original, "highlight", 0, 2, {"color": "neon"}, text_length=5) is original
        assert apply_range(original, "minimize", 0, 2, {"size": -1}, text_length=5) is original

    def test_full_text_span_is_allowed(self) -> None:
        result = apply_range(clear(), "minimize", 0, 5, {"size": 8}, text_length=5)

        assert result.minimized == (MinimizedRange(0, 5, 8),)

    def test_clear_returns_empty_aggregate(self) -> None:
        empty = clear()

        assert empty.is_empty
        assert empty == FormattingData.empty()
        assert empty.to_payload() == {"emphasis": [], "highlights": [], "minimized": []}


# =============================================================================
# Payload conversion
# =============================================================================


class TestFormattingPayload:
    def test_none_payload_is_empty(self) -> None:
        assert FormattingData.from_payload(None) == FormattingData()

    def test_payload_roundtrip(self) -> None:
        data = FormattingData(
            emphasis=(EmphasisRange(0, 4, font="Georgia", size=14),),
            highlights=(HighlightRange(2, 6, HighlightColor.YELLOW),),
            minimized=(MinimizedRange(6, 9),),
        )

        payload = data.to_payload()

        assert payload["emphasis"] == [
            {"start": 0, "end": 4, "style": "bold-underline", "font": "Georgia", "size": 14}
        ]
        assert payload["highlights"] == [{"start": 2, "end": 6, "color": "pastel-yellow"}]
        assert payload["minimized"] == [{"start": 6, "end": 9, "size": DEFAULT_MINIMIZE_SIZE}]
        assert FormattingData.from_payload(payload) == data

    def test_malformed_entries_are_skipped(self) -> None:
        payload = {
            "emphasis": [{"start": 5, "end": 1}, {"start": 0, "end": 3}, "junk"],
            "highlights": [{"start": 0, "end": 2, "color": "ultraviolet"}],
            "minimized": {"start": 0, "end": 1},
        }

        data = FormattingData.from_payload(payload)

        assert data.emphasis == (EmphasisRange(0, 3),)
        assert data.highlights == ()
        assert data.minimized == ()

    def test_with_minimized_replaces_only_that_list(self) -> None:
        data = FormattingData(emphasis=(EmphasisRange(0, 2),), minimized=(MinimizedRange(2, 3),))

        updated = data.with_minimized([MinimizedRange(4, 5)])

        assert updated.emphasis == data.emphasis
        assert updated.minimized == (MinimizedRange(4, 5),)
        assert list(updated.ranges()) == [EmphasisRange(0, 2), MinimizedRange(4, 5)]
