"""Tests for candidate item mapping and insertion templates."""

from __future__ import annotations

from datetime import date

from cutline.insertion.items import UNTITLED_CARD, CandidateItem, CardDetails, ItemKind
from cutline.insertion.templates import (
    build_insertion_block,
    card_block,
    citation_label,
    note_block,
    qualifications_note,
)


# =============================================================================
# Record mapping
# =============================================================================


class TestCardRecords:
    def test_nested_source_fields(self, card_records) -> None:
        item = CandidateItem.from_card_record(card_records[0])

        assert item.id == "card-1"
        assert item.kind is ItemKind.CARD
        assert item.title == "Climate change threatens coastal cities"
        assert item.summary == "Sea level rise"
        assert item.card == CardDetails(
            tag_line="Climate change threatens coastal cities",
            evidence="Rising seas will displace millions by 2100.",
            author="Smith",
            year=2023,
            publication="Nature",
            author_qualifications="Professor of Oceanography",
            study_methodology="Meta-analysis of 40 studies",
        )
        assert item.searchable_text == (
            "Climate change threatens coastal cities Sea level rise Rising seas will displace millions by 2100."
        )

    def test_year_is_parsed_from_iso_date(self, card_records) -> None:
        item = CandidateItem.from_card_record(card_records[1])

        assert item.card is not None
        assert item.card.year == 2019
        assert item.card.publication is None

    def test_flat_record_without_tag_line(self) -> None:
        item = CandidateItem.from_card_record(
            {"id": 7, "evidence": "  body kept verbatim  ", "author": "Lee", "date": date(2020, 1, 2)}
        )

        assert item.id == "7"
        assert item.title == UNTITLED_CARD
        assert item.content == "  body kept verbatim  "
        assert item.card is not None
        assert item.card.author == "Lee"
        assert item.card.year == 2020

    def test_matches_is_case_insensitive(self, card_records) -> None:
        item = CandidateItem.from_card_record(card_records[0])

        assert item.matches("COASTAL")
        assert item.matches("")
        assert not item.matches("poverty")


class TestNoteRecords:
    def test_note_fields_and_searchable_text(self, note_records) -> None:
        item = CandidateItem.from_note_record(note_records[0])

        assert item.kind is ItemKind.ANALYTICS
        assert item.title == "Climate impact framing"
        assert item.tags == ("impacts", "climate")
        assert item.card is None
        assert item.searchable_text == (
            "Climate impact framing Frame impacts around magnitude "
            "Magnitude outweighs probability here. impacts climate"
        )

    def test_explicit_searchable_text_wins(self) -> None:
        item = CandidateItem.from_note_record({"id": "n", "content": "x", "searchableText": "custom"})

        assert item.searchable_text == "custom"


# =============================================================================
# Templates
# =============================================================================


class TestTemplates:
    def test_full_card_block(self, card_records) -> None:
        item = CandidateItem.from_card_record(card_records[0])

        assert build_insertion_block(item) == (
            "Climate change threatens coastal cities\n"
            "Smith 2023 (Nature)\n"
            "(Professor of Oceanography; Meta-analysis of 40 studies)\n"
            "Rising seas will displace millions by 2100.\n"
            "\n"
        )

    def test_card_block_without_qualifications(self, card_records) -> None:
        item = CandidateItem.from_card_record(card_records[1])

        assert build_insertion_block(item) == (
            "Economic growth reduces poverty\nJones 2019\nGDP growth correlates with falling poverty rates.\n\n"
        )

    def test_missing_citation_fields_use_placeholders(self) -> None:
        card = CardDetails(tag_line="Tag", evidence="Body")

        assert citation_label(card) == "Unknown Author Unknown Date"
        assert qualifications_note(card) is None
        assert card_block(card) == "Tag\nUnknown Author Unknown Date\nBody\n\n"

    def test_single_qualification_has_no_separator(self) -> None:
        card = CardDetails(tag_line="Tag", evidence="Body", study_methodology="RCT")

        assert qualifications_note(card) == "(RCT)"

    def test_note_block(self, note_records) -> None:
        item = CandidateItem.from_note_record(note_records[1])

        assert build_insertion_block(item) == "Their growth evidence cuts both ways.\n\n"
        assert note_block("X") == "X\n\n"
