"""Candidate items offered by the slash-insertion list."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, Mapping

LOGGER = logging.getLogger(__name__)

UNTITLED_CARD = "Untitled Card"
UNTITLED_NOTE = "Untitled Analytic"
_YEAR_PATTERN = re.compile(r"^\s*(\d{4})")


class ItemKind(str, Enum):
    """Card-like evidence or note-like analytics."""

    CARD = "card"
    ANALYTICS = "analytics"


@dataclass(slots=True, frozen=True)
class CardDetails:
    """Citation and body fields needed to render an evidence card block."""

    tag_line: str
    evidence: str
    author: str | None = None
    year: int | None = None
    publication: str | None = None
    author_qualifications: str | None = None
    study_methodology: str | None = None


@dataclass(slots=True, frozen=True)
class CandidateItem:
    id: str
    kind: ItemKind
    title: str
    content: str
    searchable_text: str
    summary: str | None = None
    tags: tuple[str, ...] = ()
    card: CardDetails | None = None

    def matches(self, query: str) -> bool:
        """Case-insensitive containment test used for relevance ranking."""

        return query.lower() in self.searchable_text.lower()

    @classmethod
    def from_card_record(cls, record: Mapping[str, Any]) -> CandidateItem:
        """Build a card item from an evidence-card search record.

        Source citation fields may be nested under ``source`` or flattened
        onto the record itself.
        """

        source = record.get("source")
        if not isinstance(source, Mapping):
            source = record
        tag_line = _text(record.get("tagLine")) or ""
        shorthand = _text(record.get("shorthand")) or ""
        evidence = _body(record.get("evidence")) or _body(record.get("content"))
        searchable = _text(record.get("searchableText")) or f"{tag_line} {shorthand} {evidence}"
        details = CardDetails(
            tag_line=tag_line or UNTITLED_CARD,
            evidence=evidence,
            author=_text(source.get("author")),
            year=_year(source.get("year", source.get("date"))),
            publication=_text(source.get("publication")),
            author_qualifications=_text(source.get("authorQualifications")),
            study_methodology=_text(source.get("studyMethodology")),
        )
        return cls(
            id=str(record.get("id", "")),
            kind=ItemKind.CARD,
            title=tag_line or UNTITLED_CARD,
            summary=shorthand or None,
            content=evidence,
            searchable_text=searchable,
            tags=_tags(record.get("tags")),
            card=details,
        )

    @classmethod
    def from_note_record(cls, record: Mapping[str, Any]) -> CandidateItem:
        """Build an analytics item from a note search record."""

        title = _text(record.get("title")) or UNTITLED_NOTE
        summary = _text(record.get("summary"))
        content = _body(record.get("content"))
        tags = _tags(record.get("tags"))
        searchable = _text(record.get("searchableText")) or " ".join(
            part for part in (title, summary or "", content, " ".join(tags)) if part
        )
        return cls(
            id=str(record.get("id", "")),
            kind=ItemKind.ANALYTICS,
            title=title,
            summary=summary,
            content=content,
            searchable_text=searchable,
            tags=tags,
        )


def _text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _body(value: Any) -> str:
    return "" if value is None else str(value)


def _tags(value: Any) -> tuple[str, ...]:
    if not isinstance(value, (list, tuple)):
        return ()
    return tuple(str(tag) for tag in value if str(tag).strip())


def _year(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (datetime, date)):
        return value.year
    if isinstance(value, int):
        return value
    match = _YEAR_PATTERN.match(str(value))
    if match is None:
        LOGGER.debug("Unable to derive a year from %r", value)
        return None
    return int(match.group(1))


__all__ = ["CandidateItem", "CardDetails", "ItemKind", "UNTITLED_CARD", "UNTITLED_NOTE"]
