"""Text blocks spliced into the document when a candidate is committed."""

from __future__ import annotations

from .items import CandidateItem, CardDetails, ItemKind

UNKNOWN_AUTHOR = "Unknown Author"
UNKNOWN_DATE = "Unknown Date"


def citation_label(card: CardDetails) -> str:
    """Return ``"{author} {year}"`` with `` (publication)`` appended when known."""

    author = card.author or UNKNOWN_AUTHOR
    year = str(card.year) if card.year is not None else UNKNOWN_DATE
    label = f"{author} {year}"
    if card.publication:
        label += f" ({card.publication})"
    return label


def qualifications_note(card: CardDetails) -> str | None:
    parts = [part for part in (card.author_qualifications, card.study_methodology) if part]
    if not parts:
        return None
    return f"({'; '.join(parts)})"


def card_block(card: CardDetails) -> str:
    lines = [card.tag_line, citation_label(card)]
    note = qualifications_note(card)
    if note is not None:
        lines.append(note)
    lines.append(card.evidence)
    return "\n".join(lines) + "\n\n"


def note_block(content: str) -> str:
    return f"{content}\n\n"


def build_insertion_block(item: CandidateItem) -> str:
    """Render ``item`` with its per-kind template, always ending in a blank line."""

    if item.kind is ItemKind.CARD:
        card = item.card or CardDetails(tag_line=item.title, evidence=item.content)
        return card_block(card)
    return note_block(item.content)


__all__ = [
    "UNKNOWN_AUTHOR",
    "UNKNOWN_DATE",
    "build_insertion_block",
    "card_block",
    "citation_label",
    "note_block",
    "qualifications_note",
]
