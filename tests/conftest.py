"""Shared pytest fixtures."""

from __future__ import annotations

import os
from typing import Any, Callable

import pytest

from cutline.events import Event, EventBus
from cutline.insertion.providers import StaticItemSearchProvider

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")


CARD_RECORDS: list[dict[str, Any]] = [
    {
        "id": "card-1",
        "tagLine": "Climate change threatens coastal cities",
        "shorthand": "Sea level rise",
        "evidence": "Rising seas will displace millions by 2100.",
        "source": {
            "author": "Smith",
            "year": 2023,
            "publication": "Nature",
            "authorQualifications": "Professor of Oceanography",
            "studyMethodology": "Meta-analysis of 40 studies",
        },
    },
    {
        "id": "card-2",
        "tagLine": "Economic growth reduces poverty",
        "shorthand": "Growth good",
        "evidence": "GDP growth correlates with falling poverty rates.",
        "source": {"author": "Jones", "date": "2019-04-01"},
    },
]

NOTE_RECORDS: list[dict[str, Any]] = [
    {
        "id": "note-1",
        "title": "Climate impact framing",
        "summary": "Frame impacts around magnitude",
        "content": "Magnitude outweighs probability here.",
        "tags": ["impacts", "climate"],
    },
    {
        "id": "note-2",
        "title": "Poverty turn",
        "content": "Their growth evidence cuts both ways.",
        "tags": ["economy"],
    },
]


@pytest.fixture
def card_records() -> list[dict[str, Any]]:
    return [dict(record) for record in CARD_RECORDS]


@pytest.fixture
def note_records() -> list[dict[str, Any]]:
    return [dict(record) for record in NOTE_RECORDS]


@pytest.fixture
def static_provider(card_records: list[dict[str, Any]], note_records: list[dict[str, Any]]) -> StaticItemSearchProvider:
    return StaticItemSearchProvider(card_records, note_records)


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture
def recorded_events(event_bus: EventBus) -> Callable[[type[Event]], list[Event]]:
    """Return a factory that subscribes a recording list to an event type."""

    def _record(event_type: type[Event]) -> list[Event]:
        received: list[Event] = []
        event_bus.subscribe(event_type, received.append)
        return received

    return _record
