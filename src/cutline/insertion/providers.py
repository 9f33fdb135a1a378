"""Item search providers consumed by the insertion session."""

from __future__ import annotations

import inspect
import logging
from typing import Any, Iterable, Mapping, Protocol, Sequence

import httpx

from ..core.errors import SearchProviderError

LOGGER = logging.getLogger(__name__)

CARD_SEARCH_PATH = "/api/evidence-cards/search"
NOTE_SEARCH_PATH = "/api/analytics/search"


class ItemSearchProvider(Protocol):
    """Returns card-like and note-like records for a query.

    Records are plain mappings in the wire shape of the search API
    (``tagLine``/``evidence``/``source`` for cards, ``title``/``content``
    for notes). Implementations may raise; the session treats any failure
    as an empty result.
    """

    async def search_cards(self, query: str, limit: int) -> Sequence[Mapping[str, Any]]:
        ...

    async def search_notes(self, query: str, limit: int) -> Sequence[Mapping[str, Any]]:
        ...


class HttpItemSearchProvider:
    """Search provider backed by the document service's HTTP search endpoints."""

    def __init__(
        self,
        base_url: str,
        *,
        client: httpx.AsyncClient | None = None,
        timeout: float | None = 10.0,
        headers: Mapping[str, str] | None = None,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            headers=dict(headers) if headers else None,
        )

    async def search_cards(self, query: str, limit: int) -> list[Mapping[str, Any]]:
        return await self._fetch(CARD_SEARCH_PATH, query, limit, source="cards")

    async def search_notes(self, query: str, limit: int) -> list[Mapping[str, Any]]:
        return await self._fetch(NOTE_SEARCH_PATH, query, limit, source="analytics")

    async def aclose(self) -> None:
        """Close the HTTP client when this provider created it."""

        if not self._owns_client:
            return
        result = self._client.aclose()
        if inspect.isawaitable(result):
            await result

    async def _fetch(self, path: str, query: str, limit: int, *, source: str) -> list[Mapping[str, Any]]:
        try:
            response = await self._client.get(path, params={"q": query, "limit": limit})
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPError as exc:
            raise SearchProviderError(f"{source} search request failed: {exc}", source=source) from exc
        except ValueError as exc:
            raise SearchProviderError(f"{source} search returned invalid JSON", source=source) from exc
        return _unwrap_envelope(payload, source=source)


class StaticItemSearchProvider:
    """In-memory provider filtering fixed record lists, mirroring the search API."""

    def __init__(
        self,
        cards: Iterable[Mapping[str, Any]] = (),
        notes: Iterable[Mapping[str, Any]] = (),
    ) -> None:
        self.cards = [dict(card) for card in cards]
        self.notes = [dict(note) for note in notes]
        self.calls: list[tuple[str, str, int]] = []

    async def search_cards(self, query: str, limit: int) -> list[Mapping[str, Any]]:
        self.calls.append(("cards", query, limit))
        needle = query.lower()
        matches = [
            card
            for card in self.cards
            if not needle
            or needle in str(card.get("tagLine", "")).lower()
            or needle in str(card.get("shorthand", "")).lower()
        ]
        return matches[:limit]

    async def search_notes(self, query: str, limit: int) -> list[Mapping[str, Any]]:
        self.calls.append(("analytics", query, limit))
        needle = query.lower()
        matches = [
            note
            for note in self.notes
            if not needle
            or needle in str(note.get("title", "")).lower()
            or needle in str(note.get("summary", "")).lower()
            or needle in str(note.get("content", "")).lower()
            or any(needle in str(tag).lower() for tag in note.get("tags") or ())
        ]
        return matches[:limit]


def _unwrap_envelope(payload: Any, *, source: str) -> list[Mapping[str, Any]]:
    if isinstance(payload, list):
        records = payload
    elif isinstance(payload, Mapping):
        if not payload.get("success", False):
            LOGGER.debug("%s search reported failure: %s", source, payload.get("error"))
            return []
        records = payload.get("data") or []
    else:
        raise SearchProviderError(f"{source} search returned an unexpected payload", source=source)
    return [record for record in records if isinstance(record, Mapping)]


__all__ = [
    "CARD_SEARCH_PATH",
    "HttpItemSearchProvider",
    "ItemSearchProvider",
    "NOTE_SEARCH_PATH",
    "StaticItemSearchProvider",
]
