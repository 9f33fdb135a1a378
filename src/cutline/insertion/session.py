"""Slash-triggered search-and-insert state machine.

Typing ``/`` opens a session anchored at the slash. Every following
keystroke updates the query (the text between the slash and the caret) and
schedules a debounced search; a space or newline in the query, Escape, or a
committed item closes the session. Searches query card and note providers
concurrently, rank the merged list and publish it for the host's dropdown.

The machine never raises across its public methods: provider failures
become empty result lists and unexpected errors reset the session.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Awaitable, Callable, Iterable, Mapping, Sequence

from ..editor.keymap import KeyEvent
from ..editor.overlay import OverlayAnchor, compute_anchor
from ..events import EventBus, InsertionClosed, InsertionOpened, InsertionResultsUpdated, ItemInserted
from .debounce import DebounceSlot
from .items import CandidateItem
from .providers import ItemSearchProvider
from .templates import build_insertion_block

LOGGER = logging.getLogger(__name__)

TRIGGER_CHARACTER = "/"
DEFAULT_SEARCH_DELAY = 0.3
DEFAULT_MAX_RESULTS = 10
_QUERY_TERMINATORS = (" ", "\n")


class InsertionPhase(str, Enum):
    IDLE = "idle"
    TRIGGERED = "triggered"
    OPEN = "open"


class CloseReason(str, Enum):
    ESCAPE = "escape"
    INSERTED = "inserted"
    ABORTED = "aborted"
    DISMISSED = "dismissed"
    ERROR = "error"


@dataclass(slots=True)
class InsertionSessionState:
    """Observable state of the candidate list."""

    trigger_offset: int = -1
    query: str = ""
    items: tuple[CandidateItem, ...] = ()
    selected_index: int = 0
    loading: bool = False
    open: bool = False
    anchor: OverlayAnchor | None = None

    @property
    def selected_item(self) -> CandidateItem | None:
        if not self.items or not 0 <= self.selected_index < len(self.items):
            return None
        return self.items[self.selected_index]

    @property
    def empty_results(self) -> bool:
        """``True`` when the list is showing its "no results" state."""

        return self.open and not self.loading and not self.items


@dataclass(slots=True, frozen=True)
class InsertionResult:
    """Outcome of committing an item: the new text and where the caret goes."""

    text: str
    caret: int
    start: int
    replaced_end: int
    block: str
    item: CandidateItem


def rank_items(items: Iterable[CandidateItem], query: str) -> list[CandidateItem]:
    """Stable partition: items whose searchable text contains ``query`` come first."""

    return sorted(items, key=lambda item: 0 if item.matches(query) else 1)


class InsertionStateMachine:
    """Per-document insertion session driven by text and key events."""

    def __init__(
        self,
        provider: ItemSearchProvider,
        *,
        search_delay: float = DEFAULT_SEARCH_DELAY,
        max_results: int = DEFAULT_MAX_RESULTS,
        enabled: bool = True,
        event_bus: EventBus | None = None,
        on_insert: Callable[[InsertionResult], None] | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self._provider = provider
        self._max_results = max(1, int(max_results))
        self._bus = event_bus
        self._on_insert = on_insert
        self._loop = loop
        self._debounce = DebounceSlot(search_delay, loop=loop)
        self._state = InsertionSessionState()
        self._phase = InsertionPhase.IDLE
        self._text = ""
        self._cursor = 0
        self._request_id = 0
        self._tasks: set[asyncio.Task[Any]] = set()
        self.enabled = enabled

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------
    @property
    def phase(self) -> InsertionPhase:
        return self._phase

    @property
    def state(self) -> InsertionSessionState:
        """Return a snapshot of the session state."""

        return replace(self._state)

    @property
    def is_open(self) -> bool:
        return self._state.open

    @property
    def max_results(self) -> int:
        return self._max_results

    # ------------------------------------------------------------------
    # Text input
    # ------------------------------------------------------------------
    def handle_text_change(self, text: str, cursor: int, host: Any | None = None) -> None:
        """Inspect the latest edit and open, update or close the session."""

        if not self.enabled:
            return
        self._text = text
        self._cursor = max(0, min(int(cursor), len(text)))
        try:
            if self._cursor > 0 and text[self._cursor - 1] == TRIGGER_CHARACTER:
                self._open(self._cursor - 1, host)
            elif self._state.open:
                self._update_query()
        except Exception:
            LOGGER.exception("Insertion session failed while handling a text change")
            self._close(CloseReason.ERROR)

    def _open(self, trigger_offset: int, host: Any | None) -> None:
        anchor = compute_anchor(host, trigger_offset + 1) if host is not None else None
        self._debounce.cancel()
        self._state = InsertionSessionState(
            trigger_offset=trigger_offset,
            query="",
            items=(),
            selected_index=0,
            loading=True,
            open=True,
            anchor=anchor,
        )
        self._phase = InsertionPhase.TRIGGERED
        LOGGER.debug("Insertion session opened at offset %d", trigger_offset)
        if self._bus is not None:
            self._bus.publish(
                InsertionOpened(
                    trigger_offset=trigger_offset,
                    top=anchor.top if anchor else 0.0,
                    left=anchor.left if anchor else 0.0,
                )
            )
        self._request_search("")

    def _update_query(self) -> None:
        trigger = self._state.trigger_offset
        text, cursor = self._text, self._cursor
        if cursor <= trigger or trigger >= len(text) or text[trigger] != TRIGGER_CHARACTER:
            self._close(CloseReason.DISMISSED)
            return
        query = text[trigger + 1 : cursor]
        if any(terminator in query for terminator in _QUERY_TERMINATORS):
            self._close(CloseReason.ABORTED)
            return
        if query == self._state.query:
            return
        self._state.query = query
        if query:
            self._schedule_search(query)
        else:
            self._debounce.cancel()
            self._request_search("")

    # ------------------------------------------------------------------
    # Keyboard navigation
    # ------------------------------------------------------------------
    def handle_key(self, key: str | KeyEvent) -> bool:
        """Handle a navigation key; return ``True`` when the key was consumed."""

        if not self.enabled or not self._state.open:
            return False
        name = key.key if isinstance(key, KeyEvent) else key
        state = self._state
        if name == "Escape":
            self._close(CloseReason.ESCAPE)
            return True
        if name == "Enter":
            if not state.items:
                return False
            return self.commit() is not None
        if name == "ArrowDown":
            state.selected_index = max(0, min(state.selected_index + 1, len(state.items) - 1))
            self._publish_results()
            return True
        if name == "ArrowUp":
            state.selected_index = max(state.selected_index - 1, 0)
            self._publish_results()
            return True
        return False

    def hide(self) -> None:
        """Dismiss the list without inserting anything."""

        if self._state.open:
            self._close(CloseReason.DISMISSED)

    # ------------------------------------------------------------------
    # Commit
    # ------------------------------------------------------------------
    def commit(self, item: CandidateItem | None = None) -> InsertionResult | None:
        """Splice ``item`` (or the selected item) over ``[trigger, caret)``."""

        if not self._state.open:
            return None
        chosen = item or self._state.selected_item
        if chosen is None:
            return None
        try:
            result = self._splice(chosen)
        except Exception:
            LOGGER.exception("Failed to insert item %s", chosen.id)
            self._close(CloseReason.ERROR)
            return None
        self._close(CloseReason.INSERTED)
        LOGGER.debug("Inserted %s item %s at %d", chosen.kind.value, chosen.id, result.start)
        if self._bus is not None:
            self._bus.publish(
                ItemInserted(item_id=chosen.id, kind=chosen.kind.value, start=result.start, end=result.caret)
            )
        if self._on_insert is not None:
            try:
                self._on_insert(result)
            except Exception:
                LOGGER.exception("Insert callback failed for item %s", chosen.id)
        return result

    def select(self, item: CandidateItem) -> InsertionResult | None:
        """Commit an item picked with the pointer."""

        return self.commit(item)

    def _splice(self, item: CandidateItem) -> InsertionResult:
        text = self._text
        start = max(0, min(self._state.trigger_offset, len(text)))
        end = max(start, min(self._cursor, len(text)))
        block = build_insertion_block(item)
        return InsertionResult(
            text=text[:start] + block + text[end:],
            caret=start + len(block),
            start=start,
            replaced_end=end,
            block=block,
            item=item,
        )

    # ------------------------------------------------------------------
    # Searching
    # ------------------------------------------------------------------
    def _schedule_search(self, query: str) -> None:
        try:
            self._debounce.schedule(lambda: self._request_search(query))
        except RuntimeError:
            LOGGER.warning("No running event loop; insertion search for %r skipped", query)
            self._state.loading = False

    def _request_search(self, query: str) -> None:
        self._request_id += 1
        request_id = self._request_id
        self._state.loading = True
        try:
            loop = self._loop or asyncio.get_running_loop()
        except RuntimeError:
            LOGGER.warning("No running event loop; insertion search for %r skipped", query)
            self._state.loading = False
            return
        task = loop.create_task(self._run_search(query, request_id))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run_search(self, query: str, request_id: int) -> None:
        limit = self._max_results
        cards, notes = await asyncio.gather(
            self._safe_search(lambda: self._provider.search_cards(query, limit), "cards"),
            self._safe_search(lambda: self._provider.search_notes(query, limit), "analytics"),
        )
        if request_id != self._request_id or not self._state.open:
            LOGGER.debug("Discarding stale insertion results for %r", query)
            return
        items = _build_items(cards, CandidateItem.from_card_record, "card")
        items.extend(_build_items(notes, CandidateItem.from_note_record, "analytics"))
        ranked = rank_items(items, query)[:limit]
        self._state.items = tuple(ranked)
        self._state.selected_index = 0
        self._state.loading = False
        self._phase = InsertionPhase.OPEN
        self._publish_results()

    async def _safe_search(
        self,
        call: Callable[[], Awaitable[Sequence[Mapping[str, Any]]]],
        source: str,
    ) -> Sequence[Mapping[str, Any]]:
        try:
            return list(await call())
        except Exception as exc:
            LOGGER.warning("%s search failed; showing no results: %s", source, exc)
            LOGGER.debug("%s search failure details", source, exc_info=True)
            return []

    async def settle(self) -> None:
        """Run any debounced search now and wait for in-flight searches."""

        self._debounce.flush()
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _close(self, reason: CloseReason) -> None:
        was_open = self._state.open
        self._debounce.cancel()
        self._state = InsertionSessionState()
        self._phase = InsertionPhase.IDLE
        if was_open:
            LOGGER.debug("Insertion session closed (%s)", reason.value)
            if self._bus is not None:
                self._bus.publish(InsertionClosed(reason=reason.value))

    def _publish_results(self) -> None:
        if self._bus is None:
            return
        self._bus.publish(
            InsertionResultsUpdated(
                query=self._state.query,
                count=len(self._state.items),
                selected_index=self._state.selected_index,
            )
        )


def _build_items(
    records: Sequence[Mapping[str, Any]],
    factory: Callable[[Mapping[str, Any]], CandidateItem],
    label: str,
) -> list[CandidateItem]:
    items: list[CandidateItem] = []
    for record in records:
        try:
            items.append(factory(record))
        except (TypeError, ValueError, AttributeError):
            LOGGER.debug("Skipping malformed %s record: %r", label, record)
    return items


__all__ = [
    "CloseReason",
    "DEFAULT_MAX_RESULTS",
    "DEFAULT_SEARCH_DELAY",
    "InsertionPhase",
    "InsertionResult",
    "InsertionSessionState",
    "InsertionStateMachine",
    "TRIGGER_CHARACTER",
    "rank_items",
]
