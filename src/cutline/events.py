"""Typed publish/subscribe bus and the events emitted by an editor session.

Hosts subscribe to these events to refresh the rendered text, show or hide
the candidate list, and display the save status. Handlers run synchronously
on the publishing thread (the event-loop thread); a failing handler is
logged and does not stop delivery to the others.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Callable, Generic, TypeVar
from weakref import WeakMethod

LOGGER = logging.getLogger(__name__)

E = TypeVar("E", bound="Event")
Handler = Callable[[E], None]


@dataclass(slots=True)
class Event:
    """Base class for all engine events."""


# ----------------------------------------------------------------------
# Document events
# ----------------------------------------------------------------------


@dataclass(slots=True)
class TextChanged(Event):
    """The document text changed; ``formatting_reset`` is set when ranges were dropped."""

    document_id: str
    length: int
    formatting_reset: bool = False


@dataclass(slots=True)
class FormattingChanged(Event):
    """The formatting aggregate was replaced by a formatting command."""

    document_id: str
    command: str
    emphasis: int
    highlights: int
    minimized: int


@dataclass(slots=True)
class HighlightPickerToggled(Event):
    document_id: str
    visible: bool


@dataclass(slots=True)
class SaveStatusChanged(Event):
    """Auto-save moved between ``saved``, ``saving`` and ``error``."""

    document_id: str
    status: str
    detail: str | None = None


# ----------------------------------------------------------------------
# Insertion events
# ----------------------------------------------------------------------


@dataclass(slots=True)
class InsertionOpened(Event):
    trigger_offset: int
    top: float
    left: float


@dataclass(slots=True)
class InsertionResultsUpdated(Event):
    query: str
    count: int
    selected_index: int


@dataclass(slots=True)
class InsertionClosed(Event):
    reason: str


@dataclass(slots=True)
class ItemInserted(Event):
    item_id: str
    kind: str
    start: int
    end: int


# High-frequency events that are not logged on every publish.
_QUIET_EVENT_TYPES: set[type] = {InsertionResultsUpdated, TextChanged}


class EventBus(Generic[E]):
    """Publish/subscribe bus keyed on event type.

    Bound-method handlers are held weakly so a discarded host widget does
    not keep receiving events; plain functions and lambdas are held
    strongly. Not thread-safe.
    """

    __slots__ = ("_handlers",)

    def __init__(self) -> None:
        self._handlers: defaultdict[type[Event], list[_HandlerRef]] = defaultdict(list)

    def subscribe(self, event_type: type[E], handler: Handler[E]) -> None:
        self._handlers[event_type].append(_HandlerRef.create(handler))
        LOGGER.debug("Subscribed %s to %s", _handler_name(handler), event_type.__name__)

    def unsubscribe(self, event_type: type[E], handler: Handler[E]) -> None:
        """Remove the first registration of ``handler``; unknown handlers are ignored."""

        handlers = self._handlers.get(event_type)
        if not handlers:
            return
        for index, handler_ref in enumerate(handlers):
            if handler_ref.matches(handler):
                handlers.pop(index)
                return

    def publish(self, event: E) -> None:
        event_type = type(event)
        handlers = self._handlers.get(event_type)
        if not handlers:
            return
        if event_type not in _QUIET_EVENT_TYPES:
            LOGGER.debug("Publishing %s to %d handler(s)", event_type.__name__, len(handlers))

        stale = False
        for handler_ref in list(handlers):
            handler = handler_ref.resolve()
            if handler is None:
                stale = True
                continue
            try:
                handler(event)
            except Exception:
                LOGGER.exception(
                    "Handler %s raised while handling %s",
                    _handler_name(handler),
                    event_type.__name__,
                )
        if stale:
            handlers[:] = [ref for ref in handlers if ref.resolve() is not None]

    def clear(self) -> None:
        self._handlers.clear()

    def handler_count(self, event_type: type[E] | None = None) -> int:
        if event_type is not None:
            return len(self._handlers.get(event_type, []))
        return sum(len(handlers) for handlers in self._handlers.values())


class _HandlerRef:
    """Strong or weak reference to a handler, depending on its kind."""

    __slots__ = ("_ref", "_is_weak")

    def __init__(self, handler_ref: Any, is_weak: bool) -> None:
        self._ref = handler_ref
        self._is_weak = is_weak

    @classmethod
    def create(cls, handler: Handler[Any]) -> _HandlerRef:
        if hasattr(handler, "__self__") and hasattr(handler, "__func__"):
            try:
                return cls(WeakMethod(handler), is_weak=True)
            except TypeError:
                pass
        return cls(handler, is_weak=False)

    def resolve(self) -> Handler[Any] | None:
        return self._ref() if self._is_weak else self._ref

    def matches(self, handler: Handler[Any]) -> bool:
        return self.resolve() == handler


def _handler_name(handler: Any) -> str:
    return getattr(handler, "__qualname__", None) or repr(handler)


__all__ = [
    "Event",
    "EventBus",
    "FormattingChanged",
    "Handler",
    "HighlightPickerToggled",
    "InsertionClosed",
    "InsertionOpened",
    "InsertionResultsUpdated",
    "ItemInserted",
    "SaveStatusChanged",
    "TextChanged",
]
