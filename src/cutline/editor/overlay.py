"""Anchor coordinates for the floating candidate list."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

LOGGER = logging.getLogger(__name__)

ANCHOR_MARGIN = 5
PLAIN_TEXT_INDENT = 10
LINE_HEIGHT_FACTOR = 1.2


@dataclass(slots=True, frozen=True)
class Rect:
    """Screen rectangle in host coordinates."""

    left: float
    top: float
    width: float = 0.0
    height: float = 0.0

    @property
    def bottom(self) -> float:
        return self.top + self.height


@dataclass(slots=True, frozen=True)
class OverlayAnchor:
    """Top-left corner at which the overlay should be placed."""

    top: float
    left: float


@runtime_checkable
class HostGeometry(Protocol):
    def bounding_rect(self) -> Rect:
        ...


@runtime_checkable
class PlainTextHost(HostGeometry, Protocol):
    """Single-rectangle text control (a text area) without per-character geometry."""

    def text(self) -> str:
        ...

    def line_height(self) -> float | None:
        ...

    def font_size(self) -> float:
        ...


@runtime_checkable
class RichTextHost(HostGeometry, Protocol):
    """Host able to report the rectangle of its live selection."""

    def selection_rect(self) -> Rect | None:
        ...


def compute_anchor(host: Any, caret_offset: int | None = None) -> OverlayAnchor:
    """Return where the overlay should open for ``host``.

    Plain text controls estimate the caret line from the newlines before
    ``caret_offset``; rich hosts use the selection rectangle; anything else
    falls back to just below the host's bounding rectangle.
    """

    rect = _safe_rect(host)
    if isinstance(host, PlainTextHost) and caret_offset is not None:
        try:
            return _plain_text_anchor(host, rect, caret_offset)
        except Exception:  # pragma: no cover - host geometry failure
            LOGGER.debug("Plain-text anchor estimation failed", exc_info=True)
    elif isinstance(host, RichTextHost):
        try:
            selection_rect = host.selection_rect()
        except Exception:  # pragma: no cover - host geometry failure
            LOGGER.debug("Selection rectangle unavailable", exc_info=True)
            selection_rect = None
        if selection_rect is not None:
            return OverlayAnchor(top=selection_rect.bottom + ANCHOR_MARGIN, left=selection_rect.left)
    return OverlayAnchor(top=rect.bottom + ANCHOR_MARGIN, left=rect.left)


def _plain_text_anchor(host: PlainTextHost, rect: Rect, caret_offset: int) -> OverlayAnchor:
    line_height = host.line_height() or host.font_size() * LINE_HEIGHT_FACTOR
    content = host.text()[: max(0, caret_offset)]
    line_number = content.count("\n")
    return OverlayAnchor(
        top=rect.top + line_number * line_height + line_height + ANCHOR_MARGIN,
        left=rect.left + PLAIN_TEXT_INDENT,
    )


def _safe_rect(host: Any) -> Rect:
    try:
        rect = host.bounding_rect()
    except Exception:  # pragma: no cover - host geometry failure
        LOGGER.debug("Host bounding rectangle unavailable", exc_info=True)
        return Rect(0.0, 0.0)
    return rect if isinstance(rect, Rect) else Rect(0.0, 0.0)


__all__ = [
    "ANCHOR_MARGIN",
    "HostGeometry",
    "OverlayAnchor",
    "PlainTextHost",
    "Rect",
    "RichTextHost",
    "compute_anchor",
]
