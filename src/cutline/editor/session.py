"""Per-document editor session tying formatting, rendering and insertion together.

The session owns the document text and its :class:`FormattingData`. Hosts
forward text edits and key presses; the session re-renders the host surface
with the caret preserved, runs the slash-insertion workflow and hands the
result to the persistence layer.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Iterable, Protocol, Sequence

from ..core.formatting import FormattingData, HighlightColor, RangeKind, apply_range, clear
from ..events import EventBus, FormattingChanged, HighlightPickerToggled, TextChanged
from ..insertion.providers import ItemSearchProvider, StaticItemSearchProvider
from ..insertion.session import InsertionResult, InsertionStateMachine
from ..services.persistence import AutoSaver, DocumentPayload, PersistenceSink, SaveStatus
from ..services.settings import EngineSettings
from .cursor_mapper import CaretOffsets, NodeSelection, capture_offset, preserve_caret, restore_offset
from .keymap import NAVIGATION_KEYS, EditorCommand, KeyEvent, resolve_command
from .minimize import minimize_non_emphasized
from .segments import Segment, render_html, segment_text

LOGGER = logging.getLogger(__name__)


class HostSurface(Protocol):
    """What the session needs from the widget that displays the text."""

    focused: bool

    def iter_text_nodes(self) -> Iterable[tuple[str, Any]]:
        ...

    def selection(self) -> NodeSelection | None:
        ...

    def set_selection(self, selection: NodeSelection | None) -> None:
        ...

    def render(self, segments: Sequence[Segment]) -> None:
        ...


class EditorSession:
    """Single-document controller used by host surfaces."""

    def __init__(
        self,
        surface: HostSurface,
        *,
        document_id: str = "document",
        text: str = "",
        formatting: FormattingData | None = None,
        settings: EngineSettings | None = None,
        provider: ItemSearchProvider | None = None,
        sink: PersistenceSink | None = None,
        event_bus: EventBus | None = None,
        disabled: bool = False,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self.settings = settings or EngineSettings()
        self.document_id = document_id
        self.disabled = disabled
        self._surface = surface
        self._bus = event_bus or EventBus()
        self._text = text
        self._formatting = formatting or clear()
        self._picker_visible = False
        self._insertion = InsertionStateMachine(
            provider or StaticItemSearchProvider(),
            search_delay=self.settings.search_delay,
            max_results=self.settings.max_results,
            enabled=provider is not None,
            event_bus=self._bus,
            on_insert=self._apply_insertion,
            loop=loop,
        )
        self._saver: AutoSaver | None = None
        if sink is not None:
            self._saver = AutoSaver(sink, interval=self.settings.autosave_interval, event_bus=self._bus)
        self._render()

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------
    @property
    def text(self) -> str:
        return self._text

    @property
    def formatting(self) -> FormattingData:
        return self._formatting

    @property
    def surface(self) -> HostSurface:
        return self._surface

    @property
    def event_bus(self) -> EventBus:
        return self._bus

    @property
    def insertion(self) -> InsertionStateMachine:
        return self._insertion

    @property
    def autosaver(self) -> AutoSaver | None:
        return self._saver

    @property
    def save_status(self) -> SaveStatus:
        return self._saver.status if self._saver is not None else SaveStatus.SAVED

    @property
    def highlight_picker_visible(self) -> bool:
        return self._picker_visible

    @property
    def character_count(self) -> int:
        return len(self._text)

    @property
    def characters_over_limit(self) -> int:
        limit = self.settings.character_limit
        if not limit:
            return 0
        return max(0, len(self._text) - limit)

    @property
    def limit_exceeded(self) -> bool:
        return self.characters_over_limit > 0

    def segments(self) -> list[Segment]:
        if not self.settings.enable_formatting:
            return segment_text(self._text, None)
        return segment_text(self._text, self._formatting)

    def html(self) -> str:
        return render_html(self.segments())

    def payload(self) -> DocumentPayload:
        return DocumentPayload(document_id=self.document_id, text=self._text, formatting=self._formatting)

    def selection_offsets(self) -> CaretOffsets | None:
        """Return the host selection as linear offsets, or ``None`` if unavailable."""

        return capture_offset(self._surface.selection(), self._surface)

    # ------------------------------------------------------------------
    # Formatting commands
    # ------------------------------------------------------------------
    def apply_emphasis(self) -> bool:
        """Emphasize the current selection; return ``True`` if a range was added."""

        if not self._formatting_allowed():
            return False
        return self._apply_to_selection(
            RangeKind.EMPHASIS,
            {"font": self.settings.emphasis_font, "size": self.settings.emphasis_size},
            command=EditorCommand.EMPHASIZE.value,
        )

    def apply_highlight(self, color: HighlightColor | str) -> bool:
        """Highlight the current selection with ``color`` and close the picker."""

        self.close_highlight_picker()
        if not self._formatting_allowed() or not self.settings.enable_highlighting:
            return False
        try:
            resolved = HighlightColor(color)
        except ValueError:
            LOGGER.debug("Ignoring unknown highlight colour %r", color)
            return False
        return self._apply_to_selection(RangeKind.HIGHLIGHT, {"color": resolved.value}, command="highlight")

    def open_highlight_picker(self) -> bool:
        if not self._formatting_allowed() or not self.settings.enable_highlighting:
            return False
        self._set_picker(True)
        return True

    def close_highlight_picker(self) -> None:
        self._set_picker(False)

    def minimize_non_emphasized(self) -> bool:
        """Minimize every span outside the emphasis ranges."""

        if not self._formatting_allowed() or not self.settings.enable_minimize:
            return False
        updated = minimize_non_emphasized(self._formatting, len(self._text), self.settings.minimize_size)
        if updated is self._formatting:
            return False
        self._set_formatting(updated, command=EditorCommand.MINIMIZE.value)
        return True

    def clear_formatting(self) -> bool:
        if not self._formatting_allowed():
            return False
        self._set_formatting(clear(), command=EditorCommand.CLEAR_FORMATTING.value)
        return True

    def set_formatting(self, formatting: FormattingData | None) -> None:
        """Replace the formatting wholesale, e.g. after loading a stored document."""

        self._formatting = formatting or clear()
        self._render()

    # ------------------------------------------------------------------
    # Host input
    # ------------------------------------------------------------------
    def handle_key(self, event: KeyEvent) -> bool:
        """Route a key press; return ``True`` when the host should swallow it."""

        if self.disabled or not getattr(self._surface, "focused", True):
            return False
        if self._insertion.is_open and event.key in NAVIGATION_KEYS and not event.primary:
            return self._insertion.handle_key(event)
        if self._picker_visible and event.key == "Escape":
            self.close_highlight_picker()
            return True

        command = resolve_command(event)
        if command is None or not self.settings.enable_formatting:
            return False
        if command is EditorCommand.EMPHASIZE:
            self.apply_emphasis()
        elif command is EditorCommand.PICK_HIGHLIGHT:
            self.open_highlight_picker()
        elif command is EditorCommand.MINIMIZE:
            self.minimize_non_emphasized()
        elif command is EditorCommand.CLEAR_FORMATTING:
            self.clear_formatting()
        return True

    def handle_text_input(self, text: str, cursor: int | None = None) -> bool:
        """Accept text typed into the host; direct edits drop all formatting."""

        if self.disabled:
            return False
        caret = len(text) if cursor is None else max(0, min(int(cursor), len(text)))
        if text == self._text:
            return False
        self._replace_text(text, caret)
        self._insertion.handle_text_change(text, caret, host=self._surface)
        return True

    def load(self, payload: DocumentPayload) -> None:
        """Show a stored document; this is not an edit, so formatting is kept."""

        self._insertion.hide()
        self.document_id = payload.document_id
        self._text = payload.text
        self._formatting = payload.formatting
        self._render()

    # ------------------------------------------------------------------
    # Async lifecycle
    # ------------------------------------------------------------------
    async def flush(self) -> SaveStatus:
        """Finish pending searches and saves."""

        await self._insertion.settle()
        if self._saver is not None:
            await self._saver.flush()
        return self.save_status

    async def save(self) -> SaveStatus:
        if self._saver is None:
            return SaveStatus.SAVED
        self._saver.cancel()
        return await self._saver.save_now(self.payload())

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _formatting_allowed(self) -> bool:
        return self.settings.enable_formatting and not self.disabled

    def _apply_to_selection(self, kind: RangeKind, payload: dict[str, Any], *, command: str) -> bool:
        offsets = self.selection_offsets()
        if offsets is None or offsets.collapsed:
            LOGGER.debug("No usable selection for %s", command)
            return False
        updated = apply_range(
            self._formatting,
            kind,
            offsets.start,
            offsets.end,
            payload,
            text_length=len(self._text),
        )
        if updated is self._formatting:
            return False
        self._set_formatting(updated, command=command)
        return True

    def _set_formatting(self, formatting: FormattingData, *, command: str) -> None:
        self._formatting = formatting
        self._render()
        self._bus.publish(
            FormattingChanged(
                document_id=self.document_id,
                command=command,
                emphasis=len(formatting.emphasis),
                highlights=len(formatting.highlights),
                minimized=len(formatting.minimized),
            )
        )
        self._request_save()

    def _replace_text(self, text: str, caret: int) -> None:
        reset = not self._formatting.is_empty
        self._text = text
        self._formatting = clear()
        self._render(caret=caret)
        self._bus.publish(TextChanged(document_id=self.document_id, length=len(text), formatting_reset=reset))
        self._request_save()

    def _apply_insertion(self, result: InsertionResult) -> None:
        self._replace_text(result.text, result.caret)

    def _render(self, *, caret: int | None = None) -> None:
        segments = self.segments()
        if caret is None:
            preserve_caret(self._surface, lambda: self._surface.render(segments))
            return
        self._surface.render(segments)
        restored = restore_offset(CaretOffsets(caret, caret), self._surface)
        if restored is not None:
            self._surface.set_selection(restored)

    def _set_picker(self, visible: bool) -> None:
        if self._picker_visible == visible:
            return
        self._picker_visible = visible
        self._bus.publish(HighlightPickerToggled(document_id=self.document_id, visible=visible))

    def _request_save(self) -> None:
        if self._saver is None:
            return
        self._saver.request_save(self.payload(), immediate=not self.settings.enable_autosave)


__all__ = ["EditorSession", "HostSurface"]
