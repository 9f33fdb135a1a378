"""PySide6 host surface backed by a ``QTextEdit``.

``QTextDocument`` positions count UTF-16 code units while the session counts
string offsets, so every position crossing the widget boundary goes through
:func:`offset_to_qt` or :func:`offset_from_qt`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterator, Sequence

from PySide6.QtCore import QEvent, QObject, Qt
from PySide6.QtGui import QColor, QFont, QKeyEvent, QTextCharFormat, QTextCursor
from PySide6.QtWidgets import QTextEdit

from ..core.formatting import HighlightColor
from .cursor_mapper import CaretOffsets, NodeSelection, capture_offset, restore_offset
from .keymap import KeyEvent
from .overlay import Rect
from .segments import Segment

if TYPE_CHECKING:  # pragma: no cover - import cycle guard
    from .session import EditorSession

LOGGER = logging.getLogger(__name__)

HIGHLIGHT_BACKGROUNDS: dict[HighlightColor, str] = {
    HighlightColor.BLUE: "#bfdbfe",
    HighlightColor.PINK: "#fbcfe8",
    HighlightColor.GREEN: "#bbf7d0",
    HighlightColor.YELLOW: "#fef08a",
}

_NAMED_KEYS: dict[int, str] = {
    Qt.Key.Key_Up.value: "ArrowUp",
    Qt.Key.Key_Down.value: "ArrowDown",
    Qt.Key.Key_Return.value: "Enter",
    Qt.Key.Key_Enter.value: "Enter",
    Qt.Key.Key_Escape.value: "Escape",
}


@dataclass(slots=True, frozen=True)
class QtTextNode:
    """A text fragment identified by its absolute document position."""

    position: int
    length: int


class QtTextSurface:
    """Adapts a ``QTextEdit`` to the session's host surface protocol."""

    def __init__(self, widget: QTextEdit | None = None, *, focused: bool | None = None) -> None:
        self._widget = widget or QTextEdit()
        self._focused_override = focused
        self._rendering = False
        self._session: EditorSession | None = None
        self._key_filter: _KeyFilter | None = None
        self.render_count = 0

    @property
    def widget(self) -> QTextEdit:
        return self._widget

    @property
    def focused(self) -> bool:
        if self._focused_override is not None:
            return self._focused_override
        return self._widget.hasFocus()

    @focused.setter
    def focused(self, value: bool | None) -> None:
        self._focused_override = value

    def text(self) -> str:
        return self._widget.toPlainText()

    # ------------------------------------------------------------------
    # Text nodes
    # ------------------------------------------------------------------
    def iter_text_nodes(self) -> Iterator[tuple[str, QtTextNode]]:
        """Yield one node per format fragment, plus one per block separator."""

        document = self._widget.document()
        block = document.begin()
        first = True
        while block.isValid():
            if not first:
                yield "\n", QtTextNode(block.position() - 1, 1)
            first = False
            iterator = block.begin()
            while not iterator.atEnd():
                fragment = iterator.fragment()
                if fragment.isValid() and fragment.length() > 0:
                    yield fragment.text(), QtTextNode(fragment.position(), fragment.length())
                iterator += 1
            block = block.next()

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------
    def selection(self) -> NodeSelection | None:
        cursor = self._widget.textCursor()
        text = self.text()
        offsets = CaretOffsets(
            offset_from_qt(text, cursor.selectionStart()),
            offset_from_qt(text, cursor.selectionEnd()),
        )
        return restore_offset(offsets, self)

    def set_selection(self, selection: NodeSelection | None) -> None:
        if selection is None:
            return
        offsets = capture_offset(selection, self)
        if offsets is None:
            return
        self.select_offsets(offsets.start, offsets.end)

    def select_offsets(self, start: int, end: int | None = None) -> None:
        """Select ``[start, end)`` given in string offsets of :meth:`text`."""

        text = self.text()
        length = len(text)
        anchor = max(0, min(start, length))
        position = anchor if end is None else max(0, min(end, length))
        cursor = self._widget.textCursor()
        cursor.setPosition(offset_to_qt(text, anchor))
        cursor.setPosition(offset_to_qt(text, position), QTextCursor.MoveMode.KeepAnchor)
        self._widget.setTextCursor(cursor)

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------
    def render(self, segments: Sequence[Segment]) -> None:
        """Rebuild the document with one formatted run per segment."""

        self._rendering = True
        try:
            document = self._widget.document()
            cursor = QTextCursor(document)
            cursor.beginEditBlock()
            cursor.select(QTextCursor.SelectionType.Document)
            cursor.removeSelectedText()
            cursor.setCharFormat(QTextCharFormat())
            for segment in segments:
                cursor.insertText(segment.text, char_format_for(segment))
            cursor.endEditBlock()
        finally:
            self._rendering = False
        self.render_count += 1

    # ------------------------------------------------------------------
    # Geometry
    # ------------------------------------------------------------------
    def bounding_rect(self) -> Rect:
        viewport = self._widget.viewport().rect()
        return Rect(float(viewport.x()), float(viewport.y()), float(viewport.width()), float(viewport.height()))

    def selection_rect(self) -> Rect | None:
        rect = self._widget.cursorRect()
        if not rect.isValid():
            return None
        return Rect(float(rect.x()), float(rect.y()), float(rect.width()), float(rect.height()))

    # ------------------------------------------------------------------
    # Session wiring
    # ------------------------------------------------------------------
    def bind(self, session: EditorSession) -> None:
        """Forward the widget's edits and key presses to ``session``."""

        self.unbind()
        self._session = session
        self._widget.textChanged.connect(self._handle_text_changed)
        self._key_filter = _KeyFilter(session)
        self._widget.installEventFilter(self._key_filter)

    def unbind(self) -> None:
        if self._session is None:
            return
        try:
            self._widget.textChanged.disconnect(self._handle_text_changed)
        except (RuntimeError, TypeError):  # pragma: no cover - already disconnected
            LOGGER.debug("textChanged was not connected", exc_info=True)
        if self._key_filter is not None:
            self._widget.removeEventFilter(self._key_filter)
        self._key_filter = None
        self._session = None

    def _handle_text_changed(self) -> None:
        if self._rendering or self._session is None:
            return
        text = self._widget.toPlainText()
        caret = offset_from_qt(text, self._widget.textCursor().position())
        self._session.handle_text_input(text, caret)


class _KeyFilter(QObject):
    """Event filter translating Qt key presses into session key events."""

    def __init__(self, session: EditorSession) -> None:
        super().__init__()
        self._session = session

    def eventFilter(self, watched: QObject, event: QEvent) -> bool:  # noqa: N802 - Qt override
        if event.type() != QEvent.Type.KeyPress or not isinstance(event, QKeyEvent):
            return False
        key_event = key_event_from_qt(event)
        if key_event is None:
            return False
        return self._session.handle_key(key_event)


def key_event_from_qt(event: QKeyEvent) -> KeyEvent | None:
    """Translate a ``QKeyEvent`` into a host-neutral :class:`KeyEvent`."""

    code = event.key()
    code = getattr(code, "value", code)
    name = _NAMED_KEYS.get(code)
    if name is None:
        if Qt.Key.Key_A.value <= code <= Qt.Key.Key_Z.value:
            name = chr(code).lower()
        elif event.text():
            name = event.text()
        else:
            return None
    modifiers = event.modifiers()
    return KeyEvent(
        key=name,
        ctrl=bool(modifiers & Qt.KeyboardModifier.ControlModifier),
        meta=bool(modifiers & Qt.KeyboardModifier.MetaModifier),
        shift=bool(modifiers & Qt.KeyboardModifier.ShiftModifier),
        alt=bool(modifiers & Qt.KeyboardModifier.AltModifier),
    )


def offset_to_qt(text: str, offset: int) -> int:
    """Convert a string offset into ``text`` to a ``QTextDocument`` position."""

    prefix = text[: max(0, offset)]
    return len(prefix) + sum(1 for char in prefix if ord(char) > 0xFFFF)


def offset_from_qt(text: str, position: int) -> int:
    """Convert a ``QTextDocument`` position to a string offset into ``text``.

    A position falling between the two halves of a surrogate pair resolves
    to the offset after that character.
    """

    units = 0
    for index, char in enumerate(text):
        if units >= position:
            return index
        units += 2 if ord(char) > 0xFFFF else 1
    return len(text)


def char_format_for(segment: Segment) -> QTextCharFormat:
    """Return the character format that displays ``segment``'s style."""

    char_format = QTextCharFormat()
    style = segment.style
    if style.minimized is not None:
        char_format.setFontPointSize(float(style.minimized.size))
    if style.emphasis is not None:
        char_format.setFontFamilies([style.emphasis.font])
        char_format.setFontPointSize(float(style.emphasis.size))
        char_format.setFontWeight(QFont.Weight.Bold)
        char_format.setFontUnderline(True)
    if style.highlight is not None:
        char_format.setBackground(QColor(HIGHLIGHT_BACKGROUNDS[style.highlight.color]))
    return char_format


__all__ = [
    "HIGHLIGHT_BACKGROUNDS",
    "QtTextNode",
    "QtTextSurface",
    "char_format_for",
    "key_event_from_qt",
    "offset_from_qt",
    "offset_to_qt",
]
