"""Keyboard chords understood by the editor session."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class EditorCommand(str, Enum):
    EMPHASIZE = "emphasize"
    PICK_HIGHLIGHT = "pick-highlight"
    MINIMIZE = "minimize"
    CLEAR_FORMATTING = "clear-formatting"


NAVIGATION_KEYS = frozenset({"ArrowUp", "ArrowDown", "Enter", "Escape"})


@dataclass(slots=True, frozen=True)
class KeyEvent:
    """Host-neutral key press.

    ``key`` follows DOM ``KeyboardEvent.key`` naming (``"e"``, ``"Enter"``,
    ``"ArrowDown"``); ``meta`` stands for the Cmd key on macOS.
    """

    key: str
    ctrl: bool = False
    meta: bool = False
    shift: bool = False
    alt: bool = False

    @property
    def primary(self) -> bool:
        """Return ``True`` when Ctrl (or Cmd) is held."""

        return self.ctrl or self.meta


_PRIMARY_CHORDS: dict[tuple[str, bool], EditorCommand] = {
    ("e", False): EditorCommand.EMPHASIZE,
    ("h", False): EditorCommand.PICK_HIGHLIGHT,
    ("m", False): EditorCommand.MINIMIZE,
    ("c", True): EditorCommand.CLEAR_FORMATTING,
}


def resolve_command(event: KeyEvent) -> EditorCommand | None:
    """Map a key press to a formatting command, or ``None`` when unbound."""

    if not event.primary or event.alt:
        return None
    key = event.key.lower()
    command = _PRIMARY_CHORDS.get((key, event.shift))
    if command is None and key in {"e", "h", "m"} and event.shift:
        # Shift does not change the plain formatting chords.
        command = _PRIMARY_CHORDS.get((key, False))
    return command


__all__ = ["EditorCommand", "KeyEvent", "NAVIGATION_KEYS", "resolve_command"]
