"""Editor package: segmentation, caret mapping, overlay geometry and host surfaces."""

from importlib import import_module
from typing import Any

from . import cursor_mapper, keymap, minimize, overlay, segments, surface

__all__ = ["cursor_mapper", "keymap", "minimize", "overlay", "segments", "surface"]

# ``session`` pulls in the insertion and service layers, which import this
# package, and ``qt_surface`` needs PySide6; both load on first access.
_LAZY_MODULES = frozenset({"session", "qt_surface"})


def __getattr__(name: str) -> Any:
    if name in _LAZY_MODULES:
        module = import_module(f"{__name__}.{name}")
        globals()[name] = module
        return module
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
