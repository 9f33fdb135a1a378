"""Core domain types shared by the editor, insertion and service layers."""

from .errors import CutlineError, PersistenceError, SearchProviderError, SettingsError
from .formatting import (
    EmphasisRange,
    FormattingData,
    HighlightColor,
    HighlightRange,
    MinimizedRange,
    RangeKind,
    apply_range,
    clear,
)
from .ranges import TextRange

__all__ = [
    "CutlineError",
    "EmphasisRange",
    "FormattingData",
    "HighlightColor",
    "HighlightRange",
    "MinimizedRange",
    "PersistenceError",
    "RangeKind",
    "SearchProviderError",
    "SettingsError",
    "TextRange",
    "apply_range",
    "clear",
]
