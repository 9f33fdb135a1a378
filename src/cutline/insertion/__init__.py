"""Slash-triggered search and insertion of evidence cards and analytics."""

from .debounce import DebounceSlot
from .items import CandidateItem, CardDetails, ItemKind
from .providers import HttpItemSearchProvider, ItemSearchProvider, StaticItemSearchProvider
from .session import (
    CloseReason,
    InsertionPhase,
    InsertionResult,
    InsertionSessionState,
    InsertionStateMachine,
    rank_items,
)
from .templates import build_insertion_block

__all__ = [
    "CandidateItem",
    "CardDetails",
    "CloseReason",
    "DebounceSlot",
    "HttpItemSearchProvider",
    "InsertionPhase",
    "InsertionResult",
    "InsertionSessionState",
    "InsertionStateMachine",
    "ItemKind",
    "ItemSearchProvider",
    "StaticItemSearchProvider",
    "build_insertion_block",
    "rank_items",
]
