"""Derive minimized ranges covering everything that is not emphasized."""

from __future__ import annotations

import logging
from typing import Iterable, Sequence

from ..core.formatting import DEFAULT_MINIMIZE_SIZE, EmphasisRange, FormattingData, MinimizedRange

LOGGER = logging.getLogger(__name__)


def compute_minimized_complement(
    emphasis: Sequence[EmphasisRange],
    text_length: int,
    minimize_size: float = DEFAULT_MINIMIZE_SIZE,
    *,
    previous: Iterable[MinimizedRange] = (),
) -> tuple[MinimizedRange, ...]:
    """Return the gaps between emphasis ranges as minimized ranges.

    With no emphasis there is nothing to anchor the complement to, so the
    ``previous`` minimized ranges are returned untouched.
    """

    if not emphasis:
        LOGGER.debug("No emphasis ranges; keeping previous minimized ranges")
        return tuple(previous)

    minimized: list[MinimizedRange] = []
    cursor = 0
    for item in sorted(emphasis, key=lambda entry: entry.start):
        if item.start > cursor:
            minimized.append(MinimizedRange(cursor, item.start, size=minimize_size))
        cursor = max(cursor, item.end)
    if cursor < text_length:
        minimized.append(MinimizedRange(cursor, text_length, size=minimize_size))
    return tuple(minimized)


def minimize_non_emphasized(
    formatting: FormattingData,
    text_length: int,
    minimize_size: float = DEFAULT_MINIMIZE_SIZE,
) -> FormattingData:
    """Replace the minimized list with the complement of the emphasis list."""

    if not formatting.emphasis:
        return formatting
    complement = compute_minimized_complement(
        formatting.emphasis,
        text_length,
        minimize_size,
        previous=formatting.minimized,
    )
    LOGGER.debug(
        "Minimized %d span(s) around %d emphasis range(s)",
        len(complement),
        len(formatting.emphasis),
    )
    return formatting.with_minimized(complement)


__all__ = ["compute_minimized_complement", "minimize_non_emphasized"]
