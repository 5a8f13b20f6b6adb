"""Capture durable anchors for a selected span."""

from __future__ import annotations

import logging

from marginalia.models import Anchor
from marginalia.utils.text import clamp_range, context_window

LOGGER = logging.getLogger(__name__)

CONTEXT_CHARS = 30


def build_anchor(
    full_text: str, from_pos: int, to_pos: int, *, context_chars: int = CONTEXT_CHARS
) -> Anchor:
    """Extract anchoring context from the document text for a selection.

    Out-of-range offsets are clamped into the text instead of raising, so the
    returned anchor always satisfies ``text == full_text[from_pos:to_pos]``.
    """
    start, end = clamp_range(len(full_text), from_pos, to_pos)
    if (start, end) != (from_pos, to_pos):
        LOGGER.debug(
            "Clamped anchor range [%d, %d) to [%d, %d) for text of length %d",
            from_pos,
            to_pos,
            start,
            end,
            len(full_text),
        )

    prefix, suffix = context_window(full_text, start, end, size=context_chars)
    return Anchor(
        text=full_text[start:end],
        prefix=prefix,
        suffix=suffix,
        from_pos=start,
        to_pos=end,
    )
