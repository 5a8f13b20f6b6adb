"""Re-locate anchors in text that may have changed since capture.

Tiers are tried cheapest and most certain first:

1. the text is still at its original offsets (``exact``);
2. prefix + text + suffix occurs verbatim somewhere (``exact``);
3. the text occurs one or more times, the occurrence whose surroundings best
   match the captured context wins (``fuzzy``);
4. the text is gone, the original offsets are returned (``orphaned``).
"""

from __future__ import annotations

import logging
from typing import Iterator, List

from marginalia.models import Anchor, AnchorResult

LOGGER = logging.getLogger(__name__)


def iter_occurrences(full_text: str, needle: str) -> Iterator[int]:
    """Yield the start index of every occurrence of ``needle``, overlaps included."""
    start = 0
    while True:
        idx = full_text.find(needle, start)
        if idx == -1:
            return
        yield idx
        start = idx + 1


def context_score(full_text: str, anchor: Anchor, index: int) -> int:
    """Count context characters that still match around an occurrence at ``index``.

    The prefix is compared from the occurrence boundary leftwards and the
    suffix from the boundary rightwards, each limited to what is available.
    """
    prefix = anchor.prefix
    actual_prefix = full_text[max(0, index - len(prefix)) : index]
    score = 0
    for i in range(min(len(actual_prefix), len(prefix))):
        if prefix[-1 - i] == actual_prefix[-1 - i]:
            score += 1

    end = index + len(anchor.text)
    suffix = anchor.suffix
    actual_suffix = full_text[end : end + len(suffix)]
    for expected, actual in zip(suffix, actual_suffix):
        if expected == actual:
            score += 1
    return score


def resolve_anchor(full_text: str, anchor: Anchor) -> AnchorResult:
    """Resolve ``anchor`` against ``full_text``; never raises for well-formed input."""
    length = len(anchor.text)

    # 1. Still at the original position
    if 0 <= anchor.from_pos and anchor.from_pos + length <= len(full_text):
        if full_text[anchor.from_pos : anchor.from_pos + length] == anchor.text:
            return AnchorResult(anchor.from_pos, anchor.from_pos + length, "exact")

    # 2. Unchanged surroundings, shifted position
    context_index = full_text.find(anchor.prefix + anchor.text + anchor.suffix)
    if context_index != -1:
        new_from = context_index + len(anchor.prefix)
        LOGGER.debug("Anchor %r relocated by context to %d", anchor.text[:40], new_from)
        return AnchorResult(new_from, new_from + length, "exact")

    # 3. Score every occurrence of the bare text
    best_index = -1
    best_score = -1
    candidates: List[int] = []
    for idx in iter_occurrences(full_text, anchor.text):
        candidates.append(idx)
        score = context_score(full_text, anchor, idx)
        # Strict comparison keeps the first occurrence on ties
        if score > best_score:
            best_index, best_score = idx, score

    if candidates:
        LOGGER.debug(
            "Anchor %r fuzzily matched at %d (score %d of %d candidates)",
            anchor.text[:40],
            best_index,
            best_score,
            len(candidates),
        )
        return AnchorResult(best_index, best_index + length, "fuzzy")

    # 4. Nothing left to attach to
    LOGGER.debug("Anchor %r orphaned", anchor.text[:40])
    return AnchorResult(anchor.from_pos, anchor.to_pos, "orphaned")
