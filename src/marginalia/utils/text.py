"""Text helpers for slicing bounded context windows."""

from __future__ import annotations


def clamp_range(length: int, start: int, end: int) -> tuple[int, int]:
    """Clamp ``[start, end)`` into ``0 <= start <= end <= length``."""
    start = max(0, min(start, length))
    end = max(start, min(end, length))
    return start, end


def context_window(text: str, start: int, end: int, *, size: int) -> tuple[str, str]:
    """Return up to ``size`` characters before ``start`` and after ``end``.

    Windows are truncated at the text boundaries rather than padded.
    """
    size = max(size, 0)
    prefix = text[max(0, start - size) : start]
    suffix = text[end : min(len(text), end + size)]
    return prefix, suffix


def snippet(text: str, *, max_chars: int = 80) -> str:
    """Collapse whitespace and shorten text for one-line display."""
    flat = " ".join(text.split())
    if len(flat) <= max_chars:
        return flat
    return flat[: max(max_chars - 1, 0)] + "…"
