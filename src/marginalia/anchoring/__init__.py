"""Anchor capture and resolution."""

from marginalia.anchoring.builder import CONTEXT_CHARS, build_anchor
from marginalia.anchoring.resolver import resolve_anchor

__all__ = ["CONTEXT_CHARS", "build_anchor", "resolve_anchor"]
