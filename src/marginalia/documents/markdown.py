"""Markdown documents with inline ``<mark>`` annotation markup.

Highlights exported by other tools (or saved by hand) survive in markdown as
``<mark data-color="yellow">text</mark>``. The flattened text of a document is
its source with those tags removed, and that is the offset space used for
every anchor.

Nested marks are flattened: every balanced ``<mark>`` pair becomes a marker
over its own inner text, so an outer marker spans the inner one. Tags without
a partner are ordinary text.
"""

from __future__ import annotations

import html
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Set

from marginalia.models import EmbeddedMarker, Mark

_TAG_RE = re.compile(r"<(/?)mark\b([^>]*)>", re.IGNORECASE)
_ATTR_RE = re.compile(r"""([\w-]+)\s*=\s*(?:"([^"]*)"|'([^']*)')""")

# data-* attribute names mapped to marker attribute keys
_ATTRIBUTE_KEYS = {
    "data-color": "color",
    "data-highlight-id": "highlight_id",
}


def _parse_attributes(raw: str) -> Dict[str, str]:
    attributes: Dict[str, str] = {}
    for name, double_quoted, single_quoted in _ATTR_RE.findall(raw):
        key = _ATTRIBUTE_KEYS.get(name.lower())
        if key:
            attributes[key] = html.unescape(double_quoted or single_quoted)
    return attributes


def _pair_tags(tags: List[re.Match]) -> Dict[int, int]:
    """Map the index of each opening tag to the index of its closing tag."""
    pairs: Dict[int, int] = {}
    open_stack: List[int] = []
    for index, tag in enumerate(tags):
        if tag.group(1):
            if open_stack:
                pairs[open_stack.pop()] = index
        else:
            open_stack.append(index)
    return pairs


@dataclass(slots=True)
class MarkerSpan:
    start: int
    end: int
    attributes: Dict[str, str]


@dataclass(slots=True)
class MarkdownDocument:
    """Flattened markdown text plus the marks applied to it."""

    source: str
    text: str
    markers: List[MarkerSpan] = field(default_factory=list)
    marks: List[Mark] = field(default_factory=list)
    colors: Dict[str, str] = field(default_factory=dict)
    _mark_keys: Set[Mark] = field(default_factory=set, repr=False)

    @classmethod
    def parse(cls, source: str) -> "MarkdownDocument":
        tags = list(_TAG_RE.finditer(source))
        pairs = _pair_tags(tags)
        closers = {close: open_ for open_, close in pairs.items()}

        parts: List[str] = []
        starts: Dict[int, int] = {}
        spans: Dict[int, MarkerSpan] = {}
        offset = 0
        last = 0
        for index, tag in enumerate(tags):
            if index not in pairs and index not in closers:
                continue
            before = source[last : tag.start()]
            parts.append(before)
            offset += len(before)
            last = tag.end()

            if index in pairs:
                starts[index] = offset
            else:
                open_index = closers[index]
                spans[open_index] = MarkerSpan(
                    starts[open_index], offset, _parse_attributes(tags[open_index].group(2))
                )
        parts.append(source[last:])

        # Markers are ordered by where their opening tag sits
        markers = [spans[index] for index in sorted(spans)]
        return cls(source=source, text="".join(parts), markers=markers)

    @classmethod
    def from_path(cls, path: Path) -> "MarkdownDocument":
        return cls.parse(Path(path).read_text(encoding="utf-8"))


class MarkdownDocumentAdapter:
    """Document-structure adapter for :class:`MarkdownDocument`."""

    def flatten_text(self, document: MarkdownDocument) -> str:
        return document.text

    def apply_mark(
        self,
        document: MarkdownDocument,
        from_pos: int,
        to_pos: int,
        record_id: str,
        *,
        color: Optional[str] = None,
    ) -> None:
        if not 0 <= from_pos <= to_pos <= len(document.text):
            raise ValueError(
                f"Mark [{from_pos}, {to_pos}) is outside a document of length {len(document.text)}"
            )
        # A marker covering exactly this span is tagged in place
        for marker in document.markers:
            if marker.start == from_pos and marker.end == to_pos:
                marker.attributes["highlight_id"] = record_id
                if color:
                    marker.attributes["color"] = color
        if color:
            document.colors[record_id] = color

        mark = Mark(from_pos, to_pos, record_id)
        if mark in document._mark_keys:
            return
        document._mark_keys.add(mark)
        document.marks.append(mark)

    def find_embedded_markers(self, document: MarkdownDocument) -> List[EmbeddedMarker]:
        return [
            EmbeddedMarker(
                text=document.text[marker.start : marker.end],
                ref=index,
                attributes=dict(marker.attributes),
            )
            for index, marker in enumerate(document.markers)
        ]

    def locate_marker(self, document: MarkdownDocument, marker: EmbeddedMarker) -> int:
        index = marker.ref
        if not isinstance(index, int) or not 0 <= index < len(document.markers):
            raise LookupError(f"Unknown marker reference: {index!r}")
        return document.markers[index].start
