"""Core Marginalia data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional

Confidence = Literal["exact", "fuzzy", "orphaned"]


@dataclass(frozen=True, slots=True)
class Anchor:
    """Captured span text plus bounded surrounding context."""

    text: str
    prefix: str
    suffix: str
    from_pos: int
    to_pos: int


@dataclass(frozen=True, slots=True)
class AnchorResult:
    """Location of an anchor in the current text and how sure we are of it."""

    from_pos: int
    to_pos: int
    confidence: Confidence

    @property
    def is_placeable(self) -> bool:
        # Orphaned offsets are a last-known position only.
        return self.confidence != "orphaned"


@dataclass(slots=True)
class AnnotationRecord:
    """Persisted highlight with its last-known-good anchor."""

    id: str
    document_id: str
    color: str
    text_content: str
    from_pos: int
    to_pos: int
    prefix_context: Optional[str]
    suffix_context: Optional[str]
    created_at: int
    updated_at: int

    def to_anchor(self) -> Anchor:
        return Anchor(
            text=self.text_content,
            prefix=self.prefix_context or "",
            suffix=self.suffix_context or "",
            from_pos=self.from_pos,
            to_pos=self.to_pos,
        )


@dataclass(slots=True)
class MarginNote:
    """Note attached to a highlight; deleted along with it."""

    id: str
    highlight_id: str
    content: str
    created_at: int
    updated_at: int


@dataclass(slots=True)
class DocumentMetadata:
    """Minimal metadata describing an annotated document."""

    id: str
    path: Optional[str]
    title: Optional[str]
    created_at: int
    last_opened_at: int


@dataclass(slots=True)
class EmbeddedMarker:
    """Annotation markup found inside live document content."""

    text: str
    ref: Any
    attributes: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class Mark:
    from_pos: int
    to_pos: int
    record_id: str


@dataclass(slots=True)
class ReconcileResult:
    """Outcome of resolving a document's records against its live text."""

    attached: List[tuple[AnnotationRecord, AnchorResult]] = field(default_factory=list)
    orphaned: List[AnnotationRecord] = field(default_factory=list)
    failed: List[AnnotationRecord] = field(default_factory=list)

    def summary(self) -> Dict[str, int]:
        return {
            "attached": len(self.attached),
            "orphaned": len(self.orphaned),
            "failed": len(self.failed),
        }
