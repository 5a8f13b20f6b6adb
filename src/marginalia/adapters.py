"""Collaborator contracts the host application supplies to the engine."""

from __future__ import annotations

from typing import Any, List, Optional, Protocol

from marginalia.models import AnnotationRecord, EmbeddedMarker, MarginNote


class AnnotationStoreAdapter(Protocol):
    """Asynchronous persistence for annotation records and their notes."""

    async def fetch_records(self, document_id: str) -> List[AnnotationRecord]: ...

    async def fetch_notes(self, document_id: str) -> List[MarginNote]: ...

    async def create_record(
        self,
        *,
        document_id: str,
        color: str,
        text_content: str,
        from_pos: int,
        to_pos: int,
        prefix_context: Optional[str],
        suffix_context: Optional[str],
    ) -> AnnotationRecord: ...

    async def update_record_span(self, record_id: str, from_pos: int, to_pos: int) -> None: ...

    async def update_record_color(self, record_id: str, color: str) -> None: ...

    async def delete_record(self, record_id: str) -> None: ...

    async def create_note(self, highlight_id: str, content: str) -> MarginNote: ...

    async def update_note(self, note_id: str, content: str) -> None: ...

    async def delete_note(self, note_id: str) -> None: ...


class DocumentAdapter(Protocol):
    """Access to a live document's text and annotation markup.

    ``flatten_text`` defines the offset space every anchor and result uses; it
    must return the same string for the same document state.
    """

    def flatten_text(self, document: Any) -> str: ...

    def apply_mark(
        self,
        document: Any,
        from_pos: int,
        to_pos: int,
        record_id: str,
        *,
        color: Optional[str] = None,
    ) -> None: ...

    def find_embedded_markers(self, document: Any) -> List[EmbeddedMarker]: ...

    def locate_marker(self, document: Any, marker: EmbeddedMarker) -> int: ...
