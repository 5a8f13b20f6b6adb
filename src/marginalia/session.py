"""Host-facing annotation session tying the engine components together."""

from __future__ import annotations

import logging
from typing import Any, List, Optional

from marginalia.adapters import AnnotationStoreAdapter, DocumentAdapter
from marginalia.anchoring.builder import build_anchor
from marginalia.anchoring.resolver import resolve_anchor
from marginalia.config import AppConfig
from marginalia.models import AnchorResult, AnnotationRecord, MarginNote, ReconcileResult
from marginalia.reconcile.reconciler import Reconciler
from marginalia.reconcile.recovery import OrphanRecovery
from marginalia.reconcile.sequencer import LoadSequencer, SessionState
from marginalia.store.storage import now_millis

LOGGER = logging.getLogger(__name__)


class AnnotationSession:
    """Coordinates loading, reconciliation and edits for one host session."""

    def __init__(
        self,
        store: AnnotationStoreAdapter,
        documents: DocumentAdapter,
        *,
        config: AppConfig | None = None,
        state: SessionState | None = None,
    ) -> None:
        self.config = config or AppConfig()
        self.store = store
        self.documents = documents
        self.state = state or SessionState()
        self.sequencer = LoadSequencer(store)
        self.reconciler = Reconciler(documents)
        self.recovery = OrphanRecovery(
            store,
            documents,
            context_chars=self.config.recovery_context_chars,
            default_color=self.config.default_color,
        )

    async def open_document(self, document_id: str, live_document: Any) -> Optional[ReconcileResult]:
        """Load and attach a document's highlights.

        Returns ``None`` when a newer load superseded this one.
        """
        if not await self.sequencer.load(self.state, document_id):
            return None
        seq = self.state.load_seq

        if self.state.records:
            return self.reconciler.reconcile(live_document, self.state.records)

        untagged: List[AnnotationRecord] = []
        recovered = await self.recovery.recover(
            live_document, document_id, self.state.recovered_document_ids, untagged
        )
        if recovered and self.sequencer.is_current(self.state, seq, document_id):
            self.state.records.extend(recovered)
        untagged_ids = {record.id for record in untagged}
        return ReconcileResult(
            attached=[
                (record, AnchorResult(record.from_pos, record.to_pos, "exact"))
                for record in recovered
                if record.id not in untagged_ids
            ],
            failed=untagged,
        )

    async def create_highlight(
        self, live_document: Any, from_pos: int, to_pos: int, color: str | None = None
    ) -> AnnotationRecord:
        document_id = self.state.active_document_id
        if document_id is None:
            raise ValueError("No active document")
        if from_pos >= to_pos:
            raise ValueError("Cannot highlight an empty selection")

        full_text = self.documents.flatten_text(live_document)
        anchor = build_anchor(full_text, from_pos, to_pos, context_chars=self.config.context_chars)
        if not anchor.text:
            raise ValueError("Cannot highlight an empty selection")

        record = await self.store.create_record(
            document_id=document_id,
            color=color or self.config.default_color,
            text_content=anchor.text,
            from_pos=anchor.from_pos,
            to_pos=anchor.to_pos,
            prefix_context=anchor.prefix,
            suffix_context=anchor.suffix,
        )
        self.documents.apply_mark(
            live_document, record.from_pos, record.to_pos, record.id, color=record.color
        )
        if self.state.active_document_id == document_id:
            self.state.records.append(record)
        return record

    async def update_highlight_color(
        self, record_id: str, color: str, live_document: Any = None
    ) -> None:
        """Persist a new colour and, when a live document is given, re-tag its mark.

        Orphaned records are recoloured in the store only.
        """
        await self.store.update_record_color(record_id, color)
        record = next((r for r in self.state.records if r.id == record_id), None)
        if record is None:
            return
        record.color = color
        record.updated_at = now_millis()
        if live_document is None:
            return

        full_text = self.documents.flatten_text(live_document)
        resolved = resolve_anchor(full_text, record.to_anchor())
        if resolved.is_placeable:
            self.documents.apply_mark(
                live_document, resolved.from_pos, resolved.to_pos, record.id, color=color
            )

    async def delete_highlight(self, record_id: str) -> None:
        await self.store.delete_record(record_id)
        self.state.records = [r for r in self.state.records if r.id != record_id]
        self.state.notes = [n for n in self.state.notes if n.highlight_id != record_id]

    async def add_note(self, record_id: str, content: str) -> MarginNote:
        note = await self.store.create_note(record_id, content)
        self.state.notes.append(note)
        return note

    async def update_note(self, note_id: str, content: str) -> None:
        await self.store.update_note(note_id, content)
        for note in self.state.notes:
            if note.id == note_id:
                note.content = content
                note.updated_at = now_millis()

    async def delete_note(self, note_id: str) -> None:
        await self.store.delete_note(note_id)
        self.state.notes = [n for n in self.state.notes if n.id != note_id]

    async def reanchor(self, record: AnnotationRecord, result: AnchorResult) -> None:
        """Commit a resolved location as the record's stored span."""
        if not result.is_placeable:
            raise ValueError(f"Refusing to re-anchor {record.id} to an orphaned result")
        await self.store.update_record_span(record.id, result.from_pos, result.to_pos)
        record.from_pos = result.from_pos
        record.to_pos = result.to_pos
        LOGGER.info("Re-anchored %s to [%d, %d)", record.id, result.from_pos, result.to_pos)

    def orphaned_records(self, live_document: Any) -> List[AnnotationRecord]:
        full_text = self.documents.flatten_text(live_document)
        return [
            record
            for record in self.state.records
            if not resolve_anchor(full_text, record.to_anchor()).is_placeable
        ]
