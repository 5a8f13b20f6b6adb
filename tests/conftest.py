"""Shared fixtures and in-memory collaborators."""

from __future__ import annotations

import asyncio
import itertools
from collections import defaultdict
from typing import Dict, List, Optional

import pytest

from marginalia.models import AnnotationRecord, MarginNote

SENTENCE = "The quick brown fox jumps over the lazy dog."


def make_record(
    record_id: str,
    text_content: str,
    from_pos: int,
    *,
    document_id: str = "doc-1",
    prefix: Optional[str] = None,
    suffix: Optional[str] = None,
    color: str = "yellow",
) -> AnnotationRecord:
    return AnnotationRecord(
        id=record_id,
        document_id=document_id,
        color=color,
        text_content=text_content,
        from_pos=from_pos,
        to_pos=from_pos + len(text_content),
        prefix_context=prefix,
        suffix_context=suffix,
        created_at=0,
        updated_at=0,
    )


class MemoryStore:
    """Async store adapter keeping everything in dictionaries."""

    def __init__(self) -> None:
        self.records: Dict[str, AnnotationRecord] = {}
        self.notes: Dict[str, MarginNote] = {}
        self.fail_texts: set[str] = set()
        self._ids = itertools.count(1)

    async def fetch_records(self, document_id: str) -> List[AnnotationRecord]:
        return sorted(
            (r for r in self.records.values() if r.document_id == document_id),
            key=lambda r: r.from_pos,
        )

    async def fetch_notes(self, document_id: str) -> List[MarginNote]:
        ids = {r.id for r in self.records.values() if r.document_id == document_id}
        return [n for n in self.notes.values() if n.highlight_id in ids]

    async def create_record(self, **fields) -> AnnotationRecord:
        if fields["text_content"] in self.fail_texts:
            raise RuntimeError("store unavailable")
        record = AnnotationRecord(
            id=f"h{next(self._ids)}", created_at=1, updated_at=1, **fields
        )
        self.records[record.id] = record
        return record

    async def update_record_span(self, record_id: str, from_pos: int, to_pos: int) -> None:
        record = self.records[record_id]
        record.from_pos, record.to_pos = from_pos, to_pos

    async def update_record_color(self, record_id: str, color: str) -> None:
        self.records[record_id].color = color

    async def delete_record(self, record_id: str) -> None:
        self.records.pop(record_id, None)
        self.notes = {k: n for k, n in self.notes.items() if n.highlight_id != record_id}

    async def create_note(self, highlight_id: str, content: str) -> MarginNote:
        note = MarginNote(
            id=f"n{next(self._ids)}",
            highlight_id=highlight_id,
            content=content,
            created_at=1,
            updated_at=1,
        )
        self.notes[note.id] = note
        return note

    async def update_note(self, note_id: str, content: str) -> None:
        self.notes[note_id].content = content

    async def delete_note(self, note_id: str) -> None:
        self.notes.pop(note_id, None)


class GatedStore(MemoryStore):
    """Store whose record fetches stay pending until the test releases them."""

    def __init__(self) -> None:
        super().__init__()
        self.pending: Dict[str, List[asyncio.Future]] = defaultdict(list)

    async def fetch_records(self, document_id: str) -> List[AnnotationRecord]:
        future = asyncio.get_running_loop().create_future()
        self.pending[document_id].append(future)
        return await future


async def settle() -> None:
    """Let scheduled tasks run until they block."""
    for _ in range(10):
        await asyncio.sleep(0)


@pytest.fixture
def memory_store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def gated_store() -> GatedStore:
    return GatedStore()
