"""Tests for ThreadedStoreAdapter."""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from marginalia.store.adapter import ThreadedStoreAdapter
from marginalia.store.storage import SQLiteAnnotationStore


@pytest.fixture
def store(tmp_path: Path):
    store = SQLiteAnnotationStore(tmp_path / "adapter.db")
    yield store
    store.close()


@pytest.fixture
def adapter(store: SQLiteAnnotationStore) -> ThreadedStoreAdapter:
    return ThreadedStoreAdapter(store)


@pytest.fixture
def document_id(store: SQLiteAnnotationStore) -> str:
    return store.get_or_create_document("/notes/a.md").id


async def _create(adapter: ThreadedStoreAdapter, document_id: str, text: str, from_pos: int):
    return await adapter.create_record(
        document_id=document_id,
        color="yellow",
        text_content=text,
        from_pos=from_pos,
        to_pos=from_pos + len(text),
        prefix_context="",
        suffix_context="",
    )


class TestThreadedStoreAdapter:
    """Test the async store contract over SQLite."""

    @pytest.mark.asyncio
    async def test_create_and_fetch(self, adapter, document_id) -> None:
        record = await _create(adapter, document_id, "word", 3)

        assert await adapter.fetch_records(document_id) == [record]

    @pytest.mark.asyncio
    async def test_concurrent_creates(self, adapter, document_id) -> None:
        records = await asyncio.gather(
            *(_create(adapter, document_id, f"w{i}", i * 10) for i in range(8))
        )

        fetched = await adapter.fetch_records(document_id)
        assert sorted(r.id for r in fetched) == sorted(r.id for r in records)

    @pytest.mark.asyncio
    async def test_update_span(self, adapter, store, document_id) -> None:
        record = await _create(adapter, document_id, "word", 3)

        await adapter.update_record_span(record.id, 7, 11)

        assert store.get_highlight(record.id).from_pos == 7

    @pytest.mark.asyncio
    async def test_update_span_missing_row(self, adapter) -> None:
        with pytest.raises(KeyError):
            await adapter.update_record_span("missing", 0, 1)

    @pytest.mark.asyncio
    async def test_delete_is_quiet_for_missing_row(self, adapter, document_id) -> None:
        record = await _create(adapter, document_id, "word", 3)

        await adapter.delete_record(record.id)
        await adapter.delete_record(record.id)

        assert await adapter.fetch_records(document_id) == []

    @pytest.mark.asyncio
    async def test_note_lifecycle(self, adapter, document_id) -> None:
        record = await _create(adapter, document_id, "word", 3)

        note = await adapter.create_note(record.id, "hello")
        await adapter.update_note(note.id, "goodbye")

        (stored,) = await adapter.fetch_notes(document_id)
        assert stored.content == "goodbye"

        await adapter.delete_note(note.id)
        assert await adapter.fetch_notes(document_id) == []

    @pytest.mark.asyncio
    async def test_update_missing_note(self, adapter) -> None:
        with pytest.raises(KeyError):
            await adapter.update_note("missing", "text")

    @pytest.mark.asyncio
    async def test_update_color(self, adapter, store, document_id) -> None:
        record = await _create(adapter, document_id, "word", 3)

        await adapter.update_record_color(record.id, "blue")

        assert store.get_highlight(record.id).color == "blue"

    @pytest.mark.asyncio
    async def test_update_color_missing_row(self, adapter) -> None:
        with pytest.raises(KeyError):
            await adapter.update_record_color("missing", "blue")
