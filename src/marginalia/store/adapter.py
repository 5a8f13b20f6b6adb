"""Async store adapter running SQLite calls off the event loop."""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, Callable, List, Optional, TypeVar

from marginalia.models import AnnotationRecord, MarginNote
from marginalia.store.storage import SQLiteAnnotationStore

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


class ThreadedStoreAdapter:
    """Expose :class:`SQLiteAnnotationStore` through the async store contract.

    Each call runs in a worker thread; a lock keeps the shared connection
    used by one thread at a time.
    """

    def __init__(self, store: SQLiteAnnotationStore) -> None:
        self.store = store
        self._lock = threading.Lock()

    def _locked(self, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        with self._lock:
            return func(*args, **kwargs)

    async def _run(self, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        return await asyncio.to_thread(self._locked, func, *args, **kwargs)

    async def fetch_records(self, document_id: str) -> List[AnnotationRecord]:
        return await self._run(self.store.fetch_highlights, document_id)

    async def fetch_notes(self, document_id: str) -> List[MarginNote]:
        return await self._run(self.store.fetch_margin_notes, document_id)

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
    ) -> AnnotationRecord:
        return await self._run(
            self.store.insert_highlight,
            document_id=document_id,
            color=color,
            text_content=text_content,
            from_pos=from_pos,
            to_pos=to_pos,
            prefix_context=prefix_context,
            suffix_context=suffix_context,
        )

    async def update_record_span(self, record_id: str, from_pos: int, to_pos: int) -> None:
        updated = await self._run(self.store.set_highlight_span, record_id, from_pos, to_pos)
        if not updated:
            raise KeyError(f"Highlight not found: {record_id}")

    async def update_record_color(self, record_id: str, color: str) -> None:
        updated = await self._run(self.store.set_highlight_color, record_id, color)
        if not updated:
            raise KeyError(f"Highlight not found: {record_id}")

    async def delete_record(self, record_id: str) -> None:
        removed = await self._run(self.store.remove_highlight, record_id)
        if not removed:
            LOGGER.debug("Highlight %s was already deleted", record_id)

    async def create_note(self, highlight_id: str, content: str) -> MarginNote:
        return await self._run(self.store.insert_margin_note, highlight_id, content)

    async def update_note(self, note_id: str, content: str) -> None:
        updated = await self._run(self.store.set_margin_note_content, note_id, content)
        if not updated:
            raise KeyError(f"Margin note not found: {note_id}")

    async def delete_note(self, note_id: str) -> None:
        await self._run(self.store.remove_margin_note, note_id)
