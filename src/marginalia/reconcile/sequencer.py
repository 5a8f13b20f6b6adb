"""Ordering guard for overlapping annotation loads."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Set

from marginalia.adapters import AnnotationStoreAdapter
from marginalia.models import AnnotationRecord, MarginNote

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class SessionState:
    """Host-owned annotation state for the active document."""

    load_seq: int = 0
    active_document_id: Optional[str] = None
    records: List[AnnotationRecord] = field(default_factory=list)
    notes: List[MarginNote] = field(default_factory=list)
    is_loaded: bool = False
    recovered_document_ids: Set[str] = field(default_factory=set)


class LoadSequencer:
    """Loads a document's annotations, dropping results of superseded loads.

    Every load takes a fresh sequence number; a result is applied only while
    that number is still the latest and the targeted document is still the
    active one. Switching A -> B -> A therefore never lets the first A load
    overwrite B or the second A load.
    """

    def __init__(self, store: AnnotationStoreAdapter) -> None:
        self.store = store

    @staticmethod
    def begin(state: SessionState, document_id: str) -> int:
        state.load_seq += 1
        state.active_document_id = document_id
        state.is_loaded = False
        return state.load_seq

    @staticmethod
    def is_current(state: SessionState, seq: int, document_id: str) -> bool:
        return state.load_seq == seq and state.active_document_id == document_id

    async def load(self, state: SessionState, document_id: str) -> bool:
        """Fetch records and notes for ``document_id`` into ``state``.

        Returns ``False`` when the result was discarded as stale.
        """
        seq = self.begin(state, document_id)
        try:
            records, notes = await asyncio.gather(
                self.store.fetch_records(document_id),
                self.store.fetch_notes(document_id),
            )
        except Exception:
            if not self.is_current(state, seq, document_id):
                LOGGER.debug("Ignoring failure of superseded load %d for %s", seq, document_id)
                return False
            raise

        if not self.is_current(state, seq, document_id):
            LOGGER.debug(
                "Discarding stale load %d for %s (latest is %d for %s)",
                seq,
                document_id,
                state.load_seq,
                state.active_document_id,
            )
            return False

        state.records = list(records)
        state.notes = list(notes)
        state.is_loaded = True
        LOGGER.debug("Loaded %d highlights for %s", len(state.records), document_id)
        return True
