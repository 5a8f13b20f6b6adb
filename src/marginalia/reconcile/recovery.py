"""Rebuild highlight records from markup already embedded in a document."""

from __future__ import annotations

import logging
from typing import Any, List, MutableSet, Optional

from marginalia.adapters import AnnotationStoreAdapter, DocumentAdapter
from marginalia.models import AnnotationRecord
from marginalia.utils.text import context_window

LOGGER = logging.getLogger(__name__)

RECOVERY_CONTEXT_CHARS = 50
DEFAULT_COLOR = "yellow"


class OrphanRecovery:
    """Synthesizes records for embedded markers when the store has none.

    A second pass over a document would see markers it already tagged and
    create duplicates, so each document is recovered at most once per
    session; ``seen`` carries that guard and is owned by the caller.
    """

    def __init__(
        self,
        store: AnnotationStoreAdapter,
        documents: DocumentAdapter,
        *,
        context_chars: int = RECOVERY_CONTEXT_CHARS,
        default_color: str = DEFAULT_COLOR,
    ) -> None:
        self.store = store
        self.documents = documents
        self.context_chars = context_chars
        self.default_color = default_color

    async def recover(
        self,
        live_document: Any,
        document_id: str,
        seen: MutableSet[str],
        failed: Optional[List[AnnotationRecord]] = None,
    ) -> List[AnnotationRecord]:
        """Persist a record for every embedded marker and tag the marker with it.

        Returns every record persisted by this pass. Records whose marker could
        not be tagged are also appended to ``failed`` when it is given.
        """
        if document_id in seen:
            LOGGER.debug("Orphan recovery already ran for %s", document_id)
            return []
        seen.add(document_id)

        markers = self.documents.find_embedded_markers(live_document)
        if not markers:
            return []

        full_text = self.documents.flatten_text(live_document)
        recovered: List[AnnotationRecord] = []
        untagged = 0
        for marker in markers:
            if not marker.text:
                continue

            try:
                from_pos = self.documents.locate_marker(live_document, marker)
            except LookupError as exc:
                LOGGER.warning("Skipping marker that cannot be located: %s", exc)
                continue
            to_pos = from_pos + len(marker.text)
            prefix, suffix = context_window(full_text, from_pos, to_pos, size=self.context_chars)
            color = marker.attributes.get("color") or self.default_color

            try:
                record = await self.store.create_record(
                    document_id=document_id,
                    color=color,
                    text_content=marker.text,
                    from_pos=from_pos,
                    to_pos=to_pos,
                    prefix_context=prefix,
                    suffix_context=suffix,
                )
            except Exception as exc:
                LOGGER.error("Failed to recover orphan highlight %r: %s", marker.text[:40], exc)
                continue
            recovered.append(record)

            try:
                self.documents.apply_mark(live_document, from_pos, to_pos, record.id, color=color)
            except Exception as exc:
                # The record is already stored; the next reconcile can still attach it
                LOGGER.error("Failed to tag recovered highlight %s: %s", record.id, exc)
                untagged += 1
                if failed is not None:
                    failed.append(record)

        LOGGER.info(
            "Recovered %d of %d embedded highlights for %s (%d untagged)",
            len(recovered),
            len(markers),
            document_id,
            untagged,
        )
        return recovered
