"""Re-attach persisted highlights to a freshly loaded document."""

from __future__ import annotations

import logging
from typing import Any, Sequence

from marginalia.adapters import DocumentAdapter
from marginalia.anchoring.resolver import resolve_anchor
from marginalia.models import AnnotationRecord, ReconcileResult

LOGGER = logging.getLogger(__name__)


class Reconciler:
    """Resolves each record against the live text and applies marks.

    Only live markup is touched; persisted spans are left alone even when a
    record resolves somewhere new.
    """

    def __init__(self, documents: DocumentAdapter) -> None:
        self.documents = documents

    def reconcile(self, live_document: Any, records: Sequence[AnnotationRecord]) -> ReconcileResult:
        full_text = self.documents.flatten_text(live_document)
        result = ReconcileResult()

        for record in records:
            resolved = resolve_anchor(full_text, record.to_anchor())
            if not resolved.is_placeable:
                LOGGER.info("Highlight %s could not be relocated", record.id)
                result.orphaned.append(record)
                continue

            try:
                self.documents.apply_mark(
                    live_document, resolved.from_pos, resolved.to_pos, record.id, color=record.color
                )
            except Exception as exc:
                LOGGER.error("Failed to apply mark for highlight %s: %s", record.id, exc)
                result.failed.append(record)
                continue

            result.attached.append((record, resolved))

        summary = result.summary()
        LOGGER.info(
            "Reconciled %d highlights: %d attached, %d orphaned, %d failed",
            len(records),
            summary["attached"],
            summary["orphaned"],
            summary["failed"],
        )
        return result
