"""FastAPI application exposing the anchoring engine over local HTTP."""

from __future__ import annotations

import logging
from dataclasses import asdict
from pathlib import Path
from typing import Any

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from marginalia.anchoring.builder import CONTEXT_CHARS, build_anchor
from marginalia.anchoring.resolver import resolve_anchor
from marginalia.config import AppConfig
from marginalia.documents.markdown import MarkdownDocument, MarkdownDocumentAdapter
from marginalia.models import Anchor
from marginalia.session import AnnotationSession
from marginalia.store.adapter import ThreadedStoreAdapter
from marginalia.store.storage import SQLiteAnnotationStore

LOGGER = logging.getLogger(__name__)

app = FastAPI(title="Marginalia", version="0.1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


class BuildPayload(BaseModel):
    text: str
    from_pos: int
    to_pos: int
    context_chars: int = Field(default=CONTEXT_CHARS, ge=0)


class AnchorPayload(BaseModel):
    text: str
    prefix: str = ""
    suffix: str = ""
    from_pos: int = Field(ge=0)
    to_pos: int = Field(ge=0)


class ResolvePayload(BaseModel):
    text: str
    anchor: AnchorPayload


class ReconcilePayload(BaseModel):
    path: Path
    db: Path | None = None


def _resolve_db_path(db: Path | None) -> Path:
    config = AppConfig(db_path=db if db is not None else AppConfig().db_path)
    return config.resolve_db_path(Path.cwd())


def _ensure_db_parent(db_path: Path) -> None:
    db_path.parent.mkdir(parents=True, exist_ok=True)


def _open_existing_store(db: Path | None) -> SQLiteAnnotationStore:
    resolved_db = _resolve_db_path(db)
    if not resolved_db.exists():
        raise HTTPException(status_code=404, detail=f"Database not found at {resolved_db}")
    return SQLiteAnnotationStore(resolved_db)


def _read_document(path: Path) -> MarkdownDocument:
    path = path.expanduser()
    if not path.is_file():
        raise HTTPException(status_code=404, detail=f"File not found: {path}")
    try:
        return MarkdownDocument.from_path(path)
    except (OSError, UnicodeDecodeError) as exc:
        LOGGER.error("Unable to read %s: %s", path, exc)
        raise HTTPException(status_code=400, detail=f"Unable to read {path}") from exc


@app.on_event("startup")
async def startup_event() -> None:
    logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")


@app.post("/anchors/build")
async def build(payload: BuildPayload) -> dict[str, Any]:
    anchor = build_anchor(
        payload.text, payload.from_pos, payload.to_pos, context_chars=payload.context_chars
    )
    return {"anchor": asdict(anchor)}


@app.post("/anchors/resolve")
async def resolve(payload: ResolvePayload) -> dict[str, Any]:
    anchor = Anchor(**payload.anchor.model_dump())
    result = resolve_anchor(payload.text, anchor)
    return {"result": asdict(result)}


@app.get("/documents")
async def list_documents(db: Path | None = None) -> dict[str, Any]:
    """List annotated documents in the database."""
    resolved_db = _resolve_db_path(db)
    if not resolved_db.exists():
        return {"documents": [], "stats": {"document_count": 0, "highlight_count": 0, "note_count": 0}}

    store = SQLiteAnnotationStore(resolved_db)
    try:
        documents = store.list_documents()
        stats = store.get_stats()
    finally:
        store.close()
    return {"documents": documents, "stats": stats}


@app.get("/documents/annotations")
async def document_annotations(path: Path, db: Path | None = None) -> dict[str, Any]:
    """Stored highlights for a file, each resolved against its current text."""
    live = _read_document(path)
    store = _open_existing_store(db)
    try:
        document = store.find_document_by_path(path.expanduser().resolve())
        if document is None:
            return {"highlights": [], "notes": []}
        records = store.fetch_highlights(document.id)
        notes = store.fetch_margin_notes(document.id)
    finally:
        store.close()

    highlights = []
    for record in records:
        resolved = resolve_anchor(live.text, record.to_anchor())
        highlights.append({**asdict(record), "resolved": asdict(resolved)})
    return {
        "document_id": document.id,
        "highlights": highlights,
        "notes": [asdict(n) for n in notes],
    }


@app.post("/reconcile")
async def reconcile(payload: ReconcilePayload) -> dict[str, Any]:
    live = _read_document(payload.path)
    resolved_db = _resolve_db_path(payload.db)
    _ensure_db_parent(resolved_db)

    store = SQLiteAnnotationStore(resolved_db)
    try:
        document = store.get_or_create_document(payload.path.expanduser().resolve())
        session = AnnotationSession(ThreadedStoreAdapter(store), MarkdownDocumentAdapter())
        result = await session.open_document(document.id, live)
    finally:
        store.close()

    if result is None:  # pragma: no cover - single load per request
        raise HTTPException(status_code=409, detail="Load superseded")
    return {
        "document_id": document.id,
        "summary": result.summary(),
        "attached": [
            {"id": record.id, **asdict(resolved)} for record, resolved in result.attached
        ],
        "orphaned": [asdict(record) for record in result.orphaned],
        "failed": [record.id for record in result.failed],
    }


@app.delete("/annotations/{highlight_id}")
async def delete_annotation(highlight_id: str, db: Path | None = None) -> dict[str, Any]:
    """Delete a highlight and its margin notes."""
    store = _open_existing_store(db)
    try:
        deleted = store.remove_highlight(highlight_id)
    finally:
        store.close()

    if not deleted:
        raise HTTPException(status_code=404, detail=f"Highlight {highlight_id} not found")
    return {"status": "ok", "deleted_id": highlight_id}


@app.delete("/documents/{document_id}")
async def delete_document(document_id: str, db: Path | None = None) -> dict[str, Any]:
    """Delete a document with all of its highlights and notes."""
    store = _open_existing_store(db)
    try:
        deleted = store.delete_document(document_id)
    finally:
        store.close()

    if not deleted:
        raise HTTPException(status_code=404, detail=f"Document {document_id} not found")
    return {"status": "ok", "deleted_id": document_id}
