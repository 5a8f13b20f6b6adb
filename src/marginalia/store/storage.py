"""SQLite persistence for documents, highlights and margin notes."""

from __future__ import annotations

import sqlite3
import time
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, List, Optional

from marginalia.models import AnnotationRecord, DocumentMetadata, MarginNote


def now_millis() -> int:
    return int(time.time() * 1000)


def _record_from_row(row: sqlite3.Row) -> AnnotationRecord:
    return AnnotationRecord(
        id=row["id"],
        document_id=row["document_id"],
        color=row["color"],
        text_content=row["text_content"],
        from_pos=row["from_pos"],
        to_pos=row["to_pos"],
        prefix_context=row["prefix_context"],
        suffix_context=row["suffix_context"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _note_from_row(row: sqlite3.Row) -> MarginNote:
    return MarginNote(
        id=row["id"],
        highlight_id=row["highlight_id"],
        content=row["content"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _document_from_row(row: sqlite3.Row) -> DocumentMetadata:
    return DocumentMetadata(
        id=row["id"],
        path=row["path"],
        title=row["title"],
        created_at=row["created_at"],
        last_opened_at=row["last_opened_at"],
    )


class SQLiteAnnotationStore:
    """Persistence layer for annotated documents."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)
        # Calls arrive from worker threads via ThreadedStoreAdapter, which serializes them
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL;")
        self._conn.execute("PRAGMA synchronous=NORMAL;")
        self._conn.execute("PRAGMA foreign_keys=ON;")
        self._ensure_schema()

    @property
    def connection(self) -> sqlite3.Connection:
        return self._conn

    def close(self) -> None:
        self._conn.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        try:
            yield self._conn
            self._conn.commit()
        except Exception:
            self._conn.rollback()
            raise

    def _ensure_schema(self) -> None:
        with self.transaction() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS documents (
                    id TEXT PRIMARY KEY,
                    path TEXT UNIQUE,
                    title TEXT,
                    created_at INTEGER NOT NULL,
                    last_opened_at INTEGER NOT NULL
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS highlights (
                    id TEXT PRIMARY KEY,
                    document_id TEXT NOT NULL,
                    color TEXT NOT NULL DEFAULT 'yellow',
                    text_content TEXT NOT NULL,
                    from_pos INTEGER NOT NULL,
                    to_pos INTEGER NOT NULL,
                    prefix_context TEXT,
                    suffix_context TEXT,
                    created_at INTEGER NOT NULL,
                    updated_at INTEGER NOT NULL,
                    FOREIGN KEY(document_id) REFERENCES documents(id) ON DELETE CASCADE
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS margin_notes (
                    id TEXT PRIMARY KEY,
                    highlight_id TEXT NOT NULL,
                    content TEXT NOT NULL,
                    created_at INTEGER NOT NULL,
                    updated_at INTEGER NOT NULL,
                    FOREIGN KEY(highlight_id) REFERENCES highlights(id) ON DELETE CASCADE
                )
                """
            )
            conn.execute(
                """CREATE INDEX IF NOT EXISTS idx_highlights_document
                    ON highlights(document_id)
                """
            )
            conn.execute(
                """CREATE INDEX IF NOT EXISTS idx_margin_notes_highlight
                    ON margin_notes(highlight_id)
                """
            )

    # Documents

    def get_or_create_document(self, path: Path | str, *, title: str | None = None) -> DocumentMetadata:
        """Return the document row for ``path``, creating it on first sight.

        Opening a known document refreshes its ``last_opened_at``.
        """
        key = str(path)
        now = now_millis()
        with self.transaction() as conn:
            row = conn.execute("SELECT * FROM documents WHERE path = ?", (key,)).fetchone()
            if row is None:
                doc_id = str(uuid.uuid4())
                conn.execute(
                    """
                    INSERT INTO documents(id, path, title, created_at, last_opened_at)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (doc_id, key, title if title is not None else Path(key).stem, now, now),
                )
            else:
                doc_id = row["id"]
                conn.execute(
                    "UPDATE documents SET last_opened_at = ? WHERE id = ?", (now, doc_id)
                )
            row = conn.execute("SELECT * FROM documents WHERE id = ?", (doc_id,)).fetchone()
        return _document_from_row(row)

    def find_document_by_path(self, path: Path | str) -> Optional[DocumentMetadata]:
        row = self._conn.execute(
            "SELECT * FROM documents WHERE path = ?", (str(path),)
        ).fetchone()
        return _document_from_row(row) if row else None

    def list_documents(self) -> List[dict[str, Any]]:
        """List all documents with their highlight counts."""
        rows = self._conn.execute(
            """
            SELECT d.id, d.path, d.title, d.last_opened_at, COUNT(h.id) AS highlight_count
            FROM documents d
            LEFT JOIN highlights h ON h.document_id = d.id
            GROUP BY d.id
            ORDER BY d.last_opened_at DESC
            """
        ).fetchall()
        return [dict(row) for row in rows]

    def delete_document(self, document_id: str) -> bool:
        """Delete a document and, by cascade, its highlights and notes."""
        with self.transaction() as conn:
            cursor = conn.execute("DELETE FROM documents WHERE id = ?", (document_id,))
        return cursor.rowcount > 0

    def _touch_document(self, conn: sqlite3.Connection, document_id: str) -> None:
        conn.execute(
            "UPDATE documents SET last_opened_at = ? WHERE id = ?", (now_millis(), document_id)
        )

    # Highlights

    def insert_highlight(
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
        now = now_millis()
        record = AnnotationRecord(
            id=str(uuid.uuid4()),
            document_id=document_id,
            color=color,
            text_content=text_content,
            from_pos=from_pos,
            to_pos=to_pos,
            prefix_context=prefix_context,
            suffix_context=suffix_context,
            created_at=now,
            updated_at=now,
        )
        with self.transaction() as conn:
            conn.execute(
                """
                INSERT INTO highlights(
                    id, document_id, color, text_content, from_pos, to_pos,
                    prefix_context, suffix_context, created_at, updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record.id,
                    record.document_id,
                    record.color,
                    record.text_content,
                    record.from_pos,
                    record.to_pos,
                    record.prefix_context,
                    record.suffix_context,
                    record.created_at,
                    record.updated_at,
                ),
            )
            self._touch_document(conn, document_id)
        return record

    def fetch_highlights(self, document_id: str) -> List[AnnotationRecord]:
        rows = self._conn.execute(
            "SELECT * FROM highlights WHERE document_id = ? ORDER BY from_pos",
            (document_id,),
        ).fetchall()
        return [_record_from_row(row) for row in rows]

    def get_highlight(self, highlight_id: str) -> Optional[AnnotationRecord]:
        row = self._conn.execute(
            "SELECT * FROM highlights WHERE id = ?", (highlight_id,)
        ).fetchone()
        return _record_from_row(row) if row else None

    def set_highlight_color(self, highlight_id: str, color: str) -> bool:
        with self.transaction() as conn:
            row = conn.execute(
                "SELECT document_id FROM highlights WHERE id = ?", (highlight_id,)
            ).fetchone()
            if row is None:
                return False
            conn.execute(
                "UPDATE highlights SET color = ?, updated_at = ? WHERE id = ?",
                (color, now_millis(), highlight_id),
            )
            self._touch_document(conn, row["document_id"])
        return True

    def set_highlight_span(self, highlight_id: str, from_pos: int, to_pos: int) -> bool:
        with self.transaction() as conn:
            cursor = conn.execute(
                "UPDATE highlights SET from_pos = ?, to_pos = ?, updated_at = ? WHERE id = ?",
                (from_pos, to_pos, now_millis(), highlight_id),
            )
        return cursor.rowcount > 0

    def remove_highlight(self, highlight_id: str) -> bool:
        with self.transaction() as conn:
            cursor = conn.execute("DELETE FROM highlights WHERE id = ?", (highlight_id,))
        return cursor.rowcount > 0

    # Margin notes

    def insert_margin_note(self, highlight_id: str, content: str) -> MarginNote:
        now = now_millis()
        note = MarginNote(
            id=str(uuid.uuid4()),
            highlight_id=highlight_id,
            content=content,
            created_at=now,
            updated_at=now,
        )
        with self.transaction() as conn:
            conn.execute(
                """
                INSERT INTO margin_notes(id, highlight_id, content, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (note.id, note.highlight_id, note.content, note.created_at, note.updated_at),
            )
        return note

    def fetch_margin_notes(self, document_id: str) -> List[MarginNote]:
        rows = self._conn.execute(
            """
            SELECT mn.*
            FROM margin_notes mn
            JOIN highlights h ON mn.highlight_id = h.id
            WHERE h.document_id = ?
            ORDER BY h.from_pos, mn.created_at
            """,
            (document_id,),
        ).fetchall()
        return [_note_from_row(row) for row in rows]

    def set_margin_note_content(self, note_id: str, content: str) -> bool:
        with self.transaction() as conn:
            cursor = conn.execute(
                "UPDATE margin_notes SET content = ?, updated_at = ? WHERE id = ?",
                (content, now_millis(), note_id),
            )
        return cursor.rowcount > 0

    def remove_margin_note(self, note_id: str) -> bool:
        with self.transaction() as conn:
            cursor = conn.execute("DELETE FROM margin_notes WHERE id = ?", (note_id,))
        return cursor.rowcount > 0

    def get_stats(self) -> dict[str, int]:
        conn = self._conn
        return {
            "document_count": conn.execute("SELECT COUNT(*) FROM documents").fetchone()[0],
            "highlight_count": conn.execute("SELECT COUNT(*) FROM highlights").fetchone()[0],
            "note_count": conn.execute("SELECT COUNT(*) FROM margin_notes").fetchone()[0],
        }
