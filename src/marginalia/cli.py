"""Command line interface for Marginalia."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table

from marginalia.anchoring.resolver import resolve_anchor
from marginalia.config import AppConfig
from marginalia.documents.markdown import MarkdownDocument, MarkdownDocumentAdapter
from marginalia.models import Anchor
from marginalia.session import AnnotationSession
from marginalia.store.adapter import ThreadedStoreAdapter
from marginalia.store.storage import SQLiteAnnotationStore
from marginalia.utils.files import iter_document_paths
from marginalia.utils.text import snippet
from marginalia.web.app import app as web_app


console = Console()
app = typer.Typer(help="Marginalia - durable highlights and margin notes for markdown files")


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="[%(levelname)s] %(message)s")


def _ensure_db_parent(db_path: Path) -> None:
    db_path.parent.mkdir(parents=True, exist_ok=True)


def _resolve_db(db: Optional[Path]) -> Path:
    config = AppConfig(db_path=db if db is not None else AppConfig().db_path)
    return config.resolve_db_path(Path.cwd())


def _open_store(db: Optional[Path], *, create: bool = True) -> SQLiteAnnotationStore:
    resolved_db = _resolve_db(db)
    if not create and not resolved_db.exists():
        raise typer.BadParameter(f"Database not found: {resolved_db}")
    _ensure_db_parent(resolved_db)
    return SQLiteAnnotationStore(resolved_db)


def _new_session(store: SQLiteAnnotationStore) -> AnnotationSession:
    return AnnotationSession(ThreadedStoreAdapter(store), MarkdownDocumentAdapter())


@app.command()
def highlight(
    path: Path = typer.Argument(..., help="Markdown file to annotate.", exists=True, dir_okay=False, resolve_path=True),
    from_pos: int = typer.Option(..., "--from", help="Start offset in the flattened text"),
    to_pos: int = typer.Option(..., "--to", help="End offset in the flattened text"),
    color: Optional[str] = typer.Option(None, help="Highlight color"),
    note: Optional[str] = typer.Option(None, help="Optional margin note to attach"),
    db: Path = typer.Option(None, "--db", help="SQLite database path"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Highlight a span of a markdown file."""
    _setup_logging(verbose)
    store = _open_store(db)
    try:
        document = store.get_or_create_document(path)
        live = MarkdownDocument.from_path(path)
        session = _new_session(store)

        async def _run():
            await session.open_document(document.id, live)
            record = await session.create_highlight(live, from_pos, to_pos, color)
            if note:
                await session.add_note(record.id, note)
            return record

        try:
            record = asyncio.run(_run())
        except ValueError as exc:
            raise typer.BadParameter(str(exc)) from exc
        console.print(
            f"Created highlight [bold]{record.id}[/bold] "
            f"[{record.from_pos}, {record.to_pos}): {snippet(record.text_content)!r}"
        )
    finally:
        store.close()


@app.command()
def reconcile(
    inputs: List[Path] = typer.Argument(
        ..., help="Markdown files or directories to reconcile.", resolve_path=True
    ),
    db: Path = typer.Option(None, "--db", help="SQLite database path"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Re-attach stored highlights to the current contents of each file."""
    _setup_logging(verbose)
    paths = list(iter_document_paths(inputs))
    if not paths:
        console.print("[yellow]No markdown documents found.[/yellow]")
        return

    store = _open_store(db)
    try:
        session = _new_session(store)
        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("Document")
        table.add_column("Attached")
        table.add_column("Orphaned")
        table.add_column("Failed")

        orphans = []
        for path in paths:
            document = store.get_or_create_document(path)
            live = MarkdownDocument.from_path(path)
            result = asyncio.run(session.open_document(document.id, live))
            if result is None:
                continue
            summary = result.summary()
            table.add_row(
                str(path),
                str(summary["attached"]),
                str(summary["orphaned"]),
                str(summary["failed"]),
            )
            orphans.extend((path, record) for record in result.orphaned)

        console.print(table)
        for path, record in orphans:
            console.print(
                f"[yellow]Could not relocate[/yellow] {record.id} in {path}: "
                f"{snippet(record.text_content)!r}"
            )
    finally:
        store.close()


@app.command(name="list")
def list_highlights(
    path: Path = typer.Argument(..., help="Markdown file.", exists=True, dir_okay=False, resolve_path=True),
    db: Path = typer.Option(None, "--db", help="SQLite database path"),
) -> None:
    """List stored highlights and where they resolve in the current file."""
    store = _open_store(db, create=False)
    try:
        document = store.find_document_by_path(path)
        if document is None:
            console.print("[yellow]No highlights stored for this document.[/yellow]")
            return

        full_text = MarkdownDocument.from_path(path).text
        notes = store.fetch_margin_notes(document.id)
        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("ID")
        table.add_column("Color")
        table.add_column("Span")
        table.add_column("Status")
        table.add_column("Notes")
        table.add_column("Text")

        for record in store.fetch_highlights(document.id):
            resolved = resolve_anchor(full_text, record.to_anchor())
            note_count = sum(1 for n in notes if n.highlight_id == record.id)
            table.add_row(
                record.id,
                record.color,
                f"{resolved.from_pos}-{resolved.to_pos}",
                resolved.confidence,
                str(note_count),
                snippet(record.text_content, max_chars=60),
            )
        console.print(table)
    finally:
        store.close()


@app.command()
def delete(
    highlight_id: str = typer.Argument(..., help="Highlight id"),
    db: Path = typer.Option(None, "--db", help="SQLite database path"),
) -> None:
    """Delete a highlight and its margin notes."""
    store = _open_store(db, create=False)
    try:
        if not store.remove_highlight(highlight_id):
            console.print(f"[yellow]Highlight {highlight_id} not found.[/yellow]")
            raise typer.Exit(code=1)
        console.print(f"Deleted highlight {highlight_id}.")
    finally:
        store.close()


@app.command()
def note(
    highlight_id: str = typer.Argument(..., help="Highlight id"),
    content: str = typer.Argument(..., help="Note text"),
    db: Path = typer.Option(None, "--db", help="SQLite database path"),
) -> None:
    """Attach a margin note to a highlight."""
    store = _open_store(db, create=False)
    try:
        if store.get_highlight(highlight_id) is None:
            raise typer.BadParameter(f"Highlight not found: {highlight_id}")
        created = store.insert_margin_note(highlight_id, content)
        console.print(f"Added note {created.id}.")
    finally:
        store.close()


@app.command()
def resolve(
    path: Path = typer.Argument(..., help="Markdown file.", exists=True, dir_okay=False, resolve_path=True),
    text: str = typer.Option(..., help="Anchored text"),
    prefix: str = typer.Option("", help="Context before the text"),
    suffix: str = typer.Option("", help="Context after the text"),
    from_pos: int = typer.Option(0, "--from", help="Last known start offset"),
    to_pos: Optional[int] = typer.Option(None, "--to", help="Last known end offset"),
) -> None:
    """Resolve an anchor against a file without touching the database."""
    anchor = Anchor(
        text=text,
        prefix=prefix,
        suffix=suffix,
        from_pos=from_pos,
        to_pos=to_pos if to_pos is not None else from_pos + len(text),
    )
    result = resolve_anchor(MarkdownDocument.from_path(path).text, anchor)
    console.print(f"{result.confidence}: [{result.from_pos}, {result.to_pos})")


@app.command()
def web(
    host: str = typer.Option("127.0.0.1", help="Host interface"),
    port: int = typer.Option(8000, help="Server port"),
) -> None:
    """Start the HTTP API."""
    try:
        import uvicorn
    except ImportError as exc:  # pragma: no cover
        raise typer.BadParameter(
            "uvicorn is not installed. Install the web extras with \"python -m pip install '.[web]'\""
        ) from exc

    console.print(f"Starting Marginalia API on http://{host}:{port}")
    uvicorn.run(
        web_app,
        host=host,
        port=port,
        reload=False,
        log_level="info",
    )
