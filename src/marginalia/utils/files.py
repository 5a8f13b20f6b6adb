"""Utility helpers for working with files."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Iterator

DOCUMENT_SUFFIXES = frozenset({".md", ".markdown", ".txt"})


def is_document_path(path: Path) -> bool:
    return path.suffix.lower() in DOCUMENT_SUFFIXES


def iter_document_paths(inputs: Iterable[Path]) -> Iterator[Path]:
    """Yield markdown/plain-text paths from input paths, descending into directories."""
    for item in inputs:
        if item.is_dir():
            yield from iter_document_paths(
                sorted(child for child in item.rglob("*") if child.is_file() and is_document_path(child))
            )
        elif item.is_file() and is_document_path(item):
            yield item
