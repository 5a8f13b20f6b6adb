"""Application configuration defaults."""

from __future__ import annotations

import sys
from dataclasses import dataclass
from pathlib import Path

from marginalia.anchoring.builder import CONTEXT_CHARS
from marginalia.reconcile.recovery import DEFAULT_COLOR, RECOVERY_CONTEXT_CHARS


def _get_default_db_path() -> Path:
    """Get the default database path based on platform and execution context."""
    user_db = Path.home() / "Documents" / "Marginalia" / "marginalia.db"

    # Frozen apps always keep their annotations in the user's Documents folder
    if getattr(sys, "frozen", False):
        return user_db

    # When running from source, prefer local data/ if it exists
    local_db = Path("data/marginalia.db")
    if local_db.exists():
        return local_db

    return user_db


@dataclass(slots=True)
class AppConfig:
    db_path: Path | None = None
    context_chars: int = CONTEXT_CHARS
    recovery_context_chars: int = RECOVERY_CONTEXT_CHARS
    default_color: str = DEFAULT_COLOR

    def __post_init__(self) -> None:
        if self.db_path is None:
            self.db_path = _get_default_db_path()

    def resolve_db_path(self, base_dir: Path | None = None) -> Path:
        if self.db_path is None:
            self.db_path = _get_default_db_path()
        if Path(self.db_path).is_absolute() or base_dir is None:
            return Path(self.db_path)
        return base_dir / self.db_path
