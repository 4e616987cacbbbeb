from __future__ import annotations

from pathlib import Path
from typing import Optional


class RuhtrackError(RuntimeError):
    """Base class for errors raised by the tracker core."""


class PersistenceError(RuhtrackError):
    """Writing the state file failed; the in-memory state is still intact."""

    def __init__(self, message: str, *, path: Optional[Path] = None) -> None:
        super().__init__(message)
        self.path = path
