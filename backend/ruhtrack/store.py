from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Protocol

from pydantic import ValidationError

from .errors import PersistenceError
from .state import BackendState

logger = logging.getLogger(__name__)


class Store(Protocol):
    def load(self) -> BackendState:
        ...

    def save(self, state: BackendState) -> None:
        ...


class JsonStore:
    """Keeps the whole tracker state in one indented JSON document."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def load(self) -> BackendState:
        try:
            content = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.info("No state file at %s, starting with an empty tracker", self.path)
            return BackendState.fresh()
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("Could not read state file %s (%s), starting fresh", self.path, exc)
            return BackendState.fresh()
        try:
            state = BackendState.model_validate_json(content)
        except ValidationError as exc:
            logger.warning(
                "State file %s is corrupt (%d errors), starting fresh",
                self.path,
                exc.error_count(),
            )
            return BackendState.fresh()
        logger.info(
            "Loaded %d projects and %d history records from %s",
            len(state.projects.children),
            len(state.history.records),
            self.path,
        )
        return state

    def save(self, state: BackendState) -> None:
        payload = state.model_dump_json(indent=2)
        tmp_path = self.path.with_name(f"{self.path.name}.tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(payload, encoding="utf-8")
            os.replace(tmp_path, self.path)
        except OSError as exc:
            raise PersistenceError(f"Could not write state file {self.path}: {exc}", path=self.path) from exc
