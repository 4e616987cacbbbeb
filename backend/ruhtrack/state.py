from __future__ import annotations

import datetime as dt
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from .history import History
from .models import ROOT_NAME, ProjectTree, TodoTree, utcnow


class BackendState(BaseModel):
    """Everything that goes into the state file."""

    projects: ProjectTree = Field(default_factory=lambda: ProjectTree.create(ROOT_NAME))
    todos: TodoTree = Field(default_factory=lambda: TodoTree.create(ROOT_NAME))
    current_session_duration: dt.timedelta = dt.timedelta(0)
    last_session_subject_id: UUID = Field(default_factory=uuid4)
    history: History = Field(default_factory=History)
    last_save: Optional[dt.datetime] = None

    @classmethod
    def fresh(cls, now: Optional[dt.datetime] = None) -> "BackendState":
        now = now or utcnow()
        return cls(
            projects=ProjectTree.create(ROOT_NAME, now),
            todos=TodoTree.create(ROOT_NAME, now),
        )
