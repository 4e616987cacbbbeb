from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from typing import Optional, Union
from uuid import UUID

from .models import Project, Subject, SubProject
from .state import BackendState

ZERO = dt.timedelta(0)


@dataclass(frozen=True)
class Idle:
    pass


@dataclass
class InProgress:
    subject: Subject
    record_id: UUID
    previous_tick: dt.datetime
    project_id: UUID
    sub_project_id: UUID


WorkingMode = Union[Idle, InProgress]

IDLE = Idle()


class SessionTracker:
    """Two-state machine accruing wall-clock time against one subject.

    The tracker holds the running ``Subject`` itself, so time keeps landing on
    the same leaf even if it is renamed or hidden while the session runs.
    Session bookkeeping that survives restarts (``current_session_duration``,
    ``last_session_subject_id``) lives on the ``BackendState``.
    """

    def __init__(self, state: BackendState) -> None:
        self.state = state
        self.mode: WorkingMode = IDLE

    @property
    def is_working(self) -> bool:
        return isinstance(self.mode, InProgress)

    @property
    def active_subject(self) -> Optional[Subject]:
        if isinstance(self.mode, InProgress):
            return self.mode.subject
        return None

    def start(self, project: Project, sub_project: SubProject, subject: Subject, now: dt.datetime) -> UUID:
        # close out the running record before switching
        self.advance(now)
        if subject.id != self.state.last_session_subject_id:
            self.state.current_session_duration = ZERO
        self.state.last_session_subject_id = subject.id
        record_id = self.state.history.add_record(project.id, sub_project.id, subject.id, now)
        self.mode = InProgress(
            subject=subject,
            record_id=record_id,
            previous_tick=now,
            project_id=project.id,
            sub_project_id=sub_project.id,
        )
        return record_id

    def advance(self, now: dt.datetime) -> Optional[dt.timedelta]:
        """Accrue the time since the previous tick; ``None`` while idle."""
        mode = self.mode
        if not isinstance(mode, InProgress):
            return None
        elapsed = max(now - mode.previous_tick, ZERO)
        mode.previous_tick = now
        self.state.current_session_duration += elapsed
        mode.subject.accumulate(elapsed)
        self.state.history.update(mode.record_id, now)
        return elapsed

    def stop(self, selected_subject_id: Optional[UUID], force: bool, now: dt.datetime) -> None:
        self.advance(now)
        self.mode = IDLE
        if force:
            self.state.current_session_duration = ZERO
        elif selected_subject_id is not None and selected_subject_id != self.state.last_session_subject_id:
            self.state.current_session_duration = ZERO
