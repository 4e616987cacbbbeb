from __future__ import annotations

import datetime as dt
import logging
from threading import RLock
from typing import Callable, List, Optional, Tuple
from uuid import UUID

from .errors import PersistenceError
from .history import History, HistoryRecord
from .models import (
    Project,
    Subject,
    SubProject,
    TodoProject,
    TodoSubject,
    TodoSubProject,
    TreeNode,
    utcnow,
)
from .session import InProgress, SessionTracker
from .store import Store

logger = logging.getLogger(__name__)

UTC = dt.timezone.utc

DEFAULT_AUTOSAVE_INTERVAL = dt.timedelta(seconds=10)

NO_WORK_NAME = "None"

Clock = Callable[[], dt.datetime]


class TimeTrackerService:
    """Command/query surface used by the UI.

    Structural edits mark the state dirty and are flushed on the next
    ``tick()``; pure time accrual is flushed at most once per
    ``autosave_interval``. A failed flush is logged and retried on the
    following tick.
    """

    def __init__(
        self,
        store: Store,
        *,
        clock: Optional[Clock] = None,
        tz: Optional[dt.tzinfo] = None,
        autosave_interval: Optional[dt.timedelta] = None,
    ) -> None:
        self._lock = RLock()
        self.store = store
        self._clock = clock or utcnow
        self.tz = tz or UTC
        self.autosave_interval = autosave_interval or DEFAULT_AUTOSAVE_INTERVAL
        self.state = store.load()
        if self.state.last_save is None:
            self.state.last_save = self._clock()
        self.tracker = SessionTracker(self.state)
        self.dirty = False
        self.last_error: Optional[PersistenceError] = None

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------
    def mark_dirty(self) -> None:
        self.dirty = True

    def dump(self) -> bool:
        with self._lock:
            previous_save = self.state.last_save
            self.state.last_save = self._clock()
            try:
                self.store.save(self.state)
            except PersistenceError as exc:
                self.state.last_save = previous_save
                self.dirty = True
                self.last_error = exc
                logger.error("Saving tracker state failed, retrying on next tick: %s", exc)
                return False
            self.dirty = False
            self.last_error = None
            return True

    def tick(self) -> None:
        with self._lock:
            now = self._clock()
            elapsed = self.tracker.advance(now)
            due = self.dirty
            if elapsed is not None and now - self.state.last_save > self.autosave_interval:
                due = True
            if due:
                self.dump()

    def close(self) -> bool:
        with self._lock:
            if self.tracker.is_working:
                self.stop_subject(force=False)
            saved = self.dump()
            if saved:
                logger.info("Tracker state saved on shutdown")
            return saved

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _add(self, parent: Optional[TreeNode], node_type: type, name: str):
        if parent is None:
            return None
        node = node_type.create(name, self._clock())
        parent.insert_child(node)
        self.mark_dirty()
        return node

    def _rename(self, parent: Optional[TreeNode], node_id: UUID, name: str) -> bool:
        node = parent.find(node_id) if parent is not None else None
        if node is None or node.is_deleted:
            return False
        node.name = name
        self.mark_dirty()
        return True

    def _delete(self, parent: Optional[TreeNode], node_id: UUID, running: bool = False) -> bool:
        if parent is None:
            return False
        node = parent.find(node_id)
        if node is None or node.is_deleted:
            return False
        if running:
            self.stop_subject(force=False)
        parent.soft_delete_child(node_id)
        self.mark_dirty()
        return True

    def _select(self, parent: Optional[TreeNode], node_id: Optional[UUID]) -> bool:
        if parent is None:
            return False
        changed = parent.set_current(node_id)
        if changed:
            self.mark_dirty()
        return changed

    @staticmethod
    def _current(parent: Optional[TreeNode]):
        return parent.get_current() if parent is not None else None

    @staticmethod
    def _live(parent: Optional[TreeNode]) -> list:
        return parent.live_children() if parent is not None else []

    def _resolve_chain(self) -> Tuple[Optional[Project], Optional[SubProject], Optional[Subject]]:
        project = self.state.projects.get_current()
        sub_project = self._current(project)
        subject = self._current(sub_project)
        return project, sub_project, subject

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------
    def add_project(self, name: str) -> Project:
        with self._lock:
            return self._add(self.state.projects, Project, name)

    def add_sub_project(self, name: str) -> Optional[SubProject]:
        with self._lock:
            return self._add(self.get_current_project(), SubProject, name)

    def add_subject(self, name: str) -> Optional[Subject]:
        with self._lock:
            return self._add(self.get_current_sub_project(), Subject, name)

    def rename_project(self, project_id: UUID, name: str) -> bool:
        with self._lock:
            return self._rename(self.state.projects, project_id, name)

    def rename_sub_project(self, sub_project_id: UUID, name: str) -> bool:
        with self._lock:
            return self._rename(self.get_current_project(), sub_project_id, name)

    def rename_subject(self, subject_id: UUID, name: str) -> bool:
        with self._lock:
            return self._rename(self.get_current_sub_project(), subject_id, name)

    def delete_project(self, project_id: UUID) -> bool:
        with self._lock:
            mode = self.tracker.mode
            running = isinstance(mode, InProgress) and mode.project_id == project_id
            return self._delete(self.state.projects, project_id, running)

    def delete_sub_project(self, sub_project_id: UUID) -> bool:
        with self._lock:
            mode = self.tracker.mode
            running = isinstance(mode, InProgress) and mode.sub_project_id == sub_project_id
            return self._delete(self.get_current_project(), sub_project_id, running)

    def delete_subject(self, subject_id: UUID) -> bool:
        with self._lock:
            active = self.tracker.active_subject
            running = active is not None and active.id == subject_id
            return self._delete(self.get_current_sub_project(), subject_id, running)

    def set_current_project(self, project_id: Optional[UUID]) -> bool:
        with self._lock:
            return self._select(self.state.projects, project_id)

    def set_current_sub_project(self, sub_project_id: Optional[UUID]) -> bool:
        with self._lock:
            return self._select(self.get_current_project(), sub_project_id)

    def set_current_subject(self, subject_id: Optional[UUID]) -> bool:
        with self._lock:
            return self._select(self.get_current_sub_project(), subject_id)

    def get_current_project(self) -> Optional[Project]:
        with self._lock:
            return self.state.projects.get_current()

    def get_current_sub_project(self) -> Optional[SubProject]:
        with self._lock:
            return self._current(self.get_current_project())

    def get_current_subject(self) -> Optional[Subject]:
        with self._lock:
            return self._current(self.get_current_sub_project())

    def list_projects(self) -> List[Project]:
        with self._lock:
            return self.state.projects.live_children()

    def list_sub_projects(self) -> List[SubProject]:
        with self._lock:
            return self._live(self.get_current_project())

    def list_subjects(self) -> List[Subject]:
        with self._lock:
            return self._live(self.get_current_sub_project())

    def get_project_time(self, project_id: UUID) -> dt.timedelta:
        with self._lock:
            project = self.state.projects.find(project_id)
            return project.get_time() if project is not None else dt.timedelta(0)

    def get_sub_project_time(self, sub_project_id: UUID) -> dt.timedelta:
        with self._lock:
            for project in self.state.projects.children.values():
                sub_project = project.find(sub_project_id)
                if sub_project is not None:
                    return sub_project.get_time()
            return dt.timedelta(0)

    def get_current_work_name(self) -> str:
        with self._lock:
            project, sub_project, subject = self._resolve_chain()
            if project is None or sub_project is None or subject is None:
                return NO_WORK_NAME
            return f"{project.name}/{sub_project.name}/{subject.name}"

    # ------------------------------------------------------------------
    # Todos
    # ------------------------------------------------------------------
    def add_todo_project(self, name: str) -> TodoProject:
        with self._lock:
            return self._add(self.state.todos, TodoProject, name)

    def add_todo_sub_project(self, name: str) -> Optional[TodoSubProject]:
        with self._lock:
            return self._add(self.get_current_todo_project(), TodoSubProject, name)

    def add_todo_subject(self, name: str) -> Optional[TodoSubject]:
        with self._lock:
            return self._add(self.get_current_todo_sub_project(), TodoSubject, name)

    def rename_todo_project(self, project_id: UUID, name: str) -> bool:
        with self._lock:
            return self._rename(self.state.todos, project_id, name)

    def rename_todo_sub_project(self, sub_project_id: UUID, name: str) -> bool:
        with self._lock:
            return self._rename(self.get_current_todo_project(), sub_project_id, name)

    def rename_todo_subject(self, subject_id: UUID, name: str) -> bool:
        with self._lock:
            return self._rename(self.get_current_todo_sub_project(), subject_id, name)

    def delete_todo_project(self, project_id: UUID) -> bool:
        with self._lock:
            return self._delete(self.state.todos, project_id)

    def delete_todo_sub_project(self, sub_project_id: UUID) -> bool:
        with self._lock:
            return self._delete(self.get_current_todo_project(), sub_project_id)

    def delete_todo_subject(self, subject_id: UUID) -> bool:
        with self._lock:
            return self._delete(self.get_current_todo_sub_project(), subject_id)

    def set_current_todo_project(self, project_id: Optional[UUID]) -> bool:
        with self._lock:
            return self._select(self.state.todos, project_id)

    def set_current_todo_sub_project(self, sub_project_id: Optional[UUID]) -> bool:
        with self._lock:
            return self._select(self.get_current_todo_project(), sub_project_id)

    def set_current_todo_subject(self, subject_id: Optional[UUID]) -> bool:
        with self._lock:
            return self._select(self.get_current_todo_sub_project(), subject_id)

    def get_current_todo_project(self) -> Optional[TodoProject]:
        with self._lock:
            return self.state.todos.get_current()

    def get_current_todo_sub_project(self) -> Optional[TodoSubProject]:
        with self._lock:
            return self._current(self.get_current_todo_project())

    def get_current_todo_subject(self) -> Optional[TodoSubject]:
        with self._lock:
            return self._current(self.get_current_todo_sub_project())

    def list_todo_projects(self) -> List[TodoProject]:
        with self._lock:
            return self.state.todos.live_children()

    def list_todo_sub_projects(self) -> List[TodoSubProject]:
        with self._lock:
            return self._live(self.get_current_todo_project())

    def list_todo_subjects(self) -> List[TodoSubject]:
        with self._lock:
            return self._live(self.get_current_todo_sub_project())

    def find_todo_subject(self, subject_id: UUID) -> Optional[TodoSubject]:
        with self._lock:
            for project in self.state.todos.children.values():
                for sub_project in project.children.values():
                    subject = sub_project.find(subject_id)
                    if subject is not None:
                        return subject
            return None

    def toggle_todo(self, subject_id: UUID) -> bool:
        with self._lock:
            subject = self.find_todo_subject(subject_id)
            if subject is None or subject.is_deleted:
                return False
            subject.toggle()
            self.mark_dirty()
            return True

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------
    @property
    def is_working(self) -> bool:
        return self.tracker.is_working

    @property
    def current_session_duration(self) -> dt.timedelta:
        return self.state.current_session_duration

    def start_subject(self) -> bool:
        with self._lock:
            project, sub_project, subject = self._resolve_chain()
            if project is None or sub_project is None or subject is None:
                return False
            self.tracker.start(project, sub_project, subject, self._clock())
            self.mark_dirty()
            logger.info("Started session on %s", self.get_current_work_name())
            return True

    def stop_subject(self, force: bool = False) -> None:
        with self._lock:
            active = self.tracker.active_subject
            subject = self.get_current_subject()
            self.tracker.stop(subject.id if subject is not None else None, force, self._clock())
            if active is not None:
                logger.info("Stopped session on %s, total %s", active.name, active.duration)
            if active is not None or force:
                self.mark_dirty()

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------
    @property
    def history(self) -> History:
        return self.state.history

    def get_records(self, start: dt.datetime, end: dt.datetime) -> List[HistoryRecord]:
        with self._lock:
            return self.state.history.get_records(start, end, self.tz)

    def get_ordered_records(self, start: dt.datetime, end: dt.datetime) -> List[List[HistoryRecord]]:
        with self._lock:
            return self.state.history.get_ordered_records(start, end, self.tz)

    def describe_record(self, record: HistoryRecord) -> Tuple[str, str, str]:
        """Names for a record's project, sub-project and subject, deleted nodes included."""
        with self._lock:
            project = self.state.projects.find(record.project_id)
            sub_project = project.find(record.sub_project_id) if project is not None else None
            subject = sub_project.find(record.subject_id) if sub_project is not None else None
            return (
                project.name if project is not None else "?",
                sub_project.name if sub_project is not None else "?",
                subject.name if subject is not None else "?",
            )
