from __future__ import annotations

import datetime as dt

import pytest

from ruhtrack.errors import PersistenceError
from ruhtrack.models import ROOT_NAME, Project, SubProject
from ruhtrack.state import BackendState
from ruhtrack.store import JsonStore


def test_missing_file_gives_fresh_state(store, data_path):
    state = store.load()
    assert not data_path.exists()
    assert state.projects.name == ROOT_NAME
    assert state.todos.name == ROOT_NAME
    assert state.projects.children == {}
    assert state.history.records == {}
    assert state.current_session_duration == dt.timedelta(0)


def test_fresh_states_get_distinct_last_subject_ids():
    assert BackendState.fresh().last_session_subject_id != BackendState.fresh().last_session_subject_id


@pytest.mark.parametrize("content", ["", "{not json", '{"projects": 42}', "[]"])
def test_corrupt_file_falls_back_to_fresh_state(store, data_path, content):
    data_path.write_text(content, encoding="utf-8")
    state = store.load()
    assert state.projects.children == {}
    assert data_path.read_text(encoding="utf-8") == content


def test_save_then_load_keeps_tree_and_selection(store, data_path):
    state = BackendState.fresh()
    project = Project.create("Work")
    sub_project = SubProject.create("Coding")
    project.insert_child(sub_project)
    project.set_current(sub_project.id)
    state.projects.insert_child(project)
    state.projects.set_current(project.id)
    state.current_session_duration = dt.timedelta(minutes=7, seconds=3)

    store.save(state)
    loaded = store.load()

    restored = loaded.projects.get_current()
    assert restored.name == "Work"
    assert restored.color == project.color
    assert restored.get_current().name == "Coding"
    assert loaded.current_session_duration == dt.timedelta(minutes=7, seconds=3)
    assert loaded.last_session_subject_id == state.last_session_subject_id
    assert not data_path.with_name("data.json.tmp").exists()


def test_unwritable_location_raises_persistence_error(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("", encoding="utf-8")
    store = JsonStore(blocker / "data.json")
    with pytest.raises(PersistenceError) as excinfo:
        store.save(BackendState.fresh())
    assert excinfo.value.path == blocker / "data.json"
