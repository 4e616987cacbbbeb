from __future__ import annotations

import datetime as dt
from pathlib import Path
from typing import Generator

import pytest
from fastapi.testclient import TestClient

from ruhtrack.config import settings
from ruhtrack.main import create_app
from ruhtrack.services import TimeTrackerService
from ruhtrack.store import JsonStore

UTC = dt.timezone.utc


class FakeClock:
    def __init__(self, start: dt.datetime) -> None:
        self.now = start

    def __call__(self) -> dt.datetime:
        return self.now

    def advance(self, **kwargs) -> dt.datetime:
        self.now += dt.timedelta(**kwargs)
        return self.now


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock(dt.datetime(2024, 3, 4, 9, 0, tzinfo=UTC))


@pytest.fixture()
def data_path(tmp_path: Path) -> Path:
    return tmp_path / "data.json"


@pytest.fixture()
def store(data_path: Path) -> JsonStore:
    return JsonStore(data_path)


@pytest.fixture()
def service(store: JsonStore, clock: FakeClock) -> TimeTrackerService:
    return TimeTrackerService(store, clock=clock, tz=UTC)


@pytest.fixture()
def work_chain(service: TimeTrackerService):
    project = service.add_project("Work")
    service.set_current_project(project.id)
    sub_project = service.add_sub_project("Coding")
    service.set_current_sub_project(sub_project.id)
    subject = service.add_subject("Feature-X")
    service.set_current_subject(subject.id)
    return project, sub_project, subject


@pytest.fixture()
def client(service: TimeTrackerService, tmp_path: Path, monkeypatch) -> Generator[TestClient, None, None]:
    monkeypatch.setattr(settings, "export_dir", tmp_path / "exports")
    app = create_app(service)
    with TestClient(app) as c:
        yield c
