from __future__ import annotations

import datetime as dt
from uuid import uuid4

import pytest
from openpyxl import load_workbook

from ruhtrack.history import History
from ruhtrack.reporting import (
    day_range_bounds,
    export_timesheet,
    format_duration,
    project_breakdown,
    summarize_days,
)

UTC = dt.timezone.utc


@pytest.mark.parametrize(
    "duration, expected",
    [
        (dt.timedelta(0), "00:00"),
        (dt.timedelta(minutes=5, seconds=59), "00:05"),
        (dt.timedelta(hours=3, minutes=7), "03:07"),
        (dt.timedelta(hours=125), "125:00"),
        (dt.timedelta(seconds=-30), "00:00"),
    ],
)
def test_format_duration(duration, expected):
    assert format_duration(duration) == expected


def test_summarize_days_ignores_non_positive_spans():
    history = History()
    first = history.add_record(uuid4(), uuid4(), uuid4(), dt.datetime(2024, 2, 1, 9, tzinfo=UTC))
    history.update(first, dt.datetime(2024, 2, 1, 10, 30, tzinfo=UTC))
    history.add_record(uuid4(), uuid4(), uuid4(), dt.datetime(2024, 2, 1, 11, tzinfo=UTC))

    start, end = day_range_bounds(dt.date(2024, 2, 1), dt.date(2024, 2, 2), UTC)
    summaries = summarize_days(history.get_ordered_records(start, end), dt.date(2024, 2, 1))

    assert summaries == [
        {"day": dt.date(2024, 2, 1), "work_seconds": 5400, "records": 2},
        {"day": dt.date(2024, 2, 2), "work_seconds": 0, "records": 0},
    ]


def _work_session(service, clock, minutes: int) -> None:
    service.start_subject()
    clock.advance(minutes=minutes)
    service.tick()
    service.stop_subject()


def test_project_breakdown_groups_by_names(service, clock, work_chain):
    _work_session(service, clock, 30)
    review = service.add_subject("Review")
    service.set_current_subject(review.id)
    _work_session(service, clock, 15)

    start, end = day_range_bounds(clock.now.date(), clock.now.date(), UTC)
    totals = project_breakdown(service, service.get_ordered_records(start, end))

    assert totals == {
        "Work/Coding/Feature-X": dt.timedelta(minutes=30),
        "Work/Coding/Review": dt.timedelta(minutes=15),
    }


def test_export_timesheet_xlsx(service, clock, work_chain, tmp_path):
    _work_session(service, clock, 90)
    day = clock.now.date()

    path = export_timesheet(service, tmp_path / "exports", day, day, "xlsx")

    workbook = load_workbook(path)
    sessions = list(workbook["Sessions"].iter_rows(values_only=True))
    assert sessions[0][:3] == ("Start", "End", "Duration (h)")
    assert sessions[1][2] == 1.5
    assert sessions[1][3:] == ("Work", "Coding", "Feature-X")
    days = list(workbook["Days"].iter_rows(values_only=True))
    assert days[1] == (day.isoformat(), 1.5, 1)


def test_export_timesheet_pdf(service, clock, work_chain, tmp_path):
    _work_session(service, clock, 10)
    day = clock.now.date()
    path = export_timesheet(service, tmp_path, day, day, "pdf")
    assert path.read_bytes().startswith(b"%PDF")


def test_export_rejects_bad_input(service, tmp_path):
    day = dt.date(2024, 1, 2)
    with pytest.raises(ValueError):
        export_timesheet(service, tmp_path, day, day, "csv")
    with pytest.raises(ValueError):
        export_timesheet(service, tmp_path, day, day - dt.timedelta(days=1))
