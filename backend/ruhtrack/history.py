from __future__ import annotations

import datetime as dt
from typing import Dict, List, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, field_validator

UTC = dt.timezone.utc


def _ensure_aware(value: dt.datetime, tz: dt.tzinfo) -> dt.datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=tz)
    return value


def _next_midnight(value: dt.datetime, tz: dt.tzinfo) -> dt.datetime:
    day = value.astimezone(tz).date() + dt.timedelta(days=1)
    return dt.datetime.combine(day, dt.time.min, tzinfo=tz)


class HistoryRecord(BaseModel):
    id: UUID
    start_date: dt.datetime
    end_date: dt.datetime
    project_id: UUID
    sub_project_id: UUID
    subject_id: UUID

    @field_validator("start_date", "end_date")
    @classmethod
    def _as_aware(cls, value: dt.datetime) -> dt.datetime:
        return _ensure_aware(value, UTC)

    @property
    def duration(self) -> dt.timedelta:
        return self.end_date - self.start_date


def split_by_day(record: HistoryRecord, tz: dt.tzinfo = UTC) -> List[HistoryRecord]:
    """Cut ``record`` at every local midnight it crosses.

    Fragments are copies sharing the record id; the first keeps the original
    ``start_date``, the last keeps the original ``end_date`` and their
    durations add up to the record's duration.
    """
    fragments: List[HistoryRecord] = []
    current = record
    while True:
        boundary = _next_midnight(current.start_date, tz)
        if current.end_date <= boundary:
            fragments.append(current)
            return fragments
        fragments.append(current.model_copy(update={"end_date": boundary}))
        current = current.model_copy(update={"start_date": boundary})


class History(BaseModel):
    """Append-only ledger of session intervals keyed by record id."""

    records: Dict[UUID, HistoryRecord] = Field(default_factory=dict)

    def add_record(
        self,
        project_id: UUID,
        sub_project_id: UUID,
        subject_id: UUID,
        now: dt.datetime,
    ) -> UUID:
        record_id = uuid4()
        self.records[record_id] = HistoryRecord(
            id=record_id,
            start_date=now,
            end_date=now,
            project_id=project_id,
            sub_project_id=sub_project_id,
            subject_id=subject_id,
        )
        return record_id

    def get(self, record_id: UUID) -> Optional[HistoryRecord]:
        return self.records.get(record_id)

    def update(self, record_id: UUID, now: dt.datetime) -> bool:
        record = self.records.get(record_id)
        if record is None:
            return False
        record.end_date = max(now, record.start_date)
        return True

    def get_records(self, start: dt.datetime, end: dt.datetime, tz: dt.tzinfo = UTC) -> List[HistoryRecord]:
        start = _ensure_aware(start, tz)
        end = _ensure_aware(end, tz)
        return [record for record in self.records.values() if start <= record.start_date < end]

    def get_ordered_records(
        self,
        start: dt.datetime,
        end: dt.datetime,
        tz: dt.tzinfo = UTC,
    ) -> List[List[HistoryRecord]]:
        """Return one bucket per calendar day of ``[start, end]``, each sorted by start.

        Records are picked by their start date; fragments of a record that
        crosses midnight land in the following days' buckets and are dropped
        once they fall past the end of the range.
        """
        start = _ensure_aware(start, tz)
        end = _ensure_aware(end, tz)
        first_day = start.astimezone(tz).date()
        last_day = end.astimezone(tz).date()
        if last_day < first_day:
            return []

        buckets: List[List[HistoryRecord]] = [[] for _ in range((last_day - first_day).days + 1)]
        for record in self.records.values():
            if not (start <= record.start_date <= end):
                continue
            for fragment in split_by_day(record, tz):
                index = (fragment.start_date.astimezone(tz).date() - first_day).days
                if 0 <= index < len(buckets):
                    buckets[index].append(fragment)

        for bucket in buckets:
            bucket.sort(key=lambda item: item.start_date)
        return buckets
