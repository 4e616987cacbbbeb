from __future__ import annotations

import datetime as dt
from typing import Any, List, Optional, Tuple
from uuid import UUID

from typing_extensions import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_serializer

from .history import HistoryRecord
from .models import Node, Subject, TodoSubject

Level = Literal["project", "sub_project", "subject", "todo_project", "todo_sub_project", "todo_subject"]


def _serialize_datetime(value: dt.datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=dt.timezone.utc)
    else:
        value = value.astimezone(dt.timezone.utc)
    return value.isoformat()


class NodeCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=200)

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Name must not be blank")
        return value


class NodeRenameRequest(NodeCreateRequest):
    pass


class SelectionRequest(BaseModel):
    id: Optional[UUID] = None


class StopRequest(BaseModel):
    force: bool = False


class ExportRequest(BaseModel):
    format: Literal["xlsx", "pdf"] = "xlsx"
    range_start: dt.date
    range_end: dt.date


class NodeResponse(BaseModel):
    id: UUID
    name: str
    created_at: dt.datetime
    is_deleted: bool
    color: Optional[Tuple[int, int, int]] = None
    duration_seconds: Optional[int] = None
    is_done: Optional[bool] = None

    @classmethod
    def from_node(cls, node: Node, duration: Optional[dt.timedelta] = None) -> "NodeResponse":
        if isinstance(node, Subject):
            duration = node.duration
        return cls(
            id=node.id,
            name=node.name,
            created_at=node.created_at,
            is_deleted=node.is_deleted,
            color=getattr(node, "color", None),
            duration_seconds=int(duration.total_seconds()) if duration is not None else None,
            is_done=node.is_done if isinstance(node, TodoSubject) else None,
        )

    @model_serializer(mode="plain", when_used="json")
    def _serialize(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "name": self.name,
            "created_at": _serialize_datetime(self.created_at),
            "is_deleted": self.is_deleted,
            "color": list(self.color) if self.color else None,
            "duration_seconds": self.duration_seconds,
            "is_done": self.is_done,
        }


class HistoryRecordResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: UUID
    start_date: dt.datetime
    end_date: dt.datetime
    project_id: UUID
    sub_project_id: UUID
    subject_id: UUID

    @classmethod
    def from_record(cls, record: HistoryRecord) -> "HistoryRecordResponse":
        return cls.model_validate(record, from_attributes=True)

    @model_serializer(mode="plain", when_used="json")
    def _serialize(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "start_date": _serialize_datetime(self.start_date),
            "end_date": _serialize_datetime(self.end_date),
            "project_id": str(self.project_id),
            "sub_project_id": str(self.sub_project_id),
            "subject_id": str(self.subject_id),
            "duration_seconds": int((self.end_date - self.start_date).total_seconds()),
        }


class DayBucketResponse(BaseModel):
    day: dt.date
    work_seconds: int
    records: List[HistoryRecordResponse]


class StatusResponse(BaseModel):
    is_working: bool
    work_name: str
    current_session_seconds: int
    current_project_id: Optional[UUID] = None
    current_sub_project_id: Optional[UUID] = None
    current_subject_id: Optional[UUID] = None
    current_todo_project_id: Optional[UUID] = None
    current_todo_sub_project_id: Optional[UUID] = None
    current_todo_subject_id: Optional[UUID] = None
    dirty: bool
    last_error: Optional[str] = None


class DurationResponse(BaseModel):
    id: UUID
    duration_seconds: int
    formatted: str


class ExportResponse(BaseModel):
    format: str
    range_start: dt.date
    range_end: dt.date
    path: str
    checksum: str
