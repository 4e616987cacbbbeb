from __future__ import annotations

import datetime as dt
import logging
from contextlib import asynccontextmanager
from typing import List, Optional
from uuid import UUID

from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse

from .config import settings
from .log import configure_logging
from .reporting import (
    checksum_file,
    day_range_bounds,
    export_timesheet,
    format_duration,
    summarize_days,
)
from .schemas import (
    DayBucketResponse,
    DurationResponse,
    ExportRequest,
    ExportResponse,
    HistoryRecordResponse,
    Level,
    NodeCreateRequest,
    NodeRenameRequest,
    NodeResponse,
    SelectionRequest,
    StatusResponse,
    StopRequest,
)
from .services import TimeTrackerService
from .store import JsonStore

logger = logging.getLogger(__name__)


def build_service() -> TimeTrackerService:
    return TimeTrackerService(
        JsonStore(settings.data_path),
        tz=settings.tzinfo,
        autosave_interval=dt.timedelta(seconds=settings.autosave_interval_seconds),
    )


def get_service(request: Request) -> TimeTrackerService:
    return request.app.state.service


PARENT_LEVELS = {
    "sub_project": "project",
    "subject": "sub_project",
    "todo_sub_project": "todo_project",
    "todo_subject": "todo_sub_project",
}


def _selected_id(node) -> Optional[UUID]:
    return node.id if node is not None else None


def _status(service: TimeTrackerService) -> StatusResponse:
    return StatusResponse(
        is_working=service.is_working,
        work_name=service.get_current_work_name(),
        current_session_seconds=int(service.current_session_duration.total_seconds()),
        current_project_id=_selected_id(service.get_current_project()),
        current_sub_project_id=_selected_id(service.get_current_sub_project()),
        current_subject_id=_selected_id(service.get_current_subject()),
        current_todo_project_id=_selected_id(service.get_current_todo_project()),
        current_todo_sub_project_id=_selected_id(service.get_current_todo_sub_project()),
        current_todo_subject_id=_selected_id(service.get_current_todo_subject()),
        dirty=service.dirty,
        last_error=str(service.last_error) if service.last_error else None,
    )


def _node_response(service: TimeTrackerService, level: str, node) -> NodeResponse:
    if level == "project":
        return NodeResponse.from_node(node, service.get_project_time(node.id))
    if level == "sub_project":
        return NodeResponse.from_node(node, service.get_sub_project_time(node.id))
    return NodeResponse.from_node(node)


def create_app(service: Optional[TimeTrackerService] = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if service is None:
            configure_logging(settings.log_level)
        app.state.service = service or build_service()
        logger.info("%s ready", settings.app_name)
        try:
            yield
        finally:
            app.state.service.close()

    app = FastAPI(title=settings.app_name, lifespan=lifespan)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception path=%s", request.url.path)
        return JSONResponse(status_code=500, content={"detail": "Internal Server Error"})

    @app.get("/status", response_model=StatusResponse)
    def get_status(service: TimeTrackerService = Depends(get_service)):
        return _status(service)

    @app.post("/tick", response_model=StatusResponse)
    def tick(service: TimeTrackerService = Depends(get_service)):
        service.tick()
        return _status(service)

    @app.get("/nodes/{level}", response_model=List[NodeResponse])
    def list_nodes(level: Level, service: TimeTrackerService = Depends(get_service)):
        nodes = getattr(service, f"list_{level}s")()
        return [_node_response(service, level, node) for node in nodes]

    @app.post("/nodes/{level}", response_model=NodeResponse, status_code=status.HTTP_201_CREATED)
    def add_node(level: Level, payload: NodeCreateRequest, service: TimeTrackerService = Depends(get_service)):
        node = getattr(service, f"add_{level}")(payload.name)
        if node is None:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="No parent selected")
        service.tick()
        return _node_response(service, level, node)

    @app.patch("/nodes/{level}/{node_id}", response_model=StatusResponse)
    def rename_node(
        level: Level,
        node_id: UUID,
        payload: NodeRenameRequest,
        service: TimeTrackerService = Depends(get_service),
    ):
        if not getattr(service, f"rename_{level}")(node_id, payload.name):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Node not found")
        service.tick()
        return _status(service)

    @app.delete("/nodes/{level}/{node_id}", response_model=StatusResponse)
    def delete_node(level: Level, node_id: UUID, service: TimeTrackerService = Depends(get_service)):
        if not getattr(service, f"delete_{level}")(node_id):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Node not found")
        service.tick()
        return _status(service)

    @app.put("/selection/{level}", response_model=StatusResponse)
    def select_node(level: Level, payload: SelectionRequest, service: TimeTrackerService = Depends(get_service)):
        parent_level = PARENT_LEVELS.get(level)
        if parent_level is not None and getattr(service, f"get_current_{parent_level}")() is None:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="No parent selected")
        getattr(service, f"set_current_{level}")(payload.id)
        selected = getattr(service, f"get_current_{level}")()
        if payload.id is not None and _selected_id(selected) != payload.id:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Node not found")
        service.tick()
        return _status(service)

    @app.post("/todos/{subject_id}/toggle", response_model=NodeResponse)
    def toggle_todo(subject_id: UUID, service: TimeTrackerService = Depends(get_service)):
        if not service.toggle_todo(subject_id):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Todo not found")
        service.tick()
        return NodeResponse.from_node(service.find_todo_subject(subject_id))

    @app.get("/projects/{project_id}/time", response_model=DurationResponse)
    def project_time(project_id: UUID, service: TimeTrackerService = Depends(get_service)):
        duration = service.get_project_time(project_id)
        return DurationResponse(
            id=project_id, duration_seconds=int(duration.total_seconds()), formatted=format_duration(duration)
        )

    @app.get("/sub-projects/{sub_project_id}/time", response_model=DurationResponse)
    def sub_project_time(sub_project_id: UUID, service: TimeTrackerService = Depends(get_service)):
        duration = service.get_sub_project_time(sub_project_id)
        return DurationResponse(
            id=sub_project_id, duration_seconds=int(duration.total_seconds()), formatted=format_duration(duration)
        )

    @app.post("/session/start", response_model=StatusResponse)
    def start_session(service: TimeTrackerService = Depends(get_service)):
        if not service.start_subject():
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="No subject selected")
        service.tick()
        return _status(service)

    @app.post("/session/stop", response_model=StatusResponse)
    def stop_session(payload: StopRequest, service: TimeTrackerService = Depends(get_service)):
        service.stop_subject(force=payload.force)
        service.tick()
        return _status(service)

    @app.get("/history", response_model=List[HistoryRecordResponse])
    def history(
        from_time: dt.datetime,
        to_time: dt.datetime,
        service: TimeTrackerService = Depends(get_service),
    ):
        records = sorted(service.get_records(from_time, to_time), key=lambda item: item.start_date)
        return [HistoryRecordResponse.from_record(record) for record in records]

    @app.get("/history/days", response_model=List[DayBucketResponse])
    def history_days(
        from_date: dt.date,
        to_date: dt.date,
        service: TimeTrackerService = Depends(get_service),
    ):
        if to_date < from_date:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="to_date before from_date")
        start, end = day_range_bounds(from_date, to_date, service.tz)
        buckets = service.get_ordered_records(start, end)
        return [
            DayBucketResponse(
                day=summary["day"],
                work_seconds=summary["work_seconds"],
                records=[HistoryRecordResponse.from_record(record) for record in bucket],
            )
            for summary, bucket in zip(summarize_days(buckets, from_date), buckets)
        ]

    @app.post("/exports", response_model=ExportResponse, status_code=status.HTTP_201_CREATED)
    def create_export(payload: ExportRequest, service: TimeTrackerService = Depends(get_service)):
        try:
            path = export_timesheet(
                service, settings.export_dir, payload.range_start, payload.range_end, payload.format
            )
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
        return ExportResponse(
            format=payload.format,
            range_start=payload.range_start,
            range_end=payload.range_end,
            path=str(path),
            checksum=checksum_file(path),
        )

    return app


app = create_app()
