from __future__ import annotations

import datetime as dt
import hashlib
from collections import defaultdict
from pathlib import Path
from typing import Any, Dict, List, Sequence

from openpyxl import Workbook
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import cm
from reportlab.pdfgen import canvas

from .history import HistoryRecord
from .services import TimeTrackerService

EXPORT_FORMATS = {"xlsx", "pdf"}

ZERO = dt.timedelta(0)


def format_duration(duration: dt.timedelta) -> str:
    seconds = max(int(duration.total_seconds()), 0)
    hours, remainder = divmod(seconds, 3600)
    return f"{hours:02d}:{remainder // 60:02d}"


def effective_duration(record: HistoryRecord) -> dt.timedelta:
    return max(record.duration, ZERO)


def summarize_days(buckets: Sequence[Sequence[HistoryRecord]], first_day: dt.date) -> List[Dict[str, Any]]:
    summaries: List[Dict[str, Any]] = []
    for offset, bucket in enumerate(buckets):
        total = sum((effective_duration(record) for record in bucket), ZERO)
        summaries.append(
            {
                "day": first_day + dt.timedelta(days=offset),
                "work_seconds": int(total.total_seconds()),
                "records": len(bucket),
            }
        )
    return summaries


def project_breakdown(
    service: TimeTrackerService, buckets: Sequence[Sequence[HistoryRecord]]
) -> Dict[str, dt.timedelta]:
    totals: Dict[str, dt.timedelta] = defaultdict(lambda: ZERO)
    for bucket in buckets:
        for record in bucket:
            label = "/".join(service.describe_record(record))
            totals[label] += effective_duration(record)
    return dict(totals)


def day_range_bounds(start_day: dt.date, end_day: dt.date, tz: dt.tzinfo):
    start = dt.datetime.combine(start_day, dt.time.min, tzinfo=tz)
    end = dt.datetime.combine(end_day, dt.time.max, tzinfo=tz)
    return start, end


def _rows(service: TimeTrackerService, buckets: Sequence[Sequence[HistoryRecord]], tz: dt.tzinfo):
    for bucket in buckets:
        for record in bucket:
            duration = effective_duration(record)
            if duration <= ZERO:
                continue
            project, sub_project, subject = service.describe_record(record)
            yield (
                record.start_date.astimezone(tz),
                record.end_date.astimezone(tz),
                duration,
                project,
                sub_project,
                subject,
            )


def _write_xlsx(path: Path, service: TimeTrackerService, buckets, summaries, tz: dt.tzinfo) -> None:
    wb = Workbook()
    ws = wb.active
    ws.title = "Sessions"
    ws.append(["Start", "End", "Duration (h)", "Project", "Sub-project", "Subject"])
    for start, end, duration, project, sub_project, subject in _rows(service, buckets, tz):
        ws.append(
            [
                start.isoformat(),
                end.isoformat(),
                round(duration.total_seconds() / 3600, 2),
                project,
                sub_project,
                subject,
            ]
        )
    days = wb.create_sheet("Days")
    days.append(["Day", "Hours", "Records"])
    for item in summaries:
        days.append([item["day"].isoformat(), round(item["work_seconds"] / 3600, 2), item["records"]])
    wb.save(path)


def _write_pdf(path: Path, title: str, service: TimeTrackerService, buckets, tz: dt.tzinfo) -> None:
    pdf = canvas.Canvas(str(path), pagesize=A4)
    width, height = A4
    y = height - 2 * cm
    pdf.setTitle(title)
    pdf.setFont("Helvetica-Bold", 16)
    pdf.drawString(2 * cm, y, title)
    y -= 1 * cm
    pdf.setFont("Helvetica", 11)
    for start, end, duration, project, sub_project, subject in _rows(service, buckets, tz):
        line = (
            f"{start:%Y-%m-%d %H:%M} - {end:%H:%M} | {format_duration(duration)} | "
            f"{project}/{sub_project}/{subject}"
        )
        pdf.drawString(2 * cm, y, line)
        y -= 0.8 * cm
        if y < 2 * cm:
            pdf.showPage()
            y = height - 2 * cm
            pdf.setFont("Helvetica", 11)
    pdf.save()


def checksum_file(path: Path) -> str:
    digest = hashlib.sha256()
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(8192), b""):
            digest.update(chunk)
    return digest.hexdigest()


def export_timesheet(
    service: TimeTrackerService,
    export_dir: Path,
    start_day: dt.date,
    end_day: dt.date,
    export_format: str = "xlsx",
) -> Path:
    if export_format not in EXPORT_FORMATS:
        raise ValueError(f"Unsupported export format: {export_format}")
    if end_day < start_day:
        raise ValueError("End day must not be before start day")

    tz = service.tz
    start, end = day_range_bounds(start_day, end_day, tz)
    buckets = service.get_ordered_records(start, end)
    export_dir.mkdir(parents=True, exist_ok=True)
    path = export_dir / f"timesheet_{start_day}_{end_day}.{export_format}"
    if export_format == "xlsx":
        _write_xlsx(path, service, buckets, summarize_days(buckets, start_day), tz)
    else:
        _write_pdf(path, f"Timesheet {start_day} - {end_day}", service, buckets, tz)
    return path
