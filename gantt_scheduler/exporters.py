"""Export helpers for CSV and PDF."""
from __future__ import annotations

import csv
from datetime import datetime, time
from pathlib import Path
from typing import Iterable, List, Sequence, Tuple

from PyQt6.QtCore import QRectF, Qt
from PyQt6.QtGui import QColor, QFont, QPageLayout, QPageSize, QPainter, QPdfWriter, QPen

from .config import ViewConfig
from .hierarchy import VisibleTask
from .models import DAY, Link, Task
from .painting import ChartGeometry, paint_chart
from .render import build_link_paths, build_render_rows
from .timescale import TimeScale, project_window

CSV_HEADERS = ["WBS", "Task", "Start", "End", "Float", "Critical"]
CSV_ACTIVE_MARKER = "X"
CSV_CRITICAL_MARKER = "C"
CSV_MILESTONE_MARKER = "M"

PDF_TASK_MIN_WIDTH = 160
PDF_TASK_MAX_WIDTH_RATIO = 0.35  # fraction of available width
PDF_TASK_PADDING = 48
PDF_WBS_WIDTH = 90
PDF_PAGE_MARGIN_RATIO = 0.04
PDF_HEADER_HEIGHT = 60
PDF_ROW_HEIGHT_MIN = 24
PDF_ROW_HEIGHT_MAX = 60
PDF_FONT_SIZE = 8


def export_as_csv(path: Path | str, tasks: Iterable[Task], window: Tuple[datetime, datetime] | None = None) -> None:
    """Export a CSV with one marker column per day of the window."""
    task_list = list(tasks)
    start, end = window or project_window(task_list)
    first_day = datetime.combine(start.date(), time())
    days: List[datetime] = []
    day = first_day
    while day < end:
        days.append(day)
        day += DAY

    csv_path = Path(path)
    csv_path.parent.mkdir(parents=True, exist_ok=True)
    header = CSV_HEADERS + [day.strftime("%Y-%m-%d") for day in days]
    with csv_path.open("w", newline="", encoding="utf-8") as handle:
        writer = csv.writer(handle)
        writer.writerow(header)
        for task in task_list:
            row = [
                task.wbs_number or "",
                task.name,
                task.start_date.strftime("%Y-%m-%d"),
                task.end_date.strftime("%Y-%m-%d"),
                f"{task.float_days:g}",
                "yes" if task.is_critical else "",
            ]
            writer.writerow(row + [_day_marker(task, day) for day in days])


def _day_marker(task: Task, day: datetime) -> str:
    if task.is_milestone:
        return CSV_MILESTONE_MARKER if day.date() == task.start_date.date() else ""
    if task.start_date.date() <= day.date() and day < task.end_date:
        return CSV_CRITICAL_MARKER if task.is_critical else CSV_ACTIVE_MARKER
    return ""


def export_as_pdf(
    path: Path | str,
    visible: Sequence[VisibleTask],
    links: Sequence[Link],
    options: ViewConfig,
    window: Tuple[datetime, datetime] | None = None,
) -> None:
    """Render the task list and the timeline onto one landscape A4 page."""
    pdf_path = Path(path)
    pdf_path.parent.mkdir(parents=True, exist_ok=True)

    writer = QPdfWriter(str(pdf_path))
    writer.setPageSize(QPageSize(QPageSize.PageSizeId.A4))
    writer.setPageOrientation(QPageLayout.Orientation.Landscape)
    writer.setResolution(150)

    painter = QPainter(writer)
    try:
        _draw_pdf(painter, writer, list(visible), links, options, window)
    finally:
        painter.end()


def _draw_pdf(
    painter: QPainter,
    writer: QPdfWriter,
    visible: List[VisibleTask],
    links: Sequence[Link],
    options: ViewConfig,
    window: Tuple[datetime, datetime] | None,
) -> None:
    page_rect = writer.pageLayout().paintRectPixels(writer.resolution())
    margin = int(page_rect.width() * PDF_PAGE_MARGIN_RATIO)
    content = page_rect.adjusted(margin, margin, -margin, -margin)

    font = QFont(painter.font())
    font.setPointSize(PDF_FONT_SIZE)
    painter.setFont(font)
    metrics = painter.fontMetrics()

    longest = max((metrics.horizontalAdvance(entry.task.name) for entry in visible), default=0)
    name_width = max(PDF_TASK_MIN_WIDTH, min(longest + PDF_TASK_PADDING, int(content.width() * PDF_TASK_MAX_WIDTH_RATIO)))
    text_width = PDF_WBS_WIDTH + name_width
    rows_count = max(1, len(visible))
    row_height = max(PDF_ROW_HEIGHT_MIN, min(PDF_ROW_HEIGHT_MAX, int((content.height() - PDF_HEADER_HEIGHT) / rows_count)))

    start, end = window or project_window([entry.task for entry in visible])
    # Week zoom fits the whole window into the remaining width.
    scale = TimeScale(start=start, end=end, width=max(1, content.width() - text_width), zoom_level=7)
    geometry = ChartGeometry(
        origin_x=content.left() + text_width,
        header_height=PDF_HEADER_HEIGHT,
        row_height=row_height,
        bottom=content.top() + PDF_HEADER_HEIGHT + row_height * rows_count,
        top=content.top(),
    )

    pen = QPen(QColor("#333333"))
    pen.setWidth(1)
    painter.setPen(pen)
    for title, x, width in (("WBS", content.left(), PDF_WBS_WIDTH), ("Task", content.left() + PDF_WBS_WIDTH, name_width)):
        rect = QRectF(x, content.top(), width, PDF_HEADER_HEIGHT)
        painter.fillRect(rect, QColor("#eceff1"))
        painter.drawRect(rect)
        painter.drawText(rect, Qt.AlignmentFlag.AlignCenter, title)

    for index, entry in enumerate(visible):
        y = geometry.row_top(index)
        wbs_rect = QRectF(content.left(), y, PDF_WBS_WIDTH, row_height)
        name_rect = QRectF(content.left() + PDF_WBS_WIDTH, y, name_width, row_height)
        painter.setPen(pen)
        painter.drawRect(wbs_rect)
        painter.drawRect(name_rect)
        painter.drawText(wbs_rect.adjusted(6, 0, -6, 0), Qt.AlignmentFlag.AlignVCenter | Qt.AlignmentFlag.AlignLeft, entry.task.wbs_number or "")
        indent = 6 + entry.level * 12
        painter.drawText(name_rect.adjusted(indent, 0, -6, 0), Qt.AlignmentFlag.AlignVCenter | Qt.AlignmentFlag.AlignLeft, entry.task.name)

    if not visible:
        rect = QRectF(content.left(), geometry.row_top(0), content.width(), row_height)
        painter.drawRect(rect)
        painter.drawText(rect, Qt.AlignmentFlag.AlignCenter, "No tasks defined")
        return

    rows = build_render_rows(visible, scale, options)
    paths = build_link_paths(rows, links, options)
    paint_chart(painter, scale, rows, paths, geometry, options)
