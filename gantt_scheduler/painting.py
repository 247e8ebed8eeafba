"""QPainter routines shared by the on-screen canvas and the PDF export."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

from PyQt6.QtCore import QPointF, QRectF, Qt
from PyQt6.QtGui import QBrush, QColor, QPainter, QPen, QPolygonF

from .config import ViewConfig
from .render import LinkPath, MILESTONE_HALF_WIDTH, RenderRow
from .timescale import TimeScale

BAR_COLOR = QColor("#e5e7eb")
BAR_BORDER_COLOR = QColor("#d1d5db")
PROGRESS_COLOR = QColor("#3b82f6")
CRITICAL_BAR_COLOR = QColor("#fecaca")
CRITICAL_COLOR = QColor("#ef4444")
MILESTONE_COLOR = QColor("#8b5cf6")
FLOAT_COLOR = QColor("#f59e0b")
LINK_COLOR = QColor("#6b7280")
GRID_MAJOR_COLOR = QColor("#d1d5db")
GRID_MINOR_COLOR = QColor("#f3f4f6")
SELECTION_COLOR = QColor("#dbeafe")
TEXT_COLOR = QColor("#1f2937")
HEADER_TEXT_COLOR = QColor("#6b7280")
BAR_HEIGHT_RATIO = 0.6
ARROW_SIZE = 6


@dataclass(frozen=True)
class ChartGeometry:
    """Where the timeline sits inside the paint device."""

    origin_x: float
    header_height: float
    row_height: float
    bottom: float
    top: float = 0

    @property
    def body_top(self) -> float:
        return self.top + self.header_height

    def row_top(self, index: int) -> float:
        return self.body_top + index * self.row_height

    def row_center(self, index: int) -> float:
        return self.row_top(index) + self.row_height / 2


def paint_chart(
    painter: QPainter,
    scale: TimeScale,
    rows: Sequence[RenderRow],
    links: Sequence[LinkPath],
    geometry: ChartGeometry,
    options: ViewConfig,
    selected_task_id: Optional[str] = None,
) -> None:
    painter.setRenderHint(QPainter.RenderHint.Antialiasing, True)
    paint_time_header(painter, scale, geometry)
    if options.show_gridlines:
        paint_grid(painter, scale, len(rows), geometry)
    for row in rows:
        if row.task_id == selected_task_id:
            painter.fillRect(
                QRectF(geometry.origin_x, geometry.row_top(row.index), scale.total_width, geometry.row_height),
                SELECTION_COLOR,
            )
    paint_links(painter, links, geometry)
    for row in rows:
        if row.hidden:
            continue
        if row.is_milestone:
            paint_milestone(painter, row, geometry)
        else:
            paint_bar(painter, row, geometry)


def paint_time_header(painter: QPainter, scale: TimeScale, geometry: ChartGeometry) -> None:
    for line in scale.time_grid():
        x = geometry.origin_x + line.x
        painter.setPen(QPen(GRID_MAJOR_COLOR if line.is_major else GRID_MINOR_COLOR, 1))
        painter.drawLine(QPointF(x, geometry.top), QPointF(x, geometry.body_top))
        if line.is_major:
            painter.setPen(HEADER_TEXT_COLOR)
            painter.drawText(QPointF(x + 4, geometry.top + geometry.header_height / 2 + 4), line.date.strftime("%b %d"))


def paint_grid(painter: QPainter, scale: TimeScale, row_count: int, geometry: ChartGeometry) -> None:
    for line in scale.time_grid():
        x = geometry.origin_x + line.x
        painter.setPen(QPen(GRID_MAJOR_COLOR if line.is_major else GRID_MINOR_COLOR, 1))
        painter.drawLine(QPointF(x, geometry.body_top), QPointF(x, geometry.bottom))
    painter.setPen(QPen(GRID_MINOR_COLOR, 1))
    for index in range(row_count + 1):
        y = geometry.row_top(index)
        painter.drawLine(QPointF(geometry.origin_x, y), QPointF(geometry.origin_x + scale.total_width, y))


def paint_bar(painter: QPainter, row: RenderRow, geometry: ChartGeometry) -> None:
    bar_height = geometry.row_height * BAR_HEIGHT_RATIO
    top = geometry.row_top(row.index) + (geometry.row_height - bar_height) / 2
    left = geometry.origin_x + row.x_start
    rect = QRectF(left, top, max(1.0, row.width), bar_height)

    painter.setPen(QPen(CRITICAL_COLOR if row.is_critical else BAR_BORDER_COLOR, 2 if row.is_critical else 1))
    painter.setBrush(QBrush(CRITICAL_BAR_COLOR if row.is_critical else BAR_COLOR))
    painter.drawRoundedRect(rect, 4, 4)

    if row.progress_fraction > 0:
        progress = QRectF(left, top, rect.width() * row.progress_fraction, bar_height)
        painter.setPen(Qt.PenStyle.NoPen)
        painter.setBrush(QBrush(CRITICAL_COLOR if row.is_critical else PROGRESS_COLOR))
        painter.drawRoundedRect(progress, 4, 4)

    if row.float_end_x is not None:
        pen = QPen(FLOAT_COLOR, 2)
        pen.setStyle(Qt.PenStyle.DashLine)
        painter.setPen(pen)
        y = top + bar_height / 2
        painter.drawLine(QPointF(left + row.width, y), QPointF(geometry.origin_x + row.float_end_x, y))

    if row.constraint_violated:
        painter.setPen(Qt.PenStyle.NoPen)
        painter.setBrush(QBrush(CRITICAL_COLOR))
        painter.drawEllipse(QPointF(left + row.width - 8, top - 4), 5, 5)

    painter.setBrush(Qt.BrushStyle.NoBrush)
    painter.setPen(TEXT_COLOR)
    painter.drawText(QPointF(left + 8, top + bar_height / 2 + 4), row.name)


def paint_milestone(painter: QPainter, row: RenderRow, geometry: ChartGeometry) -> None:
    cx = geometry.origin_x + row.x_start
    cy = geometry.row_center(row.index)
    size = MILESTONE_HALF_WIDTH
    diamond = QPolygonF([
        QPointF(cx, cy - size),
        QPointF(cx + size, cy),
        QPointF(cx, cy + size),
        QPointF(cx - size, cy),
    ])
    color = CRITICAL_COLOR if row.is_critical else MILESTONE_COLOR
    painter.setPen(QPen(color.darker(120), 1))
    painter.setBrush(QBrush(color))
    painter.drawPolygon(diamond)
    painter.setBrush(Qt.BrushStyle.NoBrush)
    painter.setPen(TEXT_COLOR)
    painter.drawText(QPointF(cx + size + 4, cy + 4), row.name)


def paint_links(painter: QPainter, links: Sequence[LinkPath], geometry: ChartGeometry) -> None:
    for path in links:
        color = CRITICAL_COLOR if path.is_critical else LINK_COLOR
        start = QPointF(geometry.origin_x + path.x1, geometry.row_center(path.source_row))
        end = QPointF(geometry.origin_x + path.x2, geometry.row_center(path.target_row))
        painter.setPen(QPen(color, 3 if path.is_critical else 2))
        painter.drawLine(start, end)
        painter.setPen(Qt.PenStyle.NoPen)
        painter.setBrush(QBrush(color))
        direction = 1 if end.x() >= start.x() else -1
        painter.drawPolygon(QPolygonF([
            end,
            QPointF(end.x() - direction * ARROW_SIZE, end.y() - ARROW_SIZE / 2),
            QPointF(end.x() - direction * ARROW_SIZE, end.y() + ARROW_SIZE / 2),
        ]))
        painter.setBrush(Qt.BrushStyle.NoBrush)
