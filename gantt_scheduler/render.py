"""What the drawing surface receives for each visible task and link.

Nothing here paints: the Qt canvas and the PDF exporter both consume these
plain values, and report pointer activity back through the session.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from .config import ViewConfig
from .drag import MOVE, RESIZE_END, RESIZE_START
from .hierarchy import ExpansionState, VisibleTask
from .models import Link
from .timescale import TimeScale

DRAG_HANDLE_TOLERANCE = 6
MILESTONE_HALF_WIDTH = 7


@dataclass(frozen=True)
class RenderRow:
    task_id: str
    name: str
    index: int
    level: int
    x_start: float
    x_end: float
    is_milestone: bool
    is_critical: bool
    float_days: float
    float_end_x: Optional[float]
    progress_fraction: float
    constraint_violated: bool
    has_children: bool
    expanded: bool
    hidden: bool

    @property
    def width(self) -> float:
        return self.x_end - self.x_start


@dataclass(frozen=True)
class LinkPath:
    link_id: str
    source_row: int
    target_row: int
    x1: float
    x2: float
    is_critical: bool


def build_render_rows(
    visible: Sequence[VisibleTask],
    scale: TimeScale,
    options: ViewConfig,
    expansion: Optional[ExpansionState] = None,
) -> List[RenderRow]:
    rows: List[RenderRow] = []
    for index, entry in enumerate(visible):
        task = entry.task
        x_start = scale.date_to_pixel(task.start_date)
        x_end = scale.date_to_pixel(task.end_date)
        critical = options.show_critical_path and task.is_critical
        float_end = None
        if options.show_float and task.float_days > 0:
            float_end = x_end + task.float_days * scale.pixels_per_day
        rows.append(
            RenderRow(
                task_id=task.id,
                name=task.name,
                index=index,
                level=entry.level,
                x_start=x_start,
                x_end=x_end,
                is_milestone=task.is_milestone,
                is_critical=critical,
                float_days=task.float_days,
                float_end_x=float_end,
                progress_fraction=max(0.0, min(1.0, float(task.progress) / 100.0)),
                constraint_violated=task.constraint_violated,
                has_children=bool(task.children),
                expanded=bool(expansion and expansion.is_expanded(task.id)),
                hidden=options.critical_only and not critical,
            )
        )
    return rows


def build_link_paths(rows: Sequence[RenderRow], links: Sequence[Link], options: ViewConfig) -> List[LinkPath]:
    """Arrows from the source bar's end to the target bar's start.

    Links with an endpoint that is missing or not currently visible are skipped.
    """
    if not options.show_task_links:
        return []
    by_id: Dict[str, RenderRow] = {row.task_id: row for row in rows}
    paths: List[LinkPath] = []
    for link in links:
        source = by_id.get(link.source_task_id)
        target = by_id.get(link.target_task_id)
        if source is None or target is None:
            continue
        paths.append(
            LinkPath(
                link_id=link.id,
                source_row=source.index,
                target_row=target.index,
                x1=source.x_end,
                x2=target.x_start,
                is_critical=source.is_critical and target.is_critical,
            )
        )
    return paths


def hit_test(row: RenderRow, x: float, *, can_edit: bool = True, tolerance: float = DRAG_HANDLE_TOLERANCE) -> Optional[str]:
    """Classify a pointer-down on a row as an edge handle, the body, or a miss."""
    if row.hidden:
        return None
    if row.is_milestone:
        if abs(x - row.x_start) <= MILESTONE_HALF_WIDTH:
            return MOVE
        return None
    if can_edit:
        # Grab the nearer edge when a narrow bar puts both within reach.
        near_start = abs(x - row.x_start)
        near_end = abs(x - row.x_end)
        if min(near_start, near_end) <= tolerance:
            return RESIZE_START if near_start <= near_end else RESIZE_END
    if row.x_start <= x <= row.x_end:
        return MOVE
    return None


def row_at(rows: Sequence[RenderRow], y: float, row_height: float, header_height: float = 0) -> Optional[RenderRow]:
    if y < header_height or row_height <= 0:
        return None
    index = int((y - header_height) // row_height)
    if 0 <= index < len(rows):
        return rows[index]
    return None
