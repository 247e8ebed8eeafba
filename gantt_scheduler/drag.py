"""Pointer-driven rescheduling of task bars."""
from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from .models import DAY, Task
from .timescale import WEEK_VIEW, TimeScale

logger = logging.getLogger(__name__)

MOVE = "move"
RESIZE_START = "resize-start"
RESIZE_END = "resize-end"
DRAG_MODES = (MOVE, RESIZE_START, RESIZE_END)


@dataclass(slots=True)
class DragState:
    task_id: str
    mode: str
    start_x: float
    original_start: datetime
    original_end: datetime

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["original_start"] = self.original_start.isoformat()
        data["original_end"] = self.original_end.isoformat()
        return data


@dataclass(frozen=True)
class Proposal:
    task_id: str
    start_date: datetime
    end_date: datetime

    def as_changes(self) -> Dict[str, datetime]:
        return {"start_date": self.start_date, "end_date": self.end_date}


def snap_to_week_boundary(date: datetime) -> datetime:
    """Round forward to the next Sunday; Sundays are left alone."""
    sunday_based = (date.weekday() + 1) % 7
    return date + timedelta(days=(7 - sunday_based) % 7)


class DragController:
    """Two-state machine: idle, or dragging one task in one mode.

    Every pointer move produces a fresh proposal computed from the dates
    captured at pointer-down, so the last proposal of a drag is the committed
    state; there is no separate commit or cancel step.
    """

    def __init__(self) -> None:
        self.state: Optional[DragState] = None

    @property
    def is_dragging(self) -> bool:
        return self.state is not None

    def pointer_down(self, task: Task, mode: str, x: float, *, can_edit: bool = True) -> bool:
        if mode not in DRAG_MODES:
            raise ValueError(f"Unknown drag mode: {mode}")
        if not can_edit or self.state is not None:
            return False
        self.state = DragState(
            task_id=task.id,
            mode=mode,
            start_x=x,
            original_start=task.start_date,
            original_end=task.end_date,
        )
        logger.debug("Drag started: %s (%s) at x=%s", task.id, mode, x)
        return True

    def pointer_move(self, x: float, scale: TimeScale) -> Optional[Proposal]:
        if self.state is None:
            return None
        days_delta = (x - self.state.start_x) / scale.pixels_per_day
        start, end = propose_dates(self.state, days_delta, scale.zoom_level)
        return Proposal(task_id=self.state.task_id, start_date=start, end_date=end)

    def pointer_up(self) -> Optional[DragState]:
        finished, self.state = self.state, None
        if finished is not None:
            logger.debug("Drag finished: %s", finished.task_id)
        return finished


def propose_dates(state: DragState, days_delta: float, zoom_level: int) -> tuple[datetime, datetime]:
    """Shift the captured dates by whole days according to the drag mode.

    Fractional deltas round down, so a leftward drag moves a day as soon as
    the pointer crosses into the previous day.
    """
    shift = math.floor(days_delta) * DAY
    start = state.original_start
    end = state.original_end
    if state.mode == MOVE:
        start += shift
        end += shift
    elif state.mode == RESIZE_START:
        start += shift
        if start >= end:
            start = end - DAY
    elif state.mode == RESIZE_END:
        end += shift
        if end <= start:
            end = start + DAY

    if zoom_level >= WEEK_VIEW:
        start = snap_to_week_boundary(start)
        end = snap_to_week_boundary(end)
        # Short bars can snap onto a single Sunday; keep them one week long.
        if end <= start and state.original_end > state.original_start:
            end = snap_to_week_boundary(start + DAY)
    return start, end
