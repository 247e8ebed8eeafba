"""Date <-> pixel mapping for the timeline area."""
from __future__ import annotations

import math
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Iterable, List, Optional, Tuple

from .models import DAY, Task, days_between

WEEK_VIEW = 7
MONTH_VIEW = 30
_WINDOW_PADDING = timedelta(days=7)
_EMPTY_WINDOW = timedelta(days=30)


@dataclass(frozen=True)
class GridLine:
    x: float
    date: datetime
    is_major: bool


@dataclass(frozen=True)
class TimeScale:
    """Immutable mapping for a visible window, pixel width and zoom level.

    Zoom is expressed relative to the week view: ``zoom_level == 7`` fits the
    whole window into ``width``, a month zoom stretches it, a day zoom shrinks it.
    """

    start: datetime
    end: datetime
    width: float
    zoom_level: int = WEEK_VIEW

    def __post_init__(self) -> None:
        if self.width <= 0:
            raise ValueError("Timeline width must be positive")
        if self.zoom_level <= 0:
            raise ValueError("Zoom level must be positive")

    @property
    def total_days(self) -> int:
        return max(1, math.ceil(days_between(self.start, self.end)))

    @property
    def pixels_per_day(self) -> float:
        return (self.width / self.total_days) * (self.zoom_level / WEEK_VIEW)

    @property
    def total_width(self) -> float:
        return self.total_days * self.pixels_per_day

    def date_to_pixel(self, date: datetime) -> float:
        return days_between(self.start, date) * self.pixels_per_day

    def pixel_to_date(self, pixel: float) -> datetime:
        return self.start + (pixel / self.pixels_per_day) * DAY

    def with_window(self, start: datetime, end: datetime) -> "TimeScale":
        return replace(self, start=start, end=end)

    def with_width(self, width: float) -> "TimeScale":
        return replace(self, width=width)

    def with_zoom(self, zoom_level: int) -> "TimeScale":
        return replace(self, zoom_level=zoom_level)

    def time_grid(self) -> List[GridLine]:
        """Vertical grid lines; density and major ticks follow the zoom level."""
        step = 7 if self.zoom_level >= MONTH_VIEW else 1
        lines: List[GridLine] = []
        for offset in range(0, self.total_days + 1, step):
            date = self.start + offset * DAY
            if self.zoom_level >= MONTH_VIEW:
                major = date.day == 1
            elif self.zoom_level >= WEEK_VIEW:
                major = date.weekday() == 6
            else:
                major = True
            lines.append(GridLine(x=offset * self.pixels_per_day, date=date, is_major=major))
        return lines


def project_window(tasks: Iterable[Task], now: Optional[datetime] = None) -> Tuple[datetime, datetime]:
    """Window covering every task with a week of padding on both sides."""
    task_list = list(tasks)
    if not task_list:
        start = now or datetime.now()
        return start, start + _EMPTY_WINDOW
    start = min(task.start_date for task in task_list)
    end = max(task.end_date for task in task_list)
    return start - _WINDOW_PADDING, end + _WINDOW_PADDING
