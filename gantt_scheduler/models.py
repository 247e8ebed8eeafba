"""Data models shared across the scheduling engine."""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Optional


DAY = timedelta(days=1)

STATUSES = ("not-started", "in-progress", "completed", "delayed")
CONSTRAINT_TYPES = ("none", "MSO", "SNET", "FNLT", "MFO")
LINK_TYPES = ("finish-to-start", "start-to-start", "finish-to-finish", "start-to-finish")

# Fields the user may change; the rest are owned by the calculators.
EDITABLE_FIELDS = (
    "name",
    "start_date",
    "end_date",
    "progress",
    "assigned_to",
    "status",
    "wbs_number",
    "constraint_type",
    "constraint_date",
)


@dataclass
class Task:
    """Serializable representation of a single scheduled task."""

    id: str
    name: str
    start_date: datetime
    end_date: datetime
    progress: float = 0
    is_milestone: bool = False
    is_critical: bool = False
    float_days: float = 0.0
    level: int = 0
    parent_id: Optional[str] = None
    children: List[str] = field(default_factory=list)
    assigned_to: Optional[str] = None
    status: str = "not-started"
    constraint_type: str = "none"
    constraint_date: Optional[datetime] = None
    constraint_violated: bool = False
    wbs_number: Optional[str] = None

    @property
    def duration(self) -> timedelta:
        return self.end_date - self.start_date

    def duration_days(self) -> int:
        """Whole days spanned by the task, rounded up."""
        return span_days(self.start_date, self.end_date)

    def has_valid_dates(self) -> bool:
        """Return True when the start/end ordering holds for this kind of task."""
        if self.is_milestone:
            return self.start_date <= self.end_date
        return self.start_date < self.end_date


@dataclass
class Link:
    """A dependency between two tasks; inert when either end is unknown."""

    id: str
    source_task_id: str
    target_task_id: str
    type: str = "finish-to-start"
    lag: float = 0


def days_between(start: datetime, end: datetime) -> float:
    """Signed, fractional number of days from ``start`` to ``end``."""
    return (end - start) / DAY


def span_days(start: datetime, end: datetime) -> int:
    """Absolute span in days, rounded up to the next whole day."""
    return math.ceil(abs(days_between(start, end)))
