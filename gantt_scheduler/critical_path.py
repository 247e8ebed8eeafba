"""Float and critical-path estimation.

This is deliberately a heuristic rather than a forward/backward CPM pass:

* a task's float is the gap between its own end and the latest lag-adjusted
  end of the tasks feeding into it (its own start when nothing feeds it);
* tasks with at most one day of float are critical;
* when nothing qualifies, the single longest task is flagged so the chart
  always highlights something.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence

from .models import DAY, Link, Task, days_between

CRITICAL_FLOAT_THRESHOLD = 1.0


@dataclass
class ScheduleAnalysis:
    float_by_id: Dict[str, float] = field(default_factory=dict)
    critical_ids: List[str] = field(default_factory=list)

    def is_critical(self, task_id: str) -> bool:
        return task_id in self.critical_ids


def latest_dependency_end(task: Task, tasks_by_id: Dict[str, Task], links: Iterable[Link]) -> Optional[datetime]:
    """Latest ``source.end + lag`` over resolved links into ``task``."""
    latest: Optional[datetime] = None
    for link in links:
        if link.target_task_id != task.id:
            continue
        source = tasks_by_id.get(link.source_task_id)
        if source is None:
            continue
        candidate = source.end_date + link.lag * DAY
        if latest is None or candidate > latest:
            latest = candidate
    return latest


def calculate_float(tasks: Sequence[Task], links: Sequence[Link]) -> Dict[str, float]:
    tasks_by_id = {task.id: task for task in tasks}
    floats: Dict[str, float] = {}
    for task in tasks:
        anchor = task.start_date
        latest = latest_dependency_end(task, tasks_by_id, links)
        if latest is not None and latest > anchor:
            anchor = latest
        floats[task.id] = max(0.0, days_between(anchor, task.end_date))
    return floats


def calculate_critical_path(tasks: Sequence[Task], float_by_id: Dict[str, float]) -> List[str]:
    critical = [task.id for task in tasks if float_by_id.get(task.id, task.float_days) <= CRITICAL_FLOAT_THRESHOLD]
    if critical or not tasks:
        return critical
    longest = tasks[0]
    for task in tasks[1:]:
        if task.duration > longest.duration:
            longest = task
    return [longest.id]


def analyze(tasks: Sequence[Task], links: Sequence[Link]) -> ScheduleAnalysis:
    floats = calculate_float(tasks, links)
    return ScheduleAnalysis(float_by_id=floats, critical_ids=calculate_critical_path(tasks, floats))


def apply_analysis(tasks: Iterable[Task], analysis: ScheduleAnalysis) -> None:
    """Write float and critical flags onto the tasks."""
    critical = set(analysis.critical_ids)
    for task in tasks:
        task.float_days = analysis.float_by_id.get(task.id, 0.0)
        task.is_critical = task.id in critical


# Constraint evaluation -------------------------------------------------------

def evaluate_constraint(task: Task) -> bool:
    """Return True when the task's date constraint is violated.

    Dates are compared by calendar day. A missing constraint date never
    counts as a violation.
    """
    if task.constraint_type == "none" or task.constraint_date is None:
        return False
    limit = task.constraint_date.date()
    start = task.start_date.date()
    end = task.end_date.date()
    if task.constraint_type == "MSO":
        return start != limit
    if task.constraint_type == "SNET":
        return start < limit
    if task.constraint_type == "FNLT":
        return end > limit
    if task.constraint_type == "MFO":
        return end != limit
    return False


def refresh_constraint_flags(tasks: Iterable[Task]) -> List[str]:
    """Update ``constraint_violated`` for display; returns the violating ids."""
    violated: List[str] = []
    for task in tasks:
        task.constraint_violated = evaluate_constraint(task)
        if task.constraint_violated:
            violated.append(task.id)
    return violated
