"""Built-in dataset used whenever the store cannot provide a project."""
from __future__ import annotations

from datetime import date, datetime, time
from typing import List, Optional

from .models import DAY, Link, Task

DEMO_PROJECT_ID = "demo-project"


def _base_date(today: Optional[date]) -> datetime:
    return datetime.combine(today or date.today(), time())


def demo_tasks(today: Optional[date] = None) -> List[Task]:
    base = _base_date(today)

    def task(index: int, name: str, start: int, end: int, **extra) -> Task:
        return Task(
            id=f"task-{index}",
            name=name,
            start_date=base + start * DAY,
            end_date=base + end * DAY,
            **extra,
        )

    return [
        task(1, "Project Planning", 0, 7, progress=100, assigned_to="John Smith", status="completed"),
        task(2, "Foundation Design", 5, 14, progress=75, assigned_to="Sarah Johnson", status="in-progress"),
        task(3, "Foundation Complete", 14, 14, is_milestone=True, assigned_to="Mike Wilson"),
        task(4, "Structural Framework", 15, 35, assigned_to="Lisa Brown"),
        task(5, "Electrical Installation", 25, 45, assigned_to="David Lee"),
        task(6, "Project Handover", 50, 50, is_milestone=True, assigned_to="Project Manager"),
    ]


def demo_links() -> List[Link]:
    return [
        Link(id="link-1", source_task_id="task-1", target_task_id="task-2"),
        Link(id="link-2", source_task_id="task-2", target_task_id="task-3"),
        Link(id="link-3", source_task_id="task-3", target_task_id="task-4"),
        Link(id="link-4", source_task_id="task-4", target_task_id="task-5", type="start-to-start", lag=10),
        Link(id="link-5", source_task_id="task-5", target_task_id="task-6"),
    ]
