"""Flatten the task tree into the visible, indented row order."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Set

from .models import Task


@dataclass(frozen=True)
class VisibleTask:
    task: Task
    level: int

    @property
    def id(self) -> str:
        return self.task.id


@dataclass
class ExpansionState:
    """Expanded task ids shared by the canvas and the table."""

    expanded: Set[str] = field(default_factory=set)

    def is_expanded(self, task_id: str) -> bool:
        return task_id in self.expanded

    def toggle(self, task_id: str) -> bool:
        """Flip one task's membership; returns the new state."""
        if task_id in self.expanded:
            self.expanded.discard(task_id)
            return False
        self.expanded.add(task_id)
        return True

    def expand(self, task_id: str) -> None:
        self.expanded.add(task_id)

    def collapse(self, task_id: str) -> None:
        self.expanded.discard(task_id)

    def expand_all(self, tasks: Iterable[Task]) -> None:
        self.expanded.update(task.id for task in tasks if task.children)

    def collapse_all(self) -> None:
        self.expanded.clear()

    def to_list(self) -> List[str]:
        return sorted(self.expanded)

    @classmethod
    def from_list(cls, ids: Iterable[str]) -> "ExpansionState":
        return cls(expanded=set(ids))


def root_tasks(tasks: Sequence[Task]) -> List[Task]:
    """Tasks with no parent, or whose parent is not part of ``tasks``."""
    known = {task.id for task in tasks}
    return [task for task in tasks if not task.parent_id or task.parent_id not in known]


def flatten_visible(tasks: Sequence[Task], expanded: Optional[ExpansionState | Set[str]] = None) -> List[VisibleTask]:
    """Pre-order rows; children only follow a parent that is expanded.

    Input tasks are left untouched: the computed depth lives on ``VisibleTask``.
    """
    if isinstance(expanded, ExpansionState):
        expanded_ids: Set[str] = expanded.expanded
    else:
        expanded_ids = set(expanded or ())
    by_id: Dict[str, Task] = {task.id: task for task in tasks}
    visible: List[VisibleTask] = []
    seen: Set[str] = set()

    def add(task: Task, level: int) -> None:
        if task.id in seen:
            return
        seen.add(task.id)
        visible.append(VisibleTask(task=task, level=level))
        if task.id not in expanded_ids:
            return
        for child_id in task.children:
            child = by_id.get(child_id)
            if child is not None:
                add(child, level + 1)

    for task in root_tasks(tasks):
        add(task, 0)
    return visible


def assign_levels(tasks: Sequence[Task]) -> None:
    """Store every task's depth on ``level``, regardless of expansion."""
    everything = ExpansionState.from_list(task.id for task in tasks)
    for entry in flatten_visible(tasks, everything):
        entry.task.level = entry.level
