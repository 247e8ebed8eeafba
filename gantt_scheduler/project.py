"""In-memory task/link container that keeps the hierarchy consistent."""
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional

from .models import Link, Task

logger = logging.getLogger(__name__)


class Project:
    """Owns the tasks and links of one project.

    Structural edits (add, reparent, remove) go through this class so that a
    task's ``parent_id`` and its parent's ``children`` list always agree.
    Removing a task never cascades to its children or its links.
    """

    def __init__(self, tasks: Iterable[Task] = (), links: Iterable[Link] = ()) -> None:
        self._tasks: Dict[str, Task] = {}
        self._links: Dict[str, Link] = {}
        for task in tasks:
            if task.id in self._tasks:
                raise ValueError(f"Duplicate task id: {task.id}")
            self._tasks[task.id] = task
        for link in links:
            self._links[link.id] = link
        self._sync_children()

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._tasks

    def __iter__(self) -> Iterator[Task]:
        return iter(self._tasks.values())

    def __len__(self) -> int:
        return len(self._tasks)

    @property
    def tasks(self) -> List[Task]:
        return list(self._tasks.values())

    @property
    def links(self) -> List[Link]:
        return list(self._links.values())

    def get(self, task_id: str) -> Optional[Task]:
        return self._tasks.get(task_id)

    def require(self, task_id: str) -> Task:
        task = self._tasks.get(task_id)
        if task is None:
            raise KeyError(f"Unknown task id: {task_id}")
        return task

    # --- Hierarchy ---------------------------------------------------------

    def add_task(self, task: Task, parent_id: Optional[str] = None) -> Task:
        if task.id in self._tasks:
            raise ValueError(f"Duplicate task id: {task.id}")
        parent_id = parent_id if parent_id is not None else task.parent_id
        if parent_id is not None:
            self.require(parent_id)
        task.parent_id = None
        self._tasks[task.id] = task
        if parent_id is not None:
            self.reparent(task.id, parent_id)
        return task

    def reparent(self, task_id: str, new_parent_id: Optional[str]) -> None:
        """Move a task under ``new_parent_id`` (or to the root when None)."""
        task = self.require(task_id)
        if new_parent_id is not None:
            self.require(new_parent_id)
            if new_parent_id == task_id or new_parent_id in self.descendants(task_id):
                raise ValueError(f"Cannot move {task_id} under its own descendant {new_parent_id}")
        old_parent = self._tasks.get(task.parent_id) if task.parent_id else None
        if old_parent is not None and task_id in old_parent.children:
            old_parent.children.remove(task_id)
        task.parent_id = new_parent_id
        if new_parent_id is not None:
            new_parent = self._tasks[new_parent_id]
            if task_id not in new_parent.children:
                new_parent.children.append(task_id)

    def remove_task(self, task_id: str) -> Task:
        """Drop a task; its children become roots and its links stay untouched."""
        task = self.require(task_id)
        self.reparent(task_id, None)
        for child_id in list(task.children):
            child = self._tasks.get(child_id)
            if child is not None:
                child.parent_id = None
        task.children.clear()
        del self._tasks[task_id]
        return task

    def descendants(self, task_id: str) -> List[str]:
        found: List[str] = []
        pending = list(self.require(task_id).children)
        while pending:
            child_id = pending.pop()
            if child_id in found or child_id not in self._tasks:
                continue
            found.append(child_id)
            pending.extend(self._tasks[child_id].children)
        return found

    def roots(self) -> List[Task]:
        return [task for task in self._tasks.values() if not task.parent_id or task.parent_id not in self._tasks]

    def _sync_children(self) -> None:
        """Make ``children`` lists agree with ``parent_id`` for freshly loaded data."""
        for task in self._tasks.values():
            for child_id in task.children:
                child = self._tasks.get(child_id)
                if child is not None and child.parent_id is None and child_id != task.id:
                    child.parent_id = task.id
        for task in self._tasks.values():
            parent = self._tasks.get(task.parent_id) if task.parent_id else None
            if parent is not None and task.id not in parent.children:
                parent.children.append(task.id)
        for task in self._tasks.values():
            kept = [cid for cid in task.children if cid in self._tasks and self._tasks[cid].parent_id == task.id]
            if len(kept) != len(task.children):
                logger.debug("Dropped %d stale child ids from %s", len(task.children) - len(kept), task.id)
            task.children = kept

    # --- Links -------------------------------------------------------------

    def add_link(self, link: Link) -> Link:
        if link.id in self._links:
            raise ValueError(f"Duplicate link id: {link.id}")
        self._links[link.id] = link
        return link

    def remove_link(self, link_id: str) -> Link:
        return self._links.pop(link_id)

    def is_resolved(self, link: Link) -> bool:
        return link.source_task_id in self._tasks and link.target_task_id in self._tasks

    def resolved_links(self) -> List[Link]:
        return [link for link in self._links.values() if self.is_resolved(link)]

    def incoming_links(self, task_id: str) -> List[Link]:
        return [link for link in self._links.values() if link.target_task_id == task_id]

    def outgoing_links(self, task_id: str) -> List[Link]:
        return [link for link in self._links.values() if link.source_task_id == task_id]

    # --- Field updates -----------------------------------------------------

    def apply_changes(self, task_id: str, changes: Mapping[str, Any]) -> Task:
        """Write already-validated field values onto a task."""
        task = self.require(task_id)
        for name, value in changes.items():
            if name in ("parent_id", "children", "id"):
                raise ValueError(f"Field {name!r} must be changed through reparent()")
            if not hasattr(task, name):
                raise ValueError(f"Unknown task field: {name}")
            setattr(task, name, value)
        return task
