"""CSV persistence for project tasks and links."""
from __future__ import annotations

import csv
import logging
import threading
from dataclasses import dataclass, field, replace
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol, Sequence, Set, Tuple

from .demo import demo_links, demo_tasks
from .models import Link, Task
from .validation import validate_changes

logger = logging.getLogger(__name__)

_PROJECT_PREFIX = "#project"
_TASK_HEADER = [
    "id",
    "name",
    "start_date",
    "end_date",
    "progress",
    "is_milestone",
    "is_critical",
    "float_days",
    "parent_id",
    "children",
    "assigned_to",
    "status",
    "constraint_type",
    "constraint_date",
    "wbs_number",
]
_LINK_HEADER = ["id", "source_task_id", "target_task_id", "type", "lag"]
_CHILD_SEPARATOR = ";"


@dataclass
class UpdateResult:
    success: bool
    errors: List[str] = field(default_factory=list)


class TaskStore(Protocol):
    """Contract the scheduling session expects from a storage backend."""

    def load_tasks(self, project_id: str) -> List[Task]: ...

    def load_links(self, project_id: str) -> List[Link]: ...

    def update_task(self, task_id: str, fields: Mapping[str, Any]) -> UpdateResult: ...

    def save_wbs_numbering(self, tasks: Sequence[Task]) -> UpdateResult: ...

    def batch_update_tasks(self, updates: Iterable[Tuple[str, Mapping[str, Any]]]) -> UpdateResult: ...


class CsvTaskStore:
    """Keeps each project as ``<id>.tasks.csv`` and ``<id>.links.csv`` in one folder.

    Loading never raises: unreadable or malformed files are logged and the
    built-in demo project is returned instead so the UI stays usable. A project
    with no task file yet is seeded with the demo data so edits to it persist.

    Saves may arrive from a worker thread while the UI thread loads or saves,
    so every file access and ownership update happens under one lock.
    """

    def __init__(self, directory: Path | str) -> None:
        self.directory = Path(directory)
        self._owners: Dict[str, str] = {}
        self._unknown: Set[str] = set()
        self._lock = threading.RLock()

    def tasks_path(self, project_id: str) -> Path:
        return self.directory / f"{project_id}.tasks.csv"

    def links_path(self, project_id: str) -> Path:
        return self.directory / f"{project_id}.links.csv"

    # --- Loading -----------------------------------------------------------

    def load_tasks(self, project_id: str) -> List[Task]:
        with self._lock:
            path = self.tasks_path(project_id)
            try:
                tasks = read_tasks(path, project_id)
            except (OSError, ValueError) as exc:
                logger.warning("Failed to load tasks for %s, using demo data: %s", project_id, exc)
                tasks = demo_tasks()
                if not path.exists():
                    self._seed(project_id, tasks)
                return tasks
            self._remember(project_id, tasks)
            return tasks

    def load_links(self, project_id: str) -> List[Link]:
        with self._lock:
            try:
                return read_links(self.links_path(project_id), project_id)
            except (OSError, ValueError) as exc:
                logger.warning("Failed to load links for %s, using demo data: %s", project_id, exc)
                return demo_links()

    def _seed(self, project_id: str, tasks: List[Task]) -> None:
        try:
            self.save_project(project_id, tasks, demo_links())
        except OSError as exc:
            logger.warning("Could not store demo data for %s: %s", project_id, exc)

    # --- Saving ------------------------------------------------------------

    def save_project(self, project_id: str, tasks: Iterable[Task], links: Iterable[Link]) -> None:
        """Persist a whole project, replacing whatever was stored before."""
        task_list = list(tasks)
        with self._lock:
            write_tasks(self.tasks_path(project_id), project_id, task_list)
            write_links(self.links_path(project_id), project_id, links)
            self._remember(project_id, task_list)
        logger.info("Saved project %s (%d tasks)", project_id, len(task_list))

    def update_task(self, task_id: str, fields: Mapping[str, Any]) -> UpdateResult:
        with self._lock:
            return self._update_task(task_id, fields)

    def _update_task(self, task_id: str, fields: Mapping[str, Any]) -> UpdateResult:
        project_id = self._owners.get(task_id) or self._find_owner(task_id)
        if project_id is None:
            return UpdateResult(False, ["Task not found"])
        path = self.tasks_path(project_id)
        try:
            tasks = read_tasks(path, project_id)
        except (OSError, ValueError) as exc:
            logger.warning("Failed to update task %s: %s", task_id, exc)
            return UpdateResult(False, ["Database update failed"])

        index = next((i for i, task in enumerate(tasks) if task.id == task_id), None)
        if index is None:
            return UpdateResult(False, ["Task not found"])
        errors = validate_changes(tasks[index], fields)
        if errors:
            return UpdateResult(False, list(errors.values()))
        unknown = [name for name in fields if name not in _TASK_HEADER]
        if unknown:
            return UpdateResult(False, [f"Unknown field: {name}" for name in unknown])

        tasks[index] = replace(tasks[index], **dict(fields))
        try:
            write_tasks(path, project_id, tasks)
        except OSError as exc:
            logger.warning("Failed to update task %s: %s", task_id, exc)
            return UpdateResult(False, ["Database update failed"])
        logger.info("Task updated successfully: %s", task_id)
        return UpdateResult(True)

    def batch_update_tasks(self, updates: Iterable[Tuple[str, Mapping[str, Any]]]) -> UpdateResult:
        errors: List[str] = []
        with self._lock:
            for task_id, fields in updates:
                result = self._update_task(task_id, fields)
                if not result.success:
                    errors.extend(f"Task {task_id}: {message}" for message in result.errors)
        return UpdateResult(not errors, errors)

    def save_wbs_numbering(self, tasks: Sequence[Task]) -> UpdateResult:
        result = self.batch_update_tasks((task.id, {"wbs_number": task.wbs_number}) for task in tasks)
        if result.success:
            logger.info("WBS numbering saved successfully")
        else:
            for message in result.errors:
                logger.warning("Failed to update WBS: %s", message)
        return result

    # --- Ownership ---------------------------------------------------------

    def _remember(self, project_id: str, tasks: Iterable[Task]) -> None:
        for task in tasks:
            self._owners[task.id] = project_id
        self._unknown.clear()

    def _find_owner(self, task_id: str) -> Optional[str]:
        # A miss is cached until the next load or save adds new tasks.
        if task_id in self._unknown or not self.directory.is_dir():
            return None
        for path in sorted(self.directory.glob("*.tasks.csv")):
            project_id = path.name[: -len(".tasks.csv")]
            try:
                tasks = read_tasks(path, project_id)
            except (OSError, ValueError):
                continue
            for task in tasks:
                self._owners[task.id] = project_id
        owner = self._owners.get(task_id)
        if owner is None:
            self._unknown.add(task_id)
        return owner


# --- File format -------------------------------------------------------------

def write_tasks(path: Path | str, project_id: str, tasks: Iterable[Task]) -> None:
    csv_path = Path(path)
    csv_path.parent.mkdir(parents=True, exist_ok=True)
    with csv_path.open("w", newline="", encoding="utf-8") as handle:
        writer = csv.writer(handle)
        writer.writerow([_PROJECT_PREFIX, project_id])
        writer.writerow(_TASK_HEADER)
        for task in tasks:
            writer.writerow([
                task.id,
                task.name,
                task.start_date.isoformat(),
                task.end_date.isoformat(),
                _serialize_number(task.progress),
                int(task.is_milestone),
                int(task.is_critical),
                _serialize_number(task.float_days),
                task.parent_id or "",
                _CHILD_SEPARATOR.join(task.children),
                task.assigned_to or "",
                task.status,
                task.constraint_type,
                task.constraint_date.isoformat() if task.constraint_date else "",
                task.wbs_number or "",
            ])


def read_tasks(path: Path | str, project_id: str) -> List[Task]:
    csv_path = Path(path)
    with csv_path.open("r", newline="", encoding="utf-8") as handle:
        reader = csv.reader(handle)
        _check_project_line(next(reader, None), project_id)
        if next(reader, None) != _TASK_HEADER:
            raise ValueError("Invalid task CSV: missing task header")

        tasks: List[Task] = []
        for row in reader:
            if len(row) < len(_TASK_HEADER):
                continue
            values = dict(zip(_TASK_HEADER, row))
            if not values["id"]:
                continue
            tasks.append(
                Task(
                    id=values["id"],
                    name=values["name"],
                    start_date=_parse_date(values["start_date"]),
                    end_date=_parse_date(values["end_date"]),
                    progress=_parse_number(values["progress"]),
                    is_milestone=values["is_milestone"] == "1",
                    is_critical=values["is_critical"] == "1",
                    float_days=float(_parse_number(values["float_days"])),
                    parent_id=values["parent_id"] or None,
                    children=[cid for cid in values["children"].split(_CHILD_SEPARATOR) if cid],
                    assigned_to=values["assigned_to"] or None,
                    status=values["status"] or "not-started",
                    constraint_type=values["constraint_type"] or "none",
                    constraint_date=_parse_optional_date(values["constraint_date"]),
                    wbs_number=values["wbs_number"] or None,
                )
            )
        return tasks


def write_links(path: Path | str, project_id: str, links: Iterable[Link]) -> None:
    csv_path = Path(path)
    csv_path.parent.mkdir(parents=True, exist_ok=True)
    with csv_path.open("w", newline="", encoding="utf-8") as handle:
        writer = csv.writer(handle)
        writer.writerow([_PROJECT_PREFIX, project_id])
        writer.writerow(_LINK_HEADER)
        for link in links:
            writer.writerow([link.id, link.source_task_id, link.target_task_id, link.type, _serialize_number(link.lag)])


def read_links(path: Path | str, project_id: str) -> List[Link]:
    csv_path = Path(path)
    with csv_path.open("r", newline="", encoding="utf-8") as handle:
        reader = csv.reader(handle)
        _check_project_line(next(reader, None), project_id)
        if next(reader, None) != _LINK_HEADER:
            raise ValueError("Invalid link CSV: missing link header")

        links: List[Link] = []
        for row in reader:
            if len(row) < len(_LINK_HEADER) or not row[0]:
                continue
            link_id, source, target, link_type, lag = row[: len(_LINK_HEADER)]
            links.append(Link(id=link_id, source_task_id=source, target_task_id=target, type=link_type or "finish-to-start", lag=_parse_number(lag)))
        return links


def _check_project_line(line: Optional[List[str]], project_id: str) -> None:
    if not line or line[0] != _PROJECT_PREFIX:
        raise ValueError("Invalid project CSV: missing project line")
    if len(line) < 2 or line[1] != project_id:
        raise ValueError(f"Invalid project CSV: expected project {project_id}")


def _serialize_number(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return str(value)


def _parse_number(value: str) -> float:
    text = value.strip() if value is not None else ""
    if not text:
        return 0
    try:
        number = float(text)
    except ValueError:
        return 0
    return int(number) if number.is_integer() else number


def _parse_date(value: str) -> datetime:
    try:
        return datetime.fromisoformat(value.strip())
    except ValueError as exc:
        raise ValueError(f"Invalid date in CSV: {value!r}") from exc


def _parse_optional_date(value: str) -> Optional[datetime]:
    text = value.strip() if value is not None else ""
    if not text:
        return None
    return _parse_date(text)
