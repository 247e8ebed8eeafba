"""Toolkit-independent model behind the task table.

The table shows the same flattened hierarchy as the chart, optionally sorted
and grouped by the first WBS segment, and supports inline editing. Edits are
validated here (including the predecessor check that drags skip) before being
handed to ``apply_update``.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from .hierarchy import ExpansionState, VisibleTask, flatten_visible
from .models import Task
from .project import Project
from .validation import validate, validate_dependency_start
from .wbs import wbs_prefix, wbs_sort_key

logger = logging.getLogger(__name__)

NO_WBS_GROUP = "No WBS"
DATE_INPUT_FORMAT = "%Y-%m-%d"
DATE_DISPLAY_FORMAT = "%d/%m/%Y"

DISPLAY = "display"
EDITING = "editing"
ERROR = "error"


@dataclass(frozen=True)
class Column:
    field: str
    title: str
    editable: bool = False
    sortable: bool = True


COLUMNS: Tuple[Column, ...] = (
    Column("wbs_number", "WBS", editable=True),
    Column("name", "Task Name", editable=True),
    Column("start_date", "Start", editable=True),
    Column("end_date", "End", editable=True),
    Column("duration", "Duration"),
    Column("assigned_to", "Resource", editable=True),
    Column("float_days", "Float"),
    Column("progress", "% Complete", editable=True),
    Column("status", "Status", editable=True),
)
_COLUMNS_BY_FIELD = {column.field: column for column in COLUMNS}

# Returns field -> message for anything the receiving side refused.
ApplyUpdate = Callable[[str, Mapping[str, Any]], Mapping[str, str]]


@dataclass(frozen=True)
class TaskRow:
    task: Task
    level: int


@dataclass(frozen=True)
class GroupHeader:
    prefix: str
    tasks: Tuple[Task, ...]

    @property
    def total_duration(self) -> int:
        return sum(task.duration_days() for task in self.tasks)

    @property
    def average_progress(self) -> float:
        return sum(float(task.progress) for task in self.tasks) / len(self.tasks)


TableRow = Union[TaskRow, GroupHeader]


@dataclass
class EditingCell:
    task_id: str
    field: str
    text: str


@dataclass
class SortConfig:
    field: str
    ascending: bool = True


@dataclass
class TaskTableModel:
    project: Project
    expansion: ExpansionState
    apply_update: ApplyUpdate
    can_edit: bool = True
    group_by_wbs: bool = True
    sort: Optional[SortConfig] = None
    editing: Optional[EditingCell] = None
    errors: Dict[Tuple[str, str], str] = field(default_factory=dict)

    # --- Rows --------------------------------------------------------------

    def visible_tasks(self) -> List[VisibleTask]:
        return flatten_visible(self.project.tasks, self.expansion)

    def rows(self) -> List[TableRow]:
        entries = self.sorted_tasks(self.visible_tasks())
        if not self.group_by_wbs:
            return [TaskRow(entry.task, entry.level) for entry in entries]
        return group_by_wbs_prefix(entries)

    def sorted_tasks(self, entries: Sequence[VisibleTask]) -> List[VisibleTask]:
        if self.sort is None:
            return list(entries)
        key_field = self.sort.field
        # None sorts last in both directions.
        present = [entry for entry in entries if _sort_value(entry.task, key_field) is not None]
        missing = [entry for entry in entries if _sort_value(entry.task, key_field) is None]
        present.sort(key=lambda entry: _sort_value(entry.task, key_field), reverse=not self.sort.ascending)
        return present + missing

    def sort_by(self, field_name: str) -> SortConfig:
        """Sort on a column; choosing the same column again flips the direction."""
        column = _COLUMNS_BY_FIELD.get(field_name)
        if column is None or not column.sortable:
            raise ValueError(f"Cannot sort by {field_name!r}")
        if self.sort is not None and self.sort.field == field_name:
            self.sort = SortConfig(field_name, not self.sort.ascending)
        else:
            self.sort = SortConfig(field_name, True)
        return self.sort

    def clear_sort(self) -> None:
        self.sort = None

    def set_grouping(self, enabled: bool) -> None:
        self.group_by_wbs = enabled

    def toggle_expansion(self, task_id: str) -> bool:
        return self.expansion.toggle(task_id)

    # --- Cells -------------------------------------------------------------

    def cell_state(self, task_id: str, field_name: str) -> str:
        if self.editing and self.editing.task_id == task_id and self.editing.field == field_name:
            return EDITING
        if (task_id, field_name) in self.errors:
            return ERROR
        return DISPLAY

    def error_for(self, task_id: str, field_name: str) -> Optional[str]:
        return self.errors.get((task_id, field_name))

    def display_value(self, task: Task, field_name: str) -> str:
        return format_value(task, field_name)

    def is_editable(self, field_name: str) -> bool:
        column = _COLUMNS_BY_FIELD.get(field_name)
        return bool(self.can_edit and column and column.editable)

    def begin_edit(self, task_id: str, field_name: str) -> Optional[EditingCell]:
        if not self.is_editable(field_name):
            return None
        task = self.project.get(task_id)
        if task is None:
            return None
        self.editing = EditingCell(task_id, field_name, edit_text(task, field_name))
        return self.editing

    def set_edit_text(self, text: str) -> None:
        if self.editing is not None:
            self.editing.text = text

    def cancel(self) -> None:
        """Escape: drop the pending text and any error on that cell."""
        if self.editing is None:
            return
        self.errors.pop((self.editing.task_id, self.editing.field), None)
        self.editing = None

    def commit(self) -> Optional[str]:
        """Enter: validate and apply the pending text; returns the error, if any.

        A rejected value leaves the task untouched and the cell back in display
        form with the error attached.
        """
        cell = self.editing
        if cell is None:
            return None
        self.editing = None
        task = self.project.get(cell.task_id)
        if task is None:
            return None
        key = (cell.task_id, cell.field)
        value = parse_input(cell.field, cell.text)
        error = validate(task, cell.field, value)
        if error is None and cell.field == "start_date":
            error = validate_dependency_start(task, value, self.project.tasks, self.project.links)
        if error is None:
            refused = self.apply_update(cell.task_id, {cell.field: value})
            error = next(iter(refused.values()), None) if refused else None
        if error is not None:
            logger.debug("Rejected %s edit on %s: %s", cell.field, cell.task_id, error)
            self.errors[key] = error
            return error
        self.errors.pop(key, None)
        return None


def group_by_wbs_prefix(entries: Sequence[VisibleTask]) -> List[TableRow]:
    """Bucket rows by WBS prefix; only multi-member buckets get a header."""
    buckets: Dict[str, List[VisibleTask]] = {}
    for entry in entries:
        prefix = wbs_prefix(entry.task.wbs_number) or NO_WBS_GROUP
        buckets.setdefault(prefix, []).append(entry)
    rows: List[TableRow] = []
    for prefix, members in buckets.items():
        if len(members) > 1:
            rows.append(GroupHeader(prefix, tuple(member.task for member in members)))
        rows.extend(TaskRow(member.task, member.level) for member in members)
    return rows


def _sort_value(task: Task, field_name: str) -> Any:
    if field_name == "duration":
        return task.duration
    if field_name == "wbs_number":
        return wbs_sort_key(task.wbs_number) if task.wbs_number else None
    value = getattr(task, field_name, None)
    if isinstance(value, str):
        return value.lower()
    return value


def format_value(task: Task, field_name: str) -> str:
    if field_name in ("start_date", "end_date"):
        return getattr(task, field_name).strftime(DATE_DISPLAY_FORMAT)
    if field_name == "duration":
        return f"{task.duration_days()} days"
    if field_name == "progress":
        return f"{_format_number(task.progress)}%"
    if field_name == "float_days":
        return f"{_format_number(round(task.float_days, 1))} days" if task.float_days > 0 else "-"
    value = getattr(task, field_name, None)
    return "" if value is None else str(value)


def edit_text(task: Task, field_name: str) -> str:
    """Text an input box is seeded with when editing starts."""
    value = getattr(task, field_name, None)
    if isinstance(value, datetime):
        return value.strftime(DATE_INPUT_FORMAT)
    if field_name == "progress":
        return _format_number(value)
    return "" if value is None else str(value)


def parse_input(field_name: str, text: str) -> Any:
    """Turn editor text into a field value; unparseable input passes through for the validator to reject."""
    text = text.strip() if field_name != "name" else text
    if field_name in ("start_date", "end_date"):
        try:
            return datetime.strptime(text, DATE_INPUT_FORMAT)
        except ValueError:
            return text
    if field_name == "progress":
        try:
            number = float(text)
        except ValueError:
            return text
        return int(number) if number.is_integer() else number
    if field_name in ("assigned_to", "wbs_number"):
        return text or None
    return text


def _format_number(value: float) -> str:
    number = float(value)
    return str(int(number)) if number.is_integer() else str(number)
