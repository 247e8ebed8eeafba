"""Field-level validation shared by drags, table edits and direct updates."""
from __future__ import annotations

import numbers
from dataclasses import replace
from datetime import datetime
from typing import Any, Dict, Mapping, Optional, Sequence

from .models import CONSTRAINT_TYPES, DAY, STATUSES, Link, Task
from .wbs import WBS_PATTERN


def validate(task: Task, field: str, value: Any) -> Optional[str]:
    """Return an error message for ``value`` in ``field``, or None when valid."""
    if field == "name":
        if value is None or not str(value).strip():
            return "Task name is required"
    elif field == "start_date":
        if not isinstance(value, datetime):
            return "Start date is not a valid date"
        if task.is_milestone:
            if value > task.end_date:
                return "Start date must not be after end date"
        elif value >= task.end_date:
            return "Start date must be before end date"
    elif field == "end_date":
        if not isinstance(value, datetime):
            return "End date is not a valid date"
        if task.is_milestone:
            if value < task.start_date:
                return "End date must not be before start date"
        elif value <= task.start_date:
            return "End date must be after start date"
    elif field == "progress":
        if isinstance(value, bool) or not isinstance(value, numbers.Real) or value != value:
            return "Progress must be between 0 and 100"
        if value < 0 or value > 100:
            return "Progress must be between 0 and 100"
    elif field == "wbs_number":
        if value and not WBS_PATTERN.match(str(value)):
            return "WBS number must be in format 1.2.3"
    elif field == "status":
        if value not in STATUSES:
            return f"Status must be one of: {', '.join(STATUSES)}"
    elif field == "constraint_type":
        if value not in CONSTRAINT_TYPES:
            return f"Constraint must be one of: {', '.join(CONSTRAINT_TYPES)}"
    return None


def validate_changes(task: Task, changes: Mapping[str, Any]) -> Dict[str, str]:
    """Validate several fields at once against the task as it would end up.

    Each field is checked with every other proposed change already applied,
    so a drag that moves both dates past the old end date is judged on the
    final start/end pair rather than on a half-applied one.
    """
    candidate = replace(task, **{name: value for name, value in changes.items() if hasattr(task, name)})
    errors: Dict[str, str] = {}
    for name, value in changes.items():
        message = validate(candidate, name, value)
        if message:
            errors[name] = message
    return errors


def validate_dependency_start(
    task: Task,
    proposed_start: datetime,
    tasks: Sequence[Task],
    links: Sequence[Link],
) -> Optional[str]:
    """Reject a start that precedes a predecessor's lag-adjusted end.

    Only explicit edits run this check; drags deliberately skip it.
    """
    tasks_by_id = {item.id: item for item in tasks}
    for link in links:
        if link.target_task_id != task.id:
            continue
        source = tasks_by_id.get(link.source_task_id)
        if source is None:
            continue
        earliest = source.end_date + link.lag * DAY
        if proposed_start < earliest:
            return f'Cannot start before dependency "{source.name}"'
    return None
