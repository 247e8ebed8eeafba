"""Work breakdown structure numbering."""
from __future__ import annotations

import re
from typing import Dict, List, Sequence, Tuple

from .hierarchy import root_tasks
from .models import Task

WBS_PATTERN = re.compile(r"^\d+(\.\d+)*$")


def generate_wbs_numbering(tasks: Sequence[Task]) -> Dict[str, str]:
    """Map task ids to dotted WBS labels.

    The walk is pre-order over root tasks (no parent, or a parent that is not
    in ``tasks``) in list order and uses a single counter for the whole tree,
    so a tree ``A -> [B -> [D], C]`` is numbered ``1, 1.2, 1.2.3, 1.4``; the
    counter is never reset per sibling group.
    """
    by_id = {task.id: task for task in tasks}
    numbers: Dict[str, str] = {}
    counter = 1

    def assign(level_tasks: List[Task], parent_label: str) -> None:
        nonlocal counter
        for task in level_tasks:
            if task.id in numbers:
                continue
            label = f"{parent_label}.{counter}" if parent_label else str(counter)
            numbers[task.id] = label
            counter += 1
            children = [by_id[child_id] for child_id in task.children if child_id in by_id]
            if children:
                assign(children, label)

    assign(root_tasks(tasks), "")
    return numbers


def apply_wbs_numbering(tasks: Sequence[Task]) -> Dict[str, str]:
    """Regenerate the numbering and write it onto every task.

    Tasks the walk never reaches (members of a parent cycle) lose their label.
    """
    numbers = generate_wbs_numbering(tasks)
    for task in tasks:
        task.wbs_number = numbers.get(task.id)
    return numbers


def wbs_prefix(wbs_number: str | None) -> str | None:
    """First dot segment of a WBS label, or None when the task has none."""
    if not wbs_number:
        return None
    return wbs_number.split(".")[0]


def wbs_sort_key(wbs_number: str) -> Tuple[int, ...]:
    """Numeric ordering for labels, so ``1.2`` sorts before ``1.12``."""
    return tuple(int(part) if part.isdigit() else 0 for part in wbs_number.split("."))
