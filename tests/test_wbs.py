from datetime import datetime

from gantt_scheduler.models import Task
from gantt_scheduler.project import Project
from gantt_scheduler.wbs import WBS_PATTERN, apply_wbs_numbering, generate_wbs_numbering, wbs_prefix, wbs_sort_key


def _task(task_id: str, parent_id=None) -> Task:
    return Task(id=task_id, name=task_id, start_date=datetime(2024, 1, 1), end_date=datetime(2024, 1, 2), parent_id=parent_id)


def test_counter_runs_across_the_whole_tree() -> None:
    tasks = Project([_task("A"), _task("B", "A"), _task("D", "B"), _task("C", "A"), _task("E")]).tasks

    numbers = generate_wbs_numbering(tasks)

    assert numbers == {"A": "1", "B": "1.2", "D": "1.2.3", "C": "1.4", "E": "5"}
    assert all(WBS_PATTERN.match(label) for label in numbers.values())


def test_apply_writes_labels_onto_tasks() -> None:
    tasks = Project([_task("A"), _task("B", "A")]).tasks

    apply_wbs_numbering(tasks)

    assert [task.wbs_number for task in tasks] == ["1", "1.2"]


def test_numbering_is_stable_when_regenerated() -> None:
    tasks = Project([_task("A"), _task("B", "A"), _task("C")]).tasks

    assert generate_wbs_numbering(tasks) == generate_wbs_numbering(tasks)


def test_prefix_is_first_segment() -> None:
    assert wbs_prefix("1.2.3") == "1"
    assert wbs_prefix("4") == "4"
    assert wbs_prefix(None) is None
    assert wbs_prefix("") is None


def test_task_with_missing_parent_is_numbered_as_a_root() -> None:
    stray = _task("X", "gone")
    stray.wbs_number = "1"
    tasks = Project([_task("A"), stray]).tasks

    apply_wbs_numbering(tasks)

    labels = [task.wbs_number for task in tasks]
    assert labels == ["1", "2"]
    assert len(set(labels)) == len(labels)


def test_unreached_tasks_lose_stale_labels() -> None:
    looped = [_task("P", "Q"), _task("Q", "P")]
    looped[0].children, looped[1].children = ["Q"], ["P"]
    looped[0].wbs_number = "7"

    apply_wbs_numbering(looped)

    assert [task.wbs_number for task in looped] == [None, None]


def test_sort_key_orders_segments_numerically() -> None:
    assert sorted(["1.12", "1.2", "10", "2"], key=wbs_sort_key) == ["1.2", "1.12", "2", "10"]
