from datetime import datetime

import pytest

from gantt_scheduler.models import EDITABLE_FIELDS, Link, Task
from gantt_scheduler.validation import validate, validate_changes, validate_dependency_start


def _task(**extra) -> Task:
    return Task(id="t", name="Build", start_date=datetime(2024, 1, 3), end_date=datetime(2024, 1, 10), **extra)


@pytest.mark.parametrize(
    "field, value, message",
    [
        ("name", "   ", "Task name is required"),
        ("start_date", datetime(2024, 1, 10), "Start date must be before end date"),
        ("end_date", datetime(2024, 1, 2), "End date must be after start date"),
        ("start_date", "soon", "Start date is not a valid date"),
        ("progress", 101, "Progress must be between 0 and 100"),
        ("progress", -1, "Progress must be between 0 and 100"),
        ("progress", True, "Progress must be between 0 and 100"),
        ("progress", float("nan"), "Progress must be between 0 and 100"),
        ("wbs_number", "1.a", "WBS number must be in format 1.2.3"),
    ],
)
def test_invalid_values_are_reported(field: str, value, message: str) -> None:
    assert validate(_task(), field, value) == message


def test_enumerated_fields_list_allowed_values() -> None:
    assert validate(_task(), "status", "paused").startswith("Status must be one of: not-started")
    assert validate(_task(), "constraint_type", "ALAP").startswith("Constraint must be one of: none")


def test_current_values_always_pass() -> None:
    task = _task(progress=40, wbs_number="1.2", assigned_to="Sam")

    for field in EDITABLE_FIELDS:
        assert validate(task, field, getattr(task, field)) is None


def test_milestone_may_start_and_end_on_the_same_day() -> None:
    milestone = Task(id="m", name="Done", start_date=datetime(2024, 1, 10), end_date=datetime(2024, 1, 10), is_milestone=True)

    assert validate(milestone, "start_date", milestone.start_date) is None
    assert validate(milestone, "end_date", datetime(2024, 1, 9)) == "End date must not be before start date"


def test_changes_are_judged_together() -> None:
    changes = {"start_date": datetime(2024, 1, 20), "end_date": datetime(2024, 1, 25)}

    assert validate_changes(_task(), changes) == {}
    assert validate_changes(_task(), {"start_date": datetime(2024, 1, 20)}) == {
        "start_date": "Start date must be before end date"
    }


def test_start_before_predecessor_end_is_rejected() -> None:
    design = Task(id="d", name="Design", start_date=datetime(2024, 1, 1), end_date=datetime(2024, 1, 5))
    build = _task()
    links = [Link(id="l", source_task_id="d", target_task_id="t", lag=2)]

    message = validate_dependency_start(build, datetime(2024, 1, 6), [design, build], links)

    assert message == 'Cannot start before dependency "Design"'
    assert validate_dependency_start(build, datetime(2024, 1, 7), [design, build], links) is None
