import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from pathlib import Path

from gantt_scheduler.models import Link, Task
from gantt_scheduler.storage import CsvTaskStore, read_tasks, write_tasks


def _tasks():
    return [
        Task(
            id="a",
            name="Design, phase 1",
            start_date=datetime(2024, 1, 1),
            end_date=datetime(2024, 1, 5, 12),
            progress=50,
            float_days=2.5,
            children=["b"],
            assigned_to="Sam",
            status="in-progress",
            wbs_number="1",
        ),
        Task(
            id="b",
            name="Review",
            start_date=datetime(2024, 1, 5),
            end_date=datetime(2024, 1, 5),
            is_milestone=True,
            parent_id="a",
            constraint_type="MFO",
            constraint_date=datetime(2024, 1, 5),
            wbs_number="1.2",
        ),
    ]


def test_save_and_load_roundtrip(tmp_path: Path) -> None:
    store = CsvTaskStore(tmp_path)
    links = [Link(id="l1", source_task_id="a", target_task_id="b", type="start-to-start", lag=1.5)]

    store.save_project("alpha", _tasks(), links)

    assert store.load_tasks("alpha") == _tasks()
    assert store.load_links("alpha") == links


def test_missing_project_falls_back_to_demo_data(tmp_path: Path, caplog) -> None:
    store = CsvTaskStore(tmp_path)

    with caplog.at_level(logging.WARNING):
        tasks = store.load_tasks("nothing-here")
        links = store.load_links("nothing-here")

    assert [task.id for task in tasks] == [f"task-{i}" for i in range(1, 7)]
    assert {link.target_task_id for link in links} <= {task.id for task in tasks}
    assert "using demo data" in caplog.text


def test_file_for_another_project_is_rejected(tmp_path: Path) -> None:
    write_tasks(tmp_path / "alpha.tasks.csv", "beta", _tasks())

    tasks = CsvTaskStore(tmp_path).load_tasks("alpha")

    assert tasks[0].id == "task-1"


def test_update_task_writes_through(tmp_path: Path) -> None:
    store = CsvTaskStore(tmp_path)
    store.save_project("alpha", _tasks(), [])

    result = store.update_task("a", {"name": "Design", "progress": 80})

    assert result.success
    saved = read_tasks(store.tasks_path("alpha"), "alpha")
    assert (saved[0].name, saved[0].progress) == ("Design", 80)


def test_update_task_finds_owner_without_prior_load(tmp_path: Path) -> None:
    CsvTaskStore(tmp_path).save_project("alpha", _tasks(), [])

    assert CsvTaskStore(tmp_path).update_task("b", {"assigned_to": "Kim"}).success


def test_update_task_reports_failures(tmp_path: Path) -> None:
    store = CsvTaskStore(tmp_path)
    store.save_project("alpha", _tasks(), [])

    assert store.update_task("zzz", {"name": "x"}).errors == ["Task not found"]
    assert store.update_task("a", {"name": ""}).errors == ["Task name is required"]
    assert read_tasks(store.tasks_path("alpha"), "alpha")[0].name == "Design, phase 1"


def test_batch_update_collects_errors_per_task(tmp_path: Path) -> None:
    store = CsvTaskStore(tmp_path)
    store.save_project("alpha", _tasks(), [])

    result = store.batch_update_tasks([("a", {"progress": 10}), ("ghost", {"progress": 20})])

    assert not result.success
    assert result.errors == ["Task ghost: Task not found"]
    assert read_tasks(store.tasks_path("alpha"), "alpha")[0].progress == 10


def test_save_wbs_numbering(tmp_path: Path) -> None:
    store = CsvTaskStore(tmp_path)
    store.save_project("alpha", _tasks(), [])
    renumbered = _tasks()
    renumbered[1].wbs_number = "1.1"

    assert store.save_wbs_numbering(renumbered).success
    assert read_tasks(store.tasks_path("alpha"), "alpha")[1].wbs_number == "1.1"


def test_demo_fallback_is_stored_so_edits_persist(tmp_path: Path) -> None:
    store = CsvTaskStore(tmp_path)
    store.load_tasks("fresh")

    result = CsvTaskStore(tmp_path).update_task("task-2", {"progress": 80})

    assert result.success
    assert store.load_links("fresh")[0].id == "link-1"
    assert read_tasks(store.tasks_path("fresh"), "fresh")[1].progress == 80


def test_malformed_file_is_not_overwritten_by_demo_data(tmp_path: Path) -> None:
    path = tmp_path / "broken.tasks.csv"
    path.write_text("not,a,project\n", encoding="utf-8")

    CsvTaskStore(tmp_path).load_tasks("broken")

    assert path.read_text(encoding="utf-8") == "not,a,project\n"


def test_unknown_task_lookup_is_cached_until_next_load(tmp_path: Path) -> None:
    store = CsvTaskStore(tmp_path)
    store.save_project("alpha", _tasks(), [])
    assert store.update_task("late", {"progress": 5}).errors == ["Task not found"]

    extra = Task(id="late", name="Late", start_date=datetime(2024, 2, 1), end_date=datetime(2024, 2, 3))
    write_tasks(tmp_path / "beta.tasks.csv", "beta", [extra])
    assert store.update_task("late", {"progress": 5}).errors == ["Task not found"]

    store.load_tasks("beta")
    assert store.update_task("late", {"progress": 5}).success


def test_concurrent_saves_and_updates_keep_the_file_readable(tmp_path: Path) -> None:
    store = CsvTaskStore(tmp_path)
    store.save_project("alpha", _tasks(), [])

    def update(round_number: int):
        return store.update_task("a", {"progress": round_number % 100})

    def save(round_number: int):
        store.save_project("alpha", _tasks(), [])
        return store.load_tasks("alpha")

    with ThreadPoolExecutor(max_workers=4) as pool:
        updates = [pool.submit(update, n) for n in range(40)]
        loads = [pool.submit(save, n) for n in range(40)]
        results = [future.result() for future in updates]
        loaded = [future.result() for future in loads]

    assert all(result.success for result in results)
    assert all([task.id for task in tasks] == ["a", "b"] for tasks in loaded)
    assert [task.id for task in read_tasks(store.tasks_path("alpha"), "alpha")] == ["a", "b"]
