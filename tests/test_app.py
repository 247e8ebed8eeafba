from datetime import datetime
from pathlib import Path

from PyQt6.QtWidgets import QApplication

from gantt_scheduler.app import GanttCanvasWidget, MainWindow, TaskTableWidget
from gantt_scheduler.config import ViewConfig
from gantt_scheduler.models import Task
from gantt_scheduler.session import ScheduleSession
from gantt_scheduler.storage import CsvTaskStore
from gantt_scheduler.table import GroupHeader


def _session(tmp_path: Path, **config) -> ScheduleSession:
    store = CsvTaskStore(tmp_path)
    store.save_project(
        "alpha",
        [
            Task(id="a", name="Plan", start_date=datetime(2024, 1, 1), end_date=datetime(2024, 1, 5)),
            Task(id="b", name="Build", start_date=datetime(2024, 1, 6), end_date=datetime(2024, 1, 12), parent_id="a"),
            Task(id="c", name="Ship", start_date=datetime(2024, 1, 15), end_date=datetime(2024, 1, 15), is_milestone=True),
        ],
        [],
    )
    session = ScheduleSession(store, "alpha", ViewConfig(**config))
    session.load()
    return session


def test_table_lists_rows_and_groups(qapp: QApplication, tmp_path: Path) -> None:
    session = _session(tmp_path)
    table = TaskTableWidget(session)

    rows = session.table.rows()
    assert table.rowCount() == len(rows)
    assert isinstance(rows[0], GroupHeader)
    assert table.cell_at(0, 2) is None
    assert table.cell_at(1, 2) == ("a", "name")


def test_table_commit_routes_through_model(qapp: QApplication, tmp_path: Path) -> None:
    session = _session(tmp_path)
    table = TaskTableWidget(session)
    rejected = []
    table.edit_rejected.connect(rejected.append)

    session.table.begin_edit("a", "name")
    assert table.commit_edit("") == "Task name is required"
    session.table.begin_edit("a", "progress")
    assert table.commit_edit("40") is None

    assert rejected == ["Task name is required"]
    assert session.project.require("a").progress == 40
    assert CsvTaskStore(tmp_path).load_tasks("alpha")[0].progress == 40


def test_toggle_column_collapses_children(qapp: QApplication, tmp_path: Path) -> None:
    session = _session(tmp_path)
    table = TaskTableWidget(session)
    before = table.rowCount()

    table._handle_cell_clicked(1, 0)

    assert not session.expansion.is_expanded("a")
    assert table.rowCount() < before


def test_canvas_paints_current_schedule(qapp: QApplication, tmp_path: Path) -> None:
    session = _session(tmp_path, show_critical_path=True)
    canvas = GanttCanvasWidget(session)
    canvas.set_viewport_width(700)
    canvas.resize(700, 300)

    assert not canvas.grab().isNull()
    assert abs(canvas.minimumWidth() - 700) <= 1


def test_main_window_switches_zoom(qapp: QApplication, tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("GANTT_PROJECT_ID", "fresh")
    window = MainWindow(store=CsvTaskStore(tmp_path))
    try:
        assert [task.id for task in window.session.project.tasks][:2] == ["task-1", "task-2"]
        window.set_zoom(30)
        assert window.session.config.zoom_level == 30
        assert window.zoom_actions[30].isChecked()
    finally:
        window._executor.shutdown(wait=True)
