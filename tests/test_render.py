from datetime import datetime

import pytest

from gantt_scheduler.config import ViewConfig
from gantt_scheduler.drag import MOVE, RESIZE_END, RESIZE_START
from gantt_scheduler.hierarchy import VisibleTask
from gantt_scheduler.models import Link, Task
from gantt_scheduler.render import build_link_paths, build_render_rows, hit_test, row_at
from gantt_scheduler.timescale import TimeScale

SCALE = TimeScale(start=datetime(2024, 1, 1), end=datetime(2024, 1, 31), width=900)


def _visible():
    bar = Task(id="bar", name="Bar", start_date=datetime(2024, 1, 3), end_date=datetime(2024, 1, 10), progress=150, float_days=2, is_critical=True)
    gate = Task(id="gate", name="Gate", start_date=datetime(2024, 1, 15), end_date=datetime(2024, 1, 15), is_milestone=True)
    return [VisibleTask(bar, 0), VisibleTask(gate, 1)]


def test_rows_are_positioned_on_the_scale() -> None:
    bar, gate = build_render_rows(_visible(), SCALE, ViewConfig())

    assert (bar.x_start, bar.x_end) == (pytest.approx(60), pytest.approx(270))
    assert bar.float_end_x == pytest.approx(330)
    assert bar.progress_fraction == 1.0
    assert gate.index == 1 and gate.level == 1


def test_hidden_options_suppress_decorations() -> None:
    options = ViewConfig(show_float=False, show_critical_path=False)

    bar, _ = build_render_rows(_visible(), SCALE, options)

    assert bar.float_end_x is None
    assert not bar.is_critical


def test_critical_only_hides_other_rows() -> None:
    bar, gate = build_render_rows(_visible(), SCALE, ViewConfig(critical_only=True))

    assert not bar.hidden
    assert gate.hidden
    assert hit_test(gate, gate.x_start) is None


def test_hit_test_finds_handles_and_body() -> None:
    bar, gate = build_render_rows(_visible(), SCALE, ViewConfig())

    assert hit_test(bar, 62) == RESIZE_START
    assert hit_test(bar, 268) == RESIZE_END
    assert hit_test(bar, 150) == MOVE
    assert hit_test(bar, 400) is None
    assert hit_test(bar, 62, can_edit=False) == MOVE
    assert hit_test(gate, gate.x_start + 5) == MOVE


def test_links_skip_invisible_endpoints() -> None:
    rows = build_render_rows(_visible(), SCALE, ViewConfig())
    links = [
        Link(id="ok", source_task_id="bar", target_task_id="gate"),
        Link(id="hidden", source_task_id="bar", target_task_id="collapsed-child"),
    ]

    paths = build_link_paths(rows, links, ViewConfig())

    assert [path.link_id for path in paths] == ["ok"]
    assert paths[0].x1 == pytest.approx(270)
    assert paths[0].source_row == 0 and paths[0].target_row == 1
    assert build_link_paths(rows, links, ViewConfig(show_task_links=False)) == []


def test_row_at_maps_y_to_row() -> None:
    rows = build_render_rows(_visible(), SCALE, ViewConfig())

    assert row_at(rows, 30, row_height=40, header_height=60) is None
    assert row_at(rows, 70, row_height=40, header_height=60).task_id == "bar"
    assert row_at(rows, 119, row_height=40, header_height=60).task_id == "gate"
    assert row_at(rows, 141, row_height=40, header_height=60) is None
