from datetime import datetime, timedelta

import pytest

from gantt_scheduler.timescale import MONTH_VIEW, TimeScale, project_window


def _scale(zoom: int = 7) -> TimeScale:
    return TimeScale(start=datetime(2024, 1, 1), end=datetime(2024, 1, 31), width=900, zoom_level=zoom)


def test_week_zoom_fits_window_into_width() -> None:
    scale = _scale()

    assert scale.total_days == 30
    assert scale.pixels_per_day == pytest.approx(30)
    assert scale.date_to_pixel(datetime(2024, 1, 11)) == pytest.approx(300)
    assert scale.total_width == pytest.approx(900)


def test_other_zooms_scale_relative_to_week() -> None:
    assert _scale(MONTH_VIEW).pixels_per_day == pytest.approx(30 * 30 / 7)
    assert _scale(1).pixels_per_day == pytest.approx(30 / 7)


def test_pixel_and_date_conversions_are_inverse() -> None:
    scale = _scale(1)
    date = datetime(2024, 1, 17, 6)

    assert scale.pixel_to_date(scale.date_to_pixel(date)) == date
    assert scale.date_to_pixel(scale.pixel_to_date(123.0)) == pytest.approx(123.0)


def test_partial_days_count_as_whole_days() -> None:
    scale = TimeScale(start=datetime(2024, 1, 1), end=datetime(2024, 1, 2, 12), width=100)

    assert scale.total_days == 2


def test_invalid_width_or_zoom_is_rejected() -> None:
    with pytest.raises(ValueError):
        TimeScale(start=datetime(2024, 1, 1), end=datetime(2024, 1, 2), width=0)
    with pytest.raises(ValueError):
        TimeScale(start=datetime(2024, 1, 1), end=datetime(2024, 1, 2), width=10, zoom_level=0)


def test_week_grid_marks_sundays_as_major() -> None:
    lines = _scale().time_grid()

    assert len(lines) == 31
    majors = [line.date for line in lines if line.is_major]
    assert majors[0] == datetime(2024, 1, 7)
    assert all(date.weekday() == 6 for date in majors)


def test_month_grid_uses_weekly_lines() -> None:
    lines = _scale(MONTH_VIEW).time_grid()

    assert [line.date.day for line in lines] == [1, 8, 15, 22, 29]
    assert [line.is_major for line in lines] == [True, False, False, False, False]


def test_empty_project_window_starts_now() -> None:
    now = datetime(2024, 5, 1)

    assert project_window([], now=now) == (now, now + timedelta(days=30))
