import logging
from datetime import datetime
from pathlib import Path

import pytest

from gantt_scheduler import config
from gantt_scheduler.config import ViewConfig


def test_environment_overrides(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("GANTT_STORE_DIR", str(tmp_path))
    monkeypatch.setenv("GANTT_ZOOM_LEVEL", "30")
    monkeypatch.setenv("GANTT_USER_ROLE", "viewer")
    monkeypatch.setenv("GANTT_LOG_LEVEL", "debug")

    view = ViewConfig.from_environment()

    assert config.store_directory() == tmp_path
    assert view.zoom_level == 30
    assert view.zoom_label == "Month"
    assert not view.can_edit
    assert config.log_level() == logging.DEBUG


def test_bad_values_fall_back_to_defaults(monkeypatch) -> None:
    monkeypatch.setenv("GANTT_ZOOM_LEVEL", "wide")
    monkeypatch.setenv("GANTT_LOG_LEVEL", "loud")

    assert config.zoom_level() == 7
    assert config.log_level() == logging.INFO


def test_dotenv_file_is_loaded(monkeypatch, tmp_path: Path) -> None:
    # Registers the variable with monkeypatch so the value loaded below is undone.
    monkeypatch.setenv("GANTT_PROJECT_ID", "placeholder")
    monkeypatch.delenv("GANTT_PROJECT_ID")
    env_file = tmp_path / ".env"
    env_file.write_text("GANTT_PROJECT_ID=from-file\n", encoding="utf-8")

    config.load_environment(env_file)

    assert config.project_id() == "from-file"


def test_window_must_be_ordered() -> None:
    start = datetime(2024, 1, 2)

    with pytest.raises(ValueError):
        ViewConfig().with_window(start, start)
    assert ViewConfig().with_window(start, datetime(2024, 2, 1)).window_start == start
