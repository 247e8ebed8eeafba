"""Runtime configuration and view options."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, replace
from datetime import datetime
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

ZOOM_PRESETS = {"Day": 1, "Week": 7, "Month": 30}
VIEWER_ROLE = "viewer"


def load_environment(dotenv_path: Optional[Path] = None) -> None:
    """Pull a ``.env`` file into the process environment if one exists."""
    load_dotenv(dotenv_path=dotenv_path)


def store_directory() -> Path:
    return Path(os.getenv("GANTT_STORE_DIR", str(Path.home() / ".gantt_scheduler"))).expanduser()


def project_id() -> str:
    return os.getenv("GANTT_PROJECT_ID", "demo-project")


def user_role() -> str:
    return os.getenv("GANTT_USER_ROLE", "editor")


def zoom_level() -> int:
    try:
        return max(1, int(os.getenv("GANTT_ZOOM_LEVEL", "7")))
    except ValueError:
        return 7


def log_level() -> int:
    name = os.getenv("GANTT_LOG_LEVEL", "INFO").upper()
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.INFO


@dataclass(frozen=True)
class ViewConfig:
    """Inputs the host supplies to the chart and the table."""

    window_start: Optional[datetime] = None
    window_end: Optional[datetime] = None
    zoom_level: int = 7
    show_gridlines: bool = True
    show_task_links: bool = True
    show_float: bool = True
    show_critical_path: bool = True
    critical_only: bool = False
    user_role: str = "editor"

    @property
    def can_edit(self) -> bool:
        return self.user_role != VIEWER_ROLE

    @property
    def zoom_label(self) -> str:
        for label, value in ZOOM_PRESETS.items():
            if value == self.zoom_level:
                return label
        return f"{self.zoom_level}x"

    def with_zoom(self, zoom: int) -> "ViewConfig":
        return replace(self, zoom_level=max(1, zoom))

    def with_window(self, start: datetime, end: datetime) -> "ViewConfig":
        if end <= start:
            raise ValueError("Window end must be after its start")
        return replace(self, window_start=start, window_end=end)

    @classmethod
    def from_environment(cls) -> "ViewConfig":
        return cls(zoom_level=zoom_level(), user_role=user_role())
