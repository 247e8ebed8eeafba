"""Glue between the model, the interaction state and the storage backend."""
from __future__ import annotations

import logging
from concurrent.futures import Executor, Future
from dataclasses import replace
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from .config import ViewConfig
from .critical_path import ScheduleAnalysis, analyze, apply_analysis, refresh_constraint_flags
from .drag import DragController, Proposal
from .hierarchy import ExpansionState, VisibleTask, assign_levels, flatten_visible
from .models import EDITABLE_FIELDS
from .project import Project
from .render import LinkPath, RenderRow, build_link_paths, build_render_rows
from .storage import TaskStore, UpdateResult
from .table import TaskTableModel
from .timescale import TimeScale, project_window
from .validation import validate_changes
from .wbs import apply_wbs_numbering

logger = logging.getLogger(__name__)

TaskSelectCallback = Callable[[str], None]
TaskUpdateCallback = Callable[[str, Dict[str, Any]], None]
PersistCallback = Callable[[str, UpdateResult], None]

DEFAULT_TIMELINE_WIDTH = 900


class ScheduleSession:
    """One open project: the model plus the state shared by chart and table.

    Every edit, whether it comes from a drag, the table or a direct call,
    is validated, applied to the in-memory model, announced through
    ``on_task_update`` and then saved without waiting for the result. A failed
    save is logged and reported through ``on_persist_result``; the in-memory
    change is kept and nothing is retried.
    """

    def __init__(
        self,
        store: TaskStore,
        project_id: str,
        config: Optional[ViewConfig] = None,
        *,
        on_task_select: Optional[TaskSelectCallback] = None,
        on_task_update: Optional[TaskUpdateCallback] = None,
        on_persist_result: Optional[PersistCallback] = None,
        executor: Optional[Executor] = None,
    ) -> None:
        self.store = store
        self.project_id = project_id
        self.config = config or ViewConfig()
        self.on_task_select = on_task_select
        self.on_task_update = on_task_update
        self.on_persist_result = on_persist_result
        self.executor = executor
        self.project = Project()
        self.expansion = ExpansionState()
        self.drag = DragController()
        self.analysis = ScheduleAnalysis()
        self.selected_task_id: Optional[str] = None
        self.timeline_width: float = DEFAULT_TIMELINE_WIDTH
        self._drag_scale: Optional[TimeScale] = None
        self.table = TaskTableModel(
            project=self.project,
            expansion=self.expansion,
            apply_update=self.update_task,
            can_edit=self.config.can_edit,
        )

    # --- Lifecycle ---------------------------------------------------------

    def load(self) -> Project:
        """Fetch tasks and links, number them, and expand every parent."""
        tasks = self.store.load_tasks(self.project_id)
        links = self.store.load_links(self.project_id)
        self.set_project(Project(tasks, links))
        self.expansion.collapse_all()
        self.expansion.expand_all(self.project.tasks)
        logger.info("Loaded project %s: %d tasks, %d links", self.project_id, len(tasks), len(links))
        return self.project

    def set_project(self, project: Project) -> None:
        self.project = project
        self.table.project = project
        self.selected_task_id = None
        self.end_drag()
        apply_wbs_numbering(project.tasks)
        self.recalculate()

    def recalculate(self) -> ScheduleAnalysis:
        """Refresh levels, float, critical flags and constraint flags."""
        tasks = self.project.tasks
        assign_levels(tasks)
        self.analysis = analyze(tasks, self.project.links)
        apply_analysis(tasks, self.analysis)
        refresh_constraint_flags(tasks)
        return self.analysis

    @property
    def can_edit(self) -> bool:
        return self.config.can_edit

    def set_config(self, config: ViewConfig) -> None:
        self.config = config
        self.table.can_edit = config.can_edit

    # --- Derived views -----------------------------------------------------

    def visible_tasks(self) -> List[VisibleTask]:
        return flatten_visible(self.project.tasks, self.expansion)

    def window(self) -> Tuple[datetime, datetime]:
        if self.config.window_start and self.config.window_end:
            return self.config.window_start, self.config.window_end
        return project_window(self.project.tasks)

    def time_scale(self) -> TimeScale:
        # Frozen for the duration of a drag.
        if self._drag_scale is not None:
            return self._drag_scale
        start, end = self.window()
        return TimeScale(start=start, end=end, width=self.timeline_width, zoom_level=self.config.zoom_level)

    def render_rows(self) -> List[RenderRow]:
        return build_render_rows(self.visible_tasks(), self.time_scale(), self.config, self.expansion)

    def link_paths(self, rows: Optional[Sequence[RenderRow]] = None) -> List[LinkPath]:
        rows = self.render_rows() if rows is None else rows
        return build_link_paths(rows, self.project.resolved_links(), self.config)

    # --- User actions ------------------------------------------------------

    def select_task(self, task_id: Optional[str]) -> None:
        self.selected_task_id = task_id
        if task_id is not None and self.on_task_select:
            self.on_task_select(task_id)

    def toggle_expansion(self, task_id: str) -> bool:
        return self.expansion.toggle(task_id)

    def begin_drag(self, task_id: str, mode: str, x: float) -> bool:
        task = self.project.get(task_id)
        if task is None:
            return False
        started = self.drag.pointer_down(task, mode, x, can_edit=self.can_edit)
        if started:
            self._drag_scale = self.time_scale()
        return started

    def drag_to(self, x: float) -> Optional[Proposal]:
        """Apply the proposal for the current pointer position, if any."""
        proposal = self.drag.pointer_move(x, self.time_scale())
        if proposal is None:
            return None
        errors = self.apply_drag(proposal)
        return None if errors else proposal

    def end_drag(self) -> None:
        self.drag.pointer_up()
        self._drag_scale = None

    def apply_drag(self, proposal: Proposal) -> Dict[str, str]:
        """Drag updates skip the predecessor check that table edits run."""
        return self.update_task(proposal.task_id, proposal.as_changes())

    def update_task(self, task_id: str, changes: Mapping[str, Any]) -> Dict[str, str]:
        """Validate, apply in memory, notify, then save in the background.

        Returns field -> message for rejected changes; the model is untouched
        when anything is rejected.
        """
        errors = self._rejections(task_id, changes)
        if errors:
            return errors
        applied = dict(changes)
        self.project.apply_changes(task_id, applied)
        self.recalculate()
        if self.on_task_update:
            self.on_task_update(task_id, applied)
        self._persist(task_id, lambda: self.store.update_task(task_id, applied))
        return {}

    def regenerate_wbs(self) -> Dict[str, str]:
        numbers = apply_wbs_numbering(self.project.tasks)
        snapshot = [replace(task, children=list(task.children)) for task in self.project.tasks]
        self._persist(self.project_id, lambda: self.store.save_wbs_numbering(snapshot))
        return numbers

    def batch_update(self, updates: Sequence[Tuple[str, Mapping[str, Any]]]) -> Dict[str, Dict[str, str]]:
        """Apply several edits; one rejected task does not stop the others."""
        rejected: Dict[str, Dict[str, str]] = {}
        accepted: List[Tuple[str, Dict[str, Any]]] = []
        for task_id, changes in updates:
            errors = self._rejections(task_id, changes)
            if errors:
                rejected[task_id] = errors
                continue
            self.project.apply_changes(task_id, changes)
            accepted.append((task_id, dict(changes)))
        if accepted:
            self.recalculate()
            for task_id, changes in accepted:
                if self.on_task_update:
                    self.on_task_update(task_id, changes)
            self._persist(self.project_id, lambda: self.store.batch_update_tasks(accepted))
        return rejected

    def reparent(self, task_id: str, new_parent_id: Optional[str]) -> None:
        self.project.reparent(task_id, new_parent_id)
        self.recalculate()

    def _rejections(self, task_id: str, changes: Mapping[str, Any]) -> Dict[str, str]:
        task = self.project.get(task_id)
        if task is None:
            return {"id": f"Unknown task: {task_id}"}
        if not self.can_edit:
            return {name: "Editing is not allowed for viewers" for name in changes}
        locked = {name: "Field is not editable" for name in changes if name not in EDITABLE_FIELDS}
        return locked or validate_changes(task, changes)

    # --- Persistence -------------------------------------------------------

    def _persist(self, key: str, save: Callable[[], UpdateResult]) -> Optional[Future]:
        if self.executor is None:
            self._report(key, _run_save(key, save))
            return None
        future = self.executor.submit(_run_save, key, save)
        future.add_done_callback(lambda done: self._report(key, done.result()))
        return future

    def _report(self, key: str, result: UpdateResult) -> None:
        if not result.success:
            logger.warning("Save failed for %s: %s", key, "; ".join(result.errors) or "unknown error")
        if self.on_persist_result:
            self.on_persist_result(key, result)


def _run_save(key: str, save: Callable[[], UpdateResult]) -> UpdateResult:
    try:
        return save()
    except Exception as exc:
        logger.exception("Save raised for %s", key)
        return UpdateResult(False, [str(exc) or exc.__class__.__name__])
