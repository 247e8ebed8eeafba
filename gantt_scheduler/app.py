"""Main PyQt application entry point."""
from __future__ import annotations

import logging
import math
import sys
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from typing import List, Optional, Tuple

from PyQt6.QtCore import QObject, Qt, QTimer, pyqtSignal
from PyQt6.QtGui import QAction, QActionGroup, QBrush, QCloseEvent, QColor, QFont, QKeySequence, QMouseEvent, QPainter, QPaintEvent, QResizeEvent
from PyQt6.QtWidgets import (
    QAbstractItemDelegate,
    QAbstractItemView,
    QApplication,
    QFileDialog,
    QHeaderView,
    QInputDialog,
    QLineEdit,
    QMainWindow,
    QMessageBox,
    QScrollArea,
    QSplitter,
    QStyledItemDelegate,
    QTableWidget,
    QTableWidgetItem,
    QWidget,
)

from . import config
from .config import ZOOM_PRESETS, ViewConfig
from .exporters import export_as_csv, export_as_pdf
from .painting import ChartGeometry, paint_chart
from .drag import RESIZE_END, RESIZE_START
from .render import hit_test, row_at
from .session import ScheduleSession
from .storage import CsvTaskStore, UpdateResult
from .table import COLUMNS, ERROR, GroupHeader, TaskRow

logger = logging.getLogger(__name__)

ROW_HEIGHT = 40
HEADER_HEIGHT = 60
_TOGGLE_COLUMN_WIDTH = 28
_ERROR_BACKGROUND = QColor("#fee2e2")
_GROUP_BACKGROUND = QColor("#eef2ff")
_CRITICAL_TEXT = QColor("#b91c1c")


class GanttCanvasWidget(QWidget):
    """Timeline surface: paints the session's rows and turns mouse input into drags."""

    task_selected = pyqtSignal(str)
    schedule_changed = pyqtSignal()

    def __init__(self, session: ScheduleSession, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self.session = session
        self.setMouseTracking(True)
        self.refresh_geometry()

    def geometry_for_rows(self, row_count: int) -> ChartGeometry:
        return ChartGeometry(
            origin_x=0,
            header_height=HEADER_HEIGHT,
            row_height=ROW_HEIGHT,
            bottom=max(self.height(), HEADER_HEIGHT + row_count * ROW_HEIGHT),
        )

    def refresh_geometry(self) -> None:
        """Size the widget so every visible row and the whole window fit."""
        rows = len(self.session.visible_tasks())
        self.setMinimumHeight(HEADER_HEIGHT + max(1, rows) * ROW_HEIGHT)
        self.setMinimumWidth(math.ceil(self.session.time_scale().total_width))
        self.update()

    def set_viewport_width(self, width: int) -> None:
        """Week zoom fits the window into the visible width; other zooms scale from it."""
        self.session.timeline_width = max(1, width)
        self.refresh_geometry()

    def paintEvent(self, event: QPaintEvent) -> None:  # type: ignore[override]
        painter = QPainter(self)
        try:
            painter.fillRect(self.rect(), QColor("white"))
            rows = self.session.render_rows()
            paths = self.session.link_paths(rows)
            paint_chart(
                painter,
                self.session.time_scale(),
                rows,
                paths,
                self.geometry_for_rows(len(rows)),
                self.session.config,
                self.session.selected_task_id,
            )
        finally:
            painter.end()

    # Drag handling -----------------------------------------------------
    def mousePressEvent(self, event: QMouseEvent) -> None:  # type: ignore[override]
        if event.button() == Qt.MouseButton.LeftButton:
            x = event.position().x()
            row = row_at(self.session.render_rows(), event.position().y(), ROW_HEIGHT, HEADER_HEIGHT)
            if row is not None and not row.hidden:
                self.session.select_task(row.task_id)
                self.task_selected.emit(row.task_id)
                mode = hit_test(row, x, can_edit=self.session.can_edit)
                if mode is not None:
                    self.session.begin_drag(row.task_id, mode, x)
                self.update()
        super().mousePressEvent(event)

    def mouseMoveEvent(self, event: QMouseEvent) -> None:  # type: ignore[override]
        x = event.position().x()
        if self.session.drag.is_dragging:
            if self.session.drag_to(x) is not None:
                self.schedule_changed.emit()
                self.update()
        else:
            self._update_cursor(x, event.position().y())
        super().mouseMoveEvent(event)

    def mouseReleaseEvent(self, event: QMouseEvent) -> None:  # type: ignore[override]
        if self.session.drag.is_dragging:
            self.session.end_drag()
            self.schedule_changed.emit()
            self.update()
        super().mouseReleaseEvent(event)

    def _update_cursor(self, x: float, y: float) -> None:
        row = row_at(self.session.render_rows(), y, ROW_HEIGHT, HEADER_HEIGHT)
        mode = hit_test(row, x, can_edit=self.session.can_edit) if row is not None else None
        if mode in (RESIZE_START, RESIZE_END):
            self.setCursor(Qt.CursorShape.SizeHorCursor)
        elif mode is not None and self.session.can_edit:
            self.setCursor(Qt.CursorShape.OpenHandCursor)
        else:
            self.unsetCursor()


class _CellEditDelegate(QStyledItemDelegate):
    """Routes the table's inline editors through ``TaskTableModel``.

    Enter calls ``setModelData`` (commit); Escape only closes the editor with
    a revert hint (cancel), so the model never sees the discarded text.
    """

    def __init__(self, table: "TaskTableWidget") -> None:
        super().__init__(table)
        self.table = table
        self.closeEditor.connect(self._handle_close)

    def createEditor(self, parent, option, index):  # type: ignore[override]
        return QLineEdit(parent)

    def setEditorData(self, editor, index) -> None:  # type: ignore[override]
        cell = self.table.cell_at(index.row(), index.column())
        editing = self.table.table_model.begin_edit(*cell) if cell else None
        editor.setText(editing.text if editing else "")

    def setModelData(self, editor, model, index) -> None:  # type: ignore[override]
        self.table.commit_edit(editor.text())

    def _handle_close(self, editor, hint) -> None:
        if hint == QAbstractItemDelegate.EndEditHint.RevertModelCache:
            self.table.table_model.cancel()


class TaskTableWidget(QTableWidget):
    """Sortable, WBS-grouped task grid that shares the chart's expansion state.

    Column 0 holds the expand/collapse toggle; the remaining columns follow
    ``table.COLUMNS``. Group header rows are read-only.
    """

    tasks_updated = pyqtSignal()
    task_selected = pyqtSignal(str)
    expansion_toggled = pyqtSignal(str)
    edit_rejected = pyqtSignal(str)

    def __init__(self, session: ScheduleSession, parent: Optional[QWidget] = None) -> None:
        super().__init__(0, len(COLUMNS) + 1, parent)
        self.session = session
        self._row_cells: List[Optional[str]] = []
        self._setup_table()
        self.refresh()

    @property
    def table_model(self):
        return self.session.table

    def _setup_table(self) -> None:
        self.setHorizontalHeaderLabels([""] + [column.title for column in COLUMNS])
        self.setSelectionBehavior(QAbstractItemView.SelectionBehavior.SelectRows)
        self.setSelectionMode(QAbstractItemView.SelectionMode.SingleSelection)
        self.setEditTriggers(
            QAbstractItemView.EditTrigger.DoubleClicked
            | QAbstractItemView.EditTrigger.EditKeyPressed
            | QAbstractItemView.EditTrigger.SelectedClicked
        )
        self.setItemDelegate(_CellEditDelegate(self))
        self.verticalHeader().setVisible(False)
        self.verticalHeader().setDefaultSectionSize(ROW_HEIGHT)
        header = self.horizontalHeader()
        header.setFixedHeight(HEADER_HEIGHT)
        header.setSectionsClickable(True)
        header.sectionClicked.connect(self._handle_header_clicked)
        header.setSectionResizeMode(0, QHeaderView.ResizeMode.Fixed)
        self.setColumnWidth(0, _TOGGLE_COLUMN_WIDTH)
        self.cellClicked.connect(self._handle_cell_clicked)

    # --- Row lifecycle helpers -------------------------------------------------

    def refresh(self) -> None:
        """Rebuild every row from the table model."""
        self.setRowCount(0)
        self._row_cells = []
        for entry in self.table_model.rows():
            row = self.rowCount()
            self.insertRow(row)
            if isinstance(entry, GroupHeader):
                self._fill_group_row(row, entry)
                self._row_cells.append(None)
            else:
                self._fill_task_row(row, entry)
                self._row_cells.append(entry.task.id)

    def _fill_group_row(self, row: int, group: GroupHeader) -> None:
        values = {
            "wbs_number": group.prefix,
            "name": f"Group {group.prefix} ({len(group.tasks)} tasks)",
            "duration": f"{group.total_duration} days",
            "progress": f"{group.average_progress:.0f}%",
        }
        font = QFont(self.font())
        font.setBold(True)
        for col in range(self.columnCount()):
            field = COLUMNS[col - 1].field if col else ""
            item = QTableWidgetItem(values.get(field, ""))
            item.setFlags(Qt.ItemFlag.ItemIsEnabled)
            item.setBackground(QBrush(_GROUP_BACKGROUND))
            item.setFont(font)
            self.setItem(row, col, item)

    def _fill_task_row(self, row: int, entry: TaskRow) -> None:
        task = entry.task
        toggle = QTableWidgetItem("")
        if task.children:
            toggle.setText("▾" if self.table_model.expansion.is_expanded(task.id) else "▸")
        toggle.setFlags(Qt.ItemFlag.ItemIsEnabled | Qt.ItemFlag.ItemIsSelectable)
        self.setItem(row, 0, toggle)
        for offset, column in enumerate(COLUMNS, start=1):
            text = self.table_model.display_value(task, column.field)
            if column.field == "name":
                text = "    " * entry.level + text
            item = QTableWidgetItem(text)
            flags = Qt.ItemFlag.ItemIsEnabled | Qt.ItemFlag.ItemIsSelectable
            if self.table_model.is_editable(column.field):
                flags |= Qt.ItemFlag.ItemIsEditable
            item.setFlags(flags)
            if self.table_model.cell_state(task.id, column.field) == ERROR:
                item.setBackground(QBrush(_ERROR_BACKGROUND))
                item.setToolTip(self.table_model.error_for(task.id, column.field) or "")
            elif task.is_critical and self.session.config.show_critical_path and column.field == "name":
                item.setForeground(QBrush(_CRITICAL_TEXT))
            self.setItem(row, offset, item)

    def cell_at(self, row: int, col: int) -> Optional[Tuple[str, str]]:
        """(task id, field) behind a cell, or None for headers and the toggle column."""
        if col <= 0 or row < 0 or row >= len(self._row_cells):
            return None
        task_id = self._row_cells[row]
        if task_id is None:
            return None
        return task_id, COLUMNS[col - 1].field

    def commit_edit(self, text: str) -> Optional[str]:
        self.table_model.set_edit_text(text)
        error = self.table_model.commit()
        # Rebuilding rows while the delegate is still closing its editor is unsafe.
        QTimer.singleShot(0, self.refresh)
        if error:
            self.edit_rejected.emit(error)
        else:
            self.tasks_updated.emit()
        return error

    def _handle_cell_clicked(self, row: int, col: int) -> None:
        if row < 0 or row >= len(self._row_cells):
            return
        task_id = self._row_cells[row]
        if task_id is None:
            return
        if col == 0:
            task = self.session.project.get(task_id)
            if task is not None and task.children:
                self.session.toggle_expansion(task_id)
                self.refresh()
                self.expansion_toggled.emit(task_id)
            return
        self.session.select_task(task_id)
        self.task_selected.emit(task_id)

    def _handle_header_clicked(self, col: int) -> None:
        if col <= 0:
            return
        column = COLUMNS[col - 1]
        if not column.sortable:
            return
        config = self.table_model.sort_by(column.field)
        order = Qt.SortOrder.AscendingOrder if config.ascending else Qt.SortOrder.DescendingOrder
        self.horizontalHeader().setSortIndicatorShown(True)
        self.horizontalHeader().setSortIndicator(col, order)
        self.refresh()

    def select_task_row(self, task_id: str) -> None:
        if task_id in self._row_cells:
            self.selectRow(self._row_cells.index(task_id))


class _TimelineScrollArea(QScrollArea):
    """Scroll area that tells the canvas how wide its viewport is."""

    def __init__(self, canvas: GanttCanvasWidget, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self.canvas = canvas
        self.setWidgetResizable(True)
        self.setWidget(canvas)

    def resizeEvent(self, event: QResizeEvent) -> None:  # type: ignore[override]
        super().resizeEvent(event)
        self.canvas.set_viewport_width(self.viewport().width())


class _PersistBridge(QObject):
    """Carries save results from the worker thread back to the UI thread."""

    finished = pyqtSignal(str, object)


class MainWindow(QMainWindow):
    """Primary window with menus and central widgets."""

    def __init__(self, view_config: Optional[ViewConfig] = None, store: Optional[CsvTaskStore] = None) -> None:
        super().__init__()
        self.setWindowTitle("Gantt Scheduler")
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="gantt-save")
        self._bridge = _PersistBridge()
        self._bridge.finished.connect(self._handle_persist_result)
        self.store = store or CsvTaskStore(config.store_directory())
        self.session = ScheduleSession(
            self.store,
            config.project_id(),
            view_config or ViewConfig.from_environment(),
            on_persist_result=self._bridge.finished.emit,
            executor=self._executor,
        )
        self.session.load()
        self.table = TaskTableWidget(self.session)
        self.canvas = GanttCanvasWidget(self.session)
        self.zoom_actions: dict[int, QAction] = {}
        # Wire up both views so drags, edits and toggles repaint everything.
        self.canvas.schedule_changed.connect(self._refresh_views)
        self.canvas.task_selected.connect(self.table.select_task_row)
        self.table.tasks_updated.connect(self._refresh_views)
        self.table.expansion_toggled.connect(lambda _task_id: self.canvas.refresh_geometry())
        self.table.task_selected.connect(lambda _task_id: self.canvas.update())
        self.table.edit_rejected.connect(lambda message: self.statusBar().showMessage(message, 5000))
        self._build_layout()
        self._build_menu()
        self.resize(1400, 700)

    def _build_layout(self) -> None:
        """Table on the left, scrollable timeline on the right."""
        splitter = QSplitter(Qt.Orientation.Horizontal)
        splitter.addWidget(self.table)
        splitter.addWidget(_TimelineScrollArea(self.canvas))
        splitter.setStretchFactor(0, 2)
        splitter.setStretchFactor(1, 3)
        self.setCentralWidget(splitter)

    def _build_menu(self) -> None:
        """Create File/View/Tools menus along with shortcuts."""
        menu = self.menuBar()
        file_menu = menu.addMenu("File")
        self._add_action(file_menu, "Open project...", self.action_open, QKeySequence.StandardKey.Open)
        self._add_action(file_menu, "Save", self.action_save, QKeySequence.StandardKey.Save)
        self._add_action(file_menu, "Export...", self.action_export)
        file_menu.addSeparator()
        self._add_action(file_menu, "Quit", self.close, QKeySequence.StandardKey.Quit)

        view_menu = menu.addMenu("View")
        zoom_group = QActionGroup(self)
        for label, level in ZOOM_PRESETS.items():
            action = QAction(f"{label} view", self)
            action.setCheckable(True)
            action.setChecked(level == self.session.config.zoom_level)
            action.triggered.connect(lambda _checked, value=level: self.set_zoom(value))
            zoom_group.addAction(action)
            view_menu.addAction(action)
            self.zoom_actions[level] = action
        view_menu.addSeparator()
        for label, option in (
            ("Gridlines", "show_gridlines"),
            ("Task links", "show_task_links"),
            ("Float", "show_float"),
            ("Critical path", "show_critical_path"),
            ("Critical tasks only", "critical_only"),
        ):
            action = QAction(label, self)
            action.setCheckable(True)
            action.setChecked(getattr(self.session.config, option))
            action.toggled.connect(lambda checked, name=option: self.set_view_option(name, checked))
            view_menu.addAction(action)
        view_menu.addSeparator()
        group_action = QAction("Group by WBS", self)
        group_action.setCheckable(True)
        group_action.setChecked(self.session.table.group_by_wbs)
        group_action.toggled.connect(self.set_grouping)
        view_menu.addAction(group_action)

        tools_menu = menu.addMenu("Tools")
        self._add_action(tools_menu, "Regenerate WBS numbering", self.action_regenerate_wbs)
        self._add_action(tools_menu, "Expand all", self.action_expand_all)
        self._add_action(tools_menu, "Collapse all", self.action_collapse_all)

    def _add_action(self, menu, label: str, handler, shortcut=None) -> QAction:
        action = QAction(label, self)
        if shortcut is not None:
            action.setShortcut(shortcut)
        action.triggered.connect(handler)
        menu.addAction(action)
        return action

    def _refresh_views(self) -> None:
        self.table.refresh()
        self.canvas.refresh_geometry()

    # View actions ------------------------------------------------------
    def set_zoom(self, level: int) -> None:
        self.session.set_config(self.session.config.with_zoom(level))
        if level in self.zoom_actions:
            self.zoom_actions[level].setChecked(True)
        self.canvas.refresh_geometry()
        self.statusBar().showMessage(f"Zoom: {self.session.config.zoom_label} view", 3000)

    def set_view_option(self, name: str, enabled: bool) -> None:
        self.session.set_config(replace(self.session.config, **{name: enabled}))
        self._refresh_views()

    def set_grouping(self, enabled: bool) -> None:
        self.session.table.set_grouping(enabled)
        self.table.refresh()

    # Menu actions ------------------------------------------------------
    def action_open(self) -> None:
        """Switch to another project stored in the same folder."""
        project_id, ok = QInputDialog.getText(self, "Open project", "Project id", text=self.session.project_id)
        if not ok or not project_id.strip():
            return
        self.session.project_id = project_id.strip()
        self.session.load()
        self._refresh_views()
        self.statusBar().showMessage(f"Loaded project {self.session.project_id}", 3000)

    def action_save(self) -> None:
        """Write the whole project to the store."""
        try:
            self.store.save_project(self.session.project_id, self.session.project.tasks, self.session.project.links)
        except OSError as exc:
            logger.warning("Saving %s failed: %s", self.session.project_id, exc)
            QMessageBox.critical(self, "Save failed", str(exc))
            return
        self.statusBar().showMessage(f"Saved to {self.store.tasks_path(self.session.project_id)}", 3000)

    def action_export(self) -> None:
        """Export the CSV/PDF formats used for sharing."""
        path, selected_filter = QFileDialog.getSaveFileName(
            self,
            "Export schedule",
            filter="CSV Files (*.csv);;PDF Files (*.pdf)",
        )
        if not path:
            return
        window = self.session.window()
        if path.lower().endswith(".pdf") or "PDF" in selected_filter:
            export_as_pdf(path, self.session.visible_tasks(), self.session.project.resolved_links(), self.session.config, window)
            self.statusBar().showMessage(f"Exported PDF to {path}", 3000)
        else:
            export_as_csv(path, [entry.task for entry in self.session.visible_tasks()], window)
            self.statusBar().showMessage(f"Exported CSV to {path}", 3000)

    def action_regenerate_wbs(self) -> None:
        self.session.regenerate_wbs()
        self.table.refresh()
        self.statusBar().showMessage("WBS numbering regenerated", 3000)

    def action_expand_all(self) -> None:
        self.session.expansion.expand_all(self.session.project.tasks)
        self._refresh_views()

    def action_collapse_all(self) -> None:
        self.session.expansion.collapse_all()
        self._refresh_views()

    def _handle_persist_result(self, key: str, result: UpdateResult) -> None:
        """Surface background save failures without blocking the user."""
        if not result.success:
            self.statusBar().showMessage(f"Could not save {key}: {'; '.join(result.errors)}", 5000)

    def closeEvent(self, event: QCloseEvent) -> None:  # pragma: no cover - requires UI
        """Ask for confirmation before closing the application."""
        if QMessageBox.question(self, "Quit", "Close Gantt Scheduler?") == QMessageBox.StandardButton.Yes:
            # Pending saves keep running; nothing new is queued after this.
            self._executor.shutdown(wait=False)
            event.accept()
        else:
            event.ignore()


def run() -> None:
    """Entry point used by the ``gantt-scheduler`` script."""
    config.load_environment()
    logging.basicConfig(level=config.log_level())
    app = QApplication(sys.argv)
    window = MainWindow()
    window.show()
    app.exec()


if __name__ == "__main__":
    run()
