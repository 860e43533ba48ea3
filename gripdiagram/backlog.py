"""Backlog panel model: the task cells of a diagram as a filterable list."""

from __future__ import annotations

from dataclasses import replace
from typing import Dict, List, Optional

from PySide6.QtCore import (
    QAbstractListModel,
    QModelIndex,
    Property,
    Qt,
    Signal,
    Slot,
)

from .constants import DEFAULT_CELL_HEIGHT, DEFAULT_CELL_WIDTH, PRIORITY_COLORS
from .types import DiagramCell, TaskMeta, TaskPriority, TaskStatus

FILTERS = ("all",) + tuple(status.value for status in TaskStatus)


class BacklogModel(QAbstractListModel):
    """List model over the cells that carry task information.

    The list follows the scene: it is rebuilt whenever cells change. Edits made
    here go back through ``SceneModel.updateCell``.
    """

    IdRole = Qt.UserRole + 1
    TitleRole = Qt.UserRole + 2
    DescriptionRole = Qt.UserRole + 3
    StatusRole = Qt.UserRole + 4
    PriorityRole = Qt.UserRole + 5
    AssigneeRole = Qt.UserRole + 6
    DueDateRole = Qt.UserRole + 7
    TagsRole = Qt.UserRole + 8
    ColorRole = Qt.UserRole + 9

    filterChanged = Signal()
    searchQueryChanged = Signal()
    countChanged = Signal()
    statsChanged = Signal()

    def __init__(self, scene, viewport=None, parent=None):
        super().__init__(parent)
        self._scene = scene
        self._viewport = viewport
        self._filter = "all"
        self._search_query = ""
        self._rows: List[DiagramCell] = []
        scene.cellsChanged.connect(self._refresh)
        scene.diagramReset.connect(self._refresh)
        self._refresh()

    # --- Qt model overrides -------------------------------------------------
    def rowCount(self, parent: Optional[QModelIndex] = QModelIndex()) -> int:  # type: ignore[override]
        return len(self._rows)

    def data(self, index: QModelIndex, role: int = Qt.DisplayRole):  # type: ignore[override]
        if not index.isValid() or not (0 <= index.row() < len(self._rows)):
            return None

        cell = self._rows[index.row()]
        meta = cell.task_meta
        if role == self.IdRole:
            return cell.id
        elif role in (self.TitleRole, Qt.DisplayRole):
            return cell.title
        elif role == self.DescriptionRole:
            return cell.content
        elif role == self.StatusRole:
            return meta.status.value
        elif role == self.PriorityRole:
            return meta.priority.value
        elif role == self.AssigneeRole:
            return meta.assignee
        elif role == self.DueDateRole:
            return meta.due_date
        elif role == self.TagsRole:
            return list(meta.tags)
        elif role == self.ColorRole:
            return cell.color
        return None

    def roleNames(self) -> Dict[int, bytes]:  # type: ignore[override]
        return {
            self.IdRole: b"cellId",
            self.TitleRole: b"title",
            self.DescriptionRole: b"description",
            self.StatusRole: b"status",
            self.PriorityRole: b"priority",
            self.AssigneeRole: b"assignee",
            self.DueDateRole: b"dueDate",
            self.TagsRole: b"tags",
            self.ColorRole: b"color",
        }

    # --- Properties ---------------------------------------------------------
    @Property(str, notify=filterChanged)
    def filter(self) -> str:
        return self._filter

    @filter.setter  # type: ignore[no-redef]
    def filter(self, value: str) -> None:
        self.setFilter(value)

    @Property(str, notify=searchQueryChanged)
    def searchQuery(self) -> str:
        return self._search_query

    @searchQuery.setter  # type: ignore[no-redef]
    def searchQuery(self, value: str) -> None:
        self.setSearchQuery(value)

    @Property(int, notify=countChanged)
    def count(self) -> int:
        return len(self._rows)

    @Slot(str)
    def setFilter(self, value: str) -> None:
        if value not in FILTERS:
            raise ValueError(f"Unknown backlog filter {value!r}; expected one of {FILTERS}")
        if value != self._filter:
            self._filter = value
            self.filterChanged.emit()
            self._refresh()

    @Slot(str)
    def setSearchQuery(self, value: str) -> None:
        if value != self._search_query:
            self._search_query = value
            self.searchQueryChanged.emit()
            self._refresh()

    # --- Filtering ----------------------------------------------------------
    def _matches(self, cell: DiagramCell) -> bool:
        if cell.task_meta is None:
            return False
        if self._filter != "all" and cell.task_meta.status.value != self._filter:
            return False
        query = self._search_query.strip().lower()
        if query and query not in cell.title.lower() and query not in cell.content.lower():
            return False
        return True

    @Slot()
    def _refresh(self) -> None:
        old_count = len(self._rows)
        self.beginResetModel()
        self._rows = [cell for cell in self._scene.cells() if self._matches(cell)]
        self.endResetModel()
        if old_count != len(self._rows):
            self.countChanged.emit()
        self.statsChanged.emit()

    def items(self) -> List[DiagramCell]:
        return list(self._rows)

    def stats(self) -> Dict[str, int]:
        """Count task cells per status, ignoring the filter and search."""
        counts = {status.value: 0 for status in TaskStatus}
        for cell in self._scene.cells():
            if cell.task_meta is not None:
                counts[cell.task_meta.status.value] += 1
        return counts

    @Property(int, notify=statsChanged)
    def openCount(self) -> int:
        """Tasks not done yet, as shown on the backlog toggle."""
        counts = self.stats()
        return counts[TaskStatus.TODO.value] + counts[TaskStatus.IN_PROGRESS.value]

    # --- Edits --------------------------------------------------------------
    def _update_meta(self, cell_id: int, **changes) -> bool:
        cell = self._scene.getCell(cell_id)
        if cell is None or cell.task_meta is None:
            return False
        meta = replace(cell.task_meta, tags=list(cell.task_meta.tags), **changes)
        patch = {"taskMeta": meta}
        if "priority" in changes:
            patch["color"] = PRIORITY_COLORS[meta.priority]
        return self._scene.updateCell(cell_id, patch)

    @Slot(int, str, result=bool)
    def setStatus(self, cell_id: int, status) -> bool:
        return self._update_meta(cell_id, status=TaskStatus(status))

    @Slot(int, str, result=bool)
    def setPriority(self, cell_id: int, priority) -> bool:
        return self._update_meta(cell_id, priority=TaskPriority(priority))

    @Slot(int, result=bool)
    def markAsTask(self, cell_id: int) -> bool:
        """Attach default task information to a plain cell."""
        cell = self._scene.getCell(cell_id)
        if cell is None:
            return False
        if cell.task_meta is not None:
            return True
        return self._scene.updateCell(cell_id, {"taskMeta": TaskMeta()})

    @Slot(str, str, result=int)
    def addTask(self, title: str, priority="medium", x: Optional[float] = None, y: Optional[float] = None) -> int:
        """Create a task cell centred on (x, y), or on the visible canvas."""
        priority = TaskPriority(priority)
        if x is None or y is None:
            if self._viewport is not None:
                center = self._viewport.visibleSceneRect().center()
                x, y = center.x(), center.y()
            else:
                x, y = DEFAULT_CELL_WIDTH / 2, DEFAULT_CELL_HEIGHT / 2
        return self._scene.addCell(
            x - DEFAULT_CELL_WIDTH / 2,
            y - DEFAULT_CELL_HEIGHT / 2,
            title,
            color=PRIORITY_COLORS[priority],
            task_meta=TaskMeta(priority=priority),
        )
