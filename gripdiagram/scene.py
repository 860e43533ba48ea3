"""Scene store for GripDiagram.

``SceneModel`` is the single source of truth for one diagram: cells,
connections, text boxes and images. Cells are exposed as list-model rows so a
view can delegate over them; the other collections are list properties.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

from PySide6.QtCore import (
    QAbstractListModel,
    QModelIndex,
    Property,
    Qt,
    Signal,
    Slot,
)

from .constants import (
    CASCADE_OFFSET,
    CASCADE_STEPS,
    CELL_COLORS,
    DEFAULT_CELL_COLOR,
    DEFAULT_CELL_HEIGHT,
    DEFAULT_CELL_WIDTH,
    MIN_CELL_HEIGHT,
    MIN_CELL_WIDTH,
)
from .errors import InvalidEndpoint
from .geometry import best_ports
from .images import ImageMixin
from .textboxes import TextBoxMixin
from .types import (
    DiagramCell,
    DiagramConnection,
    EntityKind,
    EntityRef,
    Port,
    TaskMeta,
    TaskPriority,
    TaskStatus,
)


CELL_PATCH_FIELDS = {"x", "y", "width", "height", "title", "content", "comment", "color", "taskMeta"}


def task_meta_to_dict(meta: Optional[TaskMeta]) -> Optional[Dict[str, Any]]:
    if meta is None:
        return None
    return {
        "status": meta.status.value,
        "priority": meta.priority.value,
        "assignee": meta.assignee,
        "dueDate": meta.due_date,
        "tags": list(meta.tags),
    }


def task_meta_from_dict(data: Any, strict: bool = True) -> Optional[TaskMeta]:
    """Build a TaskMeta from a dict (or pass one through).

    With ``strict`` unknown status/priority values raise ``ValueError``;
    otherwise they fall back to the defaults, which is what loading does.
    """
    if data is None or isinstance(data, TaskMeta):
        return data
    try:
        status = TaskStatus(data.get("status", TaskStatus.TODO.value))
    except ValueError:
        if strict:
            raise
        status = TaskStatus.TODO
    try:
        priority = TaskPriority(data.get("priority", TaskPriority.MEDIUM.value))
    except ValueError:
        if strict:
            raise
        priority = TaskPriority.MEDIUM
    return TaskMeta(
        status=status,
        priority=priority,
        assignee=str(data.get("assignee", "Unassigned")),
        due_date=str(data.get("dueDate", "")),
        tags=[str(tag) for tag in data.get("tags", [])],
    )


class SceneModel(TextBoxMixin, ImageMixin, QAbstractListModel):
    """Qt model holding every entity of a diagram."""

    IdRole = Qt.UserRole + 1
    XRole = Qt.UserRole + 2
    YRole = Qt.UserRole + 3
    WidthRole = Qt.UserRole + 4
    HeightRole = Qt.UserRole + 5
    TitleRole = Qt.UserRole + 6
    ContentRole = Qt.UserRole + 7
    CommentRole = Qt.UserRole + 8
    ColorRole = Qt.UserRole + 9
    IsTaskRole = Qt.UserRole + 10
    TaskStatusRole = Qt.UserRole + 11
    TaskPriorityRole = Qt.UserRole + 12

    cellsChanged = Signal()
    connectionsChanged = Signal()
    textBoxesChanged = Signal()
    imagesChanged = Signal()
    entityRemoved = Signal(str, int)
    diagramChanged = Signal()
    diagramReset = Signal()

    def __init__(self):
        super().__init__()
        self._cells: List[DiagramCell] = []
        self._connections: List[DiagramConnection] = []
        self._next_cell_id = 1
        self._next_connection_id = 1
        self._revision = 0

        # Initialize mixins
        self._init_text_boxes()
        self._init_images()

    def _touch(self) -> None:
        self._revision += 1
        self.diagramChanged.emit()

    def _allocate_cell_id(self) -> int:
        cell_id = self._next_cell_id
        self._next_cell_id += 1
        return cell_id

    def _allocate_connection_id(self) -> int:
        connection_id = self._next_connection_id
        self._next_connection_id += 1
        return connection_id

    def _cell_row(self, cell_id: int) -> int:
        for row, cell in enumerate(self._cells):
            if cell.id == cell_id:
                return row
        return -1

    def _append_cell(self, cell: DiagramCell) -> None:
        self.beginInsertRows(QModelIndex(), len(self._cells), len(self._cells))
        self._cells.append(cell)
        self.endInsertRows()
        self.cellsChanged.emit()
        self._touch()

    # --- Qt model overrides -------------------------------------------------
    def rowCount(self, parent: QModelIndex | None = QModelIndex()) -> int:  # type: ignore[override]
        return len(self._cells)

    def data(self, index: QModelIndex, role: int = Qt.DisplayRole):  # type: ignore[override]
        if not index.isValid() or not (0 <= index.row() < len(self._cells)):
            return None

        cell = self._cells[index.row()]
        if role == self.IdRole:
            return cell.id
        if role == self.XRole:
            return cell.x
        if role == self.YRole:
            return cell.y
        if role == self.WidthRole:
            return cell.width
        if role == self.HeightRole:
            return cell.height
        if role in (self.TitleRole, Qt.DisplayRole):
            return cell.title
        if role == self.ContentRole:
            return cell.content
        if role == self.CommentRole:
            return cell.comment
        if role == self.ColorRole:
            return cell.color
        if role == self.IsTaskRole:
            return cell.task_meta is not None
        if role == self.TaskStatusRole:
            return cell.task_meta.status.value if cell.task_meta else ""
        if role == self.TaskPriorityRole:
            return cell.task_meta.priority.value if cell.task_meta else ""
        return None

    def roleNames(self) -> Dict[int, bytes]:  # type: ignore[override]
        return {
            self.IdRole: b"cellId",
            self.XRole: b"x",
            self.YRole: b"y",
            self.WidthRole: b"width",
            self.HeightRole: b"height",
            self.TitleRole: b"title",
            self.ContentRole: b"content",
            self.CommentRole: b"comment",
            self.ColorRole: b"color",
            self.IsTaskRole: b"isTask",
            self.TaskStatusRole: b"taskStatus",
            self.TaskPriorityRole: b"taskPriority",
        }

    # --- Properties exposed to QML -----------------------------------------
    @Property(list, notify=connectionsChanged)
    def connections(self) -> List[Dict[str, Any]]:
        return [self._connection_to_dict(connection) for connection in self._connections]

    @Property(list, notify=textBoxesChanged)
    def textBoxes(self) -> List[Dict[str, Any]]:
        return self._text_boxes_to_dicts()

    @Property(list, notify=imagesChanged)
    def images(self) -> List[Dict[str, Any]]:
        return self._images_to_dicts()

    @Property(int, notify=cellsChanged)
    def cellCount(self) -> int:
        return len(self._cells)

    @Property(int, notify=diagramChanged)
    def revision(self) -> int:
        return self._revision

    # --- Cells --------------------------------------------------------------
    @Slot(float, float, str, result=int)
    def addCell(
        self,
        x: float,
        y: float,
        title: str = "",
        *,
        width: float = DEFAULT_CELL_WIDTH,
        height: float = DEFAULT_CELL_HEIGHT,
        color: str = DEFAULT_CELL_COLOR,
        content: str = "",
        comment: str = "",
        task_meta: Optional[TaskMeta] = None,
    ) -> int:
        """Create a cell and return its id. Undersized geometry is clamped."""
        if color not in CELL_COLORS:
            raise ValueError(f"Color {color!r} is not in the cell palette")
        cell_id = self._allocate_cell_id()
        cell = DiagramCell(
            id=cell_id,
            x=float(x),
            y=float(y),
            width=max(MIN_CELL_WIDTH, float(width)),
            height=max(MIN_CELL_HEIGHT, float(height)),
            title=title if title and title.strip() else f"Cell {cell_id}",
            content=content,
            comment=comment,
            color=color,
            task_meta=task_meta,
        )
        self._append_cell(cell)
        return cell_id

    @Slot(float, float, result=int)
    def addCellAtCascade(self, center_x: float, center_y: float) -> int:
        """Add a default cell centred on a point, offset so new cells don't stack."""
        offset = (len(self._cells) % CASCADE_STEPS) * CASCADE_OFFSET
        x = center_x - DEFAULT_CELL_WIDTH / 2 + offset
        y = center_y - DEFAULT_CELL_HEIGHT / 2 + offset
        return self.addCell(x, y)

    @Slot(int, "QVariantMap", result=bool)
    def updateCell(self, cell_id: int, patch: Dict[str, Any]) -> bool:
        """Apply ``patch`` to a cell. Returns False if the cell does not exist."""
        unknown = set(patch) - CELL_PATCH_FIELDS
        if unknown:
            raise ValueError(f"Unknown cell fields: {sorted(unknown)}")
        if "color" in patch and patch["color"] not in CELL_COLORS:
            raise ValueError(f"Color {patch['color']!r} is not in the cell palette")
        task_meta = task_meta_from_dict(patch["taskMeta"]) if "taskMeta" in patch else None

        row = self._cell_row(cell_id)
        if row < 0:
            return False
        cell = self._cells[row]

        roles: List[int] = []
        if "x" in patch and cell.x != float(patch["x"]):
            cell.x = float(patch["x"])
            roles.append(self.XRole)
        if "y" in patch and cell.y != float(patch["y"]):
            cell.y = float(patch["y"])
            roles.append(self.YRole)
        if "width" in patch:
            width = max(MIN_CELL_WIDTH, float(patch["width"]))
            if cell.width != width:
                cell.width = width
                roles.append(self.WidthRole)
        if "height" in patch:
            height = max(MIN_CELL_HEIGHT, float(patch["height"]))
            if cell.height != height:
                cell.height = height
                roles.append(self.HeightRole)
        for key, role in (("title", self.TitleRole), ("content", self.ContentRole), ("comment", self.CommentRole), ("color", self.ColorRole)):
            if key in patch and getattr(cell, key) != patch[key]:
                setattr(cell, key, str(patch[key]))
                roles.append(role)
        if "taskMeta" in patch and cell.task_meta != task_meta:
            cell.task_meta = task_meta
            roles.extend([self.IsTaskRole, self.TaskStatusRole, self.TaskPriorityRole])

        if roles:
            index = self.index(row, 0)
            self.dataChanged.emit(index, index, roles)
            self.cellsChanged.emit()
            if {self.XRole, self.YRole, self.WidthRole, self.HeightRole} & set(roles):
                # Connection endpoints are derived from cell geometry.
                self.connectionsChanged.emit()
            self._touch()
        return True

    @Slot(int, float, float, result=bool)
    def moveCell(self, cell_id: int, x: float, y: float) -> bool:
        return self.updateCell(cell_id, {"x": x, "y": y})

    @Slot(int, float, float, result=bool)
    def resizeCell(self, cell_id: int, width: float, height: float) -> bool:
        return self.updateCell(cell_id, {"width": width, "height": height})

    @Slot(int, result=bool)
    def deleteCell(self, cell_id: int) -> bool:
        """Delete a cell and every connection touching it."""
        row = self._cell_row(cell_id)
        if row < 0:
            return False

        filtered = [c for c in self._connections if c.from_cell_id != cell_id and c.to_cell_id != cell_id]
        if len(filtered) != len(self._connections):
            self._connections = filtered
            self.connectionsChanged.emit()

        self.beginRemoveRows(QModelIndex(), row, row)
        self._cells.pop(row)
        self.endRemoveRows()
        self.cellsChanged.emit()
        self.entityRemoved.emit(EntityKind.CELL.value, cell_id)
        self._touch()
        return True

    def getCell(self, cell_id: int) -> Optional[DiagramCell]:
        for cell in self._cells:
            if cell.id == cell_id:
                return cell
        return None

    def cells(self) -> List[DiagramCell]:
        return list(self._cells)

    # --- Connections --------------------------------------------------------
    @Slot(int, str, int, str, result=int)
    def addConnection(self, from_cell_id: int, from_port, to_cell_id: int, to_port) -> int:
        """Connect two cells and return the connection id.

        Raises:
            InvalidEndpoint: if either cell is missing or both are the same.
        """
        from_port = Port(from_port)
        to_port = Port(to_port)
        if from_cell_id == to_cell_id:
            raise InvalidEndpoint(f"Cannot connect cell {from_cell_id} to itself")
        for cell_id in (from_cell_id, to_cell_id):
            if self.getCell(cell_id) is None:
                raise InvalidEndpoint(f"Cell {cell_id} does not exist")

        existing = self._find_connection_between(from_cell_id, to_cell_id)
        if existing is not None:
            return existing.id

        connection = DiagramConnection(
            id=self._allocate_connection_id(),
            from_cell_id=from_cell_id,
            from_port=from_port,
            to_cell_id=to_cell_id,
            to_port=to_port,
        )
        self._connections.append(connection)
        self.connectionsChanged.emit()
        self._touch()
        return connection.id

    def _find_connection_between(self, a: int, b: int) -> Optional[DiagramConnection]:
        for connection in self._connections:
            if {connection.from_cell_id, connection.to_cell_id} == {a, b}:
                return connection
        return None

    @Slot(int, result=bool)
    def deleteConnection(self, connection_id: int) -> bool:
        for idx, connection in enumerate(self._connections):
            if connection.id == connection_id:
                self._connections.pop(idx)
                self.connectionsChanged.emit()
                self._touch()
                return True
        return False

    @Slot(int, str, result=int)
    def deleteConnectionsAtPort(self, cell_id: int, port) -> int:
        """Remove every connection attached to one port. Returns the count."""
        port = Port(port)
        return self._remove_connections(
            lambda c: (c.from_cell_id == cell_id and c.from_port == port)
            or (c.to_cell_id == cell_id and c.to_port == port)
        )

    @Slot(int, result=int)
    def deleteConnectionsForCell(self, cell_id: int) -> int:
        return self._remove_connections(lambda c: cell_id in (c.from_cell_id, c.to_cell_id))

    def _remove_connections(self, predicate) -> int:
        kept = [c for c in self._connections if not predicate(c)]
        removed = len(self._connections) - len(kept)
        if removed:
            self._connections = kept
            self.connectionsChanged.emit()
            self._touch()
        return removed

    @Slot()
    def rerouteConnections(self) -> None:
        """Re-pick the facing ports of every connection from current geometry."""
        cells_by_id = {cell.id: cell for cell in self._cells}
        changed = False
        for connection in self._connections:
            ports = best_ports(cells_by_id[connection.from_cell_id], cells_by_id[connection.to_cell_id])
            if ports != (connection.from_port, connection.to_port):
                connection.from_port, connection.to_port = ports
                changed = True
        if changed:
            self.connectionsChanged.emit()
            self._touch()

    def getConnection(self, connection_id: int) -> Optional[DiagramConnection]:
        for connection in self._connections:
            if connection.id == connection_id:
                return connection
        return None

    def connectionList(self) -> List[DiagramConnection]:
        return list(self._connections)

    @staticmethod
    def _connection_to_dict(connection: DiagramConnection) -> Dict[str, Any]:
        return {
            "id": connection.id,
            "fromId": connection.from_cell_id,
            "fromPosition": connection.from_port.value,
            "toId": connection.to_cell_id,
            "toPosition": connection.to_port.value,
        }

    # --- Generic entity access ---------------------------------------------
    def get_entity(self, ref: EntityRef):
        if ref.kind == EntityKind.CELL:
            return self.getCell(ref.id)
        if ref.kind == EntityKind.TEXT_BOX:
            return self.getTextBox(ref.id)
        return self.getImage(ref.id)

    def move_entity(self, ref: EntityRef, x: float, y: float) -> bool:
        if ref.kind == EntityKind.CELL:
            return self.moveCell(ref.id, x, y)
        if ref.kind == EntityKind.TEXT_BOX:
            return self.moveTextBox(ref.id, x, y)
        return self.moveImage(ref.id, x, y)

    def delete_entity(self, ref: EntityRef) -> bool:
        if ref.kind == EntityKind.CELL:
            return self.deleteCell(ref.id)
        if ref.kind == EntityKind.TEXT_BOX:
            return self.deleteTextBox(ref.id)
        return self.deleteImage(ref.id)

    def entity_refs(self) -> List[EntityRef]:
        refs = [EntityRef.cell(cell.id) for cell in self._cells]
        refs.extend(EntityRef.text_box(box.id) for box in self._text_boxes)
        refs.extend(EntityRef.image(image.id) for image in self._images)
        return refs

    @Slot()
    def clear(self) -> None:
        """Remove every entity. Id counters keep running."""
        self.beginResetModel()
        self._cells.clear()
        self._connections.clear()
        self._text_boxes.clear()
        self._images.clear()
        self.endResetModel()
        self._emit_all_changed()
        self.diagramReset.emit()
        self._touch()

    def _emit_all_changed(self) -> None:
        self.cellsChanged.emit()
        self.connectionsChanged.emit()
        self.textBoxesChanged.emit()
        self.imagesChanged.emit()

    # --- Serialization ------------------------------------------------------
    def to_dict(self) -> Dict[str, Any]:
        """Serialize the diagram to a JSON-compatible dictionary.

        Returns:
            Dictionary containing all entities and the id counters.
        """
        cells_data = []
        for cell in self._cells:
            cell_dict: Dict[str, Any] = {
                "id": cell.id,
                "x": cell.x,
                "y": cell.y,
                "width": cell.width,
                "height": cell.height,
                "title": cell.title,
                "content": cell.content,
                "comment": cell.comment,
                "color": cell.color,
            }
            if cell.task_meta is not None:
                cell_dict["taskMeta"] = task_meta_to_dict(cell.task_meta)
            cells_data.append(cell_dict)

        return {
            "cells": cells_data,
            "connections": [self._connection_to_dict(c) for c in self._connections],
            "textBoxes": self._text_boxes_to_dicts(),
            "images": self._images_to_dicts(),
            "nextCellId": self._next_cell_id,
            "nextConnectionId": self._next_connection_id,
            "nextTextBoxId": self._next_text_box_id,
            "nextImageId": self._next_image_id,
        }

    def from_dict(self, data: Dict[str, Any], merge: bool = False) -> None:
        """Load a diagram snapshot.

        Args:
            data: Dictionary produced by ``to_dict`` (older snapshots without
                connection ids or with ``headerColor`` are accepted).
            merge: Append the snapshot's entities with fresh ids instead of
                replacing the current diagram.
        """
        self.beginResetModel()
        try:
            if not merge:
                self._cells.clear()
                self._connections.clear()
                self._text_boxes.clear()
                self._images.clear()
                self._next_cell_id = 1
                self._next_connection_id = 1
                self._next_text_box_id = 1
                self._next_image_id = 1

            cell_ids = self._load_cells(data.get("cells", []), merge)
            self._load_connections(data.get("connections", []), cell_ids, merge)
            self._load_text_boxes(data.get("textBoxes", []), merge)
            self._load_images(data.get("images", []), merge)

            if not merge:
                self._next_cell_id = max(self._next_cell_id, int(data.get("nextCellId", 1)))
                self._next_connection_id = max(self._next_connection_id, int(data.get("nextConnectionId", 1)))
                self._next_text_box_id = max(self._next_text_box_id, int(data.get("nextTextBoxId", 1)))
                self._next_image_id = max(self._next_image_id, int(data.get("nextImageId", 1)))
        finally:
            self.endResetModel()

        self._emit_all_changed()
        if not merge:
            self.diagramReset.emit()
        self._touch()

    def _load_cells(self, cells_data: Iterable[Dict[str, Any]], merge: bool) -> Dict[int, int]:
        """Load cells and return a map from snapshot id to scene id."""
        id_map: Dict[int, int] = {}
        for cell_data in cells_data:
            try:
                stored_id = int(cell_data["id"])
            except (KeyError, TypeError, ValueError):
                continue
            if merge:
                cell_id = self._allocate_cell_id()
            else:
                if stored_id in id_map:
                    continue
                cell_id = stored_id
                self._next_cell_id = max(self._next_cell_id, stored_id + 1)
            id_map[stored_id] = cell_id

            color = cell_data.get("color") or cell_data.get("headerColor") or DEFAULT_CELL_COLOR
            if color not in CELL_COLORS:
                color = DEFAULT_CELL_COLOR
            self._cells.append(DiagramCell(
                id=cell_id,
                x=float(cell_data.get("x", 0.0)),
                y=float(cell_data.get("y", 0.0)),
                width=max(MIN_CELL_WIDTH, float(cell_data.get("width") or DEFAULT_CELL_WIDTH)),
                height=max(MIN_CELL_HEIGHT, float(cell_data.get("height") or DEFAULT_CELL_HEIGHT)),
                title=str(cell_data.get("title", "")),
                content=str(cell_data.get("content", "")),
                comment=str(cell_data.get("comment", "")),
                color=color,
                task_meta=task_meta_from_dict(cell_data.get("taskMeta"), strict=False),
            ))
        return id_map

    def _load_connections(
        self,
        connections_data: Iterable[Dict[str, Any]],
        cell_ids: Dict[int, int],
        merge: bool,
    ) -> None:
        for conn_data in connections_data:
            try:
                from_id = cell_ids[int(conn_data["fromId"])]
                to_id = cell_ids[int(conn_data["toId"])]
                from_port = Port(conn_data.get("fromPosition") or conn_data.get("fromPort") or "right")
                to_port = Port(conn_data.get("toPosition") or conn_data.get("toPort") or "left")
            except (KeyError, TypeError, ValueError):
                # Dangling or malformed connections are dropped.
                continue
            if from_id == to_id or self._find_connection_between(from_id, to_id) is not None:
                continue

            try:
                stored_id = None if conn_data.get("id") is None else int(conn_data["id"])
            except (AttributeError, TypeError, ValueError):
                continue
            if merge or stored_id is None or self.getConnection(stored_id) is not None:
                connection_id = self._allocate_connection_id()
            else:
                connection_id = stored_id
                self._next_connection_id = max(self._next_connection_id, connection_id + 1)
            self._connections.append(DiagramConnection(connection_id, from_id, from_port, to_id, to_port))
