"""Gesture and mode controller.

Pointer and keyboard input enters here in screen coordinates. Every pointer
event is converted to scene coordinates once through the viewport, then
interpreted according to the active tool and the operation in progress.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional, Tuple

from PySide6.QtCore import Property, QObject, QPointF, QTimer, Signal, Slot

from .constants import (
    DUPLICATE_OFFSET,
    FRAME_INTERVAL_MS,
    MIN_IMAGE_SIZE,
    PORT_SNAP_RADIUS,
)
from .errors import InvalidEndpoint
from .geometry import (
    Hit,
    HitKind,
    best_ports,
    closest_side,
    entity_rect,
    hit_test,
    nearest_port,
    point_in_rect,
    port_position,
)
from .scene import SceneModel
from .selection import SelectionModel
from .types import EntityKind, EntityRef, Operation, Port, ResizeHandle, Tool
from .viewport import Viewport

logger = logging.getLogger(__name__)

TOOL_SHORTCUTS = {"v": Tool.SELECT, "h": Tool.PAN, "t": Tool.TEXT}
TOGGLE_SHORTCUTS = {"e": Tool.ERASER, "a": Tool.CONNECT}


@dataclass
class _DragState:
    pointer_start: QPointF
    starts: Dict[EntityRef, Tuple[float, float]] = field(default_factory=dict)


@dataclass
class _ResizeState:
    ref: EntityRef
    handle: ResizeHandle
    pointer_start: QPointF
    start_width: float
    start_height: float
    keep_aspect: bool = False


@dataclass
class _ConnectState:
    from_cell_id: int
    from_port: Port
    pointer: QPointF
    target: Optional[Tuple[int, Port]] = None


@dataclass
class _PanState:
    screen_start: QPointF
    pan_start: Tuple[float, float]


class DiagramController(QObject):
    """State machine turning raw input into scene, viewport and selection edits."""

    toolChanged = Signal()
    operationChanged = Signal()
    connectFromChanged = Signal()
    spaceHeldChanged = Signal()
    changed = Signal()
    textEditRequested = Signal(int)
    connectionsErased = Signal(int)
    editCommitted = Signal()

    def __init__(
        self,
        scene: Optional[SceneModel] = None,
        viewport: Optional[Viewport] = None,
        selection: Optional[SelectionModel] = None,
        frame_interval_ms: int = FRAME_INTERVAL_MS,
        default_tool: Tool = Tool.SELECT,
        parent: Optional[QObject] = None,
    ):
        super().__init__(parent)
        self._scene = scene if scene is not None else SceneModel()
        self._viewport = viewport if viewport is not None else Viewport()
        self._selection = selection if selection is not None else SelectionModel(self._scene)

        self._tool = Tool(default_tool)
        self._operation = Operation.IDLE
        self._connect_from_id: Optional[int] = None
        self._space_held = False

        self._drag: Optional[_DragState] = None
        self._resize: Optional[_ResizeState] = None
        self._connect: Optional[_ConnectState] = None
        self._pan: Optional[_PanState] = None
        self._pending_point: Optional[QPointF] = None
        self._moved = False

        self._frame_interval_ms = max(0, int(frame_interval_ms))
        self._frame_timer = QTimer(self)
        self._frame_timer.setSingleShot(True)
        self._frame_timer.setInterval(self._frame_interval_ms)
        self._frame_timer.timeout.connect(self.flushPendingMove)

        self._scene.diagramChanged.connect(self.changed)
        self._scene.entityRemoved.connect(self._on_entity_removed)
        self._viewport.zoomChanged.connect(self.changed)
        self._viewport.panChanged.connect(self.changed)
        self._selection.selectionChanged.connect(self.changed)

    # --- Properties ---------------------------------------------------------
    @Property(QObject, constant=True)
    def scene(self) -> SceneModel:
        return self._scene

    @Property(QObject, constant=True)
    def viewport(self) -> Viewport:
        return self._viewport

    @Property(QObject, constant=True)
    def selection(self) -> SelectionModel:
        return self._selection

    @Property(str, notify=toolChanged)
    def tool(self) -> str:
        return self._tool.value

    @tool.setter  # type: ignore[no-redef]
    def tool(self, value: str) -> None:
        self.setTool(value)

    @Property(str, notify=operationChanged)
    def operation(self) -> str:
        return self._operation.value

    @Property(int, notify=connectFromChanged)
    def connectFromId(self) -> int:
        """Pending source cell of a click-click connection, or -1."""
        return self._connect_from_id if self._connect_from_id is not None else -1

    @Property("QVariantMap", notify=changed)
    def connectionPreview(self) -> Dict[str, Any]:
        return self._connection_preview() or {}

    @Property(bool, notify=spaceHeldChanged)
    def spaceHeld(self) -> bool:
        return self._space_held

    # --- State helpers ------------------------------------------------------
    def _set_operation(self, operation: Operation) -> None:
        if self._operation != operation:
            self._operation = operation
            self.operationChanged.emit()
            self.changed.emit()

    def _set_connect_from(self, cell_id: Optional[int]) -> None:
        if self._connect_from_id != cell_id:
            self._connect_from_id = cell_id
            self.connectFromChanged.emit()
            self.changed.emit()

    def _set_space_held(self, held: bool) -> None:
        if self._space_held != held:
            self._space_held = held
            self.spaceHeldChanged.emit()

    def _reset_gesture(self) -> None:
        self._frame_timer.stop()
        self._pending_point = None
        self._drag = None
        self._resize = None
        self._connect = None
        self._pan = None
        self._moved = False
        self._set_operation(Operation.IDLE)

    @Slot(str)
    def setTool(self, name) -> None:
        """Activate a tool. Any gesture in progress is cancelled first."""
        tool = Tool(name)
        if tool == self._tool:
            return
        if self._operation != Operation.IDLE:
            self.cancel()
        if tool != Tool.CONNECT:
            self._set_connect_from(None)
        logger.debug("Tool changed from %s to %s", self._tool.value, tool.value)
        self._tool = tool
        self.toolChanged.emit()
        self.changed.emit()

    def _hit(self, point: QPointF) -> Hit:
        selected_images = [
            ref.id for ref in self._selection.refs() if ref.kind == EntityKind.IMAGE
        ]
        return hit_test(
            self._scene.cells(),
            self._scene.textBoxList(),
            self._scene.imageList(),
            self._scene.connectionList(),
            point,
            zoom=self._viewport.zoomLevel,
            resizable_image_ids=selected_images,
        )

    # --- Pointer input ------------------------------------------------------
    @Slot(float, float, bool, bool, str)
    def pointerDown(self, x: float, y: float, shift: bool = False, ctrl: bool = False, button: str = "left") -> None:
        if self._operation != Operation.IDLE:
            return
        if button == "middle" or self._space_held or self._tool == Tool.PAN:
            self._begin_pan(x, y)
            return
        if button != "left":
            return

        point = self._viewport.screenToScene(x, y)
        hit = self._hit(point)

        if self._tool == Tool.ERASER:
            self._erase(hit)
            return
        if hit.kind == HitKind.PORT:
            self._begin_connection(hit.ref.id, hit.port, point)
            return
        if self._tool == Tool.CONNECT:
            self._connect_click(hit)
            return
        if self._tool == Tool.TEXT and hit.ref is None:
            self._insert_text_box(point)
            return

        if hit.kind == HitKind.RESIZE:
            self._begin_resize(hit, point, keep_aspect=not shift)
        elif hit.ref is not None:
            if shift or ctrl:
                self._selection.toggle(hit.ref)
                return
            self._begin_drag(hit.ref, point)
        else:
            self._selection.clear()

    @Slot(float, float)
    def pointerMove(self, x: float, y: float) -> None:
        if self._operation == Operation.IDLE:
            return
        if self._operation == Operation.PANNING:
            start = self._pan.screen_start
            self._viewport.setPan(
                self._pan.pan_start[0] + x - start.x(),
                self._pan.pan_start[1] + y - start.y(),
            )
            return

        point = self._viewport.screenToScene(x, y)
        if self._operation == Operation.CONNECTING:
            self._connect.pointer = point
            self._connect.target = self._connection_target(point)
            self.changed.emit()
            return

        self._pending_point = point
        if self._frame_interval_ms == 0:
            self.flushPendingMove()
        elif not self._frame_timer.isActive():
            self._frame_timer.start()

    @Slot(float, float)
    def pointerUp(self, x: float, y: float) -> None:
        if self._operation == Operation.IDLE:
            return
        if self._operation == Operation.PANNING:
            self._reset_gesture()
            return

        point = self._viewport.screenToScene(x, y)
        if self._operation == Operation.CONNECTING:
            target = self._connection_target(point)
            state = self._connect
            self._reset_gesture()
            if target is not None:
                self._commit_connection(state.from_cell_id, state.from_port, *target)
            return

        self._pending_point = point
        self.flushPendingMove()
        moved = self._moved
        self._reset_gesture()
        if moved:
            self.editCommitted.emit()

    @Slot()
    def flushPendingMove(self) -> None:
        """Apply the latest coalesced drag or resize position."""
        self._frame_timer.stop()
        point = self._pending_point
        self._pending_point = None
        if point is None:
            return
        if self._operation == Operation.DRAGGING:
            self._apply_drag(point)
        elif self._operation == Operation.RESIZING:
            self._apply_resize(point)

    @Slot(float, float, float, float, bool)
    def wheel(self, dx: float, dy: float, x: float, y: float, ctrl: bool = False) -> None:
        """Ctrl+wheel zooms one step per notch at the pointer; otherwise pans."""
        if ctrl:
            if dy:
                self._viewport.zoomAt(-1 if dy > 0 else 1, x, y)
            return
        self._viewport.pan(-dx, -dy)

    # --- Gestures -----------------------------------------------------------
    def _begin_pan(self, x: float, y: float) -> None:
        self._pan = _PanState(QPointF(x, y), (self._viewport.panX, self._viewport.panY))
        self._set_operation(Operation.PANNING)

    def _begin_drag(self, ref: EntityRef, point: QPointF) -> None:
        if not self._selection.contains(ref):
            self._selection.selectOnly(ref)
        self._set_connect_from(None)
        drag = _DragState(point)
        for selected in self._selection.refs():
            entity = self._scene.get_entity(selected)
            if entity is not None:
                drag.starts[selected] = (entity.x, entity.y)
        self._drag = drag
        self._set_operation(Operation.DRAGGING)

    def _apply_drag(self, point: QPointF) -> None:
        dx = point.x() - self._drag.pointer_start.x()
        dy = point.y() - self._drag.pointer_start.y()
        for ref, (start_x, start_y) in self._drag.starts.items():
            entity = self._scene.get_entity(ref)
            if entity is None:
                continue
            if (entity.x, entity.y) != (start_x + dx, start_y + dy):
                self._scene.move_entity(ref, start_x + dx, start_y + dy)
                self._moved = True

    def _begin_resize(self, hit: Hit, point: QPointF, keep_aspect: bool) -> None:
        entity = self._scene.get_entity(hit.ref)
        if not self._selection.contains(hit.ref):
            self._selection.selectOnly(hit.ref)
        self._set_connect_from(None)
        self._resize = _ResizeState(
            ref=hit.ref,
            handle=hit.handle,
            pointer_start=point,
            start_width=entity.width,
            start_height=entity.height,
            keep_aspect=keep_aspect and hit.ref.kind == EntityKind.IMAGE,
        )
        self._set_operation(Operation.RESIZING)

    def _apply_resize(self, point: QPointF) -> None:
        state = self._resize
        dx = point.x() - state.pointer_start.x()
        dy = point.y() - state.pointer_start.y()
        width = state.start_width + dx if state.handle != ResizeHandle.SOUTH else state.start_width
        height = state.start_height + dy if state.handle != ResizeHandle.EAST else state.start_height

        if state.ref.kind == EntityKind.IMAGE:
            if state.keep_aspect:
                ratio = state.start_width / state.start_height
                width = max(MIN_IMAGE_SIZE, width, MIN_IMAGE_SIZE * ratio)
                height = width / ratio
            before = self._scene.getImage(state.ref.id)
            old_size = (before.width, before.height) if before else None
            self._scene.resizeImage(state.ref.id, width, height)
        else:
            before = self._scene.getCell(state.ref.id)
            old_size = (before.width, before.height) if before else None
            self._scene.resizeCell(state.ref.id, width, height)

        entity = self._scene.get_entity(state.ref)
        if entity is not None and old_size != (entity.width, entity.height):
            self._moved = True

    def _begin_connection(self, cell_id: int, port: Port, point: QPointF) -> None:
        self._selection.clear()
        self._set_connect_from(None)
        self._connect = _ConnectState(cell_id, port, point)
        self._set_operation(Operation.CONNECTING)

    def _connection_target(self, point: QPointF) -> Optional[Tuple[int, Port]]:
        """Return the cell and port a dragged connection would attach to.

        A port within the snap radius wins; otherwise the closest side of a
        cell under the pointer. The source cell is never a target.
        """
        source_id = self._connect.from_cell_id
        cells = self._scene.cells()
        radius = PORT_SNAP_RADIUS / self._viewport.zoomLevel
        found = nearest_port(cells, point, radius, exclude_cell_id=source_id)
        if found is not None:
            return found[0].id, found[1]
        for cell in reversed(cells):
            if cell.id != source_id and point_in_rect(point, entity_rect(cell)):
                return cell.id, closest_side(cell, point)
        return None

    def _commit_connection(self, from_id: int, from_port: Port, to_id: int, to_port: Port) -> None:
        try:
            self._scene.addConnection(from_id, from_port, to_id, to_port)
        except InvalidEndpoint as exc:
            logger.debug("Connection discarded: %s", exc)
            return
        self.editCommitted.emit()

    def _connect_click(self, hit: Hit) -> None:
        if hit.ref is None or hit.ref.kind != EntityKind.CELL:
            self._set_connect_from(None)
            return
        cell_id = hit.ref.id
        if self._connect_from_id is None:
            self._selection.clear()
            self._set_connect_from(cell_id)
            return
        if self._connect_from_id == cell_id:
            self._set_connect_from(None)
            return

        source = self._scene.getCell(self._connect_from_id)
        target = self._scene.getCell(cell_id)
        from_port, to_port = best_ports(source, target)
        self._set_connect_from(None)
        self._commit_connection(source.id, from_port, target.id, to_port)
        self.setTool(Tool.SELECT)

    def _erase(self, hit: Hit) -> None:
        if hit.kind == HitKind.PORT:
            erased = self._scene.deleteConnectionsAtPort(hit.ref.id, hit.port)
        elif hit.kind == HitKind.CONNECTION:
            erased = 1 if self._scene.deleteConnection(hit.connection_id) else 0
        else:
            return
        if erased:
            self.connectionsErased.emit(erased)
            self.editCommitted.emit()

    def _insert_text_box(self, point: QPointF) -> None:
        text_box_id = self._scene.addTextBox(point.x(), point.y())
        self._selection.selectOnly(EntityRef.text_box(text_box_id))
        self.textEditRequested.emit(text_box_id)
        self.setTool(Tool.SELECT)
        self.editCommitted.emit()

    @Slot(result=bool)
    def cancel(self) -> bool:
        """Abort the gesture in progress.

        Drags, resizes and pans return to where they started; a connection
        being drawn is discarded.
        """
        if self._operation == Operation.IDLE:
            return False
        self._frame_timer.stop()
        self._pending_point = None

        if self._operation == Operation.DRAGGING:
            for ref, (start_x, start_y) in self._drag.starts.items():
                self._scene.move_entity(ref, start_x, start_y)
        elif self._operation == Operation.RESIZING:
            state = self._resize
            if state.ref.kind == EntityKind.IMAGE:
                self._scene.resizeImage(state.ref.id, state.start_width, state.start_height)
            else:
                self._scene.resizeCell(state.ref.id, state.start_width, state.start_height)
        elif self._operation == Operation.PANNING:
            self._viewport.setPan(*self._pan.pan_start)

        logger.debug("Cancelled %s", self._operation.value)
        self._reset_gesture()
        return True

    # --- Keyboard input -----------------------------------------------------
    @Slot(str, bool, bool, result=bool)
    def keyPress(self, key: str, ctrl: bool = False, shift: bool = False) -> bool:
        """Handle a key press. Returns True when the key was consumed."""
        key = key.lower()
        if key == "space":
            self._set_space_held(True)
            return True
        if key == "escape":
            self._escape()
            return True
        if ctrl:
            if key == "a":
                self._selection.selectAll()
                return True
            if key == "d":
                return self.duplicateSelection() > 0
        if key in ("delete", "backspace"):
            return self.deleteSelection() > 0
        if key in ("+", "="):
            self._viewport.zoomIn()
            return True
        if key == "-":
            self._viewport.zoomOut()
            return True
        if key == "0":
            self._viewport.resetZoom()
            return True
        if ctrl:
            return False
        if key in TOOL_SHORTCUTS:
            self.setTool(TOOL_SHORTCUTS[key])
            return True
        if key in TOGGLE_SHORTCUTS:
            tool = TOGGLE_SHORTCUTS[key]
            self.setTool(Tool.SELECT if self._tool == tool else tool)
            return True
        return False

    @Slot(str)
    def keyRelease(self, key: str) -> None:
        if key.lower() == "space":
            self._set_space_held(False)

    def _escape(self) -> None:
        if self.cancel():
            return
        self._set_connect_from(None)
        if self._tool in (Tool.ERASER, Tool.CONNECT):
            self.setTool(Tool.SELECT)
        self._selection.clear()

    @Slot(result=int)
    def deleteSelection(self) -> int:
        """Delete every selected entity. Returns how many were removed."""
        if self._operation != Operation.IDLE:
            return 0
        deleted = sum(1 for ref in self._selection.refs() if self._scene.delete_entity(ref))
        if deleted:
            self.editCommitted.emit()
        return deleted

    @Slot(result=int)
    def duplicateSelection(self) -> int:
        """Copy the selected cells with an offset and select the copies."""
        if self._operation != Operation.IDLE:
            return 0
        copies = []
        for ref in self._selection.refs():
            if ref.kind != EntityKind.CELL:
                continue
            cell = self._scene.getCell(ref.id)
            copy_id = self._scene.addCell(
                cell.x + DUPLICATE_OFFSET,
                cell.y + DUPLICATE_OFFSET,
                cell.title,
                width=cell.width,
                height=cell.height,
                color=cell.color,
                content=cell.content,
                comment=cell.comment,
                task_meta=replace(cell.task_meta, tags=list(cell.task_meta.tags)) if cell.task_meta else None,
            )
            copies.append(EntityRef.cell(copy_id))
        if copies:
            self._selection.set_refs(copies)
            self.editCommitted.emit()
        return len(copies)

    # --- Scene observers ----------------------------------------------------
    @Slot(str, int)
    def _on_entity_removed(self, kind: str, entity_id: int) -> None:
        if kind != EntityKind.CELL.value:
            return
        if self._connect_from_id == entity_id:
            self._set_connect_from(None)
        if self._connect is None:
            return
        if self._connect.from_cell_id == entity_id:
            self._reset_gesture()
        elif self._connect.target is not None and self._connect.target[0] == entity_id:
            self._connect.target = None
            self.changed.emit()

    # --- Host snapshot ------------------------------------------------------
    def _connection_preview(self) -> Optional[Dict[str, Any]]:
        if self._connect is None:
            return None
        source = self._scene.getCell(self._connect.from_cell_id)
        start = port_position(source, self._connect.from_port)
        end = self._connect.pointer
        target_id: Optional[int] = None
        target_port: Optional[str] = None
        target_cell = None
        if self._connect.target is not None:
            target_cell = self._scene.getCell(self._connect.target[0])
        if target_cell is not None:
            port = self._connect.target[1]
            end = port_position(target_cell, port)
            target_id = target_cell.id
            target_port = port.value
        return {
            "fromCellId": source.id,
            "fromPort": self._connect.from_port.value,
            "fromX": start.x(),
            "fromY": start.y(),
            "toX": end.x(),
            "toY": end.y(),
            "targetCellId": target_id,
            "targetPort": target_port,
        }

    def snapshot(self) -> Dict[str, Any]:
        """Return everything a presentation layer needs to redraw."""
        data = self._scene.to_dict()
        return {
            "cells": data["cells"],
            "connections": data["connections"],
            "textBoxes": data["textBoxes"],
            "images": data["images"],
            "viewport": {
                "zoom": self._viewport.zoomLevel,
                "panX": self._viewport.panX,
                "panY": self._viewport.panY,
            },
            "selection": [{"kind": ref.kind.value, "id": ref.id} for ref in self._selection.refs()],
            "tool": self._tool.value,
            "operation": self._operation.value,
            "connectFromId": self._connect_from_id,
            "connectionPreview": self._connection_preview(),
        }
