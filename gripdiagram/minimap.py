"""Minimap: a scaled overview of the scene with click-to-navigate."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from PySide6.QtCore import Property, QObject, QPointF, QRectF, Signal, Slot

from .constants import (
    MINIMAP_HEIGHT,
    MINIMAP_MAX_SCALE,
    MINIMAP_MIN_MARKER,
    MINIMAP_PADDING,
    MINIMAP_WIDTH,
)
from .geometry import bounding_rect, cell_center
from .types import EntityRef

TEXT_BOX_MARKER_COLOR = "#94a3b8"
IMAGE_MARKER_COLOR = "#64748b"


class MinimapModel(QObject):
    """Read-only observer of a scene and its viewport.

    Minimap coordinates start at the top-left of the padded content rect and
    are scaled by ``scale``. Nothing is cached: every query reflects the
    current scene.
    """

    changed = Signal()
    minimizedChanged = Signal()

    def __init__(
        self,
        scene,
        viewport,
        selection=None,
        width: float = MINIMAP_WIDTH,
        height: float = MINIMAP_HEIGHT,
        include_annotations: bool = False,
        minimized: bool = False,
        parent: Optional[QObject] = None,
    ):
        super().__init__(parent)
        self._scene = scene
        self._viewport = viewport
        self._selection = selection
        self._width = float(width)
        self._height = float(height)
        self._include_annotations = include_annotations
        self._minimized = minimized

        scene.diagramChanged.connect(self.changed)
        viewport.zoomChanged.connect(self.changed)
        viewport.panChanged.connect(self.changed)
        viewport.canvasSizeChanged.connect(self.changed)
        if selection is not None:
            selection.selectionChanged.connect(self.changed)

    @Property(bool, notify=minimizedChanged)
    def minimized(self) -> bool:
        return self._minimized

    @minimized.setter  # type: ignore[no-redef]
    def minimized(self, value: bool) -> None:
        if self._minimized != value:
            self._minimized = value
            self.minimizedChanged.emit()

    @Slot()
    def toggleMinimized(self) -> None:
        self.minimized = not self._minimized

    @Property(float, constant=True)
    def width(self) -> float:
        return self._width

    @Property(float, constant=True)
    def height(self) -> float:
        return self._height

    def _entities(self) -> List[Any]:
        entities: List[Any] = list(self._scene.cells())
        if self._include_annotations:
            entities.extend(self._scene.textBoxList())
            entities.extend(self._scene.imageList())
        return entities

    def contentRect(self) -> Optional[QRectF]:
        """Scene bounds of the tracked entities plus padding, or None."""
        bounds = bounding_rect(self._entities())
        if bounds is None:
            return None
        return bounds.adjusted(-MINIMAP_PADDING, -MINIMAP_PADDING, MINIMAP_PADDING, MINIMAP_PADDING)

    @Property(float, notify=changed)
    def scale(self) -> float:
        content = self.contentRect()
        if content is None:
            return MINIMAP_MAX_SCALE
        return min(self._width / content.width(), self._height / content.height(), MINIMAP_MAX_SCALE)

    def _to_minimap(self, content: QRectF, scale: float, x: float, y: float) -> QPointF:
        return QPointF((x - content.left()) * scale, (y - content.top()) * scale)

    def markers(self) -> List[Dict[str, Any]]:
        """Minimap rectangles for each entity, never smaller than a few pixels."""
        content = self.contentRect()
        if content is None:
            return []
        scale = self.scale
        result = []
        for cell in self._scene.cells():
            result.append(self._marker(content, scale, cell, "cell", cell.color, EntityRef.cell(cell.id)))
        if self._include_annotations:
            for text_box in self._scene.textBoxList():
                result.append(self._marker(content, scale, text_box, "textBox", TEXT_BOX_MARKER_COLOR,
                                           EntityRef.text_box(text_box.id)))
            for image in self._scene.imageList():
                result.append(self._marker(content, scale, image, "image", IMAGE_MARKER_COLOR,
                                           EntityRef.image(image.id)))
        return result

    def _marker(self, content: QRectF, scale: float, entity, kind: str, color: str, ref: EntityRef) -> Dict[str, Any]:
        top_left = self._to_minimap(content, scale, entity.x, entity.y)
        return {
            "kind": kind,
            "id": entity.id,
            "x": top_left.x(),
            "y": top_left.y(),
            "width": max(MINIMAP_MIN_MARKER, entity.width * scale),
            "height": max(MINIMAP_MIN_MARKER, entity.height * scale),
            "color": color,
            "selected": self._selection is not None and self._selection.contains(ref),
        }

    def connectionLines(self) -> List[Dict[str, float]]:
        content = self.contentRect()
        if content is None:
            return []
        scale = self.scale
        cells_by_id = {cell.id: cell for cell in self._scene.cells()}
        lines = []
        for connection in self._scene.connectionList():
            start = cell_center(cells_by_id[connection.from_cell_id])
            end = cell_center(cells_by_id[connection.to_cell_id])
            a = self._to_minimap(content, scale, start.x(), start.y())
            b = self._to_minimap(content, scale, end.x(), end.y())
            lines.append({"x1": a.x(), "y1": a.y(), "x2": b.x(), "y2": b.y()})
        return lines

    def viewportRect(self) -> Optional[QRectF]:
        """The visible part of the canvas, in minimap coordinates."""
        content = self.contentRect()
        if content is None:
            return None
        scale = self.scale
        visible = self._viewport.visibleSceneRect()
        top_left = self._to_minimap(content, scale, visible.left(), visible.top())
        return QRectF(top_left.x(), top_left.y(), visible.width() * scale, visible.height() * scale)

    @Slot(float, float, result=bool)
    def navigate(self, minimap_x: float, minimap_y: float) -> bool:
        """Centre the main canvas on the scene point under a minimap click."""
        content = self.contentRect()
        if content is None:
            return False
        scale = self.scale
        scene_x = content.left() + minimap_x / scale
        scene_y = content.top() + minimap_y / scale
        self._viewport.centerOn(scene_x, scene_y)
        return True
