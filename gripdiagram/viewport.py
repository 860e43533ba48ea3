"""Viewport controller: pan offset and discrete zoom.

Scene coordinates map to screen coordinates as ``screen = scene * zoom + pan``.
"""

from __future__ import annotations

from typing import Optional

from PySide6.QtCore import Property, QObject, QPointF, QRectF, Signal, Slot

from .constants import DEFAULT_ZOOM, FIT_MARGIN, MAX_FIT_ZOOM, ZOOM_LEVELS


def snap_zoom(level: float) -> float:
    """Return the ladder value closest to ``level``; ties go to the smaller."""
    return min(ZOOM_LEVELS, key=lambda value: (abs(value - level), value))


class Viewport(QObject):
    """Pan/zoom state of the canvas."""

    zoomChanged = Signal()
    panChanged = Signal()
    canvasSizeChanged = Signal()

    def __init__(self, canvas_width: float = 0.0, canvas_height: float = 0.0, parent: Optional[QObject] = None):
        super().__init__(parent)
        self._zoom = DEFAULT_ZOOM
        self._pan_x = 0.0
        self._pan_y = 0.0
        self._canvas_width = float(canvas_width)
        self._canvas_height = float(canvas_height)

    # --- Properties ---------------------------------------------------------
    @Property(float, notify=zoomChanged)
    def zoomLevel(self) -> float:
        return self._zoom

    @zoomLevel.setter  # type: ignore[no-redef]
    def zoomLevel(self, value: float) -> None:
        self.setZoom(value)

    @Property(int, notify=zoomChanged)
    def zoomPercent(self) -> int:
        return int(round(self._zoom * 100))

    @Property(float, notify=panChanged)
    def panX(self) -> float:
        return self._pan_x

    @Property(float, notify=panChanged)
    def panY(self) -> float:
        return self._pan_y

    @Property(float, notify=canvasSizeChanged)
    def canvasWidth(self) -> float:
        return self._canvas_width

    @Property(float, notify=canvasSizeChanged)
    def canvasHeight(self) -> float:
        return self._canvas_height

    @Property(bool, notify=zoomChanged)
    def canZoomIn(self) -> bool:
        return self._zoom < ZOOM_LEVELS[-1]

    @Property(bool, notify=zoomChanged)
    def canZoomOut(self) -> bool:
        return self._zoom > ZOOM_LEVELS[0]

    # --- Zoom ---------------------------------------------------------------
    def _zoom_index(self) -> int:
        return ZOOM_LEVELS.index(self._zoom)

    def _apply_zoom(self, level: float) -> bool:
        if level == self._zoom:
            return False
        self._zoom = level
        self.zoomChanged.emit()
        return True

    @Slot(result=bool)
    def zoomIn(self) -> bool:
        """Step one ladder value up. Returns False at the maximum."""
        index = self._zoom_index()
        if index >= len(ZOOM_LEVELS) - 1:
            return False
        return self._apply_zoom(ZOOM_LEVELS[index + 1])

    @Slot(result=bool)
    def zoomOut(self) -> bool:
        """Step one ladder value down. Returns False at the minimum."""
        index = self._zoom_index()
        if index <= 0:
            return False
        return self._apply_zoom(ZOOM_LEVELS[index - 1])

    @Slot(float, result=bool)
    def setZoom(self, level: float) -> bool:
        return self._apply_zoom(snap_zoom(level))

    @Slot()
    def resetZoom(self) -> None:
        self._apply_zoom(DEFAULT_ZOOM)

    @Slot(int, float, float, result=bool)
    def zoomAt(self, steps: int, screen_x: float, screen_y: float) -> bool:
        """Move ``steps`` along the ladder keeping the point under the anchor fixed."""
        index = max(0, min(len(ZOOM_LEVELS) - 1, self._zoom_index() + steps))
        anchor = self.screenToScene(screen_x, screen_y)
        if not self._apply_zoom(ZOOM_LEVELS[index]):
            return False
        self.setPan(screen_x - anchor.x() * self._zoom, screen_y - anchor.y() * self._zoom)
        return True

    # --- Pan ----------------------------------------------------------------
    @Slot(float, float)
    def pan(self, dx: float, dy: float) -> None:
        self.setPan(self._pan_x + dx, self._pan_y + dy)

    @Slot(float, float)
    def setPan(self, x: float, y: float) -> None:
        x = float(x)
        y = float(y)
        if x == self._pan_x and y == self._pan_y:
            return
        self._pan_x = x
        self._pan_y = y
        self.panChanged.emit()

    # --- Coordinate mapping -------------------------------------------------
    def screenToScene(self, x: float, y: float) -> QPointF:
        return QPointF((x - self._pan_x) / self._zoom, (y - self._pan_y) / self._zoom)

    def sceneToScreen(self, x: float, y: float) -> QPointF:
        return QPointF(x * self._zoom + self._pan_x, y * self._zoom + self._pan_y)

    @Slot(float, float)
    def setCanvasSize(self, width: float, height: float) -> None:
        width = max(0.0, float(width))
        height = max(0.0, float(height))
        if width == self._canvas_width and height == self._canvas_height:
            return
        self._canvas_width = width
        self._canvas_height = height
        self.canvasSizeChanged.emit()

    def visibleSceneRect(self) -> QRectF:
        """Return the scene rectangle currently shown on the canvas."""
        top_left = self.screenToScene(0.0, 0.0)
        return QRectF(
            top_left.x(),
            top_left.y(),
            self._canvas_width / self._zoom,
            self._canvas_height / self._zoom,
        )

    @Slot(float, float)
    def centerOn(self, scene_x: float, scene_y: float) -> None:
        """Pan so that the scene point sits in the middle of the canvas."""
        self.setPan(
            self._canvas_width / 2 - scene_x * self._zoom,
            self._canvas_height / 2 - scene_y * self._zoom,
        )

    def fitToRect(self, rect: Optional[QRectF]) -> None:
        """Zoom and pan so ``rect`` is fully visible.

        The zoom is the largest ladder value that fits the rect inside the
        canvas with a margin, never above ``MAX_FIT_ZOOM``. A missing or empty
        rect resets the zoom.
        """
        if rect is None or (rect.width() <= 0 and rect.height() <= 0):
            self.resetZoom()
            return

        available_width = max(1.0, self._canvas_width - FIT_MARGIN * 2)
        available_height = max(1.0, self._canvas_height - FIT_MARGIN * 2)
        target = MAX_FIT_ZOOM
        if rect.width() > 0:
            target = min(target, available_width / rect.width())
        if rect.height() > 0:
            target = min(target, available_height / rect.height())

        fitting = [level for level in ZOOM_LEVELS if level <= target]
        self._apply_zoom(fitting[-1] if fitting else ZOOM_LEVELS[0])
        center = rect.center()
        self.centerOn(center.x(), center.y())
