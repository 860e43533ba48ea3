"""Geometry and hit-testing helpers.

Everything here is a pure function over scene-space values. Screen-space
tolerances are converted by dividing by the zoom level before they are
passed in, so callers never mix the two coordinate systems.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from PySide6.QtCore import QPointF, QRectF

from .constants import (
    CONNECTION_HIT_RADIUS,
    MIN_TEXT_BOX_HEIGHT,
    MIN_TEXT_BOX_WIDTH,
    PORT_HIT_RADIUS,
    RESIZE_HANDLE_SIZE,
    TEXT_BOX_PADDING,
)
from .types import (
    DiagramCell,
    DiagramConnection,
    DiagramImage,
    DiagramTextBox,
    EntityRef,
    Port,
    ResizeHandle,
)


class HitKind(Enum):
    """What lies under a pointer position."""

    NONE = "none"
    RESIZE = "resize"
    PORT = "port"
    IMAGE = "image"
    TEXT_BOX = "textBox"
    CELL = "cell"
    CONNECTION = "connection"


@dataclass
class Hit:
    """Result of :func:`hit_test`."""

    kind: HitKind = HitKind.NONE
    ref: Optional[EntityRef] = None
    port: Optional[Port] = None
    handle: Optional[ResizeHandle] = None
    connection_id: Optional[int] = None


def entity_rect(entity) -> QRectF:
    """Return the scene rectangle of a cell, text box or image."""
    return QRectF(entity.x, entity.y, entity.width, entity.height)


def port_position(cell: DiagramCell, port: Port) -> QPointF:
    """Return the midpoint of the side of ``cell`` named by ``port``."""
    if port == Port.TOP:
        return QPointF(cell.x + cell.width / 2, cell.y)
    if port == Port.RIGHT:
        return QPointF(cell.x + cell.width, cell.y + cell.height / 2)
    if port == Port.BOTTOM:
        return QPointF(cell.x + cell.width / 2, cell.y + cell.height)
    return QPointF(cell.x, cell.y + cell.height / 2)


def cell_center(cell: DiagramCell) -> QPointF:
    return QPointF(cell.x + cell.width / 2, cell.y + cell.height / 2)


def bounding_rect(entities: Iterable) -> Optional[QRectF]:
    """Return the union of entity rectangles, or None for no entities."""
    min_x = min_y = math.inf
    max_x = max_y = -math.inf
    found = False
    for entity in entities:
        found = True
        min_x = min(min_x, entity.x)
        min_y = min(min_y, entity.y)
        max_x = max(max_x, entity.x + entity.width)
        max_y = max(max_y, entity.y + entity.height)
    if not found:
        return None
    return QRectF(min_x, min_y, max_x - min_x, max_y - min_y)


def point_in_rect(point: QPointF, rect: QRectF, margin: float = 0.0) -> bool:
    """Inclusive containment test with an optional enlargement margin."""
    return (
        rect.left() - margin <= point.x() <= rect.right() + margin
        and rect.top() - margin <= point.y() <= rect.bottom() + margin
    )


def distance(a: QPointF, b: QPointF) -> float:
    return math.hypot(a.x() - b.x(), a.y() - b.y())


def distance_to_segment(point: QPointF, a: QPointF, b: QPointF) -> float:
    """Shortest distance from ``point`` to the segment ``a``-``b``."""
    dx = b.x() - a.x()
    dy = b.y() - a.y()
    length_sq = dx * dx + dy * dy
    if length_sq == 0:
        return distance(point, a)
    t = ((point.x() - a.x()) * dx + (point.y() - a.y()) * dy) / length_sq
    t = max(0.0, min(1.0, t))
    projection = QPointF(a.x() + t * dx, a.y() + t * dy)
    return distance(point, projection)


def nearest_port(
    cells: Iterable[DiagramCell],
    point: QPointF,
    radius: float,
    exclude_cell_id: Optional[int] = None,
) -> Optional[Tuple[DiagramCell, Port]]:
    """Return the cell and port closest to ``point`` within ``radius``."""
    best: Optional[Tuple[DiagramCell, Port]] = None
    best_distance = radius
    for cell in cells:
        if cell.id == exclude_cell_id:
            continue
        for port in Port:
            d = distance(point, port_position(cell, port))
            if d <= best_distance:
                best = (cell, port)
                best_distance = d
    return best


def closest_side(cell: DiagramCell, point: QPointF) -> Port:
    """Return the side of ``cell`` nearest to ``point``.

    Ties resolve in the order top, bottom, left, right.
    """
    rel_x = point.x() - cell.x
    rel_y = point.y() - cell.y
    candidates = [
        (rel_y, Port.TOP),
        (cell.height - rel_y, Port.BOTTOM),
        (rel_x, Port.LEFT),
        (cell.width - rel_x, Port.RIGHT),
    ]
    smallest = min(d for d, _ in candidates)
    for d, port in candidates:
        if d == smallest:
            return port
    return Port.RIGHT


def best_ports(from_cell: DiagramCell, to_cell: DiagramCell) -> Tuple[Port, Port]:
    """Pick facing ports along the dominant axis between two cells."""
    a = cell_center(from_cell)
    b = cell_center(to_cell)
    dx = b.x() - a.x()
    dy = b.y() - a.y()
    if abs(dx) > abs(dy):
        return (Port.RIGHT, Port.LEFT) if dx > 0 else (Port.LEFT, Port.RIGHT)
    return (Port.BOTTOM, Port.TOP) if dy > 0 else (Port.TOP, Port.BOTTOM)


def connection_segment(
    connection: DiagramConnection,
    cells_by_id: Dict[int, DiagramCell],
) -> Optional[Tuple[QPointF, QPointF]]:
    """Return the port-to-port segment of a connection."""
    source = cells_by_id.get(connection.from_cell_id)
    target = cells_by_id.get(connection.to_cell_id)
    if source is None or target is None:
        return None
    return port_position(source, connection.from_port), port_position(target, connection.to_port)


def resize_handle_at(rect: QRectF, point: QPointF, size: float) -> Optional[ResizeHandle]:
    """Return the resize handle of ``rect`` under ``point``, if any."""
    half = size / 2
    near_right = abs(point.x() - rect.right()) <= half
    near_bottom = abs(point.y() - rect.bottom()) <= half
    within_x = rect.left() <= point.x() <= rect.right() + half
    within_y = rect.top() <= point.y() <= rect.bottom() + half
    if near_right and near_bottom:
        return ResizeHandle.SOUTH_EAST
    if near_right and within_y:
        return ResizeHandle.EAST
    if near_bottom and within_x:
        return ResizeHandle.SOUTH
    return None


def measure_text(text: str, font_size: int) -> Tuple[float, float]:
    """Approximate the box needed to show ``text`` at ``font_size``."""
    lines = text.split("\n") or [""]
    char_width = font_size * 0.6
    line_height = font_size * 1.4
    width = max(len(line) for line in lines) * char_width + TEXT_BOX_PADDING * 2
    height = len(lines) * line_height + TEXT_BOX_PADDING * 2
    return max(MIN_TEXT_BOX_WIDTH, width), max(MIN_TEXT_BOX_HEIGHT, height)


def fit_within(width: float, height: float, max_size: float) -> Tuple[float, float]:
    """Scale ``width`` x ``height`` down to fit a square of ``max_size``."""
    if width <= 0 or height <= 0:
        return width, height
    if width > max_size or height > max_size:
        ratio = min(max_size / width, max_size / height)
        return float(round(width * ratio)), float(round(height * ratio))
    return width, height


def hit_test(
    cells: Sequence[DiagramCell],
    text_boxes: Sequence[DiagramTextBox],
    images: Sequence[DiagramImage],
    connections: Sequence[DiagramConnection],
    point: QPointF,
    zoom: float = 1.0,
    resizable_image_ids: Iterable[int] = (),
) -> Hit:
    """Resolve what lies under a scene point.

    Ports win over everything else. Images are above text boxes, which are
    above cells, and later entities are above earlier ones; an entity's
    resize handle wins over its body. Connections are only hit on empty
    canvas.
    """
    port_radius = PORT_HIT_RADIUS / zoom
    handle_size = RESIZE_HANDLE_SIZE / zoom

    found = nearest_port(cells, point, port_radius)
    if found is not None:
        cell, port = found
        return Hit(HitKind.PORT, EntityRef.cell(cell.id), port=port)

    resizable = set(resizable_image_ids)
    for image in reversed(images):
        rect = entity_rect(image)
        if image.id in resizable and distance(point, QPointF(rect.right(), rect.bottom())) <= handle_size:
            return Hit(HitKind.RESIZE, EntityRef.image(image.id), handle=ResizeHandle.SOUTH_EAST)
        if point_in_rect(point, rect):
            return Hit(HitKind.IMAGE, EntityRef.image(image.id))
    for text_box in reversed(text_boxes):
        if point_in_rect(point, entity_rect(text_box)):
            return Hit(HitKind.TEXT_BOX, EntityRef.text_box(text_box.id))
    for cell in reversed(cells):
        rect = entity_rect(cell)
        handle = resize_handle_at(rect, point, handle_size)
        if handle is not None:
            return Hit(HitKind.RESIZE, EntityRef.cell(cell.id), handle=handle)
        if point_in_rect(point, rect):
            return Hit(HitKind.CELL, EntityRef.cell(cell.id))

    connection_id = connection_at(cells, connections, point, CONNECTION_HIT_RADIUS / zoom)
    if connection_id is not None:
        return Hit(HitKind.CONNECTION, connection_id=connection_id)
    return Hit()


def connection_at(
    cells: Sequence[DiagramCell],
    connections: Sequence[DiagramConnection],
    point: QPointF,
    radius: float,
) -> Optional[int]:
    """Return the id of the connection closest to ``point`` within ``radius``."""
    cells_by_id = {cell.id: cell for cell in cells}
    best_id: Optional[int] = None
    best_distance = radius
    for connection in connections:
        segment = connection_segment(connection, cells_by_id)
        if segment is None:
            continue
        d = distance_to_segment(point, *segment)
        if d <= best_distance:
            best_id = connection.id
            best_distance = d
    return best_id


__all__: List[str] = [
    "Hit",
    "HitKind",
    "best_ports",
    "bounding_rect",
    "cell_center",
    "closest_side",
    "connection_at",
    "connection_segment",
    "distance",
    "distance_to_segment",
    "entity_rect",
    "fit_within",
    "hit_test",
    "measure_text",
    "nearest_port",
    "point_in_rect",
    "port_position",
    "resize_handle_at",
]
