"""Tests for geometry and hit-testing helpers."""

import pytest
from PySide6.QtCore import QPointF, QRectF

from gripdiagram.geometry import (
    HitKind,
    best_ports,
    bounding_rect,
    closest_side,
    connection_at,
    distance_to_segment,
    fit_within,
    hit_test,
    measure_text,
    nearest_port,
    point_in_rect,
    port_position,
    resize_handle_at,
)
from gripdiagram.types import (
    DiagramCell,
    DiagramConnection,
    DiagramImage,
    DiagramTextBox,
    EntityRef,
    Port,
    ResizeHandle,
)


@pytest.fixture
def cell_a():
    return DiagramCell(id=1, x=0.0, y=0.0, width=200.0, height=120.0)


@pytest.fixture
def cell_b():
    return DiagramCell(id=2, x=400.0, y=0.0, width=200.0, height=120.0)


class TestPortsAndBounds:
    def test_port_positions_are_side_midpoints(self, cell_a):
        assert port_position(cell_a, Port.TOP) == QPointF(100, 0)
        assert port_position(cell_a, Port.RIGHT) == QPointF(200, 60)
        assert port_position(cell_a, Port.BOTTOM) == QPointF(100, 120)
        assert port_position(cell_a, Port.LEFT) == QPointF(0, 60)

    def test_bounding_rect_empty(self):
        assert bounding_rect([]) is None

    def test_bounding_rect_union(self, cell_a):
        other = DiagramCell(id=2, x=400.0, y=50.0, width=200.0, height=120.0)
        assert bounding_rect([cell_a, other]) == QRectF(0, 0, 600, 170)

    def test_point_in_rect_includes_edges(self):
        rect = QRectF(0, 0, 200, 120)
        assert point_in_rect(QPointF(200, 120), rect)
        assert point_in_rect(QPointF(0, 0), rect)
        assert not point_in_rect(QPointF(201, 60), rect)
        assert point_in_rect(QPointF(205, 60), rect, margin=10)

    def test_nearest_port_within_radius(self, cell_a, cell_b):
        found = nearest_port([cell_a, cell_b], QPointF(205, 60), 10)
        assert found == (cell_a, Port.RIGHT)

    def test_nearest_port_outside_radius(self, cell_a):
        assert nearest_port([cell_a], QPointF(230, 60), 10) is None

    def test_nearest_port_excludes_cell(self, cell_a):
        assert nearest_port([cell_a], QPointF(200, 60), 10, exclude_cell_id=1) is None


class TestSidesAndRouting:
    @pytest.mark.parametrize(
        "point, expected",
        [
            (QPointF(100, 10), Port.TOP),
            (QPointF(100, 110), Port.BOTTOM),
            (QPointF(5, 60), Port.LEFT),
            (QPointF(195, 60), Port.RIGHT),
        ],
    )
    def test_closest_side(self, cell_a, point, expected):
        assert closest_side(cell_a, point) == expected

    def test_closest_side_tie_prefers_top(self, cell_a):
        # 60 from top, bottom and left
        assert closest_side(cell_a, QPointF(60, 60)) == Port.TOP

    def test_best_ports_horizontal(self, cell_a, cell_b):
        assert best_ports(cell_a, cell_b) == (Port.RIGHT, Port.LEFT)
        assert best_ports(cell_b, cell_a) == (Port.LEFT, Port.RIGHT)

    def test_best_ports_vertical(self, cell_a):
        below = DiagramCell(id=3, x=0.0, y=300.0)
        assert best_ports(cell_a, below) == (Port.BOTTOM, Port.TOP)
        assert best_ports(below, cell_a) == (Port.TOP, Port.BOTTOM)

    def test_distance_to_segment(self):
        a, b = QPointF(0, 0), QPointF(10, 0)
        assert distance_to_segment(QPointF(5, 5), a, b) == pytest.approx(5)
        assert distance_to_segment(QPointF(-3, 4), a, b) == pytest.approx(5)
        assert distance_to_segment(QPointF(3, 4), a, a) == pytest.approx(5)


class TestResizeHandles:
    def test_handles(self):
        rect = QRectF(0, 0, 200, 120)
        assert resize_handle_at(rect, QPointF(200, 120), 12) == ResizeHandle.SOUTH_EAST
        assert resize_handle_at(rect, QPointF(200, 60), 12) == ResizeHandle.EAST
        assert resize_handle_at(rect, QPointF(100, 120), 12) == ResizeHandle.SOUTH
        assert resize_handle_at(rect, QPointF(100, 60), 12) is None


class TestSizing:
    def test_measure_text_grows_with_content(self):
        short_width, short_height = measure_text("Hi", 16)
        long_width, _ = measure_text("A much longer line of text", 16)
        _, tall_height = measure_text("one\ntwo\nthree", 16)
        assert long_width > short_width
        assert tall_height > short_height

    def test_measure_text_respects_minimum(self):
        width, height = measure_text("", 16)
        assert width == 40
        assert height >= 24

    def test_fit_within_scales_down(self):
        assert fit_within(600, 300, 300) == (300, 150)
        assert fit_within(200, 800, 300) == (75, 300)

    def test_fit_within_keeps_small_images(self):
        assert fit_within(100, 50, 300) == (100, 50)


class TestHitTest:
    def test_empty_canvas(self, cell_a):
        hit = hit_test([cell_a], [], [], [], QPointF(1000, 1000))
        assert hit.kind == HitKind.NONE
        assert hit.ref is None

    def test_cell_body(self, cell_a):
        hit = hit_test([cell_a], [], [], [], QPointF(100, 60))
        assert hit.kind == HitKind.CELL
        assert hit.ref == EntityRef.cell(1)

    def test_port_wins_over_resize_handle(self, cell_a):
        hit = hit_test([cell_a], [], [], [], QPointF(200, 60))
        assert hit.kind == HitKind.PORT
        assert hit.port == Port.RIGHT

    def test_resize_corner(self, cell_a):
        hit = hit_test([cell_a], [], [], [], QPointF(198, 118))
        assert hit.kind == HitKind.RESIZE
        assert hit.handle == ResizeHandle.SOUTH_EAST
        assert hit.ref == EntityRef.cell(1)

    def test_topmost_cell_wins(self, cell_a):
        above = DiagramCell(id=2, x=50.0, y=30.0)
        hit = hit_test([cell_a, above], [], [], [], QPointF(100, 60))
        assert hit.ref == EntityRef.cell(2)

    def test_text_box_above_cell(self, cell_a):
        text_box = DiagramTextBox(id=7, x=80.0, y=40.0, width=60.0, height=30.0)
        hit = hit_test([cell_a], [text_box], [], [], QPointF(100, 50))
        assert hit.kind == HitKind.TEXT_BOX
        assert hit.ref == EntityRef.text_box(7)

    def test_image_handle_only_when_resizable(self):
        image = DiagramImage(id=3, x=500.0, y=500.0, width=100.0, height=50.0)
        corner = QPointF(600, 550)
        assert hit_test([], [], [image], [], corner).kind == HitKind.IMAGE
        hit = hit_test([], [], [image], [], corner, resizable_image_ids=[3])
        assert hit.kind == HitKind.RESIZE
        assert hit.ref == EntityRef.image(3)

    def test_connection_line(self, cell_a, cell_b):
        connection = DiagramConnection(id=9, from_cell_id=1, from_port=Port.RIGHT, to_cell_id=2, to_port=Port.LEFT)
        hit = hit_test([cell_a, cell_b], [], [], [connection], QPointF(300, 63))
        assert hit.kind == HitKind.CONNECTION
        assert hit.connection_id == 9
        assert hit_test([cell_a, cell_b], [], [], [connection], QPointF(300, 100)).kind == HitKind.NONE

    def test_radii_scale_with_zoom(self, cell_a):
        point = QPointF(215, 60)
        assert hit_test([cell_a], [], [], [], point, zoom=1.0).kind == HitKind.NONE
        assert hit_test([cell_a], [], [], [], point, zoom=0.5).kind == HitKind.PORT

    def test_connection_at_ignores_dangling(self, cell_a):
        dangling = DiagramConnection(id=1, from_cell_id=1, from_port=Port.RIGHT, to_cell_id=99, to_port=Port.LEFT)
        assert connection_at([cell_a], [dangling], QPointF(200, 60), 8) is None
