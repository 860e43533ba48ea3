"""Tests for the minimap model."""

import pytest
from PySide6.QtCore import QRectF

from gripdiagram import EntityRef, MinimapModel, Port


@pytest.fixture
def minimap(scene, viewport, selection):
    return MinimapModel(scene, viewport, selection)


@pytest.fixture
def cells(scene):
    a = scene.addCell(0.0, 0.0, "A")
    b = scene.addCell(400.0, 0.0, "B")
    return a, b


class TestLayout:
    def test_empty_scene(self, minimap):
        assert minimap.contentRect() is None
        assert minimap.markers() == []
        assert minimap.viewportRect() is None
        assert minimap.navigate(10, 10) is False

    def test_content_rect_and_scale(self, minimap, cells):
        assert minimap.contentRect() == QRectF(-50, -50, 700, 220)
        assert minimap.scale == pytest.approx(0.15)

    def test_markers(self, minimap, selection, cells):
        a, _ = cells
        selection.selectOnly(EntityRef.cell(a))
        first = minimap.markers()[0]
        assert first["x"] == pytest.approx(7.5)
        assert first["y"] == pytest.approx(7.5)
        assert first["width"] == pytest.approx(30.0)
        assert first["height"] == pytest.approx(18.0)
        assert first["color"] == "#3b82f6"
        assert first["selected"] is True
        assert minimap.markers()[1]["selected"] is False

    def test_markers_have_minimum_size(self, minimap, scene):
        scene.addCell(0.0, 0.0)
        scene.addCell(10000.0, 10000.0)
        for marker in minimap.markers():
            assert marker["width"] >= 3
            assert marker["height"] >= 3

    def test_connection_lines(self, minimap, scene, cells):
        a, b = cells
        scene.addConnection(a, Port.RIGHT, b, Port.LEFT)
        [line] = minimap.connectionLines()
        assert line["x1"] == pytest.approx(22.5)
        assert line["x2"] == pytest.approx(82.5)
        assert line["y1"] == line["y2"]

    def test_annotations_only_when_enabled(self, scene, viewport, cells):
        scene.addTextBox(2000.0, 0.0, "far away")
        assert MinimapModel(scene, viewport).contentRect().right() == 650
        with_annotations = MinimapModel(scene, viewport, include_annotations=True)
        assert with_annotations.contentRect().right() > 2000
        kinds = {marker["kind"] for marker in with_annotations.markers()}
        assert kinds == {"cell", "textBox"}

    def test_viewport_rect(self, minimap, cells):
        rect = minimap.viewportRect()
        assert rect.x() == pytest.approx(7.5)
        assert rect.width() == pytest.approx(120.0)
        assert rect.height() == pytest.approx(90.0)


class TestInteraction:
    def test_navigate_centres_viewport(self, minimap, viewport, cells):
        assert minimap.navigate(22.5, 16.5)
        center = viewport.screenToScene(400.0, 300.0)
        assert center.x() == pytest.approx(100.0)
        assert center.y() == pytest.approx(60.0)

    def test_minimize_is_view_only(self, minimap, scene, cells):
        revision = scene.revision
        minimap.toggleMinimized()
        assert minimap.minimized is True
        minimap.toggleMinimized()
        assert minimap.minimized is False
        assert scene.revision == revision

    def test_changed_follows_scene_and_viewport(self, minimap, scene, viewport):
        emitted = []
        minimap.changed.connect(lambda: emitted.append(True))
        scene.addCell(0.0, 0.0)
        viewport.pan(10.0, 0.0)
        assert len(emitted) >= 2
