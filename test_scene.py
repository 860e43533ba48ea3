"""Tests for the scene store."""

import random

import pytest

from gripdiagram import EntityRef, InvalidEndpoint, Port, SceneModel, TaskMeta, TaskStatus
from gripdiagram.constants import TEXT_BOX_PLACEHOLDER


@pytest.fixture
def two_cells(scene):
    a = scene.addCell(0.0, 0.0, "A")
    b = scene.addCell(400.0, 0.0, "B")
    return a, b


class TestCells:
    def test_add_cell_defaults(self, scene):
        cell_id = scene.addCell(10.0, 20.0)
        cell = scene.getCell(cell_id)
        assert cell_id == 1
        assert (cell.x, cell.y, cell.width, cell.height) == (10.0, 20.0, 200.0, 120.0)
        assert cell.title == "Cell 1"
        assert cell.color == "#3b82f6"
        assert scene.rowCount() == 1

    def test_role_data(self, scene):
        scene.addCell(10.0, 20.0, "Start")
        index = scene.index(0, 0)
        assert scene.data(index, scene.TitleRole) == "Start"
        assert scene.data(index, scene.XRole) == 10.0
        assert scene.data(index, scene.IsTaskRole) is False
        assert scene.roleNames()[scene.TitleRole] == b"title"

    def test_size_is_clamped(self, scene):
        cell_id = scene.addCell(0.0, 0.0, width=-10, height=5)
        cell = scene.getCell(cell_id)
        assert (cell.width, cell.height) == (120.0, 80.0)
        assert scene.resizeCell(cell_id, 50, 500)
        assert (cell.width, cell.height) == (120.0, 500.0)

    def test_ids_are_never_reused(self, scene):
        first = scene.addCell(0.0, 0.0)
        scene.deleteCell(first)
        assert scene.addCell(0.0, 0.0) == first + 1

    def test_invalid_color_rejected(self, scene):
        with pytest.raises(ValueError):
            scene.addCell(0.0, 0.0, color="#123456")
        cell_id = scene.addCell(0.0, 0.0)
        with pytest.raises(ValueError):
            scene.updateCell(cell_id, {"color": "plaid"})

    def test_update_cell(self, scene):
        cell_id = scene.addCell(0.0, 0.0)
        changes = []
        scene.cellsChanged.connect(lambda: changes.append(True))
        assert scene.updateCell(cell_id, {"title": "Renamed", "color": "#10b981"})
        cell = scene.getCell(cell_id)
        assert cell.title == "Renamed"
        assert cell.color == "#10b981"
        assert changes

    def test_update_unknown_field(self, scene):
        cell_id = scene.addCell(0.0, 0.0)
        with pytest.raises(ValueError):
            scene.updateCell(cell_id, {"label": "nope"})

    def test_missing_cell_is_benign(self, scene):
        revision = scene.revision
        assert scene.updateCell(42, {"title": "x"}) is False
        assert scene.moveCell(42, 1.0, 1.0) is False
        assert scene.deleteCell(42) is False
        assert scene.revision == revision

    def test_cascade_offsets(self, scene):
        first = scene.getCell(scene.addCellAtCascade(500.0, 400.0))
        second = scene.getCell(scene.addCellAtCascade(500.0, 400.0))
        assert (first.x, first.y) == (400.0, 340.0)
        assert (second.x, second.y) == (440.0, 380.0)

    def test_task_meta_via_patch(self, scene):
        cell_id = scene.addCell(0.0, 0.0)
        scene.updateCell(cell_id, {"taskMeta": {"status": "done", "priority": "high"}})
        meta = scene.getCell(cell_id).task_meta
        assert meta.status == TaskStatus.DONE
        assert scene.data(scene.index(0, 0), scene.TaskStatusRole) == "done"
        with pytest.raises(ValueError):
            scene.updateCell(cell_id, {"taskMeta": {"status": "someday"}})


class TestConnections:
    def test_connect_and_cascade_delete(self, scene, two_cells):
        a, b = two_cells
        scene.addConnection(a, Port.RIGHT, b, Port.LEFT)
        b_before = scene.getCell(b)
        snapshot = (b_before.x, b_before.y, b_before.width, b_before.height, b_before.title)

        removed = []
        scene.entityRemoved.connect(lambda kind, entity_id: removed.append((kind, entity_id)))
        assert scene.deleteCell(a)

        assert scene.connectionList() == []
        assert scene.connections == []
        cell = scene.getCell(b)
        assert (cell.x, cell.y, cell.width, cell.height, cell.title) == snapshot
        assert removed == [("cell", a)]

    def test_connection_property(self, scene, two_cells):
        a, b = two_cells
        connection_id = scene.addConnection(a, "right", b, "left")
        assert scene.connections == [
            {"id": connection_id, "fromId": a, "fromPosition": "right", "toId": b, "toPosition": "left"}
        ]

    def test_invalid_endpoints(self, scene, two_cells):
        a, _ = two_cells
        with pytest.raises(InvalidEndpoint):
            scene.addConnection(a, Port.RIGHT, 99, Port.LEFT)
        with pytest.raises(InvalidEndpoint):
            scene.addConnection(a, Port.RIGHT, a, Port.LEFT)
        assert scene.connectionList() == []

    def test_duplicate_pair_returns_existing(self, scene, two_cells):
        a, b = two_cells
        first = scene.addConnection(a, Port.RIGHT, b, Port.LEFT)
        assert scene.addConnection(b, Port.TOP, a, Port.BOTTOM) == first
        assert len(scene.connectionList()) == 1

    def test_delete_connections_at_port(self, scene, two_cells):
        a, b = two_cells
        c = scene.addCell(400.0, 300.0, "C")
        scene.addConnection(a, Port.RIGHT, b, Port.LEFT)
        scene.addConnection(a, Port.RIGHT, c, Port.LEFT)
        scene.addConnection(b, Port.BOTTOM, c, Port.TOP)
        assert scene.deleteConnectionsAtPort(a, Port.RIGHT) == 2
        assert len(scene.connectionList()) == 1
        assert scene.deleteConnectionsAtPort(a, Port.RIGHT) == 0

    def test_delete_connection(self, scene, two_cells):
        a, b = two_cells
        connection_id = scene.addConnection(a, Port.RIGHT, b, Port.LEFT)
        assert scene.deleteConnection(connection_id)
        assert not scene.deleteConnection(connection_id)

    def test_delete_connections_for_cell(self, scene, two_cells):
        a, b = two_cells
        c = scene.addCell(400.0, 300.0, "C")
        scene.addConnection(a, Port.RIGHT, b, Port.LEFT)
        scene.addConnection(c, Port.TOP, a, Port.BOTTOM)
        scene.addConnection(b, Port.BOTTOM, c, Port.TOP)
        assert scene.deleteConnectionsForCell(a) == 2
        assert [(conn.from_cell_id, conn.to_cell_id) for conn in scene.connectionList()] == [(b, c)]
        assert scene.getCell(a) is not None

    def test_reroute(self, scene, two_cells):
        a, b = two_cells
        connection_id = scene.addConnection(a, Port.TOP, b, Port.TOP)
        scene.rerouteConnections()
        connection = scene.getConnection(connection_id)
        assert (connection.from_port, connection.to_port) == (Port.RIGHT, Port.LEFT)

    def test_cascade_invariant_under_random_edits(self, scene):
        rng = random.Random(7)
        alive = []
        for _ in range(200):
            if alive and rng.random() < 0.4:
                scene.deleteCell(alive.pop(rng.randrange(len(alive))))
            else:
                alive.append(scene.addCell(rng.uniform(0, 1000), rng.uniform(0, 1000)))
            if len(alive) >= 2:
                a, b = rng.sample(alive, 2)
                scene.addConnection(a, Port.RIGHT, b, Port.LEFT)
            ids = {cell.id for cell in scene.cells()}
            for connection in scene.connectionList():
                assert connection.from_cell_id in ids
                assert connection.to_cell_id in ids


class TestAnnotations:
    def test_text_box_placeholder_and_growth(self, scene):
        text_box_id = scene.addTextBox(10.0, 10.0)
        text_box = scene.getTextBox(text_box_id)
        assert text_box.text == TEXT_BOX_PLACEHOLDER
        width = text_box.width
        scene.updateTextBox(text_box_id, {"text": "A considerably longer annotation"})
        assert text_box.width > width
        scene.updateTextBox(text_box_id, {"text": "   "})
        assert text_box.text == TEXT_BOX_PLACEHOLDER

    def test_text_box_highlight(self, scene):
        text_box_id = scene.addTextBox(0.0, 0.0, "note")
        scene.updateTextBox(text_box_id, {"highlightColor": "rgba(250, 204, 21, 0.4)", "bold": True})
        assert scene.textBoxes[0]["highlightColor"] == "rgba(250, 204, 21, 0.4)"
        assert scene.textBoxes[0]["bold"] is True
        with pytest.raises(ValueError):
            scene.updateTextBox(text_box_id, {"highlightColor": "#ff0000"})
        scene.updateTextBox(text_box_id, {"highlightColor": None})
        assert scene.getTextBox(text_box_id).highlight_color is None

    def test_delete_text_box(self, scene):
        text_box_id = scene.addTextBox(0.0, 0.0, "note")
        assert scene.deleteTextBox(text_box_id)
        assert scene.textBoxList() == []
        assert not scene.deleteTextBox(text_box_id)

    def test_move_text_box(self, scene):
        text_box_id = scene.addTextBox(0.0, 0.0, "note")
        revision = scene.revision
        assert scene.moveTextBox(text_box_id, 50.0, 60.0)
        text_box = scene.getTextBox(text_box_id)
        assert (text_box.x, text_box.y) == (50.0, 60.0)
        assert scene.revision > revision
        assert not scene.moveTextBox(99, 0.0, 0.0)

    def test_update_image(self, scene):
        image_id = scene.addImage(0.0, 0.0, 100.0, 100.0, "src")
        assert scene.updateImage(image_id, {"name": "logo.png", "width": 5.0})
        image = scene.getImage(image_id)
        assert image.name == "logo.png"
        assert image.width == 20.0
        with pytest.raises(ValueError):
            scene.updateImage(image_id, {"opacity": 0.5})
        assert not scene.updateImage(99, {"name": "x"})

    def test_image_scaled_on_insert(self, scene):
        image_id = scene.addImage(0.0, 0.0, 1200.0, 600.0, "data:image/png;base64,AAAA", "wide.png")
        image = scene.getImage(image_id)
        assert (image.width, image.height) == (300.0, 150.0)

    def test_image_explicit_resize_is_free(self, scene):
        image_id = scene.addImage(0.0, 0.0, 100.0, 100.0, "src")
        assert scene.resizeImage(image_id, 250.0, 40.0)
        image = scene.getImage(image_id)
        assert (image.width, image.height) == (250.0, 40.0)

    def test_generic_entity_access(self, scene):
        image_id = scene.addImage(0.0, 0.0, 100.0, 100.0, "src")
        ref = EntityRef.image(image_id)
        assert scene.move_entity(ref, 30.0, 40.0)
        assert (scene.get_entity(ref).x, scene.get_entity(ref).y) == (30.0, 40.0)
        assert scene.delete_entity(ref)
        assert scene.get_entity(ref) is None


class TestSerialization:
    def test_round_trip(self, scene, two_cells):
        a, b = two_cells
        scene.addConnection(a, Port.RIGHT, b, Port.LEFT)
        scene.updateCell(a, {"taskMeta": TaskMeta(status=TaskStatus.IN_PROGRESS)})
        scene.addTextBox(5.0, 5.0, "hello")
        scene.addImage(0.0, 300.0, 50.0, 50.0, "src", "pic")

        data = scene.to_dict()
        copy = SceneModel()
        copy.from_dict(data)
        assert copy.to_dict() == data
        assert copy.getCell(a).task_meta.status == TaskStatus.IN_PROGRESS

    def test_counters_restored(self, scene, two_cells):
        a, _ = two_cells
        scene.deleteCell(a)
        copy = SceneModel()
        copy.from_dict(scene.to_dict())
        assert copy.addCell(0.0, 0.0) == 3

    def test_legacy_snapshot(self, scene):
        scene.from_dict({
            "cells": [
                {"id": 4, "x": 0, "y": 0, "title": "Old", "headerColor": "#8b5cf6"},
                {"id": 9, "x": 300, "y": 0, "title": "Other"},
            ],
            "connections": [
                {"fromId": 4, "fromPosition": "right", "toId": 9, "toPosition": "left"},
                {"fromId": 4, "fromPosition": "right", "toId": 77, "toPosition": "left"},
            ],
        })
        old = scene.getCell(4)
        assert old.color == "#8b5cf6"
        assert (old.width, old.height) == (200.0, 120.0)
        assert len(scene.connectionList()) == 1
        assert scene.addCell(0.0, 0.0) == 10

    def test_malformed_ids_drop_single_entries(self, scene):
        scene.from_dict({
            "cells": [{"id": 1, "title": "A"}, {"id": 2, "title": "B"}],
            "connections": [{"id": "first", "fromId": 1, "toId": 2}],
            "textBoxes": [{"id": "note", "text": "bad"}, {"id": 4, "text": "good"}],
            "images": [{"id": [1], "source": "bad"}, {"source": "no id"}],
        })
        assert scene.cellCount == 2
        assert scene.connectionList() == []
        assert [(box.id, box.text) for box in scene.textBoxList()] == [(4, "good")]
        assert [(image.id, image.source) for image in scene.imageList()] == [(1, "no id")]

    def test_merge_allocates_fresh_ids(self, scene, two_cells):
        a, b = two_cells
        scene.addConnection(a, Port.RIGHT, b, Port.LEFT)
        data = scene.to_dict()
        scene.from_dict(data, merge=True)
        assert len(scene.cells()) == 4
        assert len(scene.connectionList()) == 2
        merged = scene.connectionList()[1]
        assert (merged.from_cell_id, merged.to_cell_id) == (3, 4)

    def test_replace_emits_reset(self, scene, two_cells):
        resets = []
        scene.diagramReset.connect(lambda: resets.append(True))
        scene.from_dict({"cells": []})
        assert scene.cells() == []
        assert resets == [True]

    def test_clear(self, scene, two_cells):
        scene.addTextBox(0.0, 0.0, "x")
        scene.clear()
        assert scene.rowCount() == 0
        assert scene.textBoxList() == []
