"""Shared pytest fixtures for Qt application lifecycle."""

import sys

import pytest
from PySide6.QtCore import QCoreApplication

from gripdiagram import DiagramController, SceneModel, SelectionModel, Viewport


@pytest.fixture(scope="session")
def app():
    """Provide a single QCoreApplication for all tests."""
    instance = QCoreApplication.instance()
    if instance is None:
        instance = QCoreApplication(sys.argv)

    yield instance

    QCoreApplication.processEvents()


@pytest.fixture
def scene(app):
    return SceneModel()


@pytest.fixture
def viewport(app):
    return Viewport(800, 600)


@pytest.fixture
def selection(scene):
    return SelectionModel(scene)


@pytest.fixture
def controller(scene, viewport, selection):
    """Controller applying drag and resize moves immediately."""
    return DiagramController(scene, viewport, selection, frame_interval_ms=0)
