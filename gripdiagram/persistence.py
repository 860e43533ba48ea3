"""Loading and saving diagrams.

The scene is saved as a whole snapshot, keyed by the owning project id.
Storage is delegated to an adapter so the same manager works with a JSON file
on disk, an in-memory store, or a host-provided backend.
"""

from __future__ import annotations

import copy
import json
import logging
import os
import tempfile
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Tuple

from PySide6.QtCore import (
    Property,
    QCoreApplication,
    QObject,
    QRunnable,
    QThreadPool,
    Signal,
    Slot,
)

from .errors import PersistenceFailure

logger = logging.getLogger(__name__)

STORE_VERSION = "1.0"
DIAGRAM_KEY = "gripDiagram"

# Errors an adapter may raise for unreadable or unwritable data.
# json.JSONDecodeError is a ValueError.
ADAPTER_ERRORS = (OSError, ValueError, TypeError, KeyError)


class PersistenceAdapter(Protocol):
    """Storage backend for diagram snapshots."""

    def load_diagram(self, project_id: str) -> Optional[Dict[str, Any]]:
        """Return the stored snapshot, or None if the project has none."""

    def save_diagram(self, project_id: str, snapshot: Dict[str, Any]) -> None:
        """Store ``snapshot`` for the project, replacing any previous one."""

    def delete_diagram(self, project_id: str) -> bool:
        """Remove the project's diagram. Returns False if there was none."""


class MemoryAdapter:
    """Dictionary-backed adapter. Snapshots are copied in and out."""

    def __init__(self, diagrams: Optional[Dict[str, Dict[str, Any]]] = None):
        self._diagrams: Dict[str, Dict[str, Any]] = copy.deepcopy(diagrams or {})
        self._lock = threading.Lock()

    def load_diagram(self, project_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            snapshot = self._diagrams.get(project_id)
            return copy.deepcopy(snapshot) if snapshot is not None else None

    def save_diagram(self, project_id: str, snapshot: Dict[str, Any]) -> None:
        with self._lock:
            self._diagrams[project_id] = copy.deepcopy(snapshot)

    def delete_diagram(self, project_id: str) -> bool:
        with self._lock:
            return self._diagrams.pop(project_id, None) is not None

    def project_ids(self) -> List[str]:
        with self._lock:
            return list(self._diagrams)


class JsonFileAdapter:
    """Stores every project's diagram in one JSON document.

    Document layout::

        {"version": "1.0", "saved_at": "...",
         "projects": {"<project id>": {"gripDiagram": {...}}}}

    Other keys of a project record are preserved. Writes go to a temporary
    file in the same directory which then replaces the document.
    """

    def __init__(self, path):
        self.path = Path(path).expanduser()
        self._lock = threading.Lock()

    def _read(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {"version": STORE_VERSION, "projects": {}}
        with open(self.path, "r", encoding="utf-8") as f:
            document = json.load(f)
        if not isinstance(document, dict) or not isinstance(document.get("projects", {}), dict):
            raise ValueError(f"{self.path} is not a diagram store")
        document.setdefault("projects", {})
        return document

    def _write(self, document: Dict[str, Any]) -> None:
        document["version"] = STORE_VERSION
        document["saved_at"] = datetime.now().isoformat()
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=str(self.path.parent), prefix=f".{self.path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(document, f, ensure_ascii=False, indent=2)
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def load_diagram(self, project_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            project = self._read()["projects"].get(project_id)
        if not isinstance(project, dict):
            return None
        return project.get(DIAGRAM_KEY)

    def save_diagram(self, project_id: str, snapshot: Dict[str, Any]) -> None:
        with self._lock:
            document = self._read()
            project = document["projects"].setdefault(project_id, {})
            project[DIAGRAM_KEY] = snapshot
            self._write(document)

    def delete_diagram(self, project_id: str) -> bool:
        with self._lock:
            document = self._read()
            project = document["projects"].get(project_id)
            if not isinstance(project, dict) or DIAGRAM_KEY not in project:
                return False
            del project[DIAGRAM_KEY]
            if not project:
                del document["projects"][project_id]
            self._write(document)
            return True

    def project_ids(self) -> List[str]:
        with self._lock:
            return list(self._read()["projects"])


class SaveWorkerSignals(QObject):
    """Signals emitted by background save workers."""

    finished = Signal(str, str, int)  # project id, error text, saved revision


class SaveWorker(QRunnable):
    """Write one captured snapshot through an adapter in the background."""

    def __init__(self, adapter: PersistenceAdapter, project_id: str, snapshot: Dict[str, Any], revision: int):
        super().__init__()
        self.adapter = adapter
        self.project_id = project_id
        self.snapshot = snapshot
        self.revision = revision
        self.signals = SaveWorkerSignals()

    def run(self) -> None:
        try:
            self.adapter.save_diagram(self.project_id, self.snapshot)
        except ADAPTER_ERRORS as exc:
            self.signals.finished.emit(self.project_id, str(exc) or type(exc).__name__, self.revision)
            return
        self.signals.finished.emit(self.project_id, "", self.revision)


def empty_snapshot() -> Dict[str, Any]:
    """Snapshot of a freshly created diagram."""
    return {
        "cells": [],
        "connections": [],
        "textBoxes": [],
        "images": [],
        "nextCellId": 1,
        "nextConnectionId": 1,
        "nextTextBoxId": 1,
        "nextImageId": 1,
    }


class DiagramPersistence(QObject):
    """Manager connecting a scene to a persistence adapter.

    Failures are reported through ``errorOccurred`` and ``lastError``; the
    scene is never left changed by a failed load or save, so the operation
    can simply be retried.
    """

    saveCompleted = Signal(str)  # Emitted with project id after successful save
    loadCompleted = Signal(str)  # Emitted with project id after successful load
    errorOccurred = Signal(str)  # Emitted with error message on failure
    savingChanged = Signal()
    unsavedChangesChanged = Signal()
    lastErrorChanged = Signal()

    def __init__(self, scene, adapter: PersistenceAdapter, thread_pool: Optional[QThreadPool] = None, parent=None):
        super().__init__(parent)
        self._scene = scene
        self._adapter = adapter
        if thread_pool is None:
            thread_pool = QThreadPool(self)
            thread_pool.setMaxThreadCount(1)
        self._pool = thread_pool
        self._active_worker: Optional[SaveWorker] = None
        # project id -> (snapshot, revision), in request order
        self._pending_saves: Dict[str, Tuple[Dict[str, Any], int]] = {}
        self._current_project: Optional[str] = None
        self._saved_revision = scene.revision
        self._last_error = ""
        scene.diagramChanged.connect(self.unsavedChangesChanged)

    @property
    def adapter(self) -> PersistenceAdapter:
        return self._adapter

    @property
    def current_project(self) -> Optional[str]:
        """Project whose diagram the scene holds, or None before the first load or save."""
        return self._current_project

    @Property(bool, notify=savingChanged)
    def isSaving(self) -> bool:
        return self._active_worker is not None

    @Property(bool, notify=unsavedChangesChanged)
    def hasUnsavedChanges(self) -> bool:
        return self._scene.revision != self._saved_revision

    @Property(str, notify=lastErrorChanged)
    def lastError(self) -> str:
        return self._last_error

    def _set_last_error(self, message: str) -> None:
        if self._last_error != message:
            self._last_error = message
            self.lastErrorChanged.emit()

    def _fail(self, failure: PersistenceFailure) -> None:
        logger.warning("%s", failure)
        self._set_last_error(str(failure))
        self.errorOccurred.emit(str(failure))

    def _mark_saved(self, revision: int) -> None:
        self._saved_revision = revision
        self.unsavedChangesChanged.emit()

    # --- Load ---------------------------------------------------------------
    @Slot(str, result=bool)
    def loadDiagram(self, project_id: str) -> bool:
        """Replace the scene with the project's stored diagram.

        A project without a stored diagram loads as an empty one.
        """
        try:
            data = self._adapter.load_diagram(project_id)
        except ADAPTER_ERRORS as exc:
            self._fail(PersistenceFailure(f"Failed to load diagram for {project_id}: {exc}", project_id))
            return False

        snapshot = data if data is not None else empty_snapshot()
        try:
            # Parse into a scratch scene first so a bad snapshot leaves the scene alone
            type(self._scene)().from_dict(snapshot)
        except (ValueError, TypeError, KeyError, AttributeError) as exc:
            self._fail(PersistenceFailure(f"Stored diagram for {project_id} is invalid: {exc}", project_id))
            return False

        self._scene.from_dict(snapshot)
        self._current_project = project_id
        self._mark_saved(self._scene.revision)
        self._set_last_error("")
        logger.info("Loaded diagram for %s", project_id)
        self.loadCompleted.emit(project_id)
        return True

    # --- Save ---------------------------------------------------------------
    @Slot(str, result=bool)
    def saveDiagram(self, project_id: str) -> bool:
        """Save the current scene synchronously."""
        revision = self._scene.revision
        try:
            self._adapter.save_diagram(project_id, self._scene.to_dict())
        except ADAPTER_ERRORS as exc:
            self._fail(PersistenceFailure(f"Failed to save diagram for {project_id}: {exc}", project_id))
            return False
        self._current_project = project_id
        self._finish_save(project_id, revision)
        return True

    def _finish_save(self, project_id: str, revision: int) -> None:
        # A late save of another project says nothing about the scene
        if project_id == self._current_project:
            self._mark_saved(revision)
        self._set_last_error("")
        logger.info("Saved diagram for %s", project_id)
        self.saveCompleted.emit(project_id)

    @Slot(str)
    def requestSave(self, project_id: str) -> None:
        """Save in the background.

        The snapshot is taken now. While a save is running, further requests
        are queued; a later request for a project already in the queue
        replaces its snapshot, so each project is written once more with
        its latest requested state.
        """
        if self._current_project is None:
            self._current_project = project_id
        snapshot = self._scene.to_dict()
        revision = self._scene.revision
        if self._active_worker is not None:
            self._pending_saves[project_id] = (snapshot, revision)
            return
        self._start_worker(project_id, snapshot, revision)

    def _start_worker(self, project_id: str, snapshot: Dict[str, Any], revision: int) -> None:
        worker = SaveWorker(self._adapter, project_id, snapshot, revision)
        worker.signals.finished.connect(self._on_save_finished)
        was_saving = self._active_worker is not None
        self._active_worker = worker
        if not was_saving:
            self.savingChanged.emit()
        self._pool.start(worker)

    @Slot(str, str, int)
    def _on_save_finished(self, project_id: str, error_text: str, revision: int) -> None:
        if error_text:
            self._fail(PersistenceFailure(f"Failed to save diagram for {project_id}: {error_text}", project_id))
        else:
            self._finish_save(project_id, revision)

        if self._pending_saves:
            next_project = next(iter(self._pending_saves))
            snapshot, pending_revision = self._pending_saves.pop(next_project)
            self._start_worker(next_project, snapshot, pending_revision)
            return
        self._active_worker = None
        self.savingChanged.emit()

    def waitForSaves(self, msecs: int = 5000) -> bool:
        """Block until background saves have finished and been reported."""
        while self._active_worker is not None:
            if not self._pool.waitForDone(msecs):
                return False
            QCoreApplication.processEvents()
        return True

    # --- Project lifecycle --------------------------------------------------
    @Slot(str, result=bool)
    def createDiagram(self, project_id: str) -> bool:
        """Store an empty diagram for a new project."""
        try:
            self._adapter.save_diagram(project_id, empty_snapshot())
        except ADAPTER_ERRORS as exc:
            self._fail(PersistenceFailure(f"Failed to create diagram for {project_id}: {exc}", project_id))
            return False
        logger.info("Created diagram for %s", project_id)
        return True

    @Slot(str, result=bool)
    def deleteDiagram(self, project_id: str) -> bool:
        try:
            deleted = self._adapter.delete_diagram(project_id)
        except ADAPTER_ERRORS as exc:
            self._fail(PersistenceFailure(f"Failed to delete diagram for {project_id}: {exc}", project_id))
            return False
        if deleted:
            logger.info("Deleted diagram for %s", project_id)
        return deleted
