"""GripDiagram whiteboard core built on PySide6.

The package holds the state of an interactive flowchart: the scene of cells,
connections, text boxes and images, the viewport, the selection and the
gesture controller that turns pointer input into edits. Rendering is left to
the host, which binds to the models' signals and properties.
"""

from .backlog import BacklogModel
from .controller import DiagramController
from .errors import DiagramError, InvalidEndpoint, PersistenceFailure
from .minimap import MinimapModel
from .persistence import DiagramPersistence, JsonFileAdapter, MemoryAdapter, PersistenceAdapter
from .scene import SceneModel
from .selection import SelectionModel
from .settings import DiagramSettings, load_settings, save_settings
from .types import (
    DiagramCell,
    DiagramConnection,
    DiagramImage,
    DiagramTextBox,
    EntityKind,
    EntityRef,
    Operation,
    Port,
    ResizeHandle,
    TaskMeta,
    TaskPriority,
    TaskStatus,
    Tool,
)
from .viewport import Viewport

__all__ = [
    "BacklogModel",
    "DiagramCell",
    "DiagramConnection",
    "DiagramController",
    "DiagramError",
    "DiagramImage",
    "DiagramPersistence",
    "DiagramSettings",
    "DiagramTextBox",
    "EntityKind",
    "EntityRef",
    "InvalidEndpoint",
    "JsonFileAdapter",
    "MemoryAdapter",
    "MinimapModel",
    "Operation",
    "PersistenceAdapter",
    "PersistenceFailure",
    "Port",
    "ResizeHandle",
    "SceneModel",
    "SelectionModel",
    "TaskMeta",
    "TaskPriority",
    "TaskStatus",
    "Tool",
    "Viewport",
    "load_settings",
    "save_settings",
]
