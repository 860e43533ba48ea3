"""Data types for GripDiagram whiteboards.

This module contains the core data structures shared by the scene store,
the gesture controller and the observer panels.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class Port(Enum):
    """Connection point at the midpoint of one side of a cell."""

    TOP = "top"
    RIGHT = "right"
    BOTTOM = "bottom"
    LEFT = "left"


class EntityKind(Enum):
    """Selectable entity kinds."""

    CELL = "cell"
    TEXT_BOX = "textBox"
    IMAGE = "image"


class Tool(Enum):
    """Active interaction tool."""

    SELECT = "select"
    PAN = "pan"
    TEXT = "text"
    CONNECT = "connect"
    ERASER = "eraser"


class Operation(Enum):
    """Gesture currently in progress, independent of the tool."""

    IDLE = "idle"
    DRAGGING = "dragging"
    RESIZING = "resizing"
    CONNECTING = "connecting"
    PANNING = "panning"


class ResizeHandle(Enum):
    """Resize handle positions (east edge, south edge, south-east corner)."""

    EAST = "e"
    SOUTH = "s"
    SOUTH_EAST = "se"


class TaskStatus(Enum):
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    DONE = "done"


class TaskPriority(Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass
class TaskMeta:
    """Task information attached to a cell shown in the backlog."""

    status: TaskStatus = TaskStatus.TODO
    priority: TaskPriority = TaskPriority.MEDIUM
    assignee: str = "Unassigned"
    due_date: str = ""
    tags: List[str] = field(default_factory=list)


@dataclass
class DiagramCell:
    """A rectangular flowchart node. Geometry is in scene coordinates."""

    id: int
    x: float
    y: float
    width: float = 200.0
    height: float = 120.0
    title: str = ""
    content: str = ""
    comment: str = ""
    color: str = "#3b82f6"
    task_meta: Optional[TaskMeta] = None


@dataclass
class DiagramConnection:
    """A directed edge between ports of two different cells."""

    id: int
    from_cell_id: int
    from_port: Port
    to_cell_id: int
    to_port: Port


@dataclass
class DiagramTextBox:
    """Free text placed on the canvas."""

    id: int
    x: float
    y: float
    width: float = 120.0
    height: float = 32.0
    text: str = "Click to edit"
    font_size: int = 16
    bold: bool = False
    italic: bool = False
    highlight_color: Optional[str] = None


@dataclass
class DiagramImage:
    """A picture placed on the canvas."""

    id: int
    x: float
    y: float
    width: float
    height: float
    source: str = ""  # data URL or other reference understood by the host
    name: str = ""


@dataclass(frozen=True)
class EntityRef:
    """Kind-tagged reference to a cell, text box or image."""

    kind: EntityKind
    id: int

    @classmethod
    def cell(cls, cell_id: int) -> "EntityRef":
        return cls(EntityKind.CELL, cell_id)

    @classmethod
    def text_box(cls, text_box_id: int) -> "EntityRef":
        return cls(EntityKind.TEXT_BOX, text_box_id)

    @classmethod
    def image(cls, image_id: int) -> "EntityRef":
        return cls(EntityKind.IMAGE, image_id)
