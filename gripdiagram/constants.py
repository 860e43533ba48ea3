"""Constants and presets for GripDiagram whiteboards."""

from typing import Dict, List, Optional, Tuple

from .types import TaskPriority


CELL_COLORS: List[str] = [
    "#3b82f6",  # Blue
    "#10b981",  # Green
    "#8b5cf6",  # Purple
    "#f59e0b",  # Orange
    "#ef4444",  # Red
    "#ec4899",  # Pink
    "#06b6d4",  # Cyan
    "#84cc16",  # Lime
]
DEFAULT_CELL_COLOR = CELL_COLORS[0]

PRIORITY_COLORS: Dict[TaskPriority, str] = {
    TaskPriority.HIGH: "#ef4444",
    TaskPriority.MEDIUM: "#f59e0b",
    TaskPriority.LOW: "#10b981",
}

HIGHLIGHT_COLORS: List[Tuple[str, str]] = [
    ("Yellow", "rgba(250, 204, 21, 0.4)"),
    ("Green", "rgba(34, 197, 94, 0.4)"),
    ("Blue", "rgba(59, 130, 246, 0.4)"),
    ("Pink", "rgba(236, 72, 153, 0.4)"),
    ("Purple", "rgba(139, 92, 246, 0.4)"),
]
HIGHLIGHT_VALUES: List[Optional[str]] = [None] + [value for _, value in HIGHLIGHT_COLORS]

ZOOM_LEVELS: List[float] = [0.25, 0.5, 0.75, 1.0, 1.25, 1.5, 2.0, 3.0]
MIN_ZOOM = ZOOM_LEVELS[0]
MAX_ZOOM = ZOOM_LEVELS[-1]
DEFAULT_ZOOM = 1.0
MAX_FIT_ZOOM = 1.5
FIT_MARGIN = 50.0

DEFAULT_CELL_WIDTH = 200.0
DEFAULT_CELL_HEIGHT = 120.0
MIN_CELL_WIDTH = 120.0
MIN_CELL_HEIGHT = 80.0
CASCADE_OFFSET = 40.0
CASCADE_STEPS = 5
DUPLICATE_OFFSET = 30.0

TEXT_BOX_PLACEHOLDER = "Click to edit"
TEXT_BOX_FONT_SIZE = 16
MIN_TEXT_BOX_WIDTH = 40.0
MIN_TEXT_BOX_HEIGHT = 24.0
TEXT_BOX_PADDING = 8.0

MAX_IMAGE_SIZE = 300.0
MIN_IMAGE_SIZE = 20.0

# Screen-space hit radii, divided by the zoom level before use.
PORT_HIT_RADIUS = 10.0
PORT_SNAP_RADIUS = 20.0
CONNECTION_HIT_RADIUS = 8.0
RESIZE_HANDLE_SIZE = 12.0

MINIMAP_WIDTH = 200.0
MINIMAP_HEIGHT = 140.0
MINIMAP_PADDING = 50.0
MINIMAP_MAX_SCALE = 0.15
MINIMAP_MIN_MARKER = 3.0

FRAME_INTERVAL_MS = 16
