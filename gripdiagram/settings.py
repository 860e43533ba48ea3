"""Application settings stored with QSettings."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from PySide6.QtCore import QSettings

from .constants import FRAME_INTERVAL_MS
from .types import Tool

ORGANIZATION = "GripDiagram"
APPLICATION = "GripDiagram"
DATA_FILE_ENV = "GRIPDIAGRAM_DATA_FILE"
DEFAULT_DATA_FILE = str(Path("~/.gripdiagram/projects.json").expanduser())


@dataclass
class DiagramSettings:
    """User-adjustable settings of the whiteboard."""

    data_file: str = DEFAULT_DATA_FILE
    frame_interval_ms: int = FRAME_INTERVAL_MS
    minimap_minimized: bool = False
    minimap_includes_annotations: bool = False
    default_tool: Tool = Tool.SELECT


def _to_bool(value: Any, default: bool) -> bool:
    # QSettings may hand back "true"/"false" strings from INI files
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "1", "yes"):
            return True
        if lowered in ("false", "0", "no"):
            return False
    return default


def _to_int(value: Any, default: int) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return number if number >= 0 else default


def load_settings(qsettings: Optional[QSettings] = None) -> DiagramSettings:
    """Read settings, falling back to defaults for missing or invalid values.

    ``GRIPDIAGRAM_DATA_FILE`` overrides the stored data file.
    """
    if qsettings is None:
        qsettings = QSettings(ORGANIZATION, APPLICATION)
    defaults = DiagramSettings()

    data_file = qsettings.value("dataFile", defaults.data_file)
    if not isinstance(data_file, str) or not data_file:
        data_file = defaults.data_file
    data_file = os.environ.get(DATA_FILE_ENV) or data_file

    try:
        default_tool = Tool(qsettings.value("defaultTool", defaults.default_tool.value))
    except ValueError:
        default_tool = defaults.default_tool

    return DiagramSettings(
        data_file=str(Path(data_file).expanduser()),
        frame_interval_ms=_to_int(qsettings.value("frameIntervalMs", defaults.frame_interval_ms),
                                  defaults.frame_interval_ms),
        minimap_minimized=_to_bool(qsettings.value("minimapMinimized", defaults.minimap_minimized),
                                   defaults.minimap_minimized),
        minimap_includes_annotations=_to_bool(
            qsettings.value("minimapIncludesAnnotations", defaults.minimap_includes_annotations),
            defaults.minimap_includes_annotations,
        ),
        default_tool=default_tool,
    )


def save_settings(settings: DiagramSettings, qsettings: Optional[QSettings] = None) -> None:
    if qsettings is None:
        qsettings = QSettings(ORGANIZATION, APPLICATION)
    qsettings.setValue("dataFile", settings.data_file)
    qsettings.setValue("frameIntervalMs", settings.frame_interval_ms)
    qsettings.setValue("minimapMinimized", settings.minimap_minimized)
    qsettings.setValue("minimapIncludesAnnotations", settings.minimap_includes_annotations)
    qsettings.setValue("defaultTool", settings.default_tool.value)
    qsettings.sync()  # Ensure settings are written to disk
