"""Text box operations mixin for SceneModel.

Text boxes are free annotations. Their size follows their content: any change
to the text or the font size re-measures the box.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, TYPE_CHECKING

from PySide6.QtCore import Slot

from .constants import HIGHLIGHT_VALUES, TEXT_BOX_FONT_SIZE, TEXT_BOX_PLACEHOLDER
from .geometry import measure_text
from .types import DiagramTextBox, EntityKind

if TYPE_CHECKING:
    from .scene import SceneModel


TEXT_BOX_PATCH_FIELDS = {"x", "y", "text", "fontSize", "bold", "italic", "highlightColor"}


def _normalize_text(text: str) -> str:
    return text if text and text.strip() else TEXT_BOX_PLACEHOLDER


class TextBoxMixin:
    """Mixin providing text box operations.

    Note: the ``textBoxes`` property is defined in SceneModel since it needs
    the ``textBoxesChanged`` signal defined there.
    """

    # Attributes expected from SceneModel
    _text_boxes: List[DiagramTextBox]
    _next_text_box_id: int

    def _init_text_boxes(self) -> None:
        """Initialize text box state. Call from SceneModel.__init__."""
        self._text_boxes = []
        self._next_text_box_id = 1

    def _allocate_text_box_id(self) -> int:
        text_box_id = self._next_text_box_id
        self._next_text_box_id += 1
        return text_box_id

    @Slot(float, float, str, result=int)
    def addTextBox(self, x: float, y: float, text: str = TEXT_BOX_PLACEHOLDER) -> int:
        """Place a text box with its top-left corner at (x, y)."""
        text = _normalize_text(text)
        width, height = measure_text(text, TEXT_BOX_FONT_SIZE)
        text_box = DiagramTextBox(
            id=self._allocate_text_box_id(),
            x=float(x),
            y=float(y),
            width=width,
            height=height,
            text=text,
            font_size=TEXT_BOX_FONT_SIZE,
        )
        self._text_boxes.append(text_box)
        self.textBoxesChanged.emit()
        self._touch()
        return text_box.id

    @Slot(int, "QVariantMap", result=bool)
    def updateTextBox(self, text_box_id: int, patch: Dict[str, Any]) -> bool:
        unknown = set(patch) - TEXT_BOX_PATCH_FIELDS
        if unknown:
            raise ValueError(f"Unknown text box fields: {sorted(unknown)}")
        if "highlightColor" in patch and patch["highlightColor"] not in HIGHLIGHT_VALUES:
            raise ValueError(f"Highlight color {patch['highlightColor']!r} is not available")

        text_box = self.getTextBox(text_box_id)
        if text_box is None:
            return False

        before = (text_box.x, text_box.y, text_box.text, text_box.font_size,
                  text_box.bold, text_box.italic, text_box.highlight_color)
        if "x" in patch:
            text_box.x = float(patch["x"])
        if "y" in patch:
            text_box.y = float(patch["y"])
        if "text" in patch:
            text_box.text = _normalize_text(str(patch["text"]))
        if "fontSize" in patch:
            text_box.font_size = max(1, int(patch["fontSize"]))
        if "bold" in patch:
            text_box.bold = bool(patch["bold"])
        if "italic" in patch:
            text_box.italic = bool(patch["italic"])
        if "highlightColor" in patch:
            text_box.highlight_color = patch["highlightColor"]
        after = (text_box.x, text_box.y, text_box.text, text_box.font_size,
                 text_box.bold, text_box.italic, text_box.highlight_color)

        if before == after:
            return True
        if "text" in patch or "fontSize" in patch:
            text_box.width, text_box.height = measure_text(text_box.text, text_box.font_size)
        self.textBoxesChanged.emit()
        self._touch()
        return True

    @Slot(int, float, float, result=bool)
    def moveTextBox(self, text_box_id: int, x: float, y: float) -> bool:
        return self.updateTextBox(text_box_id, {"x": x, "y": y})

    @Slot(int, result=bool)
    def deleteTextBox(self, text_box_id: int) -> bool:
        for idx, text_box in enumerate(self._text_boxes):
            if text_box.id == text_box_id:
                self._text_boxes.pop(idx)
                self.textBoxesChanged.emit()
                self.entityRemoved.emit(EntityKind.TEXT_BOX.value, text_box_id)
                self._touch()
                return True
        return False

    def getTextBox(self, text_box_id: int) -> Optional[DiagramTextBox]:
        for text_box in self._text_boxes:
            if text_box.id == text_box_id:
                return text_box
        return None

    def textBoxList(self) -> List[DiagramTextBox]:
        return list(self._text_boxes)

    def _text_boxes_to_dicts(self) -> List[Dict[str, Any]]:
        return [
            {
                "id": text_box.id,
                "x": text_box.x,
                "y": text_box.y,
                "width": text_box.width,
                "height": text_box.height,
                "text": text_box.text,
                "fontSize": text_box.font_size,
                "bold": text_box.bold,
                "italic": text_box.italic,
                "highlightColor": text_box.highlight_color,
            }
            for text_box in self._text_boxes
        ]

    def _load_text_boxes(self, boxes_data: Iterable[Dict[str, Any]], merge: bool) -> None:
        for box_data in boxes_data:
            try:
                stored_id = None if box_data.get("id") is None else int(box_data["id"])
            except (AttributeError, TypeError, ValueError):
                continue
            if merge or stored_id is None or self.getTextBox(stored_id) is not None:
                text_box_id = self._allocate_text_box_id()
            else:
                text_box_id = stored_id
                self._next_text_box_id = max(self._next_text_box_id, text_box_id + 1)

            text = _normalize_text(str(box_data.get("text", "")))
            font_size = int(box_data.get("fontSize") or TEXT_BOX_FONT_SIZE)
            measured_width, measured_height = measure_text(text, font_size)
            highlight = box_data.get("highlightColor")
            self._text_boxes.append(DiagramTextBox(
                id=text_box_id,
                x=float(box_data.get("x", 0.0)),
                y=float(box_data.get("y", 0.0)),
                width=float(box_data.get("width") or measured_width),
                height=float(box_data.get("height") or measured_height),
                text=text,
                font_size=font_size,
                bold=bool(box_data.get("bold", False)),
                italic=bool(box_data.get("italic", False)),
                highlight_color=highlight if highlight in HIGHLIGHT_VALUES else None,
            ))
