"""Image operations mixin for SceneModel."""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, TYPE_CHECKING

from PySide6.QtCore import Slot

from .constants import MAX_IMAGE_SIZE, MIN_IMAGE_SIZE
from .geometry import fit_within
from .types import DiagramImage, EntityKind

if TYPE_CHECKING:
    from .scene import SceneModel


IMAGE_PATCH_FIELDS = {"x", "y", "width", "height", "source", "name"}


class ImageMixin:
    """Mixin providing image operations.

    Inserted images keep their aspect ratio and are scaled down to fit
    ``MAX_IMAGE_SIZE``; only an explicit resize may change the ratio.
    """

    # Attributes expected from SceneModel
    _images: List[DiagramImage]
    _next_image_id: int

    def _init_images(self) -> None:
        """Initialize image state. Call from SceneModel.__init__."""
        self._images = []
        self._next_image_id = 1

    def _allocate_image_id(self) -> int:
        image_id = self._next_image_id
        self._next_image_id += 1
        return image_id

    @Slot(float, float, float, float, str, str, result=int)
    def addImage(self, x: float, y: float, width: float, height: float, source: str, name: str = "") -> int:
        width, height = fit_within(float(width), float(height), MAX_IMAGE_SIZE)
        image = DiagramImage(
            id=self._allocate_image_id(),
            x=float(x),
            y=float(y),
            width=max(MIN_IMAGE_SIZE, width),
            height=max(MIN_IMAGE_SIZE, height),
            source=source,
            name=name,
        )
        self._images.append(image)
        self.imagesChanged.emit()
        self._touch()
        return image.id

    @Slot(int, "QVariantMap", result=bool)
    def updateImage(self, image_id: int, patch: Dict[str, Any]) -> bool:
        unknown = set(patch) - IMAGE_PATCH_FIELDS
        if unknown:
            raise ValueError(f"Unknown image fields: {sorted(unknown)}")

        image = self.getImage(image_id)
        if image is None:
            return False

        before = (image.x, image.y, image.width, image.height, image.source, image.name)
        if "x" in patch:
            image.x = float(patch["x"])
        if "y" in patch:
            image.y = float(patch["y"])
        if "width" in patch:
            image.width = max(MIN_IMAGE_SIZE, float(patch["width"]))
        if "height" in patch:
            image.height = max(MIN_IMAGE_SIZE, float(patch["height"]))
        if "source" in patch:
            image.source = str(patch["source"])
        if "name" in patch:
            image.name = str(patch["name"])

        if before != (image.x, image.y, image.width, image.height, image.source, image.name):
            self.imagesChanged.emit()
            self._touch()
        return True

    @Slot(int, float, float, result=bool)
    def moveImage(self, image_id: int, x: float, y: float) -> bool:
        return self.updateImage(image_id, {"x": x, "y": y})

    @Slot(int, float, float, result=bool)
    def resizeImage(self, image_id: int, width: float, height: float) -> bool:
        return self.updateImage(image_id, {"width": width, "height": height})

    @Slot(int, result=bool)
    def deleteImage(self, image_id: int) -> bool:
        for idx, image in enumerate(self._images):
            if image.id == image_id:
                self._images.pop(idx)
                self.imagesChanged.emit()
                self.entityRemoved.emit(EntityKind.IMAGE.value, image_id)
                self._touch()
                return True
        return False

    def getImage(self, image_id: int) -> Optional[DiagramImage]:
        for image in self._images:
            if image.id == image_id:
                return image
        return None

    def imageList(self) -> List[DiagramImage]:
        return list(self._images)

    def _images_to_dicts(self) -> List[Dict[str, Any]]:
        return [
            {
                "id": image.id,
                "x": image.x,
                "y": image.y,
                "width": image.width,
                "height": image.height,
                "source": image.source,
                "name": image.name,
            }
            for image in self._images
        ]

    def _load_images(self, images_data: Iterable[Dict[str, Any]], merge: bool) -> None:
        for image_data in images_data:
            try:
                stored_id = None if image_data.get("id") is None else int(image_data["id"])
            except (AttributeError, TypeError, ValueError):
                continue
            if merge or stored_id is None or self.getImage(stored_id) is not None:
                image_id = self._allocate_image_id()
            else:
                image_id = stored_id
                self._next_image_id = max(self._next_image_id, image_id + 1)

            width = float(image_data.get("width") or MAX_IMAGE_SIZE)
            height = float(image_data.get("height") or MAX_IMAGE_SIZE)
            self._images.append(DiagramImage(
                id=image_id,
                x=float(image_data.get("x", 0.0)),
                y=float(image_data.get("y", 0.0)),
                width=max(MIN_IMAGE_SIZE, width),
                height=max(MIN_IMAGE_SIZE, height),
                source=str(image_data.get("source") or image_data.get("src") or ""),
                name=str(image_data.get("name", "")),
            ))
