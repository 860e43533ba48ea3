"""Selection manager shared by the controller and the panels."""

from __future__ import annotations

from typing import Iterable, List, Optional

from PySide6.QtCore import Property, QObject, Signal, Slot

from .types import EntityKind, EntityRef


class SelectionModel(QObject):
    """Ordered set of selected entity references.

    Insertion order is kept so ``primary()`` is the first entity picked.
    References to entities the scene no longer has are dropped as soon as the
    scene reports their removal, and the whole set is cleared when the
    diagram is replaced.
    """

    selectionChanged = Signal()

    def __init__(self, scene, parent: Optional[QObject] = None):
        super().__init__(parent)
        self._scene = scene
        self._refs: List[EntityRef] = []
        scene.entityRemoved.connect(self._on_entity_removed)
        scene.diagramReset.connect(self.clear)

    @Property(int, notify=selectionChanged)
    def count(self) -> int:
        return len(self._refs)

    @Property(list, notify=selectionChanged)
    def selectedCellIds(self) -> List[int]:
        return [ref.id for ref in self._refs if ref.kind == EntityKind.CELL]

    def _exists(self, ref: EntityRef) -> bool:
        return self._scene.get_entity(ref) is not None

    def _replace(self, refs: List[EntityRef]) -> None:
        if refs != self._refs:
            self._refs = refs
            self.selectionChanged.emit()

    def selectOnly(self, ref: EntityRef) -> None:
        self._replace([ref] if self._exists(ref) else [])

    def toggle(self, ref: EntityRef) -> None:
        if ref in self._refs:
            self._replace([r for r in self._refs if r != ref])
        elif self._exists(ref):
            self._replace(self._refs + [ref])

    @Slot()
    def selectAll(self) -> None:
        """Select every cell. Annotations are left out."""
        self._replace([EntityRef.cell(cell.id) for cell in self._scene.cells()])

    @Slot()
    def clear(self) -> None:
        self._replace([])

    def contains(self, ref: EntityRef) -> bool:
        return ref in self._refs

    def refs(self) -> List[EntityRef]:
        return list(self._refs)

    def primary(self) -> Optional[EntityRef]:
        return self._refs[0] if self._refs else None

    def set_refs(self, refs: Iterable[EntityRef]) -> None:
        unique: List[EntityRef] = []
        for ref in refs:
            if ref not in unique and self._exists(ref):
                unique.append(ref)
        self._replace(unique)

    def isEmpty(self) -> bool:
        return not self._refs

    @Slot(str, int)
    def _on_entity_removed(self, kind: str, entity_id: int) -> None:
        removed = EntityRef(EntityKind(kind), entity_id)
        if removed in self._refs:
            self._replace([ref for ref in self._refs if ref != removed])
