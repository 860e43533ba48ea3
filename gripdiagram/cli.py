"""Command line summary of a stored diagram file."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from PySide6.QtCore import QCoreApplication

from .backlog import BacklogModel
from .persistence import ADAPTER_ERRORS, DiagramPersistence, JsonFileAdapter
from .scene import SceneModel
from .settings import load_settings

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gripdiagram",
        description="Summarise the diagrams stored in a GripDiagram data file.",
    )
    parser.add_argument(
        "data_file",
        nargs="?",
        help="JSON project store (defaults to the configured data file)",
    )
    parser.add_argument("--project", help="only summarise this project id")
    parser.add_argument("-v", "--verbose", action="store_true", help="enable debug logging")
    return parser


def summarize(scene: SceneModel) -> str:
    stats = BacklogModel(scene).stats()
    return (
        f"{scene.cellCount} cells, {len(scene.connectionList())} connections, "
        f"{len(scene.textBoxList())} text boxes, {len(scene.imageList())} images, "
        f"tasks todo={stats['todo']} in_progress={stats['in_progress']} done={stats['done']}"
    )


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    _app = QCoreApplication.instance() or QCoreApplication(sys.argv[:1])

    data_file = Path(args.data_file or load_settings().data_file).expanduser()
    if not data_file.is_file():
        print(f"error: {data_file} does not exist", file=sys.stderr)
        return 1

    adapter = JsonFileAdapter(data_file)
    try:
        project_ids = adapter.project_ids()
    except ADAPTER_ERRORS as exc:
        print(f"error: cannot read {data_file}: {exc}", file=sys.stderr)
        return 1

    if args.project is not None:
        if args.project not in project_ids:
            print(f"error: project {args.project!r} not found in {data_file}", file=sys.stderr)
            return 1
        project_ids = [args.project]

    scene = SceneModel()
    persistence = DiagramPersistence(scene, adapter)
    errors: List[str] = []
    persistence.errorOccurred.connect(errors.append)
    for project_id in project_ids:
        if not persistence.loadDiagram(project_id):
            print(f"error: {errors[-1]}", file=sys.stderr)
            return 1
        print(f"{project_id}: {summarize(scene)}")
    logger.debug("Summarised %d project(s) from %s", len(project_ids), data_file)
    return 0
