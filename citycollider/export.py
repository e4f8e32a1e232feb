"""JSON artifact reading and writing."""

import json
import logging
import pathlib

from .models import ColliderDescriptor, HeightfieldGrid

logger = logging.getLogger(__name__)


def _write_json(data, path) -> pathlib.Path:
    path = pathlib.Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(data, f, indent=2)
    size_kb = path.stat().st_size / 1024
    logger.info(f"Wrote {path.name} ({size_kb:.1f} KB)")
    return path


def _read_json(path):
    with open(pathlib.Path(path), 'r', encoding='utf-8') as f:
        return json.load(f)


def write_heightfield(grid: HeightfieldGrid, path) -> pathlib.Path:
    return _write_json(grid.to_dict(), path)


def read_heightfield(path) -> HeightfieldGrid:
    """Strictly parse a heightfield file; raises on any shape problem."""
    return HeightfieldGrid.from_dict(_read_json(path))


def write_colliders(descriptors, path) -> pathlib.Path:
    return _write_json([d.to_dict() for d in descriptors], path)


def read_colliders(path) -> list:
    return [ColliderDescriptor.from_dict(d) for d in _read_json(path)]
