"""Data classes and path management."""

import pathlib
from dataclasses import dataclass, field
from typing import Optional

import numpy as np

from .constants import OUTPUT_DIR
from .errors import GridShapeError


class PathManager:
    """Manage artifact paths relative to the project directory."""

    @staticmethod
    def get_output_path(filename: str) -> pathlib.Path:
        """Get the output file path."""
        return OUTPUT_DIR / filename


# ── Boxes ───────────────────────────────────────────────────────────────

@dataclass
class AxisAlignedBox:
    """World-space axis-aligned box stored as min/max corners.

    A box with ``min > max`` on any axis is empty; the empty box is the
    identity element of :meth:`union`.
    """
    min: np.ndarray
    max: np.ndarray

    def __post_init__(self):
        self.min = np.asarray(self.min, dtype=np.float64).reshape(3)
        self.max = np.asarray(self.max, dtype=np.float64).reshape(3)

    @classmethod
    def empty(cls) -> "AxisAlignedBox":
        return cls(np.full(3, np.inf), np.full(3, -np.inf))

    @classmethod
    def from_points(cls, points) -> "AxisAlignedBox":
        pts = np.asarray(points, dtype=np.float64).reshape(-1, 3)
        if len(pts) == 0:
            return cls.empty()
        return cls(pts.min(axis=0), pts.max(axis=0))

    @classmethod
    def from_center_size(cls, center, size) -> "AxisAlignedBox":
        c = np.asarray(center, dtype=np.float64)
        half = np.asarray(size, dtype=np.float64) / 2.0
        return cls(c - half, c + half)

    @property
    def is_empty(self) -> bool:
        return bool(np.any(self.min > self.max))

    @property
    def center(self) -> np.ndarray:
        return (self.min + self.max) / 2.0

    @property
    def size(self) -> np.ndarray:
        if self.is_empty:
            return np.zeros(3)
        return self.max - self.min

    def union(self, other: "AxisAlignedBox") -> "AxisAlignedBox":
        """Smallest box enclosing both boxes."""
        return AxisAlignedBox(np.minimum(self.min, other.min),
                              np.maximum(self.max, other.max))


# ── Scene ───────────────────────────────────────────────────────────────

@dataclass
class MeshRecord:
    """One renderable mesh in world space, detached from its scene graph."""
    name: str
    group: str
    vertices: np.ndarray
    faces: np.ndarray
    bounds: AxisAlignedBox = None

    def __post_init__(self):
        self.vertices = np.asarray(self.vertices, dtype=np.float64).reshape(-1, 3)
        self.faces = np.asarray(self.faces, dtype=np.int64).reshape(-1, 3)
        if self.bounds is None:
            self.bounds = AxisAlignedBox.from_points(self.vertices)


# ── Heightfield ─────────────────────────────────────────────────────────

@dataclass
class LODLevel:
    level: int
    nx: int
    ny: int
    heights: np.ndarray

    def to_dict(self) -> dict:
        return {
            'level': int(self.level),
            'nx': int(self.nx),
            'ny': int(self.ny),
            'heights': [float(h) for h in self.heights],
        }


@dataclass
class HeightfieldGrid:
    """Regular nx×ny height samples, row-major with ``index = iy*nx + ix``.

    ``ix`` runs along world X and ``iy`` along world Z. ``origin`` is the
    world (x, z) of sample (0, 0) when known.
    """
    nx: int
    ny: int
    width: float
    depth: float
    heights: np.ndarray
    min_height: Optional[float] = None
    max_height: Optional[float] = None
    lod_levels: list = field(default_factory=list)
    origin: Optional[tuple] = None

    def __post_init__(self):
        self.heights = np.asarray(self.heights, dtype=np.float64).ravel()
        if self.nx < 2 or self.ny < 2:
            raise GridShapeError(f"Grid must be at least 2x2, got {self.nx}x{self.ny}")
        if len(self.heights) != self.nx * self.ny:
            raise GridShapeError(
                f"heights has {len(self.heights)} values, "
                f"expected nx*ny = {self.nx * self.ny}")
        if not (self.width > 0 and self.depth > 0):
            raise GridShapeError(
                f"width/depth must be positive, got {self.width}/{self.depth}")
        if self.min_height is None:
            self.min_height = float(self.heights.min())
        if self.max_height is None:
            self.max_height = float(self.heights.max())

    def as_2d(self) -> np.ndarray:
        """View of the heights as a (ny, nx) array."""
        return self.heights.reshape(self.ny, self.nx)

    @property
    def spacing(self) -> tuple:
        return self.width / (self.nx - 1), self.depth / (self.ny - 1)

    def to_dict(self) -> dict:
        data = {
            'nx': int(self.nx),
            'ny': int(self.ny),
            'width': float(self.width),
            'depth': float(self.depth),
            'minHeight': float(self.min_height),
            'maxHeight': float(self.max_height),
            'heights': [float(h) for h in self.heights],
        }
        if self.lod_levels:
            data['lodLevels'] = [lvl.to_dict() for lvl in self.lod_levels]
        if self.origin is not None:
            data['origin'] = [float(self.origin[0]), float(self.origin[1])]
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "HeightfieldGrid":
        """Strict parse of the heightfield JSON layout."""
        try:
            lods = [LODLevel(level=int(lvl['level']), nx=int(lvl['nx']), ny=int(lvl['ny']),
                             heights=np.asarray(lvl['heights'], dtype=np.float64))
                    for lvl in data.get('lodLevels') or []]
            origin = data.get('origin')
            return cls(
                nx=int(data['nx']),
                ny=int(data['ny']),
                width=float(data['width']),
                depth=float(data['depth']),
                heights=data['heights'],
                min_height=data.get('minHeight'),
                max_height=data.get('maxHeight'),
                lod_levels=lods,
                origin=tuple(origin) if origin is not None else None,
            )
        except (KeyError, TypeError) as e:
            raise GridShapeError(f"Malformed heightfield data: {e}") from e


# ── Colliders ───────────────────────────────────────────────────────────

@dataclass
class ColliderDescriptor:
    center: tuple
    size: tuple
    rotation: tuple = (0.0, 0.0, 0.0)
    building: Optional[str] = None
    part: Optional[int] = None
    type: str = "box"

    @classmethod
    def from_box(cls, box: AxisAlignedBox, building=None, part=None):
        return cls(
            center=tuple(float(v) for v in box.center),
            size=tuple(float(v) for v in box.size),
            building=building,
            part=part,
        )

    def to_dict(self) -> dict:
        data = {}
        if self.building is not None:
            data['building'] = self.building
        data['type'] = self.type
        if self.part is not None:
            data['part'] = int(self.part)
        data['center'] = [float(v) for v in self.center]
        data['size'] = [float(v) for v in self.size]
        data['rotation'] = [float(v) for v in self.rotation]
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "ColliderDescriptor":
        return cls(
            center=tuple(data['center']),
            size=tuple(data['size']),
            rotation=tuple(data.get('rotation') or (0.0, 0.0, 0.0)),
            building=data.get('building'),
            part=data.get('part'),
            type=data.get('type', 'box'),
        )
