"""Raycast height sampling over a regular grid.

For every grid point a small fan of vertical rays is dropped onto the
scene.  Hits on steep faces (walls) and hits too far above the scene floor
(roofs, ledges) are discarded, and the lowest remaining hit becomes the
cell height.  Cells with no usable hit keep the sentinel value (the scene
minimum) and are repaired later by the refiner.
"""

import logging
import time
from dataclasses import dataclass

import numpy as np
import trimesh

from .config import SamplerConfig
from .errors import GridShapeError, SceneError
from .models import AxisAlignedBox, HeightfieldGrid
from .scene import combine_meshes, scene_bounds

logger = logging.getLogger(__name__)

_DOWN = np.array([0.0, -1.0, 0.0])


@dataclass
class SampleResult:
    grid: HeightfieldGrid
    sentinel: float
    bounds: AxisAlignedBox
    holes: int


class MeshHeightSampler:
    """Sample ground heights from a list of world-space meshes."""

    def __init__(self, meshes, config: SamplerConfig | None = None):
        self.config = config or SamplerConfig()
        self.bounds = scene_bounds(meshes)
        self.mesh = combine_meshes(meshes)
        self.ground_mesh = self._ground_faces(self.mesh)

    def _ground_faces(self, mesh: trimesh.Trimesh) -> trimesh.Trimesh | None:
        """Sub-mesh of the triangles whose normal can count as ground.

        Ray queries merge hits at equal distance, so the filter has to run
        before intersecting: a building underside lying flush on the ground
        would otherwise hide the ground face beneath it.
        """
        cfg = self.config
        # Normals of the combined mesh are already in world space
        up = np.asarray(mesh.face_normals)[:, 1]
        if not cfg.cull_back_faces:
            up = np.abs(up)
        keep = np.nonzero(up >= cfg.up_dot_threshold)[0]
        logger.debug(f"{len(keep)} of {len(mesh.faces)} faces face upward")
        if len(keep) == 0:
            return None
        return trimesh.Trimesh(vertices=mesh.vertices,
                               faces=mesh.faces[keep],
                               process=False)

    def sample_column(self, x: float, z: float) -> float:
        """Lowest valid ground height at (x, z), or the sentinel."""
        heights = self._probe(np.array([x]), z)
        return float(heights[0])

    def _probe(self, xs: np.ndarray, z: float) -> np.ndarray:
        """Probe a row of points at a fixed z; returns one height per point."""
        cfg = self.config
        min_y = float(self.bounds.min[1])
        top = float(self.bounds.max[1]) + cfg.ray_clearance

        offsets = np.asarray(cfg.offsets, dtype=np.float64).reshape(-1, 2)
        n_pts, n_off = len(xs), len(offsets)

        origins = np.empty((n_pts * n_off, 3), dtype=np.float64)
        origins[:, 0] = np.repeat(xs, n_off) + np.tile(offsets[:, 0], n_pts)
        origins[:, 1] = top
        origins[:, 2] = z + np.tile(offsets[:, 1], n_pts)
        directions = np.tile(_DOWN, (len(origins), 1))

        best = np.full(len(origins), np.inf)
        if self.ground_mesh is not None:
            locations, index_ray, _ = self.ground_mesh.ray.intersects_location(
                origins, directions, multiple_hits=True)
            if len(locations):
                hit_y = locations[:, 1]
                keep = hit_y - min_y <= cfg.ground_threshold
                np.minimum.at(best, index_ray[keep], hit_y[keep])

        per_point = best.reshape(n_pts, n_off).min(axis=1)
        per_point[~np.isfinite(per_point)] = min_y
        return per_point

    def sample(self, nx: int, ny: int, progress_callback=None) -> SampleResult:
        """Sample an nx×ny grid spanning the scene's horizontal extent."""
        def _progress(pct, msg):
            if progress_callback:
                progress_callback(pct, msg)

        if nx < 2 or ny < 2:
            raise GridShapeError(f"Grid must be at least 2x2, got {nx}x{ny}")

        b = self.bounds
        width = float(b.max[0] - b.min[0])
        depth = float(b.max[2] - b.min[2])
        if width <= 0 or depth <= 0:
            raise SceneError(f"Scene has no horizontal extent "
                             f"(width={width}, depth={depth})")

        sentinel = float(b.min[1])
        xs = b.min[0] + (np.arange(nx) / (nx - 1)) * width
        heights = np.full((ny, nx), sentinel, dtype=np.float64)

        t0 = time.perf_counter()
        for iy in range(ny):
            z = b.min[2] + (iy / (ny - 1)) * depth
            heights[iy] = self._probe(xs, z)
            _progress(100.0 * (iy + 1) / ny, f"Sampled row {iy + 1}/{ny}")

        holes = int(np.count_nonzero(heights == sentinel))
        logger.info(f"Sampled {nx}x{ny} heightfield in "
                    f"{time.perf_counter() - t0:.1f}s "
                    f"({holes} cells without ground hit)")

        grid = HeightfieldGrid(
            nx=nx, ny=ny, width=width, depth=depth,
            heights=heights.ravel(),
            origin=(float(b.min[0]), float(b.min[2])),
        )
        return SampleResult(grid=grid, sentinel=sentinel, bounds=b, holes=holes)


def sample_heightfield(meshes, nx: int, ny: int,
                       config: SamplerConfig | None = None,
                       progress_callback=None) -> SampleResult:
    """Convenience wrapper around :class:`MeshHeightSampler`."""
    return MeshHeightSampler(meshes, config).sample(
        nx, ny, progress_callback=progress_callback)
