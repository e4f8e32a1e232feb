"""Heightfield repair and level-of-detail construction.

Takes the raw sampled grid and

1. fills sentinel holes from their 4-neighbours,
2. clamps isolated spikes and pits left by building edges,
3. smooths interior cells with a 5-point stencil,
4. builds an LOD pyramid by repeated 2×2 block averaging.

All functions work on copies; the caller's arrays are never modified.
"""

import logging
from dataclasses import dataclass, field

import numpy as np

from .config import RefinerConfig
from .errors import GridShapeError
from .models import HeightfieldGrid, LODLevel

logger = logging.getLogger(__name__)


@dataclass
class RefineResult:
    nx: int
    ny: int
    heights: np.ndarray
    min_height: float
    max_height: float
    lod_levels: list = field(default_factory=list)
    unresolved: int = 0

    def to_payload(self) -> dict:
        """Worker response payload layout."""
        return {
            'nx': int(self.nx),
            'ny': int(self.ny),
            'minHeight': float(self.min_height),
            'maxHeight': float(self.max_height),
            'heights': [float(h) for h in self.heights],
            'lodLevels': [lvl.to_dict() for lvl in self.lod_levels],
        }


def _as_grid(heights, nx: int, ny: int) -> np.ndarray:
    if nx < 2 or ny < 2:
        raise GridShapeError(f"Grid must be at least 2x2, got {nx}x{ny}")
    arr = np.array(heights, dtype=np.float64).ravel()
    if len(arr) != nx * ny:
        raise GridShapeError(
            f"heights has {len(arr)} values, expected nx*ny = {nx * ny}")
    return arr.reshape(ny, nx)


def fill_holes(heights: np.ndarray, sentinel: float, passes: int = 1) -> np.ndarray:
    """Replace sentinel cells with the mean of their non-sentinel neighbours.

    Cells are updated in place in row-major order, so a hole filled earlier
    in a pass counts as a valid neighbour for later cells of the same pass.
    Holes with no valid neighbour are left for the next pass.
    """
    h = np.array(heights, dtype=np.float64)
    ny, nx = h.shape
    for _ in range(passes):
        holes = np.argwhere(h == sentinel)
        if len(holes) == 0:
            break
        for iy, ix in holes:
            total, count = 0.0, 0
            for jy, jx in ((iy, ix - 1), (iy, ix + 1), (iy - 1, ix), (iy + 1, ix)):
                if 0 <= jx < nx and 0 <= jy < ny and h[jy, jx] != sentinel:
                    total += h[jy, jx]
                    count += 1
            if count:
                h[iy, ix] = total / count
    return h


def clamp_spikes(heights: np.ndarray, threshold: float) -> np.ndarray:
    """Flatten interior cells that stick out of all four neighbours."""
    h = np.array(heights, dtype=np.float64)
    ny, nx = h.shape
    clamped = 0
    for iy in range(1, ny - 1):
        for ix in range(1, nx - 1):
            nb = (h[iy, ix - 1], h[iy, ix + 1], h[iy - 1, ix], h[iy + 1, ix])
            lo, hi = min(nb), max(nb)
            v = h[iy, ix]
            if v - hi > threshold or lo - v > threshold:
                h[iy, ix] = sum(nb) / 4.0
                clamped += 1
    if clamped:
        logger.debug(f"Clamped {clamped} spike cells")
    return h


def smooth(heights: np.ndarray, passes: int = 1) -> np.ndarray:
    """5-point average of interior cells; border cells are kept as-is."""
    h = np.array(heights, dtype=np.float64)
    for _ in range(passes):
        src = h.copy()
        h[1:-1, 1:-1] = (src[1:-1, 1:-1] +
                         src[1:-1, :-2] + src[1:-1, 2:] +
                         src[:-2, 1:-1] + src[2:, 1:-1]) / 5.0
    return h


def downsample(heights: np.ndarray) -> np.ndarray:
    """Average 2×2 blocks; an odd trailing row/column is dropped."""
    ny, nx = heights.shape
    hy, hx = ny // 2, nx // 2
    blocks = heights[:hy * 2, :hx * 2].reshape(hy, 2, hx, 2)
    return blocks.mean(axis=(1, 3))


def build_lod_pyramid(heights: np.ndarray, max_levels: int = 5) -> list:
    """Level 0 is the input grid; each next level halves both dimensions."""
    levels = []
    data = np.asarray(heights, dtype=np.float64)
    level = 0
    while data.shape[0] >= 2 and data.shape[1] >= 2 and level < max_levels:
        ny, nx = data.shape
        levels.append(LODLevel(level=level, nx=nx, ny=ny, heights=data.ravel().copy()))
        data = downsample(data)
        level += 1
    return levels


def count_unresolved(heights, sentinel: float) -> int:
    return int(np.count_nonzero(np.asarray(heights) == sentinel))


def refine_heights(heights, nx: int, ny: int, sentinel: float,
                   config: RefinerConfig | None = None) -> RefineResult:
    """Run the full repair pipeline on a flat row-major height list."""
    cfg = config or RefinerConfig()
    h = _as_grid(heights, nx, ny)

    h = fill_holes(h, sentinel, cfg.fill_passes)
    unresolved = count_unresolved(h, sentinel)
    if unresolved:
        logger.info(f"{unresolved} hole cells unresolved after "
                    f"{cfg.fill_passes} fill pass(es)")

    h = clamp_spikes(h, cfg.spike_threshold)
    h = smooth(h, cfg.smooth_passes)
    lods = build_lod_pyramid(h, cfg.max_lod_levels)

    flat = h.ravel()
    result = RefineResult(
        nx=nx, ny=ny, heights=flat,
        min_height=float(flat.min()), max_height=float(flat.max()),
        lod_levels=lods, unresolved=unresolved,
    )
    logger.info(f"Refined {nx}x{ny} heightfield: "
                f"range {result.min_height:.2f}..{result.max_height:.2f}, "
                f"{len(lods)} LOD levels")
    return result


def refine(grid: HeightfieldGrid, sentinel: float,
           config: RefinerConfig | None = None) -> HeightfieldGrid:
    """Refine a sampled grid, keeping its extent and origin."""
    result = refine_heights(grid.heights, grid.nx, grid.ny, sentinel, config)
    return HeightfieldGrid(
        nx=grid.nx, ny=grid.ny, width=grid.width, depth=grid.depth,
        heights=result.heights,
        min_height=result.min_height, max_height=result.max_height,
        lod_levels=result.lod_levels, origin=grid.origin,
    )
