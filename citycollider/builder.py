"""ColliderBuilder — thin orchestrator that delegates to focused modules."""

import logging
import pathlib
import time
from dataclasses import replace
from typing import Union

from .config import PipelineConfig
from .constants import (
    COLLIDERS_FILENAME, DEFAULT_NX, DEFAULT_NY,
    HEIGHTFIELD_FILENAME, MULTI_BOX_COLLIDERS_FILENAME, OUTPUT_DIR,
)
from .models import HeightfieldGrid
from . import clustering
from . import export
from . import refiner
from . import sampler
from . import scene as scene_mod
from . import worker as worker_mod

logger = logging.getLogger(__name__)


def colliders_filename(granularity: str) -> str:
    return MULTI_BOX_COLLIDERS_FILENAME if granularity == "cell" else COLLIDERS_FILENAME


class ColliderBuilder:
    def __init__(self, config: PipelineConfig | None = None):
        self.config = config or PipelineConfig()

    def _meshes(self, source):
        if isinstance(source, (str, pathlib.Path)):
            return scene_mod.load_scene(source)
        return list(source)

    def generate_heightfield(self, source: Union[str, pathlib.Path, list],
                             nx: int = DEFAULT_NX, ny: int = DEFAULT_NY,
                             offload: bool = False,
                             progress_callback=None) -> HeightfieldGrid:
        """Sample and refine a heightfield from a scene path or mesh list.

        With ``offload`` the refinement runs in a worker process using the
        request/response protocol from :mod:`citycollider.worker`.
        """
        def _progress(pct, msg):
            if progress_callback:
                progress_callback(pct, msg)

        meshes = self._meshes(source)
        _progress(5, f"Sampling {nx}x{ny} heightfield...")

        def _sample_progress(pct, msg):
            _progress(5 + pct * 0.75, msg)

        raw = sampler.sample_heightfield(meshes, nx, ny, self.config.sampler,
                                         progress_callback=_sample_progress)

        _progress(80, "Refining heightfield...")
        if not offload:
            return refiner.refine(raw.grid, raw.sentinel, self.config.refiner)

        request = worker_mod.make_request(nx, ny, raw.sentinel, raw.grid.heights)
        with worker_mod.RefinementWorker(self.config.refiner) as w:
            response = w.process(request)
        payload = response['payload']
        grid = raw.grid
        return HeightfieldGrid.from_dict({
            'nx': payload['nx'],
            'ny': payload['ny'],
            'width': grid.width,
            'depth': grid.depth,
            'minHeight': payload['minHeight'],
            'maxHeight': payload['maxHeight'],
            'heights': payload['heights'],
            'lodLevels': payload['lodLevels'],
            'origin': list(grid.origin) if grid.origin else None,
        })

    def generate_colliders(self, source, granularity: str | None = None) -> list:
        cfg = self.config.cluster
        if granularity and granularity != cfg.granularity:
            cfg = replace(cfg, granularity=granularity)
        return clustering.BuildingClusterExtractor(cfg).extract(self._meshes(source))

    def generate(self, scene_path, output_dir=None,
                 nx: int = DEFAULT_NX, ny: int = DEFAULT_NY,
                 offload: bool = False, granularity: str | None = None,
                 progress_callback=None) -> dict:
        """Full run: load once, write both artifacts, return a summary."""
        def _progress(pct, msg):
            if progress_callback:
                progress_callback(pct, msg)

        t0 = time.perf_counter()
        out = pathlib.Path(output_dir) if output_dir else OUTPUT_DIR

        _progress(0, "Loading scene...")
        meshes = scene_mod.load_scene(scene_path)

        grid = self.generate_heightfield(meshes, nx, ny, offload=offload,
                                         progress_callback=lambda p, m: _progress(p * 0.85, m))
        hf_path = export.write_heightfield(grid, out / HEIGHTFIELD_FILENAME)

        _progress(90, "Clustering buildings...")
        granularity = granularity or self.config.cluster.granularity
        descriptors = self.generate_colliders(meshes, granularity)
        col_path = export.write_colliders(descriptors, out / colliders_filename(granularity))

        elapsed = time.perf_counter() - t0
        _progress(100, "Done")
        logger.info(f"Generated collision artifacts in {elapsed:.1f}s")
        return {
            'heightfield_path': str(hf_path),
            'colliders_path': str(col_path),
            'nx': grid.nx,
            'ny': grid.ny,
            'min_height': grid.min_height,
            'max_height': grid.max_height,
            'lod_levels': len(grid.lod_levels),
            'colliders': len(descriptors),
            'granularity': granularity,
            'elapsed_s': round(elapsed, 2),
        }
