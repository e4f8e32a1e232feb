"""Building collider extraction by voxel bucketing and flood fill.

Each mesh contributes its world AABB.  Box centres are hashed into square
XZ cells; 4-connected runs of populated cells form one building, whose
boxes are merged into a single collider (``granularity="building"``) or
into one collider per cell (``granularity="cell"``).
"""

import logging
import math
from collections import defaultdict
from dataclasses import dataclass, field

from .config import ClusterConfig
from .models import AxisAlignedBox, ColliderDescriptor

logger = logging.getLogger(__name__)

_NEIGHBOURS = ((1, 0), (-1, 0), (0, 1), (0, -1))


@dataclass
class BuildingCluster:
    cells: list
    boxes: list = field(default_factory=list)

    @property
    def combined(self) -> AxisAlignedBox:
        box = AxisAlignedBox.empty()
        for b in self.boxes:
            box = box.union(b)
        return box


def is_candidate_box(box: AxisAlignedBox, cfg: ClusterConfig) -> bool:
    """False for empty boxes, ground decals, ground planes and clutter."""
    if box.is_empty:
        return False
    sx, sy, sz = box.size
    if sy < cfg.min_mesh_height:
        return False
    if sx > cfg.ground_plane_extent and sz > cfg.ground_plane_extent \
            and sy < cfg.ground_plane_max_height:
        return False
    if sx < cfg.min_mesh_extent and sz < cfg.min_mesh_extent:
        return False
    return True


def extract_boxes(meshes, cfg: ClusterConfig) -> list:
    """World AABBs of the meshes that look like building parts."""
    boxes = []
    needle = cfg.group_filter.lower() if cfg.group_filter else None
    for m in meshes:
        if needle and needle not in m.group.lower() and needle not in m.name.lower():
            continue
        if is_candidate_box(m.bounds, cfg):
            boxes.append(m.bounds)
    logger.info(f"Kept {len(boxes)} of {len(meshes)} mesh boxes for clustering")
    return boxes


def cell_key(x: float, z: float, cell_size: float) -> tuple:
    return math.floor(x / cell_size), math.floor(z / cell_size)


def bucket_boxes(boxes, cell_size: float) -> dict:
    """Map each populated XZ cell to the boxes whose centres fall in it."""
    cells = defaultdict(list)
    for box in boxes:
        cx, _, cz = box.center
        cells[cell_key(cx, cz, cell_size)].append(box)
    return dict(cells)


def flood_fill_clusters(cells: dict) -> list:
    """Partition populated cells into 4-connected components."""
    visited = set()
    clusters = []
    for start in sorted(cells):
        if start in visited:
            continue
        visited.add(start)
        stack = [start]
        members = []
        while stack:
            key = stack.pop()
            members.append(key)
            kx, kz = key
            for dx, dz in _NEIGHBOURS:
                nb = (kx + dx, kz + dz)
                if nb in cells and nb not in visited:
                    visited.add(nb)
                    stack.append(nb)
        members.sort()
        boxes = [b for key in members for b in cells[key]]
        clusters.append(BuildingCluster(cells=members, boxes=boxes))
    return clusters


def _large_enough(box: AxisAlignedBox, cfg: ClusterConfig) -> bool:
    sx, sy, sz = box.size
    return sx >= cfg.min_extent and sz >= cfg.min_extent and sy >= cfg.min_height


class BuildingClusterExtractor:
    """Turn a flattened scene into box collider descriptors."""

    def __init__(self, config: ClusterConfig | None = None):
        self.config = config or ClusterConfig()

    @staticmethod
    def _cell_box(boxes) -> AxisAlignedBox:
        box = AxisAlignedBox.empty()
        for b in boxes:
            box = box.union(b)
        return box

    def cluster(self, meshes) -> tuple:
        """Return (clusters, cells) for the meshes."""
        boxes = extract_boxes(meshes, self.config)
        cells = bucket_boxes(boxes, self.config.cell_size)
        clusters = flood_fill_clusters(cells)
        logger.info(f"{len(cells)} populated cells -> {len(clusters)} clusters "
                    f"(cell size {self.config.cell_size})")
        return clusters, cells

    def extract(self, meshes) -> list:
        cfg = self.config
        clusters, cells = self.cluster(meshes)

        descriptors = []
        dropped = 0
        building_index = 0
        for cluster in clusters:
            combined = cluster.combined
            if not _large_enough(combined, cfg):
                dropped += 1
                continue

            if cfg.granularity == "cell":
                parts = [p for p in (self._cell_box(cells[key]) for key in cluster.cells)
                         if _large_enough(p, cfg)]
                if not parts:
                    dropped += 1
                    continue

            name = f"building_{building_index}"
            building_index += 1
            if cfg.granularity == "building":
                descriptors.append(ColliderDescriptor.from_box(combined, building=name))
            else:
                descriptors.extend(ColliderDescriptor.from_box(box, building=name, part=i)
                                   for i, box in enumerate(parts))

        logger.debug(f"Dropped {dropped} undersized clusters")
        logger.info(f"Extracted {len(descriptors)} box colliders "
                    f"({cfg.granularity} granularity)")
        return descriptors


def extract_building_colliders(meshes, config: ClusterConfig | None = None) -> list:
    return BuildingClusterExtractor(config).extract(meshes)
