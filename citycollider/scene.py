"""Scene loading — flatten a trimesh scene graph into world-space meshes.

Everything downstream (sampling, clustering) works on the flat list of
:class:`MeshRecord` produced here, never on the scene graph itself.
"""

import logging
import pathlib

import numpy as np
import trimesh

from .errors import SceneError
from .models import AxisAlignedBox, MeshRecord

logger = logging.getLogger(__name__)


def load_scene(path) -> list:
    """Load a GLB/GLTF/OBJ file and return its meshes in world space."""
    path = pathlib.Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Scene file not found: {path}")

    logger.info(f"Loading scene: {path.name}")
    scene = trimesh.load(str(path), force='scene')
    if not isinstance(scene, trimesh.Scene):
        # Single mesh: wrap it
        scene = trimesh.Scene(geometry={'model': scene})

    meshes = flatten_scene(scene)
    if not meshes:
        raise SceneError(f"No triangle geometry in {path.name}")
    return meshes


def flatten_scene(scene: trimesh.Scene) -> list:
    """Apply node transforms and return one MeshRecord per mesh instance."""
    parents = scene.graph.transforms.parents
    records = []
    for node in scene.graph.nodes_geometry:
        transform, geom_name = scene.graph[node]
        geom = scene.geometry.get(geom_name)
        if not isinstance(geom, trimesh.Trimesh) or len(geom.faces) == 0:
            continue

        vertices = trimesh.transformations.transform_points(
            np.asarray(geom.vertices, dtype=np.float64), transform)
        parent = parents.get(node)
        group = parent if parent and parent != scene.graph.base_frame else node

        records.append(MeshRecord(
            name=str(node),
            group=str(group),
            vertices=vertices,
            faces=np.asarray(geom.faces),
        ))

    logger.info(f"Flattened scene: {len(records)} meshes, "
                f"{sum(len(r.faces) for r in records)} faces")
    return records


def scene_bounds(meshes) -> AxisAlignedBox:
    """Union of all mesh bounds."""
    if not meshes:
        raise SceneError("Cannot compute bounds of an empty scene")
    box = AxisAlignedBox.empty()
    for m in meshes:
        box = box.union(m.bounds)
    return box


def combine_meshes(meshes) -> trimesh.Trimesh:
    """Concatenate world-space records into one mesh for ray queries."""
    if not meshes:
        raise SceneError("Cannot combine an empty scene")
    offset = 0
    verts, faces = [], []
    for m in meshes:
        verts.append(m.vertices)
        faces.append(m.faces + offset)
        offset += len(m.vertices)
    return trimesh.Trimesh(vertices=np.vstack(verts),
                           faces=np.vstack(faces),
                           process=False)
