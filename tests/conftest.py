import numpy as np
import pytest
import trimesh

from citycollider.models import MeshRecord


def box_mesh(center, size, name="box", group=None) -> MeshRecord:
    """World-space box MeshRecord with outward-facing triangles."""
    mesh = trimesh.creation.box(
        extents=size,
        transform=trimesh.transformations.translation_matrix(center),
    )
    return MeshRecord(name=name, group=group or name,
                      vertices=np.asarray(mesh.vertices),
                      faces=np.asarray(mesh.faces))


def ground_slab(x0, x1, z0, z1, top=0.0, thickness=1.0, name="ground") -> MeshRecord:
    cx, cz = (x0 + x1) / 2.0, (z0 + z1) / 2.0
    return box_mesh((cx, top - thickness / 2.0, cz),
                    (x1 - x0, thickness, z1 - z0), name=name)


@pytest.fixture
def city_meshes():
    """100×100 ground slab with one 20×30×20 building in the middle."""
    return [
        ground_slab(-50, 50, -50, 50),
        box_mesh((0.0, 15.0, 0.0), (20.0, 30.0, 20.0), name="tower", group="building_a"),
    ]
