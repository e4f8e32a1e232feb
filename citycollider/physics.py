"""Physics-engine seam for collider construction.

The loaders only talk to a :class:`PhysicsWorld`.  :class:`BulletWorld`
drives pybullet; :class:`RecordingWorld` keeps colliders in memory for dry
runs and inspection.

Scene data is Y-up (glTF convention).  Bullet is Z-up, so scene
``(x, y, z)`` maps to Bullet ``(x, -z, y)``.
"""

import logging
from typing import Protocol

import numpy as np
from scipy.spatial.transform import Rotation

logger = logging.getLogger(__name__)

# Scene (x, y, z) -> Bullet (x, -z, y)
_Y_UP_TO_Z_UP = np.array([[1.0, 0.0, 0.0],
                          [0.0, 0.0, -1.0],
                          [0.0, 1.0, 0.0]])


def to_z_up(v) -> list:
    return (_Y_UP_TO_Z_UP @ np.asarray(v, dtype=np.float64)).tolist()


def euler_to_quaternion(rotation, z_up: bool = False) -> list:
    """Intrinsic XYZ Euler angles (radians) to an ``[x, y, z, w]`` quaternion.

    With ``z_up`` the rotation is re-expressed in the Bullet frame.
    """
    rot = Rotation.from_euler('XYZ', rotation)
    if z_up:
        m = _Y_UP_TO_Z_UP @ rot.as_matrix() @ _Y_UP_TO_Z_UP.T
        rot = Rotation.from_matrix(m)
    return rot.as_quat().tolist()


class PhysicsWorld(Protocol):
    def create_heightfield(self, heights, nx: int, ny: int,
                           width: float, depth: float, origin=None): ...

    def create_box(self, center, half_extents, rotation=(0.0, 0.0, 0.0)): ...


class RecordingWorld:
    """In-memory world that records every collider it is asked to build."""

    def __init__(self):
        self.colliders = []

    def create_heightfield(self, heights, nx, ny, width, depth, origin=None):
        heights = np.asarray(heights, dtype=np.float64)
        if len(heights) != nx * ny:
            raise ValueError(f"heightfield needs {nx * ny} samples, got {len(heights)}")
        self.colliders.append({
            'type': 'heightfield', 'nx': nx, 'ny': ny,
            'width': width, 'depth': depth, 'origin': origin,
            'heights': heights,
        })
        return len(self.colliders) - 1

    def create_box(self, center, half_extents, rotation=(0.0, 0.0, 0.0)):
        center = [float(v) for v in center]
        half = [float(v) for v in half_extents]
        if len(center) != 3 or len(half) != 3:
            raise ValueError("box center and half extents must be 3-vectors")
        if any(h <= 0 for h in half):
            raise ValueError(f"box half extents must be positive, got {half}")
        self.colliders.append({
            'type': 'box', 'center': center, 'half_extents': half,
            'quaternion': euler_to_quaternion(rotation),
        })
        return len(self.colliders) - 1

    def of_type(self, kind: str) -> list:
        return [c for c in self.colliders if c['type'] == kind]


class BulletWorld:
    """Static colliders in a pybullet physics client."""

    def __init__(self, client: int | None = None):
        import pybullet as p
        self._p = p
        self._owns_client = client is None
        self.client = p.connect(p.DIRECT) if client is None else client
        self.bodies = []

    def create_heightfield(self, heights, nx, ny, width, depth, origin=None):
        p = self._p
        h = np.asarray(heights, dtype=np.float64).reshape(ny, nx)
        # Bullet rows run along +x, columns along +y == scene -z
        data = h[::-1, :].ravel().tolist()
        scale = [width / (nx - 1), depth / (ny - 1), 1.0]

        shape = p.createCollisionShape(
            p.GEOM_HEIGHTFIELD,
            meshScale=scale,
            heightfieldTextureScaling=(nx - 1) / 2,
            heightfieldData=data,
            numHeightfieldRows=nx,
            numHeightfieldColumns=ny,
            physicsClientId=self.client,
        )
        if shape < 0:
            raise RuntimeError("pybullet rejected heightfield shape")

        ox, oz = origin if origin is not None else (-width / 2.0, -depth / 2.0)
        # Bullet centres the field on the middle of its height range
        mid_y = (float(h.min()) + float(h.max())) / 2.0
        pos = to_z_up([ox + width / 2.0, mid_y, oz + depth / 2.0])
        body = p.createMultiBody(0, shape, -1, pos, physicsClientId=self.client)
        self.bodies.append(body)
        return body

    def create_box(self, center, half_extents, rotation=(0.0, 0.0, 0.0)):
        p = self._p
        hx, hy, hz = half_extents
        shape = p.createCollisionShape(
            p.GEOM_BOX, halfExtents=[hx, hz, hy], physicsClientId=self.client)
        if shape < 0:
            raise RuntimeError(f"pybullet rejected box {half_extents}")
        body = p.createMultiBody(
            0, shape, -1, to_z_up(center),
            euler_to_quaternion(rotation, z_up=True),
            physicsClientId=self.client,
        )
        self.bodies.append(body)
        return body

    def close(self):
        if self._owns_client:
            self._p.disconnect(physicsClientId=self.client)
