"""Server-side collider loading.

Terrain loading never fails the caller: any problem with the file, its
shape or the physics engine degrades to a flat ground slab.  Building
loading skips bad entries and keeps going.
"""

import json
import logging
import math
import numbers
import pathlib
from dataclasses import dataclass, field
from typing import Any, Optional

import numpy as np

from .config import LoaderConfig
from .constants import HEIGHTFIELD_FILENAME, COLLIDERS_FILENAME
from .models import PathManager

logger = logging.getLogger(__name__)


@dataclass
class HeightfieldLoadResult:
    ok: bool
    fallback: bool
    collider: Any = None
    corrections: int = 0
    min_height: Optional[float] = None
    max_height: Optional[float] = None
    reason: Optional[str] = None


@dataclass
class BuildingLoadResult:
    created: int = 0
    failed: int = 0
    colliders: list = field(default_factory=list)


def _is_number(v) -> bool:
    return isinstance(v, numbers.Real) and not isinstance(v, bool)


def _is_finite(v) -> bool:
    """Real number that is finite and fits in a float."""
    if not _is_number(v):
        return False
    try:
        return math.isfinite(v)
    except OverflowError:
        # JSON integers beyond the float range
        return False


def create_fallback_ground(world, config: LoaderConfig | None = None):
    """Flat slab whose top face sits at y = 0."""
    cfg = config or LoaderConfig()
    half = cfg.fallback_size / 2.0
    half_t = cfg.fallback_thickness / 2.0
    try:
        collider = world.create_box((0.0, -half_t, 0.0), (half, half_t, half))
        logger.info("[Heightfield] Fallback flat ground collider created")
        return collider
    except Exception as e:
        logger.error(f"[Heightfield] Failed to create fallback ground collider: {e}")
        return None


def _fallback(world, cfg, reason: str) -> HeightfieldLoadResult:
    collider = create_fallback_ground(world, cfg)
    return HeightfieldLoadResult(ok=False, fallback=True, collider=collider,
                                 reason=reason)


def validate_heightfield(data) -> Optional[str]:
    """Return a description of the first shape problem, or None."""
    if not isinstance(data, dict):
        return f"expected a JSON object, got {type(data).__name__}"
    nx, ny = data.get('nx'), data.get('ny')
    heights = data.get('heights')
    if not (_is_finite(nx) and _is_finite(ny)) \
            or nx <= 1 or ny <= 1 or not isinstance(heights, list):
        return (f"invalid dimensions or heights array: nx={nx!r}, ny={ny!r}, "
                f"has_heights_array={isinstance(heights, list)}")
    if int(nx) != nx or int(ny) != ny:
        return f"dimensions must be whole numbers: nx={nx!r}, ny={ny!r}"
    nx, ny = int(nx), int(ny)
    if len(heights) != nx * ny:
        return (f"heights length mismatch: nx*ny={nx * ny}, "
                f"heights.length={len(heights)}")
    width, depth = data.get('width'), data.get('depth')
    if not (_is_finite(width) and _is_finite(depth)) \
            or width <= 0 or depth <= 0:
        return f"invalid width/depth: width={width!r}, depth={depth!r}"
    return None


def sanitize_heights(heights, max_abs: float) -> tuple:
    """Replace non-finite values with 0 and clamp to ±max_abs.

    Returns (array, corrections, min, max).
    """
    out = np.empty(len(heights), dtype=np.float64)
    corrections = 0
    lo, hi = math.inf, -math.inf
    for i, h in enumerate(heights):
        if not _is_number(h) or not (isinstance(h, numbers.Integral) or math.isfinite(h)):
            h = 0.0
            corrections += 1
        elif abs(h) > max_abs:
            h = max(-max_abs, min(max_abs, h))
            corrections += 1
        out[i] = h
        lo = min(lo, h)
        hi = max(hi, h)
    return out, corrections, lo, hi


def load_heightfield(world, source=None,
                     config: LoaderConfig | None = None) -> HeightfieldLoadResult:
    """Build a terrain collider from a heightfield file or dict.

    ``source`` may be a path, an already-parsed dict, or None for the
    default artifact path.  Never raises.
    """
    cfg = config or LoaderConfig()

    if isinstance(source, dict):
        data = source
    else:
        path = pathlib.Path(source) if source is not None \
            else PathManager.get_output_path(HEIGHTFIELD_FILENAME)
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.error(f"[Heightfield] Failed to read/parse {path.name}: {e}")
            return _fallback(world, cfg, f"unreadable file: {e}")

    problem = validate_heightfield(data)
    if problem:
        logger.error(f"[Heightfield] {problem}")
        return _fallback(world, cfg, problem)

    nx, ny = int(data['nx']), int(data['ny'])
    width, depth = float(data['width']), float(data['depth'])

    sanitized, corrections, lo, hi = sanitize_heights(data['heights'], cfg.max_abs_height)
    if corrections:
        logger.warning(f"[Heightfield] Sanitized {corrections} height values "
                       f"(NaN/Infinity/out-of-range)")
    logger.info(f"[Heightfield] Data ok. nx={nx}, ny={ny}, "
                f"minH={lo:.3f}, maxH={hi:.3f}, "
                f"width={width:.3f}, depth={depth:.3f}")

    origin = data.get('origin')
    if not (isinstance(origin, list) and len(origin) == 2
            and all(_is_finite(v) for v in origin)):
        origin = None

    try:
        collider = world.create_heightfield(sanitized, nx, ny, width, depth,
                                            origin=tuple(origin) if origin else None)
    except Exception as e:
        logger.error(f"[Heightfield] Heightfield creation failed, using fallback ground: {e}")
        result = _fallback(world, cfg, f"engine error: {e}")
        result.corrections = corrections
        return result

    logger.info("[Heightfield] Heightfield collider created")
    return HeightfieldLoadResult(ok=True, fallback=False, collider=collider,
                                 corrections=corrections,
                                 min_height=lo, max_height=hi)


def load_building_colliders(world, source=None) -> BuildingLoadResult:
    """Create one static box per descriptor; bad entries are skipped."""
    result = BuildingLoadResult()

    if isinstance(source, list):
        entries = source
    else:
        path = pathlib.Path(source) if source is not None \
            else PathManager.get_output_path(COLLIDERS_FILENAME)
        try:
            with open(path, 'r', encoding='utf-8') as f:
                entries = json.load(f)
        except (OSError, ValueError) as e:
            logger.error(f"[ENV] Failed to read building colliders {path.name}: {e}")
            return result
        if not isinstance(entries, list):
            logger.error(f"[ENV] {path.name} must contain a JSON array")
            return result

    for i, entry in enumerate(entries):
        try:
            cx, cy, cz = entry['center']
            sx, sy, sz = entry['size']
            rx, ry, rz = entry.get('rotation') or (0.0, 0.0, 0.0)
            collider = world.create_box((cx, cy, cz),
                                        (sx / 2.0, sy / 2.0, sz / 2.0),
                                        rotation=(rx, ry, rz))
        except Exception as e:
            result.failed += 1
            logger.error(f"[ENV] Building collider {i} failed: {e}")
            continue
        result.colliders.append(collider)
        result.created += 1

    logger.info(f"[ENV] Loaded {result.created} building colliders"
                + (f" ({result.failed} failed)" if result.failed else ""))
    return result
