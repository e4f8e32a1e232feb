"""Configuration constants, paths, and logging setup."""

import os
import pathlib
import logging

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Configure base paths
BASE_DIR = pathlib.Path(__file__).parent.parent.absolute()
OUTPUT_DIR = pathlib.Path(os.environ.get("CITYCOLLIDER_OUTPUT_DIR", BASE_DIR / "output"))

# ── Artifact filenames ──────────────────────────────────────────────────
HEIGHTFIELD_FILENAME = "city-heightfield.json"
COLLIDERS_FILENAME = "city-building-colliders.json"
MULTI_BOX_COLLIDERS_FILENAME = "city-building-colliders-multi-box.json"

# ── Height sampling ─────────────────────────────────────────────────────
DEFAULT_NX = 128
DEFAULT_NY = 128
GROUND_THRESHOLD = 4.0        # max metres above scene floor for a ground hit
UP_DOT_THRESHOLD = 0.5        # min |normal.y| for a hit to count as ground
RAY_CLEARANCE = 50.0          # rays start this far above the scene top
PROBE_OFFSET = 0.25           # half-spacing of the seam probes

# ── Heightfield refinement ──────────────────────────────────────────────
FILL_PASSES = 1
SPIKE_THRESHOLD = 2.5
SMOOTH_PASSES = 1
MAX_LOD_LEVELS = 5

# ── Building clustering ─────────────────────────────────────────────────
CELL_SIZE = 30.0              # world units per voxel cell (XZ)
MIN_EXTENT = 5.0              # min combined horizontal extent per axis
MIN_HEIGHT = 2.0              # min combined height
MIN_MESH_EXTENT = 1.0         # meshes smaller than this in X and Z are clutter
MIN_MESH_HEIGHT = 0.5         # flatter meshes are ground decals
GROUND_PLANE_EXTENT = 200.0   # wider than this in X and Z and short = ground
GROUND_PLANE_MAX_HEIGHT = 2.0

# ── Loading ─────────────────────────────────────────────────────────────
MAX_ABS_HEIGHT = 10_000.0     # safety clamp for heightfield values
FALLBACK_GROUND_SIZE = 200.0
FALLBACK_GROUND_THICKNESS = 1.0

# Configure logging
logging.basicConfig(
    level=os.environ.get("CITYCOLLIDER_LOG_LEVEL", "INFO").upper(),
    format='%(asctime)s - %(levelname)s - %(message)s',
)
logger = logging.getLogger(__name__)
