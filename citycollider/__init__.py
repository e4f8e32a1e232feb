"""citycollider — collision ground truth for city scenes.

Import constants FIRST so logging and .env settings are applied before any
other module logs.
"""

from citycollider import constants as _constants  # noqa: F401

from citycollider.builder import ColliderBuilder
from citycollider.config import PipelineConfig
from citycollider.models import AxisAlignedBox, ColliderDescriptor, HeightfieldGrid
