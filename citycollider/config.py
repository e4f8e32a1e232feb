"""Per-stage configuration passed explicitly into the pipeline."""

import json
import pathlib
from dataclasses import dataclass, field, fields, asdict

from . import constants as C

GRANULARITIES = ("building", "cell")


def _default_offsets():
    d = C.PROBE_OFFSET
    return [(0.0, 0.0), (d, 0.0), (-d, 0.0), (0.0, d), (0.0, -d)]


@dataclass
class SamplerConfig:
    ground_threshold: float = C.GROUND_THRESHOLD
    up_dot_threshold: float = C.UP_DOT_THRESHOLD
    ray_clearance: float = C.RAY_CLEARANCE
    cull_back_faces: bool = True
    offsets: list = field(default_factory=_default_offsets)


@dataclass
class RefinerConfig:
    fill_passes: int = C.FILL_PASSES
    spike_threshold: float = C.SPIKE_THRESHOLD
    smooth_passes: int = C.SMOOTH_PASSES
    max_lod_levels: int = C.MAX_LOD_LEVELS


@dataclass
class ClusterConfig:
    cell_size: float = C.CELL_SIZE
    min_extent: float = C.MIN_EXTENT
    min_height: float = C.MIN_HEIGHT
    min_mesh_extent: float = C.MIN_MESH_EXTENT
    min_mesh_height: float = C.MIN_MESH_HEIGHT
    ground_plane_extent: float = C.GROUND_PLANE_EXTENT
    ground_plane_max_height: float = C.GROUND_PLANE_MAX_HEIGHT
    granularity: str = "building"
    group_filter: str | None = None

    def __post_init__(self):
        if self.granularity not in GRANULARITIES:
            raise ValueError(f"granularity must be one of {GRANULARITIES}, "
                             f"got {self.granularity!r}")
        if self.cell_size <= 0:
            raise ValueError(f"cell_size must be positive, got {self.cell_size}")


@dataclass
class LoaderConfig:
    max_abs_height: float = C.MAX_ABS_HEIGHT
    fallback_size: float = C.FALLBACK_GROUND_SIZE
    fallback_thickness: float = C.FALLBACK_GROUND_THICKNESS


def _build(cls, values):
    known = {f.name for f in fields(cls)}
    unknown = set(values) - known
    if unknown:
        raise ValueError(f"Unknown {cls.__name__} keys: {sorted(unknown)}")
    return cls(**values)


@dataclass
class PipelineConfig:
    """All stage settings for one generation run."""
    sampler: SamplerConfig = field(default_factory=SamplerConfig)
    refiner: RefinerConfig = field(default_factory=RefinerConfig)
    cluster: ClusterConfig = field(default_factory=ClusterConfig)
    loader: LoaderConfig = field(default_factory=LoaderConfig)

    @classmethod
    def from_dict(cls, data: dict) -> "PipelineConfig":
        """Build from a nested dict, e.g. ``{"refiner": {"smooth_passes": 2}}``.

        Unknown sections or keys raise ``ValueError`` so typos are not
        silently ignored.
        """
        sections = {
            'sampler': SamplerConfig,
            'refiner': RefinerConfig,
            'cluster': ClusterConfig,
            'loader': LoaderConfig,
        }
        unknown = set(data) - set(sections)
        if unknown:
            raise ValueError(f"Unknown config sections: {sorted(unknown)}")

        kwargs = {}
        for name, section_cls in sections.items():
            values = dict(data.get(name) or {})
            if name == 'sampler' and 'offsets' in values:
                values['offsets'] = [tuple(o) for o in values['offsets']]
            kwargs[name] = _build(section_cls, values)
        return cls(**kwargs)

    @classmethod
    def from_file(cls, path) -> "PipelineConfig":
        with open(pathlib.Path(path), 'r', encoding='utf-8') as f:
            return cls.from_dict(json.load(f))

    def to_dict(self) -> dict:
        return asdict(self)
