import numpy as np
import pytest

from citycollider.config import SamplerConfig
from citycollider.errors import GridShapeError, SceneError
from citycollider.models import MeshRecord
from citycollider.sampler import MeshHeightSampler, sample_heightfield

from conftest import box_mesh, ground_slab


def test_building_roof_is_ignored(city_meshes):
    result = sample_heightfield(city_meshes, 11, 11)
    h = result.grid.as_2d()
    # Interior samples only; the slab border is an ambiguous ray/edge hit
    np.testing.assert_allclose(h[1:-1, 1:-1], 0.0)
    assert h[5, 5] == pytest.approx(0.0)  # under the tower, not its 30 m roof


def test_grid_shape_and_origin(city_meshes):
    result = MeshHeightSampler(city_meshes).sample(6, 5)
    grid = result.grid
    assert (grid.nx, grid.ny) == (6, 5)
    assert len(grid.heights) == 30
    assert grid.width == pytest.approx(100.0)
    assert grid.depth == pytest.approx(100.0)
    assert grid.origin == pytest.approx((-50.0, -50.0))
    assert result.sentinel == pytest.approx(-1.0)


def test_gap_between_slabs_keeps_sentinel():
    meshes = [ground_slab(-50, -5, -50, 50), ground_slab(5, 50, -50, 50)]
    result = sample_heightfield(meshes, 11, 11)
    h = result.grid.as_2d()
    assert result.sentinel == pytest.approx(-1.0)
    np.testing.assert_allclose(h[1:-1, 5], -1.0)      # x = 0 lies in the gap
    np.testing.assert_allclose(h[1:-1, 4], 0.0)       # x = -10 is on a slab
    assert result.holes >= 9


def test_wall_only_scene_is_all_sentinel():
    wall = box_mesh((0.0, 15.0, 0.0), (20.0, 30.0, 2.0), name="wall")
    result = sample_heightfield([wall], 4, 4)
    assert result.sentinel == pytest.approx(0.0)
    np.testing.assert_allclose(result.grid.heights, 0.0)
    assert result.holes == 16


def test_back_faces_count_when_culling_disabled(city_meshes):
    cfg = SamplerConfig(cull_back_faces=False)
    h = sample_heightfield(city_meshes, 11, 11, config=cfg).grid.as_2d()
    # The slab underside at y = -1 becomes the lowest accepted hit
    np.testing.assert_allclose(h[1:-1, 1:-1], -1.0)


def test_ground_under_flush_building_is_found(city_meshes):
    # Tower underside and slab top are coincident at y = 0
    sampler = MeshHeightSampler(city_meshes, SamplerConfig(offsets=[(0.0, 0.0)]))
    for x, z in [(3.0, 4.0), (-7.0, 2.5), (5.5, -8.0)]:
        assert sampler.sample_column(x, z) == pytest.approx(0.0)


def test_scene_without_upward_faces_is_all_sentinel():
    underside = MeshRecord(name="canopy", group="canopy",
                           vertices=[[0, 0, 0], [1, 0, 0], [0, 0, 1]],
                           faces=[[0, 1, 2]])
    sampler = MeshHeightSampler([underside])
    assert sampler.ground_mesh is None
    result = sampler.sample(3, 3)
    np.testing.assert_allclose(result.grid.heights, 0.0)
    assert result.holes == 9


def test_sample_column(city_meshes):
    sampler = MeshHeightSampler(city_meshes)
    assert sampler.sample_column(3.0, 4.0) == pytest.approx(0.0)
    assert sampler.sample_column(500.0, 500.0) == pytest.approx(-1.0)


def test_progress_callback_reports_every_row(city_meshes):
    calls = []
    sample_heightfield(city_meshes, 4, 3, progress_callback=lambda p, m: calls.append(p))
    assert len(calls) == 3
    assert calls[-1] == pytest.approx(100.0)


def test_rejects_degenerate_grids(city_meshes):
    sampler = MeshHeightSampler(city_meshes)
    with pytest.raises(GridShapeError):
        sampler.sample(1, 10)


def test_rejects_scene_without_horizontal_extent():
    sliver = MeshRecord(name="sliver", group="sliver",
                        vertices=[[0, 0, 0], [0, 1, 0], [0, 0, 1]],
                        faces=[[0, 1, 2]])
    with pytest.raises(SceneError):
        MeshHeightSampler([sliver]).sample(4, 4)


def test_empty_scene_rejected():
    with pytest.raises(SceneError):
        MeshHeightSampler([])
