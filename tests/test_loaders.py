import json
import math

import numpy as np
import pytest

from citycollider import loaders
from citycollider.config import LoaderConfig
from citycollider.physics import RecordingWorld


def _payload(**overrides):
    data = {
        'nx': 3, 'ny': 3, 'width': 20.0, 'depth': 10.0,
        'heights': [float(i) for i in range(9)],
    }
    data.update(overrides)
    return data


def _assert_fallback(world, result):
    assert not result.ok
    assert result.fallback
    (box,) = world.colliders
    assert box['type'] == 'box'
    assert box['center'] == pytest.approx([0.0, -0.5, 0.0])
    assert box['half_extents'] == pytest.approx([100.0, 0.5, 100.0])


class ExplodingWorld(RecordingWorld):
    def create_heightfield(self, *args, **kwargs):
        raise RuntimeError("engine refused")


class BrokenWorld(ExplodingWorld):
    def create_box(self, *args, **kwargs):
        raise RuntimeError("no boxes either")


# ── Heightfield ─────────────────────────────────────────────────────────

def test_valid_heightfield_creates_terrain():
    world = RecordingWorld()
    result = loaders.load_heightfield(world, _payload(origin=[-10.0, -5.0]))
    assert result.ok and not result.fallback
    assert result.corrections == 0
    assert (result.min_height, result.max_height) == (0.0, 8.0)
    (hf,) = world.of_type('heightfield')
    assert (hf['nx'], hf['ny'], hf['width'], hf['depth']) == (3, 3, 20.0, 10.0)
    assert hf['origin'] == (-10.0, -5.0)


def test_length_mismatch_falls_back():
    world = RecordingWorld()
    result = loaders.load_heightfield(world, _payload(heights=[0.0] * 8))
    _assert_fallback(world, result)
    assert "mismatch" in result.reason


@pytest.mark.parametrize("overrides", [
    {'nx': 1, 'heights': [0.0, 0.0, 0.0]},
    {'ny': "3"},
    {'nx': 2.5},
    {'nx': True},
    {'heights': "0,1,2"},
    {'width': 0},
    {'depth': -4.0},
    {'width': "20"},
    {'width': math.inf},
    {'nx': 10 ** 400},
    {'width': 10 ** 400},
    {'nx': 1e300, 'ny': 1e300},
])
def test_invalid_shapes_fall_back(overrides):
    world = RecordingWorld()
    result = loaders.load_heightfield(world, _payload(**overrides))
    _assert_fallback(world, result)


def test_non_object_payload_falls_back(tmp_path):
    path = tmp_path / "hf.json"
    path.write_text("[1, 2, 3]")
    world = RecordingWorld()
    _assert_fallback(world, loaders.load_heightfield(world, path))


def test_missing_file_falls_back(tmp_path):
    world = RecordingWorld()
    result = loaders.load_heightfield(world, tmp_path / "nope.json")
    _assert_fallback(world, result)


def test_invalid_json_falls_back(tmp_path):
    path = tmp_path / "hf.json"
    path.write_text("{not json")
    world = RecordingWorld()
    _assert_fallback(world, loaders.load_heightfield(world, path))


def test_default_paths_point_at_output_dir(tmp_path, monkeypatch):
    monkeypatch.setattr("citycollider.models.OUTPUT_DIR", tmp_path)
    (tmp_path / "city-heightfield.json").write_text(json.dumps(_payload()))
    (tmp_path / "city-building-colliders.json").write_text(
        json.dumps([{'center': [0, 5, 0], 'size': [10, 10, 10]}]))
    world = RecordingWorld()
    assert loaders.load_heightfield(world).ok
    assert loaders.load_building_colliders(world).created == 1


def test_reads_heightfield_file(tmp_path):
    path = tmp_path / "hf.json"
    path.write_text(json.dumps(_payload()))
    world = RecordingWorld()
    assert loaders.load_heightfield(world, path).ok


def test_heights_are_sanitized():
    heights = [math.nan, math.inf, -math.inf, 20000.0, -20000.0, 5.0]
    out, corrections, lo, hi = loaders.sanitize_heights(heights, 10000.0)
    np.testing.assert_array_equal(out, [0, 0, 0, 10000, -10000, 5])
    assert corrections == 5
    assert (lo, hi) == (-10000.0, 10000.0)


def test_sanitized_values_reach_the_engine(caplog):
    heights = [math.nan, 1.0, 2.0, 3.0, 4.0, 50.0]
    world = RecordingWorld()
    result = loaders.load_heightfield(
        world, _payload(nx=3, ny=2, heights=heights),
        config=LoaderConfig(max_abs_height=10.0))
    assert result.ok
    assert result.corrections == 2
    np.testing.assert_array_equal(world.colliders[0]['heights'], [0, 1, 2, 3, 4, 10])
    assert "Sanitized 2" in caplog.text


def test_huge_integer_heights_are_clamped(tmp_path):
    heights = ["1" + "0" * 400, "-" + "1" + "0" * 400] + ["0"] * 7
    path = tmp_path / "hf.json"
    path.write_text('{"nx": 3, "ny": 3, "width": 20, "depth": 10, '
                    f'"heights": [{", ".join(heights)}]}}')
    world = RecordingWorld()
    result = loaders.load_heightfield(world, path)
    assert result.ok
    assert result.corrections == 2
    assert (result.min_height, result.max_height) == (-10000.0, 10000.0)
    assert world.colliders[0]['heights'][:2].tolist() == [10000.0, -10000.0]


def test_huge_width_in_file_falls_back(tmp_path):
    path = tmp_path / "hf.json"
    path.write_text('{"nx": 2, "ny": 2, "depth": 10, "heights": [0, 0, 0, 0], '
                    f'"width": 1{"0" * 400}}}')
    world = RecordingWorld()
    _assert_fallback(world, loaders.load_heightfield(world, path))


def test_unrepresentable_origin_is_ignored():
    world = RecordingWorld()
    result = loaders.load_heightfield(world, _payload(origin=[10 ** 400, 0]))
    assert result.ok
    assert world.colliders[0]['origin'] is None


def test_engine_failure_falls_back():
    world = ExplodingWorld()
    result = loaders.load_heightfield(world, _payload())
    _assert_fallback(world, result)
    assert "engine" in result.reason


def test_fallback_failure_does_not_raise():
    result = loaders.load_heightfield(BrokenWorld(), _payload())
    assert result.fallback
    assert result.collider is None


# ── Buildings ───────────────────────────────────────────────────────────

def test_building_batch_skips_bad_entries():
    entries = [
        {'building': 'building_0', 'type': 'box',
         'center': [0, 5, 0], 'size': [10, 10, 10], 'rotation': [0, 0, 0]},
        {'building': 'building_1', 'type': 'box', 'center': [0, 5], 'size': [10, 10, 10]},
        {'building': 'building_2', 'type': 'box',
         'center': [40, 3, 0], 'size': [6, 6, 6], 'rotation': [0, math.pi / 2, 0]},
    ]
    world = RecordingWorld()
    result = loaders.load_building_colliders(world, entries)
    assert (result.created, result.failed) == (2, 1)
    boxes = world.of_type('box')
    assert boxes[0]['half_extents'] == [5.0, 5.0, 5.0]
    assert boxes[1]['center'] == [40.0, 3.0, 0.0]
    assert boxes[1]['quaternion'] == pytest.approx(
        [0.0, math.sqrt(0.5), 0.0, math.sqrt(0.5)])


def test_zero_size_building_is_rejected_by_world():
    entries = [{'center': [0, 0, 0], 'size': [0, 1, 1]}]
    result = loaders.load_building_colliders(RecordingWorld(), entries)
    assert (result.created, result.failed) == (0, 1)


def test_missing_building_file_creates_nothing(tmp_path):
    result = loaders.load_building_colliders(RecordingWorld(), tmp_path / "none.json")
    assert (result.created, result.failed) == (0, 0)


def test_building_file_must_be_a_list(tmp_path):
    path = tmp_path / "colliders.json"
    path.write_text(json.dumps({'center': [0, 0, 0]}))
    result = loaders.load_building_colliders(RecordingWorld(), path)
    assert result.created == 0


# ── pybullet ────────────────────────────────────────────────────────────

def test_bullet_world_builds_static_bodies():
    pytest.importorskip("pybullet")
    from citycollider.physics import BulletWorld

    world = BulletWorld()
    try:
        hf = loaders.load_heightfield(world, _payload(nx=4, ny=4,
                                                      heights=[0.0] * 16))
        assert hf.ok
        res = loaders.load_building_colliders(
            world, [{'center': [0, 5, 0], 'size': [4, 10, 4]}])
        assert res.created == 1
        assert len(world.bodies) == 2
    finally:
        world.close()
