import json

import numpy as np
import pytest
import trimesh
from click.testing import CliRunner

from citycollider.builder import ColliderBuilder
from citycollider.cli import cli
from citycollider.constants import (
    COLLIDERS_FILENAME, HEIGHTFIELD_FILENAME, MULTI_BOX_COLLIDERS_FILENAME,
)
from citycollider.scene import load_scene


@pytest.fixture
def city_glb(tmp_path):
    """GLB with a wide ground plane and one grouped tower."""
    scene = trimesh.Scene()
    ground = trimesh.creation.box(extents=(400.0, 1.0, 400.0))
    tower = trimesh.creation.box(extents=(20.0, 30.0, 20.0))
    scene.add_geometry(ground, node_name="ground", geom_name="ground",
                       transform=trimesh.transformations.translation_matrix((0, -0.5, 0)))
    scene.graph.update(frame_to="block_7", frame_from=scene.graph.base_frame)
    scene.add_geometry(tower, node_name="tower", geom_name="tower", parent_node_name="block_7",
                       transform=trimesh.transformations.translation_matrix((40, 15, 40)))
    path = tmp_path / "city.glb"
    scene.export(str(path))
    return path


def test_load_scene_flattens_transforms(city_glb):
    meshes = {m.name: m for m in load_scene(city_glb)}
    assert set(meshes) == {"ground", "tower"}
    tower = meshes["tower"]
    assert tower.group == "block_7"
    np.testing.assert_allclose(tower.bounds.center, [40, 15, 40], atol=1e-4)


def test_load_scene_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_scene(tmp_path / "missing.glb")


def test_generate_writes_both_artifacts(city_glb, tmp_path):
    out = tmp_path / "out"
    summary = ColliderBuilder().generate(city_glb, out, nx=8, ny=8)

    assert summary['nx'] == 8 and summary['lod_levels'] == 3
    assert summary['colliders'] == 1
    hf = json.loads((out / HEIGHTFIELD_FILENAME).read_text())
    assert len(hf['heights']) == 64
    assert hf['origin'] == pytest.approx([-200.0, -200.0])

    (collider,) = json.loads((out / COLLIDERS_FILENAME).read_text())
    assert collider['building'] == "building_0"
    assert collider['size'] == pytest.approx([20.0, 30.0, 20.0], abs=1e-4)
    assert collider['center'] == pytest.approx([40.0, 15.0, 40.0], abs=1e-4)


def test_offloaded_refinement_matches_inline(city_meshes):
    builder = ColliderBuilder()
    inline = builder.generate_heightfield(city_meshes, 6, 6)
    offloaded = builder.generate_heightfield(city_meshes, 6, 6, offload=True)
    np.testing.assert_allclose(offloaded.heights, inline.heights)
    assert offloaded.origin == inline.origin
    assert [l.nx for l in offloaded.lod_levels] == [l.nx for l in inline.lod_levels]


def test_cli_generate_then_load(city_glb, tmp_path):
    out = tmp_path / "out"
    runner = CliRunner()
    result = runner.invoke(cli, ['generate', str(city_glb), '-d', str(out),
                                 '--nx', '8', '--ny', '8'])
    assert result.exit_code == 0, result.output
    assert "1 boxes (building)" in result.output

    result = runner.invoke(cli, ['load',
                                 '--heightfield', str(out / HEIGHTFIELD_FILENAME),
                                 '--colliders', str(out / COLLIDERS_FILENAME)])
    assert result.exit_code == 0, result.output
    assert "Terrain: heightfield ok" in result.output
    assert "Buildings: 1 created, 0 failed" in result.output


def test_cli_load_falls_back_on_missing_heightfield(tmp_path):
    result = CliRunner().invoke(cli, ['load', '--heightfield', str(tmp_path / "none.json")])
    assert result.exit_code == 0, result.output
    assert "fallback flat ground" in result.output


def test_cli_colliders_cell_granularity(city_glb, tmp_path):
    runner = CliRunner()
    with runner.isolated_filesystem(temp_dir=tmp_path):
        result = runner.invoke(cli, ['colliders', str(city_glb), '-g', 'cell'])
        assert result.exit_code == 0, result.output
        parts = json.loads(open(MULTI_BOX_COLLIDERS_FILENAME).read())
    assert [p['part'] for p in parts] == [0]


def test_cli_config_file(city_glb, tmp_path):
    cfg = tmp_path / "cfg.json"
    cfg.write_text(json.dumps({'refiner': {'max_lod_levels': 1}}))
    out = tmp_path / "hf.json"
    result = CliRunner().invoke(cli, ['-c', str(cfg), 'heightfield', str(city_glb),
                                      '-o', str(out), '--nx', '4', '--ny', '4'])
    assert result.exit_code == 0, result.output
    assert "(1 LOD levels)" in result.output
    assert len(json.loads(out.read_text())['lodLevels']) == 1


def test_cli_reports_bad_config(city_glb, tmp_path):
    cfg = tmp_path / "cfg.json"
    cfg.write_text(json.dumps({'refiner': {'bogus': 1}}))
    result = CliRunner().invoke(cli, ['-c', str(cfg), 'colliders', str(city_glb)])
    assert result.exit_code != 0
    assert "bogus" in result.output
