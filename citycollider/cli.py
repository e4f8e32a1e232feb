"""Click CLI commands for collision artifact generation and loading."""

import logging
from dataclasses import replace

import click

from .builder import ColliderBuilder, colliders_filename
from .config import GRANULARITIES, PipelineConfig
from .constants import DEFAULT_NX, DEFAULT_NY, HEIGHTFIELD_FILENAME
from .errors import CityColliderError
from . import export
from . import loaders
from .physics import BulletWorld, RecordingWorld

logger = logging.getLogger(__name__)


def _builder(config_path):
    config = PipelineConfig.from_file(config_path) if config_path else PipelineConfig()
    return ColliderBuilder(config)


@click.group()
@click.option('--config', '-c', 'config_path', type=click.Path(exists=True, dir_okay=False),
              default=None, help='JSON file with per-stage settings')
@click.pass_context
def cli(ctx, config_path):
    """Derive heightfield and building colliders from a city scene."""
    ctx.ensure_object(dict)
    ctx.obj['config_path'] = config_path


@cli.command()
@click.argument('scene', type=click.Path(exists=True, dir_okay=False))
@click.option('--output', '-o', default=HEIGHTFIELD_FILENAME, help='Output JSON file path')
@click.option('--nx', default=DEFAULT_NX, show_default=True, help='Samples along X')
@click.option('--ny', default=DEFAULT_NY, show_default=True, help='Samples along Z')
@click.option('--offload/--inline', default=False, help='Refine in a worker process')
@click.pass_context
def heightfield(ctx, scene, output, nx, ny, offload):
    """Sample and refine a ground heightfield from SCENE."""
    try:
        builder = _builder(ctx.obj['config_path'])

        def _progress(pct, msg):
            click.echo(f"[{pct:3.0f}%] {msg}")

        grid = builder.generate_heightfield(scene, nx, ny, offload=offload,
                                            progress_callback=_progress)
        path = export.write_heightfield(grid, output)
        click.echo(f"Exported {grid.nx}x{grid.ny} heightfield "
                   f"({len(grid.lod_levels)} LOD levels): {path}")
    except (CityColliderError, ValueError, OSError) as e:
        logger.error(f"Error generating heightfield: {e}")
        raise click.ClickException(str(e))


@cli.command()
@click.argument('scene', type=click.Path(exists=True, dir_okay=False))
@click.option('--output', '-o', default=None, help='Output JSON file path')
@click.option('--granularity', '-g', type=click.Choice(GRANULARITIES), default=None,
              help='One box per building or one per cell')
@click.option('--cell-size', type=float, default=None, help='Voxel cell size')
@click.pass_context
def colliders(ctx, scene, output, granularity, cell_size):
    """Cluster building meshes in SCENE into box colliders."""
    try:
        builder = _builder(ctx.obj['config_path'])
        if cell_size is not None:
            builder.config.cluster = replace(builder.config.cluster, cell_size=cell_size)
        granularity = granularity or builder.config.cluster.granularity
        descriptors = builder.generate_colliders(scene, granularity)
        path = export.write_colliders(descriptors, output or colliders_filename(granularity))
        click.echo(f"Exported {len(descriptors)} {granularity} box colliders: {path}")
    except (CityColliderError, ValueError, OSError) as e:
        logger.error(f"Error extracting colliders: {e}")
        raise click.ClickException(str(e))


@cli.command()
@click.argument('scene', type=click.Path(exists=True, dir_okay=False))
@click.option('--output-dir', '-d', default=None, help='Directory for both artifacts')
@click.option('--nx', default=DEFAULT_NX, show_default=True)
@click.option('--ny', default=DEFAULT_NY, show_default=True)
@click.option('--offload/--inline', default=False)
@click.pass_context
def generate(ctx, scene, output_dir, nx, ny, offload):
    """Write both the heightfield and the building colliders for SCENE."""
    try:
        builder = _builder(ctx.obj['config_path'])

        def _progress(pct, msg):
            click.echo(f"[{pct:3.0f}%] {msg}")

        summary = builder.generate(scene, output_dir, nx=nx, ny=ny, offload=offload,
                                   progress_callback=_progress)
        click.echo(f"\n{'='*50}")
        click.echo(f"Heightfield: {summary['heightfield_path']}")
        click.echo(f"  {summary['nx']}x{summary['ny']}, "
                   f"height {summary['min_height']:.2f}..{summary['max_height']:.2f}")
        click.echo(f"Colliders:   {summary['colliders_path']}")
        click.echo(f"  {summary['colliders']} boxes ({summary['granularity']})")
        click.echo(f"{'='*50}")
    except (CityColliderError, ValueError, OSError) as e:
        logger.error(f"Error generating artifacts: {e}")
        raise click.ClickException(str(e))


@cli.command()
@click.option('--heightfield', 'heightfield_path', default=None, help='Heightfield JSON')
@click.option('--colliders', 'colliders_path', default=None, help='Building colliders JSON')
@click.option('--bullet/--dry-run', default=False,
              help='Build colliders in a pybullet DIRECT client')
def load(heightfield_path, colliders_path, bullet):
    """Load artifacts into a physics world and report what was created."""
    if bullet:
        world = BulletWorld()
    else:
        world = RecordingWorld()

    try:
        hf = loaders.load_heightfield(world, heightfield_path)
        if hf.fallback:
            click.echo(f"Terrain: fallback flat ground ({hf.reason})")
        else:
            click.echo(f"Terrain: heightfield ok, {hf.corrections} corrections, "
                       f"height {hf.min_height:.2f}..{hf.max_height:.2f}")

        if colliders_path:
            bl = loaders.load_building_colliders(world, colliders_path)
            click.echo(f"Buildings: {bl.created} created, {bl.failed} failed")
    finally:
        if bullet:
            world.close()


if __name__ == '__main__':
    cli()
