"""
LeafSmith CLI - Command-line interface for building tileable foliage textures
"""

import json
import logging
import sys
from pathlib import Path

import click
from PIL import Image

from leafsmith import Leafsmith, LayerType
from leafsmith.atlas import is_supported_image, parse_file_name
from leafsmith.config import Settings
from leafsmith.exceptions import AtlasLoadError, ExportError, NoOpacityDataError
from leafsmith.texturing import draw_bounds_overlay, masked_atlas_preview


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _expand(files):
    """Expand directories into their image files, keeping explicit files as given."""
    paths = []
    for item in files:
        path = Path(item)
        if path.is_dir():
            paths.extend(sorted(p for p in path.iterdir() if p.is_file() and is_supported_image(p.name)))
        else:
            paths.append(path)
    return paths


def _session(threshold, min_area, size=None, wrap_size=None) -> Leafsmith:
    return Leafsmith(Settings.from_env(
        threshold=threshold, min_area=min_area, output_size=size, wrap_size=wrap_size
    ))


def _fail(prefix: str, error: Exception, verbose: bool = False) -> None:
    click.secho(f"{prefix}: {error}", fg='red', err=True)
    if verbose:
        import traceback
        traceback.print_exc()
    sys.exit(1)


@click.group()
@click.version_option(package_name='leafsmith')
def cli():
    """
    LeafSmith - Turn foliage atlases into tileable PBR texture sets.

    Examples:
        leafsmith layers textures/
        leafsmith detect textures/ --overlay bounds.png
        leafsmith compose textures/ -o out/ --tileable
    """
    pass


@cli.command()
@click.argument('files', nargs=-1, required=True)
def layers(files):
    """
    List which files are recognized as texture layers.

    Examples:
        leafsmith layers LeafSet024_Color.jpg LeafSet024_Opacity.jpg
    """
    recognized = 0
    for path in _expand(files):
        base, layer_type = parse_file_name(path.name)
        if layer_type is None or not is_supported_image(path.name):
            click.echo(f"  -            {path.name}")
            continue
        recognized += 1
        click.echo(f"  {layer_type.value:<12} {path.name} (base: {base})")

    if recognized == 0:
        click.secho("No recognized layers", fg='yellow')


@cli.command()
@click.argument('files', nargs=-1, required=True)
@click.option('--threshold', type=int, default=None, help='Opacity threshold 1-255 (default: 128)')
@click.option('--min-area', type=int, default=None, help='Minimum leaf area in pixels (default: 500)')
@click.option('--overlay', default=None, help='Write the atlas with detected bounds drawn on it')
@click.option('--json', 'as_json', is_flag=True, help='Print detected leaves as JSON')
@click.option('--verbose', '-v', is_flag=True, help='Show debug logging')
def detect(files, threshold, min_area, overlay, as_json, verbose):
    """
    Detect leaves in an atlas and print their bounds.

    Examples:
        leafsmith detect textures/ --threshold 100 --min-area 200
        leafsmith detect textures/ --overlay bounds.png --json
    """
    _configure_logging(verbose)
    try:
        ls = _session(threshold, min_area)
        result = ls.load(_expand(files), auto_place=False)

        if as_json:
            click.echo(json.dumps([leaf.model_dump() for leaf in result.leaves], indent=2))
        else:
            click.echo(f"Opacity source: {result.source}")
            click.echo(f"Detected {len(result.leaves)} leaves")
            for leaf in result.leaves:
                click.echo(f"  #{leaf.id}: x={leaf.x} y={leaf.y} w={leaf.width} h={leaf.height} area={leaf.area}")

        if overlay:
            atlas = ls.atlas
            if LayerType.Color in atlas:
                base = masked_atlas_preview(atlas)
            else:
                base = next(iter(atlas.layers.values())).pixels
            Image.fromarray(draw_bounds_overlay(base, result.leaves)).save(overlay)
            if not as_json:
                click.echo(f"Overlay saved to: {overlay}")

    except NoOpacityDataError as e:
        _fail("Error", e)
    except AtlasLoadError as e:
        _fail("Load Error", e)
    except ValueError as e:
        _fail("Error", e)
    except Exception as e:
        _fail("Unexpected error", e, verbose)


@cli.command()
@click.argument('files', nargs=-1, required=True)
@click.option('-o', '--output', required=True, help='Output directory')
@click.option('--threshold', type=int, default=None, help='Opacity threshold 1-255 (default: 128)')
@click.option('--min-area', type=int, default=None, help='Minimum leaf area in pixels (default: 500)')
@click.option('--size', type=int, default=None, help='Output texture size (default: 1024)')
@click.option('--name', default=None, help='Base name for output files (default: <atlas>_tileable)')
@click.option('--tileable/--no-tileable', default=False, help='Blend edges for approximate tiling')
@click.option('--wrap-size', type=int, default=None, help='Edge strip width for --tileable (default: 64)')
@click.option('--verbose', '-v', is_flag=True, help='Show debug logging')
def compose(files, output, threshold, min_area, size, name, tileable, wrap_size, verbose):
    """
    Place every detected leaf in a grid and write all layers.

    Examples:
        leafsmith compose textures/ -o out/
        leafsmith compose textures/ -o out/ --size 2048 --tileable --name hedge
    """
    _configure_logging(verbose)
    try:
        ls = _session(threshold, min_area, size, wrap_size)
        result = ls.load(_expand(files))
        click.echo(f"Placed {len(result.leaves)} leaves from {ls.atlas.base_name}")

        report = ls.export_local(output, base_name=name, tileable=tileable)
        for layer_type, path in report.delivered.items():
            click.echo(f"  {layer_type.value}: {path}")
        for layer_type, reason in report.failed.items():
            click.secho(f"  {layer_type.value}: {reason}", fg='red', err=True)

        if not report.ok:
            sys.exit(1)
        click.secho(f"✓ Success! Wrote {len(report.delivered)} layers to {output}", fg='green')

    except NoOpacityDataError as e:
        _fail("Error", e)
    except AtlasLoadError as e:
        _fail("Load Error", e)
    except ValueError as e:
        _fail("Error", e)
    except Exception as e:
        _fail("Unexpected error", e, verbose)


@cli.command()
@click.argument('files', nargs=-1, required=True)
@click.option('--folder', required=True, help='Destination folder name on the server')
@click.option('--endpoint', default=None, help='Texture save endpoint URL (or LEAFSMITH_REMOTE_ENDPOINT)')
@click.option('--threshold', type=int, default=None, help='Opacity threshold 1-255 (default: 128)')
@click.option('--min-area', type=int, default=None, help='Minimum leaf area in pixels (default: 500)')
@click.option('--size', type=int, default=None, help='Output texture size (default: 1024)')
@click.option('--tileable/--no-tileable', default=False, help='Blend edges for approximate tiling')
@click.option('--wrap-size', type=int, default=None, help='Edge strip width for --tileable (default: 64)')
@click.option('--verbose', '-v', is_flag=True, help='Show debug logging')
def upload(files, folder, endpoint, threshold, min_area, size, tileable, wrap_size, verbose):
    """
    Place every detected leaf and upload all layers to a remote folder.

    Examples:
        leafsmith upload textures/ --folder hedge_tileable --endpoint http://localhost:5173/api/save-texture
    """
    _configure_logging(verbose)
    try:
        ls = _session(threshold, min_area, size, wrap_size)
        ls.load(_expand(files))
        report = ls.export_remote(folder, endpoint=endpoint, tileable=tileable)
        click.secho(f"✓ Saved {len(report.delivered)} textures to sources/{folder.strip()}/", fg='green')

    except ExportError as e:
        _fail("Export Error", e)
    except NoOpacityDataError as e:
        _fail("Error", e)
    except AtlasLoadError as e:
        _fail("Load Error", e)
    except ValueError as e:
        _fail("Error", e)
    except Exception as e:
        _fail("Unexpected error", e, verbose)


def main():
    """Entry point for the CLI"""
    cli()


if __name__ == '__main__':
    main()
