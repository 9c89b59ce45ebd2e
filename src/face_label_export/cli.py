"""CLI interface for face-label-export."""

import asyncio
import json
import logging
import sys
from typing import List, Optional

import click

from . import __version__
from .config import ExportConfig
from .exiftool.client import ExifToolClient
from .exiftool.models import FaceTag, RegionsResult
from .exiftool.session import ExifToolSession

logger = logging.getLogger(__name__)


@click.group()
@click.version_option(version=__version__, prog_name="face-label-export")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--debug", is_flag=True, help="Enable debug mode (also requests extra exiftool fields).")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Configuration file (default: ~/.face-label-export/config.json).",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, debug: bool, config_path: Optional[str]) -> None:
    """face-label-export - label photos with the face regions in their metadata."""
    # Ensure ctx.obj exists
    if ctx.obj is None:
        ctx.obj = {}

    config = ExportConfig.load_from_file(config_path)
    if debug:
        config.verbosity = 5
    elif verbose:
        config.verbosity = max(config.verbosity, 3)

    # Configure logging
    logging.basicConfig(
        level=config.log_level if (debug or verbose) else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    ctx.obj["verbose"] = verbose
    ctx.obj["debug"] = debug
    ctx.obj["config"] = config

    if debug:
        logger.debug("Debug mode enabled")
    elif verbose:
        logger.info("Verbose mode enabled")


def _session_for(config: ExportConfig) -> ExifToolSession:
    return ExifToolSession(
        exiftool_app=config.exiftool_app,
        config_file=config.exiftool_config_file,
        scratch_dir=config.scratch_dir,
        delete_logs=config.delete_logs,
        response_timeout=config.response_timeout,
    )


async def _query_photos(config: ExportConfig, photos: List[str]) -> Optional[List[RegionsResult]]:
    async with _session_for(config) as session:
        if not session.is_open:
            return None
        client = ExifToolClient(session, verbosity=config.verbosity)
        return [await client.get_face_regions(photo) for photo in photos]


async def _add_region(config: ExportConfig, photo: str, tag: FaceTag, replace: bool) -> bool:
    async with _session_for(config) as session:
        client = ExifToolClient(session, verbosity=config.verbosity)
        return await client.add_face_region(photo, tag, replace=replace)


@cli.command()
@click.argument("photos", nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False))
@click.option("--output-format", type=click.Choice(["text", "json"]), default="text", help="Output format")
@click.pass_context
def faces(ctx: click.Context, photos, output_format: str) -> None:
    """Show the face regions stored in PHOTOS."""
    config: ExportConfig = ctx.obj["config"]
    results = asyncio.run(_query_photos(config, list(photos)))
    if results is None:
        click.echo(f"Error: exiftool could not be started ({config.exiftool_app})", err=True)
        ctx.exit(1)

    if output_format == "json":
        click.echo(json.dumps([result.to_dict() for result in results], indent=2))
    else:
        for result in results:
            click.echo(f"{result.photo_path}: {result.status.value}")
            if result.description:
                click.echo(f"   Description: {result.description}")
            if result.geometry.width:
                click.echo(f"   Size: {result.geometry.width}x{result.geometry.height}")
            for tag in result.tags:
                click.echo(
                    f"   {tag.index}. '{tag.name}' x={tag.x:g} y={tag.y:g} w={tag.w:g} h={tag.h:g} ({tag.unit})"
                )

    if any(not result.ok for result in results):
        ctx.exit(1)


@cli.command("add-face")
@click.argument("photo", type=click.Path(exists=True, dir_okay=False))
@click.option("--name", default="", help="Name of the person in the region.")
@click.option("--x", "x", type=float, required=True, help="Left edge of the region.")
@click.option("--y", "y", type=float, required=True, help="Top edge of the region.")
@click.option("--w", "w", type=float, required=True, help="Width of the region.")
@click.option("--h", "h", type=float, required=True, help="Height of the region.")
@click.option("--unit", default="pixel", help="Unit of the region geometry.")
@click.option("--replace", is_flag=True, help="Replace the existing regions instead of appending.")
@click.pass_context
def add_face(ctx: click.Context, photo, name, x, y, w, h, unit, replace) -> None:
    """Add a face region to PHOTO."""
    if w <= 0 or h <= 0:
        raise click.BadParameter("width and height must be positive", param_hint="--w/--h")
    config: ExportConfig = ctx.obj["config"]
    tag = FaceTag(name=name, x=x, y=y, w=w, h=h, unit=unit)
    if asyncio.run(_add_region(config, photo, tag, replace)):
        click.echo(f"Face region '{name}' written to {photo}")
    else:
        click.echo(f"Error: face region could not be written to {photo}", err=True)
        ctx.exit(1)


@cli.command()
@click.argument("paths", nargs=-1, required=True, type=click.Path(exists=True))
@click.option("--output-dir", type=click.Path(file_okay=False), default=None,
              help="Copy photos here and label the copies (default: label in place).")
@click.option("--recursive/--no-recursive", default=True, help="Scan subdirectories recursively")
@click.option("--crop/--no-crop", default=None, help="Apply the crop stored with each photo.")
@click.option("--outlines/--no-outlines", default=None, help="Draw face region outlines.")
@click.pass_context
def label(ctx: click.Context, paths, output_dir, recursive, crop, outlines) -> None:
    """Burn face labels into the photos in PATHS."""
    from .export.pipeline import FaceLabelExporter
    from .export.scanner import PhotoScanner

    config: ExportConfig = ctx.obj["config"]
    if crop is not None:
        config.crop_image = crop
    if outlines is not None:
        config.draw_face_outlines = outlines

    photos = PhotoScanner(recursive=recursive).collect(paths)
    click.echo(f"Found {len(photos)} photos")
    if not photos:
        click.echo("No photos to label.")
        return

    summary = asyncio.run(FaceLabelExporter(config).run([str(p) for p in photos], output_dir=output_dir))
    if summary.failures:
        click.echo(summary.message(), err=True)
        ctx.exit(1)
    click.echo(summary.message())


@cli.command()
@click.pass_context
def info(ctx: click.Context) -> None:
    """Display package information and the active configuration."""
    import platform
    click.echo(f"face-label-export v{__version__}")
    click.echo(f"Python {platform.python_version()} on {platform.system()} {platform.release()}")
    for key, value in ctx.obj["config"].to_dict().items():
        click.echo(f"  {key}: {value}")


def main() -> None:
    """Entry point for the CLI."""
    try:
        cli(obj={})
    except Exception as e:
        click.echo(f"Fatal error: {e}", err=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
