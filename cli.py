#!/usr/bin/env python3
"""Command-line interface for the live pose overlay."""

import asyncio
import json
from dataclasses import replace
from pathlib import Path
from typing import Optional

import click

from live_pose.config import DEFAULT_CONFIG_PATH, AppConfig, CameraFacing, load_config
from live_pose.errors import ConfigError, FrameSourceError, PermissionDenied


def _apply_overrides(
    config: AppConfig,
    backend: Optional[str] = None,
    model_path: Optional[str] = None,
    facing: Optional[str] = None,
    min_score: Optional[float] = None,
) -> AppConfig:
    """Apply command-line options on top of the file configuration."""
    model = config.model
    if backend:
        model = replace(model, backend=backend)
    if model_path:
        model = replace(model, model_path=model_path)

    camera = config.camera
    if facing:
        camera = replace(camera, facing=CameraFacing(facing))

    render = config.render
    if min_score is not None:
        render = replace(render, min_score=min_score)

    return replace(config, model=model, camera=camera, render=render)


def _setup_logging(ctx: click.Context) -> None:
    from live_pose.utils.logging_config import setup_logging

    cfg: AppConfig = ctx.obj["config"]
    log_level = "DEBUG" if ctx.obj["verbose"] else cfg.logging.level
    setup_logging(level=log_level, log_file=cfg.logging.file)


@click.group()
@click.option(
    "--config",
    "-c",
    default=DEFAULT_CONFIG_PATH,
    help="Path to configuration file",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose logging",
)
@click.pass_context
def cli(ctx: click.Context, config: str, verbose: bool) -> None:
    """Live Pose Overlay.

    Estimate a single person's pose on a camera feed and draw the
    skeleton over the video in real time.
    """
    ctx.ensure_object(dict)

    try:
        cfg = load_config(config)
    except ConfigError as e:
        raise click.ClickException(str(e))

    ctx.obj["config"] = cfg
    ctx.obj["verbose"] = verbose


@cli.command()
@click.option(
    "--backend",
    "-b",
    type=click.Choice(["posenet", "mediapipe"]),
    default=None,
    help="Pose estimation backend",
)
@click.option(
    "--model-path",
    "-m",
    type=click.Path(dir_okay=False),
    default=None,
    help="Path to the model file",
)
@click.option(
    "--facing",
    "-f",
    type=click.Choice(["front", "back"]),
    default=None,
    help="Camera to start with",
)
@click.option(
    "--min-score",
    type=click.FloatRange(0.0, 1.0),
    default=None,
    help="Minimum keypoint score to draw",
)
@click.option(
    "--video",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="Replay a video file instead of the camera",
)
@click.option(
    "--loop-video",
    is_flag=True,
    help="Restart the video when it ends",
)
@click.pass_context
def run(
    ctx: click.Context,
    backend: Optional[str],
    model_path: Optional[str],
    facing: Optional[str],
    min_score: Optional[float],
    video: Optional[str],
    loop_video: bool,
) -> None:
    """Run the live pose overlay."""
    from live_pose.pipeline.session import LiveSession, open_source

    _setup_logging(ctx)
    cfg = _apply_overrides(ctx.obj["config"], backend, model_path, facing, min_score)

    with LiveSession(cfg, source=open_source(cfg, video, loop_video)) as session:
        try:
            session.check_permission()
            click.echo(session.status)
            model = session.model
            click.echo(f"{session.status} ({model.name})")
            stats = asyncio.run(session.run())
        except PermissionDenied:
            click.echo("No access to camera", err=True)
            ctx.exit(1)
        except (ConfigError, FrameSourceError) as e:
            click.echo(f"Error: {e}", err=True)
            ctx.exit(1)

    click.echo(
        f"Processed {stats['iterations']} frames: "
        f"{stats['poses']} poses, "
        f"{stats['conversion_failures']} skipped frames, "
        f"{stats['inference_failures']} failed inferences"
    )


@cli.command()
@click.argument("image_path", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False),
    default=None,
    help="Where to write the overlay image (default: <name>_pose.<ext>)",
)
@click.option(
    "--backend",
    "-b",
    type=click.Choice(["posenet", "mediapipe"]),
    default=None,
    help="Pose estimation backend",
)
@click.option(
    "--model-path",
    "-m",
    type=click.Path(dir_okay=False),
    default=None,
    help="Path to the model file",
)
@click.option(
    "--json",
    "as_json",
    is_flag=True,
    help="Print the pose as JSON",
)
@click.pass_context
def image(
    ctx: click.Context,
    image_path: str,
    output: Optional[str],
    backend: Optional[str],
    model_path: Optional[str],
    as_json: bool,
) -> None:
    """Estimate the pose in a single image."""
    import cv2

    from live_pose.errors import InferenceError
    from live_pose.pipeline.session import LiveSession

    _setup_logging(ctx)
    cfg = _apply_overrides(ctx.obj["config"], backend, model_path)

    frame = cv2.imread(image_path)
    if frame is None:
        click.echo(f"Error: Could not read image {image_path}", err=True)
        ctx.exit(1)

    with LiveSession(cfg) as session:
        try:
            pose = session.estimate_image(frame)
        except (ConfigError, InferenceError) as e:
            click.echo(f"Error: {e}", err=True)
            ctx.exit(1)

        if pose is None:
            click.echo(f"Error: Could not convert image {image_path}", err=True)
            ctx.exit(1)

        session.latest.set(pose)
        overlay = session.overlay()
        rendered = session.compose(frame)

    if output is None:
        src = Path(image_path)
        output = str(src.with_name(f"{src.stem}_pose{src.suffix}"))
    cv2.imwrite(output, rendered)

    if as_json:
        click.echo(json.dumps(pose.to_dict(), indent=2))
    click.echo(
        f"Pose score {pose.score:.2f}: {len(overlay.points)} keypoints, "
        f"{len(overlay.edges)} edges above {cfg.render.min_score}"
    )
    click.echo(f"Wrote {output}")


@cli.command()
@click.pass_context
def info(ctx: click.Context) -> None:
    """Show the resolved configuration."""
    cfg: AppConfig = ctx.obj["config"]
    click.echo(json.dumps(cfg.to_dict(), indent=2))


@cli.command()
@click.pass_context
def version(ctx: click.Context) -> None:
    """Show version information."""
    from live_pose import __version__

    click.echo("Live Pose Overlay")
    click.echo(f"Version: {__version__}")


if __name__ == "__main__":
    cli()
