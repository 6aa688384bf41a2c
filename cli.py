#!/usr/bin/env python3
"""Command-line interface for multi-camera sprint analysis."""

import sys
from pathlib import Path
from typing import List, Optional, Tuple

import click
import yaml

# Add the project root to the path for imports
sys.path.insert(0, str(Path(__file__).parent))


def load_config(config_path: str = "config/config.yaml") -> dict:
    """Load configuration from YAML file."""
    config_file = Path(config_path)
    if config_file.exists():
        with open(config_file) as f:
            return yaml.safe_load(f) or {}
    return {}


def _configure_logging(ctx: click.Context) -> None:
    from sprint_analysis.utils.logging_config import setup_logging_from_config

    setup_logging_from_config(ctx.obj["config"], verbose=ctx.obj["verbose"])


def _parse_floats(value: str) -> List[float]:
    try:
        return [float(v) for v in value.split(",") if v.strip()]
    except ValueError:
        raise click.BadParameter(f"Expected comma-separated numbers, got: {value}")


@click.group()
@click.option(
    "--config",
    "-c",
    default="config/config.yaml",
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
    """Multi-Camera Sprint Analysis System.

    Stitch step data from several fixed cameras into one sprint and
    derive its force-velocity-power profile.
    """
    ctx.ensure_object(dict)

    cfg = load_config(config)
    ctx.obj["config"] = cfg
    ctx.obj["verbose"] = verbose


@cli.command()
@click.argument("run_file", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--steps-csv",
    type=click.Path(dir_okay=False),
    help="Write merged steps to this CSV file",
)
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False),
    help="Write the full result to this JSON file",
)
@click.option(
    "--velocity-model",
    type=click.Choice(["finite_difference", "constant_acceleration"]),
    help="Acceleration model for the F-V-P profile",
)
@click.option(
    "--progress/--no-progress",
    default=True,
    help="Show progress bars",
)
@click.pass_context
def analyze(
    ctx: click.Context,
    run_file: str,
    steps_csv: Optional[str],
    output: Optional[str],
    velocity_model: Optional[str],
    progress: bool,
) -> None:
    """Analyze, merge and profile the run described in RUN_FILE."""
    from sprint_analysis.hfvp.modeler import format_report
    from sprint_analysis.io.run_file import load_run_file, write_json, write_steps_csv
    from sprint_analysis.pipeline.orchestrator import PipelineConfig, RunOrchestrator

    _configure_logging(ctx)

    pipeline_config = PipelineConfig.from_dict(ctx.obj["config"])
    pipeline_config.show_progress = progress
    if velocity_model:
        pipeline_config.hfvp.velocity_model = velocity_model

    definition = load_run_file(run_file)
    click.echo(f"Analyzing run {definition.run.id} ({len(definition.run.segments)} segments)...")

    outcome = RunOrchestrator(pipeline_config).process(definition.run, definition.inputs)

    if output:
        write_json(outcome.to_dict(), output)
        click.echo(f"Results written to {output}")

    if not outcome.ok:
        click.echo(f"Error: run failed ({outcome.error_code}): {outcome.run.error}", err=True)
        ctx.exit(1)

    summary = outcome.merged.summary
    click.echo()
    click.echo("Run Summary:")
    click.echo(f"  Steps: {summary.total_steps} ({summary.real_steps} real, "
               f"{summary.interpolated_steps} interpolated, {summary.duplicate_steps} duplicates)")
    click.echo(f"  Total time: {summary.total_time:.2f} s")
    click.echo(f"  Average speed: {summary.average_speed:.2f} m/s")
    click.echo(f"  Max speed: {summary.max_speed:.2f} m/s")
    click.echo(f"  Stride (mean/median): {summary.mean_stride:.2f} / {summary.median_stride:.2f} m")
    click.echo(f"  Cadence: {summary.mean_cadence:.0f} steps/min")

    if outcome.merged.warnings:
        click.echo(f"  Warnings: {len(outcome.merged.warnings)}")
        for warning in outcome.merged.warnings:
            click.echo(f"    [{warning.type.value}] {warning.message}")

    if steps_csv:
        write_steps_csv(outcome.merged, steps_csv)
        click.echo(f"Steps written to {steps_csv}")

    click.echo()
    if outcome.hfvp is None:
        click.echo("F-V-P profile skipped: no athlete profile")
    elif outcome.hfvp.ok:
        click.echo(format_report(outcome.hfvp.result))
    else:
        click.echo(f"F-V-P profile unavailable ({outcome.hfvp.reason}): {outcome.hfvp.message}")


@cli.command()
@click.option("--x0-near", nargs=2, type=float, required=True, help="Pixel of near cone at x0")
@click.option("--x0-far", nargs=2, type=float, required=True, help="Pixel of far cone at x0")
@click.option("--x1-near", nargs=2, type=float, required=True, help="Pixel of near cone at x1")
@click.option("--x1-far", nargs=2, type=float, required=True, help="Pixel of far cone at x1")
@click.option("--x0", "x0", type=float, required=True, help="Run distance of the first cones (m)")
@click.option("--x1", "x1", type=float, required=True, help="Run distance of the second cones (m)")
@click.option("--lane-width", type=float, help="Lane width (m)")
@click.option(
    "--pixel",
    "-p",
    nargs=2,
    type=float,
    multiple=True,
    help="Pixel to project onto the track (repeatable)",
)
@click.pass_context
def calibrate(
    ctx: click.Context,
    x0_near: Tuple[float, float],
    x0_far: Tuple[float, float],
    x1_near: Tuple[float, float],
    x1_far: Tuple[float, float],
    x0: float,
    x1: float,
    lane_width: Optional[float],
    pixel: Tuple[Tuple[float, float], ...],
) -> None:
    """Solve a segment calibration from four cone clicks."""
    from sprint_analysis.calibration.calibration import DEFAULT_LANE_WIDTH, Calibration, ConeClicks
    from sprint_analysis.errors import CalibrationError

    _configure_logging(ctx)

    if lane_width is None:
        lane_width = ctx.obj["config"].get("calibration", {}).get("lane_width", DEFAULT_LANE_WIDTH)

    clicks = ConeClicks(x0_near=x0_near, x0_far=x0_far, x1_near=x1_near, x1_far=x1_far)
    try:
        calibration = Calibration.from_cone_clicks(clicks, x0=x0, x1=x1, lane_width=lane_width)
    except CalibrationError as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(1)

    click.echo("Homography:")
    for row in calibration.homography.to_list():
        click.echo("  " + "  ".join(f"{v: .6e}" for v in row))
    click.echo(f"Round-trip error: {calibration.round_trip_error():.2e} m")

    for px, py in pixel:
        try:
            wx, wy = calibration.world_position((px, py))
        except CalibrationError as e:
            click.echo(f"  ({px:.1f}, {py:.1f}) -> invalid: {e}")
            continue
        click.echo(f"  ({px:.1f}, {py:.1f}) -> {wx:.3f} m along, {wy:.3f} m across")


@cli.command()
@click.option("--distances", "-d", required=True, help="Comma-separated marker distances (m)")
@click.option("--times", "-t", required=True, help="Comma-separated cumulative times (s)")
@click.option("--mass", "-m", type=float, required=True, help="Body mass (kg)")
@click.option(
    "--regression",
    type=click.Choice(["ols", "huber"]),
    help="Regression method",
)
@click.pass_context
def splits(
    ctx: click.Context,
    distances: str,
    times: str,
    mass: float,
    regression: Optional[str],
) -> None:
    """Force-velocity profile from timing-gate split times."""
    import pandas as pd

    from sprint_analysis.errors import RegressionError
    from sprint_analysis.hfvp.splits import SplitProfileConfig, SplitTimeProfiler

    _configure_logging(ctx)

    config = SplitProfileConfig.from_dict(ctx.obj["config"].get("splits"))
    if regression:
        config.regression = regression

    try:
        profile = SplitTimeProfiler(config).profile(_parse_floats(distances), _parse_floats(times), mass)
    except (ValueError, RegressionError) as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(1)

    table = pd.DataFrame([s.to_dict() for s in profile.sections]).set_index("label")
    click.echo(table[["split_time", "speed", "acceleration", "force", "excluded"]].round(3).to_string())
    click.echo()
    click.echo(f"F0: {profile.f0:.1f} N ({profile.f0_relative:.2f} N/kg)")
    click.echo(f"V0: {profile.v0:.2f} m/s")
    click.echo(f"Pmax: {profile.pmax:.1f} W ({profile.pmax_relative:.2f} W/kg)")
    click.echo(f"Tau: {profile.tau:.3f} s")
    click.echo(f"F-v R2: {profile.fv_r_squared:.3f}")
    click.echo(f"Quality: {profile.level.value}")
    for warning in profile.warnings:
        click.echo(f"  - {warning}")


@cli.command()
@click.option("--run-id", default="run", help="Run identifier")
@click.option("--distance", type=float, required=True, help="Total sprint distance (m)")
@click.option("--segment-length", type=float, required=True, help="Distance covered per camera (m)")
@click.option("--fps", type=float, default=120.0, help="Camera frame rate")
@click.pass_context
def plan(ctx: click.Context, run_id: str, distance: float, segment_length: float, fps: float) -> None:
    """Print a camera segment plan as a run-file skeleton."""
    from sprint_analysis.models import generate_segments

    segments = generate_segments(run_id, distance, segment_length, fps=fps)
    skeleton = {
        "run": {"id": run_id, "total_distance": distance},
        "segments": [
            {
                "id": s.id,
                "index": s.index,
                "start_distance": s.start_distance,
                "end_distance": s.end_distance,
                "fps": s.fps,
            }
            for s in segments
        ],
    }
    click.echo(yaml.safe_dump(skeleton, sort_keys=False))


@cli.command()
@click.pass_context
def version(ctx: click.Context) -> None:
    """Show version information."""
    from sprint_analysis import __version__

    click.echo("Multi-Camera Sprint Analysis System")
    click.echo(f"Version: {__version__}")


if __name__ == "__main__":
    cli()
