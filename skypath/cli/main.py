from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import List, Optional

import typer

from ..config import EngineConfig
from ..core.coverage import CoverageCalculator
from ..core.mesh import MeshData, load_mesh
from ..core.voxel import CollisionDetector
from ..examples.synthetic import PRESETS, generate_mesh
from ..motion.path import Waypoint, load_path
from ..sdk.run import analyze_from_config

app = typer.Typer(help="SkyPath inspection coverage and collision analysis")
mesh_app = typer.Typer(help="Synthetic mesh helpers")
app.add_typer(mesh_app, name="mesh")

ANALYSES = ("coverage", "incremental", "viewpoints", "collisions")


def _configure_logging(level: str) -> None:
    numeric = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(level=numeric, format="[%(levelname)s] %(message)s")
    logging.getLogger("skypath").setLevel(numeric)


def _load_inputs(mesh: Path, path: Path) -> tuple[MeshData, List[Waypoint]]:
    try:
        waypoints = load_path(path)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--path") from exc
    try:
        mesh_data = load_mesh(mesh)
    except (ValueError, RuntimeError) as exc:
        raise typer.BadParameter(str(exc), param_hint="--mesh") from exc
    return mesh_data, waypoints


def _engine_config(**overrides) -> EngineConfig:
    values = {k: v for k, v in overrides.items() if v is not None}
    try:
        return EngineConfig(**values)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc


def _emit(payload: str, output: Optional[Path]) -> None:
    if output is None:
        typer.echo(payload)
        return
    out = output.resolve()
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_text(payload + "\n", encoding="utf-8")
    typer.echo(f"Wrote {out}")


@app.command("analyze")
def analyze(
    config: Path = typer.Argument(..., exists=True, readable=True, help="Path to YAML configuration file."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Override report path (.json, .yaml, .yml)."),
    analysis: Optional[List[str]] = typer.Option(None, "--analysis", "-a", help="Override analyses to run."),
    workers: Optional[int] = typer.Option(None, "--workers", help="Override coverage worker threads."),
    log_level: str = typer.Option("INFO", "--log-level", help="Logging level (e.g. INFO, DEBUG)."),
) -> None:
    """Run the analyses described by a YAML scenario."""

    _configure_logging(log_level)
    if analysis:
        unknown = sorted(set(analysis) - set(ANALYSES))
        if unknown:
            raise typer.BadParameter(f"Unknown analyses {unknown}; choose from {list(ANALYSES)}.", param_hint="--analysis")
    if output is not None and output.suffix.lower() not in {".json", ".yaml", ".yml"}:
        raise typer.BadParameter(f"Unsupported output extension '{output.suffix}'", param_hint="--output")
    if workers is not None and workers < 1:
        raise typer.BadParameter("workers must be at least 1.", param_hint="--workers")

    result = analyze_from_config(config, output=output, analyses=analysis or None, workers=workers)
    report = result.report
    parts = [f"{report.waypoint_count} waypoints", f"path length {report.path_length:.2f}"]
    if report.coverage is not None:
        parts.append(f"coverage {report.coverage.coverage:.2f}%")
        parts.append(f"overlap {report.coverage.overlap:.2f}%")
    if report.collisions is not None:
        parts.append(f"{report.collisions.collision_count} collisions")
    summary = ", ".join(parts)
    if result.output_path is not None:
        summary += f" → {result.output_path}"
    typer.echo(summary)


@app.command("coverage")
def coverage(
    mesh: Path = typer.Option(..., "--mesh", help="Mesh file (.json flat buffers or any trimesh format).", exists=True, dir_okay=False, readable=True),
    path: Path = typer.Option(..., "--path", help="Path file (.json or .yaml).", exists=True, dir_okay=False, readable=True),
    vfov_deg: Optional[float] = typer.Option(None, "--vfov-deg", help="Vertical field of view in degrees."),
    aspect: Optional[float] = typer.Option(None, "--aspect", help="Image aspect ratio (width / height)."),
    fallback_depth: Optional[float] = typer.Option(None, "--fallback-depth", help="Pyramid depth when the view ray misses."),
    workers: Optional[int] = typer.Option(None, "--workers", help="Worker threads for the coverage pass."),
    incremental: bool = typer.Option(False, "--incremental", help="Also report cumulative coverage per waypoint count."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write JSON here instead of stdout."),
    log_level: str = typer.Option("WARNING", "--log-level", help="Logging level (e.g. INFO, DEBUG)."),
) -> None:
    """Coverage and overlap of a flight path over a mesh."""

    _configure_logging(log_level)
    cfg = _engine_config(vertical_fov_deg=vfov_deg, aspect_ratio=aspect, fallback_depth=fallback_depth, workers=workers)
    mesh_data, waypoints = _load_inputs(mesh, path)
    calculator = CoverageCalculator(mesh_data, cfg=cfg)
    payload = calculator.path_metrics(waypoints).model_dump()
    if incremental:
        payload["incremental"] = calculator.coverage_by_waypoint_count(waypoints)
    _emit(json.dumps(payload, indent=2), output)


@app.command("collisions")
def collisions(
    mesh: Path = typer.Option(..., "--mesh", help="Mesh file (.json flat buffers or any trimesh format).", exists=True, dir_okay=False, readable=True),
    path: Path = typer.Option(..., "--path", help="Path file (.json or .yaml).", exists=True, dir_okay=False, readable=True),
    resolution: int = typer.Option(64, "--resolution", help="Voxel grid cells per axis."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write JSON here instead of stdout."),
    log_level: str = typer.Option("WARNING", "--log-level", help="Logging level (e.g. INFO, DEBUG)."),
) -> None:
    """Waypoints and segments that intersect occupied voxels."""

    if resolution < 1:
        raise typer.BadParameter("resolution must be at least 1.", param_hint="--resolution")
    _configure_logging(log_level)
    mesh_data, waypoints = _load_inputs(mesh, path)
    result = CollisionDetector(mesh_data, resolution=resolution).detect(waypoints)
    _emit(result.model_dump_json(indent=2), output)


@app.command("viewpoint")
def viewpoint(
    mesh: Path = typer.Option(..., "--mesh", help="Mesh file (.json flat buffers or any trimesh format).", exists=True, dir_okay=False, readable=True),
    path: Path = typer.Option(..., "--path", help="Path file (.json or .yaml).", exists=True, dir_okay=False, readable=True),
    index: int = typer.Option(..., "--index", "-i", help="Zero-based waypoint index."),
    vfov_deg: Optional[float] = typer.Option(None, "--vfov-deg", help="Vertical field of view in degrees."),
    aspect: Optional[float] = typer.Option(None, "--aspect", help="Image aspect ratio (width / height)."),
    log_level: str = typer.Option("WARNING", "--log-level", help="Logging level (e.g. INFO, DEBUG)."),
) -> None:
    """Coverage of one waypoint and its overlap with the previous one."""

    _configure_logging(log_level)
    cfg = _engine_config(vertical_fov_deg=vfov_deg, aspect_ratio=aspect)
    mesh_data, waypoints = _load_inputs(mesh, path)
    try:
        metrics = CoverageCalculator(mesh_data, cfg=cfg).viewpoint_metrics(waypoints, index)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--index") from exc
    typer.echo(metrics.model_dump_json(indent=2))


@mesh_app.command("generate")
def mesh_generate(
    output: Path = typer.Argument(..., help="Output mesh path (.json or .ply)."),
    preset: str = typer.Option("building", "--preset", help=f"Synthetic mesh preset ({', '.join(PRESETS)})."),
    size: float = typer.Option(10.0, "--size", help="Scene extent scaling factor."),
) -> None:
    """Generate a synthetic mesh for trying out analyses."""

    out = output.resolve()
    try:
        mesh = generate_mesh(preset=preset, size=size, path=out)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc
    typer.echo(f"Wrote synthetic mesh ({mesh.face_count} faces) to {out}")


def main() -> None:
    app()


if __name__ == "__main__":  # pragma: no cover
    main()
