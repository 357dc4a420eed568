from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence, Union

from ..config import ScenarioConfig, load_config
from ..config.schema import OutputConfig
from ..core.exporter import AnalysisReport
from ..motion.path import path_length
from ..runtime.builders import (
    build_collision_detector,
    build_coverage,
    build_mesh,
    build_path,
    build_writer,
)

_OUTPUT_EXTENSIONS = {".json", ".yaml", ".yml"}


@dataclass(frozen=True)
class ConfigRunResult:
    """Outcome of an analysis run driven by a configuration file."""

    report: AnalysisReport
    output_path: Optional[Path]
    config: ScenarioConfig


def analyze_from_config(
    config: Union[str, Path, ScenarioConfig],
    *,
    output: Optional[Path] = None,
    analyses: Optional[Sequence[str]] = None,
    workers: Optional[int] = None,
) -> ConfigRunResult:
    """Run the analyses described by a configuration file or object.

    Parameters
    ----------
    config:
        Path to a YAML file or a pre-loaded :class:`~skypath.config.schema.ScenarioConfig`.
    output:
        Optional override for the report file. The extension drives the format
        (``.json``, ``.yaml`` or ``.yml``).
    analyses:
        Optional override for the list of analyses to run.
    workers:
        Optional override for the coverage thread pool size.

    Returns
    -------
    ConfigRunResult
        The report, the path it was written to (``None`` when the scenario has
        no output), and the resolved configuration used for the run.
    """

    cfg = load_config(config) if not isinstance(config, ScenarioConfig) else config.model_copy(deep=True)

    if analyses is not None:
        cfg = ScenarioConfig.model_validate({**cfg.model_dump(), "analyses": list(analyses)})
    if workers is not None:
        cfg.engine = cfg.engine.model_copy(update={"workers": workers})
        if cfg.engine.workers < 1:
            raise ValueError("workers must be at least 1")

    if output is not None:
        out_path = Path(output).resolve()
        ext = out_path.suffix.lower()
        if ext not in _OUTPUT_EXTENSIONS:
            raise ValueError(f"Unsupported output extension '{ext}'")
        cfg.output = OutputConfig(path=out_path)

    mesh = build_mesh(cfg)
    waypoints = build_path(cfg)

    report = AnalysisReport(
        mesh=str(cfg.mesh.path),
        path=str(cfg.path.path),
        waypoint_count=len(waypoints),
        face_count=mesh.face_count,
        total_area=mesh.total_area,
        path_length=path_length(waypoints),
    )

    wants_coverage = {"coverage", "incremental", "viewpoints"} & set(cfg.analyses)
    if wants_coverage:
        calculator = build_coverage(cfg, mesh)
        if "coverage" in cfg.analyses:
            report.coverage = calculator.path_metrics(waypoints)
        if "incremental" in cfg.analyses:
            report.incremental = calculator.coverage_by_waypoint_count(waypoints)
        if "viewpoints" in cfg.analyses:
            report.viewpoints = [calculator.viewpoint_metrics(waypoints, i) for i in range(len(waypoints))]
    if "collisions" in cfg.analyses:
        report.collisions = build_collision_detector(cfg, mesh).detect(waypoints)

    output_path: Optional[Path] = None
    if cfg.output is not None:
        build_writer(cfg).write(report)
        output_path = Path(cfg.output.path)

    return ConfigRunResult(report=report, output_path=output_path, config=cfg)
