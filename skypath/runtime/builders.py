from __future__ import annotations

from typing import List, Union

from ..config import ScenarioConfig
from ..core.coverage import CoverageCalculator
from ..core.exporter import JsonReportWriter, YamlReportWriter
from ..core.mesh import MeshData, load_mesh
from ..core.voxel import CollisionDetector
from ..motion.path import Waypoint, load_path


def build_mesh(cfg: ScenarioConfig) -> MeshData:
    return load_mesh(cfg.mesh.path)


def build_path(cfg: ScenarioConfig) -> List[Waypoint]:
    return load_path(cfg.path.path)


def build_coverage(cfg: ScenarioConfig, mesh: MeshData) -> CoverageCalculator:
    return CoverageCalculator(mesh, cfg=cfg.engine)


def build_collision_detector(cfg: ScenarioConfig, mesh: MeshData) -> CollisionDetector:
    return CollisionDetector(mesh, resolution=cfg.engine.voxel_resolution)


def build_writer(cfg: ScenarioConfig) -> Union[JsonReportWriter, YamlReportWriter]:
    out_cfg = cfg.output
    if out_cfg is None:
        raise ValueError("Scenario has no output configuration")
    if out_cfg.format == "json":
        return JsonReportWriter(str(out_cfg.path))
    if out_cfg.format == "yaml":
        return YamlReportWriter(str(out_cfg.path))
    raise ValueError(f"Unsupported output format: {out_cfg.format}")
