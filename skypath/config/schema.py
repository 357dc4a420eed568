from __future__ import annotations

from pathlib import Path
from typing import Literal, Optional

import yaml
from pydantic import BaseModel, Field, model_validator

from ..core.pyramid import vfov_to_hfov


class EngineConfig(BaseModel):
    """Camera and grid parameters passed explicitly to every engine entry point."""

    vertical_fov_deg: float = Field(53.1, gt=0.0, lt=180.0)
    aspect_ratio: float = Field(16.0 / 9.0, gt=0.0)
    horizontal_fov_deg: Optional[float] = Field(None, gt=0.0, lt=180.0)
    fallback_depth: float = Field(1000.0, gt=0.0)
    voxel_resolution: int = Field(64, ge=1)
    # Admits faces tilted slightly away from the camera (grazing angles).
    facing_tolerance: float = Field(-0.15, ge=-1.0, le=1.0)
    bbox_padding: float = Field(0.5, ge=0.0)
    workers: int = Field(1, ge=1)

    @property
    def hfov_deg(self) -> float:
        if self.horizontal_fov_deg is not None:
            return self.horizontal_fov_deg
        return vfov_to_hfov(self.vertical_fov_deg, self.aspect_ratio)


class MeshConfig(BaseModel):
    path: Path


class PathConfig(BaseModel):
    path: Path


class OutputConfig(BaseModel):
    path: Path
    format: Literal["json", "yaml"] = "json"

    @model_validator(mode="after")
    def _infer_format(self) -> "OutputConfig":
        suffix = self.path.suffix.lower()
        if suffix in (".yaml", ".yml"):
            self.format = "yaml"
        elif suffix == ".json":
            self.format = "json"
        return self


AnalysisName = Literal["coverage", "incremental", "viewpoints", "collisions"]


class ScenarioConfig(BaseModel):
    mesh: MeshConfig
    path: PathConfig
    engine: EngineConfig = Field(default_factory=EngineConfig)
    analyses: list[AnalysisName] = Field(default_factory=lambda: ["coverage", "collisions"])
    output: Optional[OutputConfig] = None

    @model_validator(mode="after")
    def _ensure_analyses(self) -> "ScenarioConfig":
        if not self.analyses:
            raise ValueError("Scenario requires at least one analysis")
        seen: list[AnalysisName] = []
        for name in self.analyses:
            if name not in seen:
                seen.append(name)
        self.analyses = seen
        return self


def load_config(path: str | Path) -> ScenarioConfig:
    path = Path(path)
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if not isinstance(data, dict):
        raise ValueError("Configuration root must be a mapping.")
    cfg = ScenarioConfig.model_validate(data)
    if not cfg.mesh.path.is_absolute():
        cfg.mesh.path = (path.parent / cfg.mesh.path).resolve()
    if not cfg.path.path.is_absolute():
        cfg.path.path = (path.parent / cfg.path.path).resolve()
    if cfg.output is not None and not cfg.output.path.is_absolute():
        cfg.output.path = (path.parent / cfg.output.path).resolve()
    return cfg
