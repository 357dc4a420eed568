from __future__ import annotations
from typing import Dict, List, Optional
import json
import pathlib

import yaml
from pydantic import BaseModel

from .coverage import CoverageMetrics, ViewpointMetrics
from .voxel import CollisionResult
from .utils import get_logger

_log = get_logger()


class AnalysisReport(BaseModel):
    """Everything one analysis run produced; sections not requested stay ``None``."""

    mesh: str
    path: str
    waypoint_count: int
    face_count: int
    total_area: float
    path_length: float
    coverage: Optional[CoverageMetrics] = None
    incremental: Optional[Dict[int, float]] = None
    viewpoints: Optional[List[ViewpointMetrics]] = None
    collisions: Optional[CollisionResult] = None


class JsonReportWriter:
    def __init__(self, path: str, indent: int = 2) -> None:
        self.path = path
        self.indent = indent

    def write(self, report: AnalysisReport) -> None:
        path = pathlib.Path(self.path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            f.write(report.model_dump_json(indent=self.indent))
            f.write("\n")
        _log.info("Wrote JSON report to %s", path)


class YamlReportWriter:
    def __init__(self, path: str) -> None:
        self.path = path

    def write(self, report: AnalysisReport) -> None:
        path = pathlib.Path(self.path)
        path.parent.mkdir(parents=True, exist_ok=True)
        data = report.model_dump(mode="json")
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(data, f, sort_keys=False)
        _log.info("Wrote YAML report to %s", path)


def read_report(path: str | pathlib.Path) -> AnalysisReport:
    path = pathlib.Path(path)
    with open(path, "r", encoding="utf-8") as f:
        if path.suffix.lower() == ".json":
            data = json.load(f)
        else:
            data = yaml.safe_load(f)
    return AnalysisReport.model_validate(data)
