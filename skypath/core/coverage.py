from __future__ import annotations
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
import threading
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Set, Tuple, Union
import numpy as np
from pydantic import BaseModel, Field

from ..config.schema import EngineConfig
from ..motion.path import Viewpoint, Waypoint
from .intersector import DepthEstimator
from .mesh import MeshData
from .pyramid import Pyramid, build_pyramid
from .utils import get_logger
from .visibility import VisibilityClassifier

_log = get_logger()

ViewpointLike = Union[Waypoint, Viewpoint]


class CoverageMetrics(BaseModel):
    """Path coverage: percentages of total mesh area plus the raw areas."""
    coverage: float = 0.0
    overlap: float = 0.0
    covered_area: float = 0.0
    overlap_area: float = 0.0


class ViewpointMetrics(BaseModel):
    """Single-waypoint metrics in percent; ``None`` when not computable."""
    coverage: Optional[float] = None
    overlap_with_previous: Optional[float] = None


class PlaybackHighlight(BaseModel):
    past_faces: List[int] = Field(default_factory=list)
    current_faces: List[int] = Field(default_factory=list)


class CoverageCalculator:
    """Accumulates per-face visibility over a path of viewpoints.

    Each viewpoint runs depth estimation → pyramid construction → visibility
    classification. Face hit counts are merged across the path; faces seen at
    least once make up the covered area, faces seen at least twice the overlap
    area.
    """

    def __init__(self, mesh: MeshData, cfg: Optional[EngineConfig] = None) -> None:
        self.mesh = mesh
        self.cfg = cfg or EngineConfig()
        self.total_area = mesh.total_area
        self._aim = mesh.center()
        self._hfov_deg = self.cfg.hfov_deg
        self._depth = DepthEstimator(mesh, self.cfg.fallback_depth)
        self._classifier = VisibilityClassifier(
            mesh,
            facing_tolerance=self.cfg.facing_tolerance,
            bbox_padding=self.cfg.bbox_padding,
        )

    # -- per viewpoint --
    def computable(self) -> bool:
        return not self.mesh.is_empty and self.total_area > 0

    def viewpoint_for(self, point: ViewpointLike) -> Viewpoint:
        if isinstance(point, Viewpoint):
            return point
        return Viewpoint.from_waypoint(point, aim=self._aim)

    def pyramid_for(self, point: ViewpointLike) -> Pyramid:
        vp = self.viewpoint_for(point)
        depth = self._depth.estimate(vp.position, vp.direction)
        return build_pyramid(vp.position, vp.direction, self._hfov_deg, self.cfg.vertical_fov_deg, depth, up=vp.up)

    def visible_faces_for(self, point: ViewpointLike) -> Set[int]:
        if self.mesh.is_empty:
            return set()
        vp = self.viewpoint_for(point)
        return self._classifier.visible_faces(self.pyramid_for(vp), vp.position)

    # -- aggregation --
    def _percent(self, area: float) -> float:
        if not self.total_area > 0:
            return 0.0
        return max(0.0, min(100.0, area / self.total_area * 100.0))

    @staticmethod
    def accumulate(face_sets: Iterable[Iterable[int]]) -> Counter:
        counts: Counter = Counter()
        for faces in face_sets:
            counts.update(set(faces))
        return counts

    def metrics_from_counts(self, counts: Counter) -> CoverageMetrics:
        if not self.computable():
            return CoverageMetrics()
        covered = self.mesh.area_of(f for f, c in counts.items() if c >= 1)
        overlap = self.mesh.area_of(f for f, c in counts.items() if c >= 2)
        return CoverageMetrics(
            coverage=self._percent(covered),
            overlap=self._percent(overlap),
            covered_area=covered,
            overlap_area=overlap,
        )

    def face_counts(self, path: Sequence[ViewpointLike]) -> Counter:
        """Face → number of viewpoints that see it, optionally computed on a thread pool."""
        counts: Counter = Counter()
        lock = threading.Lock()

        def work(point: ViewpointLike) -> None:
            faces = self.visible_faces_for(point)
            with lock:
                counts.update(faces)

        workers = int(self.cfg.workers)
        if workers > 1 and len(path) > 1:
            with ThreadPoolExecutor(max_workers=workers) as executor:
                list(executor.map(work, path))
        else:
            for point in path:
                work(point)
        return counts

    def path_metrics(self, path: Sequence[ViewpointLike]) -> CoverageMetrics:
        if not path:
            _log.warning("Path is empty; coverage is zero.")
            return CoverageMetrics()
        if not self.computable():
            _log.warning("Mesh is empty or has zero area; coverage is zero.")
            return CoverageMetrics()

        _log.info("Coverage pass: %d viewpoints, %d faces, workers=%d.",
                  len(path), self.mesh.face_count, self.cfg.workers)
        counts = self.face_counts(path)
        metrics = self.metrics_from_counts(counts)
        _log.info("Coverage pass finished: %d faces covered, coverage=%.2f%%, overlap=%.2f%%",
                  len(counts), metrics.coverage, metrics.overlap)
        return metrics

    def iter_cumulative_coverage(self, path: Sequence[ViewpointLike]) -> Iterator[Tuple[int, float]]:
        """Yield ``(k, coverage %)`` for the union of faces seen by the first ``k`` viewpoints.

        The covered set and its area are extended in place, so each step only
        pays for the newly visible faces.
        """
        if not path or not self.computable():
            return
        covered: Set[int] = set()
        covered_area = 0.0
        areas = self.mesh.face_areas
        for k, point in enumerate(path, start=1):
            new = self.visible_faces_for(point) - covered
            if new:
                covered |= new
                covered_area += float(areas[np.fromiter(new, dtype=np.int64)].sum())
            yield k, self._percent(covered_area)

    def coverage_by_waypoint_count(self, path: Sequence[ViewpointLike]) -> Dict[int, float]:
        return dict(self.iter_cumulative_coverage(path))

    def pairwise_overlap(self, a: ViewpointLike, b: ViewpointLike) -> float:
        """Area seen by both viewpoints as a percentage of total mesh area."""
        if not self.computable():
            return 0.0
        shared = self.visible_faces_for(a) & self.visible_faces_for(b)
        return self._percent(self.mesh.area_of(shared))

    def viewpoint_metrics(self, path: Sequence[ViewpointLike], index: int) -> ViewpointMetrics:
        if not path:
            raise ValueError("Path is empty; cannot compute viewpoint metrics")
        if index < 0 or index >= len(path):
            raise ValueError(f"Invalid viewpoint index: {index}")
        if not self.computable():
            return ViewpointMetrics()

        current = self.visible_faces_for(path[index])
        coverage = self._percent(self.mesh.area_of(current))
        overlap = None
        if index > 0:
            previous = self.visible_faces_for(path[index - 1])
            overlap = self._percent(self.mesh.area_of(current & previous))
        return ViewpointMetrics(coverage=coverage, overlap_with_previous=overlap)

    def playback_highlight(
        self,
        past: Sequence[ViewpointLike],
        current: Optional[ViewpointLike] = None,
    ) -> PlaybackHighlight:
        """Faces already seen along ``past`` and faces seen from ``current``."""
        if self.mesh.is_empty:
            return PlaybackHighlight()
        past_faces: Set[int] = set()
        for point in past:
            past_faces |= self.visible_faces_for(point)
        current_faces = self.visible_faces_for(current) if current is not None else set()
        return PlaybackHighlight(past_faces=sorted(past_faces), current_faces=sorted(current_faces))
