from __future__ import annotations
from typing import Iterator, List, Optional, Sequence, Tuple
import numpy as np
from pydantic import BaseModel, Field

from ..motion.path import Waypoint
from .mesh import MeshData
from .utils import EXTENT_EPS, GRID_EPS, SEGMENT_EPS, SLAB_EPS, get_logger

_log = get_logger()

Cell = Tuple[int, int, int]


class CollisionPoint(BaseModel):
    x: float
    y: float
    z: float
    severity: float = Field(ge=0.0, le=1.0)
    path_index: int


class CollisionResult(BaseModel):
    collision_count: int = 0
    has_collision: bool = False
    collisions: List[CollisionPoint] = Field(default_factory=list)


class VoxelGrid:
    """Boolean occupancy grid over an axis-aligned box.

    Built once, read-only afterwards. Axis extents below ``EXTENT_EPS`` are
    replaced by 1 so flat meshes still map onto the grid.
    """

    def __init__(self, occupancy: np.ndarray, box_min: Sequence[float], box_max: Sequence[float]) -> None:
        occ = np.array(occupancy, dtype=bool)
        if occ.ndim != 3:
            raise ValueError("occupancy must be a 3D array")
        occ.setflags(write=False)
        self._occ = occ
        self.shape = np.asarray(occ.shape, dtype=np.int64)
        self.box_min = np.asarray(box_min, dtype=np.float64)
        extent = np.asarray(box_max, dtype=np.float64) - self.box_min
        extent[extent < EXTENT_EPS] = 1.0
        self.extent = extent
        self.box_max = self.box_min + extent
        self.cell_size = extent / self.shape

    @classmethod
    def build(cls, mesh: MeshData, resolution: int = 64) -> Optional["VoxelGrid"]:
        """Conservative rasterisation: every cell overlapped by a triangle's AABB is marked.

        Returns ``None`` when the mesh has too few vertices to form a triangle.
        """
        bounds = mesh.bounds()
        if bounds is None or mesh.vertex_count < 3:
            return None
        if resolution < 1:
            raise ValueError("resolution must be at least 1")
        grid = cls(np.zeros((resolution,) * 3, dtype=bool), bounds[0], bounds[1])

        tris = mesh.triangles[mesh.valid_faces]
        occ = np.zeros((resolution,) * 3, dtype=bool)
        if len(tris):
            lo = grid._clamped_cells(tris.min(axis=1))
            hi = grid._clamped_cells(tris.max(axis=1))
            for (x0, y0, z0), (x1, y1, z1) in zip(lo, hi):
                occ[x0:x1 + 1, y0:y1 + 1, z0:z1 + 1] = True
        built = cls(occ, bounds[0], bounds[1])
        _log.info("Voxel grid %d^3 built from %d triangles: %d occupied cells.",
                  resolution, len(tris), built.occupied_count)
        return built

    # -- cell mapping --
    def _raw_cells(self, points: np.ndarray) -> np.ndarray:
        pts = np.asarray(points, dtype=np.float64)
        return np.floor((pts - self.box_min) / self.extent * (self.shape - GRID_EPS)).astype(np.int64)

    def _clamped_cells(self, points: np.ndarray) -> np.ndarray:
        return np.clip(self._raw_cells(points), 0, self.shape - 1)

    def cell_of(self, point: Sequence[float]) -> Optional[Cell]:
        idx = self._raw_cells(np.asarray(point, dtype=np.float64).reshape(3))
        if np.any(idx < 0) or np.any(idx >= self.shape):
            return None
        return int(idx[0]), int(idx[1]), int(idx[2])

    @property
    def occupancy(self) -> np.ndarray:
        return self._occ

    @property
    def occupied_count(self) -> int:
        return int(np.count_nonzero(self._occ))

    def occupied(self, cell: Cell) -> bool:
        return bool(self._occ[cell])

    def is_occupied(self, point: Sequence[float]) -> bool:
        cell = self.cell_of(point)
        return cell is not None and self.occupied(cell)

    # -- 3D DDA --
    def traverse(self, start: Sequence[float], end: Sequence[float]) -> Iterator[Tuple[float, Cell]]:
        """Yield ``(t, cell)`` for each grid cell the segment passes through (Amanatides & Woo).

        ``t`` is the distance from ``start`` at which the cell is entered and is
        strictly increasing. The segment is first clipped to the grid box.
        Cells crossed exactly at an edge or corner are stepped over together.
        """
        s = np.asarray(start, dtype=np.float64)
        e = np.asarray(end, dtype=np.float64)
        seg = e - s
        length = float(np.linalg.norm(seg))
        if length < SEGMENT_EPS:
            cell = self.cell_of(s)
            if cell is not None:
                yield 0.0, cell
            return

        d = seg / length
        t_enter, t_exit = 0.0, length
        for axis in range(3):
            if abs(d[axis]) < SLAB_EPS:
                if s[axis] < self.box_min[axis] or s[axis] > self.box_max[axis]:
                    return
                continue
            ta = (self.box_min[axis] - s[axis]) / d[axis]
            tb = (self.box_max[axis] - s[axis]) / d[axis]
            if ta > tb:
                ta, tb = tb, ta
            t_enter = max(t_enter, ta)
            t_exit = min(t_exit, tb)
        if t_enter > t_exit:
            return

        p = s + d * t_enter
        idx = np.clip(np.floor((p - self.box_min) / self.cell_size).astype(np.int64), 0, self.shape - 1)
        step = np.zeros(3, dtype=np.int64)
        t_max = np.full(3, np.inf)
        t_delta = np.full(3, np.inf)
        for axis in range(3):
            if abs(d[axis]) < SLAB_EPS:
                continue
            if d[axis] > 0:
                step[axis] = 1
                boundary = self.box_min[axis] + (idx[axis] + 1) * self.cell_size[axis]
            else:
                step[axis] = -1
                boundary = self.box_min[axis] + idx[axis] * self.cell_size[axis]
                if boundary >= p[axis] and idx[axis] > 0:
                    # entering exactly on a lower face: start in the cell below
                    idx[axis] -= 1
                    boundary -= self.cell_size[axis]
            t_max[axis] = t_enter + (boundary - p[axis]) / d[axis]
            t_delta[axis] = self.cell_size[axis] / abs(d[axis])

        t = t_enter
        while True:
            yield t, (int(idx[0]), int(idx[1]), int(idx[2]))
            t_next = float(t_max.min())
            if t_next > t_exit:
                return
            crossing = t_max == t_next
            idx[crossing] += step[crossing]
            t_max[crossing] += t_delta[crossing]
            if np.any(idx < 0) or np.any(idx >= self.shape):
                return
            t = t_next

    def segment_collides(self, start: Sequence[float], end: Sequence[float]) -> bool:
        return any(self.occupied(cell) for _, cell in self.traverse(start, end))


class CollisionDetector:
    """Path obstruction checks against a mesh via a voxel grid.

    Point collisions (waypoints inside occupied cells) are reported first in
    path order, then segment collisions at each segment midpoint. A waypoint
    inside geometry usually yields both kinds. Meshes with fewer than three
    vertices use bounding-box heuristics instead of a grid.
    """

    def __init__(self, mesh: MeshData, resolution: int = 64) -> None:
        self.mesh = mesh
        self.resolution = int(resolution)
        bounds = mesh.bounds()
        self._bounds = bounds
        if bounds is not None:
            self._center = (bounds[0] + bounds[1]) * 0.5
            self._diagonal = float(np.linalg.norm(bounds[1] - bounds[0]))
        else:
            self._center = None
            self._diagonal = 0.0
        self.grid = VoxelGrid.build(mesh, self.resolution) if bounds is not None else None

    def severity(self, point: np.ndarray) -> float:
        dist = float(np.linalg.norm(np.asarray(point) - self._center))
        return 1.0 - min(1.0, dist / max(1.0, self._diagonal))

    def _point(self, p: np.ndarray, index: int) -> CollisionPoint:
        return CollisionPoint(x=float(p[0]), y=float(p[1]), z=float(p[2]),
                              severity=self.severity(p), path_index=index)

    def _in_box(self, p: np.ndarray) -> bool:
        lo, hi = self._bounds
        return bool(np.all(p >= lo) and np.all(p <= hi))

    def _segment_near_box(self, start: np.ndarray, end: np.ndarray) -> bool:
        mid = (start + end) * 0.5
        if self._in_box(start) or self._in_box(end) or self._in_box(mid):
            return True
        size = self._bounds[1] - self._bounds[0]
        return float(np.linalg.norm(mid - self._center)) < float(size.max())

    def point_collides(self, p: np.ndarray) -> bool:
        if self._bounds is None:
            return False
        if self.grid is None:
            return self._in_box(p)
        return self.grid.is_occupied(p)

    def segment_collides(self, start: np.ndarray, end: np.ndarray) -> bool:
        if self._bounds is None:
            return False
        if self.grid is None:
            return self._segment_near_box(start, end)
        return self.grid.segment_collides(start, end)

    def detect(self, path: Sequence[Waypoint]) -> CollisionResult:
        if not path or self._bounds is None:
            return CollisionResult()
        if self.grid is None:
            _log.warning("Mesh has fewer than 3 vertices; using bounding-box collision fallback.")

        positions = [wp.position for wp in path]
        collisions: List[CollisionPoint] = []
        for i, p in enumerate(positions):
            if self.point_collides(p):
                collisions.append(self._point(p, i))
        for i in range(1, len(positions)):
            start, end = positions[i - 1], positions[i]
            if self.segment_collides(start, end):
                collisions.append(self._point((start + end) * 0.5, i))

        _log.info("Collision check: %d waypoints, %d collisions.", len(path), len(collisions))
        return CollisionResult(
            collision_count=len(collisions),
            has_collision=bool(collisions),
            collisions=collisions,
        )
