from __future__ import annotations
from typing import Optional
import numpy as np
from .mesh import MeshData
from .utils import RAY_DET_EPS, RAY_T_EPS, SLAB_EPS, FALLBACK_DIRECTION, normalize


def ray_intersects_aabb(
    origin: np.ndarray,
    direction: np.ndarray,
    box_min: np.ndarray,
    box_max: np.ndarray,
) -> bool:
    """Slab test for the full line ``origin + t * direction``."""
    tmin = -np.inf
    tmax = np.inf
    for axis in range(3):
        o = origin[axis]
        d = direction[axis]
        if abs(d) < SLAB_EPS:
            if o < box_min[axis] or o > box_max[axis]:
                return False
            continue
        t1 = (box_min[axis] - o) / d
        t2 = (box_max[axis] - o) / d
        if t1 > t2:
            t1, t2 = t2, t1
        tmin = max(tmin, t1)
        tmax = min(tmax, t2)
        if tmax < tmin:
            return False
    return True


def ray_triangle_distances(
    origin: np.ndarray,
    direction: np.ndarray,
    tris: np.ndarray,
    epsilon: float = RAY_DET_EPS,
) -> np.ndarray:
    """Möller–Trumbore against every triangle of an (F, 3, 3) array.

    Returns the ray parameter ``t`` per triangle, ``inf`` where the ray misses
    or the hit lies behind the origin.
    """
    n = len(tris)
    out = np.full((n,), np.inf, dtype=np.float64)
    if n == 0:
        return out
    v0 = tris[:, 0]
    edge1 = tris[:, 1] - v0
    edge2 = tris[:, 2] - v0
    pvec = np.cross(direction, edge2)
    det = np.einsum("ij,ij->i", edge1, pvec)
    ok = np.abs(det) >= epsilon
    inv_det = np.zeros_like(det)
    inv_det[ok] = 1.0 / det[ok]
    tvec = origin - v0
    u = np.einsum("ij,ij->i", tvec, pvec) * inv_det
    ok &= (u >= 0.0) & (u <= 1.0)
    qvec = np.cross(tvec, edge1)
    v = (qvec @ direction) * inv_det
    ok &= (v >= 0.0) & (u + v <= 1.0)
    t = np.einsum("ij,ij->i", edge2, qvec) * inv_det
    ok &= t > 0.0
    out[ok] = t[ok]
    return out


class DepthEstimator:
    """Picks a per-viewpoint pyramid depth from the nearest mesh hit along the view axis.

    Falls back to ``fallback_depth`` when the mesh is empty, the ray misses the
    mesh bounds or no triangle is hit beyond ``RAY_T_EPS``.
    """

    def __init__(self, mesh: MeshData, fallback_depth: float = 1000.0) -> None:
        if not fallback_depth > 0:
            raise ValueError("fallback_depth must be positive")
        self.mesh = mesh
        self.fallback_depth = float(fallback_depth)
        self._bounds = mesh.bounds()
        self._tris = mesh.triangles[mesh.valid_faces]

    def nearest_hit(self, origin: np.ndarray, direction: np.ndarray) -> Optional[float]:
        if self._bounds is None or len(self._tris) == 0:
            return None
        o = np.asarray(origin, dtype=np.float64)
        d = normalize(direction, fallback=FALLBACK_DIRECTION)
        if not ray_intersects_aabb(o, d, *self._bounds):
            return None
        t = ray_triangle_distances(o, d, self._tris)
        t = t[np.isfinite(t) & (t > RAY_T_EPS)]
        if len(t) == 0:
            return None
        return float(t.min())

    def estimate(self, origin: np.ndarray, direction: np.ndarray) -> float:
        hit = self.nearest_hit(origin, direction)
        if hit is None or not np.isfinite(hit) or hit <= 0:
            return self.fallback_depth
        return hit
