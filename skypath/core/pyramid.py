from __future__ import annotations
from dataclasses import dataclass
from typing import List, Optional
import math
import numpy as np
from .utils import CLIP_EPS, DET_EPS, INSIDE_EPS, FALLBACK_DIRECTION, normalize

_WORLD_UP = np.array([0.0, 1.0, 0.0])
_WORLD_UP_ALT = np.array([0.0, 0.0, 1.0])
_UP_PARALLEL_COS = 0.98


def vfov_to_hfov(vfov_deg: float, aspect: float) -> float:
    """Horizontal field of view (degrees) for a vertical FOV and aspect ratio."""
    vfov = math.radians(vfov_deg)
    return math.degrees(2.0 * math.atan(math.tan(vfov / 2.0) * aspect))


@dataclass(frozen=True)
class Plane:
    """Half-space ``dot(normal, p) + offset >= 0``."""
    normal: np.ndarray
    offset: float

    def signed_distance(self, p: np.ndarray) -> np.ndarray | float:
        return np.dot(p, self.normal) + self.offset

    @staticmethod
    def through(p0: np.ndarray, p1: np.ndarray, p2: np.ndarray, interior: np.ndarray) -> "Plane":
        """Plane through three points, flipped so ``interior`` lies inside."""
        n = normalize(np.cross(p1 - p0, p2 - p0))
        d = -float(np.dot(n, p0))
        if float(np.dot(n, interior)) + d < 0:
            n = -n
            d = -d
        return Plane(normal=n, offset=d)


@dataclass(frozen=True)
class Pyramid:
    """Finite 4-sided viewing volume: apex at the camera, rectangular base at depth."""
    apex: np.ndarray      # (3,)
    base: np.ndarray      # (4, 3) corners in rotational order

    def corners(self) -> np.ndarray:
        return np.vstack([self.apex[None, :], self.base])

    def bounding_box(self, padding: float = 0.0) -> tuple[np.ndarray, np.ndarray]:
        pts = self.corners()
        return pts.min(axis=0) - padding, pts.max(axis=0) + padding

    def interior_point(self) -> np.ndarray:
        return self.corners().mean(axis=0)

    def half_spaces(self) -> List[Plane]:
        """Four side planes plus the base cap, all oriented toward the interior."""
        v = self.apex
        b1, b2, b3, b4 = self.base
        interior = self.interior_point()
        return [
            Plane.through(v, b1, b2, interior),
            Plane.through(v, b2, b3, interior),
            Plane.through(v, b3, b4, interior),
            Plane.through(v, b4, b1, interior),
            Plane.through(b1, b2, b3, interior),
        ]

    def is_degenerate(self) -> bool:
        """Zero-volume pyramid (e.g. depth 0): it contains nothing."""
        return any(not np.any(p.normal) for p in self.half_spaces())

    def contains_points(self, points: np.ndarray) -> np.ndarray:
        """Vectorised containment for (N, 3) points via the two-tetrahedron split."""
        v = self.apex
        b1, b2, b3, b4 = self.base
        return points_in_tetrahedron(points, v, b1, b2, b3) | points_in_tetrahedron(points, v, b1, b3, b4)

    def contains_point(self, p: np.ndarray) -> bool:
        return bool(self.contains_points(np.asarray(p, dtype=np.float64).reshape(1, 3))[0])


def build_pyramid(
    position: np.ndarray,
    direction: np.ndarray,
    hfov_deg: float,
    vfov_deg: float,
    depth: float,
    up: Optional[np.ndarray] = None,
) -> Pyramid:
    """Construct the viewing pyramid for a camera at ``position`` looking along ``direction``.

    The base is centred at ``position + direction * depth`` and spans
    ``tan(fov / 2) * depth`` either side. A supplied ``up`` is used as the
    reference vertical unless it is (anti)parallel to ``direction``.
    """
    apex = np.asarray(position, dtype=np.float64)
    d = normalize(direction, fallback=FALLBACK_DIRECTION)

    world_up = _WORLD_UP
    if up is not None:
        candidate = normalize(up)
        if np.any(candidate) and abs(float(np.dot(d, candidate))) <= _UP_PARALLEL_COS:
            world_up = candidate
    if world_up is _WORLD_UP and abs(float(np.dot(d, world_up))) > _UP_PARALLEL_COS:
        world_up = _WORLD_UP_ALT

    right = normalize(np.cross(d, world_up))
    cam_up = normalize(np.cross(right, d))

    half_w = math.tan(math.radians(hfov_deg) / 2.0) * depth
    half_l = math.tan(math.radians(vfov_deg) / 2.0) * depth
    c = apex + d * depth
    rw = right * half_w
    ul = cam_up * half_l
    base = np.array([
        c + rw + ul,
        c - rw + ul,
        c - rw - ul,
        c + rw - ul,
    ])
    return Pyramid(apex=apex, base=base)


def _det3(a: np.ndarray, b: np.ndarray, c: np.ndarray) -> np.ndarray:
    # det([a b c]) = a . (b x c), row-wise for (N, 3) inputs
    return np.einsum("...i,...i->...", a, np.cross(b, c))


def points_in_tetrahedron(
    points: np.ndarray,
    v: np.ndarray,
    a: np.ndarray,
    b: np.ndarray,
    c: np.ndarray,
    eps: float = INSIDE_EPS,
) -> np.ndarray:
    """Barycentric containment test solved with Cramer's rule.

    ``p - v = beta (a - v) + gamma (b - v) + delta (c - v)``, ``alpha = 1 - beta - gamma - delta``.
    A degenerate tetrahedron contains nothing.
    """
    pts = np.atleast_2d(np.asarray(points, dtype=np.float64))
    av, bv, cv = a - v, b - v, c - v
    det_m = float(_det3(av, bv, cv))
    if abs(det_m) < DET_EPS:
        return np.zeros((len(pts),), dtype=bool)
    pv = pts - v
    av_n = np.broadcast_to(av, pv.shape)
    bv_n = np.broadcast_to(bv, pv.shape)
    cv_n = np.broadcast_to(cv, pv.shape)
    beta = _det3(pv, bv_n, cv_n) / det_m
    gamma = _det3(av_n, pv, cv_n) / det_m
    delta = _det3(av_n, bv_n, pv) / det_m
    alpha = 1.0 - beta - gamma - delta
    w = np.stack([alpha, beta, gamma, delta], axis=1)
    return np.all((w >= -eps) & (w <= 1.0 + eps), axis=1)


def clip_polygon(polygon: List[np.ndarray], plane: Plane, eps: float = CLIP_EPS) -> List[np.ndarray]:
    """Sutherland–Hodgman clip of a convex polygon to the inside of ``plane``."""
    if not polygon:
        return []
    out: List[np.ndarray] = []
    n = len(polygon)
    for i in range(n):
        s = polygon[i]
        e = polygon[(i + 1) % n]
        ds = float(plane.signed_distance(s))
        de = float(plane.signed_distance(e))
        s_in = ds >= -eps
        e_in = de >= -eps
        if s_in and e_in:
            out.append(e)
        elif s_in:
            isect = _segment_plane_intersection(s, e, ds, de)
            if isect is not None:
                out.append(isect)
        elif e_in:
            isect = _segment_plane_intersection(s, e, ds, de)
            if isect is not None:
                out.append(isect)
            out.append(e)
    return out


def _segment_plane_intersection(s: np.ndarray, e: np.ndarray, ds: float, de: float) -> Optional[np.ndarray]:
    denom = ds - de
    if abs(denom) < DET_EPS:
        return None
    t = min(1.0, max(0.0, ds / denom))
    return s + (e - s) * t


def triangle_intersects_pyramid(
    a: np.ndarray,
    b: np.ndarray,
    c: np.ndarray,
    planes: List[Plane],
) -> bool:
    """True when clipping the triangle by every half-space leaves a non-empty polygon."""
    poly: List[np.ndarray] = [a, b, c]
    for plane in planes:
        poly = clip_polygon(poly, plane)
        if not poly:
            return False
    return True
