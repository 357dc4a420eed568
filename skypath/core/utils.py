from __future__ import annotations
import numpy as np
import logging

# Numeric tolerances shared by the geometry routines.
DIRECTION_EPS = 1e-6      # waypoint normals shorter than this are ignored
RAY_T_EPS = 1e-6          # ray hits closer than this are self-intersection noise
RAY_DET_EPS = 1e-12       # Möller–Trumbore parallel ray/triangle
SLAB_EPS = 1e-12          # ray parallel to an AABB slab
INSIDE_EPS = 1e-9         # barycentric weight slack for point-in-tetrahedron
DET_EPS = 1e-18           # degenerate tetrahedron / clip edge parallel to plane
CLIP_EPS = 1e-9           # half-space inside slack for polygon clipping
EXTENT_EPS = 1e-9         # bounding box axis extent treated as flat
SEGMENT_EPS = 1e-9        # path segment treated as a point
GRID_EPS = 1e-9           # keeps the max coordinate inside the last voxel

FALLBACK_DIRECTION = np.array([0.0, -1.0, 0.0])


def get_logger(name: str = "skypath") -> logging.Logger:
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        fmt = logging.Formatter("[%(levelname)s] %(message)s")
        handler.setFormatter(fmt)
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)
    return logger


def normalize(v: np.ndarray, fallback: np.ndarray | None = None, eps: float = 1e-12) -> np.ndarray:
    """Unit vector along ``v``; ``fallback`` (or zeros) when ``v`` is near zero."""
    v = np.asarray(v, dtype=np.float64)
    n = float(np.linalg.norm(v))
    if n < eps:
        if fallback is None:
            return np.zeros(3, dtype=np.float64)
        return np.asarray(fallback, dtype=np.float64).copy()
    return v / n


def triangle_areas(tris: np.ndarray) -> np.ndarray:
    """Half cross-product magnitude for an (F, 3, 3) triangle array."""
    if len(tris) == 0:
        return np.zeros((0,), dtype=np.float64)
    cross = np.cross(tris[:, 1] - tris[:, 0], tris[:, 2] - tris[:, 0])
    return 0.5 * np.linalg.norm(cross, axis=1)
