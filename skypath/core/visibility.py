from __future__ import annotations
from typing import Set
import numpy as np
from .mesh import MeshData
from .pyramid import Pyramid, triangle_intersects_pyramid


class VisibilityClassifier:
    """Classifies mesh faces as visible from a viewpoint's pyramid.

    A face is visible when it intersects the pyramid volume and faces the
    camera: ``dot(face_normal, unit(camera - centroid)) >= facing_tolerance``.
    The intersection test runs in three stages: an AABB broad phase against
    the padded pyramid box, a centroid-in-pyramid fast accept, and exact
    half-space clipping for the remaining candidates.

    Per-face geometry is precomputed once; ``visible_faces`` is read-only and
    safe to call from several threads.
    """

    def __init__(self, mesh: MeshData, facing_tolerance: float = -0.15, bbox_padding: float = 0.5) -> None:
        self.mesh = mesh
        self.facing_tolerance = float(facing_tolerance)
        self.bbox_padding = float(bbox_padding)

        tris = mesh.triangles
        self._tris = tris
        self._tri_min = tris.min(axis=1) if len(tris) else np.zeros((0, 3))
        self._tri_max = tris.max(axis=1) if len(tris) else np.zeros((0, 3))
        self._centroids = tris.mean(axis=1) if len(tris) else np.zeros((0, 3))
        if len(tris):
            normals = np.cross(tris[:, 1] - tris[:, 0], tris[:, 2] - tris[:, 0])
            lens = np.linalg.norm(normals, axis=1)
        else:
            normals = np.zeros((0, 3))
            lens = np.zeros((0,))
        nondegenerate = lens > 0
        self._normals = np.divide(normals, lens[:, None], out=np.zeros_like(normals), where=nondegenerate[:, None])
        self._candidates = mesh.valid_faces & nondegenerate

    def broad_phase(self, pyramid: Pyramid) -> np.ndarray:
        """Indices of faces whose AABB overlaps the padded pyramid AABB."""
        lo, hi = pyramid.bounding_box(self.bbox_padding)
        overlap = np.all(self._tri_max >= lo, axis=1) & np.all(self._tri_min <= hi, axis=1)
        return np.nonzero(self._candidates & overlap)[0]

    def facing(self, faces: np.ndarray, camera_position: np.ndarray) -> np.ndarray:
        view = np.asarray(camera_position, dtype=np.float64) - self._centroids[faces]
        lens = np.linalg.norm(view, axis=1, keepdims=True)
        view = np.divide(view, lens, out=np.zeros_like(view), where=lens > 0)
        dots = np.einsum("ij,ij->i", self._normals[faces], view)
        return dots >= self.facing_tolerance

    def visible_faces(self, pyramid: Pyramid, camera_position: np.ndarray) -> Set[int]:
        if self.mesh.is_empty or len(self._tris) == 0 or pyramid.is_degenerate():
            return set()

        faces = self.broad_phase(pyramid)
        if len(faces) == 0:
            return set()
        faces = faces[self.facing(faces, camera_position)]
        if len(faces) == 0:
            return set()

        inside = pyramid.contains_points(self._centroids[faces])
        visible = {int(i) for i in faces[inside]}

        planes = pyramid.half_spaces()
        for i in faces[~inside]:
            a, b, c = self._tris[i]
            if triangle_intersects_pyramid(a, b, c, planes):
                visible.add(int(i))
        return visible
