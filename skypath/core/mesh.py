from __future__ import annotations
import json
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional, Sequence
import numpy as np
from .utils import get_logger, triangle_areas

_log = get_logger()


class MeshData:
    """Immutable flat-buffer triangle mesh.

    ``vertices`` is a flat sequence of x, y, z triples. ``indices`` is an
    optional flat sequence of vertex indices, three per face. Without indices
    the vertex buffer is read as a triangle soup where face ``i`` occupies
    floats ``[9i, 9i + 9)``.

    Faces referencing a missing vertex keep their index slot but are marked
    invalid: they have zero area and are never visible nor voxelised.
    """

    def __init__(
        self,
        vertices: Sequence[float] | np.ndarray,
        indices: Optional[Sequence[int] | np.ndarray] = None,
    ) -> None:
        flat = np.asarray(vertices, dtype=np.float64).ravel()
        n_vertices = len(flat) // 3
        self._points = flat[: n_vertices * 3].reshape(n_vertices, 3)

        idx = None if indices is None else np.asarray(indices, dtype=np.int64).ravel()
        if idx is not None and len(idx) > 0:
            n_faces = len(idx) // 3
            faces = idx[: n_faces * 3].reshape(n_faces, 3)
            valid = np.all((faces >= 0) & (faces < n_vertices), axis=1)
            tris = np.zeros((n_faces, 3, 3), dtype=np.float64)
            if np.any(valid):
                tris[valid] = self._points[faces[valid]]
            skipped = int(n_faces - np.count_nonzero(valid))
            if skipped:
                _log.warning("Skipping %d face(s) with out-of-range vertex indices.", skipped)
            self._faces = faces
            self._indexed = True
        else:
            n_faces = len(flat) // 9
            tris = flat[: n_faces * 9].reshape(n_faces, 3, 3).copy()
            valid = np.ones((n_faces,), dtype=bool)
            self._faces = None
            self._indexed = False

        tris.setflags(write=False)
        valid.setflags(write=False)
        self._points.setflags(write=False)
        self._triangles = tris
        self._valid = valid
        areas = triangle_areas(tris)
        areas[~valid] = 0.0
        areas.setflags(write=False)
        self._areas = areas

    # -- constructors --
    @classmethod
    def from_arrays(cls, vertices: np.ndarray, faces: Optional[np.ndarray] = None) -> "MeshData":
        """Build from an (V, 3) vertex array and optional (F, 3) face array."""
        verts = np.asarray(vertices, dtype=np.float64).reshape(-1)
        if faces is None:
            return cls(verts)
        return cls(verts, np.asarray(faces, dtype=np.int64).reshape(-1))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "MeshData":
        if "vertices" not in data:
            raise ValueError("Mesh data requires a 'vertices' entry.")
        return cls(data["vertices"], data.get("indices"))

    def to_dict(self) -> dict[str, list]:
        data: dict[str, list] = {"vertices": self._points.reshape(-1).tolist()}
        if self._faces is not None:
            data["indices"] = self._faces.reshape(-1).tolist()
        return data

    # -- API --
    @property
    def vertex_count(self) -> int:
        return len(self._points)

    @property
    def face_count(self) -> int:
        return len(self._triangles)

    @property
    def faces(self) -> Optional[np.ndarray]:
        """(F, 3) vertex indices, or ``None`` for a triangle soup."""
        return self._faces

    @property
    def is_indexed(self) -> bool:
        return self._indexed

    @property
    def is_empty(self) -> bool:
        return self.vertex_count == 0

    @property
    def points(self) -> np.ndarray:
        return self._points

    @property
    def triangles(self) -> np.ndarray:
        """(F, 3, 3) array; rows of invalid faces are zero."""
        return self._triangles

    @property
    def valid_faces(self) -> np.ndarray:
        return self._valid

    @property
    def face_areas(self) -> np.ndarray:
        return self._areas

    @property
    def total_area(self) -> float:
        return float(self._areas.sum())

    def area_of(self, faces: Iterable[int]) -> float:
        ids = np.fromiter(faces, dtype=np.int64)
        if len(ids) == 0:
            return 0.0
        return float(self._areas[ids].sum())

    def bounds(self) -> Optional[tuple[np.ndarray, np.ndarray]]:
        if self.is_empty:
            return None
        return self._points.min(axis=0), self._points.max(axis=0)

    def center(self) -> Optional[np.ndarray]:
        """Mean of all vertices (the viewpoint aim fallback)."""
        if self.is_empty:
            return None
        return self._points.mean(axis=0)


def load_mesh(path: str | Path) -> MeshData:
    """Load a mesh from a flat-buffer ``.json`` file or any trimesh format."""
    path = Path(path)
    if path.suffix.lower() == ".json":
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError("Mesh JSON root must be a mapping with 'vertices'.")
        mesh = MeshData.from_dict(data)
    else:
        import trimesh

        try:
            tm = trimesh.load_mesh(str(path), process=False)
        except Exception as exc:
            raise RuntimeError(f"Unable to read mesh '{path}': {exc}") from exc
        mesh = MeshData.from_arrays(np.asarray(tm.vertices), np.asarray(tm.faces))
    _log.info("Loaded mesh %s: %d vertices, %d faces.", path.name, mesh.vertex_count, mesh.face_count)
    return mesh
