from __future__ import annotations

import json
from pathlib import Path
from typing import Iterable, Tuple

import numpy as np

from ..core.mesh import MeshData

Part = Tuple[np.ndarray, np.ndarray]

PRESETS = ("plane", "box", "building")


def _ground(size: float, divisions: int, y: float = 0.0) -> Part:
    """Square grid in the XZ plane, faces wound so normals point +Y."""
    lin = np.linspace(-size / 2.0, size / 2.0, divisions + 1)
    xv, zv = np.meshgrid(lin, lin, indexing="ij")
    vertices = np.column_stack([xv.ravel(), np.full(xv.size, y), zv.ravel()])

    faces = []
    row = divisions + 1
    for i in range(divisions):
        for j in range(divisions):
            a = i * row + j
            b = a + 1
            c = a + row
            d = c + 1
            faces.append([a, b, d])
            faces.append([a, d, c])
    return vertices, np.asarray(faces, dtype=np.int64)


def _box(center: Tuple[float, float, float], size: Tuple[float, float, float]) -> Part:
    """Closed axis-aligned box with outward-facing triangles."""
    c = np.asarray(center, dtype=np.float64)
    h = np.asarray(size, dtype=np.float64) / 2.0
    signs = np.array([
        [-1, -1, -1], [1, -1, -1], [1, 1, -1], [-1, 1, -1],
        [-1, -1, 1], [1, -1, 1], [1, 1, 1], [-1, 1, 1],
    ], dtype=np.float64)
    vertices = c + signs * h
    faces = np.array([
        [0, 2, 1], [0, 3, 2],  # -z
        [4, 5, 6], [4, 6, 7],  # +z
        [0, 1, 5], [0, 5, 4],  # -y
        [3, 7, 6], [3, 6, 2],  # +y
        [1, 2, 6], [1, 6, 5],  # +x
        [0, 4, 7], [0, 7, 3],  # -x
    ], dtype=np.int64)
    return vertices, faces


def _merge(parts: Iterable[Part]) -> Part:
    vertices = []
    faces = []
    offset = 0
    for verts, tris in parts:
        vertices.append(verts)
        faces.append(tris + offset)
        offset += len(verts)
    return np.vstack(vertices), np.vstack(faces)


def build_preset(preset: str, size: float = 10.0) -> MeshData:
    preset = preset.lower()
    if size <= 0:
        raise ValueError("size must be positive")
    if preset == "plane":
        vertices, faces = _ground(size, divisions=10)
    elif preset == "box":
        vertices, faces = _box((0.0, size / 2.0, 0.0), (size, size, size))
    elif preset == "building":
        vertices, faces = _merge([
            _ground(size * 2.0, divisions=8),
            _box((0.0, size * 0.75, 0.0), (size * 0.6, size * 1.5, size * 0.4)),
            _box((size * 0.55, size * 0.25, 0.0), (size * 0.4, size * 0.5, size * 0.4)),
        ])
    else:
        raise ValueError(f"Unknown synthetic mesh preset '{preset}'.")
    return MeshData.from_arrays(vertices, faces)


def _write_ascii_ply(path: Path, mesh: MeshData) -> None:
    points = mesh.points
    faces = mesh.faces if mesh.faces is not None else np.arange(len(points)).reshape(-1, 3)
    with open(path, "w", encoding="utf-8") as f:
        f.write("ply\n")
        f.write("format ascii 1.0\n")
        f.write(f"element vertex {len(points)}\n")
        f.write("property float x\nproperty float y\nproperty float z\n")
        f.write(f"element face {len(faces)}\n")
        f.write("property list uchar int vertex_indices\n")
        f.write("end_header\n")
        for x, y, z in points:
            f.write(f"{x:.6f} {y:.6f} {z:.6f}\n")
        for tri in faces:
            f.write(f"3 {tri[0]} {tri[1]} {tri[2]}\n")


def generate_mesh(preset: str, size: float, path: Path) -> MeshData:
    """Build a preset mesh and write it as ``.json`` flat buffers or ASCII ``.ply``."""
    mesh = build_preset(preset, size)
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    suffix = path.suffix.lower()
    if suffix == ".json":
        with open(path, "w", encoding="utf-8") as f:
            json.dump(mesh.to_dict(), f)
    elif suffix == ".ply":
        _write_ascii_ply(path, mesh)
    else:
        raise ValueError(f"Unsupported mesh extension '{suffix}' (use .json or .ply)")
    return mesh
