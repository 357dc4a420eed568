from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Mapping, Optional, Sequence

import numpy as np
import yaml

from ..core.utils import DIRECTION_EPS, FALLBACK_DIRECTION, normalize

_COORD_KEYS = {"x", "y", "z"}
_CONTAINER_KEYS = ("points", "path", "coordinates")


@dataclass(frozen=True)
class Waypoint:
    """A path sample: position plus an optional camera normal (view axis)."""

    x: float
    y: float
    z: float
    normal_x: Optional[float] = None
    normal_y: Optional[float] = None
    normal_z: Optional[float] = None
    id: Optional[Any] = None

    @property
    def position(self) -> np.ndarray:
        return np.array([self.x, self.y, self.z], dtype=np.float64)

    @property
    def normal(self) -> Optional[np.ndarray]:
        if self.normal_x is None or self.normal_y is None or self.normal_z is None:
            return None
        return np.array([self.normal_x, self.normal_y, self.normal_z], dtype=np.float64)


@dataclass(frozen=True)
class Viewpoint:
    position: np.ndarray
    direction: np.ndarray   # unit
    up: Optional[np.ndarray] = None

    @staticmethod
    def from_waypoint(waypoint: Waypoint, aim: Optional[np.ndarray] = None) -> "Viewpoint":
        """Use the waypoint normal when usable, otherwise look at ``aim`` (the mesh centre)."""
        position = waypoint.position
        normal = waypoint.normal
        if normal is not None and np.linalg.norm(normal) > DIRECTION_EPS:
            return Viewpoint(position=position, direction=normalize(normal))
        if aim is not None:
            return Viewpoint(position=position, direction=normalize(np.asarray(aim) - position, fallback=FALLBACK_DIRECTION))
        return Viewpoint(position=position, direction=FALLBACK_DIRECTION.copy())


def path_length(path: Sequence[Waypoint]) -> float:
    if len(path) < 2:
        return 0.0
    pts = np.array([[p.x, p.y, p.z] for p in path], dtype=np.float64)
    return float(np.linalg.norm(np.diff(pts, axis=0), axis=1).sum())


def _has_coords(item: Any) -> bool:
    if not isinstance(item, Mapping):
        return False
    src = item.get("position") if isinstance(item.get("position"), Mapping) else item
    return any(str(k).lower() in _COORD_KEYS for k in src.keys())


def _find_points(data: Any) -> List[Any]:
    if isinstance(data, list):
        return data
    if isinstance(data, Mapping):
        for key in _CONTAINER_KEYS:
            if isinstance(data.get(key), list):
                return data[key]
        for value in data.values():
            if isinstance(value, list) and value and _has_coords(value[0]):
                return value
    return []


def _coord(src: Mapping[str, Any], name: str, index: int) -> float:
    for key in (name, name.upper()):
        if src.get(key) is not None:
            return float(src[key])
    raise ValueError(f"Path point {index} is missing coordinate '{name}'.")


def _normal(item: Mapping[str, Any], pos: Mapping[str, Any]) -> tuple[Optional[float], Optional[float], Optional[float]]:
    for src in (item, pos):
        n = src.get("normal")
        if isinstance(n, Mapping):
            return (float(n.get("x", 0.0)), float(n.get("y", 0.0)), float(n.get("z", 0.0)))
    if all(item.get(k) is not None for k in ("normalX", "normalY", "normalZ")):
        return (float(item["normalX"]), float(item["normalY"]), float(item["normalZ"]))
    return (None, None, None)


def parse_path_data(data: Any) -> List[Waypoint]:
    """Normalise a decoded path document into waypoints.

    Accepts a bare list of points, or a mapping that holds the list under
    ``points``, ``path`` or ``coordinates`` (or any list of coordinate-like
    objects). Coordinates may be nested in ``position``; normals come from
    ``normal{x,y,z}`` or ``normalX/normalY/normalZ``.
    """
    points = _find_points(data)
    if not points:
        raise ValueError(
            "Unable to parse path data: expected an array of points with x, y, z coordinates."
        )

    waypoints: List[Waypoint] = []
    for index, item in enumerate(points):
        if not isinstance(item, Mapping):
            raise ValueError(f"Path point {index} must be a mapping, got {type(item).__name__}.")
        pos = item["position"] if isinstance(item.get("position"), Mapping) else item
        nx, ny, nz = _normal(item, pos)
        waypoints.append(
            Waypoint(
                x=_coord(pos, "x", index),
                y=_coord(pos, "y", index),
                z=_coord(pos, "z", index),
                normal_x=nx,
                normal_y=ny,
                normal_z=nz,
                id=item.get("id", index),
            )
        )
    return waypoints


def load_path(path: str | Path) -> List[Waypoint]:
    """Read a JSON or YAML path file."""
    path = Path(path)
    with open(path, "r", encoding="utf-8") as f:
        if path.suffix.lower() == ".json":
            try:
                data = json.load(f)
            except json.JSONDecodeError as exc:
                raise ValueError(f"Invalid JSON in path file '{path}': {exc}") from exc
        else:
            data = yaml.safe_load(f)
    return parse_path_data(data)
