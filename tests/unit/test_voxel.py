from __future__ import annotations

import numpy as np
import pytest

from skypath.core.mesh import MeshData
from skypath.core.voxel import CollisionDetector, VoxelGrid
from skypath.examples.synthetic import build_preset
from skypath.motion.path import Waypoint


def _column_grid() -> VoxelGrid:
    """20^3 grid of unit cells; only the cells spanning z in [9, 11] on the x = y = 0 column are occupied."""
    occ = np.zeros((20, 20, 20), dtype=bool)
    occ[10, 10, 9:11] = True
    return VoxelGrid(occ, (-10.5, -10.5, 0.0), (9.5, 9.5, 20.0))


def test_cell_mapping() -> None:
    grid = _column_grid()
    assert grid.cell_of((0.0, 0.0, 9.5)) == (10, 10, 9)
    assert grid.cell_of((9.5, 9.5, 20.0)) == (19, 19, 19)
    assert grid.cell_of((0.0, 0.0, -0.1)) is None
    assert grid.is_occupied((0.0, 0.0, 10.2))
    assert not grid.is_occupied((1.0, 0.0, 10.2))


def test_segment_through_occupied_column() -> None:
    grid = _column_grid()
    assert grid.segment_collides((0.0, 0.0, 0.0), (0.0, 0.0, 20.0))
    assert not grid.segment_collides((0.0, 0.0, 0.0), (0.0, 0.0, 8.5))
    assert not grid.segment_collides((3.0, 0.0, 0.0), (3.0, 0.0, 20.0))


def test_traversal_is_strictly_increasing_without_revisits() -> None:
    grid = _column_grid()
    for start, end in [
        ((0.0, 0.0, 0.0), (0.0, 0.0, 20.0)),
        ((-10.0, -9.7, 0.3), (9.1, 8.8, 19.6)),
        # passes exactly through cell corners
        ((-10.5, -10.5, 0.0), (9.5, 9.5, 20.0)),
        ((9.0, 2.2, 19.0), (-9.0, -4.4, 1.0)),
    ]:
        steps = list(grid.traverse(start, end))
        ts = [t for t, _ in steps]
        cells = [c for _, c in steps]
        assert steps
        assert all(b > a for a, b in zip(ts, ts[1:]))
        assert len(set(cells)) == len(cells)
        for a, b in zip(cells, cells[1:]):
            assert max(abs(i - j) for i, j in zip(a, b)) == 1


def test_axis_aligned_traversal_visits_every_cell() -> None:
    grid = _column_grid()
    cells = [c for _, c in grid.traverse((0.0, 0.0, 0.0), (0.0, 0.0, 20.0))]
    assert cells == [(10, 10, k) for k in range(20)]


def test_segment_outside_grid_visits_nothing() -> None:
    grid = _column_grid()
    assert list(grid.traverse((50.0, 50.0, 50.0), (60.0, 50.0, 50.0))) == []
    assert list(grid.traverse((0.0, 0.0, -5.0), (0.0, 0.0, -1.0))) == []


def test_zero_length_segment_is_a_point() -> None:
    grid = _column_grid()
    assert list(grid.traverse((0.0, 0.0, 10.2), (0.0, 0.0, 10.2))) == [(0.0, (10, 10, 10))]
    assert grid.segment_collides((0.0, 0.0, 10.2), (0.0, 0.0, 10.2))


def test_build_marks_triangle_cells() -> None:
    mesh = build_preset("box", size=10.0)
    grid = VoxelGrid.build(mesh, resolution=16)
    assert grid is not None
    assert grid.occupancy.shape == (16, 16, 16)
    # shell occupied, interior empty
    assert grid.is_occupied((-5.0, 5.0, 0.0))
    assert not grid.is_occupied((0.0, 5.0, 0.0))
    assert grid.occupied_count < 16 ** 3


def test_flat_mesh_gets_unit_extent() -> None:
    mesh = MeshData([0.0, 0.0, 0.0, 4.0, 0.0, 0.0, 0.0, 0.0, 4.0])
    grid = VoxelGrid.build(mesh, resolution=4)
    assert grid is not None
    assert grid.extent[1] == 1.0
    assert grid.is_occupied((0.5, 0.0, 0.5))


def test_detector_reports_points_then_segments() -> None:
    mesh = build_preset("box", size=10.0)
    detector = CollisionDetector(mesh, resolution=16)
    path = [
        Waypoint(-20.0, 5.0, 0.0),
        Waypoint(-5.0, 5.0, 0.0),   # on the -x wall
        Waypoint(-5.0, 30.0, 0.0),
    ]
    result = detector.detect(path)
    assert result.has_collision
    assert result.collision_count == len(result.collisions)
    kinds = [(c.path_index, (c.x, c.y, c.z)) for c in result.collisions]
    assert kinds[0] == (1, (-5.0, 5.0, 0.0))
    segment_reports = kinds[1:]
    assert (1, (-12.5, 5.0, 0.0)) in segment_reports
    assert (2, (-5.0, 17.5, 0.0)) in segment_reports
    for c in result.collisions:
        assert 0.0 <= c.severity <= 1.0


def test_clear_path_has_no_collisions() -> None:
    mesh = build_preset("box", size=10.0)
    detector = CollisionDetector(mesh)
    result = detector.detect([Waypoint(-20.0, 5.0, 0.0), Waypoint(-20.0, 25.0, 0.0), Waypoint(20.0, 25.0, 0.0)])
    assert result.collision_count == 0
    assert not result.has_collision
    assert result.collisions == []


def test_severity_peaks_at_mesh_centre() -> None:
    mesh = build_preset("box", size=10.0)
    detector = CollisionDetector(mesh)
    assert detector.severity(np.array([0.0, 5.0, 0.0])) == pytest.approx(1.0)
    assert detector.severity(np.array([500.0, 5.0, 0.0])) == 0.0


def test_empty_mesh_and_empty_path() -> None:
    empty = CollisionDetector(MeshData([]))
    assert empty.detect([Waypoint(0.0, 0.0, 0.0)]).collision_count == 0
    detector = CollisionDetector(build_preset("box", size=10.0))
    assert detector.detect([]).collision_count == 0


def test_bounding_box_fallback_for_tiny_mesh() -> None:
    # two vertices: no triangle, so no grid
    mesh = MeshData([0.0, 0.0, 0.0, 2.0, 2.0, 2.0])
    detector = CollisionDetector(mesh)
    assert detector.grid is None
    result = detector.detect([Waypoint(1.0, 1.0, 1.0), Waypoint(10.0, 10.0, 10.0)])
    assert [c.path_index for c in result.collisions] == [0, 1]
    far = detector.detect([Waypoint(50.0, 0.0, 0.0), Waypoint(60.0, 0.0, 0.0)])
    assert far.collision_count == 0
