from __future__ import annotations

import numpy as np
import pytest

from skypath.core.pyramid import (
    Plane,
    build_pyramid,
    clip_polygon,
    points_in_tetrahedron,
    triangle_intersects_pyramid,
    vfov_to_hfov,
)


def _down_z_pyramid(depth: float = 1.0):
    return build_pyramid(np.zeros(3), np.array([0.0, 0.0, -1.0]), 90.0, 90.0, depth)


def test_vfov_to_hfov() -> None:
    assert vfov_to_hfov(90.0, 1.0) == pytest.approx(90.0)
    assert vfov_to_hfov(53.1, 16.0 / 9.0) == pytest.approx(83.2, abs=0.2)


def test_build_pyramid_corners() -> None:
    pyr = _down_z_pyramid()
    np.testing.assert_allclose(pyr.apex, [0.0, 0.0, 0.0])
    expected = [
        [1.0, 1.0, -1.0],
        [-1.0, 1.0, -1.0],
        [-1.0, -1.0, -1.0],
        [1.0, -1.0, -1.0],
    ]
    np.testing.assert_allclose(pyr.base, expected, atol=1e-12)


def test_pyramid_contains_points() -> None:
    pyr = _down_z_pyramid(2.0)
    assert pyr.contains_point([0.0, 0.0, -1.0])
    assert pyr.contains_point([0.9, -0.9, -1.0])
    assert not pyr.contains_point([0.0, 0.0, 1.0])
    assert not pyr.contains_point([1.5, 0.0, -1.0])
    assert not pyr.contains_point([0.0, 0.0, -2.5])
    inside = pyr.contains_points(np.array([[0.0, 0.0, -0.5], [3.0, 0.0, -0.5]]))
    assert inside.tolist() == [True, False]


def test_half_spaces_face_interior() -> None:
    pyr = _down_z_pyramid()
    centre = pyr.interior_point()
    for plane in pyr.half_spaces():
        assert float(plane.signed_distance(centre)) > 0.0


def test_vertical_direction_uses_alternate_up() -> None:
    pyr = build_pyramid(np.array([0.0, 10.0, 0.0]), np.array([0.0, -1.0, 0.0]), 60.0, 40.0, 5.0)
    assert np.all(np.isfinite(pyr.base))
    np.testing.assert_allclose(pyr.base[:, 1], 5.0)
    assert not pyr.is_degenerate()


def test_custom_up_vector() -> None:
    pyr = build_pyramid(np.zeros(3), np.array([1.0, 0.0, 0.0]), 90.0, 90.0, 1.0, up=np.array([0.0, 0.0, 1.0]))
    # camera up is +z, so the first two corners sit on the upper edge
    assert pyr.base[0][2] == pytest.approx(1.0)
    assert pyr.base[1][2] == pytest.approx(1.0)
    assert pyr.base[2][2] == pytest.approx(-1.0)


def test_zero_depth_pyramid_is_degenerate() -> None:
    pyr = _down_z_pyramid(0.0)
    assert pyr.is_degenerate()
    assert not pyr.contains_point([0.0, 0.0, 0.0])


def test_degenerate_tetrahedron_contains_nothing() -> None:
    v = np.zeros(3)
    a = np.array([1.0, 0.0, 0.0])
    b = np.array([2.0, 0.0, 0.0])
    c = np.array([3.0, 0.0, 0.0])
    assert not points_in_tetrahedron(np.array([[1.0, 0.0, 0.0]]), v, a, b, c).any()


def test_clip_polygon_to_half_space() -> None:
    plane = Plane(normal=np.array([1.0, 0.0, 0.0]), offset=0.0)  # keeps x >= 0
    square = [np.array(p, dtype=float) for p in ([-1, -1, 0], [1, -1, 0], [1, 1, 0], [-1, 1, 0])]
    clipped = clip_polygon(square, plane)
    xs = [p[0] for p in clipped]
    assert len(clipped) == 4
    assert min(xs) == pytest.approx(0.0)
    assert clip_polygon([np.array(p, dtype=float) for p in ([-3, 0, 0], [-2, 0, 0], [-2, 1, 0])], plane) == []


def test_triangle_spanning_pyramid_intersects() -> None:
    pyr = _down_z_pyramid()
    planes = pyr.half_spaces()
    # all vertices outside, but the triangle cuts straight through the volume
    big = [np.array([-10.0, -10.0, -0.5]), np.array([10.0, -10.0, -0.5]), np.array([0.0, 10.0, -0.5])]
    assert triangle_intersects_pyramid(*big, planes)
    behind = [np.array([-1.0, -1.0, 1.0]), np.array([1.0, -1.0, 1.0]), np.array([0.0, 1.0, 1.0])]
    assert not triangle_intersects_pyramid(*behind, planes)
    beside = [np.array([5.0, 0.0, -0.5]), np.array([6.0, 0.0, -0.5]), np.array([5.5, 1.0, -0.5])]
    assert not triangle_intersects_pyramid(*beside, planes)
