import math

import pytest

from bitrace.polygon import (
    PathData,
    adjust_vertices,
    best_polygon,
    calc_lon,
    calc_sums,
    penalty3,
    point_slope,
)

_STEPS = {"R": (1, 0), "U": (0, 1), "L": (-1, 0), "D": (0, -1)}


def _walk(moves, start=(0, 0)):
    x, y = start
    points = []
    for move in moves:
        points.append((x, y))
        dx, dy = _STEPS[move]
        x, y = x + dx, y + dy
    assert (x, y) == start
    return points


def _rect(w, h, start=(0, 0)):
    return _walk("R" * w + "U" * h + "L" * w + "D" * h, start)


def _l_shape():
    return _walk("RRRRUULLUULLDDDD")


SHAPES = [_rect(20, 10), _rect(5, 3), _rect(2, 2), _l_shape()]


def _prepared(points):
    path = PathData(points)
    calc_sums(path)
    calc_lon(path)
    best_polygon(path)
    adjust_vertices(path)
    return path


def test_empty_path_rejected():
    with pytest.raises(ValueError):
        PathData([])


def test_calc_sums_origin_and_length():
    points = _rect(5, 3, start=(7, 4))
    path = PathData(points)
    sums = calc_sums(path)
    assert (path.x0, path.y0) == (7, 4)
    assert len(sums) == len(points) + 1
    assert tuple(sums[0]) == (0.0, 0.0, 0.0, 0.0, 0.0)


def test_calc_sums_translation_invariant():
    a = PathData(_rect(6, 4))
    b = PathData(_rect(6, 4, start=(10, 20)))
    assert calc_sums(a) == calc_sums(b)


def test_calc_sums_squares_non_decreasing():
    path = PathData(_l_shape())
    sums = calc_sums(path)
    for before, after in zip(sums, sums[1:]):
        assert after.x2 >= before.x2
        assert after.y2 >= before.y2


def test_point_slope_requires_sums():
    with pytest.raises(ValueError):
        point_slope(PathData(_rect(3, 3)), 0, 2)


def test_point_slope_horizontal_edge():
    w = 8
    path = PathData(_rect(w, 3))
    calc_sums(path)
    ctr, direction = point_slope(path, 0, w)
    assert ctr.x == pytest.approx(w / 2)
    assert ctr.y == pytest.approx(0.0)
    assert direction.x == pytest.approx(1.0)
    assert direction.y == pytest.approx(0.0)


def test_point_slope_wraps_around():
    w, h = 6, 4
    path = PathData(_rect(w, h))
    n = len(path)
    calc_sums(path)
    ctr, direction = point_slope(path, n - h, n)
    assert ctr.x == pytest.approx(0.0)
    assert abs(direction.y) == pytest.approx(1.0)
    assert direction.x == pytest.approx(0.0)


def test_point_slope_direction_is_unit_or_zero():
    path = PathData(_l_shape())
    calc_sums(path)
    n = len(path)
    for i in range(n):
        _, direction = point_slope(path, i, i + 3)
        norm = math.hypot(direction.x, direction.y)
        assert norm == pytest.approx(1.0) or norm == 0.0


@pytest.mark.parametrize("points", SHAPES)
def test_calc_lon_in_range_and_ahead(points):
    path = PathData(points)
    lon = calc_lon(path)
    n = len(points)
    assert len(lon) == n
    for i, value in enumerate(lon):
        assert 0 <= value < n
        assert value != i


def test_calc_lon_covers_straight_edge():
    w = 20
    path = PathData(_rect(w, 10))
    lon = calc_lon(path)
    assert lon[0] >= w


def test_penalty3_zero_on_straight_edge():
    w = 10
    path = PathData(_rect(w, 5))
    calc_sums(path)
    assert penalty3(path, 0, w) == pytest.approx(0.0)


def test_penalty3_positive_around_corner():
    w, h = 10, 5
    path = PathData(_rect(w, h))
    calc_sums(path)
    assert penalty3(path, 0, w + h) > 0


def test_penalty3_non_negative_with_wrap():
    path = PathData(_l_shape())
    calc_sums(path)
    n = len(path)
    for i in range(n):
        assert penalty3(path, i, n) >= 0


def test_best_polygon_requires_lon():
    path = PathData(_rect(4, 4))
    calc_sums(path)
    with pytest.raises(ValueError):
        best_polygon(path)


def test_adjust_vertices_requires_polygon():
    path = PathData(_rect(4, 4))
    calc_sums(path)
    calc_lon(path)
    with pytest.raises(ValueError):
        adjust_vertices(path)


@pytest.mark.parametrize("points", SHAPES)
def test_best_polygon_indices(points):
    path = _prepared(points)
    n = len(points)
    assert path.po[0] == 0
    assert path.m == len(path.po)
    assert all(a < b for a, b in zip(path.po, path.po[1:]))
    assert all(0 <= p < n for p in path.po)


def test_large_rectangle_has_four_vertices():
    path = _prepared(_rect(20, 10))
    assert path.m == 4


@pytest.mark.parametrize("points", SHAPES)
def test_vertices_stay_near_lattice_points(points):
    path = _prepared(points)
    assert len(path.vertex) == path.m
    for index, vertex in zip(path.po, path.vertex):
        px, py = points[index]
        assert abs(vertex.x - px) <= 0.5 + 1e-9
        assert abs(vertex.y - py) <= 0.5 + 1e-9


def test_vertices_shift_with_path():
    a = _prepared(_rect(12, 7))
    b = _prepared(_rect(12, 7, start=(30, 40)))
    assert a.po == b.po
    for va, vb in zip(a.vertex, b.vertex):
        assert vb.x - va.x == pytest.approx(30)
        assert vb.y - va.y == pytest.approx(40)