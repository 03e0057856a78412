import pytest

from bitrace.geometry import DPoint
from bitrace.trans import Transform


def _corners(w, h):
    return [DPoint(0, 0), DPoint(w, 0), DPoint(0, h), DPoint(w, h)]


def test_from_rect_is_identity():
    t = Transform.from_rect(10, 20)
    assert t.bb == [10, 20]
    assert t.x == [1.0, 0.0]
    assert t.y == [0.0, 1.0]
    assert t.apply(DPoint(3, 4)) == DPoint(3, 4)


def test_rotate_quarter_turn_swaps_box():
    t = Transform.from_rect(10, 20)
    t.rotate(90)
    assert t.bb == pytest.approx([20, 10])


@pytest.mark.parametrize("alpha", [0, 30, 90, 135, 200, 315])
def test_rotated_corners_stay_in_box(alpha):
    t = Transform.from_rect(7, 3)
    t.rotate(alpha)
    for p in _corners(7, 3):
        q = t.apply(p)
        assert -1e-9 <= q.x <= t.bb[0] + 1e-9
        assert -1e-9 <= q.y <= t.bb[1] + 1e-9


def test_full_turn_restores_mapping():
    t = Transform.from_rect(5, 8)
    for _ in range(4):
        t.rotate(90)
    q = t.apply(DPoint(2, 3))
    assert (q.x, q.y) == pytest.approx((2, 3))
    assert t.bb == pytest.approx([5, 8])


def test_rescale_multiplies_everything():
    t = Transform.from_rect(4, 6)
    t.rescale(2.5)
    assert t.bb == pytest.approx([10, 15])
    assert t.apply(DPoint(1, 2)) == DPoint(2.5, 5)
    assert (t.scalex, t.scaley) == (2.5, 2.5)


def test_scale_to_size_fills_box():
    t = Transform.from_rect(4, 6)
    t.scale_to_size(8, 3)
    assert t.bb == [8, 3]
    q = t.apply(DPoint(4, 6))
    assert (q.x, q.y) == pytest.approx((8, 3))


def test_scale_to_negative_size_mirrors():
    t = Transform.from_rect(4, 6)
    t.scale_to_size(-8, 3)
    assert t.bb[0] == 8
    assert t.apply(DPoint(0, 0)).x == pytest.approx(8)
    assert t.apply(DPoint(4, 0)).x == pytest.approx(0)
    assert t.scalex == pytest.approx(-2)