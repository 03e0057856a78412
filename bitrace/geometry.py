"""Point arithmetic and small integer helpers shared by the tracer."""

from __future__ import annotations

from dataclasses import dataclass

_WORD_MASK = 0xFFFFFFFF


@dataclass(frozen=True)
class DPoint:
    """A point in the plane with real-valued coordinates."""

    x: float
    y: float


def interval(lam: float, a: DPoint, b: DPoint) -> DPoint:
    """Return the point of segment [a, b] at parameter ``lam`` (0 gives a, 1 gives b)."""
    return DPoint(a.x + lam * (b.x - a.x), a.y + lam * (b.y - a.y))


def mod(a: int, n: int) -> int:
    """Return ``a`` modulo ``n`` in the range [0, n), also for negative ``a``."""
    return a % n


def floordiv(a: int, n: int) -> int:
    """Return the largest integer not greater than a / n, for n > 0."""
    return a // n


def sign(x: float) -> int:
    """Return 1, -1 or 0 according to the sign of ``x``."""
    return (x > 0) - (x < 0)


def lobit(x: int) -> int:
    """Position of the lowest set bit of a 32-bit word, or 32 if it is zero."""
    x &= _WORD_MASK
    if x == 0:
        return 32
    return (x & -x).bit_length() - 1


def hibit(x: int) -> int:
    """One plus the position of the highest set bit of a 32-bit word, or 0."""
    return (x & _WORD_MASK).bit_length()