"""Straight subpaths, optimal polygons and vertex adjustment for closed lattice paths.

A path is a closed sequence of lattice points in which consecutive points
differ by one unit step. The functions here run the first stages of
curve fitting: they find which stretches of the path are straight, choose
the polygon with the fewest and best-fitting edges, and then move each
polygon vertex to the best spot within half a unit of its lattice point.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import NamedTuple

from .geometry import DPoint, floordiv, mod, sign

# Longer than any path; it need not be truly infinite.
INFTY = 10000000


class Sums(NamedTuple):
    """Running sums of coordinates, relative to the path origin."""

    x: float
    y: float
    x2: float
    xy: float
    y2: float


_ZERO_SUMS = Sums(0.0, 0.0, 0.0, 0.0, 0.0)


@dataclass
class PathData:
    """A closed lattice path and what the fitting stages compute for it."""

    pt: list[tuple[int, int]]
    x0: int = 0
    y0: int = 0
    sums: list[Sums] = field(default_factory=list)
    lon: list[int] = field(default_factory=list)
    po: list[int] = field(default_factory=list)
    vertex: list[DPoint] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.pt:
            raise ValueError("a path needs at least one point")
        self.pt = [(int(x), int(y)) for x, y in self.pt]

    def __len__(self) -> int:
        return len(self.pt)

    @property
    def m(self) -> int:
        """Number of vertices of the optimal polygon."""
        return len(self.po)


def _require(path: PathData, attr: str, stage: str) -> None:
    if not getattr(path, attr):
        raise ValueError(f"{stage} must run first")


def _xprod(p1: tuple[int, int], p2: tuple[int, int]) -> int:
    return p1[0] * p2[1] - p1[1] * p2[0]


def _cyclic(a: int, b: int, c: int) -> bool:
    """True if a <= b < c in the cyclic sense."""
    if a <= c:
        return a <= b < c
    return a <= b or b < c


# ---------------------------------------------------------------------------
# preparation


def calc_sums(path: PathData) -> list[Sums]:
    """Fill in the running coordinate sums of ``path`` and return them."""
    x0, y0 = path.pt[0]
    path.x0, path.y0 = x0, y0
    sums = [_ZERO_SUMS]
    for px, py in path.pt:
        x = px - x0
        y = py - y0
        last = sums[-1]
        sums.append(Sums(
            last.x + x,
            last.y + y,
            last.x2 + float(x) * x,
            last.xy + float(x) * y,
            last.y2 + float(y) * y,
        ))
    path.sums = sums
    return sums


def point_slope(path: PathData, i: int, j: int) -> tuple[DPoint, DPoint]:
    """Return the centre and unit direction of the best line through points i..j.

    The centre is relative to the path origin. Indices may lie outside
    [0, n); they are taken cyclically with i < j. The direction is (0, 0)
    when no direction is preferred.
    """
    _require(path, "sums", "calc_sums")
    n = len(path)
    sums = path.sums
    r = 0
    while j >= n:
        j -= n
        r += 1
    while i >= n:
        i -= n
        r -= 1
    while j < 0:
        j += n
        r -= 1
    while i < 0:
        i += n
        r += 1

    hi, lo, full = sums[j + 1], sums[i], sums[n]
    x = hi.x - lo.x + r * full.x
    y = hi.y - lo.y + r * full.y
    x2 = hi.x2 - lo.x2 + r * full.x2
    xy = hi.xy - lo.xy + r * full.xy
    y2 = hi.y2 - lo.y2 + r * full.y2
    k = float(j + 1 - i + r * n)

    ctr = DPoint(x / k, y / k)

    a = (x2 - x * x / k) / k
    b = (xy - x * y / k) / k
    c = (y2 - y * y / k) / k

    lambda2 = (a + c + math.sqrt((a - c) * (a - c) + 4 * b * b)) / 2
    a -= lambda2
    c -= lambda2

    if abs(a) >= abs(c):
        length = math.sqrt(a * a + b * b)
        if length != 0:
            return ctr, DPoint(-b / length, a / length)
    else:
        length = math.sqrt(c * c + b * b)
        if length != 0:
            return ctr, DPoint(-c / length, b / length)
    # The two eigenvalues coincide, which can happen for very short stretches.
    return ctr, DPoint(0.0, 0.0)


# ---------------------------------------------------------------------------
# straight subpaths


def _next_corners(pt: list[tuple[int, int]]) -> list[int]:
    """For each point, the furthest later point reached by a horizontal or vertical run."""
    n = len(pt)
    nc = [0] * n
    k = 0
    for i in reversed(range(n)):
        if pt[i][0] != pt[k][0] and pt[i][1] != pt[k][1]:
            k = i + 1
        nc[i] = k
    return nc


def _pivot(pt: list[tuple[int, int]], nc: list[int], i: int) -> int:
    """Return the furthest k such that all points strictly between i and k lie on a line."""
    n = len(pt)
    ct = [0, 0, 0, 0]
    nxt = pt[mod(i + 1, n)]
    ct[(3 + 3 * (nxt[0] - pt[i][0]) + (nxt[1] - pt[i][1])) // 2] += 1

    constraint0 = (0, 0)
    constraint1 = (0, 0)
    k = nc[i]
    k1 = i
    while True:
        direction = (3 + 3 * sign(pt[k][0] - pt[k1][0]) + sign(pt[k][1] - pt[k1][1])) // 2
        ct[direction] += 1

        # all four directions have occurred: cut the path here
        if all(ct):
            return k1

        cur = (pt[k][0] - pt[i][0], pt[k][1] - pt[i][1])
        if _xprod(constraint0, cur) < 0 or _xprod(constraint1, cur) > 0:
            break

        if abs(cur[0]) > 1 or abs(cur[1]) > 1:
            cx, cy = cur
            off = (
                cx + (1 if cy >= 0 and (cy > 0 or cx < 0) else -1),
                cy + (1 if cx <= 0 and (cx < 0 or cy < 0) else -1),
            )
            if _xprod(constraint0, off) >= 0:
                constraint0 = off
            off = (
                cx + (1 if cy <= 0 and (cy < 0 or cx < 0) else -1),
                cy + (1 if cx >= 0 and (cx > 0 or cy < 0) else -1),
            )
            if _xprod(constraint1, off) <= 0:
                constraint1 = off

        k1 = k
        k = nc[k1]
        if not _cyclic(k, i, k1):
            break

    # k1 was the last corner meeting the constraint and k the first one
    # violating it; find the last point along k1..k that still meets it.
    dk = (sign(pt[k][0] - pt[k1][0]), sign(pt[k][1] - pt[k1][1]))
    cur = (pt[k1][0] - pt[i][0], pt[k1][1] - pt[i][1])
    a = _xprod(constraint0, cur)
    b = _xprod(constraint0, dk)
    c = _xprod(constraint1, cur)
    d = _xprod(constraint1, dk)
    j = INFTY
    if b < 0:
        j = floordiv(a, -b)
    if d > 0:
        j = min(j, floordiv(-c, d))
    return mod(k1 + j, n)


def calc_lon(path: PathData) -> list[int]:
    """Find, for each point, the furthest point reachable by a straight line.

    The result is stored in ``path.lon`` and returned.
    """
    pt = path.pt
    n = len(pt)
    nc = _next_corners(pt)
    pivk = [_pivot(pt, nc, i) for i in range(n)]

    lon = [0] * n
    j = pivk[n - 1]
    lon[n - 1] = j
    for i in range(n - 2, -1, -1):
        if _cyclic(i + 1, pivk[i], j):
            j = pivk[i]
        lon[i] = j

    i = n - 1
    while _cyclic(mod(i + 1, n), j, lon[i]):
        lon[i] = j
        i -= 1

    path.lon = lon
    return lon


# ---------------------------------------------------------------------------
# optimal polygon


def penalty3(path: PathData, i: int, j: int) -> float:
    """Return the penalty of a polygon edge from point i to point j (0 <= i < j <= n)."""
    _require(path, "sums", "calc_sums")
    n = len(path)
    pt = path.pt
    sums = path.sums

    if j >= n:
        j -= n
        full = sums[n]
        x = sums[j + 1].x - sums[i].x + full.x
        y = sums[j + 1].y - sums[i].y + full.y
        x2 = sums[j + 1].x2 - sums[i].x2 + full.x2
        xy = sums[j + 1].xy - sums[i].xy + full.xy
        y2 = sums[j + 1].y2 - sums[i].y2 + full.y2
        k = float(j + 1 - i + n)
    else:
        x = sums[j + 1].x - sums[i].x
        y = sums[j + 1].y - sums[i].y
        x2 = sums[j + 1].x2 - sums[i].x2
        xy = sums[j + 1].xy - sums[i].xy
        y2 = sums[j + 1].y2 - sums[i].y2
        k = float(j + 1 - i)

    px = (pt[i][0] + pt[j][0]) / 2.0 - pt[0][0]
    py = (pt[i][1] + pt[j][1]) / 2.0 - pt[0][1]
    ey = pt[j][0] - pt[i][0]
    ex = -(pt[j][1] - pt[i][1])

    a = (x2 - 2 * x * px) / k + px * px
    b = (xy - x * py - y * px) / k + px * py
    c = (y2 - 2 * y * py) / k + py * py

    s = ex * ex * a + 2 * ex * ey * b + ey * ey * c
    return math.sqrt(s)


def best_polygon(path: PathData) -> list[int]:
    """Choose the optimal polygon through point 0 and return its vertex indices.

    The indices are stored in ``path.po``. Requires :func:`calc_sums` and
    :func:`calc_lon`.
    """
    _require(path, "sums", "calc_sums")
    _require(path, "lon", "calc_lon")
    n = len(path)
    lon = path.lon

    # longest forward segment from each point, without wrapping past n
    clip0 = [0] * n
    for i in range(n):
        c = mod(lon[mod(i - 1, n)] - 1, n)
        if c == i:
            c = mod(i + 1, n)
        clip0[i] = n if c < i else c

    # backwards clipping: j <= clip0[i] iff clip1[j] <= i
    clip1 = [0] * (n + 1)
    j = 1
    for i in range(n):
        while j <= clip0[i]:
            clip1[j] = i
            j += 1

    # seg0[j]: furthest point reached from 0 in j segments
    seg0 = [0] * (n + 1)
    i = 0
    j = 0
    while i < n:
        seg0[j] = i
        i = clip0[i]
        j += 1
    seg0[j] = n
    m = j

    # seg1[j]: earliest point from which n is reached in m - j segments
    seg1 = [0] * (n + 1)
    i = n
    for j in range(m, 0, -1):
        seg1[j] = i
        i = clip1[i]
    seg1[0] = 0

    pen = [0.0] * (n + 1)
    prev = [0] * (n + 1)
    for j in range(1, m + 1):
        for i in range(seg1[j], seg0[j] + 1):
            best = -1.0
            for k in range(seg0[j - 1], clip1[i] - 1, -1):
                thispen = penalty3(path, k, i) + pen[k]
                if best < 0 or thispen < best:
                    prev[i] = k
                    best = thispen
            pen[i] = best

    po = [0] * m
    i = n
    j = m - 1
    while i > 0:
        i = prev[i]
        po[j] = i
        j -= 1

    path.po = po
    return po


# ---------------------------------------------------------------------------
# vertex adjustment


def _quadform(q: list[list[float]], w: DPoint) -> float:
    v = (w.x, w.y, 1.0)
    return sum(v[a] * q[a][b] * v[b] for a in range(3) for b in range(3))


def _line_form(ctr: DPoint, direction: DPoint) -> list[list[float]]:
    """Quadratic form giving the squared distance from the line through ctr along direction."""
    d = direction.x ** 2 + direction.y ** 2
    if d == 0.0:
        return [[0.0] * 3 for _ in range(3)]
    v0 = direction.y
    v1 = -direction.x
    v = (v0, v1, -v1 * ctr.y - v0 * ctr.x)
    return [[v[a] * v[b] / d for b in range(3)] for a in range(3)]


def _minimize(q: list[list[float]], s: DPoint) -> DPoint:
    """Return the unconstrained minimum of ``q``, regularising it in place if singular."""
    while True:
        det = q[0][0] * q[1][1] - q[0][1] * q[1][0]
        if det != 0.0:
            return DPoint(
                (-q[0][2] * q[1][1] + q[1][2] * q[0][1]) / det,
                (q[0][2] * q[1][0] - q[1][2] * q[0][0]) / det,
            )
        # the lines are parallel: add an orthogonal axis through the square's centre
        if q[0][0] > q[1][1]:
            v0, v1 = -q[0][1], q[0][0]
        elif q[1][1]:
            v0, v1 = -q[1][1], q[1][0]
        else:
            v0, v1 = 1.0, 0.0
        d = v0 ** 2 + v1 ** 2
        v = (v0, v1, -v1 * s.y - v0 * s.x)
        for a in range(3):
            for b in range(3):
                q[a][b] += v[a] * v[b] / d


def _boundary_minimum(q: list[list[float]], s: DPoint) -> DPoint:
    """Minimise ``q`` on the boundary of the unit square centred at ``s``."""
    best = _quadform(q, s)
    xmin, ymin = s.x, s.y

    if q[0][0] != 0.0:
        for z in range(2):
            wy = s.y - 0.5 + z
            wx = -(q[0][1] * wy + q[0][2]) / q[0][0]
            cand = _quadform(q, DPoint(wx, wy))
            if abs(wx - s.x) <= 0.5 and cand < best:
                best, xmin, ymin = cand, wx, wy

    if q[1][1] != 0.0:
        for z in range(2):
            wx = s.x - 0.5 + z
            wy = -(q[1][0] * wx + q[1][2]) / q[1][1]
            cand = _quadform(q, DPoint(wx, wy))
            if abs(wy - s.y) <= 0.5 and cand < best:
                best, xmin, ymin = cand, wx, wy

    for l in range(2):
        for k in range(2):
            wx = s.x - 0.5 + l
            wy = s.y - 0.5 + k
            cand = _quadform(q, DPoint(wx, wy))
            if cand < best:
                best, xmin, ymin = cand, wx, wy

    return DPoint(xmin, ymin)


def adjust_vertices(path: PathData) -> list[DPoint]:
    """Place each polygon vertex where the two adjoining edge lines fit best.

    Each vertex stays within half a unit of its lattice point in both
    coordinates. The vertices are stored in ``path.vertex`` and returned.
    Requires :func:`best_polygon`.
    """
    _require(path, "po", "best_polygon")
    po = path.po
    m = len(po)
    n = len(path)
    pt = path.pt
    x0, y0 = path.x0, path.y0

    forms = []
    for i in range(m):
        j = mod(po[mod(i + 1, m)] - po[i], n) + po[i]
        ctr, direction = point_slope(path, po[i], j)
        forms.append(_line_form(ctr, direction))

    vertices = []
    for i in range(m):
        s = DPoint(pt[po[i]][0] - x0, pt[po[i]][1] - y0)
        prev = forms[mod(i - 1, m)]
        q = [[prev[a][b] + forms[i][a][b] for b in range(3)] for a in range(3)]

        w = _minimize(q, s)
        if not (abs(w.x - s.x) <= 0.5 and abs(w.y - s.y) <= 0.5):
            w = _boundary_minimum(q, s)
        vertices.append(DPoint(w.x + x0, w.y + y0))

    path.vertex = vertices
    return vertices