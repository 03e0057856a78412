"""Smoothing, corner detection and curve optimisation of traced polygons.

These are the final stages of curve fitting. Each polygon vertex becomes
either a sharp corner or the control point of a Bezier segment. Runs of
Bezier segments are then merged into single segments where the result
stays within a tolerance of the original.
"""

from __future__ import annotations

import enum
import math
from dataclasses import dataclass, field
from typing import Iterable, Optional

from .geometry import DPoint, interval, mod, sign
from .params import Params
from .polygon import PathData, adjust_vertices, best_polygon, calc_lon, calc_sums
from .progress import Progress

# cosine of 179 degrees
COS179 = -0.999847695156

_ORIGIN = DPoint(0.0, 0.0)


class Tag(enum.IntEnum):
    """Kind of a curve segment."""

    CURVETO = 1
    CORNER = 2


Segment = tuple[DPoint, DPoint, DPoint]


@dataclass
class Curve:
    """A closed curve made of segments, one per vertex.

    Segment ``i`` ends at ``c[i][2]``. A ``CURVETO`` segment is a Bezier
    curve with control points ``c[i][0]`` and ``c[i][1]``; a ``CORNER``
    segment is two straight lines through ``c[i][1]``.
    """

    vertex: list[DPoint]
    tag: list[Tag] = field(default_factory=list)
    c: list[Segment] = field(default_factory=list)
    alpha: list[float] = field(default_factory=list)
    alpha0: list[float] = field(default_factory=list)
    beta: list[float] = field(default_factory=list)
    alphacurve: bool = False

    def __post_init__(self) -> None:
        self.vertex = list(self.vertex)
        n = len(self.vertex)
        if not self.tag:
            self.tag = [Tag.CORNER] * n
        if not self.c:
            self.c = [(_ORIGIN, _ORIGIN, _ORIGIN)] * n
        if not self.alpha:
            self.alpha = [0.0] * n
        if not self.alpha0:
            self.alpha0 = [0.0] * n
        if not self.beta:
            self.beta = [0.0] * n
        for name in ("tag", "c", "alpha", "alpha0", "beta"):
            if len(getattr(self, name)) != n:
                raise ValueError(f"curve field {name!r} must have {n} entries")

    def __len__(self) -> int:
        return len(self.vertex)


# ---------------------------------------------------------------------------
# auxiliary geometry


def _dpara(p0: DPoint, p1: DPoint, p2: DPoint) -> float:
    """(p1 - p0) x (p2 - p0), the area of the parallelogram."""
    return (p1.x - p0.x) * (p2.y - p0.y) - (p2.x - p0.x) * (p1.y - p0.y)


def _ddenom(p0: DPoint, p2: DPoint) -> float:
    rx = -sign(p2.y - p0.y)
    ry = sign(p2.x - p0.x)
    return ry * (p2.x - p0.x) - rx * (p2.y - p0.y)


def _cprod(p0: DPoint, p1: DPoint, p2: DPoint, p3: DPoint) -> float:
    """(p1 - p0) x (p3 - p2)."""
    return (p1.x - p0.x) * (p3.y - p2.y) - (p3.x - p2.x) * (p1.y - p0.y)


def _iprod(p0: DPoint, p1: DPoint, p2: DPoint) -> float:
    """(p1 - p0) . (p2 - p0)."""
    return (p1.x - p0.x) * (p2.x - p0.x) + (p1.y - p0.y) * (p2.y - p0.y)


def _iprod1(p0: DPoint, p1: DPoint, p2: DPoint, p3: DPoint) -> float:
    """(p1 - p0) . (p3 - p2)."""
    return (p1.x - p0.x) * (p3.x - p2.x) + (p1.y - p0.y) * (p3.y - p2.y)


def _ddist(p: DPoint, q: DPoint) -> float:
    return math.hypot(p.x - q.x, p.y - q.y)


def bezier(t: float, p0: DPoint, p1: DPoint, p2: DPoint, p3: DPoint) -> DPoint:
    """Return the point at parameter ``t`` of the Bezier curve (p0, p1, p2, p3)."""
    s = 1 - t
    return DPoint(
        s * s * s * p0.x + 3 * (s * s * t) * p1.x + 3 * (t * t * s) * p2.x + t * t * t * p3.x,
        s * s * s * p0.y + 3 * (s * s * t) * p1.y + 3 * (t * t * s) * p2.y + t * t * t * p3.y,
    )


def tangent(p0: DPoint, p1: DPoint, p2: DPoint, p3: DPoint, q0: DPoint, q1: DPoint) -> float:
    """Return t in [0, 1] where the convex Bezier curve is parallel to q1 - q0.

    Returns -1.0 if there is no such point.
    """
    big_a = _cprod(p0, p1, q0, q1)
    big_b = _cprod(p1, p2, q0, q1)
    big_c = _cprod(p2, p3, q0, q1)

    a = big_a - 2 * big_b + big_c
    b = -2 * big_a + 2 * big_b
    c = big_a

    d = b * b - 4 * a * c
    if a == 0 or d < 0:
        return -1.0

    s = math.sqrt(d)
    r1 = (-b + s) / (2 * a)
    r2 = (-b - s) / (2 * a)
    if 0 <= r1 <= 1:
        return r1
    if 0 <= r2 <= 1:
        return r2
    return -1.0


# ---------------------------------------------------------------------------
# smoothing and corner analysis


def reverse(curve: Curve) -> None:
    """Reverse the order of the curve's vertices in place."""
    curve.vertex.reverse()


def smooth(curve: Curve, alphamax: float) -> None:
    """Turn each vertex into a corner or a Bezier segment, in place.

    A vertex whose bend parameter alpha reaches ``alphamax`` becomes a
    corner; the others become curves with alpha clamped to [0.55, 1].
    """
    m = len(curve)
    v = curve.vertex
    for i in range(m):
        j = mod(i + 1, m)
        k = mod(i + 2, m)
        p4 = interval(0.5, v[k], v[j])

        denom = _ddenom(v[i], v[k])
        if denom != 0.0:
            dd = abs(_dpara(v[i], v[j], v[k]) / denom)
            alpha = (1 - 1.0 / dd) if dd > 1 else 0.0
            alpha = alpha / 0.75
        else:
            alpha = 4 / 3.0
        curve.alpha0[j] = alpha

        if alpha >= alphamax:
            curve.tag[j] = Tag.CORNER
            curve.c[j] = (curve.c[j][0], v[j], p4)
        else:
            alpha = min(max(alpha, 0.55), 1.0)
            p2 = interval(0.5 + 0.5 * alpha, v[i], v[j])
            p3 = interval(0.5 + 0.5 * alpha, v[k], v[j])
            curve.tag[j] = Tag.CURVETO
            curve.c[j] = (p2, p3, p4)
        curve.alpha[j] = alpha
        curve.beta[j] = 0.5
    curve.alphacurve = True


# ---------------------------------------------------------------------------
# curve optimisation


@dataclass
class _Opti:
    pen: float
    c: tuple[DPoint, DPoint]
    t: float
    s: float
    alpha: float


def _opti_penalty(
    curve: Curve,
    i: int,
    j: int,
    opttolerance: float,
    convc: list[int],
    areac: list[float],
) -> Optional[_Opti]:
    """Best single Bezier segment from i + .5 to j + .5, or None if impossible."""
    m = len(curve)
    vertex = curve.vertex
    cc = curve.c

    # a full loop can never be merged
    if i == j:
        return None

    i1 = mod(i + 1, m)
    k1 = i1
    conv = convc[k1]
    if conv == 0:
        return None
    d = _ddist(vertex[i], vertex[i1])
    k = k1
    while k != j:
        k1 = mod(k + 1, m)
        k2 = mod(k + 2, m)
        if convc[k1] != conv:
            return None
        if sign(_cprod(vertex[i], vertex[i1], vertex[k1], vertex[k2])) != conv:
            return None
        if _iprod1(vertex[i], vertex[i1], vertex[k1], vertex[k2]) < d * _ddist(vertex[k1], vertex[k2]) * COS179:
            return None
        k = k1

    p0 = cc[mod(i, m)][2]
    p1 = vertex[mod(i + 1, m)]
    p2 = vertex[mod(j, m)]
    p3 = cc[mod(j, m)][2]

    area = areac[j] - areac[i]
    area -= _dpara(vertex[0], cc[i][2], cc[j][2]) / 2
    if i >= j:
        area += areac[m]

    a1 = _dpara(p0, p1, p2)
    a2 = _dpara(p0, p1, p3)
    a3 = _dpara(p0, p2, p3)
    a4 = a1 + a3 - a2

    if a2 == a1 or a3 == a4:
        return None

    t = a3 / (a3 - a4)
    s = a2 / (a2 - a1)
    big_a = a2 * t / 2.0
    if big_a == 0.0:
        return None

    rel = area / big_a
    disc = 4 - rel / 0.3
    if not disc >= 0:
        return None
    alpha = 2 - math.sqrt(disc)

    c0 = interval(t * alpha, p0, p1)
    c1 = interval(s * alpha, p3, p2)
    res = _Opti(pen=0.0, c=(c0, c1), t=t, s=s, alpha=alpha)
    p1, p2 = c0, c1

    # tangency with the polygon edges
    k = mod(i + 1, m)
    while k != j:
        k1 = mod(k + 1, m)
        tt = tangent(p0, p1, p2, p3, vertex[k], vertex[k1])
        if tt < -0.5:
            return None
        pt = bezier(tt, p0, p1, p2, p3)
        d = _ddist(vertex[k], vertex[k1])
        if d == 0.0:
            return None
        d1 = _dpara(vertex[k], vertex[k1], pt) / d
        if abs(d1) > opttolerance:
            return None
        if _iprod(vertex[k], vertex[k1], pt) < 0 or _iprod(vertex[k1], vertex[k], pt) < 0:
            return None
        res.pen += d1 * d1
        k = k1

    # distance from the corners of the original curve
    k = i
    while k != j:
        k1 = mod(k + 1, m)
        tt = tangent(p0, p1, p2, p3, cc[k][2], cc[k1][2])
        if tt < -0.5:
            return None
        pt = bezier(tt, p0, p1, p2, p3)
        d = _ddist(cc[k][2], cc[k1][2])
        if d == 0.0:
            return None
        d1 = _dpara(cc[k][2], cc[k1][2], pt) / d
        d2 = _dpara(cc[k][2], cc[k1][2], vertex[k1]) / d
        d2 *= 0.75 * curve.alpha[k1]
        if d2 < 0:
            d1 = -d1
            d2 = -d2
        if d1 < d2 - opttolerance:
            return None
        if d1 < d2:
            res.pen += (d1 - d2) ** 2
        k = k1

    return res


def opticurve(path: Curve, opttolerance: float) -> Curve:
    """Return the smoothed curve ``path`` with runs of Bezier segments merged.

    Merged segments deviate from the original by at most ``opttolerance``.
    The input curve must have been processed by :func:`smooth`.
    """
    curve = path
    m = len(curve)
    vertex = curve.vertex

    convc = [
        sign(_dpara(vertex[mod(i - 1, m)], vertex[i], vertex[mod(i + 1, m)]))
        if curve.tag[i] == Tag.CURVETO else 0
        for i in range(m)
    ]

    area = 0.0
    areac = [0.0] * (m + 1)
    p0 = vertex[0] if m else _ORIGIN
    for i in range(m):
        i1 = mod(i + 1, m)
        if curve.tag[i1] == Tag.CURVETO:
            alpha = curve.alpha[i1]
            area += 0.3 * alpha * (4 - alpha) * _dpara(curve.c[i][2], vertex[i1], curve.c[i1][2]) / 2
            area += _dpara(p0, curve.c[i][2], curve.c[i1][2]) / 2
        areac[i + 1] = area

    pt = [-1] + [0] * m
    pen = [0.0] * (m + 1)
    length = [0] * (m + 1)
    opt: list[Optional[_Opti]] = [None] * (m + 1)

    for j in range(1, m + 1):
        pt[j] = j - 1
        pen[j] = pen[j - 1]
        length[j] = length[j - 1] + 1
        for i in range(j - 2, -1, -1):
            o = _opti_penalty(curve, i, mod(j, m), opttolerance, convc, areac)
            if o is None:
                break
            if length[j] > length[i] + 1 or (length[j] == length[i] + 1 and pen[j] > pen[i] + o.pen):
                pt[j] = i
                pen[j] = pen[i] + o.pen
                length[j] = length[i] + 1
                opt[j] = o

    om = length[m]
    tags: list[Tag] = [Tag.CORNER] * om
    cs: list[Segment] = [(_ORIGIN, _ORIGIN, _ORIGIN)] * om
    verts: list[DPoint] = [_ORIGIN] * om
    alphas = [0.0] * om
    alpha0s = [0.0] * om
    betas = [0.0] * om
    s = [0.0] * om
    t = [0.0] * om

    j = m
    for i in range(om - 1, -1, -1):
        jm = mod(j, m)
        o = opt[j]
        if pt[j] == j - 1 or o is None:
            tags[i] = curve.tag[jm]
            cs[i] = curve.c[jm]
            verts[i] = vertex[jm]
            alphas[i] = curve.alpha[jm]
            alpha0s[i] = curve.alpha0[jm]
            betas[i] = curve.beta[jm]
            s[i] = t[i] = 1.0
        else:
            tags[i] = Tag.CURVETO
            cs[i] = (o.c[0], o.c[1], curve.c[jm][2])
            verts[i] = interval(o.s, curve.c[jm][2], vertex[jm])
            alphas[i] = o.alpha
            alpha0s[i] = o.alpha
            s[i] = o.s
            t[i] = o.t
        j = pt[j]

    for i in range(om):
        i1 = mod(i + 1, om)
        betas[i] = s[i] / (s[i] + t[i1])

    return Curve(
        vertex=verts,
        tag=tags,
        c=cs,
        alpha=alphas,
        alpha0=alpha0s,
        beta=betas,
        alphacurve=True,
    )


# ---------------------------------------------------------------------------


def process_path(
    paths: Iterable[tuple[PathData, str]],
    params: Params,
    progress: Optional[Progress] = None,
) -> list[Curve]:
    """Fit curves to closed lattice paths.

    ``paths`` holds pairs of a path and its sign, ``'+'`` or ``'-'``;
    negative paths are reversed before smoothing. Returns the final curve
    of each path, in order.
    """
    items = list(paths)
    if progress is None:
        progress = Progress()

    nn = 0.0
    cn = 0.0
    if progress.callback is not None:
        nn = float(sum(len(path) for path, _ in items))

    curves = []
    for path, path_sign in items:
        calc_sums(path)
        calc_lon(path)
        best_polygon(path)
        curve = Curve(adjust_vertices(path))
        if path_sign == "-":
            reverse(curve)
        smooth(curve, params.alphamax)
        if params.opticurve:
            curve = opticurve(curve, params.opttolerance)
        curves.append(curve)

        if progress.callback is not None:
            cn += len(path)
            progress.update(cn / nn)

    progress.update(1.0)
    return curves