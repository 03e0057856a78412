"""Coordinate transformations with a bounding box."""

from __future__ import annotations

import math
from dataclasses import dataclass, field

from .geometry import DPoint


@dataclass
class Transform:
    """An affine coordinate system together with the box it maps into.

    ``bb`` is the size of the bounding box, ``orig`` the image of the origin
    inside it, and ``x`` and ``y`` the images of the two unit vectors.
    """

    bb: list[float] = field(default_factory=lambda: [0.0, 0.0])
    orig: list[float] = field(default_factory=lambda: [0.0, 0.0])
    x: list[float] = field(default_factory=lambda: [1.0, 0.0])
    y: list[float] = field(default_factory=lambda: [0.0, 1.0])
    scalex: float = 1.0
    scaley: float = 1.0

    @classmethod
    def from_rect(cls, w: float, h: float) -> Transform:
        """Return the standard Cartesian system for a w x h rectangle."""
        return cls(bb=[w, h], orig=[0.0, 0.0], x=[1.0, 0.0], y=[0.0, 1.0], scalex=1.0, scaley=1.0)

    def apply(self, p: DPoint) -> DPoint:
        """Map the point ``p`` through this transformation."""
        return DPoint(
            self.orig[0] + p.x * self.x[0] + p.y * self.y[0],
            self.orig[1] + p.x * self.x[1] + p.y * self.y[1],
        )

    def rotate(self, alpha: float) -> None:
        """Rotate counterclockwise by ``alpha`` degrees, enlarging the box to fit."""
        s = math.sin(alpha / 180 * math.pi)
        c = math.cos(alpha / 180 * math.pi)
        bb, orig, xv, yv = list(self.bb), list(self.orig), list(self.x), list(self.y)

        x0 = c * bb[0]
        x1 = s * bb[0]
        y0 = -s * bb[1]
        y1 = c * bb[1]

        self.bb = [abs(x0) + abs(y0), abs(x1) + abs(y1)]
        o0 = -min(x0, 0) - min(y0, 0)
        o1 = -min(x1, 0) - min(y1, 0)

        self.orig = [o0 + c * orig[0] - s * orig[1], o1 + s * orig[0] + c * orig[1]]
        self.x = [c * xv[0] - s * xv[1], s * xv[0] + c * xv[1]]
        self.y = [c * yv[0] - s * yv[1], s * yv[0] + c * yv[1]]

    def rescale(self, sc: float) -> None:
        """Scale the whole system by the factor ``sc``."""
        self.bb = [v * sc for v in self.bb]
        self.orig = [v * sc for v in self.orig]
        self.x = [v * sc for v in self.x]
        self.y = [v * sc for v in self.y]
        self.scalex *= sc
        self.scaley *= sc

    def scale_to_size(self, w: float, h: float) -> None:
        """Stretch the system so that its box becomes w x h.

        A negative size mirrors the corresponding axis.
        """
        xsc = w / self.bb[0]
        ysc = h / self.bb[1]
        self.bb = [w, h]
        self.orig = [self.orig[0] * xsc, self.orig[1] * ysc]
        self.x = [self.x[0] * xsc, self.x[1] * ysc]
        self.y = [self.y[0] * xsc, self.y[1] * ysc]
        self.scalex *= xsc
        self.scaley *= ysc
        if w < 0:
            self.orig[0] -= w
            self.bb[0] = -w
        if h < 0:
            self.orig[1] -= h
            self.bb[1] = -h