"""Anti-aliased rendering of closed curves onto a greymap.

Moving a point around a closed curve darkens the pixels it encloses
counterclockwise and lightens those it encloses clockwise. The change is
proportional to the winding number, so a pixel enclosed once changes by
255. Only pixels near the curve receive fractional values.
"""

from __future__ import annotations

import math

import numpy as np


class Renderer:
    """Renders paths onto a greymap array indexed as ``[y, x]``.

    The greymap is modified in place. Pixels outside it are left alone.
    """

    def __init__(self, greymap: np.ndarray) -> None:
        if greymap.ndim != 2:
            raise ValueError("greymap must be two-dimensional")
        self.greymap = greymap
        self.x0 = self.y0 = self.x1 = self.y1 = 0.0
        self.x0i = self.y0i = self.x1i = self.y1i = 0
        self.a0 = self.a1 = 0.0
        # A non-zero entry x + 1 means pixels (x, y), (x + 1, y), ... are due
        # to be adjusted once the row is visited again.
        self._incrow_buf = [0] * greymap.shape[0]

    @property
    def current(self) -> tuple[float, float]:
        """The current pen position."""
        return (self.x1, self.y1)

    def _inc(self, x: int, y: int, b: float) -> None:
        h, w = self.greymap.shape
        if 0 <= x < w and 0 <= y < h:
            self.greymap[y, x] += b

    def _incrow(self, x: int, y: int, b: int) -> None:
        h, w = self.greymap.shape
        if y < 0 or y >= h:
            return
        x = min(max(x, 0), w)
        pending = self._incrow_buf[y]
        if pending == 0:
            self._incrow_buf[y] = x + 1
            return
        x0 = pending - 1
        self._incrow_buf[y] = 0
        if x0 < x:
            self.greymap[y, x0:x] -= b
        else:
            self.greymap[y, x:x0] += b

    def close(self) -> None:
        """Close the current path by drawing back to its starting point."""
        if self.x0 != self.x1 or self.y0 != self.y1:
            self.lineto(self.x0, self.y0)
        self._inc(self.x0i, self.y0i, (self.a0 + self.a1) * 255)

    def moveto(self, x: float, y: float) -> None:
        """Close the current path and start a new one at (x, y)."""
        self.close()
        self.x0 = self.x1 = x
        self.y0 = self.y1 = y
        self.x0i = self.x1i = math.floor(x)
        self.y0i = self.y1i = math.floor(y)
        self.a0 = self.a1 = 0.0

    def lineto(self, x: float, y: float) -> None:
        """Draw a straight line from the current point to (x, y)."""
        x1, y1 = self.x1, self.y1
        x2, y2 = x, y
        x2i = math.floor(x2)
        y2i = math.floor(y2)
        sn = abs(x2i - self.x1i)
        tn = abs(y2i - self.y1i)
        s0 = t0 = ss = ts = 2.0

        if sn:
            s0 = ((self.x1i + 1 if x2 > x1 else self.x1i) - x1) / (x2 - x1)
            ss = abs(1.0 / (x2 - x1))
        if tn:
            t0 = ((self.y1i + 1 if y2 > y1 else self.y1i) - y1) / (y2 - y1)
            ts = abs(1.0 / (y2 - y1))

        r0 = 0.0
        i = j = 0
        rxi, ryi = self.x1i, self.y1i

        while i < sn or j < tn:
            if j >= tn or (i < sn and s0 + i * ss < t0 + j * ts):
                r1 = s0 + i * ss
                i += 1
                across_x = True
            else:
                r1 = t0 + j * ts
                j += 1
                across_x = False

            self.a1 += (r1 - r0) * (y2 - y1) * (rxi + 1 - ((r0 + r1) / 2.0 * (x2 - x1) + x1))

            if across_x and x2 > x1:
                self._inc(rxi, ryi, self.a1 * 255)
                self.a1 = 0.0
                rxi += 1
                self.a1 += y1 + r1 * (y2 - y1) - ryi
            elif not across_x and y2 > y1:
                self._inc(rxi, ryi, self.a1 * 255)
                self.a1 = 0.0
                self._incrow(rxi + 1, ryi, 255)
                ryi += 1
            elif across_x:
                self.a1 -= y1 + r1 * (y2 - y1) - ryi
                self._inc(rxi, ryi, self.a1 * 255)
                self.a1 = 0.0
                rxi -= 1
            else:
                self._inc(rxi, ryi, self.a1 * 255)
                self.a1 = 0.0
                ryi -= 1
                self._incrow(rxi + 1, ryi, -255)

            r0 = r1

        r1 = 1.0
        self.a1 += (r1 - r0) * (y2 - y1) * (rxi + 1 - ((r0 + r1) / 2.0 * (x2 - x1) + x1))

        self.x1i, self.y1i = x2i, y2i
        self.x1, self.y1 = x2, y2

    def curveto(self, x2: float, y2: float, x3: float, y3: float, x4: float, y4: float) -> None:
        """Draw a cubic Bezier curve from the current point to (x4, y4).

        The curve is approximated by line segments within 0.1 pixel.
        """
        x1, y1 = self.x1, self.y1
        delta = 0.1
        dd0 = (x1 - 2 * x2 + x3) ** 2 + (y1 - 2 * y2 + y3) ** 2
        dd1 = (x2 - 2 * x3 + x4) ** 2 + (y2 - 2 * y3 + y4) ** 2
        dd = 6 * math.sqrt(max(dd0, dd1))
        e2 = 8 * delta / dd if 8 * delta <= dd else 1.0
        epsilon = math.sqrt(e2)

        t = epsilon
        while t < 1:
            u = 1 - t
            self.lineto(
                x1 * u ** 3 + 3 * x2 * u * u * t + 3 * x3 * u * t * t + x4 * t ** 3,
                y1 * u ** 3 + 3 * y2 * u * u * t + 3 * y3 * u * t * t + y4 * t ** 3,
            )
            t += epsilon
        self.lineto(x4, y4)