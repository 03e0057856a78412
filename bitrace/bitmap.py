"""A two-dimensional bilevel image."""

from __future__ import annotations

import numpy as np


class Bitmap:
    """A width x height grid of pixels that are either set or clear.

    Row ``y = 0`` is the first row. Reading or writing outside the grid is
    harmless: reads give ``False`` and writes are ignored.
    """

    def __init__(self, width: int, height: int) -> None:
        if width < 0 or height < 0:
            raise ValueError(f"invalid bitmap size {width}x{height}")
        self._data = np.zeros((height, width), dtype=bool)
        self._flipped = False

    @classmethod
    def from_array(cls, array) -> Bitmap:
        """Build a bitmap from a 2-D array-like indexed as ``[y][x]``."""
        data = np.asarray(array, dtype=bool)
        if data.ndim != 2:
            raise ValueError("bitmap data must be two-dimensional")
        bm = cls(data.shape[1], data.shape[0])
        bm._data[...] = data
        return bm

    @property
    def width(self) -> int:
        return self._data.shape[1]

    @property
    def height(self) -> int:
        return self._data.shape[0]

    @property
    def flipped(self) -> bool:
        """Whether the bitmap has been turned upside down an odd number of times."""
        return self._flipped

    @property
    def pixels(self) -> np.ndarray:
        """The pixel array, indexed as ``[y, x]``."""
        return self._data

    def _inside(self, x: int, y: int) -> bool:
        return 0 <= x < self.width and 0 <= y < self.height

    def get(self, x: int, y: int) -> bool:
        """Return the pixel at (x, y), or ``False`` outside the bitmap."""
        if not self._inside(x, y):
            return False
        return bool(self._data[y, x])

    def put(self, x: int, y: int, value) -> None:
        """Set the pixel at (x, y) to ``value``; ignored outside the bitmap."""
        if self._inside(x, y):
            self._data[y, x] = bool(value)

    def clear(self, value=False) -> None:
        """Set every pixel to ``value``."""
        self._data[...] = bool(value)

    def copy(self) -> Bitmap:
        """Return an independent copy with the same pixels."""
        bm = Bitmap(self.width, self.height)
        bm._data[...] = self._data
        return bm

    def invert(self) -> None:
        """Toggle every pixel."""
        np.logical_not(self._data, out=self._data)

    def flip(self) -> None:
        """Turn the bitmap upside down."""
        if self.height <= 1:
            return
        self._data = self._data[::-1].copy()
        self._flipped = not self._flipped

    def resize(self, height: int) -> None:
        """Change the height, keeping rows aligned to the bottom.

        A flipped bitmap keeps its rows aligned to the top instead. Rows that
        are added start out clear.
        """
        if height < 0:
            raise ValueError(f"invalid bitmap height {height}")
        old = self.height
        if height <= old:
            self._data = (self._data[old - height:] if self._flipped else self._data[:height]).copy()
            return
        extra = np.zeros((height - old, self.width), dtype=bool)
        parts = (extra, self._data) if self._flipped else (self._data, extra)
        self._data = np.concatenate(parts, axis=0)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Bitmap):
            return NotImplemented
        return self._data.shape == other._data.shape and bool(np.array_equal(self._data, other._data))

    __hash__ = None

    def __repr__(self) -> str:
        return f"Bitmap(width={self.width}, height={self.height})"