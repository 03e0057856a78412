"""Greymap preparation into bitmaps, and fitting of Bezier curves to closed lattice paths."""

__version__ = "1.16.0"