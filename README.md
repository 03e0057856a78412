# bitrace

Tools for preparing raster images for vectorisation and for fitting smooth
curves to closed outlines.

- **Bitmap preparation** (`bitrace.mkbitmap`): read greymaps from PNM
  (PBM, PGM, PPM) or BMP data, invert them, even out background gradients
  with a highpass filter, smooth them with a lowpass filter, scale them up by
  an integer factor with linear or cubic interpolation, and threshold them
  into a bilevel `Bitmap`. Results are written as raw PBM or PGM.
- **Curve fitting** (`bitrace.polygon`, `bitrace.smoothing`): given a closed
  lattice path, find its straight stretches, choose the optimal polygon,
  adjust the polygon's vertices, turn each vertex into a corner or a Bezier
  segment, and optionally merge runs of Bezier segments into fewer ones.

Supporting modules:

- `bitrace.bitmap` – `Bitmap`, a width × height grid of booleans backed by a
  `numpy` array, with `get`, `put`, `clear`, `copy`, `invert`, `flip` and
  `resize`. Reads outside the grid give `False`; writes there are ignored.
- `bitrace.geometry` – `DPoint`, `interval`, `mod`, `floordiv`, `sign`,
  `lobit` and `hibit`.
- `bitrace.params` – `Params` (turd size 2, `TurnPolicy.MINORITY`, corner
  threshold `alphamax` 1.0, curve optimisation on, tolerance 0.2),
  `default_params()`, `TraceStatus` and `version()`.
- `bitrace.progress` – `Progress`, which reports progress in a range to a
  callback and can be split into subranges.
- `bitrace.progress_bar` – `VT100ProgressBar` (redrawn in place with
  terminal control codes) and `SimplifiedProgressBar` (append-only, for dumb
  terminals); both are callables, context managers, and give a `Progress`
  through their `progress()` method.
- `bitrace.render` – `Renderer`, which draws closed paths made of
  `moveto`, `lineto` and `curveto` with anti-aliasing onto a `numpy`
  greymap, changing enclosed pixels by 255 per winding.
- `bitrace.trans` – `Transform`, an affine coordinate system with a bounding
  box: `from_rect`, `rotate`, `rescale`, `scale_to_size` and `apply`.

## Installation

```
pip install .
```

To run the tests:

```
pip install .[test]
pytest
```

## The `mkbitmap` command

```
mkbitmap [options] [file...]
```

With no files, it reads standard input and writes standard output (or the
file given with `-o`). With files and no `-o`, each input `name.ext` is
written to `name.pbm` (or `name.pgm` when the output is a greymap); an input
of `-` means standard input and output. With files and `-o`, all results go to
the one output file. An input may hold several PNM images one after another.

| Option | Meaning |
| --- | --- |
| `-h`, `--help` | print help and exit |
| `-v`, `--version` | print the version and exit |
| `-l`, `--license` | print licence information and exit |
| `-o`, `--output <file>` | output to file |
| `-x`, `--reset` | turn off the defaults: no inversion, no highpass, scale 1, greymap output |
| `-i`, `--invert` | invert the input |
| `-f`, `--filter <n>` | highpass filter with radius n (default 4) |
| `-n`, `--nofilter` | no highpass filtering |
| `-b`, `--blur <n>` | lowpass filter with radius n |
| `-s`, `--scale <n>` | scale by integer factor n (default 2) |
| `-1`, `--linear` | linear interpolation |
| `-3`, `--cubic` | cubic interpolation (default) |
| `-t`, `--threshold <n>` | bilevel cutoff (default 0.45) |
| `-g`, `--grey` | output a greymap instead of a bitmap |

The defaults are `-f 4 -s 2 -3 -t 0.45`. The exit status is 0 on success,
1 for an invalid command line and 2 when a file cannot be opened or read.
A truncated image or junk after the last image is reported as a warning.

Example:

```
mkbitmap -f 2 -s 4 -t 0.5 scan.pgm -o scan.pbm
```

## Library use

Greymaps are two-dimensional float arrays indexed as `[y, x]`, with values
from 0 (black) to 255 (white) and row 0 at the bottom of the image.

```python
from bitrace.mkbitmap import Options, process_image, read_images, write_pbm

options = Options()
with open("scan.pgm", "rb") as fin, open("scan.pbm", "wb") as fout:
    for greymap in read_images(fin):
        write_pbm(fout, process_image(greymap, options))
```

`read_images` raises `EmptyFileError`, `UnrecognizedFormatError` or
`FileFormatError` (all subclasses of `InputError`) and issues
`InputWarning` for recoverable problems.

Fitting curves to closed lattice paths, where consecutive points differ by
one unit step:

```python
from bitrace.params import default_params
from bitrace.polygon import PathData
from bitrace.smoothing import Tag, process_path

square = [(0, 0), (1, 0), (2, 0), (2, 1), (2, 2), (1, 2), (0, 2), (0, 1)]
curves = process_path([(PathData(square), "+")], default_params())
for curve in curves:
    for tag, (c0, c1, end) in zip(curve.tag, curve.c):
        ...  # Tag.CURVETO: Bezier via c0, c1 to end; Tag.CORNER: lines via c1 to end
```

Paths marked `"-"` are reversed before smoothing. The individual stages
(`calc_sums`, `calc_lon`, `best_polygon`, `adjust_vertices`, `smooth`,
`opticurve`) can also be called on their own.

## What the package does not do

- It does not split a bitmap into its outline paths; `process_path` needs
  the closed lattice paths to be supplied by the caller, and `Params.turdsize`
  and `Params.turnpolicy` are carried but not used by anything here.
- There is no command that traces a bitmap, and no writer for vector formats
  such as EPS, PDF or SVG; the fitted curves are returned as `Curve` objects.