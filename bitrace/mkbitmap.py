"""Convert greymaps to bitmaps, with optional filtering, scaling and inversion.

A greymap is a two-dimensional ``numpy`` float array indexed as ``[y, x]``
whose samples range from 0 (black) to 255 (white). Row ``y = 0`` is the
bottom row of the image, which is the last row stored in a file. Bitmaps
use the same orientation, and a set pixel is black.
"""

from __future__ import annotations

import getopt
import io
import re
import sys
import warnings
from dataclasses import dataclass, field
from typing import BinaryIO, Iterator, Optional, Union

import numpy as np
from PIL import Image

from .bitmap import Bitmap
from .params import VERSION

PROGRAM = "mkbitmap"

_WHITESPACE = b" \t\n\r\v\f"
_FORMATS_HINT = "Possible input file formats are: pnm (pbm, pgm, ppm), bmp."


class UsageError(Exception):
    """Invalid command line."""


class InputError(Exception):
    """An input image could not be read."""


class EmptyFileError(InputError):
    """The input holds no image at all."""


class UnrecognizedFormatError(InputError):
    """The input does not start with a known image signature."""


class FileFormatError(InputError):
    """The input looks like a known format but is corrupt."""


class InputWarning(UserWarning):
    """A recoverable problem with an input image."""


class _Fatal(Exception):
    """An error that ends the program with status 2."""


@dataclass
class Options:
    """Settings for converting images."""

    outfile: Optional[str] = None
    infiles: list[str] = field(default_factory=list)
    invert: bool = False
    highpass: bool = True
    highpass_radius: float = 4.0
    lowpass: bool = False
    lowpass_radius: float = 0.0
    scale: int = 2
    linear: bool = False
    bilevel: bool = True
    level: float = 0.45
    outext: str = ".pbm"
    action: Optional[str] = None


# ---------------------------------------------------------------------------
# filters


def _filter_lines(a: np.ndarray, c: float, d: float) -> None:
    """Blur every row of ``a`` in place with a recursive two-pole filter."""
    n, m = a.shape
    f = np.zeros(n)
    g = np.zeros(n)
    for x in range(m):
        f = f * c + a[:, x] * d
        g = g * c + f * d
        a[:, x] = g
    for x in reversed(range(m)):
        f = f * c + a[:, x] * d
        g = g * c + f * d
        a[:, x] = g
    active = np.ones(n, dtype=bool)
    for x in range(m):
        f = f * c
        g = g * c + f * d
        active &= ~(f + g < 1 / 255.0)
        if not active.any():
            break
        a[active, x] += g[active]


def lowpass(gm, lam: float) -> np.ndarray:
    """Return ``gm`` blurred by an approximate Gaussian of radius ``lam``."""
    out = np.array(gm, dtype=float, copy=True)
    if out.size == 0:
        return out
    with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
        lam = np.float64(lam)
        b = 1 + 2 / (lam * lam)
        c = b - np.sqrt(b * b - 1)
        d = 1 - c
        _filter_lines(out, c, d)
        _filter_lines(out.T, c, d)
    return out


def highpass(gm, lam: float) -> np.ndarray:
    """Return ``gm`` with its blur of radius ``lam`` subtracted, centred on 128."""
    original = np.array(gm, dtype=float, copy=True)
    if original.size == 0:
        return original
    with np.errstate(invalid="ignore"):
        return original - lowpass(original, lam) + 128


def threshold(gm, c: float) -> Bitmap:
    """Return a bitmap whose pixels are set where the grey value is below c * 255."""
    a = np.asarray(gm, dtype=float)
    with np.errstate(invalid="ignore"):
        return Bitmap.from_array(a < c * 255)


def _check_scale(s: int) -> None:
    if s <= 0:
        raise ValueError(f"invalid scaling factor {s}")


def interpolate_linear(gm, s: int, bilevel: bool, c: float) -> Union[np.ndarray, Bitmap]:
    """Scale ``gm`` by the factor ``s`` with bilinear interpolation.

    With ``bilevel`` the result is thresholded at c * 255 into a bitmap.
    """
    _check_scale(s)
    a = np.asarray(gm, dtype=float)
    h, w = a.shape
    if h == 0 or w == 0:
        empty = np.zeros((h * s, w * s))
        return Bitmap.from_array(empty.astype(bool)) if bilevel else empty

    xi = np.clip(np.arange(w) + 1, 0, w - 1)
    yi = np.clip(np.arange(h) + 1, 0, h - 1)
    p00 = a
    p10 = a[:, xi]
    p01 = a[yi, :]
    p11 = a[np.ix_(yi, xi)]

    out = np.empty((h * s, w * s))
    for x in range(s):
        xx = x / float(s)
        p0 = p00 * (1 - xx) + p10 * xx
        p1 = p01 * (1 - xx) + p11 * xx
        for y in range(s):
            yy = y / float(s)
            out[y::s, x::s] = p0 * (1 - yy) + p1 * yy

    if not bilevel:
        return out

    c1 = c * 255
    bits = out < c1
    corners = (p00, p01, p10, p11)
    all_dark = np.logical_and.reduce([p < c1 for p in corners])
    all_light = np.logical_and.reduce([p >= c1 for p in corners])
    bits[np.repeat(np.repeat(all_dark, s, axis=0), s, axis=1)] = True
    bits[np.repeat(np.repeat(all_light, s, axis=0), s, axis=1)] = False
    return Bitmap.from_array(bits)


def _cubic_weights(s: int) -> np.ndarray:
    weights = np.empty((s, 4))
    for k in range(s):
        t = k / float(s)
        weights[k, 0] = 0.5 * t * (t - 1) * (1 - t)
        weights[k, 1] = -(t + 1) * (t - 1) * (1 - t) + 0.5 * (t - 1) * (t - 2) * t
        weights[k, 2] = 0.5 * (t + 1) * t * (1 - t) - t * (t - 2) * t
        weights[k, 3] = 0.5 * t * (t - 1) * t
    return weights


def interpolate_cubic(gm, s: int, bilevel: bool, c: float) -> Union[np.ndarray, Bitmap]:
    """Scale ``gm`` by the factor ``s`` with bicubic interpolation.

    With ``bilevel`` the result is thresholded at c * 255 into a bitmap.
    """
    _check_scale(s)
    a = np.asarray(gm, dtype=float)
    h, w = a.shape
    out = np.zeros((h * s, w * s))
    if h and w:
        poly = _cubic_weights(s)
        ys = np.clip(np.arange(-1, h + 2), 0, h - 1)
        xs = np.clip(np.arange(-1, w + 2), 0, w - 1)
        padded = a[np.ix_(ys, xs)]
        for k in range(s):
            column = 0.0
            for j in range(4):
                column = column + poly[k, j] * padded[j:j + h, :]
            for l in range(s):
                v = 0.0
                for i in range(4):
                    v = v + column[:, i:i + w] * poly[l, i]
                out[k::s, l::s] = v
    if bilevel:
        return Bitmap.from_array(out < c * 255)
    return out


def process_image(gm, options: Options) -> Union[np.ndarray, Bitmap]:
    """Apply inversion, filters, scaling and thresholding as ``options`` ask."""
    result = np.array(gm, dtype=float, copy=True)
    if options.invert:
        result = 255 - result
    if options.highpass:
        result = highpass(result, options.highpass_radius)
    if options.lowpass:
        result = lowpass(result, options.lowpass_radius)
    if options.scale == 1 and options.bilevel:
        return threshold(result, options.level)
    if options.scale == 1:
        return result
    if options.linear:
        return interpolate_linear(result, options.scale, options.bilevel, options.level)
    return interpolate_cubic(result, options.scale, options.bilevel, options.level)


# ---------------------------------------------------------------------------
# image input


class _Truncated(Exception):
    pass


class _Scanner:
    """Reads tokens of a netpbm header or plain raster from a byte string."""

    def __init__(self, data: bytes, pos: int = 0) -> None:
        self.data = data
        self.pos = pos

    def at_end(self) -> bool:
        return self.pos >= len(self.data)

    def skip_space(self) -> None:
        data = self.data
        while self.pos < len(data):
            ch = data[self.pos]
            if ch in _WHITESPACE:
                self.pos += 1
            elif ch == ord("#"):
                end = data.find(b"\n", self.pos)
                self.pos = len(data) if end < 0 else end + 1
            else:
                break

    def read_int(self) -> int:
        self.skip_space()
        start = self.pos
        while self.pos < len(self.data) and 48 <= self.data[self.pos] <= 57:
            self.pos += 1
        if start == self.pos:
            if self.at_end():
                raise _Truncated
            raise FileFormatError("invalid number")
        return int(self.data[start:self.pos])

    def read_bit(self) -> int:
        self.skip_space()
        if self.at_end():
            raise _Truncated
        ch = self.data[self.pos]
        if ch not in b"01":
            raise FileFormatError("invalid pixel value")
        self.pos += 1
        return ch - 48

    def take(self, n: int) -> bytes:
        chunk = self.data[self.pos:self.pos + n]
        self.pos += len(chunk)
        return chunk


def _read_plain(reader, count: int) -> tuple[np.ndarray, bool]:
    values = np.zeros(count)
    for index in range(count):
        try:
            values[index] = reader()
        except _Truncated:
            return values, True
    return values, False


def _read_pnm(sc: _Scanner, kind: str) -> tuple[np.ndarray, bool]:
    try:
        width = sc.read_int()
        height = sc.read_int()
        maxval = 1 if kind in "14" else sc.read_int()
    except _Truncated:
        raise FileFormatError("premature end of file in header") from None
    if kind not in "14" and not 1 <= maxval <= 65535:
        raise FileFormatError("invalid maxval")

    n = width * height
    if kind in "456":
        sc.take(1)

    if kind == "1":
        bits, truncated = _read_plain(sc.read_bit, n)
        grey = np.where(bits != 0, 0.0, 255.0)
    elif kind in "23":
        channels = 1 if kind == "2" else 3
        samples, truncated = _read_plain(sc.read_int, n * channels)
        if channels == 3:
            samples = samples.reshape(n, 3).sum(axis=1) / 3
        grey = samples * 255 / maxval
    elif kind == "4":
        rowbytes = (width + 7) // 8
        need = rowbytes * height
        raw = sc.take(need)
        truncated = len(raw) < need
        raw = raw.ljust(need, b"\0")
        packed = np.frombuffer(raw, dtype=np.uint8).reshape(height, rowbytes)
        bits = np.unpackbits(packed, axis=1)[:, :width]
        grey = np.where(bits != 0, 0.0, 255.0)
    else:
        channels = 1 if kind == "5" else 3
        size = 1 if maxval < 256 else 2
        need = n * channels * size
        raw = sc.take(need)
        truncated = len(raw) < need
        raw = raw.ljust(need, b"\0")
        dtype = np.uint8 if size == 1 else np.dtype(">u2")
        samples = np.frombuffer(raw, dtype=dtype).astype(float)
        if channels == 3:
            samples = samples.reshape(n, 3).sum(axis=1) / 3
        grey = samples * 255 / maxval

    top_first = np.asarray(grey, dtype=float).reshape(height, width)
    return top_first, truncated


def _read_bmp(data: bytes, pos: int) -> tuple[np.ndarray, int]:
    size = int.from_bytes(data[pos + 2:pos + 6], "little")
    available = len(data) - pos
    if size < 14 or size > available:
        size = available
    try:
        with Image.open(io.BytesIO(data[pos:pos + size])) as img:
            rgb = np.asarray(img.convert("RGB"), dtype=float)
    except (OSError, ValueError, SyntaxError) as err:
        raise FileFormatError(str(err) or "invalid bmp data") from None
    return rgb.sum(axis=2) / 3, pos + size


def read_images(stream: BinaryIO) -> Iterator[np.ndarray]:
    """Yield every greymap stored in ``stream`` (PNM images or a BMP image).

    Raises :class:`EmptyFileError` or :class:`UnrecognizedFormatError` when
    the stream holds no image, and :class:`FileFormatError` on corrupt data.
    A truncated image or trailing junk is reported with :class:`InputWarning`.
    """
    data = stream.read()
    sc = _Scanner(data)
    count = 0
    while True:
        while not sc.at_end() and data[sc.pos] in _WHITESPACE:
            sc.pos += 1
        if sc.at_end():
            if count == 0:
                raise EmptyFileError("empty file")
            return
        head = data[sc.pos:sc.pos + 2]
        truncated = False
        if len(head) == 2 and head[0:1] == b"P" and head[1:2] in (b"1", b"2", b"3", b"4", b"5", b"6"):
            sc.pos += 2
            top_first, truncated = _read_pnm(sc, head[1:2].decode())
        elif head == b"BM":
            top_first, sc.pos = _read_bmp(data, sc.pos)
        else:
            if count == 0:
                raise UnrecognizedFormatError("file format not recognized")
            warnings.warn("junk at end of file", InputWarning, stacklevel=2)
            return
        if truncated:
            warnings.warn("premature end of file", InputWarning, stacklevel=2)
        yield top_first[::-1].copy()
        count += 1


# ---------------------------------------------------------------------------
# image output


def write_pbm(stream: BinaryIO, bm: Bitmap) -> None:
    """Write ``bm`` to ``stream`` as a raw PBM image."""
    stream.write(f"P4\n{bm.width} {bm.height}\n".encode("ascii"))
    rows = np.ascontiguousarray(bm.pixels[::-1])
    stream.write(np.packbits(rows, axis=1).tobytes())


def write_pgm(stream: BinaryIO, gm) -> None:
    """Write greymap ``gm`` to ``stream`` as a raw 8-bit PGM image."""
    a = np.asarray(gm, dtype=float)
    height, width = a.shape
    stream.write(f"P5\n{width} {height}\n255\n".encode("ascii"))
    samples = np.clip(np.rint(np.nan_to_num(a[::-1])), 0, 255).astype(np.uint8)
    stream.write(samples.tobytes())


# ---------------------------------------------------------------------------
# command line

_SHORTOPTS = "hvlo:xif:nb:s:13gt:"
_LONGOPTS = {
    "help": "h",
    "version": "v",
    "license": "l",
    "output=": "o",
    "reset": "x",
    "invert": "i",
    "filter=": "f",
    "nofilter": "n",
    "blur=": "b",
    "scale=": "s",
    "linear": "1",
    "cubic": "3",
    "grey": "g",
    "threshold=": "t",
}
_LONG_TO_SHORT = {"--" + name.rstrip("="): "-" + short for name, short in _LONGOPTS.items()}
_INT_RE = re.compile(r"[ \t\n\r\v\f]*([+-]?)(0[xX][0-9a-fA-F]+|0[0-7]*|[1-9][0-9]*)")


def _parse_double(text: str) -> Optional[float]:
    if text == "":
        return 0.0
    s = text.lstrip(" \t\n\r\v\f")
    if not s or s != s.rstrip() or "_" in s:
        return None
    try:
        return float(s)
    except ValueError:
        pass
    try:
        return float.fromhex(s)
    except ValueError:
        return None


def _parse_long(text: str) -> Optional[int]:
    if text == "":
        return 0
    match = _INT_RE.fullmatch(text)
    if not match:
        return None
    digits = match.group(2)
    if digits[:2].lower() == "0x":
        value = int(digits[2:], 16)
    elif digits.startswith("0"):
        value = int(digits, 8)
    else:
        value = int(digits)
    return -value if match.group(1) == "-" else value


def _radius(text: str) -> float:
    value = _parse_double(text)
    if value is None or value < 0:
        raise UsageError(f"{PROGRAM}: invalid filter radius -- {text}")
    return value


def parse_options(argv) -> Options:
    """Parse command-line arguments (without the program name) into options."""
    options = Options()
    try:
        pairs, rest = getopt.gnu_getopt(list(argv), _SHORTOPTS, list(_LONGOPTS))
    except getopt.GetoptError as err:
        raise UsageError(f"{PROGRAM}: {err.msg}\nTry --help for more info") from None

    for name, value in pairs:
        opt = _LONG_TO_SHORT.get(name, name)
        if opt == "-h":
            options.action = "help"
            return options
        if opt == "-v":
            options.action = "version"
            return options
        if opt == "-l":
            options.action = "license"
            return options
        if opt == "-o":
            options.outfile = value
        elif opt == "-x":
            options.invert = False
            options.highpass = False
            options.scale = 1
            options.bilevel = False
            options.outext = ".pgm"
        elif opt == "-i":
            options.invert = True
        elif opt == "-f":
            options.highpass = True
            options.highpass_radius = _radius(value)
        elif opt == "-n":
            options.highpass = False
        elif opt == "-b":
            options.lowpass = True
            options.lowpass_radius = _radius(value)
        elif opt == "-s":
            scale = _parse_long(value)
            if scale is None or scale <= 0:
                raise UsageError(f"{PROGRAM}: invalid scaling factor -- {value}")
            options.scale = scale
        elif opt == "-1":
            options.linear = True
        elif opt == "-3":
            options.linear = False
        elif opt == "-g":
            options.bilevel = False
            options.outext = ".pgm"
        elif opt == "-t":
            level = _parse_double(value)
            if level is None or level < 0:
                raise UsageError(f"{PROGRAM}: invalid threshold -- {value}")
            options.bilevel = True
            options.outext = ".pbm"
            options.level = level
    options.infiles = list(rest)
    return options


def make_outfilename(infile: str, ext: str) -> str:
    """Derive an output file name from ``infile`` by replacing its extension."""
    if infile == "-":
        return "-"
    dot = infile.rfind(".")
    outfile = (infile[:dot] if dot >= 0 else infile) + ext
    if outfile == infile:
        outfile = infile + "-out"
    return outfile


def _usage() -> str:
    return "\n".join([
        f"Usage: {PROGRAM} [options] [file...]",
        "Options:",
        " -h, --help           - print this help message and exit",
        " -v, --version        - print version info and exit",
        " -l, --license        - print license info and exit",
        " -o, --output <file>  - output to file",
        " -x, --nodefaults     - turn off default options",
        "Inversion:",
        " -i, --invert         - invert the input (undo 'blackboard' effect)",
        "Highpass filtering:",
        " -f, --filter <n>     - apply highpass filter with radius n (default 4)",
        " -n, --nofilter       - no highpass filtering",
        " -b, --blur <n>       - apply lowpass filter with radius n (default: none)",
        "Scaling:",
        " -s, --scale <n>      - scale by integer factor n (default 2)",
        " -1, --linear         - use linear interpolation",
        " -3, --cubic          - use cubic interpolation (default)",
        "Thresholding:",
        " -t, --threshold <n>  - set threshold for bilevel conversion (default 0.45)",
        " -g, --grey           - no bilevel conversion, output a greymap",
        "",
        _FORMATS_HINT,
        "The default options are: -f 4 -s 2 -3 -t 0.45",
    ])


def _info_text(action: str) -> str:
    if action == "help":
        return (f"{PROGRAM} {VERSION}. Transforms images into bitmaps with scaling "
                f"and filtering.\n\n{_usage()}")
    if action == "version":
        return f"{PROGRAM} {VERSION}."
    return (f"{PROGRAM} {VERSION}.\n\nThis program is free software; see the "
            "licence file distributed with it for the terms of use.")


def _report(caught: list, infile: str) -> None:
    for item in caught:
        print(f"{PROGRAM}: {infile}: warning: {item.message}", file=sys.stderr)
    caught.clear()


def _process_file(fin: BinaryIO, fout: BinaryIO, infile: str, options: Options) -> None:
    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always", InputWarning)
        try:
            for gm in read_images(fin):
                _report(caught, infile)
                result = process_image(gm, options)
                if options.bilevel:
                    write_pbm(fout, result)
                else:
                    write_pgm(fout, result)
        except EmptyFileError:
            raise _Fatal(f"{PROGRAM}: {infile}: empty file") from None
        except UnrecognizedFormatError:
            raise _Fatal(f"{PROGRAM}: {infile}: file format not recognized\n{_FORMATS_HINT}") from None
        except FileFormatError as err:
            raise _Fatal(f"{PROGRAM}: {infile}: file format error: {err}") from None
        _report(caught, infile)


class _Unclosed:
    """Wraps a standard stream so that leaving a ``with`` block keeps it open."""

    def __init__(self, stream: BinaryIO) -> None:
        self.stream = stream

    def __enter__(self) -> BinaryIO:
        return self.stream

    def __exit__(self, *exc) -> None:
        self.stream.flush() if hasattr(self.stream, "flush") else None


def _open(name: str, mode: str):
    if name == "-":
        return _Unclosed(sys.stdin.buffer if "r" in mode else sys.stdout.buffer)
    try:
        return open(name, mode)
    except OSError as err:
        raise _Fatal(f"{PROGRAM}: {name}: {err.strerror or err}") from None


def _run(options: Options) -> None:
    if not options.infiles:
        with _open("-", "rb") as fin, _open(options.outfile or "-", "wb") as fout:
            _process_file(fin, fout, "stdin", options)
    elif options.outfile is None:
        for infile in options.infiles:
            outfile = make_outfilename(infile, options.outext)
            with _open(infile, "rb") as fin, _open(outfile, "wb") as fout:
                _process_file(fin, fout, infile, options)
    else:
        with _open(options.outfile, "wb") as fout:
            for infile in options.infiles:
                with _open(infile, "rb") as fin:
                    _process_file(fin, fout, infile, options)


def main(argv=None) -> int:
    """Run the converter on the command line ``argv``; return the exit status."""
    if argv is None:
        argv = sys.argv[1:]
    try:
        options = parse_options(argv)
    except UsageError as err:
        print(err, file=sys.stderr)
        return 1
    if options.action:
        print(_info_text(options.action))
        return 0
    try:
        _run(options)
    except _Fatal as err:
        print(err, file=sys.stderr)
        return 2
    return 0


if __name__ == "__main__":
    sys.exit(main())