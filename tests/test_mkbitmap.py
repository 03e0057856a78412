import io

import numpy as np
import pytest
from PIL import Image

from bitrace.bitmap import Bitmap
from bitrace.mkbitmap import (
    EmptyFileError,
    FileFormatError,
    InputWarning,
    Options,
    UnrecognizedFormatError,
    UsageError,
    highpass,
    interpolate_cubic,
    interpolate_linear,
    lowpass,
    main,
    make_outfilename,
    parse_options,
    process_image,
    read_images,
    threshold,
    write_pbm,
    write_pgm,
)


def _pgm_bytes(rows):
    arr = np.asarray(rows, dtype=np.uint8)
    h, w = arr.shape
    return f"P5\n{w} {h}\n255\n".encode() + arr.tobytes()


# --- file names -----------------------------------------------------------


def test_make_outfilename_replaces_extension():
    assert make_outfilename("scan.pgm", ".pbm") == "scan.pbm"


def test_make_outfilename_stdin():
    assert make_outfilename("-", ".pbm") == "-"


def test_make_outfilename_same_name_gets_suffix():
    assert make_outfilename("scan.pbm", ".pbm") == "scan.pbm-out"


def test_make_outfilename_without_extension():
    assert make_outfilename("scan", ".pgm") == "scan.pgm"


# --- options --------------------------------------------------------------


def test_parse_defaults():
    o = parse_options([])
    assert o.scale == 2
    assert o.level == 0.45
    assert o.highpass_radius == 4
    assert o.highpass and o.bilevel and not o.linear and not o.invert
    assert o.outext == ".pbm"
    assert o.infiles == []


def test_parse_reset():
    o = parse_options(["-x"])
    assert o.scale == 1
    assert not o.bilevel and not o.highpass
    assert o.outext == ".pgm"


@pytest.mark.parametrize("text,value", [("0x3", 3), ("07", 7), ("5", 5)])
def test_parse_scale_bases(text, value):
    assert parse_options(["-s", text]).scale == value


@pytest.mark.parametrize(
    "argv",
    [["-s", "0"], ["-s", "abc"], ["-t", "-1"], ["-f", "x"], ["-b", "1.5y"], ["-q"]],
)
def test_parse_invalid(argv):
    with pytest.raises(UsageError):
        parse_options(argv)


def test_parse_help_action():
    assert parse_options(["--help"]).action == "help"


def test_parse_grey_then_threshold_restores_bilevel():
    o = parse_options(["-g", "-t", "0.3"])
    assert o.bilevel
    assert o.level == 0.3
    assert o.outext == ".pbm"


def test_parse_permuted_arguments_and_long_options():
    o = parse_options(["a.pgm", "--invert", "--linear", "-o", "out.pbm"])
    assert o.infiles == ["a.pgm"]
    assert o.invert and o.linear
    assert o.outfile == "out.pbm"


# --- filters --------------------------------------------------------------


def test_threshold_sets_dark_pixels():
    bm = threshold(np.array([[0.0, 255.0]]), 0.5)
    assert bm.width == 2 and bm.height == 1
    assert bm.get(0, 0) is True
    assert bm.get(1, 0) is False


def test_lowpass_zeros_stay_zero_and_input_untouched():
    gm = np.zeros((4, 5))
    out = lowpass(gm, 2.0)
    assert out.shape == (4, 5)
    assert np.all(out == 0)


def test_lowpass_spreads_spike():
    gm = np.zeros((9, 9))
    gm[4, 4] = 255.0
    out = lowpass(gm, 2.0)
    assert gm[4, 4] == 255.0
    assert out.max() < 255.0
    assert out.min() >= 0.0
    assert out[4, 3] > 0.0 and out[3, 4] > 0.0


def test_lowpass_empty():
    assert lowpass(np.zeros((0, 3)), 2.0).shape == (0, 3)


def test_highpass_of_black_is_mid_grey():
    out = highpass(np.zeros((3, 3)), 4.0)
    assert np.allclose(out, 128.0)


# --- interpolation --------------------------------------------------------


@pytest.mark.parametrize("interp", [interpolate_linear, interpolate_cubic])
def test_interpolation_keeps_grid_samples(interp):
    rng = np.random.default_rng(1)
    gm = rng.integers(0, 256, size=(3, 4)).astype(float)
    out = interp(gm, 3, False, 0.45)
    assert out.shape == (9, 12)
    assert np.allclose(out[::3, ::3], gm)


@pytest.mark.parametrize("interp", [interpolate_linear, interpolate_cubic])
def test_interpolation_of_constant_is_constant(interp):
    gm = np.full((3, 3), 77.0)
    assert np.allclose(interp(gm, 4, False, 0.45), 77.0)


@pytest.mark.parametrize("interp", [interpolate_linear, interpolate_cubic])
def test_interpolation_bilevel(interp):
    dark = interp(np.zeros((2, 3)), 2, True, 0.45)
    light = interp(np.full((2, 3), 255.0), 2, True, 0.45)
    assert (dark.width, dark.height) == (6, 4)
    assert dark.pixels.all()
    assert not light.pixels.any()


def test_interpolation_rejects_bad_scale():
    with pytest.raises(ValueError):
        interpolate_linear(np.zeros((2, 2)), 0, False, 0.45)


def test_process_image_invert_only():
    gm = np.array([[0.0, 100.0], [200.0, 255.0]])
    opts = Options(highpass=False, scale=1, bilevel=False, invert=True)
    assert np.allclose(process_image(gm, opts), 255 - gm)


def test_process_image_default_doubles_size():
    result = process_image(np.zeros((3, 5)), Options())
    assert isinstance(result, Bitmap)
    assert (result.width, result.height) == (10, 6)


# --- input and output -----------------------------------------------------


def test_write_pbm_bytes():
    buf = io.BytesIO()
    write_pbm(buf, Bitmap.from_array([[True, False, False]]))
    assert buf.getvalue() == b"P4\n3 1\n\x80"


def test_pbm_round_trip():
    bits = np.array([[True, False, True], [False, False, True]])
    buf = io.BytesIO()
    write_pbm(buf, Bitmap.from_array(bits))
    buf.seek(0)
    (gm,) = list(read_images(buf))
    assert np.array_equal(gm == 0, bits)


def test_pgm_round_trip():
    gm = np.array([[0.0, 17.0, 255.0], [128.0, 64.0, 3.0]])
    buf = io.BytesIO()
    write_pgm(buf, gm)
    buf.seek(0)
    (back,) = list(read_images(buf))
    assert np.array_equal(back, gm)


def test_plain_pbm():
    (gm,) = list(read_images(io.BytesIO(b"P1\n2 1\n1 0\n")))
    assert gm[0].tolist() == [0.0, 255.0]


def test_rows_are_stored_bottom_first():
    (gm,) = list(read_images(io.BytesIO(b"P2\n1 2\n255\n10\n20\n")))
    assert gm[0, 0] == 20.0
    assert gm[1, 0] == 10.0


def test_plain_pgm_maxval_scaling():
    (gm,) = list(read_images(io.BytesIO(b"P2 1 1 1 1\n")))
    assert gm[0, 0] == 255.0


def test_ppm_grey_pixel():
    (gm,) = list(read_images(io.BytesIO(b"P6\n1 1\n255\n" + bytes([50, 50, 50]))))
    assert gm[0, 0] == 50.0


def test_empty_input():
    with pytest.raises(EmptyFileError):
        list(read_images(io.BytesIO(b"")))


def test_unrecognized_input():
    with pytest.raises(UnrecognizedFormatError):
        list(read_images(io.BytesIO(b"hello")))


def test_bad_maxval():
    with pytest.raises(FileFormatError):
        list(read_images(io.BytesIO(b"P2 1 1 0 0\n")))


def test_two_images_in_one_stream():
    data = _pgm_bytes([[1, 2]]) + _pgm_bytes([[3], [4]])
    images = list(read_images(io.BytesIO(data)))
    assert [im.shape for im in images] == [(1, 2), (2, 1)]


def test_junk_at_end_warns():
    data = _pgm_bytes([[1, 2]]) + b"junk"
    with pytest.warns(InputWarning):
        images = list(read_images(io.BytesIO(data)))
    assert len(images) == 1


def test_truncated_image_warns():
    data = b"P5\n2 2\n255\n" + bytes([9, 9])
    with pytest.warns(InputWarning):
        (gm,) = list(read_images(io.BytesIO(data)))
    assert gm.shape == (2, 2)
    assert gm[1].tolist() == [9.0, 9.0]


def test_bmp_input():
    img = Image.new("L", (3, 2))
    img.putdata([0, 100, 200, 50, 150, 250])
    buf = io.BytesIO()
    img.save(buf, format="BMP")
    buf.seek(0)
    (gm,) = list(read_images(buf))
    assert np.array_equal(gm[::-1], np.asarray(img, dtype=float))


# --- command line ---------------------------------------------------------


def test_main_identity_conversion(tmp_path):
    src = tmp_path / "in.pgm"
    dst = tmp_path / "out.pgm"
    data = _pgm_bytes([[0, 10, 20], [30, 40, 250]])
    src.write_bytes(data)
    assert main(["-x", str(src), "-o", str(dst)]) == 0
    assert dst.read_bytes() == data


def test_main_default_writes_pbm_next_to_input(tmp_path):
    src = tmp_path / "page.pgm"
    src.write_bytes(_pgm_bytes([[0, 255, 0], [255, 0, 255]]))
    assert main([str(src)]) == 0
    out = (tmp_path / "page.pbm").read_bytes()
    assert out.startswith(b"P4\n6 4\n")


def test_main_version(capsys):
    assert main(["--version"]) == 0
    assert "1.16" in capsys.readouterr().out


def test_main_missing_file(tmp_path, capsys):
    assert main([str(tmp_path / "missing.pgm")]) == 2
    assert "mkbitmap" in capsys.readouterr().err


def test_main_empty_file(tmp_path, capsys):
    src = tmp_path / "empty.pgm"
    src.write_bytes(b"")
    assert main([str(src), "-o", str(tmp_path / "o.pbm")]) == 2
    assert "empty file" in capsys.readouterr().err


def test_main_invalid_option(capsys):
    assert main(["-s", "0"]) == 1
    assert "invalid scaling factor" in capsys.readouterr().err


def test_main_reports_junk(tmp_path, capsys):
    src = tmp_path / "in.pgm"
    src.write_bytes(_pgm_bytes([[5]]) + b"junk")
    assert main(["-x", str(src), "-o", str(tmp_path / "o.pgm")]) == 0
    assert "junk at end of file" in capsys.readouterr().err