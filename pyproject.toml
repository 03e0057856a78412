[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "bitrace"
version = "1.16.0"
description = "Bitmap preparation and curve fitting: greymap filtering, scaling and thresholding, and fitting Bezier curves to closed lattice paths."
requires-python = ">=3.10"
keywords = ["tracing", "vectorization", "bitmap", "greymap", "bezier", "pbm", "pgm"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: End Users/Desktop",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Multimedia :: Graphics :: Graphics Conversion",
    "Topic :: Scientific/Engineering :: Image Processing",
]
dependencies = [
    "numpy",
    "pillow",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
mkbitmap = "bitrace.mkbitmap:main"

[tool.hatch.build.targets.wheel]
packages = ["bitrace"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
