"""Progress bars drawn on a terminal stream."""

from __future__ import annotations

import math
import sys
from typing import Optional, TextIO

from .progress import Progress

_COL0 = "\033[G"
_TICKS = 40


def status_label(filename: str, count: int) -> str:
    """Return the label shown before a progress bar.

    Later pages of a multi-page input are labelled by page number; otherwise
    the base name of ``filename`` is used, shortened to 20 characters.
    """
    if count != 0:
        return f" (p.{count + 1}):"
    name = filename.rsplit("/", 1)[-1]
    if len(name) > 20:
        name = name[:17] + "..."
    return name + ":"


class _Bar:
    def __init__(self, stream: Optional[TextIO]) -> None:
        self.stream = stream if stream is not None else sys.stderr
        self.dnext = 0.0

    def progress(self) -> Progress:
        """Return a progress object that reports to this bar."""
        return Progress(callback=self, low=0.0, high=1.0, epsilon=0.0)

    def __enter__(self):
        return self

    def __exit__(self, *exc) -> None:
        self.close()


class VT100ProgressBar(_Bar):
    """A progress bar redrawn in place with terminal control codes."""

    def __init__(self, filename: str, count: int = 0, stream: Optional[TextIO] = None) -> None:
        super().__init__(stream)
        self.name = status_label(filename, count)
        self(0.0)

    def __call__(self, d: float) -> None:
        if d < self.dnext:
            return
        tick = math.floor(d * _TICKS + 0.01)
        perc = math.floor(d * 100 + 0.025)
        bar = "=" * min(max(tick, 0), _TICKS)
        self.stream.write(f"{self.name:<21} |{bar:<40}| {perc}% {_COL0}")
        self.stream.flush()
        self.dnext = (tick + 0.995) / _TICKS

    def close(self) -> None:
        """Finish the bar and move to the next line."""
        self.stream.write("\n")
        self.stream.flush()


class SimplifiedProgressBar(_Bar):
    """A progress bar for dumb terminals that only ever appends characters."""

    def __init__(self, filename: str, count: int = 0, stream: Optional[TextIO] = None) -> None:
        super().__init__(stream)
        self.ticks = 0
        self.stream.write(f"{status_label(filename, count):<21} |")
        self(0.0)

    def __call__(self, d: float) -> None:
        if d < self.dnext:
            return
        tick = math.floor(d * _TICKS + 0.01)
        if tick > self.ticks:
            self.stream.write("=" * (tick - self.ticks))
            self.ticks = tick
        self.stream.flush()
        self.dnext = (tick + 0.995) / _TICKS

    def close(self) -> None:
        """Complete the bar to 100% and end the line."""
        self(1.0)
        self.stream.write("| 100%\n")
        self.stream.flush()