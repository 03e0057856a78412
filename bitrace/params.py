"""Tracing parameters and status codes."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field

from .progress import Progress

VERSION = "1.16"


class TurnPolicy(enum.IntEnum):
    """How ambiguous turns are resolved when decomposing a bitmap into paths."""

    BLACK = 0
    WHITE = 1
    LEFT = 2
    RIGHT = 3
    MINORITY = 4
    MAJORITY = 5
    RANDOM = 6


class TraceStatus(enum.IntEnum):
    """Outcome of a trace."""

    OK = 0
    INCOMPLETE = 1


@dataclass
class Params:
    """Parameters that control tracing."""

    turdsize: int = 2
    turnpolicy: TurnPolicy = TurnPolicy.MINORITY
    alphamax: float = 1.0
    opticurve: bool = True
    opttolerance: float = 0.2
    progress: Progress = field(default_factory=Progress)


def default_params() -> Params:
    """Return a fresh set of default parameters."""
    return Params()


def version() -> str:
    """Return a plain-text version string for the tracing library."""
    return f"bitrace {VERSION}"