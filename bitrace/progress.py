"""Progress reporting with nested subranges."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

ProgressCallback = Callable[[float], None]


@dataclass
class Progress:
    """Reports progress in [low, high] to a callback.

    Updates smaller than ``epsilon`` since the last report are skipped, except
    for the final update at 1.0.
    """

    callback: Optional[ProgressCallback] = None
    low: float = 0.0
    high: float = 1.0
    epsilon: float = 0.0
    d_prev: Optional[float] = None
    b: float = 0.0

    def __post_init__(self) -> None:
        if self.d_prev is None:
            self.d_prev = self.low

    def _scale(self, d: float) -> float:
        return self.low * (1 - d) + self.high * d

    def update(self, d: float) -> None:
        """Report progress ``d`` given in the range 0.0 to 1.0."""
        if self.callback is None:
            return
        d_scaled = self._scale(d)
        if d == 1.0 or d_scaled >= self.d_prev + self.epsilon:
            self.callback(d_scaled)
            self.d_prev = d_scaled

    def subrange(self, a: float, b: float) -> Progress:
        """Return a progress object covering the part [a, b] of this one."""
        if self.callback is None:
            return Progress()
        low = self._scale(a)
        high = self._scale(b)
        if high - low < self.epsilon:
            return Progress(b=b)
        return Progress(
            callback=self.callback,
            low=low,
            high=high,
            epsilon=self.epsilon,
            d_prev=self.d_prev,
        )

    def end_subrange(self, sub: Progress) -> None:
        """Finish a subrange obtained from :meth:`subrange`."""
        if self.callback is None:
            return
        if sub.callback is None:
            self.update(sub.b)
        else:
            self.d_prev = sub.d_prev