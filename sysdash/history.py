"""Bounded metric history used for the dashboard charts.

Each metric kind (CPU, memory) keeps one ``MetricHistory``: a FIFO window of
the most recent samples. Pushing past the capacity drops the oldest sample,
so memory stays flat however long the dashboard runs.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterator
from dataclasses import dataclass
from datetime import datetime
from typing import Generic, TypeVar


@dataclass(slots=True, frozen=True)
class MetricSample:
    """One reading of a metric at a point in time."""

    timestamp: datetime
    value: float


@dataclass(slots=True, frozen=True)
class CpuSample(MetricSample):
    """Global CPU usage (``value``, percent) plus the current frequency."""

    frequency_mhz: float = 0.0


@dataclass(slots=True, frozen=True)
class MemorySample(MetricSample):
    """Memory usage (``value``, percent) plus the raw byte counts."""

    used: int = 0
    total: int = 0


S = TypeVar("S", bound=MetricSample)


class MetricHistory(Generic[S]):
    """Fixed-capacity, insertion-ordered series of samples (oldest first)."""

    def __init__(self, capacity: int) -> None:
        _check_capacity(capacity)
        self._capacity = capacity
        self._samples: deque[S] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._capacity

    def push(self, sample: S) -> None:
        """Append *sample*, evicting the oldest one if the window is full."""
        self._samples.append(sample)

    def set_capacity(self, capacity: int) -> None:
        """Change the window size.

        Shrinking drops the oldest samples until ``len(self) == capacity``;
        growing only raises the ceiling.
        """
        _check_capacity(capacity)
        if capacity == self._capacity:
            return
        # deque(iterable, maxlen) keeps the rightmost (newest) items
        self._samples = deque(self._samples, maxlen=capacity)
        self._capacity = capacity

    def __iter__(self) -> Iterator[S]:
        return iter(tuple(self._samples))

    def iter(self) -> Iterator[S]:
        """Iterate oldest-to-newest over a stable copy of the window."""
        return iter(self)

    def __len__(self) -> int:
        return len(self._samples)

    def is_empty(self) -> bool:
        return not self._samples

    def latest(self) -> S | None:
        """Return the newest sample, or None if nothing was pushed yet."""
        return self._samples[-1] if self._samples else None

    def values(self) -> list[float]:
        return [s.value for s in self._samples]

    def __repr__(self) -> str:
        return f"MetricHistory(len={len(self)}, capacity={self._capacity})"


def _check_capacity(capacity: int) -> None:
    if capacity < 1:
        raise ValueError(f"history capacity must be >= 1, got {capacity}")
