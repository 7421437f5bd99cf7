"""The dashboard's cooperative event loop.

One iteration handles exactly one of three outcomes and then renders once:

* the refresh tick is due → take a snapshot, append to both histories;
* a key arrives within the poll timeout → map it and apply it to the state;
* neither → nothing to handle (the redraw keeps the clock and gauges live).

The input poll timeout is capped by the time left until the next tick, so a
tick is never delayed by waiting for keys and a redraw happens at least every
``input_poll_ms`` even when the keyboard is idle. Two overdue ticks in a row
are separated by a zero-timeout poll, so keys still get through when frames
take longer than the refresh interval.
"""

from __future__ import annotations

import curses
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol

from sysdash.history import CpuSample, MemorySample, MetricHistory
from sysdash.keys import InputMapper, RawInputEvent, from_curses
from sysdash.metrics import Snapshot
from sysdash.state import ActionKind, DashboardState

logger = logging.getLogger(__name__)


def monotonic_ms() -> int:
    return time.monotonic_ns() // 1_000_000


# ── Collaborator interfaces ────────────────────────────────────────────────


class InputSource(Protocol):
    def poll(self, timeout_ms: int) -> RawInputEvent | None:
        """Return the next key event, or None once *timeout_ms* has elapsed."""


class SnapshotProvider(Protocol):
    def refresh(self) -> Snapshot: ...


class FrameRenderer(Protocol):
    def draw(
        self,
        state: DashboardState,
        cpu_history: MetricHistory[CpuSample],
        memory_history: MetricHistory[MemorySample],
        snapshot: Snapshot,
    ) -> None: ...


# ── curses input ───────────────────────────────────────────────────────────


class CursesInput:
    """Polls a curses window for keys with a bounded timeout."""

    def __init__(self, stdscr: Any, clock: Callable[[], int] = monotonic_ms) -> None:
        self._scr = stdscr
        self._clock = clock
        self._timeout: int | None = None

    def poll(self, timeout_ms: int) -> RawInputEvent | None:
        timeout_ms = max(0, timeout_ms)
        try:
            if timeout_ms != self._timeout:
                self._scr.timeout(timeout_ms)
                self._timeout = timeout_ms
            code = self._scr.getch()
        except curses.error as e:
            # A failed read is treated as no input
            logger.debug("Input poll failed: %s", e)
            return None
        if code == curses.KEY_RESIZE:
            self._scr.clear()
            return None
        return from_curses(code, self._clock())


# ── Loop ───────────────────────────────────────────────────────────────────


@dataclass
class LoopStats:
    iterations: int = 0
    ticks: int = 0
    events: int = 0
    forced_refreshes: int = 0


class EventLoop:
    """Owns the dashboard state and both histories for the session."""

    def __init__(
        self,
        state: DashboardState,
        provider: SnapshotProvider,
        input_source: InputSource,
        renderer: FrameRenderer,
        mapper: InputMapper,
        cpu_history: MetricHistory[CpuSample],
        memory_history: MetricHistory[MemorySample],
        refresh_interval_ms: int = 1000,
        input_poll_ms: int = 50,
        clock: Callable[[], int] = monotonic_ms,
    ) -> None:
        self.state = state
        self.cpu_history = cpu_history
        self.memory_history = memory_history
        self.snapshot = Snapshot.empty()
        self.stats = LoopStats()
        self._provider = provider
        self._input = input_source
        self._renderer = renderer
        self._mapper = mapper
        self._interval_ms = refresh_interval_ms
        self._poll_ms = input_poll_ms
        self._clock = clock
        self._next_tick_ms: int | None = None
        self._ticked_last = False

    def run(self) -> LoopStats:
        """Run until a quit action arrives.

        Raises:
            RenderError: If drawing a frame fails.
            ProviderError: If collecting metrics fails.
        """
        logger.info(
            "Event loop starting (refresh %d ms, input poll %d ms)",
            self._interval_ms,
            self._poll_ms,
        )
        self._next_tick_ms = self._clock()
        while self.step():
            pass
        logger.info(
            "Event loop stopped after %d iterations (%d ticks, %d events)",
            self.stats.iterations,
            self.stats.ticks,
            self.stats.events,
        )
        return self.stats

    def step(self) -> bool:
        """Run one iteration. Returns False when the loop should stop."""
        if self._next_tick_ms is None:
            self._next_tick_ms = self._clock()
        self.stats.iterations += 1
        ticked_last, self._ticked_last = self._ticked_last, False

        remaining = self._next_tick_ms - self._clock()
        if remaining <= 0 and not ticked_last:
            self._tick()
        elif remaining <= 0:
            # Tick overdue again: drain one pending key first so a slow frame
            # can't lock out input
            event = self._input.poll(0)
            if event is not None:
                if not self._handle_event(event):
                    return False
            else:
                self._tick()
        else:
            event = self._input.poll(min(self._poll_ms, remaining))
            if event is not None:
                if not self._handle_event(event):
                    return False
            elif self._clock() >= self._next_tick_ms:
                self._tick()

        self._renderer.draw(self.state, self.cpu_history, self.memory_history, self.snapshot)
        return True

    def _tick(self) -> None:
        self._take_snapshot()
        self.stats.ticks += 1
        self._ticked_last = True
        now = self._clock()
        next_tick = (self._next_tick_ms or now) + self._interval_ms
        if next_tick <= now:
            # Fell behind; skip the missed ticks instead of bursting
            next_tick = now + self._interval_ms
        self._next_tick_ms = next_tick

    def _take_snapshot(self) -> None:
        self.snapshot = self._provider.refresh()
        self.cpu_history.push(self.snapshot.cpu_sample())
        self.memory_history.push(self.snapshot.memory_sample())

    def _handle_event(self, event: RawInputEvent) -> bool:
        action = self._mapper.map(event)
        if action is None:
            return True
        self.stats.events += 1
        if action.kind is ActionKind.QUIT:
            logger.info("Quit requested")
            return False
        if action.kind is ActionKind.REFRESH:
            logger.debug("Forced refresh")
            self.stats.forced_refreshes += 1
            self._take_snapshot()
            return True
        self.state = self.state.apply(action)
        return True
