"""Tests for the event loop, driven by a fake clock, input, provider and renderer."""

from __future__ import annotations

import curses
from dataclasses import dataclass, field
from datetime import datetime
from unittest.mock import MagicMock

import pytest

from sysdash.errors import ProviderError, RenderError
from sysdash.history import CpuSample, MemorySample, MetricHistory
from sysdash.keys import InputMapper, Modifier, RawInputEvent
from sysdash.loop import CursesInput, EventLoop
from sysdash.metrics import Snapshot
from sysdash.state import DashboardState, Tab

# ── Fakes ──────────────────────────────────────────────────────────────────


@dataclass
class FakeClock:
    now: int = 0

    def __call__(self) -> int:
        return self.now


@dataclass
class FakeInput:
    """Replays (time_ms, key) pairs, advancing the clock as a real poll would."""

    clock: FakeClock
    script: list[tuple[int, str]] = field(default_factory=lambda: [])
    polls: list[int] = field(default_factory=lambda: [])

    def poll(self, timeout_ms: int) -> RawInputEvent | None:
        self.polls.append(timeout_ms)
        deadline = self.clock.now + timeout_ms
        if self.script and self.script[0][0] <= deadline:
            t, key = self.script.pop(0)
            self.clock.now = max(self.clock.now, t)
            mods = Modifier.SHIFT if key == "backtab" else Modifier.NONE
            return RawInputEvent(key, mods, self.clock.now)
        self.clock.now = deadline
        return None


@dataclass
class FakeProvider:
    clock: FakeClock
    calls: int = 0
    fail_on: int | None = None

    def refresh(self) -> Snapshot:
        self.calls += 1
        if self.fail_on is not None and self.calls >= self.fail_on:
            raise ProviderError("sensor gone")
        return Snapshot(
            timestamp=datetime.fromtimestamp(1_700_000_000 + self.clock.now / 1000),
            cpu_percent=float(self.calls),
            memory_percent=50.0 + self.calls,
            memory_used=self.calls,
            memory_total=100,
        )


@dataclass
class FakeRenderer:
    frames: list[tuple[Tab, int, int, float]] = field(default_factory=lambda: [])
    fail: bool = False
    # Optional per-frame cost, charged to the clock
    clock: FakeClock | None = None
    frame_ms: int = 0

    def draw(
        self,
        state: DashboardState,
        cpu_history: MetricHistory[CpuSample],
        memory_history: MetricHistory[MemorySample],
        snapshot: Snapshot,
    ) -> None:
        if self.fail:
            raise RenderError("terminal gone")
        if self.clock is not None:
            self.clock.now += self.frame_ms
        self.frames.append(
            (state.active_tab, state.scroll_offset, len(cpu_history), snapshot.cpu_percent)
        )


def _loop(
    script: list[tuple[int, str]],
    interval: int = 1000,
    poll: int = 50,
    capacity: int = 60,
    debounce: int = 150,
) -> tuple[EventLoop, FakeClock, FakeInput, FakeProvider, FakeRenderer]:
    clock = FakeClock()
    inp = FakeInput(clock, list(script))
    provider = FakeProvider(clock)
    renderer = FakeRenderer()
    loop = EventLoop(
        state=DashboardState(),
        provider=provider,
        input_source=inp,
        renderer=renderer,
        mapper=InputMapper(window_ms=debounce),
        cpu_history=MetricHistory(capacity),
        memory_history=MetricHistory(capacity),
        refresh_interval_ms=interval,
        input_poll_ms=poll,
        clock=clock,
    )
    return loop, clock, inp, provider, renderer


# ── Basic flow ─────────────────────────────────────────────────────────────


class TestRun:
    def test_first_tick_is_immediate_and_quit_stops_without_render(self) -> None:
        loop, clock, _, provider, renderer = _loop([(120, "q")])
        stats = loop.run()
        # tick@0, idle@50, idle@100, quit@120
        assert stats.iterations == 4
        assert stats.ticks == 1
        assert provider.calls == 1
        assert len(renderer.frames) == 3
        assert clock.now == 120

    def test_render_sees_the_tick_result(self) -> None:
        loop, *_, renderer = _loop([(10, "q")])
        loop.run()
        assert renderer.frames[0] == (Tab.OVERVIEW, 0, 1, 1.0)

    def test_tick_cadence(self) -> None:
        loop, _, _, provider, _ = _loop([(1000, "q")], interval=100, capacity=3)
        stats = loop.run()
        assert stats.ticks == 10
        assert provider.calls == 10
        assert len(loop.cpu_history) == 3
        assert loop.cpu_history.values() == [8.0, 9.0, 10.0]
        assert loop.memory_history.values() == [58.0, 59.0, 60.0]

    def test_poll_timeout_capped_by_next_tick(self) -> None:
        loop, _, inp, _, _ = _loop([(200, "q")], interval=120, poll=50)
        loop.run()
        assert max(inp.polls) <= 50
        # 0 → tick; polls of 50, 50, then 20 to land exactly on the 120 ms tick
        assert inp.polls[:3] == [50, 50, 20]

    def test_late_tick_does_not_burst(self) -> None:
        loop, clock, _, provider, _ = _loop([], interval=100)
        loop.step()  # tick at 0
        clock.now = 1000  # stalled for ten periods
        loop.step()
        assert provider.calls == 2
        loop.step()  # next tick is at 1100, not immediately
        assert provider.calls == 2

    def test_quit_reaches_loop_when_frames_outlast_interval(self) -> None:
        loop, clock, inp, _, renderer = _loop([(5, "q")], interval=10)
        renderer.clock, renderer.frame_ms = clock, 15
        for _ in range(200):
            if not loop.step():
                break
        else:
            pytest.fail("loop never stopped")
        # tick@0, frame ends at 15 with the next tick overdue; key read first
        assert inp.polls == [0]
        assert loop.stats.ticks == 1
        assert loop.stats.iterations == 2

    def test_overdue_ticks_alternate_with_input_polls(self) -> None:
        loop, clock, inp, provider, renderer = _loop([], interval=10)
        renderer.clock, renderer.frame_ms = clock, 15
        for _ in range(20):
            assert loop.step() is True
        # Every iteration ticks, but none after the first skips the poll
        assert provider.calls == 20
        assert inp.polls == [0] * 19

    def test_step_returns_false_on_quit(self) -> None:
        loop, *_ = _loop([(5, "esc")])
        assert loop.step() is True  # tick
        assert loop.step() is False


# ── Input handling ─────────────────────────────────────────────────────────


class TestInput:
    def test_navigation_reaches_state(self) -> None:
        loop, *_, renderer = _loop([(10, "tab"), (20, "down"), (30, "down"), (40, "q")])
        loop.run()
        assert loop.state.active_tab is Tab.PROCESSES
        assert loop.state.scroll_offset == 2
        assert renderer.frames[-1][:2] == (Tab.PROCESSES, 2)

    def test_one_handling_per_iteration(self) -> None:
        # Tick is due at 0 and a key is waiting at 0: the tick goes first
        loop, *_, renderer = _loop([(0, "tab"), (60, "q")])
        loop.step()
        assert loop.state.active_tab is Tab.OVERVIEW
        assert loop.stats.ticks == 1 and loop.stats.events == 0
        loop.step()
        assert loop.state.active_tab is Tab.PROCESSES
        assert loop.stats.ticks == 1 and loop.stats.events == 1
        assert len(renderer.frames) == 2

    def test_key_repeat_is_debounced(self) -> None:
        script = [(10, "tab"), (40, "tab"), (70, "tab"), (100, "tab"), (300, "q")]
        loop, *_ = _loop(script)
        loop.run()
        assert loop.state.active_tab is Tab.PROCESSES

    def test_refresh_forces_snapshot(self) -> None:
        loop, _, _, provider, renderer = _loop([(10, "r"), (20, "q")])
        stats = loop.run()
        assert provider.calls == 2
        assert len(loop.cpu_history) == 2
        assert len(loop.memory_history) == 2
        assert stats.forced_refreshes == 1
        assert renderer.frames[-1][3] == 2.0

    def test_unmapped_key_still_renders(self) -> None:
        loop, *_, renderer = _loop([(10, "x"), (20, "q")])
        stats = loop.run()
        assert stats.events == 1  # only the quit
        assert len(renderer.frames) == 2

    def test_help_key(self) -> None:
        loop, *_ = _loop([(10, "h"), (20, "q")])
        loop.run()
        assert loop.state.active_tab is Tab.HELP


# ── Failures ───────────────────────────────────────────────────────────────


class TestFailures:
    def test_render_error_propagates(self) -> None:
        loop, *_, renderer = _loop([(10, "q")])
        renderer.fail = True
        with pytest.raises(RenderError):
            loop.run()

    def test_provider_error_propagates(self) -> None:
        loop, _, _, provider, _ = _loop([(5000, "q")], interval=100)
        provider.fail_on = 3
        with pytest.raises(ProviderError):
            loop.run()
        assert len(loop.cpu_history) == 2


# ── CursesInput ────────────────────────────────────────────────────────────


class TestCursesInput:
    def test_reads_key(self) -> None:
        scr = MagicMock()
        scr.getch.return_value = ord("q")
        event = CursesInput(scr, clock=lambda: 77).poll(50)
        assert event == RawInputEvent("q", Modifier.NONE, 77)
        scr.timeout.assert_called_once_with(50)

    def test_timeout_only_set_when_changed(self) -> None:
        scr = MagicMock()
        scr.getch.return_value = -1
        inp = CursesInput(scr, clock=lambda: 0)
        inp.poll(50)
        inp.poll(50)
        inp.poll(20)
        assert [c.args for c in scr.timeout.call_args_list] == [(50,), (20,)]

    def test_no_key_is_none(self) -> None:
        scr = MagicMock()
        scr.getch.return_value = -1
        assert CursesInput(scr).poll(10) is None

    def test_read_error_is_swallowed(self) -> None:
        scr = MagicMock()
        scr.getch.side_effect = curses.error("no input")
        assert CursesInput(scr).poll(10) is None

    def test_resize_clears_screen(self) -> None:
        scr = MagicMock()
        scr.getch.return_value = curses.KEY_RESIZE
        assert CursesInput(scr).poll(10) is None
        scr.clear.assert_called_once()

    def test_negative_timeout_clamped(self) -> None:
        scr = MagicMock()
        scr.getch.return_value = -1
        CursesInput(scr).poll(-5)
        scr.timeout.assert_called_once_with(0)
