"""Tests for the tab/scroll state machine."""

from __future__ import annotations

import pytest

from sysdash.config import Settings
from sysdash.state import (
    HELP,
    NEXT_TAB,
    PREV_TAB,
    QUIT,
    REFRESH,
    SCROLL_DOWN,
    SCROLL_UP,
    Action,
    DashboardState,
    Tab,
    apply,
)

# ── Tab ordinals ───────────────────────────────────────────────────────────


class TestTab:
    @pytest.mark.parametrize(
        ("tab", "index"),
        [
            (Tab.OVERVIEW, 0),
            (Tab.PROCESSES, 1),
            (Tab.NETWORK, 2),
            (Tab.HELP, 3),
        ],
    )
    def test_index_roundtrip(self, tab: Tab, index: int) -> None:
        assert tab.index == index
        assert Tab.from_index(index) is tab

    def test_from_index_wraps(self) -> None:
        assert Tab.from_index(4) is Tab.OVERVIEW
        assert Tab.from_index(-1) is Tab.HELP
        assert Tab.from_index(9) is Tab.PROCESSES

    def test_from_name(self) -> None:
        assert Tab.from_name(" Processes ") is Tab.PROCESSES

    def test_from_name_unknown(self) -> None:
        with pytest.raises(ValueError, match="unknown tab"):
            Tab.from_name("graphs")


# ── Tab cycling ────────────────────────────────────────────────────────────


class TestTabCycling:
    def test_three_nexts_reach_help_then_wrap(self) -> None:
        state = DashboardState()
        for _ in range(3):
            state = apply(state, NEXT_TAB)
        assert state.active_tab is Tab.HELP
        state = apply(state, NEXT_TAB)
        assert state.active_tab is Tab.OVERVIEW

    @pytest.mark.parametrize("start", list(Tab))
    def test_four_nexts_is_identity(self, start: Tab) -> None:
        state = DashboardState(active_tab=start)
        for _ in range(4):
            state = apply(state, NEXT_TAB)
        assert state.active_tab is start

    @pytest.mark.parametrize("start", list(Tab))
    def test_next_then_prev_is_identity(self, start: Tab) -> None:
        state = DashboardState(active_tab=start, scroll_offset=3)
        moved = apply(state, NEXT_TAB)
        assert moved.scroll_offset == 0
        back = apply(moved, PREV_TAB)
        assert back.active_tab is start
        assert back.scroll_offset == 0

    def test_prev_from_overview_wraps_to_help(self) -> None:
        assert apply(DashboardState(), PREV_TAB).active_tab is Tab.HELP

    def test_go_to_tab(self) -> None:
        state = DashboardState(active_tab=Tab.PROCESSES, scroll_offset=7)
        moved = apply(state, Action.go_to_tab(2))
        assert moved.active_tab is Tab.NETWORK
        assert moved.scroll_offset == 0

    def test_go_to_tab_wraps(self) -> None:
        assert apply(DashboardState(), Action.go_to_tab(5)).active_tab is Tab.PROCESSES

    def test_help_jumps_to_help(self) -> None:
        state = DashboardState(active_tab=Tab.NETWORK)
        assert apply(state, HELP).active_tab is Tab.HELP


# ── Scrolling ──────────────────────────────────────────────────────────────


class TestScroll:
    def test_scroll_up_saturates_at_zero(self) -> None:
        state = DashboardState(active_tab=Tab.PROCESSES, scroll_offset=5)
        state = apply(state, SCROLL_UP)
        assert state.scroll_offset == 4
        for _ in range(4):
            state = apply(state, SCROLL_UP)
        assert state.scroll_offset == 0
        state = apply(state, SCROLL_UP)
        assert state.scroll_offset == 0

    def test_scroll_down_is_unclamped(self) -> None:
        state = DashboardState(active_tab=Tab.PROCESSES)
        for _ in range(500):
            state = apply(state, SCROLL_DOWN)
        assert state.scroll_offset == 500

    @pytest.mark.parametrize("tab", [Tab.OVERVIEW, Tab.NETWORK, Tab.HELP])
    @pytest.mark.parametrize("action", [SCROLL_UP, SCROLL_DOWN])
    def test_scroll_ignored_outside_processes(self, tab: Tab, action: Action) -> None:
        state = DashboardState(active_tab=tab, scroll_offset=2)
        assert apply(state, action) == state


# ── Signals and construction ───────────────────────────────────────────────


class TestMisc:
    @pytest.mark.parametrize("action", [QUIT, REFRESH])
    def test_signals_do_not_change_state(self, action: Action) -> None:
        state = DashboardState(active_tab=Tab.PROCESSES, scroll_offset=4)
        assert apply(state, action) is state

    def test_apply_does_not_mutate(self) -> None:
        state = DashboardState()
        apply(state, NEXT_TAB)
        assert state.active_tab is Tab.OVERVIEW

    def test_method_form(self) -> None:
        assert DashboardState().apply(NEXT_TAB).active_tab is Tab.PROCESSES

    def test_initial_uses_settings(self) -> None:
        settings = Settings.from_config({"dashboard": {"initial_tab": "network"}})
        state = DashboardState.initial(settings)
        assert state.active_tab is Tab.NETWORK
        assert state.scroll_offset == 0
        assert state.settings is settings

    def test_status_hint_mentions_scroll_on_processes(self) -> None:
        assert "Scroll" in DashboardState(active_tab=Tab.PROCESSES).status_hint()
        assert "Scroll" not in DashboardState().status_hint()
