"""Dashboard navigation state: the active tab and the process-list scroll.

``apply`` is a pure transition function; the event loop keeps the current
``DashboardState`` and replaces it with whatever ``apply`` returns.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from sysdash.config import Settings


class Tab(Enum):
    """Dashboard views, in tab-bar order."""

    OVERVIEW = "overview"
    PROCESSES = "processes"
    NETWORK = "network"
    HELP = "help"

    @property
    def index(self) -> int:
        return _TAB_ORDER.index(self)

    @property
    def title(self) -> str:
        return self.value.capitalize()

    @classmethod
    def from_index(cls, index: int) -> Tab:
        """Map any integer onto a tab, wrapping around modulo the tab count."""
        return _TAB_ORDER[index % len(_TAB_ORDER)]

    @classmethod
    def from_name(cls, name: str) -> Tab:
        try:
            return cls(name.strip().lower())
        except ValueError:
            valid = ", ".join(t.value for t in _TAB_ORDER)
            raise ValueError(f"unknown tab {name!r} (expected one of: {valid})") from None


_TAB_ORDER: tuple[Tab, ...] = (Tab.OVERVIEW, Tab.PROCESSES, Tab.NETWORK, Tab.HELP)
TAB_COUNT = len(_TAB_ORDER)


# ── Semantic actions ───────────────────────────────────────────────────────


class ActionKind(Enum):
    QUIT = "quit"
    NEXT_TAB = "next_tab"
    PREV_TAB = "prev_tab"
    GO_TO_TAB = "go_to_tab"
    SCROLL_UP = "scroll_up"
    SCROLL_DOWN = "scroll_down"
    REFRESH = "refresh"
    HELP = "help"


@dataclass(slots=True, frozen=True)
class Action:
    """A device-independent command. ``tab_index`` is only set for GO_TO_TAB."""

    kind: ActionKind
    tab_index: int | None = None

    @classmethod
    def go_to_tab(cls, index: int) -> Action:
        return cls(ActionKind.GO_TO_TAB, index)


QUIT = Action(ActionKind.QUIT)
NEXT_TAB = Action(ActionKind.NEXT_TAB)
PREV_TAB = Action(ActionKind.PREV_TAB)
SCROLL_UP = Action(ActionKind.SCROLL_UP)
SCROLL_DOWN = Action(ActionKind.SCROLL_DOWN)
REFRESH = Action(ActionKind.REFRESH)
HELP = Action(ActionKind.HELP)


# ── State machine ──────────────────────────────────────────────────────────

_STATUS_HINTS: dict[Tab, str] = {
    Tab.OVERVIEW: "Tab: Switch tabs | r: Refresh | q: Quit",
    Tab.PROCESSES: "↑↓: Scroll | Tab: Switch tabs | r: Refresh | q: Quit",
    Tab.NETWORK: "Tab: Switch tabs | r: Refresh | q: Quit",
    Tab.HELP: "Tab: Switch tabs | q: Quit",
}


@dataclass(slots=True, frozen=True)
class DashboardState:
    active_tab: Tab = Tab.OVERVIEW
    # Only meaningful on the Processes tab; the renderer clamps the upper end
    scroll_offset: int = 0
    settings: Settings | None = None

    @classmethod
    def initial(cls, settings: Settings) -> DashboardState:
        return cls(active_tab=settings.initial_tab, scroll_offset=0, settings=settings)

    def status_hint(self) -> str:
        return _STATUS_HINTS[self.active_tab]

    def apply(self, action: Action) -> DashboardState:
        return apply(self, action)


def _switch(state: DashboardState, tab: Tab) -> DashboardState:
    return replace(state, active_tab=tab, scroll_offset=0)


def apply(state: DashboardState, action: Action) -> DashboardState:
    """Return the state that results from applying *action* to *state*.

    QUIT and REFRESH leave the state untouched; the event loop acts on them.
    """
    kind = action.kind
    current = state.active_tab.index

    if kind is ActionKind.NEXT_TAB:
        return _switch(state, Tab.from_index(current + 1))
    if kind is ActionKind.PREV_TAB:
        return _switch(state, Tab.from_index(current - 1 + TAB_COUNT))
    if kind is ActionKind.GO_TO_TAB:
        return _switch(state, Tab.from_index(action.tab_index or 0))
    if kind is ActionKind.HELP:
        return replace(state, active_tab=Tab.HELP)

    if state.active_tab is not Tab.PROCESSES:
        return state
    if kind is ActionKind.SCROLL_UP:
        return replace(state, scroll_offset=max(state.scroll_offset - 1, 0))
    if kind is ActionKind.SCROLL_DOWN:
        return replace(state, scroll_offset=state.scroll_offset + 1)
    return state
