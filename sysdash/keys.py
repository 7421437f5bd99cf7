"""Keyboard mapping: raw key events → semantic actions.

Two tables drive everything here:

* ``KEY_BINDINGS`` maps ``(key, modifiers)`` to an ``Action``;
* ``DEBOUNCE_CLASSES`` names the action kinds that share a debounce guard.

Terminal key-repeat delivers a burst of events per physical press. Tab
switches are debounced so the view does not flicker; scrolling is not, so it
stays responsive.
"""

from __future__ import annotations

import curses
import logging
from dataclasses import dataclass, field
from enum import Flag, auto

from sysdash.state import (
    HELP,
    NEXT_TAB,
    PREV_TAB,
    QUIT,
    REFRESH,
    SCROLL_DOWN,
    SCROLL_UP,
    Action,
    ActionKind,
)

logger = logging.getLogger(__name__)


class Modifier(Flag):
    NONE = 0
    SHIFT = auto()
    CTRL = auto()
    ALT = auto()


@dataclass(slots=True, frozen=True)
class RawInputEvent:
    """A key press as reported by the input source."""

    key: str
    modifiers: Modifier = Modifier.NONE
    timestamp_ms: int = 0


# ── Mapping table ──────────────────────────────────────────────────────────

KEY_BINDINGS: dict[tuple[str, Modifier], Action] = {
    ("q", Modifier.NONE): QUIT,
    ("c", Modifier.CTRL): QUIT,
    ("esc", Modifier.NONE): QUIT,
    ("tab", Modifier.NONE): NEXT_TAB,
    ("backtab", Modifier.SHIFT): PREV_TAB,
    # curses reports Shift+Tab as KEY_BTAB with no modifier information
    ("backtab", Modifier.NONE): PREV_TAB,
    ("1", Modifier.NONE): Action.go_to_tab(0),
    ("2", Modifier.NONE): Action.go_to_tab(1),
    ("3", Modifier.NONE): Action.go_to_tab(2),
    ("4", Modifier.NONE): Action.go_to_tab(3),
    ("up", Modifier.NONE): SCROLL_UP,
    ("down", Modifier.NONE): SCROLL_DOWN,
    ("r", Modifier.NONE): REFRESH,
    ("h", Modifier.NONE): HELP,
}


def lookup(event: RawInputEvent) -> Action | None:
    """Pure table lookup, ignoring timing."""
    return KEY_BINDINGS.get((event.key, event.modifiers))


# ── Debounce policy ────────────────────────────────────────────────────────

TAB_SWITCH = "tab"

DEBOUNCE_CLASSES: dict[ActionKind, str] = {
    ActionKind.NEXT_TAB: TAB_SWITCH,
    ActionKind.PREV_TAB: TAB_SWITCH,
    ActionKind.GO_TO_TAB: TAB_SWITCH,
}

DEFAULT_DEBOUNCE_MS = 150


@dataclass(slots=True)
class DebounceGuard:
    """Remembers when an action class last fired."""

    window_ms: int
    last_trigger_ms: int | None = None

    def allow(self, now_ms: int) -> bool:
        """Record and allow a trigger at *now_ms*, or reject it.

        A rejected trigger does not move the window.
        """
        if self.last_trigger_ms is not None and now_ms - self.last_trigger_ms < self.window_ms:
            return False
        self.last_trigger_ms = now_ms
        return True


@dataclass
class InputMapper:
    """Turns raw key events into actions, applying the debounce policy."""

    window_ms: int = DEFAULT_DEBOUNCE_MS
    guards: dict[str, DebounceGuard] = field(default_factory=lambda: {})

    def map(self, event: RawInputEvent) -> Action | None:
        action = lookup(event)
        if action is None:
            return None

        klass = DEBOUNCE_CLASSES.get(action.kind)
        if klass is None:
            return action

        guard = self.guards.setdefault(klass, DebounceGuard(self.window_ms))
        if not guard.allow(event.timestamp_ms):
            logger.debug("Debounced %s at %d ms", action.kind.value, event.timestamp_ms)
            return None
        return action


# ── curses key normalisation ───────────────────────────────────────────────

_ESC = 27
_TAB = 9

_CURSES_KEYS: dict[int, str] = {
    curses.KEY_UP: "up",
    curses.KEY_DOWN: "down",
    curses.KEY_LEFT: "left",
    curses.KEY_RIGHT: "right",
    curses.KEY_BTAB: "backtab",
    curses.KEY_ENTER: "enter",
    _TAB: "tab",
    _ESC: "esc",
    10: "enter",
    13: "enter",
}


def from_curses(code: int, timestamp_ms: int) -> RawInputEvent | None:
    """Normalise a ``getch()`` code into a ``RawInputEvent``.

    Returns None for codes with no printable or named meaning (including -1,
    which ``getch`` returns when its timeout expires).
    """
    if code < 0:
        return None
    name = _CURSES_KEYS.get(code)
    if name is not None:
        mods = Modifier.SHIFT if name == "backtab" else Modifier.NONE
        return RawInputEvent(name, mods, timestamp_ms)
    # Ctrl+A .. Ctrl+Z arrive as 1..26 in raw mode
    if 1 <= code <= 26:
        return RawInputEvent(chr(code + ord("a") - 1), Modifier.CTRL, timestamp_ms)
    if 32 <= code < 127:
        ch = chr(code)
        if ch.isupper():
            return RawInputEvent(ch.lower(), Modifier.SHIFT, timestamp_ms)
        return RawInputEvent(ch, Modifier.NONE, timestamp_ms)
    return None
