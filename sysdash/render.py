"""curses renderer for the dashboard tabs.

Draws a tab bar, the active tab's panels and a one-line status bar. Drawing
helpers clip silently at the window edge; a failure to flush the frame to the
terminal is raised as ``RenderError``.
"""

from __future__ import annotations

import curses
import time
from collections.abc import Sequence
from typing import Any

from sysdash.config import Settings, Threshold
from sysdash.errors import RenderError
from sysdash.history import CpuSample, MemorySample, MetricHistory
from sysdash.metrics import ProcessInfo, Snapshot
from sysdash.state import DashboardState, Tab

# ── Constants ──────────────────────────────────────────────────────────────

SPARK = " ▁▂▃▄▅▆▇█"
BAR_FILL = "█"
BAR_EMPTY = "░"

MIN_ROWS = 10
MIN_COLS = 40

# Curses colour-pair IDs
C_NORMAL = 1
C_WARNING = 2
C_CRITICAL = 3
C_TITLE = 4
C_DIM = 5
C_BLUE = 6
C_MAGENTA = 7

HELP_LINES: tuple[tuple[str, str], ...] = (
    ("Navigation:", ""),
    ("  Tab / Shift+Tab", "Switch between tabs"),
    ("  1-4", "Jump to a tab"),
    ("  ↑ / ↓", "Scroll process list"),
    ("  r", "Force refresh"),
    ("  h", "Show this help"),
    ("", ""),
    ("Tabs:", ""),
    ("  Overview", "CPU, Memory, Disk usage with charts"),
    ("  Processes", "Running processes sorted by CPU"),
    ("  Network", "Network interface statistics"),
    ("", ""),
    ("Exit:", ""),
    ("  q / Esc / Ctrl+C", "Quit application"),
)


# ── Colour helpers ─────────────────────────────────────────────────────────


def init_colors() -> None:
    curses.start_color()
    curses.use_default_colors()
    curses.init_pair(C_NORMAL, curses.COLOR_GREEN, -1)
    curses.init_pair(C_WARNING, curses.COLOR_YELLOW, -1)
    curses.init_pair(C_CRITICAL, curses.COLOR_RED, -1)
    curses.init_pair(C_TITLE, curses.COLOR_CYAN, -1)
    curses.init_pair(C_DIM, curses.COLOR_WHITE, -1)
    curses.init_pair(C_BLUE, curses.COLOR_BLUE, -1)
    curses.init_pair(C_MAGENTA, curses.COLOR_MAGENTA, -1)


def _severity_color(value: float, threshold: Threshold) -> int:
    if value >= threshold.critical:
        return C_CRITICAL
    if value >= threshold.warning:
        return C_WARNING
    return C_NORMAL


# ── Formatting helpers ─────────────────────────────────────────────────────


def fmt_bytes(n: int | float) -> str:
    """Human-readable byte count (binary prefixes)."""
    v = float(n)
    for unit in ("B", "KiB", "MiB", "GiB"):
        if abs(v) < 1024:
            return f"{v:.1f} {unit}"
        v /= 1024
    return f"{v:.1f} TiB"


def fmt_rate(bps: float) -> str:
    """Human-readable transfer rate."""
    if bps < 1024:
        return f"{bps:.0f} B/s"
    if bps < 1024 * 1024:
        return f"{bps / 1024:.1f} KB/s"
    if bps < 1024**3:
        return f"{bps / 1024 ** 2:.1f} MB/s"
    return f"{bps / 1024 ** 3:.1f} GB/s"


def fmt_uptime(seconds: float) -> str:
    total = int(seconds)
    days, rem = divmod(total, 86400)
    hours, rem = divmod(rem, 3600)
    minutes, secs = divmod(rem, 60)
    if days > 0:
        return f"{days}d {hours:02d}:{minutes:02d}:{secs:02d}"
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def sparkline(values: Sequence[float], width: int, max_val: float = 100.0) -> str:
    """Render the most recent *width* values as block characters."""
    if width < 1 or not values:
        return ""
    chars: list[str] = []
    for v in list(values)[-width:]:
        idx = int(min(max(v, 0.0) / max_val, 1.0) * (len(SPARK) - 1))
        chars.append(SPARK[idx])
    return "".join(chars)


def clamp_scroll(offset: int, total: int, visible: int) -> int:
    """Clamp a scroll offset so the last page stays full."""
    return max(0, min(offset, total - max(visible, 0)))


# ── Curses drawing primitives ──────────────────────────────────────────────


def _safe(win: Any, *args: Any) -> None:
    """addstr wrapper that swallows out-of-bounds errors."""
    try:
        win.addstr(*args)
    except curses.error:
        pass


def _draw_box(win: Any, y: int, x: int, h: int, w: int, title: str = "") -> Any | None:
    """Draw a bordered box and return the inner sub-window."""
    max_y, max_x = win.getmaxyx()
    h = min(h, max_y - y)
    w = min(w, max_x - x)
    if h < 3 or w < 4:
        return None
    try:
        sub = win.subwin(h, w, y, x)
        sub.box()
        if title and len(title) + 4 < w:
            sub.addstr(0, 2, f" {title} ", curses.color_pair(C_TITLE) | curses.A_BOLD)
        return sub
    except curses.error:
        return None


def _draw_bar(
    win: Any,
    y: int,
    x: int,
    width: int,
    pct: float,
    label: str = "",
    color: int = C_NORMAL,
    suffix: str | None = None,
) -> None:
    """Render ``label ████░░░░ suffix`` on one line."""
    max_y, max_x = win.getmaxyx()
    if y >= max_y - 1 or x >= max_x - 1:
        return

    cx = x
    if label:
        _safe(win, y, cx, f"{label:>6s} ", curses.color_pair(C_DIM))
        cx += 7

    if suffix is None:
        suffix = f" {pct:5.1f}%"

    bar_w = min(width - (cx - x) - len(suffix), max_x - cx - len(suffix) - 1)
    if bar_w < 3:
        return

    filled = int(bar_w * min(max(pct, 0.0), 100.0) / 100.0)
    empty = bar_w - filled

    _safe(win, y, cx, BAR_FILL * filled, curses.color_pair(color) | curses.A_BOLD)
    _safe(win, BAR_EMPTY * empty, curses.color_pair(C_DIM))
    _safe(win, suffix, curses.color_pair(color) | curses.A_BOLD)


def _draw_sparkline(
    win: Any, y: int, x: int, width: int, values: Sequence[float], color: int
) -> None:
    max_y, max_x = win.getmaxyx()
    if y >= max_y - 1 or x >= max_x - 1:
        return
    text = sparkline(values, min(width, max_x - x - 1))
    if text:
        _safe(win, y, x, text, curses.color_pair(color))


# ── Renderer ───────────────────────────────────────────────────────────────


class Renderer:
    """Draws one full frame per ``draw`` call onto a curses screen."""

    def __init__(self, stdscr: Any, settings: Settings) -> None:
        self._scr = stdscr
        self._settings = settings

    def draw(
        self,
        state: DashboardState,
        cpu_history: MetricHistory[CpuSample],
        memory_history: MetricHistory[MemorySample],
        snapshot: Snapshot,
    ) -> None:
        """Draw a frame.

        Raises:
            RenderError: If the terminal rejects the frame.
        """
        scr = self._scr
        try:
            scr.erase()
            max_y, max_x = scr.getmaxyx()
            if max_y < MIN_ROWS or max_x < MIN_COLS:
                _safe(scr, 0, 0, f"Terminal too small (need {MIN_COLS}x{MIN_ROWS}+)")
            else:
                self._draw_tabs(state, max_x)
                body_h = max_y - 2
                tab = state.active_tab
                if tab is Tab.OVERVIEW:
                    self._draw_overview(1, max_x, body_h, cpu_history, memory_history, snapshot)
                elif tab is Tab.PROCESSES:
                    self._draw_processes(1, max_x, body_h, state.scroll_offset, snapshot)
                elif tab is Tab.NETWORK:
                    self._draw_network(1, max_x, body_h, snapshot)
                else:
                    self._draw_help(1, max_x, body_h)
                self._draw_status(state, max_y - 1, max_x)
            scr.refresh()
        except curses.error as e:
            raise RenderError(f"terminal draw failed: {e}") from e

    # ── Chrome ─────────────────────────────────────────────────────────────

    def _draw_tabs(self, state: DashboardState, w: int) -> None:
        scr = self._scr
        attr = curses.color_pair(C_TITLE) | curses.A_REVERSE
        _safe(scr, 0, 0, " " * (w - 1), attr)
        title = f" {self._settings.title} "
        _safe(scr, 0, 0, title, attr | curses.A_BOLD)
        x = len(title) + 1
        for tab in Tab:
            label = f" {tab.index + 1}:{tab.title} "
            if x + len(label) >= w - 1:
                break
            # Active tab drops the reverse video so it stands out of the bar
            tab_attr = curses.color_pair(C_TITLE) | curses.A_BOLD if tab is state.active_tab else attr
            _safe(scr, 0, x, label, tab_attr)
            x += len(label) + 1
        ts = time.strftime("%H:%M:%S")
        if x + len(ts) + 2 < w:
            _safe(scr, 0, w - len(ts) - 2, ts, attr)

    def _draw_status(self, state: DashboardState, y: int, w: int) -> None:
        _safe(self._scr, y, 0, state.status_hint()[: w - 1], curses.color_pair(C_DIM))

    # ── Overview ───────────────────────────────────────────────────────────

    def _draw_overview(
        self,
        y: int,
        w: int,
        h: int,
        cpu_history: MetricHistory[CpuSample],
        memory_history: MetricHistory[MemorySample],
        snap: Snapshot,
    ) -> None:
        display = self._settings.display
        col_w = w // 2
        gauge_h = 5
        info_h = 8 if h >= 20 else 0
        chart_h = max(0, h - gauge_h - info_h)

        self._draw_cpu_gauge(y, 0, col_w, gauge_h, snap)
        self._draw_mem_gauge(y, col_w, w - col_w, gauge_h, snap)

        if chart_h >= 3:
            if display.show_cpu_graph:
                self._draw_chart(
                    y + gauge_h, 0, col_w, chart_h, "CPU History", cpu_history.values(), C_TITLE
                )
            if display.show_memory_graph:
                self._draw_chart(
                    y + gauge_h,
                    col_w,
                    w - col_w,
                    chart_h,
                    "Memory History",
                    memory_history.values(),
                    C_MAGENTA,
                )

        if info_h:
            info_y = y + gauge_h + chart_h
            info_w = w * 2 // 5
            self._draw_system_info(info_y, 0, info_w, info_h, snap)
            if display.show_disk_info:
                self._draw_disks(info_y, info_w, w - info_w, info_h, snap)

    def _draw_cpu_gauge(self, y: int, x: int, w: int, h: int, snap: Snapshot) -> None:
        box = _draw_box(self._scr, y, x, h, w, f"CPU Usage ({snap.cpu_count} cores)")
        if not box:
            return
        color = _severity_color(snap.cpu_percent, self._settings.cpu_threshold)
        _draw_bar(box, 1, 1, w - 3, snap.cpu_percent, "Total", color)
        if snap.cpu_frequency_mhz:
            _safe(box, 2, 2, f"Freq {snap.cpu_frequency_mhz:.0f} MHz", curses.color_pair(C_DIM))
        if snap.cpu_per_core and h >= 5:
            # One block per core, clipped to the box width
            _safe(box, 3, 2, " Cores", curses.color_pair(C_DIM))
            _draw_sparkline(box, 3, 9, w - 12, snap.cpu_per_core, color)

    def _draw_mem_gauge(self, y: int, x: int, w: int, h: int, snap: Snapshot) -> None:
        box = _draw_box(self._scr, y, x, h, w, "Memory Usage")
        if not box:
            return
        color = _severity_color(snap.memory_percent, self._settings.memory_threshold)
        _draw_bar(box, 1, 1, w - 3, snap.memory_percent, "RAM", color)
        detail = f"       {fmt_bytes(snap.memory_used)} / {fmt_bytes(snap.memory_total)}"
        _safe(box, 2, 1, detail[: w - 3], curses.color_pair(C_DIM))

    def _draw_chart(
        self, y: int, x: int, w: int, h: int, title: str, values: list[float], color: int
    ) -> None:
        box = _draw_box(self._scr, y, x, h, w, title)
        if not box or not values:
            return
        inner_w = w - 4
        # One sparkline per row; the bottom row carries the latest reading
        rows = max(1, h - 3)
        for r in range(rows):
            band_lo = 100.0 * (rows - 1 - r) / rows
            band = [min(max(v - band_lo, 0.0) * rows, 100.0) for v in values]
            _draw_sparkline(box, 1 + r, 2, inner_w, band, color)
        _safe(
            box,
            h - 2,
            2,
            f"now {values[-1]:5.1f}%  min {min(values):5.1f}%  max {max(values):5.1f}%"[:inner_w],
            curses.color_pair(C_DIM),
        )

    def _draw_system_info(self, y: int, x: int, w: int, h: int, snap: Snapshot) -> None:
        box = _draw_box(self._scr, y, x, h, w, "System Info")
        if not box:
            return
        la = snap.load_avg
        lines = [
            f"Uptime    {fmt_uptime(snap.uptime_seconds)}",
            f"Load      {la[0]:.2f}  {la[1]:.2f}  {la[2]:.2f}",
            f"Processes {snap.process_count}",
            f"CPUs      {snap.cpu_count}",
            f"Swap      {fmt_bytes(snap.swap_used)} / {fmt_bytes(snap.swap_total)}",
        ]
        for i, line in enumerate(lines[: h - 2]):
            _safe(box, 1 + i, 2, line[: w - 4], curses.color_pair(C_DIM))

    def _draw_disks(self, y: int, x: int, w: int, h: int, snap: Snapshot) -> None:
        box = _draw_box(self._scr, y, x, h, w, "Disk Usage")
        if not box:
            return
        for i, disk in enumerate(snap.disks[: h - 2]):
            label = disk.mount_point[-6:]
            suffix = f" {disk.usage_percent:5.1f}% of {fmt_bytes(disk.total)}"
            color = C_CRITICAL if disk.usage_percent >= 90 else C_NORMAL
            _draw_bar(box, 1 + i, 1, w - 3, disk.usage_percent, label, color, suffix)

    # ── Processes ──────────────────────────────────────────────────────────

    def _draw_processes(self, y: int, w: int, h: int, offset: int, snap: Snapshot) -> None:
        summary_h = 5
        col_w = w // 2
        self._draw_cpu_gauge(y, 0, col_w, summary_h, snap)
        self._draw_mem_gauge(y, col_w, w - col_w, summary_h, snap)
        if self._settings.display.show_process_list:
            self._draw_proc_table(y + summary_h, 0, w, h - summary_h, offset, snap.processes)

    def _draw_proc_table(
        self, y: int, x: int, w: int, h: int, offset: int, procs: Sequence[ProcessInfo]
    ) -> None:
        visible = max(0, h - 4)
        start = clamp_scroll(offset, len(procs), visible)
        title = "Processes"
        if procs:
            end = min(len(procs), start + visible)
            title = f"Processes ({start + 1}-{end} of {len(procs)})"
        box = _draw_box(self._scr, y, x, h, w, title)
        if not box:
            return
        row = 1
        hdr = f" {'PID':>7s}  {'CPU%':>6s}  {'MEM%':>6s}  {'MEM':>10s}  {'S':1s}  NAME"
        _safe(box, row, 1, hdr[: w - 3], curses.color_pair(C_TITLE) | curses.A_BOLD)
        row += 1
        _safe(box, row, 1, "─" * min(w - 3, 60), curses.color_pair(C_DIM))
        row += 1

        for p in procs[start : start + visible]:
            line = (
                f" {p.pid:>7d}  {p.cpu_percent:>5.1f}%  {p.memory_percent:>5.1f}%"
                f"  {fmt_bytes(p.memory_rss):>10s}  {p.status[:1]:1s}  {p.name}"
            )
            color = C_NORMAL
            if p.cpu_percent >= 50:
                color = C_CRITICAL
            elif p.cpu_percent >= 20:
                color = C_WARNING
            _safe(box, row, 1, line[: w - 3], curses.color_pair(color))
            row += 1

    # ── Network ────────────────────────────────────────────────────────────

    def _draw_network(self, y: int, w: int, h: int, snap: Snapshot) -> None:
        summary_h = 5
        third = w // 3
        self._draw_cpu_gauge(y, 0, third, summary_h, snap)
        self._draw_mem_gauge(y, third, third, summary_h, snap)
        self._draw_system_info(y, 2 * third, w - 2 * third, summary_h, snap)
        if not self._settings.display.show_network_info:
            return
        box = _draw_box(self._scr, y + summary_h, 0, h - summary_h, w, "Network Interfaces")
        if not box:
            return
        hdr = (
            f" {'INTERFACE':<14s} {'RX':>10s} {'TX':>10s} "
            f"{'RX/s':>11s} {'TX/s':>11s} {'PKT RX':>9s} {'PKT TX':>9s}"
        )
        _safe(box, 1, 1, hdr[: w - 3], curses.color_pair(C_TITLE) | curses.A_BOLD)
        for i, net in enumerate(snap.networks[: max(0, h - summary_h - 3)]):
            line = (
                f" {net.interface[:14]:<14s} {fmt_bytes(net.bytes_received):>10s}"
                f" {fmt_bytes(net.bytes_transmitted):>10s} {fmt_rate(net.rx_rate):>11s}"
                f" {fmt_rate(net.tx_rate):>11s} {net.packets_received:>9d}"
                f" {net.packets_transmitted:>9d}"
            )
            _safe(box, 2 + i, 1, line[: w - 3], curses.color_pair(C_NORMAL))

    # ── Help ───────────────────────────────────────────────────────────────

    def _draw_help(self, y: int, w: int, h: int) -> None:
        box = _draw_box(self._scr, y, 0, h, w, "Help")
        if not box:
            return
        _safe(box, 1, 2, self._settings.title, curses.color_pair(C_TITLE) | curses.A_BOLD)
        for i, (key, text) in enumerate(HELP_LINES[: max(0, h - 5)]):
            row = 3 + i
            if not text:
                _safe(box, row, 2, key, curses.color_pair(C_WARNING) | curses.A_BOLD)
                continue
            _safe(box, row, 2, f"{key:<20s}", curses.color_pair(C_NORMAL))
            _safe(box, f"- {text}"[: max(0, w - 26)], curses.color_pair(C_DIM))
