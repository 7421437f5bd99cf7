"""Interactive terminal dashboard: sysdash's entry point.

Shows live CPU, memory, disk, network and process information across four
tabs (Overview, Processes, Network, Help) using curses. Keys: Tab/Shift+Tab
or 1-4 switch tabs, ↑/↓ scroll the process list, r refreshes, h shows help,
q/Esc/Ctrl+C quit.

Usage:
    sysdash
    sysdash --refresh 2 --config path/to/config.toml
    sysdash --dump-config > ~/.config/sysdash/config.toml
"""

from __future__ import annotations

import argparse
import curses
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import Any

from sysdash.config import Settings, dump_default_config, load_config, save_config
from sysdash.errors import DashboardError
from sysdash.history import CpuSample, MemorySample, MetricHistory
from sysdash.keys import InputMapper
from sysdash.loop import CursesInput, EventLoop, LoopStats
from sysdash.metrics import MetricsProvider
from sysdash.render import Renderer, init_colors
from sysdash.state import DashboardState

logger = logging.getLogger(__name__)

DEFAULT_LOG_PATH = Path.home() / ".cache" / "sysdash" / "sysdash.log"
ESC_DELAY_MS = 25


def setup_logging(log_file: Path, debug: bool) -> None:
    """Send log records to *log_file*; the terminal belongs to curses."""
    log_file.parent.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        filename=log_file,
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def build_loop(stdscr: Any, settings: Settings) -> EventLoop:
    """Wire the provider, input, renderer and histories into an EventLoop."""
    return EventLoop(
        state=DashboardState.initial(settings),
        provider=MetricsProvider(
            process_monitoring=settings.process_monitoring,
            max_processes=settings.max_processes_displayed,
        ),
        input_source=CursesInput(stdscr),
        renderer=Renderer(stdscr, settings),
        mapper=InputMapper(window_ms=settings.debounce_window_ms),
        cpu_history=MetricHistory[CpuSample](settings.cpu_history_capacity),
        memory_history=MetricHistory[MemorySample](settings.memory_history_capacity),
        refresh_interval_ms=settings.refresh_interval_ms,
        input_poll_ms=settings.input_poll_ms,
    )


def _dashboard_main(stdscr: Any, settings: Settings) -> LoopStats:
    init_colors()
    curses.curs_set(0)
    # Raw mode so Ctrl+C arrives as a key instead of SIGINT
    curses.raw()
    # Esc quits; don't wait the default second for an escape sequence
    curses.set_escdelay(ESC_DELAY_MS)
    stdscr.keypad(True)
    return build_loop(stdscr, settings).run()


# ── CLI entry point ────────────────────────────────────────────────────────


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="sysdash",
        description="Real-time system monitor dashboard.",
    )
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=None,
        metavar="PATH",
        help="Path to TOML config file",
    )
    parser.add_argument(
        "-r",
        "--refresh",
        type=float,
        default=None,
        metavar="SECONDS",
        help="Seconds between refreshes (overrides the config file)",
    )
    parser.add_argument(
        "-d",
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        default=DEFAULT_LOG_PATH,
        metavar="PATH",
        help=f"Where to write the log (default: {DEFAULT_LOG_PATH})",
    )
    parser.add_argument(
        "--dump-config",
        action="store_true",
        help="Print the default configuration as TOML and exit",
    )
    parser.add_argument(
        "--init-config",
        type=Path,
        default=None,
        metavar="PATH",
        help="Write the default configuration to PATH and exit",
    )
    return parser.parse_args(argv)


def resolve_settings(args: argparse.Namespace) -> Settings:
    """Load the config named by *args* and apply command-line overrides."""
    settings = Settings.from_config(load_config(args.config))
    if args.refresh is not None:
        if args.refresh <= 0:
            raise DashboardError(f"--refresh must be positive, got {args.refresh}")
        settings = replace(settings, refresh_interval_ms=max(1, int(args.refresh * 1000)))
    return settings


def main(argv: list[str] | None = None) -> None:
    args = _parse_args(argv)

    if args.dump_config:
        print(dump_default_config(), end="")
        return
    if args.init_config is not None:
        save_config(args.init_config)
        print(f"sysdash: wrote default config to {args.init_config}")
        return

    setup_logging(args.log_file, args.debug)
    logger.info("Starting sysdash")

    try:
        settings = resolve_settings(args)
        stats = curses.wrapper(_dashboard_main, settings)
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return
    except DashboardError as e:
        # curses.wrapper has already restored the terminal
        logger.error("Fatal: %s", e)
        print(f"sysdash: {e}", file=sys.stderr)
        raise SystemExit(1) from e

    logger.info("sysdash shutdown complete (%d iterations)", stats.iterations)


if __name__ == "__main__":
    main()
