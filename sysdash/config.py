"""Configuration loading for sysdash.

Loads settings from TOML config files with sensible defaults.
Search order: explicit --config path → ~/.config/sysdash/config.toml → defaults only.
"""

from __future__ import annotations

import logging
import sys
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from sysdash.errors import ConfigError
from sysdash.state import Tab

logger = logging.getLogger(__name__)

DEFAULT_CONFIG: dict[str, Any] = {
    "dashboard": {
        "title": "System Monitor Dashboard",
        "refresh_interval_ms": 1000,
        "input_poll_ms": 50,
        "debounce_window_ms": 150,
        "initial_tab": "overview",
    },
    "history": {
        "cpu_capacity": 60,
        "memory_capacity": 60,
    },
    "processes": {
        "enabled": True,
        "max_displayed": 20,
    },
    "display": {
        "show_cpu_graph": True,
        "show_memory_graph": True,
        "show_process_list": True,
        "show_network_info": True,
        "show_disk_info": True,
    },
    "thresholds": {
        "cpu_percent": {"warning": 60.0, "critical": 80.0},
        "memory_percent": {"warning": 75.0, "critical": 90.0},
    },
}

DEFAULT_PATH = Path.home() / ".config" / "sysdash" / "config.toml"


# ── Typed settings ─────────────────────────────────────────────────────────


@dataclass(slots=True, frozen=True)
class Threshold:
    warning: float
    critical: float


@dataclass(slots=True, frozen=True)
class DisplaySettings:
    show_cpu_graph: bool = True
    show_memory_graph: bool = True
    show_process_list: bool = True
    show_network_info: bool = True
    show_disk_info: bool = True


@dataclass(slots=True, frozen=True)
class Settings:
    """Read-only view of a merged config dict, validated once at startup."""

    title: str
    refresh_interval_ms: int
    input_poll_ms: int
    debounce_window_ms: int
    initial_tab: Tab
    cpu_history_capacity: int
    memory_history_capacity: int
    process_monitoring: bool
    max_processes_displayed: int
    display: DisplaySettings
    cpu_threshold: Threshold
    memory_threshold: Threshold

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> Settings:
        """Build settings from a config dict (as returned by ``load_config``).

        Raises:
            ConfigError: If a section is not a table, a value is out of range
                or an unknown tab is named.
        """
        dash = _section(config, "dashboard")
        hist = _section(config, "history")
        procs = _section(config, "processes")
        disp = _section(config, "display")
        thresh = _section(config, "thresholds")

        tab_name = str(dash.get("initial_tab", "overview"))
        try:
            initial_tab = Tab.from_name(tab_name)
        except ValueError as e:
            raise ConfigError(str(e)) from e

        defaults = DisplaySettings()
        return cls(
            title=str(dash.get("title", DEFAULT_CONFIG["dashboard"]["title"])),
            refresh_interval_ms=_positive_int(dash, "refresh_interval_ms", 1000),
            input_poll_ms=_positive_int(dash, "input_poll_ms", 50),
            debounce_window_ms=_non_negative_int(dash, "debounce_window_ms", 150),
            initial_tab=initial_tab,
            cpu_history_capacity=_positive_int(hist, "cpu_capacity", 60),
            memory_history_capacity=_positive_int(hist, "memory_capacity", 60),
            process_monitoring=bool(procs.get("enabled", True)),
            max_processes_displayed=_non_negative_int(procs, "max_displayed", 20),
            display=DisplaySettings(
                **{
                    name: bool(disp.get(name, getattr(defaults, name)))
                    for name in DisplaySettings.__dataclass_fields__
                }
            ),
            cpu_threshold=_threshold(thresh, "cpu_percent"),
            memory_threshold=_threshold(thresh, "memory_percent"),
        )

    @classmethod
    def default(cls) -> Settings:
        return cls.from_config(DEFAULT_CONFIG)


def _section(config: dict[str, Any], name: str) -> dict[str, Any]:
    section = config.get(name, {})
    if not isinstance(section, dict):
        raise ConfigError(f"[{name}] must be a table, got {section!r}")
    return section


def _positive_int(section: dict[str, Any], key: str, default: int) -> int:
    value = _as_int(section, key, default)
    if value < 1:
        raise ConfigError(f"{key} must be >= 1, got {value}")
    return value


def _non_negative_int(section: dict[str, Any], key: str, default: int) -> int:
    value = _as_int(section, key, default)
    if value < 0:
        raise ConfigError(f"{key} must be >= 0, got {value}")
    return value


def _as_int(section: dict[str, Any], key: str, default: int) -> int:
    return int(_as_number(section, key, default))


def _as_number(section: dict[str, Any], key: str, default: float) -> float:
    raw = section.get(key, default)
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        raise ConfigError(f"{key} must be a number, got {raw!r}")
    return raw


def _threshold(thresholds: dict[str, Any], metric: str) -> Threshold:
    base = DEFAULT_CONFIG["thresholds"][metric]
    levels = {**base, **_section(thresholds, metric)}
    return Threshold(
        warning=float(_as_number(levels, "warning", base["warning"])),
        critical=float(_as_number(levels, "critical", base["critical"])),
    )


# ── Loading ────────────────────────────────────────────────────────────────


def _deep_merge(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    """Merge overlay into base. Nested dicts are merged at the first level only."""
    merged = dict(base)
    for key, value in overlay.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = {**merged[key], **value}
        else:
            merged[key] = value
    return merged


def load_config(path: Path | None = None) -> dict[str, Any]:
    """Load configuration, merging user TOML over defaults.

    Args:
        path: Explicit config file path (from --config). If None, tries the
              default location ~/.config/sysdash/config.toml.

    Returns:
        Merged configuration dict.

    Raises:
        SystemExit: If an explicit path doesn't exist or can't be parsed.
    """
    if path is not None:
        if not path.is_file():
            print(f"sysdash: config file not found: {path}", file=sys.stderr)
            raise SystemExit(1)
        try:
            user_config = tomllib.loads(path.read_text(encoding="utf-8"))
        except tomllib.TOMLDecodeError as e:
            print(f"sysdash: invalid TOML in {path}: {e}", file=sys.stderr)
            raise SystemExit(1) from e
        logger.info("Configuration loaded from %s", path)
        return _deep_merge(DEFAULT_CONFIG, user_config)

    if DEFAULT_PATH.is_file():
        try:
            user_config = tomllib.loads(DEFAULT_PATH.read_text(encoding="utf-8"))
            logger.info("Configuration loaded from %s", DEFAULT_PATH)
            return _deep_merge(DEFAULT_CONFIG, user_config)
        except tomllib.TOMLDecodeError:
            print(
                f"sysdash: warning: ignoring invalid TOML in {DEFAULT_PATH}",
                file=sys.stderr,
            )
            logger.warning("Ignoring invalid TOML in %s", DEFAULT_PATH)

    logger.info("Using built-in default configuration")
    return dict(DEFAULT_CONFIG)


# ── Saving ─────────────────────────────────────────────────────────────────


def _toml_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        escaped = value.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'
    return str(value)


def dump_config(config: dict[str, Any]) -> str:
    """Render a config dict (tables of scalars or of tables) as TOML text."""
    lines = [
        "# sysdash configuration",
        "# Place this file at ~/.config/sysdash/config.toml",
        "",
    ]

    scalars = {k: v for k, v in config.items() if not isinstance(v, dict)}
    for key, value in scalars.items():
        lines.append(f"{key} = {_toml_value(value)}")
    if scalars:
        lines.append("")

    for section, body in config.items():
        if not isinstance(body, dict):
            continue
        flat = {k: v for k, v in body.items() if not isinstance(v, dict)}
        if flat:
            lines.append(f"[{section}]")
            for key, value in flat.items():
                lines.append(f"{key} = {_toml_value(value)}")
            lines.append("")
        for sub, subbody in body.items():
            if not isinstance(subbody, dict):
                continue
            lines.append(f"[{section}.{sub}]")
            for key, value in subbody.items():
                lines.append(f"{key} = {_toml_value(value)}")
            lines.append("")

    return "\n".join(lines) + "\n"


def dump_default_config() -> str:
    """Return the default configuration as a TOML string."""
    return dump_config(DEFAULT_CONFIG)


def save_config(path: Path, config: dict[str, Any] | None = None) -> None:
    """Write *config* (defaults if None) to *path*, creating parent dirs."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(dump_config(config or DEFAULT_CONFIG), encoding="utf-8")
    logger.info("Configuration written to %s", path)
