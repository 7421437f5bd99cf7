"""Tests for the sysdash command-line entry point."""

from __future__ import annotations

import tomllib
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from sysdash.config import DEFAULT_CONFIG, Settings
from sysdash.dashboard import (
    ESC_DELAY_MS,
    _dashboard_main,
    _parse_args,
    build_loop,
    main,
    resolve_settings,
)
from sysdash.errors import DashboardError, RenderError
from sysdash.loop import LoopStats
from sysdash.state import Tab


@pytest.fixture
def no_user_config(tmp_path: Path):
    with patch("sysdash.config.DEFAULT_PATH", tmp_path / "absent.toml"):
        yield


class TestConfigCommands:
    def test_dump_config(self, capsys: pytest.CaptureFixture[str]) -> None:
        main(["--dump-config"])
        assert tomllib.loads(capsys.readouterr().out) == DEFAULT_CONFIG

    def test_init_config(self, tmp_path: Path) -> None:
        target = tmp_path / "conf" / "sysdash.toml"
        main(["--init-config", str(target)])
        assert tomllib.loads(target.read_text()) == DEFAULT_CONFIG


class TestResolveSettings:
    def test_refresh_override(self, no_user_config: None) -> None:
        settings = resolve_settings(_parse_args(["--refresh", "2.5"]))
        assert settings.refresh_interval_ms == 2500

    def test_no_override_keeps_config(self, no_user_config: None) -> None:
        assert resolve_settings(_parse_args([])).refresh_interval_ms == 1000

    @pytest.mark.parametrize("value", ["0", "-1"])
    def test_non_positive_refresh_rejected(self, value: str, no_user_config: None) -> None:
        with pytest.raises(DashboardError):
            resolve_settings(_parse_args(["--refresh", value]))

    def test_config_file(self, tmp_path: Path) -> None:
        cfg = tmp_path / "c.toml"
        cfg.write_text('[dashboard]\ninitial_tab = "help"\n')
        settings = resolve_settings(_parse_args(["--config", str(cfg)]))
        assert settings.initial_tab is Tab.HELP


class TestMain:
    def test_fatal_error_exits_1(
        self, tmp_path: Path, no_user_config: None, capsys: pytest.CaptureFixture[str]
    ) -> None:
        with patch("sysdash.dashboard.curses.wrapper", side_effect=RenderError("tty gone")):
            with pytest.raises(SystemExit) as exc:
                main(["--log-file", str(tmp_path / "log" / "sysdash.log")])
        assert exc.value.code == 1
        assert "sysdash: tty gone" in capsys.readouterr().err

    def test_clean_run(self, tmp_path: Path, no_user_config: None) -> None:
        with patch("sysdash.dashboard.curses.wrapper", return_value=LoopStats(iterations=3)) as w:
            main(["--log-file", str(tmp_path / "sysdash.log")])
        w.assert_called_once()

    def test_keyboard_interrupt_is_quiet(self, tmp_path: Path, no_user_config: None) -> None:
        with patch("sysdash.dashboard.curses.wrapper", side_effect=KeyboardInterrupt):
            main(["--log-file", str(tmp_path / "sysdash.log")])


class TestDashboardMain:
    @patch("sysdash.dashboard.build_loop")
    @patch("sysdash.dashboard.init_colors")
    @patch("sysdash.dashboard.curses")
    def test_terminal_setup(
        self, mock_curses: MagicMock, _colors: MagicMock, build: MagicMock
    ) -> None:
        stdscr = MagicMock()
        build.return_value.run.return_value = LoopStats(iterations=1)
        stats = _dashboard_main(stdscr, Settings.default())
        assert stats.iterations == 1
        mock_curses.raw.assert_called_once()
        mock_curses.set_escdelay.assert_called_once_with(ESC_DELAY_MS)
        assert ESC_DELAY_MS < 100
        stdscr.keypad.assert_called_once_with(True)


class TestBuildLoop:
    @patch("sysdash.dashboard.MetricsProvider")
    def test_wires_settings(self, provider_cls: MagicMock, no_user_config: None) -> None:
        settings = resolve_settings(_parse_args(["--refresh", "0.5"]))
        loop = build_loop(MagicMock(), settings)
        assert loop.state.active_tab is Tab.OVERVIEW
        assert loop.cpu_history.capacity == settings.cpu_history_capacity
        assert loop.memory_history.capacity == settings.memory_history_capacity
        provider_cls.assert_called_once_with(process_monitoring=True, max_processes=20)
