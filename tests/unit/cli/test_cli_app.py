"""Typer app のテスト。

info / signals / watch サブコマンドと終了コード、stderr へのエラーメッセージ
（解決方法のヒントを含む）を検証する。

NOTE: Typer の CliRunner は stderr 分離パラメータを公開しないため、
stderr 出力は result.output（stdout + stderr 混合出力）で検証する。
"""

from __future__ import annotations

import json
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from sigrelay.cli._app import app
from sigrelay.cli._watch import ALARM_SIGNAL
from sigrelay.config._resolver import resolve_config
from sigrelay.models.exit_code import ExitCode
from sigrelay.signals import PlatformDetector, SignalRegistry
from sigrelay.task import TaskSignalCoordinator

PATCH_RESOLVE_CONFIG = "sigrelay.cli._app.resolve_config"
PATCH_DETECTOR = "sigrelay.cli._app.PlatformDetector"
PATCH_COORDINATOR = "sigrelay.cli._app.TaskSignalCoordinator"
PATCH_SLEEP = "sigrelay.cli._watch.time.sleep"
PATCH_VERSION = "sigrelay.cli._app.importlib.metadata.version"

runner = CliRunner()


@pytest.fixture(autouse=True)
def _isolated_config(tmp_path: Path) -> Iterator[None]:
    """実行環境の設定ファイルを読まないよう tmp_path を起点に解決する。"""

    def resolve(cli_overrides: dict[str, object] | None = None) -> object:
        return resolve_config(start_dir=tmp_path, cli_overrides=cli_overrides)

    with (
        patch(PATCH_RESOLVE_CONFIG, side_effect=resolve),
        patch(
            "sigrelay.config._sources.user_config_path",
            return_value=tmp_path / "nonexistent" / "config.toml",
        ),
    ):
        yield


@pytest.fixture
def backends() -> list[Any]:
    return []


@pytest.fixture
def linux_cli(
    linux_detector: PlatformDetector,
    make_backend: Callable[..., Any],
    backends: list[Any],
) -> Iterator[None]:
    """Linux として振る舞い、OS フックをフェイクに差し替える。"""

    def create_coordinator(
        detector: PlatformDetector | None = None, enabled: bool = True
    ) -> TaskSignalCoordinator:
        def factory() -> SignalRegistry:
            backend = make_backend()
            backends.append(backend)
            return SignalRegistry(detector=linux_detector, backend=backend)

        return TaskSignalCoordinator(
            detector=linux_detector, registry_factory=factory, enabled=enabled
        )

    with (
        patch(PATCH_DETECTOR, return_value=linux_detector),
        patch(PATCH_COORDINATOR, side_effect=create_coordinator),
    ):
        yield


@pytest.fixture
def darwin_cli(darwin_detector: PlatformDetector) -> Iterator[None]:
    with patch(PATCH_DETECTOR, return_value=darwin_detector):
        yield


def _write_project_config(tmp_path: Path, content: str) -> None:
    (tmp_path / ".sigrelay").mkdir(exist_ok=True)
    (tmp_path / ".sigrelay" / "config.toml").write_text(content, encoding="utf-8")


# =============================================================================
# app 全般
# =============================================================================


class TestAppGeneral:
    """--help / --version の動作を検証する。"""

    def test_help_exits_with_zero(self) -> None:
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "watch" in result.output
        assert "signals" in result.output

    def test_no_args_shows_help(self) -> None:
        result = runner.invoke(app, [])
        assert "Usage" in result.output

    def test_version(self) -> None:
        with patch(PATCH_VERSION, return_value="0.1.0"):
            result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output


# =============================================================================
# info
# =============================================================================


class TestInfoCommand:
    """info サブコマンドのテスト。"""

    @pytest.mark.usefixtures("linux_cli")
    def test_linux(self) -> None:
        result = runner.invoke(app, ["info"])
        assert result.exit_code == 0
        assert "Platform: linux" in result.output
        assert "Signal handling: available" in result.output
        assert "Backend: posix" in result.output

    @pytest.mark.usefixtures("darwin_cli")
    def test_darwin(self) -> None:
        result = runner.invoke(app, ["info"])
        assert result.exit_code == 0
        assert "Platform: darwin" in result.output
        assert "Signal handling: unavailable" in result.output
        assert "Platform signals: 0" in result.output

    @pytest.mark.usefixtures("darwin_cli")
    def test_lists_project_config(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """カレントから見える設定ファイルを表示する。"""
        _write_project_config(tmp_path, "enabled = true\n")
        monkeypatch.chdir(tmp_path)

        result = runner.invoke(app, ["info"])

        assert result.exit_code == 0
        assert "Config files:" in result.output
        assert "project: " in result.output
        assert "config.toml" in result.output


# =============================================================================
# signals
# =============================================================================


class TestSignalsCommand:
    """signals サブコマンドのテスト。"""

    @pytest.mark.usefixtures("linux_cli")
    def test_table_output(self) -> None:
        result = runner.invoke(app, ["signals"])
        assert result.exit_code == 0
        assert "Canonical" in result.output
        assert "SIGTERM" in result.output

    @pytest.mark.usefixtures("linux_cli")
    def test_json_output(self) -> None:
        result = runner.invoke(app, ["signals", "--format", "json"])
        assert result.exit_code == 0
        table = json.loads(result.output)
        assert table["SIGINT"] == 2

    @pytest.mark.usefixtures("darwin_cli")
    def test_all_lists_catalog(self) -> None:
        result = runner.invoke(app, ["signals", "--all", "--format", "json"])
        assert result.exit_code == 0
        table = json.loads(result.output)
        assert len(table) == 14
        assert table["CTRL_BREAK"] == 3

    @pytest.mark.usefixtures("darwin_cli")
    def test_empty_platform_table(self) -> None:
        """ネイティブシグナルがなければメッセージを出して正常終了。"""
        result = runner.invoke(app, ["signals"])
        assert result.exit_code == 0
        assert "No native signals" in result.output
        assert "--all" in result.output

    @pytest.mark.usefixtures("darwin_cli")
    def test_output_format_from_config(self, tmp_path: Path) -> None:
        _write_project_config(tmp_path, 'output_format = "json"\n')
        result = runner.invoke(app, ["signals", "--all"])
        assert result.exit_code == 0
        assert json.loads(result.output)["SIGTERM"] == 15

    def test_invalid_format_is_usage_error(self) -> None:
        result = runner.invoke(app, ["signals", "--format", "xml"])
        assert result.exit_code == 2

    def test_invalid_config_exits_with_config_error(self, tmp_path: Path) -> None:
        """設定エラーは終了コード 3 とヒントを出力する。"""
        _write_project_config(tmp_path, "output_format = \n")
        result = runner.invoke(app, ["signals"])
        assert result.exit_code == ExitCode.CONFIG_ERROR
        assert "Invalid configuration" in result.output
        assert ".sigrelay/config.toml" in result.output


# =============================================================================
# watch
# =============================================================================


class TestWatchCommand:
    """watch サブコマンドのテスト。"""

    @pytest.mark.usefixtures("linux_cli")
    def test_runs_all_ticks(self, backends: list[Any]) -> None:
        with patch(PATCH_SLEEP) as mock_sleep:
            result = runner.invoke(app, ["watch", "--ticks", "2", "--interval", "0.5"])

        assert result.exit_code == 0
        assert "Tick 2/2" in result.output
        assert "Finished with exit code 0" in result.output
        assert mock_sleep.call_count == 2
        mock_sleep.assert_called_with(0.5)
        assert sorted(backends[0].restored) == [2, 15]

    @pytest.mark.usefixtures("linux_cli")
    def test_sigint_stops_with_configured_exit_code(
        self, backends: list[Any]
    ) -> None:
        def sleep(seconds: float) -> None:
            backends[0].deliver(2)

        with patch(PATCH_SLEEP, side_effect=sleep):
            result = runner.invoke(app, ["watch", "--ticks", "5"])

        assert result.exit_code == 130
        assert "Received SIGINT: stopping (exit code 130)" in result.output
        assert "Terminated by SIGINT with exit code 130" in result.output
        assert "Tick 1/5" not in result.output

    @pytest.mark.usefixtures("linux_cli")
    def test_sigterm_exit_code_from_config(
        self, tmp_path: Path, backends: list[Any]
    ) -> None:
        """設定ファイルの terminate_exit_code で終了する。"""
        _write_project_config(tmp_path, "[watch]\nterminate_exit_code = 7\n")

        calls = 0

        def sleep(seconds: float) -> None:
            nonlocal calls
            calls += 1
            if calls == 1:
                backends[0].deliver(15)

        with patch(PATCH_SLEEP, side_effect=sleep):
            result = runner.invoke(app, ["watch", "--ticks", "3"])

        assert result.exit_code == 7
        assert "Terminated by SIGTERM with exit code 7" in result.output

    @pytest.mark.usefixtures("linux_cli")
    def test_user_signal_reports_status(self, backends: list[Any]) -> None:
        calls = 0

        def sleep(seconds: float) -> None:
            nonlocal calls
            calls += 1
            if calls == 2:
                backends[0].deliver(10)

        with patch(PATCH_SLEEP, side_effect=sleep):
            result = runner.invoke(
                app, ["watch", "--ticks", "2", "-s", "sigusr1"]
            )

        assert result.exit_code == 0
        assert "Received SIGUSR1: 1/2 tick(s) done" in result.output
        assert backends[0].install_calls == [10]

    @pytest.mark.usefixtures("linux_cli")
    def test_unknown_signal_name_is_input_error(self) -> None:
        result = runner.invoke(app, ["watch", "-s", "SIGFOO"])
        assert result.exit_code == ExitCode.INPUT_ERROR
        assert "Unknown signal name" in result.output
        assert "sigrelay signals --all" in result.output

    @pytest.mark.usefixtures("linux_cli")
    def test_malformed_signal_name_is_config_error(self) -> None:
        result = runner.invoke(app, ["watch", "-s", "INT"])
        assert result.exit_code == ExitCode.CONFIG_ERROR
        assert "Invalid signal name" in result.output

    def test_ticks_must_be_positive(self) -> None:
        result = runner.invoke(app, ["watch", "--ticks", "0"])
        assert result.exit_code == 2

    @pytest.mark.usefixtures("linux_cli")
    def test_hook_refused_is_failure(
        self, make_backend: Callable[..., Any], linux_detector: PlatformDetector
    ) -> None:
        """OS がフックを拒否した場合は終了コード 1 とヒントを出力する。"""

        def refusing_coordinator(
            detector: PlatformDetector | None = None, enabled: bool = True
        ) -> TaskSignalCoordinator:
            def factory() -> SignalRegistry:
                backend = make_backend()

                def refuse(signal_id: int, dispatch: object) -> None:
                    raise OSError("Invalid argument")

                backend.install = refuse
                return SignalRegistry(detector=linux_detector, backend=backend)

            return TaskSignalCoordinator(
                detector=linux_detector, registry_factory=factory, enabled=enabled
            )

        with patch(PATCH_COORDINATOR, side_effect=refusing_coordinator):
            result = runner.invoke(app, ["watch", "-s", "SIGKILL"])

        assert result.exit_code == ExitCode.FAILURE
        assert "Failed to install signal handlers" in result.output
        assert "--signal" in result.output

    @pytest.mark.usefixtures("darwin_cli")
    def test_unsupported_platform_warns_and_runs(self) -> None:
        with patch(PATCH_SLEEP):
            result = runner.invoke(app, ["watch", "--ticks", "1"])

        assert result.exit_code == 0
        assert "Signal handling is not supported on darwin" in result.output
        assert "Tick 1/1" in result.output

    @pytest.mark.usefixtures("darwin_cli")
    def test_strict_fails_on_unsupported_platform(self) -> None:
        """--strict ではタスクを実行せず終了コード 4 で終了する。"""
        with patch(PATCH_SLEEP) as mock_sleep:
            result = runner.invoke(app, ["watch", "--strict"])

        assert result.exit_code == ExitCode.UNSUPPORTED_PLATFORM
        assert "Error: Signal handling is not supported on darwin" in result.output
        assert "without --strict" in result.output
        mock_sleep.assert_not_called()

    @pytest.mark.usefixtures("linux_cli")
    def test_strict_runs_on_supported_platform(self) -> None:
        with patch(PATCH_SLEEP):
            result = runner.invoke(app, ["watch", "--strict", "--ticks", "1"])
        assert result.exit_code == 0

    @pytest.mark.usefixtures("darwin_cli")
    def test_disabled_does_not_warn(self, tmp_path: Path) -> None:
        _write_project_config(tmp_path, "enabled = false\n")
        with patch(PATCH_SLEEP):
            result = runner.invoke(app, ["watch", "--ticks", "1"])

        assert result.exit_code == 0
        assert "not supported" not in result.output

    @pytest.mark.skipif(ALARM_SIGNAL is None, reason="SIGALRM is POSIX only")
    @pytest.mark.usefixtures("linux_cli")
    def test_alarm_scheduled_and_cancelled(self, backends: list[Any]) -> None:
        def sleep(seconds: float) -> None:
            backends[0].deliver(ALARM_SIGNAL)

        with patch(PATCH_SLEEP, side_effect=sleep):
            result = runner.invoke(app, ["watch", "--ticks", "3", "--alarm", "5"])

        assert result.exit_code == 0
        assert backends[0].alarms == [5, 0]
        assert "Received SIGALRM: stopping (exit code 0)" in result.output
