"""CliApp — Typer アプリケーション定義。

サブコマンド:
    info: プラットフォームとシグナル機能の可用性を表示する。
    signals: プラットフォームのシグナル表（--all でカタログ全体）を表示する。
    watch: デモタスクをシグナル連携付きで実行する。

進捗・エラーは stderr、コマンドの結果は stdout に出力する。
エラーメッセージには解決方法のヒントを含める。
"""

from __future__ import annotations

import importlib.metadata
import json
import sys
import tomllib
from collections.abc import Mapping
from pathlib import Path
from typing import Annotated

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from sigrelay.cli._watch import (
    ALARM_SIGNAL,
    InputError,
    WatchTask,
    resolve_signal_names,
)
from sigrelay.config import discover_sources, resolve_config
from sigrelay.models.config import OutputFormat, SigrelayConfig
from sigrelay.models.exit_code import ExitCode
from sigrelay.signals import (
    PlatformDetector,
    available_signals,
    create_signal_backend,
    name_of,
)
from sigrelay.task import TaskSignalCoordinator

app = typer.Typer(
    name="sigrelay",
    help=(
        "Cross-platform signal dispatch for long-running CLI tasks.\n\n"
        "Inspect the signal facilities of the current platform or run a "
        "demonstration task that reacts to signals."
    ),
    add_completion=False,
    no_args_is_help=True,
)


def _version_callback(value: bool) -> None:
    """--version 指定時にバージョン番号を出力して終了する。"""
    if value:
        print(importlib.metadata.version("sigrelay"))
        raise typer.Exit()


def main() -> None:
    """CLI エントリポイント。pyproject.toml の [project.scripts] から呼び出される。"""
    app()


@app.callback()
def main_callback(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            help="Show version and exit.",
            callback=_version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """Cross-platform signal dispatch for long-running CLI tasks."""


def _load_config(cli_overrides: dict[str, object]) -> SigrelayConfig:
    """設定を解決する。エラー時はメッセージを出力して終了する。"""
    try:
        return resolve_config(cli_overrides=cli_overrides)
    except (ValidationError, tomllib.TOMLDecodeError, TypeError) as e:
        print(
            f"Error: Invalid configuration: {e}\n"
            "Check .sigrelay/config.toml or [tool.sigrelay] in pyproject.toml "
            "for syntax errors or invalid values.",
            file=sys.stderr,
        )
        raise typer.Exit(code=ExitCode.CONFIG_ERROR) from None
    except PermissionError as e:
        print(
            f"Error: Cannot read configuration file: {e}\n"
            "Check file permissions for .sigrelay/config.toml.",
            file=sys.stderr,
        )
        raise typer.Exit(code=ExitCode.CONFIG_ERROR) from None


@app.command()
def info() -> None:
    """Show platform, signal handling availability and config files in effect."""
    detector = PlatformDetector()
    available = detector.signaling_available()
    print(f"Platform: {detector.family().value}")
    print(f"Signal handling: {'available' if available else 'unavailable'}")
    print(f"Backend: {create_signal_backend(detector).name}")
    print(f"Platform signals: {len(detector.platform_signal_table())}")

    sources = discover_sources(Path.cwd())
    if not sources:
        print("Config files: none (defaults)")
        return
    print("Config files:")
    for source in sources:
        print(f"  {source.describe()}")


@app.command("signals")
def list_signals(
    show_all: Annotated[
        bool,
        typer.Option("--all", help="List the full cross-platform signal catalog."),
    ] = False,
    output_format: Annotated[
        OutputFormat | None,
        typer.Option("--format", help="Output format: table or json."),
    ] = None,
) -> None:
    """List signal names and numbers known on this platform."""
    config = _load_config({"output_format": output_format})

    table = available_signals() if show_all else PlatformDetector().platform_signal_table()
    if not table:
        print(
            "No native signals are available on this platform.\n"
            "Use --all to list the cross-platform signal catalog.",
            file=sys.stderr,
        )
        raise typer.Exit(code=ExitCode.SUCCESS)

    if config.output_format is OutputFormat.JSON:
        print(json.dumps(dict(table), indent=2))
    else:
        _print_signal_table(table)


def _print_signal_table(table: Mapping[str, int]) -> None:
    """シグナル表を Rich テーブルで stdout に表示する。"""
    rich_table = Table(show_header=True, header_style="bold")
    rich_table.add_column("Name")
    rich_table.add_column("Number", justify="right")
    rich_table.add_column("Canonical")
    for name, value in table.items():
        canonical = name_of(value)
        rich_table.add_row(name, str(value), canonical if canonical is not None else "-")
    Console(file=sys.stdout).print(rich_table)


@app.command()
def watch(
    signal_names: Annotated[
        list[str] | None,
        typer.Option(
            "--signal",
            "-s",
            help="Signal to subscribe to (repeatable). Default: SIGINT, SIGTERM.",
        ),
    ] = None,
    ticks: Annotated[
        int | None, typer.Option(help="Number of ticks to run (positive integer).", min=1)
    ] = None,
    interval: Annotated[
        float | None, typer.Option(help="Seconds between ticks (positive).")
    ] = None,
    alarm: Annotated[
        int | None,
        typer.Option(help="Request SIGALRM after N seconds (POSIX only).", min=1),
    ] = None,
    strict: Annotated[
        bool,
        typer.Option(
            "--strict",
            help="Fail instead of running without callbacks when signal "
            "handling is unavailable.",
        ),
    ] = False,
) -> None:
    """Run a demonstration task that reacts to signals."""
    config = _load_config(
        {
            "signals": tuple(signal_names) if signal_names else None,
            "watch": {"ticks": ticks, "interval": interval, "alarm": alarm},
        }
    )

    detector = PlatformDetector()
    try:
        signal_ids = resolve_signal_names(config.signals, detector)
    except InputError as e:
        print(f"Error: {e}", file=sys.stderr)
        raise typer.Exit(code=ExitCode.INPUT_ERROR) from None

    if config.enabled and not detector.signaling_available():
        family = detector.family().value
        if strict:
            print(
                f"Error: Signal handling is not supported on {family}.\n"
                "Signal hooks are available on Linux and Windows. "
                "Run without --strict to continue without signal callbacks.",
                file=sys.stderr,
            )
            raise typer.Exit(code=ExitCode.UNSUPPORTED_PLATFORM)
        print(
            f"Warning: Signal handling is not supported on {family}; "
            "running without signal callbacks.",
            file=sys.stderr,
        )

    alarm_seconds = config.watch.alarm
    if (
        alarm_seconds is not None
        and ALARM_SIGNAL is not None
        and ALARM_SIGNAL not in signal_ids
    ):
        signal_ids = (*signal_ids, ALARM_SIGNAL)

    coordinator = TaskSignalCoordinator(detector=detector, enabled=config.enabled)
    task = WatchTask(
        signal_ids,
        config.watch,
        should_stop=lambda: coordinator.termination_requested,
    )

    def body() -> int:
        registry = coordinator.signal_registry
        if alarm_seconds is None or registry is None:
            return task.run()
        registry.schedule_alarm(alarm_seconds)
        try:
            return task.run()
        finally:
            registry.schedule_alarm(0)

    try:
        outcome = coordinator.run(task, body)
    except (OSError, ValueError) as e:
        print(
            f"Error: Failed to install signal handlers: {e}\n"
            "Some signals (e.g. SIGKILL, SIGSTOP) cannot be caught. "
            "Choose different signals with --signal.",
            file=sys.stderr,
        )
        raise typer.Exit(code=ExitCode.FAILURE) from None

    raise typer.Exit(code=outcome.exit_code)
