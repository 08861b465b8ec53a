"""WatchTask — watch コマンドのデモ用シグナル対応タスク。

一定間隔で tick を出力する長時間タスク。受信したシグナルと判定を stderr に
出力し、設定に従って継続または終了コードを返す。
"""

from __future__ import annotations

import signal as signal_module
import sys
import time
from collections.abc import Callable, Iterable, Sequence
from typing import Final

from sigrelay.models.config import WatchConfig
from sigrelay.models.exit_code import ExitCode
from sigrelay.signals import PlatformDetector, name_of, resolve
from sigrelay.task import CONTINUE, SignalHandlerMixin, SignalResult


ALARM_SIGNAL: Final[int | None] = getattr(signal_module, "SIGALRM", None)
"""アラームシグナルの ID。POSIX 以外では None。"""


class InputError(Exception):
    """CLI 入力（シグナル名等）が不正な場合のエラー。"""


def resolve_signal_names(
    names: Iterable[str],
    detector: PlatformDetector,
) -> tuple[int, ...]:
    """シグナル名をシグナル ID に解決する。

    プラットフォームのシグナル表を優先し、見つからなければカタログを参照する。
    重複は最初の出現位置で 1 つにまとめる。

    Args:
        names: シグナル名（大文字小文字非依存）。
        detector: プラットフォーム判定器。

    Returns:
        シグナル ID のタプル。

    Raises:
        InputError: 解決できないシグナル名が含まれる場合。
    """
    platform_table = detector.platform_signal_table()
    resolved: list[int] = []
    for name in names:
        key = name.strip().upper()
        signal_id = platform_table.get(key)
        if signal_id is None:
            signal_id = resolve(key)
        if signal_id is None:
            msg = (
                f"Unknown signal name: '{name}'. "
                "Run 'sigrelay signals --all' to list known signal names."
            )
            raise InputError(msg)
        if signal_id not in resolved:
            resolved.append(signal_id)
    return tuple(resolved)


def _decision(exit_code: int | None) -> SignalResult:
    """設定値の終了コードを判定値に変換する。None は継続。"""
    return CONTINUE if exit_code is None else exit_code


class WatchTask(SignalHandlerMixin):
    """tick を出力し続けるデモタスク。

    Args:
        signal_ids: 購読するシグナル ID。
        config: watch 設定。
        sleep: 待機関数（テスト用に差し替え可能）。
        alarm_signal: アラームシグナルの ID。POSIX 以外では None。
        should_stop: 各 tick の後に呼ぶ停止判定。True を返すとループを抜ける。
            別スレッドで届いたシグナルの判定（Windows）を反映するために使う。
    """

    def __init__(
        self,
        signal_ids: Sequence[int],
        config: WatchConfig,
        sleep: Callable[[float], None] | None = None,
        alarm_signal: int | None = ALARM_SIGNAL,
        should_stop: Callable[[], bool] | None = None,
    ) -> None:
        self._signal_ids = tuple(signal_ids)
        self._config = config
        self._sleep = sleep if sleep is not None else time.sleep
        self._alarm_signal = alarm_signal
        self._should_stop = should_stop if should_stop is not None else lambda: False
        self.ticks_done = 0

    def subscribed_signals(self) -> tuple[int, ...]:
        return self._signal_ids

    def on_interrupt(self) -> SignalResult:
        return self._report_decision("SIGINT", self._config.interrupt_exit_code)

    def on_terminate_signal(self) -> SignalResult:
        return self._report_decision("SIGTERM", self._config.terminate_exit_code)

    def on_user_signal1(self) -> SignalResult:
        self._report_status("SIGUSR1")
        return CONTINUE

    def on_user_signal2(self) -> SignalResult:
        self._report_status("SIGUSR2")
        return CONTINUE

    def on_ctrl_break(self) -> SignalResult:
        self._report_status("CTRL_BREAK")
        return CONTINUE

    def on_signal(self, signal_id: int) -> SignalResult:
        if self._alarm_signal is not None and signal_id == self._alarm_signal:
            return self._report_decision("SIGALRM", ExitCode.SUCCESS)
        self._report_status(name_of(signal_id) or f"signal {signal_id}")
        return CONTINUE

    def on_terminate(self, exit_code: int, signal: int | None = None) -> None:
        if signal is None:
            print(f"Finished with exit code {exit_code}", file=sys.stderr)
        else:
            label = name_of(signal) or str(signal)
            print(
                f"Terminated by {label} with exit code {exit_code}",
                file=sys.stderr,
            )

    def run(self) -> int:
        """設定された回数だけ tick を出力する。"""
        total = self._config.ticks
        print(
            f"Watching for {total} tick(s). Send a signal to interact.",
            file=sys.stderr,
        )
        while self.ticks_done < total:
            self._sleep(self._config.interval)
            if self._should_stop():
                print("Stop requested; leaving watch loop", file=sys.stderr)
                break
            self.ticks_done += 1
            print(f"Tick {self.ticks_done}/{total}", file=sys.stderr)
        return ExitCode.SUCCESS

    def _report_decision(self, label: str, exit_code: int | None) -> SignalResult:
        decision = _decision(exit_code)
        if decision is CONTINUE:
            print(f"Received {label}: continuing", file=sys.stderr)
        else:
            print(f"Received {label}: stopping (exit code {decision})", file=sys.stderr)
        return decision

    def _report_status(self, label: str) -> None:
        print(
            f"Received {label}: {self.ticks_done}/{self._config.ticks} tick(s) done",
            file=sys.stderr,
        )
