"""テスト共通フィクスチャ・フェイク実装。

OS のシグナルディスポジションを実際に書き換えないよう、SignalBackend と
ConsoleCtrlApi のフェイクを提供する。
"""

from __future__ import annotations

from collections.abc import Callable
from types import FrameType

import pytest

from sigrelay.signals import PlatformDetector, SignalRegistry

type NativeHandler = Callable[[int, FrameType | None], object]


class FakeSignalBackend:
    """呼び出しを記録するだけの SignalBackend。"""

    name = "fake"

    def __init__(self, previous: dict[int, NativeHandler] | None = None) -> None:
        self.previous: dict[int, NativeHandler] = dict(previous or {})
        self.installed: dict[int, Callable[[int], None]] = {}
        self.install_calls: list[int] = []
        self.restored: list[int] = []
        self.alarms: list[int] = []

    def install(self, signal_id: int, dispatch: Callable[[int], None]) -> None:
        self.install_calls.append(signal_id)
        self.installed[signal_id] = dispatch

    def restore(self, signal_id: int) -> None:
        self.restored.append(signal_id)
        self.installed.pop(signal_id, None)

    def previous_handler(self, signal_id: int) -> NativeHandler | None:
        return self.previous.get(signal_id)

    def schedule_alarm(self, seconds: int) -> None:
        self.alarms.append(seconds)

    def deliver(self, signal_id: int) -> None:
        """OS からのシグナル配信を模倣する。"""
        self.installed[signal_id](signal_id)


class FakeConsoleCtrlApi:
    """SetConsoleCtrlHandler の呼び出しを記録するフェイク。"""

    def __init__(self, succeed: bool = True) -> None:
        self.succeed = succeed
        self.calls: list[tuple[Callable[[int], bool], bool]] = []
        self.routine: Callable[[int], bool] | None = None

    def set_handler(self, routine: Callable[[int], bool], add: bool) -> bool:
        self.calls.append((routine, add))
        if not self.succeed:
            return False
        self.routine = routine if add else None
        return True

    def fire(self, event_code: int) -> bool:
        """OS からのコンソール制御イベント通知を模倣する。"""
        assert self.routine is not None
        return self.routine(event_code)


@pytest.fixture
def linux_detector() -> PlatformDetector:
    """シグナル機能が利用可能な Linux として振る舞う判定器。"""
    return PlatformDetector(system="Linux")


@pytest.fixture
def darwin_detector() -> PlatformDetector:
    """シグナル機能が利用できない macOS として振る舞う判定器。"""
    return PlatformDetector(system="Darwin")


@pytest.fixture
def fake_backend() -> FakeSignalBackend:
    return FakeSignalBackend()


@pytest.fixture
def make_backend() -> Callable[..., FakeSignalBackend]:
    """既存ハンドラを指定して FakeSignalBackend を生成するファクトリ。"""
    return FakeSignalBackend


@pytest.fixture
def registry(
    linux_detector: PlatformDetector, fake_backend: FakeSignalBackend
) -> SignalRegistry:
    return SignalRegistry(detector=linux_detector, backend=fake_backend)


@pytest.fixture
def fake_console_api() -> FakeConsoleCtrlApi:
    return FakeConsoleCtrlApi()


@pytest.fixture
def make_console_api() -> Callable[..., FakeConsoleCtrlApi]:
    return FakeConsoleCtrlApi
