"""SignalBackend — プラットフォーム別のシグナルフック登録・復元プリミティブ。

SignalRegistry のハンドラチェーン処理はプラットフォームで分岐せず、
OS へのフック登録・復元・既存ハンドラ問い合わせだけをこのモジュールの
実装に委譲する。実装はレジストリ生成時に 1 度だけ選択される。
"""

from __future__ import annotations

import logging
import signal
from collections.abc import Callable
from types import FrameType, ModuleType
from typing import Protocol, runtime_checkable

from sigrelay.signals._catalog import Signal
from sigrelay.signals._platform import PlatformDetector
from sigrelay.signals._windows import WindowsControlEventAdapter

logger = logging.getLogger(__name__)

type DispatchFunction = Callable[[int], None]
type NativeHandler = Callable[[int, FrameType | None], object]


@runtime_checkable
class SignalBackend(Protocol):
    """OS レベルのシグナルディスポジションを操作するプロトコル。"""

    name: str

    def install(self, signal_id: int, dispatch: DispatchFunction) -> None:
        """signal_id の OS フックとして dispatch を登録する（冪等）。"""
        ...

    def restore(self, signal_id: int) -> None:
        """signal_id のディスポジションを登録前の状態に戻す。"""
        ...

    def previous_handler(self, signal_id: int) -> NativeHandler | None:
        """signal_id に現在登録されている呼び出し可能なネイティブハンドラを返す。"""
        ...

    def schedule_alarm(self, seconds: int) -> None:
        """seconds 秒後にアラームシグナルを要求する（ベストエフォート）。"""
        ...


# =============================================================================
# POSIX
# =============================================================================


class PosixSignalBackend:
    """signal モジュールによる POSIX 実装。

    最初に install した時点のディスポジションを保存し、restore で書き戻す。
    保存値が None（C レベルで登録されたハンドラ）の場合は SIG_DFL に戻す。

    Args:
        signal_module: signal 互換モジュール。None の場合は標準ライブラリ。
    """

    name = "posix"

    def __init__(self, signal_module: ModuleType | None = None) -> None:
        self._signal = signal_module if signal_module is not None else signal
        self._saved: dict[int, object] = {}
        self._installed: dict[int, tuple[DispatchFunction, NativeHandler]] = {}

    def install(self, signal_id: int, dispatch: DispatchFunction) -> None:
        installed = self._installed.get(signal_id)
        if installed is not None and installed[0] == dispatch:
            native = installed[1]
        else:

            def native(signum: int, frame: FrameType | None) -> None:
                dispatch(signum)

        previous = self._signal.signal(signal_id, native)
        self._saved.setdefault(signal_id, previous)
        self._installed[signal_id] = (dispatch, native)
        logger.debug("Installed dispatch hook for signal %d", signal_id)

    def restore(self, signal_id: int) -> None:
        saved = self._saved.pop(signal_id, None)
        self._installed.pop(signal_id, None)
        disposition = saved if saved is not None else self._signal.SIG_DFL
        self._signal.signal(signal_id, disposition)
        logger.debug("Restored disposition for signal %d", signal_id)

    def previous_handler(self, signal_id: int) -> NativeHandler | None:
        """現在のハンドラが Python レベルの呼び出し可能オブジェクトなら返す。

        SIG_DFL / SIG_IGN / None（C レベルのハンドラ）は連鎖対象外。
        signal.default_int_handler は KeyboardInterrupt を送出する
        ランタイムのデフォルト動作であり、連鎖すると「継続」判定が
        成立しなくなるため SIG_DFL と同様に扱う。
        """
        getsignal = getattr(self._signal, "getsignal", None)
        if getsignal is None:
            logger.warning(
                "signal.getsignal is unavailable; previous handler for signal %d "
                "cannot be preserved",
                signal_id,
            )
            return None
        current = getsignal(signal_id)
        if current is getattr(self._signal, "default_int_handler", None):
            return None
        if callable(current):
            return current
        return None

    def schedule_alarm(self, seconds: int) -> None:
        alarm = getattr(self._signal, "alarm", None)
        if alarm is None:
            return
        alarm(seconds)


# =============================================================================
# Windows
# =============================================================================


_CTRL_EVENT_BY_SIGNAL: dict[int, int] = {
    Signal.CTRL_C: Signal.CTRL_C_EVENT,
    Signal.CTRL_BREAK: Signal.CTRL_BREAK_EVENT,
}


def to_control_event(signal_id: int) -> int:
    """抽象シグナル ID を Windows コンソール制御イベントコードへ変換する。

    CTRL_C (2) → CTRL_C_EVENT (0)、CTRL_BREAK (3) → CTRL_BREAK_EVENT (1)。
    それ以外の値はそのまま返す。
    """
    return _CTRL_EVENT_BY_SIGNAL.get(signal_id, signal_id)


class WindowsSignalBackend:
    """WindowsControlEventAdapter による Windows 実装。

    Windows には現在のハンドラを問い合わせる手段がないため、
    previous_handler は常に None を返す。SetConsoleCtrlHandler は
    ハンドラを積み上げる方式のため、既存のネイティブハンドラは OS 側に
    残り続け、こちらのハンドラが未処理を返した場合に呼び出される。

    Args:
        adapter: コンソール制御イベントアダプタ。None の場合は新規生成。
    """

    name = "windows"

    def __init__(self, adapter: WindowsControlEventAdapter | None = None) -> None:
        self._adapter = adapter if adapter is not None else WindowsControlEventAdapter()

    @property
    def adapter(self) -> WindowsControlEventAdapter:
        return self._adapter

    def install(self, signal_id: int, dispatch: DispatchFunction) -> None:
        event_code = to_control_event(signal_id)

        def on_event(_event_code: int) -> None:
            dispatch(signal_id)

        if not self._adapter.register(event_code, on_event):
            msg = f"Failed to hook console control event {event_code}"
            raise OSError(msg)
        logger.debug(
            "Routed console control event %d to signal %d", event_code, signal_id
        )

    def restore(self, signal_id: int) -> None:
        self._adapter.unregister()

    def previous_handler(self, signal_id: int) -> NativeHandler | None:
        return None

    def schedule_alarm(self, seconds: int) -> None:
        """Windows にはアラームシグナルがないため何もしない。"""


def create_signal_backend(detector: PlatformDetector) -> SignalBackend:
    """プラットフォームに応じた SignalBackend を生成する。

    Windows では WindowsSignalBackend、それ以外では PosixSignalBackend。
    シグナル機能の可用性判定は SignalRegistry 側で行う。
    """
    if detector.is_windows():
        return WindowsSignalBackend()
    return PosixSignalBackend()
