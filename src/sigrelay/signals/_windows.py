"""WindowsControlEventAdapter — Windows コンソール制御イベントの多重化。

Windows にはシグナル単位のハンドラ登録 API がなく、SetConsoleCtrlHandler に
登録した単一のコールバックへ全イベント（CTRL_C / CTRL_BREAK / CLOSE /
LOGOFF / SHUTDOWN）が通知される。このアダプタは単一のネイティブコールバックを
イベントコード別のハンドラへ振り分ける。

イベントコードごとに保持するハンドラは 1 つだけ。複数ハンドラの連鎖は
上位の SignalRegistry が担当する。

Note:
    コンソール制御ハンドラは OS が生成する別スレッドで呼び出される。
"""

from __future__ import annotations

import ctypes
import logging
from collections.abc import Callable
from typing import Any, Protocol

logger = logging.getLogger(__name__)

type ControlEventHandler = Callable[[int], None]
type ControlRoutine = Callable[[int], bool]


class ConsoleCtrlApi(Protocol):
    """SetConsoleCtrlHandler 相当のネイティブ機能。"""

    def set_handler(self, routine: ControlRoutine, add: bool) -> bool:
        """routine を登録（add=True）または解除（add=False）する。

        Returns:
            ネイティブ呼び出しが成功した場合 True。
        """
        ...


class Kernel32ConsoleCtrlApi:
    """kernel32.SetConsoleCtrlHandler を ctypes 経由で呼び出す実装。

    ネイティブ側に渡したコールバックオブジェクトは、解除するまで
    ガベージコレクトされないよう参照を保持する。
    """

    def __init__(self, kernel32: Any) -> None:
        from ctypes import wintypes

        self._kernel32 = kernel32
        self._routine_type = ctypes.WINFUNCTYPE(wintypes.BOOL, wintypes.DWORD)  # type: ignore[attr-defined]
        self._native_routine: Any | None = None

    def set_handler(self, routine: ControlRoutine, add: bool) -> bool:
        if add:
            native = self._routine_type(lambda event: 1 if routine(event) else 0)
            if not self._kernel32.SetConsoleCtrlHandler(native, True):
                return False
            self._native_routine = native
            return True

        if self._native_routine is None:
            return True
        removed = bool(self._kernel32.SetConsoleCtrlHandler(self._native_routine, False))
        self._native_routine = None
        return removed


def load_console_ctrl_api() -> ConsoleCtrlApi | None:
    """ネイティブのコンソール制御 API を読み込む。

    Returns:
        Windows 以外、または kernel32 に SetConsoleCtrlHandler が
        存在しない場合は None。
    """
    windll = getattr(ctypes, "windll", None)
    if windll is None:
        return None
    kernel32 = getattr(windll, "kernel32", None)
    if kernel32 is None or not hasattr(kernel32, "SetConsoleCtrlHandler"):
        return None
    return Kernel32ConsoleCtrlApi(kernel32)


class WindowsControlEventAdapter:
    """単一のコンソール制御コールバックをイベントコード別に振り分ける。

    Args:
        api: ネイティブ API。None の場合は初回登録時に load_console_ctrl_api()
            で読み込む。
    """

    def __init__(self, api: ConsoleCtrlApi | None = None) -> None:
        self._api = api
        self._handlers: dict[int, ControlEventHandler] = {}
        self._active = False

    @staticmethod
    def is_supported() -> bool:
        """Windows のコンソール制御 API が利用可能かどうか判定する。"""
        return load_console_ctrl_api() is not None

    @property
    def active(self) -> bool:
        """ネイティブコールバックが登録済みかどうか。"""
        return self._active

    def registered_events(self) -> frozenset[int]:
        """ハンドラが登録されているイベントコードの集合。"""
        return frozenset(self._handlers)

    def register(self, event_code: int, handler: ControlEventHandler) -> bool:
        """イベントコードに対するハンドラを登録する。

        ネイティブコールバックは初回のみ登録し、以降はテーブルへの追加だけを行う。
        同じイベントコードへの再登録は既存のハンドラを置き換える。

        Args:
            event_code: Windows コンソール制御イベントコード。
            handler: イベントコードを受け取るハンドラ。

        Returns:
            ネイティブコールバックが有効な場合 True。ネイティブ機能が
            存在しない、または登録に失敗した場合 False。
        """
        api = self._resolve_api()
        if api is None:
            return False

        self._handlers[event_code] = handler
        if not self._active:
            self._active = api.set_handler(self._handle, True)
            if not self._active:
                logger.warning(
                    "SetConsoleCtrlHandler failed; control event %d not hooked",
                    event_code,
                )
                del self._handlers[event_code]
            else:
                logger.debug("Installed console control handler")
        return self._active

    def unregister(self) -> None:
        """ネイティブコールバックを解除し、ハンドラテーブルを空にする。

        一度も登録していない場合も安全に呼び出せる。
        """
        if self._active and self._api is not None:
            if not self._api.set_handler(self._handle, False):
                logger.warning("Failed to remove console control handler")
            else:
                logger.debug("Removed console control handler")
        self._active = False
        self._handlers.clear()

    def _handle(self, event_code: int) -> bool:
        """イベントコードに対応するハンドラを 1 つだけ呼び出す。

        Returns:
            ハンドラが存在し処理した場合 True（後続のコントロールハンドラを
            呼ばせない）。未登録のイベントコードは False。
        """
        handler = self._handlers.get(event_code)
        if handler is None:
            return False
        handler(event_code)
        return True

    def _resolve_api(self) -> ConsoleCtrlApi | None:
        if self._api is None:
            self._api = load_console_ctrl_api()
        return self._api
