"""PlatformDetector — OS 判定とシグナル機能の可用性判定。

OS ファミリー（linux / windows / darwin / unknown）と、各 OS のネイティブ
シグナル機能の有無を問い合わせる。プロセス実行中に可用性は変化しないが、
結果はキャッシュせず毎回問い合わせる。
"""

from __future__ import annotations

import platform
import signal
from collections.abc import Mapping
from enum import StrEnum
from types import MappingProxyType, ModuleType

from sigrelay.models._base import match_enum_member
from sigrelay.signals._catalog import Signal
from sigrelay.signals._windows import WindowsControlEventAdapter

_SIGNAL_PREFIX: str = "SIG"
_DISPOSITION_PREFIX: str = "SIG_"

_WINDOWS_SIGNAL_TABLE: Mapping[str, int] = MappingProxyType(
    {
        "CTRL_C_EVENT": Signal.CTRL_C_EVENT,
        "CTRL_BREAK_EVENT": Signal.CTRL_BREAK_EVENT,
        "CTRL_CLOSE_EVENT": Signal.CTRL_CLOSE_EVENT,
        "CTRL_LOGOFF_EVENT": Signal.CTRL_LOGOFF_EVENT,
        "CTRL_SHUTDOWN_EVENT": Signal.CTRL_SHUTDOWN_EVENT,
    }
)

_EMPTY_TABLE: Mapping[str, int] = MappingProxyType({})


class PlatformFamily(StrEnum):
    """OS ファミリー。platform.system() の値を小文字化したもの。"""

    LINUX = "linux"
    WINDOWS = "windows"
    DARWIN = "darwin"
    UNKNOWN = "unknown"


class PlatformDetector:
    """現在のプラットフォームとシグナル機能の可用性を判定する。

    Args:
        system: OS 名（platform.system() 形式）。None の場合は実行環境から取得。
        signal_module: POSIX シグナル機能を提供するモジュール。
            None の場合は標準ライブラリの signal。
    """

    def __init__(
        self,
        system: str | None = None,
        signal_module: ModuleType | None = None,
    ) -> None:
        self._system = system
        self._signal_module = signal_module if signal_module is not None else signal

    def family(self) -> PlatformFamily:
        """OS ファミリーを返す。未知の OS は UNKNOWN。"""
        system = self._system if self._system is not None else platform.system()
        family = match_enum_member(system, PlatformFamily)
        return family if family is not None else PlatformFamily.UNKNOWN

    def is_linux(self) -> bool:
        return self.family() is PlatformFamily.LINUX

    def is_windows(self) -> bool:
        return self.family() is PlatformFamily.WINDOWS

    def is_macos(self) -> bool:
        return self.family() is PlatformFamily.DARWIN

    def signaling_available(self) -> bool:
        """ネイティブのシグナルフック機構が利用可能かどうか判定する。

        Linux ではシグナル単位のハンドラ登録プリミティブ（signal.signal）、
        Windows ではコンソール制御ハンドラ（SetConsoleCtrlHandler）の有無で判定する。
        macOS と未知の OS はフックが配線されていないため常に False。
        """
        family = self.family()
        if family is PlatformFamily.LINUX:
            return callable(getattr(self._signal_module, "signal", None))
        if family is PlatformFamily.WINDOWS:
            return WindowsControlEventAdapter.is_supported()
        return False

    def platform_signal_table(self) -> Mapping[str, int]:
        """現在のプラットフォームで意味を持つシグナル名 → ID の表を返す。

        Linux では signal モジュールが公開する SIG* 定数（SIG_DFL 等の
        ディスポジション定数を除く）、Windows ではコンソール制御イベントコード。

        Returns:
            読み取り専用のマッピング。対応外のプラットフォームでは空。
        """
        family = self.family()
        if family is PlatformFamily.LINUX:
            return self._posix_signal_table()
        if family is PlatformFamily.WINDOWS:
            return _WINDOWS_SIGNAL_TABLE
        return _EMPTY_TABLE

    def _posix_signal_table(self) -> Mapping[str, int]:
        table: dict[str, int] = {}
        for name, value in vars(self._signal_module).items():
            if not name.startswith(_SIGNAL_PREFIX):
                continue
            if name.startswith(_DISPOSITION_PREFIX):
                continue
            if isinstance(value, bool) or not isinstance(value, int):
                continue
            table[name] = int(value)
        return MappingProxyType(dict(sorted(table.items(), key=lambda kv: kv[1])))
