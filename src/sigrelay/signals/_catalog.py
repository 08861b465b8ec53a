"""Signal — プラットフォーム非依存のシグナル ID カタログ。

POSIX シグナル番号と Windows コンソール制御イベントコードを 1 つの固定表で
管理する。値の重複（SIGINT と CTRL_C など）を許容するため IntEnum ではなく
読み取り専用マッピングで保持する。
"""

from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType
from typing import Final


class Signal:
    """よく使われるシグナル番号の定数。

    POSIX 系の値は Linux の番号体系に従う。CTRL_* は Windows 上で
    SIGINT / SIGQUIT 相当として扱う抽象 ID、CTRL_*_EVENT は
    SetConsoleCtrlHandler が通知するネイティブのイベントコード。
    """

    SIGTERM: Final[int] = 15
    SIGINT: Final[int] = 2
    SIGQUIT: Final[int] = 3

    SIGUSR1: Final[int] = 10
    SIGUSR2: Final[int] = 12

    SIGHUP: Final[int] = 1
    SIGKILL: Final[int] = 9

    CTRL_C: Final[int] = 2
    CTRL_BREAK: Final[int] = 3

    CTRL_C_EVENT: Final[int] = 0
    CTRL_BREAK_EVENT: Final[int] = 1
    CTRL_CLOSE_EVENT: Final[int] = 2
    CTRL_LOGOFF_EVENT: Final[int] = 5
    CTRL_SHUTDOWN_EVENT: Final[int] = 6


# 表の順序が正規名の優先順位になる（name_of は最初に一致した名前を返す）。
# 値から名前への逆引き辞書（後勝ち）では 2 が CTRL_CLOSE_EVENT になるため使わず、
# POSIX 名を優先して 2 → SIGINT とする。
SIGNAL_TABLE: Final[Mapping[str, int]] = MappingProxyType(
    {
        "SIGTERM": Signal.SIGTERM,
        "SIGINT": Signal.SIGINT,
        "SIGQUIT": Signal.SIGQUIT,
        "SIGUSR1": Signal.SIGUSR1,
        "SIGUSR2": Signal.SIGUSR2,
        "SIGHUP": Signal.SIGHUP,
        "SIGKILL": Signal.SIGKILL,
        "CTRL_C": Signal.CTRL_C,
        "CTRL_BREAK": Signal.CTRL_BREAK,
        "CTRL_C_EVENT": Signal.CTRL_C_EVENT,
        "CTRL_BREAK_EVENT": Signal.CTRL_BREAK_EVENT,
        "CTRL_CLOSE_EVENT": Signal.CTRL_CLOSE_EVENT,
        "CTRL_LOGOFF_EVENT": Signal.CTRL_LOGOFF_EVENT,
        "CTRL_SHUTDOWN_EVENT": Signal.CTRL_SHUTDOWN_EVENT,
    }
)


def available_signals() -> Mapping[str, int]:
    """カタログ全体（名前 → シグナル ID）を返す。"""
    return SIGNAL_TABLE


def resolve(name: str) -> int | None:
    """シグナル名からシグナル ID を解決する（大文字小文字非依存）。

    Args:
        name: シグナル名（例: "SIGINT", "sigterm", "ctrl_break"）。

    Returns:
        シグナル ID。カタログに存在しなければ None。
    """
    return SIGNAL_TABLE.get(name.strip().upper())


def is_valid(signal_id: int) -> bool:
    """シグナル ID がカタログに含まれるかどうか判定する。

    bool は int のサブクラスだが、シグナル ID としては受け付けない。
    """
    if isinstance(signal_id, bool) or not isinstance(signal_id, int):
        return False
    return signal_id in SIGNAL_TABLE.values()


def name_of(signal_id: int) -> str | None:
    """シグナル ID から正規名を返す。

    同じ値を持つ名前が複数ある場合は表の先頭側を返す（2 → "SIGINT"）。

    Args:
        signal_id: シグナル ID。

    Returns:
        正規名。カタログに存在しなければ None。
    """
    if not is_valid(signal_id):
        return None
    for name, value in SIGNAL_TABLE.items():
        if value == signal_id:
            return name
    return None
