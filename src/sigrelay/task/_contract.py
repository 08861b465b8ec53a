"""SignalableTask — シグナルに反応するタスクの契約。

タスクは購読するシグナルを宣言し、代表的なシグナルごとの名前付き
コールバックとキャッチオールの on_signal を提供する。各コールバックは
「継続」を表す CONTINUE か、非負の終了コードを返す。

SignalHandlerMixin は全コールバックの明示的なデフォルト実装と、
タスク自身がシグナルを直接バインドするためのヘルパーを提供する。
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from enum import Enum
from types import MappingProxyType
from typing import Final, Literal, Protocol, runtime_checkable

from sigrelay.signals import Signal, SignalRegistry


class SignalDecision(Enum):
    """コールバックの判定値のうち、終了コード以外のもの。

    0 と False が等価な Python では「継続」を整数や bool で表現できないため、
    専用のセンチネルとして定義する。
    """

    CONTINUE = "continue"

    def __repr__(self) -> str:
        return "CONTINUE"


CONTINUE: Final = SignalDecision.CONTINUE

type SignalResult = int | Literal[SignalDecision.CONTINUE]


# =============================================================================
# SignalableTask Protocol
# =============================================================================


@runtime_checkable
class SignalableTask(Protocol):
    """シグナルに反応するタスクのプロトコル。

    SignalHandlerMixin を継承すると全メソッドのデフォルト実装が得られる。
    """

    def subscribed_signals(self) -> Iterable[int]:
        """購読するシグナル ID。空の場合はシグナルを登録しない。"""
        ...

    def on_terminate(self, exit_code: int, signal: int | None = None) -> None:
        """プロセス終了直前に 1 度だけ呼ばれる通知。判定値は返さない。"""
        ...

    def on_interrupt(self) -> SignalResult:
        """SIGINT (Ctrl+C) 受信時の判定。"""
        ...

    def on_terminate_signal(self) -> SignalResult:
        """SIGTERM 受信時の判定。"""
        ...

    def on_user_signal1(self) -> SignalResult:
        """SIGUSR1 受信時の判定。"""
        ...

    def on_user_signal2(self) -> SignalResult:
        """SIGUSR2 受信時の判定。"""
        ...

    def on_ctrl_break(self) -> SignalResult:
        """CTRL_BREAK（POSIX では同値の SIGQUIT）受信時の判定。"""
        ...

    def on_signal(self, signal_id: int) -> SignalResult:
        """上記以外のシグナル受信時の判定（キャッチオール）。"""
        ...


# =============================================================================
# ルーティング
# =============================================================================


SIGNAL_ROUTES: Final[Mapping[int, str]] = MappingProxyType(
    {
        Signal.SIGINT: "on_interrupt",
        Signal.SIGTERM: "on_terminate_signal",
        Signal.SIGUSR1: "on_user_signal1",
        Signal.SIGUSR2: "on_user_signal2",
        Signal.CTRL_BREAK: "on_ctrl_break",
    }
)
"""シグナル ID → 名前付きコールバック名。ここにない ID は on_signal へ。"""


def _check_result(result: object, callback_name: str) -> SignalResult:
    """コールバックの戻り値が CONTINUE または非負の int であることを検証する。

    Raises:
        TypeError: CONTINUE でも int でもない場合（bool と None を含む）。
        ValueError: 負の終了コードの場合。
    """
    if result is CONTINUE:
        return CONTINUE
    if isinstance(result, bool) or not isinstance(result, int):
        msg = (
            f"{callback_name}() must return CONTINUE or a non-negative exit code, "
            f"got {result!r}"
        )
        raise TypeError(msg)
    if result < 0:
        msg = f"{callback_name}() returned a negative exit code: {result}"
        raise ValueError(msg)
    return result


def route_signal(task: object, signal_id: int) -> SignalResult:
    """シグナル ID に対応するタスクのコールバックを呼び出し、判定値を返す。

    ルーティング表:
        SIGINT → on_interrupt, SIGTERM → on_terminate_signal,
        SIGUSR1 → on_user_signal1, SIGUSR2 → on_user_signal2,
        CTRL_BREAK → on_ctrl_break, それ以外 → on_signal(signal_id)

    コールバックが定義されていない場合は明示的に CONTINUE を返す。

    Args:
        task: ルーティング先のタスク。
        signal_id: 受信したシグナル ID。

    Returns:
        CONTINUE または終了コード。
    """
    callback_name = SIGNAL_ROUTES.get(signal_id)
    if callback_name is None:
        catch_all: Callable[[int], object] | None = getattr(task, "on_signal", None)
        if catch_all is None:
            return CONTINUE
        return _check_result(catch_all(signal_id), "on_signal")

    callback: Callable[[], object] | None = getattr(task, callback_name, None)
    if callback is None:
        return CONTINUE
    return _check_result(callback(), callback_name)


# =============================================================================
# SignalHandlerMixin
# =============================================================================


class SignalHandlerMixin:
    """SignalableTask の全コールバックに明示的なデフォルト実装を与える Mixin。

    デフォルトの判定:
        on_terminate_signal → 0（正常終了）
        それ以外の判定コールバック → CONTINUE

    bind_signals でタスク自身がコーディネーターを介さずにシグナルを
    バインドすることもできる。その場合は unbind_signals で解除する。
    """

    _signal_registry: SignalRegistry | None = None

    def subscribed_signals(self) -> Iterable[int]:
        return ()

    def on_terminate(self, exit_code: int, signal: int | None = None) -> None:
        """デフォルトでは何もしない。"""

    def on_interrupt(self) -> SignalResult:
        return CONTINUE

    def on_terminate_signal(self) -> SignalResult:
        return 0

    def on_user_signal1(self) -> SignalResult:
        return CONTINUE

    def on_user_signal2(self) -> SignalResult:
        return CONTINUE

    def on_ctrl_break(self) -> SignalResult:
        return CONTINUE

    def on_signal(self, signal_id: int) -> SignalResult:
        return CONTINUE

    def handle_signal(self, signal_id: int) -> SignalResult:
        """受信したシグナルを名前付きコールバックへ振り分ける。"""
        return route_signal(self, signal_id)

    # -------------------------------------------------------------------------
    # 直接バインド
    # -------------------------------------------------------------------------

    @property
    def signal_registry(self) -> SignalRegistry | None:
        """bind_signals で生成したレジストリ。未バインドなら None。"""
        return self._signal_registry

    def create_signal_registry(self) -> SignalRegistry:
        """bind_signals が使うレジストリを生成する。"""
        return SignalRegistry()

    def bind_signals(
        self,
        signals: int | Iterable[int],
        callback: Callable[[int], None],
    ) -> None:
        """シグナル受信時に callback(signal_id) を呼び出すよう登録する。

        シグナル機能が利用できないプラットフォームでは何もしない。

        Args:
            signals: シグナル ID、またはその反復可能オブジェクト。
            callback: シグナル ID を受け取るコールバック。
        """
        registry = self._signal_registry
        if registry is None:
            registry = self.create_signal_registry()
            if not registry.available():
                return
            self._signal_registry = registry

        def handler(signal_id: int, has_next: bool) -> None:
            callback(signal_id)

        signal_ids = (signals,) if isinstance(signals, int) else tuple(signals)
        for signal_id in signal_ids:
            registry.register(signal_id, handler)

    def unbind_signals(self) -> None:
        """bind_signals で登録した全ハンドラを解除する。"""
        if self._signal_registry is not None:
            registry = self._signal_registry
            self._signal_registry = None
            registry.unregister()

    def bind_graceful_termination(self, callback: Callable[[int], None]) -> None:
        """SIGINT と SIGTERM にコールバックをバインドする。"""
        self.bind_signals((Signal.SIGINT, Signal.SIGTERM), callback)

    def bind_debug_signals(self, callback: Callable[[int], None]) -> None:
        """SIGUSR1 / SIGUSR2 / CTRL_BREAK にコールバックをバインドする。"""
        self.bind_signals((Signal.SIGUSR1, Signal.SIGUSR2, Signal.CTRL_BREAK), callback)
