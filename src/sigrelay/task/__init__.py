"""シグナル対応タスクの契約とコーディネーター。

SignalableTask を実装したタスクは TaskSignalCoordinator を通じて
実行スコープの間だけシグナルコールバックを受け取る。
"""

from sigrelay.task._contract import (
    CONTINUE,
    SIGNAL_ROUTES,
    SignalableTask,
    SignalDecision,
    SignalHandlerMixin,
    SignalResult,
    route_signal,
)
from sigrelay.task._coordinator import SignalTermination, TaskSignalCoordinator

__all__ = [
    "CONTINUE",
    "SIGNAL_ROUTES",
    "SignalDecision",
    "SignalHandlerMixin",
    "SignalResult",
    "SignalTermination",
    "SignalableTask",
    "TaskSignalCoordinator",
    "route_signal",
]
