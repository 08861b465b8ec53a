"""TaskSignalCoordinator — タスク実行とシグナルレジストリの橋渡し。

タスク開始時に購読シグナルを読み取り、シグナルごとにタスクの名前付き
コールバックへ振り分けるハンドラを新しい SignalRegistry に登録する。
タスク終了時に登録を解除して元のハンドラを復元し、最終的な終了コードと
契機となったシグナルで終了通知を発行する。

外部の実行フレームワークからは before_execution / after_execution を
実行の直前と直後（例外時も必ず）に呼び出す。自前で実行する場合は
run() が両方と終了通知をまとめて扱う。
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager

from sigrelay.models.exit_code import ExitCode
from sigrelay.models.termination import TerminationOutcome
from sigrelay.signals import (
    PlatformDetector,
    SignalHandler,
    SignalRegistry,
    UnsupportedPlatformError,
    name_of,
)
from sigrelay.task._contract import (
    CONTINUE,
    SignalableTask,
    SignalResult,
    route_signal,
)

logger = logging.getLogger(__name__)


class SignalTermination(BaseException):
    """タスクのコールバックが終了コードを返したことを実行本体へ伝える例外。

    KeyboardInterrupt と同様に BaseException を継承し、タスク本体の
    ``except Exception`` で捕捉されないようにする。

    Attributes:
        outcome: 終了コードと契機となったシグナル。
    """

    def __init__(self, outcome: TerminationOutcome) -> None:
        super().__init__(
            f"Terminated by signal {outcome.signal} with exit code {outcome.exit_code}"
        )
        self.outcome = outcome


class TaskSignalCoordinator:
    """SignalableTask の実行ごとにシグナルハンドラを登録・解除する。

    Args:
        detector: プラットフォーム判定器。None の場合は新規生成。
        registry_factory: 実行ごとのレジストリを生成する関数。
            None の場合は SignalRegistry(detector)。
        enabled: False の場合、before_execution は常に何もしない。
    """

    def __init__(
        self,
        detector: PlatformDetector | None = None,
        registry_factory: Callable[[], SignalRegistry] | None = None,
        enabled: bool = True,
    ) -> None:
        self._detector = detector if detector is not None else PlatformDetector()
        self._registry_factory = (
            registry_factory
            if registry_factory is not None
            else lambda: SignalRegistry(self._detector)
        )
        self._enabled = enabled

        self._current_task: SignalableTask | None = None
        self._registry: SignalRegistry | None = None
        # ルーティングハンドラは登録時のトークンが現在の値と一致する間だけ動作する
        self._execution_token: object | None = None

        self._state_lock = threading.Lock()
        self._pending_outcome: TerminationOutcome | None = None
        self._termination_requested = threading.Event()
        self._terminated = False

    # -------------------------------------------------------------------------
    # 状態
    # -------------------------------------------------------------------------

    @property
    def current_task(self) -> SignalableTask | None:
        """実行中のタスク。実行スコープ外では None。"""
        return self._current_task

    @property
    def signal_registry(self) -> SignalRegistry | None:
        """実行中のレジストリ。登録が行われていなければ None。"""
        return self._registry

    @property
    def termination_requested(self) -> bool:
        """コールバックが終了コードを返したかどうか。"""
        return self._termination_requested.is_set()

    @property
    def pending_outcome(self) -> TerminationOutcome | None:
        """コールバックの判定で決まった終了結果。未決定なら None。"""
        with self._state_lock:
            return self._pending_outcome

    @staticmethod
    def is_signalable(task: object) -> bool:
        """task が SignalableTask プロトコルを満たすかどうか判定する。"""
        return isinstance(task, SignalableTask)

    # -------------------------------------------------------------------------
    # 実行ライフサイクル
    # -------------------------------------------------------------------------

    def before_execution(self, task: object) -> None:
        """タスク実行の直前に購読シグナルのハンドラを登録する。

        以下のいずれかに該当する場合は何もしない（レジストリを生成せず、
        状態も保持しない）:
            - 無効化されている
            - task が SignalableTask を満たさない
            - プラットフォームにシグナル機能がない
            - 購読シグナルが空

        Args:
            task: 実行しようとしているタスク。

        Raises:
            OSError: OS がシグナルのフックを拒否した場合。
            ValueError: メインスレッド以外から POSIX シグナルを登録した場合。
        """
        if self._registry is not None:
            logger.warning(
                "before_execution called while a previous execution is active; "
                "unregistering its handlers first"
            )
            self.after_execution()
        self._reset_execution_state()

        if not self._enabled:
            return
        if not isinstance(task, SignalableTask):
            return
        if not self._detector.signaling_available():
            logger.debug(
                "Signal handling unavailable on %s; running without signal callbacks",
                self._detector.family().value,
            )
            return

        signal_ids = tuple(dict.fromkeys(task.subscribed_signals()))
        if not signal_ids:
            return

        registry = self._registry_factory()
        token = object()
        self._execution_token = token
        try:
            for signal_id in signal_ids:
                registry.register(signal_id, self._make_router(task, token))
        except UnsupportedPlatformError:
            self._execution_token = None
            registry.unregister()
            logger.debug("Signal registry reported unsupported platform")
            return
        except BaseException:
            self._execution_token = None
            registry.unregister()
            raise

        self._current_task = task
        self._registry = registry
        logger.debug(
            "Registered signal handlers for %s: %s",
            type(task).__name__,
            ", ".join(name_of(s) or str(s) for s in signal_ids),
        )

    def after_execution(self) -> None:
        """タスク実行後にハンドラを解除し、元のハンドラを復元する。

        レジストリの有無にかかわらず現在のタスクとレジストリをクリアする。
        タスク本体が例外を送出した場合も必ず呼び出すこと。
        解除中に届いたシグナルはタスクのコールバックへ振り分けない。
        """
        self._execution_token = None
        registry = self._registry
        self._registry = None
        self._current_task = None
        if registry is not None:
            registry.unregister()

    @contextmanager
    def execution(self, task: object) -> Iterator[TaskSignalCoordinator]:
        """before_execution / after_execution で囲む実行スコープ。

        終了通知は発行しない。必要なら呼び出し元が handle_termination を呼ぶ。
        """
        self.before_execution(task)
        try:
            yield self
        finally:
            self.after_execution()

    def run(
        self,
        task: object,
        body: Callable[[], int | None],
    ) -> TerminationOutcome:
        """タスク本体をシグナル連携付きで実行し、終了結果を返す。

        1. before_execution でハンドラを登録
        2. body を実行（コールバックが終了コードを返すと SignalTermination で中断）
        3. after_execution でハンドラを解除（例外時も必ず）
        4. SignalableTask なら on_terminate を 1 度だけ通知

        body が例外を送出した場合も終了通知を発行してから例外を再送出する。
        SystemExit はその終了コード、それ以外（KeyboardInterrupt を含む）は
        ExitCode.FAILURE で通知する。

        Args:
            task: 実行するタスク。
            body: タスク本体。戻り値は終了コード（None は 0）。

        Returns:
            TerminationOutcome: 終了コードと契機となったシグナル。
        """
        self.before_execution(task)
        try:
            try:
                returned = body()
            finally:
                self.after_execution()
        except SignalTermination as exc:
            outcome = exc.outcome
        except BaseException as exc:
            self._notify_termination(task, self._abort_outcome(exc))
            raise
        else:
            outcome = self._resolve_outcome(returned)

        self._notify_termination(task, outcome)
        return outcome

    # -------------------------------------------------------------------------
    # シグナル処理
    # -------------------------------------------------------------------------

    def handle_signal(self, task: object, signal_id: int) -> SignalResult:
        """シグナルをタスクの名前付きコールバックへ振り分け、判定値を返す。"""
        return route_signal(task, signal_id)

    def handle_termination(
        self,
        task: SignalableTask,
        exit_code: int,
        signal: int | None = None,
    ) -> None:
        """タスクに終了を通知する。1 回の実行につき最初の呼び出しだけが有効。"""
        with self._state_lock:
            if self._terminated:
                logger.debug("Termination already notified; ignoring")
                return
            self._terminated = True
        task.on_terminate(exit_code, signal)

    def _make_router(self, task: SignalableTask, token: object) -> SignalHandler:
        def route(signal_id: int, has_next: bool) -> None:
            if self._execution_token is not token:
                logger.debug(
                    "Signal %d arrived after execution ended; ignored", signal_id
                )
                return
            self._dispatch(task, signal_id)

        return route

    def _dispatch(self, task: SignalableTask, signal_id: int) -> None:
        result = self.handle_signal(task, signal_id)
        if result is CONTINUE:
            logger.debug("Signal %d: task continues", signal_id)
            return

        with self._state_lock:
            if self._pending_outcome is None:
                self._pending_outcome = TerminationOutcome(
                    exit_code=result, signal=signal_id
                )
            outcome = self._pending_outcome
        self._termination_requested.set()
        logger.debug(
            "Signal %d: task requested exit code %d", signal_id, outcome.exit_code
        )

        # Windows のコンソール制御イベントは別スレッドで届くため、記録のみ行う
        if threading.current_thread() is threading.main_thread():
            raise SignalTermination(outcome)

    def _reset_execution_state(self) -> None:
        with self._state_lock:
            self._pending_outcome = None
            self._terminated = False
        self._termination_requested.clear()

    def _resolve_outcome(self, returned: int | None) -> TerminationOutcome:
        pending = self.pending_outcome
        if pending is not None:
            return pending
        exit_code = ExitCode.SUCCESS if returned is None else int(returned)
        return TerminationOutcome(exit_code=exit_code)

    def _abort_outcome(self, exc: BaseException) -> TerminationOutcome:
        pending = self.pending_outcome
        signal = pending.signal if pending is not None else None
        exit_code: int = ExitCode.FAILURE
        if isinstance(exc, SystemExit):
            code = exc.code
            if code is None:
                exit_code = ExitCode.SUCCESS
            elif isinstance(code, int) and code >= 0:
                exit_code = int(code)
        return TerminationOutcome(exit_code=exit_code, signal=signal)

    def _notify_termination(self, task: object, outcome: TerminationOutcome) -> None:
        if isinstance(task, SignalableTask):
            self.handle_termination(task, outcome.exit_code, outcome.signal)
