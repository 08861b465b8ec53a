"""SignalRegistry — シグナル別ハンドラチェーンの管理とディスパッチ。

シグナル ID ごとに順序付きのハンドラチェーンを保持し、OS フックとして
自身の handle を登録する。最初の登録時に既存のネイティブハンドラが
あればチェーンの先頭に組み込み、後から登録したハンドラが既存の
ハンドラを黙って破棄しないようにする。

配信モデル:
    CPython は Python レベルのシグナルハンドラをメインスレッドの
    バイトコード境界でのみ実行する（遅延配信）。Windows のコンソール制御
    イベントは OS が生成する別スレッドから届くため、チェーンの走査は
    RLock で直列化する。同一スレッドでの入れ子配信はチェーンの
    スナップショットを再入で走査する。

プロセス全体のシグナルディスポジションは単一の共有資源であり、
同じシグナルに対してフックを保持するレジストリは同時に 1 つに
とどめることを前提とする（強制はしない）。
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable

from sigrelay.signals._backend import (
    NativeHandler,
    SignalBackend,
    create_signal_backend,
)
from sigrelay.signals._platform import PlatformDetector

logger = logging.getLogger(__name__)

type SignalHandler = Callable[[int, bool], None]
"""チェーン内のハンドラ。(シグナル ID, 後続ハンドラの有無) を受け取る。"""


class UnsupportedPlatformError(RuntimeError):
    """シグナル機能が利用できないプラットフォームで登録しようとした場合のエラー。"""


def _chain_native_handler(native: NativeHandler) -> SignalHandler:
    """ネイティブハンドラ (signum, frame) をチェーン用のシグネチャに適合させる。"""

    def previous(signal_id: int, has_next: bool) -> None:
        native(signal_id, None)

    previous.__qualname__ = f"previous[{getattr(native, '__qualname__', native)!s}]"
    return previous


class SignalRegistry:
    """シグナル ID → ハンドラチェーンのレジストリ。

    タスク実行スコープごとに生成し、unregister 後は破棄する想定。
    unregister 後に再登録した場合は新しいチェーンから始まる。

    Args:
        detector: プラットフォーム判定器。None の場合は新規生成。
        backend: OS フックの実装。None の場合はプラットフォームから選択。
    """

    def __init__(
        self,
        detector: PlatformDetector | None = None,
        backend: SignalBackend | None = None,
    ) -> None:
        self._detector = detector if detector is not None else PlatformDetector()
        self._backend = (
            backend if backend is not None else create_signal_backend(self._detector)
        )
        self._chains: dict[int, list[SignalHandler]] = {}
        self._lock = threading.RLock()

    @staticmethod
    def is_supported(detector: PlatformDetector | None = None) -> bool:
        """シグナル機能が利用可能かどうか判定する。"""
        return (detector if detector is not None else PlatformDetector()).signaling_available()

    @property
    def backend(self) -> SignalBackend:
        return self._backend

    def available(self) -> bool:
        """このレジストリの判定器でシグナル機能が利用可能かどうか。"""
        return self._detector.signaling_available()

    def register(self, signal_id: int, handler: SignalHandler) -> None:
        """シグナルハンドラをチェーンの末尾に登録する。

        signal_id への最初の登録時に既存のネイティブハンドラを問い合わせ、
        呼び出し可能であればチェーンの先頭に置く。その後、レジストリの
        handle を OS フックとして登録する（登録済みなら同じ関数で再登録）。

        Args:
            signal_id: 対象シグナル ID。
            handler: (signal_id, has_next) を受け取るハンドラ。

        Raises:
            UnsupportedPlatformError: プラットフォームにシグナル機能がない場合。
                OS 呼び出しの前に判定される。
            OSError: OS がシグナルのフックを拒否した場合（SIGKILL 等）。
            ValueError: メインスレッド以外から POSIX シグナルを登録した場合。
        """
        if not self._detector.signaling_available():
            msg = (
                "Signal handling is not supported on this platform "
                f"({self._detector.family().value}). "
                "Signal hooks are available on Linux (signal module) "
                "and Windows (SetConsoleCtrlHandler)."
            )
            raise UnsupportedPlatformError(msg)

        with self._lock:
            created = signal_id not in self._chains
            if created:
                chain: list[SignalHandler] = []
                previous = self._backend.previous_handler(signal_id)
                if previous is not None:
                    chain.append(_chain_native_handler(previous))
                    logger.debug(
                        "Preserved previous handler for signal %d", signal_id
                    )
                self._chains[signal_id] = chain
            self._chains[signal_id].append(handler)

            try:
                self._backend.install(signal_id, self.handle)
            except BaseException:
                if created:
                    del self._chains[signal_id]
                else:
                    self._chains[signal_id].pop()
                raise

    def handle(self, signal_id: int) -> None:
        """シグナルを受信したときにチェーン内の全ハンドラを順に呼び出す。

        各ハンドラには (signal_id, has_next) を渡す。has_next は後続の
        ハンドラが残っているかどうか。あるハンドラの結果や例外が
        残りのハンドラの呼び出しを止めることはない。例外が発生した場合は
        チェーンの走査後に最初の例外を再送出し、2 つ目以降はログに記録する。

        チェーンが存在しないシグナル ID（未知の値を含む）は何もしない。
        """
        if isinstance(signal_id, bool) or not isinstance(signal_id, int):
            return

        errors: list[BaseException] = []
        with self._lock:
            chain = self._chains.get(signal_id)
            if not chain:
                return
            handlers = tuple(chain)
            last_index = len(handlers) - 1
            for index, handler in enumerate(handlers):
                try:
                    handler(signal_id, index != last_index)
                except BaseException as exc:
                    errors.append(exc)

        if not errors:
            return
        for extra in errors[1:]:
            logger.warning(
                "Additional error in handler chain for signal %d: %r",
                signal_id,
                extra,
            )
        raise errors[0]

    def schedule_alarm(self, seconds: int) -> None:
        """seconds 秒後のアラームシグナルを要求する。

        対応プラットフォーム（POSIX）でのみ有効で、それ以外では何もしない。
        再度呼び出すと前のアラームを置き換え、0 で取り消す。
        """
        if not self._detector.signaling_available():
            return
        self._backend.schedule_alarm(seconds)

    def unregister(self) -> None:
        """全チェーンを破棄し、各シグナルのディスポジションを復元する。

        何度呼び出しても安全。復元中のエラーは全シグナルの復元を
        試みた後に最初のものを再送出する。
        """
        with self._lock:
            signal_ids = list(self._chains)
            self._chains.clear()

        errors: list[Exception] = []
        for signal_id in signal_ids:
            try:
                self._backend.restore(signal_id)
            except Exception as exc:
                errors.append(exc)
        if errors:
            for extra in errors[1:]:
                logger.warning("Additional error while restoring signals: %r", extra)
            raise errors[0]

    def handlers(self, signal_id: int) -> tuple[SignalHandler, ...]:
        """signal_id のチェーンのスナップショットを返す。"""
        with self._lock:
            return tuple(self._chains.get(signal_id, ()))

    def registered_signals(self) -> frozenset[int]:
        """チェーンを持つシグナル ID の集合を返す。"""
        with self._lock:
            return frozenset(self._chains)
