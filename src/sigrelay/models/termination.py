"""TerminationOutcome — タスク実行の終了結果。

タスク実行 1 回につき 1 つ生成され、実際にプロセスを停止する外部の
呼び出し元（CLI 等）が消費する。
"""

from __future__ import annotations

from pydantic import Field

from sigrelay.models._base import SigrelayBaseModel


class TerminationOutcome(SigrelayBaseModel):
    """終了コードと終了の契機となったシグナルの組。

    Attributes:
        exit_code: プロセスの終了コード（非負整数）。
        signal: 終了の契機となったシグナル ID。シグナル起因でなければ None。
    """

    exit_code: int = Field(ge=0)
    signal: int | None = None

    @property
    def interrupted(self) -> bool:
        """シグナルによって終了したかどうか。"""
        return self.signal is not None
