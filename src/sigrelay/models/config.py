"""設定管理モデル。

設定項目の定義とバリデーション仕様。全モデルは SigrelayBaseModel を継承し、
デフォルト値のみで有効なインスタンスを構築できる。
"""

from __future__ import annotations

import re
from enum import StrEnum
from typing import Annotated, Final

from pydantic import Field, StrictBool, StringConstraints, field_validator

from sigrelay.models._base import SigrelayBaseModel, match_enum_member

# シグナル名は SIG* または CTRL_* の大文字識別子（検証前に大文字化する）
SIGNAL_NAME_PATTERN: Final[str] = r"^(SIG[A-Z0-9]+|CTRL_[A-Z_]+)$"
_SIGNAL_NAME_RE: re.Pattern[str] = re.compile(SIGNAL_NAME_PATTERN)

DEFAULT_SIGNALS: Final[tuple[str, ...]] = ("SIGINT", "SIGTERM")

# シェル慣習（128 + シグナル番号）に合わせたデフォルト終了コード
DEFAULT_INTERRUPT_EXIT_CODE: Final[int] = 130
DEFAULT_TERMINATE_EXIT_CODE: Final[int] = 143


class OutputFormat(StrEnum):
    """signals コマンドの出力形式。"""

    TABLE = "table"
    JSON = "json"


class WatchConfig(SigrelayBaseModel):
    """watch コマンドのデモタスク設定。

    interrupt_exit_code / terminate_exit_code が None の場合、
    該当シグナル受信後も処理を継続する。
    """

    ticks: int = Field(default=3, gt=0)
    interval: float = Field(default=1.0, gt=0)
    interrupt_exit_code: int | None = Field(
        default=DEFAULT_INTERRUPT_EXIT_CODE, ge=0
    )
    terminate_exit_code: int | None = Field(
        default=DEFAULT_TERMINATE_EXIT_CODE, ge=0
    )
    alarm: int | None = Field(default=None, gt=0)


class SigrelayConfig(SigrelayBaseModel):
    """全設定項目を統合した不変モデル。

    デフォルト値のみで有効なインスタンスを構築可能。
    """

    # シグナル連携の有効/無効（False の場合コーディネーターは何も登録しない）
    enabled: StrictBool = True

    # watch コマンドの購読シグナル
    signals: tuple[Annotated[str, StringConstraints(min_length=1)], ...] = (
        DEFAULT_SIGNALS
    )

    # 出力設定
    output_format: OutputFormat = OutputFormat.TABLE

    # デモタスク設定
    watch: WatchConfig = Field(default_factory=WatchConfig)

    @field_validator("output_format", mode="before")
    @classmethod
    def normalize_output_format(cls, v: object) -> object:
        """出力形式を大文字小文字非依存で受け付ける。"""
        member = match_enum_member(v, OutputFormat)
        return member if member is not None else v

    @field_validator("signals", mode="before")
    @classmethod
    def normalize_signal_names(cls, v: object) -> object:
        """シグナル名を大文字に正規化する。"""
        if isinstance(v, (list, tuple)):
            return tuple(s.upper() if isinstance(s, str) else s for s in v)
        return v

    @field_validator("signals")
    @classmethod
    def validate_signal_names(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        """シグナル名の形式を検証する。"""
        for name in v:
            if not _SIGNAL_NAME_RE.fullmatch(name):
                msg = (
                    f"Invalid signal name '{name}': "
                    f"must match pattern {SIGNAL_NAME_PATTERN}"
                )
                raise ValueError(msg)
        return v
