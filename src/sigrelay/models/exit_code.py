"""ExitCode — 終了コードの定義。"""

from enum import IntEnum


class ExitCode(IntEnum):
    """プロセス終了コード。

    0-1 はタスク実行結果に対応し、2 以降は CLI 層固有のエラー。
    シグナルコールバックが返す終了コードはこの列挙に限定されない。
    """

    SUCCESS = 0
    FAILURE = 1
    INPUT_ERROR = 2
    CONFIG_ERROR = 3
    UNSUPPORTED_PLATFORM = 4
