"""モデル共通の基底クラスと列挙値ヘルパー。"""

from enum import StrEnum

from pydantic import BaseModel, ConfigDict


class SigrelayBaseModel(BaseModel):
    """未知のフィールドを拒否する不変モデル。"""

    model_config = ConfigDict(extra="forbid", frozen=True)


def match_enum_member[E: StrEnum](value: object, enum_cls: type[E]) -> E | None:
    """文字列を大文字小文字・前後の空白を無視して enum_cls のメンバーに照合する。

    Args:
        value: 照合対象。str 以外は常に不一致。
        enum_cls: 照合先の StrEnum。

    Returns:
        一致したメンバー。一致しなければ None。
    """
    if not isinstance(value, str):
        return None
    folded = value.strip().casefold()
    for member in enum_cls:
        if member.value.casefold() == folded:
            return member
    return None
