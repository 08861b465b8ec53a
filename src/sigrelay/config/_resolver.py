"""設定リゾルバー。

ユーザー設定 < pyproject.toml < .sigrelay/config.toml < CLI オプション の順に
レイヤーを重ね、最後に SigrelayConfig のデフォルト値で補完する。
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Final

from sigrelay.config._sources import discover_sources
from sigrelay.models.config import SigrelayConfig

logger = logging.getLogger(__name__)

# フィールド単位でマージするネストしたセクション
NESTED_SECTIONS: Final[frozenset[str]] = frozenset({"watch"})


def _merge_section(
    name: str,
    base: object,
    override: object,
) -> dict[str, object]:
    if not isinstance(override, Mapping):
        msg = f"'{name}' must be a dict, got {type(override).__name__}"
        raise TypeError(msg)
    merged: dict[str, object] = dict(base) if isinstance(base, Mapping) else {}
    merged.update(override)
    return merged


def merge_config_layers(
    *layers: Mapping[str, object] | None,
) -> dict[str, object]:
    """レイヤーを低優先度から順に重ねる。

    トップレベルの値は後勝ちで置き換え、NESTED_SECTIONS の
    セクションはキー単位で重ねる。入力の辞書は変更しない。

    Raises:
        TypeError: ネストしたセクションが dict でない場合。
    """
    result: dict[str, object] = {}
    for layer in layers:
        if layer is None:
            continue
        for key, value in layer.items():
            if key in NESTED_SECTIONS:
                result[key] = _merge_section(key, result.get(key), value)
            else:
                result[key] = value
    return result


def filter_cli_overrides(cli_options: Mapping[str, object]) -> dict[str, object]:
    """未指定（None）の CLI オプションを取り除く。

    ネストしたセクション内の None も取り除き、空になったセクションは残さない。
    """
    filtered: dict[str, object] = {}
    for key, value in cli_options.items():
        if value is None:
            continue
        if key in NESTED_SECTIONS and isinstance(value, Mapping):
            section = {k: v for k, v in value.items() if v is not None}
            if section:
                filtered[key] = section
        else:
            filtered[key] = value
    return filtered


def resolve_config(
    start_dir: Path | None = None,
    cli_overrides: Mapping[str, object] | None = None,
) -> SigrelayConfig:
    """設定ソースを探索・統合して SigrelayConfig を構築する。

    Args:
        start_dir: 探索開始ディレクトリ。None の場合はカレントディレクトリ。
        cli_overrides: CLI オプションの辞書。None 値は未指定扱い。

    Returns:
        解決済みの SigrelayConfig インスタンス。

    Raises:
        pydantic.ValidationError: マージ後の設定が不正な場合。
        tomllib.TOMLDecodeError: 設定ファイルの TOML 構文が不正な場合。
        PermissionError: 設定ファイルの読み取り権限がない場合。
        TypeError: ネストしたセクションが dict でない場合。
    """
    start = start_dir if start_dir is not None else Path.cwd()

    layers: list[Mapping[str, object] | None] = []
    for source in discover_sources(start):
        logger.debug("Loading configuration from %s", source.describe())
        layers.append(source.load())
    if cli_overrides is not None:
        layers.append(filter_cli_overrides(cli_overrides))

    return SigrelayConfig.model_validate(merge_config_layers(*layers))
