"""設定ソースの探索と読み込み。

設定ファイルは次の 3 箇所から探す（低優先度順）:

    1. ~/.config/sigrelay/config.toml
    2. 祖先ディレクトリで最初に見つかった pyproject.toml の [tool.sigrelay]
    3. 祖先ディレクトリで最初に見つかった .sigrelay/config.toml

存在するファイルだけを ConfigSource として返し、内容のバリデーションは
_resolver.py が担当する。
"""

from __future__ import annotations

import tomllib
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import Final

PROJECT_DIR_NAME: Final[str] = ".sigrelay"
CONFIG_FILE_NAME: Final[str] = "config.toml"
PYPROJECT_FILE_NAME: Final[str] = "pyproject.toml"
PYPROJECT_TABLE: Final[tuple[str, ...]] = ("tool", "sigrelay")


@dataclass(frozen=True)
class ConfigSource:
    """設定レイヤー 1 つ分の所在。

    Attributes:
        label: 表示用のレイヤー名（"user" / "pyproject" / "project"）。
        path: TOML ファイルのパス。
        table: 設定が置かれたテーブルのキー列。ファイル全体なら空。
    """

    label: str
    path: Path
    table: tuple[str, ...] = ()

    def load(self) -> dict[str, object] | None:
        """TOML を読み込み、対象テーブルを返す。

        Returns:
            対象テーブルの辞書。テーブルが存在しなければ None。

        Raises:
            tomllib.TOMLDecodeError: TOML 構文エラーの場合。
            PermissionError: 読み取り権限がない場合。
            FileNotFoundError: 探索後にファイルが削除された場合。
        """
        with self.path.open("rb") as f:
            node: object = tomllib.load(f)
        for key in self.table:
            if not isinstance(node, dict):
                return None
            node = node.get(key)
        return node if isinstance(node, dict) else None

    def describe(self) -> str:
        if not self.table:
            return f"{self.label}: {self.path}"
        return f"{self.label}: {self.path} [{'.'.join(self.table)}]"


def iter_ancestors(start: Path) -> Iterator[Path]:
    """start 自身から始めてファイルシステムのルートまでのディレクトリを返す。"""
    current = start.resolve()
    yield current
    yield from current.parents


def find_project_root(start: Path) -> Path | None:
    """.sigrelay/ ディレクトリを持つ最も近い祖先ディレクトリを返す。

    同名のファイルはプロジェクトディレクトリとみなさない。

    Raises:
        OSError: 探索パス上のアクセス権限エラー等。
    """
    for directory in iter_ancestors(start):
        if (directory / PROJECT_DIR_NAME).is_dir():
            return directory
    return None


def find_pyproject_toml(start: Path) -> Path | None:
    """最も近い祖先ディレクトリの pyproject.toml（通常ファイル）を返す。"""
    for directory in iter_ancestors(start):
        candidate = directory / PYPROJECT_FILE_NAME
        if candidate.is_file():
            return candidate
    return None


def user_config_path() -> Path:
    """ユーザーグローバル設定のパス。存在チェックは行わない。

    Raises:
        RuntimeError: ホームディレクトリを特定できない場合。
    """
    return Path.home() / ".config" / "sigrelay" / CONFIG_FILE_NAME


def discover_sources(start: Path) -> tuple[ConfigSource, ...]:
    """start から見える設定ソースを低優先度順に返す。

    .sigrelay/ があっても config.toml が未作成ならそのレイヤーは含めない。
    """
    sources: list[ConfigSource] = []

    user_path = user_config_path()
    if user_path.is_file():
        sources.append(ConfigSource("user", user_path))

    pyproject = find_pyproject_toml(start)
    if pyproject is not None:
        sources.append(ConfigSource("pyproject", pyproject, PYPROJECT_TABLE))

    project_root = find_project_root(start)
    if project_root is not None:
        project_config = project_root / PROJECT_DIR_NAME / CONFIG_FILE_NAME
        if project_config.is_file():
            sources.append(ConfigSource("project", project_config))

    return tuple(sources)
