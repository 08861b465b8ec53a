"""設定の探索と解決。"""

from sigrelay.config._resolver import resolve_config
from sigrelay.config._sources import ConfigSource, discover_sources, find_project_root

__all__ = [
    "ConfigSource",
    "discover_sources",
    "find_project_root",
    "resolve_config",
]
