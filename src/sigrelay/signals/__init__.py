"""シグナルディスパッチとプラットフォーム抽象化。

以下の層で構成される:

1. シグナルカタログ（Signal, resolve, is_valid, name_of）
2. プラットフォーム判定（PlatformDetector）
3. Windows コンソール制御イベントの多重化（WindowsControlEventAdapter）
4. OS フック実装（PosixSignalBackend / WindowsSignalBackend）
5. ハンドラチェーンの管理とディスパッチ（SignalRegistry）
"""

from sigrelay.signals._backend import (
    PosixSignalBackend,
    SignalBackend,
    WindowsSignalBackend,
    create_signal_backend,
)
from sigrelay.signals._catalog import (
    SIGNAL_TABLE,
    Signal,
    available_signals,
    is_valid,
    name_of,
    resolve,
)
from sigrelay.signals._platform import PlatformDetector, PlatformFamily
from sigrelay.signals._registry import (
    SignalHandler,
    SignalRegistry,
    UnsupportedPlatformError,
)
from sigrelay.signals._windows import ConsoleCtrlApi, WindowsControlEventAdapter

__all__ = [
    "SIGNAL_TABLE",
    "ConsoleCtrlApi",
    "PlatformDetector",
    "PlatformFamily",
    "PosixSignalBackend",
    "Signal",
    "SignalBackend",
    "SignalHandler",
    "SignalRegistry",
    "UnsupportedPlatformError",
    "WindowsControlEventAdapter",
    "WindowsSignalBackend",
    "available_signals",
    "create_signal_backend",
    "is_valid",
    "name_of",
    "resolve",
]
