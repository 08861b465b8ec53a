"""sigrelay ドメインモデルパッケージ。"""

from sigrelay.models._base import SigrelayBaseModel
from sigrelay.models.config import OutputFormat, SigrelayConfig, WatchConfig
from sigrelay.models.exit_code import ExitCode
from sigrelay.models.termination import TerminationOutcome

__all__ = [
    "ExitCode",
    "OutputFormat",
    "SigrelayBaseModel",
    "SigrelayConfig",
    "TerminationOutcome",
    "WatchConfig",
]
