"""comprheo.core - 要素の抽象インタフェース・設定・例外・戻り値型.

Protocol 階層:
  RheologyElementProtocol : 応力 ⇄ 歪み速度と、その微分
  PlasticElementProtocol  : 塑性用（+ 降伏関数・流れポテンシャル微分）
"""

from comprheo.core.config import LocalIterationConfig, resolve_config
from comprheo.core.element import (
    PlasticElementProtocol,
    RheologyElementProtocol,
    is_plastic,
)
from comprheo.core.errors import (
    CompositionError,
    DegenerateInputError,
    NonConvergenceError,
    RheologyError,
    YieldBranchOscillationError,
)
from comprheo.core.results import LocalIterationResult, PlasticReturnResult

__all__ = [
    "RheologyElementProtocol",
    "PlasticElementProtocol",
    "is_plastic",
    "LocalIterationConfig",
    "resolve_config",
    "RheologyError",
    "CompositionError",
    "DegenerateInputError",
    "NonConvergenceError",
    "YieldBranchOscillationError",
    "LocalIterationResult",
    "PlasticReturnResult",
]
