"""例外の定義.

分類:
  CompositionError           : 合成構造の契約違反（構築時に検出）
  DegenerateInputError       : 退化入力（ゼロ歪み速度、特異ヤコビアン等）
  NonConvergenceError        : 反復上限到達（最終反復値を保持）
  YieldBranchOscillationError: 活性/非活性の分岐が安定しないまま上限到達

いずれも内部でリトライしない。
"""

from __future__ import annotations

import numpy as np


class RheologyError(Exception):
    """comprheo の例外基底クラス."""


class CompositionError(RheologyError, ValueError):
    """合成構造が不正（Parallel の入れ子など）."""


class DegenerateInputError(RheologyError, ValueError):
    """解が定義できない入力."""


class NonConvergenceError(RheologyError, RuntimeError):
    """Newton 反復が上限回数内に収束しなかった.

    Attributes:
        n_iter: 実行した反復回数
        err: 最終反復の収束指標
        x: 最終反復値（スカラー解の場合は長さ1の配列）
    """

    def __init__(self, message: str, *, n_iter: int, err: float, x: np.ndarray | None = None):
        super().__init__(f"{message} (n_iter={n_iter}, err={err:.3e})")
        self.n_iter = n_iter
        self.err = err
        self.x = x


class YieldBranchOscillationError(NonConvergenceError):
    """降伏関数の符号が反復ごとに入れ替わり、分岐が確定しなかった.

    Attributes:
        n_switches: 活性/非活性が切り替わった回数
    """

    def __init__(
        self,
        message: str,
        *,
        n_iter: int,
        err: float,
        n_switches: int,
        x: np.ndarray | None = None,
    ):
        super().__init__(message, n_iter=n_iter, err=err, x=x)
        self.n_switches = n_switches
