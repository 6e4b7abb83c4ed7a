"""ソルバー戻り値の型定義.

NamedTuple で統一する（名前付きアクセス + アンパッキング + 不変）。
"""

from __future__ import annotations

from typing import NamedTuple

import numpy as np


class LocalIterationResult(NamedTuple):
    """局所 Newton 反復の結果.

    未知ベクトル x の並び:
      x[0]            : 直列応力 tau_II（応力駆動の Parallel 解では歪み速度）
      Parallel 群     : 群の歪み速度 eps_g（1スロット）
      直列の塑性要素   : 塑性乗数 lambda（1スロット）
      塑性を含む群     : lambda, 塑性要素の応力 tau_pl（2スロット）

    Attributes:
        x: 収束した未知ベクトル
        n_iter: 反復回数
        err: 最終反復の収束指標
    """

    x: np.ndarray
    n_iter: int
    err: float

    @property
    def value(self) -> float:
        """主未知量（x[0]）."""
        return float(self.x[0])


class PlasticReturnResult(NamedTuple):
    """塑性 return mapping の結果.

    Attributes:
        eps_pl: 塑性歪み速度 lambda * dQ/dtau(tau_pl)
        lam: 塑性乗数（非活性なら 0）
        tau_pl: 降伏面に戻した応力（非活性なら試行応力）
        n_iter: 反復回数（非活性なら 0）
    """

    eps_pl: float
    lam: float
    tau_pl: float
    n_iter: int
