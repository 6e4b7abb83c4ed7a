"""レオロジー要素の抽象インタフェース定義.

Protocol 階層:
  RheologyElementProtocol : 全要素共通（応力 ⇄ 歪み速度 と、その微分）
  PlasticElementProtocol  : 塑性要素用（+ 降伏関数・流れポテンシャル微分）

応力・歪み速度はいずれも偏差テンソルの第二不変量（スカラー, 非負）。
テンソルの分解は呼び出し側の責務とする。

Protocol を採用する理由:
  - 要素の実装（粘性・弾性・塑性・ユーザ定義）を継承なしで受け入れられる
  - Parallel / CompositeRheology も同じ Protocol を満たすため、
    ソルバーは木構造を一様に扱える
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class RheologyElementProtocol(Protocol):
    """レオロジー要素の共通インタフェース.

    すべてのメソッドは純関数（内部状態を変更しない）。
    args は補助状態（前ステップ応力 tau_II_old, 温度 T, 時間刻み dt 等）の
    名前付きマッピングで、要素は必要なキーのみ参照する。

    適合クラス例:
      - LinearViscous, PowerLawViscous
      - ConstantElasticity
      - DruckerPrager
      - Parallel, CompositeRheology（合成要素）
    """

    def compute_eps_II(self, tau_II: float, args: Mapping[str, Any]) -> float:
        """応力から歪み速度を返す."""
        ...

    def compute_tau_II(self, eps_II: float, args: Mapping[str, Any]) -> float:
        """歪み速度から応力を返す."""
        ...

    def deps_dtau(self, tau_II: float, args: Mapping[str, Any]) -> float:
        """d(歪み速度)/d(応力) を返す."""
        ...

    def dtau_deps(self, eps_II: float, args: Mapping[str, Any]) -> float:
        """d(応力)/d(歪み速度) を返す."""
        ...


@runtime_checkable
class PlasticElementProtocol(RheologyElementProtocol, Protocol):
    """塑性要素のインタフェース.

    降伏関数 F は args["tau_II"]（現在応力）と args["lambda"]（塑性乗数,
    省略時 0）を参照する。F < 0 で弾性（非活性）、F >= 0 で塑性（活性）。

    塑性歪み速度は eps_pl = lambda * dQ_dtau(tau_II)。
    """

    is_plastic: bool

    def yield_function(self, args: Mapping[str, Any]) -> float:
        """降伏関数 F を返す."""
        ...

    def dQ_dtau(self, tau_II: float) -> float:
        """流れポテンシャル Q の応力微分."""
        ...

    def dF_dtau(self, tau_II: float) -> float:
        """降伏関数 F の応力微分."""
        ...

    def dF_dlambda(self, tau_II: float) -> float:
        """降伏関数 F の塑性乗数微分（線形流れ則では定数）."""
        ...


def is_plastic(v: Any) -> bool:
    """要素（または塑性要素を含む合成要素）が塑性かどうか.

    塑性要素はクラス属性 is_plastic = True を持つ。
    Parallel / CompositeRheology は塑性メンバーを含む場合に True を返す。
    """
    return bool(getattr(v, "is_plastic", False))
