"""Drucker-Prager 塑性（粘塑性正則化つき）.

降伏関数:
  F = tau_II - C cos(phi) - P sin(phi) - eta_vp lambda

流れ則（偏差成分のみ）:
  eps_pl = lambda dQ/dtau,  dQ/dtau = 1/2

eta_vp > 0 で粘塑性（Perzyna 型）正則化。
圧力 P は args["P"]（省略時 0）。

参考文献:
  - de Souza Neto et al. (2008) "Computational Methods for Plasticity", Ch.8
  - Duretz et al. (2019) "The benefits of using a consistent tangent operator
    for viscoelastoplastic computations in geodynamics", G-Cubed
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from comprheo import solver


@dataclass(frozen=True)
class DruckerPrager:
    """Drucker-Prager 降伏条件.

    Attributes:
        C: 粘着力 [Pa]
        phi: 内部摩擦角 [deg]
        psi: ダイレタンシー角 [deg]（体積成分を扱わないため偏差流れには効かない）
        eta_vp: 粘塑性正則化粘性 [Pa s]（0 = 完全塑性）
    """

    C: float
    phi: float = 0.0
    psi: float = 0.0
    eta_vp: float = 0.0

    is_plastic = True

    def __post_init__(self) -> None:
        if self.C < 0:
            raise ValueError(f"粘着力 C は非負でなければなりません: {self.C}")
        if not 0.0 <= self.phi < 90.0:
            raise ValueError(f"内部摩擦角 phi は [0, 90) deg: {self.phi}")
        if self.eta_vp < 0:
            raise ValueError(f"eta_vp は非負でなければなりません: {self.eta_vp}")

    def yield_stress(self, args: Mapping[str, Any]) -> float:
        """C cos(phi) + P sin(phi)."""
        phi = math.radians(self.phi)
        return self.C * math.cos(phi) + args.get("P", 0.0) * math.sin(phi)

    def yield_function(self, args: Mapping[str, Any]) -> float:
        return args["tau_II"] - self.yield_stress(args) - self.eta_vp * args.get("lambda", 0.0)

    def dQ_dtau(self, tau_II: float) -> float:
        return 0.5

    def dF_dtau(self, tau_II: float) -> float:
        return 1.0

    def dF_dlambda(self, tau_II: float) -> float:
        return -self.eta_vp

    def compute_eps_II(self, tau_II: float, args: Mapping[str, Any]) -> float:
        """塑性歪み速度（return mapping）.

        降伏している場合 args に非塑性歪み速度 eps_np が必要。
        """
        return solver.plastic_return_mapping(self, tau_II, args).eps_pl

    def compute_tau_II(self, eps_II: float, args: Mapping[str, Any]) -> float:
        """塑性歪み速度 eps_II で流動しているときの応力（F = 0）."""
        return self.yield_stress(args) + 2.0 * self.eta_vp * eps_II

    def deps_dtau(self, tau_II: float, args: Mapping[str, Any]) -> float:
        # 降伏応力は歪み速度によらない（剛塑性）
        return 0.0

    def dtau_deps(self, eps_II: float, args: Mapping[str, Any]) -> float:
        return 2.0 * self.eta_vp
