"""粘性構成則.

線形粘性:      eps = tau / (2 eta)
べき乗則クリープ: eps = A tau^n exp(-(E + P V) / (R T))

温度 T [K]・圧力 P [Pa] は補助状態 args から読む（E = V = 0 なら不要）。
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class LinearViscous:
    """線形（ニュートン）粘性.

    Attributes:
        eta: 粘性係数 [Pa s]（正値）
    """

    eta: float

    def __post_init__(self) -> None:
        if self.eta <= 0:
            raise ValueError(f"粘性係数 eta は正値でなければなりません: {self.eta}")

    def compute_eps_II(self, tau_II: float, args: Mapping[str, Any]) -> float:
        return tau_II / (2.0 * self.eta)

    def compute_tau_II(self, eps_II: float, args: Mapping[str, Any]) -> float:
        return 2.0 * self.eta * eps_II

    def deps_dtau(self, tau_II: float, args: Mapping[str, Any]) -> float:
        return 1.0 / (2.0 * self.eta)

    def dtau_deps(self, eps_II: float, args: Mapping[str, Any]) -> float:
        return 2.0 * self.eta


@dataclass(frozen=True)
class PowerLawViscous:
    """べき乗則（転位）クリープ.

    eps = A tau^n exp(-(E + P V) / (R T))

    Attributes:
        A: 前指数因子 [Pa^-n s^-1]
        n: 応力指数（>= 1）
        E: 活性化エネルギー [J/mol]
        V: 活性化体積 [m^3/mol]
        R: 気体定数 [J/(mol K)]
    """

    A: float
    n: float
    E: float = 0.0
    V: float = 0.0
    R: float = 8.3145

    def __post_init__(self) -> None:
        if self.A <= 0:
            raise ValueError(f"前指数因子 A は正値でなければなりません: {self.A}")
        if self.n < 1:
            raise ValueError(f"応力指数 n は 1 以上でなければなりません: {self.n}")

    def prefactor(self, args: Mapping[str, Any]) -> float:
        """A exp(-(E + P V) / (R T))."""
        if self.E == 0.0 and self.V == 0.0:
            return self.A
        T = args["T"]
        P = args.get("P", 0.0)
        return self.A * math.exp(-(self.E + P * self.V) / (self.R * T))

    # 反復途中の負値に対しては奇関数として拡張する

    def compute_eps_II(self, tau_II: float, args: Mapping[str, Any]) -> float:
        return math.copysign(self.prefactor(args) * abs(tau_II) ** self.n, tau_II)

    def compute_tau_II(self, eps_II: float, args: Mapping[str, Any]) -> float:
        return math.copysign((abs(eps_II) / self.prefactor(args)) ** (1.0 / self.n), eps_II)

    def deps_dtau(self, tau_II: float, args: Mapping[str, Any]) -> float:
        return self.n * self.prefactor(args) * abs(tau_II) ** (self.n - 1.0)

    def dtau_deps(self, eps_II: float, args: Mapping[str, Any]) -> float:
        d = self.deps_dtau(self.compute_tau_II(eps_II, args), args)
        if d == 0.0:
            return math.inf
        return 1.0 / d
