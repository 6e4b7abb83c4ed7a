"""Maxwell 型弾性（時間離散化した応力速度）.

eps = (tau - tau_II_old) / (2 G dt)

dt（時間刻み）は args["dt"]、前ステップ応力は args["tau_II_old"]（省略時 0）。
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class ConstantElasticity:
    """せん断弾性率一定の弾性.

    Attributes:
        G: せん断弾性率 [Pa]（正値）
    """

    G: float

    def __post_init__(self) -> None:
        if self.G <= 0:
            raise ValueError(f"せん断弾性率 G は正値でなければなりません: {self.G}")

    def compute_eps_II(self, tau_II: float, args: Mapping[str, Any]) -> float:
        return (tau_II - args.get("tau_II_old", 0.0)) / (2.0 * self.G * args["dt"])

    def compute_tau_II(self, eps_II: float, args: Mapping[str, Any]) -> float:
        return 2.0 * self.G * args["dt"] * eps_II + args.get("tau_II_old", 0.0)

    def deps_dtau(self, tau_II: float, args: Mapping[str, Any]) -> float:
        return 1.0 / (2.0 * self.G * args["dt"])

    def dtau_deps(self, eps_II: float, args: Mapping[str, Any]) -> float:
        return 2.0 * self.G * args["dt"]
