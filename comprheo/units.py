"""物理単位のタグ付け（pint）.

API 境界でのみ使う。ソルバー内部は常に SI 基本単位の float で計算する。

    >>> from comprheo.units import units
    >>> eps = 1e-14 / units.second
    >>> compute_tau_II(c, eps, {"T": 773.15 * units.kelvin})  # -> pint.Quantity [Pa]

Quantity は必ず同じ UnitRegistry（comprheo.units.units）から作ること。
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import numpy as np
import pint

units = pint.UnitRegistry()
Quantity = units.Quantity

STRESS = "pascal"
STRAIN_RATE = "1 / second"
VISCOSITY = "pascal * second"


def is_quantity(x: Any) -> bool:
    """pint の Quantity かどうか."""
    return isinstance(x, pint.Quantity)


def to_magnitude(x: Any, unit: str) -> Any:
    """Quantity を指定単位の数値に変換する（float / ndarray はそのまま）.

    Raises:
        pint.DimensionalityError: 次元が合わない
    """
    if is_quantity(x):
        return x.to(unit).magnitude
    return x


def strip_args(args: Mapping[str, Any] | None) -> dict[str, Any]:
    """補助状態の Quantity をすべて SI 基本単位の数値にする."""
    if args is None:
        return {}
    out: dict[str, Any] = {}
    for key, value in args.items():
        if is_quantity(value):
            out[key] = value.to_base_units().magnitude
        else:
            out[key] = value
    return out


def attach(value: Any, unit: str, tagged: bool) -> Any:
    """tagged なら数値に単位を付ける."""
    if not tagged:
        return value
    if isinstance(value, np.ndarray):
        return units.Quantity(value, unit)
    return units.Quantity(float(value), unit)
