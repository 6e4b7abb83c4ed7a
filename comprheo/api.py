"""高レベルAPI: 合成レオロジーの応力・歪み速度・有効粘性.

入力 v は葉要素・Parallel・CompositeRheology のいずれでもよい。
目標値・補助状態には float か pint Quantity（comprheo.units.units）を渡せる。
Quantity を渡した場合は SI 基本単位で解き、結果に単位を付けて返す。

設定は config= とキーワード上書きで与える::

    compute_tau_II(c, 1e-14, {"T": 773.15, "dt": dt}, tol=1e-8, verbose=True)
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import numpy as np

from comprheo import solver
from comprheo.composite import CompositeRheology, Parallel
from comprheo.core.config import LocalIterationConfig, resolve_config
from comprheo.core.element import is_plastic
from comprheo.core.errors import CompositionError, DegenerateInputError
from comprheo.core.results import LocalIterationResult
from comprheo.units import (
    STRAIN_RATE,
    STRESS,
    VISCOSITY,
    attach,
    is_quantity,
    strip_args,
    to_magnitude,
)


def _closed_form(value: float) -> LocalIterationResult:
    return LocalIterationResult(x=np.array([value], dtype=float), n_iter=0, err=0.0)


# ====================================================================
# 応力（歪み速度駆動）
# ====================================================================


def compute_tau_II(
    v: Any,
    eps_II: Any,
    args: Mapping[str, Any] | None = None,
    *,
    config: LocalIterationConfig | None = None,
    full_output: bool = False,
    **overrides: Any,
) -> Any:
    """歪み速度 eps_II に対する応力.

    CompositeRheology は局所 Newton 反復で解き、
    葉要素・Parallel は閉形式（メンバー応力の和）で評価する。

    Args:
        v: 葉要素 / Parallel / CompositeRheology
        eps_II: 歪み速度の第二不変量 [1/s]
        args: 補助状態（T, P, dt, tau_II_old 等）
        config: ソルバー設定
        full_output: True なら LocalIterationResult（SI 単位の未知ベクトル全体）を返す
        **overrides: LocalIterationConfig のフィールド上書き

    Returns:
        応力 [Pa]（eps_II が Quantity なら Quantity）
    """
    config = resolve_config(config, **overrides)
    tagged = is_quantity(eps_II)
    eps = to_magnitude(eps_II, STRAIN_RATE)
    args = strip_args(args)

    if isinstance(v, CompositeRheology):
        res = solver.local_iterations_eps(v, eps, args, config)
    else:
        res = _closed_form(v.compute_tau_II(eps, args))
    if full_output:
        return res
    return attach(res.value, STRESS, tagged)


def compute_tau_II_fd(
    v: Any,
    eps_II: Any,
    args: Mapping[str, Any] | None = None,
    *,
    config: LocalIterationConfig | None = None,
    full_output: bool = False,
    **overrides: Any,
) -> Any:
    """compute_tau_II の中心差分版（CompositeRheology のみ反復が異なる）."""
    config = resolve_config(config, **overrides)
    tagged = is_quantity(eps_II)
    eps = to_magnitude(eps_II, STRAIN_RATE)
    args = strip_args(args)

    if isinstance(v, CompositeRheology):
        res = solver.local_iterations_eps_fd(v, eps, args, config)
    else:
        res = _closed_form(v.compute_tau_II(eps, args))
    if full_output:
        return res
    return attach(res.value, STRESS, tagged)


def compute_tau_II_array(
    v: Any,
    eps_II: Any,
    args: Mapping[str, Any] | None = None,
    *,
    config: LocalIterationConfig | None = None,
    **overrides: Any,
) -> Any:
    """歪み速度の配列に対する応力を点ごとに求める.

    補助状態の値が eps_II と同じ形状の配列なら点ごとの値、
    それ以外（スカラー）は全点共通として扱う。

    Returns:
        eps_II と同じ形状の応力配列（eps_II が Quantity なら Quantity）
    """
    config = resolve_config(config, **overrides)
    tagged = is_quantity(eps_II)
    eps = np.asarray(to_magnitude(eps_II, STRAIN_RATE), dtype=float)
    args = strip_args(args)

    per_point = {}
    for key, value in args.items():
        if isinstance(value, np.ndarray) and value.shape == eps.shape:
            per_point[key] = value
        elif isinstance(value, np.ndarray) and value.ndim > 0:
            raise ValueError(
                f"補助状態 {key!r} の形状 {value.shape} が eps_II の形状 {eps.shape} と一致しません。"
            )

    tau = np.empty_like(eps)
    for idx in np.ndindex(eps.shape):
        point_args = dict(args)
        for key, value in per_point.items():
            point_args[key] = float(value[idx])
        tau[idx] = compute_tau_II(v, float(eps[idx]), point_args, config=config)
    return attach(tau, STRESS, tagged)


# ====================================================================
# 歪み速度（応力駆動）
# ====================================================================


def _series_eps(
    c: CompositeRheology,
    tau: float,
    args: Mapping[str, Any],
    config: LocalIterationConfig,
    *,
    fd: bool,
) -> float:
    solve_group = solver.local_iterations_tau_fd if fd else solver.local_iterations_tau
    eps = 0.0
    for v in c:
        if isinstance(v, Parallel):
            if v.is_plastic:
                raise CompositionError(
                    "塑性要素を含む Parallel の歪み速度は応力だけからは決まりません。"
                )
            eps += solve_group(v, tau, args, config).value
        else:
            eps += v.compute_eps_II(tau, args)
    return eps


def compute_eps_II(
    v: Any,
    tau_II: Any,
    args: Mapping[str, Any] | None = None,
    *,
    config: LocalIterationConfig | None = None,
    **overrides: Any,
) -> Any:
    """応力 tau_II に対する歪み速度.

    Parallel は共通歪み速度を Newton 反復で解き、
    CompositeRheology はメンバー歪み速度の和をとる。

    Returns:
        歪み速度 [1/s]（tau_II が Quantity なら Quantity）
    """
    config = resolve_config(config, **overrides)
    tagged = is_quantity(tau_II)
    tau = to_magnitude(tau_II, STRESS)
    args = strip_args(args)

    if isinstance(v, CompositeRheology):
        eps = _series_eps(v, tau, args, config, fd=False)
    elif isinstance(v, Parallel):
        eps = v.compute_eps_II(tau, args, config)
    else:
        eps = v.compute_eps_II(tau, args)
    return attach(eps, STRAIN_RATE, tagged)


def compute_eps_II_fd(
    v: Any,
    tau_II: Any,
    args: Mapping[str, Any] | None = None,
    *,
    config: LocalIterationConfig | None = None,
    **overrides: Any,
) -> Any:
    """compute_eps_II の中心差分版."""
    config = resolve_config(config, **overrides)
    tagged = is_quantity(tau_II)
    tau = to_magnitude(tau_II, STRESS)
    args = strip_args(args)

    if isinstance(v, CompositeRheology):
        eps = _series_eps(v, tau, args, config, fd=True)
    elif isinstance(v, Parallel):
        if v.is_plastic:
            raise CompositionError(
                "塑性要素を含む Parallel の歪み速度は応力だけからは決まりません。"
            )
        eps = solver.local_iterations_tau_fd(v, tau, args, config).value
    else:
        eps = v.compute_eps_II(tau, args)
    return attach(eps, STRAIN_RATE, tagged)


# ====================================================================
# 有効粘性
# ====================================================================


def viscosity(tau_II: float, eps_II: float) -> float:
    """有効粘性 0.5 tau / eps.

    Raises:
        DegenerateInputError: eps_II = 0
    """
    if eps_II == 0.0:
        raise DegenerateInputError("歪み速度がゼロのため有効粘性は定義できません。")
    return 0.5 * tau_II / eps_II


def compute_viscosity_eps(
    v: Any,
    eps_II: Any,
    args: Mapping[str, Any] | None = None,
    *,
    config: LocalIterationConfig | None = None,
    **overrides: Any,
) -> Any:
    """歪み速度 eps_II での有効粘性 0.5 tau(eps) / eps.

    Returns:
        有効粘性 [Pa s]（eps_II が Quantity なら Quantity）

    Raises:
        DegenerateInputError: eps_II = 0
    """
    tagged = is_quantity(eps_II)
    eps = to_magnitude(eps_II, STRAIN_RATE)
    if eps == 0.0:
        raise DegenerateInputError("歪み速度がゼロのため有効粘性は定義できません。")
    tau = compute_tau_II(v, eps, args, config=config, **overrides)
    return attach(viscosity(tau, eps), VISCOSITY, tagged)


def compute_viscosity_eps_fd(
    v: Any,
    eps_II: Any,
    args: Mapping[str, Any] | None = None,
    *,
    config: LocalIterationConfig | None = None,
    **overrides: Any,
) -> Any:
    """compute_viscosity_eps の中心差分版."""
    tagged = is_quantity(eps_II)
    eps = to_magnitude(eps_II, STRAIN_RATE)
    if eps == 0.0:
        raise DegenerateInputError("歪み速度がゼロのため有効粘性は定義できません。")
    tau = compute_tau_II_fd(v, eps, args, config=config, **overrides)
    return attach(viscosity(tau, eps), VISCOSITY, tagged)


# ====================================================================
# 降伏関数
# ====================================================================


def compute_yield_function(v: Any, args: Mapping[str, Any]) -> Any:
    """降伏関数 F の値.

    Args:
        v: 塑性要素、または塑性要素を含む Parallel
        args: 補助状態。tau_II（現在応力）が必須、lambda は省略時 0。

    Returns:
        F [Pa]（args["tau_II"] が Quantity なら Quantity）

    Raises:
        CompositionError: v が塑性でない、または CompositeRheology
    """
    if isinstance(v, CompositeRheology) or not is_plastic(v):
        raise CompositionError(
            f"降伏関数は塑性要素または塑性要素を含む Parallel にのみ定義されます: {v!r}"
        )
    tagged = is_quantity(args["tau_II"])
    return attach(v.yield_function(strip_args(args)), STRESS, tagged)
