"""局所反復ソルバーモジュール.

歪み速度駆動（応力が未知）:
  - local_iterations_eps(): CompositionInfo.solver_kind で解法を選択
      "scalar"   直列のみ: 応力 tau に関するスカラー Newton
      "parallel" 直列 + Parallel 群: x = [tau, eps_g1, ...] のブロック Newton
      "plastic"  塑性要素を含む一般形: 塑性乗数・群内塑性応力を加えたブロック Newton
  - local_iterations_eps_fd(): 微分を中心差分で評価する版（塑性要素は直列の1つ）

応力駆動（歪み速度が未知）:
  - local_iterations_tau(): Parallel 群の共通歪み速度に関するスカラー Newton

塑性:
  - plastic_return_mapping(): 単一塑性要素の塑性乗数 lambda の return mapping

収束判定:
  スカラー:     |Δx| / |x| <= tol
  ブロック:     Σ |Δx_i| / |x_i| <= tol
  塑性ブロック: Σ |Δx_i| / (|x_i| + err_guard) <= tol
反復上限に達した場合は NonConvergenceError（最終反復値は返さない）。
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import replace
from typing import TYPE_CHECKING, Any

import numpy as np

from comprheo.core.config import LocalIterationConfig, resolve_config
from comprheo.core.errors import (
    CompositionError,
    DegenerateInputError,
    NonConvergenceError,
    YieldBranchOscillationError,
)
from comprheo.core.results import LocalIterationResult, PlasticReturnResult

if TYPE_CHECKING:
    from comprheo.composite import CompositeRheology, Parallel


# ====================================================================
# 補助関数
# ====================================================================


def _inner_config(config: LocalIterationConfig) -> LocalIterationConfig:
    """入れ子の求解用設定（外側の初期推定は引き継がない）."""
    if config.tau_initial is None and config.eps_initial is None:
        return config
    return replace(config, tau_initial=None, eps_initial=None)


def _newton_step(residual: float, derivative: float) -> float:
    """スカラー Newton の更新量 residual / derivative."""
    if residual == 0.0:
        return 0.0
    if derivative == 0.0 or not np.isfinite(derivative):
        raise DegenerateInputError(
            f"接線がゼロまたは非有限です（残差 {residual:.3e}, 接線 {derivative!r}）。"
        )
    return residual / derivative


def _relative_change(dx: float, x: float) -> float:
    """|dx| / |x|（0/0 = 0）."""
    if dx == 0.0:
        return 0.0
    if x == 0.0:
        return float("inf")
    return abs(dx) / abs(x)


def _relative_change_sum(dx: np.ndarray, x: np.ndarray, guard: float = 0.0) -> float:
    """Σ |dx_i| / (|x_i| + guard)（0/0 = 0）."""
    num = np.abs(dx)
    den = np.abs(x) + guard
    with np.errstate(divide="ignore", invalid="ignore"):
        ratio = np.where(num == 0.0, 0.0, num / den)
    return float(np.sum(ratio))


def _solve_block(J: np.ndarray, r: np.ndarray) -> np.ndarray:
    """J dx = r を解く（r = 0 なら dx = 0）."""
    if not np.any(r):
        return np.zeros_like(r)
    if not np.all(np.isfinite(J)):
        raise DegenerateInputError(f"ブロックヤコビアンに非有限の成分があります:\n{J}")
    try:
        return np.linalg.solve(J, r)
    except np.linalg.LinAlgError as e:
        raise DegenerateInputError(f"ブロックヤコビアンが特異です:\n{J}") from e


def harmonic_mean(values: Iterable[float], ref: float) -> float:
    """ref と同符号の値の調和平均（初期推定用）.

    値に 0 があれば 0。ref と逆符号の値（除荷中の弾性など）は平均に入れず、
    同符号の値がなければ絶対値最小の値を返す。値がなければ inf。
    """
    vals = list(values)
    if not vals:
        return float("inf")
    inv_sum = 0.0
    for v in vals:
        if v == 0.0:
            return 0.0
        if v * ref > 0.0:
            inv_sum += 1.0 / v
    if inv_sum == 0.0:
        return min(vals, key=abs)
    return 1.0 / inv_sum


def central_difference(fun: Callable[[float], float], x: float, rel_step: float) -> float:
    """中心差分による df/dx.

    刻み h = rel_step * |x|（x = 0 の場合は h = rel_step）。
    """
    h = rel_step * abs(x) if x != 0.0 else rel_step
    return (fun(x + h) - fun(x - h)) / (2.0 * h)


def initial_stress_guess(
    c: CompositeRheology,
    eps_II: float,
    args: Mapping[str, Any],
    config: LocalIterationConfig,
) -> float:
    """直列応力の初期推定.

    優先順:
      1. config.tau_initial
      2. 要素の調和平均（Parallel 群・塑性要素を除く）
      3. Parallel 群の非塑性応力（閉形式）の調和平均
    """
    if config.tau_initial is not None:
        return float(config.tau_initial)
    tau = c.compute_tau_II_harmonic(eps_II, args)
    if np.isfinite(tau):
        return tau

    tau_groups = [
        member.compute_tau_II_nonplastic(eps_II, args)
        for member, par in zip(c.elements, c.info.is_parallel)
        if par
    ]
    tau = harmonic_mean((t for t in tau_groups if t != 0.0), eps_II)
    if np.isfinite(tau):
        return tau
    if eps_II == 0.0:
        return 0.0
    raise DegenerateInputError(
        "初期推定に使える要素がありません（塑性要素のみ）。tau_initial を指定してください。"
    )


def _newton_scalar(
    target: float,
    fun: Callable[[float], float],
    dfun: Callable[[float], float],
    x0: float,
    *,
    max_iter: int,
    config: LocalIterationConfig,
    label: str,
) -> LocalIterationResult:
    """target = fun(x) をスカラー Newton で解く.

    更新: x ← x + (target - fun(x)) / dfun(x)
    """
    x = x0
    if config.verbose:
        print(f"  [{label}] initial guess = {x:.6e}")
    err = 2.0 * config.tol
    for it in range(1, max_iter + 1):
        dx = _newton_step(target - fun(x), dfun(x))
        x += dx
        err = _relative_change(dx, x)
        if config.verbose:
            print(f"  [{label}] iter {it}, err = {err:.3e}")
        if err <= config.tol:
            if config.verbose:
                print(f"  [{label}] final = {x:.6e}")
            return LocalIterationResult(x=np.array([x]), n_iter=it, err=err)
    raise NonConvergenceError(
        f"{label}: 反復が収束しませんでした", n_iter=max_iter, err=err, x=np.array([x])
    )


# ====================================================================
# 応力駆動: Parallel 群の歪み速度
# ====================================================================


def local_iterations_tau(
    p: Parallel,
    tau_II: float,
    args: Mapping[str, Any],
    config: LocalIterationConfig | None = None,
) -> LocalIterationResult:
    """Parallel 群が応力 tau_II を担う共通歪み速度を求める.

    残差: f(eps) = tau_II - Σ tau_i(eps)
    初期推定: 各メンバー歪み速度の調和平均（config.eps_initial 優先）
    """
    config = resolve_config(config)
    eps0 = config.eps_initial
    if eps0 is None:
        eps0 = p.compute_eps_II_harmonic(tau_II, args)
    return _newton_scalar(
        tau_II,
        lambda eps: p.compute_tau_II(eps, args),
        lambda eps: p.dtau_deps(eps, args),
        float(eps0),
        max_iter=config.max_iter,
        config=config,
        label="local_iterations_tau",
    )


def local_iterations_tau_fd(
    p: Parallel,
    tau_II: float,
    args: Mapping[str, Any],
    config: LocalIterationConfig | None = None,
) -> LocalIterationResult:
    """local_iterations_tau の中心差分版."""
    config = resolve_config(config)
    eps0 = config.eps_initial
    if eps0 is None:
        eps0 = p.compute_eps_II_harmonic(tau_II, args)
    return _newton_scalar(
        tau_II,
        lambda eps: p.compute_tau_II(eps, args),
        lambda eps: dtau_deps_fd(p, eps, args, config),
        float(eps0),
        max_iter=config.max_iter,
        config=config,
        label="local_iterations_tau_fd",
    )


# ====================================================================
# 歪み速度駆動: 直列応力
# ====================================================================


def local_iterations_eps(
    c: CompositeRheology,
    eps_II: float,
    args: Mapping[str, Any],
    config: LocalIterationConfig | None = None,
) -> LocalIterationResult:
    """全歪み速度 eps_II を与えたときの直列応力を求める.

    解法は c.info.solver_kind で決まる（値は見ない）。

    Returns:
        LocalIterationResult: x[0] が応力。ブロック解法では群・塑性の内部未知量を含む。
    """
    config = resolve_config(config)
    kind = c.info.solver_kind
    if kind == "scalar":
        return _local_iterations_eps_scalar(c, eps_II, args, config)
    if kind == "parallel":
        return _local_iterations_eps_parallel(c, eps_II, args, config)
    return _local_iterations_eps_plastic(c, eps_II, args, config)


def _local_iterations_eps_scalar(
    c: CompositeRheology,
    eps_II: float,
    args: Mapping[str, Any],
    config: LocalIterationConfig,
) -> LocalIterationResult:
    """直列のみ（Parallel 群・塑性要素なし）.

    f(tau) = eps_II - Σ eps_i(tau)
    tau ← tau + f / Σ deps_i/dtau
    """
    tau0 = initial_stress_guess(c, eps_II, args, config)
    return _newton_scalar(
        eps_II,
        lambda tau: c.compute_eps_II(tau, args),
        lambda tau: c.deps_dtau(tau, args),
        tau0,
        max_iter=config.max_iter,
        config=config,
        label="local_iterations_eps",
    )


def _initial_block_vector(
    c: CompositeRheology,
    eps_II: float,
    args: Mapping[str, Any],
    config: LocalIterationConfig,
) -> np.ndarray:
    """ブロック Newton の初期未知ベクトル.

    tau: 調和平均, 群の歪み速度: 群単独で tau を担う歪み速度,
    lambda: 0, 群内塑性応力: tau。
    """
    info = c.info
    x = np.zeros(info.n_unknowns, dtype=float)
    tau0 = initial_stress_guess(c, eps_II, args, config)
    x[0] = tau0
    inner = _inner_config(config)
    for i, member in enumerate(c.elements):
        j = info.slots[i]
        if info.is_parallel[i] and info.is_plastic[i]:
            x[j + 1] = tau0
        elif info.is_parallel[i]:
            if config.eps_initial is not None:
                x[j] = config.eps_initial
            else:
                x[j] = member.compute_eps_II(tau0, args, inner)
    return x


def _fill_jacobian_parallel(
    J: np.ndarray,
    r: np.ndarray,
    x: np.ndarray,
    group: Parallel,
    j: int,
    args: Mapping[str, Any],
) -> None:
    """非塑性 Parallel 群の行・列を埋める.

    群の方程式 R_j = tau - tau_g(eps_g) = 0 を線形化:
      J[j, 0] = J[0, j] = 1, J[j, j] = -dtau_g/deps
      r[j] = -R_j, r[0] から eps_g を差し引く
    """
    tau = x[0]
    eps_g = x[j]
    r[0] -= eps_g
    r[j] = group.compute_tau_II(eps_g, args) - tau
    J[j, j] = -group.dtau_deps(eps_g, args)
    J[j, 0] = 1.0
    J[0, j] = 1.0


def _local_iterations_eps_parallel(
    c: CompositeRheology,
    eps_II: float,
    args: Mapping[str, Any],
    config: LocalIterationConfig,
) -> LocalIterationResult:
    """直列 + Parallel 群（塑性なし）のブロック Newton.

    x = [tau, eps_g1, ..., eps_gk]
    r[0] = eps_II - Σ eps_i(tau)（群以外） - Σ eps_gj
    """
    info = c.info
    n = info.n_unknowns
    x = _initial_block_vector(c, eps_II, args, config)
    if config.verbose:
        print(f"  [local_iterations_eps] tau_II guess = {x[0]:.6e}")

    r = np.zeros(n, dtype=float)
    J = np.zeros((n, n), dtype=float)
    err = 2.0 * config.tol
    for it in range(1, config.max_iter + 1):
        r.fill(0.0)
        J.fill(0.0)
        tau = x[0]

        r[0] = eps_II - c.compute_eps_II_elements(tau, args)
        J[0, 0] = c.deps_dtau_elements(tau, args)
        for i, member in enumerate(c.elements):
            if info.is_parallel[i]:
                _fill_jacobian_parallel(J, r, x, member, info.slots[i], args)

        dx = _solve_block(J, r)
        x += dx
        err = _relative_change_sum(dx, x)
        if config.verbose:
            print(f"  [local_iterations_eps] iter {it}, err = {err:.3e}")
        if err <= config.tol:
            return LocalIterationResult(x=x, n_iter=it, err=err)

    raise NonConvergenceError(
        "local_iterations_eps（Parallel 群）: 反復が収束しませんでした",
        n_iter=config.max_iter,
        err=err,
        x=x,
    )


# ====================================================================
# 塑性
# ====================================================================


def plastic_return_mapping(
    v: Any,
    tau_II: float,
    args: Mapping[str, Any],
    config: LocalIterationConfig | None = None,
) -> PlasticReturnResult:
    """単一塑性要素の return mapping.

    非塑性部の有効粘性 eta_np = (tau_II - tau_II_old) / (2 eps_np) を用いて
      tau_pl = tau_II - 2 eta_np lambda dQ/dtau(tau_pl)
    とし、F(tau_pl) = 0 となる lambda >= 0 を Newton で求める。
    試行応力で F <= 0 なら lambda = 0（相補性）。

    Args:
        v: 塑性要素（PlasticElementProtocol）
        tau_II: 試行応力
        args: 補助状態。eps_np（非塑性歪み速度）が必須、tau_II_old は省略時 0。

    Returns:
        PlasticReturnResult: (eps_pl, lam, tau_pl, n_iter)
    """
    config = resolve_config(config)
    F = v.yield_function({**args, "tau_II": tau_II, "lambda": 0.0})
    if F <= 0.0:
        return PlasticReturnResult(eps_pl=0.0, lam=0.0, tau_pl=tau_II, n_iter=0)

    eps_np = args.get("eps_np", 0.0)
    if eps_np == 0.0:
        raise DegenerateInputError(
            "非塑性歪み速度 eps_np がゼロまたは未指定のため return mapping できません。"
        )
    eta_np = (tau_II - args.get("tau_II_old", 0.0)) / (2.0 * eps_np)

    lam = 0.0
    tau_pl = tau_II
    for it in range(1, config.max_iter_return_mapping + 1):
        dQ = v.dQ_dtau(tau_pl)
        tau_pl = tau_II - 2.0 * eta_np * lam * dQ
        F = v.yield_function({**args, "tau_II": tau_pl, "lambda": lam})
        if config.verbose:
            print(f"    plastic iter {it}, lambda = {lam:.6e}, F = {F:.3e}")
        if abs(F) <= config.tol * abs(tau_II) or F == 0.0:
            eps_pl = lam * v.dQ_dtau(tau_pl)
            return PlasticReturnResult(eps_pl=eps_pl, lam=lam, tau_pl=tau_pl, n_iter=it)

        # dF/dlambda = dF/dtau * dtau_pl/dlambda + ∂F/∂lambda
        dF_dlam = -v.dF_dtau(tau_pl) * 2.0 * eta_np * v.dQ_dtau(tau_pl) + v.dF_dlambda(tau_pl)
        if dF_dlam == 0.0:
            raise DegenerateInputError("return mapping の dF/dlambda がゼロです。")
        lam -= F / dF_dlam

    raise NonConvergenceError(
        "plastic_return_mapping: 反復が収束しませんでした",
        n_iter=config.max_iter_return_mapping,
        err=abs(F),
        x=np.array([lam, tau_pl]),
    )


def _is_active(F: float, lam: float, tau: float, tol: float) -> bool:
    """塑性スロットの活性判定.

    lambda > 0 なら活性を維持し、lambda = 0 からは F > tol |tau| で活性化する
    （降伏面上の丸め誤差で分岐が切り替わらないようにする）。
    """
    return lam > 0.0 or F > tol * abs(tau)


def _fill_jacobian_plastic_series(
    J: np.ndarray,
    r: np.ndarray,
    x: np.ndarray,
    element: Any,
    j: int,
    args: Mapping[str, Any],
    tol: float,
) -> bool:
    """直列の塑性要素（未知量 lambda = x[j]）の行・列を埋める.

    塑性要素は直列応力 tau をそのまま受ける。
    活性:   F(tau, lambda) = 0,  J[j, 0] = dF/dtau, J[j, j] = dF/dlambda
    非活性: lambda = 0（単位行）

    Returns:
        活性かどうか
    """
    tau = x[0]
    lam = x[j]
    F = element.yield_function({**args, "tau_II": tau, "lambda": lam})
    dQ = element.dQ_dtau(tau)
    r[0] -= lam * dQ
    J[0, j] = dQ

    active = _is_active(F, lam, tau, tol)
    if active:
        J[j, 0] = element.dF_dtau(tau)
        J[j, j] = element.dF_dlambda(tau)
        r[j] = -F
    else:
        J[j, j] = 1.0
        r[j] = -lam
    return active


def _nonplastic_tangent(
    group: Parallel, eps_pl: float, eps_ref: float, args: Mapping[str, Any]
) -> float:
    """群の非塑性応力の dtau/deps（eps_pl = 0 では割線）."""
    if eps_pl != 0.0 or eps_ref == 0.0:
        return group.dtau_deps_nonplastic(eps_pl, args)
    tau_ref = group.compute_tau_II_nonplastic(eps_ref, args)
    return (tau_ref - group.compute_tau_II_nonplastic(0.0, args)) / eps_ref


def _fill_jacobian_plastic_parallel(
    J: np.ndarray,
    r: np.ndarray,
    x: np.ndarray,
    group: Parallel,
    j: int,
    args: Mapping[str, Any],
    tol: float,
    eps_ref: float,
) -> bool:
    """塑性要素を含む Parallel 群（未知量 lambda = x[j], tau_pl = x[j+1]）.

    群の歪み速度は塑性歪み速度 eps_pl = lambda dQ/dtau(tau_pl) に等しい。
    活性:
      F(tau_pl, lambda) = 0
      tau = tau_np(eps_pl) + tau_pl（群の応力つり合い）
    非活性:
      lambda = 0, tau_pl = tau

    非塑性応力の接線は eps_pl = 0 で発散しうる（べき乗則）ため、そこでは
    割線 (tau_np(eps_ref) - tau_np(0)) / eps_ref を用いる。

    Returns:
        活性かどうか
    """
    element = group.plastic_element
    k = j + 1
    tau = x[0]
    lam = x[j]
    tau_pl = x[k]

    F = element.yield_function({**args, "tau_II": tau_pl, "lambda": lam})
    dQ = element.dQ_dtau(tau_pl)
    eps_pl = lam * dQ
    r[0] -= eps_pl
    J[0, j] = dQ

    active = _is_active(F, lam, tau_pl, tol)
    if active:
        J[j, j] = element.dF_dlambda(tau_pl)
        J[j, k] = element.dF_dtau(tau_pl)
        r[j] = -F

        J[k, 0] = -1.0
        J[k, j] = _nonplastic_tangent(group, eps_pl, eps_ref, args) * dQ
        J[k, k] = 1.0
        r[k] = tau - group.compute_tau_II_nonplastic(eps_pl, args) - tau_pl
    else:
        J[j, j] = 1.0
        r[j] = -lam

        J[k, 0] = -1.0
        J[k, k] = 1.0
        r[k] = tau - tau_pl
    return active


def _local_iterations_eps_plastic(
    c: CompositeRheology,
    eps_II: float,
    args: Mapping[str, Any],
    config: LocalIterationConfig,
) -> LocalIterationResult:
    """塑性要素を含む一般形のブロック Newton.

    未知ベクトルのスロット配置は CompositionInfo.slots に従う。
    活性/非活性は毎反復、現在の降伏関数値と lambda から決める（_is_active）。
    更新後の lambda は非活性なら 0、負なら 0 に戻す（lambda >= 0）。
    収束指標は戻した後の実際の変化量で評価する。
    """
    info = c.info
    n = info.n_unknowns
    x = _initial_block_vector(c, eps_II, args, config)
    if config.verbose:
        print(f"  [local_iterations_eps] tau_II guess = {x[0]:.6e}")

    r = np.zeros(n, dtype=float)
    J = np.zeros((n, n), dtype=float)
    err = 2.0 * config.tol
    plastic_slots = [info.slots[i] for i in range(info.n) if info.is_plastic[i]]
    active_prev: tuple[bool, ...] | None = None
    n_switches = 0
    for it in range(1, config.max_iter + 1):
        r.fill(0.0)
        J.fill(0.0)
        tau = x[0]

        r[0] = eps_II - c.compute_eps_II_elements(tau, args)
        J[0, 0] = c.deps_dtau_elements(tau, args)

        active = []
        for i, member in enumerate(c.elements):
            j = info.slots[i]
            if info.is_parallel[i] and info.is_plastic[i]:
                is_active = _fill_jacobian_plastic_parallel(
                    J, r, x, member, j, args, config.tol, abs(eps_II)
                )
                active.append(is_active)
            elif info.is_plastic[i]:
                is_active = _fill_jacobian_plastic_series(J, r, x, member, j, args, config.tol)
                active.append(is_active)
            elif info.is_parallel[i]:
                _fill_jacobian_parallel(J, r, x, member, j, args)
        active_now = tuple(active)
        if active_prev is not None and active_now != active_prev:
            n_switches += 1
        active_prev = active_now

        x_old = x.copy()
        x += _solve_block(J, r)
        # lambda >= 0
        for j, is_active in zip(plastic_slots, active_now):
            if not is_active or x[j] < 0.0:
                x[j] = 0.0

        err = _relative_change_sum(x - x_old, x, guard=config.err_guard)
        if config.verbose:
            print(
                f"  [local_iterations_eps] iter {it}, err = {err:.3e}, "
                f"tau_II = {x[0]:.6e}, active = {active_now}"
            )
        if err <= config.tol:
            return LocalIterationResult(x=x, n_iter=it, err=err)

    if n_switches >= 2:
        raise YieldBranchOscillationError(
            "local_iterations_eps（塑性）: 降伏の活性/非活性が確定しませんでした",
            n_iter=config.max_iter,
            err=err,
            n_switches=n_switches,
            x=x,
        )
    raise NonConvergenceError(
        "local_iterations_eps（塑性）: 反復が収束しませんでした",
        n_iter=config.max_iter,
        err=err,
        x=x,
    )


# ====================================================================
# 中心差分版
# ====================================================================


def dtau_deps_fd(
    v: Any,
    eps_II: float,
    args: Mapping[str, Any],
    config: LocalIterationConfig | None = None,
) -> float:
    """要素または Parallel 群の d(応力)/d(歪み速度) を中心差分で評価する.

    応力が閉形式で与えられるノード（要素・Parallel 群）専用。
    """
    config = resolve_config(config)
    return central_difference(lambda e: v.compute_tau_II(e, args), eps_II, config.fd_rel_step)


def deps_dtau_fd(
    c: CompositeRheology,
    tau_II: float,
    args: Mapping[str, Any],
    config: LocalIterationConfig | None = None,
    *,
    nonplastic: bool = False,
) -> float:
    """直列合成の d(歪み速度)/d(応力) を中心差分で評価する.

    Parallel 群は反復解を差分すると収束誤差を拾うため、
    収束した群歪み速度での 1 / (dtau/deps) を使う。

    Args:
        nonplastic: True なら塑性メンバーを除く
    """
    config = resolve_config(config)
    inner = _inner_config(config)
    info = c.info
    val = 0.0
    for i, member in enumerate(c.elements):
        if info.is_plastic[i]:
            if nonplastic:
                continue
            raise CompositionError(
                "塑性要素の歪み速度は応力の関数ではないため差分できません（nonplastic=True を使う）。"
            )
        if info.is_parallel[i]:
            eps_g = local_iterations_tau_fd(member, tau_II, args, inner).value
            val += 1.0 / dtau_deps_fd(member, eps_g, args, config)
        else:
            val += central_difference(
                lambda t, m=member: m.compute_eps_II(t, args), tau_II, config.fd_rel_step
            )
    return val


def _compute_eps_II_nonplastic_fd(
    c: CompositeRheology,
    tau_II: float,
    args: Mapping[str, Any],
    config: LocalIterationConfig,
) -> float:
    """塑性メンバーを除いた歪み速度の和（群は差分版 Newton で解く）."""
    info = c.info
    eps = 0.0
    for i, member in enumerate(c.elements):
        if info.is_plastic[i]:
            continue
        if info.is_parallel[i]:
            eps += local_iterations_tau_fd(member, tau_II, args, config).value
        else:
            eps += member.compute_eps_II(tau_II, args)
    return eps


def local_iterations_eps_fd(
    c: CompositeRheology,
    eps_II: float,
    args: Mapping[str, Any],
    config: LocalIterationConfig | None = None,
) -> LocalIterationResult:
    """全歪み速度を与えたときの直列応力（微分は中心差分）.

    塑性要素がある場合は最後に見つかった直列の塑性要素1つを用い、
    各反復で return mapping の塑性歪み速度を累積する。
    反復上限は塑性ありで config.max_iter_fd_plastic、なしで config.max_iter。

    Raises:
        CompositionError: 塑性要素が Parallel 群の中にある
    """
    config = resolve_config(config)
    inner = _inner_config(config)
    info = c.info

    v_pl = None
    for i, member in enumerate(c.elements):
        if info.is_plastic[i]:
            if info.is_parallel[i]:
                raise CompositionError(
                    "差分版ソルバーは Parallel 群内の塑性要素に対応していません。"
                    "local_iterations_eps を使ってください。"
                )
            v_pl = member
    max_iter = config.max_iter_fd_plastic if v_pl is not None else config.max_iter

    tau = initial_stress_guess(c, eps_II, args, config)
    if config.verbose:
        print(f"  [local_iterations_eps_fd] initial tau_II = {tau:.6e}")

    eps_pl = 0.0
    err = 2.0 * config.tol
    for it in range(1, max_iter + 1):
        eps_np = _compute_eps_II_nonplastic_fd(c, tau, args, inner)
        deps = deps_dtau_fd(c, tau, args, inner, nonplastic=True)

        f = eps_II - eps_np
        if v_pl is not None:
            plastic_args = {**args, "eps_np": eps_np, "f": f}
            eps_pl += plastic_return_mapping(v_pl, tau, plastic_args, inner).eps_pl
        f -= eps_pl

        dtau = _newton_step(f, deps)
        tau += dtau
        err = _relative_change(dtau, tau)
        if config.verbose:
            print(f"  [local_iterations_eps_fd] iter {it}, err = {err:.3e}, tau_II = {tau:.6e}")
        if err <= config.tol:
            return LocalIterationResult(x=np.array([tau]), n_iter=it, err=err)

    raise NonConvergenceError(
        "local_iterations_eps_fd: 反復が収束しませんでした",
        n_iter=max_iter,
        err=err,
        x=np.array([tau]),
    )
