"""中心差分版ソルバー（local_iterations_eps_fd 等）のテスト.

テスト方針:
  1. 中心差分の精度・x = 0 での絶対刻み
  2. 直列スカラー: 解析微分版と一致
  3. Parallel 群を含む直列: 解析微分版と一致
  4. 直列の塑性要素: 降伏応力に収束（上限 max_iter_fd_plastic）
  5. Parallel 群内の塑性要素は未対応（CompositionError）
  6. 塑性ありの反復上限で NonConvergenceError
  7. d(歪み速度)/d(応力) の差分: 塑性メンバーの扱い
"""

from __future__ import annotations

import pytest

from comprheo import solver
from comprheo.api import (
    compute_eps_II,
    compute_eps_II_fd,
    compute_tau_II,
    compute_tau_II_fd,
    compute_viscosity_eps,
    compute_viscosity_eps_fd,
)
from comprheo.composite import CompositeRheology, Parallel
from comprheo.core.config import LocalIterationConfig
from comprheo.core.errors import CompositionError, NonConvergenceError
from comprheo.materials import (
    ConstantElasticity,
    DruckerPrager,
    LinearViscous,
    PowerLawViscous,
)

DT = 1.0e3 * 365.25 * 24 * 3600
ARGS = {"T": 773.15, "dt": DT, "tau_II_old": 0.0}


def _visco_elastic() -> CompositeRheology:
    return CompositeRheology(
        PowerLawViscous(A=1.67e-24, n=3.3, E=187e3),
        ConstantElasticity(1.0e11),
    )


class TestCentralDifference:
    """中心差分."""

    def test_cubic(self):
        d = solver.central_difference(lambda x: x**3, 2.0, 1e-6)
        assert d == pytest.approx(12.0, rel=1e-8)

    def test_at_zero(self):
        """x = 0 では刻みを絶対値として使う."""
        d = solver.central_difference(lambda x: x**2 + x, 0.0, 1e-6)
        assert d == pytest.approx(1.0, rel=1e-8)

    def test_dtau_deps_fd_leaf(self):
        v = PowerLawViscous(A=1.0, n=3.0)
        assert solver.dtau_deps_fd(v, 8.0, {}) == pytest.approx(v.dtau_deps(8.0, {}), rel=1e-6)


class TestSeriesFD:
    """塑性なしの差分版."""

    def test_scalar_matches_analytic(self):
        c = _visco_elastic()
        eps = 1.0e-14
        tau_fd = compute_tau_II_fd(c, eps, ARGS)
        assert tau_fd == pytest.approx(compute_tau_II(c, eps, ARGS), rel=1e-6)

    def test_with_parallel_group(self):
        c = CompositeRheology(
            PowerLawViscous(A=1.0, n=3.0),
            Parallel(LinearViscous(1.0), LinearViscous(0.5)),
        )
        res = solver.local_iterations_eps_fd(c, 2.0, {})
        assert res.value == pytest.approx(compute_tau_II(c, 2.0, {}), rel=1e-5)
        assert res.x.shape == (1,)

    def test_stress_driven_parallel(self):
        p = Parallel(LinearViscous(1.0), PowerLawViscous(A=1.0, n=3.0))
        assert compute_eps_II_fd(p, 3.0, {}) == pytest.approx(compute_eps_II(p, 3.0, {}), rel=1e-6)

    def test_stress_driven_series(self):
        c = CompositeRheology(LinearViscous(1.0), Parallel(LinearViscous(1.0), LinearViscous(2.0)))
        # tau/2 + tau/6
        assert compute_eps_II_fd(c, 3.0, {}) == pytest.approx(2.0, rel=1e-6)

    def test_viscosity(self):
        c = _visco_elastic()
        eps = 1.0e-14
        assert compute_viscosity_eps_fd(c, eps, ARGS) == pytest.approx(
            compute_viscosity_eps(c, eps, ARGS), rel=1e-6
        )

    def test_deps_dtau_fd_series(self):
        c = CompositeRheology(LinearViscous(1.0), Parallel(LinearViscous(1.0), LinearViscous(2.0)))
        assert solver.deps_dtau_fd(c, 3.0, {}) == pytest.approx(0.5 + 1.0 / 6.0, rel=1e-6)


class TestPlasticFD:
    """塑性要素を含む差分版."""

    def test_series_plastic(self):
        """粘性 + 完全塑性: 応力は降伏応力 C."""
        c = CompositeRheology(LinearViscous(1.0), DruckerPrager(C=1.0))
        res = solver.local_iterations_eps_fd(c, 2.0, {})
        assert res.value == pytest.approx(1.0, rel=1e-10)
        assert res.n_iter == 2

    def test_series_plastic_matches_block(self):
        c = CompositeRheology(
            LinearViscous(1.0e21), ConstantElasticity(1.0e11), DruckerPrager(C=1.0e7)
        )
        args = {"dt": DT, "tau_II_old": 0.0}
        tau_block = compute_tau_II(c, 1.0e-14, args)
        tau_fd = compute_tau_II_fd(c, 1.0e-14, args)
        assert tau_fd == pytest.approx(tau_block, rel=1e-6)

    def test_inactive(self):
        c = CompositeRheology(LinearViscous(1.0), DruckerPrager(C=10.0))
        assert compute_tau_II_fd(c, 2.0, {}) == pytest.approx(4.0, rel=1e-10)

    def test_plastic_in_parallel_rejected(self):
        c = CompositeRheology(LinearViscous(1.0), Parallel(LinearViscous(1.0), DruckerPrager(C=1.0)))
        with pytest.raises(CompositionError):
            solver.local_iterations_eps_fd(c, 2.0, {})

    def test_plastic_iteration_cap(self):
        """塑性ありの上限は max_iter_fd_plastic."""
        c = CompositeRheology(LinearViscous(1.0), DruckerPrager(C=1.0))
        cfg = LocalIterationConfig(max_iter_fd_plastic=1)
        with pytest.raises(NonConvergenceError) as excinfo:
            solver.local_iterations_eps_fd(c, 2.0, {}, cfg)
        assert excinfo.value.n_iter == 1

    def test_deps_dtau_fd_plastic_member(self):
        c = CompositeRheology(LinearViscous(1.0), DruckerPrager(C=1.0))
        with pytest.raises(CompositionError):
            solver.deps_dtau_fd(c, 1.0, {})
        assert solver.deps_dtau_fd(c, 1.0, {}, nonplastic=True) == pytest.approx(0.5, rel=1e-8)
