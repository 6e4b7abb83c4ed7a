"""塑性 return mapping（plastic_return_mapping）のテスト.

テスト方針:
  1. 試行応力で降伏未満なら eps_pl = lambda = 0（厳密）
  2. 降伏時の解析解: lambda = (tau - C) / (eta_np + eta_vp)
  3. 戻した応力で F(tau_pl) = 0
  4. 前ステップ応力 tau_II_old を含む有効粘性
  5. eps_np = 0（または未指定）で降伏時は退化入力
  6. 反復上限で NonConvergenceError
  7. DruckerPrager.compute_eps_II は return mapping の塑性歪み速度
"""

from __future__ import annotations

import pytest

from comprheo.core.config import LocalIterationConfig
from comprheo.core.errors import DegenerateInputError, NonConvergenceError
from comprheo.materials import DruckerPrager
from comprheo.solver import plastic_return_mapping


class TestInactive:
    """降伏未満（相補性）."""

    def test_below_yield(self):
        res = plastic_return_mapping(DruckerPrager(C=10.0), 5.0, {"eps_np": 1.0})
        assert res.eps_pl == 0.0
        assert res.lam == 0.0
        assert res.tau_pl == 5.0
        assert res.n_iter == 0

    def test_eps_np_not_needed_below_yield(self):
        """非活性なら eps_np は参照しない."""
        res = plastic_return_mapping(DruckerPrager(C=10.0), 5.0, {})
        assert res.eps_pl == 0.0

    def test_friction_raises_yield_stress(self):
        """圧力で降伏応力が上がり非活性になる."""
        dp = DruckerPrager(C=1.0, phi=30.0)
        res = plastic_return_mapping(dp, 2.0, {"eps_np": 1.0, "P": 4.0})
        assert res.lam == 0.0


class TestActive:
    """降伏時の return mapping."""

    def test_perfect_plasticity(self):
        """eta_np = 4 / (2*2) = 1, lambda = (4 - 1) / 1."""
        dp = DruckerPrager(C=1.0)
        res = plastic_return_mapping(dp, 4.0, {"eps_np": 2.0})
        assert res.lam == pytest.approx(3.0, rel=1e-12)
        assert res.tau_pl == pytest.approx(1.0, rel=1e-12)
        assert res.eps_pl == pytest.approx(1.5, rel=1e-12)
        # 線形流れ則では1回の更新で降伏面に戻る
        assert res.n_iter == 2

    def test_yield_surface_reached(self):
        dp = DruckerPrager(C=1.0, phi=20.0)
        args = {"eps_np": 0.5, "P": 3.0}
        res = plastic_return_mapping(dp, 10.0, args)
        F = dp.yield_function({**args, "tau_II": res.tau_pl, "lambda": res.lam})
        assert abs(F) <= 1e-6 * 10.0
        assert res.lam > 0.0

    def test_viscoplastic(self):
        """eta_vp > 0: lambda = (tau - C) / (eta_np + eta_vp)."""
        dp = DruckerPrager(C=1.0, eta_vp=1.0)
        res = plastic_return_mapping(dp, 4.0, {"eps_np": 2.0})
        assert res.lam == pytest.approx(1.5, rel=1e-12)
        assert res.tau_pl == pytest.approx(2.5, rel=1e-12)

    def test_old_stress_in_effective_viscosity(self):
        """eta_np = (tau - tau_II_old) / (2 eps_np) = (4 - 2) / 4."""
        dp = DruckerPrager(C=1.0)
        res = plastic_return_mapping(dp, 4.0, {"eps_np": 2.0, "tau_II_old": 2.0})
        assert res.lam == pytest.approx(3.0 / 0.5, rel=1e-12)
        assert res.tau_pl == pytest.approx(1.0, rel=1e-12)

    def test_eps_pl_from_element(self):
        dp = DruckerPrager(C=1.0)
        assert dp.compute_eps_II(4.0, {"eps_np": 2.0}) == pytest.approx(1.5, rel=1e-12)


class TestFailures:
    """退化入力・非収束."""

    def test_zero_eps_np(self):
        with pytest.raises(DegenerateInputError):
            plastic_return_mapping(DruckerPrager(C=1.0), 4.0, {"eps_np": 0.0})

    def test_missing_eps_np(self):
        with pytest.raises(DegenerateInputError):
            plastic_return_mapping(DruckerPrager(C=1.0), 4.0, {})

    def test_iteration_cap(self):
        cfg = LocalIterationConfig(max_iter_return_mapping=1)
        with pytest.raises(NonConvergenceError) as excinfo:
            plastic_return_mapping(DruckerPrager(C=1.0), 4.0, {"eps_np": 2.0}, cfg)
        assert excinfo.value.n_iter == 1

    def test_verbose(self, capsys):
        cfg = LocalIterationConfig(verbose=True)
        plastic_return_mapping(DruckerPrager(C=1.0), 4.0, {"eps_np": 2.0}, cfg)
        assert "plastic iter 1" in capsys.readouterr().out
