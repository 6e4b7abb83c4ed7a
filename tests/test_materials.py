"""構成則（葉要素）のテスト.

テスト方針:
  1. 要素インタフェース（Protocol）への適合
  2. 解析微分の有限差分検証（最重要）
  3. 応力 ⇄ 歪み速度の逆関係
  4. 温度・圧力依存（Arrhenius）
  5. 弾性の前ステップ応力
  6. Drucker-Prager の降伏関数と導関数
  7. パラメータ検証
"""

from __future__ import annotations

import math

import pytest

from comprheo.core.element import (
    PlasticElementProtocol,
    RheologyElementProtocol,
    is_plastic,
)
from comprheo.materials import (
    ConstantElasticity,
    DruckerPrager,
    LinearViscous,
    PowerLawViscous,
)
from comprheo.solver import central_difference

DT = 1.0e3 * 365.25 * 24 * 3600
ARGS = {"T": 1200.0, "P": 1.0e9, "dt": DT, "tau_II_old": 2.0e6}

ELEMENTS = [
    LinearViscous(1.0e21),
    PowerLawViscous(A=1.67e-24, n=3.3, E=187e3),
    PowerLawViscous(A=2.5e-17, n=3.5, E=532e3, V=17e-6),
    ConstantElasticity(5.0e10),
]
IDS = ["linear", "powerlaw", "powerlaw_PV", "elastic"]


class TestProtocol:
    """インタフェース適合."""

    @pytest.mark.parametrize("v", ELEMENTS, ids=IDS)
    def test_rheology_protocol(self, v):
        assert isinstance(v, RheologyElementProtocol)
        assert not is_plastic(v)

    def test_plastic_protocol(self):
        dp = DruckerPrager(C=1.0e7)
        assert isinstance(dp, PlasticElementProtocol)
        assert is_plastic(dp)

    def test_viscous_not_plastic_protocol(self):
        assert not isinstance(LinearViscous(1.0e21), PlasticElementProtocol)


class TestDerivatives:
    """解析微分 vs 中心差分."""

    @pytest.mark.parametrize("v", ELEMENTS, ids=IDS)
    def test_deps_dtau(self, v):
        tau = 3.0e7
        fd = central_difference(lambda t: v.compute_eps_II(t, ARGS), tau, 1e-6)
        assert v.deps_dtau(tau, ARGS) == pytest.approx(fd, rel=1e-6)

    @pytest.mark.parametrize("v", ELEMENTS, ids=IDS)
    def test_dtau_deps(self, v):
        eps = 1.0e-14
        fd = central_difference(lambda e: v.compute_tau_II(e, ARGS), eps, 1e-6)
        assert v.dtau_deps(eps, ARGS) == pytest.approx(fd, rel=1e-6)

    @pytest.mark.parametrize("v", ELEMENTS, ids=IDS)
    def test_inverse(self, v):
        """eps(tau(eps)) = eps, (dtau/deps)(deps/dtau) = 1."""
        eps = 1.0e-14
        tau = v.compute_tau_II(eps, ARGS)
        assert v.compute_eps_II(tau, ARGS) == pytest.approx(eps, rel=1e-12)
        assert v.dtau_deps(eps, ARGS) * v.deps_dtau(tau, ARGS) == pytest.approx(1.0, rel=1e-12)


class TestViscous:
    """粘性構成則."""

    def test_linear(self):
        v = LinearViscous(1.0e21)
        assert v.compute_eps_II(2.0e7, {}) == pytest.approx(1.0e-14)

    def test_arrhenius(self):
        v = PowerLawViscous(A=1.0e-20, n=3.0, E=200e3, V=10e-6, R=8.3145)
        args = {"T": 1000.0, "P": 1.0e9}
        expected = 1.0e-20 * 1.0e7**3 * math.exp(-(200e3 + 1.0e9 * 10e-6) / (8.3145 * 1000.0))
        assert v.compute_eps_II(1.0e7, args) == pytest.approx(expected, rel=1e-12)

    def test_hotter_is_weaker(self):
        v = PowerLawViscous(A=1.67e-24, n=3.3, E=187e3)
        assert v.compute_tau_II(1e-14, {"T": 1300.0}) < v.compute_tau_II(1e-14, {"T": 900.0})

    def test_temperature_required(self):
        v = PowerLawViscous(A=1.67e-24, n=3.3, E=187e3)
        with pytest.raises(KeyError):
            v.compute_eps_II(1.0e7, {})

    def test_no_activation_no_temperature(self):
        v = PowerLawViscous(A=1.0, n=2.0)
        assert v.compute_eps_II(3.0, {}) == pytest.approx(9.0)

    def test_odd_extension(self):
        v = PowerLawViscous(A=1.0, n=3.3)
        assert v.compute_eps_II(-2.0, {}) == pytest.approx(-v.compute_eps_II(2.0, {}))
        assert v.compute_tau_II(-2.0, {}) == pytest.approx(-v.compute_tau_II(2.0, {}))

    def test_zero(self):
        v = PowerLawViscous(A=1.0, n=3.3)
        assert v.compute_eps_II(0.0, {}) == 0.0
        assert v.compute_tau_II(0.0, {}) == 0.0
        assert v.dtau_deps(0.0, {}) == math.inf

    @pytest.mark.parametrize(
        "kwargs",
        [{"A": 0.0, "n": 3.0}, {"A": 1.0, "n": 0.5}],
    )
    def test_invalid(self, kwargs):
        with pytest.raises(ValueError):
            PowerLawViscous(**kwargs)

    def test_invalid_linear(self):
        with pytest.raises(ValueError):
            LinearViscous(0.0)


class TestElastic:
    """Maxwell 弾性."""

    def test_old_stress(self):
        G = 5.0e10
        v = ConstantElasticity(G)
        args = {"dt": DT, "tau_II_old": 1.0e7}
        assert v.compute_eps_II(1.0e7, args) == 0.0
        assert v.compute_tau_II(0.0, args) == 1.0e7

    def test_old_stress_defaults_to_zero(self):
        v = ConstantElasticity(5.0e10)
        assert v.compute_eps_II(1.0e7, {"dt": DT}) == pytest.approx(1.0e7 / (2.0 * 5.0e10 * DT))

    def test_invalid(self):
        with pytest.raises(ValueError):
            ConstantElasticity(-1.0)


class TestDruckerPrager:
    """Drucker-Prager 降伏条件."""

    def test_yield_function_cohesion_only(self):
        dp = DruckerPrager(C=1.0e7)
        assert dp.yield_function({"tau_II": 1.5e7}) == pytest.approx(0.5e7)
        assert dp.yield_function({"tau_II": 0.5e7}) < 0.0

    def test_friction(self):
        dp = DruckerPrager(C=1.0e7, phi=30.0)
        tau_y = 1.0e7 * math.cos(math.pi / 6) + 1.0e8 * 0.5
        assert dp.yield_stress({"P": 1.0e8}) == pytest.approx(tau_y, rel=1e-12)

    def test_viscoplastic_regularization(self):
        dp = DruckerPrager(C=1.0e7, eta_vp=1.0e20)
        F0 = dp.yield_function({"tau_II": 2.0e7})
        F1 = dp.yield_function({"tau_II": 2.0e7, "lambda": 1.0e-14})
        assert F0 - F1 == pytest.approx(1.0e6)
        assert dp.dF_dlambda(2.0e7) == -1.0e20

    def test_derivatives_match_finite_difference(self):
        dp = DruckerPrager(C=1.0e7, phi=20.0, eta_vp=1.0e19)
        args = {"P": 5.0e7, "lambda": 1.0e-14}
        tau = 3.0e7
        dF_dtau = central_difference(lambda t: dp.yield_function({**args, "tau_II": t}), tau, 1e-6)
        dF_dlam = central_difference(
            lambda lam: dp.yield_function({**args, "tau_II": tau, "lambda": lam}), 1.0e-14, 1e-6
        )
        assert dp.dF_dtau(tau) == pytest.approx(dF_dtau, rel=1e-6)
        assert dp.dF_dlambda(tau) == pytest.approx(dF_dlam, rel=1e-6)

    def test_flowing_stress_on_yield_surface(self):
        """compute_tau_II は F = 0 を満たす（lambda = eps / dQ）."""
        dp = DruckerPrager(C=1.0e7, phi=10.0, eta_vp=1.0e19)
        args = {"P": 1.0e8}
        eps = 2.0e-14
        tau = dp.compute_tau_II(eps, args)
        lam = eps / dp.dQ_dtau(tau)
        assert dp.yield_function({**args, "tau_II": tau, "lambda": lam}) == pytest.approx(
            0.0, abs=1e-6
        )
        assert dp.dtau_deps(eps, args) == pytest.approx(2.0e19)

    @pytest.mark.parametrize(
        "kwargs",
        [{"C": -1.0}, {"C": 1.0, "phi": 90.0}, {"C": 1.0, "eta_vp": -1.0}],
    )
    def test_invalid(self, kwargs):
        with pytest.raises(ValueError):
            DruckerPrager(**kwargs)
