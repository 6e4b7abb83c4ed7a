"""合成レオロジー（直列・並列の組み合わせ）.

構造:
  CompositeRheology: 直列（共通応力, 歪み速度は和）。最上位の容器。
  Parallel         : 並列（共通歪み速度, 応力は和）。CompositeRheology のメンバー。

入れ子はちょうど2段:
  CompositeRheology ∋ 要素 | Parallel
  Parallel          ∋ 要素（塑性要素は1つまで）

合成メタデータ CompositionInfo は構築時に1回だけ計算し、以後不変。
ソルバーは値を見ずに CompositionInfo だけで解法と未知ベクトル長を決める。

評価の再帰:
  歪み速度(応力):  直列 = Σ メンバー,  並列 = 非線形求解（solver.local_iterations_tau）
  応力(歪み速度):  並列 = Σ メンバー,  直列 = 非線形求解（solver.local_iterations_eps）
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from comprheo import solver
from comprheo.core.config import LocalIterationConfig
from comprheo.core.element import RheologyElementProtocol, is_plastic
from comprheo.core.errors import CompositionError


@dataclass(frozen=True)
class CompositionInfo:
    """合成構造のメタデータ（不変）.

    Attributes:
        n: メンバー数
        n_parallel: Parallel 群の数
        is_parallel: メンバーごとの Parallel フラグ
        n_plastic: 塑性メンバー（塑性要素 or 塑性要素を含む群）の数
        is_plastic: メンバーごとの塑性フラグ
        n_volumetric: 体積変形を持つメンバー数（現状常に 0）
        is_volumetric: メンバーごとの体積変形フラグ
        slots: メンバーごとの未知ベクトル先頭位置。
            0 は専用スロットなし（x[0] の応力に寄与するだけ）。
            塑性を含む群は slots[i]（lambda）と slots[i]+1（tau_pl）の2つを使う。
    """

    n: int
    n_parallel: int
    is_parallel: tuple[bool, ...]
    n_plastic: int
    is_plastic: tuple[bool, ...]
    n_volumetric: int
    is_volumetric: tuple[bool, ...]
    slots: tuple[int, ...]

    @classmethod
    def from_elements(cls, elements: Sequence[Any]) -> CompositionInfo:
        """メンバー列からメタデータを構築する."""
        par = tuple(isinstance(v, Parallel) for v in elements)
        plast = tuple(is_plastic(v) for v in elements)

        slots = []
        j = 1
        for p, q in zip(par, plast):
            if p or q:
                slots.append(j)
                j += 2 if (p and q) else 1
            else:
                slots.append(0)

        return cls(
            n=len(elements),
            n_parallel=sum(par),
            is_parallel=par,
            n_plastic=sum(plast),
            is_plastic=plast,
            n_volumetric=0,
            is_volumetric=(False,) * len(elements),
            slots=tuple(slots),
        )

    @property
    def n_unknowns(self) -> int:
        """ブロック Newton の未知数（応力 + 群の歪み速度 + 塑性乗数 + 群内塑性応力）."""
        return 1 + self.n_parallel + self.n_plastic

    @property
    def solver_kind(self) -> str:
        """適用する解法: "scalar" | "parallel" | "plastic"."""
        if self.n_plastic > 0:
            return "plastic"
        if self.n_parallel > 0:
            return "parallel"
        return "scalar"


def _as_members(elements: tuple[Any, ...]) -> tuple[Any, ...]:
    # Parallel(a, b) と Parallel((a, b)) の両方を受け付ける
    if len(elements) == 1 and isinstance(elements[0], (list, tuple)):
        return tuple(elements[0])
    return tuple(elements)


def _check_element(v: Any, where: str) -> None:
    if not isinstance(v, RheologyElementProtocol):
        raise CompositionError(
            f"{where} のメンバーがレオロジー要素のインタフェースを満たしません: {v!r}"
        )


class Parallel:
    """並列要素群（共通歪み速度, 応力は和）.

    Args:
        *elements: メンバー要素。Parallel / CompositeRheology は不可。
            塑性要素は1つまで。
    """

    def __init__(self, *elements: Any) -> None:
        members = _as_members(elements)
        if len(members) == 0:
            raise CompositionError("Parallel には1つ以上の要素が必要です。")
        for v in members:
            if isinstance(v, (Parallel, CompositeRheology)):
                raise CompositionError(
                    f"Parallel の中に合成要素は入れられません: {type(v).__name__}"
                )
            _check_element(v, "Parallel")
        self.elements: tuple[Any, ...] = members
        self.info = CompositionInfo.from_elements(members)
        if self.info.n_plastic > 1:
            raise CompositionError(
                f"Parallel 内の塑性要素は1つまでです: {self.info.n_plastic} 個"
            )

    def __len__(self) -> int:
        return self.info.n

    def __getitem__(self, i: int) -> Any:
        return self.elements[i]

    def __iter__(self) -> Iterator[Any]:
        return iter(self.elements)

    def __repr__(self) -> str:
        return f"Parallel({', '.join(type(v).__name__ for v in self.elements)})"

    @property
    def is_plastic(self) -> bool:
        return self.info.n_plastic > 0

    @property
    def plastic_element(self) -> Any:
        """群内の塑性要素（なければ None）."""
        for v, q in zip(self.elements, self.info.is_plastic):
            if q:
                return v
        return None

    def _require_plastic(self) -> Any:
        v = self.plastic_element
        if v is None:
            raise CompositionError("塑性要素を含まない Parallel に降伏関数はありません。")
        return v

    # --- 応力(歪み速度): 閉形式 ---

    def compute_tau_II(self, eps_II: float, args: Mapping[str, Any]) -> float:
        """共通歪み速度での応力の和."""
        tau = 0.0
        for v in self.elements:
            tau += v.compute_tau_II(eps_II, args)
        return tau

    def compute_tau_II_nonplastic(self, eps_II: float, args: Mapping[str, Any]) -> float:
        """塑性要素を除いた応力の和."""
        tau = 0.0
        for v, q in zip(self.elements, self.info.is_plastic):
            if not q:
                tau += v.compute_tau_II(eps_II, args)
        return tau

    def dtau_deps(self, eps_II: float, args: Mapping[str, Any]) -> float:
        val = 0.0
        for v in self.elements:
            val += v.dtau_deps(eps_II, args)
        return val

    def dtau_deps_nonplastic(self, eps_II: float, args: Mapping[str, Any]) -> float:
        val = 0.0
        for v, q in zip(self.elements, self.info.is_plastic):
            if not q:
                val += v.dtau_deps(eps_II, args)
        return val

    # --- 歪み速度(応力): 非線形求解 ---

    def compute_eps_II(
        self,
        tau_II: float,
        args: Mapping[str, Any],
        config: LocalIterationConfig | None = None,
    ) -> float:
        """与えられた応力を担う共通歪み速度（Newton 反復）."""
        if self.is_plastic:
            raise CompositionError(
                "塑性要素を含む Parallel の歪み速度はブロック Newton 内でのみ解けます。"
            )
        return solver.local_iterations_tau(self, tau_II, args, config).value

    def deps_dtau(
        self,
        tau_II: float,
        args: Mapping[str, Any],
        config: LocalIterationConfig | None = None,
    ) -> float:
        """1 / dtau_deps(eps(tau))."""
        eps = self.compute_eps_II(tau_II, args, config)
        return 1.0 / self.dtau_deps(eps, args)

    def compute_eps_II_harmonic(self, tau_II: float, args: Mapping[str, Any]) -> float:
        """各メンバーが応力全体を担うと仮定した歪み速度の調和平均（初期推定用）.

        tau_II と逆符号の歪み速度は平均に入れない（solver.harmonic_mean）。
        """
        return solver.harmonic_mean(
            (v.compute_eps_II(tau_II, args) for v in self.elements), tau_II
        )

    # --- 塑性: 群内の塑性要素に委譲 ---

    def yield_function(self, args: Mapping[str, Any]) -> float:
        return self._require_plastic().yield_function(args)

    def dQ_dtau(self, tau_II: float) -> float:
        return self._require_plastic().dQ_dtau(tau_II)

    def dF_dtau(self, tau_II: float) -> float:
        return self._require_plastic().dF_dtau(tau_II)

    def dF_dlambda(self, tau_II: float) -> float:
        return self._require_plastic().dF_dlambda(tau_II)


class CompositeRheology:
    """直列合成レオロジー（共通応力, 歪み速度は和）.

    Args:
        *elements: メンバー要素または Parallel 群。CompositeRheology は不可。

    Example:
        >>> c = CompositeRheology(PowerLawViscous(A, n, E), ConstantElasticity(G))
        >>> tau = c.compute_tau_II(1e-14, {"T": 773.15, "dt": dt})
    """

    def __init__(self, *elements: Any) -> None:
        members = _as_members(elements)
        if len(members) == 0:
            raise CompositionError("CompositeRheology には1つ以上の要素が必要です。")
        for v in members:
            if isinstance(v, CompositeRheology):
                raise CompositionError("CompositeRheology は入れ子にできません。")
            if not isinstance(v, Parallel):
                _check_element(v, "CompositeRheology")
        self.elements: tuple[Any, ...] = members
        self.info = CompositionInfo.from_elements(members)

    def __len__(self) -> int:
        return self.info.n

    def __getitem__(self, i: int) -> Any:
        return self.elements[i]

    def __iter__(self) -> Iterator[Any]:
        return iter(self.elements)

    def __repr__(self) -> str:
        names = [repr(v) if isinstance(v, Parallel) else type(v).__name__ for v in self.elements]
        return f"CompositeRheology({', '.join(names)})"

    @property
    def is_plastic(self) -> bool:
        return self.info.n_plastic > 0

    # --- 歪み速度(応力): 和 ---

    def compute_eps_II(self, tau_II: float, args: Mapping[str, Any]) -> float:
        """共通応力での歪み速度の和（Parallel 群は内部で求解）."""
        eps = 0.0
        for v in self.elements:
            eps += v.compute_eps_II(tau_II, args)
        return eps

    def deps_dtau(self, tau_II: float, args: Mapping[str, Any]) -> float:
        val = 0.0
        for v in self.elements:
            val += v.deps_dtau(tau_II, args)
        return val

    def compute_eps_II_member(self, i: int, tau_II: float, args: Mapping[str, Any]) -> float:
        """i 番目のメンバーが単独で担う歪み速度."""
        return self.elements[i].compute_eps_II(tau_II, args)

    def compute_eps_II_elements(self, tau_II: float, args: Mapping[str, Any]) -> float:
        """Parallel 群・塑性要素以外のメンバーの歪み速度の和（ヤコビアン用）."""
        eps = 0.0
        for v, p, q in zip(self.elements, self.info.is_parallel, self.info.is_plastic):
            if not (p or q):
                eps += v.compute_eps_II(tau_II, args)
        return eps

    def deps_dtau_elements(self, tau_II: float, args: Mapping[str, Any]) -> float:
        """Parallel 群・塑性要素以外のメンバーの d(歪み速度)/d(応力) の和."""
        val = 0.0
        for v, p, q in zip(self.elements, self.info.is_parallel, self.info.is_plastic):
            if not (p or q):
                val += v.deps_dtau(tau_II, args)
        return val

    def compute_eps_II_nonplastic(self, tau_II: float, args: Mapping[str, Any]) -> float:
        """塑性メンバーを除いた歪み速度の和."""
        eps = 0.0
        for v, q in zip(self.elements, self.info.is_plastic):
            if not q:
                eps += v.compute_eps_II(tau_II, args)
        return eps

    # --- 応力(歪み速度): 非線形求解 ---

    def compute_tau_II(
        self,
        eps_II: float,
        args: Mapping[str, Any],
        config: LocalIterationConfig | None = None,
    ) -> float:
        """与えられた全歪み速度に対する直列応力（局所 Newton 反復）."""
        return solver.local_iterations_eps(self, eps_II, args, config).value

    def dtau_deps(
        self,
        eps_II: float,
        args: Mapping[str, Any],
        config: LocalIterationConfig | None = None,
    ) -> float:
        """1 / deps_dtau(tau(eps))."""
        tau = self.compute_tau_II(eps_II, args, config)
        return 1.0 / self.deps_dtau(tau, args)

    # --- 初期推定 ---

    def compute_tau_II_harmonic(self, eps_II: float, args: Mapping[str, Any]) -> float:
        """各メンバーが全歪み速度を担うと仮定した応力の調和平均.

        塑性要素と Parallel 群は寄与しない（逆応力ゼロ扱い）。
        eps_II と逆符号の応力は平均に入れない（solver.harmonic_mean）。
        寄与するメンバーがない場合は inf を返す。
        """
        return solver.harmonic_mean(
            (
                v.compute_tau_II(eps_II, args)
                for v, p, q in zip(self.elements, self.info.is_parallel, self.info.is_plastic)
                if not (p or q)
            ),
            eps_II,
        )
