"""comprheo - 合成レオロジー（直列・並列の構成則）の局所反復ソルバー.

基本形:
  >>> from comprheo import CompositeRheology, Parallel, compute_tau_II
  >>> from comprheo.materials import LinearViscous, DruckerPrager
  >>> c = CompositeRheology(LinearViscous(1e21), Parallel(LinearViscous(1e22), DruckerPrager(1e7)))
  >>> tau = compute_tau_II(c, 1e-14, {})
"""

from comprheo.api import (
    compute_eps_II,
    compute_eps_II_fd,
    compute_tau_II,
    compute_tau_II_array,
    compute_tau_II_fd,
    compute_viscosity_eps,
    compute_viscosity_eps_fd,
    compute_yield_function,
)
from comprheo.composite import CompositeRheology, CompositionInfo, Parallel
from comprheo.core import (
    CompositionError,
    DegenerateInputError,
    LocalIterationConfig,
    LocalIterationResult,
    NonConvergenceError,
    PlasticReturnResult,
    RheologyError,
    YieldBranchOscillationError,
)
from comprheo.units import units

__all__ = [
    "CompositeRheology",
    "Parallel",
    "CompositionInfo",
    "compute_tau_II",
    "compute_tau_II_fd",
    "compute_tau_II_array",
    "compute_eps_II",
    "compute_eps_II_fd",
    "compute_viscosity_eps",
    "compute_viscosity_eps_fd",
    "compute_yield_function",
    "LocalIterationConfig",
    "LocalIterationResult",
    "PlasticReturnResult",
    "RheologyError",
    "CompositionError",
    "DegenerateInputError",
    "NonConvergenceError",
    "YieldBranchOscillationError",
    "units",
]
