"""comprheo.materials - 構成則（葉要素）の参照実装."""

from comprheo.materials.elastic import ConstantElasticity
from comprheo.materials.plastic import DruckerPrager
from comprheo.materials.viscous import LinearViscous, PowerLawViscous

__all__ = [
    "LinearViscous",
    "PowerLawViscous",
    "ConstantElasticity",
    "DruckerPrager",
]
