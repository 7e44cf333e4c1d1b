"""
Catalog -- Reference data the services validate against.

Responsibility:
    Crops and their lot-code prefixes, bag sizes, bid grades, and the
    default charge rates used when a business has no ChargeSettings row.

Architecture position:
    Kernel > Domain -- pure, zero I/O.  The kernel never reads
    configuration itself; ``mandi_config`` builds a Catalog from YAML and
    callers inject it into services.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from types import MappingProxyType
from typing import Mapping

from mandi_kernel.domain.charges import ChargeConfig


def _frozen(mapping: Mapping[str, str]) -> Mapping[str, str]:
    return MappingProxyType(dict(mapping))


DEFAULT_CROP_PREFIXES: Mapping[str, str] = _frozen(
    {"Potato": "POT", "Onion": "ONI", "Garlic": "GAR"}
)

DEFAULT_SIZES: tuple[str, ...] = ("Large", "Medium", "Small", "Chhatan")

DEFAULT_CHARGES = ChargeConfig(
    aadhat_buyer_percent=Decimal("2"),
    mandi_buyer_percent=Decimal("1"),
)


@dataclass(frozen=True)
class Catalog:
    """
    Immutable reference data.

    Guarantees:
        - Every crop has a non-empty lot-code prefix.
        - ``default_grade`` is one of ``sizes``.
    """

    crop_prefixes: Mapping[str, str] = field(default_factory=lambda: DEFAULT_CROP_PREFIXES)
    sizes: tuple[str, ...] = DEFAULT_SIZES
    default_grade: str = "Large"
    default_charges: ChargeConfig = field(default=DEFAULT_CHARGES)

    def __post_init__(self) -> None:
        object.__setattr__(self, "crop_prefixes", _frozen(self.crop_prefixes))
        object.__setattr__(self, "sizes", tuple(self.sizes))
        for crop, prefix in self.crop_prefixes.items():
            if not prefix:
                raise ValueError(f"Crop {crop!r} has an empty lot-code prefix")
        if self.default_grade not in self.sizes:
            raise ValueError(
                f"default_grade {self.default_grade!r} is not a known size"
            )

    @property
    def crops(self) -> tuple[str, ...]:
        return tuple(self.crop_prefixes)

    def prefix_for(self, crop: str) -> str | None:
        return self.crop_prefixes.get(crop)


DEFAULT_CATALOG = Catalog()
