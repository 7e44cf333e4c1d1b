"""
MandiConfig schema.

Frozen dataclasses the loader parses ``defaults.yaml`` (or an override
file) into.  Kernel-facing objects (Catalog, ChargeConfig) are built from
these by ``mandi_config.bridges``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DatabaseDef:
    url: str
    echo: bool = False


@dataclass(frozen=True)
class CropDef:
    """A crop the mandi trades and its lot-code prefix."""

    name: str
    prefix: str


@dataclass(frozen=True)
class CatalogDef:
    crops: tuple[CropDef, ...]
    sizes: tuple[str, ...]
    default_grade: str = "Large"


@dataclass(frozen=True)
class LoggingDef:
    level: str = "INFO"


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MandiConfig:
    """Validated, immutable runtime configuration."""

    config_id: str
    version: int
    database: DatabaseDef
    catalog: CatalogDef
    payment_modes: tuple[str, ...]
    default_charges: tuple[tuple[str, str], ...]
    logging: LoggingDef = field(default_factory=LoggingDef)
    checksum: str = ""

    @property
    def default_charges_dict(self) -> dict[str, Any]:
        return dict(self.default_charges)
