"""
Bridges from configuration to kernel inputs.

The kernel never imports ``mandi_config``.  These functions translate a
``MandiConfig`` into the value objects kernel services accept.
"""

from __future__ import annotations

from sqlalchemy.engine import Engine

from mandi_kernel.db.engine import init_engine_from_url
from mandi_kernel.domain.catalog import Catalog
from mandi_kernel.domain.charges import ChargeConfig
from mandi_kernel.logging_config import configure_logging

from mandi_config.schema import MandiConfig


def build_catalog(config: MandiConfig) -> Catalog:
    """Catalog for LotService / BidService / ChargeSettingsService."""
    return Catalog(
        crop_prefixes={c.name: c.prefix for c in config.catalog.crops},
        sizes=config.catalog.sizes,
        default_grade=config.catalog.default_grade,
        default_charges=build_default_charges(config),
    )


def build_default_charges(config: MandiConfig) -> ChargeConfig:
    """Rates used when a business has no saved ChargeSettings row."""
    return ChargeConfig.from_dict(config.default_charges_dict)


def apply_logging(config: MandiConfig) -> None:
    """Configure structured logging at the configured level."""
    configure_logging(level=config.logging.level)


def init_database(config: MandiConfig) -> Engine:
    """Install the process-wide engine for ``config.database``."""
    return init_engine_from_url(config.database.url, echo=config.database.echo)
