"""
ChargeSettingsService -- business-wide default charge rates.

Responsibility:
    Stores one ChargeSettings row per business and resolves it into the
    ChargeConfig a new settlement snapshots.  Businesses without a saved
    row get the catalog defaults (buyer aadhat 2%, buyer mandi 1%, all
    else zero).

Architecture position:
    Kernel > Services.  Flush-only; the caller owns the transaction.

Failure modes:
    - ValidationError on unknown rate keys or negative / non-numeric rates.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from mandi_kernel.domain.catalog import DEFAULT_CATALOG, Catalog
from mandi_kernel.domain.charges import ChargeConfig
from mandi_kernel.domain.clock import Clock
from mandi_kernel.exceptions import ValidationError
from mandi_kernel.models.charge_settings import ChargeSettings
from mandi_kernel.services.base import BaseService


class ChargeSettingsService(BaseService[ChargeSettings]):
    """Read and upsert a business's default charge rates."""

    log_name = "charge_settings"

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        catalog: Catalog = DEFAULT_CATALOG,
    ):
        super().__init__(session, clock)
        self.catalog = catalog

    def _row(self, business_id: str) -> ChargeSettings | None:
        return self.session.execute(
            select(ChargeSettings).where(ChargeSettings.business_id == business_id)
        ).scalar_one_or_none()

    def get_charge_config(self, business_id: str) -> ChargeConfig:
        row = self._row(business_id)
        if row is None:
            return self.catalog.default_charges
        return ChargeConfig(
            **{name: getattr(row, name) for name in ChargeConfig.field_names()}
        )

    def save_charge_settings(
        self, business_id: str, *, actor_id: UUID, **rates: Any
    ) -> ChargeConfig:
        """
        Update some or all rates.  Rates not passed keep their current value.

        Already-settled transactions keep the rates they snapshotted.
        """
        try:
            config = self.get_charge_config(business_id).with_overrides(rates)
        except ValidationError as exc:
            raise self._rejected("charge_settings_rejected", exc)

        row = self._row(business_id)
        if row is None:
            row = ChargeSettings(business_id=business_id, created_by_id=actor_id)
            self.session.add(row)
        else:
            row.updated_by_id = actor_id
        for name, value in config.to_dict().items():
            setattr(row, name, value)
        self._flush("ChargeSettings", business_id)

        self.logger.info(
            "charge_settings_saved",
            extra={"rates": {k: str(v) for k, v in config.to_dict().items()}},
        )
        return config
