"""
Module: mandi_kernel.models.charge_settings
Responsibility: One row per business holding the default charge rates that
    new settlements snapshot.  Changing a rate never touches transactions
    that were already settled.
Architecture position: Kernel > Models.  May import from db/base.py only.
"""

from decimal import Decimal

from sqlalchemy import UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from mandi_kernel.db.base import TenantScoped, TrackedBase
from mandi_kernel.db.types import Percent


class ChargeSettings(TenantScoped, TrackedBase):
    """Business-wide default rates.  Percentages apply to gross amount."""

    __tablename__ = "charge_settings"

    __table_args__ = (
        UniqueConstraint("business_id", name="uq_charge_settings_business"),
    )

    hammali_farmer_per_bag: Mapped[Decimal] = mapped_column(
        nullable=False, default=Decimal("0")
    )
    hammali_buyer_per_bag: Mapped[Decimal] = mapped_column(
        nullable=False, default=Decimal("0")
    )
    grading_farmer_per_bag: Mapped[Decimal] = mapped_column(
        nullable=False, default=Decimal("0")
    )
    grading_buyer_per_bag: Mapped[Decimal] = mapped_column(
        nullable=False, default=Decimal("0")
    )
    aadhat_farmer_percent: Mapped[Percent] = mapped_column(
        nullable=False, default=Decimal("0")
    )
    aadhat_buyer_percent: Mapped[Percent] = mapped_column(
        nullable=False, default=Decimal("2")
    )
    mandi_farmer_percent: Mapped[Percent] = mapped_column(
        nullable=False, default=Decimal("0")
    )
    mandi_buyer_percent: Mapped[Percent] = mapped_column(
        nullable=False, default=Decimal("1")
    )

    def __repr__(self) -> str:
        return f"<ChargeSettings {self.business_id}>"
