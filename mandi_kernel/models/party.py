"""
Module: mandi_kernel.models.party
Responsibility: ORM persistence for the two counterparties of every sale:
    farmers (who consign lots) and buyers (who bid on them).  Opening
    balances live here; running dues never do.
Architecture position: Kernel > Models.  May import from db/base.py only.
    MUST NOT import from services/, selectors/, or outer layers.

Invariants enforced:
    - farmer_code / buyer_code are unique per business and allocated from
      the locked sequence counter (FM<n>, BY<n>), never from count + 1.
    - No stored balance columns other than opening_balance.  Dues are
      derived on read by DuesSelector.

Failure modes:
    - IntegrityError on a duplicate code within a business.
"""

from decimal import Decimal

from sqlalchemy import Boolean, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from mandi_kernel.db.base import TenantScoped, TrackedBase
from mandi_kernel.domain.dtos import BuyerView, FarmerView


class Farmer(TenantScoped, TrackedBase):
    """
    Producer who consigns lots to the mandi.

    Guarantees:
        - farmer_code is unique within the business.
        - Archived farmers keep their history; they are hidden from lists.
    """

    __tablename__ = "farmers"

    __table_args__ = (
        UniqueConstraint("business_id", "farmer_code", name="uq_farmer_code"),
        Index("idx_farmer_name", "business_id", "name"),
    )

    farmer_code: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    phone: Mapped[str | None] = mapped_column(
        String(20),
        nullable=True,
    )

    village: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )

    # Balance carried in from before the ledger started (owed to the farmer)
    opening_balance: Mapped[Decimal] = mapped_column(
        nullable=False,
        default=Decimal("0"),
    )

    is_archived: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )

    def to_dto(self) -> FarmerView:
        return FarmerView(
            id=self.id,
            business_id=self.business_id,
            farmer_code=self.farmer_code,
            name=self.name,
            phone=self.phone,
            village=self.village,
            opening_balance=self.opening_balance,
            is_archived=self.is_archived,
        )

    def __repr__(self) -> str:
        return f"<Farmer {self.farmer_code}: {self.name}>"


class Buyer(TenantScoped, TrackedBase):
    """
    Trader who bids on lots.

    Guarantees:
        - buyer_code is unique within the business.
    """

    __tablename__ = "buyers"

    __table_args__ = (
        UniqueConstraint("business_id", "buyer_code", name="uq_buyer_code"),
        Index("idx_buyer_name", "business_id", "name"),
    )

    buyer_code: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    phone: Mapped[str | None] = mapped_column(
        String(20),
        nullable=True,
    )

    # Balance carried in from before the ledger started (owed by the buyer)
    opening_balance: Mapped[Decimal] = mapped_column(
        nullable=False,
        default=Decimal("0"),
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
    )

    def to_dto(self) -> BuyerView:
        return BuyerView(
            id=self.id,
            business_id=self.business_id,
            buyer_code=self.buyer_code,
            name=self.name,
            phone=self.phone,
            opening_balance=self.opening_balance,
            is_active=self.is_active,
        )

    def __repr__(self) -> str:
        return f"<Buyer {self.buyer_code}: {self.name}>"
