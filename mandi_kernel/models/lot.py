"""
Module: mandi_kernel.models.lot
Responsibility: ORM persistence for lots (a farmer's consignment of bags)
    and the bids that reserve bags from them.
Architecture position: Kernel > Models.  May import from db/base.py only.
    MUST NOT import from services/, selectors/, or outer layers.

Invariants enforced:
    - Bag conservation: 0 <= remaining_bags <= ceiling, where ceiling is
      actual_number_of_bags when set, else number_of_bags.  Checked by the
      services before flush and by a CHECK constraint as a backstop.
    - version is SQLAlchemy's version_id_col: every UPDATE carries
      ``WHERE version = <loaded>``; a concurrent committed write makes the
      flush raise StaleDataError (surfaced as OptimisticLockError).
    - Lots are never hard-deleted.  is_returned is terminal.

Failure modes:
    - IntegrityError on a duplicate lot_code within a business.
    - IntegrityError (CHECK) if remaining_bags is flushed negative.
    - StaleDataError on a lost update race.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from mandi_kernel.db.base import TenantScoped, TrackedBase
from mandi_kernel.domain.dtos import BidView, LotView


class Lot(TenantScoped, TrackedBase):
    """
    One farmer's consignment of a crop, tracked by bag count.

    Contract:
        Bags move between ``remaining_bags`` and the lot's bids and
        transactions.  Only the lot and bid services write the bag columns,
        always under a row lock.
    """

    __tablename__ = "lots"

    __table_args__ = (
        UniqueConstraint("business_id", "lot_code", name="uq_lot_code"),
        Index("idx_lot_farmer", "business_id", "farmer_id"),
        Index("idx_lot_date_crop", "business_id", "lot_date", "crop"),
        CheckConstraint("remaining_bags >= 0", name="ck_lot_remaining_non_negative"),
        CheckConstraint("number_of_bags >= 0", name="ck_lot_bags_non_negative"),
    )

    # Human-readable code, e.g. POT2024011503
    lot_code: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
    )

    # Per (business, crop, date)
    serial_number: Mapped[int] = mapped_column(
        nullable=False,
    )

    farmer_id: Mapped[UUID] = mapped_column(
        ForeignKey("farmers.id"),
        nullable=False,
    )

    lot_date: Mapped[date] = mapped_column(
        nullable=False,
    )

    crop: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )

    variety: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )

    size: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )

    bag_marka: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )

    vehicle_number: Mapped[str | None] = mapped_column(
        String(30),
        nullable=True,
    )

    # Bag inventory
    number_of_bags: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    actual_number_of_bags: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
    )

    remaining_bags: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    # Freight per original bag
    vehicle_bhada_rate: Mapped[Decimal | None] = mapped_column(
        nullable=True,
    )

    # Estimated from sample bag weights at stock entry
    initial_total_weight: Mapped[Decimal | None] = mapped_column(
        nullable=True,
    )

    is_returned: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )

    version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    __mapper_args__ = {"version_id_col": version}

    @property
    def ceiling(self) -> int:
        """Bag count bids are allocated against."""
        if self.actual_number_of_bags is not None:
            return self.actual_number_of_bags
        return self.number_of_bags

    @property
    def sold_bags(self) -> int:
        return self.ceiling - self.remaining_bags

    def to_dto(self) -> LotView:
        return LotView(
            id=self.id,
            business_id=self.business_id,
            lot_code=self.lot_code,
            serial_number=self.serial_number,
            farmer_id=self.farmer_id,
            lot_date=self.lot_date,
            crop=self.crop,
            variety=self.variety,
            size=self.size,
            bag_marka=self.bag_marka,
            vehicle_number=self.vehicle_number,
            number_of_bags=self.number_of_bags,
            actual_number_of_bags=self.actual_number_of_bags,
            remaining_bags=self.remaining_bags,
            vehicle_bhada_rate=self.vehicle_bhada_rate,
            initial_total_weight=self.initial_total_weight,
            is_returned=self.is_returned,
            version=self.version,
        )

    def __repr__(self) -> str:
        return (
            f"<Lot {self.lot_code}: {self.remaining_bags}/{self.ceiling} bags"
            f"{' returned' if self.is_returned else ''}>"
        )


class Bid(TenantScoped, TrackedBase):
    """
    A buyer's reservation of bags from a lot at a price.

    Contract:
        The bid's bags are already subtracted from the lot's remaining_bags.
        It is pending until a transaction references it.
    """

    __tablename__ = "bids"

    __table_args__ = (
        Index("idx_bid_lot", "business_id", "lot_id"),
        Index("idx_bid_buyer", "business_id", "buyer_id"),
        CheckConstraint("number_of_bags > 0", name="ck_bid_bags_positive"),
    )

    lot_id: Mapped[UUID] = mapped_column(
        ForeignKey("lots.id"),
        nullable=False,
    )

    buyer_id: Mapped[UUID] = mapped_column(
        ForeignKey("buyers.id"),
        nullable=False,
    )

    bid_date: Mapped[date] = mapped_column(
        nullable=False,
    )

    price_per_kg: Mapped[Decimal] = mapped_column(
        nullable=False,
    )

    number_of_bags: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    grade: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="Large",
    )

    def to_dto(self) -> BidView:
        return BidView(
            id=self.id,
            business_id=self.business_id,
            lot_id=self.lot_id,
            buyer_id=self.buyer_id,
            bid_date=self.bid_date,
            price_per_kg=self.price_per_kg,
            number_of_bags=self.number_of_bags,
            grade=self.grade,
        )

    def __repr__(self) -> str:
        return f"<Bid {self.id}: {self.number_of_bags} bags @ {self.price_per_kg}>"
