"""
Module: mandi_kernel.models.transaction
Responsibility: ORM persistence for settled sales.  A SaleTransaction holds
    the full snapshot produced by the settlement calculator: weights, the
    rates in force at settlement time, every charge component and both
    totals.  Rates are never re-derived later.
Architecture position: Kernel > Models.  May import from db/base.py only.
    MUST NOT import from services/, selectors/, or outer layers.

Invariants enforced:
    - One settlement per bid: at most one non-reversed transaction per
      bid_id (partial unique index uq_transaction_active_bid).
    - Reversal is terminal: is_reversed only moves False -> True.  Reversed
      rows stay in place for audit and are ignored by every aggregate.

Failure modes:
    - IntegrityError on a second active transaction for the same bid (the
      service rejects this earlier with DuplicateSettlementError).
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String, UniqueConstraint, text
from sqlalchemy.orm import Mapped, mapped_column

from mandi_kernel.db.base import TenantScoped, TrackedBase
from mandi_kernel.db.types import Percent
from mandi_kernel.domain.dtos import TransactionView


class SaleTransaction(TenantScoped, TrackedBase):
    """
    A settled bid.

    Guarantees:
        - total_payable_to_farmer = gross_amount - farmer deductions.
        - total_receivable_from_buyer = gross_amount + buyer additions.
        - Both hold exactly for the stored rounded components.
    """

    __tablename__ = "transactions"

    __table_args__ = (
        UniqueConstraint(
            "business_id", "transaction_code", name="uq_transaction_code"
        ),
        Index(
            "uq_transaction_active_bid",
            "bid_id",
            unique=True,
            postgresql_where=text("is_reversed = false"),
            sqlite_where=text("is_reversed = 0"),
        ),
        Index("idx_transaction_farmer", "business_id", "farmer_id"),
        Index("idx_transaction_buyer", "business_id", "buyer_id"),
        Index("idx_transaction_date", "business_id", "transaction_date"),
    )

    # TX<YYYYMMDD><n>
    transaction_code: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
    )

    # <n> of the code, orders same-day transactions
    daily_number: Mapped[int] = mapped_column(
        nullable=False,
    )

    bid_id: Mapped[UUID] = mapped_column(ForeignKey("bids.id"), nullable=False)
    lot_id: Mapped[UUID] = mapped_column(ForeignKey("lots.id"), nullable=False)
    buyer_id: Mapped[UUID] = mapped_column(ForeignKey("buyers.id"), nullable=False)
    farmer_id: Mapped[UUID] = mapped_column(ForeignKey("farmers.id"), nullable=False)

    transaction_date: Mapped[date] = mapped_column(nullable=False)

    # =========================================================================
    # Weights and price
    # =========================================================================

    number_of_bags: Mapped[int] = mapped_column(Integer, nullable=False)
    total_weight: Mapped[Decimal] = mapped_column(nullable=False)
    net_weight: Mapped[Decimal] = mapped_column(nullable=False)
    price_per_kg: Mapped[Decimal] = mapped_column(nullable=False)
    gross_amount: Mapped[Decimal] = mapped_column(nullable=False)

    # =========================================================================
    # Rates snapshotted at settlement
    # =========================================================================

    hammali_farmer_per_bag: Mapped[Decimal] = mapped_column(nullable=False)
    hammali_buyer_per_bag: Mapped[Decimal] = mapped_column(nullable=False)
    grading_farmer_per_bag: Mapped[Decimal] = mapped_column(nullable=False)
    grading_buyer_per_bag: Mapped[Decimal] = mapped_column(nullable=False)
    aadhat_farmer_percent: Mapped[Percent] = mapped_column(nullable=False)
    aadhat_buyer_percent: Mapped[Percent] = mapped_column(nullable=False)
    mandi_farmer_percent: Mapped[Percent] = mapped_column(nullable=False)
    mandi_buyer_percent: Mapped[Percent] = mapped_column(nullable=False)

    # "split" or "unified"; charged_to is set for unified only
    charge_model: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        default="split",
    )
    charged_to: Mapped[str | None] = mapped_column(String(10), nullable=True)

    # Grading toggles as chosen at settlement, independent of the rate
    apply_farmer_grading: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    apply_buyer_grading: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # =========================================================================
    # Charges
    # =========================================================================

    hammali_farmer: Mapped[Decimal] = mapped_column(nullable=False)
    grading_farmer: Mapped[Decimal] = mapped_column(nullable=False)
    aadhat_farmer: Mapped[Decimal] = mapped_column(nullable=False)
    mandi_farmer: Mapped[Decimal] = mapped_column(nullable=False)
    freight_farmer: Mapped[Decimal] = mapped_column(nullable=False)

    hammali_buyer: Mapped[Decimal] = mapped_column(nullable=False)
    grading_buyer: Mapped[Decimal] = mapped_column(nullable=False)
    aadhat_buyer: Mapped[Decimal] = mapped_column(nullable=False)
    mandi_buyer: Mapped[Decimal] = mapped_column(nullable=False)

    total_payable_to_farmer: Mapped[Decimal] = mapped_column(nullable=False)
    total_receivable_from_buyer: Mapped[Decimal] = mapped_column(nullable=False)

    # =========================================================================
    # Reversal
    # =========================================================================

    is_reversed: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )

    reversed_at: Mapped[datetime | None] = mapped_column(nullable=True)

    def to_dto(self) -> TransactionView:
        return TransactionView(
            id=self.id,
            business_id=self.business_id,
            transaction_code=self.transaction_code,
            bid_id=self.bid_id,
            lot_id=self.lot_id,
            buyer_id=self.buyer_id,
            farmer_id=self.farmer_id,
            transaction_date=self.transaction_date,
            number_of_bags=self.number_of_bags,
            total_weight=self.total_weight,
            net_weight=self.net_weight,
            price_per_kg=self.price_per_kg,
            gross_amount=self.gross_amount,
            hammali_farmer_per_bag=self.hammali_farmer_per_bag,
            hammali_buyer_per_bag=self.hammali_buyer_per_bag,
            grading_farmer_per_bag=self.grading_farmer_per_bag,
            grading_buyer_per_bag=self.grading_buyer_per_bag,
            aadhat_farmer_percent=self.aadhat_farmer_percent,
            aadhat_buyer_percent=self.aadhat_buyer_percent,
            mandi_farmer_percent=self.mandi_farmer_percent,
            mandi_buyer_percent=self.mandi_buyer_percent,
            charge_model=self.charge_model,
            charged_to=self.charged_to,
            apply_farmer_grading=self.apply_farmer_grading,
            apply_buyer_grading=self.apply_buyer_grading,
            hammali_farmer=self.hammali_farmer,
            grading_farmer=self.grading_farmer,
            aadhat_farmer=self.aadhat_farmer,
            mandi_farmer=self.mandi_farmer,
            freight_farmer=self.freight_farmer,
            hammali_buyer=self.hammali_buyer,
            grading_buyer=self.grading_buyer,
            aadhat_buyer=self.aadhat_buyer,
            mandi_buyer=self.mandi_buyer,
            total_payable_to_farmer=self.total_payable_to_farmer,
            total_receivable_from_buyer=self.total_receivable_from_buyer,
            is_reversed=self.is_reversed,
            reversed_at=self.reversed_at,
        )

    def __repr__(self) -> str:
        return (
            f"<SaleTransaction {self.transaction_code}: "
            f"{self.total_payable_to_farmer}"
            f"{' reversed' if self.is_reversed else ''}>"
        )
