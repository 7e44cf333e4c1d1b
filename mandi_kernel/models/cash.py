"""
Module: mandi_kernel.models.cash
Responsibility: ORM persistence for the cash ledger: cash entries (inward,
    outward and transfer movements), bank accounts and the per-business
    cash settings row.
Architecture position: Kernel > Models.  May import from db/base.py only.
    MUST NOT import from services/, selectors/, or outer layers.

Invariants enforced:
    - amount > 0 (CHECK).  Direction is carried by category/entry_type,
      never by sign.
    - Reversal is terminal: is_reversed only moves False -> True and
      reversed_at is set in the same write.
    - No stored balances.  Cash-in-hand and bank balances are derived by
      CashSelector.

Failure modes:
    - IntegrityError on a duplicate cash_flow_code within a business.
    - IntegrityError (FK) when deleting a bank account still referenced by
      an entry (the service rejects this earlier with InvalidStateError).
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from mandi_kernel.db.base import TenantScoped, TrackedBase
from mandi_kernel.domain.dtos import BankAccountView, CashEntryView


class BankAccount(TenantScoped, TrackedBase):
    """
    A bank account the business moves money through.

    Purely additive: deleting an account never adjusts historical entries,
    so deletion is only allowed while no entry references it.
    """

    __tablename__ = "bank_accounts"

    __table_args__ = (
        UniqueConstraint("business_id", "name", name="uq_bank_account_name"),
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    account_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default="Current",
    )

    opening_balance: Mapped[Decimal] = mapped_column(
        nullable=False,
        default=Decimal("0"),
    )

    def to_dto(self) -> BankAccountView:
        return BankAccountView(
            id=self.id,
            business_id=self.business_id,
            name=self.name,
            account_type=self.account_type,
            opening_balance=self.opening_balance,
        )

    def __repr__(self) -> str:
        return f"<BankAccount {self.name} ({self.account_type})>"


class CashEntry(TenantScoped, TrackedBase):
    """
    One cash movement.

    Contract:
        category/entry_type pairs: inward/cash_in, outward/cash_out,
        transfer/cash_to_account, transfer/account_to_cash.  Transfers
        always name a bank account.
    """

    __tablename__ = "cash_entries"

    __table_args__ = (
        UniqueConstraint("business_id", "cash_flow_code", name="uq_cash_flow_code"),
        Index("idx_cash_entry_date", "business_id", "entry_date"),
        Index("idx_cash_entry_farmer", "business_id", "farmer_id"),
        Index("idx_cash_entry_buyer", "business_id", "buyer_id"),
        Index("idx_cash_entry_bank_account", "bank_account_id"),
        CheckConstraint("amount > 0", name="ck_cash_entry_amount_positive"),
    )

    # CF<YYYYMMDD><n>
    cash_flow_code: Mapped[str] = mapped_column(String(30), nullable=False)

    daily_number: Mapped[int] = mapped_column(nullable=False)

    category: Mapped[str] = mapped_column(String(20), nullable=False)
    entry_type: Mapped[str] = mapped_column(String(20), nullable=False)
    outflow_type: Mapped[str | None] = mapped_column(String(30), nullable=True)

    farmer_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("farmers.id"),
        nullable=True,
    )
    buyer_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("buyers.id"),
        nullable=True,
    )
    bank_account_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("bank_accounts.id"),
        nullable=True,
    )
    transaction_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("transactions.id"),
        nullable=True,
    )

    amount: Mapped[Decimal] = mapped_column(nullable=False)

    payment_mode: Mapped[str] = mapped_column(String(10), nullable=False)

    cheque_number: Mapped[str | None] = mapped_column(String(30), nullable=True)
    cheque_date: Mapped[date | None] = mapped_column(nullable=True)
    bank_name: Mapped[str | None] = mapped_column(String(100), nullable=True)

    entry_date: Mapped[date] = mapped_column(nullable=False)

    party_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    notes: Mapped[str | None] = mapped_column(String(2000), nullable=True)

    is_reversed: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )

    reversed_at: Mapped[datetime | None] = mapped_column(nullable=True)

    reversal_reason: Mapped[str | None] = mapped_column(String(255), nullable=True)

    def to_dto(self) -> CashEntryView:
        return CashEntryView(
            id=self.id,
            business_id=self.business_id,
            cash_flow_code=self.cash_flow_code,
            category=self.category,
            entry_type=self.entry_type,
            outflow_type=self.outflow_type,
            farmer_id=self.farmer_id,
            buyer_id=self.buyer_id,
            bank_account_id=self.bank_account_id,
            transaction_id=self.transaction_id,
            amount=self.amount,
            payment_mode=self.payment_mode,
            cheque_number=self.cheque_number,
            cheque_date=self.cheque_date,
            bank_name=self.bank_name,
            entry_date=self.entry_date,
            party_name=self.party_name,
            notes=self.notes,
            is_reversed=self.is_reversed,
            reversed_at=self.reversed_at,
            reversal_reason=self.reversal_reason,
        )

    def __repr__(self) -> str:
        return (
            f"<CashEntry {self.cash_flow_code}: {self.category} {self.amount}"
            f"{' reversed' if self.is_reversed else ''}>"
        )


class CashSettings(TenantScoped, TrackedBase):
    """One row per business: the cash-in-hand opening balance."""

    __tablename__ = "cash_settings"

    __table_args__ = (
        UniqueConstraint("business_id", name="uq_cash_settings_business"),
    )

    cash_in_hand_opening: Mapped[Decimal] = mapped_column(
        nullable=False,
        default=Decimal("0"),
    )

    def __repr__(self) -> str:
        return f"<CashSettings {self.business_id}: {self.cash_in_hand_opening}>"
