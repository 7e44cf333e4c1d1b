"""
Module: mandi_kernel.selectors.ledger_selector
Responsibility: Read-only transaction queries: transaction lists, party
    statements (farmer / buyer ledgers), FIFO payment allocation of cash
    over transactions, and the business-wide charge aggregates.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Nothing here is stored.  paid_amount and payment status are derived
      on every read from active transactions and active cash entries.
    - Reversed transactions and reversed cash entries never count toward an
      allocation or an aggregate.  Statements still list them.

Failure modes:
    - NotFoundError for a farmer or buyer outside the business.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select

from mandi_kernel.domain.dtos import (
    CashCategory,
    ChargeAggregates,
    OutflowType,
    PartyLedger,
    PaymentAllocation,
    PaymentStatus,
    TransactionView,
)
from mandi_kernel.models.cash import CashEntry
from mandi_kernel.models.party import Buyer, Farmer
from mandi_kernel.models.transaction import SaleTransaction
from mandi_kernel.selectors.base import BaseSelector, money


class LedgerSelector(BaseSelector[SaleTransaction]):
    """
    Transaction ledger queries.

    Contract:
        Transactions come back ordered by transaction_date, then by their
        number within the day.
    """

    _ORDER = (SaleTransaction.transaction_date, SaleTransaction.daily_number)

    def get_transaction(self, business_id: str, transaction_id: UUID) -> TransactionView:
        return self._get_scoped(SaleTransaction, business_id, transaction_id).to_dto()

    def list_transactions(
        self,
        business_id: str,
        farmer_id: UUID | None = None,
        buyer_id: UUID | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
        *,
        include_reversed: bool = True,
    ) -> list[TransactionView]:
        query = select(SaleTransaction).where(SaleTransaction.business_id == business_id)
        if farmer_id is not None:
            query = query.where(SaleTransaction.farmer_id == farmer_id)
        if buyer_id is not None:
            query = query.where(SaleTransaction.buyer_id == buyer_id)
        if date_from is not None:
            query = query.where(SaleTransaction.transaction_date >= date_from)
        if date_to is not None:
            query = query.where(SaleTransaction.transaction_date <= date_to)
        if not include_reversed:
            query = query.where(SaleTransaction.is_reversed.is_(False))
        query = query.order_by(*self._ORDER)
        return [txn.to_dto() for txn in self.session.execute(query).scalars()]

    # =========================================================================
    # Party statements
    # =========================================================================

    def farmer_ledger(
        self,
        business_id: str,
        farmer_id: UUID,
        date_from: date | None = None,
        date_to: date | None = None,
    ) -> PartyLedger:
        farmer = self._get_scoped(Farmer, business_id, farmer_id)
        return PartyLedger(
            party_id=farmer.id,
            party_code=farmer.farmer_code,
            name=farmer.name,
            date_from=date_from,
            date_to=date_to,
            transactions=tuple(
                self.list_transactions(
                    business_id, farmer_id=farmer.id, date_from=date_from, date_to=date_to
                )
            ),
            cash_entries=self._cash_window(
                business_id, CashEntry.farmer_id == farmer.id, date_from, date_to
            ),
        )

    def buyer_ledger(
        self,
        business_id: str,
        buyer_id: UUID,
        date_from: date | None = None,
        date_to: date | None = None,
    ) -> PartyLedger:
        buyer = self._get_scoped(Buyer, business_id, buyer_id)
        return PartyLedger(
            party_id=buyer.id,
            party_code=buyer.buyer_code,
            name=buyer.name,
            date_from=date_from,
            date_to=date_to,
            transactions=tuple(
                self.list_transactions(
                    business_id, buyer_id=buyer.id, date_from=date_from, date_to=date_to
                )
            ),
            cash_entries=self._cash_window(
                business_id, CashEntry.buyer_id == buyer.id, date_from, date_to
            ),
        )

    def _cash_window(self, business_id, party_clause, date_from, date_to) -> tuple:
        query = select(CashEntry).where(CashEntry.business_id == business_id, party_clause)
        if date_from is not None:
            query = query.where(CashEntry.entry_date >= date_from)
        if date_to is not None:
            query = query.where(CashEntry.entry_date <= date_to)
        query = query.order_by(CashEntry.entry_date, CashEntry.daily_number)
        return tuple(entry.to_dto() for entry in self.session.execute(query).scalars())

    # =========================================================================
    # Payment allocation
    # =========================================================================

    def buyer_payment_allocation(
        self, business_id: str, buyer_id: UUID
    ) -> list[PaymentAllocation]:
        """Apply the buyer's active inward cash to their transactions, oldest first."""
        buyer = self._get_scoped(Buyer, business_id, buyer_id)
        pool = self._active_cash_total(
            business_id, CashEntry.buyer_id == buyer.id, CashCategory.INWARD
        )
        return self._allocate(
            business_id,
            SaleTransaction.buyer_id == buyer.id,
            SaleTransaction.total_receivable_from_buyer,
            pool,
        )

    def farmer_payment_allocation(
        self, business_id: str, farmer_id: UUID
    ) -> list[PaymentAllocation]:
        """Apply active outward payments to the farmer's transactions, oldest first."""
        farmer = self._get_scoped(Farmer, business_id, farmer_id)
        pool = self._active_cash_total(
            business_id, CashEntry.farmer_id == farmer.id, CashCategory.OUTWARD
        )
        return self._allocate(
            business_id,
            SaleTransaction.farmer_id == farmer.id,
            SaleTransaction.total_payable_to_farmer,
            pool,
        )

    def _active_cash_total(
        self, business_id: str, party_clause, category: CashCategory
    ) -> Decimal:
        total = self.session.execute(
            select(func.sum(CashEntry.amount)).where(
                CashEntry.business_id == business_id,
                CashEntry.category == category.value,
                CashEntry.is_reversed.is_(False),
                party_clause,
            )
        ).scalar()
        return money(total)

    def _allocate(
        self, business_id: str, party_clause, amount_column, pool: Decimal
    ) -> list[PaymentAllocation]:
        rows = self.session.execute(
            select(
                SaleTransaction.id,
                SaleTransaction.transaction_code,
                SaleTransaction.transaction_date,
                amount_column.label("amount"),
            )
            .where(
                SaleTransaction.business_id == business_id,
                SaleTransaction.is_reversed.is_(False),
                party_clause,
            )
            .order_by(*self._ORDER)
        ).all()

        allocations = []
        remaining = pool
        for row in rows:
            amount = money(row.amount)
            paid = min(remaining, amount) if remaining > 0 else money(0)
            remaining -= paid
            if paid >= amount:
                status = PaymentStatus.PAID
            elif paid > 0:
                status = PaymentStatus.PARTIAL
            else:
                status = PaymentStatus.DUE
            allocations.append(
                PaymentAllocation(
                    transaction_id=row.id,
                    transaction_code=row.transaction_code,
                    transaction_date=row.transaction_date,
                    amount=amount,
                    paid_amount=paid,
                    status=status,
                )
            )
        return allocations

    # =========================================================================
    # Charge aggregates
    # =========================================================================

    def charge_aggregates(self, business_id: str) -> ChargeAggregates:
        """
        Charges collected on active transactions against what has been paid
        out for them.
        """
        totals = self.session.execute(
            select(
                func.sum(SaleTransaction.hammali_farmer).label("hammali"),
                func.sum(SaleTransaction.mandi_buyer).label("mandi"),
                func.sum(SaleTransaction.aadhat_buyer).label("aadhat"),
            ).where(
                SaleTransaction.business_id == business_id,
                SaleTransaction.is_reversed.is_(False),
            )
        ).one()

        paid = dict(
            self.session.execute(
                select(CashEntry.outflow_type, func.sum(CashEntry.amount))
                .where(
                    CashEntry.business_id == business_id,
                    CashEntry.category == CashCategory.OUTWARD.value,
                    CashEntry.is_reversed.is_(False),
                    CashEntry.outflow_type.in_(
                        [
                            OutflowType.HAMMALI.value,
                            OutflowType.MANDI_COMMISSION.value,
                            OutflowType.EXTRA_CHARGES.value,
                        ]
                    ),
                )
                .group_by(CashEntry.outflow_type)
            ).all()
        )

        return ChargeAggregates(
            total_hammali=money(totals.hammali),
            total_mandi_commission=money(totals.mandi),
            total_aadhat_commission=money(totals.aadhat),
            hammali_paid=money(paid.get(OutflowType.HAMMALI.value)),
            mandi_commission_paid=money(paid.get(OutflowType.MANDI_COMMISSION.value)),
            extra_charges_paid=money(paid.get(OutflowType.EXTRA_CHARGES.value)),
        )
