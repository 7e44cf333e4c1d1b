"""
Module: mandi_kernel.selectors.dues_selector
Responsibility: Per-farmer and per-buyer dues, computed on every read from
    opening balances, active transactions and active cash entries.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Dues are never stored.
    - farmer due = opening + sum(total_payable_to_farmer, active)
                   - sum(outward cash for the farmer, active)
    - buyer receivable due = sum(total_receivable_from_buyer, active)
                             - sum(inward cash from the buyer, active)
      overall due = opening + receivable due
    - A reversed transaction or cash entry drops out of every sum.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, or_, select

from mandi_kernel.domain.dtos import BuyerDues, CashCategory, FarmerDues
from mandi_kernel.models.cash import CashEntry
from mandi_kernel.models.lot import Bid
from mandi_kernel.models.party import Buyer, Farmer
from mandi_kernel.models.transaction import SaleTransaction
from mandi_kernel.selectors.base import BaseSelector, money


class DuesSelector(BaseSelector[Farmer]):
    """
    Dues read model.

    Each listing runs one query for the parties and one grouped aggregate
    per source (transactions, cash), merged by party id.
    """

    # =========================================================================
    # Farmers
    # =========================================================================

    def farmers_with_dues(
        self,
        business_id: str,
        search: str | None = None,
        *,
        include_archived: bool = False,
    ) -> list[FarmerDues]:
        query = select(Farmer).where(Farmer.business_id == business_id)
        if not include_archived:
            query = query.where(Farmer.is_archived.is_(False))
        if search:
            pattern = f"%{search.strip()}%"
            query = query.where(
                or_(
                    Farmer.name.ilike(pattern),
                    Farmer.farmer_code.ilike(pattern),
                    Farmer.phone.ilike(pattern),
                    Farmer.village.ilike(pattern),
                )
            )
        farmers = list(self.session.execute(query.order_by(Farmer.name)).scalars())
        return self._farmer_dues(business_id, farmers)

    def farmer_dues(self, business_id: str, farmer_id: UUID) -> FarmerDues:
        farmer = self._get_scoped(Farmer, business_id, farmer_id)
        return self._farmer_dues(business_id, [farmer])[0]

    def _farmer_dues(self, business_id: str, farmers: list[Farmer]) -> list[FarmerDues]:
        if not farmers:
            return []
        ids = [f.id for f in farmers]

        sales = {
            row.farmer_id: row
            for row in self.session.execute(
                select(
                    SaleTransaction.farmer_id,
                    func.sum(SaleTransaction.total_payable_to_farmer).label("payable"),
                    func.count(SaleTransaction.id).label("sales_count"),
                )
                .where(
                    SaleTransaction.business_id == business_id,
                    SaleTransaction.is_reversed.is_(False),
                    SaleTransaction.farmer_id.in_(ids),
                )
                .group_by(SaleTransaction.farmer_id)
            )
        }
        paid = self._cash_by_party(
            business_id, CashEntry.farmer_id, ids, CashCategory.OUTWARD
        )

        result = []
        for farmer in farmers:
            row = sales.get(farmer.id)
            payable = money(row.payable if row else None)
            total_paid = paid.get(farmer.id, money(0))
            result.append(
                FarmerDues(
                    farmer_id=farmer.id,
                    farmer_code=farmer.farmer_code,
                    name=farmer.name,
                    opening_balance=money(farmer.opening_balance),
                    total_payable=payable,
                    total_paid=total_paid,
                    due=money(farmer.opening_balance) + payable - total_paid,
                    sales_count=row.sales_count if row else 0,
                )
            )
        return result

    # =========================================================================
    # Buyers
    # =========================================================================

    def buyers_with_dues(
        self,
        business_id: str,
        search: str | None = None,
        *,
        include_inactive: bool = True,
    ) -> list[BuyerDues]:
        query = select(Buyer).where(Buyer.business_id == business_id)
        if not include_inactive:
            query = query.where(Buyer.is_active.is_(True))
        if search:
            pattern = f"%{search.strip()}%"
            query = query.where(
                or_(
                    Buyer.name.ilike(pattern),
                    Buyer.buyer_code.ilike(pattern),
                    Buyer.phone.ilike(pattern),
                )
            )
        buyers = list(self.session.execute(query.order_by(Buyer.name)).scalars())
        return self._buyer_dues(business_id, buyers)

    def buyer_dues(self, business_id: str, buyer_id: UUID) -> BuyerDues:
        buyer = self._get_scoped(Buyer, business_id, buyer_id)
        return self._buyer_dues(business_id, [buyer])[0]

    def _buyer_dues(self, business_id: str, buyers: list[Buyer]) -> list[BuyerDues]:
        if not buyers:
            return []
        ids = [b.id for b in buyers]

        receivable = {
            buyer_id: money(total)
            for buyer_id, total in self.session.execute(
                select(
                    SaleTransaction.buyer_id,
                    func.sum(SaleTransaction.total_receivable_from_buyer),
                )
                .where(
                    SaleTransaction.business_id == business_id,
                    SaleTransaction.is_reversed.is_(False),
                    SaleTransaction.buyer_id.in_(ids),
                )
                .group_by(SaleTransaction.buyer_id)
            )
        }
        received = self._cash_by_party(
            business_id, CashEntry.buyer_id, ids, CashCategory.INWARD
        )

        bid_dates: dict[UUID, list] = {}
        for buyer_id, bid_date in self.session.execute(
            select(Bid.buyer_id, Bid.bid_date)
            .where(Bid.business_id == business_id, Bid.buyer_id.in_(ids))
            .distinct()
            .order_by(Bid.buyer_id, Bid.bid_date)
        ):
            bid_dates.setdefault(buyer_id, []).append(bid_date)

        result = []
        for buyer in buyers:
            total_receivable = receivable.get(buyer.id, money(0))
            total_received = received.get(buyer.id, money(0))
            receivable_due = total_receivable - total_received
            result.append(
                BuyerDues(
                    buyer_id=buyer.id,
                    buyer_code=buyer.buyer_code,
                    name=buyer.name,
                    opening_balance=money(buyer.opening_balance),
                    total_receivable=total_receivable,
                    total_received=total_received,
                    receivable_due=receivable_due,
                    overall_due=money(buyer.opening_balance) + receivable_due,
                    bid_dates=tuple(bid_dates.get(buyer.id, ())),
                )
            )
        return result

    # =========================================================================
    # Helpers
    # =========================================================================

    def _cash_by_party(
        self, business_id: str, party_column, ids: list[UUID], category: CashCategory
    ) -> dict[UUID, Decimal]:
        return {
            party_id: money(total)
            for party_id, total in self.session.execute(
                select(party_column, func.sum(CashEntry.amount))
                .where(
                    CashEntry.business_id == business_id,
                    CashEntry.category == category.value,
                    CashEntry.is_reversed.is_(False),
                    party_column.in_(ids),
                )
                .group_by(party_column)
            )
        }
