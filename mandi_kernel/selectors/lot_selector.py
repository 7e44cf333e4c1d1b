"""
Module: mandi_kernel.selectors.lot_selector
Responsibility: Read-only queries over lots and bids: the stock register,
    single-lot lookup, bid lists and the per-lot grouping of pending bids
    with settled transactions.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - A bid is pending while no transaction references it.  Once settled
      (even if the transaction was later reversed) it appears only through
      its transactions.
"""

from datetime import date
from uuid import UUID

from sqlalchemy import exists, or_, select

from mandi_kernel.domain.dtos import BidView, LotGroup, LotView
from mandi_kernel.models.lot import Bid, Lot
from mandi_kernel.models.party import Farmer
from mandi_kernel.models.transaction import SaleTransaction
from mandi_kernel.selectors.base import BaseSelector


class LotSelector(BaseSelector[Lot]):
    """Stock register and bid queries."""

    def get_lot(self, business_id: str, lot_id: UUID) -> LotView:
        return self._get_scoped(Lot, business_id, lot_id).to_dto()

    def list_lots(
        self,
        business_id: str,
        crop: str | None = None,
        lot_date: date | None = None,
        search: str | None = None,
        *,
        include_returned: bool = True,
    ) -> list[LotView]:
        """
        Lots in the business, ordered by date then serial number.

        ``search`` matches lot code, vehicle number, bag marka, or the
        farmer's name or code (case-insensitive substring).
        """
        query = select(Lot).where(Lot.business_id == business_id)

        if crop is not None:
            query = query.where(Lot.crop == crop)
        if lot_date is not None:
            query = query.where(Lot.lot_date == lot_date)
        if not include_returned:
            query = query.where(Lot.is_returned.is_(False))
        if search:
            pattern = f"%{search.strip()}%"
            query = query.join(Farmer, Lot.farmer_id == Farmer.id).where(
                or_(
                    Lot.lot_code.ilike(pattern),
                    Lot.vehicle_number.ilike(pattern),
                    Lot.bag_marka.ilike(pattern),
                    Farmer.name.ilike(pattern),
                    Farmer.farmer_code.ilike(pattern),
                )
            )

        query = query.order_by(Lot.lot_date, Lot.crop, Lot.serial_number)
        return [lot.to_dto() for lot in self.session.execute(query).scalars()]

    def list_bids(
        self,
        business_id: str,
        lot_id: UUID | None = None,
        buyer_id: UUID | None = None,
        bid_date: date | None = None,
        *,
        pending_only: bool = False,
    ) -> list[BidView]:
        query = select(Bid).where(Bid.business_id == business_id)
        if lot_id is not None:
            query = query.where(Bid.lot_id == lot_id)
        if buyer_id is not None:
            query = query.where(Bid.buyer_id == buyer_id)
        if bid_date is not None:
            query = query.where(Bid.bid_date == bid_date)
        if pending_only:
            query = query.where(~exists().where(SaleTransaction.bid_id == Bid.id))
        query = query.order_by(Bid.bid_date, Bid.created_at)
        return [bid.to_dto() for bid in self.session.execute(query).scalars()]

    def lot_groups(
        self, business_id: str, lot_date: date | None = None
    ) -> list[LotGroup]:
        """
        Lots that have at least one bid, each with its pending bids and
        every transaction settled from it (reversed ones included).
        """
        lot_query = (
            select(Lot)
            .where(
                Lot.business_id == business_id,
                exists().where(Bid.lot_id == Lot.id),
            )
            .order_by(Lot.lot_date, Lot.crop, Lot.serial_number)
        )
        if lot_date is not None:
            lot_query = lot_query.where(Lot.lot_date == lot_date)
        lots = list(self.session.execute(lot_query).scalars())
        if not lots:
            return []

        lot_ids = [lot.id for lot in lots]
        pending: dict[UUID, list[BidView]] = {}
        for bid in self.session.execute(
            select(Bid)
            .where(
                Bid.business_id == business_id,
                Bid.lot_id.in_(lot_ids),
                ~exists().where(SaleTransaction.bid_id == Bid.id),
            )
            .order_by(Bid.bid_date, Bid.created_at)
        ).scalars():
            pending.setdefault(bid.lot_id, []).append(bid.to_dto())

        settled: dict[UUID, list] = {}
        for txn in self.session.execute(
            select(SaleTransaction)
            .where(
                SaleTransaction.business_id == business_id,
                SaleTransaction.lot_id.in_(lot_ids),
            )
            .order_by(SaleTransaction.transaction_date, SaleTransaction.daily_number)
        ).scalars():
            settled.setdefault(txn.lot_id, []).append(txn.to_dto())

        return [
            LotGroup(
                lot=lot.to_dto(),
                pending_bids=tuple(pending.get(lot.id, ())),
                transactions=tuple(settled.get(lot.id, ())),
            )
            for lot in lots
        ]
