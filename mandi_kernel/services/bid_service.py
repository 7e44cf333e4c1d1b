"""
BidService -- the bid allocator.

Responsibility:
    Reserves bags from a lot for a buyer at a price, re-allocates on edit
    (bag delta) and releases on delete.  A bid stays pending until a
    transaction references it.

Architecture position:
    Kernel > Services.  Flush-only; the caller owns the transaction.
    Uses LotService's lock/reserve/release primitives so every bag move
    happens under the lot's row lock and version check.

Invariants enforced:
    - Bag conservation: remaining_bags moves by exactly the bid's bags on
      create, by (old - new) on edit and back by old on delete, and never
      leaves [0, ceiling].
    - A bid referenced by any transaction (settled, or released by a
      reversal) is frozen: no edit, no delete.
    - Stock is the only gate on new bids.  A returned lot that got bags
      back through a reversal is biddable again.

Failure modes:
    - ValidationError: bags <= 0, price <= 0, unknown grade.
    - InsufficientStockError: bags beyond remaining stock.
    - InvalidStateError: editing or deleting a bid with a transaction.
    - NotFoundError: lot, buyer or bid outside the caller's business.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import exists, select
from sqlalchemy.orm import Session

from mandi_kernel.domain.catalog import DEFAULT_CATALOG, Catalog
from mandi_kernel.domain.clock import Clock
from mandi_kernel.domain.dtos import BidView
from mandi_kernel.domain.validation import require_amount, require_positive_bags
from mandi_kernel.exceptions import InvalidStateError, ValidationError
from mandi_kernel.models.lot import Bid
from mandi_kernel.models.party import Buyer
from mandi_kernel.models.transaction import SaleTransaction
from mandi_kernel.services.base import BaseService
from mandi_kernel.services.lot_service import LotService


class BidService(BaseService[Bid]):
    """Bid allocation against lot stock."""

    log_name = "bid"

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        catalog: Catalog = DEFAULT_CATALOG,
    ):
        super().__init__(session, clock)
        self.catalog = catalog
        self._lots = LotService(session, self.clock, catalog)

    def create_bid(
        self,
        business_id: str,
        lot_id: UUID,
        buyer_id: UUID,
        price_per_kg: Decimal | int | str,
        number_of_bags: int,
        *,
        actor_id: UUID,
        grade: str | None = None,
        bid_date: date | None = None,
    ) -> BidView:
        """
        Reserve bags from a lot for a buyer.

        Postconditions:
            - lot.remaining_bags decreased by number_of_bags.
        """
        try:
            bags = require_positive_bags(number_of_bags)
            price = require_amount(price_per_kg, "price_per_kg")
            grade = self._grade(grade)
        except ValidationError as exc:
            raise self._rejected("bid_create_rejected", exc, lot_id=lot_id)

        buyer = self._get_scoped(Buyer, business_id, buyer_id)
        lot = self._lots.lock_lot(business_id, lot_id)
        self._lots.reserve_bags(lot, bags, event="bid_create_rejected")

        bid = Bid(
            business_id=business_id,
            lot_id=lot.id,
            buyer_id=buyer.id,
            bid_date=bid_date or self.clock.today(),
            price_per_kg=price,
            number_of_bags=bags,
            grade=grade,
            created_by_id=actor_id,
        )
        self.session.add(bid)
        self._flush("Lot", lot.id)

        self.logger.info(
            "bid_created",
            extra={
                "bid_id": str(bid.id),
                "lot_id": str(lot.id),
                "buyer_id": str(buyer.id),
                "number_of_bags": bags,
                "price_per_kg": price,
                "lot_remaining_bags": lot.remaining_bags,
            },
        )
        return bid.to_dto()

    def update_bid(
        self,
        business_id: str,
        bid_id: UUID,
        *,
        actor_id: UUID,
        number_of_bags: int | None = None,
        price_per_kg: Decimal | int | str | None = None,
        grade: str | None = None,
    ) -> BidView:
        """
        Edit a pending bid.  A bag change moves (old - new) back to the lot.
        """
        bid = self._get_scoped(Bid, business_id, bid_id)
        self._require_unsettled(bid, "bid_update_rejected")

        try:
            new_bags = (
                require_positive_bags(number_of_bags)
                if number_of_bags is not None
                else bid.number_of_bags
            )
            new_price = (
                require_amount(price_per_kg, "price_per_kg")
                if price_per_kg is not None
                else bid.price_per_kg
            )
            new_grade = self._grade(grade) if grade is not None else bid.grade
        except ValidationError as exc:
            raise self._rejected("bid_update_rejected", exc, bid_id=bid.id)

        delta = bid.number_of_bags - new_bags
        if delta != 0:
            lot = self._lots.lock_lot(business_id, bid.lot_id)
            if delta > 0:
                self._lots.release_bags(lot, delta, event="bid_update_rejected")
            else:
                self._lots.reserve_bags(lot, -delta, event="bid_update_rejected")

        old_bags = bid.number_of_bags
        bid.number_of_bags = new_bags
        bid.price_per_kg = new_price
        bid.grade = new_grade
        bid.updated_by_id = actor_id
        self._flush("Lot", bid.lot_id)

        self.logger.info(
            "bid_updated",
            extra={
                "bid_id": str(bid.id),
                "lot_id": str(bid.lot_id),
                "old_bags": old_bags,
                "new_bags": new_bags,
                "bag_delta": delta,
            },
        )
        return bid.to_dto()

    def delete_bid(self, business_id: str, bid_id: UUID, *, actor_id: UUID) -> int:
        """
        Delete a pending bid and return its bags to the lot.

        Returns:
            The number of bags released.
        """
        bid = self._get_scoped(Bid, business_id, bid_id)
        self._require_unsettled(bid, "bid_delete_rejected")

        lot = self._lots.lock_lot(business_id, bid.lot_id)
        released = bid.number_of_bags
        self._lots.release_bags(lot, released, event="bid_delete_rejected")
        lot.updated_by_id = actor_id
        self.session.delete(bid)
        self._flush("Lot", lot.id)

        self.logger.info(
            "bid_deleted",
            extra={
                "bid_id": str(bid_id),
                "lot_id": str(lot.id),
                "bags_released": released,
                "lot_remaining_bags": lot.remaining_bags,
            },
        )
        return released

    # =========================================================================
    # Helpers
    # =========================================================================

    def _grade(self, grade: str | None) -> str:
        if grade is None:
            return self.catalog.default_grade
        if grade not in self.catalog.sizes:
            raise ValidationError("grade", f"unknown grade {grade!r}")
        return grade

    def _require_unsettled(self, bid: Bid, event: str) -> None:
        has_transaction = self.session.execute(
            select(
                exists().where(
                    SaleTransaction.bid_id == bid.id,
                    SaleTransaction.business_id == bid.business_id,
                )
            )
        ).scalar()
        if has_transaction:
            raise self._rejected(
                event,
                InvalidStateError(
                    "Bid", str(bid.id), "bid has a transaction and can no longer change"
                ),
                bid_id=bid.id,
            )
