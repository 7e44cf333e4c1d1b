"""
LotService -- the lot ledger (bag-count inventory per consignment).

Responsibility:
    Stock entry, lot corrections and the terminal return-to-farmer
    operation.  Owns the three bag columns of a lot: number_of_bags
    (original), actual_number_of_bags (correction) and remaining_bags.

Architecture position:
    Kernel > Services.  Flush-only; the caller owns the transaction.
    BidService and TransactionService also move bags, through the same
    lock-then-mutate helpers defined here.

Invariants enforced:
    - 0 <= remaining_bags <= ceiling after every operation.
    - Bags already sold (ceiling - remaining) are never under-counted by an
      edit: the new actual count must be >= sold.
    - Every bag mutation happens on a row loaded with SELECT ... FOR UPDATE,
      and the lot's version column turns a lost update into
      OptimisticLockError.
    - is_returned is terminal.

Failure modes:
    - ValidationError on bad bag counts, unknown crop/size or unknown fields.
    - InsufficientStockError when an edit would leave fewer bags than sold.
    - InvalidStateError when editing a returned lot.
    - LotAlreadyReturnedError when returning a lot twice.
    - NotFoundError for a farmer or lot outside the caller's business.

Audit relevance:
    lot_created, lot_edited and lot_returned are logged with before/after
    bag counts.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any, Sequence
from uuid import UUID

from sqlalchemy.orm import Session

from mandi_kernel.db.types import round_money
from mandi_kernel.domain.catalog import DEFAULT_CATALOG, Catalog
from mandi_kernel.domain.clock import Clock
from mandi_kernel.domain.dtos import LotView, ReturnResult
from mandi_kernel.domain.validation import (
    optional_amount,
    require_bag_count,
    require_positive_bags,
)
from mandi_kernel.exceptions import (
    InsufficientStockError,
    InvalidStateError,
    LotAlreadyReturnedError,
    ValidationError,
)
from mandi_kernel.models.lot import Lot
from mandi_kernel.models.party import Farmer
from mandi_kernel.services.base import BaseService
from mandi_kernel.services.sequence_service import SequenceService

# Descriptive fields edit_lot may patch without touching inventory
_DESCRIPTIVE_FIELDS = frozenset(
    {"variety", "size", "bag_marka", "vehicle_number", "vehicle_bhada_rate"}
)
_BAG_FIELDS = frozenset({"number_of_bags", "actual_number_of_bags"})


class LotService(BaseService[Lot]):
    """
    Lot ledger operations.

    Contract:
        All operations take the caller's business_id and reject references
        outside it with NotFoundError.
    """

    log_name = "lot"

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        catalog: Catalog = DEFAULT_CATALOG,
    ):
        super().__init__(session, clock)
        self.catalog = catalog

    # =========================================================================
    # Stock entry
    # =========================================================================

    def create_lot(
        self,
        business_id: str,
        farmer_id: UUID,
        crop: str,
        number_of_bags: int,
        size: str,
        *,
        actor_id: UUID,
        lot_date: date | None = None,
        variety: str | None = None,
        bag_marka: str | None = None,
        vehicle_number: str | None = None,
        vehicle_bhada_rate: Decimal | int | str | None = None,
        sample_bag_weights: Sequence[Decimal | int | str] = (),
    ) -> LotView:
        """
        Enter a farmer's consignment into stock.

        Postconditions:
            - remaining_bags == number_of_bags, is_returned is False.
            - lot_code is <crop prefix><YYYYMMDD><lot number for the day>.
            - serial_number is the next number for (crop, date).
        """
        try:
            bags = require_positive_bags(number_of_bags)
        except ValidationError as exc:
            raise self._rejected("lot_create_rejected", exc, farmer_id=farmer_id)

        prefix = self.catalog.prefix_for(crop)
        if prefix is None:
            raise self._rejected(
                "lot_create_rejected",
                ValidationError(
                    "crop", f"unknown crop {crop!r}; expected one of {self.catalog.crops}"
                ),
                farmer_id=farmer_id,
            )
        if size not in self.catalog.sizes:
            raise self._rejected(
                "lot_create_rejected",
                ValidationError(
                    "size", f"unknown size {size!r}; expected one of {self.catalog.sizes}"
                ),
                farmer_id=farmer_id,
            )

        farmer = self._get_scoped(Farmer, business_id, farmer_id)
        try:
            freight_rate = optional_amount(vehicle_bhada_rate, "vehicle_bhada_rate")
            estimated_weight = self._estimate_weight(sample_bag_weights, bags)
        except ValidationError as exc:
            raise self._rejected("lot_create_rejected", exc, farmer_id=farmer_id)

        lot_date = lot_date or self.clock.today()
        sequences = SequenceService(self.session)
        lot_number = sequences.next_value(business_id, SequenceService.lot_key(lot_date))
        serial = sequences.next_value(
            business_id, SequenceService.lot_serial_key(crop, lot_date)
        )

        lot = Lot(
            business_id=business_id,
            lot_code=f"{prefix}{lot_date:%Y%m%d}{lot_number:02d}",
            serial_number=serial,
            farmer_id=farmer.id,
            lot_date=lot_date,
            crop=crop,
            variety=variety,
            size=size,
            bag_marka=bag_marka,
            vehicle_number=vehicle_number,
            number_of_bags=bags,
            actual_number_of_bags=None,
            remaining_bags=bags,
            vehicle_bhada_rate=freight_rate,
            initial_total_weight=estimated_weight,
            is_returned=False,
            created_by_id=actor_id,
        )
        self.session.add(lot)
        self._flush("Lot", lot.id)

        self.logger.info(
            "lot_created",
            extra={
                "lot_id": str(lot.id),
                "lot_code": lot.lot_code,
                "farmer_id": str(farmer.id),
                "crop": crop,
                "number_of_bags": bags,
            },
        )
        return lot.to_dto()

    @staticmethod
    def _estimate_weight(
        sample_bag_weights: Sequence[Decimal | int | str], bags: int
    ) -> Decimal | None:
        """Average of up to two sample bag weights, times the bag count."""
        samples = [
            optional_amount(w, "sample_bag_weights")
            for w in list(sample_bag_weights)[:2]
            if w not in (None, "")
        ]
        samples = [w for w in samples if w is not None and w > 0]
        if not samples:
            return None
        average = round_money(sum(samples, Decimal("0")) / len(samples))
        return round_money(average * bags)

    # =========================================================================
    # Corrections
    # =========================================================================

    def edit_lot(
        self,
        business_id: str,
        lot_id: UUID,
        *,
        actor_id: UUID,
        **fields: Any,
    ) -> LotView:
        """
        Patch descriptive fields and/or correct the bag counts.

        Bag rules, with sold = prior ceiling - prior remaining:
            - actual_number_of_bags <= number_of_bags (new values)
            - new ceiling >= sold, else InsufficientStockError
            - remaining_bags = new ceiling - sold
        Passing actual_number_of_bags=None clears the correction.
        """
        unknown = sorted(set(fields) - _DESCRIPTIVE_FIELDS - _BAG_FIELDS)
        if unknown:
            raise self._rejected(
                "lot_edit_rejected",
                ValidationError("fields", f"unknown fields: {', '.join(unknown)}"),
                lot_id=lot_id,
            )

        lot = self.lock_lot(business_id, lot_id)
        if lot.is_returned:
            raise self._rejected(
                "lot_edit_rejected",
                InvalidStateError("Lot", str(lot.id), "returned lots cannot be edited"),
                lot_id=lot.id,
            )

        before = (lot.number_of_bags, lot.actual_number_of_bags, lot.remaining_bags)

        if "size" in fields and fields["size"] not in self.catalog.sizes:
            raise self._rejected(
                "lot_edit_rejected",
                ValidationError("size", f"unknown size {fields['size']!r}"),
                lot_id=lot.id,
            )
        if "vehicle_bhada_rate" in fields:
            try:
                fields["vehicle_bhada_rate"] = optional_amount(
                    fields["vehicle_bhada_rate"], "vehicle_bhada_rate"
                )
            except ValidationError as exc:
                raise self._rejected("lot_edit_rejected", exc, lot_id=lot.id)

        if _BAG_FIELDS & set(fields):
            self._apply_bag_correction(lot, fields)

        for key in _DESCRIPTIVE_FIELDS & set(fields):
            setattr(lot, key, fields[key])

        lot.updated_by_id = actor_id
        self._flush("Lot", lot.id)

        self.logger.info(
            "lot_edited",
            extra={
                "lot_id": str(lot.id),
                "fields": sorted(fields),
                "bags_before": list(before),
                "bags_after": [
                    lot.number_of_bags,
                    lot.actual_number_of_bags,
                    lot.remaining_bags,
                ],
            },
        )
        return lot.to_dto()

    def _apply_bag_correction(self, lot: Lot, fields: dict[str, Any]) -> None:
        sold = lot.sold_bags

        try:
            original = (
                require_positive_bags(fields["number_of_bags"])
                if "number_of_bags" in fields
                else lot.number_of_bags
            )
            if "actual_number_of_bags" in fields:
                actual = fields["actual_number_of_bags"]
                if actual is not None:
                    actual = require_bag_count(actual, "actual_number_of_bags")
            else:
                actual = lot.actual_number_of_bags
        except ValidationError as exc:
            raise self._rejected("lot_edit_rejected", exc, lot_id=lot.id)

        if actual is not None and actual > original:
            raise self._rejected(
                "lot_edit_rejected",
                ValidationError(
                    "actual_number_of_bags",
                    f"{actual} exceeds number_of_bags {original}",
                ),
                lot_id=lot.id,
            )

        ceiling = actual if actual is not None else original
        if ceiling < sold:
            raise self._rejected(
                "lot_edit_rejected",
                InsufficientStockError(str(lot.id), requested=sold, available=ceiling),
                lot_id=lot.id,
                sold_bags=sold,
            )

        lot.number_of_bags = original
        lot.actual_number_of_bags = actual
        lot.remaining_bags = ceiling - sold

    # =========================================================================
    # Return to farmer
    # =========================================================================

    def return_to_farmer(
        self, business_id: str, lot_id: UUID, *, actor_id: UUID
    ) -> ReturnResult:
        """
        Close a lot and hand the unsold bags back to the farmer.

        If any bags were sold the lot is clamped: number_of_bags (and
        actual_number_of_bags when set) become the sold count and
        remaining_bags becomes 0.  With nothing sold, the bag counts are
        left as they are.  Either way the lot is marked returned.
        """
        lot = self.lock_lot(business_id, lot_id)
        if lot.is_returned:
            raise self._rejected(
                "lot_return_rejected", LotAlreadyReturnedError(str(lot.id)), lot_id=lot.id
            )

        sold = lot.sold_bags
        if sold > 0:
            lot.number_of_bags = sold
            if lot.actual_number_of_bags is not None:
                lot.actual_number_of_bags = sold
            lot.remaining_bags = 0
        lot.is_returned = True
        lot.updated_by_id = actor_id
        self._flush("Lot", lot.id)

        self.logger.info(
            "lot_returned",
            extra={
                "lot_id": str(lot.id),
                "lot_code": lot.lot_code,
                "sold_bags": sold,
            },
        )
        return ReturnResult(lot_id=lot.id, sold_bags=sold)

    # =========================================================================
    # Bag movement primitives (shared with BidService / TransactionService)
    # =========================================================================

    def lock_lot(self, business_id: str, lot_id: UUID) -> Lot:
        """Load a lot under SELECT ... FOR UPDATE with fresh values."""
        return self._get_scoped(Lot, business_id, lot_id, lock=True)

    def reserve_bags(self, lot: Lot, bags: int, *, event: str) -> None:
        """Take ``bags`` out of remaining stock.  Caller holds the row lock."""
        if bags > lot.remaining_bags:
            raise self._rejected(
                event,
                InsufficientStockError(
                    str(lot.id), requested=bags, available=lot.remaining_bags
                ),
                lot_id=lot.id,
            )
        lot.remaining_bags -= bags

    def release_bags(self, lot: Lot, bags: int, *, event: str) -> None:
        """Put ``bags`` back into remaining stock, never above the ceiling."""
        if lot.remaining_bags + bags > lot.ceiling:
            raise self._rejected(
                event,
                InsufficientStockError(
                    str(lot.id),
                    requested=-bags,
                    available=lot.remaining_bags,
                ),
                lot_id=lot.id,
            )
        lot.remaining_bags += bags
