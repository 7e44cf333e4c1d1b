"""
TransactionService -- the transaction ledger.

Responsibility:
    Settles bids into transactions (through the pure settlement
    calculator), re-runs the calculator on edit, and reverses transactions,
    returning their bags to the originating lot.

Architecture position:
    Kernel > Services.  Flush-only; the caller owns the transaction.
    Imports the pure calculator from domain/settlement.py and the bag
    primitives from LotService.

Invariants enforced:
    - One settlement per bid: at most one non-reversed transaction per bid
      (DuplicateSettlementError, backed by a partial unique index).
    - Rates are snapshotted at settlement.  An edit re-runs the calculator
      against the snapshot unless new rates are passed explicitly.
    - Reversal is terminal (AlreadyReversedError) and returns exactly
      number_of_bags to the lot.  A returned lot also gets the bags added
      back to number_of_bags (and actual_number_of_bags when set), which
      re-opens it for bidding.  A normal lot only gets remaining_bags back.
    - Reversal never touches cash entries.

Failure modes:
    - ValidationError from the calculator (weight missing, <= 0, <= bags).
    - DuplicateSettlementError for a bid with an active transaction.
    - InsufficientStockError when re-settling a released bid whose bags
      were sold to someone else in the meantime.
    - InvalidStateError when editing a reversed transaction.
    - AlreadyReversedError when reversing twice.
    - NotFoundError for a bid or transaction outside the business.

Audit relevance:
    transaction_created / transaction_updated / transaction_reversed carry
    the totals and bag movements.  Reversed rows are kept for audit.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Mapping
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from mandi_kernel.domain.catalog import DEFAULT_CATALOG, Catalog
from mandi_kernel.domain.charges import (
    ChargeConfig,
    SettlementOptions,
    SplitCharges,
    UnifiedCharges,
)
from mandi_kernel.domain.clock import Clock
from mandi_kernel.domain.dtos import ChargeModelTag, ReversalResult, TransactionView
from mandi_kernel.domain.settlement import TransactionDraft, settle
from mandi_kernel.exceptions import (
    AlreadyReversedError,
    DuplicateSettlementError,
    InvalidStateError,
    ValidationError,
)
from mandi_kernel.models.lot import Bid, Lot
from mandi_kernel.models.transaction import SaleTransaction
from mandi_kernel.services.base import BaseService
from mandi_kernel.services.charge_settings_service import ChargeSettingsService
from mandi_kernel.services.lot_service import LotService
from mandi_kernel.services.sequence_service import SequenceService


class TransactionService(BaseService[SaleTransaction]):
    """Settlement, edit and reversal of transactions."""

    log_name = "transaction"

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        catalog: Catalog = DEFAULT_CATALOG,
    ):
        super().__init__(session, clock)
        self._lots = LotService(session, self.clock, catalog)
        self._charges = ChargeSettingsService(session, self.clock, catalog)

    # =========================================================================
    # Create
    # =========================================================================

    def create_transaction(
        self,
        business_id: str,
        bid_id: UUID,
        total_weight: Any,
        *,
        actor_id: UUID,
        options: SettlementOptions | None = None,
        charge_config: ChargeConfig | None = None,
        charge_overrides: Mapping[str, Any] | None = None,
        transaction_date: date | None = None,
    ) -> TransactionView:
        """
        Settle a bid.

        Rates come from ``charge_config`` when given, otherwise from the
        business's charge settings; ``charge_overrides`` replaces individual
        rates on top of either.

        Postconditions:
            - A new non-reversed transaction references the bid.
            - Lot bag counts are unchanged, except for a released bid whose
              bags are reserved again.
        """
        bid = self._get_scoped(Bid, business_id, bid_id)
        lot = self._lots.lock_lot(business_id, bid.lot_id)

        prior = self._transactions_for_bid(business_id, bid.id)
        active = [t for t in prior if not t.is_reversed]
        if active:
            raise self._rejected(
                "transaction_create_rejected",
                DuplicateSettlementError(str(bid.id), str(active[0].id)),
                bid_id=bid.id,
            )

        try:
            config = (charge_config or self._charges.get_charge_config(business_id))
            config = config.with_overrides(charge_overrides)
            draft = settle(bid.to_dto(), lot.to_dto(), total_weight, config, options)
        except ValidationError as exc:
            raise self._rejected("transaction_create_rejected", exc, bid_id=bid.id)

        released = bool(prior)
        if released:
            # Reversal gave the bid's bags back to the lot; take them again
            self._lots.reserve_bags(
                lot, bid.number_of_bags, event="transaction_create_rejected"
            )

        transaction_date = transaction_date or self.clock.today()
        number = SequenceService(self.session).next_value(
            business_id, SequenceService.transaction_key(transaction_date)
        )
        transaction = SaleTransaction(
            business_id=business_id,
            transaction_code=f"TX{transaction_date:%Y%m%d}{number}",
            daily_number=number,
            bid_id=bid.id,
            lot_id=lot.id,
            buyer_id=bid.buyer_id,
            farmer_id=lot.farmer_id,
            transaction_date=transaction_date,
            is_reversed=False,
            created_by_id=actor_id,
        )
        self._apply_draft(transaction, draft)
        self.session.add(transaction)
        self._flush("Lot", lot.id)

        self.logger.info(
            "transaction_created",
            extra={
                "transaction_id": str(transaction.id),
                "transaction_code": transaction.transaction_code,
                "bid_id": str(bid.id),
                "lot_id": str(lot.id),
                "number_of_bags": draft.number_of_bags,
                "gross_amount": draft.gross_amount,
                "total_payable_to_farmer": draft.total_payable_to_farmer,
                "total_receivable_from_buyer": draft.total_receivable_from_buyer,
                "charge_model": draft.charge_model,
                "resettled": released,
            },
        )
        return transaction.to_dto()

    # =========================================================================
    # Update
    # =========================================================================

    def update_transaction(
        self,
        business_id: str,
        transaction_id: UUID,
        *,
        actor_id: UUID,
        total_weight: Any = None,
        options: SettlementOptions | None = None,
        charge_config: ChargeConfig | None = None,
        charge_overrides: Mapping[str, Any] | None = None,
    ) -> TransactionView:
        """
        Re-run the calculator and replace every financial field.

        Omitted inputs default to what the transaction already holds: its
        total weight, its snapshotted rates, its commission model and its
        grading choices.
        """
        transaction = self._get_scoped(
            SaleTransaction, business_id, transaction_id, lock=True
        )
        if transaction.is_reversed:
            raise self._rejected(
                "transaction_update_rejected",
                InvalidStateError(
                    "SaleTransaction",
                    str(transaction.id),
                    "reversed transactions cannot be edited",
                ),
                transaction_id=transaction.id,
            )

        bid = self._get_scoped(Bid, business_id, transaction.bid_id)
        lot = self._get_scoped(Lot, business_id, transaction.lot_id)

        try:
            config = (charge_config or _snapshot_config(transaction)).with_overrides(
                charge_overrides
            )
            draft = settle(
                bid.to_dto(),
                lot.to_dto(),
                transaction.total_weight if total_weight is None else total_weight,
                config,
                options or _snapshot_options(transaction),
            )
        except ValidationError as exc:
            raise self._rejected(
                "transaction_update_rejected", exc, transaction_id=transaction.id
            )

        before = (
            transaction.total_payable_to_farmer,
            transaction.total_receivable_from_buyer,
        )
        self._apply_draft(transaction, draft)
        transaction.updated_by_id = actor_id
        self._flush("SaleTransaction", transaction.id)

        self.logger.info(
            "transaction_updated",
            extra={
                "transaction_id": str(transaction.id),
                "payable_before": before[0],
                "receivable_before": before[1],
                "total_payable_to_farmer": draft.total_payable_to_farmer,
                "total_receivable_from_buyer": draft.total_receivable_from_buyer,
            },
        )
        return transaction.to_dto()

    # =========================================================================
    # Reverse
    # =========================================================================

    def reverse_transaction(
        self, business_id: str, transaction_id: UUID, *, actor_id: UUID
    ) -> ReversalResult:
        """
        Reverse a transaction and give its bags back to the lot.

        Preconditions:
            - The transaction exists in the business and is not reversed.
        Postconditions:
            - is_reversed is True and reversed_at is the clock's now.
            - lot.remaining_bags increased by the transaction's bags.
            - If the lot was returned to its farmer, number_of_bags (and
              actual_number_of_bags when set) increased by the same amount.
        """
        transaction = self._get_scoped(
            SaleTransaction, business_id, transaction_id, lock=True
        )
        if transaction.is_reversed:
            raise self._rejected(
                "transaction_reversal_rejected",
                AlreadyReversedError("SaleTransaction", str(transaction.id)),
                transaction_id=transaction.id,
            )

        lot = self._lots.lock_lot(business_id, transaction.lot_id)
        bags = transaction.number_of_bags
        reopened = lot.is_returned
        if reopened:
            lot.number_of_bags += bags
            if lot.actual_number_of_bags is not None:
                lot.actual_number_of_bags += bags
        self._lots.release_bags(lot, bags, event="transaction_reversal_rejected")
        lot.updated_by_id = actor_id

        transaction.is_reversed = True
        transaction.reversed_at = self.clock.now()
        transaction.updated_by_id = actor_id
        self._flush("Lot", lot.id)

        self.logger.info(
            "transaction_reversed",
            extra={
                "transaction_id": str(transaction.id),
                "transaction_code": transaction.transaction_code,
                "lot_id": str(lot.id),
                "bags_returned": bags,
                "lot_reopened": reopened,
                "lot_remaining_bags": lot.remaining_bags,
            },
        )
        return ReversalResult(
            transaction_id=transaction.id,
            lot_id=lot.id,
            bags_returned=bags,
            lot_remaining_bags=lot.remaining_bags,
        )

    # =========================================================================
    # Helpers
    # =========================================================================

    def _transactions_for_bid(
        self, business_id: str, bid_id: UUID
    ) -> list[SaleTransaction]:
        return list(
            self.session.execute(
                select(SaleTransaction).where(
                    SaleTransaction.business_id == business_id,
                    SaleTransaction.bid_id == bid_id,
                )
            ).scalars()
        )

    @staticmethod
    def _apply_draft(transaction: SaleTransaction, draft: TransactionDraft) -> None:
        for name in TransactionDraft.__dataclass_fields__:
            setattr(transaction, name, getattr(draft, name))


def _snapshot_config(transaction: SaleTransaction) -> ChargeConfig:
    return ChargeConfig(
        **{name: getattr(transaction, name) for name in ChargeConfig.field_names()}
    )


def _snapshot_options(transaction: SaleTransaction) -> SettlementOptions:
    """Rebuild the commission model and grading choices a transaction used."""
    if transaction.charge_model == ChargeModelTag.UNIFIED.value:
        if transaction.charged_to == "buyer":
            model = UnifiedCharges(
                charged_to="buyer",
                aadhat_percent=transaction.aadhat_buyer_percent,
                mandi_percent=transaction.mandi_buyer_percent,
            )
        else:
            model = UnifiedCharges(
                charged_to="seller",
                aadhat_percent=transaction.aadhat_farmer_percent,
                mandi_percent=transaction.mandi_farmer_percent,
            )
    else:
        model = SplitCharges()
    return SettlementOptions(
        apply_farmer_grading=transaction.apply_farmer_grading,
        apply_buyer_grading=transaction.apply_buyer_grading,
        charge_model=model,
    )
