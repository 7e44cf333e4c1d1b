"""
CashService -- the cash ledger.

Responsibility:
    Records inward, outward and transfer movements, reverses them (a bounced
    cheque is a reversal with a reason), and maintains the bank accounts and
    the cash-in-hand opening balance the balances are derived from.

Architecture position:
    Kernel > Services.  Flush-only; the caller owns the transaction.
    Never touches lots, bids or transactions; it only references them.

Invariants enforced:
    - amount > 0; direction comes from category/entry_type.
    - category/entry_type pairs: inward/cash_in, outward/cash_out,
      transfer/cash_to_account, transfer/account_to_cash.
    - Transfers name a bank account and carry the derived payment mode
      (Online for cash -> account, Cash for account -> cash).
    - Reversal is terminal (AlreadyReversedError).
    - A bank account referenced by any entry cannot be deleted.

Failure modes:
    - ValidationError on a bad amount, pairing, payment mode or outflow type.
    - NotFoundError for a farmer, buyer, bank account or transaction outside
      the business.
    - AlreadyReversedError, InvalidStateError as above.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import exists, select

from mandi_kernel.domain.dtos import (
    CHEQUE_BOUNCED,
    BankAccountView,
    CashCategory,
    CashEntryType,
    CashEntryView,
    OutflowType,
    PaymentMode,
)
from mandi_kernel.domain.validation import require_amount, require_text, signed_amount
from mandi_kernel.exceptions import (
    AlreadyReversedError,
    InvalidStateError,
    ValidationError,
)
from mandi_kernel.models.cash import BankAccount, CashEntry, CashSettings
from mandi_kernel.models.party import Buyer, Farmer
from mandi_kernel.models.transaction import SaleTransaction
from mandi_kernel.services.base import BaseService
from mandi_kernel.services.sequence_service import SequenceService

_ENTRY_TYPES = {
    CashCategory.INWARD: (CashEntryType.CASH_IN,),
    CashCategory.OUTWARD: (CashEntryType.CASH_OUT,),
    CashCategory.TRANSFER: (CashEntryType.CASH_TO_ACCOUNT, CashEntryType.ACCOUNT_TO_CASH),
}

_TRANSFER_MODES = {
    CashEntryType.CASH_TO_ACCOUNT: PaymentMode.ONLINE,
    CashEntryType.ACCOUNT_TO_CASH: PaymentMode.CASH,
}

_BANK_ACCOUNT_FIELDS = frozenset({"name", "account_type", "opening_balance"})


class CashService(BaseService[CashEntry]):
    """Cash entries, bank accounts and cash settings."""

    log_name = "cash"

    # =========================================================================
    # Cash entries
    # =========================================================================

    def create_cash_entry(
        self,
        business_id: str,
        category: CashCategory | str,
        entry_type: CashEntryType | str,
        amount: Decimal | int | str,
        payment_mode: PaymentMode | str | None = None,
        *,
        actor_id: UUID,
        outflow_type: OutflowType | str | None = None,
        farmer_id: UUID | None = None,
        buyer_id: UUID | None = None,
        bank_account_id: UUID | None = None,
        transaction_id: UUID | None = None,
        cheque_number: str | None = None,
        cheque_date: date | None = None,
        bank_name: str | None = None,
        entry_date: date | None = None,
        party_name: str | None = None,
        notes: str | None = None,
    ) -> CashEntryView:
        """
        Record one cash movement.

        ``payment_mode`` defaults to Cash for inward and outward entries and
        is derived for transfers.  Cheque fields are kept only in Cheque mode.
        """
        try:
            category, entry_type = _pairing(category, entry_type)
            value = require_amount(amount, "amount")
            mode = _payment_mode(entry_type, payment_mode)
            purpose = _outflow_type(category, outflow_type)
            if category is CashCategory.TRANSFER and bank_account_id is None:
                raise ValidationError("bank_account_id", "transfers need a bank account")
        except ValidationError as exc:
            raise self._rejected("cash_entry_create_rejected", exc)

        for model, ref_id in (
            (Farmer, farmer_id),
            (Buyer, buyer_id),
            (BankAccount, bank_account_id),
            (SaleTransaction, transaction_id),
        ):
            if ref_id is not None:
                self._get_scoped(model, business_id, ref_id)

        if mode is not PaymentMode.CHEQUE:
            cheque_number = cheque_date = bank_name = None

        entry_date = entry_date or self.clock.today()
        number = SequenceService(self.session).next_value(
            business_id, SequenceService.cash_flow_key(entry_date)
        )
        entry = CashEntry(
            business_id=business_id,
            cash_flow_code=f"CF{entry_date:%Y%m%d}{number}",
            daily_number=number,
            category=category.value,
            entry_type=entry_type.value,
            outflow_type=purpose.value if purpose else None,
            farmer_id=farmer_id,
            buyer_id=buyer_id,
            bank_account_id=bank_account_id,
            transaction_id=transaction_id,
            amount=value,
            payment_mode=mode.value,
            cheque_number=cheque_number,
            cheque_date=cheque_date,
            bank_name=bank_name,
            entry_date=entry_date,
            party_name=party_name,
            notes=notes,
            is_reversed=False,
            created_by_id=actor_id,
        )
        self.session.add(entry)
        self._flush("CashEntry", entry.id)

        self.logger.info(
            "cash_entry_created",
            extra={
                "cash_entry_id": str(entry.id),
                "cash_flow_code": entry.cash_flow_code,
                "category": entry.category,
                "entry_type": entry.entry_type,
                "amount": value,
                "payment_mode": entry.payment_mode,
            },
        )
        return entry.to_dto()

    def reverse_cash_entry(
        self,
        business_id: str,
        entry_id: UUID,
        reason: str | None = None,
        *,
        actor_id: UUID,
    ) -> CashEntryView:
        """
        Reverse an entry.  It stops counting toward dues and balances.

        A reason is appended to the notes as ``"<notes> | <reason>"``.
        """
        entry = self._get_scoped(CashEntry, business_id, entry_id, lock=True)
        if entry.is_reversed:
            raise self._rejected(
                "cash_entry_reversal_rejected",
                AlreadyReversedError("CashEntry", str(entry.id)),
                cash_entry_id=entry.id,
            )

        entry.is_reversed = True
        entry.reversed_at = self.clock.now()
        if reason:
            entry.reversal_reason = reason
            entry.notes = f"{entry.notes} | {reason}" if entry.notes else reason
        entry.updated_by_id = actor_id
        self._flush("CashEntry", entry.id)

        self.logger.info(
            "cash_entry_reversed",
            extra={
                "cash_entry_id": str(entry.id),
                "cash_flow_code": entry.cash_flow_code,
                "amount": entry.amount,
                "reason": reason,
            },
        )
        return entry.to_dto()

    def bounce_cheque(
        self, business_id: str, entry_id: UUID, *, actor_id: UUID
    ) -> CashEntryView:
        return self.reverse_cash_entry(
            business_id, entry_id, CHEQUE_BOUNCED, actor_id=actor_id
        )

    # =========================================================================
    # Bank accounts
    # =========================================================================

    def create_bank_account(
        self,
        business_id: str,
        name: str,
        *,
        actor_id: UUID,
        account_type: str = "Current",
        opening_balance: Decimal | int | str = 0,
    ) -> BankAccountView:
        try:
            name = require_text(name, "name")
            account_type = require_text(account_type, "account_type")
            opening = signed_amount(opening_balance, "opening_balance")
        except ValidationError as exc:
            raise self._rejected("bank_account_create_rejected", exc)
        account = BankAccount(
            business_id=business_id,
            name=name,
            account_type=account_type,
            opening_balance=opening,
            created_by_id=actor_id,
        )
        self.session.add(account)
        self._flush("BankAccount", account.id)
        self.logger.info(
            "bank_account_created",
            extra={"bank_account_id": str(account.id), "account_name": account.name},
        )
        return account.to_dto()

    def update_bank_account(
        self,
        business_id: str,
        bank_account_id: UUID,
        *,
        actor_id: UUID,
        **fields: Any,
    ) -> BankAccountView:
        account = self._get_scoped(BankAccount, business_id, bank_account_id)
        unknown = sorted(set(fields) - _BANK_ACCOUNT_FIELDS)
        if unknown:
            raise self._rejected(
                "bank_account_update_rejected",
                ValidationError("fields", f"unknown fields: {', '.join(unknown)}"),
                bank_account_id=account.id,
            )
        for key, value in fields.items():
            try:
                if key == "opening_balance":
                    value = signed_amount(value, key)
                else:
                    value = require_text(value, key)
            except ValidationError as exc:
                raise self._rejected(
                    "bank_account_update_rejected", exc, bank_account_id=account.id
                )
            setattr(account, key, value)
        account.updated_by_id = actor_id
        self._flush("BankAccount", account.id)
        self.logger.info(
            "bank_account_updated",
            extra={"bank_account_id": str(account.id), "fields": sorted(fields)},
        )
        return account.to_dto()

    def delete_bank_account(
        self, business_id: str, bank_account_id: UUID, *, actor_id: UUID
    ) -> None:
        """Delete an account no cash entry references."""
        account = self._get_scoped(BankAccount, business_id, bank_account_id)
        referenced = self.session.execute(
            select(exists().where(CashEntry.bank_account_id == account.id))
        ).scalar()
        if referenced:
            raise self._rejected(
                "bank_account_delete_rejected",
                InvalidStateError(
                    "BankAccount", str(account.id), "cash entries reference this account"
                ),
                bank_account_id=account.id,
            )
        self.session.delete(account)
        self._flush("BankAccount", bank_account_id)
        self.logger.info(
            "bank_account_deleted",
            extra={"bank_account_id": str(bank_account_id), "actor_id": str(actor_id)},
        )

    # =========================================================================
    # Cash settings
    # =========================================================================

    def set_cash_in_hand_opening(
        self, business_id: str, amount: Decimal | int | str, *, actor_id: UUID
    ) -> Decimal:
        try:
            opening = signed_amount(amount, "cash_in_hand_opening")
        except ValidationError as exc:
            raise self._rejected("cash_in_hand_opening_rejected", exc)
        settings = self.session.execute(
            select(CashSettings).where(CashSettings.business_id == business_id)
        ).scalar_one_or_none()
        if settings is None:
            settings = CashSettings(business_id=business_id, created_by_id=actor_id)
            self.session.add(settings)
        else:
            settings.updated_by_id = actor_id
        settings.cash_in_hand_opening = opening
        self._flush("CashSettings", business_id)
        self.logger.info("cash_in_hand_opening_set", extra={"amount": opening})
        return opening


def _pairing(
    category: CashCategory | str, entry_type: CashEntryType | str
) -> tuple[CashCategory, CashEntryType]:
    try:
        category = CashCategory(category)
    except ValueError:
        raise ValidationError("category", f"unknown category {category!r}") from None
    try:
        entry_type = CashEntryType(entry_type)
    except ValueError:
        raise ValidationError("entry_type", f"unknown type {entry_type!r}") from None
    if entry_type not in _ENTRY_TYPES[category]:
        raise ValidationError(
            "entry_type", f"{entry_type.value} is not valid for {category.value}"
        )
    return category, entry_type


def _payment_mode(
    entry_type: CashEntryType, payment_mode: PaymentMode | str | None
) -> PaymentMode:
    derived = _TRANSFER_MODES.get(entry_type)
    if payment_mode is None:
        return derived or PaymentMode.CASH
    try:
        mode = PaymentMode(payment_mode)
    except ValueError:
        raise ValidationError(
            "payment_mode", f"unknown payment mode {payment_mode!r}"
        ) from None
    if derived is not None and mode is not derived:
        raise ValidationError(
            "payment_mode", f"{entry_type.value} transfers are {derived.value}"
        )
    return mode


def _outflow_type(
    category: CashCategory, outflow_type: OutflowType | str | None
) -> OutflowType | None:
    if outflow_type is None:
        return None
    if category is not CashCategory.OUTWARD:
        raise ValidationError("outflow_type", "only outward entries have a purpose")
    try:
        return OutflowType(outflow_type)
    except ValueError:
        raise ValidationError(
            "outflow_type", f"unknown outflow type {outflow_type!r}"
        ) from None
