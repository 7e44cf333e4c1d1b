"""
Module: mandi_kernel.selectors.cash_selector
Responsibility: Cash ledger queries: filtered entry lists, the cash-in-hand
    pool, per-account bank balances and the cash summary.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - No stored balances.  Every figure derives from active entries:
        cash in hand = opening + inward(Cash) + account_to_cash
                       - outward(Cash) - cash_to_account
        account      = opening + inward(non-Cash, this account) + cash_to_account
                       - outward(non-Cash, this account) - account_to_cash
    - Reversed entries never contribute.

Failure modes:
    - ValidationError when a month filter is given without a year, or is
      outside 1..12.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import and_, case, func, select

from mandi_kernel.domain.dtos import (
    AccountBalance,
    BankAccountView,
    CashCategory,
    CashEntryType,
    CashEntryView,
    CashSummary,
    PaymentMode,
)
from mandi_kernel.exceptions import ValidationError
from mandi_kernel.models.cash import BankAccount, CashEntry, CashSettings
from mandi_kernel.selectors.base import BaseSelector, money


def _sum_when(condition):
    return func.sum(case((condition, CashEntry.amount), else_=Decimal("0")))


_IS_CASH = CashEntry.payment_mode == PaymentMode.CASH.value
_INWARD = CashEntry.category == CashCategory.INWARD.value
_OUTWARD = CashEntry.category == CashCategory.OUTWARD.value
_TO_ACCOUNT = CashEntry.entry_type == CashEntryType.CASH_TO_ACCOUNT.value
_TO_CASH = CashEntry.entry_type == CashEntryType.ACCOUNT_TO_CASH.value


class CashSelector(BaseSelector[CashEntry]):
    """Cash ledger and balance queries."""

    def get_entry(self, business_id: str, entry_id: UUID) -> CashEntryView:
        return self._get_scoped(CashEntry, business_id, entry_id).to_dto()

    def list_entries(
        self,
        business_id: str,
        category: CashCategory | str | None = None,
        outflow_type: str | None = None,
        farmer_id: UUID | None = None,
        buyer_id: UUID | None = None,
        year: int | None = None,
        month: int | None = None,
        *,
        include_reversed: bool = True,
    ) -> list[CashEntryView]:
        """Entries ordered by date, then by their number within the day."""
        query = select(CashEntry).where(CashEntry.business_id == business_id)
        if category is not None:
            query = query.where(CashEntry.category == CashCategory(category).value)
        if outflow_type is not None:
            query = query.where(CashEntry.outflow_type == outflow_type)
        if farmer_id is not None:
            query = query.where(CashEntry.farmer_id == farmer_id)
        if buyer_id is not None:
            query = query.where(CashEntry.buyer_id == buyer_id)
        if year is not None or month is not None:
            start, end = _period(year, month)
            query = query.where(CashEntry.entry_date >= start, CashEntry.entry_date < end)
        if not include_reversed:
            query = query.where(CashEntry.is_reversed.is_(False))
        query = query.order_by(CashEntry.entry_date, CashEntry.daily_number)
        return [entry.to_dto() for entry in self.session.execute(query).scalars()]

    def list_bank_accounts(self, business_id: str) -> list[BankAccountView]:
        return [
            account.to_dto()
            for account in self.session.execute(
                select(BankAccount)
                .where(BankAccount.business_id == business_id)
                .order_by(BankAccount.name)
            ).scalars()
        ]

    # =========================================================================
    # Balances
    # =========================================================================

    def cash_in_hand_opening(self, business_id: str) -> Decimal:
        opening = self.session.execute(
            select(CashSettings.cash_in_hand_opening).where(
                CashSettings.business_id == business_id
            )
        ).scalar_one_or_none()
        return money(opening)

    def cash_in_hand(self, business_id: str) -> Decimal:
        row = self.session.execute(
            select(
                _sum_when(and_(_INWARD, _IS_CASH)).label("inward"),
                _sum_when(_TO_CASH).label("to_cash"),
                _sum_when(and_(_OUTWARD, _IS_CASH)).label("outward"),
                _sum_when(_TO_ACCOUNT).label("to_account"),
            ).where(
                CashEntry.business_id == business_id,
                CashEntry.is_reversed.is_(False),
            )
        ).one()
        return (
            self.cash_in_hand_opening(business_id)
            + money(row.inward)
            + money(row.to_cash)
            - money(row.outward)
            - money(row.to_account)
        )

    def bank_account_balances(self, business_id: str) -> list[AccountBalance]:
        movements = {
            row.bank_account_id: row
            for row in self.session.execute(
                select(
                    CashEntry.bank_account_id,
                    _sum_when(and_(_INWARD, ~_IS_CASH)).label("inward"),
                    _sum_when(_TO_ACCOUNT).label("to_account"),
                    _sum_when(and_(_OUTWARD, ~_IS_CASH)).label("outward"),
                    _sum_when(_TO_CASH).label("to_cash"),
                )
                .where(
                    CashEntry.business_id == business_id,
                    CashEntry.is_reversed.is_(False),
                    CashEntry.bank_account_id.is_not(None),
                )
                .group_by(CashEntry.bank_account_id)
            )
        }

        balances = []
        for account in self.session.execute(
            select(BankAccount)
            .where(BankAccount.business_id == business_id)
            .order_by(BankAccount.name)
        ).scalars():
            row = movements.get(account.id)
            balance = money(account.opening_balance)
            if row is not None:
                balance += (
                    money(row.inward)
                    + money(row.to_account)
                    - money(row.outward)
                    - money(row.to_cash)
                )
            balances.append(
                AccountBalance(
                    bank_account_id=account.id,
                    name=account.name,
                    account_type=account.account_type,
                    opening_balance=money(account.opening_balance),
                    balance=balance,
                )
            )
        return balances

    def summary(self, business_id: str) -> CashSummary:
        totals = self.session.execute(
            select(
                _sum_when(_INWARD).label("inward"),
                _sum_when(_OUTWARD).label("outward"),
            ).where(
                CashEntry.business_id == business_id,
                CashEntry.is_reversed.is_(False),
            )
        ).one()
        accounts = tuple(self.bank_account_balances(business_id))
        return CashSummary(
            cash_in_hand=self.cash_in_hand(business_id),
            bank_total=sum((a.balance for a in accounts), money(0)),
            total_inward=money(totals.inward),
            total_outward=money(totals.outward),
            accounts=accounts,
        )


def _period(year: int | None, month: int | None) -> tuple[date, date]:
    """Half-open [start, end) date range for a year or a year-month."""
    if year is None:
        raise ValidationError("year", "a month filter needs a year")
    if month is None:
        return date(year, 1, 1), date(year + 1, 1, 1)
    if not 1 <= month <= 12:
        raise ValidationError("month", f"must be 1..12, got {month}")
    if month == 12:
        return date(year, 12, 1), date(year + 1, 1, 1)
    return date(year, month, 1), date(year, month + 1, 1)
