"""
Tests for CashSelector.

Cash in hand and bank balances are derived from active entries:

    cash in hand = opening + inward Cash + account_to_cash
                   - outward Cash - cash_to_account
    bank balance = opening + inward non-Cash + cash_to_account
                   - outward non-Cash - account_to_cash
"""

from datetime import date
from decimal import Decimal

import pytest

from mandi_kernel.exceptions import ValidationError


@pytest.fixture
def pay(cash_service, business_id, test_actor_id):
    def _pay(category, entry_type, amount, payment_mode=None, **kwargs):
        return cash_service.create_cash_entry(
            business_id,
            category,
            entry_type,
            amount,
            payment_mode,
            actor_id=test_actor_id,
            **kwargs,
        )

    return _pay


@pytest.fixture
def account(cash_service, business_id, test_actor_id):
    return cash_service.create_bank_account(
        business_id, "HDFC Current", actor_id=test_actor_id, opening_balance="10000"
    )


class TestBalances:

    def test_cash_and_bank_pools(
        self, pay, account, cash_service, cash_selector, business_id, test_actor_id
    ):
        cash_service.set_cash_in_hand_opening(business_id, "1000", actor_id=test_actor_id)
        pay("inward", "cash_in", "5000")
        pay("inward", "cash_in", "3000", "Online", bank_account_id=account.id)
        pay("outward", "cash_out", "700")
        pay("outward", "cash_out", "1500", "Cheque", bank_account_id=account.id)
        pay("transfer", "cash_to_account", "2000", bank_account_id=account.id)
        pay("transfer", "account_to_cash", "500", bank_account_id=account.id)

        # 1000 + 5000 + 500 - 700 - 2000
        assert cash_selector.cash_in_hand(business_id) == Decimal("3800.00")
        (balance,) = cash_selector.bank_account_balances(business_id)
        # 10000 + 3000 + 2000 - 1500 - 500
        assert balance.balance == Decimal("13000.00")
        assert balance.opening_balance == Decimal("10000.00")

    def test_reversed_entries_excluded(
        self, pay, account, cash_service, cash_selector, business_id, test_actor_id
    ):
        transfer = pay("transfer", "cash_to_account", "2000", bank_account_id=account.id)
        cash_service.reverse_cash_entry(business_id, transfer.id, actor_id=test_actor_id)

        assert cash_selector.cash_in_hand(business_id) == Decimal("0.00")
        assert cash_selector.bank_account_balances(business_id)[0].balance == Decimal(
            "10000.00"
        )

    def test_account_without_entries_shows_opening(self, account, cash_selector, business_id):
        (balance,) = cash_selector.bank_account_balances(business_id)
        assert balance.name == "HDFC Current"
        assert balance.balance == Decimal("10000.00")

    def test_summary(self, pay, account, cash_selector, business_id):
        pay("inward", "cash_in", "5000")
        pay("inward", "cash_in", "1000", "Online", bank_account_id=account.id)
        pay("outward", "cash_out", "400")

        summary = cash_selector.summary(business_id)

        assert summary.cash_in_hand == Decimal("4600.00")
        assert summary.bank_total == Decimal("11000.00")
        assert summary.total_inward == Decimal("6000.00")
        assert summary.total_outward == Decimal("400.00")
        assert len(summary.accounts) == 1

    def test_empty_business(self, cash_selector, business_id):
        summary = cash_selector.summary(business_id)
        assert summary.cash_in_hand == Decimal("0.00")
        assert summary.bank_total == Decimal("0.00")
        assert summary.accounts == ()


class TestListEntries:

    def test_filters(self, pay, farmer, buyer, cash_selector, business_id):
        pay("inward", "cash_in", 100, buyer_id=buyer.id)
        pay("outward", "cash_out", 200, farmer_id=farmer.id, outflow_type="Farmer Payment")
        pay("outward", "cash_out", 50, outflow_type="Hammali")

        assert len(cash_selector.list_entries(business_id)) == 3
        assert len(cash_selector.list_entries(business_id, category="outward")) == 2
        assert len(cash_selector.list_entries(business_id, outflow_type="Hammali")) == 1
        assert len(cash_selector.list_entries(business_id, farmer_id=farmer.id)) == 1
        assert len(cash_selector.list_entries(business_id, buyer_id=buyer.id)) == 1

    def test_ordered_by_date_then_number(self, pay, cash_selector, business_id):
        pay("inward", "cash_in", 1, entry_date=date(2024, 1, 20))
        pay("inward", "cash_in", 2, entry_date=date(2024, 1, 10))
        pay("inward", "cash_in", 3, entry_date=date(2024, 1, 10))

        amounts = [e.amount for e in cash_selector.list_entries(business_id)]
        assert amounts == [Decimal("2.00"), Decimal("3.00"), Decimal("1.00")]

    def test_month_and_year_filters(self, pay, cash_selector, business_id):
        pay("inward", "cash_in", 1, entry_date=date(2023, 12, 31))
        pay("inward", "cash_in", 2, entry_date=date(2024, 1, 1))
        pay("inward", "cash_in", 3, entry_date=date(2024, 2, 29))

        assert len(cash_selector.list_entries(business_id, year=2024)) == 2
        assert len(cash_selector.list_entries(business_id, year=2024, month=2)) == 1
        assert len(cash_selector.list_entries(business_id, year=2023, month=12)) == 1

    def test_month_without_year_rejected(self, cash_selector, business_id):
        with pytest.raises(ValidationError):
            cash_selector.list_entries(business_id, month=3)

    def test_month_out_of_range_rejected(self, cash_selector, business_id):
        with pytest.raises(ValidationError):
            cash_selector.list_entries(business_id, year=2024, month=13)

    def test_reversed_entries_can_be_hidden(
        self, pay, cash_service, cash_selector, business_id, test_actor_id
    ):
        entry = pay("inward", "cash_in", 100)
        pay("inward", "cash_in", 200)
        cash_service.bounce_cheque(business_id, entry.id, actor_id=test_actor_id)

        assert len(cash_selector.list_entries(business_id)) == 2
        active = cash_selector.list_entries(business_id, include_reversed=False)
        assert [e.amount for e in active] == [Decimal("200.00")]
