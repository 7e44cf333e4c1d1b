"""
Tests for DuesSelector.

Dues are derived on every read from opening balances, active
transactions and active cash entries; reversed rows never count.
"""

from datetime import date
from decimal import Decimal

import pytest

from mandi_kernel.exceptions import NotFoundError

FARMER_HAMMALI = {"hammali_farmer_per_bag": 5}


@pytest.fixture
def pay(cash_service, business_id, test_actor_id):
    """Factory: record a cash entry."""

    def _pay(category, entry_type, amount, **kwargs):
        return cash_service.create_cash_entry(
            business_id, category, entry_type, amount, actor_id=test_actor_id, **kwargs
        )

    return _pay


class TestFarmerDues:

    def test_due_is_opening_plus_payable_minus_paid(
        self, make_farmer, make_lot, make_bid, settle_bid, pay, dues_selector, business_id
    ):
        farmer = make_farmer("Ramesh Patel", opening_balance="1000")
        lot = make_lot(farmer_id=farmer.id)
        settle_bid(make_bid(lot, 40), "2040", charge_overrides=FARMER_HAMMALI)
        pay("outward", "cash_out", "9800", farmer_id=farmer.id, outflow_type="Farmer Payment")

        dues = dues_selector.farmer_dues(business_id, farmer.id)

        assert dues.opening_balance == Decimal("1000.00")
        assert dues.total_payable == Decimal("39800.00")
        assert dues.total_paid == Decimal("9800.00")
        assert dues.due == Decimal("31000.00")
        assert dues.sales_count == 1

    def test_reversed_payment_drops_out(
        self,
        farmer,
        make_lot,
        make_bid,
        settle_bid,
        pay,
        cash_service,
        dues_selector,
        business_id,
        test_actor_id,
    ):
        settle_bid(make_bid(make_lot(), 40), "2040", charge_overrides=FARMER_HAMMALI)
        payment = pay("outward", "cash_out", "5000", farmer_id=farmer.id)
        cash_service.reverse_cash_entry(business_id, payment.id, actor_id=test_actor_id)

        assert dues_selector.farmer_dues(business_id, farmer.id).due == Decimal("39800.00")

    def test_inward_cash_does_not_pay_a_farmer(
        self, farmer, pay, dues_selector, business_id
    ):
        pay("inward", "cash_in", "500", farmer_id=farmer.id)
        assert dues_selector.farmer_dues(business_id, farmer.id).total_paid == Decimal("0.00")

    def test_listing_with_search(self, make_farmer, dues_selector, business_id):
        make_farmer("Ramesh Patel", village="Khed")
        make_farmer("Suresh Yadav", village="Manchar")

        assert [d.name for d in dues_selector.farmers_with_dues(business_id)] == [
            "Ramesh Patel",
            "Suresh Yadav",
        ]
        assert [d.name for d in dues_selector.farmers_with_dues(business_id, "manch")] == [
            "Suresh Yadav"
        ]
        assert [d.farmer_code for d in dues_selector.farmers_with_dues(business_id, "FM1")] == [
            "FM1"
        ]

    def test_no_activity_no_due(self, farmer, dues_selector, business_id):
        dues = dues_selector.farmer_dues(business_id, farmer.id)
        assert dues.due == Decimal("0.00")
        assert dues.sales_count == 0

    def test_other_business_farmer_not_found(self, farmer, dues_selector, other_business_id):
        with pytest.raises(NotFoundError):
            dues_selector.farmer_dues(other_business_id, farmer.id)


class TestBuyerDues:

    def test_receivable_and_overall_due(
        self, make_buyer, make_lot, make_bid, settle_bid, pay, dues_selector, business_id
    ):
        buyer = make_buyer("Shree Traders", opening_balance="500")
        settle_bid(make_bid(make_lot(), 40, buyer_id=buyer.id), "2040")
        pay("inward", "cash_in", "20000", buyer_id=buyer.id)

        dues = dues_selector.buyer_dues(business_id, buyer.id)

        assert dues.total_receivable == Decimal("41200.00")
        assert dues.total_received == Decimal("20000.00")
        assert dues.receivable_due == Decimal("21200.00")
        assert dues.overall_due == Decimal("21700.00")

    def test_reversed_transaction_drops_out(
        self,
        buyer,
        make_lot,
        make_bid,
        settle_bid,
        transaction_service,
        dues_selector,
        business_id,
        test_actor_id,
    ):
        tx = settle_bid(make_bid(make_lot(), 40), "2040")
        transaction_service.reverse_transaction(business_id, tx.id, actor_id=test_actor_id)

        assert dues_selector.buyer_dues(business_id, buyer.id).total_receivable == Decimal(
            "0.00"
        )

    def test_bid_dates_are_distinct_and_sorted(
        self, buyer, make_lot, make_bid, dues_selector, business_id
    ):
        lot = make_lot()
        make_bid(lot, 5, bid_date=date(2024, 1, 16))
        make_bid(lot, 5, bid_date=date(2024, 1, 14))
        make_bid(lot, 5, bid_date=date(2024, 1, 16))

        assert dues_selector.buyer_dues(business_id, buyer.id).bid_dates == (
            date(2024, 1, 14),
            date(2024, 1, 16),
        )

    def test_inactive_buyers_filtered_on_request(
        self, make_buyer, party_service, dues_selector, business_id, test_actor_id
    ):
        make_buyer("Active Co")
        dormant = make_buyer("Dormant Co")
        party_service.set_buyer_active(business_id, dormant.id, False, actor_id=test_actor_id)

        assert len(dues_selector.buyers_with_dues(business_id)) == 2
        names = [d.name for d in dues_selector.buyers_with_dues(business_id, include_inactive=False)]
        assert names == ["Active Co"]

    def test_businesses_do_not_mix(
        self, buyer, make_lot, make_bid, settle_bid, dues_selector, other_business_id
    ):
        settle_bid(make_bid(make_lot(), 40), "2040")
        assert dues_selector.buyers_with_dues(other_business_id) == []
