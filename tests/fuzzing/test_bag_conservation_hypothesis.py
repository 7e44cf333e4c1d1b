"""
Hypothesis-based fuzzing of the lot ledger and the settlement calculator.

Properties:
- Bag conservation: after any sequence of bids, bid edits and deletes,
  settlements, reversals, corrections and returns, remaining_bags stays
  within [0, ceiling], and equals ceiling minus the bags held by pending
  bids and active transactions (until a returned lot is re-opened by a
  reversal, which adds bags back to the ceiling on purpose).
- Rejected operations leave the lot exactly as it was.
- Settlement totals are the sums of their rounded components, for any
  weight, price and rate combination.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from mandi_kernel.domain.charges import ChargeConfig, SettlementOptions
from mandi_kernel.domain.dtos import BidView, LotView
from mandi_kernel.domain.settlement import settle
from mandi_kernel.exceptions import MandiKernelError

LOT_BAGS = 100

operations = st.lists(
    st.one_of(
        st.tuples(st.just("bid"), st.integers(min_value=1, max_value=60)),
        st.tuples(
            st.just("edit"),
            st.integers(min_value=0, max_value=9),
            st.integers(min_value=1, max_value=60),
        ),
        st.tuples(st.just("delete"), st.integers(min_value=0, max_value=9)),
        st.tuples(st.just("settle"), st.integers(min_value=0, max_value=9)),
        st.tuples(st.just("reverse"), st.integers(min_value=0, max_value=9)),
        st.tuples(st.just("correct"), st.integers(min_value=0, max_value=LOT_BAGS)),
        st.tuples(st.just("return")),
    ),
    max_size=15,
)


def _lot_view(number_of_bags: int, freight_rate: Decimal | None) -> LotView:
    return LotView(
        id=uuid4(),
        business_id="fuzz",
        lot_code="POT2024011501",
        serial_number=1,
        farmer_id=uuid4(),
        lot_date=date(2024, 1, 15),
        crop="Potato",
        variety=None,
        size="Large",
        bag_marka=None,
        vehicle_number=None,
        number_of_bags=number_of_bags,
        actual_number_of_bags=None,
        remaining_bags=number_of_bags,
        vehicle_bhada_rate=freight_rate,
        initial_total_weight=None,
        is_returned=False,
        version=1,
    )


def _bid_view(lot: LotView, bags: int, price: Decimal) -> BidView:
    return BidView(
        id=uuid4(),
        business_id=lot.business_id,
        lot_id=lot.id,
        buyer_id=uuid4(),
        bid_date=lot.lot_date,
        price_per_kg=price,
        number_of_bags=bags,
        grade="Large",
    )


def _outstanding_bags(lot_selector, ledger_selector, business_id, lot_id) -> int:
    pending = lot_selector.list_bids(business_id, lot_id=lot_id, pending_only=True)
    active = [
        t
        for t in ledger_selector.list_transactions(business_id, include_reversed=False)
        if t.lot_id == lot_id
    ]
    return sum(b.number_of_bags for b in pending) + sum(t.number_of_bags for t in active)


class TestBagConservation:

    @given(ops=operations)
    @settings(
        max_examples=30,
        deadline=None,
        suppress_health_check=[HealthCheck.function_scoped_fixture, HealthCheck.too_slow],
    )
    def test_remaining_bags_always_balance(
        self,
        ops,
        make_lot,
        make_bid,
        bid_service,
        transaction_service,
        lot_service,
        lot_selector,
        ledger_selector,
        business_id,
        test_actor_id,
    ):
        lot = make_lot(number_of_bags=LOT_BAGS)
        bids: list = []
        bag_counts: dict = {}
        transactions: list = []
        reopened = False

        for op in ops:
            before = lot_selector.get_lot(business_id, lot.id)
            try:
                kind = op[0]
                if kind == "bid":
                    bid = make_bid(lot, op[1])
                    bids.append(bid.id)
                    bag_counts[bid.id] = bid.number_of_bags
                elif kind == "edit" and bids:
                    bid_id = bids[op[1] % len(bids)]
                    bid_service.update_bid(
                        business_id, bid_id, actor_id=test_actor_id, number_of_bags=op[2]
                    )
                    bag_counts[bid_id] = op[2]
                elif kind == "delete" and bids:
                    bid_id = bids[op[1] % len(bids)]
                    bid_service.delete_bid(business_id, bid_id, actor_id=test_actor_id)
                    bids.remove(bid_id)
                elif kind == "settle" and bids:
                    bid_id = bids[op[1] % len(bids)]
                    tx = transaction_service.create_transaction(
                        business_id,
                        bid_id,
                        bag_counts[bid_id] * 50,
                        actor_id=test_actor_id,
                    )
                    transactions.append(tx.id)
                elif kind == "reverse" and transactions:
                    tx_id = transactions[op[1] % len(transactions)]
                    transaction_service.reverse_transaction(
                        business_id, tx_id, actor_id=test_actor_id
                    )
                    if before.is_returned:
                        reopened = True
                elif kind == "correct":
                    lot_service.edit_lot(
                        business_id, lot.id, actor_id=test_actor_id, actual_number_of_bags=op[1]
                    )
                elif kind == "return":
                    lot_service.return_to_farmer(business_id, lot.id, actor_id=test_actor_id)
            except MandiKernelError:
                after_rejection = lot_selector.get_lot(business_id, lot.id)
                assert after_rejection == before

            current = lot_selector.get_lot(business_id, lot.id)
            assert 0 <= current.remaining_bags <= current.ceiling
            if not reopened:
                outstanding = _outstanding_bags(
                    lot_selector, ledger_selector, business_id, lot.id
                )
                assert current.remaining_bags == current.ceiling - outstanding


class TestSettlementArithmetic:

    @given(
        bags=st.integers(min_value=1, max_value=500),
        kg_per_bag=st.decimals(min_value="1.01", max_value="120", places=2),
        price=st.decimals(min_value="0.01", max_value="200", places=2),
        rates=st.fixed_dictionaries(
            {
                name: st.decimals(min_value="0", max_value="25", places=2)
                for name in ChargeConfig.field_names()
            }
        ),
        freight=st.one_of(st.none(), st.decimals(min_value="0", max_value="50", places=2)),
        grading=st.booleans(),
    )
    @settings(max_examples=200)
    def test_totals_are_component_sums(
        self, bags, kg_per_bag, price, rates, freight, grading
    ):
        lot = _lot_view(LOT_BAGS * 5, freight)
        bid = _bid_view(lot, bags, price)
        options = SettlementOptions(apply_farmer_grading=grading, apply_buyer_grading=grading)

        draft = settle(bid, lot, kg_per_bag * bags, ChargeConfig.from_dict(rates), options)

        assert draft.total_payable_to_farmer == draft.gross_amount - draft.farmer_deductions
        assert draft.total_receivable_from_buyer == draft.gross_amount + draft.buyer_additions
        for amount in (draft.gross_amount, draft.hammali_farmer, draft.aadhat_buyer):
            assert amount == amount.quantize(Decimal("0.01"))
        assert settle(bid, lot, kg_per_bag * bags, ChargeConfig.from_dict(rates), options) == draft
