"""
Settlement -- Pure conversion of a bid into a transaction draft.

Responsibility:
    Computes net weight, gross amount and the two-sided charge breakdown
    (farmer deductions, buyer additions) for one bid, from a ChargeConfig,
    a commission model and the lot's freight terms.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O, no clock reads.
    Called by TransactionService on create and on update.

Invariants enforced:
    - Determinism: identical inputs yield an identical TransactionDraft.
    - Every charge component is rounded to two places (ROUND_HALF_UP) and
      both totals are sums of the rounded components.
    - Net weight is strictly positive: total_weight must exceed the bag
      count (one kilogram of tare per bag).

Failure modes:
    - ValidationError if total_weight is absent, non-numeric, <= 0, or
      <= number_of_bags.
    - ValidationError if the bid has no bags or no positive price.

Data flow:
    BidView + LotView + ChargeConfig + SettlementOptions -> TransactionDraft
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from mandi_kernel.db.types import HUNDRED, ZERO, round_money, to_decimal
from mandi_kernel.domain.charges import (
    ChargeConfig,
    SettlementOptions,
    UnifiedCharges,
    resolve_percentages,
)
from mandi_kernel.domain.dtos import BidView, LotView
from mandi_kernel.exceptions import ValidationError


@dataclass(frozen=True)
class TransactionDraft:
    """Every financial field of a transaction, ready to persist."""

    number_of_bags: int
    price_per_kg: Decimal
    total_weight: Decimal
    net_weight: Decimal
    gross_amount: Decimal

    # Rates as snapshotted (after resolving the commission model)
    hammali_farmer_per_bag: Decimal
    hammali_buyer_per_bag: Decimal
    grading_farmer_per_bag: Decimal
    grading_buyer_per_bag: Decimal
    aadhat_farmer_percent: Decimal
    aadhat_buyer_percent: Decimal
    mandi_farmer_percent: Decimal
    mandi_buyer_percent: Decimal
    charge_model: str
    charged_to: str | None
    apply_farmer_grading: bool
    apply_buyer_grading: bool

    # Farmer deductions
    hammali_farmer: Decimal
    grading_farmer: Decimal
    aadhat_farmer: Decimal
    mandi_farmer: Decimal
    freight_farmer: Decimal

    # Buyer additions
    hammali_buyer: Decimal
    grading_buyer: Decimal
    aadhat_buyer: Decimal
    mandi_buyer: Decimal

    total_payable_to_farmer: Decimal
    total_receivable_from_buyer: Decimal

    @property
    def farmer_deductions(self) -> Decimal:
        return (
            self.hammali_farmer
            + self.grading_farmer
            + self.aadhat_farmer
            + self.mandi_farmer
            + self.freight_farmer
        )

    @property
    def buyer_additions(self) -> Decimal:
        return (
            self.hammali_buyer
            + self.grading_buyer
            + self.aadhat_buyer
            + self.mandi_buyer
        )


def _total_weight(value: Any, bags: int) -> Decimal:
    if value is None or value == "":
        raise ValidationError("total_weight", "is required")
    try:
        weight = to_decimal(value)
    except ValueError:
        raise ValidationError(
            "total_weight", f"must be numeric, got {value!r}"
        ) from None
    if weight <= 0:
        raise ValidationError("total_weight", "must be positive")
    if weight <= bags:
        raise ValidationError(
            "total_weight",
            f"must exceed the bag count ({bags}) so net weight is positive",
        )
    return weight


def freight_for(lot: LotView, bags: int) -> Decimal:
    """
    Freight charged to the farmer for ``bags`` bags of ``lot``.

    The lot's freight is quoted per original bag.  When a correction left
    fewer (or more) bags than were loaded, the whole freight is spread over
    the bags actually present.
    """
    rate = lot.vehicle_bhada_rate or ZERO
    if rate == 0:
        return ZERO
    original = lot.number_of_bags
    actual = lot.actual_number_of_bags
    if actual is None or actual == original:
        return round_money(rate * bags)
    if actual <= 0:
        return ZERO
    return round_money(rate * bags * Decimal(original) / Decimal(actual))


def _percent_of(amount: Decimal, percent: Decimal) -> Decimal:
    return round_money(amount * percent / HUNDRED)


def settle(
    bid: BidView,
    lot: LotView,
    total_weight: Any,
    charge_config: ChargeConfig | None = None,
    options: SettlementOptions | None = None,
) -> TransactionDraft:
    """
    Convert a bid into a transaction draft.

    Args:
        bid: The bid being settled (bags and price are taken from it).
        lot: The lot the bid was placed on (freight terms).
        total_weight: Weighed kilograms including bag tare.
        charge_config: Rates to apply.  Defaults to all-zero rates.
        options: Grading toggles and commission model.

    Returns:
        TransactionDraft with all components rounded to two places.

    Raises:
        ValidationError: On a missing or non-positive weight, or a bid
            without bags or price.
    """
    config = charge_config or ChargeConfig()
    options = options or SettlementOptions()

    bags = bid.number_of_bags
    if bags is None or bags <= 0:
        raise ValidationError("number_of_bags", "must be positive")
    price = to_decimal(bid.price_per_kg)
    if price <= 0:
        raise ValidationError("price_per_kg", "must be positive")

    weight = _total_weight(total_weight, bags)
    rates = resolve_percentages(config, options.charge_model)

    net_weight = round_money(weight - bags)
    gross = round_money(net_weight * price)
    bag_count = Decimal(bags)

    hammali_farmer = round_money(rates.hammali_farmer_per_bag * bag_count)
    grading_farmer = (
        round_money(rates.grading_farmer_per_bag * bag_count)
        if options.apply_farmer_grading
        else ZERO
    )
    aadhat_farmer = _percent_of(gross, rates.aadhat_farmer_percent)
    mandi_farmer = _percent_of(gross, rates.mandi_farmer_percent)
    freight_farmer = freight_for(lot, bags)

    hammali_buyer = round_money(rates.hammali_buyer_per_bag * bag_count)
    grading_buyer = (
        round_money(rates.grading_buyer_per_bag * bag_count)
        if options.apply_buyer_grading
        else ZERO
    )
    aadhat_buyer = _percent_of(gross, rates.aadhat_buyer_percent)
    mandi_buyer = _percent_of(gross, rates.mandi_buyer_percent)

    payable = gross - (
        hammali_farmer + grading_farmer + aadhat_farmer + mandi_farmer + freight_farmer
    )
    receivable = gross + hammali_buyer + grading_buyer + aadhat_buyer + mandi_buyer

    model = options.charge_model
    charged_to = model.charged_to if isinstance(model, UnifiedCharges) else None

    return TransactionDraft(
        number_of_bags=bags,
        price_per_kg=price,
        total_weight=round_money(weight),
        net_weight=net_weight,
        gross_amount=gross,
        hammali_farmer_per_bag=rates.hammali_farmer_per_bag,
        hammali_buyer_per_bag=rates.hammali_buyer_per_bag,
        grading_farmer_per_bag=rates.grading_farmer_per_bag,
        grading_buyer_per_bag=rates.grading_buyer_per_bag,
        aadhat_farmer_percent=rates.aadhat_farmer_percent,
        aadhat_buyer_percent=rates.aadhat_buyer_percent,
        mandi_farmer_percent=rates.mandi_farmer_percent,
        mandi_buyer_percent=rates.mandi_buyer_percent,
        charge_model=model.tag.value,
        charged_to=charged_to,
        apply_farmer_grading=options.apply_farmer_grading,
        apply_buyer_grading=options.apply_buyer_grading,
        hammali_farmer=hammali_farmer,
        grading_farmer=grading_farmer,
        aadhat_farmer=aadhat_farmer,
        mandi_farmer=mandi_farmer,
        freight_farmer=freight_farmer,
        hammali_buyer=hammali_buyer,
        grading_buyer=grading_buyer,
        aadhat_buyer=aadhat_buyer,
        mandi_buyer=mandi_buyer,
        total_payable_to_farmer=round_money(payable),
        total_receivable_from_buyer=round_money(receivable),
    )
