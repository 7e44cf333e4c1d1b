"""
Charges -- Charge rates and charge models for settlement.

Responsibility:
    Defines the value objects the settlement calculator consumes:
    ``ChargeConfig`` (every recognised per-bag and percentage rate, with
    zero defaults), the two commission models (``SplitCharges`` and the
    legacy ``UnifiedCharges``) and the per-settlement ``SettlementOptions``.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - ChargeConfig rejects unknown rate keys and negative or non-numeric
      rates with ValidationError.
    - The commission model is an explicit tagged variant resolved once per
      settlement.  The calculator never branches on field presence.

Failure modes:
    - ValidationError from ChargeConfig.from_dict / ChargeConfig(...).
    - ValidationError from UnifiedCharges on an unknown ``charged_to``.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from decimal import Decimal
from typing import Any, Mapping, Union

from mandi_kernel.db.types import ZERO, to_decimal
from mandi_kernel.domain.dtos import ChargeModelTag
from mandi_kernel.exceptions import ValidationError

CHARGED_TO_BUYER = "buyer"
CHARGED_TO_SELLER = "seller"


def _rate(name: str, value: Any) -> Decimal:
    try:
        rate = to_decimal(value)
    except ValueError:
        raise ValidationError(name, f"must be numeric, got {value!r}") from None
    if rate < 0:
        raise ValidationError(name, "must not be negative")
    return rate


@dataclass(frozen=True)
class ChargeConfig:
    """
    Business charge rates snapshotted into every transaction.

    Per-bag rates are rupees per bag; percentages apply to the gross amount.
    """

    hammali_farmer_per_bag: Decimal = ZERO
    hammali_buyer_per_bag: Decimal = ZERO
    grading_farmer_per_bag: Decimal = ZERO
    grading_buyer_per_bag: Decimal = ZERO
    aadhat_farmer_percent: Decimal = ZERO
    aadhat_buyer_percent: Decimal = ZERO
    mandi_farmer_percent: Decimal = ZERO
    mandi_buyer_percent: Decimal = ZERO

    def __post_init__(self) -> None:
        for f in fields(self):
            object.__setattr__(self, f.name, _rate(f.name, getattr(self, f.name)))

    @classmethod
    def field_names(cls) -> tuple[str, ...]:
        return tuple(f.name for f in fields(cls))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> ChargeConfig:
        """Build a config from a loose mapping, rejecting unknown keys."""
        data = dict(data or {})
        known = set(cls.field_names())
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValidationError(
                "charge_config", f"unknown keys: {', '.join(unknown)}"
            )
        return cls(**data)

    def with_overrides(self, overrides: Mapping[str, Any] | None) -> ChargeConfig:
        """Return a copy with some rates replaced.  Unknown keys are rejected."""
        if not overrides:
            return self
        unknown = sorted(set(overrides) - set(self.field_names()))
        if unknown:
            raise ValidationError(
                "charge_config", f"unknown keys: {', '.join(unknown)}"
            )
        return replace(self, **dict(overrides))

    def to_dict(self) -> dict[str, Decimal]:
        return {name: getattr(self, name) for name in self.field_names()}


@dataclass(frozen=True)
class SplitCharges:
    """Dual-percent model: each side pays its own aadhat and mandi percent."""

    tag: ChargeModelTag = field(default=ChargeModelTag.SPLIT, init=False)


@dataclass(frozen=True)
class UnifiedCharges:
    """
    Legacy single-sided model.

    The whole aadhat + mandi commission, computed on gross, is charged to
    one side: the buyer (added to receivable) or the seller (deducted from
    payable).  The other side pays no commission.
    """

    charged_to: str
    aadhat_percent: Decimal = ZERO
    mandi_percent: Decimal = ZERO
    tag: ChargeModelTag = field(default=ChargeModelTag.UNIFIED, init=False)

    def __post_init__(self) -> None:
        if self.charged_to not in (CHARGED_TO_BUYER, CHARGED_TO_SELLER):
            raise ValidationError(
                "charged_to",
                f"must be '{CHARGED_TO_BUYER}' or '{CHARGED_TO_SELLER}', "
                f"got {self.charged_to!r}",
            )
        object.__setattr__(
            self, "aadhat_percent", _rate("aadhat_percent", self.aadhat_percent)
        )
        object.__setattr__(
            self, "mandi_percent", _rate("mandi_percent", self.mandi_percent)
        )


ChargeModel = Union[SplitCharges, UnifiedCharges]


def resolve_percentages(config: ChargeConfig, model: ChargeModel) -> ChargeConfig:
    """
    Fold the commission model into effective per-side percentages.

    Per-bag rates pass through unchanged.  The result is what gets
    snapshotted on the transaction.
    """
    if isinstance(model, SplitCharges):
        return config
    if model.charged_to == CHARGED_TO_BUYER:
        return replace(
            config,
            aadhat_farmer_percent=ZERO,
            mandi_farmer_percent=ZERO,
            aadhat_buyer_percent=model.aadhat_percent,
            mandi_buyer_percent=model.mandi_percent,
        )
    return replace(
        config,
        aadhat_farmer_percent=model.aadhat_percent,
        mandi_farmer_percent=model.mandi_percent,
        aadhat_buyer_percent=ZERO,
        mandi_buyer_percent=ZERO,
    )


@dataclass(frozen=True)
class SettlementOptions:
    """
    Per-settlement switches.

    Grading is opt-in per transaction even when a business-wide grading
    rate exists.
    """

    apply_farmer_grading: bool = False
    apply_buyer_grading: bool = False
    charge_model: ChargeModel = field(default_factory=SplitCharges)
