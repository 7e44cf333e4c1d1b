"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    Defines the immutable views that services and selectors hand back to
    callers: parties, lots, bids, transactions, cash entries and bank
    accounts, plus the result objects of the terminal operations
    (ReturnResult, ReversalResult) and the derived read models (dues,
    balances, allocations, ledgers).

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Free of ORM dependencies.  ORM models build these through ``to_dto()``.

Invariants enforced:
    - Every view is a frozen dataclass; callers cannot mutate ledger state
      through a returned object.
    - Monetary fields are Decimal, never float.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

CHEQUE_BOUNCED = "Cheque Bounced"


class CashCategory(str, Enum):
    """Direction family of a cash movement."""

    INWARD = "inward"
    OUTWARD = "outward"
    TRANSFER = "transfer"


class CashEntryType(str, Enum):
    """
    Fine-grained cash movement type.

    Contract:
        inward -> CASH_IN, outward -> CASH_OUT,
        transfer -> CASH_TO_ACCOUNT or ACCOUNT_TO_CASH.
    """

    CASH_IN = "cash_in"
    CASH_OUT = "cash_out"
    CASH_TO_ACCOUNT = "cash_to_account"
    ACCOUNT_TO_CASH = "account_to_cash"


class PaymentMode(str, Enum):
    CASH = "Cash"
    ONLINE = "Online"
    CHEQUE = "Cheque"


class OutflowType(str, Enum):
    """Purpose of an outward payment."""

    FARMER_PAYMENT = "Farmer Payment"
    HAMMALI = "Hammali"
    EXTRA_CHARGES = "Extra Charges"
    MANDI_COMMISSION = "Mandi Commission"
    OTHER = "Other"


class ChargeModelTag(str, Enum):
    SPLIT = "split"
    UNIFIED = "unified"


class PaymentStatus(str, Enum):
    PAID = "paid"
    PARTIAL = "partial"
    DUE = "due"


# ---------------------------------------------------------------------------
# Parties
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FarmerView:
    id: UUID
    business_id: str
    farmer_code: str
    name: str
    phone: str | None
    village: str | None
    opening_balance: Decimal
    is_archived: bool


@dataclass(frozen=True)
class BuyerView:
    id: UUID
    business_id: str
    buyer_code: str
    name: str
    phone: str | None
    opening_balance: Decimal
    is_active: bool


# ---------------------------------------------------------------------------
# Lots and bids
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LotView:
    """
    Snapshot of a lot's bag inventory.

    ``ceiling`` is the bag count bids are allocated against: the actual
    count when a correction exists, otherwise the original count.
    """

    id: UUID
    business_id: str
    lot_code: str
    serial_number: int
    farmer_id: UUID
    lot_date: date
    crop: str
    variety: str | None
    size: str
    bag_marka: str | None
    vehicle_number: str | None
    number_of_bags: int
    actual_number_of_bags: int | None
    remaining_bags: int
    vehicle_bhada_rate: Decimal | None
    initial_total_weight: Decimal | None
    is_returned: bool
    version: int

    @property
    def ceiling(self) -> int:
        if self.actual_number_of_bags is not None:
            return self.actual_number_of_bags
        return self.number_of_bags

    @property
    def sold_bags(self) -> int:
        return self.ceiling - self.remaining_bags


@dataclass(frozen=True)
class BidView:
    id: UUID
    business_id: str
    lot_id: UUID
    buyer_id: UUID
    bid_date: date
    price_per_kg: Decimal
    number_of_bags: int
    grade: str


@dataclass(frozen=True)
class ReturnResult:
    """Outcome of returning a lot to its farmer."""

    lot_id: UUID
    sold_bags: int


# ---------------------------------------------------------------------------
# Transactions
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TransactionView:
    id: UUID
    business_id: str
    transaction_code: str
    bid_id: UUID
    lot_id: UUID
    buyer_id: UUID
    farmer_id: UUID
    transaction_date: date
    number_of_bags: int
    total_weight: Decimal
    net_weight: Decimal
    price_per_kg: Decimal
    gross_amount: Decimal
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
    hammali_farmer: Decimal
    grading_farmer: Decimal
    aadhat_farmer: Decimal
    mandi_farmer: Decimal
    freight_farmer: Decimal
    hammali_buyer: Decimal
    grading_buyer: Decimal
    aadhat_buyer: Decimal
    mandi_buyer: Decimal
    total_payable_to_farmer: Decimal
    total_receivable_from_buyer: Decimal
    is_reversed: bool
    reversed_at: datetime | None


@dataclass(frozen=True)
class ReversalResult:
    """Outcome of reversing a transaction."""

    transaction_id: UUID
    lot_id: UUID
    bags_returned: int
    lot_remaining_bags: int


# ---------------------------------------------------------------------------
# Cash
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CashEntryView:
    id: UUID
    business_id: str
    cash_flow_code: str
    category: str
    entry_type: str
    outflow_type: str | None
    farmer_id: UUID | None
    buyer_id: UUID | None
    bank_account_id: UUID | None
    transaction_id: UUID | None
    amount: Decimal
    payment_mode: str
    cheque_number: str | None
    cheque_date: date | None
    bank_name: str | None
    entry_date: date
    party_name: str | None
    notes: str | None
    is_reversed: bool
    reversed_at: datetime | None
    reversal_reason: str | None

    @property
    def is_bounced(self) -> bool:
        """A reversal annotated as a bounced cheque. Display only."""
        return self.is_reversed and self.reversal_reason == CHEQUE_BOUNCED


@dataclass(frozen=True)
class BankAccountView:
    id: UUID
    business_id: str
    name: str
    account_type: str
    opening_balance: Decimal


# ---------------------------------------------------------------------------
# Derived read models
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FarmerDues:
    farmer_id: UUID
    farmer_code: str
    name: str
    opening_balance: Decimal
    total_payable: Decimal
    total_paid: Decimal
    due: Decimal
    sales_count: int


@dataclass(frozen=True)
class BuyerDues:
    buyer_id: UUID
    buyer_code: str
    name: str
    opening_balance: Decimal
    total_receivable: Decimal
    total_received: Decimal
    receivable_due: Decimal
    overall_due: Decimal
    bid_dates: tuple[date, ...] = ()


@dataclass(frozen=True)
class AccountBalance:
    bank_account_id: UUID
    name: str
    account_type: str
    opening_balance: Decimal
    balance: Decimal


@dataclass(frozen=True)
class CashSummary:
    """Cash-in-hand pool and per-account balances, plus active totals."""

    cash_in_hand: Decimal
    bank_total: Decimal
    total_inward: Decimal
    total_outward: Decimal
    accounts: tuple[AccountBalance, ...] = ()


@dataclass(frozen=True)
class LotGroup:
    """A lot with its pending bids and every transaction settled from it."""

    lot: LotView
    pending_bids: tuple[BidView, ...] = ()
    transactions: tuple[TransactionView, ...] = ()


@dataclass(frozen=True)
class PaymentAllocation:
    transaction_id: UUID
    transaction_code: str
    transaction_date: date
    amount: Decimal
    paid_amount: Decimal
    status: PaymentStatus

    @property
    def outstanding(self) -> Decimal:
        return self.amount - self.paid_amount


@dataclass(frozen=True)
class ChargeAggregates:
    total_hammali: Decimal
    total_mandi_commission: Decimal
    total_aadhat_commission: Decimal
    hammali_paid: Decimal
    mandi_commission_paid: Decimal
    extra_charges_paid: Decimal

    @property
    def hammali_due(self) -> Decimal:
        return self.total_hammali - self.hammali_paid

    @property
    def mandi_commission_due(self) -> Decimal:
        return self.total_mandi_commission - self.mandi_commission_paid


@dataclass(frozen=True)
class PartyLedger:
    """Statement for one farmer or buyer over an optional date window."""

    party_id: UUID
    party_code: str
    name: str
    date_from: date | None
    date_to: date | None
    transactions: tuple[TransactionView, ...] = field(default_factory=tuple)
    cash_entries: tuple[CashEntryView, ...] = field(default_factory=tuple)
