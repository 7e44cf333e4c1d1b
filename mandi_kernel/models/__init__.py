"""ORM models.  Importing this package registers every table on Base.metadata."""

from mandi_kernel.models.cash import BankAccount, CashEntry, CashSettings
from mandi_kernel.models.charge_settings import ChargeSettings
from mandi_kernel.models.lot import Bid, Lot
from mandi_kernel.models.party import Buyer, Farmer
from mandi_kernel.models.sequence import SequenceCounter
from mandi_kernel.models.transaction import SaleTransaction

__all__ = [
    "BankAccount",
    "Bid",
    "Buyer",
    "CashEntry",
    "CashSettings",
    "ChargeSettings",
    "Farmer",
    "Lot",
    "SaleTransaction",
    "SequenceCounter",
]
