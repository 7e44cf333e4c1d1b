"""Services for the mandi kernel (write side)."""

from mandi_kernel.services.bid_service import BidService
from mandi_kernel.services.cash_service import CashService
from mandi_kernel.services.charge_settings_service import ChargeSettingsService
from mandi_kernel.services.lot_service import LotService
from mandi_kernel.services.party_service import PartyService
from mandi_kernel.services.sequence_service import SequenceService
from mandi_kernel.services.transaction_service import TransactionService

__all__ = [
    "BidService",
    "CashService",
    "ChargeSettingsService",
    "LotService",
    "PartyService",
    "SequenceService",
    "TransactionService",
]
