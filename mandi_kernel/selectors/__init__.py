"""Selectors for the mandi kernel (read side)."""

from mandi_kernel.selectors.cash_selector import CashSelector
from mandi_kernel.selectors.dues_selector import DuesSelector
from mandi_kernel.selectors.ledger_selector import LedgerSelector
from mandi_kernel.selectors.lot_selector import LotSelector

__all__ = [
    "CashSelector",
    "DuesSelector",
    "LedgerSelector",
    "LotSelector",
]
