"""Pure domain layer - value objects, settlement and time."""

from mandi_kernel.domain.charges import (
    ChargeConfig,
    ChargeModel,
    SettlementOptions,
    SplitCharges,
    UnifiedCharges,
)
from mandi_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from mandi_kernel.domain.settlement import TransactionDraft, settle

__all__ = [
    "ChargeConfig",
    "ChargeModel",
    "SettlementOptions",
    "SplitCharges",
    "UnifiedCharges",
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "TransactionDraft",
    "settle",
]
