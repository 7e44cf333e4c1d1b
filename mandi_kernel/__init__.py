"""
Mandi Kernel

Lot inventory and transaction settlement engine for agricultural commodity
mandis:
- Bag-inventory state machine on farmer lots
- Bid reservation and settlement into transactions with charge splits
- Terminal reversals (transactions, cash entries, cheque bounces)
- Dues and cash balances derived on read, never stored
"""

__version__ = "0.1.0"
