"""
Circulation Module for Librarium

Loan lifecycle and the stock bookkeeping tied to it:
- InventoryController: conditional availability updates
- LoanService: loan state machine, ledger queries and statistics
"""

from librarium.circulation.inventory import InventoryController
from librarium.circulation.loans import LoanService, as_naive_utc, parse_status

__all__ = [
    "InventoryController",
    "LoanService",
    "as_naive_utc",
    "parse_status",
]
