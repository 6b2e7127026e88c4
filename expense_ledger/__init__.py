"""
Expense Ledger

Personal expense bookkeeping engine: account balances that never go
below zero, recurring expenses that catch up on missed occurrences,
and rolling-window budget evaluation.

DESIGN PRINCIPLES:
1. Money is exact (two-place Decimal, never float)
2. A posting and its balance change land together or not at all
3. Fail early, fail visibly; no silent defaults for missing accounts
4. Storage layer is swappable
5. No global state; each session owns its context
"""

__version__ = "1.0.0"
__author__ = "Expense Ledger Team"
