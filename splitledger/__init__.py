"""
SplitLedger - Source Package

A shared-expense ledger that tracks who paid for what among participants,
pairwise and within groups, and reconciles it into net balances on demand.

DESIGN PRINCIPLES:
1. Records are immutable; balances are always re-derived from them
2. Fail early, fail visibly
3. No silent corrections
4. One settlement sign convention, shared by every component
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "SplitLedger Team"
