"""
Data Models Package

This package contains all Pydantic models used in SplitLedger.
All data flowing through the system must conform to these schemas.
"""

from splitledger.models.ledger import (
    Expense,
    ExpenseDraft,
    Group,
    Participant,
    Settlement,
    SettlementDraft,
    Split,
    SplitDraft,
    SplitType,
)
from splitledger.models.balances import (
    ActivityItem,
    CounterpartyBalance,
    CounterpartyInfo,
    GroupBalances,
    GroupInfo,
    GroupSummary,
    MemberBalance,
    MonthlySpending,
    OweDetails,
    PairBalance,
    UserBalances,
)
from splitledger.models.events import (
    LedgerEvent,
    LedgerEventBuilder,
    LedgerEventSeverity,
    LedgerEventType,
)

__all__ = [
    # Ledger records
    "Expense",
    "ExpenseDraft",
    "Group",
    "Participant",
    "Settlement",
    "SettlementDraft",
    "Split",
    "SplitDraft",
    "SplitType",
    # Balance views
    "ActivityItem",
    "CounterpartyBalance",
    "CounterpartyInfo",
    "GroupBalances",
    "GroupInfo",
    "GroupSummary",
    "MemberBalance",
    "MonthlySpending",
    "OweDetails",
    "PairBalance",
    "UserBalances",
    # Events
    "LedgerEvent",
    "LedgerEventBuilder",
    "LedgerEventSeverity",
    "LedgerEventType",
]
