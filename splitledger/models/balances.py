"""
Balance View Models

Read-side results returned by the aggregator and the activity feed.
Every view is plain structured data; any presentation layer can
`model_dump()` it. Sign convention throughout: a positive net means the
counterparty owes the subject.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, computed_field

from splitledger.models.ledger import Expense, Settlement


# =============================================================================
# ALL COUNTERPARTIES (dashboard)
# =============================================================================

class CounterpartyBalance(BaseModel):
    """One non-zero balance against a single counterparty."""

    participant_id: str
    name: str
    image_url: Optional[str] = None
    amount: Decimal = Field(..., ge=0, description="Magnitude of the balance")


class OweDetails(BaseModel):
    you_owe: list[CounterpartyBalance] = Field(default_factory=list)
    you_are_owed_by: list[CounterpartyBalance] = Field(default_factory=list)


class UserBalances(BaseModel):
    """
    Net position of a user against everyone, ungrouped records only.

    Both lists are sorted by descending amount.
    """

    you_owe: Decimal = Decimal("0")
    you_are_owed: Decimal = Decimal("0")
    total_balance: Decimal = Decimal("0")
    owe_details: OweDetails = Field(default_factory=OweDetails)

    def net_with(self, participant_id: str) -> Decimal:
        """Signed balance against one counterparty (zero if not listed)."""
        for entry in self.owe_details.you_are_owed_by:
            if entry.participant_id == participant_id:
                return entry.amount
        for entry in self.owe_details.you_owe:
            if entry.participant_id == participant_id:
                return -entry.amount
        return Decimal("0")


# =============================================================================
# PAIRWISE
# =============================================================================

class CounterpartyInfo(BaseModel):
    participant_id: str
    name: str
    email: Optional[str] = None
    image_url: Optional[str] = None


class PairBalance(BaseModel):
    """Shared history and net balance between two participants."""

    counterparty: CounterpartyInfo
    expenses: list[Expense] = Field(default_factory=list)
    settlements: list[Settlement] = Field(default_factory=list)
    net_balance: Decimal = Decimal("0")

    @computed_field
    @property
    def you_are_owed(self) -> Decimal:
        return max(Decimal("0"), self.net_balance)

    @computed_field
    @property
    def you_owe(self) -> Decimal:
        return max(Decimal("0"), -self.net_balance)


# =============================================================================
# GROUP-SCOPED
# =============================================================================

class GroupInfo(BaseModel):
    id: str
    name: str
    description: Optional[str] = None


class MemberBalance(BaseModel):
    """The caller's balance against one other group member."""

    participant_id: str
    name: str
    image_url: Optional[str] = None
    you_are_owed: Decimal = Field(..., ge=0)
    you_owe: Decimal = Field(..., ge=0)
    net_balance: Decimal


class GroupBalances(BaseModel):
    group: GroupInfo
    balances: list[MemberBalance] = Field(default_factory=list)

    @computed_field
    @property
    def total(self) -> Decimal:
        return sum((entry.net_balance for entry in self.balances), Decimal("0"))


class GroupSummary(BaseModel):
    """One row of the caller's group list."""

    id: str
    name: str
    description: Optional[str] = None
    member_count: int = Field(..., ge=0)
    balance: Decimal


# =============================================================================
# ACTIVITY & SPENDING
# =============================================================================

class ActivityItem(BaseModel):
    """An expense enriched with display names."""

    expense: Expense
    payer_name: str
    group_name: Optional[str] = None

    @property
    def expense_id(self) -> UUID:
        return self.expense.id

    @property
    def date(self) -> datetime:
        return self.expense.date


class MonthlySpending(BaseModel):
    month: int = Field(..., ge=1, le=12)
    total: Decimal = Decimal("0")
