"""
Core Ledger Models for SplitLedger

These models define the strict schemas for the records the ledger keeps.
They are designed to:
1. Be immutable once created (frozen models)
2. Carry money as Decimal, never float
3. Be serializable for storage and logging
4. Keep external references (participants, groups) opaque

DESIGN DECISION: Input drafts are deliberately permissive.
A draft may carry a negative amount or an unknown split type; the validators
own those checks and report them as ledger errors. Only the stored record
models enforce the invariants at the type level.
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


def to_naive_utc(value: datetime) -> datetime:
    """Ledger dates are naive UTC; aware values are converted, naive ones kept."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class SplitType(str, Enum):
    """
    How an expense was divided.

    The split type is informational: the stored split amounts are
    authoritative for every balance computation.
    """
    EQUAL = "equal"
    PERCENTAGE = "percentage"
    EXACT = "exact"


# =============================================================================
# EXTERNALLY OWNED ENTITIES (read-only here)
# =============================================================================

class Participant(BaseModel):
    """A person as known to the identity service."""
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=200)
    email: Optional[str] = None
    image_url: Optional[str] = None


class Group(BaseModel):
    """
    A named scope with a fixed member set.

    Membership is managed elsewhere; the ledger only reads it.
    """
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    members: frozenset[str] = Field(default_factory=frozenset)

    def is_member(self, participant_id: str) -> bool:
        return participant_id in self.members


# =============================================================================
# LEDGER RECORDS
# =============================================================================

class Split(BaseModel):
    """
    One participant's share of an expense.

    CRITICAL: `paid` is fixed at creation time. Settlements never flip it;
    they only move the aggregate net between two parties.
    """
    model_config = ConfigDict(frozen=True)

    participant_id: str = Field(..., min_length=1)
    amount: Decimal = Field(..., gt=0)
    paid: bool = False


class Expense(BaseModel):
    """
    A recorded outlay with a payer and a breakdown of who owes what.

    Immutable. Deleted only by its creator or its payer.
    """
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    description: str = Field(..., max_length=500)
    amount: Decimal = Field(..., gt=0)
    category: str = Field(default="Other", min_length=1, max_length=100)
    date: datetime
    payer_id: str = Field(..., min_length=1)
    split_type: SplitType
    splits: tuple[Split, ...] = Field(..., min_length=1)
    group_id: Optional[str] = None
    created_by: str = Field(..., min_length=1)

    @field_validator('date')
    @classmethod
    def normalize_date(cls, v: datetime) -> datetime:
        return to_naive_utc(v)

    @property
    def is_grouped(self) -> bool:
        return self.group_id is not None

    def split_for(self, participant_id: str) -> Optional[Split]:
        """First split belonging to the participant, paid or not."""
        for split in self.splits:
            if split.participant_id == participant_id:
                return split
        return None

    def unpaid_split_for(self, participant_id: str) -> Optional[Split]:
        """The participant's split if it still counts toward balances."""
        for split in self.splits:
            if split.participant_id == participant_id and not split.paid:
                return split
        return None

    def involves(self, participant_id: str) -> bool:
        """True if the participant paid or holds a share."""
        return (
            self.payer_id == participant_id
            or self.split_for(participant_id) is not None
        )

    @property
    def participant_ids(self) -> set[str]:
        ids = {split.participant_id for split in self.splits}
        ids.add(self.payer_id)
        return ids


class Settlement(BaseModel):
    """
    A direct payment from one participant to another.

    `related_expense_ids` is a lookup-only index into expenses; the
    settlement does not own them.
    """
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    amount: Decimal = Field(..., gt=0)
    note: Optional[str] = Field(default=None, max_length=500)
    date: datetime = Field(default_factory=datetime.utcnow)
    payer_id: str = Field(..., min_length=1)
    receiver_id: str = Field(..., min_length=1)
    group_id: Optional[str] = None
    related_expense_ids: tuple[UUID, ...] = Field(default_factory=tuple)
    created_by: str = Field(..., min_length=1)

    @field_validator('date')
    @classmethod
    def normalize_date(cls, v: datetime) -> datetime:
        return to_naive_utc(v)

    @model_validator(mode='after')
    def validate_parties(self) -> 'Settlement':
        if self.payer_id == self.receiver_id:
            raise ValueError("Payer and receiver cannot be the same user")
        return self

    @property
    def is_grouped(self) -> bool:
        return self.group_id is not None

    def involves(self, participant_id: str) -> bool:
        return participant_id in (self.payer_id, self.receiver_id)

    def between(self, first: str, second: str) -> bool:
        """True if the settlement is between the two parties, either direction."""
        return {self.payer_id, self.receiver_id} == {first, second}

    def counterparty_of(self, participant_id: str) -> str:
        if participant_id == self.payer_id:
            return self.receiver_id
        if participant_id == self.receiver_id:
            return self.payer_id
        raise ValueError(f"{participant_id} is not a party to settlement {self.id}")


# =============================================================================
# INPUT DRAFTS
# =============================================================================

class SplitDraft(BaseModel):
    """A proposed share. Not yet checked."""
    model_config = ConfigDict(str_strip_whitespace=True)

    participant_id: str = Field(..., min_length=1)
    amount: Decimal
    paid: bool = False


class ExpenseDraft(BaseModel):
    """
    A proposed expense as submitted by a caller.

    CRITICAL: This is UNVERIFIED data. It becomes an Expense only
    after the expense validator admits it.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    description: str = Field(..., max_length=500)
    amount: Decimal
    category: Optional[str] = Field(default=None, max_length=100)
    date: datetime
    payer_id: str = Field(..., min_length=1)
    split_type: str
    splits: list[SplitDraft] = Field(default_factory=list)
    group_id: Optional[str] = None

    @field_validator('date')
    @classmethod
    def normalize_date(cls, v: datetime) -> datetime:
        return to_naive_utc(v)


class SettlementDraft(BaseModel):
    """A proposed settlement. The date is assigned on admission."""
    model_config = ConfigDict(str_strip_whitespace=True)

    amount: Decimal
    note: Optional[str] = Field(default=None, max_length=500)
    payer_id: str = Field(..., min_length=1)
    receiver_id: str = Field(..., min_length=1)
    group_id: Optional[str] = None
    related_expense_ids: list[UUID] = Field(default_factory=list)
