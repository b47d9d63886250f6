"""
In-Memory Storage Implementation

DESIGN DECISION: The in-memory store is the reference backend.
It keeps every secondary index the interface promises, so queries are
index lookups rather than table scans, and it gives transactions real
all-or-nothing semantics:

- One asyncio.Lock serialises transactions (serializable isolation)
- State is snapshotted on entry and restored if the block raises

Records are frozen models, so a snapshot only needs to copy the tables
and index sets, never the records themselves.
"""

import asyncio
from bisect import insort
from collections import defaultdict
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import AsyncIterator, Iterable, Optional
from uuid import UUID

from splitledger.models.ledger import Expense, Group, Participant, Settlement
from splitledger.services.storage.interface import (
    DirectoryInterface,
    DuplicateError,
    LedgerStorageInterface,
    RecordNotFoundError,
)


PayerKey = tuple[str, Optional[str]]


def _index() -> defaultdict:
    return defaultdict(set)


@dataclass
class LedgerState:
    """Tables plus secondary indices. Copied wholesale per transaction."""

    expenses: dict[UUID, Expense] = field(default_factory=dict)
    settlements: dict[UUID, Settlement] = field(default_factory=dict)

    expenses_by_payer: defaultdict = field(default_factory=_index)
    expenses_by_group: defaultdict = field(default_factory=_index)
    expenses_by_participant: defaultdict = field(default_factory=_index)
    expenses_by_date: list[tuple[datetime, UUID]] = field(default_factory=list)

    settlements_by_payer: defaultdict = field(default_factory=_index)
    settlements_by_group: defaultdict = field(default_factory=_index)
    settlements_by_participant: defaultdict = field(default_factory=_index)
    settlements_by_expense: defaultdict = field(default_factory=_index)

    def copy(self) -> "LedgerState":
        def copy_index(index: defaultdict) -> defaultdict:
            copied = _index()
            for key, ids in index.items():
                if ids:
                    copied[key] = set(ids)
            return copied

        return LedgerState(
            expenses=dict(self.expenses),
            settlements=dict(self.settlements),
            expenses_by_payer=copy_index(self.expenses_by_payer),
            expenses_by_group=copy_index(self.expenses_by_group),
            expenses_by_participant=copy_index(self.expenses_by_participant),
            expenses_by_date=list(self.expenses_by_date),
            settlements_by_payer=copy_index(self.settlements_by_payer),
            settlements_by_group=copy_index(self.settlements_by_group),
            settlements_by_participant=copy_index(self.settlements_by_participant),
            settlements_by_expense=copy_index(self.settlements_by_expense),
        )

    # -- index maintenance -------------------------------------------------

    def add_expense(self, expense: Expense) -> None:
        self.expenses[expense.id] = expense
        self.expenses_by_payer[(expense.payer_id, expense.group_id)].add(expense.id)
        if expense.group_id is not None:
            self.expenses_by_group[expense.group_id].add(expense.id)
        for participant_id in expense.participant_ids:
            self.expenses_by_participant[participant_id].add(expense.id)
        insort(self.expenses_by_date, (expense.date, expense.id))

    def remove_expense(self, expense_id: UUID) -> Optional[Expense]:
        expense = self.expenses.pop(expense_id, None)
        if expense is None:
            return None
        self.expenses_by_payer[(expense.payer_id, expense.group_id)].discard(expense_id)
        if expense.group_id is not None:
            self.expenses_by_group[expense.group_id].discard(expense_id)
        for participant_id in expense.participant_ids:
            self.expenses_by_participant[participant_id].discard(expense_id)
        self.expenses_by_date.remove((expense.date, expense.id))
        return expense

    def add_settlement(self, settlement: Settlement) -> None:
        self.settlements[settlement.id] = settlement
        key = (settlement.payer_id, settlement.group_id)
        self.settlements_by_payer[key].add(settlement.id)
        if settlement.group_id is not None:
            self.settlements_by_group[settlement.group_id].add(settlement.id)
        self.settlements_by_participant[settlement.payer_id].add(settlement.id)
        self.settlements_by_participant[settlement.receiver_id].add(settlement.id)
        for expense_id in settlement.related_expense_ids:
            self.settlements_by_expense[expense_id].add(settlement.id)

    def remove_settlement(self, settlement_id: UUID) -> Optional[Settlement]:
        settlement = self.settlements.pop(settlement_id, None)
        if settlement is None:
            return None
        key = (settlement.payer_id, settlement.group_id)
        self.settlements_by_payer[key].discard(settlement_id)
        if settlement.group_id is not None:
            self.settlements_by_group[settlement.group_id].discard(settlement_id)
        self.settlements_by_participant[settlement.payer_id].discard(settlement_id)
        self.settlements_by_participant[settlement.receiver_id].discard(settlement_id)
        for expense_id in settlement.related_expense_ids:
            self.settlements_by_expense[expense_id].discard(settlement_id)
        return settlement


class InMemoryLedgerStorage(LedgerStorageInterface):
    """
    Dictionary-backed record store.

    Subclasses may hook `_load_snapshot` / `_flush` to persist elsewhere;
    the indices and transaction semantics stay here.
    """

    def __init__(
        self,
        expenses: Iterable[Expense] = (),
        settlements: Iterable[Settlement] = (),
    ):
        self._state = LedgerState()
        self._lock = asyncio.Lock()
        self._dirty: set[str] = set()
        for expense in expenses:
            self._state.add_expense(expense)
        for settlement in settlements:
            self._state.add_settlement(settlement)

    # ------------------------------------------------------------------ #
    # Transactions
    # ------------------------------------------------------------------ #

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        async with self._lock:
            await self._load_snapshot()
            snapshot = self._state.copy()
            self._dirty = set()
            try:
                yield
                if self._dirty:
                    await self._flush(self._dirty)
            except BaseException:
                self._state = snapshot
                raise
            finally:
                self._dirty = set()

    async def _load_snapshot(self) -> None:
        """Refresh state from the backing store. No-op in memory."""

    async def _flush(self, tables: set[str]) -> None:
        """Persist the named tables. No-op in memory."""

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    def _expenses(self, ids: Iterable[UUID]) -> list[Expense]:
        found = [self._state.expenses[i] for i in ids if i in self._state.expenses]
        found.sort(key=lambda e: (e.date, e.id))
        return found

    def _settlements(self, ids: Iterable[UUID]) -> list[Settlement]:
        found = [self._state.settlements[i] for i in ids if i in self._state.settlements]
        found.sort(key=lambda s: (s.date, s.id))
        return found

    # ------------------------------------------------------------------ #
    # Expenses
    # ------------------------------------------------------------------ #

    async def insert_expense(self, expense: Expense) -> UUID:
        if expense.id in self._state.expenses:
            raise DuplicateError(f"Expense already exists: {expense.id}")
        self._state.add_expense(expense)
        self._dirty.add("expenses")
        return expense.id

    async def get_expense(self, expense_id: UUID) -> Optional[Expense]:
        return self._state.expenses.get(expense_id)

    async def delete_expense(self, expense_id: UUID) -> bool:
        removed = self._state.remove_expense(expense_id) is not None
        if removed:
            self._dirty.add("expenses")
        return removed

    async def list_expenses_by_payer(
        self,
        payer_id: str,
        group_id: Optional[str] = None,
    ) -> list[Expense]:
        return self._expenses(self._state.expenses_by_payer.get((payer_id, group_id), ()))

    async def list_expenses_by_group(self, group_id: str) -> list[Expense]:
        return self._expenses(self._state.expenses_by_group.get(group_id, ()))

    async def list_expenses_for_participant(
        self,
        participant_id: str,
        ungrouped_only: bool = False,
    ) -> list[Expense]:
        expenses = self._expenses(
            self._state.expenses_by_participant.get(participant_id, ())
        )
        if ungrouped_only:
            expenses = [e for e in expenses if not e.is_grouped]
        return expenses

    async def list_recent_expenses(self, limit: int) -> list[Expense]:
        if limit <= 0:
            return []
        newest = self._state.expenses_by_date[-limit:]
        return [self._state.expenses[expense_id] for _, expense_id in reversed(newest)]

    async def list_expenses_between(
        self,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> list[Expense]:
        result = []
        for expense_date, expense_id in self._state.expenses_by_date:
            if date_from is not None and expense_date < date_from:
                continue
            if date_to is not None and expense_date >= date_to:
                break
            result.append(self._state.expenses[expense_id])
        return result

    # ------------------------------------------------------------------ #
    # Settlements
    # ------------------------------------------------------------------ #

    async def insert_settlement(self, settlement: Settlement) -> UUID:
        if settlement.id in self._state.settlements:
            raise DuplicateError(f"Settlement already exists: {settlement.id}")
        self._state.add_settlement(settlement)
        self._dirty.add("settlements")
        return settlement.id

    async def get_settlement(self, settlement_id: UUID) -> Optional[Settlement]:
        return self._state.settlements.get(settlement_id)

    async def replace_settlement(self, settlement: Settlement) -> bool:
        if self._state.remove_settlement(settlement.id) is None:
            raise RecordNotFoundError(f"Settlement not found: {settlement.id}")
        self._state.add_settlement(settlement)
        self._dirty.add("settlements")
        return True

    async def delete_settlement(self, settlement_id: UUID) -> bool:
        removed = self._state.remove_settlement(settlement_id) is not None
        if removed:
            self._dirty.add("settlements")
        return removed

    async def list_settlements_by_payer(
        self,
        payer_id: str,
        group_id: Optional[str] = None,
    ) -> list[Settlement]:
        return self._settlements(
            self._state.settlements_by_payer.get((payer_id, group_id), ())
        )

    async def list_settlements_by_group(self, group_id: str) -> list[Settlement]:
        return self._settlements(self._state.settlements_by_group.get(group_id, ()))

    async def list_settlements_for_participant(
        self,
        participant_id: str,
        ungrouped_only: bool = False,
    ) -> list[Settlement]:
        settlements = self._settlements(
            self._state.settlements_by_participant.get(participant_id, ())
        )
        if ungrouped_only:
            settlements = [s for s in settlements if not s.is_grouped]
        return settlements

    async def list_settlements_referencing(
        self,
        expense_id: UUID,
    ) -> list[Settlement]:
        return self._settlements(self._state.settlements_by_expense.get(expense_id, ()))


class InMemoryDirectory(DirectoryInterface):
    """Static participant and group directory for tests and local runs."""

    def __init__(
        self,
        participants: Iterable[Participant] = (),
        groups: Iterable[Group] = (),
    ):
        self._participants = {p.id: p for p in participants}
        self._groups = {g.id: g for g in groups}

    def add_participant(self, participant: Participant) -> None:
        self._participants[participant.id] = participant

    def add_group(self, group: Group) -> None:
        self._groups[group.id] = group

    async def get_participant(self, participant_id: str) -> Optional[Participant]:
        return self._participants.get(participant_id)

    async def get_group(self, group_id: str) -> Optional[Group]:
        return self._groups.get(group_id)

    async def list_groups_for_participant(self, participant_id: str) -> list[Group]:
        groups = [g for g in self._groups.values() if g.is_member(participant_id)]
        groups.sort(key=lambda g: g.id)
        return groups
