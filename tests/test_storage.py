"""Tests for the in-memory record store and directory."""

import asyncio
from datetime import datetime

import pytest

from splitledger.services.storage import (
    DuplicateError,
    InMemoryDirectory,
    InMemoryLedgerStorage,
    RecordNotFoundError,
)
from splitledger.models.ledger import Group
from tests.factories import expense, settlement


class TestIndices:
    """Every lookup is answered from an index."""

    def test_expense_lookups(self):
        ungrouped = expense("u", {"a": "1"}, days=1)
        grouped = expense("u", {"b": "1"}, group_id="g", days=0)
        by_a = expense("a", {"u": "1"}, days=2)
        storage = InMemoryLedgerStorage(expenses=[ungrouped, grouped, by_a])

        assert asyncio.run(storage.list_expenses_by_payer("u")) == [ungrouped]
        assert asyncio.run(storage.list_expenses_by_payer("u", "g")) == [grouped]
        assert asyncio.run(storage.list_expenses_by_group("g")) == [grouped]
        assert asyncio.run(storage.list_expenses_for_participant("u")) == [
            grouped, ungrouped, by_a,
        ]
        assert asyncio.run(
            storage.list_expenses_for_participant("u", ungrouped_only=True)
        ) == [ungrouped, by_a]
        assert asyncio.run(storage.list_expenses_for_participant("b")) == [grouped]

    def test_recent_and_date_range(self):
        records = [expense("u", {"a": "1"}, days=day) for day in (3, 0, 2, 1)]
        storage = InMemoryLedgerStorage(expenses=records)

        recent = asyncio.run(storage.list_recent_expenses(2))
        assert [e.date.day for e in recent] == [4, 3]
        assert asyncio.run(storage.list_recent_expenses(0)) == []

        between = asyncio.run(storage.list_expenses_between(
            datetime(2024, 6, 2), datetime(2024, 6, 4, 12, 0)
        ))
        assert [e.date.day for e in between] == [2, 3]

    def test_settlement_lookups(self):
        related = expense("u", {"a": "1"})
        plain = settlement("a", "u", "1", related=[related.id])
        grouped = settlement("a", "u", "1", group_id="g", days=1)
        storage = InMemoryLedgerStorage(settlements=[plain, grouped])

        assert asyncio.run(storage.list_settlements_by_payer("a")) == [plain]
        assert asyncio.run(storage.list_settlements_by_payer("a", "g")) == [grouped]
        assert asyncio.run(storage.list_settlements_by_payer("u")) == []
        assert asyncio.run(storage.list_settlements_by_group("g")) == [grouped]
        assert asyncio.run(storage.list_settlements_for_participant("u")) == [plain, grouped]
        assert asyncio.run(
            storage.list_settlements_for_participant("u", ungrouped_only=True)
        ) == [plain]
        assert asyncio.run(storage.list_settlements_referencing(related.id)) == [plain]

    def test_delete_clears_indices(self):
        record = expense("u", {"a": "1"})
        storage = InMemoryLedgerStorage(expenses=[record])

        assert asyncio.run(storage.delete_expense(record.id)) is True
        assert asyncio.run(storage.delete_expense(record.id)) is False
        assert asyncio.run(storage.list_expenses_for_participant("a")) == []
        assert asyncio.run(storage.list_recent_expenses(10)) == []


class TestWrites:
    def test_duplicate_insert(self):
        record = expense("u", {"a": "1"})
        storage = InMemoryLedgerStorage(expenses=[record])
        with pytest.raises(DuplicateError):
            asyncio.run(storage.insert_expense(record))

    def test_replace_missing_settlement(self):
        storage = InMemoryLedgerStorage()
        with pytest.raises(RecordNotFoundError):
            asyncio.run(storage.replace_settlement(settlement("a", "u", "1")))


class TestTransactions:
    """All-or-nothing semantics."""

    def test_commit_keeps_writes(self):
        storage = InMemoryLedgerStorage()
        record = expense("u", {"a": "1"})

        async def run():
            async with storage.transaction():
                await storage.insert_expense(record)

        asyncio.run(run())
        assert asyncio.run(storage.get_expense(record.id)) == record

    def test_exception_restores_state(self):
        kept = expense("u", {"a": "1"})
        storage = InMemoryLedgerStorage(expenses=[kept])
        added = expense("u", {"b": "1"}, days=1)

        async def run():
            async with storage.transaction():
                await storage.insert_expense(added)
                await storage.delete_expense(kept.id)
                raise RuntimeError("abort")

        with pytest.raises(RuntimeError):
            asyncio.run(run())

        assert asyncio.run(storage.get_expense(added.id)) is None
        assert asyncio.run(storage.get_expense(kept.id)) == kept
        assert asyncio.run(storage.list_recent_expenses(10)) == [kept]
        assert asyncio.run(storage.list_expenses_by_payer("u")) == [kept]


class TestDirectory:
    def test_groups_for_participant_sorted(self, directory):
        groups = asyncio.run(directory.list_groups_for_participant("u"))
        assert [g.id for g in groups] == ["g", "h"]
        assert asyncio.run(directory.list_groups_for_participant("zed")) == []

    def test_add_group(self):
        directory = InMemoryDirectory()
        directory.add_group(Group(id="x", name="X", members=frozenset({"p"})))
        assert asyncio.run(directory.get_group("x")).is_member("p")
        assert asyncio.run(directory.get_participant("p")) is None
