"""
Tests for the balance aggregator.

The three views share one arithmetic, so most tests check that they
agree with each other as well as with hand-computed numbers.
"""

import asyncio
from decimal import Decimal

import pytest

from splitledger.errors import AuthorizationError, NotFoundError, ValidationError
from splitledger.models.events import LedgerEventType
from splitledger.observability import LedgerEventLogger
from splitledger.queries import BalanceAggregator
from splitledger.services.storage import InMemoryLedgerStorage
from tests.factories import expense, expense_draft, settlement, settlement_draft


def submit(service, draft, caller):
    return asyncio.run(service.submit_expense(draft, caller))


class TestDashboard:
    """Balances against every counterparty, ungrouped records only."""

    def test_even_split_then_partial_settlement(self, service):
        """U pays 30 three ways, then A settles their 10."""
        submit(service, expense_draft("u", {"u": "10", "a": "10", "b": "10"},
                                      split_type="equal", paid=["u"]), "u")

        balances = asyncio.run(service.compute_balances("u"))
        assert balances.you_are_owed == Decimal("20")
        assert balances.you_owe == Decimal("0")
        assert balances.total_balance == Decimal("20")
        assert [c.participant_id for c in balances.owe_details.you_are_owed_by] == ["a", "b"]
        assert balances.owe_details.you_are_owed_by[0].name == "Arjun"

        asyncio.run(service.submit_settlement(settlement_draft("a", "u", "10"), "a"))

        balances = asyncio.run(service.compute_balances("u"))
        assert balances.you_are_owed == Decimal("10")
        assert [c.participant_id for c in balances.owe_details.you_are_owed_by] == ["b"]

        a_view = asyncio.run(service.compute_balances("a"))
        assert a_view.you_owe == Decimal("0")
        assert a_view.owe_details.you_owe == []

    def test_mutual_expenses_net_out(self, service):
        submit(service, expense_draft("u", {"a": "30"}), "u")
        submit(service, expense_draft("a", {"u": "12.50"}), "a")
        submit(service, expense_draft("b", {"u": "40"}), "u")

        balances = asyncio.run(service.compute_balances("u"))

        assert balances.net_with("a") == Decimal("17.50")
        assert balances.net_with("b") == Decimal("-40")
        assert balances.you_owe == Decimal("40")
        assert balances.you_are_owed == Decimal("17.50")
        assert balances.total_balance == Decimal("-22.50")

    def test_lists_sorted_by_descending_amount(self, service):
        submit(service, expense_draft("u", {"a": "5", "b": "25", "c": "15"}), "u")

        balances = asyncio.run(service.compute_balances("u"))

        amounts = [c.amount for c in balances.owe_details.you_are_owed_by]
        assert amounts == [Decimal("25"), Decimal("15"), Decimal("5")]

    def test_grouped_expenses_are_excluded(self, service):
        submit(service, expense_draft("u", {"a": "10"}, group_id="g"), "u")

        balances = asyncio.run(service.compute_balances("u"))

        assert balances.you_are_owed == Decimal("0")
        assert balances.owe_details.you_are_owed_by == []

    def test_paid_splits_are_ignored(self, service):
        submit(service, expense_draft("u", {"a": "10", "b": "10"}, paid=["a"]), "u")

        balances = asyncio.run(service.compute_balances("u"))

        assert balances.net_with("a") == Decimal("0")
        assert balances.net_with("b") == Decimal("10")

    def test_sub_tolerance_balances_are_dropped(self, directory, settings):
        storage = InMemoryLedgerStorage(
            expenses=[expense("u", {"a": "10"})],
            settlements=[settlement("a", "u", "9.995")],
        )
        aggregator = BalanceAggregator(storage, directory, None, settings)

        balances = asyncio.run(aggregator.compute_balances("u"))

        assert balances.owe_details.you_are_owed_by == []
        assert balances.you_are_owed == Decimal("0")

    def test_unknown_counterparty_gets_placeholder_name(self, directory, settings):
        storage = InMemoryLedgerStorage(expenses=[expense("u", {"zed": "8"})])
        aggregator = BalanceAggregator(storage, directory, None, settings)

        balances = asyncio.run(aggregator.compute_balances("u"))

        entry = balances.owe_details.you_are_owed_by[0]
        assert entry.participant_id == "zed"
        assert entry.name == "Unknown"

    def test_repeated_calls_are_identical(self, service):
        submit(service, expense_draft("u", {"a": "10", "b": "20"}), "u")
        submit(service, expense_draft("b", {"u": "7"}), "b")

        first = asyncio.run(service.compute_balances("u"))
        second = asyncio.run(service.compute_balances("u"))

        assert first.model_dump() == second.model_dump()

    def test_emits_debug_event_with_trace_when_enabled(self, directory, sink, settings):
        storage = InMemoryLedgerStorage(expenses=[expense("u", {"a": "10"})])
        aggregator = BalanceAggregator(
            storage,
            directory,
            LedgerEventLogger(sink),
            settings.model_copy(update={"trace_balances": True}),
        )

        asyncio.run(aggregator.compute_balances("u"))

        event = sink.of_type(LedgerEventType.BALANCES_COMPUTED)[0]
        assert event.details["view"] == "dashboard"
        assert event.details["trace"] == [{
            "record": "expense",
            "id": event.details["trace"][0]["id"],
            "counterparty_id": "a",
            "delta": "10",
            "running": "10",
        }]

    def test_no_trace_by_default(self, service, sink):
        submit(service, expense_draft("u", {"a": "10"}), "u")
        asyncio.run(service.compute_balances("u"))

        event = sink.of_type(LedgerEventType.BALANCES_COMPUTED)[0]
        assert "trace" not in event.details


class TestPairwise:
    """Balance and shared history with one counterparty."""

    def test_pair_is_antisymmetric(self, service):
        submit(service, expense_draft("u", {"u": "10", "a": "10"}, paid=["u"]), "u")
        submit(service, expense_draft("a", {"u": "3"}), "a")
        asyncio.run(service.submit_settlement(settlement_draft("a", "u", "2"), "a"))

        forward = asyncio.run(service.compute_pair("u", "a"))
        backward = asyncio.run(service.compute_pair("a", "u"))

        assert forward.net_balance == Decimal("5")
        assert backward.net_balance == Decimal("-5")
        assert forward.you_are_owed == Decimal("5")
        assert backward.you_owe == Decimal("5")
        assert forward.counterparty.name == "Arjun"
        assert backward.counterparty.email == "uma@example.com"

    def test_pair_agrees_with_dashboard(self, service):
        submit(service, expense_draft("u", {"a": "10", "b": "10"}), "u")
        submit(service, expense_draft("a", {"u": "4", "b": "4"}), "a")
        submit(service, expense_draft("b", {"u": "9", "a": "1"}), "b")
        asyncio.run(service.submit_settlement(settlement_draft("a", "u", "5"), "a"))

        dashboard = asyncio.run(service.compute_balances("u"))
        for other in ("a", "b"):
            pair = asyncio.run(service.compute_pair("u", other))
            assert dashboard.net_with(other) == pair.net_balance

    def test_pair_lists_only_shared_ungrouped_history(self, service):
        shared = submit(service, expense_draft("u", {"a": "10"}), "u")
        submit(service, expense_draft("u", {"b": "10"}), "u")
        submit(service, expense_draft("u", {"a": "10"}, group_id="g"), "u")

        pair = asyncio.run(service.compute_pair("u", "a"))

        assert [e.id for e in pair.expenses] == [shared]
        assert pair.settlements == []

    def test_pair_history_is_newest_first(self, directory, settings):
        storage = InMemoryLedgerStorage(
            expenses=[
                expense("u", {"a": "1"}, days=0),
                expense("a", {"u": "2"}, days=2),
                expense("u", {"a": "3"}, days=1),
            ],
        )
        aggregator = BalanceAggregator(storage, directory, None, settings)

        pair = asyncio.run(aggregator.compute_pair("u", "a"))

        assert [e.amount for e in pair.expenses] == [Decimal("2"), Decimal("3"), Decimal("1")]
        assert pair.net_balance == Decimal("2")

    def test_query_yourself(self, service):
        with pytest.raises(ValidationError, match="Cannot query yourself"):
            asyncio.run(service.compute_pair("u", "u"))

    def test_unknown_counterparty(self, service):
        with pytest.raises(NotFoundError, match="User not found"):
            asyncio.run(service.compute_pair("u", "nobody"))


class TestGroupBalances:
    """Per-member balances inside one group."""

    def test_even_group_split(self, service):
        """U pays 60 in the flat, split three ways."""
        submit(service, expense_draft("u", {"u": "20", "a": "20", "b": "20"},
                                      group_id="g", split_type="equal", paid=["u"]), "u")

        view = asyncio.run(service.compute_group_balances("u", "g"))

        assert view.group.name == "Flat"
        assert [m.participant_id for m in view.balances] == ["a", "b"]
        assert all(m.you_are_owed == Decimal("20") for m in view.balances)
        assert all(m.you_owe == Decimal("0") for m in view.balances)
        assert view.total == Decimal("40")
        assert asyncio.run(service.compute_group_balance("u", "g")) == Decimal("40")

        a_view = asyncio.run(service.compute_group_balances("a", "g"))
        by_member = {m.participant_id: m for m in a_view.balances}
        assert by_member["u"].net_balance == Decimal("-20")
        assert by_member["u"].you_owe == Decimal("20")
        assert by_member["b"].net_balance == Decimal("0")

    def test_group_settlements_count_in_group_only(self, service):
        submit(service, expense_draft("u", {"a": "20"}, group_id="g"), "u")
        asyncio.run(service.submit_settlement(
            settlement_draft("a", "u", "15", group_id="g"), "a"
        ))

        view = asyncio.run(service.compute_group_balances("u", "g"))
        by_member = {m.participant_id: m for m in view.balances}
        assert by_member["a"].net_balance == Decimal("5")

        dashboard = asyncio.run(service.compute_balances("u"))
        assert dashboard.net_with("a") == Decimal("0")

    def test_scalar_equals_sum_of_member_nets(self, service):
        submit(service, expense_draft("u", {"u": "10", "a": "15", "b": "5"},
                                      group_id="g", paid=["u"]), "u")
        submit(service, expense_draft("a", {"u": "7", "b": "7"}, group_id="g"), "a")
        submit(service, expense_draft("b", {"a": "3", "b": "3"}, group_id="g"), "b")
        asyncio.run(service.submit_settlement(
            settlement_draft("b", "u", "2.25", group_id="g"), "b"
        ))

        for member in ("u", "a", "b"):
            view = asyncio.run(service.compute_group_balances(member, "g"))
            scalar = asyncio.run(service.compute_group_balance(member, "g"))
            assert view.total == scalar

    def test_list_groups_reports_scalar_balances(self, service):
        submit(service, expense_draft("u", {"a": "12"}, group_id="g"), "u")
        submit(service, expense_draft("c", {"u": "4"}, group_id="h"), "u")

        groups = asyncio.run(service.list_groups("u"))

        assert [(g.id, g.member_count, g.balance) for g in groups] == [
            ("g", 3, Decimal("12")),
            ("h", 2, Decimal("-4")),
        ]
        assert groups[1].description == "Goa"

    def test_unknown_group(self, service):
        with pytest.raises(NotFoundError, match="Group not found"):
            asyncio.run(service.compute_group_balances("u", "zzz"))

    def test_non_member(self, service):
        with pytest.raises(AuthorizationError, match="not a member"):
            asyncio.run(service.compute_group_balances("c", "g"))
        with pytest.raises(AuthorizationError):
            asyncio.run(service.compute_group_balance("c", "g"))
