"""
Tests for SplitLedger models

Test strategy:
1. Record models enforce their invariants at construction
2. Drafts stay permissive so the validators can report domain errors
3. View helpers agree with the sign convention
"""

import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

from pydantic import ValidationError as PydanticValidationError

from splitledger.models.balances import (
    CounterpartyBalance,
    CounterpartyInfo,
    OweDetails,
    PairBalance,
    UserBalances,
)
from splitledger.models.ledger import (
    ExpenseDraft,
    Group,
    Settlement,
    Split,
    SplitDraft,
)
from tests.factories import expense, settlement


class TestLedgerRecords:
    """Tests for the stored record models."""

    def test_split_rejects_zero_amount(self):
        """A stored split must carry a positive amount."""
        with pytest.raises(PydanticValidationError):
            Split(participant_id="a", amount=Decimal("0"))

    def test_expense_is_frozen(self):
        """Stored expenses cannot be mutated."""
        record = expense("u", {"a": "10"})
        with pytest.raises(PydanticValidationError):
            record.amount = Decimal("5")

    def test_expense_requires_a_split(self):
        with pytest.raises(PydanticValidationError):
            expense("u", {})

    def test_expense_participation_helpers(self):
        """Payer and split holders are involved; strangers are not."""
        record = expense("u", {"u": "10", "a": "10"}, paid=["u"])

        assert record.involves("u")
        assert record.involves("a")
        assert not record.involves("b")
        assert record.participant_ids == {"u", "a"}
        assert record.split_for("u").paid is True
        assert record.unpaid_split_for("u") is None
        assert record.unpaid_split_for("a").amount == Decimal("10")
        assert not record.is_grouped

    def test_settlement_rejects_self_payment(self):
        with pytest.raises(PydanticValidationError):
            Settlement(
                amount=Decimal("5"),
                payer_id="a",
                receiver_id="a",
                created_by="a",
            )

    def test_settlement_party_helpers(self):
        record = settlement("a", "u", "10", related=[uuid4()])

        assert record.between("u", "a")
        assert record.between("a", "u")
        assert not record.between("a", "b")
        assert record.counterparty_of("a") == "u"
        assert record.counterparty_of("u") == "a"
        with pytest.raises(ValueError):
            record.counterparty_of("b")

    def test_group_membership(self):
        group = Group(id="g", name="  Flat  ", members=frozenset({"u", "a"}))
        assert group.name == "Flat"
        assert group.is_member("u")
        assert not group.is_member("b")


class TestDrafts:
    """Drafts accept input the validators will later reject."""

    def test_expense_draft_accepts_negative_amount_and_unknown_split_type(self):
        draft = ExpenseDraft(
            description="Refund?",
            amount=Decimal("-5"),
            date=datetime(2024, 1, 1),
            payer_id="u",
            split_type="shares",
            splits=[SplitDraft(participant_id="a", amount=Decimal("-5"))],
        )
        assert draft.amount == Decimal("-5")
        assert draft.split_type == "shares"
        assert draft.category is None

    def test_utc_date_string_becomes_naive(self):
        draft = ExpenseDraft(
            description="Taxi",
            amount=Decimal("12"),
            date="2024-06-01T10:00:00Z",
            payer_id="u",
            split_type="exact",
            splits=[SplitDraft(participant_id="a", amount=Decimal("12"))],
        )
        assert draft.date == datetime(2024, 6, 1, 10, 0)
        assert draft.date.tzinfo is None

    def test_records_normalize_aware_dates(self):
        record = expense("u", {"a": "3"})
        aware = record.date.replace(tzinfo=timezone(timedelta(hours=5, minutes=30)))

        rebuilt = record.model_validate({**record.model_dump(), "date": aware})

        assert rebuilt.date == record.date - timedelta(hours=5, minutes=30)
        assert rebuilt.date.tzinfo is None


class TestBalanceViews:
    """Tests for the read-side view models."""

    def test_net_with_reads_signed_amounts(self):
        balances = UserBalances(
            you_owe=Decimal("4"),
            you_are_owed=Decimal("10"),
            total_balance=Decimal("6"),
            owe_details=OweDetails(
                you_owe=[CounterpartyBalance(participant_id="b", name="Bea", amount=Decimal("4"))],
                you_are_owed_by=[
                    CounterpartyBalance(participant_id="a", name="Arjun", amount=Decimal("10"))
                ],
            ),
        )
        assert balances.net_with("a") == Decimal("10")
        assert balances.net_with("b") == Decimal("-4")
        assert balances.net_with("c") == Decimal("0")

    def test_counterparty_balance_is_a_magnitude(self):
        with pytest.raises(PydanticValidationError):
            CounterpartyBalance(participant_id="a", name="Arjun", amount=Decimal("-1"))

    def test_pair_balance_direction(self):
        pair = PairBalance(
            counterparty=CounterpartyInfo(participant_id="a", name="Arjun"),
            net_balance=Decimal("-7.50"),
        )
        assert pair.you_owe == Decimal("7.50")
        assert pair.you_are_owed == Decimal("0")

    def test_pair_balance_dump_includes_direction(self):
        pair = PairBalance(
            counterparty=CounterpartyInfo(participant_id="a", name="Arjun"),
            net_balance=Decimal("3"),
        )
        dumped = pair.model_dump()
        assert dumped["you_are_owed"] == Decimal("3")
        assert dumped["you_owe"] == Decimal("0")
