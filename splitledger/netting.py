"""
Pairwise Netting Arithmetic

The single source of the settlement sign convention. The validators and
the balance aggregator never call each other; both derive their numbers
from the functions below, which is what keeps the "available to settle"
bound and the displayed balances in agreement.

Convention: every delta is seen from a *subject* participant.
A positive delta means the counterparty owes the subject more.

- Subject paid an expense   -> counterparty's unpaid share is owed to subject (+)
- Counterparty paid         -> subject's unpaid share is owed to counterparty (-)
- Subject paid a settlement -> subject handed over money (+)
- Subject received one      -> counterparty handed over money (-)

Paid splits never count; they were settled outside the ledger.
"""

from decimal import Decimal
from typing import Iterable, Iterator

from splitledger.models.ledger import Expense, Settlement


ZERO = Decimal("0")


def expense_delta(expense: Expense, subject_id: str, counterparty_id: str) -> Decimal:
    """Effect of one expense on subject's balance against counterparty."""
    if expense.payer_id == subject_id:
        split = expense.unpaid_split_for(counterparty_id)
        return split.amount if split else ZERO
    if expense.payer_id == counterparty_id:
        split = expense.unpaid_split_for(subject_id)
        return -split.amount if split else ZERO
    return ZERO


def settlement_delta(
    settlement: Settlement,
    subject_id: str,
    counterparty_id: str,
) -> Decimal:
    """Effect of one settlement on subject's balance against counterparty."""
    if settlement.payer_id == subject_id and settlement.receiver_id == counterparty_id:
        return settlement.amount
    if settlement.payer_id == counterparty_id and settlement.receiver_id == subject_id:
        return -settlement.amount
    return ZERO


def pair_net(
    expenses: Iterable[Expense],
    settlements: Iterable[Settlement],
    subject_id: str,
    counterparty_id: str,
) -> Decimal:
    """
    Net balance between two participants over the given records.

    A plain sum, so record order does not matter.
    """
    net = ZERO
    for expense in expenses:
        net += expense_delta(expense, subject_id, counterparty_id)
    for settlement in settlements:
        net += settlement_delta(settlement, subject_id, counterparty_id)
    return net


def expense_counterparty_deltas(
    expense: Expense,
    subject_id: str,
) -> Iterator[tuple[str, Decimal]]:
    """
    Split one expense into (counterparty, delta) pairs for the subject.

    Yields nothing when the subject is not involved or owes nothing.
    """
    if expense.payer_id == subject_id:
        for split in expense.splits:
            if split.participant_id == subject_id or split.paid:
                continue
            yield split.participant_id, split.amount
        return

    split = expense.unpaid_split_for(subject_id)
    if split is not None:
        yield expense.payer_id, -split.amount


def settlement_counterparty_delta(
    settlement: Settlement,
    subject_id: str,
) -> tuple[str, Decimal]:
    """(counterparty, delta) for a settlement the subject is a party to."""
    counterparty_id = settlement.counterparty_of(subject_id)
    return counterparty_id, settlement_delta(settlement, subject_id, counterparty_id)


def is_negligible(amount: Decimal, tolerance: Decimal) -> bool:
    """True for balances that are rounding noise."""
    return abs(amount) < tolerance


def exceeds_outstanding(amount: Decimal, net: Decimal, tolerance: Decimal) -> bool:
    """True if settling `amount` would overshoot the outstanding `net`."""
    return amount > abs(net) + tolerance
