"""
Split Builders

Turn "split this amount equally / by percentage / exactly" into split
drafts whose amounts are whole cents and add up to the total exactly,
so the expense validator's sum check passes without relying on the
tolerance.

The payer's own share is marked paid: they covered it when they paid.
"""

from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal
from typing import Mapping, Optional, Sequence

from splitledger.errors import ValidationError
from splitledger.models.ledger import SplitDraft


CENT = Decimal("0.01")
HUNDRED = Decimal("100")


def _check_participants(participant_ids: Sequence[str]) -> None:
    if not participant_ids:
        raise ValidationError("At least one participant is required")
    if len(set(participant_ids)) != len(participant_ids):
        raise ValidationError("Each participant can appear only once in the splits")


def equal_splits(
    amount: Decimal,
    participant_ids: Sequence[str],
    payer_id: Optional[str] = None,
) -> list[SplitDraft]:
    """
    Divide `amount` equally, rounding each share down to the cent.

    The leftover cents go to the payer when the payer takes part,
    otherwise to the first participant.
    """
    amount = Decimal(amount)
    if amount <= 0:
        raise ValidationError("Amount must be greater than zero")
    _check_participants(participant_ids)

    share = (amount / len(participant_ids)).quantize(CENT, rounding=ROUND_DOWN)
    if share <= 0:
        raise ValidationError("Amount is too small to split between everyone")
    remainder = amount - share * len(participant_ids)
    absorber = payer_id if payer_id in participant_ids else participant_ids[0]

    return [
        SplitDraft(
            participant_id=participant_id,
            amount=share + remainder if participant_id == absorber else share,
            paid=participant_id == payer_id,
        )
        for participant_id in participant_ids
    ]


def percentage_splits(
    amount: Decimal,
    percentages: Mapping[str, Decimal],
    payer_id: Optional[str] = None,
    tolerance: Decimal = CENT,
) -> list[SplitDraft]:
    """
    Divide `amount` by percentage. Percentages must total 100.

    Each share is rounded half-up to the cent; the last participant
    absorbs the rounding difference.
    """
    amount = Decimal(amount)
    if amount <= 0:
        raise ValidationError("Amount must be greater than zero")
    participant_ids = list(percentages)
    _check_participants(participant_ids)

    pcts = {pid: Decimal(pct) for pid, pct in percentages.items()}
    if any(pct <= 0 for pct in pcts.values()):
        raise ValidationError("Each percentage must be greater than zero")
    if abs(sum(pcts.values()) - HUNDRED) > tolerance:
        raise ValidationError("Percentages must add up to 100")

    shares = {
        pid: (amount * pct / HUNDRED).quantize(CENT, rounding=ROUND_HALF_UP)
        for pid, pct in pcts.items()
    }
    last = participant_ids[-1]
    shares[last] += amount - sum(shares.values())
    if any(share <= 0 for share in shares.values()):
        raise ValidationError("Amount is too small for the given percentages")

    return [
        SplitDraft(participant_id=pid, amount=shares[pid], paid=pid == payer_id)
        for pid in participant_ids
    ]


def exact_splits(
    amounts: Mapping[str, Decimal],
    payer_id: Optional[str] = None,
) -> list[SplitDraft]:
    """Use the given amounts as they are."""
    participant_ids = list(amounts)
    _check_participants(participant_ids)
    drafts = [
        SplitDraft(participant_id=pid, amount=Decimal(value), paid=pid == payer_id)
        for pid, value in amounts.items()
    ]
    if any(draft.amount <= 0 for draft in drafts):
        raise ValidationError("Each split amount must be greater than zero")
    return drafts
