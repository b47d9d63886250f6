"""
Balance Aggregation Engine

DESIGN DECISION: Balances are DERIVED, never stored.
Every call reads the current records inside one storage transaction and
folds them with the netting rules in `splitledger.netting`. There is no
cache and no hidden state, so calling twice over unchanged records returns
identical results.

Three views over the same arithmetic:
- all counterparties (dashboard), ungrouped records only
- one counterparty (pairwise detail), ungrouped records only
- one group, every other member

They must agree: the dashboard entry for a counterparty equals the pairwise
net, and summing a group's member nets equals the group's scalar balance.
"""

from decimal import Decimal
from typing import Optional

from splitledger.config import LedgerSettings, get_settings
from splitledger.errors import AuthorizationError, NotFoundError, ValidationError
from splitledger.models.balances import (
    CounterpartyBalance,
    CounterpartyInfo,
    GroupBalances,
    GroupInfo,
    GroupSummary,
    MemberBalance,
    OweDetails,
    PairBalance,
    UserBalances,
)
from splitledger.models.events import LedgerEventBuilder
from splitledger.models.ledger import Group, Participant
from splitledger.netting import (
    ZERO,
    expense_counterparty_deltas,
    is_negligible,
    pair_net,
    settlement_counterparty_delta,
)
from splitledger.observability import LedgerEventLogger
from splitledger.services.storage import DirectoryInterface, LedgerStorageInterface


class BalanceAggregator:
    """
    Computes net-balance views for a participant.

    Sign convention: positive means the counterparty owes the subject.
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        directory: DirectoryInterface,
        event_logger: Optional[LedgerEventLogger] = None,
        settings: Optional[LedgerSettings] = None,
    ):
        self._storage = storage
        self._directory = directory
        self._event_logger = event_logger
        self._settings = settings or get_settings().ledger

    # ------------------------------------------------------------------ #
    # All counterparties
    # ------------------------------------------------------------------ #

    async def compute_balances(self, user_id: str) -> UserBalances:
        """Net position against every counterparty, ungrouped records only."""
        async with self._storage.transaction():
            expenses = await self._storage.list_expenses_for_participant(
                user_id, ungrouped_only=True
            )
            settlements = await self._storage.list_settlements_for_participant(
                user_id, ungrouped_only=True
            )

        trace = [] if self._settings.trace_balances else None
        tallies: dict[str, Decimal] = {}

        for expense in expenses:
            for counterparty_id, delta in expense_counterparty_deltas(expense, user_id):
                tallies[counterparty_id] = tallies.get(counterparty_id, ZERO) + delta
                self._record(trace, "expense", expense.id, counterparty_id, delta,
                             tallies[counterparty_id])

        for settlement in settlements:
            counterparty_id, delta = settlement_counterparty_delta(settlement, user_id)
            tallies[counterparty_id] = tallies.get(counterparty_id, ZERO) + delta
            self._record(trace, "settlement", settlement.id, counterparty_id, delta,
                         tallies[counterparty_id])

        you_owe: list[CounterpartyBalance] = []
        you_are_owed_by: list[CounterpartyBalance] = []
        for counterparty_id in sorted(tallies):
            net = tallies[counterparty_id]
            if is_negligible(net, self._settings.tolerance):
                continue
            participant = await self._directory.get_participant(counterparty_id)
            entry = CounterpartyBalance(
                participant_id=counterparty_id,
                name=self._display_name(participant),
                image_url=participant.image_url if participant else None,
                amount=abs(net),
            )
            if net > 0:
                you_are_owed_by.append(entry)
            else:
                you_owe.append(entry)

        you_owe.sort(key=lambda c: (-c.amount, c.participant_id))
        you_are_owed_by.sort(key=lambda c: (-c.amount, c.participant_id))

        owe_total = sum((c.amount for c in you_owe), ZERO)
        owed_total = sum((c.amount for c in you_are_owed_by), ZERO)

        await self._emit("dashboard", user_id, len(expenses), len(settlements), trace)
        return UserBalances(
            you_owe=owe_total,
            you_are_owed=owed_total,
            total_balance=owed_total - owe_total,
            owe_details=OweDetails(you_owe=you_owe, you_are_owed_by=you_are_owed_by),
        )

    # ------------------------------------------------------------------ #
    # Pairwise
    # ------------------------------------------------------------------ #

    async def compute_pair(self, user_id: str, other_id: str) -> PairBalance:
        """
        Shared ungrouped history between two participants and their net.

        Raises:
            ValidationError: Both ids are the same participant
            NotFoundError: The counterparty is unknown
        """
        if user_id == other_id:
            raise ValidationError("Cannot query yourself")

        other = await self._directory.get_participant(other_id)
        if other is None:
            raise NotFoundError("User not found")

        async with self._storage.transaction():
            candidates = (
                await self._storage.list_expenses_by_payer(user_id, None)
                + await self._storage.list_expenses_by_payer(other_id, None)
            )
            settlement_candidates = (
                await self._storage.list_settlements_by_payer(user_id, None)
                + await self._storage.list_settlements_by_payer(other_id, None)
            )

        expenses = [
            e for e in candidates
            if e.involves(user_id) and e.involves(other_id)
        ]
        settlements = [s for s in settlement_candidates if s.between(user_id, other_id)]
        expenses.sort(key=lambda e: (e.date, e.id), reverse=True)
        settlements.sort(key=lambda s: (s.date, s.id), reverse=True)

        net = pair_net(expenses, settlements, user_id, other_id)

        await self._emit("pair", user_id, len(expenses), len(settlements), None, other_id)
        return PairBalance(
            counterparty=CounterpartyInfo(
                participant_id=other.id,
                name=other.name,
                email=other.email,
                image_url=other.image_url,
            ),
            expenses=expenses,
            settlements=settlements,
            net_balance=net,
        )

    # ------------------------------------------------------------------ #
    # Group-scoped
    # ------------------------------------------------------------------ #

    async def compute_group_balances(self, user_id: str, group_id: str) -> GroupBalances:
        """
        The caller's balance against every other member of a group.

        Raises:
            NotFoundError: The group is unknown
            AuthorizationError: The caller is not a member
        """
        group = await self._member_group(user_id, group_id)

        tallies: dict[str, Decimal] = {
            member_id: ZERO for member_id in group.members if member_id != user_id
        }
        trace = [] if self._settings.trace_balances else None

        async with self._storage.transaction():
            expenses = await self._storage.list_expenses_by_group(group.id)
            settlements = await self._storage.list_settlements_by_group(group.id)

        for expense in expenses:
            for counterparty_id, delta in expense_counterparty_deltas(expense, user_id):
                if counterparty_id not in tallies:
                    continue
                tallies[counterparty_id] += delta
                self._record(trace, "expense", expense.id, counterparty_id, delta,
                             tallies[counterparty_id])

        for settlement in settlements:
            if not settlement.involves(user_id):
                continue
            counterparty_id, delta = settlement_counterparty_delta(settlement, user_id)
            if counterparty_id not in tallies:
                continue
            tallies[counterparty_id] += delta
            self._record(trace, "settlement", settlement.id, counterparty_id, delta,
                         tallies[counterparty_id])

        balances = []
        for member_id in sorted(tallies):
            net = tallies[member_id]
            participant = await self._directory.get_participant(member_id)
            balances.append(MemberBalance(
                participant_id=member_id,
                name=self._display_name(participant),
                image_url=participant.image_url if participant else None,
                you_are_owed=max(ZERO, net),
                you_owe=max(ZERO, -net),
                net_balance=net,
            ))

        await self._emit("group", user_id, len(expenses), len(settlements), trace, group.id)
        return GroupBalances(
            group=GroupInfo(id=group.id, name=group.name, description=group.description),
            balances=balances,
        )

    async def compute_group_balance(self, user_id: str, group_id: str) -> Decimal:
        """
        The caller's overall balance in a group as one number.

        Equal to the sum of `compute_group_balances` nets whenever every
        payer and split participant is a group member.
        """
        group = await self._member_group(user_id, group_id)
        async with self._storage.transaction():
            return await self._group_scalar(user_id, group)

    async def list_groups(self, user_id: str) -> list[GroupSummary]:
        """Every group the user belongs to, with the user's balance in each."""
        groups = await self._directory.list_groups_for_participant(user_id)
        summaries = []
        async with self._storage.transaction():
            for group in groups:
                summaries.append(GroupSummary(
                    id=group.id,
                    name=group.name,
                    description=group.description,
                    member_count=len(group.members),
                    balance=await self._group_scalar(user_id, group),
                ))
        return summaries

    async def _group_scalar(self, user_id: str, group: Group) -> Decimal:
        balance = ZERO
        for expense in await self._storage.list_expenses_by_group(group.id):
            if expense.payer_id == user_id:
                for split in expense.splits:
                    if split.participant_id != user_id and not split.paid:
                        balance += split.amount
            else:
                split = expense.unpaid_split_for(user_id)
                if split is not None:
                    balance -= split.amount

        for settlement in await self._storage.list_settlements_by_group(group.id):
            if settlement.payer_id == user_id:
                balance += settlement.amount
            elif settlement.receiver_id == user_id:
                balance -= settlement.amount
        return balance

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    async def _member_group(self, user_id: str, group_id: str) -> Group:
        group = await self._directory.get_group(group_id)
        if group is None:
            raise NotFoundError("Group not found")
        if not group.is_member(user_id):
            raise AuthorizationError("You are not a member of this group")
        return group

    def _display_name(self, participant: Optional[Participant]) -> str:
        if participant is None:
            return self._settings.unknown_name_placeholder
        return participant.name

    @staticmethod
    def _record(trace, kind, record_id, counterparty_id, delta, running) -> None:
        if trace is None:
            return
        trace.append({
            "record": kind,
            "id": str(record_id),
            "counterparty_id": counterparty_id,
            "delta": str(delta),
            "running": str(running),
        })

    async def _emit(
        self,
        view: str,
        user_id: str,
        expense_count: int,
        settlement_count: int,
        trace: Optional[list[dict]],
        scope_id: Optional[str] = None,
    ) -> None:
        if not self._event_logger:
            return
        await self._event_logger.log(LedgerEventBuilder.balances_computed(
            view=view,
            actor_id=user_id,
            expense_count=expense_count,
            settlement_count=settlement_count,
            trace=trace,
            scope_id=scope_id,
        ))
