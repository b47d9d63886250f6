"""
Settlement Admission

A settlement records money handed from one participant to another.

Checks, in order:
1. amount > 0
2. payer and receiver differ
3. caller is the payer or the receiver
4. Ungrouped: the pairwise net between payer and receiver is recomputed
   from ungrouped expenses and prior ungrouped settlements, and the
   settlement must fit inside it (ConflictError otherwise)
5. Grouped: the group exists and both parties are members. The
   outstanding-balance bound only applies when
   `LedgerSettings.enforce_group_settlement_bound` is on.

CRITICAL: The balance recomputation and the insert share one storage
transaction, so two concurrent settlements cannot both spend the same
outstanding amount.
"""

from datetime import datetime
from decimal import Decimal
from typing import Callable, Optional
from uuid import UUID

from splitledger.config import LedgerSettings, get_settings
from splitledger.errors import (
    AuthorizationError,
    ConflictError,
    LedgerError,
    NotFoundError,
    ValidationError,
)
from splitledger.models.events import LedgerEventBuilder
from splitledger.models.ledger import Group, Settlement, SettlementDraft
from splitledger.netting import exceeds_outstanding, is_negligible, pair_net
from splitledger.observability import LedgerEventLogger
from splitledger.services.storage import DirectoryInterface, LedgerStorageInterface


class SettlementValidator:
    """Validates, bounds and admits settlements."""

    def __init__(
        self,
        storage: LedgerStorageInterface,
        directory: DirectoryInterface,
        event_logger: Optional[LedgerEventLogger] = None,
        settings: Optional[LedgerSettings] = None,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self._storage = storage
        self._directory = directory
        self._event_logger = event_logger
        self._settings = settings or get_settings().ledger
        self._clock = clock

    async def submit(self, draft: SettlementDraft, caller_id: str) -> UUID:
        """
        Validate and store a settlement.

        Returns:
            Id of the stored settlement

        Raises:
            ValidationError: Non-positive amount, self-settlement, non-member party
            AuthorizationError: Caller is neither payer nor receiver
            ConflictError: Nothing outstanding, or amount exceeds what is outstanding
            NotFoundError: Referenced group does not exist
        """
        try:
            async with self._storage.transaction():
                outstanding = await self._check(draft, caller_id)
                settlement = Settlement(
                    amount=draft.amount,
                    note=draft.note,
                    date=self._clock(),
                    payer_id=draft.payer_id,
                    receiver_id=draft.receiver_id,
                    group_id=draft.group_id,
                    related_expense_ids=tuple(draft.related_expense_ids),
                    created_by=caller_id,
                )
                await self._storage.insert_settlement(settlement)
        except LedgerError as e:
            if self._event_logger:
                await self._event_logger.log(LedgerEventBuilder.settlement_rejected(
                    payer_id=draft.payer_id,
                    receiver_id=draft.receiver_id,
                    amount=draft.amount,
                    actor_id=caller_id,
                    error_code=e.code,
                    error_message=e.message,
                ))
            raise

        if self._event_logger:
            await self._event_logger.log(LedgerEventBuilder.settlement_submitted(
                settlement_id=settlement.id,
                amount=settlement.amount,
                payer_id=settlement.payer_id,
                receiver_id=settlement.receiver_id,
                group_id=settlement.group_id,
                outstanding=outstanding,
                actor_id=caller_id,
            ))
        return settlement.id

    async def _check(self, draft: SettlementDraft, caller_id: str) -> Optional[Decimal]:
        """
        Run every check. Returns the outstanding net the settlement was
        bounded by, or None when no bound applied.
        """
        if draft.amount <= 0:
            raise ValidationError("Amount must be positive")
        if draft.payer_id == draft.receiver_id:
            raise ValidationError("Payer and receiver cannot be the same user")
        if caller_id not in (draft.payer_id, draft.receiver_id):
            raise AuthorizationError("You must be either the payer or the receiver")

        if draft.group_id is None:
            net = await self.outstanding_between(draft.payer_id, draft.receiver_id)
            self._check_bound(draft.amount, net)
            return net

        group = await self._directory.get_group(draft.group_id)
        if group is None:
            raise NotFoundError("Group not found")
        if not group.is_member(draft.payer_id) or not group.is_member(draft.receiver_id):
            raise ValidationError("Both parties must be members of the group")

        if self._settings.enforce_group_settlement_bound:
            net = await self.outstanding_in_group(group, draft.payer_id, draft.receiver_id)
            self._check_bound(draft.amount, net)
            return net
        return None

    async def outstanding_between(self, payer_id: str, receiver_id: str) -> Decimal:
        """
        Ungrouped net from the payer's side: positive means the receiver
        owes the payer. Must be called inside a transaction.
        """
        expenses = (
            await self._storage.list_expenses_by_payer(payer_id, None)
            + await self._storage.list_expenses_by_payer(receiver_id, None)
        )
        settlements = (
            await self._storage.list_settlements_by_payer(payer_id, None)
            + await self._storage.list_settlements_by_payer(receiver_id, None)
        )
        return pair_net(expenses, settlements, payer_id, receiver_id)

    async def outstanding_in_group(
        self,
        group: Group,
        payer_id: str,
        receiver_id: str,
    ) -> Decimal:
        """Same as `outstanding_between`, restricted to one group's records."""
        expenses = await self._storage.list_expenses_by_group(group.id)
        settlements = await self._storage.list_settlements_by_group(group.id)
        return pair_net(expenses, settlements, payer_id, receiver_id)

    def _check_bound(self, amount: Decimal, net: Decimal) -> None:
        tolerance = self._settings.tolerance
        if is_negligible(net, tolerance):
            raise ConflictError("No outstanding balance to settle")
        if exceeds_outstanding(amount, net, tolerance):
            raise ConflictError("Settlement amount exceeds outstanding balance")
