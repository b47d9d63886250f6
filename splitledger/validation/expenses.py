"""
Expense Admission

DESIGN DECISION: An expense is checked completely before anything is
written. The checks run in a fixed order and the first violation aborts
the transaction:

1. amount > 0
2. split type is one of equal / percentage / exact
3. at least one split, every split amount > 0
4. each participant appears at most once in the splits
5. group membership (when grouped): caller, payer and every split participant
6. caller is the payer or holds a split (no recording on others' behalf)
7. split amounts add up to the total, within tolerance

IMPORTANT: Validation NEVER silently fixes issues. A split sum that is off
by more than the tolerance is rejected, not rebalanced.
"""

from decimal import Decimal
from typing import Optional
from uuid import UUID

from splitledger.config import LedgerSettings, get_settings
from splitledger.errors import (
    AuthorizationError,
    LedgerError,
    NotFoundError,
    ValidationError,
)
from splitledger.models.events import LedgerEventBuilder
from splitledger.models.ledger import Expense, ExpenseDraft, Group, Split, SplitType
from splitledger.observability import LedgerEventLogger
from splitledger.services.storage import DirectoryInterface, LedgerStorageInterface


class ExpenseValidator:
    """Validates expense drafts and admits them to the record store."""

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

    async def submit(self, draft: ExpenseDraft, caller_id: str) -> UUID:
        """
        Validate and store a new expense.

        Args:
            draft: The proposed expense
            caller_id: Resolved identity of the participant submitting it

        Returns:
            Id of the stored expense

        Raises:
            ValidationError: Malformed or inconsistent draft
            AuthorizationError: Caller lacks standing
            NotFoundError: Referenced group does not exist
        """
        try:
            async with self._storage.transaction():
                expense = await self._build(draft, caller_id)
                await self._storage.insert_expense(expense)
        except LedgerError as e:
            if self._event_logger:
                await self._event_logger.log(LedgerEventBuilder.expense_rejected(
                    actor_id=caller_id,
                    error_code=e.code,
                    error_message=e.message,
                    group_id=draft.group_id,
                ))
            raise

        if self._event_logger:
            await self._event_logger.log(LedgerEventBuilder.expense_submitted(
                expense_id=expense.id,
                amount=expense.amount,
                payer_id=expense.payer_id,
                split_count=len(expense.splits),
                group_id=expense.group_id,
                actor_id=caller_id,
            ))
        return expense.id

    async def _build(self, draft: ExpenseDraft, caller_id: str) -> Expense:
        """Run every check in order, then produce the record to store."""
        if draft.amount <= 0:
            raise ValidationError("Amount must be greater than zero")

        try:
            split_type = SplitType(draft.split_type)
        except ValueError:
            raise ValidationError("Invalid split type")

        if not draft.splits:
            raise ValidationError("An expense needs at least one split")
        if any(split.amount <= 0 for split in draft.splits):
            raise ValidationError("Each split amount must be greater than zero")

        participant_ids = [split.participant_id for split in draft.splits]
        if len(set(participant_ids)) != len(participant_ids):
            raise ValidationError("Each participant can appear only once in the splits")

        if draft.group_id is not None:
            group = await self._resolve_group(draft.group_id)
            self._check_membership(group, draft, caller_id)

        if draft.payer_id != caller_id and caller_id not in participant_ids:
            raise AuthorizationError("You must be the payer or included in the splits")

        total = sum((split.amount for split in draft.splits), Decimal("0"))
        if abs(total - draft.amount) > self._settings.tolerance:
            raise ValidationError("Split amounts must add up to the total expense amount")

        return Expense(
            description=draft.description,
            amount=draft.amount,
            category=draft.category or self._settings.default_category,
            date=draft.date,
            payer_id=draft.payer_id,
            split_type=split_type,
            splits=tuple(
                Split(
                    participant_id=split.participant_id,
                    amount=split.amount,
                    paid=split.paid,
                )
                for split in draft.splits
            ),
            group_id=draft.group_id,
            created_by=caller_id,
        )

    async def _resolve_group(self, group_id: str) -> Group:
        group = await self._directory.get_group(group_id)
        if group is None:
            raise NotFoundError("Group not found")
        return group

    @staticmethod
    def _check_membership(group: Group, draft: ExpenseDraft, caller_id: str) -> None:
        if not group.is_member(caller_id):
            raise AuthorizationError("You are not a member of this group")
        if not group.is_member(draft.payer_id):
            raise ValidationError("Payer must be a member of the group")
        for split in draft.splits:
            if not group.is_member(split.participant_id):
                raise ValidationError("All split participants must be group members")
