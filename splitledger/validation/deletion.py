"""
Expense Deletion with Settlement Cascade

Deleting an expense also cleans up the settlements that point at it
through `related_expense_ids`:
- the expense id is removed from each such settlement
- a settlement left with no related expenses is deleted outright
- otherwise the settlement is replaced by a copy with the trimmed list

The cascade and the expense deletion run in one transaction.
"""

from typing import Optional
from uuid import UUID

from splitledger.errors import AuthorizationError, LedgerError, NotFoundError
from splitledger.models.events import LedgerEventBuilder
from splitledger.observability import LedgerEventLogger
from splitledger.services.storage import LedgerStorageInterface


class ExpenseDeleter:
    """Deletes expenses on behalf of their creator or payer."""

    def __init__(
        self,
        storage: LedgerStorageInterface,
        event_logger: Optional[LedgerEventLogger] = None,
    ):
        self._storage = storage
        self._event_logger = event_logger

    async def delete(self, expense_id: UUID, caller_id: str) -> bool:
        """
        Delete an expense and prune settlements that reference it.

        Raises:
            NotFoundError: The expense does not exist
            AuthorizationError: Caller is neither creator nor payer
        """
        pruned = 0
        removed = 0
        try:
            async with self._storage.transaction():
                expense = await self._storage.get_expense(expense_id)
                if expense is None:
                    raise NotFoundError("Expense not found")
                if caller_id not in (expense.created_by, expense.payer_id):
                    raise AuthorizationError(
                        "You don't have permission to delete this expense"
                    )

                for settlement in await self._storage.list_settlements_referencing(expense_id):
                    remaining = tuple(
                        related for related in settlement.related_expense_ids
                        if related != expense_id
                    )
                    if remaining:
                        await self._storage.replace_settlement(
                            settlement.model_copy(update={"related_expense_ids": remaining})
                        )
                        pruned += 1
                    else:
                        await self._storage.delete_settlement(settlement.id)
                        removed += 1

                await self._storage.delete_expense(expense_id)
        except LedgerError as e:
            if self._event_logger:
                await self._event_logger.log(LedgerEventBuilder.expense_delete_rejected(
                    expense_id=expense_id,
                    actor_id=caller_id,
                    error_code=e.code,
                    error_message=e.message,
                ))
            raise

        if self._event_logger:
            await self._event_logger.log(LedgerEventBuilder.expense_deleted(
                expense_id=expense_id,
                actor_id=caller_id,
                settlements_pruned=pruned,
                settlements_removed=removed,
            ))
        return True
