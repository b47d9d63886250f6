"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap Google Sheets for a real database later
2. Use in-memory storage for testing
3. Keep business logic decoupled from storage implementation

The record store exposes narrow, index-backed queries (by payer and group,
by group, by participant, by date, by related expense) so that callers
fetch small candidate sets instead of scanning whole tables.

Every read and write must happen inside `transaction()`. A transaction
sees one consistent snapshot and either applies all of its writes or none.
"""

from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from datetime import datetime
from typing import Optional
from uuid import UUID

from splitledger.models.ledger import Expense, Group, Participant, Settlement


class LedgerStorageInterface(ABC):
    """
    Abstract interface for expense and settlement storage.

    Any storage implementation (Google Sheets, PostgreSQL, etc.)
    must implement these methods.
    """

    @abstractmethod
    def transaction(self) -> AbstractAsyncContextManager[None]:
        """
        Open a serializable transaction.

        Usage:
            async with storage.transaction():
                ...

        If the block raises, every write made inside it is discarded.
        Transactions do not nest.
        """
        pass

    # ------------------------------------------------------------------ #
    # Expenses
    # ------------------------------------------------------------------ #

    @abstractmethod
    async def insert_expense(self, expense: Expense) -> UUID:
        """
        Store a new expense.

        Raises:
            DuplicateError: If an expense with the same id exists
        """
        pass

    @abstractmethod
    async def get_expense(self, expense_id: UUID) -> Optional[Expense]:
        """Retrieve an expense by id, None if absent."""
        pass

    @abstractmethod
    async def delete_expense(self, expense_id: UUID) -> bool:
        """Delete an expense. Returns False if it did not exist."""
        pass

    @abstractmethod
    async def list_expenses_by_payer(
        self,
        payer_id: str,
        group_id: Optional[str] = None,
    ) -> list[Expense]:
        """
        Expenses paid by `payer_id` within one group scope.

        Args:
            payer_id: Participant who paid
            group_id: Group scope; None selects ungrouped expenses only
        """
        pass

    @abstractmethod
    async def list_expenses_by_group(self, group_id: str) -> list[Expense]:
        """All expenses recorded in a group."""
        pass

    @abstractmethod
    async def list_expenses_for_participant(
        self,
        participant_id: str,
        ungrouped_only: bool = False,
    ) -> list[Expense]:
        """Expenses the participant paid or holds a split in."""
        pass

    @abstractmethod
    async def list_recent_expenses(self, limit: int) -> list[Expense]:
        """The most recent expenses, newest first."""
        pass

    @abstractmethod
    async def list_expenses_between(
        self,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> list[Expense]:
        """
        Expenses dated within [date_from, date_to), oldest first.

        Either bound may be omitted.
        """
        pass

    # ------------------------------------------------------------------ #
    # Settlements
    # ------------------------------------------------------------------ #

    @abstractmethod
    async def insert_settlement(self, settlement: Settlement) -> UUID:
        """
        Store a new settlement.

        Raises:
            DuplicateError: If a settlement with the same id exists
        """
        pass

    @abstractmethod
    async def get_settlement(self, settlement_id: UUID) -> Optional[Settlement]:
        pass

    @abstractmethod
    async def replace_settlement(self, settlement: Settlement) -> bool:
        """
        Replace a stored settlement with an updated copy (same id).

        Raises:
            RecordNotFoundError: If the settlement doesn't exist
        """
        pass

    @abstractmethod
    async def delete_settlement(self, settlement_id: UUID) -> bool:
        pass

    @abstractmethod
    async def list_settlements_by_payer(
        self,
        payer_id: str,
        group_id: Optional[str] = None,
    ) -> list[Settlement]:
        """Settlements paid by `payer_id`; None group selects ungrouped ones."""
        pass

    @abstractmethod
    async def list_settlements_by_group(self, group_id: str) -> list[Settlement]:
        pass

    @abstractmethod
    async def list_settlements_for_participant(
        self,
        participant_id: str,
        ungrouped_only: bool = False,
    ) -> list[Settlement]:
        """Settlements the participant paid or received."""
        pass

    @abstractmethod
    async def list_settlements_referencing(
        self,
        expense_id: UUID,
    ) -> list[Settlement]:
        """Settlements whose related expense ids include `expense_id`."""
        pass


class DirectoryInterface(ABC):
    """
    Read-only view of externally owned identity and group data.

    The ledger never writes through this interface.
    """

    @abstractmethod
    async def get_participant(self, participant_id: str) -> Optional[Participant]:
        pass

    @abstractmethod
    async def get_group(self, group_id: str) -> Optional[Group]:
        pass

    @abstractmethod
    async def list_groups_for_participant(self, participant_id: str) -> list[Group]:
        """Groups the participant is a member of."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class RecordNotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
