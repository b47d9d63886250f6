"""
Main Orchestrator for SplitLedger

This module ties the components together behind one facade,
`LedgerService`, exposing every ledger operation:

Writes (validated, atomic):
1. submit_expense
2. delete_expense (with settlement cascade)
3. submit_settlement

Reads (derived from current records, side-effect free):
4. compute_balances, compute_pair, compute_group_balances
5. list_groups, compute_group_balance
6. recent_activity, total_spent, monthly_spending

DESIGN DECISION: The service is stateless and context-free. The caller's
identity is resolved outside and passed explicitly to every operation.
"""

from decimal import Decimal
from typing import Optional
from uuid import UUID

from splitledger.config import LedgerSettings, get_settings
from splitledger.models.balances import (
    ActivityItem,
    GroupBalances,
    GroupSummary,
    MonthlySpending,
    PairBalance,
    UserBalances,
)
from splitledger.models.ledger import ExpenseDraft, SettlementDraft
from splitledger.observability import EventSinkInterface, LedgerEventLogger
from splitledger.queries import ActivityFeed, BalanceAggregator, SpendingReport
from splitledger.services.storage import (
    DirectoryInterface,
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
    InMemoryLedgerStorage,
    LedgerStorageInterface,
)
from splitledger.validation import ExpenseDeleter, ExpenseValidator, SettlementValidator


class LedgerService:
    """
    Facade over the validators and the read-side queries.

    Validators and aggregator share the storage backend but never call
    each other.
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        directory: DirectoryInterface,
        event_logger: Optional[LedgerEventLogger] = None,
        settings: Optional[LedgerSettings] = None,
        expense_validator: Optional[ExpenseValidator] = None,
        settlement_validator: Optional[SettlementValidator] = None,
    ):
        settings = settings or get_settings().ledger
        self._storage = storage
        self._directory = directory
        self._event_logger = event_logger

        self._expense_validator = expense_validator or ExpenseValidator(
            storage, directory, event_logger, settings
        )
        self._settlement_validator = settlement_validator or SettlementValidator(
            storage, directory, event_logger, settings
        )
        self._deleter = ExpenseDeleter(storage, event_logger)
        self._aggregator = BalanceAggregator(storage, directory, event_logger, settings)
        self._activity = ActivityFeed(storage, directory, settings)
        self._spending = SpendingReport(storage)

    # ------------------------------------------------------------------ #
    # Writes
    # ------------------------------------------------------------------ #

    async def submit_expense(self, draft: ExpenseDraft, caller_id: str) -> UUID:
        return await self._expense_validator.submit(draft, caller_id)

    async def delete_expense(self, expense_id: UUID, caller_id: str) -> bool:
        return await self._deleter.delete(expense_id, caller_id)

    async def submit_settlement(self, draft: SettlementDraft, caller_id: str) -> UUID:
        return await self._settlement_validator.submit(draft, caller_id)

    # ------------------------------------------------------------------ #
    # Reads
    # ------------------------------------------------------------------ #

    async def compute_balances(self, user_id: str) -> UserBalances:
        return await self._aggregator.compute_balances(user_id)

    async def compute_pair(self, user_id: str, other_id: str) -> PairBalance:
        return await self._aggregator.compute_pair(user_id, other_id)

    async def compute_group_balances(self, user_id: str, group_id: str) -> GroupBalances:
        return await self._aggregator.compute_group_balances(user_id, group_id)

    async def compute_group_balance(self, user_id: str, group_id: str) -> Decimal:
        return await self._aggregator.compute_group_balance(user_id, group_id)

    async def list_groups(self, user_id: str) -> list[GroupSummary]:
        return await self._aggregator.list_groups(user_id)

    async def recent_activity(self, user_id: str) -> list[ActivityItem]:
        return await self._activity.recent_activity(user_id)

    async def total_spent(self, user_id: str, year: Optional[int] = None) -> Decimal:
        return await self._spending.total_spent(user_id, year)

    async def monthly_spending(
        self,
        user_id: str,
        year: Optional[int] = None,
    ) -> list[MonthlySpending]:
        return await self._spending.monthly_spending(user_id, year)


def create_storage(
    settings: Optional[LedgerSettings] = None,
    event_logger: Optional[LedgerEventLogger] = None,
) -> LedgerStorageInterface:
    """Build the record store selected by `LedgerSettings.storage_backend`."""
    settings = settings or get_settings().ledger
    if settings.storage_backend == "google_sheets":
        return GoogleSheetsLedgerStorage(GoogleSheetsClient(), event_logger)
    return InMemoryLedgerStorage()


def create_app_components(
    directory: DirectoryInterface,
    storage: Optional[LedgerStorageInterface] = None,
    event_sink: Optional[EventSinkInterface] = None,
    settings: Optional[LedgerSettings] = None,
) -> LedgerService:
    """
    Factory function to create the ledger service.

    Args:
        directory: Identity and group lookups (owned elsewhere)
        storage: Record store; built from settings when omitted
        event_sink: Where to forward ledger events besides the local log
        settings: Ledger policy; loaded from the environment when omitted
    """
    settings = settings or get_settings().ledger
    event_logger = LedgerEventLogger(event_sink)
    return LedgerService(
        storage=storage or create_storage(settings, event_logger),
        directory=directory,
        event_logger=event_logger,
        settings=settings,
    )
