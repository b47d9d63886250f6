"""
Activity Feed and Spending Report

Both follow the same shape: fetch a narrow candidate set from a date
index, filter to the records that involve the user, then enrich.
"""

from datetime import datetime
from decimal import Decimal
from typing import Callable, Optional

from splitledger.config import LedgerSettings, get_settings
from splitledger.models.balances import ActivityItem, MonthlySpending
from splitledger.services.storage import DirectoryInterface, LedgerStorageInterface


class ActivityFeed:
    """Recent expenses the user took part in, newest first."""

    def __init__(
        self,
        storage: LedgerStorageInterface,
        directory: DirectoryInterface,
        settings: Optional[LedgerSettings] = None,
    ):
        self._storage = storage
        self._directory = directory
        self._settings = settings or get_settings().ledger

    async def recent_activity(self, user_id: str) -> list[ActivityItem]:
        """
        Scan the most recent `activity_scan_window` expenses, keep those
        involving the user, and return at most `activity_limit` of them.

        Only the window is scanned: a user with no part in the latest
        expenses gets an empty feed even if older activity exists.
        """
        async with self._storage.transaction():
            recent = await self._storage.list_recent_expenses(
                self._settings.activity_scan_window
            )

        relevant = [e for e in recent if e.involves(user_id)]
        relevant = relevant[:self._settings.activity_limit]

        names: dict[str, str] = {}
        group_names: dict[str, Optional[str]] = {}
        items = []
        for expense in relevant:
            if expense.payer_id not in names:
                payer = await self._directory.get_participant(expense.payer_id)
                names[expense.payer_id] = (
                    payer.name if payer else self._settings.unknown_name_placeholder
                )

            group_name = None
            if expense.group_id is not None:
                if expense.group_id not in group_names:
                    group = await self._directory.get_group(expense.group_id)
                    group_names[expense.group_id] = group.name if group else None
                group_name = group_names[expense.group_id]

            items.append(ActivityItem(
                expense=expense,
                payer_name=names[expense.payer_id],
                group_name=group_name,
            ))
        return items


class SpendingReport:
    """
    The user's own share of spending over a calendar year.

    Dates are compared as naive UTC datetimes, matching how expenses
    are stored.
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self._storage = storage
        self._clock = clock

    async def total_spent(self, user_id: str, year: Optional[int] = None) -> Decimal:
        """Sum of the user's split amounts over the year's expenses."""
        monthly = await self.monthly_spending(user_id, year)
        return sum((m.total for m in monthly), Decimal("0"))

    async def monthly_spending(
        self,
        user_id: str,
        year: Optional[int] = None,
    ) -> list[MonthlySpending]:
        """Twelve entries, January first, months without spending at zero."""
        year = year or self._clock().year
        async with self._storage.transaction():
            expenses = await self._storage.list_expenses_between(
                datetime(year, 1, 1), datetime(year + 1, 1, 1)
            )

        totals = {month: Decimal("0") for month in range(1, 13)}
        for expense in expenses:
            split = expense.split_for(user_id)
            if split is not None:
                totals[expense.date.month] += split.amount

        return [MonthlySpending(month=month, total=total) for month, total in totals.items()]
