"""Read-side query package."""

from splitledger.queries.activity import ActivityFeed, SpendingReport
from splitledger.queries.balances import BalanceAggregator

__all__ = ["ActivityFeed", "BalanceAggregator", "SpendingReport"]
