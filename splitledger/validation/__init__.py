"""Write-side validation package."""

from splitledger.validation.deletion import ExpenseDeleter
from splitledger.validation.expenses import ExpenseValidator
from splitledger.validation.settlements import SettlementValidator

__all__ = ["ExpenseDeleter", "ExpenseValidator", "SettlementValidator"]
