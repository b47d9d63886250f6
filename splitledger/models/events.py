"""
Ledger Event Models

Significant ledger actions are emitted as structured events.
This provides:
1. Traceability of every admitted or rejected write
2. Debugging information for balance computations
3. A side-channel that never feeds back into business logic

DESIGN DECISION: Events describe what happened; they are not a ledger.
Balances are never reconstructed from events.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class LedgerEventType(str, Enum):
    """Types of events the ledger emits."""
    # Expenses
    EXPENSE_SUBMITTED = "expense_submitted"
    EXPENSE_REJECTED = "expense_rejected"
    EXPENSE_DELETED = "expense_deleted"
    EXPENSE_DELETE_REJECTED = "expense_delete_rejected"

    # Settlements
    SETTLEMENT_SUBMITTED = "settlement_submitted"
    SETTLEMENT_REJECTED = "settlement_rejected"

    # Reads
    BALANCES_COMPUTED = "balances_computed"

    # System events
    SYSTEM_ERROR = "system_error"


class LedgerEventSeverity(str, Enum):
    """Severity level for ledger events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class LedgerEvent(BaseModel):
    """A single emitted event."""

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: LedgerEventType
    severity: LedgerEventSeverity = LedgerEventSeverity.INFO

    # Context - what record is this about, and who acted?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'expense', 'settlement', 'balances')"
    )
    entity_id: Optional[str] = None
    actor_id: Optional[str] = Field(
        default=None,
        description="Participant on whose behalf the operation ran"
    )

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "actor_id": self.actor_id,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
        }


class LedgerEventBuilder:
    """
    Helper class to build ledger events with common patterns.

    Usage:
        event = LedgerEventBuilder.expense_submitted(expense)
        event = LedgerEventBuilder.settlement_rejected(draft, caller_id, error)
    """

    @staticmethod
    def expense_submitted(
        expense_id: UUID,
        amount: Decimal,
        payer_id: str,
        split_count: int,
        group_id: Optional[str],
        actor_id: str,
    ) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.EXPENSE_SUBMITTED,
            entity_type="expense",
            entity_id=str(expense_id),
            actor_id=actor_id,
            description=f"Expense of {amount} paid by {payer_id} admitted",
            details={
                "amount": str(amount),
                "payer_id": payer_id,
                "split_count": split_count,
                "group_id": group_id,
            },
        )

    @staticmethod
    def expense_rejected(
        actor_id: str,
        error_code: str,
        error_message: str,
        group_id: Optional[str] = None,
    ) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.EXPENSE_REJECTED,
            severity=LedgerEventSeverity.WARNING,
            entity_type="expense",
            actor_id=actor_id,
            description="Expense rejected",
            details={"group_id": group_id},
            error_code=error_code,
            error_message=error_message,
        )

    @staticmethod
    def expense_deleted(
        expense_id: UUID,
        actor_id: str,
        settlements_pruned: int,
        settlements_removed: int,
    ) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.EXPENSE_DELETED,
            entity_type="expense",
            entity_id=str(expense_id),
            actor_id=actor_id,
            description=f"Expense deleted ({settlements_removed} related settlements removed)",
            details={
                "settlements_pruned": settlements_pruned,
                "settlements_removed": settlements_removed,
            },
        )

    @staticmethod
    def expense_delete_rejected(
        expense_id: UUID,
        actor_id: str,
        error_code: str,
        error_message: str,
    ) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.EXPENSE_DELETE_REJECTED,
            severity=LedgerEventSeverity.WARNING,
            entity_type="expense",
            entity_id=str(expense_id),
            actor_id=actor_id,
            description="Expense deletion rejected",
            error_code=error_code,
            error_message=error_message,
        )

    @staticmethod
    def settlement_submitted(
        settlement_id: UUID,
        amount: Decimal,
        payer_id: str,
        receiver_id: str,
        group_id: Optional[str],
        outstanding: Optional[Decimal],
        actor_id: str,
    ) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.SETTLEMENT_SUBMITTED,
            entity_type="settlement",
            entity_id=str(settlement_id),
            actor_id=actor_id,
            description=f"Settlement of {amount} from {payer_id} to {receiver_id} admitted",
            details={
                "amount": str(amount),
                "payer_id": payer_id,
                "receiver_id": receiver_id,
                "group_id": group_id,
                "outstanding": str(outstanding) if outstanding is not None else None,
            },
        )

    @staticmethod
    def settlement_rejected(
        payer_id: str,
        receiver_id: str,
        amount: Decimal,
        actor_id: str,
        error_code: str,
        error_message: str,
    ) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.SETTLEMENT_REJECTED,
            severity=LedgerEventSeverity.WARNING,
            entity_type="settlement",
            actor_id=actor_id,
            description=f"Settlement from {payer_id} to {receiver_id} rejected",
            details={
                "amount": str(amount),
                "payer_id": payer_id,
                "receiver_id": receiver_id,
            },
            error_code=error_code,
            error_message=error_message,
        )

    @staticmethod
    def balances_computed(
        view: str,
        actor_id: str,
        expense_count: int,
        settlement_count: int,
        trace: Optional[list[dict]] = None,
        scope_id: Optional[str] = None,
    ) -> LedgerEvent:
        details: dict[str, Any] = {
            "view": view,
            "expense_count": expense_count,
            "settlement_count": settlement_count,
        }
        if trace is not None:
            details["trace"] = trace
        return LedgerEvent(
            event_type=LedgerEventType.BALANCES_COMPUTED,
            severity=LedgerEventSeverity.DEBUG,
            entity_type="balances",
            entity_id=scope_id,
            actor_id=actor_id,
            description=f"Computed {view} balances over {expense_count} expenses",
            details=details,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
    ) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.SYSTEM_ERROR,
            severity=LedgerEventSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
        )
