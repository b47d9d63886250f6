"""
Ledger Error Taxonomy

Every business-rule violation surfaces as one of four error kinds.
The validator that owns an invariant raises the error; nothing downstream
catches and downgrades it. Raising inside a storage transaction rolls the
whole transaction back.
"""


class LedgerError(Exception):
    """Base exception for ledger operations."""

    code = "ledger_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(LedgerError):
    """Malformed or inconsistent input (amounts, split types, split sums, self-settlement)."""

    code = "validation_error"


class AuthorizationError(LedgerError):
    """Caller lacks standing for the operation."""

    code = "authorization_error"


class NotFoundError(LedgerError):
    """A required expense, settlement, group or participant does not exist."""

    code = "not_found"


class ConflictError(LedgerError):
    """Settlement does not fit the outstanding balance."""

    code = "conflict"
