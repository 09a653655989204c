"""
Ledger error taxonomy.

Services raise these; the HTTP layer maps them to responses in main.py.
"""
from decimal import Decimal
from typing import Dict, List, Optional


class LedgerError(Exception):
    """Base class for all domain errors"""
    status_code = 500
    reason = "LedgerError"

    def __init__(self, message: str, reason: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if reason:
            self.reason = reason

    def to_dict(self) -> Dict:
        return {"error": self.message, "reason": self.reason}


class ValidationError(LedgerError, ValueError):
    """Client-fixable problem with the request. Never partially applied."""
    status_code = 400
    reason = "ValidationError"

    def __init__(self, message: str, errors: Optional[List[Dict]] = None, reason: Optional[str] = None):
        super().__init__(message, reason)
        self.errors = errors or []

    @classmethod
    def for_field(cls, field: str, message: str, reason: Optional[str] = None):
        return cls(message, errors=[{"field": field, "message": message}], reason=reason)

    def to_dict(self) -> Dict:
        data = super().to_dict()
        if self.errors:
            data["errors"] = self.errors
        return data


class UnbalancedEntry(ValidationError):
    reason = "UnbalancedEntry"

    def __init__(self, total_debit: Decimal, total_credit: Decimal):
        super().__init__("Debits must equal credits")
        self.total_debit = total_debit
        self.total_credit = total_credit

    def to_dict(self) -> Dict:
        data = super().to_dict()
        data["total_debit"] = str(self.total_debit)
        data["total_credit"] = str(self.total_credit)
        return data


class NotFoundError(LedgerError, LookupError):
    """Row does not exist or belongs to another organization"""
    status_code = 404
    reason = "NotFound"


class UnknownAccount(NotFoundError):
    """A line or document references an account outside the organization"""
    status_code = 400
    reason = "UnknownAccount"

    def __init__(self, account_id, field: str = "account_id"):
        super().__init__(f"Account {account_id} not found")
        self.account_id = account_id
        self.errors = [{"field": field, "message": self.message}]

    def to_dict(self) -> Dict:
        data = super().to_dict()
        data["errors"] = self.errors
        return data


class PersistenceFailure(LedgerError):
    """Store failed mid-transaction. Everything was rolled back, so the call can be retried."""
    status_code = 500
    reason = "PersistenceFailure"
    retryable = True


def reject_nulls(update_data: Dict, fields) -> None:
    """Partial updates may omit these fields but not set them to null"""
    errors = [
        {"field": field, "message": "Field may not be null"}
        for field in fields
        if field in update_data and update_data[field] is None
    ]
    if errors:
        raise ValidationError("Invalid update", errors=errors, reason="NullField")
