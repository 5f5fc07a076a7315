from __future__ import annotations

from typing import Any, Optional


class LedgerError(Exception):
    def __init__(self, message: str, status_code: int = 400):
        self.message = message
        self.status_code = status_code
        super().__init__(message)

    @property
    def code(self) -> str:
        return type(self).__name__


class InvalidDiscount(LedgerError):
    pass


class InvalidAmount(LedgerError):
    pass


class InvalidPlanSelection(LedgerError):
    pass


class InvalidPaymentAmount(LedgerError):
    pass


class InvalidMembershipRecord(LedgerError):
    def __init__(self, message: str, membership_id: Optional[str] = None):
        super().__init__(message, 422)
        self.membership_id = membership_id


class NotFound(LedgerError):
    def __init__(self, message: str):
        super().__init__(message, 404)


class PartialSupersessionFailure(LedgerError):
    """
    Some, but not all, of a member's current memberships were disabled.
    The renewal is aborted before a new membership is created; a status
    reconciliation pass (or a retry) settles the remaining rows.
    """

    def __init__(self, message: str, *, attempted: int, updated: int):
        super().__init__(message, 409)
        self.attempted = attempted
        self.updated = updated


class BalanceSyncFailure(LedgerError):
    """
    The transaction row was written but the member balance was not.
    Recover with BillingLedger.reconcile_balance, never by reapplying the delta.
    """

    def __init__(self, message: str, *, transaction: Any = None):
        super().__init__(message, 500)
        self.transaction = transaction


class StorageUnavailable(LedgerError):
    def __init__(self, message: str):
        super().__init__(message, 503)
