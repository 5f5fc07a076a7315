"""
Billing Ledger (Canonical)
==========================

Purpose:
- Append-only transaction recording for memberships and balance payoffs.
- The only code that writes Member.balance.

Design:
- A transaction row is written first; the balance write follows. If the
  balance write fails the payment still exists, and BalanceSyncFailure tells
  the caller to run reconcile_balance (recompute from history) rather than
  re-apply the delta.
- Every balance change goes through _apply_balance_delta; renewals pass a
  positive delta (what is left to pay), payoffs a negative one.
- request_id makes retries return the first transaction instead of a second one.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List, Optional

from gymledger.services.errors import (
    BalanceSyncFailure,
    InvalidAmount,
    InvalidPaymentAmount,
    NotFound,
)

from .ledger_math import ZERO, _q2, to_money
from .locks import MemberLocks, member_locks
from .models import Member, Transaction


log = logging.getLogger("gymledger.billing")


@dataclass(frozen=True)
class BalanceReconciliation:
    member_id: str
    previous_balance: Decimal
    balance: Decimal
    total_owed: Decimal
    total_paid: Decimal

    @property
    def changed(self) -> bool:
        return self.previous_balance != self.balance

    def to_dict(self) -> Dict[str, Any]:
        return {
            "member_id": self.member_id,
            "previous_balance": str(_q2(self.previous_balance)),
            "balance": str(_q2(self.balance)),
            "total_owed": str(_q2(self.total_owed)),
            "total_paid": str(_q2(self.total_paid)),
            "changed": self.changed,
        }


class BillingLedger:
    """
    Repo contract:
    - get_member(member_id) -> Member|None
    - update_member_balance(member_id, balance) -> Member
    - insert_transaction(...) -> Transaction
    - find_transaction_by_request_id(member_id, request_id) -> Transaction|None
    - list_transactions(member_id=, status=, newest_first=, limit=) -> List[Transaction]
    - list_memberships(member_id) -> List[Membership]
    """

    def __init__(self, repo: Any, *, locks: Optional[MemberLocks] = None) -> None:
        self.repo = repo
        self.locks = locks or member_locks

    # -----------------------------
    # Payments
    # -----------------------------
    def record_payment(
        self,
        member_id: str,
        amount: Any,
        payment_method: str,
        *,
        membership_id: Optional[str] = None,
        balance_delta: Any = None,
        request_id: Optional[str] = None,
    ) -> Transaction:
        """
        Insert a completed payment and move the member balance.

        balance_delta defaults to -amount (paying down what is owed). A renewal
        passes the balance left on the new membership instead.
        """
        amount = to_money(amount)
        if amount <= ZERO:
            raise InvalidAmount("Payment amount must be greater than zero")
        delta = -amount if balance_delta is None else to_money(balance_delta)

        with self.locks.hold(member_id):
            member = self._require_member(member_id)

            existing = self._find_replay(member_id, request_id)
            if existing is not None:
                return existing

            tx = self.repo.insert_transaction(
                member_id=member_id,
                amount=amount,
                type="payment",
                payment_method=payment_method,
                status="completed",
                membership_id=membership_id,
                facility_id=member.facility_id,
                request_id=request_id,
            )
            log.info(
                "Recorded payment %s of %s for member %s (membership=%s)",
                tx.id,
                amount,
                member_id,
                membership_id,
            )

            self._apply_balance_delta(member, delta, tx)
            return tx

    def pay_outstanding_balance(
        self,
        member_id: str,
        amount: Any,
        payment_method: str,
        *,
        request_id: Optional[str] = None,
    ) -> Transaction:
        """
        Pay down an existing balance. Unlike a renewal, paying more than is owed
        is rejected rather than clamped.
        """
        with self.locks.hold(member_id):
            existing = self._find_replay(member_id, request_id)
            if existing is not None:
                return existing

            member = self._require_member(member_id)
            try:
                amount = to_money(amount)
            except InvalidAmount as e:
                raise InvalidPaymentAmount(e.message) from e

            if amount <= ZERO or amount > member.balance:
                raise InvalidPaymentAmount(
                    f"Invalid payment amount {amount}: must be greater than 0 and at most {member.balance}"
                )

            return self.record_payment(member_id, amount, payment_method, request_id=request_id)

    def record_refund(
        self,
        member_id: str,
        amount: Any,
        payment_method: str,
        *,
        membership_id: Optional[str] = None,
        request_id: Optional[str] = None,
    ) -> Transaction:
        """
        Money handed back to the member; they owe it again.
        """
        amount = to_money(amount)
        if amount <= ZERO:
            raise InvalidAmount("Refund amount must be greater than zero")

        with self.locks.hold(member_id):
            member = self._require_member(member_id)

            existing = self._find_replay(member_id, request_id)
            if existing is not None:
                return existing

            tx = self.repo.insert_transaction(
                member_id=member_id,
                amount=amount,
                type="refund",
                payment_method=payment_method,
                status="completed",
                membership_id=membership_id,
                facility_id=member.facility_id,
                request_id=request_id,
            )
            log.info("Recorded refund %s of %s for member %s", tx.id, amount, member_id)

            self._apply_balance_delta(member, amount, tx)
            return tx

    # -----------------------------
    # Reconciliation
    # -----------------------------
    def reconcile_balance(self, member_id: str) -> BalanceReconciliation:
        """
        Recompute the balance from history:
            max(0, sum(net membership prices) - sum(completed payments) + sum(completed refunds))
        """
        with self.locks.hold(member_id):
            member = self._require_member(member_id)

            memberships = self.repo.list_memberships(member_id)
            total_owed = sum((m.net_price for m in memberships), ZERO)

            completed = self.repo.list_transactions(member_id=member_id, status="completed")
            total_paid = sum((t.signed_amount for t in completed), ZERO)

            balance = _q2(max(ZERO, total_owed - total_paid))
            if balance != member.balance:
                self.repo.update_member_balance(member_id, balance)
                log.info(
                    "Reconciled balance for member %s: %s -> %s",
                    member_id,
                    member.balance,
                    balance,
                )

            return BalanceReconciliation(
                member_id=member_id,
                previous_balance=member.balance,
                balance=balance,
                total_owed=_q2(total_owed),
                total_paid=_q2(total_paid),
            )

    def list_transactions(self, member_id: str, limit: int = 20) -> List[Transaction]:
        self._require_member(member_id)
        return self.repo.list_transactions(member_id=member_id, newest_first=True, limit=limit)

    # -----------------------------
    # Helpers
    # -----------------------------
    def _apply_balance_delta(self, member: Member, delta: Decimal, tx: Transaction) -> Member:
        new_balance = _q2(max(ZERO, member.balance + delta))
        try:
            return self.repo.update_member_balance(member.id, new_balance)
        except Exception as e:
            log.error(
                "Transaction %s recorded but balance update for member %s failed: %s",
                tx.id,
                member.id,
                e,
            )
            raise BalanceSyncFailure(
                f"Transaction {tx.id} was recorded but the member balance was not updated",
                transaction=tx,
            ) from e

    def _require_member(self, member_id: str) -> Member:
        member = self.repo.get_member(member_id)
        if member is None:
            log.info("Member %s not found", member_id)
            raise NotFound(f"Member {member_id} not found")
        return member

    def _find_replay(self, member_id: str, request_id: Optional[str]) -> Optional[Transaction]:
        if not request_id:
            return None
        existing = self.repo.find_transaction_by_request_id(member_id, request_id)
        if existing is not None:
            log.info("Request %s already recorded as transaction %s", request_id, existing.id)
        return existing
