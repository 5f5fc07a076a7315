"""
Invoice Projection
==================

Read-only view for one transaction: its membership, the plan, and every
completed transaction on that membership up to and including this one.
Nothing here is persisted.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List, Optional

from gymledger.services.errors import NotFound

from .ledger_math import ZERO, _q2
from .models import Member, Membership, PlanSnapshot, Transaction


log = logging.getLogger("gymledger.invoice")


@dataclass(frozen=True)
class Invoice:
    transaction: Transaction
    membership: Membership
    member: Optional[Member]
    plan: Optional[PlanSnapshot]
    payments: List[Transaction]
    total_amount: Decimal
    discount: Decimal
    net_amount: Decimal
    total_paid: Decimal
    balance: Decimal

    def to_dict(self) -> Dict[str, Any]:
        return {
            "transaction": self.transaction.to_dict(),
            "membership": self.membership.to_dict(),
            "member": None if self.member is None else self.member.to_dict(),
            "plan": None if self.plan is None else self.plan.to_dict(),
            "payments": [p.to_dict() for p in self.payments],
            "calculations": {
                "total_amount": str(_q2(self.total_amount)),
                "discount": str(_q2(self.discount)),
                "net_amount": str(_q2(self.net_amount)),
                "total_paid": str(_q2(self.total_paid)),
                "balance": str(_q2(self.balance)),
            },
        }


class InvoiceProjection:
    def __init__(self, repo: Any) -> None:
        self.repo = repo

    def build(self, transaction_id: str) -> Invoice:
        tx = self.repo.get_transaction(transaction_id)
        if tx is None:
            log.info("Invoice lookup: transaction %s not found", transaction_id)
            raise NotFound(f"Transaction {transaction_id} not found")

        membership = self.repo.get_membership(tx.membership_id) if tx.membership_id else None
        if membership is None:
            log.info("Invoice lookup: transaction %s has no membership", transaction_id)
            raise NotFound(f"Membership for transaction {transaction_id} not found")

        payments = [
            p
            for p in self.repo.list_transactions(membership_id=membership.id, status="completed")
            if self._not_after(p, tx)
        ]
        payments.sort(key=lambda p: (p.created_at is None, p.created_at, p.id))

        net = membership.net_price
        total_paid = sum((p.signed_amount for p in payments), ZERO)

        return Invoice(
            transaction=tx,
            membership=membership,
            member=self.repo.get_member(tx.member_id),
            plan=self.repo.get_plan(membership.plan_id) if membership.plan_id else None,
            payments=payments,
            total_amount=membership.price,
            discount=membership.discount,
            net_amount=net,
            total_paid=_q2(total_paid),
            balance=_q2(max(ZERO, net - total_paid)),
        )

    @staticmethod
    def _not_after(p: Transaction, tx: Transaction) -> bool:
        if p.id == tx.id or p.created_at is None or tx.created_at is None:
            return True
        return p.created_at <= tx.created_at
