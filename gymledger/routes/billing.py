from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Callable, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from gymledger.repositories.membership_repository import MembershipRepository
from gymledger.routes.deps import get_clock, get_repository
from gymledger.services.membership.billing import BillingLedger
from gymledger.services.membership.income import IncomeProjection
from gymledger.services.membership.invoice import InvoiceProjection
from gymledger.utils.envelope import ok

router = APIRouter(tags=["billing"])


class PaymentIn(BaseModel):
    amount: Decimal
    payment_method: str = "cash"
    request_id: Optional[str] = Field(default=None, description="Idempotency key for retries")


class RefundIn(BaseModel):
    amount: Decimal
    payment_method: str = "cash"
    membership_id: Optional[str] = None
    request_id: Optional[str] = None


@router.post("/members/{member_id}/pay-balance")
def pay_balance(member_id: str, body: PaymentIn, repo: MembershipRepository = Depends(get_repository)):
    ledger = BillingLedger(repo)
    tx = ledger.pay_outstanding_balance(
        member_id,
        body.amount,
        body.payment_method,
        request_id=body.request_id,
    )
    member = repo.get_member(member_id)
    return ok(
        {"transaction": tx.to_dict(), "member": None if member is None else member.to_dict()},
        status=201,
    )


@router.post("/members/{member_id}/refunds")
def refund(member_id: str, body: RefundIn, repo: MembershipRepository = Depends(get_repository)):
    tx = BillingLedger(repo).record_refund(
        member_id,
        body.amount,
        body.payment_method,
        membership_id=body.membership_id,
        request_id=body.request_id,
    )
    return ok({"transaction": tx.to_dict()}, status=201)


@router.post("/members/{member_id}/reconcile-balance")
def reconcile_balance(member_id: str, repo: MembershipRepository = Depends(get_repository)):
    return ok(BillingLedger(repo).reconcile_balance(member_id).to_dict())


@router.get("/members/{member_id}/transactions")
def member_transactions(
    member_id: str,
    limit: int = Query(default=20, ge=1, le=200),
    repo: MembershipRepository = Depends(get_repository),
):
    rows = BillingLedger(repo).list_transactions(member_id, limit=limit)
    return ok([t.to_dict() for t in rows], meta={"count": len(rows)})


@router.get("/invoices/{transaction_id}")
def invoice(transaction_id: str, repo: MembershipRepository = Depends(get_repository)):
    return ok(InvoiceProjection(repo).build(transaction_id).to_dict())


@router.get("/facilities/{facility_id}/income")
def facility_income(
    facility_id: str,
    repo: MembershipRepository = Depends(get_repository),
    clock: Callable[[], datetime] = Depends(get_clock),
):
    return ok(IncomeProjection(repo, clock=clock).build(facility_id).to_dict())
