from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Callable, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from gymledger.repositories.membership_repository import MembershipRepository
from gymledger.routes.deps import get_clock, get_repository
from gymledger.services.errors import InvalidPlanSelection
from gymledger.services.membership.standing import StandingService
from gymledger.services.membership.transitions import MembershipTransitions
from gymledger.utils.envelope import ok
from gymledger.utils.settings import settings

router = APIRouter(tags=["memberships"])


class RenewIn(BaseModel):
    plan_id: str
    payment_method: str = "cash"
    discount: Decimal = Decimal("0")
    is_full_payment: bool = True
    paid_amount: Decimal = Decimal("0")
    start_date: Optional[str] = Field(default=None, description="ISO date/datetime; defaults to now")
    request_id: Optional[str] = Field(default=None, description="Idempotency key for retries")


@router.post("/members/{member_id}/renew")
def renew_membership(
    member_id: str,
    body: RenewIn,
    repo: MembershipRepository = Depends(get_repository),
    clock: Callable[[], datetime] = Depends(get_clock),
):
    plan = repo.get_plan(body.plan_id)
    if plan is None:
        raise InvalidPlanSelection("Invalid plan selected")

    result = MembershipTransitions(repo, clock=clock).renew(
        member_id,
        plan,
        start_date=body.start_date,
        payment_method=body.payment_method,
        discount=body.discount,
        is_full_payment=body.is_full_payment,
        paid_amount=body.paid_amount,
        request_id=body.request_id,
    )
    return ok(result.to_dict(), status=200 if result.replayed else 201)


@router.post("/members/{member_id}/reconcile")
def reconcile_member_statuses(
    member_id: str,
    repo: MembershipRepository = Depends(get_repository),
    clock: Callable[[], datetime] = Depends(get_clock),
):
    resolution = MembershipTransitions(repo, clock=clock).reconcile_statuses(member_id)
    return ok(resolution.to_dict(), meta={"writes": len(resolution.changes)})


@router.get("/members/{member_id}/standing")
def member_standing(
    member_id: str,
    repo: MembershipRepository = Depends(get_repository),
    clock: Callable[[], datetime] = Depends(get_clock),
):
    svc = StandingService(repo, clock=clock, expiring_within_days=settings.EXPIRING_SOON_DAYS)
    return ok(svc.member_standing(member_id).to_dict())


@router.get("/facilities/{facility_id}/summary")
def facility_summary(
    facility_id: str,
    repo: MembershipRepository = Depends(get_repository),
    clock: Callable[[], datetime] = Depends(get_clock),
):
    svc = StandingService(repo, clock=clock, expiring_within_days=settings.EXPIRING_SOON_DAYS)
    return ok(svc.facility_summary(facility_id).to_dict())
