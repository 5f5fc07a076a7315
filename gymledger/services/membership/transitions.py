"""
Membership Transition Executor (Canonical Integration Layer)
============================================================

Purpose:
- Renew/purchase: supersede the member's current membership, create the new
  one, hand the payment to the billing ledger.
- Status reconciliation: write exactly the deltas the resolver asks for.

Ordering:
- Supabase gives us no multi-statement transaction, so writes always run
  supersede -> create -> bill. A crash can leave a membership without its
  payment, never two current memberships.
- Every check that can reject a request runs before the first write.

State machine per membership:
    pending -> active -> expired
  is_disabled may be set on pending/active (supersession). The stored status
  is left alone at that point; the next reconciliation moves it to expired.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional

from gymledger.services.errors import (
    InvalidAmount,
    InvalidDiscount,
    InvalidPlanSelection,
    NotFound,
    PartialSupersessionFailure,
)

from .billing import BillingLedger
from .ledger_math import ZERO, _q2, net_price, split_payment, to_money
from .lifecycle import LifecycleResolver, Resolution
from .locks import MemberLocks, member_locks
from .models import Member, Membership, PlanSnapshot, Transaction, parse_timestamp, utc_now


log = logging.getLogger("gymledger.transitions")


@dataclass(frozen=True)
class RenewalResult:
    """
    What the caller needs afterwards: the new membership, the payment for
    invoices, and member contact details for notifications.
    """
    membership: Membership
    transaction: Transaction
    member: Member
    amount_charged: Decimal
    balance_added: Decimal
    superseded: List[str] = field(default_factory=list)
    replayed: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "membership": self.membership.to_dict(),
            "transaction": self.transaction.to_dict(),
            "member": self.member.to_dict(),
            "amount_charged": str(_q2(self.amount_charged)),
            "balance_added": str(_q2(self.balance_added)),
            "superseded": list(self.superseded),
            "replayed": self.replayed,
        }


class MembershipTransitions:
    """
    Repo contract (on top of BillingLedger's):
    - list_memberships(member_id) -> List[Membership]
    - get_membership(membership_id) -> Membership|None
    - insert_membership(...) -> Membership
    - update_membership_status(membership_id, status, disable=) -> bool
    - disable_memberships(ids) -> int (rows updated)
    """

    def __init__(
        self,
        repo: Any,
        billing: Optional[BillingLedger] = None,
        *,
        resolver: Optional[LifecycleResolver] = None,
        locks: Optional[MemberLocks] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.repo = repo
        self.locks = locks or member_locks
        self.billing = billing or BillingLedger(repo, locks=self.locks)
        self.resolver = resolver or LifecycleResolver()
        self.clock = clock

    # -----------------------------
    # Renewal
    # -----------------------------
    def renew(
        self,
        member_id: str,
        plan: PlanSnapshot,
        start_date: Any = None,
        payment_method: str = "cash",
        discount: Any = ZERO,
        is_full_payment: bool = True,
        paid_amount: Any = ZERO,
        *,
        request_id: Optional[str] = None,
    ) -> RenewalResult:
        now = self.clock()
        start = self._coerce_start(start_date, now)

        self._validate_plan(plan)
        end = start + timedelta(days=int(plan.duration_days))
        if end < now:
            raise InvalidPlanSelection(
                f"Start date {start.date()} puts the whole {plan.duration_days}-day plan in the past"
            )

        try:
            net = net_price(plan.price, discount)
        except InvalidDiscount as e:
            raise InvalidPlanSelection(e.message) from e

        amount, remaining = split_payment(net, is_full_payment, paid_amount)
        if amount <= ZERO:
            raise InvalidAmount(f"Invalid payment amount {amount}: must be greater than 0")

        with self.locks.hold(member_id):
            member = self._require_member(member_id)

            if plan.facility_id and member.facility_id and plan.facility_id != member.facility_id:
                raise InvalidPlanSelection(
                    f"Plan {plan.id} belongs to another facility than member {member_id}"
                )

            if request_id:
                earlier = self.repo.find_transaction_by_request_id(member_id, request_id)
                if earlier is not None:
                    return self._replay(member, earlier)

            superseded = self._supersede(member_id)

            status = "active" if start <= now else "pending"
            membership = self.repo.insert_membership(
                member_id=member_id,
                plan=plan,
                start_date=start,
                end_date=end,
                status=status,
                discount=to_money(discount),
                payment_amount=amount,
                balance=remaining,
            )
            log.info(
                "Created %s membership %s for member %s on plan %s (%s -> %s)",
                status,
                membership.id,
                member_id,
                plan.id,
                start.date(),
                end.date(),
            )

            tx = self.billing.record_payment(
                member_id,
                amount,
                payment_method,
                membership_id=membership.id,
                balance_delta=remaining,
                request_id=request_id,
            )

            refreshed = self.repo.get_member(member_id) or member
            return RenewalResult(
                membership=membership,
                transaction=tx,
                member=refreshed,
                amount_charged=amount,
                balance_added=remaining,
                superseded=superseded,
            )

    # -----------------------------
    # Reconciliation
    # -----------------------------
    def reconcile_statuses(self, member_id: str, now: Optional[datetime] = None) -> Resolution:
        """
        Bring stored statuses in line with the resolver. Only deltas are written,
        so a second call with the same now writes nothing.
        """
        now = now or self.clock()
        with self.locks.hold(member_id):
            self._require_member(member_id)
            resolution = self.resolver.resolve(self.repo.list_memberships(member_id), now)

            for change in resolution.changes:
                written = self.repo.update_membership_status(
                    change.membership_id,
                    change.target_status,
                    disable=change.disable,
                )
                if not written:
                    log.warning(
                        "Status update %s -> %s matched no row for membership %s",
                        change.stored_status,
                        change.target_status,
                        change.membership_id,
                    )

            if resolution.changes:
                log.info(
                    "Reconciled %d membership status(es) for member %s",
                    len(resolution.changes),
                    member_id,
                )
            return resolution

    def current_membership(self, member_id: str, now: Optional[datetime] = None) -> Optional[Membership]:
        self._require_member(member_id)
        memberships = self.repo.list_memberships(member_id)
        return self.resolver.resolve(memberships, now or self.clock()).current

    # -----------------------------
    # Helpers
    # -----------------------------
    def _supersede(self, member_id: str) -> List[str]:
        targets = [
            m.id
            for m in self.repo.list_memberships(member_id)
            if not m.is_disabled and m.status in ("active", "pending")
        ]
        if not targets:
            return []

        updated = self.repo.disable_memberships(targets)
        if updated != len(targets):
            log.error(
                "Supersession for member %s updated %d of %d memberships; renewal aborted",
                member_id,
                updated,
                len(targets),
            )
            raise PartialSupersessionFailure(
                f"Only {updated} of {len(targets)} current memberships were disabled",
                attempted=len(targets),
                updated=updated,
            )

        log.info("Superseded memberships %s for member %s", targets, member_id)
        return targets

    def _replay(self, member: Member, tx: Transaction) -> RenewalResult:
        membership = self.repo.get_membership(tx.membership_id) if tx.membership_id else None
        if membership is None:
            raise NotFound(f"Request {tx.request_id} did not create a membership")
        log.info("Renewal request %s already applied as membership %s", tx.request_id, membership.id)
        return RenewalResult(
            membership=membership,
            transaction=tx,
            member=member,
            amount_charged=tx.amount,
            balance_added=membership.balance,
            replayed=True,
        )

    def _require_member(self, member_id: str) -> Member:
        member = self.repo.get_member(member_id)
        if member is None:
            log.info("Member %s not found", member_id)
            raise NotFound(f"Member {member_id} not found")
        return member

    @staticmethod
    def _validate_plan(plan: Optional[PlanSnapshot]) -> None:
        if plan is None:
            raise InvalidPlanSelection("Invalid plan selected")
        if to_money(plan.price) <= ZERO:
            raise InvalidPlanSelection(f"Plan {plan.id} has no price")
        if int(plan.duration_days) <= 0:
            raise InvalidPlanSelection(f"Plan {plan.id} has no duration")

    @staticmethod
    def _coerce_start(value: Any, now: datetime) -> datetime:
        if value is None:
            return now
        # A bare date means midnight UTC of that day.
        start = parse_timestamp(value)
        if start is None:
            raise InvalidPlanSelection(f"Invalid start date: {value!r}")
        return start
