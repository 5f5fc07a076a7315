"""
Member Standing
===============

Purpose:
- The member list / dashboard view of a member: active, expiring, pending or expired.
- Built on the lifecycle resolver so every screen agrees on the current membership.

Rules:
- current membership ends within the window -> expiring
- current membership otherwise               -> active
- no current, but a future membership        -> pending
- nothing                                    -> expired
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterable, List, Literal, Optional

from gymledger.services.errors import NotFound

from .ledger_math import ZERO
from .lifecycle import LifecycleResolver
from .models import Member, Membership, utc_now


Standing = Literal["active", "expiring", "pending", "expired"]

DEFAULT_EXPIRING_WITHIN_DAYS = 7


@dataclass(frozen=True)
class MemberStanding:
    member_id: str
    standing: Standing
    current: Optional[Membership]
    next_pending: Optional[Membership]
    days_left: Optional[int]

    @property
    def plan_name(self) -> Optional[str]:
        m = self.current or self.next_pending
        return None if m is None else m.plan_name

    def to_dict(self) -> Dict[str, Any]:
        return {
            "member_id": self.member_id,
            "standing": self.standing,
            "plan_name": self.plan_name,
            "days_left": self.days_left,
            "current": None if self.current is None else self.current.to_dict(),
            "next_pending": None if self.next_pending is None else self.next_pending.to_dict(),
        }


@dataclass
class FacilitySummary:
    facility_id: str
    total_members: int = 0
    active: int = 0
    expiring_soon: int = 0
    pending: int = 0
    expired: int = 0
    expiring_members: List[Dict[str, Any]] = field(default_factory=list)
    expired_members: List[Dict[str, Any]] = field(default_factory=list)
    members_with_balance: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "facility_id": self.facility_id,
            "total_members": self.total_members,
            "active": self.active,
            "expiring_soon": self.expiring_soon,
            "pending": self.pending,
            "expired": self.expired,
            "expiring_members": self.expiring_members,
            "expired_members": self.expired_members,
            "members_with_balance": self.members_with_balance,
        }


def classify_standing(
    member_id: str,
    memberships: Iterable[Membership],
    now: datetime,
    *,
    expiring_within_days: int = DEFAULT_EXPIRING_WITHIN_DAYS,
    resolver: Optional[LifecycleResolver] = None,
) -> MemberStanding:
    resolution = (resolver or LifecycleResolver()).resolve(memberships, now)
    current = resolution.current
    next_pending = resolution.pending[0] if resolution.pending else None

    if current is not None:
        days_left = (current.end_date - now).days
        if current.end_date <= now + timedelta(days=expiring_within_days):
            standing = "expiring"
        else:
            standing = "active"
    elif next_pending is not None:
        standing = "pending"
        days_left = None
    else:
        standing = "expired"
        days_left = None

    return MemberStanding(
        member_id=member_id,
        standing=standing,
        current=current,
        next_pending=next_pending,
        days_left=days_left,
    )


class StandingService:
    def __init__(
        self,
        repo: Any,
        *,
        resolver: Optional[LifecycleResolver] = None,
        clock: Callable[[], datetime] = utc_now,
        expiring_within_days: int = DEFAULT_EXPIRING_WITHIN_DAYS,
    ) -> None:
        self.repo = repo
        self.resolver = resolver or LifecycleResolver()
        self.clock = clock
        self.expiring_within_days = int(expiring_within_days)

    def member_standing(self, member_id: str) -> MemberStanding:
        if self.repo.get_member(member_id) is None:
            raise NotFound(f"Member {member_id} not found")
        return classify_standing(
            member_id,
            self.repo.list_memberships(member_id),
            self.clock(),
            expiring_within_days=self.expiring_within_days,
            resolver=self.resolver,
        )

    def facility_summary(self, facility_id: str) -> FacilitySummary:
        now = self.clock()
        members: List[Member] = self.repo.list_members(facility_id)
        by_member = self.repo.list_memberships_for_members(m.id for m in members)

        summary = FacilitySummary(facility_id=facility_id, total_members=len(members))
        for member in members:
            if member.balance > ZERO:
                summary.members_with_balance.append(member.to_dict())

            s = classify_standing(
                member.id,
                by_member.get(member.id, []),
                now,
                expiring_within_days=self.expiring_within_days,
                resolver=self.resolver,
            )
            if s.standing == "active":
                summary.active += 1
            elif s.standing == "expiring":
                summary.expiring_soon += 1
                summary.expiring_members.append({**member.contact(), "days_left": s.days_left})
            elif s.standing == "pending":
                summary.pending += 1
            else:
                summary.expired += 1
                summary.expired_members.append(member.contact())

        return summary
