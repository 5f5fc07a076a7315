"""
Membership Lifecycle Resolver (Canonical)
=========================================

Purpose:
- Decide the correct status of every membership a member holds, for a given "now".
- Single place for "which membership is current"; routes and dashboards must
  not re-derive it from raw rows.
- Pure: reads records, never writes them.

Rules:
- disabled, or end_date < now         -> expired
- start_date > now                    -> pending
- start_date <= now <= end_date       -> active
- Several actives (bad data): the latest start_date stays active, the rest
  are forced to expired and disabled, so a later pass cannot revive them.
- The stored status is a floor: expired never comes back, active never
  goes back to pending. Only pending -> active -> expired is written.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Set

from gymledger.services.errors import InvalidMembershipRecord

from .models import MEMBERSHIP_STATUSES, Membership


log = logging.getLogger("gymledger.lifecycle")


@dataclass(frozen=True)
class StatusChange:
    membership_id: str
    stored_status: str
    target_status: str
    disable: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "membership_id": self.membership_id,
            "stored_status": self.stored_status,
            "target_status": self.target_status,
            "disable": self.disable,
        }


@dataclass(frozen=True)
class Resolution:
    """
    Outcome of a resolver pass.
    targets: membership_id -> target status, for every classified record.
    changes: records whose stored status differs from the target, plus forced expiries.
    current: the canonical active membership, if any.
    """
    now: datetime
    targets: Dict[str, str]
    changes: List[StatusChange]
    current: Optional[Membership]
    pending: List[Membership]
    rejected: List[str]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "now": self.now.isoformat(),
            "targets": dict(self.targets),
            "changes": [c.to_dict() for c in self.changes],
            "current": None if self.current is None else self.current.to_dict(),
            "pending": [m.to_dict() for m in self.pending],
            "rejected": list(self.rejected),
        }


class LifecycleResolver:

    def resolve(self, memberships: Iterable[Membership], now: datetime) -> Resolution:
        valid: List[Membership] = []
        rejected: List[str] = []

        for m in memberships:
            try:
                self._validate(m)
            except InvalidMembershipRecord as e:
                log.warning("Skipping membership %s: %s", e.membership_id, e.message)
                rejected.append(str(m.id))
                continue
            valid.append(m)

        targets: Dict[str, str] = {m.id: self.target_status(m, now) for m in valid}

        actives = [m for m in valid if targets[m.id] == "active"]
        current: Optional[Membership] = None
        forced: Set[str] = set()
        if actives:
            # Latest start wins; id breaks ties so repeated passes agree.
            actives.sort(key=lambda m: (m.start_date, m.id), reverse=True)
            current = actives[0]
            for extra in actives[1:]:
                log.warning(
                    "Membership %s overlaps current membership %s for member %s; forcing expiry",
                    extra.id,
                    current.id,
                    extra.member_id,
                )
                targets[extra.id] = "expired"
                forced.add(extra.id)

        changes = [
            StatusChange(
                membership_id=m.id,
                stored_status=m.status,
                target_status=targets[m.id],
                disable=m.id in forced,
            )
            for m in valid
            if m.status != targets[m.id] or m.id in forced
        ]
        pending = sorted(
            (m for m in valid if targets[m.id] == "pending"),
            key=lambda m: (m.start_date, m.id),
        )

        return Resolution(
            now=now,
            targets=targets,
            changes=changes,
            current=current,
            pending=pending,
            rejected=rejected,
        )

    @classmethod
    def target_status(cls, m: Membership, now: datetime) -> str:
        by_dates = cls.classify(m, now)
        if m.status not in MEMBERSHIP_STATUSES:
            return by_dates
        return max(by_dates, m.status, key=MEMBERSHIP_STATUSES.index)

    @staticmethod
    def classify(m: Membership, now: datetime) -> str:
        if m.is_disabled or m.end_date < now:
            return "expired"
        if m.start_date > now:
            return "pending"
        return "active"

    @staticmethod
    def _validate(m: Membership) -> None:
        if not m.id:
            raise InvalidMembershipRecord("membership has no id")
        if m.start_date is None or m.end_date is None:
            raise InvalidMembershipRecord("missing or unparseable start/end date", str(m.id))
        if m.end_date < m.start_date:
            raise InvalidMembershipRecord("end_date is before start_date", str(m.id))
