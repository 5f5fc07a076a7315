"""
Membership domain records.

Rows come out of Supabase as dicts; the repository maps them to these
immutable records. Updates produce new records via dataclasses.replace.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Literal, Optional

from .ledger_math import ZERO, _q2, net_price


MembershipStatus = Literal["pending", "active", "expired"]
TransactionType = Literal["payment", "refund"]
TransactionStatus = Literal["pending", "completed", "failed"]

MEMBERSHIP_STATUSES = ("pending", "active", "expired")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse a Postgres/ISO timestamp into an aware UTC datetime.
    Returns None for missing or unparseable values; callers decide whether
    that is an error.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime(value.year, value.month, value.day)
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(text)
        except ValueError:
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _iso(dt: Optional[datetime]) -> Optional[str]:
    return None if dt is None else dt.isoformat()


@dataclass(frozen=True)
class Member:
    id: str
    full_name: str
    balance: Decimal = ZERO
    email: Optional[str] = None
    phone: Optional[str] = None
    facility_id: Optional[str] = None

    def contact(self) -> Dict[str, Any]:
        return {
            "member_id": self.id,
            "full_name": self.full_name,
            "email": self.email,
            "phone": self.phone,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            **self.contact(),
            "facility_id": self.facility_id,
            "balance": str(_q2(self.balance)),
        }


@dataclass(frozen=True)
class PlanSnapshot:
    """
    Catalog plan as read at purchase time. facility_id None means a global plan.
    """
    id: str
    name: str
    price: Decimal
    duration_days: int
    facility_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "price": str(_q2(self.price)),
            "duration_days": int(self.duration_days),
            "facility_id": self.facility_id,
        }


@dataclass(frozen=True)
class Membership:
    id: str
    member_id: str
    plan_id: Optional[str]
    start_date: Optional[datetime]
    end_date: Optional[datetime]
    status: MembershipStatus
    is_disabled: bool = False
    price: Decimal = ZERO
    discount: Decimal = ZERO
    payment_amount: Decimal = ZERO
    balance: Decimal = ZERO
    plan_name: Optional[str] = None
    created_at: Optional[datetime] = None

    @property
    def net_price(self) -> Decimal:
        return net_price(self.price, self.discount)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "member_id": self.member_id,
            "plan_id": self.plan_id,
            "plan_name": self.plan_name,
            "start_date": _iso(self.start_date),
            "end_date": _iso(self.end_date),
            "status": self.status,
            "is_disabled": bool(self.is_disabled),
            "price": str(_q2(self.price)),
            "discount": str(_q2(self.discount)),
            "payment_amount": str(_q2(self.payment_amount)),
            "balance": str(_q2(self.balance)),
            "created_at": _iso(self.created_at),
        }


@dataclass(frozen=True)
class Transaction:
    """
    Immutable ledger entry. Corrections are new transactions, never updates.
    """
    id: str
    member_id: str
    amount: Decimal
    type: TransactionType
    payment_method: str
    status: TransactionStatus
    created_at: Optional[datetime] = None
    membership_id: Optional[str] = None
    facility_id: Optional[str] = None
    request_id: Optional[str] = None

    @property
    def signed_amount(self) -> Decimal:
        return -self.amount if self.type == "refund" else self.amount

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "member_id": self.member_id,
            "membership_id": self.membership_id,
            "facility_id": self.facility_id,
            "amount": str(_q2(self.amount)),
            "type": self.type,
            "payment_method": self.payment_method,
            "status": self.status,
            "created_at": _iso(self.created_at),
            "request_id": self.request_id,
        }
