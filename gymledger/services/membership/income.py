"""
Facility Income Projection
==========================

Read-only revenue view for a facility, computed from the transaction ledger:
- total received (completed payments minus refunds, all time)
- pending total (sum of member balances still owed)
- income today / yesterday / this month / last month, with the change between them
- the last seven days, one bucket per UTC day, oldest first

Failed and pending transactions never count.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any, Callable, Dict, Iterable, List, Optional

from .ledger_math import ZERO, _q2
from .models import Transaction, utc_now


@dataclass(frozen=True)
class DailyIncome:
    day: date
    amount: Decimal

    def to_dict(self) -> Dict[str, Any]:
        return {"date": self.day.isoformat(), "amount": str(_q2(self.amount))}


@dataclass(frozen=True)
class IncomeReport:
    facility_id: str
    generated_at: datetime
    total_received: Decimal
    pending_total: Decimal
    today: Decimal
    yesterday: Decimal
    this_month: Decimal
    last_month: Decimal
    last_7_days: List[DailyIncome] = field(default_factory=list)
    recent: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def received_share(self) -> Optional[Decimal]:
        return _percent(self.total_received, self.total_received + self.pending_total)

    @property
    def pending_share(self) -> Optional[Decimal]:
        return _percent(self.pending_total, self.total_received + self.pending_total)

    @property
    def change_vs_yesterday(self) -> Optional[Decimal]:
        return _change(self.today, self.yesterday)

    @property
    def change_vs_last_month(self) -> Optional[Decimal]:
        return _change(self.this_month, self.last_month)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "facility_id": self.facility_id,
            "generated_at": self.generated_at.isoformat(),
            "metrics": {
                "total_received": str(_q2(self.total_received)),
                "pending_total": str(_q2(self.pending_total)),
                "received_share": _str_or_none(self.received_share),
                "pending_share": _str_or_none(self.pending_share),
            },
            "income": {
                "today": str(_q2(self.today)),
                "yesterday": str(_q2(self.yesterday)),
                "change_vs_yesterday": _str_or_none(self.change_vs_yesterday),
                "this_month": str(_q2(self.this_month)),
                "last_month": str(_q2(self.last_month)),
                "change_vs_last_month": _str_or_none(self.change_vs_last_month),
            },
            "last_7_days": [d.to_dict() for d in self.last_7_days],
            "recent": list(self.recent),
        }


def _percent(part: Decimal, whole: Decimal) -> Optional[Decimal]:
    if whole == ZERO:
        return None
    return _q2(part / whole * 100)


def _change(current: Decimal, previous: Decimal) -> Optional[Decimal]:
    # No baseline, no percentage.
    if previous == ZERO:
        return None
    return _q2((current - previous) / previous * 100)


def _str_or_none(value: Optional[Decimal]) -> Optional[str]:
    return None if value is None else str(value)


def net_income(transactions: Iterable[Transaction], since: datetime, until: datetime) -> Decimal:
    """
    Completed payments minus refunds with since <= created_at < until.
    """
    total = ZERO
    for t in transactions:
        if t.status != "completed" or t.created_at is None:
            continue
        if since <= t.created_at < until:
            total += t.signed_amount
    return _q2(total)


class IncomeProjection:
    """
    Repo contract:
    - list_members(facility_id) -> List[Member]
    - list_transactions(facility_id=, status=, newest_first=) -> List[Transaction]
    """

    def __init__(self, repo: Any, *, clock: Callable[[], datetime] = utc_now) -> None:
        self.repo = repo
        self.clock = clock

    def income_between(self, facility_id: str, since: datetime, until: datetime) -> Decimal:
        transactions = self.repo.list_transactions(facility_id=facility_id, status="completed")
        return net_income(transactions, since, until)

    def build(self, facility_id: str, *, recent_limit: int = 3) -> IncomeReport:
        now = self.clock()
        today_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
        tomorrow_start = today_start + timedelta(days=1)
        yesterday_start = today_start - timedelta(days=1)
        month_start = today_start.replace(day=1)
        last_month_start = (month_start - timedelta(days=1)).replace(day=1)

        members = self.repo.list_members(facility_id)
        pending_total = _q2(sum((m.balance for m in members), ZERO))
        names = {m.id: m.full_name for m in members}

        transactions = self.repo.list_transactions(
            facility_id=facility_id,
            status="completed",
            newest_first=True,
        )
        total_received = _q2(sum((t.signed_amount for t in transactions), ZERO))

        days = []
        for offset in range(6, -1, -1):
            start = today_start - timedelta(days=offset)
            days.append(DailyIncome(start.date(), net_income(transactions, start, start + timedelta(days=1))))

        recent = [
            {**t.to_dict(), "full_name": names.get(t.member_id)}
            for t in transactions[:recent_limit]
        ]

        return IncomeReport(
            facility_id=facility_id,
            generated_at=now,
            total_received=total_received,
            pending_total=pending_total,
            today=net_income(transactions, today_start, tomorrow_start),
            yesterday=net_income(transactions, yesterday_start, today_start),
            this_month=net_income(transactions, month_start, tomorrow_start),
            last_month=net_income(transactions, last_month_start, month_start),
            last_7_days=days,
            recent=recent,
        )
