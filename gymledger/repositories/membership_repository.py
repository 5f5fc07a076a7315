"""
Membership Repository (Supabase/Postgres Adapter)
=================================================

Purpose:
- DB-facing adapter for members, plans, memberships and ledger transactions.
- Works with a supabase-py client passed in by the caller; no global client.

Expected tables:
1) public.members
   - id uuid primary key
   - facility_id uuid null
   - full_name text, email text null, phone text null
   - balance numeric default 0

2) public.plans
   - id uuid primary key
   - name text, price numeric, duration int (days)
   - facility_id uuid null  (null = global plan)

3) public.memberships
   - id uuid primary key
   - member_id uuid references members
   - plan_id uuid references plans
   - plan_name text null  (snapshot for history and invoices)
   - start_date timestamptz, end_date timestamptz
   - status text check (status in ('pending', 'active', 'expired'))
   - is_disabled boolean default false
   - price numeric, discount numeric default 0
   - payment_amount numeric default 0, balance numeric default 0
   - created_at timestamptz default now()

4) public.transactions
   - id uuid primary key
   - member_id uuid, membership_id uuid null, facility_id uuid null
   - amount numeric, type text, payment_method text, status text
   - request_id text unique null
   - created_at timestamptz default now()

Money goes over the wire as strings so numeric columns keep exact cents.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from gymledger.services.membership.ledger_math import _q2, to_money
from gymledger.services.membership.models import (
    Member,
    Membership,
    PlanSnapshot,
    Transaction,
    parse_timestamp,
)


def new_uuid() -> str:
    return str(uuid.uuid4())


class MembershipRepository:
    def __init__(
        self,
        supabase_client: Any,
        *,
        table_members: str = "members",
        table_plans: str = "plans",
        table_memberships: str = "memberships",
        table_transactions: str = "transactions",
    ) -> None:
        self.sb = supabase_client
        self.table_members = table_members
        self.table_plans = table_plans
        self.table_memberships = table_memberships
        self.table_transactions = table_transactions

    # -----------------------------
    # Members
    # -----------------------------
    def get_member(self, member_id: str) -> Optional[Member]:
        r = self.sb.table(self.table_members).select("*").eq("id", member_id).limit(1).execute()
        rows = getattr(r, "data", None) or []
        return self._row_to_member(rows[0]) if rows else None

    def list_members(self, facility_id: str) -> List[Member]:
        r = self.sb.table(self.table_members).select("*").eq("facility_id", facility_id).execute()
        rows = getattr(r, "data", None) or []
        return [self._row_to_member(row) for row in rows if isinstance(row, dict)]

    def update_member_balance(self, member_id: str, balance: Decimal) -> Member:
        r = (
            self.sb.table(self.table_members)
            .update({"balance": str(_q2(balance))})
            .eq("id", member_id)
            .execute()
        )
        rows = getattr(r, "data", None) or []
        if not rows:
            raise RuntimeError(f"Balance update matched no member row ({member_id})")
        return self._row_to_member(rows[0])

    # -----------------------------
    # Plans
    # -----------------------------
    def get_plan(self, plan_id: str) -> Optional[PlanSnapshot]:
        r = self.sb.table(self.table_plans).select("*").eq("id", plan_id).limit(1).execute()
        rows = getattr(r, "data", None) or []
        return self._row_to_plan(rows[0]) if rows else None

    # -----------------------------
    # Memberships
    # -----------------------------
    def get_membership(self, membership_id: str) -> Optional[Membership]:
        r = self.sb.table(self.table_memberships).select("*").eq("id", membership_id).limit(1).execute()
        rows = getattr(r, "data", None) or []
        return self._row_to_membership(rows[0]) if rows else None

    def list_memberships(self, member_id: str) -> List[Membership]:
        r = (
            self.sb.table(self.table_memberships)
            .select("*")
            .eq("member_id", member_id)
            .order("start_date", desc=True)
            .execute()
        )
        rows = getattr(r, "data", None) or []
        return [self._row_to_membership(row) for row in rows if isinstance(row, dict)]

    def list_memberships_for_members(self, member_ids: Iterable[str]) -> Dict[str, List[Membership]]:
        ids = [str(x) for x in member_ids]
        out: Dict[str, List[Membership]] = {mid: [] for mid in ids}
        if not ids:
            return out
        r = self.sb.table(self.table_memberships).select("*").in_("member_id", ids).execute()
        for row in getattr(r, "data", None) or []:
            if not isinstance(row, dict):
                continue
            m = self._row_to_membership(row)
            out.setdefault(m.member_id, []).append(m)
        return out

    def insert_membership(
        self,
        *,
        member_id: str,
        plan: PlanSnapshot,
        start_date: datetime,
        end_date: datetime,
        status: str,
        discount: Decimal,
        payment_amount: Decimal,
        balance: Decimal,
    ) -> Membership:
        payload = {
            "id": new_uuid(),
            "member_id": member_id,
            "plan_id": plan.id,
            "plan_name": plan.name,
            "start_date": start_date.isoformat(),
            "end_date": end_date.isoformat(),
            "status": status,
            "is_disabled": False,
            "price": str(_q2(plan.price)),
            "discount": str(_q2(discount)),
            "payment_amount": str(_q2(payment_amount)),
            "balance": str(_q2(balance)),
        }
        r = self.sb.table(self.table_memberships).insert(payload).execute()
        rows = getattr(r, "data", None) or []
        if not rows:
            raise RuntimeError("Failed to create membership")
        return self._row_to_membership(rows[0])

    def update_membership_status(self, membership_id: str, status: str, *, disable: bool = False) -> bool:
        patch: Dict[str, Any] = {"status": status}
        if disable:
            patch["is_disabled"] = True
        r = (
            self.sb.table(self.table_memberships)
            .update(patch)
            .eq("id", membership_id)
            .execute()
        )
        return bool(getattr(r, "data", None))

    def disable_memberships(self, membership_ids: List[str]) -> int:
        """
        Batch-set is_disabled. Returns how many rows the database reports updated.
        """
        if not membership_ids:
            return 0
        r = (
            self.sb.table(self.table_memberships)
            .update({"is_disabled": True})
            .in_("id", list(membership_ids))
            .execute()
        )
        return len(getattr(r, "data", None) or [])

    # -----------------------------
    # Transactions
    # -----------------------------
    def insert_transaction(
        self,
        *,
        member_id: str,
        amount: Decimal,
        type: str,
        payment_method: str,
        status: str = "completed",
        membership_id: Optional[str] = None,
        facility_id: Optional[str] = None,
        request_id: Optional[str] = None,
    ) -> Transaction:
        payload = {
            "id": new_uuid(),
            "member_id": member_id,
            "membership_id": membership_id,
            "facility_id": facility_id,
            "amount": str(_q2(amount)),
            "type": type,
            "payment_method": payment_method,
            "status": status,
            "request_id": request_id,
        }
        r = self.sb.table(self.table_transactions).insert(payload).execute()
        rows = getattr(r, "data", None) or []
        if not rows:
            raise RuntimeError("Failed to record transaction")
        return self._row_to_transaction(rows[0])

    def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        r = self.sb.table(self.table_transactions).select("*").eq("id", transaction_id).limit(1).execute()
        rows = getattr(r, "data", None) or []
        return self._row_to_transaction(rows[0]) if rows else None

    def find_transaction_by_request_id(self, member_id: str, request_id: str) -> Optional[Transaction]:
        r = (
            self.sb.table(self.table_transactions)
            .select("*")
            .eq("member_id", member_id)
            .eq("request_id", request_id)
            .limit(1)
            .execute()
        )
        rows = getattr(r, "data", None) or []
        return self._row_to_transaction(rows[0]) if rows else None

    def list_transactions(
        self,
        *,
        member_id: Optional[str] = None,
        membership_id: Optional[str] = None,
        facility_id: Optional[str] = None,
        status: Optional[str] = None,
        newest_first: bool = False,
        limit: Optional[int] = None,
    ) -> List[Transaction]:
        q = self.sb.table(self.table_transactions).select("*")
        if member_id is not None:
            q = q.eq("member_id", member_id)
        if membership_id is not None:
            q = q.eq("membership_id", membership_id)
        if facility_id is not None:
            q = q.eq("facility_id", facility_id)
        if status is not None:
            q = q.eq("status", status)
        q = q.order("created_at", desc=newest_first)
        if limit is not None:
            q = q.limit(int(limit))
        rows = getattr(q.execute(), "data", None) or []
        return [self._row_to_transaction(row) for row in rows if isinstance(row, dict)]

    # -----------------------------
    # Row mapping
    # -----------------------------
    @staticmethod
    def _row_to_member(row: Dict[str, Any]) -> Member:
        return Member(
            id=str(row.get("id")),
            full_name=str(row.get("full_name") or ""),
            balance=to_money(row.get("balance")),
            email=row.get("email"),
            phone=row.get("phone"),
            facility_id=row.get("facility_id"),
        )

    @staticmethod
    def _row_to_plan(row: Dict[str, Any]) -> PlanSnapshot:
        return PlanSnapshot(
            id=str(row.get("id")),
            name=str(row.get("name") or ""),
            price=to_money(row.get("price")),
            duration_days=int(row.get("duration") or row.get("duration_days") or 0),
            facility_id=row.get("facility_id"),
        )

    @staticmethod
    def _row_to_membership(row: Dict[str, Any]) -> Membership:
        return Membership(
            id=str(row.get("id") or ""),
            member_id=str(row.get("member_id")),
            plan_id=row.get("plan_id"),
            plan_name=row.get("plan_name"),
            start_date=parse_timestamp(row.get("start_date")),
            end_date=parse_timestamp(row.get("end_date")),
            status=str(row.get("status") or "pending"),
            is_disabled=bool(row.get("is_disabled") or False),
            price=to_money(row.get("price")),
            discount=to_money(row.get("discount")),
            payment_amount=to_money(row.get("payment_amount")),
            balance=to_money(row.get("balance")),
            created_at=parse_timestamp(row.get("created_at")),
        )

    @staticmethod
    def _row_to_transaction(row: Dict[str, Any]) -> Transaction:
        return Transaction(
            id=str(row.get("id")),
            member_id=str(row.get("member_id")),
            membership_id=row.get("membership_id"),
            facility_id=row.get("facility_id"),
            amount=to_money(row.get("amount")),
            type=str(row.get("type") or "payment"),
            payment_method=str(row.get("payment_method") or ""),
            status=str(row.get("status") or "completed"),
            created_at=parse_timestamp(row.get("created_at")),
            request_id=row.get("request_id"),
        )

