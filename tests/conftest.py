from datetime import datetime, timedelta, timezone

import pytest

from gymledger.repositories.membership_repository import MembershipRepository
from gymledger.services.membership.billing import BillingLedger
from gymledger.services.membership.locks import MemberLocks
from gymledger.services.membership.transitions import MembershipTransitions

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class FakeResult:
    def __init__(self, data):
        self.data = data


class FakeQuery:
    """Just enough of the supabase-py query builder for the repository."""

    def __init__(self, db, table):
        self.db = db
        self.table = table
        self.op = "select"
        self.payload = None
        self.filters = []
        self._order = None
        self._limit = None

    def select(self, *_columns):
        self.op = "select"
        return self

    def insert(self, payload):
        self.op = "insert"
        self.payload = payload
        return self

    def update(self, patch):
        self.op = "update"
        self.payload = patch
        return self

    def eq(self, column, value):
        self.filters.append(lambda row: row.get(column) == value)
        return self

    def in_(self, column, values):
        allowed = set(values)
        self.filters.append(lambda row: row.get(column) in allowed)
        return self

    def order(self, column, desc=False):
        self._order = (column, desc)
        return self

    def limit(self, n):
        self._limit = n
        return self

    def execute(self):
        self.db.calls.append((self.table, self.op))
        if (self.table, self.op) in self.db.failing:
            raise RuntimeError(f"{self.op} on {self.table} failed")

        rows = self.db.tables.setdefault(self.table, [])

        if self.op == "insert":
            row = dict(self.payload)
            row.setdefault("created_at", self.db.tick())
            rows.append(row)
            return FakeResult([dict(row)])

        matched = [row for row in rows if all(f(row) for f in self.filters)]

        if self.op == "update":
            cap = self.db.update_caps.get(self.table)
            if cap is not None:
                matched = matched[:cap]
            for row in matched:
                row.update(self.payload)
            return FakeResult([dict(row) for row in matched])

        if self._order is not None:
            column, desc = self._order
            matched.sort(key=lambda row: (row.get(column) is None, row.get(column) or ""), reverse=desc)
        if self._limit is not None:
            matched = matched[: self._limit]
        return FakeResult([dict(row) for row in matched])


class FakeSupabase:
    def __init__(self):
        self.tables = {"members": [], "plans": [], "memberships": [], "transactions": []}
        self.calls = []
        self.failing = set()
        self.update_caps = {}
        self._clock = NOW - timedelta(days=1)

    def table(self, name):
        return FakeQuery(self, name)

    def tick(self):
        self._clock += timedelta(seconds=1)
        return self._clock.isoformat()

    def rows(self, table, **match):
        return [r for r in self.tables[table] if all(r.get(k) == v for k, v in match.items())]


@pytest.fixture
def db():
    fake = FakeSupabase()
    fake.tables["members"] = [
        {"id": "m1", "full_name": "Asha Rao", "email": "asha@example.com", "phone": "555-0101",
         "facility_id": "f1", "balance": "0.00"},
        {"id": "m2", "full_name": "Bilal Khan", "email": None, "phone": "555-0102",
         "facility_id": "f1", "balance": "150.00"},
        {"id": "m3", "full_name": "Chen Li", "email": "chen@example.com", "phone": None,
         "facility_id": "f2", "balance": "0.00"},
    ]
    fake.tables["plans"] = [
        {"id": "p-month", "name": "Monthly", "price": "1000.00", "duration": 30, "facility_id": None},
        {"id": "p-f1", "name": "F1 Quarterly", "price": "500.00", "duration": 90, "facility_id": "f1"},
        {"id": "p-f2", "name": "F2 Monthly", "price": "800.00", "duration": 30, "facility_id": "f2"},
    ]
    return fake


@pytest.fixture
def repo(db):
    return MembershipRepository(db)


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def locks():
    return MemberLocks()


@pytest.fixture
def billing(repo, locks):
    return BillingLedger(repo, locks=locks)


@pytest.fixture
def transitions(repo, billing, locks, clock):
    return MembershipTransitions(repo, billing, locks=locks, clock=clock)


@pytest.fixture
def add_membership(db):
    def _add(membership_id, member_id="m1", start=NOW - timedelta(days=5), days=30, status="active",
             is_disabled=False, price="1000.00", discount="0.00", payment_amount="1000.00",
             balance="0.00", plan_id="p-month", plan_name="Monthly"):
        row = {
            "id": membership_id,
            "member_id": member_id,
            "plan_id": plan_id,
            "plan_name": plan_name,
            "start_date": start.isoformat(),
            "end_date": (start + timedelta(days=days)).isoformat(),
            "status": status,
            "is_disabled": is_disabled,
            "price": price,
            "discount": discount,
            "payment_amount": payment_amount,
            "balance": balance,
            "created_at": db.tick(),
        }
        db.tables["memberships"].append(row)
        return row

    return _add


@pytest.fixture
def add_transaction(db):
    def _add(transaction_id, member_id="m1", amount="100.00", type="payment", membership_id=None,
             status="completed", request_id=None, facility_id="f1", created_at=None):
        row = {
            "id": transaction_id,
            "member_id": member_id,
            "membership_id": membership_id,
            "facility_id": facility_id,
            "amount": amount,
            "type": type,
            "payment_method": "cash",
            "status": status,
            "request_id": request_id,
            "created_at": created_at.isoformat() if created_at else db.tick(),
        }
        db.tables["transactions"].append(row)
        return row

    return _add
