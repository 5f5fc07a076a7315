from datetime import timedelta
from decimal import Decimal

import pytest

from conftest import NOW
from gymledger.services.membership.income import IncomeProjection


@pytest.fixture
def income(repo, clock):
    return IncomeProjection(repo, clock=clock)


@pytest.fixture
def ledger(add_transaction):
    add_transaction("today-1", amount="300.00", created_at=NOW - timedelta(hours=2))
    add_transaction("today-refund", amount="50.00", type="refund", created_at=NOW - timedelta(hours=1))
    add_transaction("today-failed", amount="999.00", status="failed", created_at=NOW - timedelta(hours=1))
    add_transaction("yesterday", member_id="m2", amount="200.00", created_at=NOW - timedelta(days=1))
    add_transaction("feb-26", amount="100.00", created_at=NOW - timedelta(days=3))
    add_transaction("feb-9", amount="400.00", created_at=NOW - timedelta(days=20))
    add_transaction("other-gym", member_id="m3", amount="1000.00", facility_id="f2",
                    created_at=NOW - timedelta(hours=3))


def test_income_report_totals(income, ledger):
    report = income.build("f1")

    assert report.total_received == Decimal("950.00")
    assert report.pending_total == Decimal("150.00")
    assert report.received_share == Decimal("86.36")
    assert report.pending_share == Decimal("13.64")


def test_income_report_periods(income, ledger):
    report = income.build("f1")

    assert report.today == Decimal("250.00")
    assert report.yesterday == Decimal("200.00")
    assert report.change_vs_yesterday == Decimal("25.00")
    assert report.this_month == Decimal("250.00")
    assert report.last_month == Decimal("700.00")
    assert report.change_vs_last_month == Decimal("-64.29")


def test_last_7_days_buckets_oldest_first(income, ledger):
    days = {d["date"]: d["amount"] for d in income.build("f1").to_dict()["last_7_days"]}

    assert list(days) == ["2026-02-23", "2026-02-24", "2026-02-25", "2026-02-26",
                          "2026-02-27", "2026-02-28", "2026-03-01"]
    assert days["2026-02-26"] == "100.00"
    assert days["2026-02-28"] == "200.00"
    assert days["2026-03-01"] == "250.00"
    assert days["2026-02-24"] == "0.00"


def test_recent_transactions_carry_member_names(income, ledger):
    recent = income.build("f1").recent

    assert [r["id"] for r in recent] == ["today-refund", "today-1", "yesterday"]
    assert recent[2]["full_name"] == "Bilal Khan"


def test_empty_facility_has_no_percentages(income):
    data = income.build("f-empty").to_dict()

    assert data["metrics"]["total_received"] == "0.00"
    assert data["metrics"]["received_share"] is None
    assert data["income"]["change_vs_yesterday"] is None


def test_income_between(income, ledger):
    assert income.income_between("f1", NOW - timedelta(days=4), NOW) == Decimal("550.00")
