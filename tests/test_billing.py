from decimal import Decimal

import pytest

from gymledger.services.errors import BalanceSyncFailure, InvalidAmount, InvalidPaymentAmount, NotFound


def test_pay_outstanding_balance_reduces_balance(billing, repo):
    tx = billing.pay_outstanding_balance("m2", Decimal("100"), "card")

    assert tx.type == "payment"
    assert tx.status == "completed"
    assert tx.membership_id is None
    assert tx.payment_method == "card"
    assert repo.get_member("m2").balance == Decimal("50.00")


def test_pay_exact_balance_clears_it(billing, repo):
    billing.pay_outstanding_balance("m2", "150", "cash")
    assert repo.get_member("m2").balance == Decimal("0.00")


@pytest.mark.parametrize("amount", ["0", "-5", "150.01"])
def test_pay_outstanding_balance_rejects_out_of_range(billing, repo, db, amount):
    with pytest.raises(InvalidPaymentAmount):
        billing.pay_outstanding_balance("m2", amount, "cash")
    assert db.rows("transactions") == []
    assert repo.get_member("m2").balance == Decimal("150.00")


def test_pay_outstanding_balance_rejects_garbage_amount(billing):
    with pytest.raises(InvalidPaymentAmount):
        billing.pay_outstanding_balance("m2", "ten", "cash")


def test_pay_outstanding_balance_with_nothing_owed(billing):
    with pytest.raises(InvalidPaymentAmount):
        billing.pay_outstanding_balance("m1", "10", "cash")


def test_pay_outstanding_balance_replay(billing, repo, db):
    first = billing.pay_outstanding_balance("m2", "100", "cash", request_id="pay-1")
    # the balance is now 50, so a fresh 100 would be rejected; the replay is not
    again = billing.pay_outstanding_balance("m2", "100", "cash", request_id="pay-1")

    assert again.id == first.id
    assert len(db.rows("transactions", member_id="m2")) == 1
    assert repo.get_member("m2").balance == Decimal("50.00")


def test_record_payment_requires_positive_amount(billing):
    with pytest.raises(InvalidAmount):
        billing.record_payment("m1", "0", "cash")


def test_unknown_member(billing):
    with pytest.raises(NotFound):
        billing.pay_outstanding_balance("ghost", "10", "cash")
    with pytest.raises(NotFound):
        billing.list_transactions("ghost")


def test_refund_adds_back_to_balance(billing, repo):
    tx = billing.record_refund("m1", "200", "cash")

    assert tx.type == "refund"
    assert tx.signed_amount == Decimal("-200.00")
    assert repo.get_member("m1").balance == Decimal("200.00")


def test_balance_sync_failure_carries_transaction(billing, repo, db):
    db.failing.add(("members", "update"))

    with pytest.raises(BalanceSyncFailure) as exc:
        billing.pay_outstanding_balance("m2", "100", "cash")

    assert exc.value.status_code == 500
    assert exc.value.transaction.amount == Decimal("100.00")
    assert len(db.rows("transactions", member_id="m2")) == 1
    assert repo.get_member("m2").balance == Decimal("150.00")


def test_reconcile_balance_from_history(billing, repo, add_membership, add_transaction):
    add_membership("a", member_id="m2", price="1000.00", discount="100.00")
    add_membership("b", member_id="m2", price="500.00")
    add_transaction("t1", member_id="m2", amount="900.00", membership_id="a")
    add_transaction("t2", member_id="m2", amount="200.00", membership_id="b")
    add_transaction("t3", member_id="m2", amount="50.00", type="refund")
    add_transaction("t4", member_id="m2", amount="999.00", status="failed")

    result = billing.reconcile_balance("m2")

    assert result.total_owed == Decimal("1400.00")
    assert result.total_paid == Decimal("1050.00")
    assert result.balance == Decimal("350.00")
    assert result.previous_balance == Decimal("150.00")
    assert result.changed is True
    assert repo.get_member("m2").balance == Decimal("350.00")


def test_reconcile_balance_never_goes_negative(billing, repo, add_membership, add_transaction):
    add_membership("a", member_id="m1", price="300.00")
    add_transaction("t1", member_id="m1", amount="500.00", membership_id="a")

    result = billing.reconcile_balance("m1")

    assert result.balance == Decimal("0.00")
    assert result.changed is False


def test_list_transactions_newest_first(billing, add_transaction):
    for i in range(5):
        add_transaction(f"t{i}", member_id="m1")

    rows = billing.list_transactions("m1", limit=3)

    assert [t.id for t in rows] == ["t4", "t3", "t2"]
