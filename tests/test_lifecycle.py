from datetime import datetime, timedelta, timezone

from gymledger.services.membership.lifecycle import LifecycleResolver
from gymledger.services.membership.models import Membership

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def membership(mid, start_offset, days=30, status="active", is_disabled=False):
    start = NOW + timedelta(days=start_offset)
    return Membership(
        id=mid,
        member_id="m1",
        plan_id="p",
        start_date=start,
        end_date=start + timedelta(days=days),
        status=status,
        is_disabled=is_disabled,
    )


def test_classify_statuses():
    resolver = LifecycleResolver()
    assert resolver.classify(membership("a", -5), NOW) == "active"
    assert resolver.classify(membership("b", 3, status="pending"), NOW) == "pending"
    assert resolver.classify(membership("c", -40), NOW) == "expired"
    assert resolver.classify(membership("d", -5, is_disabled=True), NOW) == "expired"


def test_end_date_equal_to_now_is_still_active():
    m = membership("a", -30, days=30)
    assert m.end_date == NOW
    assert LifecycleResolver.classify(m, NOW) == "active"


def test_stale_active_is_expired():
    resolution = LifecycleResolver().resolve([membership("old", -40)], NOW)
    assert resolution.current is None
    assert [(c.membership_id, c.target_status) for c in resolution.changes] == [("old", "expired")]


def test_pending_becomes_active_once_started():
    resolution = LifecycleResolver().resolve([membership("p", -1, status="pending")], NOW)
    assert resolution.current.id == "p"
    assert resolution.changes[0].target_status == "active"


def test_overlapping_actives_keep_latest_start():
    older = membership("older", -10)
    newer = membership("newer", -2)
    resolution = LifecycleResolver().resolve([older, newer], NOW)

    assert resolution.current.id == "newer"
    assert resolution.targets["older"] == "expired"
    forced = [c for c in resolution.changes if c.membership_id == "older"]
    assert forced and forced[0].disable is True


def test_overlap_tie_is_broken_by_id():
    a = membership("a", -3)
    b = membership("b", -3)
    assert LifecycleResolver().resolve([a, b], NOW).current.id == "b"
    assert LifecycleResolver().resolve([b, a], NOW).current.id == "b"


def test_no_changes_when_statuses_match():
    resolution = LifecycleResolver().resolve(
        [membership("a", -5), membership("p", 5, status="pending"), membership("x", -60, status="expired")],
        NOW,
    )
    assert resolution.changes == []
    assert [m.id for m in resolution.pending] == ["p"]


def test_invalid_records_are_rejected_not_fatal():
    broken = Membership(id="bad", member_id="m1", plan_id="p", start_date=None, end_date=None, status="active")
    backwards = membership("back", 0, days=-3)
    resolution = LifecycleResolver().resolve([broken, backwards, membership("ok", -1)], NOW)

    assert resolution.rejected == ["bad", "back"]
    assert resolution.current.id == "ok"
    assert "bad" not in resolution.targets


def test_stored_expired_is_never_revived():
    gone = membership("gone", -5, status="expired")
    current = membership("current", -10)

    resolution = LifecycleResolver().resolve([gone, current], NOW)

    assert resolution.targets["gone"] == "expired"
    assert resolution.current.id == "current"
    assert resolution.changes == []


def test_stored_active_does_not_fall_back_to_pending():
    early = membership("early", 2, status="active")
    resolution = LifecycleResolver().resolve([early], NOW)

    assert resolution.targets["early"] == "active"
    assert resolution.changes == []
