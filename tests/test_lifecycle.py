from datetime import timedelta

import pytest

from license_server import lifecycle
from license_server.errors import InvalidTransition
from license_server.lifecycle import utcnow
from license_server.models import License


def make_license(license_type="monthly", status="active", start=None, end=None):
    now = utcnow()
    start = start or now
    lic = License(token="T-1", email="a@x.com", type=license_type, status=status, start_date=start, end_date=end)
    lifecycle.refresh(lic, max(start, now))
    return lic


@pytest.mark.parametrize("license_type,days", [
    ("trial", 30),
    ("monthly", 30),
    ("6months", 180),
    ("yearly", 365),
])
def test_duration_sets_end_date(license_type, days):
    start = utcnow()
    lic = make_license(license_type, start=start)
    assert lic.end_date == start + timedelta(days=days)
    assert lic.days_remaining == days


def test_lifetime_has_no_end_and_unlimited_days():
    lic = make_license("lifetime")
    assert lic.end_date is None
    assert lic.days_remaining == -1

    # forced recomputation keeps the invariant even if something set an end date
    lic.end_date = utcnow() - timedelta(days=3)
    lifecycle.refresh(lic, utcnow() + timedelta(days=1000))
    assert lic.end_date is None
    assert lic.days_remaining == -1
    assert lic.status == "active"


def test_days_remaining_rounds_up_and_never_goes_negative():
    now = utcnow()
    lic = make_license("monthly", start=now - timedelta(days=29, hours=12))
    assert lifecycle.days_remaining(lic, now) == 1
    assert lifecycle.days_remaining(lic, now + timedelta(days=5)) == 0


def test_refresh_auto_expires_active_license_past_end():
    now = utcnow()
    lic = make_license("monthly", start=now - timedelta(days=40))
    assert lic.status == "expired"
    assert lic.days_remaining == 0


def test_refresh_does_not_expire_suspended_license():
    now = utcnow()
    lic = make_license("monthly", status="suspended", start=now - timedelta(days=40))
    assert lic.status == "suspended"
    assert lic.days_remaining == 0


def test_expire_if_due_only_once():
    now = utcnow()
    lic = make_license("monthly", start=now)
    later = now + timedelta(days=31)
    assert lifecycle.expire_if_due(lic, later) is True
    assert lic.status == "expired"
    assert lifecycle.expire_if_due(lic, later) is False


def test_suspend_activate_round_trip_keeps_end_date():
    lic = make_license("yearly")
    end = lic.end_date
    lifecycle.suspend(lic)
    assert lic.status == "suspended"
    lifecycle.activate(lic)
    assert lic.status == "active"
    assert lic.end_date == end


def test_activate_rejected_after_end_date():
    now = utcnow()
    lic = make_license("monthly", start=now)
    lifecycle.suspend(lic, now)
    with pytest.raises(InvalidTransition):
        lifecycle.activate(lic, now + timedelta(days=45))
    assert lic.status == "suspended"


def test_suspend_requires_active():
    lic = make_license("monthly")
    lifecycle.suspend(lic)
    with pytest.raises(InvalidTransition):
        lifecycle.suspend(lic)


def test_revoke_is_terminal_and_idempotent():
    lic = make_license("monthly")
    assert lifecycle.revoke(lic) is True
    assert lifecycle.revoke(lic) is False
    with pytest.raises(InvalidTransition):
        lifecycle.suspend(lic)
    with pytest.raises(InvalidTransition):
        lifecycle.activate(lic)
    assert lic.status == "revoked"


def test_expired_license_can_still_be_revoked():
    now = utcnow()
    lic = make_license("monthly", start=now - timedelta(days=60))
    assert lic.status == "expired"
    assert lifecycle.revoke(lic, now) is True
    assert lic.status == "revoked"
