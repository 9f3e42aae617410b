"""License lifecycle: durations, remaining days, lazy expiry and status transitions.

Every function takes ``now`` explicitly (defaulting to the current UTC time)
so callers and tests can evaluate a license at any instant. Datetimes are
naive UTC throughout, matching what the database columns store.
"""
import math
from datetime import datetime, timedelta, timezone

from license_server.errors import InvalidTransition

DURATION_DAYS = {
    "trial": 30,
    "monthly": 30,
    "6months": 180,
    "yearly": 365,
    "lifetime": None,
}

UNLIMITED = -1
DAY_SECONDS = 24 * 60 * 60


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def compute_end_date(license_type: str, start: datetime):
    days = DURATION_DAYS[license_type]
    if days is None:
        return None
    return start + timedelta(days=days)


def days_remaining(lic, now: datetime = None) -> int:
    if lic.type == "lifetime":
        return UNLIMITED
    if lic.end_date is None:
        return 0
    now = now or utcnow()
    remaining = math.ceil((lic.end_date - now).total_seconds() / DAY_SECONDS)
    return max(0, remaining)


def is_past_end(lic, now: datetime = None) -> bool:
    if lic.end_date is None:
        return False
    return (now or utcnow()) > lic.end_date


def refresh(lic, now: datetime = None) -> None:
    """Recompute cached fields and apply auto-expiry. Runs on every write."""
    now = now or utcnow()
    if lic.start_date is None:
        lic.start_date = now
    if lic.status is None:
        lic.status = "active"
    if lic.type == "lifetime":
        lic.end_date = None
        lic.days_remaining = UNLIMITED
        return
    if lic.end_date is None:
        lic.end_date = compute_end_date(lic.type, lic.start_date)
    lic.days_remaining = days_remaining(lic, now)
    if lic.days_remaining == 0 and lic.status == "active":
        lic.status = "expired"


def expire_if_due(lic, now: datetime = None) -> bool:
    """Lazily move an active license past its end date to ``expired``."""
    if lic.status == "active" and is_past_end(lic, now):
        lic.status = "expired"
        lic.days_remaining = 0
        return True
    return False


def suspend(lic, now: datetime = None) -> None:
    refresh(lic, now)
    if lic.status != "active":
        raise InvalidTransition(f"Cannot suspend a license that is {lic.status}")
    lic.status = "suspended"


def activate(lic, now: datetime = None) -> None:
    refresh(lic, now)
    if lic.status != "suspended":
        raise InvalidTransition(f"Cannot activate a license that is {lic.status}")
    if is_past_end(lic, now):
        end = lic.end_date.replace(microsecond=0).isoformat() + "Z"
        raise InvalidTransition("Cannot activate an expired license", endDate=end)
    lic.status = "active"


def revoke(lic, now: datetime = None) -> bool:
    """Revoke the license. Returns False when it was already revoked."""
    if lic.status == "revoked":
        return False
    refresh(lic, now)
    lic.status = "revoked"
    return True
