import logging

from license_server import lifecycle, repository, security
from license_server.config import settings as default_settings
from license_server.errors import EmailMismatch, NotFound, StatusRejection, ValidationInput
from license_server.models import LICENSE_TYPES, License
from license_server.serializers import iso

logger = logging.getLogger(__name__)


def mint_license(db, email: str, license_type: str, notes: str = None, settings=None, now=None) -> License:
    """Issue and persist a new active license. The caller owns account bookkeeping."""
    email = repository.normalize_email(email)
    if not email:
        raise ValidationInput("Email is required")
    if license_type not in LICENSE_TYPES:
        raise ValidationInput(f"Valid type required ({', '.join(LICENSE_TYPES)})")
    now = now or lifecycle.utcnow()
    token = security.issue(email, license_type, {"issued_at": now}, settings=settings or default_settings)
    while repository.token_exists(db, token):
        token = security.issue(email, license_type, {"issued_at": now}, settings=settings or default_settings)
    lic = License(
        token=token, email=email, type=license_type, status="active",
        start_date=now, end_date=lifecycle.compute_end_date(license_type, now), notes=notes,
    )
    lifecycle.refresh(lic, now)
    repository.add_license(db, lic)
    logger.info("issued %s license %s for %s", license_type, token, email)
    return lic


def validate(db, token: str, email: str = None, machine_id: str = None, now=None) -> dict:
    """Answer whether ``token`` currently grants access.

    Checks run in order and stop at the first failure: existence, stored
    status, end date (persisting the lazy expiry), then the optional email
    binding. ``machine_id`` is recorded on success but never enforced.
    """
    if token is not None and not isinstance(token, str):
        raise ValidationInput("License token must be a string")
    token = (token or "").strip()
    if not token:
        raise ValidationInput("License token required")
    now = now or lifecycle.utcnow()

    lic = repository.get_license_by_token(db, token)
    if lic is None:
        raise NotFound("License not found", valid=False)

    if lic.status != "active":
        raise StatusRejection(lic.status)

    if lifecycle.expire_if_due(lic, now):
        # commit now: the rejection below rolls the surrounding session back
        db.commit()
        logger.info("license %s expired on validation", lic.token)
        raise StatusRejection("expired")

    if email and repository.normalize_email(email) != repository.normalize_email(lic.email):
        logger.warning("email mismatch on validation of %s", lic.token)
        raise EmailMismatch("License belongs to another email", valid=False)

    if machine_id:
        account = repository.get_account(db, lic.email)
        if account is not None and account.machine_id != machine_id:
            account.machine_id = machine_id

    return {
        "valid": True,
        "type": lic.type,
        "status": lic.status,
        "expires": iso(lic.end_date),
        "daysRemaining": lifecycle.days_remaining(lic, now),
    }
