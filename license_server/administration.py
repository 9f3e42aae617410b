"""Privileged license operations behind the admin credential."""
import logging

from license_server import lifecycle, repository
from license_server.errors import NotFound, TrialAlreadyUsed, ValidationInput
from license_server.licensing import mint_license
from license_server.models import LICENSE_STATUSES, LICENSE_TYPES, License
from license_server.serializers import trial_window

logger = logging.getLogger(__name__)

CSV_HEADER = ["License Key", "Email", "Type", "Status", "Start Date", "End Date", "Days Remaining", "Notes"]


def list_licenses(db, email=None, license_type=None, status=None, search=None):
    if license_type and license_type not in LICENSE_TYPES:
        raise ValidationInput(f"Unknown license type: {license_type}")
    if status and status not in LICENSE_STATUSES:
        raise ValidationInput(f"Unknown license status: {status}")
    return repository.list_licenses(db, email=email, license_type=license_type, status=status, search=search)


def get_license(db, license_id: int) -> License:
    lic = repository.get_license(db, license_id)
    if lic is None:
        raise NotFound("License not found")
    return lic


def generate_license(db, email: str, license_type: str, notes: str = None, settings=None, now=None) -> License:
    if not email or not license_type:
        raise ValidationInput("Email and type required")
    now = now or lifecycle.utcnow()
    account = repository.get_account(db, email)
    if license_type == "trial" and account is not None and account.trial_used:
        raise TrialAlreadyUsed(account.trial_date)

    lic = mint_license(db, email, license_type, notes=notes, settings=settings, now=now)
    account = account or repository.get_or_create_account(db, email)
    if license_type == "trial":
        account.trial_used = True
        account.trial_date = now
    account.attach_license(lic.token)
    return lic


def suspend_license(db, license_id: int, now=None) -> License:
    lic = get_license(db, license_id)
    if lifecycle.expire_if_due(lic, now):
        # keep the expiry, the refused transition below rolls the session back
        db.commit()
        logger.info("license %s expired before suspension", lic.token)
    lifecycle.suspend(lic, now)
    logger.info("license %s suspended", lic.token)
    return lic


def activate_license(db, license_id: int, now=None) -> License:
    lic = get_license(db, license_id)
    lifecycle.activate(lic, now)
    logger.info("license %s reactivated", lic.token)
    return lic


def revoke_license(db, license_id: int, now=None) -> License:
    lic = get_license(db, license_id)
    if lifecycle.revoke(lic, now):
        logger.info("license %s revoked", lic.token)
    return lic


def delete_license(db, license_id: int) -> None:
    # account history keeps the token, it is an audit trail
    lic = get_license(db, license_id)
    repository.delete_license(db, lic)
    logger.info("license %s deleted", lic.token)


def stats(db) -> dict:
    by_status = dict.fromkeys(LICENSE_STATUSES, 0)
    by_status.update(repository.count_licenses_by(db, License.status))
    by_type = dict.fromkeys(LICENSE_TYPES, 0)
    by_type.update(repository.count_licenses_by(db, License.type))
    return {
        "totalLicenses": sum(by_status.values()),
        "activeLicenses": by_status["active"],
        "byStatus": by_status,
        "byType": by_type,
        "trialsUsed": repository.count_accounts(db, trial_used=True),
        "totalAccounts": repository.count_accounts(db),
    }


def list_trials(db) -> list:
    return [trial_window(account) for account in repository.list_trial_accounts(db)]


def _neutralize(value) -> str:
    text = "" if value is None else str(value)
    return text.replace(",", ";").replace("\r", " ").replace("\n", " ")


def _day(value) -> str:
    return value.strftime("%Y-%m-%d") if value else ""


def export_csv(db, now=None) -> str:
    """Flatten every license into comma separated rows for offline audit."""
    lines = [",".join(CSV_HEADER)]
    for lic in repository.list_licenses(db):
        unlimited = lic.type == "lifetime"
        lines.append(",".join(_neutralize(cell) for cell in [
            lic.token,
            lic.email,
            lic.type,
            lic.status,
            _day(lic.start_date),
            "Unlimited" if unlimited else _day(lic.end_date),
            "Unlimited" if unlimited else lifecycle.days_remaining(lic, now),
            lic.notes,
        ]))
    return "\n".join(lines) + "\n"
