import logging

from license_server import lifecycle, repository
from license_server.errors import TrialAlreadyUsed, ValidationInput
from license_server.licensing import mint_license
from license_server.serializers import iso, trial_window

logger = logging.getLogger(__name__)


def start_trial(db, email: str, machine_id: str = None, device_name: str = None, settings=None, now=None) -> dict:
    """Start the one trial an email is ever allowed.

    The machine id is stored for support but does not gate the trial: a new
    email on a known machine still gets one.
    """
    email = repository.normalize_email(email)
    if not email:
        raise ValidationInput("Email is required")
    now = now or lifecycle.utcnow()

    account = repository.get_account(db, email)
    if account is not None and account.trial_used:
        logger.info("trial refused for %s, already used on %s", email, account.trial_date)
        raise TrialAlreadyUsed(account.trial_date)

    lic = mint_license(
        db, email, "trial", notes=f"Trial for {device_name or 'unknown'}", settings=settings, now=now,
    )
    account = account or repository.get_or_create_account(db, email)
    account.trial_used = True
    account.trial_date = now
    if machine_id:
        account.machine_id = machine_id
    if device_name:
        account.device_name = device_name
    account.attach_license(lic.token)
    return {"success": True, "expires": iso(lic.end_date), "licenseKey": lic.token}


def check_trial(db, email: str) -> dict:
    email = repository.normalize_email(email)
    if not email:
        raise ValidationInput("Email is required")
    account = repository.get_account(db, email)
    if account is None or not account.trial_used:
        return {"canStartTrial": True, "previousTrial": None}
    return {"canStartTrial": False, "previousTrial": trial_window(account)}
