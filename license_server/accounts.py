from license_server import repository
from license_server.errors import NotFound, ValidationInput
from license_server.serializers import account_to_dict

PROFILE_FIELDS = {
    "name": "name",
    "phone": "phone",
    "avatar": "avatar",
    "companyLogo": "company_logo",
    "machineId": "machine_id",
    "deviceName": "device_name",
}


def save_profile(db, data: dict) -> dict:
    """Upsert the profile part of an account. Trial and license fields are never touched here."""
    email = repository.normalize_email(data.get("email"))
    if not email:
        raise ValidationInput("Email required")
    account = repository.get_or_create_account(db, email)
    for key, attr in PROFILE_FIELDS.items():
        if key in data:
            value = data[key]
            if value is not None and not isinstance(value, str):
                raise ValidationInput(f"{key} must be a string")
            setattr(account, attr, value)
    if "showLogoInPV" in data:
        account.show_logo_in_pv = bool(data["showLogoInPV"])
    return account_to_dict(account)


def get_profile(db, email: str) -> dict:
    account = repository.get_account(db, email)
    if account is None:
        raise NotFound("User not found")
    return account_to_dict(account)
