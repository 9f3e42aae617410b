from license_server import lifecycle


def iso(value):
    if value is None:
        return None
    return value.replace(microsecond=0).isoformat() + "Z"


def license_to_dict(lic, legacy_key=True, now=None) -> dict:
    data = {
        "id": lic.id,
        "token": lic.token,
        "email": lic.email,
        "type": lic.type,
        "status": lic.status,
        "startDate": iso(lic.start_date),
        "endDate": iso(lic.end_date),
        # computed on read so list and stats views never show a stale cache
        "daysRemaining": lifecycle.days_remaining(lic, now),
        "notes": lic.notes,
        "createdAt": iso(lic.created_at),
    }
    if legacy_key:
        data["key"] = lic.token
    return data


def account_to_dict(account) -> dict:
    return {
        "email": account.email,
        "machineId": account.machine_id,
        "deviceName": account.device_name,
        "trialUsed": bool(account.trial_used),
        "trialDate": iso(account.trial_date),
        "currentLicense": account.current_license_token,
        "licenseHistory": list(account.license_history or []),
        "name": account.name,
        "phone": account.phone,
        "avatar": account.avatar,
        "companyLogo": account.company_logo,
        "showLogoInPV": bool(account.show_logo_in_pv),
        "createdAt": iso(account.created_at),
        "updatedAt": iso(account.updated_at),
    }


def trial_window(account) -> dict:
    started = account.trial_date
    return {
        "email": account.email,
        "machineId": account.machine_id,
        "deviceName": account.device_name,
        "startedAt": iso(started),
        "expiredAt": iso(lifecycle.compute_end_date("trial", started)) if started else None,
    }
