from datetime import datetime, timedelta

import pytest

from license_server import repository
from license_server.errors import TrialAlreadyUsed
from license_server.lifecycle import utcnow


def _parse(value):
    return datetime.fromisoformat(value.rstrip("Z"))


def test_start_trial_then_second_attempt_is_refused(client):
    res = client.post("/api/trial/start", json={"email": "a@x.com", "machineId": "m1", "deviceName": "Pixel"})
    assert res.status_code == 200
    data = res.get_json()
    assert data["success"] is True
    assert data["licenseKey"].startswith("TRIAL-")
    assert abs(_parse(data["expires"]) - (utcnow() + timedelta(days=30))) < timedelta(seconds=5)

    res = client.post("/api/trial/start", json={"email": "a@x.com", "machineId": "m2", "deviceName": "iPhone"})
    assert res.status_code == 400
    data = res.get_json()
    assert data["success"] is False
    assert data["error"] == "trial_already_used"
    assert data["message"].startswith("Trial already used")
    assert data["trialDate"] is not None


def test_trial_exclusivity_ignores_email_case(client):
    client.post("/api/trial/start", json={"email": "Case@X.com", "machineId": "m1"})
    res = client.post("/api/trial/start", json={"email": "case@x.com", "machineId": "m1"})
    assert res.status_code == 400


def test_new_email_on_same_machine_can_trial(client):
    client.post("/api/trial/start", json={"email": "first@x.com", "machineId": "shared"})
    res = client.post("/api/trial/start", json={"email": "second@x.com", "machineId": "shared"})
    assert res.status_code == 200


def test_trial_updates_account(client, store):
    res = client.post("/api/trial/start", json={"email": "a@x.com", "machineId": "m1", "deviceName": "Pixel"})
    token = res.get_json()["licenseKey"]
    with store.session() as db:
        account = repository.get_account(db, "a@x.com")
        assert account.trial_used is True
        assert account.trial_date is not None
        assert account.current_license_token == token
        assert account.license_history == [token]
        assert account.machine_id == "m1"
        lic = repository.get_license_by_token(db, token)
        assert lic.type == "trial"
        assert lic.notes == "Trial for Pixel"


def test_start_trial_requires_email(client):
    res = client.post("/api/trial/start", json={"machineId": "m1"})
    assert res.status_code == 400
    assert res.get_json()["error"] == "invalid_input"


def test_check_trial_availability(client):
    res = client.get("/api/trial/check/fresh@x.com")
    assert res.status_code == 200
    assert res.get_json() == {"canStartTrial": True, "previousTrial": None}

    client.post("/api/trial/start", json={"email": "fresh@x.com", "machineId": "m1", "deviceName": "Pixel"})
    res = client.get("/api/trial/check/FRESH@x.com")
    data = res.get_json()
    assert data["canStartTrial"] is False
    window = data["previousTrial"]
    assert window["email"] == "fresh@x.com"
    assert _parse(window["expiredAt"]) - _parse(window["startedAt"]) == timedelta(days=30)


def test_profile_save_does_not_consume_trial(client):
    client.post("/api/user-profile/save", json={"email": "p@x.com", "name": "Pat"})
    res = client.get("/api/trial/check/p@x.com")
    assert res.get_json()["canStartTrial"] is True


@pytest.mark.parametrize("body", [
    {"email": 123},
    {"email": "a@x.com", "machineId": 7},
    {"email": "a@x.com", "deviceName": ["Pixel"]},
])
def test_start_trial_rejects_non_string_fields(client, body):
    res = client.post("/api/trial/start", json=body)
    assert res.status_code == 400
    assert res.get_json()["error"] == "invalid_input"


def test_trial_date_drops_microseconds():
    error = TrialAlreadyUsed(datetime(2026, 1, 1, 12, 30, 0, 123456))
    assert error.payload()["trialDate"] == "2026-01-01T12:30:00Z"
    assert TrialAlreadyUsed().payload()["trialDate"] is None
