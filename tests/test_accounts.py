from license_server import repository
from license_server.db import DISCONNECTED


def test_profile_save_creates_account(client, store):
    res = client.post("/api/user-profile/save", json={
        "email": "Pro@X.com", "name": "Pro", "phone": "+33 6", "showLogoInPV": True, "machineId": "m1",
    })
    assert res.status_code == 200
    profile = res.get_json()["profile"]
    assert profile["email"] == "pro@x.com"
    assert profile["showLogoInPV"] is True
    assert profile["trialUsed"] is False

    with store.session() as db:
        account = repository.get_account(db, "pro@x.com")
        assert account.name == "Pro"
        assert account.machine_id == "m1"


def test_profile_save_updates_without_touching_trial(client):
    client.post("/api/trial/start", json={"email": "u@x.com", "machineId": "m1"})
    client.post("/api/user-profile/save", json={"email": "u@x.com", "name": "Later"})
    profile = client.get("/api/user-profile/u@x.com").get_json()["profile"]
    assert profile["name"] == "Later"
    assert profile["trialUsed"] is True
    assert len(profile["licenseHistory"]) == 1


def test_profile_requires_email(client):
    assert client.post("/api/user-profile/save", json={"name": "x"}).status_code == 400


def test_profile_rejects_non_string_fields(client, store):
    assert client.post("/api/user-profile/save", json={"email": 123}).status_code == 400
    res = client.post("/api/user-profile/save", json={"email": "p@x.com", "phone": 612345678})
    assert res.status_code == 400
    assert res.get_json()["error"] == "invalid_input"
    with store.session() as db:
        assert repository.get_account(db, "p@x.com") is None


def test_unknown_profile(client):
    assert client.get("/api/user-profile/nobody@x.com").status_code == 404


def test_get_or_create_account_is_lazy(store):
    with store.session() as db:
        assert repository.get_account(db, "lazy@x.com") is None
        first = repository.get_or_create_account(db, " Lazy@X.com ")
        second = repository.get_or_create_account(db, "lazy@x.com")
        assert first is second
        assert first.license_history == []
    with store.session() as db:
        assert repository.count_accounts(db) == 1


def test_health_endpoints(client, store, monkeypatch):
    assert client.get("/healthz").get_json()["ok"] is True
    res = client.get("/api/health")
    assert res.status_code == 200
    assert res.get_json() == {"status": "ok", "database": "connected"}

    monkeypatch.setattr(store, "status", lambda: DISCONNECTED)
    res = client.get("/api/health")
    assert res.status_code == 503
    assert res.get_json()["database"] == "disconnected"
