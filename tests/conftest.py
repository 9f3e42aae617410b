import pytest

from license_server.app import create_app
from license_server.config import Settings
from license_server.db import LicenseStore

ADMIN_PASSWORD = "test-admin-secret"


@pytest.fixture
def settings():
    return Settings(
        DATABASE_URL="sqlite:///:memory:",
        ADMIN_PASSWORD=ADMIN_PASSWORD,
        SECRET_KEY="test-secret",
        LOG_LEVEL="WARNING",
    )


@pytest.fixture
def store(settings):
    """An in-memory store shared by the app and the test body."""
    store = LicenseStore(settings.DATABASE_URL)
    store.create_all()
    yield store
    store.drop_all()
    store.dispose()


@pytest.fixture
def app(settings, store):
    app = create_app(settings=settings, store=store)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    """A test client for the app."""
    return app.test_client()


@pytest.fixture
def admin_headers():
    return {"X-Admin-Password": ADMIN_PASSWORD}


@pytest.fixture
def create_license(client, admin_headers):
    """Create a license through the admin API and return its JSON."""
    def _create(email="owner@example.com", license_type="monthly", notes=None):
        res = client.post(
            "/api/admin/licenses",
            json={"email": email, "type": license_type, "notes": notes},
            headers=admin_headers,
        )
        assert res.status_code == 200, res.get_json()
        return res.get_json()["license"]
    return _create
