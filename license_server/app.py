import logging
import sys

from flask import Flask, current_app, jsonify, request
from sqlalchemy.exc import SQLAlchemyError

from license_server.config import Settings
from license_server.db import CONNECTED, LicenseStore
from license_server.errors import LicenseServiceError, ValidationInput

logger = logging.getLogger(__name__)


def get_store() -> LicenseStore:
    return current_app.extensions["license_store"]


def get_settings() -> Settings:
    return current_app.extensions["license_settings"]


def json_body() -> dict:
    j = request.get_json(silent=True)
    return j if isinstance(j, dict) else {}


def text_field(data: dict, key: str):
    """Return ``data[key]`` stripped, None when blank, 400 when not a string."""
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationInput(f"{key} must be a string")
    return value.strip() or None


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


def create_app(settings: Settings = None, store: LicenseStore = None) -> Flask:
    settings = settings or Settings()
    configure_logging(settings.LOG_LEVEL)
    if not settings.ADMIN_PASSWORD:
        logger.warning("ADMIN_PASSWORD is not set, admin endpoints will reject every request")

    store = store or LicenseStore(settings.DATABASE_URL)
    store.create_all()

    app = Flask(__name__)
    app.extensions["license_store"] = store
    app.extensions["license_settings"] = settings

    from license_server.api import bp as api_bp
    from license_server.admin import bp as admin_bp
    app.register_blueprint(api_bp)
    app.register_blueprint(admin_bp)

    @app.errorhandler(LicenseServiceError)
    def handle_service_error(e):
        if e.status_code >= 400:
            logger.info("%s %s rejected: %s (%s)", request.method, request.path, e.error, e.message)
        return jsonify(e.payload()), e.status_code

    @app.errorhandler(SQLAlchemyError)
    def handle_store_error(e):
        logger.exception("persistence failure on %s %s", request.method, request.path)
        if request.blueprint == "admin":
            return jsonify({
                "error": "database_not_connected",
                "details": f"Current state: {get_store().status()}",
            }), 503
        return jsonify({"error": "internal_error", "message": "Internal server error"}), 500

    @app.get("/")
    def root():
        return {"ok": True, "msg": "license server running", "product": settings.PRODUCT_CODE}

    @app.get("/healthz")
    def healthz():
        return {"ok": True, "product": settings.PRODUCT_CODE}

    @app.get("/api/health")
    def health():
        state = get_store().status()
        return jsonify({"status": "ok", "database": state}), 200 if state == CONNECTED else 503

    return app
