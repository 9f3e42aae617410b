import logging

from flask import Blueprint, Response, jsonify, request

from license_server import administration
from license_server.app import get_settings, get_store, json_body, text_field
from license_server.db import CONNECTED
from license_server.errors import PersistenceUnavailable, Unauthorized
from license_server.lifecycle import utcnow
from license_server.security import check_admin_password
from license_server.serializers import license_to_dict

logger = logging.getLogger(__name__)

bp = Blueprint("admin", __name__, url_prefix="/api/admin")


@bp.before_request
def require_admin():
    supplied = request.headers.get("x-admin-password") or request.args.get("password") or ""
    if not check_admin_password(supplied, get_settings().ADMIN_PASSWORD):
        logger.warning("admin authentication failed for %s (received length %d)", request.path, len(supplied.strip()))
        raise Unauthorized("Unauthorized")
    state = get_store().status()
    if state != CONNECTED:
        raise PersistenceUnavailable(state)


def _dump(lic):
    return license_to_dict(lic, legacy_key=get_settings().LEGACY_KEY_FIELD)


@bp.get("/licenses")
def list_licenses():
    args = request.args
    with get_store().session() as db:
        licenses = administration.list_licenses(
            db,
            email=args.get("email") or None,
            license_type=args.get("type") or None,
            status=args.get("status") or None,
            search=args.get("search") or None,
        )
        return jsonify([_dump(lic) for lic in licenses])


@bp.post("/licenses")
def create_license():
    j = json_body()
    with get_store().session() as db:
        lic = administration.generate_license(
            db, j.get("email"), text_field(j, "type"), notes=text_field(j, "notes"), settings=get_settings(),
        )
        return jsonify({"success": True, "license": _dump(lic)})


@bp.get("/licenses/<int:license_id>")
def get_license(license_id):
    with get_store().session() as db:
        return jsonify({"success": True, "license": _dump(administration.get_license(db, license_id))})


@bp.put("/licenses/<int:license_id>/suspend")
def suspend_license(license_id):
    with get_store().session() as db:
        lic = administration.suspend_license(db, license_id)
        return jsonify({"success": True, "license": _dump(lic)})


@bp.put("/licenses/<int:license_id>/activate")
def activate_license(license_id):
    with get_store().session() as db:
        lic = administration.activate_license(db, license_id)
        return jsonify({"success": True, "license": _dump(lic)})


@bp.put("/licenses/<int:license_id>/revoke")
def revoke_license(license_id):
    with get_store().session() as db:
        administration.revoke_license(db, license_id)
    return jsonify({"success": True})


@bp.delete("/licenses/<int:license_id>")
def delete_license(license_id):
    with get_store().session() as db:
        administration.delete_license(db, license_id)
    return jsonify({"success": True})


@bp.get("/stats")
def stats():
    with get_store().session() as db:
        return jsonify(administration.stats(db))


@bp.get("/trials")
def trials():
    with get_store().session() as db:
        return jsonify(administration.list_trials(db))


@bp.get("/export/csv")
def export_csv():
    with get_store().session() as db:
        body = administration.export_csv(db)
    filename = f"licenses_export_{utcnow().strftime('%Y-%m-%d')}.csv"
    return Response(
        body,
        mimetype="text/csv",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )
