from flask import Blueprint, jsonify

from license_server import accounts, licensing, trials
from license_server.app import get_settings, get_store, json_body, text_field

bp = Blueprint("api", __name__, url_prefix="/api")


@bp.post("/trial/start")
def start_trial():
    j = json_body()
    with get_store().session() as db:
        result = trials.start_trial(
            db,
            j.get("email"),
            machine_id=text_field(j, "machineId"),
            device_name=text_field(j, "deviceName"),
            settings=get_settings(),
        )
    return jsonify(result)


@bp.get("/trial/check/<path:email>")
def check_trial(email):
    with get_store().session() as db:
        return jsonify(trials.check_trial(db, email))


@bp.post("/validate-license")
def validate_license():
    j = json_body()
    with get_store().session() as db:
        result = licensing.validate(
            db,
            text_field(j, "token") or text_field(j, "key"),
            email=j.get("email"),
            machine_id=text_field(j, "machineId"),
        )
    return jsonify(result)


@bp.post("/user-profile/save")
def save_profile():
    with get_store().session() as db:
        profile = accounts.save_profile(db, json_body())
    return jsonify({"success": True, "profile": profile})


@bp.get("/user-profile/<path:email>")
def get_profile(email):
    with get_store().session() as db:
        return jsonify({"success": True, "profile": accounts.get_profile(db, email)})
