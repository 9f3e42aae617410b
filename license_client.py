# license_client.py: client side of the license service
# - Public API: start_trial(), check_trial(), activate(), validate_license(), clear_state()
# - Robust HTTP: retries/backoff + env-tunable timeouts
# - Periodic validation: skips the network while the last confirmation is fresh
# - Degrades gracefully: network errors and 5xx never invalidate local state,
#   only a server-confirmed `valid: false` or a 401/403/404 does
# - Small CLI for quick checks: `python license_client.py check|trial|activate|clear`

from __future__ import annotations

import datetime
import hashlib
import json
import logging
import os
import platform
import socket
import uuid
from typing import Any, Dict, Optional

import requests
from requests.adapters import HTTPAdapter
from requests.exceptions import ConnectionError as ReqConnErr
from requests.exceptions import ConnectTimeout, ReadTimeout, SSLError
from urllib3.util.retry import Retry

logger = logging.getLogger("license_client")

# -------------------------- Configuration knobs --------------------------

SERVER = os.environ.get("SNIPER_SERVER", "http://localhost:5000").rstrip("/")

CONNECT_TO = int(os.environ.get("SNIPER_CONNECT_TIMEOUT", "6"))
READ_TO    = int(os.environ.get("SNIPER_READ_TIMEOUT", "15"))
TIMEOUT    = (CONNECT_TO, READ_TO)

RETRIES        = int(os.environ.get("SNIPER_RETRIES", "3"))
BACKOFF_FACTOR = float(os.environ.get("SNIPER_BACKOFF", "0.8"))

# Seconds between server confirmations
VALIDATE_INTERVAL = int(os.environ.get("SNIPER_VALIDATE_INTERVAL", "300"))

STATE_FILE = os.environ.get("SNIPER_STATE_FILE", "license_state.json")

# Responses that mean "the server said no", as opposed to "could not ask"
REJECTING_STATUS = (401, 403, 404)


# ------------------------------- Utilities --------------------------------

def _state_path() -> str:
    return os.path.abspath(STATE_FILE)


def _load_state() -> Dict[str, Any]:
    try:
        with open(_state_path(), "r", encoding="utf-8") as f:
            j = json.load(f)
            return j if isinstance(j, dict) else {}
    except FileNotFoundError:
        return {}
    except (OSError, ValueError) as e:
        logger.warning("load_state failed: %r", e)
        return {}


def _save_state(data: Dict[str, Any]) -> bool:
    try:
        p = _state_path()
        tmp = p + ".tmp"
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
        os.replace(tmp, p)
        return True
    except OSError as e:
        logger.warning("save_state failed: %r", e)
        return False


def _machine_id() -> str:
    # Stable but anonymous machine fingerprint
    node = uuid.getnode()
    host = socket.gethostname()
    plat = f"{platform.system()}-{platform.release()}-{platform.machine()}"
    return hashlib.sha256(f"{node}-{host}-{plat}".encode("utf-8")).hexdigest()[:32]


def _now() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def _now_iso() -> str:
    return _now().replace(microsecond=0, tzinfo=None).isoformat() + "Z"


def _parse_iso(value: Optional[str]) -> Optional[datetime.datetime]:
    if not value:
        return None
    try:
        return datetime.datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def _session(retry_post: bool = True) -> requests.Session:
    # non-idempotent POSTs such as trial start are never re-sent
    s = requests.Session()
    methods = ["GET", "POST"] if retry_post else ["GET"]
    retry = Retry(
        total=RETRIES,
        connect=RETRIES,
        read=RETRIES,
        backoff_factor=BACKOFF_FACTOR,
        status_forcelist=(429, 500, 502, 503, 504),
        allowed_methods=frozenset(methods),
        raise_on_status=False,
    )
    adapter = HTTPAdapter(max_retries=retry)
    s.mount("https://", adapter)
    s.mount("http://", adapter)
    return s


def _json(resp) -> Dict[str, Any]:
    try:
        data = resp.json() if resp.content else {}
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


def _normalize_error(prefix: str, exc: Exception) -> str:
    if isinstance(exc, (ReadTimeout, ConnectTimeout)):
        return f"{prefix}: Connection timed out. Please check your network and try again."
    if isinstance(exc, SSLError):
        return f"{prefix}: TLS/Certificate error. If on a corporate network, ensure your CA bundle is set."
    if isinstance(exc, ReqConnErr):
        return f"{prefix}: Connection error: {exc!s}"
    return f"{prefix}: {exc!s}"


def _is_fresh(state: Dict[str, Any], interval: int) -> bool:
    validated = _parse_iso(state.get("validated_at"))
    if validated is None:
        return False
    return (_now() - validated).total_seconds() < interval


# ------------------------------- Public API --------------------------------

def check_trial(email: str) -> Dict[str, Any]:
    """GET /api/trial/check/<email> -> {ok, canStartTrial, previousTrial}"""
    if not email:
        return {"ok": False, "error": "Email is required."}
    try:
        resp = _session().get(f"{SERVER}/api/trial/check/{email.strip()}", timeout=TIMEOUT)
        data = _json(resp)
        if resp.status_code >= 400:
            return {"ok": False, "error": data.get("message") or f"Trial check failed ({resp.status_code})."}
        return {"ok": True, **data}
    except requests.RequestException as e:
        msg = _normalize_error("Trial check error", e)
        logger.warning(msg)
        return {"ok": False, "error": msg, "offline": True}


def start_trial(email: str, device_name: Optional[str] = None) -> Dict[str, Any]:
    """
    POST /api/trial/start {email, machineId, deviceName}
    On success: saves the trial license locally.
    """
    if not email:
        return {"ok": False, "error": "Email is required."}
    mid = _machine_id()
    payload = {"email": email.strip(), "machineId": mid, "deviceName": device_name or socket.gethostname()}
    try:
        resp = _session(retry_post=False).post(f"{SERVER}/api/trial/start", json=payload, timeout=TIMEOUT)
    except requests.RequestException as e:
        msg = _normalize_error("Trial start failed", e)
        logger.warning(msg)
        return {"ok": False, "error": msg, "offline": True}

    data = _json(resp)
    if resp.status_code >= 400 or not data.get("success"):
        return {
            "ok": False,
            "error": data.get("message") or f"Trial start failed ({resp.status_code}).",
            "trialDate": data.get("trialDate"),
        }

    state = {
        "license_key": data["licenseKey"],
        "email": payload["email"].lower(),
        "type": "trial",
        "status": "active",
        "expires": data.get("expires"),
        "machine_id": mid,
        "activated_at": _now_iso(),
        "validated_at": _now_iso(),
    }
    _save_state(state)
    return {"ok": True, **state}


def activate(license_key: str, email: str) -> Dict[str, Any]:
    """Validate a purchased key against the server and store it when accepted."""
    if not license_key or len(license_key.strip()) < 10:
        return {"ok": False, "error": "License key is invalid."}
    mid = _machine_id()
    payload = {"token": license_key.strip(), "email": (email or "").strip() or None, "machineId": mid}
    try:
        resp = _session().post(f"{SERVER}/api/validate-license", json=payload, timeout=TIMEOUT)
    except requests.RequestException as e:
        msg = _normalize_error("Activation failed", e)
        logger.warning(msg)
        return {"ok": False, "error": msg, "offline": True}

    data = _json(resp)
    if resp.status_code >= 400 or not data.get("valid"):
        return {"ok": False, "error": data.get("message") or data.get("status") or "License invalid."}

    state = {
        "license_key": payload["token"],
        "email": (payload["email"] or "").lower() or None,
        "type": data.get("type"),
        "status": "active",
        "expires": data.get("expires"),
        "days_remaining": data.get("daysRemaining"),
        "machine_id": mid,
        "activated_at": _now_iso(),
        "validated_at": _now_iso(),
    }
    _save_state(state)
    return {"ok": True, **state}


def validate_license(force: bool = False, interval: int = None) -> Dict[str, Any]:
    """
    Re-validate the stored license.

    Returns { "ok": bool, "status": ..., "offline": bool, ... }.
    Only an explicit server rejection changes the stored status; when the
    server cannot be reached the last known state is returned as is.
    """
    state = _load_state()
    key = state.get("license_key")
    if not key:
        return {"ok": False, "error": "not_activated"}
    if state.get("status") != "active":
        return {"ok": False, "status": state.get("status"), "offline": True}

    interval = VALIDATE_INTERVAL if interval is None else interval
    if not force and _is_fresh(state, interval):
        return {"ok": True, **state, "offline": True, "note": "recently_validated"}

    payload = {"token": key, "email": state.get("email"), "machineId": state.get("machine_id") or _machine_id()}
    try:
        resp = _session().post(f"{SERVER}/api/validate-license", json=payload, timeout=TIMEOUT)
    except requests.RequestException as e:
        msg = _normalize_error("License check error", e)
        logger.warning(msg)
        return {"ok": True, **state, "offline": True, "note": "network_error_offline_ok"}

    if resp.status_code >= 500:
        logger.warning("license check: server error %s, keeping local state", resp.status_code)
        return {"ok": True, **state, "offline": True, "note": f"server_check_failed:{resp.status_code}"}

    data = _json(resp)
    if resp.status_code in REJECTING_STATUS:
        state["status"] = "inactive"
        _save_state(state)
        return {"ok": False, "status": "inactive", "error": data.get("error") or f"rejected ({resp.status_code})"}

    if resp.status_code == 200 and data.get("valid") is False:
        state["status"] = data.get("status") or "inactive"
        _save_state(state)
        return {"ok": False, "status": state["status"], "error": data.get("error")}

    if resp.status_code == 200 and data.get("valid"):
        state.update({
            "type": data.get("type", state.get("type")),
            "expires": data.get("expires"),
            "days_remaining": data.get("daysRemaining"),
            "validated_at": _now_iso(),
        })
        _save_state(state)
        return {"ok": True, **state, "offline": False}

    # any other answer is not a confirmed rejection
    logger.warning("license check: unexpected response %s", resp.status_code)
    return {"ok": True, **state, "offline": True, "note": f"unexpected_response:{resp.status_code}"}


def clear_state() -> Dict[str, Any]:
    try:
        p = _state_path()
        if os.path.exists(p):
            os.remove(p)
        return {"ok": True, "error": None}
    except OSError as e:
        logger.warning("clear_state failed: %r", e)
        return {"ok": False, "error": "Failed to remove local state."}


# ------------------------------- CLI (optional quick tests) -----------------

if __name__ == "__main__":
    import argparse
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    ap = argparse.ArgumentParser(description="License client")
    sub = ap.add_subparsers(dest="cmd")

    ck = sub.add_parser("check", help="Validate the stored license")
    ck.add_argument("--force", action="store_true", help="Ignore the validation interval")

    tr = sub.add_parser("trial", help="Start a trial")
    tr.add_argument("--email", required=True)
    tr.add_argument("--device", default=None)

    ac = sub.add_parser("activate", help="Activate a purchased license key")
    ac.add_argument("--key", required=True, help="License key")
    ac.add_argument("--email", required=True, help="Email the license was issued to")

    sub.add_parser("clear", help="Clear local state only")

    args = ap.parse_args()
    if args.cmd == "check":
        print(json.dumps(validate_license(force=args.force), indent=2))
    elif args.cmd == "trial":
        print(json.dumps(start_trial(args.email, device_name=args.device), indent=2))
    elif args.cmd == "activate":
        print(json.dumps(activate(args.key, args.email), indent=2))
    elif args.cmd == "clear":
        print(json.dumps(clear_state(), indent=2))
    else:
        ap.print_help()
