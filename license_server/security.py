import hashlib
import hmac
import secrets
import uuid

from license_server.config import settings as default_settings
from license_server.lifecycle import utcnow

# fail at import, not per call, when the OS has no randomness source
secrets.token_bytes(1)


def _group(digest: str, size: int = 4, count: int = 4) -> str:
    return "-".join(digest[i * size:(i + 1) * size] for i in range(count))


def issue(email: str, license_type: str, metadata: dict = None, settings=None) -> str:
    """Mint an opaque license token such as ``SNIPER-1A2B-3C4D-5E6F-7A8B``.

    The digest binds a fresh id, the owner, the type and the issue time to a
    random nonce and the server secret, so tokens cannot be derived from one
    another. Nothing is persisted here.
    """
    settings = settings or default_settings
    metadata = metadata or {}
    issued_at = metadata.get("issued_at") or utcnow()
    raw = "|".join([
        uuid.uuid4().hex,
        email,
        license_type,
        issued_at.isoformat(),
        secrets.token_hex(16),
        settings.SECRET_KEY,
    ])
    digest = hashlib.sha256(raw.encode()).hexdigest().upper()
    prefix = "TRIAL" if license_type == "trial" else settings.TOKEN_PREFIX
    return f"{prefix}-{_group(digest)}"


def check_admin_password(supplied: str, expected: str) -> bool:
    if not supplied or not expected:
        return False
    return hmac.compare_digest(supplied.strip().encode(), expected.strip().encode())
