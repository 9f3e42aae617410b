import logging

from sqlalchemy import func, or_, select

from license_server.errors import ValidationInput
from license_server.models import Account, License

logger = logging.getLogger(__name__)


def normalize_email(email) -> str:
    if email is None:
        return ""
    if not isinstance(email, str):
        raise ValidationInput("Email must be a string")
    return email.strip().lower()


def get_license_by_token(db, token: str):
    return db.scalar(select(License).where(License.token == token))


def get_license(db, license_id: int):
    return db.get(License, license_id)


def token_exists(db, token: str) -> bool:
    return db.scalar(select(func.count(License.id)).where(License.token == token)) > 0


def add_license(db, lic: License) -> License:
    db.add(lic)
    db.flush()
    return lic


def delete_license(db, lic: License) -> None:
    db.delete(lic)
    db.flush()


def list_licenses(db, email=None, license_type=None, status=None, search=None):
    stmt = select(License)
    if email:
        stmt = stmt.where(func.lower(License.email).contains(email.strip().lower(), autoescape=True))
    if license_type:
        stmt = stmt.where(License.type == license_type)
    if status:
        stmt = stmt.where(License.status == status)
    if search:
        term = search.strip().lower()
        stmt = stmt.where(or_(
            func.lower(License.email).contains(term, autoescape=True),
            func.lower(License.token).contains(term, autoescape=True),
            func.lower(func.coalesce(License.notes, "")).contains(term, autoescape=True),
        ))
    stmt = stmt.order_by(License.created_at.desc(), License.id.desc())
    return list(db.scalars(stmt))


def count_licenses_by(db, column) -> dict:
    rows = db.execute(select(column, func.count(License.id)).group_by(column)).all()
    return {key: count for key, count in rows}


def get_account(db, email: str):
    return db.scalar(select(Account).where(Account.email == normalize_email(email)))


def get_or_create_account(db, email: str) -> Account:
    """Return the account for ``email``, creating an empty one on first use."""
    email = normalize_email(email)
    account = get_account(db, email)
    if account is None:
        account = Account(email=email, trial_used=False, license_history=[])
        db.add(account)
        db.flush()
        logger.info("created account for %s", email)
    return account


def list_trial_accounts(db):
    stmt = select(Account).where(Account.trial_used.is_(True)).order_by(Account.trial_date.desc())
    return list(db.scalars(stmt))


def count_accounts(db, trial_used=None) -> int:
    stmt = select(func.count(Account.id))
    if trial_used is not None:
        stmt = stmt.where(Account.trial_used.is_(trial_used))
    return db.scalar(stmt)
