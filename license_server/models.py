from sqlalchemy import Boolean, Column, DateTime, Integer, JSON, String, Text, event
from sqlalchemy.ext.mutable import MutableList

from license_server.db import Base
from license_server import lifecycle
from license_server.lifecycle import utcnow

LICENSE_TYPES = ("trial", "monthly", "6months", "yearly", "lifetime")
LICENSE_STATUSES = ("active", "suspended", "revoked", "expired")


class License(Base):
    __tablename__ = "licenses"
    id = Column(Integer, primary_key=True)
    token = Column(String(64), unique=True, index=True, nullable=False)
    email = Column(String(255), index=True, nullable=False)
    type = Column(String(16), nullable=False)
    status = Column(String(16), index=True, nullable=False, default="active")
    start_date = Column(DateTime, nullable=False, default=utcnow)
    end_date = Column(DateTime, nullable=True)
    days_remaining = Column(Integer, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def __repr__(self):
        return f"<License {self.token} {self.type}/{self.status}>"


class Account(Base):
    __tablename__ = "accounts"
    id = Column(Integer, primary_key=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    machine_id = Column(String(128), nullable=True)
    device_name = Column(String(255), nullable=True)
    trial_used = Column(Boolean, nullable=False, default=False)
    trial_date = Column(DateTime, nullable=True)
    current_license_token = Column(String(64), nullable=True)
    license_history = Column(MutableList.as_mutable(JSON), nullable=False, default=list)
    name = Column(String(255), nullable=True)
    phone = Column(String(64), nullable=True)
    avatar = Column(Text, nullable=True)
    company_logo = Column(Text, nullable=True)
    show_logo_in_pv = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def attach_license(self, token: str) -> None:
        self.current_license_token = token
        if self.license_history is None:
            self.license_history = []
        self.license_history.append(token)

    def __repr__(self):
        return f"<Account {self.email} trial_used={self.trial_used}>"


@event.listens_for(License, "before_insert")
@event.listens_for(License, "before_update")
def _refresh_before_save(mapper, connection, target):
    lifecycle.refresh(target)
