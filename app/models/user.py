from sqlalchemy import CHAR, Boolean, Column, DateTime, Integer, String

from app.core.db import Base
from app.utils.time import utcnow
import uuid

ADMIN_ROLE = "admin"


def uuid_str() -> str:
    return str(uuid.uuid4())


class User(Base):
    __tablename__ = "users"

    id = Column(CHAR(36), primary_key=True, default=uuid_str)
    username = Column(String(64), unique=True, index=True, nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(16), default=ADMIN_ROLE, nullable=False)
    full_name = Column(String(120), nullable=True)
    contact_number = Column(String(32), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    email_verified = Column(Boolean, default=False, nullable=False)

    # Login security; never part of the public projection.
    login_failure_count = Column(Integer, default=0, nullable=False)
    login_last_attempt_at = Column(DateTime, nullable=True)
    login_locked_until = Column(DateTime, nullable=True)

    last_login = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def reset_login_security(self, now) -> None:
        self.login_failure_count = 0
        self.login_last_attempt_at = now
        self.login_locked_until = None

    def is_locked(self, now) -> bool:
        return self.login_locked_until is not None and self.login_locked_until > now
