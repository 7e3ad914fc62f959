from sqlalchemy import CHAR, Boolean, Column, DateTime, ForeignKey, String

from app.core.db import Base
from app.models.user import uuid_str
from app.utils.time import utcnow


class PasswordResetToken(Base):
    __tablename__ = "password_reset_tokens"

    id = Column(CHAR(36), primary_key=True, default=uuid_str)
    user_id = Column(CHAR(36), ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    token_hash = Column(String(64), index=True, nullable=False)
    expires_at = Column(DateTime, index=True, nullable=False)
    used = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
