from sqlalchemy import CHAR, Boolean, Column, DateTime, ForeignKey, String

from app.core.db import Base
from app.models.user import uuid_str
from app.utils.time import utcnow


class RefreshToken(Base):
    __tablename__ = "refresh_tokens"

    id = Column(CHAR(36), primary_key=True, default=uuid_str)
    user_id = Column(CHAR(36), ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    # SHA-256 of the raw token; the raw token is never stored.
    token_hash = Column(String(64), index=True, nullable=False)
    expires_at = Column(DateTime, index=True, nullable=False)
    revoked = Column(Boolean, default=False, index=True, nullable=False)
    replaced_by = Column(CHAR(36), ForeignKey("refresh_tokens.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
