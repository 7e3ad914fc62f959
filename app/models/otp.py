from sqlalchemy import CHAR, Boolean, Column, DateTime, ForeignKey, Integer, String

from app.core.db import Base
from app.models.user import uuid_str
from app.utils.time import utcnow


class OtpCode(Base):
    __tablename__ = "otp_codes"

    id = Column(CHAR(36), primary_key=True, default=uuid_str)
    user_id = Column(CHAR(36), ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    code_hash = Column(String(64), nullable=False)
    expires_at = Column(DateTime, index=True, nullable=False)
    used = Column(Boolean, default=False, nullable=False)
    attempts = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
