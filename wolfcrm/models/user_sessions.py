from __future__ import annotations

from sqlalchemy import Column, DateTime, ForeignKey, String, Uuid
from sqlalchemy.sql import func

from .base import Base, utcnow


class UserSession(Base):
    __tablename__ = "sessions"

    token_hash = Column(String, primary_key=True)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    last_used_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    # NULL means the session lives until logout.
    expires_at = Column(DateTime(timezone=True), nullable=True)
