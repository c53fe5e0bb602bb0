from __future__ import annotations

import uuid

from sqlalchemy import Column, DateTime, Float, ForeignKey, Index, Integer, String, Uuid
from sqlalchemy.sql import func

from .base import Base, utcnow


class Contact(Base):
    __tablename__ = "contacts"
    __table_args__ = (
        Index("ix_contacts_owner_updated", "owner_id", "updated_at"),
        Index("contacts_updated_idx", "updated_at"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    owner_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    name = Column(String, nullable=False)
    phone = Column(String, nullable=True)
    email = Column(String, nullable=True)
    address = Column(String, nullable=True)
    value_cents = Column(Integer, nullable=True)
    lat = Column(Float, nullable=True)
    lng = Column(Float, nullable=True)
    tags = Column(String, nullable=True)
    job_type = Column(String, nullable=True)
    u1 = Column(String, nullable=True)
    u2 = Column(String, nullable=True)
    u3 = Column(String, nullable=True)
    u4 = Column(String, nullable=True)
    u5 = Column(String, nullable=True)
    updated_at = Column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, server_default=func.now(), nullable=False
    )

    TEXT_FIELDS = ("phone", "email", "address", "tags", "job_type", "u1", "u2", "u3", "u4", "u5")
    NUMERIC_FIELDS = ("value_cents", "lat", "lng")
    SEARCH_FIELDS = ("name", "phone", "email", "address", "job_type", "u1", "u2", "u3", "u4", "u5")
