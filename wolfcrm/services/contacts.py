from __future__ import annotations

import logging
import uuid
from typing import Any, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from ..config import settings
from ..models import Contact
from ..models.base import utcnow

logger = logging.getLogger(__name__)


class ContactNotFound(Exception):
    pass


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def parse_contact_id(raw_id: str) -> Optional[uuid.UUID]:
    try:
        return uuid.UUID(str(raw_id))
    except ValueError:
        return None


class ContactRepository:
    """Contact storage where every query is filtered by the owning user."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def list(self, owner_id: uuid.UUID, query: Optional[str] = None) -> list[Contact]:
        rows = self.db.query(Contact).filter(Contact.owner_id == owner_id)

        query = (query or "").strip()
        if query:
            pattern = f"%{_escape_like(query)}%"
            rows = rows.filter(
                or_(
                    *(
                        func.coalesce(getattr(Contact, field), "").ilike(pattern, escape="\\")
                        for field in Contact.SEARCH_FIELDS
                    )
                )
            )
            return rows.order_by(Contact.updated_at.desc()).all()

        return rows.order_by(Contact.updated_at.desc()).limit(settings.contacts_page_size).all()

    def get(self, owner_id: uuid.UUID, contact_id: uuid.UUID) -> Contact:
        contact = (
            self.db.query(Contact)
            .filter(Contact.id == contact_id, Contact.owner_id == owner_id)
            .one_or_none()
        )
        if contact is None:
            raise ContactNotFound(str(contact_id))
        return contact

    def create(self, owner_id: uuid.UUID, fields: dict[str, Any]) -> Contact:
        values: dict[str, Any] = {field: fields.get(field) or "" for field in Contact.TEXT_FIELDS}
        values.update({field: fields.get(field) for field in Contact.NUMERIC_FIELDS})

        contact = Contact(owner_id=owner_id, name=fields["name"], **values)
        self.db.add(contact)
        self.db.commit()
        self.db.refresh(contact)

        logger.info("contact_created contact_id=%s owner_id=%s", contact.id, owner_id)
        return contact

    def update(self, owner_id: uuid.UUID, contact_id: uuid.UUID, fields: dict[str, Any]) -> Contact:
        contact = self.get(owner_id, contact_id)
        for field, value in fields.items():
            setattr(contact, field, value)
        # Touch explicitly; an empty merge issues no UPDATE otherwise.
        contact.updated_at = utcnow()
        self.db.commit()
        self.db.refresh(contact)
        return contact

    def delete(self, owner_id: uuid.UUID, contact_id: uuid.UUID) -> None:
        deleted = (
            self.db.query(Contact)
            .filter(Contact.id == contact_id, Contact.owner_id == owner_id)
            .delete()
        )
        if not deleted:
            self.db.rollback()
            raise ContactNotFound(str(contact_id))
        self.db.commit()
        logger.info("contact_deleted contact_id=%s owner_id=%s", contact_id, owner_id)
