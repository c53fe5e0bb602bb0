from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..dependencies.auth import AuthContext, require_auth
from ..dependencies.db import get_db
from ..models import Contact
from ..models.base import as_utc
from ..services.contacts import ContactNotFound, ContactRepository, parse_contact_id

router = APIRouter(prefix="/api/contacts", tags=["contacts"])

logger = logging.getLogger(__name__)


class ContactPayload(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    value_cents: Optional[int] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    tags: Optional[str] = None
    job_type: Optional[str] = None
    u1: Optional[str] = None
    u2: Optional[str] = None
    u3: Optional[str] = None
    u4: Optional[str] = None
    u5: Optional[str] = None

    @field_validator("value_cents", mode="before")
    @classmethod
    def coerce_value_cents(cls, value: Any) -> Optional[int]:
        # Unparseable amounts are stored as null rather than rejected.
        if value is None or isinstance(value, bool):
            return None
        try:
            return int(float(value))
        except (TypeError, ValueError, OverflowError):
            return None


def serialize_contact(contact: Contact) -> Dict[str, Any]:
    return {
        "id": str(contact.id),
        "owner_id": str(contact.owner_id),
        "name": contact.name,
        "phone": contact.phone,
        "email": contact.email,
        "address": contact.address,
        "value_cents": contact.value_cents,
        "lat": contact.lat,
        "lng": contact.lng,
        "tags": contact.tags,
        "job_type": contact.job_type,
        "u1": contact.u1,
        "u2": contact.u2,
        "u3": contact.u3,
        "u4": contact.u4,
        "u5": contact.u5,
        "updated_at": as_utc(contact.updated_at).isoformat() if contact.updated_at else None,
    }


def _require_name(fields: Dict[str, Any]) -> None:
    if "name" in fields and not (fields["name"] or "").strip():
        raise HTTPException(status_code=400, detail="name_required")


def _update_contact(
    contact_id: str,
    fields: Dict[str, Any],
    context: AuthContext,
    db: Session,
) -> Dict[str, Any]:
    contact_uuid = parse_contact_id(contact_id)
    if contact_uuid is None:
        raise HTTPException(status_code=404, detail="not_found")
    try:
        contact = ContactRepository(db).update(context.user.id, contact_uuid, fields)
    except ContactNotFound as exc:
        raise HTTPException(status_code=404, detail="not_found") from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Failed to update contact")
        raise HTTPException(status_code=500, detail="failed_update") from exc
    return serialize_contact(contact)


@router.get("")
def list_contacts(
    q: Optional[str] = Query(default=None),
    context: AuthContext = Depends(require_auth),
    db: Session = Depends(get_db),
):
    try:
        contacts = ContactRepository(db).list(context.user.id, q)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Failed to list contacts")
        raise HTTPException(status_code=500, detail="failed_list") from exc
    return [serialize_contact(contact) for contact in contacts]


@router.get("/{contact_id}")
def get_contact(
    contact_id: str,
    context: AuthContext = Depends(require_auth),
    db: Session = Depends(get_db),
):
    contact_uuid = parse_contact_id(contact_id)
    if contact_uuid is None:
        raise HTTPException(status_code=404, detail="not_found")
    try:
        contact = ContactRepository(db).get(context.user.id, contact_uuid)
    except ContactNotFound as exc:
        raise HTTPException(status_code=404, detail="not_found") from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Failed to fetch contact")
        raise HTTPException(status_code=500, detail="failed_get") from exc
    return serialize_contact(contact)


@router.post("", status_code=201)
def create_contact(
    payload: ContactPayload,
    context: AuthContext = Depends(require_auth),
    db: Session = Depends(get_db),
):
    fields = payload.model_dump()
    if not (fields.get("name") or "").strip():
        raise HTTPException(status_code=400, detail="name_required")
    try:
        contact = ContactRepository(db).create(context.user.id, fields)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Failed to create contact")
        raise HTTPException(status_code=500, detail="failed_create") from exc
    return serialize_contact(contact)


@router.put("/{contact_id}")
def replace_contact(
    contact_id: str,
    payload: ContactPayload,
    context: AuthContext = Depends(require_auth),
    db: Session = Depends(get_db),
):
    """Merge non-null fields; null or omitted fields keep their stored value."""
    fields = payload.model_dump(exclude_none=True)
    _require_name(fields)
    return _update_contact(contact_id, fields, context, db)


@router.patch("/{contact_id}")
def patch_contact(
    contact_id: str,
    payload: ContactPayload,
    context: AuthContext = Depends(require_auth),
    db: Session = Depends(get_db),
):
    """Overwrite exactly the fields present in the body, nulls included."""
    fields = payload.model_dump(exclude_unset=True)
    if not fields:
        raise HTTPException(status_code=400, detail="no_fields")
    _require_name(fields)
    return _update_contact(contact_id, fields, context, db)


@router.delete("/{contact_id}", status_code=204)
def delete_contact(
    contact_id: str,
    context: AuthContext = Depends(require_auth),
    db: Session = Depends(get_db),
):
    contact_uuid = parse_contact_id(contact_id)
    if contact_uuid is None:
        raise HTTPException(status_code=404, detail="not_found")
    try:
        ContactRepository(db).delete(context.user.id, contact_uuid)
    except ContactNotFound as exc:
        raise HTTPException(status_code=404, detail="not_found") from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Failed to delete contact")
        raise HTTPException(status_code=500, detail="failed_delete") from exc
    return Response(status_code=204)
