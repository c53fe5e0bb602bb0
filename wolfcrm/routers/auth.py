from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..dependencies.auth import AuthContext, require_auth
from ..dependencies.db import get_db
from ..models import User
from ..models.base import as_utc
from ..services.auth import AuthError, AuthService

router = APIRouter(tags=["auth"])

logger = logging.getLogger(__name__)


def _as_text(value: Any) -> Optional[str]:
    # Numbers are accepted as their text form; any other non-string is treated as absent.
    if isinstance(value, bool):
        return None
    if isinstance(value, (str, int, float)):
        return str(value)
    return None


class CodeRequest(BaseModel):
    email: Optional[str] = None

    @field_validator("email", mode="before")
    @classmethod
    def coerce_email(cls, value: Any) -> Optional[str]:
        return _as_text(value)


class VerifyRequest(BaseModel):
    email: Optional[str] = None
    code: Optional[str] = None

    @field_validator("email", "code", mode="before")
    @classmethod
    def coerce_text(cls, value: Any) -> Optional[str]:
        return _as_text(value)


class CodeRequestResponse(BaseModel):
    ok: bool
    delivery: str
    expires_at: str


class SessionPayload(BaseModel):
    token: str
    user: dict


def _serialize_user(user: User) -> dict:
    return {
        "id": str(user.id),
        "email": user.email,
        "created_at": as_utc(user.created_at).isoformat() if user.created_at else None,
    }


@router.post("/auth/request")
def request_code(payload: CodeRequest, db: Session = Depends(get_db)) -> CodeRequestResponse:
    try:
        issued = AuthService(db).request_code(payload.email)
    except AuthError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Failed to issue login code")
        raise HTTPException(status_code=500, detail="request_failed") from exc

    return CodeRequestResponse(ok=True, delivery=issued.delivery, expires_at=issued.expires_at.isoformat())


@router.post("/auth/verify")
def verify_code(payload: VerifyRequest, db: Session = Depends(get_db)) -> SessionPayload:
    try:
        user, token = AuthService(db).verify_code(payload.email, payload.code)
    except AuthError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Failed to verify login code")
        raise HTTPException(status_code=500, detail="verify_failed") from exc

    return SessionPayload(token=token, user={"id": str(user.id), "email": user.email})


@router.post("/auth/logout")
def logout(context: AuthContext = Depends(require_auth), db: Session = Depends(get_db)) -> dict:
    AuthService(db).revoke_session(context.token)
    return {"ok": True}


@router.get("/me")
def get_current_user(context: AuthContext = Depends(require_auth)) -> dict:
    return {"user": _serialize_user(context.user)}
