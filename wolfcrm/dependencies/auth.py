from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.orm import Session

from ..models import User, UserSession
from ..services.auth import AuthService
from .db import get_db

_BEARER_RE = re.compile(r"^Bearer (.+)$", re.IGNORECASE)


@dataclass
class AuthContext:
    user: User
    session: UserSession
    token: str


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    match = _BEARER_RE.match((authorization or "").strip())
    if not match:
        return None
    return match.group(1).strip() or None


def require_auth(
    request: Request,
    authorization: Optional[str] = Header(default=None),
    db: Session = Depends(get_db),
) -> AuthContext:
    token = extract_bearer_token(authorization)
    row = AuthService(db).session_from_token(token or "")
    if not row:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="unauthorized")

    session, user = row
    request.state.user_id = str(user.id)
    return AuthContext(user=user, session=session, token=token or "")
