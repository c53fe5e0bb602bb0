from __future__ import annotations

from typing import Iterator

from sqlalchemy.orm import Session

from ..db.session import SessionLocal


def get_db() -> Iterator[Session]:
    """One session per request; closing it rolls back anything left uncommitted."""
    with SessionLocal() as db:
        yield db
