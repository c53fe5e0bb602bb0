"""Schema bootstrap run before the API starts serving.

Alembic brings the schema to head (creating tables on an empty database,
adopting tables left by the pre-Alembic bootstrap, and assigning ownerless
contacts to ``OWNER_EMAIL``), then the owner user is ensured to exist. Errors
propagate so a broken schema stops startup.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from alembic import command
from alembic.config import Config

from ..config import settings
from ..services.auth import AuthService
from .session import SessionLocal

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).resolve().parents[2] / "alembic"


def alembic_config(database_url: Optional[str] = None, owner_email: Optional[str] = None) -> Config:
    config = Config()
    config.set_main_option("script_location", str(MIGRATIONS_DIR))
    # ConfigParser treats % as interpolation syntax.
    config.set_main_option("sqlalchemy.url", (database_url or settings.database_url).replace("%", "%%"))
    config.attributes["owner_email"] = owner_email if owner_email is not None else settings.owner_email
    return config


def run_migrations(
    database_url: Optional[str] = None,
    owner_email: Optional[str] = None,
    revision: str = "head",
) -> None:
    command.upgrade(alembic_config(database_url, owner_email), revision)


def ensure_owner_user(owner_email: Optional[str] = None) -> None:
    email = owner_email or settings.owner_email
    if not email:
        return
    with SessionLocal() as db:
        user = AuthService(db).get_or_create_user(email)
        db.commit()
        logger.info("owner_user_ready user_id=%s", user.id)


def bootstrap() -> None:
    if settings.auto_migrate:
        run_migrations()
        ensure_owner_user()
    logger.info("bootstrap_complete auto_migrate=%s", settings.auto_migrate)
