from __future__ import annotations

import os
import pathlib
import sys
import tempfile
from typing import Callable, Iterator

import pytest
from fastapi.testclient import TestClient

ROOT_DIR = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

_DB_DIR = tempfile.mkdtemp(prefix="wolfcrm-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{_DB_DIR}/wolfcrm.sqlite3"
os.environ["AUTO_MIGRATE"] = "false"
os.environ["EMAIL_DELIVERY"] = "console"
os.environ["METRICS_ENABLED"] = "true"
os.environ.pop("OWNER_EMAIL", None)
os.environ.pop("SESSION_TTL_HOURS", None)
os.environ.pop("SENTRY_DSN", None)

from wolfcrm.db.session import SessionLocal, engine  # noqa: E402
from wolfcrm.main import app  # noqa: E402
from wolfcrm.models import Base  # noqa: E402
from wolfcrm.services.auth import AuthService  # noqa: E402


@pytest.fixture(scope="session")
def client() -> Iterator[TestClient]:
    """Provide a FastAPI TestClient instance."""
    with TestClient(app) as _client:
        yield _client


@pytest.fixture(autouse=True)
def database() -> Iterator[None]:
    """Give every test an empty schema."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def make_session() -> Callable[[str], dict]:
    """Return a factory that logs a user in and hands back their bearer headers."""

    def _make(email: str) -> dict:
        with SessionLocal() as db:
            service = AuthService(db)
            user = service.get_or_create_user(email)
            token = service.start_session(user)
            user_id = str(user.id)
        return {"user_id": user_id, "token": token, "headers": {"Authorization": f"Bearer {token}"}}

    return _make


@pytest.fixture()
def auth_headers(make_session) -> dict[str, str]:
    session = make_session("owner@example.com")
    return session["headers"]
