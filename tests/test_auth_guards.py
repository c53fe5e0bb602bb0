from __future__ import annotations

import pytest


@pytest.mark.integration
@pytest.mark.parametrize(
    ("method", "path"),
    [
        ("get", "/me"),
        ("post", "/auth/logout"),
        ("get", "/api/contacts"),
        ("get", "/api/contacts/00000000-0000-0000-0000-000000000000"),
        ("delete", "/api/contacts/00000000-0000-0000-0000-000000000000"),
    ],
)
def test_protected_routes_require_bearer(client, method, path):
    response = getattr(client, method)(path)
    assert response.status_code == 401
    assert response.json()["detail"] == "unauthorized"


@pytest.mark.integration
def test_unknown_token_is_rejected(client):
    response = client.get("/me", headers={"Authorization": "Bearer not-a-session"})
    assert response.status_code == 401


@pytest.mark.integration
def test_non_bearer_scheme_is_rejected(client, make_session):
    session = make_session("scheme@example.com")
    response = client.get("/me", headers={"Authorization": f"Basic {session['token']}"})
    assert response.status_code == 401


@pytest.mark.integration
def test_bearer_scheme_is_case_insensitive(client, make_session):
    session = make_session("scheme@example.com")
    response = client.get("/me", headers={"Authorization": f"bearer {session['token']}"})
    assert response.status_code == 200
    assert response.json()["user"]["email"] == "scheme@example.com"
