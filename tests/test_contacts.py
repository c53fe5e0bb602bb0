from __future__ import annotations

import uuid
from datetime import datetime

import pytest

from wolfcrm.db.session import SessionLocal
from wolfcrm.models import Contact


def _create(client, headers, **fields):
    response = client.post("/api/contacts", json=fields, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


@pytest.mark.integration
def test_create_then_get_round_trip(client, auth_headers):
    submitted = {
        "name": "Ada Lovelace",
        "phone": "555-0100",
        "email": "ada@example.com",
        "address": "12 Analytical Row",
        "value_cents": 125000,
        "lat": 51.5,
        "lng": -0.12,
        "tags": "vip",
        "job_type": "roofing",
        "u1": "one",
        "u5": "five",
    }
    created = _create(client, auth_headers, **submitted)

    assert uuid.UUID(created["id"])
    assert created["updated_at"]

    fetched = client.get(f"/api/contacts/{created['id']}", headers=auth_headers)
    assert fetched.status_code == 200
    record = fetched.json()
    for field, value in submitted.items():
        assert record[field] == value
    assert record["u2"] == ""
    assert record["id"] == created["id"]


@pytest.mark.integration
def test_create_defaults_optional_fields(client, auth_headers):
    created = _create(client, auth_headers, name="Bare")

    for field in ("phone", "email", "address", "tags", "job_type", "u1", "u2", "u3", "u4", "u5"):
        assert created[field] == ""
    for field in ("value_cents", "lat", "lng"):
        assert created[field] is None


@pytest.mark.integration
@pytest.mark.parametrize("body", [{}, {"name": ""}, {"name": "   "}, {"phone": "555"}])
def test_create_requires_name(client, auth_headers, body):
    response = client.post("/api/contacts", json=body, headers=auth_headers)
    assert response.status_code == 400
    assert response.json()["detail"] == "name_required"


@pytest.mark.integration
@pytest.mark.parametrize(("raw", "stored"), [("1500", 1500), ("abc", None), (99.9, 99)])
def test_value_cents_is_coerced(client, auth_headers, raw, stored):
    created = _create(client, auth_headers, name="Money", value_cents=raw)
    assert created["value_cents"] == stored


@pytest.mark.integration
def test_list_orders_by_most_recently_updated(client, auth_headers):
    first = _create(client, auth_headers, name="First")
    second = _create(client, auth_headers, name="Second")
    third = _create(client, auth_headers, name="Third")

    listed = client.get("/api/contacts", headers=auth_headers).json()
    assert [c["id"] for c in listed] == [third["id"], second["id"], first["id"]]

    client.put(f"/api/contacts/{first['id']}", json={"phone": "555"}, headers=auth_headers)
    listed = client.get("/api/contacts", headers=auth_headers).json()
    assert [c["id"] for c in listed] == [first["id"], third["id"], second["id"]]


@pytest.mark.integration
def test_list_is_bounded_by_page_size(client, auth_headers, monkeypatch):
    from wolfcrm.config import settings

    monkeypatch.setattr(settings, "contacts_page_size", 2)
    for name in ("a", "b", "c"):
        _create(client, auth_headers, name=name)

    listed = client.get("/api/contacts", headers=auth_headers).json()
    assert [c["name"] for c in listed] == ["c", "b"]


@pytest.mark.integration
def test_search_matches_fields_case_insensitively(client, auth_headers):
    by_name = _create(client, auth_headers, name="Maria Gutierrez")
    by_job = _create(client, auth_headers, name="Bob", job_type="GUTTER cleaning")
    by_slot = _create(client, auth_headers, name="Carol", u4="gutters in spring")
    _create(client, auth_headers, name="Dave", tags="gutter")
    _create(client, auth_headers, name="Eve", phone="555-0199")

    response = client.get("/api/contacts", params={"q": "gUtTeR"}, headers=auth_headers)
    assert response.status_code == 200
    assert [c["id"] for c in response.json()] == [by_slot["id"], by_job["id"]]

    response = client.get("/api/contacts", params={"q": "gutierrez"}, headers=auth_headers)
    assert [c["id"] for c in response.json()] == [by_name["id"]]


@pytest.mark.integration
def test_search_treats_wildcards_literally(client, auth_headers):
    _create(client, auth_headers, name="Plain")
    percent = _create(client, auth_headers, name="100% done")

    response = client.get("/api/contacts", params={"q": "%"}, headers=auth_headers)
    assert [c["id"] for c in response.json()] == [percent["id"]]

    response = client.get("/api/contacts", params={"q": "_"}, headers=auth_headers)
    assert response.json() == []


@pytest.mark.integration
def test_blank_query_lists_everything(client, auth_headers):
    _create(client, auth_headers, name="One")
    _create(client, auth_headers, name="Two")

    response = client.get("/api/contacts", params={"q": "   "}, headers=auth_headers)
    assert len(response.json()) == 2


@pytest.mark.integration
def test_put_merges_and_keeps_omitted_fields(client, auth_headers):
    created = _create(client, auth_headers, name="Merge", phone="111", address="Old St")

    response = client.put(
        f"/api/contacts/{created['id']}",
        json={"phone": "222", "address": None},
        headers=auth_headers,
    )
    assert response.status_code == 200
    updated = response.json()
    assert updated["name"] == "Merge"
    assert updated["phone"] == "222"
    assert updated["address"] == "Old St"
    assert datetime.fromisoformat(updated["updated_at"]) > datetime.fromisoformat(created["updated_at"])


@pytest.mark.integration
def test_put_with_empty_body_only_touches_timestamp(client, auth_headers):
    created = _create(client, auth_headers, name="Touch", phone="111")

    response = client.put(f"/api/contacts/{created['id']}", json={}, headers=auth_headers)
    assert response.status_code == 200
    updated = response.json()
    assert updated["phone"] == "111"
    assert datetime.fromisoformat(updated["updated_at"]) > datetime.fromisoformat(created["updated_at"])


@pytest.mark.integration
def test_patch_rejects_empty_body(client, auth_headers):
    created = _create(client, auth_headers, name="Patchy")

    response = client.patch(f"/api/contacts/{created['id']}", json={}, headers=auth_headers)
    assert response.status_code == 400
    assert response.json()["detail"] == "no_fields"


@pytest.mark.integration
def test_patch_overwrites_provided_fields_including_null(client, auth_headers):
    created = _create(client, auth_headers, name="Patchy", phone="111", lat=1.5)

    response = client.patch(
        f"/api/contacts/{created['id']}",
        json={"phone": None, "job_type": "hvac"},
        headers=auth_headers,
    )
    assert response.status_code == 200
    updated = response.json()
    assert updated["phone"] is None
    assert updated["job_type"] == "hvac"
    assert updated["lat"] == 1.5
    assert updated["name"] == "Patchy"


@pytest.mark.integration
@pytest.mark.parametrize("method", ["put", "patch"])
def test_update_cannot_blank_name(client, auth_headers, method):
    created = _create(client, auth_headers, name="Named")

    response = getattr(client, method)(
        f"/api/contacts/{created['id']}", json={"name": ""}, headers=auth_headers
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "name_required"


@pytest.mark.integration
def test_delete_removes_contact(client, auth_headers):
    created = _create(client, auth_headers, name="Gone")

    response = client.delete(f"/api/contacts/{created['id']}", headers=auth_headers)
    assert response.status_code == 204
    assert response.content == b""

    assert client.get(f"/api/contacts/{created['id']}", headers=auth_headers).status_code == 404
    assert client.delete(f"/api/contacts/{created['id']}", headers=auth_headers).status_code == 404


@pytest.mark.integration
@pytest.mark.parametrize("method", ["get", "delete"])
def test_malformed_id_is_not_found(client, auth_headers, method):
    response = getattr(client, method)("/api/contacts/not-a-uuid", headers=auth_headers)
    assert response.status_code == 404
    assert response.json()["detail"] == "not_found"


@pytest.mark.integration
def test_created_contact_is_stamped_with_owner(client, make_session):
    session = make_session("stamp@example.com")
    created = _create(client, session["headers"], name="Owned")

    assert created["owner_id"] == session["user_id"]
    with SessionLocal() as db:
        contact = db.query(Contact).one()
        assert str(contact.owner_id) == session["user_id"]
