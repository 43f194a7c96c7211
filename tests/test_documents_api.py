"""Tests HTTP des routes documents (TestClient), dont le parcours complet jusqu'aux work items."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from backend.app.main import app
from backend.core.http_constants import (
    HTTP_BAD_REQUEST,
    HTTP_CREATED,
    HTTP_FORBIDDEN,
    HTTP_NO_CONTENT,
    HTTP_NOT_FOUND,
    HTTP_OK,
    HTTP_UNAUTHORIZED,
)
from backend.infra.repo.work_item_repo import WorkItemRepo


@pytest.fixture()
def client(db):
    return TestClient(app)


@pytest.fixture()
def author(auth, seed):
    return auth(seed.author, "author@acme.io", seed.company_a)


@pytest.fixture()
def approver(auth, seed):
    return auth(seed.approver, "approver@acme.io", seed.company_a, role="admin")


@pytest.fixture()
def outsider(auth, seed):
    return auth(seed.outsider, "someone@globex.io", seed.company_b, role="admin")


def _create(client, headers, seed, content=None) -> dict:
    r = client.post(
        "/documents",
        json={
            "project_id": seed.project_a,
            "title": "Onboarding PRD",
            "content": content
            if content is not None
            else {"features": [{"name": "Login"}, {"title": "Upload", "desc": "drag-drop"}]},
        },
        headers=headers,
    )
    assert r.status_code == HTTP_CREATED, r.text
    return r.json()


def test_requires_bearer_token(client, seed):
    r = client.get("/documents")
    assert r.status_code == HTTP_UNAUTHORIZED
    assert r.json()["code"] == "UNAUTHORIZED"
    r = client.get("/documents", headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == HTTP_UNAUTHORIZED


def test_token_without_company_is_rejected(client, auth, seed):
    r = client.get("/documents", headers=auth(seed.author, "author@acme.io", None))
    assert r.status_code == HTTP_BAD_REQUEST
    assert r.json()["code"] == "MISSING_SCOPE"


def test_approval_flow_generates_work_items(
    client, seed, author, approver, session_factory, eager_celery
):
    doc = _create(client, author, seed)
    assert (doc["status"], doc["version"]) == ("draft", 1)
    assert doc["project_name"] == "Billing"

    r = client.post(f"/documents/{doc['id']}/submit", headers=author)
    assert r.status_code == HTTP_OK and r.json()["status"] == "review"

    r = client.post(
        f"/documents/{doc['id']}/decision", json={"status": "approved"}, headers=approver
    )
    assert r.status_code == HTTP_OK, r.text
    body = r.json()
    assert body["status"] == "approved"
    assert body["approved_by"] == seed.approver
    assert body["approved_at"] is not None

    session = session_factory()
    items = WorkItemRepo(session).list_for_document(doc["id"])
    session.close()
    assert [(i.title, i.description) for i in items] == [("Login", ""), ("Upload", "drag-drop")]
    assert {(i.status, i.priority) for i in items} == {("todo", "medium")}


def test_decision_requires_approver_role(client, seed, author):
    doc = _create(client, author, seed)
    client.post(f"/documents/{doc['id']}/submit", headers=author)
    r = client.post(
        f"/documents/{doc['id']}/decision", json={"status": "approved"}, headers=author
    )
    assert r.status_code == HTTP_FORBIDDEN
    assert r.json()["code"] == "FORBIDDEN"


def test_invalid_transition_is_a_client_error(client, seed, author, approver):
    doc = _create(client, author, seed)
    r = client.post(
        f"/documents/{doc['id']}/decision", json={"status": "approved"}, headers=approver
    )
    assert r.status_code == HTTP_BAD_REQUEST
    body = r.json()
    assert body["code"] == "INVALID_TRANSITION"
    assert body["details"] == {"from": "draft", "to": "approved"}
    assert "trace_id" in body


def test_rejection_keeps_approval_fields_empty(client, seed, author, approver):
    doc = _create(client, author, seed)
    client.post(f"/documents/{doc['id']}/submit", headers=author)
    r = client.post(
        f"/documents/{doc['id']}/decision",
        json={"status": "rejected", "reason": "Needs metrics"},
        headers=approver,
    )
    body = r.json()
    assert body["status"] == "rejected"
    assert body["approved_by"] is None and body["approved_at"] is None
    assert body["content"]["_metadata"]["rejectionReason"] == "Needs metrics"


def test_other_company_sees_404_everywhere(client, seed, author, outsider):
    doc = _create(client, author, seed)
    doc_id = doc["id"]
    calls = [
        ("get", f"/documents/{doc_id}", None),
        ("patch", f"/documents/{doc_id}", {"title": "x"}),
        ("delete", f"/documents/{doc_id}", None),
        ("post", f"/documents/{doc_id}/versions", {"title": "x", "content": {}}),
        ("get", f"/documents/{doc_id}/versions", None),
        ("post", f"/documents/{doc_id}/submit", None),
        ("post", f"/documents/{doc_id}/decision", {"status": "approved"}),
    ]
    for method, url, payload in calls:
        kwargs = {"headers": outsider}
        if payload is not None:
            kwargs["json"] = payload
        r = getattr(client, method)(url, **kwargs)
        assert r.status_code == HTTP_NOT_FOUND, (method, url, r.text)
    missing = client.get("/documents/no-such-id", headers=outsider)
    assert missing.json()["message"] == client.get(f"/documents/{doc_id}", headers=outsider).json()["message"]


def test_versions_and_updates(client, seed, author):
    doc = _create(client, author, seed)
    r = client.patch(f"/documents/{doc['id']}", json={"title": "Renamed"}, headers=author)
    assert r.status_code == HTTP_OK
    assert (r.json()["title"], r.json()["version"]) == ("Renamed", 1)

    r = client.post(
        f"/documents/{doc['id']}/versions",
        json={"title": "Second cut", "content": {"features": []}, "changes_summary": "scope"},
        headers=author,
    )
    assert r.status_code == HTTP_CREATED
    assert r.json()["version"] == 2

    r = client.get(f"/documents/{doc['id']}/versions", headers=author)
    assert [v["version"] for v in r.json()] == [2, 1]
    assert client.get(f"/documents/{doc['id']}", headers=author).json()["version"] == 2


def test_listing_and_pagination(client, seed, author, outsider):
    for _ in range(3):
        _create(client, author, seed)
    r = client.get("/documents", params={"limit": 2}, headers=author)
    body = r.json()
    assert (body["total"], len(body["items"]), body["limit"]) == (3, 2, 2)
    r = client.get("/documents", params={"status": "approved"}, headers=author)
    assert r.json()["total"] == 0
    r = client.get("/documents", params={"status": "bogus"}, headers=author)
    assert r.status_code == HTTP_BAD_REQUEST
    r = client.get(f"/documents/project/{seed.project_a}", headers=author)
    assert len(r.json()) == 3
    assert client.get("/documents", headers=outsider).json()["total"] == 0
    r = client.get(f"/documents/project/{seed.project_a}", headers=outsider)
    assert r.status_code == HTTP_NOT_FOUND


def test_sections_and_delete(client, seed, author):
    doc = _create(client, author, seed, content={})
    r = client.post(
        f"/documents/{doc['id']}/sections",
        json={"id": "s-1", "title": "Goals", "content": "Ship"},
        headers=author,
    )
    assert r.status_code == HTTP_CREATED
    r = client.patch(
        f"/documents/{doc['id']}/sections/s-1", json={"title": "Objectives"}, headers=author
    )
    assert r.json()["content"]["sections"][0]["title"] == "Objectives"
    r = client.delete(f"/documents/{doc['id']}/sections/missing", headers=author)
    assert r.status_code == HTTP_NOT_FOUND
    r = client.delete(f"/documents/{doc['id']}", headers=author)
    assert r.status_code == HTTP_NO_CONTENT
    assert client.get(f"/documents/{doc['id']}", headers=author).status_code == HTTP_NOT_FOUND


def test_request_id_is_echoed(client, seed, author):
    r = client.get("/documents", headers={**author, "X-Request-ID": "req-123"})
    assert r.headers["X-Request-ID"] == "req-123"
    assert "X-Process-Time-ms" in r.headers


def test_assignees_routes(client, seed, author, outsider):
    doc = _create(client, author, seed)
    url = f"/documents/{doc['id']}/assignees/{seed.approver}"
    r = client.post(url, headers=author)
    assert r.status_code == HTTP_CREATED
    assert r.json()["content"]["assignees"] == [seed.approver]
    r = client.post(url, headers=author)
    assert r.status_code == HTTP_BAD_REQUEST
    assert r.json()["code"] == "ALREADY_ASSIGNED"
    assert client.post(url, headers=outsider).status_code == HTTP_NOT_FOUND
    r = client.delete(url, headers=author)
    assert r.status_code == HTTP_OK and r.json()["content"]["assignees"] == []
    r = client.delete(url, headers=author)
    assert r.status_code == HTTP_NOT_FOUND
