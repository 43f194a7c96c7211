"""Tests pour les endpoints de santé et de métriques de l'application."""

from unittest.mock import patch

from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from backend.app.main import app
from backend.core.http_constants import HTTP_OK


def test_health(db):
    """Teste que l'endpoint de santé retourne un statut OK avec la base joignable."""
    client = TestClient(app)
    r = client.get("/health")
    assert r.status_code == HTTP_OK
    body = r.json()
    assert body["status"] == "ok"
    assert (body["database"], body["storage"]) == ("ok", "sqlite")


def test_health_degraded_when_database_unreachable(db):
    client = TestClient(app)
    with patch.object(
        db.engine, "connect", side_effect=OperationalError("SELECT 1", {}, Exception("down"))
    ):
        r = client.get("/health")
    assert r.status_code == HTTP_OK
    body = r.json()
    assert (body["status"], body["database"]) == ("degraded", "unavailable")


def test_metrics_exposes_workflow_counters(db):
    client = TestClient(app)
    client.get("/health")
    content = client.get("/metrics").text
    assert "http_requests_total" in content
    assert "document_version_conflicts_total" in content
