"""Tests de la taxonomie d'erreurs et de leur traduction en enveloppes HTTP."""

from __future__ import annotations

import json
from unittest.mock import Mock

from sqlalchemy.exc import OperationalError

from backend.apigw.errors import handle_workflow_error
from backend.domain.errors import (
    NotFound,
    StoreFailure,
    ValidationFailure,
    VersionConflict,
)


def _request(headers: dict | None = None) -> Mock:
    request = Mock()
    request.headers = headers or {}
    request.state = Mock(request_id="req-state")
    request.url.path = "/documents/x"
    return request


def test_status_codes_and_kinds():
    assert (NotFound("x").status_code, NotFound("x").kind) == (404, "not_found")
    assert ValidationFailure("x").status_code == 400
    assert StoreFailure("x").status_code == 500
    conflict = VersionConflict("x")
    assert isinstance(conflict, StoreFailure)
    assert conflict.status_code == 409


def test_store_failure_wrap_keeps_stable_message_and_cause():
    original = OperationalError("UPDATE documents", {}, Exception("connection reset"))
    err = StoreFailure.wrap("update_document", original, document_id="d1")
    assert err.message == "Failed to update document"
    assert err.__cause__ is original
    assert "connection reset" not in err.message


def test_envelope_for_validation_failure():
    exc = ValidationFailure("bad", kind="invalid_transition", details={"from": "draft"})
    response = handle_workflow_error(_request({"X-Request-ID": "req-1"}), exc)
    assert response.status_code == 400
    assert json.loads(response.body) == {
        "code": "INVALID_TRANSITION",
        "message": "bad",
        "trace_id": "req-1",
        "details": {"from": "draft"},
    }


def test_store_failure_details_are_not_exposed():
    exc = StoreFailure("Failed to create document", details={"sql": "INSERT ..."})
    response = handle_workflow_error(_request(), exc)
    body = json.loads(response.body)
    assert response.status_code == 500
    assert "details" not in body
    assert body["trace_id"] == "req-state"
