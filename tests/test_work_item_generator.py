"""Tests de la dérivation des work items depuis le contenu d'un document approuvé."""

from __future__ import annotations

from unittest.mock import Mock

import pytest
from sqlalchemy.exc import OperationalError

from backend.domain.documents import Document
from backend.domain.errors import StoreFailure
from backend.domain.work_item_generator import (
    DEFAULT_TITLE,
    WorkItemGenerator,
    build_work_items,
    extract_features,
)
from backend.infra.repo.work_item_repo import WorkItemRepo


def _doc(content) -> Document:
    return Document(
        id="doc-1",
        company_id="company-a",
        project_id="project-a",
        title="Billing PRD",
        content=content,
        status="approved",
        version=1,
        created_by="user-author",
    )


def test_features_map_to_work_items_in_order():
    doc = _doc(
        {
            "features": [
                {"name": "Login", "desc": "SSO login"},
                {"name": "Upload"},
            ]
        }
    )
    items = build_work_items(doc, "user-approver")
    assert [(i.title, i.description) for i in items] == [
        ("Login", "SSO login"),
        ("Upload", ""),
    ]
    assert all(i.status == "todo" and i.priority == "medium" for i in items)
    assert all(i.created_by == "user-approver" for i in items)
    assert all(
        (i.document_id, i.project_id, i.company_id) == ("doc-1", "project-a", "company-a")
        for i in items
    )


def test_field_fallbacks():
    doc = _doc(
        {
            "features": [
                {"title": "From title", "description": "From description"},
                {"name": "", "title": "Blank name falls back"},
                {"desc": "Only a description"},
                {},
            ]
        }
    )
    items = build_work_items(doc, "u")
    assert [i.title for i in items] == [
        "From title",
        "Blank name falls back",
        DEFAULT_TITLE,
        DEFAULT_TITLE,
    ]
    assert [i.description for i in items] == ["From description", "", "Only a description", ""]


def test_malformed_entries_degrade_to_defaults():
    doc = _doc({"features": ["just a string", 42, None, {"name": 7, "desc": ["x"]}]})
    items = build_work_items(doc, "u")
    assert len(items) == 4
    assert {i.title for i in items} == {DEFAULT_TITLE}
    assert {i.description for i in items} == {""}


@pytest.mark.parametrize(
    "content",
    [{}, {"features": []}, {"features": "nope"}, {"features": {"name": "x"}}, None],
)
def test_no_features_means_no_work_items(content):
    assert extract_features(content) == []
    assert build_work_items(_doc(content or {}), "u") == []


def test_generate_persists_in_one_batch(session_factory):
    session = session_factory()
    doc = _doc({"features": [{"name": "A"}, {"name": "B"}, {"name": "C"}]})
    created = WorkItemGenerator(session).generate(doc, "user-approver")
    session.commit()
    assert all(i.id for i in created)
    stored = WorkItemRepo(session).list_for_document("doc-1")
    assert [i.title for i in stored] == ["A", "B", "C"]
    session.close()


def test_generate_without_features_writes_nothing():
    session = Mock()
    assert WorkItemGenerator(session).generate(_doc({}), "u") == []
    session.add_all.assert_not_called()


def test_generate_wraps_store_errors():
    session = Mock()
    session.flush.side_effect = OperationalError("INSERT", {}, Exception("disk full"))
    with pytest.raises(StoreFailure) as exc:
        WorkItemGenerator(session).generate(_doc({"features": [{"name": "A"}]}), "u")
    assert exc.value.message == "Failed to generate work items"
    assert isinstance(exc.value.__cause__, OperationalError)


def test_read_back_follows_feature_order(session_factory):
    session = session_factory()
    names = [f"F{n}" for n in range(10)]
    doc = _doc({"features": [{"name": name} for name in names]})
    WorkItemGenerator(session).generate(doc, "user-approver")
    session.commit()
    stored = WorkItemRepo(session).list_for_document("doc-1")
    session.close()
    assert [i.title for i in stored] == names
    assert [i.position for i in stored] == list(range(10))
