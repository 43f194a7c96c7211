# ============================================================
# Tests : tests/test_document_repo.py
# Objet  : Accès SQL documents/versions (sqlite fichier temporaire).
# ============================================================
"""Tests du repository documents: périmètre, incrément conditionnel, unicité des versions."""

from __future__ import annotations

import pytest
from sqlalchemy.exc import IntegrityError

from backend.infra.repo.document_repo import DocumentRepo


def _insert(repo: DocumentRepo, seed, title: str = "Spec") -> str:
    doc = repo.insert(
        company_id=seed.company_a,
        project_id=seed.project_a,
        title=title,
        content={"features": []},
        created_by=seed.author,
    )
    return doc.id


def test_insert_starts_as_draft_v1(session_factory, seed):
    session = session_factory()
    repo = DocumentRepo(session)
    doc_id = _insert(repo, seed)
    session.commit()
    got = repo.get(doc_id, seed.company_a)
    assert got is not None
    assert (got.status, got.version) == ("draft", 1)
    assert got.project_name == "Billing"
    assert got.creator_name == "Ada Author"
    session.close()


def test_get_is_scoped_by_company(session_factory, seed):
    session = session_factory()
    repo = DocumentRepo(session)
    doc_id = _insert(repo, seed)
    session.commit()
    assert repo.get(doc_id, seed.company_b) is None
    assert repo.get(doc_id, None) is not None
    session.close()


def test_compare_and_set_version(session_factory, seed):
    session = session_factory()
    repo = DocumentRepo(session)
    doc_id = _insert(repo, seed)
    assert repo.compare_and_set_version(doc_id, 1, 2) is True
    # Lecture périmée: la version attendue n'est plus la bonne
    assert repo.compare_and_set_version(doc_id, 1, 2) is False
    session.commit()
    assert repo.get(doc_id, seed.company_a).version == 2
    session.close()


def test_conditional_status_update(session_factory, seed):
    session = session_factory()
    repo = DocumentRepo(session)
    doc_id = _insert(repo, seed)
    assert repo.update_fields(
        doc_id, seed.company_a, {"status": "review"}, expected_status="draft"
    )
    assert not repo.update_fields(
        doc_id, seed.company_a, {"status": "review"}, expected_status="draft"
    )
    assert not repo.update_fields(doc_id, seed.company_b, {"title": "x"})
    session.close()


def test_duplicate_version_is_rejected(session_factory, seed):
    session = session_factory()
    repo = DocumentRepo(session)
    doc_id = _insert(repo, seed)
    repo.insert_version(document_id=doc_id, version=2, title="t", content={}, created_by="u")
    with pytest.raises(IntegrityError):
        repo.insert_version(document_id=doc_id, version=2, title="t", content={}, created_by="u")
    session.rollback()
    session.close()


def test_lists_are_newest_first_and_paginated(session_factory, seed):
    session = session_factory()
    repo = DocumentRepo(session)
    ids = [_insert(repo, seed, title=f"Spec {n}") for n in range(3)]
    session.commit()
    listed = repo.list_by_project(seed.project_a, seed.company_a)
    assert {d.id for d in listed} == set(ids)
    created = [d.created_at for d in listed]
    assert created == sorted(created, reverse=True)

    page, total = repo.list_for_company(seed.company_a, offset=0, limit=2)
    assert total == 3 and len(page) == 2
    _, none_total = repo.list_for_company(seed.company_a, status="approved")
    assert none_total == 0
    assert repo.list_by_project(seed.project_a, seed.company_b) == []
    session.close()


def test_versions_listed_descending(session_factory, seed):
    session = session_factory()
    repo = DocumentRepo(session)
    doc_id = _insert(repo, seed)
    for v in (1, 2, 3):
        repo.insert_version(document_id=doc_id, version=v, title=f"v{v}", content={}, created_by="u")
    session.commit()
    assert [v.version for v in repo.list_versions(doc_id)] == [3, 2, 1]
    session.close()
