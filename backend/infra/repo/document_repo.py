# ============================================================
# Module : backend/infra/repo/document_repo.py
# Objet  : Accès SQL (Document Store) pour documents et versions.
# Notes  : aucune logique métier ici; les erreurs SQLAlchemy remontent
#          telles quelles et sont enveloppées par le moteur de workflow.
# ============================================================

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session, aliased

from ...domain.documents import Document, DocumentVersion
from .models import DocumentORM, DocumentVersionORM, ProjectORM, UserORM


def _to_document(
    row: DocumentORM, project_name: str | None = None, creator_name: str | None = None
) -> Document:
    return Document(
        id=row.id,
        company_id=row.company_id,
        project_id=row.project_id,
        title=row.title,
        content=dict(row.content or {}),
        status=row.status,
        version=row.version,
        created_by=row.created_by,
        approved_by=row.approved_by,
        approved_at=row.approved_at,
        created_at=row.created_at,
        updated_at=row.updated_at,
        project_name=project_name,
        creator_name=creator_name,
    )


def _to_version(row: DocumentVersionORM) -> DocumentVersion:
    return DocumentVersion(
        id=row.id,
        document_id=row.document_id,
        version=row.version,
        title=row.title,
        content=dict(row.content or {}),
        created_by=row.created_by,
        changes_summary=row.changes_summary,
        created_at=row.created_at,
    )


class DocumentRepo:
    """CRUD documents + historique, filtrable par company/projet."""

    def __init__(self, session: Session) -> None:
        """Construit le repo avec une session (SQLAlchemy)."""
        self._session = session

    # --- lectures de référence (projets, utilisateurs) ---

    def get_project(self, project_id: str, company_id: str | None = None) -> ProjectORM | None:
        stmt = select(ProjectORM).where(ProjectORM.id == project_id)
        if company_id is not None:
            stmt = stmt.where(ProjectORM.company_id == company_id)
        return self._session.execute(stmt).scalars().first()

    def get_user(self, user_id: str) -> UserORM | None:
        return self._session.get(UserORM, user_id)

    # --- documents ---

    def _select_joined(self):
        creator = aliased(UserORM)
        return (
            select(DocumentORM, ProjectORM.name, creator.full_name)
            .outerjoin(ProjectORM, ProjectORM.id == DocumentORM.project_id)
            .outerjoin(creator, creator.id == DocumentORM.created_by)
            .execution_options(populate_existing=True)
        )

    def get(self, document_id: str, company_id: str | None) -> Document | None:
        """Retourne le document s'il existe *dans* le périmètre `company_id`.

        `company_id=None` désactive le filtre (usage interne: tâches de fond).
        """
        stmt = self._select_joined().where(DocumentORM.id == document_id)
        if company_id is not None:
            stmt = stmt.where(DocumentORM.company_id == company_id)
        row = self._session.execute(stmt).first()
        if not row:
            return None
        doc, project_name, creator_name = row
        return _to_document(doc, project_name, creator_name)

    def list_by_project(self, project_id: str, company_id: str) -> list[Document]:
        """Documents d'un projet, du plus récent au plus ancien."""
        stmt = (
            self._select_joined()
            .where(DocumentORM.project_id == project_id)
            .where(DocumentORM.company_id == company_id)
            .order_by(DocumentORM.created_at.desc())
        )
        return [_to_document(d, p, c) for d, p, c in self._session.execute(stmt).all()]

    def list_for_company(
        self,
        company_id: str,
        *,
        status: str | None = None,
        created_by: str | None = None,
        offset: int = 0,
        limit: int = 20,
    ) -> tuple[list[Document], int]:
        """Liste paginée des documents d'une company avec le total (filtres optionnels)."""
        filters = [DocumentORM.company_id == company_id]
        if status is not None:
            filters.append(DocumentORM.status == status)
        if created_by is not None:
            filters.append(DocumentORM.created_by == created_by)
        total = self._session.execute(
            select(func.count()).select_from(DocumentORM).where(*filters)
        ).scalar_one()
        stmt = (
            self._select_joined()
            .where(*filters)
            .order_by(DocumentORM.created_at.desc())
            .offset(offset)
            .limit(limit)
        )
        items = [_to_document(d, p, c) for d, p, c in self._session.execute(stmt).all()]
        return items, int(total)

    def insert(
        self,
        *,
        company_id: str,
        project_id: str,
        title: str,
        content: dict[str, Any],
        created_by: str,
    ) -> Document:
        now = datetime.now(UTC)
        row = DocumentORM(
            company_id=company_id,
            project_id=project_id,
            title=title,
            content=content,
            status="draft",
            version=1,
            created_by=created_by,
            created_at=now,
            updated_at=now,
        )
        self._session.add(row)
        self._session.flush()
        return _to_document(row)

    def update_fields(
        self,
        document_id: str,
        company_id: str,
        patch: dict[str, Any],
        *,
        expected_status: str | None = None,
    ) -> bool:
        """Applique `patch` (+ updated_at) au document du périmètre. True si une ligne a changé.

        `expected_status` rend l'écriture conditionnelle au statut lu (transitions).
        """
        values = dict(patch)
        values.setdefault("updated_at", datetime.now(UTC))
        stmt = (
            update(DocumentORM)
            .where(DocumentORM.id == document_id)
            .where(DocumentORM.company_id == company_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if expected_status is not None:
            stmt = stmt.where(DocumentORM.status == expected_status)
        return self._session.execute(stmt).rowcount == 1

    def compare_and_set_version(
        self,
        document_id: str,
        expected_version: int,
        new_version: int,
        patch: dict[str, Any] | None = None,
    ) -> bool:
        """Incrément conditionnel: n'écrit que si la version courante vaut `expected_version`.

        Retourne False si une autre transaction a déjà fait avancer la version.
        """
        values = dict(patch or {})
        values["version"] = new_version
        values.setdefault("updated_at", datetime.now(UTC))
        stmt = (
            update(DocumentORM)
            .where(DocumentORM.id == document_id)
            .where(DocumentORM.version == expected_version)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return self._session.execute(stmt).rowcount == 1

    def delete(self, document_id: str, company_id: str) -> int:
        stmt = (
            delete(DocumentORM)
            .where(DocumentORM.id == document_id)
            .where(DocumentORM.company_id == company_id)
            .execution_options(synchronize_session=False)
        )
        return self._session.execute(stmt).rowcount

    # --- historique ---

    def insert_version(
        self,
        *,
        document_id: str,
        version: int,
        title: str,
        content: dict[str, Any],
        created_by: str,
        changes_summary: str | None = None,
    ) -> DocumentVersion:
        """Ajoute une ligne d'historique. Lève IntegrityError sur (document_id, version) dupliqué."""
        row = DocumentVersionORM(
            document_id=document_id,
            version=version,
            title=title,
            content=content,
            created_by=created_by,
            changes_summary=changes_summary,
            created_at=datetime.now(UTC),
        )
        self._session.add(row)
        self._session.flush()
        return _to_version(row)

    def list_versions(self, document_id: str) -> list[DocumentVersion]:
        stmt = (
            select(DocumentVersionORM)
            .where(DocumentVersionORM.document_id == document_id)
            .order_by(DocumentVersionORM.version.desc())
        )
        return [_to_version(r) for r in self._session.execute(stmt).scalars().all()]
