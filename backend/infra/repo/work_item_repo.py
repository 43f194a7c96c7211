# ============================================================
# Module : backend/infra/repo/work_item_repo.py
# Objet  : Insertion en masse et lecture des work items dérivés.
# ============================================================

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from ...domain.documents import WorkItem
from .models import WorkItemORM


class WorkItemRepo:
    """Écriture en lot (un seul flush) et lecture par document, dans l'ordre des features."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def bulk_insert(self, items: list[WorkItem]) -> list[WorkItem]:
        """Insère tous les items dans un seul flush: tout passe ou tout échoue."""
        if not items:
            return []
        now = datetime.now(UTC)
        rows = [
            WorkItemORM(
                company_id=i.company_id,
                project_id=i.project_id,
                document_id=i.document_id,
                title=i.title,
                description=i.description,
                status=i.status,
                priority=i.priority,
                created_by=i.created_by,
                position=position,
                created_at=now,
            )
            for position, i in enumerate(items)
        ]
        self._session.add_all(rows)
        self._session.flush()
        for item, row in zip(items, rows, strict=True):
            item.id = row.id
            item.position = row.position
            item.created_at = row.created_at
        return items

    def list_for_document(self, document_id: str) -> list[WorkItem]:
        stmt = (
            select(WorkItemORM)
            .where(WorkItemORM.document_id == document_id)
            .order_by(WorkItemORM.position.asc())
        )
        return [
            WorkItem(
                id=r.id,
                title=r.title,
                description=r.description,
                document_id=r.document_id,
                project_id=r.project_id,
                company_id=r.company_id,
                created_by=r.created_by,
                status=r.status,
                priority=r.priority,
                position=r.position,
                created_at=r.created_at,
            )
            for r in self._session.execute(stmt).scalars().all()
        ]
