"""Génération des work items à partir du contenu d'un document approuvé.

Règles d'extraction (contenu rédigé par des humains, donc tolérant):
- on lit `content["features"]`; absent, vide ou non-liste => aucune tâche (succès);
- titre = `name`, sinon `title`, sinon "Untitled Task";
- description = `desc`, sinon `description`, sinon "";
- une entrée mal formée (non-dict, valeurs non textuelles ou vides) dégrade vers les défauts,
  sans interrompre le reste du lot.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.domain.documents import (
    WORK_ITEM_DEFAULT_PRIORITY,
    WORK_ITEM_INITIAL_STATUS,
    Document,
    WorkItem,
)
from backend.domain.errors import StoreFailure
from backend.infra.repo.work_item_repo import WorkItemRepo

DEFAULT_TITLE = "Untitled Task"

log = structlog.get_logger(__name__)


def _first_text(entry: Mapping[str, Any], *keys: str) -> str | None:
    for key in keys:
        value = entry.get(key)
        if isinstance(value, str) and value.strip():
            return value
    return None


def extract_features(content: Any) -> list[Any]:
    """Retourne la liste brute des features, ou [] si la forme ne convient pas."""
    if not isinstance(content, Mapping):
        return []
    features = content.get("features")
    if not isinstance(features, list):
        return []
    return features


def build_work_items(document: Document, approver_id: str) -> list[WorkItem]:
    """Transforme les features du document en work items (fonction pure, ordre conservé)."""
    items: list[WorkItem] = []
    for feature in extract_features(document.content):
        entry = feature if isinstance(feature, Mapping) else {}
        items.append(
            WorkItem(
                title=_first_text(entry, "name", "title") or DEFAULT_TITLE,
                description=_first_text(entry, "desc", "description") or "",
                document_id=document.id,
                project_id=document.project_id,
                company_id=document.company_id,
                created_by=approver_id,
                status=WORK_ITEM_INITIAL_STATUS,
                priority=WORK_ITEM_DEFAULT_PRIORITY,
            )
        )
    return items


class WorkItemGenerator:
    """Dérive et persiste les work items d'un document en une seule écriture en lot."""

    def __init__(self, session: Session) -> None:
        self.repo = WorkItemRepo(session)

    def generate(self, document: Document, approver_id: str) -> list[WorkItem]:
        items = build_work_items(document, approver_id)
        if not items:
            log.info("work_items_none", document_id=document.id)
            return []
        try:
            created = self.repo.bulk_insert(items)
        except SQLAlchemyError as exc:
            raise StoreFailure.wrap(
                "generate_work_items",
                exc,
                document_id=document.id,
                company_id=document.company_id,
                count=len(items),
            ) from exc
        log.info("work_items_generated", document_id=document.id, count=len(created))
        return created
