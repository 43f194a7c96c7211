"""
Modèle de domaine des documents de spécification (PRD) et de leurs dérivés (POPO).

Ce module définit:
- `DocumentStatus`: états fermés du cycle de vie et table des transitions autorisées;
- `Document`, `DocumentVersion`, `WorkItem`: objets domaine renvoyés par les dépôts.
"""

# ============================================================
# Module : backend/domain/documents.py
# Objet  : Cycle de vie des documents (machine à états) + objets domaine.
# ============================================================

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from backend.domain.errors import ValidationFailure


class DocumentStatus(str, Enum):
    DRAFT = "draft"
    REVIEW = "review"
    APPROVED = "approved"
    REJECTED = "rejected"

    @classmethod
    def parse(cls, value: str | DocumentStatus) -> DocumentStatus:
        """Convertit une valeur brute en statut, ou lève ValidationFailure."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError as err:
            raise ValidationFailure(
                f"Unknown document status '{value}'",
                kind="invalid_status",
                details={"allowed": [s.value for s in cls]},
            ) from err

    @property
    def is_terminal(self) -> bool:
        return self in (DocumentStatus.APPROVED, DocumentStatus.REJECTED)


# Transitions explicites: (source, cible). Tout le reste est refusé.
TRANSITIONS: dict[DocumentStatus, frozenset[DocumentStatus]] = {
    DocumentStatus.DRAFT: frozenset({DocumentStatus.REVIEW}),
    DocumentStatus.REVIEW: frozenset({DocumentStatus.APPROVED, DocumentStatus.REJECTED}),
    DocumentStatus.APPROVED: frozenset(),
    DocumentStatus.REJECTED: frozenset(),
}

# Cibles atteignables par une décision d'approbation
DECISION_TARGETS = frozenset({DocumentStatus.APPROVED, DocumentStatus.REJECTED})


def check_transition(current: str | DocumentStatus, target: str | DocumentStatus) -> DocumentStatus:
    """Valide le couple (courant, cible) contre `TRANSITIONS` et retourne la cible typée."""
    source = DocumentStatus.parse(current)
    wanted = DocumentStatus.parse(target)
    if source.is_terminal:
        raise ValidationFailure(
            f"Document is already {source.value}; no further transition is allowed",
            kind="invalid_transition",
            details={"from": source.value, "to": wanted.value},
        )
    if wanted not in TRANSITIONS[source]:
        raise ValidationFailure(
            f"Invalid status transition from '{source.value}' to '{wanted.value}'",
            kind="invalid_transition",
            details={"from": source.value, "to": wanted.value},
        )
    return wanted


WORK_ITEM_INITIAL_STATUS = "todo"
WORK_ITEM_DEFAULT_PRIORITY = "medium"


@dataclass
class Document:
    """
    Document de spécification versionné (objet domaine).

    Attributs
    - id, company_id, project_id: identité et périmètre (company = frontière tenant).
    - title, content: libellé et charge utile structurée (opaque hors génération).
    - status, version: état du workflow et numéro de révision (>= 1).
    - created_by, approved_by, approved_at: provenance.
    - project_name, creator_name: champs joints pour la lecture détaillée.
    """

    id: str
    company_id: str
    project_id: str
    title: str
    content: dict[str, Any]
    status: str
    version: int
    created_by: str
    approved_by: str | None = None
    approved_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    project_name: str | None = None
    creator_name: str | None = None


@dataclass(frozen=True)
class DocumentVersion:
    """Instantané immuable d'un document à une version donnée."""

    id: str
    document_id: str
    version: int
    title: str
    content: dict[str, Any]
    created_by: str
    changes_summary: str | None
    created_at: datetime | None


@dataclass
class WorkItem:
    """Unité de travail dérivée d'un document approuvé."""

    title: str
    description: str
    document_id: str
    project_id: str
    company_id: str
    created_by: str
    status: str = WORK_ITEM_INITIAL_STATUS
    priority: str = WORK_ITEM_DEFAULT_PRIORITY
    position: int = 0
    id: str | None = None
    created_at: datetime | None = None
