# Schémas Pydantic exposés par l'API documents (requêtes et réponses).

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class DocumentCreateRequest(BaseModel):
    """Création d'un document (v1, statut `draft`).

    Champs:
    - project_id: projet porteur (doit appartenir à la company de l'appelant)
    - title: titre non vide
    - content: contenu structuré libre (ex: `{"features": [{"name": ..., "desc": ...}]}`)
    """

    project_id: str
    title: str = Field(min_length=1)
    content: dict[str, Any] = Field(default_factory=dict)


class DocumentUpdateRequest(BaseModel):
    title: str | None = Field(default=None, min_length=1)
    content: dict[str, Any] | None = None


class VersionCreateRequest(BaseModel):
    """Nouvelle révision: titre/contenu de l'instantané et résumé optionnel."""

    title: str = Field(min_length=1)
    content: dict[str, Any] = Field(default_factory=dict)
    changes_summary: str | None = None


class DecisionRequest(BaseModel):
    status: Literal["approved", "rejected"]
    reason: str | None = None


class SectionCreateRequest(BaseModel):
    title: str = Field(min_length=1)
    content: str = ""
    id: str | None = None


class SectionUpdateRequest(BaseModel):
    title: str | None = None
    content: str | None = None


class DocumentResponse(BaseModel):
    """Document tel que renvoyé par l'API (champs joints inclus quand disponibles)."""

    model_config = ConfigDict(from_attributes=True)

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


class DocumentPage(BaseModel):
    items: list[DocumentResponse]
    total: int
    page: int
    limit: int


class DocumentVersionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    document_id: str
    version: int
    title: str
    content: dict[str, Any]
    created_by: str
    changes_summary: str | None = None
    created_at: datetime | None = None
