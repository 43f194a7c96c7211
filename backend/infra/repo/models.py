"""SQLAlchemy models for persistence layer (documents, versions, work items).

`companies`, `users` et `projects` sont en lecture seule pour le workflow documentaire: ils servent
au contrôle de périmètre et aux champs joints (nom de projet, nom du créateur, destinataire).
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase


def _uuid() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Classe de base pour tous les modèles SQLAlchemy."""

    metadata = MetaData()


class CompanyORM(Base):
    __tablename__ = "companies"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)


class UserORM(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_uuid)
    company_id = Column(String(36), ForeignKey("companies.id"), nullable=True)
    email = Column(String(255), nullable=False, unique=True)
    full_name = Column(String(255), nullable=True)
    role = Column(String(32), nullable=False, default="developer")
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)


class ProjectORM(Base):
    __tablename__ = "projects"

    id = Column(String(36), primary_key=True, default=_uuid)
    company_id = Column(String(36), ForeignKey("companies.id"), nullable=False)
    name = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)


class DocumentORM(Base):
    """Modèle ORM pour les documents (PRD)."""

    __tablename__ = "documents"

    id = Column(String(36), primary_key=True, default=_uuid)
    company_id = Column(String(36), ForeignKey("companies.id"), nullable=False)
    project_id = Column(String(36), ForeignKey("projects.id"), nullable=False)
    title = Column(String(200), nullable=False)
    content = Column(JSON, nullable=False, default=dict)
    status = Column(String(16), nullable=False, default="draft")
    version = Column(Integer, nullable=False, default=1)
    created_by = Column(String(36), ForeignKey("users.id"), nullable=False)
    approved_by = Column(String(36), ForeignKey("users.id"), nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_now)

    __table_args__ = (
        CheckConstraint("version >= 1", name="ck_documents_version_positive"),
        Index("ix_documents_company_project", "company_id", "project_id"),
        Index("ix_documents_status", "status"),
    )


class DocumentVersionORM(Base):
    """Historique append-only des versions d'un document.

    Pas de clé étrangère en cascade: la suppression d'un document ne purge pas l'historique.
    """

    __tablename__ = "document_versions"

    id = Column(String(36), primary_key=True, default=_uuid)
    document_id = Column(String(36), nullable=False, index=True)
    version = Column(Integer, nullable=False)
    title = Column(String(200), nullable=False)
    content = Column(JSON, nullable=False, default=dict)
    created_by = Column(String(36), nullable=False)
    changes_summary = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)

    __table_args__ = (
        UniqueConstraint("document_id", "version", name="uq_document_versions_document_version"),
    )


class WorkItemORM(Base):
    """Tâches dérivées (backlog) générées à l'approbation d'un document."""

    __tablename__ = "work_items"

    id = Column(String(36), primary_key=True, default=_uuid)
    company_id = Column(String(36), nullable=False)
    project_id = Column(String(36), nullable=False)
    document_id = Column(String(36), nullable=True, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False, default="")
    status = Column(String(16), nullable=False, default="todo")
    priority = Column(String(16), nullable=False, default="medium")
    created_by = Column(String(36), nullable=False)
    position = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)

    __table_args__ = (Index("ix_work_items_company_project", "company_id", "project_id"),)
