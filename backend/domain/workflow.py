"""Moteur de workflow des documents (PRD): périmètre, machine à états, versions.

Responsabilités:
- Valider le périmètre company/projet (404 opaque: absent et hors périmètre sont identiques).
- Appliquer la table de transitions `draft → review → approved | rejected`.
- Incrémenter la version par compare-and-swap, historique inséré dans la même transaction.
- Après commit d'une approbation: planifier la génération des work items et les notifications.

Une instance = une unité de travail (une session SQLAlchemy). Le commit est fait par l'appelant
(`session_scope`); les effets de bord ne partent qu'après ce commit et leurs échecs sont
seulement journalisés. Les work items sont donc disponibles de façon *éventuellement cohérente*
après un `decide` réussi.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import Any

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.app.metrics import DOCUMENT_TRANSITIONS, DOCUMENT_VERSION_CONFLICTS
from backend.domain.documents import (
    DECISION_TARGETS,
    Document,
    DocumentStatus,
    DocumentVersion,
    check_transition,
)
from backend.domain.errors import NotFound, StoreFailure, ValidationFailure, VersionConflict
from backend.domain.notifications import NotificationDispatcher
from backend.infra.ops.post_commit import enqueue_task_after_commit, register_action_after_commit
from backend.infra.repo.document_repo import DocumentRepo

GENERATE_WORK_ITEMS_TASK = "backend.tasks.generate_work_items"
INITIAL_VERSION_SUMMARY = "Initial version"

log = structlog.get_logger(__name__)


@contextmanager
def _store_errors(operation: str, **context: Any) -> Iterator[None]:
    """Convertit toute erreur SQLAlchemy en StoreFailure (original journalisé)."""
    try:
        yield
    except SQLAlchemyError as exc:
        raise StoreFailure.wrap(operation, exc, **context) from exc


def _require(value: str | None, name: str) -> str:
    if not value or not str(value).strip():
        raise ValidationFailure(f"{name} is required", kind="missing_scope", details={"field": name})
    return value


class DocumentWorkflowEngine:
    """Service métier du cycle de vie des documents.

    Paramètres:
    - session: session SQLAlchemy de l'unité de travail.
    - notifier: dispatcher de notifications (fire-and-forget).
    - max_version_attempts: tentatives de compare-and-swap avant `VersionConflict`.
    - max_page_size: borne haute du paramètre `limit` des listes paginées.
    """

    def __init__(
        self,
        session: Session,
        notifier: NotificationDispatcher,
        *,
        max_version_attempts: int = 5,
        max_page_size: int = 100,
    ) -> None:
        self.session = session
        self.repo = DocumentRepo(session)
        self.notifier = notifier
        self.max_version_attempts = max(1, max_version_attempts)
        self.max_page_size = max_page_size

    # ------------------------------------------------------------------
    # Création / lecture
    # ------------------------------------------------------------------

    def create(
        self,
        project_id: str,
        title: str,
        content: dict[str, Any] | None,
        creator_id: str,
        company_id: str | None = None,
    ) -> Document:
        """Crée un document v1 en `draft` et son instantané de version 1.

        La company est résolue depuis le projet si elle n'est pas fournie; si elle l'est, elle
        doit correspondre à celle du projet. Le créateur est notifié après commit.
        """
        _require(project_id, "project_id")
        _require(creator_id, "creator_id")
        if not title or not title.strip():
            raise ValidationFailure("title is required", details={"field": "title"})

        with _store_errors("fetch_project", project_id=project_id, company_id=company_id):
            project = self.repo.get_project(project_id)
        if project is None or (company_id and project.company_id != company_id):
            raise NotFound("Project not found")
        owner_company = company_id or project.company_id
        payload = dict(content or {})

        with _store_errors(
            "create_document", project_id=project_id, company_id=owner_company
        ):
            document = self.repo.insert(
                company_id=owner_company,
                project_id=project_id,
                title=title,
                content=payload,
                created_by=creator_id,
            )
            self.repo.insert_version(
                document_id=document.id,
                version=1,
                title=title,
                content=payload,
                created_by=creator_id,
                changes_summary=INITIAL_VERSION_SUMMARY,
            )
            creator = self.repo.get_user(creator_id)

        document.project_name = project.name
        document.creator_name = creator.full_name if creator else None
        if creator is not None and creator.email:
            register_action_after_commit(
                self.session,
                self._notify_created,
                recipient_email=creator.email,
                recipient_name=creator.full_name or "",
                document_title=document.title,
                document_id=document.id,
                project_name=project.name,
            )
        else:
            log.info("document_created_notification_skipped", document_id=document.id)

        log.info(
            "document_created",
            document_id=document.id,
            project_id=project_id,
            company_id=owner_company,
            created_by=creator_id,
        )
        return document

    def get_by_id(self, document_id: str, company_id: str) -> Document:
        """Retourne le document du périmètre, sinon NotFound (absent ou autre company)."""
        _require(company_id, "company_id")
        with _store_errors("fetch_document", document_id=document_id, company_id=company_id):
            document = self.repo.get(document_id, company_id)
        if document is None:
            raise NotFound("Document not found")
        return document

    def list_by_project(self, project_id: str, company_id: str) -> list[Document]:
        """Documents d'un projet du périmètre, du plus récent au plus ancien."""
        _require(company_id, "company_id")
        with _store_errors("list_documents", project_id=project_id, company_id=company_id):
            project = self.repo.get_project(project_id, company_id)
            if project is None:
                raise NotFound("Project not found")
            return self.repo.list_by_project(project_id, company_id)

    def list_for_company(
        self,
        company_id: str,
        *,
        status: str | None = None,
        created_by: str | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[Document], int]:
        """Liste paginée des documents d'une company. Retourne (documents, total)."""
        _require(company_id, "company_id")
        if page < 1:
            raise ValidationFailure("page must be >= 1", details={"field": "page"})
        if not 1 <= limit <= self.max_page_size:
            raise ValidationFailure(
                f"limit must be between 1 and {self.max_page_size}", details={"field": "limit"}
            )
        status_value = DocumentStatus.parse(status).value if status else None
        with _store_errors("list_documents", company_id=company_id):
            return self.repo.list_for_company(
                company_id,
                status=status_value,
                created_by=created_by,
                offset=(page - 1) * limit,
                limit=limit,
            )

    def list_versions(self, document_id: str, company_id: str) -> list[DocumentVersion]:
        """Historique des versions, de la plus récente à la plus ancienne."""
        self.get_by_id(document_id, company_id)
        with _store_errors("list_versions", document_id=document_id, company_id=company_id):
            return self.repo.list_versions(document_id)

    # ------------------------------------------------------------------
    # Modifications
    # ------------------------------------------------------------------

    def update(
        self,
        document_id: str,
        company_id: str,
        *,
        title: str | None = None,
        content: dict[str, Any] | None = None,
    ) -> Document:
        """Édition légère: titre/contenu + `updated_at`, sans incrément de version."""
        self.get_by_id(document_id, company_id)
        patch: dict[str, Any] = {}
        if title is not None:
            if not title.strip():
                raise ValidationFailure("title must not be empty", details={"field": "title"})
            patch["title"] = title
        if content is not None:
            patch["content"] = dict(content)
        with _store_errors("update_document", document_id=document_id, company_id=company_id):
            self.repo.update_fields(document_id, company_id, patch)
            document = self.repo.get(document_id, company_id)
        if document is None:
            raise NotFound("Document not found")
        log.info("document_updated", document_id=document_id, fields=sorted(patch))
        return document

    def create_version(
        self,
        document_id: str,
        company_id: str,
        *,
        title: str,
        content: dict[str, Any] | None,
        author_id: str,
        summary: str | None = None,
    ) -> DocumentVersion:
        """Ajoute la révision `version + 1` et fait avancer la version du document.

        L'incrément est conditionnel (compare-and-swap sur la version lue); une course perdue
        relit le document et recommence. L'historique est inséré dans la même transaction:
        si l'insertion échoue, l'incrément est annulé avec elle.
        """
        _require(author_id, "author_id")
        if not title or not title.strip():
            raise ValidationFailure("title is required", details={"field": "title"})
        payload = dict(content or {})

        for attempt in range(1, self.max_version_attempts + 1):
            current = self.get_by_id(document_id, company_id)
            new_version = current.version + 1
            with _store_errors(
                "create_version",
                document_id=document_id,
                company_id=company_id,
                version=new_version,
            ):
                swapped = self.repo.compare_and_set_version(
                    document_id, current.version, new_version
                )
                if swapped:
                    version = self.repo.insert_version(
                        document_id=document_id,
                        version=new_version,
                        title=title,
                        content=payload,
                        created_by=author_id,
                        changes_summary=summary,
                    )
            if swapped:
                log.info(
                    "document_version_created",
                    document_id=document_id,
                    version=new_version,
                    attempt=attempt,
                )
                return version
            DOCUMENT_VERSION_CONFLICTS.inc()
            log.warning(
                "document_version_race_lost",
                document_id=document_id,
                expected_version=current.version,
                attempt=attempt,
            )

        raise VersionConflict(
            "Document version changed concurrently, retry later",
            details={"document_id": document_id},
        )

    def delete(self, document_id: str, company_id: str) -> None:
        """Suppression dans le périmètre. L'historique et les work items ne sont pas purgés."""
        self.get_by_id(document_id, company_id)
        with _store_errors("delete_document", document_id=document_id, company_id=company_id):
            deleted = self.repo.delete(document_id, company_id)
        if not deleted:
            raise NotFound("Document not found")
        log.info("document_deleted", document_id=document_id, company_id=company_id)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _transition(
        self,
        current: Document,
        target: DocumentStatus,
        patch: dict[str, Any],
    ) -> Document:
        with _store_errors(
            "update_document_status",
            document_id=current.id,
            company_id=current.company_id,
            status=target.value,
        ):
            applied = self.repo.update_fields(
                current.id, current.company_id, patch, expected_status=current.status
            )
            updated = self.repo.get(current.id, current.company_id)
        if updated is None:
            # Supprimé entre la lecture et l'écriture
            raise NotFound("Document not found")
        if not applied:
            # Un autre appel a changé le statut entre la lecture et l'écriture
            raise ValidationFailure(
                f"Invalid status transition from '{updated.status}' to '{target.value}'",
                kind="invalid_transition",
                details={"from": updated.status, "to": target.value},
            )
        DOCUMENT_TRANSITIONS.labels(to_status=target.value).inc()
        log.info(
            "document_status_changed",
            document_id=current.id,
            from_status=current.status,
            to_status=target.value,
        )
        return updated

    def submit(self, document_id: str, company_id: str, actor_id: str) -> Document:
        """`draft → review`."""
        current = self.get_by_id(document_id, company_id)
        target = check_transition(current.status, DocumentStatus.REVIEW)
        log.debug("document_submit", document_id=document_id, actor_id=actor_id)
        return self._transition(current, target, {"status": target.value})

    def decide(
        self,
        document_id: str,
        company_id: str,
        status: str | DocumentStatus,
        approver_id: str,
        *,
        reason: str | None = None,
    ) -> Document:
        """`review → approved | rejected`.

        L'approbation renseigne `approved_by`/`approved_at` et planifie, après commit, la
        génération des work items. Le créateur est notifié de la décision (best-effort).
        """
        _require(approver_id, "approver_id")
        target = DocumentStatus.parse(status)
        if target not in DECISION_TARGETS:
            raise ValidationFailure(
                f"Decision must be one of {sorted(s.value for s in DECISION_TARGETS)}",
                kind="invalid_transition",
                details={"to": target.value},
            )
        current = self.get_by_id(document_id, company_id)
        check_transition(current.status, target)

        patch: dict[str, Any] = {"status": target.value}
        if target is DocumentStatus.APPROVED:
            patch["approved_by"] = approver_id
            patch["approved_at"] = datetime.now(UTC)
        elif reason:
            metadata = dict(current.content.get("_metadata") or {})
            metadata.update(
                {
                    "rejectionReason": reason,
                    "rejectedBy": approver_id,
                    "rejectedAt": datetime.now(UTC).isoformat(),
                }
            )
            patch["content"] = {**current.content, "_metadata": metadata}

        updated = self._transition(current, target, patch)

        if target is DocumentStatus.APPROVED:
            enqueue_task_after_commit(
                self.session, GENERATE_WORK_ITEMS_TASK, updated.id, approver_id
            )
        self._schedule_decision_notification(updated, target, reason)
        return updated

    # ------------------------------------------------------------------
    # Sections (édition du contenu via `update`)
    # ------------------------------------------------------------------

    @staticmethod
    def _sections(document: Document) -> list[dict[str, Any]]:
        sections = document.content.get("sections")
        if not isinstance(sections, list):
            return []
        return [dict(s) for s in sections if isinstance(s, dict)]

    def add_section(
        self,
        document_id: str,
        company_id: str,
        *,
        title: str,
        content: str = "",
        section_id: str | None = None,
    ) -> Document:
        document = self.get_by_id(document_id, company_id)
        sections = self._sections(document)
        sections.append(
            {
                "id": section_id or f"section-{uuid.uuid4().hex[:12]}",
                "title": title,
                "content": content or "",
            }
        )
        return self.update(
            document_id, company_id, content={**document.content, "sections": sections}
        )

    def update_section(
        self,
        document_id: str,
        company_id: str,
        section_id: str,
        *,
        title: str | None = None,
        content: str | None = None,
    ) -> Document:
        document = self.get_by_id(document_id, company_id)
        sections = self._sections(document)
        for section in sections:
            if section.get("id") == section_id:
                if title is not None:
                    section["title"] = title
                if content is not None:
                    section["content"] = content
                break
        else:
            raise NotFound("Section not found")
        return self.update(
            document_id, company_id, content={**document.content, "sections": sections}
        )

    def delete_section(self, document_id: str, company_id: str, section_id: str) -> Document:
        document = self.get_by_id(document_id, company_id)
        sections = self._sections(document)
        remaining = [s for s in sections if s.get("id") != section_id]
        if len(remaining) == len(sections):
            raise NotFound("Section not found")
        return self.update(
            document_id, company_id, content={**document.content, "sections": remaining}
        )

    # ------------------------------------------------------------------
    # Notifications (post-commit, best-effort)
    # ------------------------------------------------------------------

    def _notify_created(self, **kwargs: Any) -> None:
        try:
            self.notifier.notify_document_created(**kwargs)
        except Exception as exc:
            log.warning(
                "document_created_notification_failed",
                document_id=kwargs.get("document_id"),
                error_type=type(exc).__name__,
                error=str(exc),
            )

    def _notify_decided(self, **kwargs: Any) -> None:
        try:
            self.notifier.notify_document_decided(**kwargs)
        except Exception as exc:
            log.warning(
                "document_decided_notification_failed",
                document_id=kwargs.get("document_id"),
                error_type=type(exc).__name__,
                error=str(exc),
            )

    def _schedule_decision_notification(
        self, document: Document, target: DocumentStatus, reason: str | None
    ) -> None:
        try:
            creator = self.repo.get_user(document.created_by)
        except SQLAlchemyError as exc:
            log.warning(
                "document_decided_notification_skipped",
                document_id=document.id,
                error_type=type(exc).__name__,
            )
            return
        if creator is None or not creator.email:
            return
        register_action_after_commit(
            self.session,
            self._notify_decided,
            recipient_email=creator.email,
            recipient_name=creator.full_name or "",
            document_title=document.title,
            document_id=document.id,
            status=target.value,
            reason=reason,
        )

    # ------------------------------------------------------------------
    # Assignés (liste d'identifiants dans `content["assignees"]`)
    # ------------------------------------------------------------------

    @staticmethod
    def _assignees(document: Document) -> list[str]:
        assignees = document.content.get("assignees")
        if not isinstance(assignees, list):
            return []
        return [str(a) for a in assignees]

    def add_assignee(self, document_id: str, company_id: str, user_id: str) -> Document:
        """Ajoute `user_id` aux assignés; un doublon est refusé (400)."""
        _require(user_id, "user_id")
        document = self.get_by_id(document_id, company_id)
        assignees = self._assignees(document)
        if user_id in assignees:
            raise ValidationFailure(
                "User is already assigned to this document",
                kind="already_assigned",
                details={"user_id": user_id},
            )
        return self.update(
            document_id,
            company_id,
            content={**document.content, "assignees": [*assignees, user_id]},
        )

    def remove_assignee(self, document_id: str, company_id: str, user_id: str) -> Document:
        document = self.get_by_id(document_id, company_id)
        assignees = self._assignees(document)
        remaining = [a for a in assignees if a != user_id]
        if len(remaining) == len(assignees):
            raise NotFound("User is not assigned to this document")
        return self.update(
            document_id, company_id, content={**document.content, "assignees": remaining}
        )
