"""
Tâches Celery du workflow documentaire.

- `generate_work_items`: après l'approbation d'un document, dérive ses work items (une seule
  écriture en lot). Idempotente par document: une relivraison ne duplique rien.
- `send_document_created_email` / `send_document_decided_email`: rendu + envoi best-effort.

Aucune de ces tâches ne lève vers le broker: un échec est journalisé et compté.
"""

from __future__ import annotations

import structlog

from backend.app.celery_app import celery_app
from backend.app.metrics import NOTIFICATIONS_TOTAL, WORK_ITEMS_GENERATED
from backend.core.container import container
from backend.domain.documents import DocumentStatus
from backend.domain.errors import NotificationFailure, WorkflowError
from backend.domain.notifications import (
    EmailMessage,
    render_document_created,
    render_document_decided,
)
from backend.domain.work_item_generator import WorkItemGenerator
from backend.domain.workflow import GENERATE_WORK_ITEMS_TASK
from backend.infra.notifications.dispatcher import CREATED_TASK, DECIDED_TASK
from backend.infra.ops.idempotency import idempotency_store, make_idem_key
from backend.infra.repo.db import session_scope
from backend.infra.repo.document_repo import DocumentRepo
from backend.infra.repo.work_item_repo import WorkItemRepo

log = structlog.get_logger(__name__).bind(component="document_tasks")

GENERATION_IDEM_TTL = 86400


@celery_app.task(name=GENERATE_WORK_ITEMS_TASK)
def generate_work_items_task(document_id: str, approver_id: str) -> str:
    # Idempotency: une seule génération par document
    idem_key = make_idem_key("generate_work_items", document_id)
    if not idempotency_store.acquire(idem_key, ttl=GENERATION_IDEM_TTL):
        return "duplicate"
    try:
        with session_scope(container.session_factory) as session:
            document = DocumentRepo(session).get(document_id, company_id=None)
            if document is None:
                return "not_found"
            if document.status != DocumentStatus.APPROVED.value:
                log.warning(
                    "work_items_skipped_not_approved",
                    document_id=document_id,
                    status=document.status,
                )
                return "not_approved"
            if WorkItemRepo(session).list_for_document(document_id):
                return "duplicate"
            items = WorkItemGenerator(session).generate(document, approver_id)
    except WorkflowError as exc:
        idempotency_store.release(idem_key)
        log.error("work_items_generation_failed", document_id=document_id, kind=exc.kind)
        return "failed"
    except Exception as exc:
        idempotency_store.release(idem_key)
        log.error(
            "work_items_generation_failed",
            document_id=document_id,
            error_type=type(exc).__name__,
            error=str(exc),
        )
        return "failed"
    WORK_ITEMS_GENERATED.inc(len(items))
    return f"ok:{len(items)}"


def _deliver(event: str, message: EmailMessage, document_id: str) -> str:
    try:
        container.email_sender.send(message)
    except NotificationFailure as exc:
        NOTIFICATIONS_TOTAL.labels(event=event, result="failed").inc()
        log.warning(
            "notification_delivery_failed",
            notification=event,
            document_id=document_id,
            error=exc.message,
        )
        return "failed"
    NOTIFICATIONS_TOTAL.labels(event=event, result="sent").inc()
    return "ok"


@celery_app.task(name=CREATED_TASK)
def send_document_created_email_task(
    document_id: str,
    recipient_email: str,
    recipient_name: str,
    document_title: str,
    project_name: str,
) -> str:
    message = render_document_created(
        base_url=container.settings.APP_BASE_URL,
        recipient_email=recipient_email,
        recipient_name=recipient_name,
        document_title=document_title,
        document_id=document_id,
        project_name=project_name,
    )
    return _deliver("document_created", message, document_id)


@celery_app.task(name=DECIDED_TASK)
def send_document_decided_email_task(
    document_id: str,
    recipient_email: str,
    recipient_name: str,
    document_title: str,
    status: str,
    reason: str | None = None,
) -> str:
    message = render_document_decided(
        base_url=container.settings.APP_BASE_URL,
        recipient_email=recipient_email,
        recipient_name=recipient_name,
        document_title=document_title,
        document_id=document_id,
        status=status,
        reason=reason,
    )
    return _deliver("document_decided", message, document_id)
