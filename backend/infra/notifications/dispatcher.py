"""Dispatcher de notifications adossé à Celery.

Chaque notification devient une tâche `backend.tasks.send_document_*_email`. L'émission est
protégée: une erreur de broker est journalisée et n'interrompt jamais l'appelant.
"""

from __future__ import annotations

import structlog

from backend.app.metrics import NOTIFICATIONS_TOTAL
from backend.infra.ops.post_commit import send_task

CREATED_TASK = "backend.tasks.send_document_created_email"
DECIDED_TASK = "backend.tasks.send_document_decided_email"


class CeleryNotificationDispatcher:
    """Implémentation "fire-and-forget" de `NotificationDispatcher`."""

    def __init__(self) -> None:
        self._log = structlog.get_logger(__name__).bind(component="notification_dispatcher")

    def _emit(self, event: str, task_name: str, document_id: str, **kwargs) -> None:
        try:
            send_task(task_name, document_id=document_id, **kwargs)
        except Exception as exc:
            NOTIFICATIONS_TOTAL.labels(event=event, result="enqueue_failed").inc()
            self._log.warning(
                "notification_enqueue_failed",
                notification=event,
                document_id=document_id,
                error_type=type(exc).__name__,
            )
            return
        NOTIFICATIONS_TOTAL.labels(event=event, result="enqueued").inc()

    def notify_document_created(
        self,
        recipient_email: str,
        recipient_name: str,
        document_title: str,
        document_id: str,
        project_name: str,
    ) -> None:
        self._emit(
            "document_created",
            CREATED_TASK,
            document_id,
            recipient_email=recipient_email,
            recipient_name=recipient_name,
            document_title=document_title,
            project_name=project_name,
        )

    def notify_document_decided(
        self,
        recipient_email: str,
        recipient_name: str,
        document_title: str,
        document_id: str,
        status: str,
        reason: str | None = None,
    ) -> None:
        self._emit(
            "document_decided",
            DECIDED_TASK,
            document_id,
            recipient_email=recipient_email,
            recipient_name=recipient_name,
            document_title=document_title,
            status=status,
            reason=reason,
        )
