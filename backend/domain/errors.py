"""Taxonomie d'erreurs du workflow documentaire.

Chaque erreur porte un `kind` stable (lisible machine), un message humain et un code HTTP
indicatif. Le domaine ne dépend pas de FastAPI: la traduction en réponse se fait dans
`backend.apigw.errors`.

- NotFound: entité absente *ou* hors périmètre (indiscernables pour l'appelant).
- ValidationFailure: entrée mal formée ou transition d'état illégale.
- StoreFailure: erreur de persistance, message stable, original journalisé.
- VersionConflict: course perdue sur l'incrément de version (après tentatives).
- NotificationFailure: jamais remontée à l'appelant, seulement journalisée.
"""

from __future__ import annotations

from typing import Any

import structlog

from backend.core.http_constants import (
    HTTP_BAD_REQUEST,
    HTTP_CONFLICT,
    HTTP_INTERNAL_SERVER_ERROR,
    HTTP_NOT_FOUND,
)

log = structlog.get_logger(__name__)


class WorkflowError(Exception):
    """Erreur de base du domaine documents."""

    kind = "workflow_error"
    status_code = HTTP_INTERNAL_SERVER_ERROR

    def __init__(
        self, message: str, *, kind: str | None = None, details: dict[str, Any] | None = None
    ) -> None:
        super().__init__(message)
        self.message = message
        if kind:
            self.kind = kind
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"kind": self.kind, "message": self.message}
        if self.details:
            data["details"] = self.details
        return data


class NotFound(WorkflowError):
    kind = "not_found"
    status_code = HTTP_NOT_FOUND


class ValidationFailure(WorkflowError):
    kind = "validation_failed"
    status_code = HTTP_BAD_REQUEST


class StoreFailure(WorkflowError):
    """Échec du store. Le message exposé est stable, l'original part dans les logs."""

    kind = "store_failure"
    status_code = HTTP_INTERNAL_SERVER_ERROR
    severity = "500-class"

    @classmethod
    def wrap(cls, operation: str, exc: BaseException, **context: Any) -> StoreFailure:
        """Journalise `exc` avec son contexte et retourne l'erreur à message stable."""
        log.error(
            "store_failure",
            operation=operation,
            error_type=type(exc).__name__,
            error=str(exc),
            **context,
        )
        err = cls(f"Failed to {operation.replace('_', ' ')}")
        err.__cause__ = exc
        return err


class VersionConflict(StoreFailure):
    kind = "version_conflict"
    status_code = HTTP_CONFLICT


class NotificationFailure(WorkflowError):
    kind = "notification_failure"
