"""
Module: celery_app.

But: Initialiser l'instance Celery de l'application et charger la config runtime.

Notes:
- Les tâches documents (génération de work items, e-mails) sont déclarées dans
  `backend.tasks.document_tasks` et chargées via `include`.
- `CELERY_TASK_ALWAYS_EAGER=true` exécute les tâches dans le process appelant (dev/tests).
"""

from celery import Celery

from backend.core.settings import get_settings

_settings = get_settings()

celery_app = Celery(
    "prdflow",
    broker=_settings.CELERY_BROKER_URL,
    backend=_settings.CELERY_RESULT_BACKEND,
    include=["backend.tasks.document_tasks"],
)
# Load configuration from module (retries, timeouts, acks)
celery_app.config_from_object("backend.app.celeryconfig")
celery_app.conf.task_routes = {"backend.tasks.*": {"queue": "default"}}
celery_app.conf.task_always_eager = _settings.CELERY_TASK_ALWAYS_EAGER

__all__ = ["celery_app"]
