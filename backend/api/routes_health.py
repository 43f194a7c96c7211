"""
Endpoint de santé pour vérifier la disponibilité de l'API et de la base.

Expose `/health` pour signaler l'état général de l'application et du stockage.
"""

import structlog
from fastapi import APIRouter
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from backend.core.container import container

router = APIRouter(tags=["health"])
log = structlog.get_logger(__name__)


@router.get("/health")
def health():
    """Vérifie la disponibilité de l'API et de la base de données."""
    try:
        with container.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        database = "ok"
    except SQLAlchemyError as exc:
        log.warning("health_database_unavailable", error_type=type(exc).__name__)
        database = "unavailable"
    return {
        "status": "ok" if database == "ok" else "degraded",
        "database": database,
        "storage": container.engine.dialect.name,
        "redis_url": bool(container.settings.REDIS_URL),
    }
