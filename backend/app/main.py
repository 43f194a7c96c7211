"""
Application principale FastAPI.

Ce module assemble tous les composants de l'application : middlewares,
routes, gestion d'erreurs et métriques du backend documents.

Responsabilités du module:
- Initialiser le logging structuré
- Construire l'application FastAPI avec son titre/debug
- Ajouter les middlewares (timing, métriques, request id)
- Traduire les erreurs du domaine en enveloppes HTTP
- Monter les routers (santé, documents, métriques)
"""

from __future__ import annotations

from fastapi import FastAPI

# Enregistre les tâches Celery dans le process API (envoi local / mode eager)
import backend.tasks.document_tasks  # noqa: F401
from backend.api.routes_documents import router as documents_router
from backend.api.routes_health import router as health_router
from backend.apigw.errors import register_error_handlers
from backend.app.metrics import PrometheusMiddleware, metrics_router
from backend.core.container import container
from backend.core.logging import setup_logging
from backend.middlewares.request_id import RequestIDMiddleware
from backend.middlewares.timing import TimingMiddleware


def create_app() -> FastAPI:
    """
    Construit et retourne l'application FastAPI prête à l'usage.

    Étapes:
    - Configure le logging structuré (structlog, JSON hors dev)
    - Lit les paramètres d'exécution
    - Ajoute les middlewares utiles au debug/traçabilité
    - Publie les routes de santé, documents et métriques
    """
    settings = container.settings
    setup_logging(json_output=settings.APP_ENV not in ("dev", "test"))
    app = FastAPI(title=settings.APP_NAME, debug=settings.APP_DEBUG)
    # Le dernier ajouté est le plus externe: le request id couvre les logs de timing
    app.add_middleware(TimingMiddleware)
    app.add_middleware(PrometheusMiddleware)
    app.add_middleware(RequestIDMiddleware)
    register_error_handlers(app)
    app.include_router(health_router)
    app.include_router(documents_router)
    app.include_router(metrics_router)
    return app


app = create_app()
