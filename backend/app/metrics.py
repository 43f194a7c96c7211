"""
Métriques Prometheus pour l'application.

Ce module définit les métriques Prometheus du backend documents: trafic HTTP, transitions du
workflow, génération de work items, notifications et actions post-commit.
"""

import time

from fastapi import APIRouter, Request
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Histogram,
    generate_latest,
)
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

metrics_router = APIRouter()

REQUEST_COUNT = Counter(
    "http_requests_total", "Total HTTP requests", ["method", "route", "status"]
)
REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds", "Latency of HTTP requests", ["route"]
)

# Workflow documents
DOCUMENT_TRANSITIONS = Counter(
    "document_transitions_total",
    "Accepted document status transitions",
    ["to_status"],
)
DOCUMENT_VERSION_CONFLICTS = Counter(
    "document_version_conflicts_total",
    "Lost compare-and-swap races on document version bumps",
)
WORK_ITEMS_GENERATED = Counter(
    "work_items_generated_total",
    "Work items created from approved documents",
)
NOTIFICATIONS_TOTAL = Counter(
    "document_notifications_total",
    "Document notification outcomes",
    ["event", "result"],
)
POSTCOMMIT_ACTIONS_TOTAL = Counter(
    "postcommit_actions_total",
    "Post-commit action outcomes",
    ["result"],
)


@metrics_router.get("/metrics")
def metrics():
    """
    Expose les métriques Prometheus au format texte.

    Returns:
        Response: Réponse HTTP contenant les métriques au format Prometheus.
    """
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


class PrometheusMiddleware(BaseHTTPMiddleware):
    """
    Middleware Prometheus pour mesurer les métriques HTTP.

    Le label `route` utilise le gabarit de route (ex: /documents/{document_id}) quand il est
    connu, pour borner la cardinalité.
    """

    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        response: Response = await call_next(request)
        route_obj = request.scope.get("route")
        route = getattr(route_obj, "path", None) or request.scope.get("path", "unknown")
        REQUEST_COUNT.labels(request.method, route, str(response.status_code)).inc()
        REQUEST_LATENCY.labels(route).observe(time.perf_counter() - start)
        return response
